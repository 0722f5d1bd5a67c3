"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Health Wallet server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; binding elsewhere must be opted into explicitly.
    wallet_host: str = "127.0.0.1"
    wallet_port: int = 8001
    wallet_log_level: str = "info"
    wallet_allow_insecure_bind: bool = False

    # Storage
    db_path: str = "~/.hwallet/wallet.db"
    blob_dir: str = "~/.hwallet/blobs"
    max_upload_bytes: int = 10 * 1024 * 1024

    # Bearer tokens (Fernet key). Empty means an ephemeral per-process key.
    token_key: str = ""
    token_ttl_seconds: int = 86400


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
