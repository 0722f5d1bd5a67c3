"""Tests for the blob stores."""

from __future__ import annotations

import pytest

from hwallet.core.storage.blobs import (
    BlobStore,
    BlobStoreError,
    InMemoryBlobStore,
    LocalBlobStore,
    new_blob_key,
)


class TestBlobKeys:
    def test_keys_are_unique_and_keep_extension(self):
        a = new_blob_key("pdf")
        b = new_blob_key(".pdf")
        assert a != b
        assert a.endswith(".pdf") and b.endswith(".pdf")
        assert ".." not in b

    def test_key_without_extension(self):
        assert "." not in new_blob_key()


class TestLocalBlobStore:
    def test_round_trip(self, tmp_path):
        store = LocalBlobStore(tmp_path / "blobs")
        store.put("abc.pdf", b"data")
        assert (tmp_path / "blobs" / "abc.pdf").is_file()
        assert store.get("abc.pdf") == b"data"

    def test_missing_blob(self, tmp_path):
        store = LocalBlobStore(tmp_path)
        assert store.get("nope.pdf") is None
        assert store.delete("nope.pdf") is False

    def test_delete(self, tmp_path):
        store = LocalBlobStore(tmp_path)
        store.put("abc.pdf", b"data")
        assert store.delete("abc.pdf") is True
        assert store.get("abc.pdf") is None

    @pytest.mark.parametrize("key", ["../escape.pdf", "a/b.pdf", ".hidden", ""])
    def test_path_like_keys_rejected(self, tmp_path, key):
        store = LocalBlobStore(tmp_path)
        with pytest.raises(BlobStoreError):
            store.put(key, b"x")

    def test_satisfies_protocol(self, tmp_path):
        assert isinstance(LocalBlobStore(tmp_path), BlobStore)


class TestInMemoryBlobStore:
    def test_round_trip_and_delete(self):
        store = InMemoryBlobStore()
        store.put("k", b"v")
        assert store.get("k") == b"v"
        assert store.delete("k") is True
        assert store.delete("k") is False
        assert isinstance(store, BlobStore)
