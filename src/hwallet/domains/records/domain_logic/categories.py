"""Vitals categories — the single lookup table from category to stored fields.

Both report filtering and vitals filtering consult this table, so a category
means the same thing everywhere.
"""

from __future__ import annotations

from dataclasses import dataclass

from hwallet.core.errors import ValidationError


@dataclass(frozen=True)
class VitalCategory:
    """A named class of vitals.

    Attributes:
        name: Category identifier, e.g. ``blood_pressure``.
        defining_fields: Stored columns; a row belongs to the category when
            at least one of them is non-null.
        projection: Stored column -> trend point name, in output order.
    """

    name: str
    defining_fields: tuple[str, ...]
    projection: tuple[tuple[str, str], ...]


CATEGORIES: dict[str, VitalCategory] = {
    "blood_pressure": VitalCategory(
        name="blood_pressure",
        defining_fields=("systolic",),
        projection=(("systolic", "systolic"), ("diastolic", "diastolic")),
    ),
    "blood_sugar": VitalCategory(
        name="blood_sugar",
        defining_fields=("fasting_sugar", "postprandial_sugar"),
        projection=(("fasting_sugar", "fasting"), ("postprandial_sugar", "postprandial")),
    ),
    "heart_rate": VitalCategory(
        name="heart_rate",
        defining_fields=("heart_rate",),
        projection=(("heart_rate", "heart_rate"),),
    ),
    "cholesterol": VitalCategory(
        name="cholesterol",
        defining_fields=("cholesterol",),
        projection=(("cholesterol", "cholesterol"),),
    ),
    "weight": VitalCategory(
        name="weight",
        defining_fields=("weight",),
        projection=(("weight", "weight"),),
    ),
    "temperature": VitalCategory(
        name="temperature",
        defining_fields=("temperature",),
        projection=(("temperature", "temperature"),),
    ),
}

# Category "all": every charted field, named as in its own category
ALL_PROJECTION: tuple[tuple[str, str], ...] = tuple(
    pair for category in CATEGORIES.values() for pair in category.projection
)

ALL_CATEGORIES = "all"


def resolve_category(name: str | None) -> VitalCategory | None:
    """Look up a category by name.

    Returns:
        The category, or None for "all" / unspecified.

    Raises:
        ValidationError: For unknown category names.
    """
    if name is None:
        return None
    key = name.strip().lower()
    if not key or key == ALL_CATEGORIES:
        return None
    try:
        return CATEGORIES[key]
    except KeyError:
        raise ValidationError(
            f"Unknown vital category: {name!r}. Valid: {sorted(CATEGORIES)}"
        ) from None
