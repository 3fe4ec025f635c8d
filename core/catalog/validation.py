"""Field validation for writer-submitted book data."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .errors import ValidationError
from .types import AssetUpload, BookFields

NAME_MAX_LENGTH = 255
DESCRIPTION_MAX_LENGTH = 1000
PRICE_MAX = Decimal("99999.99")
_CENT = Decimal("0.01")

KNOWN_CATEGORIES: tuple[str, ...] = (
    "Fiction",
    "Non-Fiction",
    "Science Fiction",
    "Fantasy",
    "Mystery",
    "Romance",
    "Thriller",
    "Biography",
    "History",
    "Science",
    "Technology",
    "Business",
    "Self-Help",
    "Health",
    "Travel",
    "Cooking",
    "Art",
    "Religion",
    "Philosophy",
    "Education",
    "Children",
    "Young Adult",
    "Poetry",
    "Drama",
    "Horror",
)


def known_categories(extra: Iterable[str] | None = None) -> list[str]:
    """Return the built-in categories followed by configured extensions."""

    categories = list(KNOWN_CATEGORIES)
    for item in extra or ():
        value = item.strip()
        if value and value not in categories:
            categories.append(value)
    return categories


def parse_price(raw: object) -> Decimal:
    """Convert user input into a two-decimal ``Decimal`` price."""

    if isinstance(raw, bool):
        raise ValidationError("price must be a number")
    if isinstance(raw, Decimal):
        value = raw
    else:
        try:
            value = Decimal(str(raw).strip())
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError("price must be a number") from exc
    if not value.is_finite():
        raise ValidationError("price must be a number")
    _check_price_range(value)
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _check_price_range(value: Decimal) -> None:
    if value < 0:
        raise ValidationError("price must not be negative")
    if value > PRICE_MAX:
        raise ValidationError(f"price must not exceed {PRICE_MAX}")


def validate_fields(
    fields: BookFields,
    *,
    categories: Iterable[str] | None = None,
) -> BookFields:
    """Return normalised fields or raise on the first violated constraint.

    Constraints are checked in a fixed order: name, category, price,
    description.
    """

    allowed = list(categories) if categories is not None else list(KNOWN_CATEGORIES)

    name = (fields.name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"name must be at most {NAME_MAX_LENGTH} characters")

    category = (fields.category or "").strip()
    if category not in allowed:
        raise ValidationError(f"unknown category: {category or '<empty>'}")

    price = parse_price(fields.price)

    description = (fields.description or "").strip()
    if not description:
        raise ValidationError("description is required")
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"description must be at most {DESCRIPTION_MAX_LENGTH} characters"
        )

    return BookFields(name=name, category=category, price=price, description=description)


def validate_book_file(upload: AssetUpload | None) -> AssetUpload:
    if upload is None:
        raise ValidationError("file required")
    if not (upload.filename or "").strip():
        raise ValidationError("file name required")
    if upload.size == 0:
        raise ValidationError("file is empty")
    return upload


__all__ = [
    "DESCRIPTION_MAX_LENGTH",
    "KNOWN_CATEGORIES",
    "NAME_MAX_LENGTH",
    "PRICE_MAX",
    "known_categories",
    "parse_price",
    "validate_book_file",
    "validate_fields",
]
