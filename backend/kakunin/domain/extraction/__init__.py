"""Field extraction from OCR text of Japanese identity documents."""

from .era_calendar import ERA_OFFSETS, to_gregorian_year
from .field_extractor import (
    ExtractedFields,
    extract_address,
    extract_birth_date,
    extract_fields,
    extract_name,
    normalize_whitespace,
)
from .prefectures import PREFECTURES

__all__ = [
    "ERA_OFFSETS",
    "to_gregorian_year",
    "ExtractedFields",
    "extract_address",
    "extract_birth_date",
    "extract_fields",
    "extract_name",
    "normalize_whitespace",
    "PREFECTURES",
]
