"""Field extraction from OCR full text of Japanese identity documents.

Purpose-built for the My Number card and driver's license layouts. Each field
has its own parser; a parser that cannot find its field returns None instead
of guessing. All functions are pure.

Label matching tolerates full-width spaces, half-width spaces and line breaks
between the two characters of a label (e.g. "氏 名", "住\\n所").
"""

import re
from dataclasses import dataclass, asdict
from datetime import date
from typing import Optional

from .era_calendar import ERA_NAMES, parse_era_year, to_gregorian_year
from .prefectures import PREFECTURE_PATTERN

# Any whitespace, including U+3000 (ideographic space) and line breaks
_SP = r"[\s　]*"

_WHITESPACE_RUN = re.compile(r"[\s　]+")

_ERA = "(" + "|".join(ERA_NAMES) + ")"
_ERA_YEAR = r"(\d{1,2}|元)"
_ERA_DATE = (
    _ERA + _SP + _ERA_YEAR + _SP + "年" + _SP
    + r"(\d{1,2})" + _SP + "月" + _SP + r"(\d{1,2})" + _SP + "日"
)
_BIRTH_LABEL = "生" + _SP + "年" + _SP + "月" + _SP + "日" + _SP

NAME_PATTERN = re.compile(
    "氏" + _SP + "名" + _SP + r"([^\n\r氏住生数個]{1,30})"
)

# 平成7年4月30日生 - "生" not followed by "年", which would be a 生年月日 label
BIRTH_DATE_SUFFIX_PATTERN = re.compile(_ERA_DATE + _SP + "生(?!年)")
BIRTH_DATE_LABEL_ERA_PATTERN = re.compile(_BIRTH_LABEL + _ERA_DATE)
BIRTH_DATE_LABEL_GREGORIAN_PATTERN = re.compile(
    _BIRTH_LABEL + r"(\d{4})" + _SP + "年" + _SP
    + r"(\d{1,2})" + _SP + "月" + _SP + r"(\d{1,2})" + _SP + "日"
)

# Block-and-lot separators seen in OCR output
_BANCHI_SEP = "[ー－‐−\\-]"

ADDRESS_ANCHORED_PATTERN = re.compile(
    "住" + _SP + "所" + _SP
    + "((?:" + PREFECTURE_PATTERN + r")[^\n]{1,60}?"
    + r"\d{1,4}" + _BANCHI_SEP + r"\d{1,4}(?:" + _BANCHI_SEP + r"\d{1,4})?"
    + r"[^\n\r]{0,30})"
)
ADDRESS_FALLBACK_PATTERN = re.compile(
    "住" + _SP + "所" + _SP + r"([^\n\r]{10,70})"
)


@dataclass(frozen=True)
class ExtractedFields:
    """Fields read from one OCR text. Any of them may be None."""
    name: Optional[str] = None
    birth_date: Optional[str] = None  # YYYY-MM-DD
    address: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def normalize_whitespace(value: str) -> str:
    """Trim and collapse every whitespace run to a single ASCII space."""
    return _WHITESPACE_RUN.sub(" ", value.strip())


def _format_date(year: int, month: str, day: str) -> Optional[str]:
    try:
        return date(year, int(month), int(day)).isoformat()
    except ValueError:
        return None


def _era_date(match: re.Match) -> Optional[str]:
    era, era_year, month, day = match.groups()
    parsed_year = parse_era_year(era_year)
    if parsed_year is None:
        return None
    year = to_gregorian_year(era, parsed_year)
    if year is None:
        return None
    return _format_date(year, month, day)


def extract_name(text: str) -> Optional[str]:
    """Extract the holder's name following the 氏名 label.

    Capture stops at a line break or at the first character of another label
    (氏, 住, 生, 数, 個).
    """
    match = NAME_PATTERN.search(text)
    if not match:
        return None
    return normalize_whitespace(match.group(1)) or None


def extract_birth_date(text: str) -> Optional[str]:
    """Extract the date of birth as a zero-padded YYYY-MM-DD string.

    Patterns are tried in order and the first match wins:
        1. era date followed by 生 (e.g. 昭和55年4月1日生)
        2. 生年月日 label followed by an era date
        3. 生年月日 label followed by a Gregorian date

    A matched date with an unknown era or an impossible calendar day
    yields None.
    """
    match = BIRTH_DATE_SUFFIX_PATTERN.search(text)
    if match:
        return _era_date(match)

    match = BIRTH_DATE_LABEL_ERA_PATTERN.search(text)
    if match:
        return _era_date(match)

    match = BIRTH_DATE_LABEL_GREGORIAN_PATTERN.search(text)
    if match:
        year, month, day = match.groups()
        return _format_date(int(year), month, day)

    return None


def extract_address(text: str) -> Optional[str]:
    """Extract the address following the 住所 label.

    The anchored pattern requires a known prefecture and a block number
    (1-2 or 1-2-3) and keeps at most 30 trailing characters for the
    building name. When no prefecture is recognized the rest of the label's
    line (10-70 characters) is used instead.
    """
    match = ADDRESS_ANCHORED_PATTERN.search(text)
    if not match:
        match = ADDRESS_FALLBACK_PATTERN.search(text)
    if not match:
        return None
    return normalize_whitespace(match.group(1)) or None


def extract_fields(text: str) -> ExtractedFields:
    """Run all field parsers over one OCR full text."""
    return ExtractedFields(
        name=extract_name(text),
        birth_date=extract_birth_date(text),
        address=extract_address(text),
    )
