"""Japanese era calendar conversion.

An era year is written as an era name plus a 1-based count within the reign
(e.g. 昭和55年). The Gregorian year is a fixed per-era offset plus that count.
"""

from types import MappingProxyType
from typing import Optional

# 元号 n 年 = n + offset
ERA_OFFSETS = MappingProxyType({
    "明治": 1867,
    "大正": 1911,
    "昭和": 1925,
    "平成": 1988,
    "令和": 2018,
})

ERA_NAMES = tuple(ERA_OFFSETS)

MIN_ERA_YEAR = 1
MAX_ERA_YEAR = 99

# Written instead of "1" for the first year of a reign
FIRST_YEAR_MARK = "元"


def parse_era_year(value: str) -> Optional[int]:
    """Parse the numeric part of an era year ("55", "５５" or "元").

    Returns:
        The era-relative year, or None if value is not a number
    """
    value = value.strip()
    if value == FIRST_YEAR_MARK:
        return MIN_ERA_YEAR
    if not value.isdecimal():
        return None
    return int(value)


def to_gregorian_year(era: str, era_year: int) -> Optional[int]:
    """Convert an era name and era-relative year to a Gregorian year.

    Args:
        era: One of 明治, 大正, 昭和, 平成, 令和
        era_year: Year within the era (1-99)

    Returns:
        Gregorian year, or None for an unknown era or out-of-range year

    Examples:
        >>> to_gregorian_year("昭和", 55)
        1980
        >>> to_gregorian_year("令和", 1)
        2019
        >>> to_gregorian_year("寛永", 3) is None
        True
    """
    offset = ERA_OFFSETS.get(era)
    if offset is None:
        return None
    if not MIN_ERA_YEAR <= era_year <= MAX_ERA_YEAR:
        return None
    return offset + era_year
