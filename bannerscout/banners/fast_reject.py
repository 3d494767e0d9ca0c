"""Cheap pre-filter using size hints embedded in image URLs.

IMDb (media-amazon) image URLs carry resize directives such as
``._V1_UX2000_.jpg`` or ``._V1_SY1000_CR0,0,675,1000_AL_.jpg``. The number
after ``X`` is a declared width and the number after ``Y`` a declared height.
They describe the thumbnailing request, not the stored image, so they are
only used to skip candidates that are clearly too small or too large.
"""
import re
from typing import List, Optional

from bannerscout.banners.models import SizeRange

WIDTH_HINT = re.compile(r"_(?:UX|SX)(\d+)")
HEIGHT_HINT = re.compile(r"_(?:UY|SY)(\d+)")

# A hint below min by more than this is rejected. Servers rarely upscale, so a
# small hint is strong evidence.
LOWER_TOLERANCE = 0.20
# A hint above max by more than this is rejected. The stored image may be
# smaller than the requested resize, so large hints are weak evidence.
UPPER_TOLERANCE = 0.50


def parse_hint(pattern: "re.Pattern[str]", address: str) -> Optional[int]:
    """Return the largest hint matched by pattern, or None."""
    values: List[int] = [int(value) for value in pattern.findall(address)]
    if not values:
        return None
    return max(values)


def _outside(value: Optional[int], low: int, high: int,
             lower_tolerance: float, upper_tolerance: float) -> bool:
    if value is None:
        return False
    return value < low * (1 - lower_tolerance) or value > high * (1 + upper_tolerance)


def might_match(address: str, size_range: SizeRange, enabled: bool = True,
                lower_tolerance: float = LOWER_TOLERANCE,
                upper_tolerance: float = UPPER_TOLERANCE) -> bool:
    """
    Return False only when the URL's size hints rule the image out.

    No hints means no evidence, so the candidate passes.
    """
    if not enabled or not address:
        return True

    width_hint = parse_hint(WIDTH_HINT, address)
    height_hint = parse_hint(HEIGHT_HINT, address)

    if _outside(width_hint, size_range.min_width, size_range.max_width,
                lower_tolerance, upper_tolerance):
        return False
    if _outside(height_hint, size_range.min_height, size_range.max_height,
                lower_tolerance, upper_tolerance):
        return False
    return True
