"""Named size presets for banner filtering."""
import logging
from typing import Any, Dict, Iterable, List, Optional

from bannerscout.banners.models import SizeRange, VerifiedImage

logger = logging.getLogger(__name__)

DEFAULT_PRESET = "default"

# Landscape banner shape; the same for both providers
SIZE_PRESETS: Dict[str, SizeRange] = {
    'default': SizeRange(min_width=1920, max_width=2400, min_height=700, max_height=1400),
    '1920x1080': SizeRange(min_width=1800, max_width=2000, min_height=1000, max_height=1180),
    '2560x1440': SizeRange(min_width=2400, max_width=2700, min_height=1300, max_height=1580),
    '3840x2160': SizeRange(min_width=3600, max_width=4100, min_height=2000, max_height=2300),
    '1280x720': SizeRange(min_width=1200, max_width=1400, min_height=650, max_height=800),
    'custom': SizeRange(min_width=0, max_width=100000, min_height=0, max_height=100000),
}

# Images accepted into a cached raw set, independent of the requested preset
PLAUSIBLE_RANGE = SizeRange(min_width=640, max_width=100000, min_height=360, max_height=100000)


def resolve(preset_name: Optional[Any] = None) -> SizeRange:
    """
    Translate a preset name into a size range.

    Never raises: absent, empty, non-string or unknown names resolve to
    the default preset.

    Args:
        preset_name: Preset name as sent by the client

    Returns:
        SizeRange for the preset
    """
    if not isinstance(preset_name, str):
        return SIZE_PRESETS[DEFAULT_PRESET]

    key = preset_name.strip().lower()
    size_range = SIZE_PRESETS.get(key)
    if size_range is None:
        if key:
            logger.debug(f"Unknown size preset '{preset_name}', using default")
        return SIZE_PRESETS[DEFAULT_PRESET]
    return size_range


def available_presets() -> List[str]:
    """Names of all selectable presets."""
    return list(SIZE_PRESETS)


def filter_images(images: Iterable[VerifiedImage], size_range: SizeRange) -> List[VerifiedImage]:
    """Return the images inside size_range as a new list, preserving order."""
    return [image for image in images if size_range.contains(image.width, image.height)]
