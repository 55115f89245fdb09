"""Starting-point coordinates are stored as a plain "lat, lng" string."""

import logging
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


def format_coords(lat: float, lng: float) -> str:
    return f"{lat:.6f}, {lng:.6f}"


def parse_coords(value: Optional[str]) -> Optional[Tuple[float, float]]:
    """Parse "lat, lng"; None for empty, malformed or out-of-range values."""
    if not value:
        return None
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 2:
        logger.debug(f"Skipping malformed coordinates: {value!r}")
        return None
    try:
        lat, lng = float(parts[0]), float(parts[1])
    except ValueError:
        logger.debug(f"Skipping malformed coordinates: {value!r}")
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        logger.debug(f"Skipping out-of-range coordinates: {value!r}")
        return None
    return lat, lng
