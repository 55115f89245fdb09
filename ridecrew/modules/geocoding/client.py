import logging
from typing import Any, Dict, List, Optional

import httpx

from ridecrew.config import settings
from ridecrew.modules.geocoding.coords import format_coords
from ridecrew.modules.geocoding.schemas import GeocodeSuggestion, ReverseGeocodeResult, StartingPoint

logger = logging.getLogger(__name__)

# Address components tried in order when building a short place label
_LOCALITY_KEYS = ("city", "town", "village", "suburb", "municipality", "county")


class GeocodingError(Exception):
    pass


def place_name_from_address(display_name: str, address: Dict[str, Any]) -> str:
    """Short "road, locality" label; falls back to the full display name."""
    road = address.get("road") or address.get("pedestrian") or address.get("path")
    if road and address.get("house_number"):
        road = f"{road} {address['house_number']}"
    locality = next((address[k] for k in _LOCALITY_KEYS if address.get(k)), None)
    parts = [p for p in (road, locality) if p]
    return ", ".join(parts) if parts else display_name


class GeocodingClient:
    """Nominatim forward and reverse lookups over httpx"""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(
            base_url=settings.geocoding_base_url,
            timeout=settings.geocoding_timeout,
            headers={"User-Agent": settings.geocoding_user_agent, "Accept": "application/json"},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.aclose()

    async def _get(self, path: str, params: Dict[str, Any]) -> Any:
        try:
            response = await self.http.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(f"Geocoding {path} failed with status {exc.response.status_code}")
            raise GeocodingError(f"Geocoding service returned {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.warning(f"Geocoding {path} failed ({exc})")
            raise GeocodingError(f"Geocoding service unreachable: {exc}") from exc
        except ValueError as exc:
            raise GeocodingError("Geocoding service returned invalid JSON") from exc

    async def reverse(self, lat: float, lng: float) -> ReverseGeocodeResult:
        payload = await self._get("/reverse", {
            "format": "jsonv2",
            "lat": lat,
            "lon": lng,
            "addressdetails": 1,
        })
        if not isinstance(payload, dict) or "error" in payload or not payload.get("display_name"):
            raise GeocodingError(f"No place found at {format_coords(lat, lng)}")
        return ReverseGeocodeResult(
            display_name=payload["display_name"],
            address=payload.get("address") or {},
        )

    async def search(self, query: str, limit: Optional[int] = None) -> List[GeocodeSuggestion]:
        limit = limit or settings.autocomplete_limit
        payload = await self._get("/search", {
            "format": "jsonv2",
            "q": query,
            "limit": limit,
            "addressdetails": 1,
        })
        if not isinstance(payload, list):
            logger.warning(f"Geocoding search returned unexpected payload: {type(payload)}")
            return []
        suggestions = []
        for item in payload:
            try:
                suggestions.append(GeocodeSuggestion(
                    display_name=item["display_name"],
                    lat=float(item["lat"]),
                    lng=float(item["lon"]),
                ))
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Skipping unusable geocoding result: {item!r}")
        return suggestions[:limit]

    async def resolve_position(self, lat: float, lng: float) -> StartingPoint:
        """Starting point for a device position; raw coordinates become the label when lookup fails."""
        coords = format_coords(lat, lng)
        try:
            result = await self.reverse(lat, lng)
        except GeocodingError as e:
            logger.info(f"Reverse lookup failed, using raw coordinates: {e}")
            return StartingPoint(address=coords, coords=coords)
        return StartingPoint(
            address=place_name_from_address(result.display_name, result.address),
            coords=coords,
        )
