from pydantic import BaseModel
from typing import Optional, Dict, Any


class GeocodeSuggestion(BaseModel):
    display_name: str
    lat: float
    lng: float


class ReverseGeocodeResult(BaseModel):
    display_name: str
    address: Dict[str, Any] = {}


class StartingPoint(BaseModel):
    address: str
    coords: Optional[str] = None  # "lat, lng"
