from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

Preset = Literal["now", "lunch", "afternoon", "custom"]
BikeType = Literal["road", "mtb", "hybrid", "gravel", "other"]
RideStatus = Literal["open", "closed", "cancelled"]
DistanceKm = Literal[30, 50, 100]


class RideCreate(BaseModel):
    start_time: Optional[datetime] = None  # derived from preset when omitted
    end_time: Optional[datetime] = None
    preset: Optional[Preset] = None
    distance_km: Optional[DistanceKm] = None
    bike_type: Optional[BikeType] = None
    starting_point_address: Optional[str] = None
    starting_point_coords: Optional[str] = None  # "lat, lng"
    # Rider's IANA zone for preset windows; not stored
    timezone: Optional[str] = Field(default=None, exclude=True)

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError, OSError):
            raise ValueError(f"Unknown timezone: {value}")
        return value


class RideUpdate(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    preset: Optional[Preset] = None
    distance_km: Optional[DistanceKm] = None
    bike_type: Optional[BikeType] = None
    status: Optional[RideStatus] = None
    starting_point_address: Optional[str] = None
    starting_point_coords: Optional[str] = None


class RideResponse(BaseModel):
    id: str
    creator_id: str
    start_time: datetime
    end_time: datetime
    preset: Optional[Preset] = None
    distance_km: Optional[int] = None
    bike_type: Optional[BikeType] = None
    status: RideStatus = "open"
    starting_point_address: Optional[str] = None
    starting_point_coords: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileSummary(BaseModel):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None


class RideParticipantEntry(BaseModel):
    user_id: str
    profiles: Optional[ProfileSummary] = None


class RideWithDetails(RideResponse):
    creator: Optional[ProfileSummary] = None
    participants: List[RideParticipantEntry] = []
    participant_count: int = 0
    is_creator: bool = False
    is_participant: bool = False


class RideQueryOptions(BaseModel):
    filter: Dict[str, Any] = {}
    sort_field: str = "created_at"
    sort_direction: Literal["asc", "desc"] = "desc"
