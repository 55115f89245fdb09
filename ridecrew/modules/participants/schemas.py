from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from ridecrew.modules.profiles.schemas import ProfileResponse


class JoinRideRequest(BaseModel):
    user_id: Optional[str] = None  # defaults to the caller


class ParticipationResponse(BaseModel):
    ride_id: str
    user_id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RideParticipantDetail(BaseModel):
    user_id: str
    profile: Optional[ProfileResponse] = None
    joined_at: Optional[datetime] = None
