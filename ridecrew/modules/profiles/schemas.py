from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None
    social_media_url: Optional[str] = None
    onboarding_completed: Optional[bool] = None


class OnboardingRequest(BaseModel):
    first_name: str
    last_name: Optional[str] = None
    social_media_url: Optional[str] = None


class ProfileResponse(BaseModel):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None
    social_media_url: Optional[str] = None
    onboarding_completed: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileWithStats(ProfileResponse):
    rides_created: int = 0
    rides_joined: int = 0
    display_name: str


class UploadResult(BaseModel):
    path: str
    full_path: str
    public_url: str
