from supabase import Client
from ridecrew.config import settings
from ridecrew.core.errors import ApiErrorCode, AppError, api_operation, is_no_rows_error
from ridecrew.core.session import SessionContext
from ridecrew.modules.profiles.schemas import (
    ProfileUpdate, ProfileResponse, ProfileWithStats, OnboardingRequest, UploadResult
)
from typing import List, Optional, Dict, Any
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


def display_name(profile: Dict[str, Any]) -> str:
    first = profile.get("first_name")
    last = profile.get("last_name")
    if first and last:
        return f"{first} {last}"
    return first or last or "Anonymous"


class ProfileService:
    def __init__(self, supabase: Client, session: SessionContext):
        self.supabase = supabase
        self.session = session

    def _fetch_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            result = self.supabase.table("profiles")\
                .select("*")\
                .eq("id", user_id)\
                .single()\
                .execute()
        except Exception as e:
            if is_no_rows_error(e):
                return None
            raise
        return result.data

    @api_operation
    def get_profile(self, user_id: str) -> Optional[ProfileResponse]:
        """Get a profile by user ID; null data if the profile does not exist"""
        data = self._fetch_profile(user_id)
        return ProfileResponse(**data) if data else None

    @api_operation
    def get_current_user_profile(self) -> Optional[ProfileResponse]:
        user_id = self.session.require_user_id("access your profile")
        data = self._fetch_profile(user_id)
        return ProfileResponse(**data) if data else None

    def _apply_update(self, user_id: str, update_data: Dict[str, Any]) -> ProfileResponse:
        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
        result = self.supabase.table("profiles")\
            .update(update_data)\
            .eq("id", user_id)\
            .execute()
        if not result.data:
            raise AppError(ApiErrorCode.NOT_FOUND, "Profile not found", "Your profile could not be found.")
        profile = result.data[0]
        if user_id == self.session.user_id:
            self.session.merge_profile(profile)
        return ProfileResponse(**profile)

    @api_operation
    def update_profile(self, user_id: str, updates: ProfileUpdate) -> ProfileResponse:
        """Update a profile. Only its owner may do this."""
        caller_id = self.session.require_user_id("update your profile")
        if caller_id != user_id:
            raise AppError(
                ApiErrorCode.UNAUTHORIZED,
                "User is not the profile owner",
                "You can only update your own profile.",
            )
        update_data = updates.model_dump(exclude_none=True)
        if not update_data:
            raise AppError(ApiErrorCode.VALIDATION_ERROR, "No profile fields to update")
        return self._apply_update(user_id, update_data)

    @api_operation
    def complete_onboarding(self, data: OnboardingRequest) -> ProfileResponse:
        user_id = self.session.require_user_id("complete onboarding")
        if not data.first_name.strip():
            raise AppError(
                ApiErrorCode.VALIDATION_ERROR,
                "first_name is required",
                "Please tell us your first name.",
            )
        update_data = {
            "first_name": data.first_name.strip(),
            "last_name": data.last_name,
            "social_media_url": data.social_media_url,
            "onboarding_completed": True,
        }
        return self._apply_update(user_id, update_data)

    @api_operation
    def create_profile(self, user_id: str, profile_data: ProfileUpdate) -> ProfileResponse:
        """Create a profile row (normally done right after sign-up)"""
        now = datetime.now(timezone.utc).isoformat()
        insert_data = {
            "id": user_id,
            **profile_data.model_dump(exclude_none=True),
            "created_at": now,
            "updated_at": now,
        }
        result = self.supabase.table("profiles").insert(insert_data).execute()
        if not result.data:
            raise AppError(ApiErrorCode.SERVER_ERROR, "Failed to create profile")
        return ProfileResponse(**result.data[0])

    @api_operation
    def get_all_profiles(self, order_by: str = "created_at", desc: bool = True) -> List[ProfileResponse]:
        """All profiles, newest first by default"""
        result = self.supabase.table("profiles")\
            .select("*")\
            .order(order_by, desc=desc)\
            .execute()
        return [ProfileResponse(**p) for p in (result.data or [])]

    @api_operation
    def get_profile_with_stats(self, user_id: str) -> Optional[ProfileWithStats]:
        profile = self._fetch_profile(user_id)
        if profile is None:
            return None

        created = self.supabase.table("rides")\
            .select("*", count="exact", head=True)\
            .eq("creator_id", user_id)\
            .execute()
        joined = self.supabase.table("ride_participants")\
            .select("*", count="exact", head=True)\
            .eq("user_id", user_id)\
            .execute()

        return ProfileWithStats(
            **profile,
            rides_created=created.count or 0,
            rides_joined=joined.count or 0,
            display_name=display_name(profile),
        )

    @api_operation
    def upload_avatar(self, user_id: str, filename: str, content: bytes, content_type: str) -> UploadResult:
        """Upload (or replace) the user's avatar and point their profile at it"""
        caller_id = self.session.require_user_id("upload an avatar")
        if caller_id != user_id:
            raise AppError(ApiErrorCode.UNAUTHORIZED, "User is not the profile owner")
        if "." not in filename:
            raise AppError(
                ApiErrorCode.VALIDATION_ERROR,
                "Avatar file name has no extension",
                "Please upload an image file.",
            )
        ext = filename.rsplit(".", 1)[-1].lower()
        file_path = f"avatars/{user_id}/avatar.{ext}"

        bucket = self.supabase.storage.from_(settings.avatar_bucket)
        bucket.upload(file_path, content, {"content-type": content_type, "upsert": "true"})
        public_url = bucket.get_public_url(file_path)
        logger.info(f"Uploaded avatar for user {user_id} to {file_path}")

        self._apply_update(user_id, {"avatar_url": public_url})
        return UploadResult(
            path=file_path,
            full_path=f"{settings.avatar_bucket}/{file_path}",
            public_url=public_url,
        )

    @api_operation
    def delete_avatar(self, user_id: str) -> None:
        caller_id = self.session.require_user_id("delete your avatar")
        if caller_id != user_id:
            raise AppError(ApiErrorCode.UNAUTHORIZED, "User is not the profile owner")
        bucket = self.supabase.storage.from_(settings.avatar_bucket)
        files = bucket.list(f"avatars/{user_id}") or []
        paths = [f"avatars/{user_id}/{f['name']}" for f in files]
        if paths:
            bucket.remove(paths)
            logger.info(f"Removed {len(paths)} avatar file(s) for user {user_id}")
        return None
