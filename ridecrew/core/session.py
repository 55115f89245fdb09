"""
Request-scoped view of who is calling.

A SessionContext is resolved once per request (see core.dependencies) and
handed explicitly to every service that needs the caller's identity, instead
of each service asking the auth API again.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ridecrew.core.errors import ApiErrorCode, AppError

PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "avatar_url",
    "social_media_url",
    "onboarding_completed",
)


@dataclass
class SessionContext:
    user: Optional[Dict[str, Any]] = None
    profile: Optional[Dict[str, Any]] = None
    access_token: Optional[str] = None

    @classmethod
    def anonymous(cls) -> "SessionContext":
        return cls()

    @property
    def user_id(self) -> Optional[str]:
        return self.user["id"] if self.user else None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def onboarding_completed(self) -> Optional[bool]:
        if self.profile is None:
            return None
        return self.profile.get("onboarding_completed")

    def require_user_id(self, action: str) -> str:
        """Return the caller's id or raise UNAUTHORIZED before any backend call."""
        if self.user is None:
            raise AppError(
                ApiErrorCode.UNAUTHORIZED,
                "No authenticated user",
                f"Please log in to {action}.",
            )
        return self.user["id"]

    def creator_summary(self) -> Dict[str, Any]:
        profile = self.profile or {}
        return {
            "id": self.user_id,
            "first_name": profile.get("first_name"),
            "last_name": profile.get("last_name"),
            "avatar_url": profile.get("avatar_url"),
        }

    def merge_profile(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Merge only the profile fields present in a change payload. Returns what changed."""
        if self.profile is None:
            self.profile = {"id": self.user_id}
        changed = {}
        for field in PROFILE_FIELDS:
            if field in changes and self.profile.get(field) != changes[field]:
                changed[field] = changes[field]
        self.profile.update(changed)
        return changed
