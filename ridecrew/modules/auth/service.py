import hashlib
import logging
import time
from supabase import Client
from ridecrew.config.settings import settings
from ridecrew.core.errors import ApiErrorCode, AppError, api_operation
from ridecrew.core.session import SessionContext
from ridecrew.modules.auth.schemas import AuthUser, SignInResponse
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# In-memory cache for resolve_user to reduce Supabase auth calls (many parallel requests with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500


def clear_auth_cache():
    _AUTH_USER_CACHE.clear()


def _to_auth_user(user: Any) -> AuthUser:
    return AuthUser(
        id=user.id,
        email=user.email or "",
        user_metadata=user.user_metadata or {},
    )


class AuthService:
    def __init__(self, supabase: Client, service_client: Optional[Client] = None):
        self.supabase = supabase
        self.service_client = service_client or supabase

    def resolve_user(self, token: str) -> Optional[Dict[str, Any]]:
        """Return user details for a bearer token, or None if the token is not valid. Uses a short TTL cache."""
        cache_key = hashlib.sha256(token.encode()).hexdigest()
        now = time.monotonic()
        if cache_key in _AUTH_USER_CACHE:
            user_data, expiry = _AUTH_USER_CACHE[cache_key]
            if now < expiry:
                return user_data
            del _AUTH_USER_CACHE[cache_key]
        try:
            user_response = self.supabase.auth.get_user(jwt=token)
        except Exception as e:
            logger.info(f"Token rejected by Supabase Auth: {e}")
            return None
        if not user_response or not user_response.user:
            return None
        user = user_response.user
        user_data = {
            "id": user.id,
            "email": user.email,
            "user_metadata": user.user_metadata or {},
            "app_metadata": user.app_metadata or {},
            "created_at": user.created_at,
            "updated_at": user.updated_at,
        }
        if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
            _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
        return user_data

    @api_operation
    def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> AuthUser:
        """Register a new user and create their (not yet onboarded) profile row"""
        auth_response = self.supabase.auth.sign_up({
            "email": email,
            "password": password,
            "options": {"data": metadata or {}},
        })
        if not auth_response.user:
            raise AppError(
                ApiErrorCode.SERVER_ERROR,
                "No user returned from signup",
                "Sign up failed. Please try again.",
            )
        self.service_client.table("profiles").upsert(
            {"id": auth_response.user.id, "onboarding_completed": False},
            ignore_duplicates=True,
        ).execute()
        logger.info(f"Registered user {auth_response.user.id}")
        return _to_auth_user(auth_response.user)

    @api_operation
    def sign_in(self, email: str, password: str) -> SignInResponse:
        auth_response = self.supabase.auth.sign_in_with_password({
            "email": email,
            "password": password,
        })
        if not auth_response.user or not auth_response.session:
            raise AppError(
                ApiErrorCode.INVALID_CREDENTIALS,
                "No user returned from signin",
                "Invalid email or password.",
            )
        return SignInResponse(
            user=_to_auth_user(auth_response.user),
            access_token=auth_response.session.access_token,
            refresh_token=auth_response.session.refresh_token,
        )

    @api_operation
    def sign_out(self, token: Optional[str] = None) -> None:
        # Tokens are stateless JWTs; dropping the cache entry makes the next request re-check
        if token:
            _AUTH_USER_CACHE.pop(hashlib.sha256(token.encode()).hexdigest(), None)
        self.supabase.auth.sign_out()
        return None

    @api_operation
    def reset_password(self, email: str) -> None:
        self.supabase.auth.reset_password_for_email(
            email, {"redirect_to": settings.password_reset_redirect_url}
        )
        return None

    @api_operation
    def update_password(self, session: SessionContext, new_password: str) -> AuthUser:
        """Set a new password for the caller (end of the reset flow). Needs the service role key."""
        user_id = session.require_user_id("update your password")
        response = self.service_client.auth.admin.update_user_by_id(
            user_id, {"password": new_password}
        )
        if not response.user:
            raise AppError(
                ApiErrorCode.SERVER_ERROR,
                "No user returned from password update",
                "Password update failed. Please try again.",
            )
        return _to_auth_user(response.user)

    @api_operation
    def get_current_user(self, session: SessionContext) -> Optional[AuthUser]:
        if not session.user:
            return None
        return AuthUser(
            id=session.user["id"],
            email=session.user.get("email") or "",
            user_metadata=session.user.get("user_metadata") or {},
        )

    @api_operation
    def get_current_session(self, session: SessionContext) -> Optional[Dict[str, Any]]:
        if not session.user:
            return None
        return {
            "access_token": session.access_token,
            "token_type": "bearer",
            "user": session.user,
            "profile": session.profile,
        }
