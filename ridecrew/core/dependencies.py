"""
Core dependencies: resolve the caller once per request into a SessionContext
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from ridecrew.config import settings
from ridecrew.core.session import SessionContext
from ridecrew.database.supabase_client import get_service_supabase, get_supabase
from ridecrew.modules.auth.service import AuthService
from supabase import Client
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_auth_service(
    supabase: Client = Depends(get_supabase),
    service_client: Client = Depends(get_service_supabase)
) -> AuthService:
    return AuthService(supabase, service_client)


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Bearer header first, then the access-token cookie set by the web client."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.access_token_cookie)


def load_profile(user_id: str, supabase: Client) -> Optional[Dict[str, Any]]:
    try:
        result = supabase.table("profiles")\
            .select("*")\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None
    except Exception as e:
        logger.error(f"Error loading profile for {user_id}: {e}")
        return None


def resolve_session(token: Optional[str], supabase: Client) -> SessionContext:
    """Build the SessionContext for a token. Missing or invalid tokens yield an anonymous session."""
    if not token:
        return SessionContext.anonymous()
    user_data = AuthService(supabase).resolve_user(token)
    if user_data is None:
        return SessionContext.anonymous()
    return SessionContext(
        user=user_data,
        profile=load_profile(user_data["id"], supabase),
        access_token=token,
    )


def get_session_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    supabase: Client = Depends(get_supabase)
) -> SessionContext:
    """Resolve the caller once per request; reuse the gate middleware's result when present."""
    cached = getattr(request.state, "session_context", None)
    if cached is not None:
        return cached
    session = resolve_session(extract_token(request, credentials), supabase)
    request.state.session_context = session
    return session


def require_session(session: SessionContext = Depends(get_session_context)) -> SessionContext:
    """Dependency for routes that need an authenticated caller"""
    if not session.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token"
        )
    return session
