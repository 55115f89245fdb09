from fastapi import APIRouter, Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials
from ridecrew.config import settings
from ridecrew.core.dependencies import (
    extract_token, get_auth_service, get_session_context, require_session, security
)
from ridecrew.core.errors import envelope_response
from ridecrew.core.session import SessionContext
from ridecrew.modules.auth.schemas import (
    SignUpRequest, SignInRequest, PasswordResetRequest, PasswordUpdateRequest
)
from ridecrew.modules.auth.service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/sign-up")
async def sign_up(
    data: SignUpRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Register a new user"""
    metadata = {"full_name": data.full_name} if data.full_name else {}
    return envelope_response(service.sign_up(data.email, data.password, metadata), success_status=201)


@router.post("/login")
async def login(
    data: SignInRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Login and get access token; the token is also set as a cookie for page requests"""
    result = service.sign_in(data.email, data.password)
    response = envelope_response(result)
    if result.success:
        response.set_cookie(
            settings.access_token_cookie,
            result.data.access_token,
            httponly=True,
            samesite="lax",
            secure=settings.is_production,
        )
    return response


@router.post("/logout")
async def logout(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Security(security),
    service: AuthService = Depends(get_auth_service)
):
    """Logout and drop the access-token cookie"""
    response = envelope_response(service.sign_out(extract_token(request, credentials)))
    response.delete_cookie(settings.access_token_cookie)
    return response


@router.post("/reset-password")
async def reset_password(
    data: PasswordResetRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Send a password reset email"""
    return envelope_response(service.reset_password(data.email))


@router.post("/update-password")
async def update_password(
    data: PasswordUpdateRequest,
    session: SessionContext = Depends(require_session),
    service: AuthService = Depends(get_auth_service)
):
    return envelope_response(service.update_password(session, data.password))


@router.get("/me")
async def get_current_user(
    session: SessionContext = Depends(get_session_context),
    service: AuthService = Depends(get_auth_service)
):
    """Current user, or null data when the caller is anonymous"""
    return envelope_response(service.get_current_user(session))


@router.get("/session")
async def get_current_session(
    session: SessionContext = Depends(get_session_context),
    service: AuthService = Depends(get_auth_service)
):
    return envelope_response(service.get_current_session(session))
