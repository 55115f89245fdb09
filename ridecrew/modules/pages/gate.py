"""
Page gatekeeping: who may see which page.

Unauthenticated visitors only get the public pages; signed-in users who have
not finished onboarding are sent to /onboarding; onboarded users are kept away
from /onboarding and the login/sign-up pages.
"""

from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse
from fastapi.security.utils import get_authorization_scheme_param
from starlette.requests import Request
from ridecrew.config import settings
from ridecrew.core.dependencies import resolve_session
from ridecrew.database.supabase_client import get_supabase
from typing import Optional
import logging

logger = logging.getLogger(__name__)

PUBLIC_PATHS = ("/auth/login", "/auth/sign-up", "/auth/callback", "/auth/confirm")
ONBOARDING_PATH = "/onboarding"
LOGIN_PATH = "/auth/login"
HOME_PATH = "/protected"

UNGATED_PREFIXES = ("/api/", "/health", "/ready", "/docs", "/redoc", "/openapi.json")


def is_public_path(pathname: str) -> bool:
    return pathname == "/" or any(pathname.startswith(p) for p in PUBLIC_PATHS)


def resolve_redirect(
    pathname: str,
    authenticated: bool,
    onboarding_completed: Optional[bool]
) -> Optional[str]:
    """Where to send the visitor instead, or None to let the request through"""
    public = is_public_path(pathname)
    on_onboarding = pathname.startswith(ONBOARDING_PATH)

    if not authenticated:
        return None if public else LOGIN_PATH

    # A missing profile row counts as "not onboarded yet"
    if onboarding_completed is not True and not on_onboarding and not public:
        return ONBOARDING_PATH
    if onboarding_completed is True and on_onboarding:
        return HOME_PATH
    if public and pathname != "/":
        return HOME_PATH
    return None


def _request_token(request: Request) -> Optional[str]:
    scheme, token = get_authorization_scheme_param(request.headers.get("Authorization"))
    if scheme.lower() == "bearer" and token:
        return token
    return request.cookies.get(settings.access_token_cookie)


def _client_factory(scope):
    """The app's Supabase client factory (app.state.supabase_factory), else the process-wide client"""
    app = scope.get("app")
    state = getattr(app, "state", None)
    return getattr(state, "supabase_factory", None) or get_supabase


class OnboardingGateMiddleware:
    """Redirects page requests per resolve_redirect; API and probe routes pass straight through."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope["path"].startswith(UNGATED_PREFIXES):
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        supabase = _client_factory(scope)()

        session = await run_in_threadpool(resolve_session, _request_token(request), supabase)
        scope.setdefault("state", {})["session_context"] = session

        target = resolve_redirect(scope["path"], session.is_authenticated, session.onboarding_completed)
        if target is not None and target != scope["path"]:
            logger.info(f"Redirecting {scope['path']} to {target}")
            response = RedirectResponse(url=target, status_code=307)
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)
