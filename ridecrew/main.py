import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from ridecrew.config import settings
from ridecrew.core.errors import ApiErrorCode, create_api_error, error_response
from ridecrew.database.supabase_client import get_supabase
from ridecrew.modules.auth import routes as auth_routes
from ridecrew.modules.profiles import routes as profiles_routes
from ridecrew.modules.rides import routes as rides_routes
from ridecrew.modules.participants import routes as participants_routes
from ridecrew.modules.geocoding import routes as geocoding_routes
from ridecrew.modules.pages import routes as pages_routes
from ridecrew.modules.pages.gate import OnboardingGateMiddleware

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
)
app.state.limiter = limiter
app.state.supabase_factory = get_supabase
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    details = None if settings.is_production else {"type": type(exc).__name__, "message": str(exc)}
    envelope = error_response(create_api_error(
        ApiErrorCode.SERVER_ERROR,
        "Internal server error" if settings.is_production else str(exc),
        details=details,
    ))
    return JSONResponse(status_code=500, content=envelope.model_dump(mode="json"))


class SecurityHeadersMiddleware:
    """Adds browser hardening headers to every HTTP response (HSTS in production only)"""

    def __init__(self, app):
        self.app = app
        self.headers = [
            (b"X-Content-Type-Options", b"nosniff"),
            (b"X-Frame-Options", b"DENY"),
            (b"X-XSS-Protection", b"1; mode=block"),
            (b"Referrer-Policy", b"strict-origin-when-cross-origin"),
        ]
        if settings.is_production:
            self.headers.append((b"Strict-Transport-Security", b"max-age=31536000; includeSubDomains"))

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend(self.headers)
            await send(message)

        await self.app(scope, receive, send_with_headers)


# Last added runs first: CORS, then security headers, then the page gate
app.add_middleware(OnboardingGateMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(auth_routes.router, prefix="/api/v1")
app.include_router(profiles_routes.router, prefix="/api/v1")
app.include_router(rides_routes.router, prefix="/api/v1")
app.include_router(participants_routes.router, prefix="/api/v1")
app.include_router(geocoding_routes.router, prefix="/api/v1")

# Pages
app.include_router(pages_routes.router)


@app.on_event("startup")
async def startup_event():
    logger.info(f"Application startup ({settings.environment})")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown")


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "healthy"}


@app.get("/ready")
@limiter.exempt
async def ready():
    """Readiness probe: reports whether Supabase is configured."""
    if not settings.supabase_url or not settings.supabase_key:
        return JSONResponse(status_code=503, content={"status": "not ready", "reason": "supabase not configured"})
    return {"status": "ready"}
