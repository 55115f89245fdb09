"""
Page endpoints. Each returns the data its page renders; the gate middleware
has already decided whether the visitor may see it.
"""

from fastapi import APIRouter, Depends
from ridecrew.core.dependencies import get_session_context
from ridecrew.core.errors import envelope_response
from ridecrew.core.session import SessionContext
from ridecrew.modules.participants.routes import get_participant_service
from ridecrew.modules.participants.service import ParticipantService
from ridecrew.modules.profiles.routes import get_profile_service
from ridecrew.modules.profiles.service import ProfileService
from ridecrew.modules.rides.board import RideBoard
from ridecrew.modules.rides.card import RideActions
from ridecrew.modules.rides.display import initials
from ridecrew.modules.rides.routes import get_ride_service
from ridecrew.modules.rides.schemas import RideQueryOptions
from ridecrew.modules.rides.service import RideService
from dataclasses import asdict

router = APIRouter(tags=["pages"])


@router.get("/")
async def home(session: SessionContext = Depends(get_session_context)):
    return {
        "page": "home",
        "title": "Welcome to Upperland Racing",
        "authenticated": session.is_authenticated,
        "links": {"login": "/auth/login", "sign_up": "/auth/sign-up"},
    }


@router.get("/auth/login")
async def login_page():
    return {"page": "login", "action": "/api/v1/auth/login"}


@router.get("/auth/sign-up")
async def sign_up_page():
    return {"page": "sign-up", "action": "/api/v1/auth/sign-up"}


@router.get("/onboarding")
async def onboarding_page(session: SessionContext = Depends(get_session_context)):
    profile = session.profile or {}
    return {
        "page": "onboarding",
        "action": "/api/v1/profiles/me/onboarding",
        "first_name": profile.get("first_name"),
        "last_name": profile.get("last_name"),
        "social_media_url": profile.get("social_media_url"),
    }


@router.get("/profile")
async def profile_page(
    session: SessionContext = Depends(get_session_context),
    service: ProfileService = Depends(get_profile_service)
):
    return envelope_response(service.get_profile_with_stats(session.user_id))


@router.get("/team")
async def team_page(service: ProfileService = Depends(get_profile_service)):
    """Team roster, alphabetical by first name"""
    return envelope_response(service.get_all_profiles(order_by="first_name", desc=False))


@router.get("/protected")
async def dashboard_page(
    session: SessionContext = Depends(get_session_context),
    ride_service: RideService = Depends(get_ride_service),
    participant_service: ParticipantService = Depends(get_participant_service)
):
    """The ride dashboard: greeting, open rides as cards, and their map markers"""
    board = RideBoard(RideActions(ride_service, participant_service), session)
    response = board.load(RideQueryOptions(filter={"status": "open"}))
    if not response.success:
        return envelope_response(response)

    cards = []
    for card in board.cards():
        await card.tick()
        if board.get_ride(card.ride.id) is None:
            continue
        cards.append({
            "ride": card.ride,
            "title": card.title,
            "time": card.display_time(),
            "button": card.button_label,
            "has_joined": card.has_joined,
            "avatars": [
                {
                    "user_id": p.user_id,
                    "avatar_url": p.profiles.avatar_url if p.profiles else None,
                    "initials": initials(p.profiles.first_name if p.profiles else None),
                }
                for p in card.ride.participants
            ],
        })

    profile = session.profile or {}
    return {
        "page": "dashboard",
        "first_name": profile.get("first_name"),
        "email": (session.user or {}).get("email"),
        "rides": cards,
        "markers": [asdict(m) for m in board.map_markers()],
    }
