from fastapi import APIRouter, Body, Depends
from ridecrew.core.dependencies import get_session_context, require_session
from ridecrew.core.errors import ApiErrorCode, create_api_error, envelope_response, error_response
from ridecrew.core.session import SessionContext
from ridecrew.database.supabase_client import get_supabase
from ridecrew.modules.participants.schemas import JoinRideRequest
from ridecrew.modules.participants.service import ParticipantService
from supabase import Client
from typing import Optional

router = APIRouter(tags=["participants"])


def _foreign_user_error(session: SessionContext, user_id: Optional[str]):
    """Envelope to return when the caller names someone other than themselves, else None"""
    if user_id is None or user_id == session.user_id:
        return None
    return envelope_response(error_response(create_api_error(
        ApiErrorCode.UNAUTHORIZED,
        f"User {session.user_id} may not change participation of {user_id}",
        "You can only join or leave rides yourself.",
    )))


def get_participant_service(
    supabase: Client = Depends(get_supabase),
    session: SessionContext = Depends(get_session_context)
) -> ParticipantService:
    return ParticipantService(supabase, session)


@router.get("/rides/{ride_id}/participants")
async def list_participants(
    ride_id: str,
    service: ParticipantService = Depends(get_participant_service)
):
    """Participants with profiles, ordered by join time"""
    return envelope_response(service.get_ride_participants(ride_id))


@router.get("/rides/{ride_id}/participants/count")
async def participant_count(
    ride_id: str,
    service: ParticipantService = Depends(get_participant_service)
):
    return envelope_response(service.get_ride_participant_count(ride_id))


@router.get("/rides/{ride_id}/participants/me")
async def am_i_participating(
    ride_id: str,
    service: ParticipantService = Depends(get_participant_service)
):
    return envelope_response(service.is_user_participating(ride_id))


@router.post("/rides/{ride_id}/participants")
async def join_ride(
    ride_id: str,
    data: Optional[JoinRideRequest] = Body(default=None),
    session: SessionContext = Depends(require_session),
    service: ParticipantService = Depends(get_participant_service)
):
    user_id = data.user_id if data else None
    rejected = _foreign_user_error(session, user_id)
    if rejected is not None:
        return rejected
    return envelope_response(service.join_ride(ride_id, user_id), success_status=201)


@router.delete("/rides/{ride_id}/participants")
async def leave_ride(
    ride_id: str,
    user_id: Optional[str] = None,
    session: SessionContext = Depends(require_session),
    service: ParticipantService = Depends(get_participant_service)
):
    rejected = _foreign_user_error(session, user_id)
    if rejected is not None:
        return rejected
    return envelope_response(service.leave_ride(ride_id, user_id))


@router.get("/participations")
async def list_participations(
    user_id: Optional[str] = None,
    service: ParticipantService = Depends(get_participant_service)
):
    """Ride IDs the given user (default: caller) has joined"""
    return envelope_response(service.get_user_participations(user_id))
