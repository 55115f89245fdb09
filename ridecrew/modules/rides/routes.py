from fastapi import APIRouter, Depends
from ridecrew.core.dependencies import get_session_context, require_session
from ridecrew.core.errors import ApiErrorCode, create_api_error, envelope_response, error_response
from ridecrew.core.session import SessionContext
from ridecrew.database.supabase_client import get_supabase
from ridecrew.modules.rides.presets import CREATABLE_PRESETS, local_now, time_range_for_preset
from ridecrew.modules.rides.schemas import RideCreate, RideUpdate, RideQueryOptions
from ridecrew.modules.rides.service import RideService
from supabase import Client
from typing import Literal, Optional

router = APIRouter(prefix="/rides", tags=["rides"])


def get_ride_service(
    supabase: Client = Depends(get_supabase),
    session: SessionContext = Depends(get_session_context)
) -> RideService:
    return RideService(supabase, session)


@router.get("")
async def list_rides(
    status: Optional[str] = None,
    creator_id: Optional[str] = None,
    sort_field: str = "created_at",
    sort_direction: Literal["asc", "desc"] = "desc",
    service: RideService = Depends(get_ride_service)
):
    """List rides; anonymous callers get is_creator/is_participant = false"""
    filters = {}
    if status:
        filters["status"] = status
    if creator_id:
        filters["creator_id"] = creator_id
    options = RideQueryOptions(filter=filters, sort_field=sort_field, sort_direction=sort_direction)
    return envelope_response(service.get_all_rides(options))


@router.get("/mine")
async def list_my_rides(
    session: SessionContext = Depends(require_session),
    service: RideService = Depends(get_ride_service)
):
    return envelope_response(service.get_current_user_rides())


@router.get("/joined")
async def list_joined_rides(
    session: SessionContext = Depends(require_session),
    service: RideService = Depends(get_ride_service)
):
    return envelope_response(service.get_current_user_participated_rides())


@router.post("")
async def create_ride(
    ride_data: RideCreate,
    service: RideService = Depends(get_ride_service)
):
    """
    Create a ride. When start/end are omitted they are derived from the preset,
    on the wall clock of the rider's `timezone` (server zone if not given).
    """
    if ride_data.start_time is None or ride_data.end_time is None:
        if ride_data.preset not in CREATABLE_PRESETS:
            return envelope_response(error_response(create_api_error(
                ApiErrorCode.VALIDATION_ERROR,
                "start_time/end_time or a preset is required",
                "Please pick when you want to ride.",
            )))
        start, end = time_range_for_preset(ride_data.preset, local_now(ride_data.timezone))
        ride_data = ride_data.model_copy(update={"start_time": start, "end_time": end})
    return envelope_response(service.create_ride(ride_data), success_status=201)


@router.get("/{ride_id}")
async def get_ride(
    ride_id: str,
    service: RideService = Depends(get_ride_service)
):
    result = service.get_ride_by_id(ride_id)
    if result.success and result.data is None:
        return envelope_response(error_response(create_api_error(ApiErrorCode.NOT_FOUND, "Ride not found")))
    return envelope_response(result)


@router.put("/{ride_id}")
async def update_ride(
    ride_id: str,
    updates: RideUpdate,
    service: RideService = Depends(get_ride_service)
):
    """Update a ride (creator only)"""
    return envelope_response(service.update_ride(ride_id, updates))


@router.delete("/{ride_id}")
async def delete_ride(
    ride_id: str,
    service: RideService = Depends(get_ride_service)
):
    """Delete a ride (creator only); participations cascade"""
    return envelope_response(service.delete_ride(ride_id))
