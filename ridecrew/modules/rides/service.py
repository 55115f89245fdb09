from supabase import Client
from ridecrew.core.errors import ApiErrorCode, AppError, api_operation, is_no_rows_error
from ridecrew.core.session import SessionContext
from ridecrew.modules.rides.schemas import (
    RideCreate, RideUpdate, RideWithDetails, RideQueryOptions
)
from typing import List, Optional, Dict, Any
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

# Ride row joined with its creator and participant profiles
RIDE_DETAILS_SELECT = (
    "*,"
    "creator:profiles!rides_creator_id_fkey(id,first_name,last_name,avatar_url),"
    "participants:ride_participants(user_id,"
    "profiles!ride_participants_user_id_fkey(id,first_name,last_name,avatar_url))"
)


def annotate_ride(row: Dict[str, Any], user_id: Optional[str]) -> RideWithDetails:
    """Add participant_count, is_creator and is_participant relative to user_id"""
    participants = row.get("participants") or []
    return RideWithDetails(**{
        **row,
        "participants": participants,
        "participant_count": len(participants),
        "is_creator": user_id is not None and row.get("creator_id") == user_id,
        "is_participant": user_id is not None and any(p.get("user_id") == user_id for p in participants),
    })


def _serialize(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v.isoformat() if isinstance(v, datetime) else v for k, v in values.items()}


class RideService:
    def __init__(self, supabase: Client, session: SessionContext):
        self.supabase = supabase
        self.session = session

    def _fetch_owned_ride(self, ride_id: str, action: str) -> Dict[str, Any]:
        """Fetch creator_id for a ride and check the caller created it"""
        user_id = self.session.require_user_id(f"{action} a ride")
        try:
            result = self.supabase.table("rides")\
                .select("creator_id")\
                .eq("id", ride_id)\
                .single()\
                .execute()
        except Exception as e:
            if is_no_rows_error(e):
                raise AppError(
                    ApiErrorCode.NOT_FOUND,
                    "Ride not found",
                    f"The ride you are trying to {action} does not exist.",
                )
            raise
        if result.data["creator_id"] != user_id:
            raise AppError(
                ApiErrorCode.UNAUTHORIZED,
                "User is not the ride creator",
                f"You can only {action} rides that you created.",
            )
        return result.data

    def _fetch_details(self, ride_id: str) -> Optional[RideWithDetails]:
        try:
            result = self.supabase.table("rides")\
                .select(RIDE_DETAILS_SELECT)\
                .eq("id", ride_id)\
                .single()\
                .execute()
        except Exception as e:
            if is_no_rows_error(e):
                return None
            raise
        return annotate_ride(result.data, self.session.user_id)

    @api_operation
    def create_ride(self, ride_data: RideCreate) -> RideWithDetails:
        """Create a ride owned by the caller and return it joined with creator and participants"""
        user_id = self.session.require_user_id("create a ride")
        if ride_data.start_time is None or ride_data.end_time is None:
            raise AppError(
                ApiErrorCode.VALIDATION_ERROR,
                "start_time and end_time are required",
                "Please pick when you want to ride.",
            )
        if ride_data.end_time <= ride_data.start_time:
            raise AppError(
                ApiErrorCode.VALIDATION_ERROR,
                "end_time must be after start_time",
                "The ride has to end after it starts.",
            )
        now = datetime.now(timezone.utc).isoformat()
        insert_data = {
            **_serialize(ride_data.model_dump(exclude_none=True)),
            "creator_id": user_id,
            "status": "open",
            "created_at": now,
            "updated_at": now,
        }
        result = self.supabase.table("rides").insert(insert_data).execute()
        if not result.data:
            raise AppError(ApiErrorCode.SERVER_ERROR, "Failed to create ride")
        ride_id = result.data[0]["id"]
        logger.info(f"Ride {ride_id} created by {user_id}")

        ride = self._fetch_details(ride_id)
        if ride is None:
            raise AppError(ApiErrorCode.SERVER_ERROR, f"Ride {ride_id} missing after insert")
        return ride

    @api_operation
    def update_ride(self, ride_id: str, updates: RideUpdate) -> RideWithDetails:
        self._fetch_owned_ride(ride_id, "update")
        update_data = _serialize(updates.model_dump(exclude_none=True))
        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
        result = self.supabase.table("rides")\
            .update(update_data)\
            .eq("id", ride_id)\
            .execute()
        if not result.data:
            raise AppError(ApiErrorCode.NOT_FOUND, "Ride not found")
        ride = self._fetch_details(ride_id)
        if ride is None:
            raise AppError(ApiErrorCode.NOT_FOUND, "Ride not found")
        return ride

    @api_operation
    def delete_ride(self, ride_id: str) -> None:
        self._fetch_owned_ride(ride_id, "delete")
        self.supabase.table("rides")\
            .delete()\
            .eq("id", ride_id)\
            .execute()
        logger.info(f"Ride {ride_id} deleted by {self.session.user_id}")
        return None

    def _list_rides(self, options: RideQueryOptions) -> List[RideWithDetails]:
        query = self.supabase.table("rides").select(RIDE_DETAILS_SELECT)
        for key, value in options.filter.items():
            query = query.eq(key, value)
        query = query.order(options.sort_field, desc=options.sort_direction == "desc")
        result = query.execute()
        user_id = self.session.user_id
        return [annotate_ride(row, user_id) for row in (result.data or [])]

    @api_operation
    def get_all_rides(self, options: Optional[RideQueryOptions] = None) -> List[RideWithDetails]:
        """All rides with creator and participants, newest first unless options say otherwise"""
        return self._list_rides(options or RideQueryOptions())

    @api_operation
    def get_ride_by_id(self, ride_id: str) -> Optional[RideWithDetails]:
        return self._fetch_details(ride_id)

    @api_operation
    def get_current_user_rides(self) -> List[RideWithDetails]:
        user_id = self.session.require_user_id("view your rides")
        return self._list_rides(RideQueryOptions(filter={"creator_id": user_id}))

    @api_operation
    def get_current_user_participated_rides(self) -> List[RideWithDetails]:
        user_id = self.session.require_user_id("view your rides")
        participations = self.supabase.table("ride_participants")\
            .select("ride_id")\
            .eq("user_id", user_id)\
            .execute()
        ride_ids = [p["ride_id"] for p in (participations.data or [])]
        if not ride_ids:
            return []
        result = self.supabase.table("rides")\
            .select(RIDE_DETAILS_SELECT)\
            .in_("id", ride_ids)\
            .order("created_at", desc=True)\
            .execute()
        return [annotate_ride(row, user_id) for row in (result.data or [])]
