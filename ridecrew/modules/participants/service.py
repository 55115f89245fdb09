from supabase import Client
from ridecrew.core.errors import ApiErrorCode, AppError, api_operation, is_no_rows_error
from ridecrew.core.session import SessionContext
from ridecrew.modules.participants.schemas import ParticipationResponse, RideParticipantDetail
from ridecrew.modules.rides.presets import parse_timestamp
from typing import Callable, List, Optional, Dict, Any
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

PARTICIPANT_PROFILE_SELECT = (
    "user_id,created_at,"
    "profiles!ride_participants_user_id_fkey(id,first_name,last_name,avatar_url,"
    "social_media_url,onboarding_completed,created_at,updated_at)"
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ParticipantService:
    def __init__(
        self,
        supabase: Client,
        session: SessionContext,
        clock: Callable[[], datetime] = utc_now
    ):
        self.supabase = supabase
        self.session = session
        self.clock = clock

    def _fetch_ride(self, ride_id: str, columns: str, action: str) -> Dict[str, Any]:
        try:
            result = self.supabase.table("rides")\
                .select(columns)\
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
        return result.data

    def _participation_exists(self, ride_id: str, user_id: str) -> bool:
        result = self.supabase.table("ride_participants")\
            .select("user_id")\
            .eq("ride_id", ride_id)\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        return bool(result.data)

    @api_operation
    def join_ride(self, ride_id: str, user_id: Optional[str] = None) -> ParticipationResponse:
        """
        Add a participant to a ride.

        Checks run in this order: the ride exists, it is open, it has not
        started, the participant is not its creator, and they have not joined
        already.
        """
        caller_id = self.session.require_user_id("join a ride")
        participant_id = user_id or caller_id

        ride = self._fetch_ride(ride_id, "id,status,creator_id,start_time", "join")

        if ride["status"] != "open":
            raise AppError(
                ApiErrorCode.RIDE_EXPIRED,
                "Ride is not open",
                "This ride is no longer accepting participants.",
            )
        if parse_timestamp(ride["start_time"]) <= self.clock():
            raise AppError(
                ApiErrorCode.RIDE_EXPIRED,
                "Ride has started",
                "This ride has already started.",
            )
        if ride["creator_id"] == participant_id:
            raise AppError(
                ApiErrorCode.ALREADY_PARTICIPANT,
                "User is ride creator",
                "You cannot join a ride you created.",
            )
        if self._participation_exists(ride_id, participant_id):
            raise AppError(
                ApiErrorCode.ALREADY_PARTICIPANT,
                "User already participant",
                "You are already participating in this ride.",
            )

        result = self.supabase.table("ride_participants").insert({
            "ride_id": ride_id,
            "user_id": participant_id,
            "created_at": self.clock().isoformat(),
        }).execute()
        if not result.data:
            raise AppError(ApiErrorCode.SERVER_ERROR, "Failed to join ride")
        logger.info(f"User {participant_id} joined ride {ride_id}")
        return ParticipationResponse(**result.data[0])

    @api_operation
    def leave_ride(self, ride_id: str, user_id: Optional[str] = None) -> None:
        caller_id = self.session.require_user_id("leave a ride")
        participant_id = user_id or caller_id

        ride = self._fetch_ride(ride_id, "id,creator_id,start_time", "leave")

        if ride["creator_id"] == participant_id:
            raise AppError(
                ApiErrorCode.CANNOT_LEAVE_OWN_RIDE,
                "User is ride creator",
                "You cannot leave a ride you created. Cancel the ride instead.",
            )
        if not self._participation_exists(ride_id, participant_id):
            raise AppError(
                ApiErrorCode.NOT_PARTICIPANT,
                "User not participant",
                "You are not participating in this ride.",
            )

        self.supabase.table("ride_participants")\
            .delete()\
            .eq("ride_id", ride_id)\
            .eq("user_id", participant_id)\
            .execute()
        logger.info(f"User {participant_id} left ride {ride_id}")
        return None

    @api_operation
    def get_ride_participants(self, ride_id: str) -> List[RideParticipantDetail]:
        """Participants with their profiles, earliest joiner first"""
        result = self.supabase.table("ride_participants")\
            .select(PARTICIPANT_PROFILE_SELECT)\
            .eq("ride_id", ride_id)\
            .order("created_at", desc=False)\
            .execute()
        return [
            RideParticipantDetail(
                user_id=row["user_id"],
                profile=row.get("profiles"),
                joined_at=row.get("created_at"),
            )
            for row in (result.data or [])
        ]

    @api_operation
    def get_user_participations(self, user_id: Optional[str] = None) -> List[str]:
        """IDs of the rides a user has joined"""
        target_id = user_id or self.session.require_user_id("view participations")
        result = self.supabase.table("ride_participants")\
            .select("ride_id")\
            .eq("user_id", target_id)\
            .execute()
        return [row["ride_id"] for row in (result.data or [])]

    @api_operation
    def is_user_participating(self, ride_id: str, user_id: Optional[str] = None) -> bool:
        target_id = user_id or self.session.user_id
        if not target_id:
            return False
        return self._participation_exists(ride_id, target_id)

    @api_operation
    def get_ride_participant_count(self, ride_id: str) -> int:
        result = self.supabase.table("ride_participants")\
            .select("*", count="exact", head=True)\
            .eq("ride_id", ride_id)\
            .execute()
        return result.count or 0
