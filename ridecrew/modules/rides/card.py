"""
Per-ride display state: the "ride now" countdown and the optimistic
join/leave toggle.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, List, Optional

from ridecrew.core.errors import ApiResponse
from ridecrew.modules.rides.display import (
    creator_name, format_countdown, scheduled_label
)
from ridecrew.modules.rides.presets import now_window, parse_timestamp, utc_now
from ridecrew.modules.rides.schemas import RideParticipantEntry, RideWithDetails

logger = logging.getLogger(__name__)

Notify = Callable[[str, str], None]  # (level, message); level is loading | success | error


class CountdownState(str, Enum):
    COUNTING = "counting"
    EXPIRED = "expired"
    ERROR = "error"


@dataclass
class Countdown:
    state: CountdownState
    seconds_left: int = 0

    @property
    def label(self) -> str:
        if self.state == CountdownState.COUNTING:
            return format_countdown(self.seconds_left)
        if self.state == CountdownState.EXPIRED:
            return "Expired"
        return "Error"


def countdown_for(start_time: Any, now: datetime) -> Countdown:
    """Countdown to start_time + the "now" window"""
    try:
        expires_at = parse_timestamp(start_time) + now_window()
    except (TypeError, ValueError) as e:
        logger.error(f"Could not parse ride start time {start_time!r}: {e}")
        return Countdown(CountdownState.ERROR)
    seconds_left = int((expires_at - now).total_seconds())
    if seconds_left > 0:
        return Countdown(CountdownState.COUNTING, seconds_left)
    return Countdown(CountdownState.EXPIRED)


class RideActions:
    """The three backend calls a card makes, bound to the caller's services"""

    def __init__(self, ride_service, participant_service):
        self.ride_service = ride_service
        self.participant_service = participant_service

    def join(self, ride_id: str, user_id: str) -> ApiResponse:
        return self.participant_service.join_ride(ride_id, user_id)

    def leave(self, ride_id: str, user_id: str) -> ApiResponse:
        return self.participant_service.leave_ride(ride_id, user_id)

    def delete(self, ride_id: str) -> ApiResponse:
        return self.ride_service.delete_ride(ride_id)


class RideCard:
    def __init__(
        self,
        ride: RideWithDetails,
        viewer_id: Optional[str],
        actions: RideActions,
        notify: Optional[Notify] = None,
        on_ride_removed: Optional[Callable[[str], None]] = None,
        on_participant_change: Optional[Callable[[str, str], None]] = None,
        clock: Callable[[], datetime] = utc_now,
        tick_seconds: float = 1.0,
    ):
        self.ride = ride
        self.viewer_id = viewer_id
        self.actions = actions
        self.notify = notify or (lambda level, message: None)
        self.on_ride_removed = on_ride_removed
        self.on_participant_change = on_participant_change
        self.clock = clock
        self.tick_seconds = tick_seconds

        self.has_joined = self._viewer_in(ride.participants)
        self.is_joining = False
        self.is_deleting = False
        self.countdown: Optional[Countdown] = None
        self._timer: Optional[asyncio.Task] = None

    @property
    def is_creator(self) -> bool:
        return self.viewer_id is not None and self.ride.creator_id == self.viewer_id

    @property
    def title(self) -> str:
        return f"{creator_name(self.ride.creator)} wants to ride"

    @property
    def button_label(self) -> str:
        if self.is_creator:
            return "Removing..." if self.is_deleting else "Remove"
        return "Leave" if self.has_joined else "Join"

    def _viewer_in(self, participants: List[RideParticipantEntry]) -> bool:
        return any(p.user_id == self.viewer_id for p in participants or [])

    def sync_participants(self, participants: List[RideParticipantEntry]) -> None:
        """Adopt the parent's participant list and recompute the joined flag from it"""
        self.ride.participants = list(participants)
        self.ride.participant_count = len(self.ride.participants)
        self.has_joined = self._viewer_in(self.ride.participants)

    def display_time(self) -> str:
        if self.ride.preset == "now" and self.countdown is not None:
            if self.countdown.state == CountdownState.COUNTING:
                return f"Now – {self.countdown.label}"
            return self.countdown.label
        now = self.clock()
        return scheduled_label(self.ride.preset, self.ride.start_time, now.astimezone())

    # Countdown

    async def tick(self) -> Optional[Countdown]:
        """Recompute the countdown; the first transition to expired auto-removes the creator's ride"""
        if self.ride.preset != "now":
            self.countdown = None
            return None
        previous = self.countdown.state if self.countdown else None
        self.countdown = countdown_for(self.ride.start_time, self.clock())
        if (
            self.countdown.state == CountdownState.EXPIRED
            and previous != CountdownState.EXPIRED
            and self.is_creator
            and not self.is_deleting
        ):
            logger.info(f"Ride {self.ride.id} expired, removing it")
            await self.remove(auto=True)
        return self.countdown

    async def _run_timer(self) -> None:
        while True:
            countdown = await self.tick()
            if countdown is None or countdown.state != CountdownState.COUNTING:
                return
            await asyncio.sleep(self.tick_seconds)

    def start(self) -> None:
        """Start the once-per-second countdown (only for "now" rides)"""
        self.stop()
        if self.ride.preset != "now":
            self.countdown = None
            return
        self._timer = asyncio.create_task(self._run_timer())

    def stop(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def wait(self) -> None:
        if self._timer is None:
            return
        try:
            await self._timer
        except asyncio.CancelledError:
            pass

    def update(self, ride: Optional[RideWithDetails] = None, viewer_id: Optional[str] = None) -> None:
        """Take new props; the timer restarts when ride identity, preset, start time or viewer change."""
        ride = ride or self.ride
        viewer_id = viewer_id if viewer_id is not None else self.viewer_id
        restart = (
            ride.id != self.ride.id
            or ride.preset != self.ride.preset
            or ride.start_time != self.ride.start_time
            or viewer_id != self.viewer_id
        )
        self.ride = ride
        self.viewer_id = viewer_id
        self.has_joined = self._viewer_in(ride.participants)
        if restart and self._timer is not None:
            self.countdown = None
            self.start()

    # Actions

    async def remove(self, auto: bool = False) -> bool:
        if not self.is_creator or self.is_deleting:
            return False
        self.is_deleting = True
        if not auto:
            self.notify("loading", "Removing ride...")

        response = await asyncio.to_thread(self.actions.delete, self.ride.id)

        if not response.success:
            self.is_deleting = False
            message = response.error.user_message if response.error else "Failed to remove ride"
            logger.error(f"Error removing ride {self.ride.id}: {message}")
            self.notify("error", f"Error: {message}")
            return False

        if not auto:
            self.is_deleting = False
            self.notify("success", "Ride removed successfully!")
        self.release_timer()
        if self.on_ride_removed is not None:
            self.on_ride_removed(self.ride.id)
        return True

    def release_timer(self) -> None:
        current = asyncio.current_task()
        if self._timer is not None and self._timer is not current:
            self.stop()

    async def toggle_participation(self) -> bool:
        """Flip has_joined at once, then join/leave; the flip is reverted if the call fails"""
        if self.is_creator or self.is_joining or self.viewer_id is None:
            return False

        was_joined = self.has_joined
        self.is_joining = True
        self.has_joined = not was_joined
        verb = "leave" if was_joined else "join"
        self.notify("loading", "Leaving ride..." if was_joined else "Joining ride...")

        action = self.actions.leave if was_joined else self.actions.join
        try:
            response = await asyncio.to_thread(action, self.ride.id, self.viewer_id)
        finally:
            self.is_joining = False

        if not response.success:
            self.has_joined = was_joined
            message = response.error.user_message if response.error else f"Failed to {verb} ride"
            logger.error(f"Error trying to {verb} ride {self.ride.id}: {message}")
            self.notify("error", f"Error: {message}")
            return False

        self.notify("success", "Left ride successfully!" if was_joined else "Joined ride successfully!")
        if self.on_participant_change is not None:
            self.on_participant_change(self.ride.id, verb)
        return True
