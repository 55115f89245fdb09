import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ridecrew.core.errors import ApiResponse
from ridecrew.core.session import SessionContext
from ridecrew.modules.geocoding.coords import parse_coords
from ridecrew.modules.rides.card import Notify, RideActions, RideCard, utc_now
from ridecrew.modules.rides.display import creator_name
from ridecrew.modules.rides.schemas import (
    ProfileSummary, RideParticipantEntry, RideQueryOptions, RideWithDetails
)

logger = logging.getLogger(__name__)


@dataclass
class RideMarker:
    ride_id: str
    lat: float
    lng: float
    label: str


class RideBoard:
    """
    The dashboard's canonical in-memory ride list.

    Cards report join/leave/remove outcomes back here; the board splices its
    list and pushes the new participant list down to the affected card.
    """

    def __init__(
        self,
        actions: RideActions,
        session: SessionContext,
        notify: Optional[Notify] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.actions = actions
        self.session = session
        self.notify = notify
        self.clock = clock
        self.rides: List[RideWithDetails] = []
        self._cards: Dict[str, RideCard] = {}

    @property
    def viewer_id(self) -> Optional[str]:
        return self.session.user_id

    def load(self, options: Optional[RideQueryOptions] = None) -> ApiResponse:
        response = self.actions.ride_service.get_all_rides(options)
        if response.success:
            self.rides = list(response.data or [])
            self._drop_stale_cards()
            logger.info(f"Loaded {len(self.rides)} ride(s)")
        elif self.notify is not None:
            self.notify("error", f"Error: {response.error.user_message}")
        return response

    def get_ride(self, ride_id: str) -> Optional[RideWithDetails]:
        return next((r for r in self.rides if r.id == ride_id), None)

    def open_rides(self) -> List[RideWithDetails]:
        return [r for r in self.rides if r.status == "open"]

    def add_ride(self, ride: RideWithDetails) -> None:
        """Put a freshly created ride at the top of the list"""
        self.rides = [ride] + [r for r in self.rides if r.id != ride.id]

    def remove_ride(self, ride_id: str) -> None:
        self.rides = [r for r in self.rides if r.id != ride_id]
        card = self._cards.pop(ride_id, None)
        if card is not None:
            card.release_timer()

    def apply_participant_change(self, ride_id: str, action: str) -> None:
        ride = self.get_ride(ride_id)
        if ride is None or self.viewer_id is None:
            return
        participants = [p for p in ride.participants if p.user_id != self.viewer_id]
        if action == "join":
            participants.append(RideParticipantEntry(
                user_id=self.viewer_id,
                profiles=ProfileSummary(**self.session.creator_summary()),
            ))
        elif action != "leave":
            raise ValueError(f"Unknown participant action: {action}")
        ride.participants = participants
        ride.participant_count = len(participants)
        ride.is_participant = action == "join"
        card = self._cards.get(ride_id)
        if card is not None:
            card.sync_participants(participants)

    def card_for(self, ride_id: str) -> RideCard:
        card = self._cards.get(ride_id)
        if card is None:
            ride = self.get_ride(ride_id)
            if ride is None:
                raise KeyError(ride_id)
            card = RideCard(
                ride,
                self.viewer_id,
                self.actions,
                notify=self.notify,
                on_ride_removed=self.remove_ride,
                on_participant_change=self.apply_participant_change,
                clock=self.clock,
            )
            self._cards[ride_id] = card
        return card

    def cards(self) -> List[RideCard]:
        return [self.card_for(r.id) for r in self.open_rides()]

    def start_timers(self) -> None:
        for card in self.cards():
            card.start()

    def stop_timers(self) -> None:
        for card in self._cards.values():
            card.stop()

    def map_markers(self) -> List[RideMarker]:
        """Open rides with usable coordinates; rows whose coordinates don't parse are left off the map"""
        markers = []
        for ride in self.open_rides():
            position = parse_coords(ride.starting_point_coords)
            if position is None:
                continue
            markers.append(RideMarker(
                ride_id=ride.id,
                lat=position[0],
                lng=position[1],
                label=ride.starting_point_address or creator_name(ride.creator),
            ))
        return markers

    def _drop_stale_cards(self) -> None:
        current = {r.id for r in self.rides}
        for ride_id in list(self._cards):
            if ride_id not in current:
                self._cards.pop(ride_id).stop()
                continue
            self._cards[ride_id].update(ride=self.get_ride(ride_id))
