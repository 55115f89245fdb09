"""
Ride creation: a draft collected from the form, then validated, turned into a
time window, inserted, and handed to the board.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from ridecrew.core.errors import (
    ApiErrorCode, ApiResponse, create_api_error, error_response
)
from ridecrew.modules.geocoding.autocomplete import AddressAutocomplete
from ridecrew.modules.geocoding.client import GeocodingClient
from ridecrew.modules.geocoding.schemas import StartingPoint
from ridecrew.modules.rides.board import RideBoard
from ridecrew.modules.rides.card import Notify
from ridecrew.modules.rides.preferences import RidePreferences, RidePreferencesStore
from ridecrew.modules.rides.presets import (
    BIKE_TYPES, CREATABLE_PRESETS, DISTANCE_OPTIONS, local_now, time_range_for_preset
)
from ridecrew.modules.rides.schemas import RideCreate

logger = logging.getLogger(__name__)

DEFAULT_PRESET = "now"
DEFAULT_DISTANCE = 50
DEFAULT_BIKE_TYPE = "road"


@dataclass
class RideDraft:
    preset: Optional[str] = DEFAULT_PRESET
    distance_km: Optional[int] = DEFAULT_DISTANCE
    bike_type: Optional[str] = DEFAULT_BIKE_TYPE
    starting_point: Optional[StartingPoint] = None

    def set_address(self, text: str) -> None:
        """Free-text starting point"""
        text = text.strip()
        self.starting_point = StartingPoint(address=text) if text else None

    async def use_position(self, geocoder: GeocodingClient, lat: float, lng: float) -> StartingPoint:
        self.starting_point = await geocoder.resolve_position(lat, lng)
        return self.starting_point

    def use_suggestion(self, autocomplete: AddressAutocomplete, index: int) -> StartingPoint:
        self.starting_point = autocomplete.select(index)
        return self.starting_point

    def missing_fields(self) -> List[str]:
        missing = []
        if self.preset not in CREATABLE_PRESETS:
            missing.append("preset")
        if self.distance_km not in DISTANCE_OPTIONS:
            missing.append("distance_km")
        if self.bike_type not in BIKE_TYPES:
            missing.append("bike_type")
        if self.starting_point is None or not self.starting_point.address:
            missing.append("starting_point")
        return missing

    def to_ride_create(self, now: datetime) -> RideCreate:
        start, end = time_range_for_preset(self.preset, now)
        return RideCreate(
            start_time=start,
            end_time=end,
            preset=self.preset,
            distance_km=self.distance_km,
            bike_type=self.bike_type,
            starting_point_address=self.starting_point.address,
            starting_point_coords=self.starting_point.coords,
        )


class RideCreationFlow:
    def __init__(
        self,
        ride_service,
        board: Optional[RideBoard] = None,
        preferences: Optional[RidePreferencesStore] = None,
        notify: Optional[Notify] = None,
        clock: Callable[[], datetime] = local_now,
    ):
        self.ride_service = ride_service
        self.board = board
        self.preferences = preferences
        self.notify = notify or (lambda level, message: None)
        self.clock = clock

    def new_draft(self) -> RideDraft:
        """A draft prefilled with the last values used on this device"""
        draft = RideDraft()
        saved = self.preferences.load() if self.preferences else None
        if saved is None:
            return draft
        if saved.preset in CREATABLE_PRESETS:
            draft.preset = saved.preset
        if saved.distance in DISTANCE_OPTIONS:
            draft.distance_km = saved.distance
        if saved.bike_type in BIKE_TYPES:
            draft.bike_type = saved.bike_type
        if saved.starting_point:
            draft.set_address(saved.starting_point)
        return draft

    def submit(self, draft: RideDraft) -> ApiResponse:
        missing = draft.missing_fields()
        if missing:
            self.notify("error", "Please fill out all fields.")
            return error_response(create_api_error(
                ApiErrorCode.VALIDATION_ERROR,
                f"Missing fields: {', '.join(missing)}",
                "Please fill out all fields.",
                {"missing": missing},
            ))

        self.notify("loading", "Creating ride...")
        response = self.ride_service.create_ride(draft.to_ride_create(self.clock()))
        if not response.success:
            self.notify("error", f"Error: {response.error.user_message}")
            return response

        self.notify("success", "Ride created successfully!")
        if self.board is not None:
            self.board.add_ride(response.data)
        if self.preferences is not None:
            try:
                self.preferences.save(RidePreferences(
                    preset=draft.preset,
                    distance=draft.distance_km,
                    bike_type=draft.bike_type,
                    starting_point=draft.starting_point.address,
                ))
            except OSError as e:
                logger.warning(f"Could not save ride preferences: {e}")
        return response
