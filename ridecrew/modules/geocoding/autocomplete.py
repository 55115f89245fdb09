import asyncio
import logging
from typing import Callable, List, Optional

from ridecrew.config import settings
from ridecrew.modules.geocoding.client import GeocodingClient, GeocodingError
from ridecrew.modules.geocoding.coords import format_coords
from ridecrew.modules.geocoding.schemas import GeocodeSuggestion, StartingPoint

logger = logging.getLogger(__name__)


class AddressAutocomplete:
    """
    Debounced address suggestions for the starting-point field.

    Every call to ``update`` cancels the pending lookup. A lookup only runs
    once the input has been stable for the debounce delay and is at least
    ``min_chars`` long.
    """

    def __init__(
        self,
        client: GeocodingClient,
        on_results: Optional[Callable[[List[GeocodeSuggestion]], None]] = None,
        debounce_seconds: Optional[float] = None,
        min_chars: Optional[int] = None,
        limit: Optional[int] = None,
    ):
        self.client = client
        self.on_results = on_results
        self.debounce_seconds = (
            debounce_seconds if debounce_seconds is not None else settings.autocomplete_debounce_ms / 1000
        )
        self.min_chars = min_chars if min_chars is not None else settings.autocomplete_min_chars
        self.limit = limit if limit is not None else settings.autocomplete_limit
        self.suggestions: List[GeocodeSuggestion] = []
        self.error: Optional[str] = None
        self._pending: Optional[asyncio.Task] = None

    def update(self, text: str) -> None:
        self._cancel_pending()
        query = text.strip()
        if len(query) < self.min_chars:
            self.suggestions = []
            return
        self._pending = asyncio.create_task(self._lookup(query))

    async def _lookup(self, query: str) -> None:
        await asyncio.sleep(self.debounce_seconds)
        try:
            results = await self.client.search(query, limit=self.limit)
        except GeocodingError as e:
            self.error = str(e)
            self.suggestions = []
            return
        self.error = None
        self.suggestions = results[:self.limit]
        if self.on_results is not None:
            self.on_results(self.suggestions)

    async def wait(self) -> None:
        """Wait for the pending lookup, if any"""
        task = self._pending
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    def select(self, index: int) -> StartingPoint:
        suggestion = self.suggestions[index]
        self.suggestions = []
        return StartingPoint(
            address=suggestion.display_name,
            coords=format_coords(suggestion.lat, suggestion.lng),
        )

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def close(self) -> None:
        self._cancel_pending()
        self.suggestions = []
