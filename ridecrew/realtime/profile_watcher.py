import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from ridecrew.core.session import SessionContext
from ridecrew.database.supabase_client import SupabaseClient
from ridecrew.realtime.subscription import ChangeSubscription

logger = logging.getLogger(__name__)


class ProfileWatcher:
    """Keeps SessionContext.profile in step with UPDATEs to the user's own profile row."""

    def __init__(
        self,
        client: Any,
        session: SessionContext,
        on_change: Optional[Callable[[Dict[str, Any]], None]] = None,
    ):
        if not session.is_authenticated:
            raise ValueError("ProfileWatcher needs an authenticated session")
        self.session = session
        self.on_change = on_change
        self.subscription = ChangeSubscription(
            client,
            table="profiles",
            event="UPDATE",
            filter=f"id=eq.{session.user_id}",
            name=f"profile-data-changes-{session.user_id}",
        )
        self._task: Optional[asyncio.Task] = None

    @classmethod
    async def for_session(
        cls,
        session: SessionContext,
        on_change: Optional[Callable[[Dict[str, Any]], None]] = None,
    ) -> "ProfileWatcher":
        """A started watcher on the shared async Supabase client"""
        client = await SupabaseClient.get_async_client()
        watcher = cls(client, session, on_change)
        await watcher.start()
        return watcher

    async def start(self) -> None:
        await self.subscription.open()
        self._task = asyncio.create_task(self._consume())

    async def stop(self) -> None:
        await self.subscription.close()
        if self._task is not None:
            await self._task
            self._task = None

    async def _consume(self) -> None:
        async for event in self.subscription:
            changed = self.session.merge_profile(event.new)
            if not changed:
                continue
            logger.info(f"Profile {self.session.user_id} changed: {sorted(changed)}")
            if self.on_change is not None:
                self.on_change(changed)

    async def __aenter__(self) -> "ProfileWatcher":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
