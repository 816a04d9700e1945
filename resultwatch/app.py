"""Application bootstrap and lifecycle management."""

import os
from typing import Protocol

from .config import PortalSite, PushConfig, ReconcilerConfig, resolve_db_path
from .logging_config import get_logger
from .notifications import NotificationService
from .portal import IPortalClient, PlaywrightPortalClient
from .push import ExpoPushRelay, IPushRelay
from .reconciler import InMemorySnapshotStore, ISnapshotStore, Reconciler
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Clear stored notifications and snapshots."""
        ...


class Application:
    """Main application bootstrap.

    Collaborators passed in are used as given; anything left out is built
    from the environment in ``start()``.
    """

    def __init__(
        self,
        db_path: str | None = None,
        portal_client: IPortalClient | None = None,
        push_relay: IPushRelay | None = None,
        snapshots: ISnapshotStore | None = None,
        site: PortalSite | None = None,
        reconciler_config: ReconcilerConfig | None = None,
        push_config: PushConfig | None = None,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._site = site or PortalSite.from_env()
        self._reconciler_config = reconciler_config or ReconcilerConfig.from_env()
        self._push_config = push_config or PushConfig.from_env()

        self._portal_client = portal_client
        self._push_relay = push_relay
        self._snapshots = snapshots

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._tracker: ITracker | None = None
        self._notification_service: NotificationService | None = None
        self._reconciler: Reconciler | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. Tracker (depends on Storage)
        self._tracker = Tracker(self._storage)

        # 3. Push relay (no internal dependencies)
        if self._push_relay is None:
            self._push_relay = ExpoPushRelay(self._push_config)
        logger.info("Push relay initialized")

        # 4. NotificationService (depends on Storage, push relay, Tracker)
        self._notification_service = NotificationService(
            self._storage, self._push_relay, self._tracker
        )

        # 5. Portal client; the browser itself starts on first login
        if self._portal_client is None:
            self._portal_client = PlaywrightPortalClient(
                self._site, self._reconciler_config
            )

        # 6. Snapshots (process memory only)
        if self._snapshots is None:
            self._snapshots = InMemorySnapshotStore()

        # 7. Reconciler (depends on portal client, push relay, snapshots, Tracker)
        self._reconciler = Reconciler(
            portal_client=self._portal_client,
            push_relay=self._push_relay,
            snapshots=self._snapshots,
            tracker=self._tracker,
            site=self._site,
            config=self._reconciler_config,
        )
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._portal_client:
            await self._portal_client.close()
            logger.info("Portal client closed")
        if self._push_relay:
            await self._push_relay.close()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Clear stored notifications and snapshots."""
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")
        if self._snapshots:
            await self._snapshots.clear()
            logger.info("Snapshots cleared")

    @property
    def site(self) -> PortalSite:
        return self._site

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def notification_service(self) -> NotificationService:
        """Get notification service instance."""
        if not self._notification_service:
            raise RuntimeError("Application not started")
        return self._notification_service

    @property
    def reconciler(self) -> Reconciler:
        """Get reconciler instance."""
        if not self._reconciler:
            raise RuntimeError("Application not started")
        return self._reconciler

    @property
    def push_relay(self) -> IPushRelay:
        """Get push relay instance."""
        if not self._push_relay:
            raise RuntimeError("Application not started")
        return self._push_relay
