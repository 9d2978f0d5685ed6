"""Background sync scheduler - runs silent handlers on a persisted cadence.

Lifecycle: Uninitialized -> Initialized (config loaded, dispatcher subscribed
to the message bus) -> ticks. Each tick runs the configured handler types
once, in order, through the dispatcher. Disabling leaves the interval job in
place; the tick checks the enabled flag and does nothing, and a tick already
running completes.
"""
import dataclasses
import json
import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..models.settings import SYNC_CONFIG_KEY
from .dispatcher import NotificationDispatcher
from .envelope import NotificationEnvelope, SilentHandlerResult, SILENT_TYPES, SilentType
from .message_bus import MessageBus, MessageKind

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "background_sync"

DEFAULT_INTERVAL_MINUTES = 15
DEFAULT_ALLOWED_TYPES = [
    SilentType.BACKGROUND_SYNC.value,
    SilentType.PRICE_UPDATE.value,
    SilentType.SIGNAL_REFRESH.value,
]


@dataclasses.dataclass
class SyncConfig:
    """Background sync settings for this installation."""

    enabled: bool = True
    interval_minutes: int = DEFAULT_INTERVAL_MINUTES
    allowed_types: List[str] = dataclasses.field(default_factory=lambda: list(DEFAULT_ALLOWED_TYPES))
    last_sync: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "interval_minutes": self.interval_minutes,
            "allowed_types": list(self.allowed_types),
            "last_sync": self.last_sync.isoformat() if self.last_sync else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SyncConfig":
        """Merge stored fields over the defaults.

        Absent fields keep their default, and so do fields that fail the
        checks update_config applies.
        """
        config = cls()
        if "enabled" in data:
            config.enabled = bool(data["enabled"])
        if "interval_minutes" in data:
            try:
                interval = int(data["interval_minutes"])
            except (TypeError, ValueError):
                interval = 0
            if interval > 0:
                config.interval_minutes = interval
            else:
                logger.warning(f"Ignoring stored interval_minutes {data['interval_minutes']!r}")
        if "allowed_types" in data:
            try:
                config.allowed_types = validate_types(data["allowed_types"])
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring stored allowed_types: {e}")
        if data.get("last_sync"):
            try:
                config.last_sync = datetime.fromisoformat(data["last_sync"])
            except (TypeError, ValueError):
                logger.warning(f"Ignoring stored last_sync {data['last_sync']!r}")
        return config


def validate_types(types: Iterable[str]) -> List[str]:
    """Deduplicate handler types, rejecting names with no handler."""
    result = list(dict.fromkeys(types))
    unknown = [t for t in result if t not in SILENT_TYPES]
    if unknown:
        raise ValueError(f"Unknown silent notification types: {', '.join(unknown)}")
    return result


class SyncScheduler:
    """Drives the dispatcher's silent path on a timer or on demand."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        store,
        bus: MessageBus,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.dispatcher = dispatcher
        self.store = store
        self.bus = bus
        self.scheduler = scheduler
        self._config = SyncConfig()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> SyncConfig:
        """Load persisted config, subscribe the dispatcher and arm the timer if enabled."""
        if self._initialized:
            return self.get_config()

        self._config = await self._load_config()
        await self.bus.subscribe(MessageKind.SILENT_NOTIFICATION, self.dispatcher.on_bus_message)

        if self._config.enabled:
            self._arm()

        self._initialized = True
        logger.info(
            f"Background sync initialized (enabled={self._config.enabled}, "
            f"interval={self._config.interval_minutes}m, types={self._config.allowed_types})"
        )
        return self.get_config()

    def _arm(self) -> None:
        if self.scheduler is None:
            self.scheduler = AsyncIOScheduler()

        self.scheduler.add_job(
            self._run_tick,
            trigger=IntervalTrigger(minutes=self._config.interval_minutes),
            id=SYNC_JOB_ID,
            replace_existing=True,
            max_instances=1,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        logger.info(f"Background sync armed every {self._config.interval_minutes} minutes")

    @property
    def armed(self) -> bool:
        return self.scheduler is not None and self.scheduler.get_job(SYNC_JOB_ID) is not None

    async def _run_tick(self) -> List[SilentHandlerResult]:
        """Timer callback."""
        if not self._config.enabled:
            logger.debug("Background sync disabled, skipping tick")
            return []

        results = await self._sync(self._config.allowed_types, trigger="scheduled")
        await self.bus.publish(MessageKind.SYNC_TICK, {
            "types": list(self._config.allowed_types),
            "results": [r.to_dict() for r in results],
        })
        return results

    async def trigger_manual_sync(self, types: Optional[Iterable[str]] = None) -> List[SilentHandlerResult]:
        """Run the given (or configured) types now, regardless of the timer and enabled flag."""
        selected = validate_types(types) if types is not None else list(self._config.allowed_types)
        logger.info(f"Manual background sync requested for {selected}")
        return await self._sync(selected, trigger="manual")

    async def _sync(self, types: List[str], trigger: str) -> List[SilentHandlerResult]:
        results = []
        for handler_type in types:
            envelope = NotificationEnvelope.silent_envelope(handler_type, {"trigger": trigger})
            results.append(await self.dispatcher.handle_silent_notification(envelope))

        self._config.last_sync = datetime.utcnow()
        await self._save_config()

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Background sync ({trigger}) completed: {succeeded}/{len(results)} succeeded")
        return results

    async def set_enabled(self, enabled: bool) -> SyncConfig:
        self._config.enabled = enabled
        await self._save_config()
        if enabled and not self.armed:
            self._arm()
        logger.info(f"Background sync {'enabled' if enabled else 'disabled'}")
        return self.get_config()

    async def update_config(
        self,
        enabled: Optional[bool] = None,
        interval_minutes: Optional[int] = None,
        allowed_types: Optional[Iterable[str]] = None,
    ) -> SyncConfig:
        """Apply a partial update. Raises ValueError on invalid values."""
        if interval_minutes is not None and interval_minutes <= 0:
            raise ValueError("interval_minutes must be greater than 0")
        if allowed_types is not None:
            self._config.allowed_types = validate_types(allowed_types)

        interval_changed = interval_minutes is not None and interval_minutes != self._config.interval_minutes
        if interval_minutes is not None:
            self._config.interval_minutes = interval_minutes
        if enabled is not None:
            self._config.enabled = enabled

        await self._save_config()

        if self._config.enabled and (interval_changed or not self.armed):
            self._arm()
        return self.get_config()

    def get_config(self) -> SyncConfig:
        """Return a copy of the current config."""
        return dataclasses.replace(self._config, allowed_types=list(self._config.allowed_types))

    def shutdown(self) -> None:
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Background sync scheduler stopped")
        self.scheduler = None

    async def _load_config(self) -> SyncConfig:
        try:
            raw = await self.store.get_setting(SYNC_CONFIG_KEY)
        except Exception as e:
            logger.error(f"Error loading background sync config, using defaults: {e}")
            return SyncConfig()
        if not raw:
            return SyncConfig()
        try:
            data: Any = json.loads(raw)
            return SyncConfig.from_dict(data if isinstance(data, dict) else {})
        except (ValueError, TypeError) as e:
            logger.warning(f"Invalid stored background sync config, using defaults: {e}")
            return SyncConfig()

    async def _save_config(self) -> None:
        try:
            await self.store.set_setting(SYNC_CONFIG_KEY, json.dumps(self._config.to_dict()))
        except Exception as e:
            logger.error(f"Error saving background sync config: {e}")
