"""Composition root - builds the service graph once per application."""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from .config import settings
from .services.analytics import AnalyticsService
from .services.deep_links import DeepLinkRouter
from .services.delivery import DeliveryService
from .services.device_identity import DeviceIdentityProvider
from .services.dispatcher import NotificationDispatcher
from .services.market_cache import MarketCache
from .services.message_bus import MessageBus
from .services.notification_responses import NotificationResponseHandler
from .services.platforms import PushPlatform, PushRegistrar, select_platform
from .services.push_gateway import PushGateway
from .services.silent_handlers import QuoteSource, SignalSource, SilentHandlers
from .services.store import BackendStore
from .services.sync_scheduler import SyncScheduler
from .services.task_queue import BackgroundTaskQueue

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: BackendStore
    identity: DeviceIdentityProvider
    cache: MarketCache
    bus: MessageBus
    dispatcher: NotificationDispatcher
    scheduler: SyncScheduler
    platform: PushPlatform
    registrar: PushRegistrar
    gateway: PushGateway
    delivery: DeliveryService
    analytics: AnalyticsService
    task_queue: BackgroundTaskQueue
    responses: NotificationResponseHandler

    async def start(self) -> None:
        self.task_queue.start()
        await self.platform.schedule_background(self.scheduler)

    async def stop(self) -> None:
        self.scheduler.shutdown()
        await self.task_queue.stop()


def build_services(
    session_factory: Optional[async_sessionmaker] = None,
    data_path: Optional[str] = None,
    platform: Optional[PushPlatform] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    service_account: Optional[dict] = None,
    quote_source: Optional[QuoteSource] = None,
    signal_source: Optional[SignalSource] = None,
    navigator=None,
) -> Services:
    """Wire every service explicitly. Arguments replace the defaults for tests."""
    store = BackendStore(session_factory)
    identity = DeviceIdentityProvider(data_path)
    cache = MarketCache()
    bus = MessageBus()
    platform = platform or select_platform(settings.platform)

    handlers = SilentHandlers(
        cache,
        quote_source=quote_source,
        signal_source=signal_source,
        log_cleaner=store.delete_silent_logs_older_than,
    )
    dispatcher = NotificationDispatcher(
        handlers.registry(),
        store=store,
        identity_provider=identity,
        presenter=platform,
        bus=bus,
        platform=platform.name,
    )
    scheduler = SyncScheduler(dispatcher, store, bus)

    gateway = PushGateway(http_client=http_client, service_account=service_account)
    analytics = AnalyticsService(store)
    task_queue = BackgroundTaskQueue()

    services = Services(
        store=store,
        identity=identity,
        cache=cache,
        bus=bus,
        dispatcher=dispatcher,
        scheduler=scheduler,
        platform=platform,
        registrar=PushRegistrar(identity, platform, store),
        gateway=gateway,
        delivery=DeliveryService(store, gateway),
        analytics=analytics,
        task_queue=task_queue,
        responses=NotificationResponseHandler(
            analytics,
            task_queue,
            DeepLinkRouter(navigator),
            identity,
            bus=bus,
        ),
    )
    logger.info(f"Services built for platform {platform.name}")
    return services


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the services built at startup."""
    return request.app.state.services
