"""Platform capabilities - token acquisition, presentation and background scheduling.

One variant is chosen at startup (web, android, ios). Permission prompts,
messaging handles and OS presentation are injected as async callables so the
same code runs in the service and under test.
"""
import logging
from typing import Awaitable, Callable, Optional

from ..config import settings
from .envelope import NotificationEnvelope

logger = logging.getLogger(__name__)

PermissionSource = Callable[[], Awaitable[str]]
TokenSource = Callable[[str], Awaitable[Optional[str]]]
Presenter = Callable[[NotificationEnvelope], Awaitable[None]]

WEB_GRANTED = {"granted"}
NATIVE_GRANTED = {"granted", "authorized", "provisional"}


class PushPlatform:
    """Capability interface shared by all platform variants."""

    name = "web"
    granted_states = WEB_GRANTED

    def __init__(
        self,
        permission_source: Optional[PermissionSource] = None,
        token_source: Optional[TokenSource] = None,
        presenter: Optional[Presenter] = None,
    ):
        self.permission_source = permission_source
        self.token_source = token_source
        self.presenter = presenter

    def _token_key(self) -> Optional[str]:
        """Key handed to the token source (VAPID key or project id)."""
        raise NotImplementedError

    async def request_permission(self) -> bool:
        if self.permission_source is None:
            logger.info(f"Notifications not supported on {self.name}")
            return False
        try:
            state = await self.permission_source()
        except Exception as e:
            logger.error(f"Error requesting notification permission: {e}")
            return False
        logger.info(f"{self.name} notification permission: {state}")
        return state in self.granted_states

    async def obtain_token(self) -> Optional[str]:
        """Return a delivery token, or None when denied, unsupported or unconfigured."""
        if not await self.request_permission():
            return None

        key = self._token_key()
        if not key:
            logger.warning(f"Push token key not configured for {self.name}")
            return None
        if self.token_source is None:
            logger.warning(f"No token source available on {self.name}")
            return None

        try:
            token = await self.token_source(key)
        except Exception as e:
            logger.error(f"Error obtaining push token on {self.name}: {e}")
            return None

        if token:
            logger.info(f"Push token obtained: {token[:20]}...")
        return token or None

    async def present_notification(self, envelope: NotificationEnvelope) -> None:
        if self.presenter is None:
            logger.info(f"Notification received (no presenter): {envelope.title}")
            return
        await self.presenter(envelope)

    async def schedule_background(self, sync_scheduler) -> bool:
        """Hook the background sync scheduler into this platform's background context."""
        config = await sync_scheduler.initialize()
        return config.enabled


class WebPushPlatform(PushPlatform):
    """Browser with a service-worker backed messaging handle."""

    name = "web"
    granted_states = WEB_GRANTED

    def _token_key(self) -> Optional[str]:
        return settings.vapid_public_key


class AndroidPushPlatform(PushPlatform):
    name = "android"
    granted_states = NATIVE_GRANTED

    def _token_key(self) -> Optional[str]:
        return settings.native_project_id


class IOSPushPlatform(PushPlatform):
    name = "ios"
    granted_states = NATIVE_GRANTED

    def _token_key(self) -> Optional[str]:
        return settings.native_project_id


PLATFORMS = {
    "web": WebPushPlatform,
    "android": AndroidPushPlatform,
    "ios": IOSPushPlatform,
}


def select_platform(name: Optional[str] = None, **sources) -> PushPlatform:
    """Build the variant for a platform name (defaults to the configured one)."""
    name = (name or settings.platform).lower()
    platform_cls = PLATFORMS.get(name)
    if platform_cls is None:
        raise ValueError(f"Unsupported platform: {name}")
    return platform_cls(**sources)


class PushRegistrar:
    """Keeps this installation's device profile and delivery token current."""

    def __init__(self, identity_provider, platform: PushPlatform, store, app_version: Optional[str] = None):
        self.identity_provider = identity_provider
        self.platform = platform
        self.store = store
        self.app_version = app_version or settings.app_version

    async def ensure_profile(self) -> str:
        """Create the profile without a token if none exists yet."""
        identity = self.identity_provider.resolve_identity()
        await self.store.upsert_profile(
            identity,
            self.platform.name,
            app_version=self.app_version,
            keep_existing_token=True,
        )
        return identity

    async def register_for_push(self) -> Optional[str]:
        """Obtain a token and store it on the profile. Returns the identity or None."""
        token = await self.platform.obtain_token()
        if not token:
            await self.ensure_profile()
            logger.info("Could not get push token, profile kept without one")
            return None

        identity = self.identity_provider.resolve_identity()
        await self.store.upsert_profile(
            identity,
            self.platform.name,
            app_version=self.app_version,
            delivery_token=token,
        )
        logger.info(f"Device registered for push notifications: {identity}")
        return identity

    async def heartbeat(self) -> bool:
        identity = self.identity_provider.resolve_identity()
        return await self.store.touch_profile(identity)
