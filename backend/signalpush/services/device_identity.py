"""Device identity provider - stable per-installation identifier."""
import logging
import random
import string
import time
from pathlib import Path
from typing import Optional

from ..config import settings

logger = logging.getLogger(__name__)

IDENTITY_FILE_NAME = "device_id"

_BASE36 = string.digits + string.ascii_lowercase


def generate_device_id() -> str:
    """Generate a new identifier: device_<epoch millis>_<9 random base36 chars>."""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"device_{int(time.time() * 1000)}_{suffix}"


class DeviceIdentityProvider:
    """Resolves the installation identity, persisting it in the data directory."""

    def __init__(self, data_path: Optional[str] = None):
        self._path = Path(data_path or settings.data_path) / IDENTITY_FILE_NAME
        self._identity: Optional[str] = None

    @property
    def path(self) -> Path:
        return self._path

    def resolve_identity(self) -> str:
        """Return the persisted identity, creating it on first use.

        Never raises. If storage is unavailable a fresh identifier is returned
        without being persisted, so continuity is lost until storage recovers.
        """
        if self._identity:
            return self._identity

        try:
            if self._path.exists():
                stored = self._path.read_text().strip()
                if stored:
                    self._identity = stored
                    logger.debug(f"Loaded existing device identity: {stored}")
                    return stored

            identity = generate_device_id()
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(identity)
            self._identity = identity
            logger.info(f"Generated new device identity: {identity}")
            return identity
        except OSError as e:
            logger.error(f"Error reading or writing device identity at {self._path}: {e}")
            return generate_device_id()

    def clear_identity(self) -> None:
        """Erase the persisted identity (test/reset path)."""
        self._identity = None
        try:
            self._path.unlink(missing_ok=True)
            logger.info("Device identity cleared")
        except OSError as e:
            logger.error(f"Error clearing device identity: {e}")

    def device_info(self) -> dict:
        """Platform details sent along with registration."""
        return {
            "device_id": self.resolve_identity(),
            "platform": settings.platform,
            "app_version": settings.app_version,
        }
