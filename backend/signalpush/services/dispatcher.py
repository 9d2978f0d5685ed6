"""Notification dispatcher - classifies inbound messages and runs silent handlers."""
import logging
import time
from typing import Any, Mapping, Optional

from .envelope import NotificationEnvelope, SilentHandlerResult, is_silent_message
from .message_bus import BusMessage, MessageBus, MessageKind
from .silent_handlers import Handler

logger = logging.getLogger(__name__)


class UnknownHandlerTypeError(Exception):
    """Raised when a silent envelope names a handler type with no handler."""

    def __init__(self, handler_type: Optional[str]):
        self.handler_type = handler_type
        super().__init__(f"Unknown silent notification type: {handler_type}")


class NotificationDispatcher:
    """Routes silent envelopes to their handlers and audits every invocation.

    Visible messages are handed unchanged to the platform presenter. Silent
    messages arriving at the delivery boundary are forwarded over the message
    bus when something is subscribed, otherwise handled in place.
    """

    def __init__(
        self,
        handlers: dict[str, Handler],
        store=None,
        identity_provider=None,
        presenter=None,
        bus: Optional[MessageBus] = None,
        platform: str = "web",
    ):
        self.handlers = dict(handlers)
        self.store = store
        self.identity_provider = identity_provider
        self.presenter = presenter
        self.bus = bus
        self.platform = platform

    @staticmethod
    def classify(data: Mapping[str, Any]) -> bool:
        """True when the raw data describes a silent message."""
        return is_silent_message(data)

    async def receive(self, data: Mapping[str, Any]) -> Optional[SilentHandlerResult]:
        """Entry point for raw inbound push data.

        Returns the handler result when the message was handled in place,
        None otherwise. Never raises: a malformed silent message ends in a
        failed result.
        """
        if not self.classify(data):
            envelope = NotificationEnvelope.from_message(data)
            if self.presenter is None:
                logger.debug(f"No presenter configured, dropping visible notification: {envelope.title}")
                return None
            try:
                await self.presenter.present_notification(envelope)
            except Exception as e:
                logger.error(f"Failed to present notification {envelope.title!r}: {e}")
            return None

        if self.bus is not None and self.bus.subscriber_count(MessageKind.SILENT_NOTIFICATION):
            await self.bus.publish(MessageKind.SILENT_NOTIFICATION, dict(data))
            return None

        return await self._handle_raw(data)

    async def on_bus_message(self, message: BusMessage) -> SilentHandlerResult:
        """Message bus subscriber for SILENT_NOTIFICATION."""
        return await self._handle_raw(message.payload)

    async def _handle_raw(self, data: Mapping[str, Any]) -> SilentHandlerResult:
        try:
            envelope = NotificationEnvelope.from_message(data)
        except Exception as e:
            handler_type = str(data.get("silent_type") or data.get("type") or "unknown")
            logger.error(f"Malformed silent notification {handler_type}: {e}")
            result = SilentHandlerResult(
                success=False,
                handler_name=handler_type,
                error_message=f"Malformed silent notification: {e}",
            )
            await self._audit(NotificationEnvelope.silent_envelope(handler_type), result, 0, None)
            return result
        return await self.handle_silent_notification(envelope)

    async def handle_silent_notification(
        self,
        envelope: NotificationEnvelope,
        device_identity: Optional[str] = None,
    ) -> SilentHandlerResult:
        """Run the handler named by the envelope and persist one audit record.

        Never raises: handler errors, unknown types and audit failures all end
        in a returned result.
        """
        handler_type = envelope.silent_type
        started = time.perf_counter()

        try:
            handler = self.handlers.get(handler_type or "")
            if handler is None:
                raise UnknownHandlerTypeError(handler_type)
            payload = await handler(envelope)
            result = SilentHandlerResult(
                success=True,
                handler_name=handler_type,
                result_payload=payload,
            )
        except Exception as e:
            logger.error(f"Silent notification {handler_type} failed: {e}")
            result = SilentHandlerResult(
                success=False,
                handler_name=handler_type or "unknown",
                error_message=str(e),
            )

        execution_time_ms = int((time.perf_counter() - started) * 1000)
        logger.info(f"Silent notification {handler_type} finished in {execution_time_ms}ms (success={result.success})")

        await self._audit(envelope, result, execution_time_ms, device_identity)
        return result

    async def _audit(
        self,
        envelope: NotificationEnvelope,
        result: SilentHandlerResult,
        execution_time_ms: int,
        device_identity: Optional[str],
    ) -> None:
        if self.store is None:
            return
        try:
            if device_identity is None and self.identity_provider is not None:
                device_identity = self.identity_provider.resolve_identity()
            await self.store.insert_silent_log({
                "device_identity": device_identity or "unknown",
                "handler_type": envelope.silent_type or "unknown",
                "payload": dict(envelope.structured_data),
                "execution_time_ms": execution_time_ms,
                "success": result.success,
                "result": result.result_payload,
                "error_message": result.error_message,
                "platform": self.platform,
            })
        except Exception as e:
            logger.error(f"Failed to record silent notification audit log: {e}")
