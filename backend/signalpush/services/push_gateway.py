"""Push gateway client - signed per-token delivery via FCM HTTP v1 and the push relay."""
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, asdict
from typing import AsyncIterator, List, Optional

import httpx
import jwt

from ..config import settings, load_service_account
from .rich_notifications import RichNotification, render_fcm_message, render_relay_message

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
RELAY_SEND_URL = "https://exp.host/--/api/v2/push/send"
MESSAGING_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"

RELAY_TOKEN_PREFIX = "ExponentPushToken"

# Lifetime of the signed assertion (seconds)
ASSERTION_LIFETIME = 3600

# Request timeout for gateway calls (seconds)
GATEWAY_TIMEOUT = 10.0

FCM_PATH = "fcm_v1"
RELAY_PATH = "relay"


class GatewayAuthError(Exception):
    """Raised when the signed assertion cannot be exchanged for an access token."""


def is_relay_token(token: str) -> bool:
    return token.startswith(RELAY_TOKEN_PREFIX)


def short_token(token: str) -> str:
    return f"{token[:20]}..."


def json_object(response: httpx.Response) -> dict:
    """Decode a JSON object body. Anything else (empty, text, a list) gives {}."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@dataclass
class TokenSendResult:
    token: str
    path: str
    success: bool
    message_id: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[str] = None


@dataclass
class BatchSendResult:
    success: bool
    results: List[TokenSendResult] = field(default_factory=list)
    fcm_tokens: int = 0
    relay_tokens: int = 0
    error: Optional[str] = None

    @property
    def total_sent(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def total_failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "total_sent": self.total_sent,
            "total_failed": self.total_failed,
            "fcm_tokens": self.fcm_tokens,
            "relay_tokens": self.relay_tokens,
            "error": self.error,
            "details": [asdict(r) for r in self.results],
        }


def build_assertion(account: dict, now: Optional[int] = None) -> str:
    """Sign the JWT assertion exchanged for a messaging access token."""
    issued_at = int(now if now is not None else time.time())
    payload = {
        "iss": account["client_email"],
        "scope": MESSAGING_SCOPE,
        "aud": TOKEN_URL,
        "iat": issued_at,
        "exp": issued_at + ASSERTION_LIFETIME,
    }
    return jwt.encode(payload, account["private_key"], algorithm="RS256")


class PushGateway:
    """Sends rich notifications to delivery tokens.

    Native gateway tokens go through FCM HTTP v1 with one bearer token per
    batch; relay tokens go to the relay. A token is sent on exactly one path.
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        project_id: Optional[str] = None,
        service_account: Optional[dict] = None,
    ):
        self._http_client = http_client
        self.project_id = project_id or settings.fcm_project_id
        self._service_account = service_account

    @property
    def service_account(self) -> Optional[dict]:
        if self._service_account is None:
            self._service_account = load_service_account()
        return self._service_account

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=GATEWAY_TIMEOUT) as client:
            yield client

    async def fetch_access_token(self, client: httpx.AsyncClient, account: dict) -> str:
        response = await client.post(
            TOKEN_URL,
            data={"grant_type": JWT_BEARER_GRANT, "assertion": build_assertion(account)},
        )
        if response.status_code >= 400:
            raise GatewayAuthError(f"Failed to get access token: {response.status_code} {response.text}")
        access_token = json_object(response).get("access_token")
        if not access_token:
            raise GatewayAuthError("Token endpoint returned no access_token")
        return access_token

    async def send(
        self,
        tokens: List[str],
        notification: RichNotification,
        notification_id: str,
    ) -> BatchSendResult:
        """Deliver to every token. Success means at least one token succeeded."""
        tokens = [t for t in dict.fromkeys(tokens) if t]
        fcm_tokens = [t for t in tokens if not is_relay_token(t)]
        relay_tokens = [t for t in tokens if is_relay_token(t)]

        batch = BatchSendResult(success=False, fcm_tokens=len(fcm_tokens), relay_tokens=len(relay_tokens))
        if not tokens:
            batch.error = "No delivery tokens"
            logger.info("No delivery tokens, nothing to send")
            return batch

        async with self._client() as client:
            if fcm_tokens:
                logger.info(f"Sending FCM v1 notifications to {len(fcm_tokens)} tokens")
                batch.results.extend(await self._send_fcm(client, fcm_tokens, notification, notification_id, batch))
            if relay_tokens:
                logger.info(f"Sending relay notifications to {len(relay_tokens)} tokens")
                for token in relay_tokens:
                    batch.results.append(await self._send_relay(client, token, notification, notification_id))

        batch.success = batch.total_sent > 0
        logger.info(f"Push batch results: {batch.total_sent} success, {batch.total_failed} failed")
        return batch

    async def _send_fcm(
        self,
        client: httpx.AsyncClient,
        tokens: List[str],
        notification: RichNotification,
        notification_id: str,
        batch: BatchSendResult,
    ) -> List[TokenSendResult]:
        account = self.service_account
        if not self.project_id or account is None:
            batch.error = "Push gateway not configured (project id or service account missing)"
            logger.error(batch.error)
            return [TokenSendResult(short_token(t), FCM_PATH, False, error=batch.error) for t in tokens]

        try:
            access_token = await self.fetch_access_token(client, account)
        except (GatewayAuthError, httpx.HTTPError, ValueError) as e:
            batch.error = str(e)
            logger.error(f"Error getting access token: {e}")
            return [TokenSendResult(short_token(t), FCM_PATH, False, error=batch.error) for t in tokens]

        url = FCM_SEND_URL.format(project_id=self.project_id)
        headers = {"Authorization": f"Bearer {access_token}"}
        results = []
        for token in tokens:
            try:
                response = await client.post(
                    url,
                    headers=headers,
                    json=render_fcm_message(token, notification, notification_id),
                )
            except httpx.HTTPError as e:
                logger.error(f"Error sending to token {short_token(token)}: {e}")
                results.append(TokenSendResult(short_token(token), FCM_PATH, False, error=str(e)))
                continue

            if response.status_code >= 400:
                logger.warning(f"FCM v1 request failed for token {short_token(token)}: {response.status_code}")
                results.append(TokenSendResult(
                    short_token(token), FCM_PATH, False,
                    status_code=response.status_code,
                    error=f"{response.status_code}: {response.text}",
                ))
                continue

            message_id = json_object(response).get("name")
            logger.info(f"FCM v1 message sent to {short_token(token)}: {message_id}")
            results.append(TokenSendResult(
                short_token(token), FCM_PATH, True,
                message_id=message_id,
                status_code=response.status_code,
            ))
        return results

    async def _send_relay(
        self,
        client: httpx.AsyncClient,
        token: str,
        notification: RichNotification,
        notification_id: str,
    ) -> TokenSendResult:
        try:
            response = await client.post(
                RELAY_SEND_URL,
                headers={"Accept": "application/json"},
                json=[render_relay_message(token, notification, notification_id)],
            )
        except httpx.HTTPError as e:
            logger.error(f"Error sending relay notification to {short_token(token)}: {e}")
            return TokenSendResult(short_token(token), RELAY_PATH, False, error=str(e))

        if response.status_code >= 400:
            logger.warning(f"Relay request failed for token {short_token(token)}: {response.status_code}")
            return TokenSendResult(
                short_token(token), RELAY_PATH, False,
                status_code=response.status_code,
                error=f"{response.status_code}: {response.text}",
            )

        ticket = json_object(response).get("data") or {}
        if isinstance(ticket, list):
            ticket = ticket[0] if ticket else {}
        if not isinstance(ticket, dict):
            ticket = {}
        if ticket.get("status") == "error":
            return TokenSendResult(
                short_token(token), RELAY_PATH, False,
                status_code=response.status_code,
                error=ticket.get("message") or "Relay rejected message",
            )
        return TokenSendResult(
            short_token(token), RELAY_PATH, True,
            message_id=ticket.get("id"),
            status_code=response.status_code,
        )
