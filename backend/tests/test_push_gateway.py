"""Tests for the push gateway client."""
import json
from urllib.parse import parse_qs

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from signalpush.services.push_gateway import (
    FCM_PATH,
    RELAY_PATH,
    RELAY_SEND_URL,
    TOKEN_URL,
    PushGateway,
    build_assertion,
    is_relay_token,
)
from signalpush.services.rich_notifications import RichNotification


@pytest.fixture(scope="module")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="module")
def service_account(rsa_key):
    pem = rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    return {"client_email": "push@example.iam.gserviceaccount.com", "private_key": pem}


@pytest.fixture
def notification():
    return RichNotification(title="XAU/USD BUY", body="Entry 2300", structured_data={"pair": "XAU/USD"})


def gateway_transport(calls, failing_tokens=(), token_status=200):
    """Mock FCM/OAuth/relay endpoints, recording each request."""

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        url = str(request.url)
        if url == TOKEN_URL:
            if token_status != 200:
                return httpx.Response(token_status, text="invalid_grant")
            return httpx.Response(200, json={"access_token": "ya29.test", "expires_in": 3600})
        if url == RELAY_SEND_URL:
            return httpx.Response(200, json={"data": [{"status": "ok", "id": "ticket-1"}]})
        body = json.loads(request.content)
        token = body["message"]["token"]
        if token in failing_tokens:
            return httpx.Response(404, text="UNREGISTERED")
        return httpx.Response(200, json={"name": f"projects/p/messages/{token}"})

    return httpx.MockTransport(handler)


class TestAssertion:

    def test_claims(self, service_account, rsa_key):
        token = build_assertion(service_account, now=1_700_000_000)
        claims = jwt.decode(token, rsa_key.public_key(), algorithms=["RS256"], audience=TOKEN_URL)
        assert claims["iss"] == service_account["client_email"]
        assert claims["scope"] == "https://www.googleapis.com/auth/firebase.messaging"
        assert claims["exp"] - claims["iat"] == 3600


class TestSend:

    @pytest.mark.asyncio
    async def test_one_404_of_three(self, service_account, notification):
        calls = []
        async with httpx.AsyncClient(transport=gateway_transport(calls, failing_tokens={"tok-2"})) as client:
            gateway = PushGateway(http_client=client, project_id="p", service_account=service_account)
            batch = await gateway.send(["tok-1", "tok-2", "tok-3"], notification, "n-1")

        assert batch.success is True
        assert batch.total_sent == 2
        assert batch.total_failed == 1
        failed = [r for r in batch.results if not r.success][0]
        assert failed.status_code == 404
        assert "UNREGISTERED" in failed.error

        # One token exchange authorizes the whole batch
        token_calls = [c for c in calls if str(c.url) == TOKEN_URL]
        assert len(token_calls) == 1
        form = parse_qs(token_calls[0].content.decode())
        assert form["grant_type"] == ["urn:ietf:params:oauth:grant-type:jwt-bearer"]
        send_calls = [c for c in calls if str(c.url) != TOKEN_URL]
        assert all(c.headers["Authorization"] == "Bearer ya29.test" for c in send_calls)

    @pytest.mark.asyncio
    async def test_tokens_partitioned(self, service_account, notification):
        calls = []
        relay = "ExponentPushToken[abc]"
        async with httpx.AsyncClient(transport=gateway_transport(calls)) as client:
            gateway = PushGateway(http_client=client, project_id="p", service_account=service_account)
            batch = await gateway.send(["tok-1", relay], notification, "n-1")

        assert batch.fcm_tokens == 1
        assert batch.relay_tokens == 1
        assert {r.path for r in batch.results} == {FCM_PATH, RELAY_PATH}
        relay_calls = [c for c in calls if str(c.url) == RELAY_SEND_URL]
        assert json.loads(relay_calls[0].content)[0]["to"] == relay

    @pytest.mark.asyncio
    async def test_missing_configuration(self, notification):
        calls = []
        async with httpx.AsyncClient(transport=gateway_transport(calls)) as client:
            gateway = PushGateway(http_client=client, project_id=None, service_account={"x": 1})
            gateway.project_id = None
            batch = await gateway.send(["tok-1"], notification, "n-1")

        assert batch.success is False
        assert "not configured" in batch.error
        assert calls == []

    @pytest.mark.asyncio
    async def test_relay_unaffected_by_auth_failure(self, service_account, notification):
        calls = []
        transport = gateway_transport(calls, token_status=400)
        async with httpx.AsyncClient(transport=transport) as client:
            gateway = PushGateway(http_client=client, project_id="p", service_account=service_account)
            batch = await gateway.send(["tok-1", "ExponentPushToken[abc]"], notification, "n-1")

        assert batch.success is True
        fcm = [r for r in batch.results if r.path == FCM_PATH][0]
        assert fcm.success is False
        assert "access token" in fcm.error

    @pytest.mark.asyncio
    async def test_no_tokens(self, notification):
        batch = await PushGateway(project_id="p", service_account={}).send([], notification, "n-1")
        assert batch.success is False
        assert batch.results == []

    @pytest.mark.asyncio
    async def test_unparseable_success_bodies_do_not_abort_batch(self, service_account, notification):
        relay_replies = iter([
            httpx.Response(200, text="OK"),
            httpx.Response(200, json=[{"status": "ok"}]),
            httpx.Response(200, json={"data": {"status": "ok", "id": "ticket-3"}}),
        ])

        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            if url == TOKEN_URL:
                return httpx.Response(200, json={"access_token": "ya29.test"})
            if url == RELAY_SEND_URL:
                return next(relay_replies)
            return httpx.Response(200, text="")

        relay_tokens = [f"ExponentPushToken[{i}]" for i in range(3)]
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            gateway = PushGateway(http_client=client, project_id="p", service_account=service_account)
            batch = await gateway.send(["tok-1"] + relay_tokens, notification, "n-1")

        assert batch.success is True
        assert batch.total_sent == 4
        assert [r.message_id for r in batch.results if r.path == RELAY_PATH] == [None, None, "ticket-3"]
        [fcm] = [r for r in batch.results if r.path == FCM_PATH]
        assert fcm.message_id is None
        assert fcm.status_code == 200

    @pytest.mark.asyncio
    async def test_token_endpoint_without_object_body(self, service_account, notification):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=["not", "an", "object"])

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            gateway = PushGateway(http_client=client, project_id="p", service_account=service_account)
            batch = await gateway.send(["tok-1"], notification, "n-1")

        assert batch.success is False
        assert "no access_token" in batch.results[0].error


def test_is_relay_token():
    assert is_relay_token("ExponentPushToken[xyz]")
    assert not is_relay_token("fcm-token")
