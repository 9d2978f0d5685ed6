"""Tests for deep-link parsing, generation and routing."""
import pytest
from unittest.mock import MagicMock

from signalpush.services.deep_links import (
    HOME_ROUTE,
    DeepLinkRouter,
    DeepLinkTarget,
    LinkType,
    generate,
    generate_universal,
    parse,
    resolve,
)

TARGETS = [
    DeepLinkTarget(LinkType.SIGNAL, "42"),
    DeepLinkTarget(LinkType.SIGNAL),
    DeepLinkTarget(LinkType.CHAT, "room-7", {"ref": "push"}),
    DeepLinkTarget(LinkType.OFFER, "summer", {"code": "A1", "src": "email"}),
    DeepLinkTarget(LinkType.SETTINGS),
    DeepLinkTarget(LinkType.HOME, None, {"tab": "achievements", "achievement": "first_trade"}),
    DeepLinkTarget(LinkType.HOME),
]


class TestRoundTrip:

    @pytest.mark.parametrize("target", TARGETS)
    def test_custom_scheme(self, target):
        parsed = parse(generate(target))
        assert parsed == target
        assert resolve(parsed).target == target

    @pytest.mark.parametrize("target", TARGETS)
    def test_universal(self, target):
        assert parse(generate_universal(target)) == target


class TestParse:

    def test_custom_scheme_with_params(self):
        target = parse("signalpush://offer/summer/code/A1")
        assert target.type == LinkType.OFFER
        assert target.id == "summer"
        assert target.params == {"code": "A1"}

    def test_odd_trailing_segment_dropped(self):
        target = parse("signalpush://chat/9/ref/push/orphan")
        assert target.params == {"ref": "push"}

    def test_universal_query(self):
        target = parse("https://tradingsignals.app/signal/42?src=email")
        assert target.id == "42"
        assert target.params == {"src": "email"}

    @pytest.mark.parametrize("url", ["signalpush://unknown/1", "signalpush://", ""])
    def test_unknown_type_is_home(self, url):
        assert parse(url).type == LinkType.HOME

    def test_generate_writes_empty_id_segment(self):
        url = generate(DeepLinkTarget(LinkType.HOME, None, {"market": "gold"}))
        assert url == "signalpush://home//market/gold"


class TestResolve:

    @pytest.mark.parametrize("target, route", [
        (DeepLinkTarget(LinkType.SIGNAL, "42"), "/(tabs)/signals?id=42"),
        (DeepLinkTarget(LinkType.SIGNAL), "/(tabs)/signals"),
        (DeepLinkTarget(LinkType.CHAT, "7"), "/chat/7"),
        (DeepLinkTarget(LinkType.OFFER, "summer"), "/offer/summer"),
        (DeepLinkTarget(LinkType.SETTINGS), "/(tabs)/settings"),
        (DeepLinkTarget(LinkType.HOME), HOME_ROUTE),
        (DeepLinkTarget(LinkType.CHAT), HOME_ROUTE),
        (None, HOME_ROUTE),
    ])
    def test_routes(self, target, route):
        assert resolve(target).route == route


class TestDeepLinkRouter:

    def test_open_navigates(self):
        navigator = MagicMock()
        action = DeepLinkRouter(navigator).open("signalpush://signal/42")
        navigator.assert_called_once_with("/(tabs)/signals?id=42")
        assert action.target.id == "42"

    def test_navigation_failure_falls_back_home(self):
        navigator = MagicMock(side_effect=[RuntimeError("no screen"), None])
        action = DeepLinkRouter(navigator).open("signalpush://offer/1")
        assert action.route == HOME_ROUTE
        navigator.assert_called_with(HOME_ROUTE)

    def test_open_without_url(self):
        assert DeepLinkRouter().open(None).route == HOME_ROUTE
