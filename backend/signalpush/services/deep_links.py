"""Deep-link resolver - parse and generate navigation targets, route on activation.

Formats:
- custom scheme: <scheme>://type[/id][/key/value]*
- universal link: https://<host>/type[/id][?key=value&...]
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional
from urllib.parse import parse_qsl, quote, unquote, urlencode

from ..config import settings

logger = logging.getLogger(__name__)


class LinkType(str, Enum):
    SIGNAL = "signal"
    CHAT = "chat"
    OFFER = "offer"
    SETTINGS = "settings"
    HOME = "home"


HOME_ROUTE = "/(tabs)/"


@dataclass(frozen=True)
class DeepLinkTarget:
    type: LinkType = LinkType.HOME
    id: Optional[str] = None
    params: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class NavigationAction:
    route: str
    target: DeepLinkTarget


def _link_type(value: str) -> LinkType:
    try:
        return LinkType(value)
    except ValueError:
        return LinkType.HOME


def parse(url: str, scheme: Optional[str] = None, host: Optional[str] = None) -> DeepLinkTarget:
    """Parse either link format. Unknown or empty types resolve to home."""
    scheme = scheme or settings.deep_link_scheme
    host = host or settings.universal_link_host

    custom_prefix = f"{scheme}://"
    universal_prefix = f"https://{host}/"

    query = ""
    if url.startswith(custom_prefix):
        path = url[len(custom_prefix):]
    elif url.startswith(universal_prefix):
        path, _, query = url[len(universal_prefix):].partition("?")
    else:
        path = url

    segments = [unquote(s) for s in path.split("/")]
    link_type = _link_type(segments[0] if segments else "")
    target_id = segments[1] if len(segments) > 1 and segments[1] else None

    params: Dict[str, str] = {}
    rest = segments[2:]
    # Pairs only; an odd trailing segment is dropped
    for i in range(0, len(rest) - 1, 2):
        if rest[i]:
            params[rest[i]] = rest[i + 1]
    if query:
        params.update(parse_qsl(query, keep_blank_values=True))

    return DeepLinkTarget(type=link_type, id=target_id, params=params)


def generate(target: DeepLinkTarget, scheme: Optional[str] = None) -> str:
    """Build a custom-scheme link."""
    scheme = scheme or settings.deep_link_scheme
    url = f"{scheme}://{target.type.value}"

    if target.id or target.params:
        # Empty id segment keeps params in their positions
        url += "/" + quote(target.id or "", safe="")

    for key, value in target.params.items():
        url += f"/{quote(str(key), safe='')}/{quote(str(value), safe='')}"
    return url


def generate_universal(target: DeepLinkTarget, host: Optional[str] = None) -> str:
    """Build an https universal link for web and sharing."""
    host = host or settings.universal_link_host
    url = f"https://{host}/{target.type.value}"

    if target.id:
        url += "/" + quote(target.id, safe="")
    if target.params:
        url += "?" + urlencode(target.params)
    return url


def resolve(target: Optional[DeepLinkTarget]) -> NavigationAction:
    """Map a target to an in-app route, falling back to home."""
    if target is None:
        return NavigationAction(route=HOME_ROUTE, target=DeepLinkTarget())

    if target.type == LinkType.SIGNAL:
        route = f"/(tabs)/signals?id={target.id}" if target.id else "/(tabs)/signals"
    elif target.type == LinkType.CHAT and target.id:
        route = f"/chat/{target.id}"
    elif target.type == LinkType.OFFER and target.id:
        route = f"/offer/{target.id}"
    elif target.type == LinkType.SETTINGS:
        route = "/(tabs)/settings"
    else:
        route = HOME_ROUTE

    return NavigationAction(route=route, target=target)


Navigator = Callable[[str], None]


class DeepLinkRouter:
    """Routes activated links through a navigator callable."""

    def __init__(self, navigator: Optional[Navigator] = None):
        self.navigator = navigator

    def open(self, url: Optional[str]) -> NavigationAction:
        """Resolve and navigate. Never raises; failures fall back to home."""
        try:
            action = resolve(parse(url)) if url else resolve(None)
        except Exception as e:
            logger.error(f"Error parsing deep link {url}: {e}")
            action = resolve(None)

        return self.navigate(action)

    def navigate(self, action: NavigationAction) -> NavigationAction:
        if self.navigator is None:
            return action
        try:
            self.navigator(action.route)
            logger.debug(f"Navigated to {action.route}")
            return action
        except Exception as e:
            logger.error(f"Error navigating to {action.route}: {e}")
            fallback = resolve(None)
            try:
                self.navigator(fallback.route)
            except Exception as e2:
                logger.error(f"Error navigating to home: {e2}")
            return fallback
