"""Rich notification descriptors and their per-platform payloads."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .deep_links import DeepLinkTarget, LinkType, generate

DEFAULT_ICON = "/assets/images/icon.png"
ANDROID_ICON = "ic_notification"
ANDROID_COLOR = "#31954b"
ANDROID_CHANNEL_ID = "trading_signals"
APNS_CATEGORY = "TRADING_SIGNAL"
CLICK_ACTION = "NOTIFICATION_CLICKED"

# Web push time to live (seconds)
WEBPUSH_TTL = 86400

SIGNAL_IMAGE = "https://images.pexels.com/photos/6801648/pexels-photo-6801648.jpeg?auto=compress&cs=tinysrgb&w=800&h=200"
ACHIEVEMENT_IMAGE = "https://images.pexels.com/photos/8370752/pexels-photo-8370752.jpeg?auto=compress&cs=tinysrgb&w=800&h=200"
MARKET_IMAGE = "https://images.pexels.com/photos/6802049/pexels-photo-6802049.jpeg?auto=compress&cs=tinysrgb&w=800&h=200"


@dataclass(frozen=True)
class NotificationAction:
    action_id: str
    label: str
    icon: Optional[str] = None


@dataclass
class RichNotification:
    """Provider-agnostic notification description."""

    title: str
    body: str
    image: Optional[str] = None
    actions: List[NotificationAction] = field(default_factory=list)
    deep_link: Optional[DeepLinkTarget] = None
    structured_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def deep_link_url(self) -> str:
        return generate(self.deep_link) if self.deep_link else ""

    def data_block(self, notification_id: str) -> Dict[str, str]:
        """String-valued data block carried by every platform payload."""
        data = {
            "notification_id": notification_id,
            "deep_link": self.deep_link_url,
            "click_action": CLICK_ACTION,
        }
        data.update({k: str(v) for k, v in self.structured_data.items() if v is not None})
        return data


DEFAULT_ACTIONS = {
    "signal": [
        NotificationAction("view", "📈 View Signal"),
        NotificationAction("open_chart", "📊 Chart"),
        NotificationAction("dismiss", "❌ Dismiss"),
    ],
    "achievement": [
        NotificationAction("view", "🏆 View"),
        NotificationAction("share", "📤 Share"),
        NotificationAction("dismiss", "❌ Dismiss"),
    ],
    "announcement": [
        NotificationAction("view", "📖 Read More"),
        NotificationAction("dismiss", "❌ Dismiss"),
    ],
    "alert": [
        NotificationAction("view", "⚠️ View Alert"),
        NotificationAction("dismiss", "❌ Dismiss"),
    ],
}

FALLBACK_ACTIONS = [
    NotificationAction("view", "👀 View"),
    NotificationAction("dismiss", "❌ Dismiss"),
]

WEBPUSH_DEFAULT_ACTIONS = [
    NotificationAction("view", "📈 View Signal"),
    NotificationAction("dismiss", "❌ Dismiss"),
]


def default_actions(kind: str) -> List[NotificationAction]:
    return list(DEFAULT_ACTIONS.get(kind, FALLBACK_ACTIONS))


def render_webpush(notification: RichNotification) -> Dict[str, Any]:
    actions = notification.actions or WEBPUSH_DEFAULT_ACTIONS
    payload = {
        "headers": {"TTL": str(WEBPUSH_TTL), "Urgency": "high"},
        "notification": {
            "icon": DEFAULT_ICON,
            "badge": DEFAULT_ICON,
            "requireInteraction": True,
            "actions": [
                {"action": a.action_id, "title": a.label, "icon": a.icon or DEFAULT_ICON}
                for a in actions
            ],
        },
        "fcm_options": {"link": notification.deep_link_url or "/"},
    }
    if notification.image:
        payload["notification"]["image"] = notification.image
    return payload


def render_android(notification: RichNotification, notification_id: str) -> Dict[str, Any]:
    android_notification = {
        "icon": ANDROID_ICON,
        "color": ANDROID_COLOR,
        "sound": "default",
        "click_action": CLICK_ACTION,
        "channel_id": ANDROID_CHANNEL_ID,
    }
    if notification.image:
        android_notification["image"] = notification.image

    data = notification.data_block(notification_id)
    data.pop("click_action")
    return {"notification": android_notification, "data": data}


def render_apns(notification: RichNotification, notification_id: str) -> Dict[str, Any]:
    payload = {
        "aps": {
            "alert": {"title": notification.title, "body": notification.body},
            "sound": "default",
            "badge": 1,
            "category": APNS_CATEGORY,
            "mutable-content": 1,
        },
        "notification_id": notification_id,
        "deep_link": notification.deep_link_url,
    }
    payload.update(notification.structured_data)
    return {"payload": payload}


def render_fcm_message(token: str, notification: RichNotification, notification_id: str) -> Dict[str, Any]:
    """Full FCM v1 message for one delivery token."""
    visible = {"title": notification.title, "body": notification.body}
    if notification.image:
        visible["image"] = notification.image
    return {
        "message": {
            "token": token,
            "notification": visible,
            "data": notification.data_block(notification_id),
            "webpush": render_webpush(notification),
            "android": render_android(notification, notification_id),
            "apns": render_apns(notification, notification_id),
        }
    }


def render_relay_message(token: str, notification: RichNotification, notification_id: str) -> Dict[str, Any]:
    """Message for the push relay (relay tokens only)."""
    data = dict(notification.structured_data)
    data["notification_id"] = notification_id
    if notification.deep_link:
        data["deep_link"] = notification.deep_link_url
    return {
        "to": token,
        "sound": "default",
        "title": notification.title,
        "body": notification.body,
        "data": data,
    }


def signal_notification(
    signal_id: str,
    pair: str,
    side: str,
    entry_price: float,
    status: str = "active",
) -> RichNotification:
    emoji = "📈" if side.upper() == "BUY" else "📉"
    status_emoji = "🚀" if status == "active" else "🔄"
    return RichNotification(
        title=f"{status_emoji} {pair} {side.upper()} Signal",
        body=f"{emoji} Entry: ${entry_price:.2f} • Tap to view details",
        image=SIGNAL_IMAGE,
        actions=[
            NotificationAction("view", "📈 View Signal"),
            NotificationAction("open_chart", "📊 Open Chart"),
            NotificationAction("dismiss", "❌ Dismiss"),
        ],
        deep_link=DeepLinkTarget(type=LinkType.SIGNAL, id=signal_id),
        structured_data={
            "signal_id": signal_id,
            "pair": pair,
            "type": side.upper(),
            "entry_price": str(entry_price),
            "status": status,
        },
    )


def achievement_notification(title: str, description: str, achievement_type: str) -> RichNotification:
    return RichNotification(
        title=f"🏆 Achievement Unlocked: {title}",
        body=description,
        image=ACHIEVEMENT_IMAGE,
        actions=[
            NotificationAction("view", "🏆 View Achievement"),
            NotificationAction("share", "📤 Share"),
            NotificationAction("dismiss", "❌ Dismiss"),
        ],
        deep_link=DeepLinkTarget(
            type=LinkType.HOME,
            params={"tab": "achievements", "achievement": achievement_type},
        ),
        structured_data={"achievement_type": achievement_type, "achievement_title": title},
    )


def market_update_notification(title: str, message: str, market: str, sentiment: str) -> RichNotification:
    emoji = {"bullish": "🐂", "bearish": "🐻"}.get(sentiment, "📊")
    return RichNotification(
        title=f"{emoji} Market Update: {title}",
        body=message,
        image=MARKET_IMAGE,
        actions=[
            NotificationAction("view", "📊 View Market"),
            NotificationAction("open_chart", "📈 Open Chart"),
            NotificationAction("dismiss", "❌ Dismiss"),
        ],
        deep_link=DeepLinkTarget(type=LinkType.HOME, params={"market": market}),
        structured_data={"market": market, "sentiment": sentiment, "update_type": "market_analysis"},
    )
