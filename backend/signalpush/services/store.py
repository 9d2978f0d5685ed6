"""Backend store - the persistence operations the notification core relies on.

No write does a client-side read-modify-write:
- upsert-by-key for device profiles (INSERT ... ON CONFLICT DO UPDATE)
- atomic counter increments (UPDATE ... SET n = n + 1)
- conflict-ignore inserts for events and clicked users (ON CONFLICT DO NOTHING),
  where the affected row count is the duplicate signal
- an event and its counter and clicked-user changes share one transaction
- filtered selects with ordering and limit
"""
import json
import logging
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import async_session
from ..models import (
    ClickedUser,
    DeviceProfile,
    Notification,
    NotificationEvent,
    NotificationLog,
    Setting,
    SilentNotificationLog,
)
from ..utils.db_utils import retry_on_lock, dialect_insert

logger = logging.getLogger(__name__)

COUNTER_COLUMNS = {
    "view_count": Notification.view_count,
    "click_count": Notification.click_count,
}


class BackendStore:
    """Async access to profile, notification, event and audit tables."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self._session_factory = session_factory or async_session

    def session(self) -> AsyncSession:
        return self._session_factory()

    # Device profiles

    async def upsert_profile(
        self,
        identity: str,
        platform: str,
        app_version: Optional[str] = None,
        delivery_token: Optional[str] = None,
        keep_existing_token: bool = False,
    ) -> None:
        """Create or update the profile for an identity.

        With keep_existing_token, a None token never overwrites a stored one.
        """
        now = datetime.utcnow()
        async with self.session() as session:
            stmt = dialect_insert(session, DeviceProfile.__table__).values(
                user_id=identity,
                fcm_token=delivery_token,
                device_type=platform,
                app_version=app_version,
                last_active=now,
                created_at=now,
            )
            changes = {
                "device_type": stmt.excluded.device_type,
                "app_version": stmt.excluded.app_version,
                "last_active": stmt.excluded.last_active,
            }
            if not (keep_existing_token and delivery_token is None):
                changes["fcm_token"] = stmt.excluded.fcm_token
            stmt = stmt.on_conflict_do_update(index_elements=["user_id"], set_=changes)
            await session.execute(stmt)
            await retry_on_lock(session.commit)

    async def get_profile(self, identity: str) -> Optional[DeviceProfile]:
        async with self.session() as session:
            result = await session.execute(
                select(DeviceProfile).where(DeviceProfile.user_id == identity)
            )
            return result.scalar_one_or_none()

    async def touch_profile(self, identity: str) -> bool:
        """Refresh last_active. Returns False when no profile exists."""
        async with self.session() as session:
            result = await session.execute(
                update(DeviceProfile)
                .where(DeviceProfile.user_id == identity)
                .values(last_active=datetime.utcnow())
            )
            await retry_on_lock(session.commit)
            return result.rowcount > 0

    async def list_delivery_tokens(
        self,
        target_user: Optional[str] = None,
        identities: Optional[Iterable[str]] = None,
    ) -> list[tuple[str, str, str]]:
        """Return (identity, token, platform) for profiles holding a token."""
        query = select(
            DeviceProfile.user_id, DeviceProfile.fcm_token, DeviceProfile.device_type
        ).where(DeviceProfile.fcm_token.is_not(None))

        if target_user:
            query = query.where(DeviceProfile.user_id == target_user)
        elif identities:
            query = query.where(DeviceProfile.user_id.in_(list(identities)))

        async with self.session() as session:
            result = await session.execute(query)
            return [tuple(row) for row in result.fetchall()]

    async def count_profiles(self) -> tuple[int, int]:
        """Return (total, with_token)."""
        async with self.session() as session:
            total = (await session.execute(select(func.count(DeviceProfile.id)))).scalar() or 0
            with_token = (
                await session.execute(
                    select(func.count(DeviceProfile.id)).where(DeviceProfile.fcm_token.is_not(None))
                )
            ).scalar() or 0
            return total, with_token

    # Notifications

    async def create_notification(
        self,
        type: str,
        title: str,
        message: str,
        data: Optional[dict] = None,
        target_user: Optional[str] = None,
    ) -> str:
        async with self.session() as session:
            notification = Notification(
                type=type,
                title=title,
                message=message,
                data=data or {},
                target_user=target_user,
                status="pending",
            )
            session.add(notification)
            await retry_on_lock(session.commit)
            return notification.id

    async def update_notification_status(self, notification_id: str, status: str) -> None:
        async with self.session() as session:
            await session.execute(
                update(Notification)
                .where(Notification.id == notification_id)
                .values(status=status, sent_at=datetime.utcnow())
            )
            await retry_on_lock(session.commit)

    async def insert_notification_log(
        self,
        notification_id: str,
        status: str,
        result: dict,
        error_message: Optional[str] = None,
    ) -> None:
        async with self.session() as session:
            session.add(NotificationLog(
                notification_id=notification_id,
                status=status,
                result=json.loads(json.dumps(result, default=str)),
                error_message=error_message,
            ))
            await retry_on_lock(session.commit)

    async def list_notifications(
        self,
        notification_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Notification]:
        query = select(Notification).order_by(Notification.created_at.desc())
        if notification_id:
            query = query.where(Notification.id == notification_id)
        if limit:
            query = query.limit(limit)
        async with self.session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def engagement_totals(self) -> tuple[int, int, int]:
        """Return (notifications, total clicks, total views)."""
        async with self.session() as session:
            result = await session.execute(
                select(
                    func.count(Notification.id),
                    func.coalesce(func.sum(Notification.click_count), 0),
                    func.coalesce(func.sum(Notification.view_count), 0),
                )
            )
            count, clicks, views = result.one()
            return int(count or 0), int(clicks or 0), int(views or 0)

    # Events and counters

    async def record_event(
        self,
        user_id: str,
        notification_id: str,
        event_type: str,
        counter: str,
        track_user: bool = False,
    ) -> bool:
        """Insert an event and apply its side effects in one transaction.

        The counter (and the clicked-users set when track_user is set) only
        change when the event row was new. Returns False for a duplicate.
        Nothing is committed if any statement fails, so a retry starts clean.
        """
        column = COUNTER_COLUMNS.get(counter)
        if column is None:
            raise ValueError(f"Unknown counter column: {counter}")

        async with self.session() as session:
            if not await self._insert_event(session, user_id, notification_id, event_type):
                return False
            await self._increment(session, notification_id, column)
            if track_user:
                await self._add_clicked_user(session, notification_id, user_id)
            await retry_on_lock(session.commit)
            return True

    async def _insert_event(
        self, session: AsyncSession, user_id: str, notification_id: str, event_type: str
    ) -> bool:
        stmt = (
            dialect_insert(session, NotificationEvent.__table__)
            .values(
                user_id=user_id,
                notification_id=notification_id,
                event_type=event_type,
                event_time=datetime.utcnow(),
            )
            .on_conflict_do_nothing(
                index_elements=["user_id", "notification_id", "event_type"]
            )
        )
        result = await session.execute(stmt)
        return result.rowcount > 0

    async def _increment(self, session: AsyncSession, notification_id: str, column) -> bool:
        result = await session.execute(
            update(Notification)
            .where(Notification.id == notification_id)
            .values({column: column + 1})
        )
        return result.rowcount > 0

    async def _add_clicked_user(self, session: AsyncSession, notification_id: str, user_id: str) -> bool:
        stmt = (
            dialect_insert(session, ClickedUser.__table__)
            .values(notification_id=notification_id, user_id=user_id, added_at=datetime.utcnow())
            .on_conflict_do_nothing(index_elements=["notification_id", "user_id"])
        )
        result = await session.execute(stmt)
        return result.rowcount > 0

    async def clicked_users(self, notification_ids: Iterable[str]) -> dict[str, set[str]]:
        ids = list(notification_ids)
        users: dict[str, set[str]] = {nid: set() for nid in ids}
        if not ids:
            return users
        async with self.session() as session:
            result = await session.execute(
                select(ClickedUser.notification_id, ClickedUser.user_id)
                .where(ClickedUser.notification_id.in_(ids))
            )
            for nid, user_id in result.fetchall():
                users[nid].add(user_id)
        return users

    async def list_events(
        self,
        notification_id: Optional[str] = None,
        user_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[NotificationEvent]:
        query = select(NotificationEvent).order_by(NotificationEvent.event_time.desc()).limit(limit)
        if notification_id:
            query = query.where(NotificationEvent.notification_id == notification_id)
        if user_id:
            query = query.where(NotificationEvent.user_id == user_id)
        async with self.session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    # Silent notification audit log

    async def insert_silent_log(self, record: dict[str, Any]) -> None:
        async with self.session() as session:
            session.add(SilentNotificationLog(
                device_id=record["device_identity"],
                type=record["handler_type"],
                payload=record.get("payload") or {},
                execution_time_ms=record.get("execution_time_ms", 0),
                success=record["success"],
                result=record.get("result") or {},
                error_message=record.get("error_message"),
                platform=record.get("platform"),
            ))
            await retry_on_lock(session.commit)

    async def list_silent_logs(self, limit: int = 50) -> list[SilentNotificationLog]:
        async with self.session() as session:
            result = await session.execute(
                select(SilentNotificationLog)
                .order_by(SilentNotificationLog.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def delete_silent_logs_older_than(self, days: int) -> int:
        cutoff = datetime.utcnow() - timedelta(days=days)
        async with self.session() as session:
            result = await session.execute(
                delete(SilentNotificationLog).where(SilentNotificationLog.created_at < cutoff)
            )
            await retry_on_lock(session.commit)
            return result.rowcount or 0

    # Key/value settings

    async def get_setting(self, key: str) -> Optional[str]:
        async with self.session() as session:
            result = await session.execute(select(Setting.value).where(Setting.key == key))
            return result.scalar_one_or_none()

    async def set_setting(self, key: str, value: str) -> None:
        async with self.session() as session:
            stmt = dialect_insert(session, Setting.__table__).values(
                key=key, value=value, updated_at=datetime.utcnow()
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["key"],
                set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
            )
            await session.execute(stmt)
            await retry_on_lock(session.commit)
