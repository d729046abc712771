"""
Data Service: Row ↔ domain translation and CRUD for every entity.

Each store is bound to one AsyncSession and exposes get_all / get / create /
update / delete. Rows are snake_case ORM objects; return values are the
camelCase schemas from changetracker.schemas. Store errors are not caught here.
"""

import logging
import uuid
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from changetracker.models import (
    Account, ChangeLog, ChangeResult, Comment, Notification, User,
)
from changetracker.schemas import (
    AccountCreate, AccountOut, AccountUpdate, ChangeLogCreate, ChangeLogOut, ChangeLogUpdate,
    CommentOut, NotificationOut, PerformanceMetrics, UserOut,
)
from changetracker.utils import parse_uuid, utcnow

logger = logging.getLogger(__name__)

_METRIC_FIELDS = ("ctr", "cpc", "conv_rate", "cpa")


# ══════════════════════════════════════════════════════════════════════
#  MAPPERS
# ══════════════════════════════════════════════════════════════════════

def user_to_domain(row: User) -> UserOut:
    return UserOut(
        id=str(row.id),
        name=row.name,
        email=row.email,
        role=row.role,
        is_active=row.is_active,
        last_login_at=row.last_login_at,
        created_at=row.created_at,
    )


def account_to_domain(row: Account) -> AccountOut:
    return AccountOut(
        id=str(row.id),
        name=row.name,
        client=row.client,
        manager=row.manager,
        currency=row.currency,
        status=row.status,
        tags=list(row.tags or []),
    )


def comment_to_domain(row: Comment) -> CommentOut:
    return CommentOut(
        id=str(row.id),
        log_id=str(row.log_id),
        user_id=str(row.user_id),
        user_name=row.user_name,
        timestamp=row.timestamp,
        text=row.text,
    )


def _metrics_from_row(row: ChangeLog, prefix: str) -> PerformanceMetrics:
    return PerformanceMetrics(**{f: getattr(row, f"{prefix}_{f}") for f in _METRIC_FIELDS})


def _metrics_to_columns(metrics: Optional[PerformanceMetrics], prefix: str) -> dict:
    if metrics is None:
        return {f"{prefix}_{f}": None for f in _METRIC_FIELDS}
    return {f"{prefix}_{f}": getattr(metrics, f) for f in _METRIC_FIELDS}


def change_log_to_domain(row: ChangeLog, comments: list[CommentOut]) -> ChangeLogOut:
    """Fold the flat pre/post metric columns into metric objects.

    postChangeMetrics is None unless at least one post column is set.
    """
    post = _metrics_from_row(row, "post_change")
    return ChangeLogOut(
        id=str(row.id),
        date_of_change=row.date_of_change,
        account_id=str(row.account_id),
        campaign_name=row.campaign_name,
        category=row.category,
        description=row.description,
        reason=row.reason,
        expected_impact=row.expected_impact,
        pre_change_metrics=_metrics_from_row(row, "pre_change"),
        post_change_metrics=None if post.is_empty() else post,
        next_review_date=row.next_review_date,
        logged_by_id=str(row.logged_by_id),
        created_by_name=row.created_by_name,
        last_edited_by_id=str(row.last_edited_by_id) if row.last_edited_by_id else None,
        last_edited_by_name=row.last_edited_by_name,
        last_edited_at=row.last_edited_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
        result=row.result,
        result_summary=row.result_summary or "",
        comments=comments,
    )


def notification_to_domain(row: Notification) -> NotificationOut:
    return NotificationOut(
        id=str(row.id),
        user_id=str(row.user_id) if row.user_id else None,
        user_name=row.user_name,
        action_type=row.action_type,
        target_type=row.target_type,
        target_id=row.target_id,
        description=row.description,
        metadata=row.details or {},
        created_at=row.created_at,
    )


# ══════════════════════════════════════════════════════════════════════
#  USERS
# ══════════════════════════════════════════════════════════════════════

class UserStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_all(self) -> list[UserOut]:
        result = await self.db.execute(select(User).order_by(User.created_at.asc()))
        return [user_to_domain(u) for u in result.scalars().all()]

    async def get_row(self, user_id: str) -> User:
        result = await self.db.execute(select(User).where(User.id == parse_uuid(user_id, "user_id")))
        user = result.scalar_one_or_none()
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def count(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(User))
        return result.scalar() or 0

    async def create(self, name: str, email: str, password_hash: str, role: str) -> User:
        user = User(
            name=name,
            email=email.lower(),
            password_hash=password_hash,
            role=role,
            is_active=True,
        )
        self.db.add(user)
        await self.db.flush()
        return user

    async def update(self, user: User, **fields) -> User:
        for key, value in fields.items():
            setattr(user, key, value)
        await self.db.flush()
        return user

    async def first_admin_other_than(self, user_id: uuid.UUID, role: str) -> Optional[User]:
        result = await self.db.execute(
            select(User)
            .where(User.role == role, User.id != user_id)
            .order_by(User.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def delete(self, user: User) -> None:
        await self.db.delete(user)
        await self.db.flush()


# ══════════════════════════════════════════════════════════════════════
#  ACCOUNTS
# ══════════════════════════════════════════════════════════════════════

class AccountStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_all(self) -> list[AccountOut]:
        result = await self.db.execute(select(Account).order_by(Account.created_at.asc()))
        return [account_to_domain(a) for a in result.scalars().all()]

    async def get_row(self, account_id: str) -> Account:
        result = await self.db.execute(
            select(Account).where(Account.id == parse_uuid(account_id, "account_id"))
        )
        account = result.scalar_one_or_none()
        if not account:
            raise HTTPException(status_code=404, detail="Account not found")
        return account

    async def exists(self, account_id: str) -> bool:
        try:
            key = uuid.UUID(account_id)
        except (ValueError, AttributeError):
            return False
        result = await self.db.execute(select(Account.id).where(Account.id == key))
        return result.scalar_one_or_none() is not None

    async def create(self, payload: AccountCreate) -> AccountOut:
        account = Account(
            name=payload.name,
            client=payload.client,
            manager=payload.manager,
            currency=payload.currency,
            status=payload.status.value,
            tags=payload.tags,
        )
        self.db.add(account)
        await self.db.flush()
        return account_to_domain(account)

    async def update(self, account_id: str, payload: AccountUpdate) -> AccountOut:
        account = await self.get_row(account_id)
        for key, value in payload.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            setattr(account, key, value.value if hasattr(value, "value") else value)
        account.updated_at = utcnow()
        await self.db.flush()
        return account_to_domain(account)

    async def delete(self, account_id: str) -> int:
        """Delete the account and every change log (with comments) that references it.

        Returns the number of change logs removed.
        """
        account = await self.get_row(account_id)
        log_ids = (await self.db.execute(
            select(ChangeLog.id).where(ChangeLog.account_id == account.id)
        )).scalars().all()
        if log_ids:
            await self.db.execute(delete(Comment).where(Comment.log_id.in_(log_ids)))
            await self.db.execute(delete(ChangeLog).where(ChangeLog.id.in_(log_ids)))
        await self.db.execute(delete(Account).where(Account.id == account.id))
        await self.db.flush()
        return len(log_ids)

    async def update_manager_name(self, old_name: str, new_name: str) -> int:
        """Rename the manager on every account whose manager equals old_name exactly."""
        result = await self.db.execute(
            update(Account)
            .where(Account.manager == old_name)
            .values(manager=new_name, updated_at=utcnow())
        )
        return result.rowcount or 0


# ══════════════════════════════════════════════════════════════════════
#  CHANGE LOGS & COMMENTS
# ══════════════════════════════════════════════════════════════════════

class CommentStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def for_log(self, log_id: uuid.UUID) -> list[CommentOut]:
        result = await self.db.execute(
            select(Comment).where(Comment.log_id == log_id).order_by(Comment.timestamp.asc())
        )
        return [comment_to_domain(c) for c in result.scalars().all()]

    async def grouped_by_log(self) -> dict[str, list[CommentOut]]:
        result = await self.db.execute(select(Comment).order_by(Comment.timestamp.asc()))
        grouped: dict[str, list[CommentOut]] = {}
        for c in result.scalars().all():
            grouped.setdefault(str(c.log_id), []).append(comment_to_domain(c))
        return grouped

    async def get_row(self, comment_id: str) -> Comment:
        result = await self.db.execute(
            select(Comment).where(Comment.id == parse_uuid(comment_id, "comment_id"))
        )
        comment = result.scalar_one_or_none()
        if not comment:
            raise HTTPException(status_code=404, detail="Comment not found")
        return comment

    async def create(self, log_id: uuid.UUID, user: User, text: str) -> CommentOut:
        comment = Comment(
            log_id=log_id,
            user_id=user.id,
            user_name=user.name,
            timestamp=utcnow(),
            text=text,
        )
        self.db.add(comment)
        await self.db.flush()
        return comment_to_domain(comment)

    async def delete(self, comment: Comment) -> None:
        await self.db.execute(delete(Comment).where(Comment.id == comment.id))
        await self.db.flush()


class ChangeLogStore:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.comments = CommentStore(db)

    async def get_all(self) -> list[ChangeLogOut]:
        """All logs, newest first, each with its comments in timestamp order."""
        result = await self.db.execute(select(ChangeLog).order_by(ChangeLog.created_at.desc()))
        logs = result.scalars().all()
        if not logs:
            return []
        by_log = await self.comments.grouped_by_log()
        return [change_log_to_domain(log, by_log.get(str(log.id), [])) for log in logs]

    async def get_row(self, log_id: str) -> ChangeLog:
        result = await self.db.execute(
            select(ChangeLog).where(ChangeLog.id == parse_uuid(log_id, "log_id"))
        )
        log = result.scalar_one_or_none()
        if not log:
            raise HTTPException(status_code=404, detail="Change log not found")
        return log

    async def get(self, log_id: str) -> ChangeLogOut:
        log = await self.get_row(log_id)
        return change_log_to_domain(log, await self.comments.for_log(log.id))

    async def create(self, payload: ChangeLogCreate, creator: User) -> ChangeLogOut:
        """Insert a new log. Outcome fields always start empty: Pending, no post metrics, no summary."""
        log = ChangeLog(
            date_of_change=payload.date_of_change,
            account_id=parse_uuid(payload.account_id, "account_id"),
            campaign_name=payload.campaign_name,
            category=payload.category.value,
            description=payload.description,
            reason=payload.reason,
            expected_impact=payload.expected_impact.value,
            next_review_date=payload.next_review_date,
            logged_by_id=creator.id,
            created_by_name=creator.name,
            result=ChangeResult.PENDING.value,
            result_summary="",
            **_metrics_to_columns(payload.pre_change_metrics, "pre_change"),
            **_metrics_to_columns(None, "post_change"),
        )
        self.db.add(log)
        await self.db.flush()
        return change_log_to_domain(log, [])

    async def update(self, log_id: str, payload: ChangeLogUpdate, editor: User) -> ChangeLogOut:
        log = await self.get_row(log_id)
        data = payload.model_dump(exclude_unset=True)

        for metrics_key, prefix in (("pre_change_metrics", "pre_change"), ("post_change_metrics", "post_change")):
            if metrics_key in data:
                metrics = getattr(payload, metrics_key)
                for column, value in _metrics_to_columns(metrics, prefix).items():
                    setattr(log, column, value)
                data.pop(metrics_key)

        if data.get("account_id") is not None:
            data["account_id"] = parse_uuid(data["account_id"], "account_id")

        for key, value in data.items():
            if value is None and key != "next_review_date":
                continue
            setattr(log, key, value.value if hasattr(value, "value") else value)

        log.last_edited_by_id = editor.id
        log.last_edited_by_name = editor.name
        log.last_edited_at = utcnow()
        log.updated_at = log.last_edited_at
        await self.db.flush()
        return change_log_to_domain(log, await self.comments.for_log(log.id))

    async def delete(self, log: ChangeLog) -> None:
        await self.db.execute(delete(Comment).where(Comment.log_id == log.id))
        await self.db.execute(delete(ChangeLog).where(ChangeLog.id == log.id))
        await self.db.flush()


# ══════════════════════════════════════════════════════════════════════
#  NOTIFICATIONS
# ══════════════════════════════════════════════════════════════════════

class NotificationStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_all(self, limit: int = 200) -> list[NotificationOut]:
        result = await self.db.execute(
            select(Notification).order_by(Notification.created_at.desc()).limit(limit)
        )
        return [notification_to_domain(n) for n in result.scalars().all()]

    async def create(
        self,
        user: User,
        action_type: str,
        target_type: str,
        target_id: str,
        description: str,
        details: Optional[dict] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user.id,
            user_name=user.name,
            action_type=action_type,
            target_type=target_type,
            target_id=target_id,
            description=description,
            details=details or {},
        )
        self.db.add(notification)
        await self.db.flush()
        return notification

    async def delete(self, notification_id: str) -> None:
        key = parse_uuid(notification_id, "notification_id")
        result = await self.db.execute(select(Notification.id).where(Notification.id == key))
        if result.scalar_one_or_none() is None:
            raise HTTPException(status_code=404, detail="Notification not found")
        await self.db.execute(delete(Notification).where(Notification.id == key))
        await self.db.flush()
