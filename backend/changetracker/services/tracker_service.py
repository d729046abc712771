"""
Tracker Service: Coordinates every mutation for the signed-in user.

Each mutation writes through the data stores, then (for change logs and
comments) records a Notification. The notification write is a side channel:
it runs in a savepoint and a failure there is logged, never raised.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from changetracker.models import (
    NotificationAction, UNASSIGNED_MANAGER, User, UserRole,
)
from changetracker.schemas import (
    AccountCreate, AccountOut, AccountUpdate, ChangeLogCreate, ChangeLogOut, ChangeLogUpdate,
    CommentOut, UserCreate, UserOut, UserUpdate,
)
from changetracker.services.auth_service import hash_password
from changetracker.services.data_service import (
    AccountStore, ChangeLogStore, CommentStore, NotificationStore, UserStore, user_to_domain,
)
from changetracker.utils import safe_error_detail, truncate

logger = logging.getLogger(__name__)

COMMENT_PREVIEW_LENGTH = 100


@dataclass
class Snapshot:
    """The collections reports and exports are computed from."""
    users: list[UserOut]
    accounts: list[AccountOut]
    change_logs: list[ChangeLogOut]


class TrackerService:
    def __init__(self, db: AsyncSession, actor: Optional[User] = None):
        self.db = db
        self.actor = actor
        self.users = UserStore(db)
        self.accounts = AccountStore(db)
        self.change_logs = ChangeLogStore(db)
        self.comments = CommentStore(db)
        self.notifications = NotificationStore(db)

    async def snapshot(self) -> Snapshot:
        return Snapshot(
            users=await self.users.get_all(),
            accounts=await self.accounts.get_all(),
            change_logs=await self.change_logs.get_all(),
        )

    # ── Users ──────────────────────────────────────────────────────────

    async def add_user(self, payload: UserCreate) -> UserOut:
        if await self.users.get_by_email(payload.email):
            raise HTTPException(status_code=409, detail="Email already registered")
        user = await self.users.create(
            name=payload.name,
            email=payload.email,
            password_hash=hash_password(payload.password),
            role=payload.role.value,
        )
        logger.info(f"User created: {user.email} ({user.role})")
        return user_to_domain(user)

    async def update_user(self, user_id: str, payload: UserUpdate) -> UserOut:
        """Apply profile changes. A rename is propagated to every account managed under the old name."""
        user = await self.users.get_row(user_id)
        fields = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}

        if "email" in fields:
            fields["email"] = fields["email"].lower()
            if fields["email"] != user.email and await self.users.get_by_email(fields["email"]):
                raise HTTPException(status_code=409, detail="Email already registered")
        if "role" in fields:
            fields["role"] = fields["role"].value

        old_name = user.name
        await self.users.update(user, **fields)

        if "name" in fields and fields["name"] != old_name:
            renamed = await self.accounts.update_manager_name(old_name, fields["name"])
            logger.info(f"User {user.id} renamed '{old_name}' -> '{user.name}'; {renamed} account(s) updated")
        return user_to_domain(user)

    async def delete_user(self, user_id: str) -> int:
        """Delete a user and hand their accounts to another Admin, or to "Unassigned" if there is none.

        Accounts are matched by manager display name. Returns the number of accounts reassigned.
        """
        user = await self.users.get_row(user_id)
        if self.actor is not None and self.actor.id == user.id:
            raise HTTPException(status_code=400, detail="Cannot delete your own account")

        successor = await self.users.first_admin_other_than(user.id, UserRole.ADMIN.value)
        new_manager = successor.name if successor else UNASSIGNED_MANAGER
        try:
            reassigned = await self.accounts.update_manager_name(user.name, new_manager)
            await self.users.delete(user)
        except SQLAlchemyError as e:
            raise HTTPException(status_code=500, detail=safe_error_detail(e, "Failed to delete user."))
        logger.info(f"User {user_id} deleted; {reassigned} account(s) reassigned to '{new_manager}'")
        return reassigned

    # ── Accounts ───────────────────────────────────────────────────────

    async def add_account(self, payload: AccountCreate) -> AccountOut:
        account = await self.accounts.create(payload)
        logger.info(f"Account created: {account.name} ({account.id})")
        return account

    async def update_account(self, account_id: str, payload: AccountUpdate) -> AccountOut:
        return await self.accounts.update(account_id, payload)

    async def delete_account(self, account_id: str) -> int:
        """Delete an account and every change log that references it. Returns the number of logs removed."""
        try:
            removed = await self.accounts.delete(account_id)
        except SQLAlchemyError as e:
            raise HTTPException(status_code=500, detail=safe_error_detail(e, "Failed to delete account."))
        logger.info(f"Account {account_id} deleted with {removed} change log(s)")
        return removed

    # ── Change logs ────────────────────────────────────────────────────

    async def add_change_log(self, payload: ChangeLogCreate) -> ChangeLogOut:
        if not await self.accounts.exists(payload.account_id):
            raise HTTPException(status_code=400, detail="Change log must reference an existing account")
        log = await self.change_logs.create(payload, self.actor)
        await self._notify(
            NotificationAction.CREATE_LOG, "log", log.id,
            f"{self.actor.name} created a new change log for {log.campaign_name}",
            {"campaignName": log.campaign_name, "accountId": log.account_id},
        )
        return log

    async def update_change_log(self, log_id: str, payload: ChangeLogUpdate) -> ChangeLogOut:
        if payload.account_id is not None and not await self.accounts.exists(payload.account_id):
            raise HTTPException(status_code=400, detail="Change log must reference an existing account")
        log = await self.change_logs.update(log_id, payload, self.actor)
        await self._notify(
            NotificationAction.UPDATE_LOG, "log", log.id,
            f"{self.actor.name} updated the change log for {log.campaign_name}",
            {"campaignName": log.campaign_name, "accountId": log.account_id, "result": log.result.value},
        )
        return log

    async def delete_change_log(self, log_id: str) -> None:
        log = await self.change_logs.get_row(log_id)
        campaign, account_id = log.campaign_name, str(log.account_id)
        try:
            await self.change_logs.delete(log)
        except SQLAlchemyError as e:
            raise HTTPException(status_code=500, detail=safe_error_detail(e, "Failed to delete change log."))
        await self._notify(
            NotificationAction.DELETE_LOG, "log", log_id,
            f"{self.actor.name} deleted the change log for {campaign}",
            {"campaignName": campaign, "accountId": account_id},
        )

    # ── Comments ───────────────────────────────────────────────────────

    async def add_comment(self, log_id: str, text: str) -> CommentOut:
        log = await self.change_logs.get_row(log_id)
        comment = await self.comments.create(log.id, self.actor, text)
        await self._notify(
            NotificationAction.CREATE_COMMENT, "comment", comment.id,
            f"{self.actor.name} commented on {log.campaign_name}",
            {
                "campaignName": log.campaign_name,
                "accountId": str(log.account_id),
                "logId": str(log.id),
                "commentPreview": truncate(text, COMMENT_PREVIEW_LENGTH, suffix=""),
            },
        )
        return comment

    async def delete_comment(self, log_id: str, comment_id: str) -> None:
        """Remove a comment. Only its author or a Super Admin may do so."""
        log = await self.change_logs.get_row(log_id)
        comment = await self.comments.get_row(comment_id)
        if comment.log_id != log.id:
            raise HTTPException(status_code=404, detail="Comment not found")
        if comment.user_id != self.actor.id and self.actor.role != UserRole.SUPER_ADMIN.value:
            raise HTTPException(status_code=403, detail="Only the author or a Super Admin can delete this comment")

        text = comment.text
        try:
            await self.comments.delete(comment)
        except SQLAlchemyError as e:
            raise HTTPException(status_code=500, detail=safe_error_detail(e, "Failed to delete comment."))
        await self._notify(
            NotificationAction.DELETE_COMMENT, "comment", comment_id,
            f"{self.actor.name} deleted a comment on {log.campaign_name}",
            {
                "campaignName": log.campaign_name,
                "accountId": str(log.account_id),
                "logId": str(log.id),
                "commentPreview": truncate(text, COMMENT_PREVIEW_LENGTH, suffix=""),
            },
        )

    # ── Notifications ──────────────────────────────────────────────────

    async def delete_notification(self, notification_id: str) -> None:
        await self.notifications.delete(notification_id)

    async def _notify(
        self,
        action: NotificationAction,
        target_type: str,
        target_id: str,
        description: str,
        details: dict,
    ) -> None:
        """Record an audit entry. Failures are logged and the primary write stands."""
        try:
            async with self.db.begin_nested():
                await self.notifications.create(
                    self.actor, action.value, target_type, str(target_id), description, details,
                )
        except SQLAlchemyError as e:
            logger.warning(f"Notification write failed ({action.value} {target_type} {target_id}): {e}")
