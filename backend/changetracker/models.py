"""
Change Tracker: Database Models
Users, ad accounts, change logs with their comments, and the notification audit trail.
Columns are snake_case; the API layer (schemas.py) exposes camelCase domain objects.
"""

import uuid
import enum
from datetime import date, datetime, timezone
from sqlalchemy import (
    String, Text, Float, Boolean, Date, DateTime, Integer, JSON, ForeignKey, Index, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from changetracker.database import Base


def _utcnow() -> datetime:
    """Naive UTC now; matches DB columns (TIMESTAMP WITHOUT TIME ZONE)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class UserRole(str, enum.Enum):
    SUPER_ADMIN = "Super Admin"
    ADMIN = "Admin"
    ANALYST = "Analyst"
    VIEWER = "Viewer"


class AccountStatus(str, enum.Enum):
    ACTIVE = "Active"
    PAUSED = "Paused"
    IN_REVIEW = "In Review"


class ChangeCategory(str, enum.Enum):
    BIDDING = "Bidding"
    AD_COPY = "Ad Copy"
    KEYWORDS = "Keywords"
    NEGATIVE_KEYWORDS = "Negative Keywords"
    BUDGET = "Budget"
    TARGETING = "Targeting"
    TRACKING = "Tracking"
    OTHER = "Other"


class ExpectedImpact(str, enum.Enum):
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    TEST = "Test"
    RISK = "Risk"


class ChangeResult(str, enum.Enum):
    SUCCESSFUL = "Successful"
    NEUTRAL = "Neutral"
    REVERTED = "Reverted"
    PENDING = "Pending"


class NotificationAction(str, enum.Enum):
    CREATE_LOG = "create_log"
    UPDATE_LOG = "update_log"
    DELETE_LOG = "delete_log"
    CREATE_COMMENT = "create_comment"
    DELETE_COMMENT = "delete_comment"


# Sentinel manager name for accounts whose manager was deleted with no Admin left
UNASSIGNED_MANAGER = "Unassigned"


# ══════════════════════════════════════════════════════════════════════
#  USERS
# ══════════════════════════════════════════════════════════════════════

class User(Base):
    """App user for login and access control."""
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), default=UserRole.VIEWER.value)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_login_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    # Bumped on sign-out; tokens carrying an older version no longer resolve to a session
    token_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_users_email", "email"),
        Index("ix_users_role", "role"),
    )


# ══════════════════════════════════════════════════════════════════════
#  ACCOUNTS: Managed advertising accounts
# ══════════════════════════════════════════════════════════════════════

class Account(Base):
    """An advertising account being tracked. Manager is stored by display name."""
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    client: Mapped[str] = mapped_column(String(512), nullable=False)
    manager: Mapped[str] = mapped_column(String(255), nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="USD")
    status: Mapped[str] = mapped_column(String(20), default=AccountStatus.ACTIVE.value)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    change_logs: Mapped[list["ChangeLog"]] = relationship(
        "ChangeLog", back_populates="account", cascade="all, delete-orphan", passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_accounts_manager", "manager"),
        Index("ix_accounts_status", "status"),
    )


# ══════════════════════════════════════════════════════════════════════
#  CHANGE LOGS: One recorded campaign change with before/after metrics
# ══════════════════════════════════════════════════════════════════════

class ChangeLog(Base):
    """A change made to a campaign, with pre/post performance and its outcome."""
    __tablename__ = "change_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    date_of_change: Mapped[date] = mapped_column(Date, nullable=False)
    account_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    campaign_name: Mapped[str] = mapped_column(String(512), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    expected_impact: Mapped[str] = mapped_column(String(20), nullable=False)

    pre_change_ctr: Mapped[float] = mapped_column(Float, nullable=True)
    pre_change_cpc: Mapped[float] = mapped_column(Float, nullable=True)
    pre_change_conv_rate: Mapped[float] = mapped_column(Float, nullable=True)
    pre_change_cpa: Mapped[float] = mapped_column(Float, nullable=True)
    post_change_ctr: Mapped[float] = mapped_column(Float, nullable=True)
    post_change_cpc: Mapped[float] = mapped_column(Float, nullable=True)
    post_change_conv_rate: Mapped[float] = mapped_column(Float, nullable=True)
    post_change_cpa: Mapped[float] = mapped_column(Float, nullable=True)

    next_review_date: Mapped[date] = mapped_column(Date, nullable=True)
    logged_by_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    created_by_name: Mapped[str] = mapped_column(String(255), nullable=True)
    last_edited_by_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=True)
    last_edited_by_name: Mapped[str] = mapped_column(String(255), nullable=True)
    last_edited_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    result: Mapped[str] = mapped_column(String(20), default=ChangeResult.PENDING.value)
    result_summary: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    account: Mapped["Account"] = relationship("Account", back_populates="change_logs")
    comments: Mapped[list["Comment"]] = relationship(
        "Comment", back_populates="change_log", cascade="all, delete-orphan",
        passive_deletes=True, order_by="Comment.timestamp",
    )

    __table_args__ = (
        Index("ix_change_logs_account_id", "account_id"),
        Index("ix_change_logs_logged_by_id", "logged_by_id"),
        Index("ix_change_logs_date_of_change", "date_of_change"),
        Index("ix_change_logs_result", "result"),
    )


class Comment(Base):
    """Discussion entry on exactly one change log."""
    __tablename__ = "comments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    log_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("change_logs.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    text: Mapped[str] = mapped_column(Text, nullable=False)

    change_log: Mapped["ChangeLog"] = relationship("ChangeLog", back_populates="comments")

    __table_args__ = (
        Index("ix_comments_log_id", "log_id"),
    )


# ══════════════════════════════════════════════════════════════════════
#  NOTIFICATIONS: Audit trail of change-log and comment mutations
# ══════════════════════════════════════════════════════════════════════

class Notification(Base):
    """Audit entry written whenever a change log or comment is created, updated or deleted."""
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=True)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_type: Mapped[str] = mapped_column(String(20), nullable=False)  # log, comment
    target_id: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (
        Index("ix_notifications_created_at", "created_at"),
        Index("ix_notifications_target", "target_type", "target_id"),
    )
