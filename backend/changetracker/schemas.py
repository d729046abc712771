"""
API schemas: the camelCase domain objects exchanged with clients.
Row ↔ domain translation lives in services/data_service.py.
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from changetracker.models import (
    AccountStatus, ChangeCategory, ChangeResult, ExpectedImpact, NotificationAction, UserRole,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


# ── Users ──────────────────────────────────────────────────────────────

class UserOut(CamelModel):
    id: str
    name: str
    email: str
    role: UserRole
    is_active: bool = True
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class UserCreate(CamelModel):
    name: str
    email: EmailStr
    password: str = Field(min_length=6)
    role: UserRole = UserRole.VIEWER

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _strip_required(v)


class UserUpdate(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _strip_required(v)


# ── Accounts ───────────────────────────────────────────────────────────

def _dedupe_tags(tags: list[str]) -> list[str]:
    seen: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class AccountOut(CamelModel):
    id: str
    name: str
    client: str
    manager: str
    currency: str
    status: AccountStatus
    tags: list[str] = []


class AccountCreate(CamelModel):
    name: str
    client: str
    manager: str
    currency: str = "USD"
    status: AccountStatus = AccountStatus.ACTIVE
    tags: list[str] = []

    @field_validator("name", "client", "manager", "currency")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _strip_required(v)

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, v: list[str]) -> list[str]:
        return _dedupe_tags(v)


class AccountUpdate(CamelModel):
    name: Optional[str] = None
    client: Optional[str] = None
    manager: Optional[str] = None
    currency: Optional[str] = None
    status: Optional[AccountStatus] = None
    tags: Optional[list[str]] = None

    @field_validator("name", "client", "manager", "currency")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _strip_required(v)

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return None if v is None else _dedupe_tags(v)


# ── Change logs & comments ─────────────────────────────────────────────

class PerformanceMetrics(CamelModel):
    ctr: Optional[float] = None
    cpc: Optional[float] = None
    conv_rate: Optional[float] = None
    cpa: Optional[float] = None

    def is_empty(self) -> bool:
        return all(v is None for v in (self.ctr, self.cpc, self.conv_rate, self.cpa))


class CommentOut(CamelModel):
    id: str
    log_id: str
    user_id: str
    user_name: str
    timestamp: datetime
    text: str


class CommentCreate(CamelModel):
    text: str = Field(max_length=5000)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        return _strip_required(v)


class ChangeLogOut(CamelModel):
    id: str
    date_of_change: date
    account_id: str
    campaign_name: str
    category: ChangeCategory
    description: str
    reason: str
    expected_impact: ExpectedImpact
    pre_change_metrics: PerformanceMetrics
    post_change_metrics: Optional[PerformanceMetrics] = None
    next_review_date: Optional[date] = None
    logged_by_id: str
    created_by_name: Optional[str] = None
    last_edited_by_id: Optional[str] = None
    last_edited_by_name: Optional[str] = None
    last_edited_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    result: ChangeResult
    result_summary: str
    comments: list[CommentOut] = []


class ChangeLogCreate(CamelModel):
    """Form data for a new log. Outcome fields are not accepted; a new log always starts Pending."""
    date_of_change: date
    account_id: str
    campaign_name: str
    category: ChangeCategory
    description: str
    reason: str
    expected_impact: ExpectedImpact
    pre_change_metrics: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    next_review_date: Optional[date] = None

    @field_validator("account_id", "campaign_name", "description", "reason")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _strip_required(v)


class ChangeLogUpdate(CamelModel):
    date_of_change: Optional[date] = None
    account_id: Optional[str] = None
    campaign_name: Optional[str] = None
    category: Optional[ChangeCategory] = None
    description: Optional[str] = None
    reason: Optional[str] = None
    expected_impact: Optional[ExpectedImpact] = None
    pre_change_metrics: Optional[PerformanceMetrics] = None
    post_change_metrics: Optional[PerformanceMetrics] = None
    next_review_date: Optional[date] = None
    result: Optional[ChangeResult] = None
    result_summary: Optional[str] = None

    @field_validator("account_id", "campaign_name", "description", "reason")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _strip_required(v)


class MetricComparison(CamelModel):
    name: str
    before: float
    after: float
    delta: float


# ── Notifications ──────────────────────────────────────────────────────

class NotificationOut(CamelModel):
    id: str
    user_id: Optional[str] = None
    user_name: str
    action_type: NotificationAction
    target_type: str
    target_id: str
    description: str
    metadata: dict[str, Any] = {}
    created_at: datetime


# ── Reports ────────────────────────────────────────────────────────────

class NameValue(CamelModel):
    name: str
    value: int


class AccountActivity(CamelModel):
    id: str
    name: str
    windows: dict[str, int]


class DashboardStats(CamelModel):
    changes_this_week: int
    changes_this_month: int
    accounts_with_no_recent_update: int


class ReportSummary(CamelModel):
    changes_by_category: list[NameValue]
    changes_by_user: list[NameValue]
    successful_changes_by_user: list[NameValue]
    account_activity: list[AccountActivity]
