"""
Reporting Service: Aggregates over the in-memory change-log collection.

Everything here is a pure, synchronous fold over lists of domain objects
(schemas), recomputed per request from the full snapshot.
"""

import calendar
import logging
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

from changetracker.models import ChangeResult
from changetracker.schemas import (
    AccountActivity, AccountOut, ChangeLogOut, DashboardStats, MetricComparison, NameValue,
    ReportSummary, UserOut,
)

logger = logging.getLogger(__name__)

UNKNOWN_USER = "Unknown"

# Rolling windows (days) for per-account activity
ACTIVITY_WINDOWS = (3, 7, 30, 90)

METRIC_LABELS = (
    ("ctr", "CTR (%)"),
    ("cpc", "CPC"),
    ("conv_rate", "Conv Rate (%)"),
    ("cpa", "CPA"),
)


def _as_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def _to_name_values(counts: Counter) -> list[NameValue]:
    return [NameValue(name=name, value=value) for name, value in counts.items()]


def _user_names(users: Iterable[UserOut]) -> dict[str, str]:
    return {u.id: u.name for u in users}


def changes_by_category(logs: list[ChangeLogOut]) -> list[NameValue]:
    """Number of logs per category, in first-seen order."""
    return _to_name_values(Counter(log.category.value for log in logs))


def changes_by_user(logs: list[ChangeLogOut], users: list[UserOut]) -> list[NameValue]:
    """Number of logs per logging user's name; logs from deleted users count as "Unknown"."""
    names = _user_names(users)
    return _to_name_values(Counter(names.get(log.logged_by_id, UNKNOWN_USER) for log in logs))


def successful_changes_by_user(logs: list[ChangeLogOut], users: list[UserOut]) -> list[NameValue]:
    """Logs with result Successful per logging user, highest first."""
    names = _user_names(users)
    counts = Counter(
        names.get(log.logged_by_id, UNKNOWN_USER)
        for log in logs
        if log.result == ChangeResult.SUCCESSFUL
    )
    return sorted(_to_name_values(counts), key=lambda nv: nv.value, reverse=True)


def account_activity(
    accounts: list[AccountOut],
    logs: list[ChangeLogOut],
    now: Union[date, datetime],
    windows: tuple[int, ...] = ACTIVITY_WINDOWS,
) -> list[AccountActivity]:
    """Per account, how many changes fall in each of the last N days (inclusive of the cutoff day)."""
    today = _as_date(now)
    cutoffs = {days: today - timedelta(days=days) for days in windows}
    by_account: dict[str, list[date]] = {}
    for log in logs:
        by_account.setdefault(log.account_id, []).append(log.date_of_change)

    activity = []
    for account in accounts:
        dates = by_account.get(account.id, [])
        activity.append(AccountActivity(
            id=account.id,
            name=account.name,
            windows={str(days): sum(1 for d in dates if d >= cutoff) for days, cutoff in cutoffs.items()},
        ))
    return activity


def _one_month_before(day: date) -> date:
    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def dashboard_stats(accounts: list[AccountOut], logs: list[ChangeLogOut], now: Union[date, datetime]) -> DashboardStats:
    """Headline numbers: changes this week/month and accounts with no change in the last 7 days."""
    today = _as_date(now)
    week_ago = today - timedelta(days=7)
    month_ago = _one_month_before(today)

    recent = [log for log in logs if log.date_of_change >= week_ago]
    updated_accounts = {log.account_id for log in recent}
    return DashboardStats(
        changes_this_week=len(recent),
        changes_this_month=sum(1 for log in logs if log.date_of_change >= month_ago),
        accounts_with_no_recent_update=sum(1 for a in accounts if a.id not in updated_accounts),
    )


def metric_comparison(log: ChangeLogOut) -> list[MetricComparison]:
    """Before/after pairs for each metric recorded on both sides of the change."""
    if log.post_change_metrics is None:
        return []
    rows = []
    for field, label in METRIC_LABELS:
        before = getattr(log.pre_change_metrics, field)
        after = getattr(log.post_change_metrics, field)
        if before is None or after is None:
            continue
        rows.append(MetricComparison(name=label, before=before, after=after, delta=round(after - before, 6)))
    return rows


def filter_change_logs(
    logs: list[ChangeLogOut],
    accounts: list[AccountOut],
    search: Optional[str] = None,
    account_id: Optional[str] = None,
) -> list[ChangeLogOut]:
    """Restrict to one account and/or a case-insensitive search over the log's text and its account name."""
    account_names = {a.id: a.name.lower() for a in accounts}
    term = (search or "").strip().lower()

    matched = []
    for log in logs:
        if account_id and account_id != "all" and log.account_id != account_id:
            continue
        if term:
            haystack = (
                log.campaign_name.lower(),
                log.description.lower(),
                log.reason.lower(),
                log.category.value.lower(),
                account_names.get(log.account_id, ""),
            )
            if not any(term in field for field in haystack):
                continue
        matched.append(log)
    return matched


def build_summary(
    accounts: list[AccountOut],
    logs: list[ChangeLogOut],
    users: list[UserOut],
    now: Union[date, datetime],
) -> ReportSummary:
    return ReportSummary(
        changes_by_category=changes_by_category(logs),
        changes_by_user=changes_by_user(logs, users),
        successful_changes_by_user=successful_changes_by_user(logs, users),
        account_activity=account_activity(accounts, logs, now),
    )
