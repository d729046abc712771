"""
Tests for TrackerService: cascading renames and deletes, change-log lifecycle, notifications.
"""

import pytest
from fastapi import HTTPException
from unittest.mock import patch, AsyncMock
from sqlalchemy.exc import OperationalError

from conftest import make_user, make_account, change_log_payload
from changetracker.models import ChangeResult, NotificationAction, UNASSIGNED_MANAGER
from changetracker.schemas import ChangeLogUpdate, PerformanceMetrics, UserUpdate
from changetracker.services.tracker_service import TrackerService


pytestmark = pytest.mark.anyio


# ── Users ──────────────────────────────────────────────────────────────

async def test_rename_user_updates_managed_accounts(db):
    admin = await make_user(db, "Root", role="Super Admin")
    alice = await make_user(db, "Alice", role="Analyst")
    await make_account(db, "Acme Search", manager="Alice")
    await make_account(db, "Acme Shopping", manager="Alice")
    await make_account(db, "Other", manager="Bob")

    tracker = TrackerService(db, admin)
    updated = await tracker.update_user(str(alice.id), UserUpdate(name="Alice Smith"))

    assert updated.name == "Alice Smith"
    managers = sorted(a.manager for a in await tracker.accounts.get_all())
    assert managers == ["Alice Smith", "Alice Smith", "Bob"]


async def test_update_user_rejects_taken_email(db):
    admin = await make_user(db, "Root", role="Super Admin")
    alice = await make_user(db, "Alice")
    await make_user(db, "Bob")

    with pytest.raises(HTTPException) as exc:
        await TrackerService(db, admin).update_user(str(alice.id), UserUpdate(email="bob@example.com"))
    assert exc.value.status_code == 409


async def test_delete_user_reassigns_accounts_to_admin(db):
    root = await make_user(db, "Root", role="Super Admin")
    await make_user(db, "Dana", role="Admin")
    carl = await make_user(db, "Carl", role="Analyst")
    await make_account(db, "Acme Search", manager="Carl")

    reassigned = await TrackerService(db, root).delete_user(str(carl.id))

    assert reassigned == 1
    accounts = await TrackerService(db, root).accounts.get_all()
    assert accounts[0].manager == "Dana"


async def test_delete_user_without_admin_leaves_accounts_unassigned(db):
    root = await make_user(db, "Root", role="Super Admin")
    carl = await make_user(db, "Carl", role="Analyst")
    await make_account(db, "Acme Search", manager="Carl")

    tracker = TrackerService(db, root)
    await tracker.delete_user(str(carl.id))

    assert (await tracker.accounts.get_all())[0].manager == UNASSIGNED_MANAGER
    assert [u.name for u in await tracker.users.get_all()] == ["Root"]


async def test_super_admin_is_not_a_reassignment_target(db):
    root = await make_user(db, "Root", role="Super Admin")
    other_root = await make_user(db, "Other Root", role="Super Admin")
    await make_account(db, "Acme Search", manager="Other Root")

    tracker = TrackerService(db, root)
    await tracker.delete_user(str(other_root.id))

    assert (await tracker.accounts.get_all())[0].manager == UNASSIGNED_MANAGER


async def test_cannot_delete_self(db):
    root = await make_user(db, "Root", role="Super Admin")
    with pytest.raises(HTTPException) as exc:
        await TrackerService(db, root).delete_user(str(root.id))
    assert exc.value.status_code == 400


async def test_delete_user_store_failure_is_500(db):
    root = await make_user(db, "Root", role="Super Admin")
    carl = await make_user(db, "Carl")
    tracker = TrackerService(db, root)

    failure = OperationalError("UPDATE accounts", {}, Exception("connection lost"))
    with patch.object(tracker.accounts, "update_manager_name", new_callable=AsyncMock, side_effect=failure):
        with pytest.raises(HTTPException) as exc:
            await tracker.delete_user(str(carl.id))
    assert exc.value.status_code == 500
    assert "connection lost" not in exc.value.detail


# ── Accounts ───────────────────────────────────────────────────────────

async def test_delete_account_removes_its_change_logs(db):
    root = await make_user(db, "Root", role="Super Admin")
    keep = await make_account(db, "Keep")
    drop = await make_account(db, "Drop")
    tracker = TrackerService(db, root)
    await tracker.add_change_log(change_log_payload(keep.id))
    doomed = await tracker.add_change_log(change_log_payload(drop.id, campaign_name="Generic"))
    await tracker.add_comment(doomed.id, "Looks risky")

    removed = await tracker.delete_account(drop.id)

    assert removed == 1
    remaining = await tracker.change_logs.get_all()
    assert [log.account_id for log in remaining] == [keep.id]
    assert await tracker.comments.grouped_by_log() == {}


# ── Change logs ────────────────────────────────────────────────────────

async def test_new_change_log_starts_pending(db):
    analyst = await make_user(db, "Alice", role="Analyst")
    account = await make_account(db)

    log = await TrackerService(db, analyst).add_change_log(change_log_payload(account.id))

    assert log.result == ChangeResult.PENDING
    assert log.result_summary == ""
    assert log.post_change_metrics is None
    assert log.comments == []
    assert log.logged_by_id == str(analyst.id)
    assert log.created_by_name == "Alice"
    assert log.pre_change_metrics.ctr == 2.5


async def test_change_log_requires_existing_account(db):
    analyst = await make_user(db, "Alice", role="Analyst")
    with pytest.raises(HTTPException) as exc:
        await TrackerService(db, analyst).add_change_log(
            change_log_payload("00000000-0000-0000-0000-000000000000")
        )
    assert exc.value.status_code == 400


async def test_recording_outcome_stamps_editor(db):
    alice = await make_user(db, "Alice", role="Analyst")
    bob = await make_user(db, "Bob", role="Admin")
    account = await make_account(db)
    log = await TrackerService(db, alice).add_change_log(change_log_payload(account.id))

    updated = await TrackerService(db, bob).update_change_log(log.id, ChangeLogUpdate(
        post_change_metrics=PerformanceMetrics(ctr=3.0, cpc=1.1, conv_rate=3.4, cpa=33.0),
        result=ChangeResult.SUCCESSFUL,
        result_summary="CPA down 13%",
    ))

    assert updated.result == ChangeResult.SUCCESSFUL
    assert updated.result_summary == "CPA down 13%"
    assert updated.post_change_metrics.cpa == 33.0
    assert updated.last_edited_by_name == "Bob"
    assert updated.last_edited_at is not None
    assert updated.campaign_name == "Brand - Exact"
    assert updated.logged_by_id == str(alice.id)


async def test_change_log_mutations_write_notifications(db):
    alice = await make_user(db, "Alice", role="Analyst")
    account = await make_account(db)
    tracker = TrackerService(db, alice)

    log = await tracker.add_change_log(change_log_payload(account.id))
    await tracker.update_change_log(log.id, ChangeLogUpdate(result_summary="Too early to tell"))
    await tracker.delete_change_log(log.id)

    feed = await tracker.notifications.get_all()
    assert {n.action_type for n in feed} == {
        NotificationAction.CREATE_LOG, NotificationAction.UPDATE_LOG, NotificationAction.DELETE_LOG,
    }
    descriptions = {n.description for n in feed}
    assert "Alice created a new change log for Brand - Exact" in descriptions
    assert "Alice updated the change log for Brand - Exact" in descriptions
    assert "Alice deleted the change log for Brand - Exact" in descriptions
    assert all(n.metadata["campaignName"] == "Brand - Exact" for n in feed)
    assert all(n.metadata["accountId"] == account.id for n in feed)


async def test_notification_failure_does_not_undo_the_change(db):
    alice = await make_user(db, "Alice", role="Analyst")
    account = await make_account(db)
    tracker = TrackerService(db, alice)

    failure = OperationalError("INSERT notifications", {}, Exception("disk full"))
    with patch.object(tracker.notifications, "create", new_callable=AsyncMock, side_effect=failure):
        log = await tracker.add_change_log(change_log_payload(account.id))

    assert (await tracker.change_logs.get(log.id)).campaign_name == "Brand - Exact"
    assert await tracker.notifications.get_all() == []


# ── Comments ───────────────────────────────────────────────────────────

async def test_comment_preview_is_first_hundred_characters(db):
    alice = await make_user(db, "Alice", role="Viewer")
    account = await make_account(db)
    log = await TrackerService(db, alice).add_change_log(change_log_payload(account.id))

    text = "x" * 150
    comment = await TrackerService(db, alice).add_comment(log.id, text)

    feed = await TrackerService(db, alice).notifications.get_all()
    note = next(n for n in feed if n.action_type == NotificationAction.CREATE_COMMENT)
    assert note.description == "Alice commented on Brand - Exact"
    assert note.metadata["commentPreview"] == "x" * 100
    assert note.metadata["logId"] == log.id
    assert note.target_id == comment.id


async def test_only_author_or_super_admin_deletes_comment(db):
    alice = await make_user(db, "Alice", role="Analyst")
    bob = await make_user(db, "Bob", role="Admin")
    root = await make_user(db, "Root", role="Super Admin")
    account = await make_account(db)
    log = await TrackerService(db, alice).add_change_log(change_log_payload(account.id))
    first = await TrackerService(db, alice).add_comment(log.id, "first")
    second = await TrackerService(db, alice).add_comment(log.id, "second")

    with pytest.raises(HTTPException) as exc:
        await TrackerService(db, bob).delete_comment(log.id, first.id)
    assert exc.value.status_code == 403

    await TrackerService(db, alice).delete_comment(log.id, first.id)
    await TrackerService(db, root).delete_comment(log.id, second.id)
    assert (await TrackerService(db, root).change_logs.get(log.id)).comments == []


async def test_snapshot_returns_all_collections(db):
    alice = await make_user(db, "Alice", role="Analyst")
    account = await make_account(db)
    await TrackerService(db, alice).add_change_log(change_log_payload(account.id))

    snap = await TrackerService(db, alice).snapshot()
    assert len(snap.users) == 1
    assert len(snap.accounts) == 1
    assert len(snap.change_logs) == 1
