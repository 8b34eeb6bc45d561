"""
tests/test_request_service.py — Request Lifecycle
==================================================

Submission, review, both batch processors and the stray reward, run
against in-memory SQLite.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from conftest import add_request
from coinbot.database.models import Base, CoinRequest, RequestStatus, User
from coinbot.engine.errors import (
    ActionCapReached,
    StoreUnavailable,
    StrayAlreadyClaimed,
    UnknownAction,
)
from coinbot.services.balance_service import reconcile_balance
from coinbot.services.request_service import (
    claim_stray_reward,
    list_requests,
    process_all,
    process_approved,
    process_declined,
    review_request,
    submit_request,
)


def _request(engine, request_id: int) -> CoinRequest:
    with Session(engine) as session:
        row = session.get(CoinRequest, request_id)
        session.expunge(row)
        return row


def _coins(engine, user_id: int) -> int | None:
    with Session(engine) as session:
        user = session.get(User, user_id)
        return user.coins if user else None


def _submit(engine, catalog, action_id: str, user_id: int = 1, **kwargs):
    return submit_request(
        engine,
        catalog,
        user_id=user_id,
        display_name="ada",
        action_id=action_id,
        proof_link="https://example.com/proof",
        **kwargs,
    )


# ===========================================================================
# Submission
# ===========================================================================
class TestSubmitRequest:
    def test_stores_pending_request(self, db_engine, tier_catalog):
        result = _submit(db_engine, tier_catalog, "post", note="first idea")
        row = _request(db_engine, result.request_id)
        assert row.status == RequestStatus.PENDING
        assert row.processed is False
        assert row.coins_given == 3
        assert row.action == "post"
        assert row.proof_link == "https://example.com/proof"
        assert row.note == "first idea"
        assert result.user_recorded

    def test_creates_user_at_seed(self, db_engine, tier_catalog):
        _submit(db_engine, tier_catalog, "comment", seed=2)
        assert _coins(db_engine, 1) == 2

    def test_variable_action_has_no_value_yet(self, db_engine, tier_catalog):
        result = _submit(db_engine, tier_catalog, "help")
        assert result.coins_given is None
        assert _request(db_engine, result.request_id).coins_given is None

    def test_unknown_action(self, db_engine, tier_catalog):
        with pytest.raises(UnknownAction):
            _submit(db_engine, tier_catalog, "nope")

    def test_capped_action_rejected_after_approval(self, db_engine, tier_catalog):
        add_request(db_engine, 1, "post", status=RequestStatus.APPROVED, coins=3)
        with pytest.raises(ActionCapReached):
            _submit(db_engine, tier_catalog, "post")
        assert len(list_requests(db_engine, user_id=1)) == 1

    def test_pending_claims_do_not_use_up_the_cap(self, db_engine, tier_catalog):
        _submit(db_engine, tier_catalog, "post")
        _submit(db_engine, tier_catalog, "post")
        assert len(list_requests(db_engine, user_id=1)) == 2

    def test_store_failure_on_request_write(self, db_engine, tier_catalog):
        with patch(
            "coinbot.services.request_service.CoinRequest",
            side_effect=OperationalError("INSERT", {}, Exception("down")),
        ):
            with pytest.raises(StoreUnavailable):
                _submit(db_engine, tier_catalog, "comment")

    def test_user_upsert_failure_keeps_request(self, db_engine, tier_catalog):
        with patch(
            "coinbot.services.request_service.get_or_create_user",
            side_effect=OperationalError("INSERT", {}, Exception("down")),
        ):
            result = _submit(db_engine, tier_catalog, "comment")
        assert result.user_recorded is False
        assert _request(db_engine, result.request_id).status == RequestStatus.PENDING


# ===========================================================================
# Review
# ===========================================================================
class TestReviewRequest:
    def test_approve(self, db_engine, tier_catalog):
        req_id = add_request(db_engine, 1, "comment", coins=1)
        view = review_request(db_engine, tier_catalog, req_id, approve=True, reviewer_id=7)
        assert view.status == RequestStatus.APPROVED
        assert _request(db_engine, req_id).reviewed_by == 7

    def test_decline(self, db_engine, tier_catalog):
        req_id = add_request(db_engine, 1, "comment", coins=1)
        view = review_request(db_engine, tier_catalog, req_id, approve=False, reviewer_id=7)
        assert view.status == RequestStatus.DECLINED

    def test_sets_coins_for_variable_action(self, db_engine, tier_catalog):
        req_id = add_request(db_engine, 1, "help")
        view = review_request(
            db_engine, tier_catalog, req_id, approve=True, reviewer_id=7, coins=6
        )
        assert view.coins_given == 6

    def test_unknown_request(self, db_engine, tier_catalog):
        with pytest.raises(LookupError):
            review_request(db_engine, tier_catalog, 999, approve=True, reviewer_id=7)

    def test_processed_request_is_final(self, db_engine, tier_catalog):
        req_id = add_request(
            db_engine, 1, "comment", status=RequestStatus.APPROVED, coins=1, processed=True
        )
        with pytest.raises(ValueError):
            review_request(db_engine, tier_catalog, req_id, approve=False, reviewer_id=7)

    def test_negative_coins(self, db_engine, tier_catalog):
        req_id = add_request(db_engine, 1, "help")
        with pytest.raises(ValueError):
            review_request(
                db_engine, tier_catalog, req_id, approve=True, reviewer_id=7, coins=-1
            )

    def test_approval_over_cap_rejected(self, db_engine, tier_catalog):
        add_request(db_engine, 1, "post", status=RequestStatus.APPROVED, coins=3)
        second = add_request(db_engine, 1, "post", coins=3)
        with pytest.raises(ActionCapReached):
            review_request(db_engine, tier_catalog, second, approve=True, reviewer_id=7)
        assert _request(db_engine, second).status == RequestStatus.PENDING


class TestListRequests:
    def test_filters(self, db_engine):
        add_request(db_engine, 1, "comment")
        add_request(db_engine, 2, "comment")
        add_request(db_engine, 1, "post", status=RequestStatus.APPROVED, coins=3, processed=True)

        assert len(list_requests(db_engine)) == 3
        assert len(list_requests(db_engine, user_id=1)) == 2
        pending = list_requests(db_engine, status=RequestStatus.PENDING)
        assert {r.user_id for r in pending} == {1, 2}
        assert len(list_requests(db_engine, include_processed=False)) == 2

    def test_newest_first(self, db_engine):
        first = add_request(db_engine, 1, "comment")
        second = add_request(db_engine, 1, "comment")
        assert [r.id for r in list_requests(db_engine)] == [second, first]


# ===========================================================================
# Processing
# ===========================================================================
class TestProcessApproved:
    def test_post_scenario(self, db_engine, tier_catalog):
        """Submit Post, approve it, process: +3 coins and the cap is used up."""
        result = _submit(db_engine, tier_catalog, "post")
        review_request(db_engine, tier_catalog, result.request_id, approve=True, reviewer_id=7)

        report = process_approved(db_engine)
        assert report.processed == 1
        assert report.coins_granted == 3
        assert _coins(db_engine, 1) == 3
        assert _request(db_engine, result.request_id).processed is True
        with pytest.raises(ActionCapReached):
            _submit(db_engine, tier_catalog, "post")

    def test_running_twice_grants_once(self, db_engine):
        add_request(db_engine, 1, "comment", status=RequestStatus.APPROVED, coins=2)
        process_approved(db_engine)
        report = process_approved(db_engine)
        assert report.processed == 0
        assert _coins(db_engine, 1) == 2

    def test_processed_rows_ignored(self, db_engine):
        add_request(db_engine, 1, "comment", status=RequestStatus.APPROVED, coins=2, processed=True)
        assert process_approved(db_engine).processed == 0
        assert _coins(db_engine, 1) is None

    def test_variable_without_value_is_skipped(self, db_engine):
        req_id = add_request(db_engine, 1, "help", status=RequestStatus.APPROVED)
        report = process_approved(db_engine)
        assert report.skipped == 1
        assert report.processed == 0
        assert _request(db_engine, req_id).processed is False

    def test_pending_and_declined_untouched(self, db_engine):
        add_request(db_engine, 1, "comment", coins=1)
        add_request(db_engine, 1, "comment", status=RequestStatus.DECLINED, coins=1)
        assert process_approved(db_engine).processed == 0

    def test_batch_size(self, db_engine):
        for _ in range(3):
            add_request(db_engine, 1, "comment", status=RequestStatus.APPROVED, coins=1)
        assert process_approved(db_engine, batch_size=2).processed == 2
        assert process_approved(db_engine, batch_size=2).processed == 1
        assert _coins(db_engine, 1) == 3

    def test_one_failure_does_not_stop_the_batch(self, db_engine):
        ids = [
            add_request(db_engine, uid, "comment", status=RequestStatus.APPROVED, coins=1)
            for uid in (1, 2, 3)
        ]
        from coinbot.services import request_service

        real_grant = request_service._grant_one

        def _flaky(engine, request_id, *, seed):
            if request_id == ids[1]:
                raise OperationalError("UPDATE", {}, Exception("boom"))
            return real_grant(engine, request_id, seed=seed)

        with patch.object(request_service, "_grant_one", side_effect=_flaky):
            report = process_approved(db_engine)

        assert report.processed == 2
        assert report.failed == 1
        assert _coins(db_engine, 1) == 1
        assert _coins(db_engine, 3) == 1
        assert _request(db_engine, ids[1]).processed is False

        # Retried on the next run
        assert process_approved(db_engine).processed == 1
        assert _coins(db_engine, 2) == 1

    def test_new_user_gets_seed_plus_grant(self, db_engine):
        add_request(db_engine, 1, "comment", status=RequestStatus.APPROVED, coins=2)
        process_approved(db_engine, seed=5)
        assert _coins(db_engine, 1) == 7

    def test_after_reconcile_nothing_is_granted_twice(self, db_engine):
        add_request(db_engine, 1, "comment", status=RequestStatus.APPROVED, coins=4)
        reconcile_balance(db_engine, 1)
        assert process_approved(db_engine).processed == 0
        assert _coins(db_engine, 1) == 4

    def test_matches_reconcile(self, db_engine):
        for coins in (1, 3, 5):
            add_request(db_engine, 1, "comment", status=RequestStatus.APPROVED, coins=coins)
        process_approved(db_engine)
        result = reconcile_balance(db_engine, 1)
        assert not result.corrected
        assert result.after == 9


# ---------------------------------------------------------------------------
# Overlapping runs: two engines on one SQLite file stand in for the bot and
# the API process.  ``_before_first_write`` lets the rival commit after the
# run has picked the request up but before it writes anything.
# ---------------------------------------------------------------------------
@pytest.fixture
def file_engines(tmp_path):
    url = f"sqlite:///{tmp_path / 'coins.db'}"
    first, second = create_engine(url), create_engine(url)
    Base.metadata.create_all(first)
    yield first, second
    first.dispose()
    second.dispose()


def _add_user(engine, user_id: int, coins: int = 0) -> None:
    with Session(engine) as session:
        session.add(User(id=user_id, display_name="ada", coins=coins))
        session.commit()


def _before_first_write(engine, rival) -> list[str]:
    fired: list[str] = []

    def _hook(conn, cursor, statement, parameters, context, executemany):
        if not fired and statement.lstrip().upper().startswith(("UPDATE", "INSERT")):
            fired.append(statement)
            rival()

    event.listen(engine, "before_cursor_execute", _hook)
    return fired


class TestOverlappingRuns:
    def test_two_processing_runs_grant_once(self, file_engines):
        first, second = file_engines
        _add_user(second, 1)
        add_request(second, 1, "post", status=RequestStatus.APPROVED, coins=3)

        rival_reports = []
        fired = _before_first_write(first, lambda: rival_reports.append(process_approved(second)))
        report = process_approved(first)

        assert fired
        assert rival_reports[0].processed == 1
        assert report.processed == 0
        assert report.skipped == 1
        assert _coins(first, 1) == 3

    def test_reconcile_between_pickup_and_grant(self, file_engines):
        first, second = file_engines
        _add_user(second, 1)
        req_id = add_request(second, 1, "post", status=RequestStatus.APPROVED, coins=3)

        fired = _before_first_write(first, lambda: reconcile_balance(second, 1))
        report = process_approved(first)

        assert fired
        assert report.processed == 0
        assert _coins(first, 1) == 3
        assert _request(first, req_id).processed is True
        assert not reconcile_balance(first, 1).corrected

    def test_two_declined_runs_close_once(self, file_engines):
        first, second = file_engines
        add_request(second, 1, "comment", status=RequestStatus.DECLINED)

        rival_reports = []
        _before_first_write(first, lambda: rival_reports.append(process_declined(second)))
        report = process_declined(first)

        assert rival_reports[0].processed == 1
        assert report.processed == 0


class TestProcessDeclined:
    def test_marks_processed_without_balance_change(self, db_engine):
        req_id = add_request(db_engine, 1, "comment", status=RequestStatus.DECLINED, coins=1)
        report = process_declined(db_engine)
        assert report.processed == 1
        assert _request(db_engine, req_id).processed is True
        assert _coins(db_engine, 1) is None

    def test_idempotent(self, db_engine):
        add_request(db_engine, 1, "comment", status=RequestStatus.DECLINED)
        process_declined(db_engine)
        assert process_declined(db_engine).processed == 0


class TestProcessAll:
    def test_report_shape(self, db_engine):
        add_request(db_engine, 1, "comment", status=RequestStatus.APPROVED, coins=2)
        add_request(db_engine, 2, "comment", status=RequestStatus.DECLINED, coins=2)
        result = process_all(db_engine)
        assert result["approved"] == {
            "processed": 1, "coins_granted": 2, "skipped": 0, "failed": 0, "users": 1,
        }
        assert result["declined"]["processed"] == 1


# ===========================================================================
# Stray reward
# ===========================================================================
class TestStrayReward:
    def _claim(self, engine, user_id=1):
        return claim_stray_reward(
            engine, user_id=user_id, display_name="ada", amount=2, window_hours=24
        )

    def test_grants_immediately(self, db_engine):
        assert self._claim(db_engine) == 2
        assert _coins(db_engine, 1) == 2

    def test_second_click_rejected(self, db_engine):
        self._claim(db_engine)
        with pytest.raises(StrayAlreadyClaimed):
            self._claim(db_engine)
        assert _coins(db_engine, 1) == 2

    def test_other_members_can_still_claim(self, db_engine):
        self._claim(db_engine, user_id=1)
        assert self._claim(db_engine, user_id=2) == 2

    def test_claim_outside_window_allowed(self, db_engine):
        add_request(
            db_engine, 1, "stray",
            status=RequestStatus.APPROVED, coins=2, processed=True,
            created_at=datetime.now(UTC) - timedelta(hours=30),
        )
        assert self._claim(db_engine) == 2

    def test_survives_reconcile(self, db_engine):
        self._claim(db_engine)
        assert not reconcile_balance(db_engine, 1).corrected
        assert process_approved(db_engine).processed == 0
