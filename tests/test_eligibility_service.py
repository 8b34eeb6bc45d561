"""
tests/test_eligibility_service.py — Remaining Claims (fail-open)
=================================================================
"""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from conftest import add_request, run_async
from coinbot.database.models import RequestStatus
from coinbot.engine.errors import ActionCapReached, UnknownAction
from coinbot.services.eligibility_service import (
    approved_counts,
    can_claim,
    check_remaining_claims,
    remaining_claims,
)
from coinbot.services.request_service import submit_request

_DOWN = OperationalError("SELECT", {}, Exception("connection refused"))


class TestRemainingClaims:
    def test_fresh_member_has_full_caps(self, db_engine, tier_catalog):
        assert remaining_claims(db_engine, tier_catalog, 1) == {"post": 1, "share": 2}

    def test_only_approved_requests_count(self, db_engine, tier_catalog):
        add_request(db_engine, 1, "share", status=RequestStatus.APPROVED, coins=2)
        add_request(db_engine, 1, "share", status=RequestStatus.PENDING, coins=2)
        add_request(db_engine, 1, "share", status=RequestStatus.DECLINED, coins=2)
        assert remaining_claims(db_engine, tier_catalog, 1)["share"] == 1

    def test_processed_approvals_still_count(self, db_engine, tier_catalog):
        add_request(db_engine, 1, "post", status=RequestStatus.APPROVED, coins=3, processed=True)
        assert remaining_claims(db_engine, tier_catalog, 1)["post"] == 0

    def test_counts_are_per_member(self, db_engine, tier_catalog):
        add_request(db_engine, 1, "post", status=RequestStatus.APPROVED, coins=3)
        assert remaining_claims(db_engine, tier_catalog, 2)["post"] == 1

    def test_approved_counts(self, db_engine):
        add_request(db_engine, 1, "share", status=RequestStatus.APPROVED)
        add_request(db_engine, 1, "share", status=RequestStatus.APPROVED)
        add_request(db_engine, 1, "post", status=RequestStatus.APPROVED)
        assert approved_counts(db_engine, 1) == {"share": 2, "post": 1}

    def test_store_failure_fails_open(self, db_engine, tier_catalog):
        add_request(db_engine, 1, "post", status=RequestStatus.APPROVED, coins=3)
        with patch(
            "coinbot.services.eligibility_service.approved_counts", side_effect=_DOWN
        ):
            assert remaining_claims(db_engine, tier_catalog, 1) == {"post": 1, "share": 2}


class TestCanClaim:
    def test_post_after_approval_is_blocked(self, db_engine, tier_catalog):
        """Post is worth 3 and capped at 1: once approved, no second claim."""
        assert can_claim(db_engine, tier_catalog, 1, "post")
        add_request(db_engine, 1, "post", status=RequestStatus.APPROVED, coins=3)
        assert not can_claim(db_engine, tier_catalog, 1, "post")

    def test_cap_of_three(self, db_engine, catalog):
        """Suggest is capped at 3: two approvals leave one, the third closes it."""
        assert catalog.get_action("suggest").max_claims == 3
        for _ in range(2):
            add_request(db_engine, 1, "suggest", status=RequestStatus.APPROVED, coins=4)
        assert remaining_claims(db_engine, catalog, 1)["suggest"] == 1
        assert can_claim(db_engine, catalog, 1, "suggest")

        add_request(db_engine, 1, "suggest", status=RequestStatus.APPROVED, coins=4)
        assert remaining_claims(db_engine, catalog, 1)["suggest"] == 0
        assert not can_claim(db_engine, catalog, 1, "suggest")
        with pytest.raises(ActionCapReached):
            submit_request(
                db_engine,
                catalog,
                user_id=1,
                display_name="ada",
                action_id="suggest",
                proof_link="https://example.com/idea",
            )

    def test_uncapped(self, db_engine, tier_catalog):
        for _ in range(5):
            add_request(db_engine, 1, "comment", status=RequestStatus.APPROVED, coins=1)
        assert can_claim(db_engine, tier_catalog, 1, "comment")

    def test_unknown_action(self, db_engine, tier_catalog):
        with pytest.raises(UnknownAction):
            can_claim(db_engine, tier_catalog, 1, "nope")

    def test_store_failure_allows_claim(self, db_engine, tier_catalog):
        with patch(
            "coinbot.services.eligibility_service.approved_counts", side_effect=_DOWN
        ):
            assert can_claim(db_engine, tier_catalog, 1, "post")


class TestCheckRemainingClaims:
    def test_returns_live_counts(self, db_engine, tier_catalog):
        add_request(db_engine, 1, "share", status=RequestStatus.APPROVED, coins=2)
        result = run_async(check_remaining_claims(db_engine, tier_catalog, 1, timeout=5))
        assert result == {"post": 1, "share": 1}

    def test_timeout_fails_open(self, db_engine, tier_catalog):
        async def _slow(*args, **kwargs):
            await asyncio.sleep(1)
            return {}

        with patch("coinbot.services.eligibility_service.run_db", side_effect=_slow):
            result = run_async(
                check_remaining_claims(db_engine, tier_catalog, 1, timeout=0.01)
            )
        assert result == {"post": 1, "share": 2}
