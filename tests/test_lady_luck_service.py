"""
Service tests for the roll/claim/status flow against a real SQLAlchemy session.
"""
import random
from datetime import datetime, timedelta, timezone

import pytest

from ladyluck.models.lady_luck_state import LadyLuckState
from ladyluck.services import lady_luck_service as svc
from ladyluck.services import pending_store
from ladyluck.services.errors import (
    CORRUPT_PENDING_DATA,
    COOLDOWN_ACTIVE,
    INSUFFICIENT_POINTS,
    INSUFFICIENT_TICKETS,
    INVALID_AMOUNT,
    INVALID_INDEX,
    NO_PENDING_ROLL,
    PENDING_EXISTS,
    LadyLuckRejection,
)
from ladyluck.services.pending_store import load_state, read_pending
from ladyluck.services.reward_table import LADY_LUCK_REWARDS, SECONDARY_DROP_ID

pytestmark = pytest.mark.asyncio

T0 = datetime(2026, 5, 1, 18, 30, tzinfo=timezone.utc)
HOUR = timedelta(hours=1)
MS = timedelta(milliseconds=1)


async def _reject(coro):
    with pytest.raises(LadyLuckRejection) as ei:
        await coro
    return ei.value.reason


async def test_end_to_end_free_roll_and_claim(session):
    receipt = await svc.roll(session, "p1", "free", rng=random.Random(3), now=T0)
    await session.commit()

    assert receipt["method"] == "free"
    assert receipt["freeRollEligible"] is False
    assert receipt["msUntilEligible"] == 3_600_000
    assert "rewards" not in receipt

    state = await load_state(session, "p1")
    pending = read_pending(state)
    assert len(pending.rewards) == 9

    res = await svc.claim(session, "p1", 4, rng=random.Random(5), now=T0 + MS)
    await session.commit()

    assert res["chosenIndex"] == 4
    assert len(res["rewards"]) == 9
    assert res["chosenReward"] == res["rewards"][4]
    assert res["rewards"] == [r.to_dict() for r in pending.rewards]

    st = await svc.status(session, "p1", now=T0 + MS)
    assert st["hasPendingRoll"] is False


async def test_second_roll_without_claim_is_rejected(session):
    await svc.credit_tickets(session, "p1", 2)
    await session.commit()

    await svc.roll(session, "p1", "ticket", now=T0)
    await session.commit()

    assert await _reject(svc.roll(session, "p1", "ticket", now=T0)) == PENDING_EXISTS
    await session.rollback()

    # no payment was attempted on the rejected roll
    st = await svc.status(session, "p1", now=T0)
    assert st["ticketBalance"] == 1
    assert st["hasPendingRoll"] is True


async def test_claim_twice_fails_second_time(session):
    await svc.roll(session, "p1", "free", now=T0)
    await session.commit()

    await svc.claim(session, "p1", 0, now=T0)
    await session.commit()

    assert await _reject(svc.claim(session, "p1", 0, now=T0)) == NO_PENDING_ROLL


async def test_claim_without_any_state(session):
    assert await _reject(svc.claim(session, "ghost", 2, now=T0)) == NO_PENDING_ROLL


@pytest.mark.parametrize("index", [-1, 9, 100, "4", 4.0, None, True])
async def test_invalid_index(session, index):
    await svc.roll(session, "p1", "free", now=T0)
    await session.commit()

    assert await _reject(svc.claim(session, "p1", index, now=T0)) == INVALID_INDEX
    await session.rollback()

    st = await svc.status(session, "p1", now=T0)
    assert st["hasPendingRoll"] is True


async def test_free_roll_cooldown_boundary(session):
    await svc.roll(session, "p1", "free", now=T0)
    await session.commit()
    await svc.claim(session, "p1", 1, now=T0)
    await session.commit()

    assert await _reject(svc.roll(session, "p1", "free", now=T0 + HOUR - MS)) == COOLDOWN_ACTIVE
    await session.rollback()

    st = await svc.status(session, "p1", now=T0 + HOUR - MS)
    assert st["freeRollEligible"] is False
    assert st["msUntilEligible"] == 1
    assert st["hasPendingRoll"] is False

    await svc.roll(session, "p1", "free", now=T0 + HOUR)
    await session.commit()
    st = await svc.status(session, "p1", now=T0 + HOUR)
    assert st["hasPendingRoll"] is True


async def test_ticket_debit(session):
    await svc.credit_tickets(session, "p1", 1)
    await session.commit()

    res = await svc.roll(session, "p1", "ticket", now=T0)
    await session.commit()
    assert res["ticketBalance"] == 0

    await svc.claim(session, "p1", 8, now=T0)
    await session.commit()

    assert await _reject(svc.roll(session, "p1", "ticket", now=T0)) == INSUFFICIENT_TICKETS
    await session.rollback()
    st = await svc.status(session, "p1", now=T0)
    assert st["ticketBalance"] == 0
    assert st["hasPendingRoll"] is False


async def test_point_roll_debits_wallet(session, add_wallet):
    await add_wallet("p1", echo_points=60, gold=7)

    res = await svc.roll(session, "p1", "point", now=T0)
    await session.commit()
    assert res["pointBalance"] == 10

    await svc.claim(session, "p1", 3, now=T0)
    await session.commit()

    assert await _reject(svc.roll(session, "p1", "point", now=T0)) == INSUFFICIENT_POINTS
    await session.rollback()
    st = await svc.status(session, "p1", now=T0)
    assert st["pointBalance"] == 10
    assert st["goldBalance"] == 7


async def test_point_roll_without_wallet(session):
    assert await _reject(svc.roll(session, "p1", "point", now=T0)) == INSUFFICIENT_POINTS


async def test_secondary_drop_forced(session, rng_low):
    await svc.credit_tickets(session, "p1", 3)
    await session.commit()

    for index in (0, 4, 8):
        await svc.roll(session, "p1", "ticket", rng=random.Random(index), now=T0)
        await session.commit()

        res = await svc.claim(session, "p1", index, rng=rng_low, now=T0)
        await session.commit()
        assert res["secondaryDrop"] == {"id": SECONDARY_DROP_ID, "displayName": "Lucky Lady"}


async def test_secondary_drop_absent(session, rng_high):
    await svc.roll(session, "p1", "free", now=T0)
    await session.commit()
    res = await svc.claim(session, "p1", 2, rng=rng_high, now=T0)
    assert res["secondaryDrop"] is None


async def test_forced_rng_draws_first_catalog_entry(session, rng_low):
    await svc.roll(session, "p1", "free", rng=rng_low, now=T0)
    await session.commit()
    res = await svc.claim(session, "p1", 6, now=T0)
    first = LADY_LUCK_REWARDS.entries[0].to_dict()
    assert all(r == first for r in res["rewards"])


async def test_corrupt_pending_is_reported_and_slot_stays(session):
    session.add(LadyLuckState(user_id="p1", lottery_tickets=0, pending_roll="{broken"))
    await session.commit()

    assert await _reject(svc.claim(session, "p1", 0, now=T0)) == CORRUPT_PENDING_DATA
    await session.rollback()

    assert await _reject(svc.roll(session, "p1", "free", now=T0)) == PENDING_EXISTS
    await session.rollback()

    assert await svc.admin_clear_pending(session, "p1") is True
    await session.commit()
    assert await svc.admin_clear_pending(session, "p1") is False

    await svc.roll(session, "p1", "free", now=T0)
    await session.commit()
    st = await svc.status(session, "p1", now=T0)
    assert st["hasPendingRoll"] is True


async def test_status_defaults_without_row(session):
    st = await svc.status(session, "fresh", now=T0)
    assert st == {
        "freeRollEligible": True,
        "msUntilEligible": 0,
        "ticketBalance": 0,
        "pointBalance": 0,
        "hasPendingRoll": False,
        "goldBalance": 0,
    }
    # pure read: no state row was created
    assert await load_state(session, "fresh") is None


@pytest.mark.parametrize("amount", [0, -3, True, "5", 2.5])
async def test_credit_rejects_bad_amount(session, amount):
    assert await _reject(svc.credit_tickets(session, "p1", amount)) == INVALID_AMOUNT


async def test_credit_accumulates(session):
    assert await svc.credit_tickets(session, "p1", 3) == 3
    assert await svc.credit_tickets(session, "p1", 4) == 7
    await session.commit()
    st = await svc.status(session, "p1", now=T0)
    assert st["ticketBalance"] == 7


async def test_claim_after_committed_claim_sees_empty_slot(session_maker):
    async with session_maker() as s:
        await svc.roll(s, "p1", "free", now=T0)
        await s.commit()

    async with session_maker() as a, session_maker() as b:
        # both requests have read the same pending batch
        state_a = await load_state(a, "p1")
        await load_state(b, "p1")

        await svc.claim(b, "p1", 1, now=T0)
        await b.commit()

        assert state_a.has_pending
        assert await _reject(svc.claim(a, "p1", 1, now=T0)) == NO_PENDING_ROLL
        await a.rollback()


async def test_concurrent_claim_loses_version_check(session_maker, monkeypatch):
    async with session_maker() as s:
        await svc.roll(s, "p1", "free", now=T0)
        await s.commit()

    real_load_state = svc.load_state
    outcomes = []

    async with session_maker() as a:

        async def load_then_race(session, user_id, *, for_update=False):
            state = await real_load_state(session, user_id, for_update=for_update)
            if session is a:
                # A holds the decoded batch; B claims and commits before A writes
                async with session_maker() as b:
                    res = await svc.claim(b, user_id, 1, now=T0)
                    await b.commit()
                outcomes.append(("b", res["chosenIndex"]))
            return state

        monkeypatch.setattr(svc, "load_state", load_then_race)

        reason = await _reject(svc.claim(a, "p1", 2, now=T0))
        outcomes.append(("a", reason))
        await a.rollback()

    assert outcomes == [("b", 1), ("a", NO_PENDING_ROLL)]

    async with session_maker() as s:
        st = await svc.status(s, "p1", now=T0)
        assert st["hasPendingRoll"] is False


def _row_inserted_by_other_request(monkeypatch, session_maker, tickets):
    """The first state lookup misses, then another request commits the row."""
    real_load_state = pending_store.load_state
    seen = []

    async def racing_load_state(session, user_id, *, for_update=False):
        if not seen:
            seen.append(user_id)
            async with session_maker() as other:
                other.add(LadyLuckState(user_id=user_id, lottery_tickets=tickets))
                await other.commit()
            return None
        return await real_load_state(session, user_id, for_update=for_update)

    monkeypatch.setattr(pending_store, "load_state", racing_load_state)


async def test_roll_after_first_row_race_applies_normal_checks(session_maker, monkeypatch):
    _row_inserted_by_other_request(monkeypatch, session_maker, tickets=2)

    async with session_maker() as a:
        receipt = await svc.roll(a, "p1", "ticket", now=T0)
        await a.commit()
    assert receipt["method"] == "ticket"
    assert receipt["ticketBalance"] == 1

    async with session_maker() as s:
        st = await svc.status(s, "p1", now=T0)
        assert st["hasPendingRoll"] is True


async def test_credit_tickets_after_first_row_race(session_maker, monkeypatch):
    _row_inserted_by_other_request(monkeypatch, session_maker, tickets=2)

    async with session_maker() as a:
        assert await svc.credit_tickets(a, "p1", 3) == 5
        await a.commit()

    async with session_maker() as s:
        assert (await svc.status(s, "p1", now=T0))["ticketBalance"] == 5


async def test_concurrent_roll_loses_version_check(session_maker):
    async with session_maker() as s:
        await svc.credit_tickets(s, "p1", 5)
        await s.commit()

    class RacingLedger:
        """Lets a second request roll and commit while the first is mid-payment."""

        async def get_balance(self, user_id):
            async with session_maker() as b:
                await svc.roll(b, user_id, "ticket", now=T0)
                await b.commit()
            return 1_000

        async def debit(self, user_id, amount):
            return True

    async with session_maker() as a:
        reason = await _reject(svc.roll(a, "p1", "point", ledger=RacingLedger(), now=T0))
        assert reason == PENDING_EXISTS
        await a.rollback()

    async with session_maker() as s:
        st = await svc.status(s, "p1", now=T0)
        assert st["ticketBalance"] == 4
        assert st["hasPendingRoll"] is True
