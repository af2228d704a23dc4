"""
Lady Luck pay-then-pick flow.

  status  -> free-roll timer, balances, whether a batch is waiting
  roll    -> charge one payment rail, draw 9 rewards, park them as pending
  claim   -> reveal the batch, realize the chosen slot, roll the secondary drop,
             clear pending

Callers own the transaction: routes commit on success and roll back on
``LadyLuckRejection``. Granting the realized reward into the inventory is
the caller's job; nothing here touches inventory.
"""
from __future__ import annotations

import logging
import random
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ladyluck.core.config import settings
from ladyluck.models.lady_luck_state import LadyLuckState
from ladyluck.services.errors import (
    INVALID_AMOUNT,
    INVALID_INDEX,
    NO_PENDING_ROLL,
    PENDING_EXISTS,
    LadyLuckRejection,
)
from ladyluck.services.payment_gate import authorize, free_roll_window
from ladyluck.services.pending_store import (
    BATCH_SIZE,
    clear_pending,
    ensure_state,
    load_state,
    put_pending,
    read_pending,
)
from ladyluck.services.point_ledger import PointLedger, WalletLedger
from ladyluck.services.reward_table import (
    LADY_LUCK_REWARDS,
    SECONDARY_DROP_ID,
    SECONDARY_DROP_NAME,
    RewardTable,
    WeightedSampler,
)

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


async def _flush_or(session: AsyncSession, reason: str) -> None:
    # a concurrent request for the same player won the version check
    try:
        await session.flush()
    except (StaleDataError, IntegrityError) as e:
        logger.info("lady luck write conflict -> %s", reason)
        raise LadyLuckRejection(reason) from e


async def _projection(state: LadyLuckState | None, user_id: str, ledger: PointLedger, now: datetime) -> dict:
    window = free_roll_window(state.last_free_roll_at if state else None, now)
    return {
        "freeRollEligible": window.eligible,
        "msUntilEligible": window.ms_until_eligible,
        "ticketBalance": max(0, int(state.lottery_tickets or 0)) if state else 0,
        "pointBalance": await ledger.get_balance(user_id),
    }


async def status(
    session: AsyncSession,
    user_id: str,
    *,
    ledger: PointLedger | None = None,
    now: datetime | None = None,
) -> dict:
    """Read-only snapshot for UI polling. Takes no lock and never inserts a state row."""
    ledger = ledger or WalletLedger(session)
    now = now or _now()
    state = await load_state(session, user_id)
    out = await _projection(state, user_id, ledger, now)
    out["hasPendingRoll"] = bool(state and state.has_pending)
    if isinstance(ledger, WalletLedger):
        out["goldBalance"] = await ledger.get_gold(user_id)
    return out


async def roll(
    session: AsyncSession,
    user_id: str,
    method: str,
    *,
    ledger: PointLedger | None = None,
    rng: random.Random | None = None,
    now: datetime | None = None,
    table: RewardTable = LADY_LUCK_REWARDS,
) -> dict:
    ledger = ledger or WalletLedger(session)
    now = now or _now()

    state = await ensure_state(session, user_id)

    # at most one outstanding batch; checked before any payment
    if state.has_pending:
        raise LadyLuckRejection(PENDING_EXISTS)

    receipt = await authorize(state, method, now, ledger)

    rewards = WeightedSampler(table, rng).sample_batch(BATCH_SIZE)
    put_pending(state, rewards, now)

    # payment and pending batch land in the same flush
    await _flush_or(session, PENDING_EXISTS)

    logger.info("lady luck roll user=%s method=%s charged=%s", user_id, receipt.method, receipt.charged)

    out = await _projection(state, user_id, ledger, now)
    return {"method": receipt.method, **out}


async def claim(
    session: AsyncSession,
    user_id: str,
    chosen_index,
    *,
    ledger: PointLedger | None = None,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> dict:
    if isinstance(chosen_index, bool) or not isinstance(chosen_index, int) or not 0 <= chosen_index < BATCH_SIZE:
        raise LadyLuckRejection(INVALID_INDEX)

    ledger = ledger or WalletLedger(session)
    rng = rng or random
    now = now or _now()

    state = await load_state(session, user_id, for_update=True)
    pending = read_pending(state)

    chosen = pending.rewards[chosen_index]

    # independent of the batch and of the chosen slot
    secondary = None
    if rng.random() < settings.LADY_LUCK_SECONDARY_DROP_CHANCE:
        secondary = {"id": SECONDARY_DROP_ID, "displayName": SECONDARY_DROP_NAME}

    # commit point: once cleared, a repeated claim sees no-pending-roll
    clear_pending(state)
    await _flush_or(session, NO_PENDING_ROLL)

    logger.info("lady luck claim user=%s index=%s reward=%s", user_id, chosen_index, chosen.id)
    if secondary:
        logger.info("lady luck secondary drop user=%s drop=%s", user_id, SECONDARY_DROP_ID)

    out = await _projection(state, user_id, ledger, now)
    return {
        "rewards": [r.to_dict() for r in pending.rewards],
        "chosenIndex": chosen_index,
        "chosenReward": chosen.to_dict(),
        "secondaryDrop": secondary,
        **out,
    }


async def credit_tickets(session: AsyncSession, user_id: str, amount) -> int:
    """External credit path for Lottery Tickets (admin grants, other reward systems)."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise LadyLuckRejection(INVALID_AMOUNT)
    state = await ensure_state(session, user_id)
    state.lottery_tickets = max(0, int(state.lottery_tickets or 0) + amount)
    await session.flush()
    logger.info("lottery tickets credited user=%s amount=%s balance=%s", user_id, amount, state.lottery_tickets)
    return state.lottery_tickets


async def admin_clear_pending(session: AsyncSession, user_id: str) -> bool:
    """Frees a stuck pending slot (e.g. corrupt payload). No reward is granted."""
    state = await load_state(session, user_id, for_update=True)
    if state is None or not clear_pending(state):
        return False
    await session.flush()
    logger.warning("pending roll cleared by admin user=%s", user_id)
    return True
