"""
Payment rails for a Lady Luck roll: hourly free roll, Lottery Ticket, Echo Points.

Exactly one rail is charged per roll. Every check happens before any write,
so a rejected authorization leaves the player's state and wallet untouched.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from ladyluck.core.config import settings
from ladyluck.models.lady_luck_state import LadyLuckState
from ladyluck.services.errors import (
    COOLDOWN_ACTIVE,
    INSUFFICIENT_POINTS,
    INSUFFICIENT_TICKETS,
    INVALID_METHOD,
    LadyLuckRejection,
)
from ladyluck.services.pending_store import as_utc
from ladyluck.services.point_ledger import PointLedger

logger = logging.getLogger(__name__)

FREE = "free"
TICKET = "ticket"
POINT = "point"
PAYMENT_METHODS = (FREE, TICKET, POINT)

_ONE_MS = timedelta(milliseconds=1)


@dataclass(frozen=True)
class FreeRollWindow:
    eligible: bool
    ms_until_eligible: int


@dataclass(frozen=True)
class PaymentReceipt:
    method: str
    charged: int  # tickets or points taken; 0 for the free roll


def free_roll_window(last_free_roll: datetime | None, now: datetime, cooldown_ms: int | None = None) -> FreeRollWindow:
    """Cooldown arithmetic shared by the payment check and the status projection."""
    if last_free_roll is None:
        return FreeRollWindow(True, 0)
    if cooldown_ms is None:
        cooldown_ms = settings.LADY_LUCK_FREE_ROLL_COOLDOWN_MS
    cooldown = timedelta(milliseconds=cooldown_ms)
    elapsed = as_utc(now) - as_utc(last_free_roll)
    if elapsed >= cooldown:
        return FreeRollWindow(True, 0)
    return FreeRollWindow(False, math.ceil((cooldown - elapsed) / _ONE_MS))


async def authorize(
    state: LadyLuckState,
    method: str,
    now: datetime,
    ledger: PointLedger,
) -> PaymentReceipt:
    now = as_utc(now)
    if method == FREE:
        window = free_roll_window(state.last_free_roll_at, now)
        if not window.eligible:
            raise LadyLuckRejection(COOLDOWN_ACTIVE)
        last = as_utc(state.last_free_roll_at)
        if last is None or now > last:
            state.last_free_roll_at = now
        return PaymentReceipt(FREE, 0)

    if method == TICKET:
        balance = int(state.lottery_tickets or 0)
        if balance < 1:
            raise LadyLuckRejection(INSUFFICIENT_TICKETS)
        state.lottery_tickets = max(0, balance - 1)
        return PaymentReceipt(TICKET, 1)

    if method == POINT:
        cost = settings.LADY_LUCK_POINT_COST
        balance = await ledger.get_balance(state.user_id)
        if balance < cost:
            raise LadyLuckRejection(INSUFFICIENT_POINTS, f"Not enough Echo Points (need {cost})")
        if not await ledger.debit(state.user_id, cost):
            # balance moved between read and debit
            logger.info("point debit refused by ledger user=%s cost=%s", state.user_id, cost)
            raise LadyLuckRejection(INSUFFICIENT_POINTS, f"Not enough Echo Points (need {cost})")
        return PaymentReceipt(POINT, cost)

    raise LadyLuckRejection(INVALID_METHOD)
