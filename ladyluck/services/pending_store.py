"""
Durable single-slot holder for a player's generated-but-unclaimed batch.

The batch lives in ``lady_luck_state.pending_roll`` as a JSON list of reward
snapshots. Reads are validated; anything that does not decode to exactly
``BATCH_SIZE`` well-formed snapshots is reported as corrupt instead of
raising a parse error.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ladyluck.models.lady_luck_state import LadyLuckState
from ladyluck.schemas.lady_luck import RewardSnapshot
from ladyluck.services.errors import CORRUPT_PENDING_DATA, NO_PENDING_ROLL, PENDING_EXISTS, LadyLuckRejection
from ladyluck.services.reward_table import RewardDescriptor

logger = logging.getLogger(__name__)

BATCH_SIZE = 9

_snapshots = TypeAdapter(list[RewardSnapshot])


@dataclass(frozen=True)
class PendingRoll:
    owner_id: str
    rewards: tuple[RewardDescriptor, ...]
    created_at: datetime | None


def as_utc(dt: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone=True columns
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def encode_batch(rewards: Sequence[RewardDescriptor]) -> str:
    if len(rewards) != BATCH_SIZE:
        raise ValueError(f"pending batch must hold exactly {BATCH_SIZE} rewards, got {len(rewards)}")
    return json.dumps([r.to_dict() for r in rewards], separators=(",", ":"))


def decode_batch(raw: str) -> tuple[RewardDescriptor, ...]:
    try:
        snaps = _snapshots.validate_python(json.loads(raw))
    except (TypeError, ValueError, RecursionError, ValidationError) as e:
        # ValueError covers JSONDecodeError; RecursionError is raised on deeply nested input
        raise LadyLuckRejection(CORRUPT_PENDING_DATA) from e

    if len(snaps) != BATCH_SIZE:
        raise LadyLuckRejection(CORRUPT_PENDING_DATA)

    return tuple(
        RewardDescriptor(
            id=s.id,
            display_name=s.displayName,
            category=s.category,
            weight=s.weight,
            quantity=s.quantity,
            quality=s.quality,
            socket_count=s.socketCount,
            equip_level=s.equipLevel,
        )
        for s in snaps
    )


async def load_state(session: AsyncSession, user_id: str, *, for_update: bool = False) -> LadyLuckState | None:
    stmt = select(LadyLuckState).where(LadyLuckState.user_id == user_id).execution_options(populate_existing=True)
    if for_update:
        # row lock on PostgreSQL; other dialects rely on the version column
        stmt = stmt.with_for_update()
    return (await session.execute(stmt)).scalar_one_or_none()


async def ensure_state(session: AsyncSession, user_id: str) -> LadyLuckState:
    state = await load_state(session, user_id, for_update=True)
    if state:
        return state
    state = LadyLuckState(user_id=user_id, lottery_tickets=0)
    session.add(state)
    try:
        await session.flush()
    except IntegrityError:
        # another request inserted the first row; nothing else is staged yet
        await session.rollback()
        state = await load_state(session, user_id, for_update=True)
        if state is None:
            raise
        logger.info("lady luck state insert raced user=%s (re-read)", user_id)
    return state


def put_pending(state: LadyLuckState, rewards: Sequence[RewardDescriptor], now: datetime) -> None:
    if state.has_pending:
        raise LadyLuckRejection(PENDING_EXISTS)
    state.pending_roll = encode_batch(rewards)
    state.pending_created_at = now


def read_pending(state: LadyLuckState | None) -> PendingRoll:
    if state is None or not state.has_pending:
        raise LadyLuckRejection(NO_PENDING_ROLL)
    try:
        rewards = decode_batch(state.pending_roll)
    except LadyLuckRejection:
        logger.warning("corrupt pending roll for user=%s (slot left occupied)", state.user_id)
        raise
    return PendingRoll(owner_id=state.user_id, rewards=rewards, created_at=as_utc(state.pending_created_at))


def clear_pending(state: LadyLuckState) -> bool:
    had = state.has_pending
    state.pending_roll = None
    state.pending_created_at = None
    return had
