import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ladyluck.api.deps import get_db, get_current_user_id, require_admin
from ladyluck.core.config import settings
from ladyluck.core.rate_limit import rate_limiter
from ladyluck.schemas.lady_luck import ClaimOut, ClearPendingIn, RollOut, StatusOut, TicketCreditIn
from ladyluck.services import lady_luck_service
from ladyluck.services.errors import LadyLuckRejection

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lady-luck", tags=["lady-luck"])


def _rl_or_429(key: str):
    if not rate_limiter.allow(key, settings.RATE_LIMIT_LADY_LUCK_PER_MIN, 60):
        raise HTTPException(status_code=429, detail="Too many requests")


async def _rejected(db: AsyncSession, user_id: str, e: LadyLuckRejection) -> JSONResponse:
    await db.rollback()
    logger.debug("lady luck rejected user=%s reason=%s", user_id, e.reason)
    # fresh read after rollback so the client sees what actually persisted
    snapshot = await lady_luck_service.status(db, user_id)
    return JSONResponse(
        status_code=400,
        content={"ok": False, "reason": e.reason, "detail": e.message, **snapshot},
    )


@router.get("/status", response_model=StatusOut)
async def lady_luck_status(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return {"ok": True, **await lady_luck_service.status(db, user_id)}


@router.post("/roll", response_model=RollOut)
async def lady_luck_roll(
    body: dict | None = None,  # { "method": "free"|"ticket"|"point" }
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    _rl_or_429(f"lady_luck:roll:{user_id}")
    method = (body or {}).get("method", "free")
    try:
        res = await lady_luck_service.roll(db, user_id, method)
        await db.commit()
        return {"ok": True, **res}
    except LadyLuckRejection as e:
        return await _rejected(db, user_id, e)


@router.post("/claim", response_model=ClaimOut)
async def lady_luck_claim(
    body: dict | None = None,  # { "chosenIndex": 0..8 }
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    _rl_or_429(f"lady_luck:claim:{user_id}")
    chosen_index = (body or {}).get("chosenIndex")
    try:
        res = await lady_luck_service.claim(db, user_id, chosen_index)
        await db.commit()
        return {"ok": True, **res}
    except LadyLuckRejection as e:
        return await _rejected(db, user_id, e)


@router.post("/admin/tickets", dependencies=[Depends(require_admin)])
async def lady_luck_credit_tickets(body: TicketCreditIn, db: AsyncSession = Depends(get_db)):
    try:
        balance = await lady_luck_service.credit_tickets(db, body.userId, body.amount)
        await db.commit()
        return {"ok": True, "newBalance": balance}
    except LadyLuckRejection as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail=e.message)


@router.post("/admin/clear-pending", dependencies=[Depends(require_admin)])
async def lady_luck_clear_pending(body: ClearPendingIn, db: AsyncSession = Depends(get_db)):
    cleared = await lady_luck_service.admin_clear_pending(db, body.userId)
    await db.commit()
    return {"ok": True, "cleared": cleared}
