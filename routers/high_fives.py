import asyncio
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from config import PROFILE_NAME_TIMEOUT, RATE_LIMIT_ENABLED
from core.errors import ResolutionError
from db.acknowledgments import create_acknowledgment, get_acknowledgment, list_acknowledgments
from schemas import HighFive, HighFiveList, HighFiveRequest
from services.broadcaster import BroadcastQueue, get_broadcast_queue
from services.profiles import resolve_profile_name
from services.resolver import classify_recipient

logger = logging.getLogger(__name__)
limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)

router = APIRouter()


async def _lookup_name(value: str | None, known: str | None) -> str | None:
    if known or not value or not value.startswith("npub"):
        return known
    try:
        return await asyncio.wait_for(resolve_profile_name(value), timeout=PROFILE_NAME_TIMEOUT)
    except ResolutionError as e:
        logger.info(f"Skipping profile name lookup for {value[:16]}…: {e}")
    except asyncio.TimeoutError:
        logger.info(f"Profile name lookup for {value[:16]}… took over {PROFILE_NAME_TIMEOUT:g}s, storing without it")
    return None


@router.post("/api/high-fives", response_model=HighFive, status_code=201)
@limiter.limit("10/minute")
async def create_high_five(
    request: Request,
    data: HighFiveRequest,
    queue: BroadcastQueue | None = Depends(get_broadcast_queue),
):
    classify_recipient(data.recipient)

    profile_name, sender_profile_name = await asyncio.gather(
        _lookup_name(data.recipient, data.profile_name),
        _lookup_name(data.sender, data.sender_profile_name),
    )

    record = await create_acknowledgment(
        recipient=data.recipient,
        reason=data.reason,
        amount=data.amount,
        sender=data.sender,
        profile_name=profile_name,
        sender_profile_name=sender_profile_name,
    )

    if queue is not None:
        queue.submit(dict(record), data.payment_instruction)
    else:
        logger.warning(f"Broadcast queue not running, high five id={record['id']} will not be published")

    return record


@router.get("/api/high-fives", response_model=HighFiveList)
@limiter.limit("60/minute")
async def list_high_fives(
    request: Request,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    items, total = await list_acknowledgments(limit=limit, offset=offset)
    return {"items": items, "total": total}


@router.get("/api/high-fives/{high_five_id}", response_model=HighFive)
@limiter.limit("60/minute")
async def get_high_five(request: Request, high_five_id: int):
    record = await get_acknowledgment(high_five_id)
    if record is None:
        raise HTTPException(status_code=404, detail="High five not found")
    return record
