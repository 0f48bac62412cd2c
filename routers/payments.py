import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from config import RATE_LIMIT_ENABLED
from schemas import ErrorResponse, PaymentInstructionResponse, ProfileNameResponse
from services.profiles import resolve_profile_name
from services.resolver import RecipientResolver, get_resolver

logger = logging.getLogger(__name__)
limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)

router = APIRouter()

ERROR_RESPONSES = {status: {"model": ErrorResponse} for status in (400, 404, 503, 504)}


@router.get("/api/payment-instructions", response_model=PaymentInstructionResponse, responses=ERROR_RESPONSES)
@limiter.limit("30/minute")
async def payment_instructions(
    request: Request,
    recipient: str | None = Query(default=None, max_length=300),
    btag: str | None = Query(default=None, max_length=300),
    npub: str | None = Query(default=None, max_length=300),
    address: str | None = Query(default=None, max_length=300),
    amount: int | None = Query(default=None, ge=1, le=100_000_000),
    resolver: RecipientResolver = Depends(get_resolver),
):
    # btag/npub/address are the older per-type parameter names.
    value = recipient or btag or npub or address
    if not value:
        raise HTTPException(status_code=400, detail="recipient is required")

    instruction = await resolver.resolve(value, amount_sats=amount)
    logger.info(f"Payment instructions for {value}: {instruction.kind.value}")
    return instruction.to_dict()


@router.get("/api/profile-name", response_model=ProfileNameResponse, responses=ERROR_RESPONSES)
@limiter.limit("30/minute")
async def profile_name(request: Request, npub: str = Query(max_length=300)):
    name = await resolve_profile_name(npub.strip())
    return {"npub": npub.strip(), "profile_name": name}
