import logging
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from config import BROADCAST_RELAYS, PROFILE_RELAYS
from db.connection import get_db
from services.broadcaster import get_broadcast_queue

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health():
    queue = get_broadcast_queue()
    health_status = {
        "status": "healthy",
        "profile_relays": len(PROFILE_RELAYS),
        "broadcast_relays": len(BROADCAST_RELAYS),
        "broadcasting": bool(queue and queue.broadcaster.private_key is not None),
    }

    try:
        db = await get_db()
        cursor = await db.execute("SELECT COUNT(*) AS total FROM high_fives")
        health_status["high_fives"] = (await cursor.fetchone())["total"]
    except Exception as e:
        logger.error(f"Health check database probe failed: {e}")
        health_status["status"] = "degraded"
        health_status["database"] = "error"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)
