import logging
from datetime import datetime, timezone
from db.connection import get_db

logger = logging.getLogger(__name__)

_COLUMNS = "id, recipient, reason, amount, sender, created_at, nostr_event_id, profile_name, sender_profile_name"


def _row_to_dict(row) -> dict:
    return {
        "id": row["id"],
        "recipient": row["recipient"],
        "reason": row["reason"],
        "amount": row["amount"],
        "sender": row["sender"],
        "created_at": row["created_at"],
        "nostr_event_id": row["nostr_event_id"],
        "profile_name": row["profile_name"],
        "sender_profile_name": row["sender_profile_name"],
    }


async def create_acknowledgment(
    recipient: str,
    reason: str,
    amount: int = 0,
    sender: str | None = None,
    profile_name: str | None = None,
    sender_profile_name: str | None = None,
) -> dict:
    db = await get_db()
    created_at = datetime.now(timezone.utc).isoformat()
    cursor = await db.execute(
        """INSERT INTO high_fives
           (recipient, reason, amount, sender, created_at, profile_name, sender_profile_name)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (recipient, reason, amount, sender, created_at, profile_name, sender_profile_name),
    )
    await db.commit()
    logger.info(f"DB insert high five id={cursor.lastrowid} recipient={recipient}")
    return {
        "id": cursor.lastrowid,
        "recipient": recipient,
        "reason": reason,
        "amount": amount,
        "sender": sender,
        "created_at": created_at,
        "nostr_event_id": None,
        "profile_name": profile_name,
        "sender_profile_name": sender_profile_name,
    }


async def get_acknowledgment(ack_id: int) -> dict | None:
    db = await get_db()
    cursor = await db.execute(f"SELECT {_COLUMNS} FROM high_fives WHERE id = ?", (ack_id,))
    row = await cursor.fetchone()
    return _row_to_dict(row) if row else None


async def list_acknowledgments(limit: int = 20, offset: int = 0) -> tuple[list, int]:
    db = await get_db()

    count_cursor = await db.execute("SELECT COUNT(*) as total FROM high_fives")
    total = (await count_cursor.fetchone())["total"]

    cursor = await db.execute(
        f"SELECT {_COLUMNS} FROM high_fives ORDER BY id DESC LIMIT ? OFFSET ?",
        (limit, offset),
    )
    rows = await cursor.fetchall()
    return [_row_to_dict(row) for row in rows], total


async def attach_nostr_event_id(ack_id: int, event_id: str) -> bool:
    """Record the broadcast event id. Only the first attachment sticks."""
    db = await get_db()
    cursor = await db.execute(
        "UPDATE high_fives SET nostr_event_id = ? WHERE id = ? AND nostr_event_id IS NULL",
        (event_id, ack_id),
    )
    await db.commit()
    if cursor.rowcount > 0:
        logger.info(f"DB attached nostr_event_id={event_id[:16]}… to high five id={ack_id}")
        return True
    logger.warning(f"Could not attach nostr event to high five id={ack_id}")
    return False
