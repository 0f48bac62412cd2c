import logging
import aiosqlite
from config import DB_PATH

logger = logging.getLogger(__name__)

_db_pool: aiosqlite.Connection | None = None


async def get_db() -> aiosqlite.Connection:
    global _db_pool
    if _db_pool is None:
        _db_pool = await aiosqlite.connect(DB_PATH)
        _db_pool.row_factory = aiosqlite.Row
        await _db_pool.execute("PRAGMA journal_mode=WAL")
    return _db_pool


async def close_db() -> None:
    global _db_pool
    if _db_pool is not None:
        await _db_pool.close()
        _db_pool = None


async def init_db() -> None:
    async with aiosqlite.connect(DB_PATH) as db:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS high_fives (
                id                   INTEGER PRIMARY KEY AUTOINCREMENT,
                recipient            TEXT    NOT NULL,
                reason               TEXT    NOT NULL,
                amount               INTEGER NOT NULL DEFAULT 0,
                sender               TEXT,
                created_at           TEXT    NOT NULL,
                nostr_event_id       TEXT,
                profile_name         TEXT,
                sender_profile_name  TEXT
            )
        """)
        await db.execute("CREATE INDEX IF NOT EXISTS idx_high_fives_recipient ON high_fives(recipient)")
        await db.commit()
    logger.info(f"Database initialized at {DB_PATH}")
