"""
Async Database Module using aiosqlite
- Connection pooling for better performance
- Indexes on frequently queried columns
- Non-blocking database operations
"""

import aiosqlite
import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, List, Tuple

from errors import StorageUnavailable
from models import Match, Prediction
from scoring import Score

DB_NAME = "data/cricket.db"

# Connection pool
class ConnectionPool:
    def __init__(self, db_name: str, pool_size: int = 3):
        self.db_name = db_name
        self.pool_size = pool_size
        self._pool: asyncio.Queue = asyncio.Queue(maxsize=pool_size)
        self._initialized = False

    async def initialize(self):
        """Initialize the connection pool"""
        if self._initialized:
            return

        try:
            for _ in range(self.pool_size):
                conn = await aiosqlite.connect(self.db_name)
                # queued before setup so close_all can reach it if setup fails
                await self._pool.put(conn)
                conn.row_factory = aiosqlite.Row
                await conn.execute('PRAGMA foreign_keys = ON')
        except aiosqlite.Error as exc:
            logging.error(f"Could not open database {self.db_name}: {exc}")
            await self.close_all()
            raise StorageUnavailable() from exc

        self._initialized = True
        logging.info(f"Database pool initialized with {self.pool_size} connections")

    @asynccontextmanager
    async def acquire(self):
        """Acquire a connection from the pool.

        Uncommitted work is rolled back when the block raises; sqlite errors
        come out as StorageUnavailable.
        """
        if not self._initialized:
            await self.initialize()

        conn = await self._pool.get()
        try:
            yield conn
        except BaseException as exc:
            # Cancellation included, so no half-done transaction goes back to the pool
            try:
                await conn.rollback()
            except aiosqlite.Error as rollback_exc:
                logging.warning(f"Rollback failed: {rollback_exc}")
            if isinstance(exc, aiosqlite.Error):
                logging.error(f"Database error: {exc}")
                raise StorageUnavailable() from exc
            raise
        finally:
            await self._pool.put(conn)

    async def close_all(self):
        """Close all connections in the pool"""
        while not self._pool.empty():
            conn = await self._pool.get()
            await conn.close()
        self._initialized = False


async def init_db(db_name: str = DB_NAME):
    """Initialize the database schema with indexes"""
    if db_name != ":memory:":
        Path(db_name).parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(db_name) as conn:
        cursor = await conn.cursor()

        # Matches table
        await cursor.execute('''
        CREATE TABLE IF NOT EXISTS matches (
            id TEXT PRIMARY KEY,
            team_name TEXT NOT NULL,
            toss TEXT NOT NULL,
            venue TEXT NOT NULL,
            match_date TEXT NOT NULL,
            is_open INTEGER NOT NULL DEFAULT 1,
            actual_runs INTEGER DEFAULT NULL,
            actual_wickets INTEGER DEFAULT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        ''')

        # Predictions table, one row per user per match
        await cursor.execute('''
        CREATE TABLE IF NOT EXISTS predictions (
            match_id TEXT NOT NULL,
            user_id INTEGER NOT NULL,
            username TEXT,
            runs INTEGER NOT NULL,
            wickets INTEGER NOT NULL,
            comment TEXT DEFAULT NULL,
            submitted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (match_id, user_id),
            FOREIGN KEY(match_id) REFERENCES matches(id)
        )
        ''')

        # === CREATE INDEXES ===
        await cursor.execute('CREATE INDEX IF NOT EXISTS idx_matches_open ON matches(is_open)')
        await cursor.execute('CREATE INDEX IF NOT EXISTS idx_matches_date ON matches(match_date)')
        await cursor.execute('CREATE INDEX IF NOT EXISTS idx_predictions_user ON predictions(user_id)')

        await conn.commit()
        logging.info("Async database initialized with indexes")


class MatchStore:
    """Matches and predictions, read and written through a ConnectionPool."""

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    # ============ MATCH FUNCTIONS ============

    async def insert_match(self, match: Match):
        async with self.pool.acquire() as conn:
            await conn.execute(
                '''INSERT INTO matches (id, team_name, toss, venue, match_date, is_open)
                   VALUES (?, ?, ?, ?, ?, ?)''',
                (match.id, match.team_name, match.toss, match.venue, match.match_date, int(match.is_open))
            )
            await conn.commit()

    async def update_match(self, match_id: str, is_open: bool = None, actual: Score = None,
                           team_name: str = None, toss: str = None, venue: str = None,
                           match_date: str = None) -> bool:
        """Update only the fields that were given. Returns False if no such match."""
        async with self.pool.acquire() as conn:
            cursor = await conn.execute(
                '''UPDATE matches SET
                       is_open = COALESCE(?, is_open),
                       actual_runs = COALESCE(?, actual_runs),
                       actual_wickets = COALESCE(?, actual_wickets),
                       team_name = COALESCE(?, team_name),
                       toss = COALESCE(?, toss),
                       venue = COALESCE(?, venue),
                       match_date = COALESCE(?, match_date)
                   WHERE id = ?''',
                (
                    None if is_open is None else int(is_open),
                    actual.runs if actual else None,
                    actual.wickets if actual else None,
                    team_name, toss, venue, match_date,
                    match_id,
                )
            )
            await conn.commit()
            return cursor.rowcount > 0

    async def get_match(self, match_id: str) -> Optional[Match]:
        async with self.pool.acquire() as conn:
            cursor = await conn.execute('SELECT * FROM matches WHERE id = ?', (match_id,))
            row = await cursor.fetchone()
            return Match.from_row(row) if row else None

    async def get_past_matches(self) -> List[Match]:
        """Closed matches, latest match date first"""
        async with self.pool.acquire() as conn:
            cursor = await conn.execute(
                'SELECT * FROM matches WHERE is_open = 0 ORDER BY match_date DESC, rowid DESC'
            )
            rows = await cursor.fetchall()
            return [Match.from_row(row) for row in rows]

    async def get_unfinished_match(self) -> Optional[Match]:
        """Most recently created match that has no result yet"""
        async with self.pool.acquire() as conn:
            cursor = await conn.execute(
                'SELECT * FROM matches WHERE actual_runs IS NULL ORDER BY rowid DESC LIMIT 1'
            )
            row = await cursor.fetchone()
            return Match.from_row(row) if row else None

    async def delete_match(self, match_id: str) -> bool:
        """Delete a match and its predictions in one transaction"""
        async with self.pool.acquire() as conn:
            await conn.execute('DELETE FROM predictions WHERE match_id = ?', (match_id,))
            cursor = await conn.execute('DELETE FROM matches WHERE id = ?', (match_id,))
            await conn.commit()
            return cursor.rowcount > 0

    # ============ PREDICTION FUNCTIONS ============

    async def upsert_prediction(self, prediction: Prediction):
        """Insert, or overwrite the user's existing prediction for the match"""
        async with self.pool.acquire() as conn:
            await conn.execute(
                '''INSERT INTO predictions (match_id, user_id, username, runs, wickets, comment)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(match_id, user_id) DO UPDATE SET
                       username = excluded.username,
                       runs = excluded.runs,
                       wickets = excluded.wickets,
                       comment = excluded.comment,
                       updated_at = CURRENT_TIMESTAMP''',
                (
                    prediction.match_id, prediction.user_id, prediction.username,
                    prediction.score.runs, prediction.score.wickets, prediction.comment,
                )
            )
            await conn.commit()

    async def get_prediction(self, match_id: str, user_id: int) -> Optional[Prediction]:
        async with self.pool.acquire() as conn:
            cursor = await conn.execute(
                'SELECT * FROM predictions WHERE match_id = ? AND user_id = ?',
                (match_id, user_id)
            )
            row = await cursor.fetchone()
            return Prediction.from_row(row) if row else None

    async def get_predictions_for_match(self, match_id: str) -> List[Prediction]:
        """Predictions in first-submission order (upserts keep their rowid)"""
        async with self.pool.acquire() as conn:
            cursor = await conn.execute(
                'SELECT * FROM predictions WHERE match_id = ? ORDER BY rowid',
                (match_id,)
            )
            rows = await cursor.fetchall()
            return [Prediction.from_row(row) for row in rows]

    async def get_finalized_predictions(self, user_id: int = None) -> List[Tuple[Prediction, Score]]:
        """Predictions on finalized matches, each paired with its own match's actual score"""
        query = '''
            SELECT p.*, m.actual_runs, m.actual_wickets
            FROM predictions p
            JOIN matches m ON p.match_id = m.id
            WHERE m.is_open = 0 AND m.actual_runs IS NOT NULL AND m.actual_wickets IS NOT NULL
        '''
        params = ()
        if user_id is not None:
            query += ' AND p.user_id = ?'
            params = (user_id,)
        query += ' ORDER BY m.rowid, p.rowid'
        async with self.pool.acquire() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return [
                (Prediction.from_row(row), Score(row["actual_runs"], row["actual_wickets"]))
                for row in rows
            ]


async def open_store(db_name: str = DB_NAME, pool_size: int = 3) -> MatchStore:
    """Create the schema if needed and return a store over a fresh pool"""
    await init_db(db_name)
    pool = ConnectionPool(db_name, pool_size)
    await pool.initialize()
    return MatchStore(pool)
