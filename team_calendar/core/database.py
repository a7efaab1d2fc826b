"""
Database Management

SQLite database with WAL mode for crash resistance.
Async operations via aiosqlite.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Optional, List
from contextlib import asynccontextmanager

import aiosqlite

from ..config import settings
from .exceptions import NotFound, StorageFailure

logger = logging.getLogger(__name__)


# =============================================================================
# Database Schema
# =============================================================================

SCHEMA = """
-- Teams (tenant boundary)
CREATE TABLE IF NOT EXISTS teams (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Users, usergroup is the role rank (1 sysadmin, 2 admin, 4 user)
CREATE TABLE IF NOT EXISTS users (
    userid INTEGER PRIMARY KEY,
    team INTEGER NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
    firstname TEXT NOT NULL,
    lastname TEXT NOT NULL,
    usergroup INTEGER NOT NULL DEFAULT 4,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Bookable items of the database
CREATE TABLE IF NOT EXISTS items (
    id INTEGER PRIMARY KEY,
    team INTEGER NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Experiments that can be bound to a booking
CREATE TABLE IF NOT EXISTS experiments (
    id INTEGER PRIMARY KEY,
    team INTEGER NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
    userid INTEGER REFERENCES users(userid) ON DELETE SET NULL,
    title TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Calendar bookings
CREATE TABLE IF NOT EXISTS team_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    team INTEGER NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
    item INTEGER NOT NULL REFERENCES items(id) ON DELETE CASCADE,
    experiment INTEGER REFERENCES experiments(id) ON DELETE SET NULL,
    start TEXT NOT NULL,
    "end" TEXT NOT NULL,
    userid INTEGER NOT NULL REFERENCES users(userid),
    title TEXT NOT NULL DEFAULT ''
);

-- Create indexes for performance
CREATE INDEX IF NOT EXISTS idx_users_team ON users(team);
CREATE INDEX IF NOT EXISTS idx_items_team ON items(team);
CREATE INDEX IF NOT EXISTS idx_team_events_team ON team_events(team);
CREATE INDEX IF NOT EXISTS idx_team_events_item_start ON team_events(item, start);
"""

CALENDAR_TABLES = ("teams", "users", "items", "experiments", "team_events")


# =============================================================================
# Database Class
# =============================================================================

class Database:
    """Async SQLite database manager with WAL mode"""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = Path(db_path or settings.database_path)
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """Connect to database and initialize schema"""
        if self._connection is not None:
            return

        # Ensure directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Connecting to database: {self.db_path}")

        self._connection = await aiosqlite.connect(
            self.db_path,
            isolation_level=None  # Auto-commit mode
        )

        # Enable WAL mode for crash resistance
        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")
        await self._connection.execute("PRAGMA foreign_keys=ON")
        await self._connection.execute("PRAGMA busy_timeout=5000")

        # Row factory for dict-like access
        self._connection.row_factory = aiosqlite.Row

        await self._init_schema()

        logger.info("Database connected and initialized")

    async def _init_schema(self) -> None:
        """Create tables if they don't exist"""
        await self._connection.executescript(SCHEMA)
        await self._connection.commit()

    async def close(self) -> None:
        """Close database connection"""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    async def execute(
        self,
        query: str,
        params: tuple = (),
        fetch_one: bool = False,
        fetch_all: bool = False
    ) -> Any:
        """Execute a query with optional fetch, returns lastrowid for writes"""
        async with self._lock:
            try:
                cursor = await self._connection.execute(query, params)

                if fetch_one:
                    return await cursor.fetchone()
                elif fetch_all:
                    return await cursor.fetchall()
                else:
                    await self._connection.commit()
                    return cursor.lastrowid
            except aiosqlite.Error as e:
                logger.error(f"Query failed: {e}")
                raise StorageFailure("Error while executing SQL query.") from e

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Hold the connection inside one write transaction.

        Statements issued on the yielded connection either all commit or
        all roll back. The lock is held for the whole block, so the block
        must not call back into execute().
        """
        async with self._lock:
            try:
                await self._connection.execute("BEGIN IMMEDIATE")
            except aiosqlite.Error as e:
                raise StorageFailure("Could not start transaction.") from e

            try:
                yield self._connection
            except aiosqlite.Error as e:
                await self._connection.rollback()
                logger.error(f"Transaction failed: {e}")
                raise StorageFailure("Error while executing SQL query.") from e
            except BaseException:
                await self._connection.rollback()
                raise

            try:
                await self._connection.commit()
            except aiosqlite.Error as e:
                raise StorageFailure("Could not commit transaction.") from e

    # =========================================================================
    # Integrity & Maintenance
    # =========================================================================

    async def check_integrity(self) -> bool:
        """Check database integrity"""
        result = await self.execute(
            "PRAGMA integrity_check",
            fetch_one=True
        )
        return result[0] == "ok" if result else False

    async def get_calendar_stats(self) -> dict:
        """Report missing calendar tables and row counts of the populated ones"""
        rows = await self.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table'",
            fetch_all=True
        )
        present = {row["name"] for row in rows}
        missing = [t for t in CALENDAR_TABLES if t not in present]

        counts = {}
        for table in CALENDAR_TABLES:
            if table in present:
                # table names come from CALENDAR_TABLES, never from input
                row = await self.execute(
                    f"SELECT COUNT(*) FROM {table}",
                    fetch_one=True
                )
                counts[table] = row[0]

        return {"missing_tables": missing, "counts": counts}

    # =========================================================================
    # Team, User, Item & Experiment Operations
    # =========================================================================

    async def create_team(self, team: dict) -> int:
        """Create a team, the id is assigned unless given"""
        return await self.execute(
            "INSERT INTO teams (id, name) VALUES (?, ?)",
            (team.get("id"), team["name"])
        )

    async def create_user(self, user: dict) -> int:
        """Create a user"""
        return await self.execute(
            """
            INSERT INTO users (userid, team, firstname, lastname, usergroup)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                user.get("userid"),
                user["team"],
                user["firstname"],
                user["lastname"],
                user.get("usergroup", 4)
            )
        )

    async def get_user(self, userid: int) -> Optional[dict]:
        """Get a user by ID"""
        row = await self.execute(
            "SELECT * FROM users WHERE userid = ?",
            (userid,),
            fetch_one=True
        )
        return dict(row) if row else None

    async def create_item(self, item: dict) -> int:
        """Create a bookable item"""
        return await self.execute(
            "INSERT INTO items (id, team, title) VALUES (?, ?, ?)",
            (item.get("id"), item["team"], item["title"])
        )

    async def get_item(self, item_id: int) -> Optional[dict]:
        """Get an item by ID"""
        row = await self.execute(
            "SELECT * FROM items WHERE id = ?",
            (item_id,),
            fetch_one=True
        )
        return dict(row) if row else None

    async def create_experiment(self, experiment: dict) -> int:
        """Create an experiment"""
        return await self.execute(
            "INSERT INTO experiments (id, team, userid, title) VALUES (?, ?, ?, ?)",
            (
                experiment.get("id"),
                experiment["team"],
                experiment.get("userid"),
                experiment["title"]
            )
        )

    async def get_experiment(self, experiment_id: int) -> Optional[dict]:
        """Get an experiment by ID"""
        row = await self.execute(
            "SELECT * FROM experiments WHERE id = ?",
            (experiment_id,),
            fetch_one=True
        )
        return dict(row) if row else None

    # =========================================================================
    # Team Event Operations
    # =========================================================================

    async def create_team_event(self, event: dict) -> int:
        """Create a booking, returns the new id"""
        return await self.execute(
            """
            INSERT INTO team_events (team, item, start, "end", userid, title)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                event["team"],
                event["item"],
                event["start"],
                event["end"],
                event["userid"],
                event["title"]
            )
        )

    async def get_all_team_events(self, team_id: int) -> List[dict]:
        """Get every booking of a team, titled '[item] title (First Last)'"""
        rows = await self.execute(
            """
            SELECT e.id, e.start, e."end", e.userid,
                   '[' || COALESCE(i.title, '') || '] ' || e.title
                   || ' (' || COALESCE(u.firstname, '') || ' '
                   || COALESCE(u.lastname, '') || ')' AS title,
                   i.title AS item_title
            FROM team_events e
            LEFT JOIN items i ON e.item = i.id
            LEFT JOIN users u ON e.userid = u.userid
            WHERE e.team = ?
            """,
            (team_id,),
            fetch_all=True
        )
        return [dict(row) for row in rows]

    async def get_item_events(self, team_id: int, item_id: int) -> List[dict]:
        """Get the bookings of one item, titled 'title (First Last) experiment'"""
        rows = await self.execute(
            """
            SELECT e.id, e.team, e.item, e.experiment, e.start, e."end", e.userid,
                   e.title || ' (' || COALESCE(u.firstname, '') || ' '
                   || COALESCE(u.lastname, '') || ') '
                   || COALESCE(x.title, '') AS title
            FROM team_events e
            LEFT JOIN experiments x ON x.id = e.experiment
            LEFT JOIN users u ON e.userid = u.userid
            WHERE e.team = ? AND e.item = ?
            """,
            (team_id, item_id),
            fetch_all=True
        )
        return [dict(row) for row in rows]

    async def get_team_event(
        self,
        event_id: int,
        team_id: Optional[int] = None
    ) -> Optional[dict]:
        """Get a booking by ID, restricted to a team when team_id is given"""
        if team_id is None:
            row = await self.execute(
                "SELECT * FROM team_events WHERE id = ?",
                (event_id,),
                fetch_one=True
            )
        else:
            row = await self.execute(
                "SELECT * FROM team_events WHERE id = ? AND team = ?",
                (event_id, team_id),
                fetch_one=True
            )
        return dict(row) if row else None

    async def get_item_bookings(
        self,
        team_id: int,
        item_id: int,
        exclude_id: Optional[int] = None
    ) -> List[dict]:
        """Get the raw booking rows of an item, optionally leaving one out"""
        rows = await self.execute(
            """
            SELECT * FROM team_events
            WHERE team = ? AND item = ? AND id != COALESCE(?, -1)
            """,
            (team_id, item_id, exclude_id),
            fetch_all=True
        )
        return [dict(row) for row in rows]

    async def update_team_event_times(
        self,
        event_id: int,
        team_id: int,
        start: str,
        end: str
    ) -> None:
        """Move a booking"""
        await self.execute(
            'UPDATE team_events SET start = ?, "end" = ? WHERE team = ? AND id = ?',
            (start, end, team_id, event_id)
        )

    async def update_team_event_end(self, event_id: int, team_id: int, end: str) -> None:
        """Resize a booking"""
        await self.execute(
            'UPDATE team_events SET "end" = ? WHERE team = ? AND id = ?',
            (end, team_id, event_id)
        )

    async def set_team_event_experiment(
        self,
        event_id: int,
        team_id: int,
        experiment_id: Optional[int]
    ) -> None:
        """Bind (or with None, unbind) an experiment"""
        await self.execute(
            "UPDATE team_events SET experiment = ? WHERE team = ? AND id = ?",
            (experiment_id, team_id, event_id)
        )

    async def delete_team_event_checked(
        self,
        event_id: int,
        authorize: Callable[[dict, Optional[dict]], None]
    ) -> dict:
        """
        Delete a booking after an authorization check, atomically.

        Loads the booking and its owner, calls authorize(event, owner) which
        raises to refuse, then deletes. All of it runs in one transaction.

        Returns:
            The deleted booking row
        """
        async with self.transaction() as conn:
            cursor = await conn.execute(
                "SELECT * FROM team_events WHERE id = ?", (event_id,)
            )
            row = await cursor.fetchone()
            if row is None:
                raise NotFound(f"No booking with id {event_id}")
            event = dict(row)

            cursor = await conn.execute(
                "SELECT * FROM users WHERE userid = ?", (event["userid"],)
            )
            owner = await cursor.fetchone()
            authorize(event, dict(owner) if owner else None)

            await conn.execute("DELETE FROM team_events WHERE id = ?", (event_id,))
        return event


# =============================================================================
# Global Database Instance
# =============================================================================

_db_instance: Optional[Database] = None


async def get_db() -> Database:
    """Get the global database instance"""
    global _db_instance
    if _db_instance is None:
        _db_instance = Database()
        await _db_instance.connect()
    return _db_instance


async def close_db() -> None:
    """Close the global database instance"""
    global _db_instance
    if _db_instance:
        await _db_instance.close()
        _db_instance = None
