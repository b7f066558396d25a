"""
PostgreSQL persistence for harvested records.

Rows are deduplicated on their natural key by unique constraints; inserts use
`ON CONFLICT DO NOTHING` so the lookup and the insert are one statement.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from .types import EventTarget

logger = logging.getLogger(__name__)

LOCATION_TABLE = "fb_location"
EVENT_TABLE = "fb_event"
PHOTO_TABLE = "fb_photo"

SCHEMA = """
CREATE TABLE IF NOT EXISTS fb_location (
    id SERIAL PRIMARY KEY,
    location_id TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL DEFAULT '',
    latitude DOUBLE PRECISION,
    longitude DOUBLE PRECISION,
    city_id INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS fb_event (
    id SERIAL PRIMARY KEY,
    event_id TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL DEFAULT '',
    start_time TIMESTAMPTZ NOT NULL,
    location_id INTEGER REFERENCES fb_location (id),
    album_id TEXT
);

CREATE TABLE IF NOT EXISTS fb_photo (
    id SERIAL PRIMARY KEY,
    photo_url TEXT NOT NULL UNIQUE,
    event_id INTEGER REFERENCES fb_event (id),
    location_id INTEGER REFERENCES fb_location (id)
);
"""


class HarvestStore:
    """Reads work items and writes harvested rows.

    Runs on an autocommit connection; every statement stands alone.
    """

    def __init__(self, conn: psycopg.AsyncConnection):
        self.conn = conn

    @classmethod
    async def connect(cls, database_url: str) -> "HarvestStore":
        if not database_url:
            raise ValueError("DATABASE_URL not configured")
        conn = await psycopg.AsyncConnection.connect(
            database_url, autocommit=True, row_factory=dict_row
        )
        return cls(conn)

    async def close(self) -> None:
        await self.conn.close()

    async def ensure_schema(self) -> None:
        """Create the harvest tables if they do not exist."""
        async with self.conn.cursor() as cur:
            await cur.execute(SCHEMA)
        logger.info("Harvest schema ready")

    async def upsert_if_absent(
        self,
        table: str,
        key_field: str,
        key_value: Any,
        record: Dict[str, Any],
    ) -> bool:
        """Insert `record` unless a row with the same natural key exists.

        Existing rows are left untouched.

        Returns:
            True if a row was inserted
        """
        row = {**record, key_field: key_value}
        columns = list(row)
        query = sql.SQL(
            "INSERT INTO {table} ({columns}) VALUES ({values}) "
            "ON CONFLICT ({key}) DO NOTHING"
        ).format(
            table=sql.Identifier(table),
            columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
            values=sql.SQL(", ").join(sql.Placeholder() * len(columns)),
            key=sql.Identifier(key_field),
        )

        async with self.conn.cursor() as cur:
            await cur.execute(query, [row[c] for c in columns])
            return cur.rowcount == 1

    async def get_recent_events(self, city_id: int, since: datetime) -> List[EventTarget]:
        """Events of the city that started after `since`, with their location."""
        async with self.conn.cursor() as cur:
            await cur.execute(
                """
                SELECT
                    e.id, e.event_id, e.name, e.start_time, e.album_id,
                    l.id AS location_pk, l.location_id
                FROM fb_event e
                JOIN fb_location l ON e.location_id = l.id
                WHERE l.city_id = %s AND e.start_time > %s
                ORDER BY e.start_time
                """,
                (city_id, since),
            )
            rows = await cur.fetchall()

        return [
            EventTarget(
                id=row["id"],
                event_id=row["event_id"],
                name=row["name"],
                start_time=row["start_time"],
                location_pk=row["location_pk"],
                location_id=row["location_id"],
                album_id=row["album_id"],
            )
            for row in rows
        ]

    async def set_event_album(self, event_id: str, album_id: str) -> bool:
        """Record the resolved album of an event. Only fills an empty `album_id`."""
        async with self.conn.cursor() as cur:
            await cur.execute(
                "UPDATE fb_event SET album_id = %s WHERE event_id = %s AND album_id IS NULL",
                (album_id, event_id),
            )
            return cur.rowcount == 1
