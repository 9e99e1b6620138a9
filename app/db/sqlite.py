"""
SQLite database implementation.
Simple and direct - no abstraction layers.
"""

import aiosqlite
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import os

from .models import (
    Offer, OfferItem, OfferInput, OfferStatus, PriceType, PricingFormat,
    utcnow
)


def _to_text(value) -> Optional[str]:
    """Serialize datetimes, decimals and enums for storage."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (OfferStatus, PriceType, PricingFormat)):
        return value.value
    return str(value)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None)
    return parsed


def _parse_decimal(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


class SQLiteDatabase:
    """SQLite database for all offer operations."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row
            await self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    async def initialize(self) -> None:
        """Create database tables."""
        conn = await self._get_connection()

        await conn.executescript("""
            CREATE TABLE IF NOT EXISTS offers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT,
                vendor TEXT NOT NULL,
                start_date TEXT,
                end_date TEXT,
                tags TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL DEFAULT 'PENDING',
                created_at TEXT NOT NULL,
                price_type TEXT NOT NULL DEFAULT 'OFFER',
                pricing_format TEXT NOT NULL DEFAULT 'ACTUAL',
                markup TEXT,
                discount TEXT,
                sync_started_at TEXT
            );

            CREATE TABLE IF NOT EXISTS offer_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                offer_id INTEGER NOT NULL,
                sku TEXT NOT NULL,
                offer_price TEXT NOT NULL,
                original_price TEXT,
                applied_at TEXT,
                reverted_at TEXT,
                FOREIGN KEY (offer_id) REFERENCES offers(id) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_offers_status_start ON offers(status, start_date);
            CREATE INDEX IF NOT EXISTS idx_offers_status_end ON offers(status, end_date);
            CREATE INDEX IF NOT EXISTS idx_offers_created_at ON offers(created_at DESC);
            CREATE INDEX IF NOT EXISTS idx_offer_items_offer_id ON offer_items(offer_id);
        """)
        await conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    # ===== Helper Methods =====

    def _row_to_offer(self, row: aiosqlite.Row, items: Optional[List[OfferItem]] = None) -> Offer:
        """Convert a database row to an Offer model."""
        return Offer(
            id=row["id"],
            title=row["title"],
            vendor=row["vendor"],
            start_date=_parse_datetime(row["start_date"]),
            end_date=_parse_datetime(row["end_date"]),
            tags=row["tags"],
            status=OfferStatus(row["status"]),
            created_at=_parse_datetime(row["created_at"]),
            price_type=PriceType(row["price_type"]),
            pricing_format=PricingFormat(row["pricing_format"]),
            markup=_parse_decimal(row["markup"]),
            discount=_parse_decimal(row["discount"]),
            sync_started_at=_parse_datetime(row["sync_started_at"]),
            items=items or []
        )

    def _row_to_item(self, row: aiosqlite.Row) -> OfferItem:
        """Convert a database row to an OfferItem model."""
        return OfferItem(
            id=row["id"],
            offer_id=row["offer_id"],
            sku=row["sku"],
            offer_price=Decimal(row["offer_price"]),
            original_price=_parse_decimal(row["original_price"]),
            applied_at=_parse_datetime(row["applied_at"]),
            reverted_at=_parse_datetime(row["reverted_at"])
        )

    async def _insert_items(self, conn: aiosqlite.Connection, offer_id: int, items: List[OfferItem]) -> None:
        await conn.executemany(
            "INSERT INTO offer_items (offer_id, sku, offer_price) VALUES (?, ?, ?)",
            [(offer_id, item.sku, _to_text(item.offer_price)) for item in items]
        )

    # ===== Offer Operations =====

    async def get_offers(self, limit: int = 50, offset: int = 0) -> List[Offer]:
        """Newest offers first, each with its first item only (for listing)."""
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT * FROM offers ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            (limit, offset)
        )
        rows = await cursor.fetchall()

        offers = []
        for row in rows:
            cursor = await conn.execute(
                "SELECT * FROM offer_items WHERE offer_id = ? ORDER BY id LIMIT 1",
                (row["id"],)
            )
            first = await cursor.fetchone()
            offers.append(self._row_to_offer(row, [self._row_to_item(first)] if first else []))
        return offers

    async def count_offers(self) -> int:
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT COUNT(*) FROM offers")
        row = await cursor.fetchone()
        return row[0]

    async def get_offer(self, offer_id: int) -> Optional[Offer]:
        """Get an offer with all of its items."""
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT * FROM offers WHERE id = ?", (offer_id,))
        row = await cursor.fetchone()
        if not row:
            return None
        return self._row_to_offer(row, await self.get_items(offer_id))

    async def get_items(self, offer_id: int) -> List[OfferItem]:
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT * FROM offer_items WHERE offer_id = ? ORDER BY id", (offer_id,)
        )
        rows = await cursor.fetchall()
        return [self._row_to_item(row) for row in rows]

    async def create_offer(self, data: OfferInput, items: List[OfferItem]) -> Offer:
        """Insert an offer and its items in one transaction, status PENDING."""
        conn = await self._get_connection()
        try:
            cursor = await conn.execute(
                """
                INSERT INTO offers (title, vendor, start_date, end_date, tags, status,
                                    created_at, price_type, pricing_format, markup, discount)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data.title,
                    data.vendor,
                    _to_text(data.start_date),
                    _to_text(data.end_date),
                    data.tags,
                    OfferStatus.PENDING.value,
                    utcnow().isoformat(),
                    data.price_type.value,
                    data.pricing_format.value,
                    _to_text(data.markup),
                    _to_text(data.discount)
                )
            )
            offer_id = cursor.lastrowid
            await self._insert_items(conn, offer_id, items)
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
        return await self.get_offer(offer_id)

    async def update_pending_offer(
        self,
        offer_id: int,
        data: OfferInput,
        items: Optional[List[OfferItem]] = None
    ) -> bool:
        """
        Update an offer's header, replacing its items when `items` is given.

        Only applies while the offer is PENDING and not claimed by a sync run.
        Returns False when that guard did not match.
        """
        conn = await self._get_connection()
        try:
            cursor = await conn.execute(
                """
                UPDATE offers SET title = ?, vendor = ?, start_date = ?, end_date = ?, tags = ?,
                                  price_type = ?, pricing_format = ?, markup = ?, discount = ?
                WHERE id = ? AND status = ? AND sync_started_at IS NULL
                """,
                (
                    data.title,
                    data.vendor,
                    _to_text(data.start_date),
                    _to_text(data.end_date),
                    data.tags,
                    data.price_type.value,
                    data.pricing_format.value,
                    _to_text(data.markup),
                    _to_text(data.discount),
                    offer_id,
                    OfferStatus.PENDING.value
                )
            )
            if cursor.rowcount == 0:
                await conn.rollback()
                return False

            if items is not None:
                await conn.execute("DELETE FROM offer_items WHERE offer_id = ?", (offer_id,))
                await self._insert_items(conn, offer_id, items)

            await conn.commit()
            return True
        except Exception:
            await conn.rollback()
            raise

    async def delete_offer(self, offer_id: int) -> bool:
        conn = await self._get_connection()
        await conn.execute("DELETE FROM offer_items WHERE offer_id = ?", (offer_id,))
        cursor = await conn.execute("DELETE FROM offers WHERE id = ?", (offer_id,))
        await conn.commit()
        return cursor.rowcount > 0

    # ===== Lifecycle Operations =====

    async def claim_offer(
        self,
        offer_id: int,
        expected_status: OfferStatus,
        stale_before: datetime
    ) -> bool:
        """
        Atomically mark an offer as being synced.

        Succeeds only if the offer is in `expected_status` and has no claim,
        or a claim older than `stale_before` (left behind by a crashed run).
        """
        conn = await self._get_connection()
        cursor = await conn.execute(
            """
            UPDATE offers SET sync_started_at = ?
            WHERE id = ? AND status = ?
              AND (sync_started_at IS NULL OR sync_started_at < ?)
            """,
            (utcnow().isoformat(), offer_id, expected_status.value, stale_before.isoformat())
        )
        await conn.commit()
        return cursor.rowcount == 1

    async def finish_offer(
        self,
        offer_id: int,
        expected_status: OfferStatus,
        new_status: OfferStatus
    ) -> bool:
        """Move a claimed offer to its next status and drop the claim."""
        conn = await self._get_connection()
        cursor = await conn.execute(
            "UPDATE offers SET status = ?, sync_started_at = NULL WHERE id = ? AND status = ?",
            (new_status.value, offer_id, expected_status.value)
        )
        await conn.commit()
        return cursor.rowcount == 1

    async def release_offer(self, offer_id: int) -> None:
        """Drop a claim without changing status."""
        conn = await self._get_connection()
        await conn.execute("UPDATE offers SET sync_started_at = NULL WHERE id = ?", (offer_id,))
        await conn.commit()

    async def get_offers_to_activate(self, now: datetime) -> List[int]:
        """PENDING offers whose start date has passed."""
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT id FROM offers WHERE status = ? AND start_date IS NOT NULL AND start_date <= ? ORDER BY id",
            (OfferStatus.PENDING.value, now.isoformat())
        )
        return [row["id"] for row in await cursor.fetchall()]

    async def get_offers_to_revert(self, now: datetime) -> List[int]:
        """ACTIVE offers whose end date has passed."""
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT id FROM offers WHERE status = ? AND end_date IS NOT NULL AND end_date < ? ORDER BY id",
            (OfferStatus.ACTIVE.value, now.isoformat())
        )
        return [row["id"] for row in await cursor.fetchall()]

    # ===== Item Operations =====

    async def set_original_price(self, item_id: int, price: Decimal) -> None:
        """Record the price to restore on revert. Never overwrites a recorded value."""
        conn = await self._get_connection()
        await conn.execute(
            "UPDATE offer_items SET original_price = ? WHERE id = ? AND original_price IS NULL",
            (_to_text(price), item_id)
        )
        await conn.commit()

    async def mark_item_applied(self, item_id: int) -> None:
        conn = await self._get_connection()
        await conn.execute(
            "UPDATE offer_items SET applied_at = ? WHERE id = ?",
            (utcnow().isoformat(), item_id)
        )
        await conn.commit()

    async def mark_item_reverted(self, item_id: int) -> None:
        conn = await self._get_connection()
        await conn.execute(
            "UPDATE offer_items SET reverted_at = ? WHERE id = ?",
            (utcnow().isoformat(), item_id)
        )
        await conn.commit()
