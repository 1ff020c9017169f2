import logging
import re
from typing import Optional, Protocol

import psycopg
from psycopg.rows import dict_row

from app.settings import settings
from persistence.models import InventoryRow

logger = logging.getLogger(__name__)

TOKEN_STOP_WORDS = frozenset({"mg", "ml", "mcg", "g", "tablet", "capsule", "cap", "tab"})

TYPO_CORRECTIONS = {
    "aspiring": "aspirin",
    "paracetomol": "paracetamol",
    "ibruprofen": "ibuprofen",
    "amoxycilin": "amoxicillin",
}

_PRODUCT_COLUMNS = """
    p.id, p.name, p.brand_name, p.generic_name, p.dosage_form,
    p.category_id, c.name AS category_name, p.quantity AS stock,
    p.selling_price, p.expiry_date AS expiry, p.unit
"""

_AVAILABLE = """
    p.deleted_at IS NULL
    AND p.quantity > 0
    AND (p.expiry_date IS NULL OR p.expiry_date >= CURRENT_DATE)
"""

SEARCH_QUERY = f"""
    SELECT {_PRODUCT_COLUMNS}
    FROM products p
    LEFT JOIN categories c ON p.category_id = c.id
    WHERE {_AVAILABLE}
      AND (p.name ILIKE %(needle)s OR p.brand_name ILIKE %(needle)s
           OR p.generic_name ILIKE %(needle)s)
    ORDER BY p.updated_at DESC
    LIMIT %(limit)s;
"""

SAME_GENERIC_QUERY = f"""
    SELECT {_PRODUCT_COLUMNS}
    FROM products p
    LEFT JOIN categories c ON p.category_id = c.id
    WHERE {_AVAILABLE}
      AND LOWER(p.generic_name) = LOWER(%(generic)s)
    ORDER BY p.updated_at DESC
    LIMIT %(limit)s;
"""

SAME_CATEGORY_QUERY = f"""
    SELECT {_PRODUCT_COLUMNS}
    FROM products p
    LEFT JOIN categories c ON p.category_id = c.id
    WHERE {_AVAILABLE}
      AND p.category_id = %(category_id)s
    ORDER BY p.updated_at DESC
    LIMIT %(limit)s;
"""


def normalise_search_term(name: str) -> str:
    """
    Arg : name : class <'str'>
    lowercases the name, drops strengths such as "500 mg" and any
    punctuation, and collapses whitespace
    """
    name = name.lower()
    name = re.sub(r"\b\d{1,4}\s?(mg|ml|mcg|g)\b", "", name)
    name = re.sub(r"[^a-z0-9\s\-]", " ", name)
    return re.sub(r"\s+", " ", name).strip()


def search_tokens(term: str) -> list[str]:
    """Fallback needles, longest first."""
    tokens = [w for w in term.split(" ") if len(w) >= 3 and w not in TOKEN_STOP_WORDS]
    return sorted(tokens, key=len, reverse=True)


def correct_typos(name: str) -> Optional[tuple[str, str]]:
    lowered = name.lower()
    for typo, correct in TYPO_CORRECTIONS.items():
        if typo in lowered:
            return typo, correct
    return None


class InventoryLookup(Protocol):
    """Read-only product lookup consumed by the assistant pipeline."""

    async def search(self, name: str, limit: int = 8) -> list[InventoryRow]: ...

    async def alternatives(
        self, row: InventoryRow, exclude: set[int], limit: int = 10
    ) -> list[InventoryRow]: ...


class EmptyInventory:
    """Lookup used when no database is configured."""

    async def search(self, name: str, limit: int = 8) -> list[InventoryRow]:
        return []

    async def alternatives(
        self, row: InventoryRow, exclude: set[int], limit: int = 10
    ) -> list[InventoryRow]:
        return []


class PostgresInventory:
    """Catalogue lookup over psycopg. Issues SELECT statements only."""

    def __init__(self, conninfo: Optional[str] = None):
        self.conninfo = conninfo or settings.DATABASE_URL

    async def _fetch(self, query: str, params: dict) -> list[InventoryRow]:
        async with await psycopg.AsyncConnection.connect(
            self.conninfo, row_factory=dict_row
        ) as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                rows = await cur.fetchall()
        return [InventoryRow.model_validate(r) for r in rows]

    async def _select(self, needle: str, limit: int) -> list[InventoryRow]:
        return await self._fetch(SEARCH_QUERY, {"needle": f"%{needle}%", "limit": limit})

    async def search(self, name: str, limit: int = 8) -> list[InventoryRow]:
        """Full normalised term, then single tokens, then typo corrections."""
        original = name.strip()
        base = normalise_search_term(original)

        rows = await self._select(base or original, limit)
        if rows or not base:
            return rows

        for token in search_tokens(base):
            rows = await self._select(token, limit)
            if rows:
                return rows

        correction = correct_typos(original)
        if correction:
            typo, correct = correction
            logger.info("Correcting %r to %r for inventory search", typo, correct)
            rows = await self._select(correct, limit)
        return rows

    async def alternatives(
        self, row: InventoryRow, exclude: set[int], limit: int = 10
    ) -> list[InventoryRow]:
        """Same generic first; same category only when that finds nothing."""
        seen = set(exclude)
        found: list[InventoryRow] = []

        if row.generic_name:
            for alt in await self._fetch(
                SAME_GENERIC_QUERY, {"generic": row.generic_name, "limit": limit}
            ):
                if alt.id not in seen:
                    found.append(alt)
                    seen.add(alt.id)

        if not found and row.category_id is not None:
            for alt in await self._fetch(
                SAME_CATEGORY_QUERY, {"category_id": row.category_id, "limit": limit}
            ):
                if alt.id not in seen:
                    found.append(alt)
                    seen.add(alt.id)
        return found


def get_inventory() -> InventoryLookup:
    if settings.DATABASE_URL:
        return PostgresInventory(settings.DATABASE_URL)
    logger.warning("DATABASE_URL not set, inventory lookups will return nothing")
    return EmptyInventory()
