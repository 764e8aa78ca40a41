"""SQLite-backed catalog of products, release cycles and identifiers.

The store is the only component that touches the database. The sync engine
is its single writer; the resolver and evaluator only read. Writes go
through one connection guarded by a lock. For file-backed databases every
reading thread gets its own connection, so reads proceed in parallel under
WAL journaling and never wait on each other.

"Not found" is always ``None`` or an empty list. Storage failures surface
as :class:`sqlite3.Error` unchanged.
"""

import json
import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Union

from eol_scanner.logging_config import logger

from .models import (
    CatalogStats,
    Category,
    Cycle,
    EOLProduct,
    Identifier,
    Product,
    SyncMetadata,
    eol_info_from_columns,
    eol_info_to_columns,
)
from .records import IdentifierRecord, ProductRecord, ReleaseRecord

DEFAULT_DB_DIR = "eol-db"
DEFAULT_DB_FILE = "eol.db"
DB_PATH_ENV = "EOL_SCANNER_DB"

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT UNIQUE NOT NULL,
        label TEXT,
        total_products INTEGER DEFAULT 0,
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS products (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT UNIQUE NOT NULL,
        category_id INTEGER REFERENCES categories(id),
        category_name TEXT,
        label TEXT,
        link TEXT,
        version_command TEXT,
        aliases TEXT NOT NULL DEFAULT '[]',
        tags TEXT NOT NULL DEFAULT '[]',
        data_hash TEXT,
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cycles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        product_id INTEGER NOT NULL REFERENCES products(id),
        cycle TEXT NOT NULL,
        cycle_label TEXT,
        codename TEXT,
        release_date TEXT,
        eol TEXT,
        eol_boolean INTEGER,
        latest_version TEXT,
        latest_release_date TEXT,
        latest_link TEXT,
        lts INTEGER DEFAULT 0,
        lts_from TEXT,
        support TEXT,
        support_boolean INTEGER,
        is_maintained INTEGER DEFAULT 0,
        data_hash TEXT,
        created_at TIMESTAMP,
        updated_at TIMESTAMP,
        UNIQUE(product_id, cycle)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS identifiers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        product_id INTEGER NOT NULL REFERENCES products(id),
        identifier_type TEXT NOT NULL,
        identifier_value TEXT NOT NULL,
        created_at TIMESTAMP,
        updated_at TIMESTAMP,
        UNIQUE(product_id, identifier_type, identifier_value)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sync_metadata (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        last_full_sync TIMESTAMP,
        last_update_check TIMESTAMP,
        categories_synced TEXT,
        products_count INTEGER DEFAULT 0,
        cycles_count INTEGER DEFAULT 0,
        identifiers_count INTEGER DEFAULT 0
    )
    """,
    "INSERT OR IGNORE INTO sync_metadata (id) VALUES (1)",
    "CREATE INDEX IF NOT EXISTS idx_products_category ON products(category_name)",
    "CREATE INDEX IF NOT EXISTS idx_cycles_product ON cycles(product_id)",
    "CREATE INDEX IF NOT EXISTS idx_cycles_eol ON cycles(eol)",
    "CREATE INDEX IF NOT EXISTS idx_cycles_eol_bool ON cycles(eol_boolean)",
    "CREATE INDEX IF NOT EXISTS idx_identifiers_product ON identifiers(product_id)",
    "CREATE INDEX IF NOT EXISTS idx_identifiers_type_value ON identifiers(identifier_type, identifier_value)",
)

PRODUCT_COLUMNS = (
    "p.id, p.name, p.category_id, p.category_name, p.label, p.link, p.version_command, p.aliases, p.tags, p.data_hash"
)

CYCLE_COLUMNS = """
    c.id, c.product_id, c.cycle, c.cycle_label, c.codename, c.release_date,
    c.eol, c.eol_boolean, c.latest_version, c.latest_release_date, c.latest_link,
    c.lts, c.lts_from, c.support, c.support_boolean, c.is_maintained, c.data_hash
"""

# Date part of an EOL column, so RFC 3339 values compare against plain dates
EOL_DAY = "substr(c.eol, 1, 10)"


def default_db_path() -> Path:
    """
    Return the catalog location: ``$EOL_SCANNER_DB`` or ``~/eol-db/eol.db``.

    The parent directory is created if it does not exist.
    """
    override = os.getenv(DB_PATH_ENV)
    path = Path(override).expanduser() if override else Path.home() / DEFAULT_DB_DIR / DEFAULT_DB_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def utc_timestamp() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _empty_to_none(value: Optional[str]) -> Optional[str]:
    return value if value else None


def _row_to_product(row: sqlite3.Row) -> Product:
    return Product(
        id=row["id"],
        name=row["name"],
        category_id=row["category_id"],
        category_name=row["category_name"],
        label=row["label"],
        link=row["link"],
        version_command=row["version_command"],
        aliases=tuple(json.loads(row["aliases"] or "[]")),
        tags=tuple(json.loads(row["tags"] or "[]")),
        content_hash=row["data_hash"],
    )


def _row_to_cycle(row: sqlite3.Row) -> Cycle:
    return Cycle(
        id=row["id"],
        product_id=row["product_id"],
        name=row["cycle"],
        label=row["cycle_label"],
        codename=row["codename"],
        release_date=row["release_date"],
        eol=eol_info_from_columns(row["eol"], row["eol_boolean"]),
        is_lts=bool(row["lts"]),
        lts_from=row["lts_from"],
        support=eol_info_from_columns(row["support"], row["support_boolean"]),
        is_maintained=bool(row["is_maintained"]),
        latest_version=row["latest_version"],
        latest_release_date=row["latest_release_date"],
        latest_link=row["latest_link"],
        content_hash=row["data_hash"],
    )


class CatalogStore:
    """
    Persistent catalog of categories, products, cycles and identifiers.

    Example:
        with CatalogStore(default_db_path()) as store:
            product_id = store.upsert_product(record)
            store.upsert_cycle(product_id, record.releases[0])
            cycles = store.get_cycles_for_product(record.name)
    """

    def __init__(self, path: Union[str, Path], wal_mode: bool = True) -> None:
        """
        Open (and if needed create) the catalog database.

        Args:
            path: Database file, or ``":memory:"`` for a private in-memory catalog
            wal_mode: Enable WAL journaling so readers do not block on the writer

        Raises:
            sqlite3.Error: If the database cannot be opened or initialized
        """
        self.path = str(path)
        self._in_memory = self.path == ":memory:"
        if not self._in_memory:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        self._local = threading.local()
        self._readers: List[sqlite3.Connection] = []
        self._readers_lock = threading.Lock()

        self._conn = self._connect()
        if wal_mode and not self._in_memory:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
        self._init_schema()
        logger.debug(f"Opened EOL catalog at {self.path}")

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, check_same_thread=False, timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _init_schema(self) -> None:
        with self._lock:
            for statement in SCHEMA:
                self._conn.execute(statement)
            self._conn.commit()

    def _reader(self) -> sqlite3.Connection:
        """Connection for read queries on the calling thread."""
        if self._in_memory:
            return self._conn
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = self._connect()
            self._local.conn = conn
            with self._readers_lock:
                self._readers.append(conn)
        return conn

    def _query(self, sql: str, params: Sequence = ()) -> List[sqlite3.Row]:
        if self._in_memory:
            with self._lock:
                return self._conn.execute(sql, params).fetchall()
        return self._reader().execute(sql, params).fetchall()

    def _query_one(self, sql: str, params: Sequence = ()) -> Optional[sqlite3.Row]:
        rows = self._query(sql, params)
        return rows[0] if rows else None

    def _scalar(self, sql: str, params: Sequence = ()) -> int:
        row = self._query_one(sql, params)
        return row[0] if row and row[0] is not None else 0

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        """Run a write under the writer lock, committing on success."""
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except BaseException:
                self._conn.rollback()
                raise

    def close(self) -> None:
        """Close the writer and every per-thread reader connection."""
        with self._readers_lock:
            for conn in self._readers:
                conn.close()
            self._readers.clear()
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "CatalogStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def upsert_category(self, name: str, label: str = "", total_products: int = 0) -> int:
        """
        Insert or update a category by name.

        An empty ``label`` keeps the stored one; the product count is always
        overwritten.

        Returns:
            The category id
        """
        now = utc_timestamp()
        with self._write() as conn:
            conn.execute(
                """
                INSERT INTO categories (name, label, total_products, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    label = COALESCE(excluded.label, categories.label),
                    total_products = excluded.total_products,
                    updated_at = excluded.updated_at
                """,
                (name, _empty_to_none(label), total_products, now, now),
            )
            return conn.execute("SELECT id FROM categories WHERE name = ?", (name,)).fetchone()[0]

    def upsert_product(self, product: ProductRecord) -> int:
        """
        Insert or update a product by name.

        Scalar fields are only overwritten by non-empty incoming values.
        Aliases and tags are always replaced wholesale.

        Returns:
            The product id, stable across repeated upserts of the same name
        """
        now = utc_timestamp()
        with self._write() as conn:
            category_id = None
            if product.category:
                row = conn.execute("SELECT id FROM categories WHERE name = ?", (product.category,)).fetchone()
                category_id = row[0] if row else None

            conn.execute(
                """
                INSERT INTO products (name, category_id, category_name, label, link,
                                      version_command, aliases, tags, data_hash,
                                      created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    category_id = COALESCE(excluded.category_id, products.category_id),
                    category_name = COALESCE(excluded.category_name, products.category_name),
                    label = COALESCE(excluded.label, products.label),
                    link = COALESCE(excluded.link, products.link),
                    version_command = COALESCE(excluded.version_command, products.version_command),
                    aliases = excluded.aliases,
                    tags = excluded.tags,
                    data_hash = excluded.data_hash,
                    updated_at = excluded.updated_at
                """,
                (
                    product.name,
                    category_id,
                    _empty_to_none(product.category),
                    _empty_to_none(product.label),
                    _empty_to_none(product.link),
                    _empty_to_none(product.version_command),
                    json.dumps(list(product.aliases)),
                    json.dumps(list(product.tags)),
                    product.content_hash,
                    now,
                    now,
                ),
            )
            return conn.execute("SELECT id FROM products WHERE name = ?", (product.name,)).fetchone()[0]

    def upsert_cycle(self, product_id: int, release: ReleaseRecord) -> bool:
        """
        Insert or update a release cycle, skipping the write when nothing changed.

        Returns:
            ``True`` if a row was written, ``False`` if the stored content hash
            already matched
        """
        data_hash = release.content_hash
        eol_date, eol_bool = eol_info_to_columns(release.eol)
        support_date, support_bool = eol_info_to_columns(release.support)
        now = utc_timestamp()

        with self._write() as conn:
            row = conn.execute(
                "SELECT data_hash FROM cycles WHERE product_id = ? AND cycle = ?",
                (product_id, release.name),
            ).fetchone()
            if row is not None and row["data_hash"] == data_hash:
                return False

            conn.execute(
                """
                INSERT INTO cycles (
                    product_id, cycle, cycle_label, codename, release_date,
                    eol, eol_boolean, latest_version, latest_release_date, latest_link,
                    lts, lts_from, support, support_boolean,
                    is_maintained, data_hash, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(product_id, cycle) DO UPDATE SET
                    cycle_label = excluded.cycle_label,
                    codename = excluded.codename,
                    release_date = excluded.release_date,
                    eol = excluded.eol,
                    eol_boolean = excluded.eol_boolean,
                    latest_version = excluded.latest_version,
                    latest_release_date = excluded.latest_release_date,
                    latest_link = excluded.latest_link,
                    lts = excluded.lts,
                    lts_from = excluded.lts_from,
                    support = excluded.support,
                    support_boolean = excluded.support_boolean,
                    is_maintained = excluded.is_maintained,
                    data_hash = excluded.data_hash,
                    updated_at = excluded.updated_at
                """,
                (
                    product_id,
                    release.name,
                    _empty_to_none(release.label),
                    _empty_to_none(release.codename),
                    _empty_to_none(release.release_date),
                    eol_date,
                    eol_bool,
                    _empty_to_none(release.latest_version),
                    _empty_to_none(release.latest_release_date),
                    _empty_to_none(release.latest_link),
                    int(release.is_lts),
                    _empty_to_none(release.lts_from),
                    support_date,
                    support_bool,
                    int(release.is_maintained),
                    data_hash,
                    now,
                    now,
                ),
            )
            return True

    def upsert_identifiers(self, product_id: int, identifiers: Iterable[IdentifierRecord]) -> int:
        """
        Insert identifiers for a product; existing ones only get a new timestamp.

        Entries with an empty type or value are skipped without error.

        Returns:
            Number of entries written
        """
        count = 0
        now = utc_timestamp()
        with self._write() as conn:
            for identifier in identifiers:
                if not identifier.is_valid:
                    continue
                conn.execute(
                    """
                    INSERT INTO identifiers (product_id, identifier_type, identifier_value, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(product_id, identifier_type, identifier_value) DO UPDATE SET
                        updated_at = excluded.updated_at
                    """,
                    (product_id, identifier.type, identifier.value, now, now),
                )
                count += 1
        return count

    def update_sync_metadata(self, categories: Sequence[str]) -> SyncMetadata:
        """Stamp the singleton sync record with the current time and row counts."""
        now = utc_timestamp()
        with self._write() as conn:
            conn.execute(
                """
                UPDATE sync_metadata SET
                    last_full_sync = ?,
                    last_update_check = ?,
                    categories_synced = ?,
                    products_count = (SELECT COUNT(*) FROM products),
                    cycles_count = (SELECT COUNT(*) FROM cycles),
                    identifiers_count = (SELECT COUNT(*) FROM identifiers)
                WHERE id = 1
                """,
                (now, now, json.dumps(list(categories))),
            )
        return self.get_sync_metadata()

    def touch_update_check(self) -> None:
        """Record that freshness was checked without performing a sync."""
        with self._write() as conn:
            conn.execute("UPDATE sync_metadata SET last_update_check = ? WHERE id = 1", (utc_timestamp(),))

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def get_sync_metadata(self) -> SyncMetadata:
        row = self._query_one("SELECT * FROM sync_metadata WHERE id = 1")
        if row is None:
            return SyncMetadata()
        categories = tuple(json.loads(row["categories_synced"])) if row["categories_synced"] else ()
        return SyncMetadata(
            last_full_sync=row["last_full_sync"],
            last_update_check=row["last_update_check"],
            categories_synced=categories,
            products_count=row["products_count"] or 0,
            cycles_count=row["cycles_count"] or 0,
            identifiers_count=row["identifiers_count"] or 0,
        )

    def get_category(self, name: str) -> Optional[Category]:
        row = self._query_one("SELECT id, name, label, total_products FROM categories WHERE name = ?", (name,))
        if row is None:
            return None
        return Category(id=row["id"], name=row["name"], label=row["label"], total_products=row["total_products"])

    def get_product(self, name: str) -> Optional[Product]:
        row = self._query_one(f"SELECT {PRODUCT_COLUMNS} FROM products p WHERE p.name = ?", (name,))
        return _row_to_product(row) if row else None

    def products_by_category(self, category: str) -> List[Product]:
        rows = self._query(
            f"SELECT {PRODUCT_COLUMNS} FROM products p WHERE p.category_name = ? ORDER BY p.name",
            (category,),
        )
        return [_row_to_product(row) for row in rows]

    def get_cycles_for_product(self, product_name: str) -> List[Cycle]:
        """All cycles of a product, newest release first (undated cycles last)."""
        rows = self._query(
            f"""
            SELECT {CYCLE_COLUMNS}
            FROM cycles c
            JOIN products p ON c.product_id = p.id
            WHERE p.name = ?
            ORDER BY c.release_date IS NULL, c.release_date DESC, c.id
            """,
            (product_name,),
        )
        return [_row_to_cycle(row) for row in rows]

    def get_identifiers(self, product_name: str) -> List[Identifier]:
        rows = self._query(
            """
            SELECT i.identifier_type, i.identifier_value
            FROM identifiers i
            JOIN products p ON i.product_id = p.id
            WHERE p.name = ?
            ORDER BY i.identifier_type, i.identifier_value
            """,
            (product_name,),
        )
        return [Identifier(type=row[0], value=row[1]) for row in rows]

    def eol_products(
        self,
        include_future: bool = False,
        days_ahead: Optional[int] = None,
        today: Optional[date] = None,
    ) -> List[EOLProduct]:
        """
        List product cycles by EOL state.

        Args:
            include_future: Every cycle with any known EOL, past or future
            days_ahead: Cycles whose EOL falls on or before ``today + days_ahead``
                (takes precedence over ``include_future``)
            today: Reference date, defaults to the current UTC date

        Returns:
            Matching cycles; ascending by EOL date for the forward-looking
            modes, most recently ended first otherwise
        """
        today = today or datetime.now(timezone.utc).date()
        select = """
            SELECT p.name, p.category_name, c.cycle, c.eol, c.latest_version, c.lts
            FROM cycles c
            JOIN products p ON c.product_id = p.id
        """

        if days_ahead is not None:
            try:
                cutoff = (today + timedelta(days=days_ahead)).isoformat()
            except OverflowError:
                cutoff = date.max.isoformat()
            sql = select + f" WHERE (c.eol IS NOT NULL AND {EOL_DAY} <= ?) OR c.eol_boolean = 1 ORDER BY c.eol ASC"
            params: Sequence = (cutoff,)
        elif include_future:
            sql = select + " WHERE c.eol IS NOT NULL OR c.eol_boolean = 1 ORDER BY c.eol ASC"
            params = ()
        else:
            sql = select + f" WHERE (c.eol IS NOT NULL AND {EOL_DAY} <= ?) OR c.eol_boolean = 1 ORDER BY c.eol DESC"
            params = (today.isoformat(),)

        return [
            EOLProduct(
                name=row[0],
                category_name=row[1],
                cycle=row[2],
                eol_date=row[3],
                latest_version=row[4],
                is_lts=bool(row[5]),
            )
            for row in self._query(sql, params)
        ]

    def stats(self, today: Optional[date] = None) -> CatalogStats:
        """Totals plus per-category and per-identifier-type breakdowns."""
        day = (today or datetime.now(timezone.utc).date()).isoformat()
        meta = self.get_sync_metadata()

        stats = CatalogStats(
            last_full_sync=meta.last_full_sync,
            last_update_check=meta.last_update_check,
            categories_synced=list(meta.categories_synced),
            total_categories=self._scalar("SELECT COUNT(*) FROM categories"),
            total_products=self._scalar("SELECT COUNT(*) FROM products"),
            total_cycles=self._scalar("SELECT COUNT(*) FROM cycles"),
            total_identifiers=self._scalar("SELECT COUNT(*) FROM identifiers"),
            eol_cycles=self._scalar(
                f"SELECT COUNT(*) FROM cycles c WHERE (c.eol IS NOT NULL AND {EOL_DAY} <= ?) OR c.eol_boolean = 1",
                (day,),
            ),
            active_cycles=self._scalar(
                f"SELECT COUNT(*) FROM cycles c WHERE c.eol IS NOT NULL AND {EOL_DAY} > ?",
                (day,),
            ),
        )

        for row in self._query("SELECT identifier_type, COUNT(*) FROM identifiers GROUP BY identifier_type"):
            stats.identifiers_by_type[row[0]] = row[1]

        for row in self._query(
            "SELECT category_name, COUNT(*) FROM products WHERE category_name IS NOT NULL GROUP BY category_name"
        ):
            stats.products_by_category[row[0]] = row[1]

        return stats

    # ------------------------------------------------------------------
    # Lookup primitives for the resolver
    # ------------------------------------------------------------------

    def find_by_purl(self, purl: str) -> Optional[Product]:
        """Product owning a ``purl`` identifier equal to ``purl``."""
        row = self._query_one(
            f"""
            SELECT {PRODUCT_COLUMNS}
            FROM products p
            JOIN identifiers i ON p.id = i.product_id
            WHERE i.identifier_type = 'purl' AND i.identifier_value = ?
            ORDER BY p.id
            LIMIT 1
            """,
            (purl,),
        )
        return _row_to_product(row) if row else None

    def find_by_purl_prefix(self, prefix: str) -> Optional[Product]:
        """Product owning a ``purl`` identifier that starts with ``prefix``; shortest value wins."""
        row = self._query_one(
            f"""
            SELECT {PRODUCT_COLUMNS}
            FROM products p
            JOIN identifiers i ON p.id = i.product_id
            WHERE i.identifier_type = 'purl' AND i.identifier_value LIKE ? ESCAPE '\\'
            ORDER BY length(i.identifier_value), p.id
            LIMIT 1
            """,
            (_escape_like(prefix) + "%",),
        )
        return _row_to_product(row) if row else None

    def find_by_package(self, purl_type: str, name: str, namespaced: bool = True) -> Optional[Product]:
        """
        Product owning a ``pkg:<purl_type>/<name>`` identifier, by prefix.

        ``purl_type`` may carry a namespace (``deb/debian``). With
        ``namespaced`` an identifier with one more path segment, such as
        ``pkg:maven/org.example/<name>``, also matches. Matching is
        case-insensitive and the shortest identifier wins.
        """
        base = f"pkg:{_escape_like(purl_type)}/"
        escaped_name = _escape_like(name)
        patterns = [f"{base}{escaped_name}%"]
        if namespaced:
            patterns.append(f"{base}%/{escaped_name}%")
        condition = " OR ".join("LOWER(i.identifier_value) LIKE LOWER(?) ESCAPE '\\'" for _ in patterns)
        row = self._query_one(
            f"""
            SELECT {PRODUCT_COLUMNS}
            FROM products p
            JOIN identifiers i ON p.id = i.product_id
            WHERE i.identifier_type = 'purl' AND ({condition})
            ORDER BY length(i.identifier_value), p.id
            LIMIT 1
            """,
            patterns,
        )
        return _row_to_product(row) if row else None

    def find_by_cpe(self, cpe: str) -> Optional[Product]:
        """
        Product owning a ``cpe`` identifier matching ``cpe``, case-insensitively.

        An exact match wins. Otherwise a stored CPE that extends ``cpe`` or
        that ``cpe`` extends at a ``:`` boundary (a versioned CPE against
        its unversioned form) matches, most specific first.
        """
        row = self._query_one(
            f"""
            SELECT {PRODUCT_COLUMNS}
            FROM products p
            JOIN identifiers i ON p.id = i.product_id
            WHERE i.identifier_type = 'cpe' AND LOWER(i.identifier_value) = LOWER(?)
            ORDER BY p.id
            LIMIT 1
            """,
            (cpe,),
        )
        if row is None:
            row = self._query_one(
                f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products p
                JOIN identifiers i ON p.id = i.product_id
                WHERE i.identifier_type = 'cpe' AND (
                    substr(LOWER(i.identifier_value), 1, length(?1)) = LOWER(?1) OR
                    substr(LOWER(?1), 1, length(i.identifier_value) + 1) = LOWER(i.identifier_value) || ':'
                )
                ORDER BY length(i.identifier_value) DESC, p.id
                LIMIT 1
                """,
                (cpe,),
            )
        return _row_to_product(row) if row else None

    def find_by_name(self, name: str) -> Optional[Product]:
        """Product whose name equals ``name`` ignoring case."""
        row = self._query_one(
            f"SELECT {PRODUCT_COLUMNS} FROM products p WHERE LOWER(p.name) = LOWER(?) ORDER BY p.id LIMIT 1",
            (name,),
        )
        return _row_to_product(row) if row else None

    def find_by_alias(self, name: str) -> Optional[Product]:
        """Product listing ``name`` among its aliases, ignoring case."""
        row = self._query_one(
            f"""
            SELECT {PRODUCT_COLUMNS}
            FROM products p
            WHERE EXISTS (
                SELECT 1 FROM json_each(p.aliases) a WHERE LOWER(a.value) = LOWER(?)
            )
            ORDER BY p.id
            LIMIT 1
            """,
            (name,),
        )
        return _row_to_product(row) if row else None

    def find_by_repology(self, name: str) -> Optional[Product]:
        """Product owning a ``repology`` identifier equal to ``name`` ignoring case."""
        row = self._query_one(
            f"""
            SELECT {PRODUCT_COLUMNS}
            FROM products p
            JOIN identifiers i ON p.id = i.product_id
            WHERE i.identifier_type = 'repology' AND LOWER(i.identifier_value) = LOWER(?)
            ORDER BY p.id
            LIMIT 1
            """,
            (name,),
        )
        return _row_to_product(row) if row else None
