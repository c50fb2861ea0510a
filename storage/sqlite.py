"""SQLite persistence for crawl jobs, robots rules, documents and host policy."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional

from core.config import CrawlConfig
from core.models import Job, Locator, RobotsRule
from core.pipeline import JobStore, StoreError
from fetcher.robots import is_path_allowed, with_root_rule


def _utc_now() -> datetime:
    """Return timezone-aware UTC timestamp."""
    return datetime.now(UTC)


def _job_from_row(row: sqlite3.Row) -> Job:
    return Job(
        id=int(row["url_id"]),
        locator=Locator(protocol=str(row["protocol"]), host=str(row["host_name"]), path=str(row["path"])),
    )


def _host_is_whitelisted(host: str, whitelist: set[str]) -> bool:
    """Host equals a whitelisted suffix or is a subdomain of one."""
    return any(host == suffix or host.endswith("." + suffix) for suffix in whitelist)


def _has_blacklisted_extension(path: str, extensions: set[str]) -> bool:
    lowered = path.lower()
    return any(lowered.endswith(extension.lower()) for extension in extensions)


class SQLiteJobStore(JobStore):
    """
    Persist crawl state to SQLite.

    One connection is opened per operation, so a single store instance can be
    shared by every worker thread. Each operation commits on success and
    rolls back on failure; sqlite errors surface as StoreError.
    """

    def __init__(self, db_path: str | Path, initialize: bool = True) -> None:
        """Initialize store and optionally apply the schema."""
        self.db_path = Path(db_path)
        self._host_whitelist: Optional[set[str]] = None
        self._host_blacklist: Optional[set[str]] = None
        self._extension_blacklist: Optional[set[str]] = None
        if initialize:
            self.initialize_schema()

    @contextmanager
    def _connect(self, operation: str) -> Iterator[sqlite3.Connection]:
        try:
            connection = sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            raise StoreError(operation, exc) from exc
        connection.row_factory = sqlite3.Row
        try:
            connection.execute("PRAGMA foreign_keys = ON")
            yield connection
            connection.commit()
        except sqlite3.Error as exc:
            connection.rollback()
            raise StoreError(operation, exc) from exc
        finally:
            connection.close()

    def initialize_schema(self) -> None:
        """Apply initial migration schema (idempotent)."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError("initialize_schema", exc) from exc
        migration_path = Path(__file__).resolve().parent / "migrations" / "0001_init.sql"
        sql = migration_path.read_text(encoding="utf-8")
        with self._connect("initialize_schema") as connection:
            connection.executescript(sql)

    # ------------------------------------------------------------------
    # Policy lists
    # ------------------------------------------------------------------

    def add_host_whitelist(self, suffix: str) -> None:
        """Admit a host suffix (e.g. "example.edu" admits "www.example.edu")."""
        with self._connect("add_host_whitelist") as connection:
            connection.execute(
                "INSERT OR IGNORE INTO host_whitelist (host_suffix) VALUES (?)",
                (suffix.strip().lower(),),
            )
        self._host_whitelist = None

    def add_host_blacklist(self, host: str) -> None:
        """Exclude one exact host name."""
        with self._connect("add_host_blacklist") as connection:
            connection.execute(
                "INSERT OR IGNORE INTO host_blacklist (host_name) VALUES (?)",
                (host.strip().lower(),),
            )
        self._host_blacklist = None

    def add_extension_blacklist(self, extension: str) -> None:
        """Exclude paths ending in `extension` (case-insensitive)."""
        with self._connect("add_extension_blacklist") as connection:
            connection.execute(
                "INSERT OR IGNORE INTO extension_blacklist (extension) VALUES (?)",
                (extension.strip().lower(),),
            )
        self._extension_blacklist = None

    def _load_policy(self, connection: sqlite3.Connection) -> tuple[set[str], set[str], set[str]]:
        if self._host_whitelist is None:
            self._host_whitelist = {
                str(row["host_suffix"])
                for row in connection.execute("SELECT host_suffix FROM host_whitelist").fetchall()
            }
        if self._host_blacklist is None:
            self._host_blacklist = {
                str(row["host_name"])
                for row in connection.execute("SELECT host_name FROM host_blacklist").fetchall()
            }
        if self._extension_blacklist is None:
            self._extension_blacklist = {
                str(row["extension"])
                for row in connection.execute("SELECT extension FROM extension_blacklist").fetchall()
            }
        return self._host_whitelist, self._host_blacklist, self._extension_blacklist

    # ------------------------------------------------------------------
    # Row helpers (caller owns the transaction)
    # ------------------------------------------------------------------

    def _host_id(self, connection: sqlite3.Connection, host: str, create: bool) -> Optional[int]:
        row = connection.execute("SELECT host_id FROM host WHERE host_name = ?", (host,)).fetchone()
        if row is not None:
            return int(row["host_id"])
        if not create:
            return None
        cursor = connection.execute("INSERT INTO host (host_name) VALUES (?)", (host,))
        return int(cursor.lastrowid)

    def _url_exists(self, connection: sqlite3.Connection, locator: Locator) -> bool:
        row = connection.execute(
            """
            SELECT 1 FROM url JOIN host USING (host_id)
            WHERE protocol = ? AND host_name = ? AND path = ?
            """,
            (locator.protocol, locator.host, locator.path),
        ).fetchone()
        return row is not None

    def _insert_url(self, connection: sqlite3.Connection, locator: Locator) -> Job:
        host_id = self._host_id(connection, locator.host, create=True)
        cursor = connection.execute(
            "INSERT INTO url (protocol, host_id, path, when_crawled) VALUES (?, ?, ?, NULL)",
            (locator.protocol, host_id, locator.path),
        )
        return Job(id=int(cursor.lastrowid), locator=locator)

    def _rules_for(self, connection: sqlite3.Connection, protocol: str, host: str) -> set[RobotsRule]:
        rows = connection.execute(
            """
            SELECT path_prefix, allowed FROM robots_txt_rule JOIN host USING (host_id)
            WHERE protocol = ? AND host_name = ?
            """,
            (protocol, host),
        ).fetchall()
        return {RobotsRule(protocol, host, str(row["path_prefix"]), bool(row["allowed"])) for row in rows}

    def _job_exists(self, connection: sqlite3.Connection, job: Job) -> bool:
        row = connection.execute("SELECT 1 FROM url WHERE url_id = ?", (job.id,)).fetchone()
        return row is not None

    def _mark_crawled(self, connection: sqlite3.Connection, job: Job) -> None:
        connection.execute(
            "UPDATE url SET when_crawled = ? WHERE url_id = ?",
            (_utc_now().isoformat(), job.id),
        )

    # ------------------------------------------------------------------
    # JobStore
    # ------------------------------------------------------------------

    def load_pending_jobs(self) -> set[Job]:
        with self._connect("load_pending_jobs") as connection:
            rows = connection.execute(
                """
                SELECT url_id, protocol, host_name, path FROM url JOIN host USING (host_id)
                WHERE when_crawled IS NULL
                """
            ).fetchall()
        return {_job_from_row(row) for row in rows}

    def complete_robots(self, job: Job, rules: Iterable[RobotsRule]) -> set[Job]:
        protocol, host = job.locator.protocol, job.locator.host
        cancelled: set[Job] = set()
        with self._connect("complete_robots") as connection:
            host_id = self._host_id(connection, host, create=True)
            for rule in with_root_rule(rules, protocol, host):
                connection.execute(
                    """
                    INSERT OR IGNORE INTO robots_txt_rule (protocol, host_id, path_prefix, allowed)
                    VALUES (?, ?, ?, ?)
                    """,
                    (protocol, host_id, rule.path_prefix, int(rule.allowed)),
                )
            self._mark_crawled(connection, job)

            stored_rules = self._rules_for(connection, protocol, host)
            rows = connection.execute(
                """
                SELECT url_id, protocol, host_name, path FROM url JOIN host USING (host_id)
                WHERE protocol = ? AND host_id = ? AND when_crawled IS NULL AND url_id != ?
                """,
                (protocol, host_id, job.id),
            ).fetchall()
            for row in rows:
                pending = _job_from_row(row)
                if not is_path_allowed(stored_rules, pending.locator.path):
                    connection.execute("DELETE FROM url WHERE url_id = ?", (pending.id,))
                    cancelled.add(pending)
        return cancelled

    def complete_html(self, job: Job, links: Iterable[Locator], content: str) -> set[Job]:
        created: set[Job] = set()
        with self._connect("complete_html") as connection:
            whitelist, blacklist, extensions = self._load_policy(connection)
            for link in links:
                if self._url_exists(connection, link):
                    continue
                if not _host_is_whitelisted(link.host, whitelist):
                    continue
                if link.host in blacklist:
                    continue
                if _has_blacklisted_extension(link.path, extensions):
                    continue

                add_robots = False
                rules = self._rules_for(connection, link.protocol, link.host)
                if rules:
                    if not is_path_allowed(rules, link.path):
                        continue
                elif link != link.robots_locator() and not self._url_exists(connection, link.robots_locator()):
                    add_robots = True

                created.add(self._insert_url(connection, link))
                if add_robots:
                    created.add(self._insert_url(connection, link.robots_locator()))

            # A job disallowed by robots rules while it was being fetched no
            # longer has a url row; its links are still admitted.
            if not self._job_exists(connection, job):
                return created

            # Content with an embedded NUL is not stored.
            stored_content = "" if "\0" in content else content
            if stored_content:
                connection.execute(
                    "INSERT OR REPLACE INTO document (url_id, content) VALUES (?, ?)",
                    (job.id, stored_content),
                )
            self._mark_crawled(connection, job)
        return created

    def cancel_html(self, job: Job) -> None:
        with self._connect("cancel_html") as connection:
            self._mark_crawled(connection, job)

    # ------------------------------------------------------------------
    # Seeding and inspection
    # ------------------------------------------------------------------

    def add_seed(self, url: str) -> set[Job]:
        """
        Register a starting URL, bypassing host policy.

        A robots.txt job is added too when the host has neither rules nor a
        robots job yet.

        Raises:
            ValueError: If `url` is not an absolute http(s) URL
        """
        locator = Locator.from_url(url)
        if locator.protocol not in CrawlConfig.ALLOWED_PROTOCOLS:
            raise ValueError(f"Unsupported protocol for seed: {locator.protocol}")

        created: set[Job] = set()
        with self._connect("add_seed") as connection:
            if not self._url_exists(connection, locator):
                created.add(self._insert_url(connection, locator))
            robots = locator.robots_locator()
            if (
                not self._rules_for(connection, locator.protocol, locator.host)
                and not self._url_exists(connection, robots)
            ):
                created.add(self._insert_url(connection, robots))
        return created

    def get_rules(self, protocol: str, host: str) -> set[RobotsRule]:
        """Return every rule stored for a protocol + host."""
        with self._connect("get_rules") as connection:
            return self._rules_for(connection, protocol.lower(), host.lower())

    def get_document(self, job_id: int) -> Optional[str]:
        """Return stored content for a crawled job, or None."""
        with self._connect("get_document") as connection:
            row = connection.execute(
                "SELECT content FROM document WHERE url_id = ?", (job_id,)
            ).fetchone()
        return str(row["content"]) if row is not None else None

    def count_pending(self) -> int:
        with self._connect("count_pending") as connection:
            row = connection.execute(
                "SELECT COUNT(*) AS total FROM url WHERE when_crawled IS NULL"
            ).fetchone()
        return int(row["total"])
