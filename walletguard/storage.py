"""Storage backends for spending records, settings, contacts and transfers."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Protocol
import sqlite3
import threading

from walletguard.models import (
    Contact,
    SpendingRecord,
    SpendReservation,
    TransactionLogEntry,
    WalletSettings,
)


class StorageBackend(Protocol):
    """Storage backend interface.

    ``locked(wallet_key)`` gives the caller exclusive access to one wallet's
    state for the duration of the block; every read-modify-write of a
    wallet's record must happen inside it.
    """

    def locked(self, wallet_key: str) -> Iterator[None]:
        ...

    def get_record(self, wallet_key: str) -> Optional[SpendingRecord]:
        ...

    def put_record(self, record: SpendingRecord) -> SpendingRecord:
        ...

    def get_settings(self, wallet_key: str) -> Optional[WalletSettings]:
        ...

    def put_settings(self, settings: WalletSettings) -> WalletSettings:
        ...

    def get_contact(self, wallet_key: str, name: str) -> Optional[Contact]:
        ...

    def put_contact(self, contact: Contact) -> Contact:
        ...

    def delete_contact(self, wallet_key: str, name: str) -> bool:
        ...

    def list_contacts(self, wallet_key: str) -> List[Contact]:
        ...

    def add_transaction(self, entry: TransactionLogEntry) -> TransactionLogEntry:
        ...

    def list_transactions(self, wallet_key: str) -> List[TransactionLogEntry]:
        ...

    def count_transactions(self, wallet_key: str) -> int:
        ...

    def add_reservation(self, reservation: SpendReservation) -> SpendReservation:
        ...

    def take_reservation(self, wallet_key: str, reservation_id: str) -> bool:
        ...

    def prune_reservations(
        self, wallet_key: str, day_start: datetime, month_start: datetime
    ) -> int:
        ...


class InMemoryStorage:
    """In-memory storage backend (default)."""

    def __init__(self):
        self._records: Dict[str, SpendingRecord] = {}
        self._settings: Dict[str, WalletSettings] = {}
        self._contacts: Dict[str, Dict[str, Contact]] = {}
        self._transactions: Dict[str, List[TransactionLogEntry]] = {}
        self._reservations: Dict[str, Dict[str, SpendReservation]] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _wallet_lock(self, wallet_key: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(wallet_key)
            if lock is None:
                lock = threading.RLock()
                self._locks[wallet_key] = lock
            return lock

    @contextmanager
    def locked(self, wallet_key: str) -> Iterator[None]:
        with self._wallet_lock(wallet_key):
            yield

    def get_record(self, wallet_key: str) -> Optional[SpendingRecord]:
        return self._records.get(wallet_key)

    def put_record(self, record: SpendingRecord) -> SpendingRecord:
        self._records[record.wallet_key] = record
        return record

    def get_settings(self, wallet_key: str) -> Optional[WalletSettings]:
        return self._settings.get(wallet_key)

    def put_settings(self, settings: WalletSettings) -> WalletSettings:
        self._settings[settings.wallet_key] = settings
        return settings

    def get_contact(self, wallet_key: str, name: str) -> Optional[Contact]:
        return self._contacts.get(wallet_key, {}).get(name.lower())

    def put_contact(self, contact: Contact) -> Contact:
        self._contacts.setdefault(contact.wallet_key, {})[contact.key] = contact
        return contact

    def delete_contact(self, wallet_key: str, name: str) -> bool:
        return self._contacts.get(wallet_key, {}).pop(name.lower(), None) is not None

    def list_contacts(self, wallet_key: str) -> List[Contact]:
        return list(self._contacts.get(wallet_key, {}).values())

    def add_transaction(self, entry: TransactionLogEntry) -> TransactionLogEntry:
        self._transactions.setdefault(entry.from_key, []).append(entry)
        return entry

    def list_transactions(self, wallet_key: str) -> List[TransactionLogEntry]:
        return list(self._transactions.get(wallet_key, []))

    def count_transactions(self, wallet_key: str) -> int:
        return len(self._transactions.get(wallet_key, []))

    def add_reservation(self, reservation: SpendReservation) -> SpendReservation:
        self._reservations.setdefault(reservation.wallet_key, {})[
            reservation.reservation_id
        ] = reservation
        return reservation

    def take_reservation(self, wallet_key: str, reservation_id: str) -> bool:
        return self._reservations.get(wallet_key, {}).pop(reservation_id, None) is not None

    def prune_reservations(
        self, wallet_key: str, day_start: datetime, month_start: datetime
    ) -> int:
        pending = self._reservations.get(wallet_key, {})
        stale = [
            rid for rid, r in pending.items()
            if r.day_start != day_start and r.month_start != month_start
        ]
        for rid in stale:
            del pending[rid]
        return len(stale)


def _parse_timestamp(value: str) -> datetime:
    timestamp = datetime.fromisoformat(value)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp


class SQLiteStorage:
    """SQLite-backed storage backend.

    One connection is shared by all threads, so ``locked()`` serializes
    every wallet through a single re-entrant lock and wraps the block in a
    ``BEGIN IMMEDIATE`` transaction. Other processes using the same file
    are serialized by SQLite's write lock.
    """

    def __init__(self, db_path: str = "walletguard.db"):
        self._conn = sqlite3.connect(
            db_path,
            check_same_thread=False,
            isolation_level=None,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA foreign_keys=ON;")
        self._lock = threading.RLock()
        self._depth = 0
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS spending_records (
                wallet_key TEXT PRIMARY KEY,
                daily_limit TEXT NOT NULL,
                monthly_limit TEXT NOT NULL,
                daily_spent TEXT NOT NULL,
                monthly_spent TEXT NOT NULL,
                day_start TEXT NOT NULL,
                month_start TEXT NOT NULL,
                is_frozen INTEGER NOT NULL
            )
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS wallet_settings (
                wallet_key TEXT PRIMARY KEY,
                auto_approve_trusted INTEGER NOT NULL,
                require_memo INTEGER NOT NULL,
                max_tx_amount TEXT NOT NULL,
                emergency_contact TEXT NOT NULL
            )
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS contacts (
                wallet_key TEXT NOT NULL,
                name_key TEXT NOT NULL,
                name TEXT NOT NULL,
                address TEXT NOT NULL,
                is_trusted INTEGER NOT NULL,
                PRIMARY KEY (wallet_key, name_key)
            )
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS transactions (
                entry_id TEXT PRIMARY KEY,
                from_key TEXT NOT NULL,
                to_key TEXT NOT NULL,
                amount TEXT NOT NULL,
                memo TEXT NOT NULL,
                type TEXT NOT NULL,
                timestamp TEXT NOT NULL
            )
            """
        )
        self._conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_transactions_from ON transactions(from_key, timestamp)"
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS reservations (
                reservation_id TEXT PRIMARY KEY,
                wallet_key TEXT NOT NULL,
                amount TEXT NOT NULL,
                day_start TEXT NOT NULL,
                month_start TEXT NOT NULL
            )
            """
        )
        self._conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_reservations_wallet ON reservations(wallet_key)"
        )

    @contextmanager
    def locked(self, wallet_key: str) -> Iterator[None]:
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self._conn.execute("BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield
            except BaseException:
                self._depth -= 1
                if outermost:
                    self._conn.execute("ROLLBACK")
                raise
            else:
                self._depth -= 1
                if outermost:
                    self._conn.execute("COMMIT")

    def get_record(self, wallet_key: str) -> Optional[SpendingRecord]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM spending_records WHERE wallet_key = ?",
                (wallet_key,),
            ).fetchone()
        if not row:
            return None
        return SpendingRecord(
            wallet_key=row["wallet_key"],
            daily_limit=Decimal(row["daily_limit"]),
            monthly_limit=Decimal(row["monthly_limit"]),
            daily_spent=Decimal(row["daily_spent"]),
            monthly_spent=Decimal(row["monthly_spent"]),
            day_start=_parse_timestamp(row["day_start"]),
            month_start=_parse_timestamp(row["month_start"]),
            is_frozen=bool(row["is_frozen"]),
        )

    def put_record(self, record: SpendingRecord) -> SpendingRecord:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO spending_records (
                    wallet_key, daily_limit, monthly_limit, daily_spent,
                    monthly_spent, day_start, month_start, is_frozen
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(wallet_key) DO UPDATE SET
                    daily_limit=excluded.daily_limit,
                    monthly_limit=excluded.monthly_limit,
                    daily_spent=excluded.daily_spent,
                    monthly_spent=excluded.monthly_spent,
                    day_start=excluded.day_start,
                    month_start=excluded.month_start,
                    is_frozen=excluded.is_frozen
                """,
                (
                    record.wallet_key,
                    str(record.daily_limit),
                    str(record.monthly_limit),
                    str(record.daily_spent),
                    str(record.monthly_spent),
                    record.day_start.isoformat(),
                    record.month_start.isoformat(),
                    1 if record.is_frozen else 0,
                ),
            )
        return record

    def get_settings(self, wallet_key: str) -> Optional[WalletSettings]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM wallet_settings WHERE wallet_key = ?",
                (wallet_key,),
            ).fetchone()
        if not row:
            return None
        return WalletSettings(
            wallet_key=row["wallet_key"],
            auto_approve_trusted=bool(row["auto_approve_trusted"]),
            require_memo=bool(row["require_memo"]),
            max_tx_amount=Decimal(row["max_tx_amount"]),
            emergency_contact=row["emergency_contact"],
        )

    def put_settings(self, settings: WalletSettings) -> WalletSettings:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO wallet_settings (
                    wallet_key, auto_approve_trusted, require_memo,
                    max_tx_amount, emergency_contact
                )
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(wallet_key) DO UPDATE SET
                    auto_approve_trusted=excluded.auto_approve_trusted,
                    require_memo=excluded.require_memo,
                    max_tx_amount=excluded.max_tx_amount,
                    emergency_contact=excluded.emergency_contact
                """,
                (
                    settings.wallet_key,
                    1 if settings.auto_approve_trusted else 0,
                    1 if settings.require_memo else 0,
                    str(settings.max_tx_amount),
                    settings.emergency_contact,
                ),
            )
        return settings

    def _row_to_contact(self, row: sqlite3.Row) -> Contact:
        return Contact(
            wallet_key=row["wallet_key"],
            name=row["name"],
            address=row["address"],
            is_trusted=bool(row["is_trusted"]),
        )

    def get_contact(self, wallet_key: str, name: str) -> Optional[Contact]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM contacts WHERE wallet_key = ? AND name_key = ?",
                (wallet_key, name.lower()),
            ).fetchone()
        if not row:
            return None
        return self._row_to_contact(row)

    def put_contact(self, contact: Contact) -> Contact:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO contacts (wallet_key, name_key, name, address, is_trusted)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(wallet_key, name_key) DO UPDATE SET
                    name=excluded.name,
                    address=excluded.address,
                    is_trusted=excluded.is_trusted
                """,
                (
                    contact.wallet_key,
                    contact.key,
                    contact.name,
                    contact.address,
                    1 if contact.is_trusted else 0,
                ),
            )
        return contact

    def delete_contact(self, wallet_key: str, name: str) -> bool:
        with self._lock:
            cur = self._conn.execute(
                "DELETE FROM contacts WHERE wallet_key = ? AND name_key = ?",
                (wallet_key, name.lower()),
            )
        return cur.rowcount > 0

    def list_contacts(self, wallet_key: str) -> List[Contact]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM contacts WHERE wallet_key = ? ORDER BY rowid ASC",
                (wallet_key,),
            ).fetchall()
        return [self._row_to_contact(row) for row in rows]

    def add_transaction(self, entry: TransactionLogEntry) -> TransactionLogEntry:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO transactions (entry_id, from_key, to_key, amount, memo, type, timestamp)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.entry_id,
                    entry.from_key,
                    entry.to,
                    str(entry.amount),
                    entry.memo,
                    entry.type,
                    entry.timestamp.isoformat(),
                ),
            )
        return entry

    def list_transactions(self, wallet_key: str) -> List[TransactionLogEntry]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM transactions WHERE from_key = ? ORDER BY timestamp ASC, rowid ASC",
                (wallet_key,),
            ).fetchall()
        return [
            TransactionLogEntry(
                from_key=row["from_key"],
                to=row["to_key"],
                amount=Decimal(row["amount"]),
                memo=row["memo"],
                type=row["type"],
                timestamp=_parse_timestamp(row["timestamp"]),
                entry_id=row["entry_id"],
            )
            for row in rows
        ]

    def count_transactions(self, wallet_key: str) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) AS n FROM transactions WHERE from_key = ?",
                (wallet_key,),
            ).fetchone()
        return int(row["n"])

    def add_reservation(self, reservation: SpendReservation) -> SpendReservation:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO reservations (reservation_id, wallet_key, amount, day_start, month_start)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    reservation.reservation_id,
                    reservation.wallet_key,
                    str(reservation.amount),
                    reservation.day_start.isoformat(),
                    reservation.month_start.isoformat(),
                ),
            )
        return reservation

    def take_reservation(self, wallet_key: str, reservation_id: str) -> bool:
        with self._lock:
            cur = self._conn.execute(
                "DELETE FROM reservations WHERE wallet_key = ? AND reservation_id = ?",
                (wallet_key, reservation_id),
            )
        return cur.rowcount > 0

    def prune_reservations(
        self, wallet_key: str, day_start: datetime, month_start: datetime
    ) -> int:
        with self._lock:
            cur = self._conn.execute(
                """
                DELETE FROM reservations
                WHERE wallet_key = ? AND day_start != ? AND month_start != ?
                """,
                (wallet_key, day_start.isoformat(), month_start.isoformat()),
            )
        return cur.rowcount

    def close(self) -> None:
        with self._lock:
            self._conn.close()
