"""Tests for storage backends."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
import tempfile
import threading

import pytest

from walletguard.guard import SpendingGuard
from walletguard.models import (
    Contact,
    SpendingRecord,
    SpendReservation,
    TransactionLogEntry,
    WalletSettings,
)
from walletguard.storage import InMemoryStorage, SQLiteStorage


WALLET = "GWALLET"
NOW = datetime(2026, 5, 4, 8, 30, tzinfo=timezone.utc)


def test_sqlite_storage_persists_records():
    """SQLite storage should persist spend counters across instances."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = f"{tmpdir}/walletguard.db"

        storage = SQLiteStorage(db_path=db_path)
        guard = SpendingGuard(storage=storage)
        guard.set_daily_limit(WALLET, 750)
        guard.validate_transaction(WALLET, "120.5", "GDEST")
        guard.freeze_wallet(WALLET)
        storage.close()

        storage2 = SQLiteStorage(db_path=db_path)
        guard2 = SpendingGuard(storage=storage2)
        record = guard2.get_spending_info(WALLET)
        assert record.daily_limit == Decimal("750")
        assert record.daily_spent == Decimal("120.5")
        assert record.monthly_spent == Decimal("120.5")
        assert record.is_frozen is True
        storage2.close()


def test_sqlite_storage_record_roundtrip():
    """Timestamps and decimals should come back unchanged."""
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = SQLiteStorage(db_path=f"{tmpdir}/walletguard.db")
        record = SpendingRecord.new(WALLET, NOW, daily_limit=Decimal("99.95"))

        storage.put_record(record)

        assert storage.get_record(WALLET) == record
        assert storage.get_record("GOTHER") is None
        storage.close()


def test_sqlite_storage_settings_roundtrip():
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = SQLiteStorage(db_path=f"{tmpdir}/walletguard.db")
        settings = WalletSettings(
            wallet_key=WALLET,
            auto_approve_trusted=True,
            max_tx_amount=Decimal("25"),
            emergency_contact="GFRIEND",
        )

        storage.put_settings(settings)

        assert storage.get_settings(WALLET) == settings
        storage.close()


def test_sqlite_storage_contacts():
    """Contacts are keyed by lower-cased name per wallet."""
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = SQLiteStorage(db_path=f"{tmpdir}/walletguard.db")
        storage.put_contact(Contact(WALLET, "Alice", "GALICE"))
        storage.put_contact(Contact(WALLET, "ALICE", "GALICE2", is_trusted=True))
        storage.put_contact(Contact(WALLET, "Bob", "GBOB"))
        storage.put_contact(Contact("GOTHER", "Carol", "GCAROL"))

        alice = storage.get_contact(WALLET, "alice")
        assert alice.address == "GALICE2"
        assert alice.is_trusted is True
        assert [c.name for c in storage.list_contacts(WALLET)] == ["ALICE", "Bob"]

        assert storage.delete_contact(WALLET, "bob") is True
        assert storage.delete_contact(WALLET, "bob") is False
        assert storage.get_contact(WALLET, "Bob") is None
        storage.close()


def test_sqlite_storage_transactions():
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = SQLiteStorage(db_path=f"{tmpdir}/walletguard.db")
        entry = TransactionLogEntry(WALLET, "GDEST", Decimal("3.5"), memo="coffee", timestamp=NOW)
        storage.add_transaction(entry)
        storage.add_transaction(TransactionLogEntry("GOTHER", "GDEST", Decimal("1")))

        assert storage.count_transactions(WALLET) == 1
        assert storage.list_transactions(WALLET) == [entry]
        storage.close()


def test_sqlite_locked_rolls_back_on_error():
    """A failure inside locked() must not leave a half-written wallet."""
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = SQLiteStorage(db_path=f"{tmpdir}/walletguard.db")
        record = SpendingRecord.new(WALLET, NOW)

        with pytest.raises(RuntimeError):
            with storage.locked(WALLET):
                storage.put_record(record)
                raise RuntimeError("boom")

        assert storage.get_record(WALLET) is None
        storage.close()


def test_sqlite_concurrent_validations():
    """Racing validations against SQLite never overspend."""
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = SQLiteStorage(db_path=f"{tmpdir}/walletguard.db")
        guard = SpendingGuard(storage=storage)
        barrier = threading.Barrier(8)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            result = guard.validate_transaction(WALLET, 300, "GDEST")
            with lock:
                results.append(result.is_valid)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 3
        assert guard.get_spending_info(WALLET).daily_spent == Decimal("900")
        storage.close()


def test_in_memory_list_transactions_returns_copy():
    storage = InMemoryStorage()
    storage.add_transaction(TransactionLogEntry(WALLET, "GDEST", Decimal("1")))

    storage.list_transactions(WALLET).clear()

    assert storage.count_transactions(WALLET) == 1


def test_sqlite_reservations_taken_once():
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = SQLiteStorage(db_path=f"{tmpdir}/walletguard.db")
        reservation = SpendReservation(WALLET, Decimal("5"), NOW, NOW)

        storage.add_reservation(reservation)

        assert storage.take_reservation("GOTHER", reservation.reservation_id) is False
        assert storage.take_reservation(WALLET, reservation.reservation_id) is True
        assert storage.take_reservation(WALLET, reservation.reservation_id) is False
        storage.close()


@pytest.mark.parametrize("make_storage", [InMemoryStorage, lambda: SQLiteStorage(":memory:")])
def test_prune_drops_reservations_outside_both_windows(make_storage):
    storage = make_storage()
    later = NOW + timedelta(days=1, hours=1)
    stale = storage.add_reservation(SpendReservation(WALLET, Decimal("1"), NOW, NOW))
    same_month = storage.add_reservation(SpendReservation(WALLET, Decimal("2"), NOW, later))

    assert storage.prune_reservations(WALLET, later, later) == 1

    assert storage.take_reservation(WALLET, stale.reservation_id) is False
    assert storage.take_reservation(WALLET, same_month.reservation_id) is True


def test_in_memory_contacts_scoped_per_wallet():
    storage = InMemoryStorage()
    storage.put_contact(Contact(WALLET, "Alice", "GALICE"))
    storage.put_contact(Contact("GOTHER", "Bob", "GBOB"))

    assert [c.name for c in storage.list_contacts(WALLET)] == ["Alice"]
    assert storage.delete_contact("GOTHER", "alice") is False
    assert storage.delete_contact(WALLET, "ALICE") is True
    assert storage.list_contacts(WALLET) == []
