from decimal import Decimal

import pytest

from quillchain.core.errors import InvalidStatusTransition, RecordNotFound
from quillchain.core.ledger import LedgerStore, explorer_url
from quillchain.core.models import FeeKnown, TransactionRecord
from quillchain.tests.fakes import ADDR_A, ADDR_B


def _pending(record_id, tx_hash, **kwargs):
    return TransactionRecord(id=record_id, tx_hash=tx_hash, status="pending", category="Expense",
                             note=f'Note created: "{record_id}" (Work)', **kwargs)


class TestLedgerDatabase:
    def test_settings_and_connected_address(self, database):
        assert database.get_connected_address() is None
        database.set_connected_address(ADDR_A)
        assert database.get_connected_address() == ADDR_A
        database.set_connected_address(None)
        assert database.get_connected_address() is None

    def test_modify_ledger_rolls_back_on_error(self, database):
        database.save_ledger(ADDR_A, [{"id": "1"}])

        def _boom(current):
            current.append({"id": "2"})
            raise RuntimeError("mutate failed")

        with pytest.raises(RuntimeError):
            database.modify_ledger(ADDR_A, _boom)
        assert database.load_ledger(ADDR_A) == [{"id": "1"}]

    def test_list_wallets(self, database):
        database.save_ledger(ADDR_A, [])
        database.save_ledger(ADDR_B, [])
        assert sorted(database.list_wallets()) == sorted([ADDR_A, ADDR_B])


class TestLedgerStore:
    def test_wallet_partition(self, ledger):
        ledger.add(ADDR_A, _pending("1", "h1"))
        ledger.add(ADDR_A, _pending("2", "h2"))

        assert ledger.view(ADDR_B) == []
        ledger.add(ADDR_B, _pending("3", "h3"))

        rows_a = ledger.view(ADDR_A)
        assert [row.id for row in rows_a] == ["2", "1"]
        assert [row.id for row in ledger.view(ADDR_B)] == ["3"]

    def test_add_rekeys_colliding_id(self, ledger):
        first = ledger.add(ADDR_A, _pending("1", "h1"))
        second = ledger.add(ADDR_A, _pending("1", "h2"))
        assert first.id == "1"
        assert second.id == "1-1"
        assert second.sender_address == ADDR_A

    def test_field_level_updates_do_not_clobber(self, ledger):
        ledger.add(ADDR_A, _pending("1", "h1"))
        stale = ledger.get(ADDR_A, "1")

        ledger.update(ADDR_A, stale.id, amount=FeeKnown(Decimal("0.19")), fee_source="blockchain")
        ledger.update(ADDR_A, stale.id, status="confirmed")

        record = ledger.get(ADDR_A, "1")
        assert record.status == "confirmed"
        assert record.fee_source == "blockchain"
        assert record.amount == FeeKnown(Decimal("0.19"))

    def test_update_with_failed_expectation_writes_nothing(self, ledger):
        ledger.add(ADDR_A, _pending("1", "h1"))
        result = ledger.update(ADDR_A, "1", expect={"status": "confirmed"}, note="changed")
        assert result is None
        assert ledger.get(ADDR_A, "1").note != "changed"

    def test_illegal_transition_applies_nothing(self, ledger):
        ledger.add(ADDR_A, TransactionRecord(id="1", tx_hash="h1", status="confirmed"))
        with pytest.raises(InvalidStatusTransition):
            ledger.update(ADDR_A, "1", status="pending", note="changed")
        record = ledger.get(ADDR_A, "1")
        assert record.status == "confirmed"
        assert record.note is None

    def test_update_missing_record(self, ledger):
        assert ledger.update(ADDR_A, "missing", note="x") is None

    def test_load_drops_legacy_entries(self, database):
        database.save_ledger(ADDR_A, [
            {"id": "1", "note": "Initial wallet balance", "status": "recorded"},
            {"id": "2", "status": "confirmed", "amount": 10},
            {"id": "3", "status": "pending", "txHash": "h3", "amount": None},
        ])
        records = LedgerStore(database).load(ADDR_A)
        assert [r.id for r in records] == ["3"]
        assert records[0].fee_source == "estimated"
        assert [r["id"] for r in database.load_ledger(ADDR_A)] == ["3"]

    def test_fee_pending_rendering(self, ledger):
        ledger.add(ADDR_A, _pending("1", "h1"))
        ledger.add(ADDR_A, TransactionRecord(id="2", tx_hash="h2", status="confirmed",
                                             fee_source="blockchain", amount=FeeKnown(Decimal("0.18"))))
        rows = {row.id: row for row in ledger.view(ADDR_A)}

        assert rows["1"].fee_pending is True
        assert rows["1"].amount_display == "fee pending"
        assert rows["2"].amount_display == "-0.180000 ADA"
        assert rows["2"].explorer_url == "https://preview.cardanoscan.io/transaction/h2"
        assert rows["1"].operation_badge is None

    def test_search_and_category(self, ledger):
        ledger.add(ADDR_A, _pending("1", "h1"))
        ledger.add(ADDR_A, TransactionRecord(id="2", category="Income", note="salary", amount=100))

        assert [row.id for row in ledger.view(ADDR_A, search="SALARY")] == ["2"]
        assert [row.id for row in ledger.view(ADDR_A, category="Expense")] == ["1"]
        assert [row.id for row in ledger.view(ADDR_A, search="h1", category="Income")] == []

    def test_link_note_id(self, ledger):
        ledger.add(ADDR_A, _pending("1", "h1"))
        linked = ledger.link_note_id(ADDR_A, "h1", 42)
        assert linked.note_id == "42"
        assert ledger.link_note_id(ADDR_A, "unknown", 42) is None

    def test_remove(self, ledger):
        ledger.add(ADDR_A, _pending("1", "h1"))
        events = []
        ledger.on_change(lambda address, event, record: events.append(event))

        assert ledger.remove(ADDR_A, "1") is True
        assert ledger.records(ADDR_A) == []
        assert events == ["removed"]
        with pytest.raises(RecordNotFound):
            ledger.remove(ADDR_A, "1")


def test_explorer_url_per_network():
    assert explorer_url("h", "mainnet") == "https://cardanoscan.io/transaction/h"
    assert explorer_url("h", "preprod") == "https://preprod.cardanoscan.io/transaction/h"
    assert explorer_url(None, "mainnet") is None
