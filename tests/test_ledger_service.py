"""
Ledger service tests: validation before writes, read fallbacks, cascade
and bulk deletes, attachments and sample data loading.
"""

from datetime import date
from unittest.mock import MagicMock

import pytest

from entities_core import ActionItem, Milestone, Project, Quotation, Transaction
from ledger_service import CASCADE_ORDER, CascadeDeleteError, LedgerService, ValidationError
from record_store import RecordNotFoundError, RecordStore, RecordStoreError


def new_project(service, name="Linkist", total_value=240000):
    return service.create_project(Project(id=None, name=name, total_value=total_value, status="active"))


def new_tx(service, project_id, type="payment_received", amount=1000, on=date(2024, 12, 1)):
    return service.create_transaction(Transaction(
        id=None, project_id=project_id, date=on, type=type, amount=amount, mode="bank",
    ))


@pytest.fixture
def broken_store():
    store = MagicMock(spec=RecordStore)
    store.fetch_collection.side_effect = RecordStoreError("offline")
    return store


class TestReads:
    def test_reads_fall_back_to_empty(self, broken_store):
        service = LedgerService(broken_store)
        assert service.list_projects() == []
        assert service.list_transactions() == []
        assert service.get_project('p1') is None
        assert service.load_snapshot().is_empty

    def test_transactions_newest_first(self, service):
        project = new_project(service)
        new_tx(service, project.id, on=date(2024, 10, 1))
        new_tx(service, project.id, on=date(2024, 12, 1))
        new_tx(service, project.id, on=date(2024, 11, 1))

        dates = [tx.date for tx in service.list_transactions(project.id)]
        assert dates == [date(2024, 12, 1), date(2024, 11, 1), date(2024, 10, 1)]

    def test_snapshot_lookup(self, service):
        project = new_project(service)
        snapshot = service.load_snapshot()
        assert snapshot.project(project.id).name == "Linkist"
        assert snapshot.project("missing") is None


class TestWrites:
    def test_create_project_returns_stored_entity(self, service):
        project = new_project(service)
        assert project.id
        assert project.created_at is not None
        assert service.get_project(project.id).total_value == 240000

    def test_invalid_entity_never_reaches_store(self):
        store = MagicMock(spec=RecordStore)
        service = LedgerService(store)
        with pytest.raises(ValidationError, match="name is required"):
            service.create_project(Project(id=None, name="  "))
        store.insert_record.assert_not_called()

    def test_transaction_for_missing_project(self, service):
        with pytest.raises(RecordNotFoundError):
            new_tx(service, "ghost")

    def test_milestone_for_missing_project(self, service):
        with pytest.raises(RecordNotFoundError):
            service.create_milestone(Milestone(id=None, project_id="ghost", name="M1"))

    def test_update_requires_id(self, service):
        with pytest.raises(ValueError):
            service.update_project(Project(id=None, name="X"))

    def test_update_project(self, service):
        project = new_project(service)
        project.status = "completed"
        service.update_project(project)
        assert service.get_project(project.id).status == "completed"


class TestStatusChanges:
    def test_toggle_action_item(self, service):
        item = service.create_action_item(ActionItem(id=None, description="Send invoice"))

        assert service.toggle_action_item(item) == "done"
        assert service.list_action_items()[0].status == "done"
        assert service.toggle_action_item(item) == "pending"
        assert service.list_action_items()[0].status == "pending"

    def test_quotation_status(self, service):
        quotation = service.create_quotation(Quotation(id=None, quote_date=date(2024, 12, 1),
                                                       amount=50000, description="Phase 2"))
        service.set_quotation_status(quotation.id, "accepted")
        assert service.list_quotations()[0].status == "accepted"

        with pytest.raises(ValidationError):
            service.set_quotation_status(quotation.id, "won")

    def test_milestone_status_rejects_unknown(self, service):
        with pytest.raises(ValidationError):
            service.set_milestone_status("m1", "overdue")


class TestCascadeDelete:
    def test_removes_children_and_keeps_others(self, service):
        doomed = new_project(service, "Doomed")
        kept = new_project(service, "Kept")
        for project in (doomed, kept):
            new_tx(service, project.id)
            service.create_milestone(Milestone(id=None, project_id=project.id, name="M1"))
            service.create_action_item(ActionItem(id=None, description="Call", project_id=project.id))
        service.create_quotation(Quotation(id=None, quote_date=date(2024, 12, 1),
                                           description="Linked quote", project_id=doomed.id))

        steps = service.delete_project(doomed.id)

        assert steps == list(CASCADE_ORDER) + ["projects"]
        snapshot = service.load_snapshot()
        assert [p.id for p in snapshot.projects] == [kept.id]
        assert {tx.project_id for tx in snapshot.transactions} == {kept.id}
        assert {m.project_id for m in snapshot.milestones} == {kept.id}
        assert {a.project_id for a in snapshot.action_items} == {kept.id}
        assert len(snapshot.quotations) == 1

    def test_order_of_deletes(self):
        store = MagicMock(spec=RecordStore)
        LedgerService(store).delete_record("projects", "p1")

        children = [c.args[0] for c in store.delete_where.call_args_list]
        assert children == ["transactions", "milestones", "action_items"]
        store.delete_record.assert_called_once_with("projects", "p1")

    def test_partial_failure_reports_progress(self):
        store = MagicMock(spec=RecordStore)
        store.delete_where.side_effect = [3, RecordStoreError("timeout"), 0]

        with pytest.raises(CascadeDeleteError) as info:
            LedgerService(store).delete_project("p1")

        assert info.value.completed == ["transactions"]
        assert info.value.failed_step == "milestones"
        store.delete_record.assert_not_called()


class TestBulkDelete:
    def test_deletes_selected(self, service):
        project = new_project(service)
        txs = [new_tx(service, project.id, amount=a) for a in (100, 200, 300)]

        deleted = service.bulk_delete("transactions", [txs[0].id, txs[2].id])

        assert sorted(deleted) == sorted([txs[0].id, txs[2].id])
        assert [tx.amount for tx in service.list_transactions()] == [200]

    def test_unknown_collection(self, service):
        with pytest.raises(ValueError):
            service.bulk_delete("invoices", ["x"])

    def test_stops_at_first_failure(self):
        store = MagicMock(spec=RecordStore)
        store.delete_record.side_effect = [None, RecordStoreError("boom"), None]

        with pytest.raises(CascadeDeleteError) as info:
            LedgerService(store).bulk_delete("quotations", ["c", "a", "b"])

        assert info.value.completed == ["a"]
        assert info.value.failed_step == "b"
        assert store.delete_record.call_count == 2

    def test_empty_selection(self, service):
        assert service.bulk_delete("projects", []) == []


class TestDocuments:
    def test_attach_document(self, service):
        project = new_project(service)
        tx = new_tx(service, project.id, type="bill_sent")

        document = service.attach_document(tx.id, "Bill Dec 2024.pdf", b"%PDF-1.4")

        assert document.kind == "upload"
        assert document.mime_type == "application/pdf"
        assert document.url.startswith("file://")
        assert "Bill_Dec_2024.pdf" in document.url

        stored = service.list_transactions()[0]
        assert [d.name for d in stored.documents] == ["Bill Dec 2024.pdf"]

    def test_attach_link_appends(self, service):
        project = new_project(service)
        tx = new_tx(service, project.id)

        service.attach_link(tx.id, "Drive folder", "https://drive.example.com/f/1")
        service.attach_link(tx.id, "", "https://mail.example.com/m/2")

        documents = service.list_transactions()[0].documents
        assert [d.kind for d in documents] == ["link", "link"]
        assert documents[1].name == "https://mail.example.com/m/2"

    def test_empty_link_rejected(self, service):
        project = new_project(service)
        tx = new_tx(service, project.id)
        with pytest.raises(ValidationError):
            service.attach_link(tx.id, "Nothing", "  ")

    def test_missing_transaction(self, service):
        with pytest.raises(RecordNotFoundError):
            service.attach_link("ghost", "x", "https://a")


class TestSeed:
    def test_loads_sample_data_once(self, service):
        loaded, message = service.seed()
        assert loaded
        assert "5 projects" in message

        snapshot = service.load_snapshot()
        assert len(snapshot.projects) == 5
        assert len(snapshot.transactions) == 5
        assert len(snapshot.milestones) == 4
        assert len(snapshot.action_items) == 3

        neuro = next(p for p in snapshot.projects if p.name.startswith("Neuro"))
        assert {m.project_id for m in snapshot.milestones} == {neuro.id}

        loaded, message = service.seed()
        assert not loaded
        assert len(service.list_projects()) == 5
