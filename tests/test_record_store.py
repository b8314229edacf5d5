"""SQLite record store: CRUD, filters, JSON columns and blob storage"""

import pytest

from record_store import (
    RecordNotFoundError,
    RecordStoreError,
    SQLiteRecordStore,
)


def add_project(store, name="Linkist", **kw):
    fields = {'name': name, 'total_value': 240000, 'status': 'active'}
    fields.update(kw)
    return store.insert_record('projects', fields)


class TestInsertAndFetch:
    def test_insert_assigns_id_and_created_at(self, store):
        row = add_project(store)
        assert row['id']
        assert row['created_at']
        assert row['name'] == 'Linkist'
        assert row['total_value'] == 240000

    def test_filters(self, store):
        add_project(store, 'Linkist', status='active')
        add_project(store, '4C', status='pending')
        add_project(store, 'Headz', status='pending')

        rows = store.fetch_collection('projects', filters={'status': 'pending'})
        assert sorted(r['name'] for r in rows) == ['4C', 'Headz']

    def test_null_filter(self, store):
        add_project(store, 'Linkist', client_name='Linkist Client')
        add_project(store, '4C')
        rows = store.fetch_collection('projects', filters={'client_name': None})
        assert [r['name'] for r in rows] == ['4C']

    def test_order_and_limit(self, store):
        for name, value in [('A', 100), ('B', 300), ('C', 200)]:
            add_project(store, name, total_value=value)

        rows = store.fetch_collection('projects', order_by='total_value', descending=True, limit=2)
        assert [r['name'] for r in rows] == ['B', 'C']

    def test_empty_collection(self, store):
        assert store.fetch_collection('quotations') == []

    def test_get_record_missing(self, store):
        with pytest.raises(RecordNotFoundError):
            store.get_record('projects', 'nope')

    def test_documents_round_trip(self, store):
        project = add_project(store)
        docs = [{'name': 'bill.pdf', 'url': 'file:///x', 'kind': 'upload'}]
        row = store.insert_record('transactions', {
            'project_id': project['id'], 'date': '2024-12-01', 'type': 'bill_sent',
            'amount': 40000, 'documents': docs,
        })
        assert row['documents'] == docs

    def test_missing_documents_read_as_empty_list(self, store):
        project = add_project(store)
        row = store.insert_record('transactions', {
            'project_id': project['id'], 'date': '2024-12-01', 'type': 'advance', 'amount': 1,
        })
        assert row['documents'] == []

    def test_constraint_violation_is_store_error(self, store):
        with pytest.raises(RecordStoreError):
            store.insert_record('projects', {'total_value': 1})


class TestUnknownNames:
    def test_unknown_collection(self, store):
        with pytest.raises(ValueError):
            store.fetch_collection('invoices')

    def test_unknown_filter_column(self, store):
        with pytest.raises(ValueError):
            store.fetch_collection('projects', filters={'owner': 'x'})

    def test_unknown_order_column(self, store):
        with pytest.raises(ValueError):
            store.fetch_collection('projects', order_by='name; DROP TABLE projects')

    def test_unknown_insert_column(self, store):
        with pytest.raises(ValueError):
            store.insert_record('projects', {'name': 'X', 'owner': 'y'})


class TestUpdateAndDelete:
    def test_update(self, store):
        row = add_project(store)
        store.update_record('projects', row['id'], {'status': 'completed', 'id': 'ignored'})
        assert store.get_record('projects', row['id'])['status'] == 'completed'

    def test_update_missing(self, store):
        with pytest.raises(RecordNotFoundError):
            store.update_record('projects', 'nope', {'status': 'active'})

    def test_delete_record(self, store):
        row = add_project(store)
        store.delete_record('projects', row['id'])
        assert store.fetch_collection('projects') == []

    def test_delete_missing_is_silent(self, store):
        store.delete_record('projects', 'nope')

    def test_delete_where_counts(self, store):
        keep = add_project(store, 'Keep')
        drop = add_project(store, 'Drop')
        for project in (keep, drop, drop):
            store.insert_record('milestones', {'project_id': project['id'], 'name': 'M1'})

        assert store.delete_where('milestones', project_id=drop['id']) == 2
        remaining = store.fetch_collection('milestones')
        assert [r['project_id'] for r in remaining] == [keep['id']]

    def test_delete_where_needs_condition(self, store):
        with pytest.raises(ValueError):
            store.delete_where('milestones')


class TestBlobs:
    def test_upload_and_delete(self, tmp_path):
        store = SQLiteRecordStore(tmp_path / "blobs.db", tmp_path / "files")
        url = store.upload_blob('documents', 'transactions/t1/bill.pdf', b'%PDF-1.4', 'application/pdf')

        target = tmp_path / "files" / "documents" / "transactions" / "t1" / "bill.pdf"
        assert target.read_bytes() == b'%PDF-1.4'
        assert url.startswith('file://')
        assert url == store.get_public_url('documents', 'transactions/t1/bill.pdf')

        store.delete_blob('documents', 'transactions/t1/bill.pdf')
        assert not target.exists()
        store.delete_blob('documents', 'transactions/t1/bill.pdf')

    @pytest.mark.parametrize("path", ["../escape.txt", "", "a/../../b"])
    def test_rejects_bad_paths(self, store, path):
        with pytest.raises(ValueError):
            store.upload_blob('documents', path, b'x', 'text/plain')


def test_schema_is_idempotent(tmp_path):
    db = tmp_path / "again.db"
    first = SQLiteRecordStore(db, tmp_path / "f")
    add_project(first)
    second = SQLiteRecordStore(db, tmp_path / "f")
    assert len(second.fetch_collection('projects')) == 1
