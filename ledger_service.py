"""
HISAB - Ledger Service
======================

PURPOSE:
--------
The one place pages go through to read and write the record store.

ERROR POLICY:
-------------
- Reads: a RecordStoreError is logged and an empty result is returned, so
  a page renders with empty lists instead of crashing.
- Writes: errors propagate. Entities are validated first and a failed
  check raises ValidationError before anything is sent to the store.
- Multi-step deletes (project cascade, bulk delete) are plain sequences of
  single deletes. A failure partway raises CascadeDeleteError with the
  steps that already went through; nothing is rolled back.

The service keeps no state between calls apart from the store handle.
"""

import logging
import mimetypes
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Tuple

from entities_core import (
    ACTION_ITEMS,
    COLLECTIONS,
    MILESTONES,
    PROJECTS,
    QUOTATIONS,
    TRANSACTIONS,
    MILESTONE_STATUSES,
    QUOTATION_STATUSES,
    ActionItem,
    DocumentRef,
    Milestone,
    Project,
    Quotation,
    Transaction,
    rows_to_entities,
)
from record_store import (
    HisabError,
    RecordStore,
    RecordStoreError,
)
from utils_format import generate_timestamp
import seed_data

logger = logging.getLogger(__name__)

# Children removed before the project row itself, in this order
CASCADE_ORDER = (TRANSACTIONS, MILESTONES, ACTION_ITEMS)


# ============================================================================
# EXCEPTIONS
# ============================================================================

class ValidationError(HisabError):
    """An entity failed its own validate() check; nothing was written"""


class CascadeDeleteError(RecordStoreError):
    """
    A multi-step delete stopped partway.

    Attributes:
        completed: steps that went through, e.g. ['transactions', 'milestones']
        failed_step: the step that raised
    """

    def __init__(self, message: str, completed: List[str], failed_step: str):
        super().__init__(message)
        self.completed = list(completed)
        self.failed_step = failed_step


# ============================================================================
# SNAPSHOT
# ============================================================================

@dataclass
class LedgerSnapshot:
    """Every collection loaded once for a page run"""
    projects: List[Project] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)
    milestones: List[Milestone] = field(default_factory=list)
    action_items: List[ActionItem] = field(default_factory=list)
    quotations: List[Quotation] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.projects

    def project(self, project_id: Optional[str]) -> Optional[Project]:
        for p in self.projects:
            if p.id == project_id:
                return p
        return None


def _newest_first(transactions: List[Transaction]) -> List[Transaction]:
    def key(tx: Transaction):
        created = tx.created_at.replace(tzinfo=None) if tx.created_at else datetime.min
        return (tx.date or date.min, created)

    return sorted(transactions, key=key, reverse=True)


def _safe_file_name(name: str) -> str:
    clean = re.sub(r"[^A-Za-z0-9._-]+", "_", name.strip())
    return clean.strip("._") or "document"


# ============================================================================
# SERVICE
# ============================================================================

class LedgerService:
    """Reads and writes for every page, on top of a RecordStore"""

    def __init__(self, store: RecordStore, documents_bucket: str = "documents"):
        self.store = store
        self.documents_bucket = documents_bucket

    # ------------------------------------------------------------------------
    # READS
    # ------------------------------------------------------------------------

    def _fetch(self, collection: str, **kwargs) -> list:
        try:
            rows = self.store.fetch_collection(collection, **kwargs)
        except RecordStoreError:
            logger.exception("Could not load %s", collection)
            return []
        return rows_to_entities(collection, rows)

    def list_projects(self) -> List[Project]:
        """Newest first"""
        return self._fetch(PROJECTS, order_by="created_at", descending=True)

    def list_transactions(self, project_id: Optional[str] = None) -> List[Transaction]:
        """Newest first by date, then by creation time"""
        filters = {"project_id": project_id} if project_id else None
        return _newest_first(self._fetch(TRANSACTIONS, filters=filters))

    def list_milestones(self, project_id: Optional[str] = None) -> List[Milestone]:
        filters = {"project_id": project_id} if project_id else None
        return self._fetch(MILESTONES, filters=filters, order_by="created_at")

    def list_action_items(self, project_id: Optional[str] = None) -> List[ActionItem]:
        filters = {"project_id": project_id} if project_id else None
        return self._fetch(ACTION_ITEMS, filters=filters, order_by="created_at")

    def list_quotations(self) -> List[Quotation]:
        return self._fetch(QUOTATIONS, order_by="quote_date", descending=True)

    def get_project(self, project_id: str) -> Optional[Project]:
        """The project, or None when it is missing or cannot be read"""
        projects = self._fetch(PROJECTS, filters={"id": project_id}, limit=1)
        return projects[0] if projects else None

    def load_snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            projects=self.list_projects(),
            transactions=self.list_transactions(),
            milestones=self.list_milestones(),
            action_items=self.list_action_items(),
            quotations=self.list_quotations(),
        )

    # ------------------------------------------------------------------------
    # CREATE / UPDATE
    # ------------------------------------------------------------------------

    @staticmethod
    def _check(entity) -> None:
        ok, message = entity.validate()
        if not ok:
            raise ValidationError(message)

    def _insert(self, collection: str, entity):
        self._check(entity)
        row = self.store.insert_record(collection, entity.to_row())
        logger.info("Created %s %s", collection, row.get("id"))
        return type(entity).from_row(row)

    def _update(self, collection: str, entity) -> None:
        if not entity.id:
            raise ValueError(f"Cannot update a {collection} record without id")
        self._check(entity)
        self.store.update_record(collection, entity.id, entity.to_row())

    def _require_project(self, project_id: Optional[str]) -> None:
        if project_id:
            self.store.get_record(PROJECTS, project_id)

    def create_project(self, project: Project) -> Project:
        return self._insert(PROJECTS, project)

    def update_project(self, project: Project) -> None:
        self._update(PROJECTS, project)

    def create_transaction(self, transaction: Transaction) -> Transaction:
        """Raises RecordNotFoundError when the project does not exist"""
        self._check(transaction)
        self._require_project(transaction.project_id)
        return self._insert(TRANSACTIONS, transaction)

    def create_milestone(self, milestone: Milestone) -> Milestone:
        self._check(milestone)
        self._require_project(milestone.project_id)
        return self._insert(MILESTONES, milestone)

    def create_action_item(self, item: ActionItem) -> ActionItem:
        return self._insert(ACTION_ITEMS, item)

    def create_quotation(self, quotation: Quotation) -> Quotation:
        return self._insert(QUOTATIONS, quotation)

    # ------------------------------------------------------------------------
    # STATUS CHANGES
    # ------------------------------------------------------------------------

    def toggle_action_item(self, item: ActionItem) -> str:
        """Flips pending <-> done and returns the new status"""
        new_status = "pending" if item.status == "done" else "done"
        self.store.update_record(ACTION_ITEMS, item.id, {"status": new_status})
        item.status = new_status
        return new_status

    def set_quotation_status(self, quotation_id: str, status: str) -> None:
        if status not in QUOTATION_STATUSES:
            raise ValidationError(f"Invalid quotation status: {status}")
        self.store.update_record(QUOTATIONS, quotation_id, {"status": status})

    def set_milestone_status(self, milestone_id: str, status: str) -> None:
        if status not in MILESTONE_STATUSES:
            raise ValidationError(f"Invalid milestone status: {status}")
        self.store.update_record(MILESTONES, milestone_id, {"status": status})

    # ------------------------------------------------------------------------
    # DELETES
    # ------------------------------------------------------------------------

    def delete_record(self, collection: str, record_id: str) -> None:
        """Single delete; projects always go through the cascade"""
        if collection == PROJECTS:
            self.delete_project(record_id)
        else:
            self.store.delete_record(collection, record_id)

    def delete_project(self, project_id: str) -> List[str]:
        """
        Deletes a project and its transactions, milestones and action items.

        Quotations are left in place (their project link is optional).

        Returns:
            list: steps completed, ending with 'projects'

        Raises:
            CascadeDeleteError: a step failed; earlier steps stay deleted
        """
        completed = []
        for step in CASCADE_ORDER + (PROJECTS,):
            try:
                if step == PROJECTS:
                    self.store.delete_record(PROJECTS, project_id)
                else:
                    self.store.delete_where(step, project_id=project_id)
            except RecordStoreError as e:
                logger.error(
                    "Cascade delete of project %s stopped at %s (done: %s)",
                    project_id, step, completed or "nothing",
                )
                raise CascadeDeleteError(
                    f"Could not delete {step} of project {project_id}: {e}",
                    completed=completed,
                    failed_step=step,
                ) from e
            completed.append(step)

        logger.info("Deleted project %s with its records", project_id)
        return completed

    def bulk_delete(self, collection: str, ids: Iterable[str]) -> List[str]:
        """
        Deletes every id one by one (projects with their cascade).

        Returns the deleted ids. A failure raises CascadeDeleteError whose
        `completed` lists the ids already deleted and `failed_step` the id
        that failed.
        """
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection}")

        deleted = []
        for record_id in sorted(ids):
            try:
                self.delete_record(collection, record_id)
            except RecordStoreError as e:
                raise CascadeDeleteError(
                    f"Bulk delete of {collection} stopped at {record_id}: {e}",
                    completed=deleted,
                    failed_step=record_id,
                ) from e
            deleted.append(record_id)

        logger.info("Bulk deleted %d %s", len(deleted), collection)
        return deleted

    # ------------------------------------------------------------------------
    # DOCUMENTS
    # ------------------------------------------------------------------------

    def _load_transaction(self, transaction_id: str) -> Transaction:
        return Transaction.from_row(self.store.get_record(TRANSACTIONS, transaction_id))

    def _append_document(self, transaction: Transaction, document: DocumentRef) -> DocumentRef:
        ok, message = document.validate()
        if not ok:
            raise ValidationError(message)
        documents = [d.to_dict() for d in transaction.documents] + [document.to_dict()]
        self.store.update_record(TRANSACTIONS, transaction.id, {"documents": documents})
        transaction.documents.append(document)
        return document

    def attach_document(
        self,
        transaction_id: str,
        file_name: str,
        data: bytes,
        content_type: Optional[str] = None
    ) -> DocumentRef:
        """
        Uploads a file and appends it to the transaction's document list.

        Raises RecordNotFoundError when the transaction does not exist.
        """
        transaction = self._load_transaction(transaction_id)
        content_type = (
            content_type
            or mimetypes.guess_type(file_name)[0]
            or "application/octet-stream"
        )
        path = f"transactions/{transaction_id}/{generate_timestamp()}_{_safe_file_name(file_name)}"
        url = self.store.upload_blob(self.documents_bucket, path, data, content_type)

        document = DocumentRef(
            name=file_name,
            url=url,
            kind="upload",
            mime_type=content_type,
            attached_at=datetime.now(timezone.utc),
        )
        return self._append_document(transaction, document)

    def attach_link(self, transaction_id: str, name: str, url: str) -> DocumentRef:
        """Appends an external link (drive, email, ...) to the document list"""
        transaction = self._load_transaction(transaction_id)
        document = DocumentRef(
            name=name.strip() or url,
            url=url.strip(),
            kind="link",
            attached_at=datetime.now(timezone.utc),
        )
        return self._append_document(transaction, document)

    # ------------------------------------------------------------------------
    # SAMPLE DATA
    # ------------------------------------------------------------------------

    def seed(self) -> Tuple[bool, str]:
        """
        Loads the sample dataset into an empty store.

        Returns (False, reason) without writing anything when projects
        already exist. Store errors propagate.
        """
        if self.store.fetch_collection(PROJECTS, limit=1):
            return False, "The store already has projects; sample data not loaded"

        ids = {}
        for row in seed_data.SAMPLE_PROJECTS:
            project = self.create_project(Project.from_row(row))
            ids[project.name] = project.id

        def with_project(row: dict) -> dict:
            data = {k: v for k, v in row.items() if k != "project"}
            data["project_id"] = ids[row["project"]]
            return data

        for row in seed_data.SAMPLE_TRANSACTIONS:
            self.create_transaction(Transaction.from_row(with_project(row)))
        for row in seed_data.SAMPLE_MILESTONES:
            self.create_milestone(Milestone.from_row(with_project(row)))
        for row in seed_data.SAMPLE_ACTION_ITEMS:
            self.create_action_item(ActionItem.from_row(with_project(row)))

        message = (
            f"Loaded {len(seed_data.SAMPLE_PROJECTS)} projects, "
            f"{len(seed_data.SAMPLE_TRANSACTIONS)} transactions, "
            f"{len(seed_data.SAMPLE_MILESTONES)} milestones and "
            f"{len(seed_data.SAMPLE_ACTION_ITEMS)} action items"
        )
        logger.info(message)
        return True, message
