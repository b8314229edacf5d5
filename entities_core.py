"""
HISAB - Domain Entities
=======================

PURPOSE:
--------
Typed views of the rows the record store returns: projects, transactions,
milestones, action items and quotations, plus the document references
attached to transactions.

Each entity:
- is built from a store row with `from_row()` (ISO strings -> dates,
  null amounts -> 0.0)
- serializes back with `to_row()` (only the writable columns)
- checks its own fields with `validate()`, returning (ok, message) so the
  pages can show the message inline before any write is attempted

Pure Python, no Streamlit imports.
"""

import logging
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

import pandas as pd

logger = logging.getLogger(__name__)

# ============================================================================
# VOCABULARY
# ============================================================================

PROJECTS = "projects"
TRANSACTIONS = "transactions"
MILESTONES = "milestones"
ACTION_ITEMS = "action_items"
QUOTATIONS = "quotations"

COLLECTIONS = (PROJECTS, TRANSACTIONS, MILESTONES, ACTION_ITEMS, QUOTATIONS)

PROJECT_STATUSES = ("pending", "active", "in_process", "completed")

TRANSACTION_TYPES = (
    "bill_sent",
    "invoice",
    "payment_received",
    "advance",
    "by_hand",
    "credit_note",
    "refund",
)

PAYMENT_MODES = ("cash", "bank", "upi", "by_hand", "cheque", "other")

MILESTONE_STATUSES = ("pending", "invoiced", "paid")

ACTION_ITEM_STATUSES = ("pending", "done")

QUOTATION_STATUSES = ("draft", "sent", "accepted", "rejected", "revised")

DOCUMENT_KINDS = ("upload", "link")

UNKNOWN_PROJECT = "Unknown Project"


# ============================================================================
# PARSING HELPERS
# ============================================================================

def parse_date(value) -> Optional[date]:
    """
    Parses a date column.

    None and '' mean "no date". Anything else that is not a valid ISO
    date raises ValueError: a malformed date is a programming error, not
    a runtime condition.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if "T" in text or " " in text:
        return parse_timestamp(text).date()
    return date.fromisoformat(text)


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parses a timestamp column (ISO 8601, 'Z' suffix accepted).

    Fractional seconds may have any number of digits; the hosted store
    drops trailing zeros ('2024-11-20T09:13:45.12345+00:00').
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    return pd.to_datetime(str(value).strip()).to_pydatetime()


def parse_amount(value) -> float:
    """Missing or null amounts count as zero"""
    if value is None or value == "":
        return 0.0
    return float(value)


def _optional_float(value) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _optional_text(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


# ============================================================================
# ENTITIES
# ============================================================================

@dataclass
class DocumentRef:
    """A file uploaded to blob storage or an external link on a transaction"""
    name: str
    url: str
    kind: str = "upload"
    mime_type: Optional[str] = None
    attached_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: dict) -> "DocumentRef":
        return cls(
            name=data.get("name") or "document",
            url=data.get("url") or "",
            kind=data.get("kind") or data.get("type") or "upload",
            mime_type=data.get("mime_type"),
            attached_at=parse_timestamp(data.get("attached_at") or data.get("uploaded_at")),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["attached_at"] = _iso(self.attached_at)
        return data

    def validate(self) -> Tuple[bool, str]:
        if self.kind not in DOCUMENT_KINDS:
            return False, f"Invalid document kind: {self.kind}"
        if not self.url:
            return False, "Document location is required"
        return True, "Document is valid"


@dataclass
class Project:
    """A client engagement with a contracted value"""
    id: Optional[str]
    name: str
    total_value: float = 0.0
    status: str = "pending"
    client_name: Optional[str] = None
    notes: Optional[str] = None
    quotation_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "Project":
        return cls(
            id=row.get("id"),
            name=row.get("name") or "",
            total_value=parse_amount(row.get("total_value")),
            status=row.get("status") or "pending",
            client_name=row.get("client_name"),
            notes=row.get("notes"),
            quotation_url=row.get("quotation_url"),
            created_at=parse_timestamp(row.get("created_at")),
        )

    def to_row(self) -> dict:
        return {
            "name": self.name.strip(),
            "total_value": self.total_value,
            "status": self.status,
            "client_name": _optional_text(self.client_name),
            "notes": _optional_text(self.notes),
            "quotation_url": _optional_text(self.quotation_url),
        }

    def validate(self) -> Tuple[bool, str]:
        if not self.name or not self.name.strip():
            return False, "Project name is required"
        if self.status not in PROJECT_STATUSES:
            return False, f"Invalid project status: {self.status}"
        if self.total_value < 0:
            return False, "Total value cannot be negative"
        return True, "Project is valid"


@dataclass
class Transaction:
    """A bill, invoice, payment or credit recorded against a project"""
    id: Optional[str]
    project_id: Optional[str]
    date: Optional[date]
    type: str
    amount: float = 0.0
    mode: Optional[str] = None
    notes: Optional[str] = None
    attachment_url: Optional[str] = None
    documents: List[DocumentRef] = field(default_factory=list)
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "Transaction":
        return cls(
            id=row.get("id"),
            project_id=row.get("project_id"),
            date=parse_date(row.get("date")),
            type=row.get("type") or "",
            amount=parse_amount(row.get("amount")),
            mode=row.get("mode"),
            notes=row.get("notes"),
            attachment_url=row.get("attachment_url"),
            documents=[DocumentRef.from_dict(d) for d in (row.get("documents") or [])],
            created_at=parse_timestamp(row.get("created_at")),
        )

    def to_row(self) -> dict:
        return {
            "project_id": self.project_id,
            "date": _iso(self.date),
            "type": self.type,
            "amount": self.amount,
            "mode": self.mode or None,
            "notes": _optional_text(self.notes),
            "attachment_url": _optional_text(self.attachment_url),
            "documents": [d.to_dict() for d in self.documents],
        }

    def validate(self) -> Tuple[bool, str]:
        if not self.project_id:
            return False, "A project must be selected"
        if self.date is None:
            return False, "Date is required"
        if self.type not in TRANSACTION_TYPES:
            return False, f"Invalid transaction type: {self.type}"
        if self.amount <= 0:
            return False, "Amount must be greater than zero"
        if self.mode and self.mode not in PAYMENT_MODES:
            return False, f"Invalid payment mode: {self.mode}"
        for document in self.documents:
            ok, message = document.validate()
            if not ok:
                return False, message
        return True, "Transaction is valid"


@dataclass
class Milestone:
    """A payment checkpoint tied to a share of the project value"""
    id: Optional[str]
    project_id: Optional[str]
    name: str
    percentage: Optional[float] = None
    amount: Optional[float] = None
    status: str = "pending"
    due_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "Milestone":
        return cls(
            id=row.get("id"),
            project_id=row.get("project_id"),
            name=row.get("name") or "",
            percentage=_optional_float(row.get("percentage")),
            amount=_optional_float(row.get("amount")),
            status=row.get("status") or "pending",
            due_date=parse_date(row.get("due_date")),
            notes=row.get("notes"),
            created_at=parse_timestamp(row.get("created_at")),
        )

    def to_row(self) -> dict:
        return {
            "project_id": self.project_id,
            "name": self.name.strip(),
            "percentage": self.percentage,
            "amount": self.amount,
            "status": self.status,
            "due_date": _iso(self.due_date),
            "notes": _optional_text(self.notes),
        }

    def validate(self) -> Tuple[bool, str]:
        if not self.project_id:
            return False, "A project must be selected"
        if not self.name or not self.name.strip():
            return False, "Milestone name is required"
        if self.status not in MILESTONE_STATUSES:
            return False, f"Invalid milestone status: {self.status}"
        if self.percentage is not None and not 0 <= self.percentage <= 100:
            return False, "Percentage must be between 0 and 100"
        if self.amount is not None and self.amount < 0:
            return False, "Amount cannot be negative"
        return True, "Milestone is valid"


@dataclass
class ActionItem:
    """A follow-up task, optionally linked to a project"""
    id: Optional[str]
    description: str
    project_id: Optional[str] = None
    due_date: Optional[date] = None
    status: str = "pending"
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "ActionItem":
        return cls(
            id=row.get("id"),
            description=row.get("description") or "",
            project_id=row.get("project_id"),
            due_date=parse_date(row.get("due_date")),
            status=row.get("status") or "pending",
            created_at=parse_timestamp(row.get("created_at")),
        )

    def to_row(self) -> dict:
        return {
            "project_id": self.project_id or None,
            "description": self.description.strip(),
            "due_date": _iso(self.due_date),
            "status": self.status,
        }

    def validate(self) -> Tuple[bool, str]:
        if not self.description or not self.description.strip():
            return False, "Description is required"
        if self.status not in ACTION_ITEM_STATUSES:
            return False, f"Invalid action item status: {self.status}"
        return True, "Action item is valid"


@dataclass
class Quotation:
    """A quote sent to a client, optionally linked to a project"""
    id: Optional[str]
    quote_date: Optional[date]
    amount: float = 0.0
    description: str = ""
    status: str = "sent"
    project_id: Optional[str] = None
    notes: Optional[str] = None
    document_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "Quotation":
        return cls(
            id=row.get("id"),
            quote_date=parse_date(row.get("quote_date")),
            amount=parse_amount(row.get("amount")),
            description=row.get("description") or "",
            status=row.get("status") or "sent",
            project_id=row.get("project_id"),
            notes=row.get("notes"),
            document_url=row.get("document_url"),
            created_at=parse_timestamp(row.get("created_at")),
        )

    def to_row(self) -> dict:
        return {
            "project_id": self.project_id or None,
            "quote_date": _iso(self.quote_date),
            "amount": self.amount,
            "description": self.description.strip(),
            "status": self.status,
            "notes": _optional_text(self.notes),
            "document_url": _optional_text(self.document_url),
        }

    def validate(self) -> Tuple[bool, str]:
        if self.quote_date is None:
            return False, "Quote date is required"
        if not self.description or not self.description.strip():
            return False, "Description is required"
        if self.status not in QUOTATION_STATUSES:
            return False, f"Invalid quotation status: {self.status}"
        if self.amount < 0:
            return False, "Amount cannot be negative"
        return True, "Quotation is valid"


# ============================================================================
# COLLECTION MAPPING
# ============================================================================

ENTITY_TYPES = {
    PROJECTS: Project,
    TRANSACTIONS: Transaction,
    MILESTONES: Milestone,
    ACTION_ITEMS: ActionItem,
    QUOTATIONS: Quotation,
}


def rows_to_entities(collection: str, rows: List[Dict]) -> list:
    """Builds entities for a collection; unknown collections raise ValueError"""
    if collection not in ENTITY_TYPES:
        raise ValueError(f"Unknown collection: {collection}")
    entity_type = ENTITY_TYPES[collection]
    entities = [entity_type.from_row(row) for row in rows]
    logger.debug("Parsed %d %s rows", len(entities), collection)
    return entities
