"""
HISAB - Aggregation Engine
==========================

PURPOSE:
--------
Turns raw project and transaction collections into the financial metrics
every page shows: per-project totals, portfolio totals, collection rate,
monthly trend, receivables aging, pending payments and running ledger
balances.

DESIGN:
-------
- Every function is pure: it only looks at the arguments it receives and
  the current date is always a parameter (`today`).
- The transaction direction switch lives in ONE place,
  `classify_transaction()`. Every total below goes through it.
- Missing or null optional fields count as zero/empty. Unknown
  transaction types and malformed dates raise ValueError.

KNOWN GAP:
----------
Negative amounts are not rejected here (validation happens in the forms),
so a negative row silently distorts every total it touches.
"""

from collections import defaultdict
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional

import pandas as pd

from entities_core import (
    ActionItem,
    Milestone,
    Project,
    Quotation,
    Transaction,
    QUOTATION_STATUSES,
    UNKNOWN_PROJECT,
)

# ============================================================================
# CLASSIFICATION
# ============================================================================

class Direction(str, Enum):
    """Effect of a transaction on the amount the client owes"""
    BILLED = "billed"        # increases amount owed
    RECEIVED = "received"    # decreases amount owed (a payment)
    CREDITED = "credited"    # decreases amount owed without being a payment


TRANSACTION_DIRECTIONS = {
    "bill_sent": Direction.BILLED,
    "invoice": Direction.BILLED,
    "payment_received": Direction.RECEIVED,
    "advance": Direction.RECEIVED,
    "by_hand": Direction.RECEIVED,
    "credit_note": Direction.CREDITED,
    "refund": Direction.CREDITED,
}

BILLED_TYPES = tuple(t for t, d in TRANSACTION_DIRECTIONS.items() if d is Direction.BILLED)
RECEIVED_TYPES = tuple(t for t, d in TRANSACTION_DIRECTIONS.items() if d is Direction.RECEIVED)
CREDITED_TYPES = tuple(t for t, d in TRANSACTION_DIRECTIONS.items() if d is Direction.CREDITED)

AGING_BUCKETS = ("0-30", "31-60", "61-90", "90+")
NO_INVOICE_BUCKET = "no_invoice"

DEFAULT_TREND_MONTHS = 12


def classify_transaction(transaction_type: str) -> Direction:
    """
    Maps a transaction type to its effect on the running balance.

    Examples:
        >>> classify_transaction("invoice")
        <Direction.BILLED: 'billed'>
        >>> classify_transaction("refund")
        <Direction.CREDITED: 'credited'>
    """
    try:
        return TRANSACTION_DIRECTIONS[transaction_type]
    except KeyError:
        raise ValueError(f"Unknown transaction type: {transaction_type!r}") from None


def _amount(transaction: Transaction) -> float:
    return transaction.amount or 0.0


def _sum_by_direction(transactions: Iterable[Transaction]) -> Dict[Direction, float]:
    sums = {Direction.BILLED: 0.0, Direction.RECEIVED: 0.0, Direction.CREDITED: 0.0}
    for tx in transactions:
        sums[classify_transaction(tx.type)] += _amount(tx)
    return sums


# ============================================================================
# RESULT MODELS
# ============================================================================

@dataclass
class ProjectTotals:
    total_billed: float
    total_received: float
    total_credits: float
    pending: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProjectSummary:
    """
    Working copy of a project for list and report views.

    `received` is the only cached derived value in the system; it is
    recomputed on every load.
    """
    project: Project
    totals: ProjectTotals
    received: float
    balance: float
    transaction_count: int = 0

    # Flat accessors so the filter/sort engine can treat summaries like rows
    @property
    def id(self) -> Optional[str]:
        return self.project.id

    @property
    def name(self) -> str:
        return self.project.name

    @property
    def client_name(self) -> Optional[str]:
        return self.project.client_name

    @property
    def notes(self) -> Optional[str]:
        return self.project.notes

    @property
    def status(self) -> str:
        return self.project.status

    @property
    def total_value(self) -> float:
        return self.project.total_value

    @property
    def pending(self) -> float:
        return self.totals.pending

    @property
    def created_at(self) -> Optional[datetime]:
        return self.project.created_at

    @property
    def collection_rate(self) -> float:
        return collection_rate(self.received, self.project.total_value)


@dataclass
class PortfolioTotals:
    total_billed: float
    total_received: float
    pending_receivable: float
    collection_rate: float
    project_count: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MonthlyBucket:
    month: str  # 'YYYY-MM'
    billed: float = 0.0
    received: float = 0.0

    @property
    def label(self) -> str:
        """'Oct 2024' style label for chart axes"""
        return datetime.strptime(self.month + "-01", "%Y-%m-%d").strftime("%b %Y")


@dataclass
class PendingItem:
    """One project with money still owed, as shown on the pending payments page"""
    project: Project
    totals: ProjectTotals
    invoices: List[Transaction] = field(default_factory=list)
    payments: List[Transaction] = field(default_factory=list)
    credits: List[Transaction] = field(default_factory=list)
    last_invoice: Optional[Transaction] = None
    days_since_invoice: Optional[int] = None

    @property
    def id(self) -> Optional[str]:
        return self.project.id

    @property
    def name(self) -> str:
        return self.project.name

    @property
    def pending(self) -> float:
        return self.totals.pending

    @property
    def last_invoice_date(self) -> Optional[date]:
        return self.last_invoice.date if self.last_invoice else None

    @property
    def urgency(self) -> str:
        return urgency_label(self.days_since_invoice)

    @property
    def aging_bucket(self) -> str:
        return aging_bucket_for(self.days_since_invoice)

    @property
    def paid_percentage(self) -> float:
        if self.totals.total_billed <= 0:
            return 0.0
        return min(100.0, self.totals.total_received / self.totals.total_billed * 100)


@dataclass
class AgingBucket:
    range: str
    count: int = 0
    amount: float = 0.0


@dataclass
class AgingReport:
    buckets: Dict[str, AgingBucket]
    no_invoice: AgingBucket
    items: List[PendingItem]

    @property
    def total_pending(self) -> float:
        return sum(b.amount for b in self.buckets.values()) + self.no_invoice.amount

    def as_rows(self) -> List[dict]:
        """Bucket rows in display order, for tables and charts"""
        rows = [asdict(self.buckets[name]) for name in AGING_BUCKETS]
        rows.append(asdict(self.no_invoice))
        return rows


@dataclass
class RunningRow:
    transaction: Transaction
    running_total: float


@dataclass
class QuotationSummary:
    total_quoted: float
    total_accepted: float
    total_awaiting: float
    count_by_status: Dict[str, int]

    @property
    def acceptance_rate(self) -> float:
        decided = self.count_by_status.get("accepted", 0) + self.count_by_status.get("rejected", 0)
        if decided == 0:
            return 0.0
        return self.count_by_status.get("accepted", 0) / decided * 100


@dataclass
class MilestoneProgress:
    total: int
    paid: int
    invoiced: int
    pending: int
    amount_paid: float
    amount_outstanding: float

    @property
    def completion_percentage(self) -> float:
        return (self.paid / self.total * 100) if self.total else 0.0


@dataclass
class OpenActionItem:
    item: ActionItem
    overdue: bool


# ============================================================================
# PER-PROJECT TOTALS
# ============================================================================

def transactions_for(project_id: Optional[str], transactions: Iterable[Transaction]) -> List[Transaction]:
    return [tx for tx in transactions if tx.project_id == project_id]


def project_totals(
    project: Project,
    transactions: Iterable[Transaction],
    include_contract_value: bool = True
) -> ProjectTotals:
    """
    Billed, received, credited and pending amounts for one project.

    total_billed = total_value + bills/invoices (contract value left out
    when include_contract_value is False); pending = billed - received -
    credits. Transactions of other projects are ignored.

    Examples:
        >>> p = Project(id="p1", name="4C", total_value=150000)
        >>> t = Transaction(id="t1", project_id="p1", date=date(2024, 11, 1),
        ...                 type="payment_received", amount=50000)
        >>> project_totals(p, [t]).pending
        100000.0
    """
    sums = _sum_by_direction(transactions_for(project.id, transactions))

    contract_value = (project.total_value or 0.0) if include_contract_value else 0.0
    total_billed = contract_value + sums[Direction.BILLED]
    total_received = sums[Direction.RECEIVED]
    total_credits = sums[Direction.CREDITED]

    return ProjectTotals(
        total_billed=total_billed,
        total_received=total_received,
        total_credits=total_credits,
        pending=total_billed - total_received - total_credits,
    )


def summarize_projects(
    projects: Iterable[Project],
    transactions: Iterable[Transaction],
    include_contract_value: bool = True
) -> List[ProjectSummary]:
    """Project working copies with totals, in input order"""
    by_project = defaultdict(list)
    for tx in transactions:
        by_project[tx.project_id].append(tx)

    summaries = []
    for project in projects:
        project_txns = by_project.get(project.id, [])
        totals = project_totals(project, project_txns, include_contract_value)
        summaries.append(ProjectSummary(
            project=project,
            totals=totals,
            received=totals.total_received,
            balance=(project.total_value or 0.0) - totals.total_received,
            transaction_count=len(project_txns),
        ))
    return summaries


def project_name_for(project_id: Optional[str], projects: Iterable[Project]) -> str:
    """Name of the referenced project, or 'Unknown Project' when it is missing"""
    for project in projects:
        if project.id == project_id:
            return project.name
    return UNKNOWN_PROJECT


# ============================================================================
# PORTFOLIO TOTALS
# ============================================================================

def collection_rate(received: float, total_value: float) -> float:
    """
    Percentage of contracted value already received; 0 when nothing is contracted.

    Examples:
        >>> collection_rate(50000, 200000)
        25.0
        >>> collection_rate(1000, 0)
        0.0
    """
    if not total_value:
        return 0.0
    return received / total_value * 100


def portfolio_totals(
    projects: Iterable[Project],
    transactions: Iterable[Transaction]
) -> PortfolioTotals:
    """
    Dashboard totals across every project.

    "Total Billed" here is the sum of contract values only, which differs
    from the per-project figure (contract value + bills).
    """
    projects = list(projects)
    total_billed = sum(p.total_value or 0.0 for p in projects)
    total_received = sum(
        _amount(tx) for tx in transactions
        if classify_transaction(tx.type) is Direction.RECEIVED
    )

    return PortfolioTotals(
        total_billed=total_billed,
        total_received=total_received,
        pending_receivable=total_billed - total_received,
        collection_rate=collection_rate(total_received, total_billed),
        project_count=len(projects),
    )


# ============================================================================
# MONTHLY TREND
# ============================================================================

def monthly_trend(
    transactions: Iterable[Transaction],
    limit: Optional[int] = DEFAULT_TREND_MONTHS
) -> List[MonthlyBucket]:
    """
    Billed and received amounts per calendar month, oldest first.

    Only the most recent `limit` months are kept (None keeps all). Credit
    notes and refunds show up in neither column. Transactions without a
    date are skipped.
    """
    buckets: Dict[str, MonthlyBucket] = {}

    for tx in transactions:
        if tx.date is None:
            continue
        key = f"{tx.date.year:04d}-{tx.date.month:02d}"
        bucket = buckets.setdefault(key, MonthlyBucket(month=key))

        direction = classify_transaction(tx.type)
        if direction is Direction.BILLED:
            bucket.billed += _amount(tx)
        elif direction is Direction.RECEIVED:
            bucket.received += _amount(tx)

    ordered = [buckets[key] for key in sorted(buckets)]
    if limit is not None:
        ordered = ordered[-limit:] if limit > 0 else []
    return ordered


def monthly_trend_frame(
    transactions: Iterable[Transaction],
    limit: Optional[int] = DEFAULT_TREND_MONTHS
) -> pd.DataFrame:
    """Same buckets as monthly_trend() as a DataFrame for plotly"""
    buckets = monthly_trend(transactions, limit)
    return pd.DataFrame(
        [{'month': b.month, 'label': b.label, 'billed': b.billed, 'received': b.received}
         for b in buckets],
        columns=['month', 'label', 'billed', 'received'],
    )


# ============================================================================
# AGING AND PENDING PAYMENTS
# ============================================================================

def aging_bucket_for(days: Optional[int]) -> str:
    """
    Day-count bucket for a receivable.

    Examples:
        >>> aging_bucket_for(65)
        '61-90'
        >>> aging_bucket_for(None)
        'no_invoice'
    """
    if days is None:
        return NO_INVOICE_BUCKET
    if days <= 30:
        return "0-30"
    elif days <= 60:
        return "31-60"
    elif days <= 90:
        return "61-90"
    else:
        return "90+"


def urgency_label(days: Optional[int]) -> str:
    """
    Follow-up urgency for the pending payments page.

    Examples:
        >>> urgency_label(65)
        'overdue'
        >>> urgency_label(14)
        'recent'
    """
    if days is None:
        return NO_INVOICE_BUCKET
    if days > 60:
        return "overdue"
    elif days > 30:
        return "follow_up"
    elif days > 14:
        return "normal"
    else:
        return "recent"


def latest_invoice(transactions: Iterable[Transaction]) -> Optional[Transaction]:
    """
    Most recent bill/invoice by date.

    Ties on the same date go to the lexicographically highest identifier
    (ids compare as strings) so the pick is stable across reloads.
    Undated invoices are ignored.
    """
    invoices = [
        tx for tx in transactions
        if tx.type in BILLED_TYPES and tx.date is not None
    ]
    if not invoices:
        return None
    return max(invoices, key=lambda tx: (tx.date, str(tx.id or "")))


def _build_pending_item(
    project: Project,
    project_txns: List[Transaction],
    today: date
) -> PendingItem:
    newest_first = sorted(
        project_txns,
        key=lambda tx: tx.date or date.min,
        reverse=True,
    )
    last = latest_invoice(project_txns)
    days = (today - last.date).days if last else None

    return PendingItem(
        project=project,
        totals=project_totals(project, project_txns),
        invoices=[tx for tx in newest_first if tx.type in BILLED_TYPES],
        payments=[tx for tx in newest_first if tx.type in RECEIVED_TYPES],
        credits=[tx for tx in newest_first if tx.type in CREDITED_TYPES],
        last_invoice=last,
        days_since_invoice=days,
    )


def pending_payments(
    projects: Iterable[Project],
    transactions: Iterable[Transaction],
    today: Optional[date] = None,
    sort_by: str = "amount"
) -> List[PendingItem]:
    """
    Projects that still have money owed (pending > 0).

    sort_by='amount' orders by pending amount, 'days' by days since the
    last invoice (projects without an invoice count as 0 days). Both
    descending.
    """
    if sort_by not in ("amount", "days"):
        raise ValueError(f"Unknown sort: {sort_by!r}")
    today = today or date.today()

    by_project = defaultdict(list)
    for tx in transactions:
        by_project[tx.project_id].append(tx)

    items = []
    for project in projects:
        item = _build_pending_item(project, by_project.get(project.id, []), today)
        if item.pending > 0:
            items.append(item)

    if sort_by == "amount":
        items.sort(key=lambda i: i.pending, reverse=True)
    else:
        items.sort(key=lambda i: i.days_since_invoice or 0, reverse=True)
    return items


def receivables_aging(
    projects: Iterable[Project],
    transactions: Iterable[Transaction],
    today: Optional[date] = None
) -> AgingReport:
    """
    Pending amounts grouped by days since each project's last invoice.

    Future-dated invoices land in 0-30. Projects with pending money but no
    invoice are reported apart, outside the day-based buckets.
    """
    items = pending_payments(projects, transactions, today=today)

    buckets = {name: AgingBucket(range=name) for name in AGING_BUCKETS}
    no_invoice = AgingBucket(range=NO_INVOICE_BUCKET)

    for item in items:
        if item.days_since_invoice is None:
            target = no_invoice
        else:
            target = buckets[aging_bucket_for(max(item.days_since_invoice, 0))]
        target.count += 1
        target.amount += item.pending

    return AgingReport(buckets=buckets, no_invoice=no_invoice, items=items)


# ============================================================================
# RUNNING LEDGER
# ============================================================================

def running_totals(transactions_newest_first: List[Transaction]) -> List[RunningRow]:
    """
    Chronological running balance for a newest-first list.

    Row i holds the balance of rows i..n-1 (oldest up to and including
    row i). Payments and credits add, bills and invoices subtract, so a
    negative balance means the client owes money.

    Examples:
        >>> rows = running_totals([
        ...     Transaction(id="2", project_id="p", date=date(2024, 12, 15),
        ...                 type="payment_received", amount=30000),
        ...     Transaction(id="1", project_id="p", date=date(2024, 12, 1),
        ...                 type="bill_sent", amount=50000),
        ... ])
        >>> [r.running_total for r in rows]
        [-20000.0, -50000.0]
    """
    balances = [0.0] * len(transactions_newest_first)
    total = 0.0
    for index in range(len(transactions_newest_first) - 1, -1, -1):
        tx = transactions_newest_first[index]
        if classify_transaction(tx.type) is Direction.BILLED:
            total -= _amount(tx)
        else:
            total += _amount(tx)
        balances[index] = total

    return [
        RunningRow(transaction=tx, running_total=balance)
        for tx, balance in zip(transactions_newest_first, balances)
    ]


# ============================================================================
# DASHBOARD EXTRAS
# ============================================================================

def recent_transactions(transactions: Iterable[Transaction], limit: int = 5) -> List[Transaction]:
    """Latest recorded transactions, by creation timestamp then date"""
    def sort_key(tx: Transaction):
        created = tx.created_at.replace(tzinfo=None) if tx.created_at else datetime.min
        return (created, tx.date or date.min)

    return sorted(transactions, key=sort_key, reverse=True)[:limit]


def quotation_summary(quotations: Iterable[Quotation]) -> QuotationSummary:
    """Total quoted, accepted and still awaiting an answer (status 'sent')"""
    quotations = list(quotations)
    counts = {status: 0 for status in QUOTATION_STATUSES}
    for q in quotations:
        counts[q.status] = counts.get(q.status, 0) + 1

    return QuotationSummary(
        total_quoted=sum(q.amount or 0.0 for q in quotations),
        total_accepted=sum(q.amount or 0.0 for q in quotations if q.status == "accepted"),
        total_awaiting=sum(q.amount or 0.0 for q in quotations if q.status == "sent"),
        count_by_status=counts,
    )


def milestone_amount(milestone: Milestone, project: Optional[Project] = None) -> float:
    """
    Absolute amount of a milestone; derived from its percentage when only
    the percentage is set.
    """
    if milestone.amount is not None:
        return milestone.amount
    if milestone.percentage is not None and project is not None:
        return (project.total_value or 0.0) * milestone.percentage / 100
    return 0.0


def milestone_progress(
    milestones: Iterable[Milestone],
    project: Optional[Project] = None
) -> MilestoneProgress:
    milestones = list(milestones)
    paid = [m for m in milestones if m.status == "paid"]
    invoiced = [m for m in milestones if m.status == "invoiced"]
    pending = [m for m in milestones if m.status == "pending"]

    return MilestoneProgress(
        total=len(milestones),
        paid=len(paid),
        invoiced=len(invoiced),
        pending=len(pending),
        amount_paid=sum(milestone_amount(m, project) for m in paid),
        amount_outstanding=sum(milestone_amount(m, project) for m in invoiced + pending),
    )


def open_action_items(
    items: Iterable[ActionItem],
    today: Optional[date] = None
) -> List[OpenActionItem]:
    """Pending action items by due date (undated last), flagged when overdue"""
    today = today or date.today()
    pending = [i for i in items if i.status == "pending"]
    pending.sort(key=lambda i: (i.due_date is None, i.due_date or date.max))

    return [
        OpenActionItem(item=i, overdue=i.due_date is not None and i.due_date < today)
        for i in pending
    ]
