# Overview: Per-company sequential document numbers for invoices and sales receipts.

"""
Per-Tenant Document Numbering

WHY: Invoice and receipt numbers must increase within a company and must
never collide within it, yet two companies may both own "REC-00001".
The (company_id, number) unique constraints on the document tables are the
correctness backstop; this service allocates candidates from a counter row.

COLLISIONS:
- Caller-supplied numbers are taken as-is (uppercased). A clash raises
  DuplicateDocumentNumberError so the caller can retry with a fresh number.
- Auto-allocated numbers skip values already claimed by explicit numbers,
  and create_with_allocated_number() re-runs the whole insert with the next
  counter value if a concurrent writer still wins the unique constraint.
"""

from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentCounter
from .concurrency import run_with_retry, is_unique_violation


logger = logging.getLogger(__name__)

DOCUMENT_INVOICE = "invoice"
DOCUMENT_SALES_RECEIPT = "sales_receipt"

DEFAULT_PAD = 5
MAX_ALLOCATION_ATTEMPTS = 5


class NumberingError(Exception):
    """Raised when counter operations fail."""
    pass


class DuplicateDocumentNumberError(Exception):
    """
    The number is already used inside this company.

    Surfaced to clients as 409 with retry=True.
    """

    def __init__(self, document_type: str, number: str):
        self.document_type = document_type
        self.number = number
        super().__init__(f"{document_type.replace('_', ' ').capitalize()} number {number} is already used; retry with the next number")


def normalize_number(number: str) -> str:
    return number.strip().upper()


def format_document_number(prefix: str, n: int, pad: int = DEFAULT_PAD) -> str:
    return f"{prefix.strip().upper()}-{n:0{pad}d}"


def _allocate_counter_value(company_id: int, document_type: str) -> int:
    """
    Atomically bump the (company_id, document_type) counter and return the
    value it held. Creates the counter row on first use.
    """
    stmt = (
        update(DocumentCounter)
        .where(
            DocumentCounter.company_id == company_id,
            DocumentCounter.document_type == document_type,
        )
        .values(next_number=DocumentCounter.next_number + 1)
    )

    def _read_current() -> int:
        db.session.flush()
        current = (
            db.session.query(DocumentCounter.next_number)
            .filter_by(company_id=company_id, document_type=document_type)
            .scalar()
        )
        return current - 1

    result = db.session.execute(stmt)
    if result.rowcount:
        return _read_current()

    counter = DocumentCounter(company_id=company_id, document_type=document_type, next_number=2)
    db.session.add(counter)
    try:
        db.session.flush()
        return 1
    except IntegrityError:
        # Another request created the row first; fall back to the update path.
        db.session.rollback()
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        return _read_current()


def next_document_number(
    *,
    company_id: int,
    document_type: str,
    prefix: str,
    pad: int = DEFAULT_PAD,
    is_taken=None,
) -> str:
    """
    Allocate the next document number for a company/type.

    is_taken(number) -> bool lets the caller skip numbers that were already
    claimed explicitly; the counter advances past them.
    """
    if not company_id:
        raise NumberingError("company_id is required")
    if not document_type:
        raise NumberingError("document_type is required")

    def _op() -> str:
        while True:
            n = _allocate_counter_value(company_id, document_type)
            number = format_document_number(prefix, n, pad)
            if is_taken is None or not is_taken(number):
                return number
            logger.info("Skipping %s %s for company %s: already in use", document_type, number, company_id)

    return run_with_retry(_op)


def peek_next_number(*, company_id: int, document_type: str, prefix: str, pad: int = DEFAULT_PAD,
                     is_taken=None) -> str:
    """
    Number the next allocation would produce, skipping taken ones like
    next_document_number(). Does not advance the counter, so it is only a
    hint: a concurrent create may still claim it first.
    """
    n = (
        db.session.query(DocumentCounter.next_number)
        .filter_by(company_id=company_id, document_type=document_type)
        .scalar()
    ) or 1
    number = format_document_number(prefix, n, pad)
    while is_taken is not None and is_taken(number):
        n += 1
        number = format_document_number(prefix, n, pad)
    return number


def commit_or_duplicate(*, document_type: str, number_column: str, number: str) -> None:
    """Commit, turning a unique-constraint loss on number_column into a 409 error."""
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if is_unique_violation(exc, number_column):
            raise DuplicateDocumentNumberError(document_type, number)
        raise


def create_with_allocated_number(build, *, document_type: str, number_column: str,
                                 explicit_number: str | None,
                                 attempts: int = MAX_ALLOCATION_ATTEMPTS):
    """
    Run build() -> entity and commit, translating unique-constraint
    losses on the number column.

    build must allocate the number first, then add the entity to the
    session (redoing every read it needs) each time it is called, because
    a lost race rolls the session back.
    With an explicit number a loss raises DuplicateDocumentNumberError; with
    an auto-allocated one the insert is retried up to `attempts` times.
    """
    for attempt in range(attempts):
        entity = build()
        number = getattr(entity, number_column)
        try:
            db.session.commit()
            return entity
        except IntegrityError as exc:
            db.session.rollback()
            if not is_unique_violation(exc, number_column):
                raise
            if explicit_number is not None:
                raise DuplicateDocumentNumberError(document_type, number)
            logger.warning(
                "Lost %s number %s to a concurrent writer (attempt %d of %d)",
                document_type, number, attempt + 1, attempts,
            )
    raise DuplicateDocumentNumberError(document_type, number)
