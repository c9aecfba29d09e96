# Overview: Per-tenant document numbering (transactions, returns, purchase orders).

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence

DOC_TRANSACTION = "TRANSACTION"
DOC_RETURN = "RETURN"
DOC_PURCHASE_ORDER = "PURCHASE_ORDER"

DOCUMENT_PREFIXES = {
    DOC_TRANSACTION: "TXN",
    DOC_RETURN: "RET",
    DOC_PURCHASE_ORDER: "PO",
}


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_document_number(
    *,
    tenant_id: int,
    document_type: str,
    pad: int = 6,
) -> str:
    """
    Allocate the next document number for a tenant/type inside the caller's
    DB transaction.

    The counter row is bumped with a single UPDATE ... SET n = n + 1, so two
    concurrent allocations never hand out the same number. Callers run this
    inside their own run_with_retry operation; the number is only consumed
    if that operation commits.
    """
    if not tenant_id:
        raise DocumentSequenceError("tenant_id is required")
    prefix = DOCUMENT_PREFIXES.get(document_type)
    if prefix is None:
        raise DocumentSequenceError(f"Unknown document type: {document_type}")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.tenant_id == tenant_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(tenant_id=tenant_id, document_type=document_type)
            .scalar()
        )
        next_num = current - 1
    else:
        seq = DocumentSequence(tenant_id=tenant_id, document_type=document_type, next_number=2)
        try:
            with db.session.begin_nested():
                db.session.add(seq)
            next_num = 1
        except IntegrityError:
            # Another writer created the row first; bump theirs instead
            db.session.execute(stmt)
            current = (
                db.session.query(DocumentSequence.next_number)
                .filter_by(tenant_id=tenant_id, document_type=document_type)
                .scalar()
            )
            next_num = current - 1

    return f"{prefix}-{next_num:0{pad}d}"
