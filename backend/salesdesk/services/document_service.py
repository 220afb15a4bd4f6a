# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def format_document_number(prefix: str, number: int, pad: int = 3) -> str:
    """ORD + 7 -> ORD-007; numbers wider than pad just grow (ORD-1000)."""
    return f"{prefix}-{number:0{pad}d}"


def parse_document_number(value: str | None) -> int:
    """Trailing numeric suffix of a document number; 0 when there is none."""
    if not value:
        return 0
    suffix = value.rsplit("-", 1)[-1]
    return int(suffix) if suffix.isdigit() else 0


def next_document_number(
    *,
    document_type: str,
    prefix: str,
    pad: int = 3,
    seed=None,
) -> str:
    """
    Allocate the next document number for a type.

    Must be called inside the caller's transaction: the UPDATE takes the row
    lock on the sequence, so the number is only consumed if the caller
    commits, and concurrent callers queue behind each other.
    Does not commit.

    seed: optional callable returning the first number to hand out when no
    sequence row exists yet (continues numbering of documents created before
    the sequence existed). Defaults to 1.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")
    if not prefix:
        raise DocumentSequenceError("prefix is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type)
            .scalar()
        )
        next_num = current - 1
    else:
        # First document of this type. A racing first insert fails on
        # uq_doc_sequences_type and the caller's unit of work rolls back.
        next_num = seed() if seed is not None else 1
        seq = DocumentSequence(document_type=document_type, next_number=next_num + 1)
        db.session.add(seq)
        db.session.flush()

    return format_document_number(prefix, next_num, pad)
