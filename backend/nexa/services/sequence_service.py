# Overview: Atomic allocation of sale and invoice numbers.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence

SALE_SEQUENCE = "SALE"


def invoice_sequence(series: int) -> str:
    return f"NFCE-{series}"


def next_number(name: str) -> int:
    """
    Allocate the next number of a named sequence inside the caller's transaction.

    The increment is a single UPDATE, so concurrent callers serialize on the
    sequence row and never receive the same number. The allocation commits or
    rolls back together with the document that uses it, which keeps numbers
    gap-free for committed documents.
    """
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.name == name)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(name=name)
            .scalar()
        )
        return current - 1

    # First use of this sequence
    savepoint = db.session.begin_nested()
    try:
        db.session.add(DocumentSequence(name=name, next_number=2))
        db.session.flush()
        savepoint.commit()
        return 1
    except IntegrityError:
        # Another transaction created the row first
        savepoint.rollback()
        db.session.execute(stmt)
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(name=name)
            .scalar()
        )
        return current - 1
