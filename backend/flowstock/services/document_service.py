# Overview: Sequential, human readable document numbers for orders.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence

SALES_ORDER = ("SALES_ORDER", "SO")
PURCHASE_ORDER = ("PURCHASE_ORDER", "PO")


def _current(document_type: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )


def next_document_number(*, document_type: str, prefix: str, pad: int = 6) -> str:
    """
    Allocate the next document number for a type, e.g. SO-000042.

    Runs inside the caller's transaction (no commit): the counter bump is
    rolled back together with the document if the caller fails, so numbers
    are only consumed by documents that exist. The increment is a single
    UPDATE, which serializes concurrent allocations on the sequence row.
    """
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current(document_type) - 1
    else:
        seq = DocumentSequence(document_type=document_type, next_number=2)
        try:
            with db.session.begin_nested():
                db.session.add(seq)
            next_num = 1
        except IntegrityError:
            # Another transaction created the row first
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current(document_type) - 1

    return f"{prefix}-{next_num:0{pad}d}"
