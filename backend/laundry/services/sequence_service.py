# Overview: Service-layer operations for order numbering; atomic per-branch sequences.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..models import OrderSequence


def _allocate(branch_id: int) -> int:
    stmt = (
        update(OrderSequence)
        .where(OrderSequence.branch_id == branch_id)
        .values(next_number=OrderSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(OrderSequence.next_number)
            .filter_by(branch_id=branch_id)
            .scalar()
        )
        return current - 1

    # First order for this branch. A concurrent first insert loses on the
    # unique constraint and falls back to the increment path.
    try:
        with db.session.begin_nested():
            db.session.add(OrderSequence(branch_id=branch_id, next_number=2))
        return 1
    except IntegrityError:
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        current = (
            db.session.query(OrderSequence.next_number)
            .filter_by(branch_id=branch_id)
            .scalar()
        )
        return current - 1


def next_order_number(*, branch_id: int, prefix: str, pad: int = 4) -> str:
    """
    Allocate the next order number for a branch inside the caller's
    transaction.

    The increment is a single UPDATE, so two transactions can never read
    the same value; the (branch_id, order_number) unique constraint on
    orders backs this up.
    """
    if not branch_id:
        raise ValidationError("branch_id is required")
    if not prefix:
        raise ValidationError("order number prefix is required")

    number = _allocate(branch_id)
    return f"{prefix}-{number:0{pad}d}"
