# app/repositories/cas.py
from typing import Any

from sqlalchemy import update
from sqlmodel import Session, SQLModel


def compare_and_set(
    session: Session,
    model: type[SQLModel],
    pk: Any,
    expected: dict[str, Any],
    values: dict[str, Any],
) -> bool:
    """
    Atomic conditional update of one row.

    Issues a single

        UPDATE <table> SET <values> WHERE id = :pk AND <col> = :expected ...

    so the check and the write happen in the database, never as a
    read-then-write in Python. `None` in `expected` means "IS NULL".

    Does not commit: the caller owns the transaction and may bundle more
    writes with it.

    Returns:
        True if exactly one row matched and was written, False otherwise.
    """
    stmt = update(model).where(model.id == pk)  # type: ignore[attr-defined]
    for column, value in expected.items():
        attr = getattr(model, column)
        stmt = stmt.where(attr.is_(None) if value is None else attr == value)
    stmt = stmt.values(**values).execution_options(synchronize_session=False)

    result = session.execute(stmt)
    return result.rowcount == 1
