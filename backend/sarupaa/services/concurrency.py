# Overview: Row locking helpers shared by the balance-posting services.

from __future__ import annotations


def lock_for_update(query):
    """
    Apply row-level locking for balance updates and sequence allocation.

    Locked rows are re-read from the database even when already in the
    session, so checks made after locking see the committed values.

    NOTE: SQLite ignores SELECT ... FOR UPDATE (its writes are serialized by
    the database lock), but PostgreSQL/MySQL will honor it.
    """
    return query.with_for_update().populate_existing()
