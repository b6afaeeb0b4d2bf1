"""
Transaction boundaries for service operations.

Every mutating service method runs its row writes and the derived values it
persists (recipe cost, order totals, order number) inside one unit of work:

    with unit_of_work("purchase_order.create"):
        ...

or, on a whole method:

    @classmethod
    @atomic_operation("purchase_order.create")
    def create(cls, ...):
        ...

Any exception leaving the block rolls back every write made inside it.
Database failures are re-raised as PersistenceError; service errors pass
through unchanged. Nested units of work become savepoints of the outer one.
"""

import functools
import logging
from contextlib import contextmanager

from django.db import DatabaseError, transaction

from .base_service import PersistenceError, ServiceError

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(operation: str, using: str = None):
    logger.debug("Begin %s", operation)
    try:
        with transaction.atomic(using=using):
            yield
    except ServiceError as e:
        logger.warning("Rolled back %s: %s", operation, e.message)
        raise
    except DatabaseError as e:
        logger.error("Rolled back %s after database error: %s", operation, e, exc_info=True)
        raise PersistenceError(f"Could not complete {operation}: {e}", operation) from e
    except Exception:
        logger.warning("Rolled back %s after unexpected error", operation, exc_info=True)
        raise
    logger.debug("Committed %s", operation)


def atomic_operation(operation: str):
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with unit_of_work(operation):
                return func(*args, **kwargs)
        return wrapper
    return decorator
