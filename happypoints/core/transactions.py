"""Running Firestore transactions with storage failures mapped to app errors."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from google.api_core.exceptions import GoogleAPIError

from happypoints.errors import StorageTransactionError

if TYPE_CHECKING:
    from collections.abc import Callable

    from google.cloud.firestore_v1.client import Client


logger = logging.getLogger(__name__)


def run_transaction(
    operation: str, transactional_fn: Callable[..., Any], db: Client
) -> Any:
    """Run a ``@firestore.transactional`` function in a new transaction.

    Backend failures, including the ``ValueError`` the client raises from
    the last ``Aborted`` once its contention retries are used up, become
    ``StorageTransactionError``. Application errors raised by the function
    propagate unchanged.
    """
    try:
        return transactional_fn(db.transaction())
    except GoogleAPIError as e:
        logger.error(f"{operation} failed to commit: {e}")
        raise StorageTransactionError(f"Failed to process transaction: {e}") from e
    except ValueError as e:
        if not isinstance(e.__cause__, GoogleAPIError):
            raise
        logger.error(f"{operation} gave up after retries: {e}")
        raise StorageTransactionError(f"Failed to process transaction: {e}") from e
