from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from satpam.errors import StorageUnavailableError

logger = logging.getLogger("satpam.storage")


@contextmanager
def storage_query(resource: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error(
            "storage_query_failed",
            extra={"resource": resource, "error_type": exc.__class__.__name__},
        )
        raise StorageUnavailableError(resource) from exc
