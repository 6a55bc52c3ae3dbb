"""
BaseService -- common shape of kernel write services.

Write services flush inside the caller's transaction and log what they
flushed.  Committing and rolling back belong to the recalculation
orchestrator (or the test using the service).
"""

from abc import ABC
from typing import Any, Generic, TypeVar

from sqlalchemy.orm import Session

from energy_kernel.db.base import Base
from energy_kernel.logging_config import get_logger

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Base class for services that modify ``ModelType`` rows.

    Non-goals:
        - Reads that return DTOs belong in ``energy_kernel/selectors/``.
    """

    logger_name = "services"

    def __init__(self, session: Session):
        self.session = session
        self._logger = get_logger(self.logger_name)

    def _flush(self, event: str, **fields: Any) -> None:
        """Flush pending changes, then log ``event`` with ``fields``."""
        self.session.flush()
        self._logger.info(event, extra=fields)
