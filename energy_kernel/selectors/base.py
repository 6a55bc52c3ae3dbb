"""
Module: energy_kernel.selectors.base
Responsibility: Shared base for read-only, tenant-scoped queries.
Architecture position: Kernel > Selectors.  Reads models, returns DTOs;
    never imports services/.
"""

from abc import ABC
from typing import Any, Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import Session

from energy_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Base class for selectors over ``ModelType``.

    Selectors run SELECTs in the caller's session and hand back frozen
    DTOs.  They never add, flush or commit.
    """

    def __init__(self, session: Session):
        self.session = session

    def _one_or_none(self, stmt: Select) -> Any | None:
        """The single entity selected by ``stmt``, or None."""
        return self.session.execute(stmt).scalar_one_or_none()

    def _rows(self, stmt: Select) -> list[Any]:
        return list(self.session.execute(stmt))
