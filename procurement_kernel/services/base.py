"""
BaseService -- shared constructor for flush-only services.

Services stage rows on the caller's ``Session`` and flush so that generated
ids and constraint violations surface immediately.  They never commit or
roll back: ProcurementWorkflow (or the test harness) owns the transaction.
Timestamps come from the injected Clock.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from procurement_kernel.db.base import Base
from procurement_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    def _persist(self, instance: ModelType) -> ModelType:
        """Add ``instance`` and flush so its id and defaults are populated."""
        self.session.add(instance)
        self.session.flush()
        return instance
