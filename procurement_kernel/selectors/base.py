"""
BaseSelector -- read-only query objects over the caller's Session.

Selectors never add, delete, flush or commit.  Whatever they return is
attached to the caller's session (or is a plain computed value).
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from procurement_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):

    def __init__(self, session: Session):
        self.session = session
