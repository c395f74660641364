"""
Base repository shared by the model repositories.
"""

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from agentlog.models.db import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository for a single model.

    Writes are flushed but never committed here; the caller owns the
    transaction boundary.
    """

    def __init__(self, model: Type[ModelType], session: Session):
        self.model = model
        self.session = session

    def create(self, **kwargs: Any) -> ModelType:
        """
        Create and flush a new instance.

        Args:
            **kwargs: Model field values

        Returns:
            Created instance
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        self.session.flush()
        return instance

    def get(self, id: Any) -> Optional[ModelType]:
        """
        Get instance by primary key.

        Args:
            id: Primary key value

        Returns:
            Instance or None
        """
        return self.session.get(self.model, id)

    def count(self) -> int:
        """Count all instances."""
        return self.session.query(self.model).count()
