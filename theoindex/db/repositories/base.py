from typing import Any, Generic, Optional, Type, TypeVar
from sqlalchemy.orm import Session
from theoindex.db.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Shared primary-key access for the repositories.

    Every write takes commit=True by default; pass commit=False to stage
    rows in a larger unit of work (ingestion batches, rebalances).
    """

    def __init__(self, session: Session, model: Type[ModelType]):
        self.session = session
        self.model = model

    def get(self, key: Any) -> Optional[ModelType]:
        return self.session.get(self.model, key)

    def merge(self, obj: ModelType, commit: bool = True) -> ModelType:
        """Insert, or overwrite the row with the same primary key."""
        merged = self.session.merge(obj)
        if commit:
            self.session.commit()
        return merged
