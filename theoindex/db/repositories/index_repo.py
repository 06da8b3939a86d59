"""Repositories for index definitions, compositions, point history and rebalance logs."""

from typing import Any, Dict, Iterable, List, Optional
from datetime import date
from sqlalchemy.orm import Session

from theoindex.db.models.index import (
    IndexDefinition,
    IndexComposition,
    IndexHistoryPoint,
    IndexRebalanceLog,
)
from .base import BaseRepository


class IndexRepository(BaseRepository[IndexDefinition]):
    """Repository for IndexDefinition CRUD operations."""

    def __init__(self, session: Session):
        super().__init__(session, IndexDefinition)

    def get_index(self, index_id: str) -> Optional[IndexDefinition]:
        """Get index definition by ID."""
        return self.get(index_id)

    def upsert(self, index: IndexDefinition, commit: bool = True) -> IndexDefinition:
        """Create an index definition or update its editable fields."""
        existing = self.get_index(index.index_id)
        if existing:
            existing.name = index.name
            existing.methodology = index.methodology
            existing.config = index.config
            if index.is_active is not None:
                existing.is_active = index.is_active
        else:
            self.session.add(index)

        if commit:
            self.session.commit()
            self.session.refresh(existing or index)

        return existing or index

    def get_active_indices(self) -> List[IndexDefinition]:
        """Active index definitions, oldest first."""
        return (
            self.session.query(IndexDefinition)
            .filter(IndexDefinition.is_active == True)
            .order_by(IndexDefinition.created_at, IndexDefinition.index_id)
            .all()
        )

    def deactivate(self, index_id: str, commit: bool = True) -> bool:
        """Soft-disable an index. Definitions are never deleted."""
        existing = self.get_index(index_id)
        if not existing:
            return False
        existing.is_active = False
        if commit:
            self.session.commit()
        return True


class CompositionRepository:
    """Repository for the current composition snapshot of an index."""

    def __init__(self, session: Session):
        self.session = session

    def get_composition(self, index_id: str) -> List[IndexComposition]:
        return (
            self.session.query(IndexComposition)
            .filter(IndexComposition.index_id == index_id)
            .order_by(IndexComposition.ticker)
            .all()
        )

    def replace(
        self,
        index_id: str,
        rows: Iterable[IndexComposition],
        commit: bool = True,
    ) -> int:
        """
        Replace the whole composition of an index.

        Old rows are deleted and new rows inserted in the session's current
        transaction; with commit=False the caller owns the transaction.
        """
        # Deleted through the session so new rows may reuse the same keys
        for old in self.get_composition(index_id):
            self.session.delete(old)
        self.session.flush()

        count = 0
        for row in rows:
            row.index_id = index_id
            self.session.add(row)
            count += 1

        self.session.flush()
        if commit:
            self.session.commit()

        return count


class HistoryRepository:
    """Repository for IndexHistoryPoint rows."""

    def __init__(self, session: Session):
        self.session = session

    def get_point(self, index_id: str, point_date: date) -> Optional[IndexHistoryPoint]:
        return self.session.get(IndexHistoryPoint, (index_id, point_date))

    def get_last_point(self, index_id: str) -> Optional[IndexHistoryPoint]:
        return (
            self.session.query(IndexHistoryPoint)
            .filter(IndexHistoryPoint.index_id == index_id)
            .order_by(IndexHistoryPoint.date.desc())
            .first()
        )

    def get_last_point_before(self, index_id: str, point_date: date) -> Optional[IndexHistoryPoint]:
        """Most recent point strictly before point_date."""
        return (
            self.session.query(IndexHistoryPoint)
            .filter(
                IndexHistoryPoint.index_id == index_id,
                IndexHistoryPoint.date < point_date,
            )
            .order_by(IndexHistoryPoint.date.desc())
            .first()
        )

    def get_series(
        self,
        index_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[IndexHistoryPoint]:
        """Points in ascending date order, optionally bounded (inclusive)."""
        query = self.session.query(IndexHistoryPoint).filter(
            IndexHistoryPoint.index_id == index_id
        )
        if start_date:
            query = query.filter(IndexHistoryPoint.date >= start_date)
        if end_date:
            query = query.filter(IndexHistoryPoint.date <= end_date)
        return query.order_by(IndexHistoryPoint.date).all()

    def upsert_point(
        self,
        index_id: str,
        point_date: date,
        values: Dict[str, Any],
        commit: bool = True,
    ) -> IndexHistoryPoint:
        """
        Write the point for (index_id, point_date).

        The pair is the primary key, so a second write for the same date
        overwrites the row instead of inserting a duplicate.
        """
        existing = self.get_point(index_id, point_date)
        if existing:
            for key, value in values.items():
                setattr(existing, key, value)
            point = existing
        else:
            point = IndexHistoryPoint(index_id=index_id, date=point_date, **values)
            self.session.add(point)

        if commit:
            self.session.commit()

        return point


class RebalanceLogRepository:
    """Append-only repository for rebalance audit entries."""

    def __init__(self, session: Session):
        self.session = session

    def add_entry(
        self,
        index_id: str,
        log_date: date,
        action: str,
        ticker: str,
        reason: str,
        commit: bool = True,
    ) -> IndexRebalanceLog:
        entry = IndexRebalanceLog(
            index_id=index_id,
            date=log_date,
            action=action,
            ticker=ticker,
            reason=reason,
        )
        self.session.add(entry)
        if commit:
            self.session.commit()
        return entry

    def get_log(
        self,
        index_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[IndexRebalanceLog]:
        query = self.session.query(IndexRebalanceLog).filter(
            IndexRebalanceLog.index_id == index_id
        )
        if start_date:
            query = query.filter(IndexRebalanceLog.date >= start_date)
        if end_date:
            query = query.filter(IndexRebalanceLog.date <= end_date)
        return query.order_by(IndexRebalanceLog.date, IndexRebalanceLog.id).all()
