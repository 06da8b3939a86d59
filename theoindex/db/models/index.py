"""Index definition, composition, point history and rebalance log models."""

from sqlalchemy import (
    Column,
    String,
    Date,
    DateTime,
    Boolean,
    Float,
    Integer,
    Text,
    JSON,
    ForeignKey,
    Index as SQLIndex,
    func,
)
from .base import Base


class IndexDefinition(Base):
    """
    Theoretical index definition.

    Identity (index_id) is immutable; config is admin-editable.
    Definitions are never deleted, only deactivated via is_active.
    """

    __tablename__ = "index_definitions"

    index_id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False)
    methodology = Column(Text)
    config = Column(JSON, nullable=False)  # see theoindex.config.index_config.IndexConfig
    base_value = Column(Float, default=100.0)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class IndexComposition(Base):
    """
    Current composition snapshot, one row per constituent.

    Rows are replaced all at once on rebalance; as_of_date is the date the
    snapshot was written and takes effect from the following trading day.
    """

    __tablename__ = "index_compositions"

    index_id = Column(
        String(50), ForeignKey("index_definitions.index_id"), primary_key=True
    )
    ticker = Column(String(20), primary_key=True)
    target_weight = Column(Float, nullable=False)
    entry_price = Column(Float, nullable=False)
    entry_date = Column(Date, nullable=False)
    as_of_date = Column(Date, nullable=False)


class IndexHistoryPoint(Base):
    """One row per (index, date): cumulative points, base 100 at inception."""

    __tablename__ = "index_history_points"

    index_id = Column(
        String(50), ForeignKey("index_definitions.index_id"), primary_key=True
    )
    date = Column(Date, primary_key=True)
    points = Column(Float, nullable=False)
    daily_change = Column(Float, nullable=False)  # fraction, 0.10 = +10%
    current_yield = Column(Float)

    # Informational only; already reflected in points through the adjusted price
    dividends_received = Column(Float, default=0.0)
    dividends_by_ticker = Column(JSON)
    composition_snapshot = Column(JSON)
    missing_prices = Column(JSON)

    computed_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class IndexRebalanceLog(Base):
    """Append-only audit trail of composition changes."""

    __tablename__ = "index_rebalance_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    index_id = Column(
        String(50), ForeignKey("index_definitions.index_id"), nullable=False
    )
    date = Column(Date, nullable=False)
    action = Column(String(10), nullable=False)  # 'ENTRY' | 'EXIT' | 'REBALANCE'
    ticker = Column(String(20), nullable=False)  # 'SYSTEM' for REBALANCE rows
    reason = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        SQLIndex("idx_rebalance_log_index_date", "index_id", "date"),
    )
