from sqlalchemy import Column, String, Float, Date, DateTime, ForeignKey, func, Index
from .base import Base

class FinancialSnapshot(Base):
    """
    Fundamentals for one ticker as of one date.

    Every financial field is nullable: a missing value is a distinct state
    from zero and fails any screening condition on that field.
    """
    __tablename__ = "financial_snapshots"
    
    ticker = Column(String(20), ForeignKey("tickers.ticker"), primary_key=True)
    as_of_date = Column(Date, primary_key=True)
    
    # Price context
    price = Column(Float)
    market_cap = Column(Float)
    average_daily_volume = Column(Float)
    
    # Per-share
    eps = Column(Float)
    book_value_per_share = Column(Float)
    
    # Derived ratios (fractions, e.g. 0.15 = 15%)
    roe = Column(Float)
    net_margin = Column(Float)
    net_debt_ebitda = Column(Float)
    payout = Column(Float)
    dividend_yield = Column(Float)
    
    # Multiples
    pl = Column(Float)
    pvp = Column(Float)
    
    # Scores and valuation (upside in percent, e.g. 25.0 = 25%)
    overall_score = Column(Float)
    upside = Column(Float)
    fair_value_model = Column(String(20))
    
    # Audit
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    __table_args__ = (
        Index('idx_snapshots_date', 'as_of_date'),
    )
