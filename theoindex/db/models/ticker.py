from sqlalchemy import Column, String, DateTime, Boolean, func
from .base import Base


class Ticker(Base):
    """
    A listed B3 security in the screening universe.

    Deactivated tickers stay in the table (history and logs reference them)
    but are left out of every screening run.
    """

    __tablename__ = "tickers"

    ticker = Column(String(20), primary_key=True)  # B3 code without the .SA suffix
    company_name = Column(String(255))
    asset_type = Column(String(20), nullable=False, default="STOCK")  # STOCK | BDR | ETF | FII | INDEX | OTHER
    exchange = Column(String(50))
    sector = Column(String(100))  # None is screened as "Outros"
    industry = Column(String(100))
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
