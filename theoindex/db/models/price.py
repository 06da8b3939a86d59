from sqlalchemy import Column, String, Float, Date
from .base import Base

class DailyPrice(Base):
    __tablename__ = "daily_prices"
    
    ticker = Column(String(20), primary_key=True)
    price_date = Column(Date, primary_key=True)
    close = Column(Float, nullable=False)


class Dividend(Base):
    __tablename__ = "dividends"
    
    ticker = Column(String(20), primary_key=True)
    ex_date = Column(Date, primary_key=True)
    amount = Column(Float, nullable=False)
