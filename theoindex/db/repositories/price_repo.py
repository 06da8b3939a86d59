from typing import Optional
from datetime import date
from sqlalchemy.orm import Session
from theoindex.db.models.price import DailyPrice, Dividend


class PriceRepository:
    """Stored closes and dividends backing the database providers."""

    def __init__(self, session: Session):
        self.session = session

    def get_close(self, ticker: str, price_date: date) -> Optional[float]:
        row = self.session.get(DailyPrice, (ticker, price_date))
        return row.close if row else None

    def get_last_close_on_or_before(self, ticker: str, price_date: date) -> Optional[DailyPrice]:
        return (
            self.session.query(DailyPrice)
            .filter(DailyPrice.ticker == ticker, DailyPrice.price_date <= price_date)
            .order_by(DailyPrice.price_date.desc())
            .first()
        )

    def get_dividend(self, ticker: str, ex_date: date) -> Optional[float]:
        row = self.session.get(Dividend, (ticker, ex_date))
        return row.amount if row else None

    def upsert_close(self, ticker: str, price_date: date, close: float, commit: bool = True) -> None:
        self.session.merge(DailyPrice(ticker=ticker, price_date=price_date, close=close))
        if commit:
            self.session.commit()

    def upsert_dividend(self, ticker: str, ex_date: date, amount: float, commit: bool = True) -> None:
        self.session.merge(Dividend(ticker=ticker, ex_date=ex_date, amount=amount))
        if commit:
            self.session.commit()
