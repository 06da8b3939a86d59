from typing import Iterable, List, Optional
from .base import BaseRepository
from theoindex.db.models.ticker import Ticker


class TickerRepository(BaseRepository[Ticker]):
    def __init__(self, session):
        super().__init__(session, Ticker)

    def get_universe(self, asset_types: Optional[Iterable[str]] = None) -> List[Ticker]:
        """Active tickers, optionally restricted to the given asset types."""
        query = self.session.query(Ticker).filter(Ticker.is_active == True)
        if asset_types:
            query = query.filter(Ticker.asset_type.in_(list(asset_types)))
        return query.order_by(Ticker.ticker).all()

    def deactivate(self, ticker: str, commit: bool = True) -> bool:
        """Mark a delisted or unknown ticker inactive; it drops out of screening."""
        obj = self.get(ticker)
        if not obj:
            return False
        obj.is_active = False
        if commit:
            self.session.commit()
        return True

    def upsert(self, ticker_obj: Ticker, commit: bool = True) -> Ticker:
        return self.merge(ticker_obj, commit=commit)
