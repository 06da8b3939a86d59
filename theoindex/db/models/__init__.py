from .base import Base
from .ticker import Ticker
from .snapshot import FinancialSnapshot
from .price import DailyPrice, Dividend
from .index import IndexDefinition, IndexComposition, IndexHistoryPoint, IndexRebalanceLog
