from datetime import date

from tests.helpers import FRI, MON, NEXT_MON, THU, TUE, WED, FakeMarketData
from theoindex.index.calendar import MarketCalendar

SAT = date(2025, 6, 7)
SUN = date(2025, 6, 8)


def test_weekends_and_holidays_are_closed():
    calendar = MarketCalendar(holidays=[WED])

    assert calendar.is_trading_day(MON)
    assert not calendar.is_trading_day(WED)
    assert not calendar.is_trading_day(SAT)
    assert not calendar.is_trading_day(SUN)


def test_trading_days_between_is_exclusive():
    calendar = MarketCalendar(holidays=[WED])

    assert calendar.trading_days_between(MON, NEXT_MON) == [TUE, THU, FRI]
    assert calendar.trading_days_between(MON, TUE) == []
    assert calendar.trading_days(FRI, MON) == []


def test_next_trading_day():
    calendar = MarketCalendar()

    assert calendar.next_trading_day(SAT) == NEXT_MON
    assert calendar.next_trading_day(FRI) == FRI


def test_was_open_uses_reference_quote():
    market = FakeMarketData().set_close("^BVSP", MON, 130000.0)
    calendar = MarketCalendar(quote_provider=market)

    assert calendar.was_open(MON)
    assert not calendar.was_open(TUE)
    assert not calendar.was_open(SAT)


def test_was_open_caches_answers():
    market = FakeMarketData().set_close("^BVSP", MON, 130000.0)
    calendar = MarketCalendar(quote_provider=market)

    calendar.was_open(MON)
    calendar.was_open(MON)
    assert market.calls == 1


def test_was_open_assumes_open_when_reference_fails():
    market = FakeMarketData()
    market.failing.add("^BVSP")
    calendar = MarketCalendar(quote_provider=market)

    assert calendar.was_open(MON)


def test_was_open_without_provider_is_weekday_check():
    assert MarketCalendar().was_open(TUE)
