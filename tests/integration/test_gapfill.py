import pytest

from tests.helpers import FRI, MON, THU, TUE, WED, make_index, set_composition
from theoindex.db.repositories.index_repo import HistoryRepository
from theoindex.errors import ProviderOutageError
from theoindex.index.calendar import MarketCalendar
from theoindex.index.gapfill import GapFillService
from theoindex.index.points import IndexPointsEngine

CLOSES = {
    "AAAA3": {MON: 10.0, TUE: 10.4, WED: 10.1, THU: 10.8, FRI: 11.0},
    "BBBB3": {MON: 50.0, TUE: 49.0, WED: 51.5, THU: 51.0, FRI: 52.2},
}


@pytest.fixture
def priced(market):
    for ticker, closes in CLOSES.items():
        for d, close in closes.items():
            market.set_close(ticker, d, close)
    market.set_dividend("BBBB3", WED, 1.0)
    return market


def _service(session, market, index_id, calendar=None):
    make_index(session, index_id)
    set_composition(session, index_id, {"AAAA3": 0.5, "BBBB3": 0.5}, MON)
    engine = IndexPointsEngine(session, market, calendar=calendar)
    return GapFillService(session, engine)


def _points(session, index_id):
    return {p.date: p.points for p in HistoryRepository(session).get_series(index_id)}


def test_first_run_seeds_base_point(db_session, priced):
    service = _service(db_session, priced, "GAP")

    result = service.run_for_today("GAP", MON)

    assert result.seeded_on == MON
    assert not result.today_written
    assert _points(db_session, "GAP") == {MON: 100.0}


def test_missed_runs_match_continuous_history(db_session, priced):
    continuous = _service(db_session, priced, "DAILY")
    for d in (MON, TUE, WED, THU):
        continuous.run_for_today("DAILY", d)

    gapped = _service(db_session, priced, "GAPPED")
    gapped.run_for_today("GAPPED", MON)
    result = gapped.run_for_today("GAPPED", THU)

    assert result.filled_dates == [TUE, WED]
    assert result.today_written
    daily, filled = _points(db_session, "DAILY"), _points(db_session, "GAPPED")
    assert list(filled) == [MON, TUE, WED, THU]
    for d in daily:
        assert filled[d] == pytest.approx(daily[d])


def test_fill_missing_history_stops_before_today(db_session, priced):
    service = _service(db_session, priced, "GAP")
    service.run_for_today("GAP", MON)

    assert service.fill_missing_history("GAP", FRI) == 3
    assert list(_points(db_session, "GAP")) == [MON, TUE, WED, THU]


def test_holidays_are_not_filled(db_session, priced):
    service = _service(db_session, priced, "GAP", calendar=MarketCalendar(holidays=[WED]))
    service.run_for_today("GAP", MON)

    result = service.run_for_today("GAP", FRI)

    assert result.filled_dates == [TUE, THU]
    assert WED not in _points(db_session, "GAP")


def test_failure_stops_the_fill(db_session, priced):
    for ticker in CLOSES:
        del priced.closes[(ticker, WED)]
    service = _service(db_session, priced, "GAP")
    service.run_for_today("GAP", MON)

    with pytest.raises(ProviderOutageError):
        service.run_for_today("GAP", FRI)

    assert list(_points(db_session, "GAP")) == [MON, TUE]


def test_late_dividend_is_detected_and_recalculated(db_session, market):
    for ticker, closes in CLOSES.items():
        for d, close in closes.items():
            market.set_close(ticker, d, close)
    service = _service(db_session, market, "GAP")
    service.run_for_today("GAP", MON)
    service.run_for_today("GAP", THU)
    before = _points(db_session, "GAP")

    assert service.check_pending_dividends("GAP", THU, lookback_days=10) == []

    market.set_dividend("BBBB3", WED, 1.0)
    pending = service.check_pending_dividends("GAP", THU, lookback_days=10)
    assert pending == [WED]

    assert service.recalculate_with_dividends("GAP", min(pending), THU) == 2

    after = _points(db_session, "GAP")
    assert after[TUE] == pytest.approx(before[TUE])
    assert after[WED] == pytest.approx(before[TUE] * (1 + 0.5 * (10.1 / 10.4 - 1) + 0.5 * (52.5 / 49.0 - 1)))
    assert after[THU] > before[THU]
    assert service.check_pending_dividends("GAP", THU, lookback_days=10) == []


def test_backfill_before_first_composition_keeps_base_points(db_session, market):
    make_index(db_session, "LATE")
    engine = IndexPointsEngine(db_session, market)
    engine.seed_first_point("LATE", MON)
    set_composition(db_session, "LATE", {"AAAA3": 1.0}, WED)
    market.set_close("AAAA3", MON, 10.0).set_close("AAAA3", TUE, 11.0)

    filled = GapFillService(db_session, engine).fill_missing_history("LATE", WED)

    assert filled == 1
    tue = HistoryRepository(db_session).get_point("LATE", TUE)
    assert tue.points == 100.0
    assert tue.daily_change == 0.0
    assert tue.composition_snapshot == []
