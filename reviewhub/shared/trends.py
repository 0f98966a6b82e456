"""
Monthly review activity over a trailing window of calendar months.

The series is newest first: month_number 1 is the current month and
month_number N the oldest. cumulativeCount is a running total accumulated
forward in time from the oldest month of the window, so it never decreases
from an older month to a newer one. cumulativeFromNewest runs the other way:
month i holds the reviews from the current month back to month i.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from itertools import accumulate
from typing import Any, Dict, List, Mapping, Optional

from .calendar_utils import ensure_utc, month_bounds, month_key, shift_months, utc_now
from .config import config
from .filters import EqualsClause, Predicate, RangeClause

logger = logging.getLogger(__name__)


class TrendScope(Enum):
    """Whose reviews a trend covers, and the review field that says so"""
    PRODUCT = 'productId'
    AUTHOR = 'author.username'


@dataclass(frozen=True)
class MonthWindow:
    month_number: int
    start: datetime
    end: datetime

    @property
    def key(self) -> str:
        return month_key(self.start)


def month_windows(now: Optional[datetime] = None, months: Optional[int] = None) -> List[MonthWindow]:
    """Calendar months ending with the current one, newest first"""
    now = ensure_utc(now) if now else utc_now()
    months = months or config.TREND_MONTHS
    windows = []
    for offset in range(months):
        start, end = month_bounds(shift_months(now.replace(day=1), -offset))
        windows.append(MonthWindow(offset + 1, start, end))
    return windows


def trend_pipeline(scope: TrendScope, identifier: str,
                   windows: List[MonthWindow]) -> List[Dict[str, Any]]:
    """One pass over the window, grouped by YYYY-MM"""
    predicate = Predicate((
        EqualsClause(scope.value, identifier),
        RangeClause('createdAt', lower=windows[-1].start, upper=windows[0].end),
    ))
    return [
        {'$match': predicate.to_query()},
        {'$group': {
            '_id': {'$dateToString': {'format': '%Y-%m', 'date': '$createdAt'}},
            'count': {'$sum': 1}
        }},
        {'$sort': {'_id': 1}}
    ]


def build_trend_series(windows: List[MonthWindow],
                       counts_by_month: Mapping[str, int]) -> List[Dict[str, Any]]:
    counts = [counts_by_month.get(window.key, 0) for window in windows]

    # counts are newest first
    cumulative = list(accumulate(reversed(counts)))[::-1]
    from_newest = list(accumulate(counts))

    return [
        {
            'monthNumber': window.month_number,
            'month': window.key,
            'startDate': window.start.isoformat(),
            'endDate': window.end.isoformat(),
            'count': count,
            'cumulativeCount': cumulative_count,
            'cumulativeFromNewest': newest_count
        }
        for window, count, cumulative_count, newest_count
        in zip(windows, counts, cumulative, from_newest)
    ]


async def compute_trend(store, scope: TrendScope, identifier: str,
                        now: Optional[datetime] = None,
                        months: Optional[int] = None) -> Dict[str, Any]:
    """Monthly and cumulative review counts for a product or an author"""
    windows = month_windows(now, months)
    rows = await store.aggregate_reviews(trend_pipeline(scope, identifier, windows))
    counts_by_month = {row['_id']: row['count'] for row in rows if row.get('_id')}

    series = build_trend_series(windows, counts_by_month)
    logger.info(f"Trend for {scope.name.lower()} {identifier}: "
                f"{series[0]['cumulativeCount']} reviews over {len(windows)} months")

    return {
        'scope': scope.name.lower(),
        'id': identifier,
        'months': len(windows),
        'series': series
    }
