"""Support functions for archive access and date handling"""

from __future__ import annotations

import time
from datetime import date, datetime, timedelta
from typing import Iterator, List, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from blackmarble.core.products import Cadence, DateLike, Product, parse_date


ISO = "%Y-%m-%d"


def to_iso(d: Union[str, date, datetime]) -> str:
    """Convert to ISO format"""
    if isinstance(d, (date, datetime)):
        return d.strftime(ISO)
    s = str(d)
    if len(s) == 8 and s.isdigit():
        return datetime.strptime(s, "%Y%m%d").strftime(ISO)
    return datetime.strptime(s[:10], ISO).strftime(ISO)


class Pacer:
    """Simple rate pacer: ensures a minimum delay between requests."""
    def __init__(self, min_interval_sec: float = 0.0):
        self.min_interval = max(0.0, float(min_interval_sec))
        self._last = 0.0

    def wait(self):
        """Wait between request"""
        if self.min_interval <= 0:
            return
        now = time.time()
        delta = now - self._last
        sleep_for = self.min_interval - delta
        if sleep_for > 0:
            time.sleep(sleep_for)
        self._last = time.time()


def make_session(
                total_retries: int = 3,
                backoff: float = 0.6
                ) -> requests.Session:
    """Make request session"""
    s = requests.Session()
    retry = Retry(
        total=total_retries,
        connect=total_retries,
        read=total_retries,
        status=total_retries,
        backoff_factor=backoff,
        status_forcelist=(500, 502, 503, 504),
        allowed_methods=("GET",),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=4, pool_maxsize=4)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    return s


def daterange_inclusive(start: DateLike, end: DateLike) -> Iterator[str]:
    """Yield ISO YYYY-MM-DD for every calendar day from start..end inclusive."""
    s = datetime.strptime(to_iso(start), ISO).date()
    e = datetime.strptime(to_iso(end), ISO).date()
    cur = s
    one = timedelta(days=1)
    while cur <= e:
        yield cur.strftime(ISO)
        cur += one


def product_dates(start: DateLike, end: DateLike, product_id: Union[str, Product]) -> List[str]:
    """
    Every period of the product between start and end, inclusive:
    days for daily products, "YYYY-MM" for monthly, "YYYY" for annual.
    """
    product = Product.from_id(product_id)
    s = parse_date(start, product)
    e = parse_date(end, product)
    if product.cadence is Cadence.DAILY:
        return list(daterange_inclusive(s, e))

    out: List[str] = []
    if product.cadence is Cadence.MONTHLY:
        y, m = s.year, s.month
        while (y, m) <= (e.year, e.month):
            out.append(f"{y:04d}-{m:02d}")
            y, m = (y + 1, 1) if m == 12 else (y, m + 1)
        return out
    return [f"{y:04d}" for y in range(s.year, e.year + 1)]
