"""Abstract class"""


from __future__ import annotations

import abc
import time
from pathlib import Path
from typing import List, Optional

import pandas as pd
import requests

from blackmarble.data_api.support_functions.support_functions import (
    Pacer,
    make_session
)
from blackmarble.utils.config import Config


def validate_bearer(bearer: str) -> str:
    """Reject credentials that cannot be sent as an Authorization header."""
    if not isinstance(bearer, str) or not bearer.strip():
        raise ValueError("A NASA Earthdata bearer token is required")
    token = bearer.strip()
    if any(c.isspace() for c in token):
        raise ValueError("Bearer token must not contain whitespace")
    return token


class TileArchiveAPI(abc.ABC):
    """Abstract base for archives serving per-date tile listings and tile files"""
    def __init__(
                self,
                name: str,
                bearer: str,
                config: Optional[Config] = None,
                session: Optional[requests.Session] = None,
                ):
        self.name = name
        self.config = config or Config()
        self.token = validate_bearer(bearer)
        self.headers = {"Authorization": f"Bearer {self.token}"}
        self.session = session or make_session(self.config.total_retries, self.config.backoff)
        self.pacer = Pacer(min_interval_sec=self.config.min_interval_sec)

    @abc.abstractmethod
    def listing(self, product_id: str, year: str, day: str) -> pd.DataFrame:
        """Return the archive listing for one day with at least a `name` column."""

    def resolve_tiles(self, listing: pd.DataFrame, prefixes: List[str]) -> List[str]:
        """
        Match expected granule prefixes against listed names.
        Keeps prefix order; the latest processing run wins when a tile appears twice.
        """
        names = sorted(str(n) for n in listing["name"] if str(n).endswith(".h5"))
        out: List[str] = []
        for prefix in prefixes:
            matches = [n for n in names if n.startswith(prefix)]
            if matches:
                out.append(matches[-1])
        return out

    @abc.abstractmethod
    def download(self, product_id: str, year: str, day: str, names: List[str], dest_dir: Path,
                 quiet: bool = False) -> List[Path]:
        """Download granules into dest_dir and return their local paths."""

    def _get(self, url: str, **kwargs) -> requests.Response:
        self.pacer.wait()
        timeout = kwargs.pop("timeout", self.config.timeout_sec)
        r = self.session.get(url, headers=self.headers, timeout=timeout, **kwargs)
        if r.status_code == 429:
            # exponential backoff with jitter
            for i in range(5):
                sleep = (2 ** i) + (0.1 * i)
                time.sleep(sleep)
                self.pacer.wait()
                r = self.session.get(url, headers=self.headers, timeout=timeout, **kwargs)
                if r.ok:
                    break
        r.raise_for_status()
        return r
