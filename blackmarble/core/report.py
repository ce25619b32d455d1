"""Per-date outcome of a pipeline call"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

OK = "ok"
SKIPPED = "skipped"
ERROR = "error"


@dataclass
class DateResult:
    """What happened to one requested date"""
    label: str
    status: str
    reason: Optional[str] = None
    path: Optional[Path] = None
    error: Optional[BaseException] = field(default=None, repr=False)


@dataclass
class RunReport:
    """Dates that succeeded, were skipped, or failed (with the reason) in one call"""
    product_id: str
    results: List[DateResult] = field(default_factory=list)

    def add(self, result: DateResult) -> DateResult:
        self.results.append(result)
        return result

    @property
    def succeeded(self) -> List[str]:
        return [r.label for r in self.results if r.status == OK]

    @property
    def skipped(self) -> List[str]:
        return [r.label for r in self.results if r.status == SKIPPED]

    @property
    def failed(self) -> Dict[str, str]:
        return {r.label: r.reason or "" for r in self.results if r.status == ERROR}

    @property
    def all_failed(self) -> bool:
        """True when no date produced or already had output."""
        return bool(self.results) and all(r.status == ERROR for r in self.results)

    def to_frame(self) -> pd.DataFrame:
        """Columns: date, status, reason, path"""
        return pd.DataFrame(
            [{"date": r.label, "status": r.status, "reason": r.reason,
              "path": str(r.path) if r.path else None} for r in self.results],
            columns=["date", "status", "reason", "path"],
        )
