"""Stack per-date rasters and fill gaps along the date axis"""

from __future__ import annotations

from typing import List, Sequence

import numpy as np
import pandas as pd

from blackmarble.core.errors import InsufficientDataError
from blackmarble.core.raster import Raster


def stack_dates(rasters: Sequence[Raster], labels: Sequence[str]) -> Raster:
    """One band per date, in the order given. Every raster must share the same grid."""
    if len(rasters) != len(labels):
        raise ValueError(f"{len(rasters)} rasters for {len(labels)} labels")
    if not rasters:
        raise ValueError("No rasters to stack")

    first = rasters[0]
    for label, r in zip(labels, rasters):
        if r.data.shape[1:] != first.data.shape[1:] or not r.transform.almost_equals(first.transform):
            raise ValueError(f"Raster for {label} is not on the same grid as {labels[0]}")

    data = np.concatenate([r.data[:1] for r in rasters], axis=0)
    return Raster(data, first.transform, list(labels), first.crs)


def interpolate_na(raster: Raster) -> Raster:
    """
    Linear interpolation of missing pixels across bands, pixel by pixel.
    Bands are treated as equally spaced; gaps before the first or after the
    last observed value of a pixel stay missing.
    """
    if raster.count < 2:
        raise InsufficientDataError(
            f"Interpolation needs at least two dates, got {raster.count}")

    bands, rows, cols = raster.data.shape
    flat = raster.data.reshape(bands, rows * cols).astype(np.float32, copy=True)

    # only pixels with a gap and at least two observations can change
    valid = np.isfinite(flat)
    todo = np.flatnonzero(~valid.all(axis=0) & (valid.sum(axis=0) >= 2))
    if todo.size:
        series = pd.DataFrame(flat[:, todo].astype(np.float64))
        filled = series.interpolate(method="linear", axis=0, limit_area="inside")
        flat[:, todo] = filled.to_numpy(dtype=np.float32)

    return Raster(flat.reshape(bands, rows, cols), raster.transform, list(raster.band_names), raster.crs)


def require_interpolation_dates(dates: List) -> None:
    """Fail before any download when interpolation cannot succeed."""
    if len(dates) < 2:
        raise InsufficientDataError("If interpol_na = True, then must have more than one date")
