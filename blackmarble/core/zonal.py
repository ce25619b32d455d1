"""Coverage-weighted zonal statistics over a multi-band raster"""

from __future__ import annotations

from typing import Dict, List, Sequence, Union

import geopandas as gpd
import numpy as np
import pandas as pd
from exactextract import exact_extract
from exactextract.raster import NumPyRasterSource
from pyproj import CRS

from blackmarble.core.errors import EmptyIntersectionError
from blackmarble.core.raster import Raster
from blackmarble.core.tiles import ensure_wgs84
from blackmarble.utils.bm_logger import get_logger

log = get_logger(__name__)


def _source(raster: Raster, band: np.ndarray) -> NumPyRasterSource:
    left, bottom, right, top = raster.bounds
    return NumPyRasterSource(
        np.ascontiguousarray(band, dtype=np.float64),
        left, bottom, right, top,
        srs_wkt=CRS.from_user_input(raster.crs).to_wkt(),
    )


def _geometries(roi: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame(geometry=list(roi.geometry), crs=roi.crs)


def _normalise_funs(fun: Union[str, Sequence[str]]) -> List[str]:
    funs = [fun] if isinstance(fun, str) else list(fun)
    if not funs:
        raise ValueError("At least one aggregation function is required")
    return funs


def band_stats(
                raster: Raster,
                band: Union[str, int],
                roi: gpd.GeoDataFrame,
                fun: Union[str, Sequence[str]] = ("mean",),
            ) -> pd.DataFrame:
    """
    Statistics of one band for every polygon, in roi row order.
    Each pixel counts by the fraction of its area inside the polygon.
    Columns: one per function plus `count` (weighted number of non-missing pixels).
    """
    funs = _normalise_funs(fun)
    ops = list(dict.fromkeys(funs + ["count"]))
    roi = ensure_wgs84(roi).reset_index(drop=True)
    values = raster.band(band)
    out = exact_extract(_source(raster, values), _geometries(roi), ops, output="pandas")
    return out[ops].reset_index(drop=True)


def polygon_band_stat(
                        raster: Raster,
                        band: Union[str, int],
                        polygon: gpd.GeoDataFrame,
                        fun: Union[str, Sequence[str]] = ("mean",),
                    ) -> Dict[str, float]:
    """
    Statistics for a single polygon and band, for callers working outside
    `extract`. Uses the first row of `polygon`.
    Raises EmptyIntersectionError when no valid pixel overlaps the polygon;
    `extract` keeps such polygons as rows with missing statistics instead.
    """
    stats = band_stats(raster, band, polygon.iloc[:1], fun)
    row = stats.iloc[0].to_dict()
    if not row["count"] > 0:
        name = band if isinstance(band, str) else raster.band_names[band]
        raise EmptyIntersectionError(f"Polygon has no valid pixels in band {name}")
    return row


def pixel_counts(raster: Raster, roi: gpd.GeoDataFrame) -> pd.Series:
    """Coverage-weighted number of raster cells under each polygon, missing or not."""
    ones = np.ones((raster.height, raster.width), dtype=np.float64)
    roi = ensure_wgs84(roi).reset_index(drop=True)
    out = exact_extract(_source(raster, ones), _geometries(roi), ["count"], output="pandas")
    return out["count"].reset_index(drop=True)


def extract(
            raster: Raster,
            roi: gpd.GeoDataFrame,
            fun: Union[str, Sequence[str]] = ("mean",),
            add_n_pixels: bool = True,
            quiet: bool = False,
            ) -> pd.DataFrame:
    """
    Zonal statistics for every polygon and band.

    One row per (band, polygon): bands in raster order, polygons in roi order.
    Columns are the roi attributes, `date` (band name), `ntl_<fun>` for each
    function and, with `add_n_pixels`, `n_pixels`, `n_non_na_pixels` and
    `prop_non_na_pixels`. A polygon without valid pixels in a band keeps a
    row with missing statistics.
    """
    funs = _normalise_funs(fun)
    roi = ensure_wgs84(roi).reset_index(drop=True)
    attrs = pd.DataFrame(roi.drop(columns=roi.geometry.name))

    n_pixels = pixel_counts(raster, roi) if add_n_pixels else None

    frames: List[pd.DataFrame] = []
    for name in raster.band_names:
        stats = band_stats(raster, name, roi, funs)
        empty = ~(stats["count"] > 0)
        if empty.any() and not quiet:
            for idx in np.flatnonzero(empty.to_numpy()):
                log.warning("Polygon %d has no valid pixels in band %s; statistics set to NA", idx, name)

        frame = attrs.copy()
        frame["date"] = name
        for f in funs:
            frame[f"ntl_{f}"] = stats[f].where(~empty, np.nan).to_numpy()
        if add_n_pixels:
            frame["n_pixels"] = n_pixels.to_numpy()
            frame["n_non_na_pixels"] = stats["count"].to_numpy()
            with np.errstate(divide="ignore", invalid="ignore"):
                frame["prop_non_na_pixels"] = np.where(
                    n_pixels.to_numpy() > 0, stats["count"].to_numpy() / n_pixels.to_numpy(), np.nan)
        frames.append(frame)

    return pd.concat(frames, ignore_index=True)
