"""NASA Black Marble nighttime lights: rasters and zonal statistics for a region."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import geopandas as gpd
import pandas as pd
import requests
from rasterio.errors import RasterioError

from blackmarble.core.errors import BlackMarbleError, IncompleteTileCoverageError, NoDataError
from blackmarble.core.processing import clip_to_roi, h5_to_raster, mosaic
from blackmarble.core.products import (
    DateLike,
    Product,
    archive_period,
    define_raster_name,
    define_variable,
    parse_date,
)
from blackmarble.core.raster import Raster
from blackmarble.core.report import ERROR, OK, SKIPPED, DateResult, RunReport
from blackmarble.core.temporal import interpolate_na, require_interpolation_dates, stack_dates
from blackmarble.core.tiles import ensure_wgs84, expected_tile_prefixes, intersecting_tiles, tiles_extent
from blackmarble.core.writer import RASTER_EXT, TABLE_EXT, output_path, save_raster, save_table
from blackmarble.core.zonal import extract as zonal_extract
from blackmarble.data_api.api_abstract import TileArchiveAPI
from blackmarble.data_api.api_laads import LaadsArchiveAPI
from blackmarble.utils.bm_logger import get_logger, inform, set_level
from blackmarble.utils.config import Config, load_config

log = get_logger(__name__)

MEMORY = "memory"
FILE = "file"

# Failures that drop a single date; anything else reaches the caller
PER_DATE_ERRORS = (BlackMarbleError, requests.RequestException, OSError, ValueError, RasterioError)


def _as_list(date: Union[DateLike, Iterable[DateLike]]) -> List[DateLike]:
    if isinstance(date, (str, int)) or not isinstance(date, Iterable):
        return [date]
    return list(date)


class BlackMarbleAPI:
    """
    Downloads Black Marble tiles for a region and turns them into rasters
    or zonal statistics, one date at a time.
    - A date whose tiles are incomplete, unreadable or unreachable is dropped;
      the other dates go on. `report` lists what happened to each date.
    - Temporary tiles live in one directory per call, removed at the end.
    """

    def __init__(
                    self,
                    bearer: str,
                    config: Optional[Config] = None,
                    archive: Optional[TileArchiveAPI] = None,
                    session: Optional[requests.Session] = None,
                ):
        self.config = config or load_config()
        set_level(self.config.log_level)
        self.archive = archive or LaadsArchiveAPI(bearer, self.config, session=session)
        self.report: Optional[RunReport] = None

    # --------------------------------------------------------------------
    # Public API
    # --------------------------------------------------------------------
    def raster(
                self,
                roi: gpd.GeoDataFrame,
                product_id: Union[str, Product],
                date: Union[DateLike, Iterable[DateLike]],
                variable: Optional[str] = None,
                quality_flags_to_remove: Optional[Sequence[int]] = None,
                check_all_tiles_exist: bool = True,
                interpol_na: bool = False,
                output_location_type: str = MEMORY,
                file_dir: Optional[Union[str, Path]] = None,
                file_prefix: Optional[str] = None,
                file_skip_if_exists: bool = True,
                quiet: bool = False,
            ) -> Optional[Raster]:
        """
        Raster with one band per date, named by date label ("t2021_10_03").

        In file mode each date is written to <file_dir>/<prefix><product>_<label>.tif
        and None is returned.
        """
        product, dates, labels, variable, roi, interpol_na = self._prepare(
            roi, product_id, date, variable, interpol_na, output_location_type, quiet)
        self.report = RunReport(product.value)

        rasters: List[Raster] = []
        kept: List[str] = []
        with self._temp_dir() as temp_dir:
            for d, label in zip(dates, labels):
                out_path = None
                if output_location_type == FILE:
                    out_path = output_path(file_dir, file_prefix, product, label, RASTER_EXT)
                    if file_skip_if_exists and out_path.exists():
                        self._skip(label, out_path, quiet)
                        continue
                try:
                    r = self._date_raster(roi, product, d, label, variable, quality_flags_to_remove,
                                          check_all_tiles_exist, temp_dir, quiet)
                    if out_path is not None:
                        save_raster(r, out_path)
                    else:
                        rasters.append(r)
                        kept.append(label)
                    self.report.add(DateResult(label, OK, path=out_path))
                except PER_DATE_ERRORS as e:
                    self._drop(label, e, quiet)

        if self.report.all_failed or (output_location_type == MEMORY and not rasters):
            return self._empty()
        if output_location_type == FILE:
            return None

        stacked = stack_dates(rasters, kept)
        if interpol_na:
            inform(log, quiet, "Interpolating missing values across %d dates", stacked.count)
            stacked = interpolate_na(stacked)
        return stacked

    def extract(
                self,
                roi: gpd.GeoDataFrame,
                product_id: Union[str, Product],
                date: Union[DateLike, Iterable[DateLike]],
                aggregation_fun: Union[str, Sequence[str]] = ("mean",),
                add_n_pixels: bool = True,
                variable: Optional[str] = None,
                quality_flags_to_remove: Optional[Sequence[int]] = None,
                check_all_tiles_exist: bool = True,
                interpol_na: bool = False,
                output_location_type: str = MEMORY,
                file_dir: Optional[Union[str, Path]] = None,
                file_prefix: Optional[str] = None,
                file_skip_if_exists: bool = True,
                quiet: bool = False,
            ) -> Optional[pd.DataFrame]:
        """
        Zonal statistics per polygon and date: roi attributes, `date`,
        `ntl_<fun>` and (with add_n_pixels) pixel counts.

        In file mode each date is written to <file_dir>/<prefix><product>_<label>.csv
        and None is returned.
        """
        if interpol_na and output_location_type == MEMORY:
            bm_r = self.raster(roi, product_id, date, variable=variable,
                               quality_flags_to_remove=quality_flags_to_remove,
                               check_all_tiles_exist=check_all_tiles_exist,
                               interpol_na=True, quiet=quiet)
            if bm_r is None:
                return None
            inform(log, quiet, "Extracting zonal statistics for %d dates", bm_r.count)
            return zonal_extract(bm_r, ensure_wgs84(roi), aggregation_fun, add_n_pixels, quiet)

        product, dates, labels, variable, roi, _ = self._prepare(
            roi, product_id, date, variable, interpol_na, output_location_type, quiet)
        self.report = RunReport(product.value)

        frames: List[pd.DataFrame] = []
        with self._temp_dir() as temp_dir:
            for d, label in zip(dates, labels):
                out_path = None
                if output_location_type == FILE:
                    out_path = output_path(file_dir, file_prefix, product, label, TABLE_EXT)
                    if file_skip_if_exists and out_path.exists():
                        self._skip(label, out_path, quiet)
                        continue
                try:
                    r = self._date_raster(roi, product, d, label, variable, quality_flags_to_remove,
                                          check_all_tiles_exist, temp_dir, quiet)
                    inform(log, quiet, "Extracting zonal statistics for %s", label)
                    table = zonal_extract(r, roi, aggregation_fun, add_n_pixels, quiet)
                    if out_path is not None:
                        save_table(table, out_path)
                    else:
                        frames.append(table)
                    self.report.add(DateResult(label, OK, path=out_path))
                except PER_DATE_ERRORS as e:
                    self._drop(label, e, quiet)

        if self.report.all_failed or (output_location_type == MEMORY and not frames):
            return self._empty()
        if output_location_type == FILE:
            return None
        return pd.concat(frames, ignore_index=True)

    # --------------------------------------------------------------------
    # Internal functions
    # --------------------------------------------------------------------
    def _prepare(
                    self,
                    roi: gpd.GeoDataFrame,
                    product_id: Union[str, Product],
                    date: Union[DateLike, Iterable[DateLike]],
                    variable: Optional[str],
                    interpol_na: bool,
                    output_location_type: str,
                    quiet: bool,
                ) -> Tuple[Product, List, List[str], str, gpd.GeoDataFrame, bool]:
        product = Product.from_id(product_id)
        if output_location_type not in (MEMORY, FILE):
            raise ValueError(f"output_location_type must be '{MEMORY}' or '{FILE}', got {output_location_type!r}")

        raw_dates = _as_list(date)
        if not raw_dates:
            raise ValueError("At least one date is required")
        if interpol_na:
            require_interpolation_dates(raw_dates)
            if output_location_type == FILE:
                log.warning("interpol_na ignored. Interpolation only occurs when output_location_type = 'memory'")
                interpol_na = False

        dates = [parse_date(d, product) for d in raw_dates]
        labels = [define_raster_name(d, product) for d in dates]
        variable = define_variable(variable, product)
        roi = ensure_wgs84(roi)
        inform(log, quiet, "%s %s: %d date(s), variable %s", product.value,
               product.info.description, len(dates), variable)
        return product, dates, labels, variable, roi, interpol_na

    def _temp_dir(self) -> tempfile.TemporaryDirectory:
        return tempfile.TemporaryDirectory(prefix="bm_raster_temp_", dir=self.config.temp_dir)

    def _date_raster(
                        self,
                        roi: gpd.GeoDataFrame,
                        product: Product,
                        d,
                        label: str,
                        variable: str,
                        quality_flags_to_remove: Optional[Sequence[int]],
                        check_all_tiles_exist: bool,
                        temp_dir: str,
                        quiet: bool,
                    ) -> Raster:
        """Listing -> download -> decode -> mosaic -> clip for one date."""
        year, day = archive_period(d, product)
        tile_ids = intersecting_tiles(roi)
        if not tile_ids:
            raise IncompleteTileCoverageError("Region of interest does not intersect any tile")
        prefixes = expected_tile_prefixes(product, d, tile_ids)

        listing = self.archive.listing(product.value, year, day)
        names = self.archive.resolve_tiles(listing, prefixes)
        if check_all_tiles_exist and len(names) < len(prefixes):
            raise IncompleteTileCoverageError(
                f"Not all satellite imagery tiles for {label} exist ({len(names)} of {len(prefixes)}), "
                "so skipping. To process anyway, set check_all_tiles_exist = False")
        if not names:
            raise IncompleteTileCoverageError(f"No satellite imagery tiles for {label}")

        inform(log, quiet, "Processing %d tile(s) for %s", len(names), label)
        paths = self.archive.download(product.value, year, day, names, Path(temp_dir), quiet=quiet)
        if check_all_tiles_exist and len(paths) < len(names):
            raise IncompleteTileCoverageError(
                f"Only {len(paths)} of {len(names)} tiles downloaded for {label}")
        if not paths:
            raise IncompleteTileCoverageError(f"No tiles downloaded for {label}")

        tiles = [h5_to_raster(p, variable, product, quality_flags_to_remove) for p in paths]
        # every date shares the grid of the full tile set, whatever was downloaded
        merged = mosaic(tiles, band_name=label, bounds=tiles_extent(tile_ids))
        return clip_to_roi(merged, roi)

    def _skip(self, label: str, out_path: Path, quiet: bool) -> None:
        if not quiet:
            log.warning('"%s" already exists; skipping.', out_path)
        self.report.add(DateResult(label, SKIPPED, reason="output exists", path=out_path))

    def _drop(self, label: str, error: BaseException, quiet: bool) -> None:
        if not quiet:
            log.warning("Skipping %s: %s", label, error)
        self.report.add(DateResult(label, ERROR, reason=f"{type(error).__name__}: {error}", error=error))

    def _empty(self) -> None:
        failed = self.report.failed if self.report else {}
        msg = f"No data produced for any requested date: {failed}"
        if self.config.raise_if_empty:
            log.error(msg)
            raise NoDataError(msg)
        log.warning(msg)
        return None


def bm_raster(
                roi: gpd.GeoDataFrame,
                product_id: Union[str, Product],
                date: Union[DateLike, Iterable[DateLike]],
                bearer: str,
                config: Optional[Config] = None,
                **kwargs,
            ) -> Optional[Raster]:
    """Black Marble raster for a region; see BlackMarbleAPI.raster for the options."""
    return BlackMarbleAPI(bearer, config=config).raster(roi, product_id, date, **kwargs)


def bm_extract(
                roi: gpd.GeoDataFrame,
                product_id: Union[str, Product],
                date: Union[DateLike, Iterable[DateLike]],
                bearer: str,
                config: Optional[Config] = None,
                **kwargs,
            ) -> Optional[pd.DataFrame]:
    """Zonal nighttime-lights statistics for a region; see BlackMarbleAPI.extract for the options."""
    return BlackMarbleAPI(bearer, config=config).extract(roi, product_id, date, **kwargs)
