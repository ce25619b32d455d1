"""Decode Black Marble HDF5 tiles, mosaic them and clip to a region"""

from __future__ import annotations

from contextlib import ExitStack
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import geopandas as gpd
import h5py
import numpy as np
import rasterio.mask
from rasterio.merge import merge as rio_merge
from rasterio.transform import from_bounds as rio_from_bounds

from blackmarble.core.errors import TileDecodeError
from blackmarble.core.products import Product, quality_flag_layer
from blackmarble.core.raster import Raster
from blackmarble.core.tiles import ensure_wgs84, tile_bounds, tile_id_from_name
from blackmarble.utils.bm_logger import get_logger

log = get_logger(__name__)


def data_fields_path(product: Product) -> str:
    return f"HDFEOS/GRIDS/{product.info.hdf_grid}/Data Fields"


def _scalar_attr(dataset: h5py.Dataset, name: str) -> Optional[float]:
    value = dataset.attrs.get(name)
    if value is None:
        return None
    arr = np.asarray(value).ravel()
    if arr.size == 0:
        return None
    return float(arr[0])


def h5_to_raster(
                h5_path: Union[str, Path],
                variable: str,
                product: Union[str, Product],
                quality_flags_to_remove: Optional[Sequence[int]] = None,
                ) -> Raster:
    """
    Read one tile into a single-band raster.

    Pixels whose quality flag is in `quality_flags_to_remove` and fill values
    become NaN; the remaining values get `scale_factor`/`add_offset` applied.
    The geotransform comes from the tile id in the file name.
    """
    product = Product.from_id(product)
    h5_path = Path(h5_path)
    try:
        tile_id = tile_id_from_name(h5_path.name)
        left, bottom, right, top = tile_bounds(tile_id)
    except ValueError as e:
        raise TileDecodeError(str(e)) from e

    fields_path = data_fields_path(product)
    try:
        with h5py.File(h5_path, "r") as h5_file:
            if fields_path not in h5_file:
                raise TileDecodeError(f"{fields_path} not found in {h5_path.name}")
            fields = h5_file[fields_path]
            if variable not in fields:
                raise TileDecodeError(f"Variable {variable!r} not found in {h5_path.name}")
            dataset = fields[variable]
            raw = dataset[...]
            if raw.ndim != 2:
                raise TileDecodeError(f"{variable} in {h5_path.name} is not a 2D grid")

            missing = np.zeros(raw.shape, dtype=bool)

            if quality_flags_to_remove:
                qf_name = quality_flag_layer(product, variable)
                if qf_name is None:
                    log.warning("%s has no quality flag layer for %s; quality_flags_to_remove ignored",
                                product.value, variable)
                elif qf_name not in fields:
                    raise TileDecodeError(f"Quality layer {qf_name!r} not found in {h5_path.name}")
                else:
                    qf = fields[qf_name][...]
                    if qf.shape != raw.shape:
                        raise TileDecodeError(f"{qf_name} shape {qf.shape} does not match {raw.shape}")
                    missing |= np.isin(qf, list(quality_flags_to_remove))

            fill = _scalar_attr(dataset, "_FillValue")
            if fill is not None:
                missing |= raw == fill

            scale = _scalar_attr(dataset, "scale_factor")
            offset = _scalar_attr(dataset, "add_offset")
    except OSError as e:
        raise TileDecodeError(f"Could not read {h5_path.name}: {e}") from e

    data = raw.astype(np.float32)
    if scale is not None:
        data *= np.float32(scale)
    if offset is not None:
        data += np.float32(offset)
    data[missing] = np.nan

    height, width = data.shape
    transform = rio_from_bounds(left, bottom, right, top, width, height)
    return Raster(data, transform, [tile_id])


def mosaic(
            rasters: Iterable[Raster],
            band_name: Optional[str] = None,
            bounds: Optional[Tuple[float, float, float, float]] = None,
            ) -> Raster:
    """
    Merge single-tile rasters into one raster covering their union, or
    `bounds` when given. Pixels inside `bounds` that no tile covers are NaN,
    so dates with different tiles still land on the same grid.
    Tiles do not overlap; if they ever do, the later tile wins.
    """
    rasters = list(rasters)
    if not rasters:
        raise ValueError("No rasters to mosaic")
    if len(rasters) == 1 and bounds is None:
        out = rasters[0]
        return Raster(out.data.copy(), out.transform, [band_name or out.band_names[0]], out.crs)

    with ExitStack() as stack:
        datasets = []
        for r in rasters:
            memfile = stack.enter_context(r.open_memfile())
            datasets.append(stack.enter_context(memfile.open()))
        merged, transform = rio_merge(datasets, bounds=bounds, nodata=np.nan, method="last")

    merged = merged.astype(np.float32, copy=False)
    return Raster(merged[:1], transform, [band_name or "mosaic"], rasters[0].crs)


def clip_to_roi(raster: Raster, roi: gpd.GeoDataFrame) -> Raster:
    """Crop to the region's bounds and set pixels no polygon touches to NaN."""
    roi = ensure_wgs84(roi)
    shapes: List = [g for g in roi.geometry if g is not None and not g.is_empty]
    if not shapes:
        raise ValueError("Region of interest has no geometries")

    with raster.open_memfile() as memfile:
        with memfile.open() as src:
            clipped, transform = rasterio.mask.mask(
                src, shapes, crop=True, all_touched=True, nodata=np.nan, filled=True
            )
    return Raster(clipped.astype(np.float32, copy=False), transform, list(raster.band_names), raster.crs)
