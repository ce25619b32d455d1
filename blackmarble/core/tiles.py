"""Black Marble tile grid: which 10x10 degree cells a region touches"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, List, Tuple, Union

import geopandas as gpd
from pyproj import CRS
from shapely.geometry import box

from blackmarble.core.products import DateLike, Product, archive_period
from blackmarble.utils.bm_logger import get_logger

log = get_logger(__name__)

WGS84 = CRS.from_epsg(4326)

TILE_SIZE_DEG = 10.0
N_H = 36
N_V = 18

# Production tiles are 2400 x 2400 pixels of 15 arc-seconds
TILE_PIXELS = 2400

TILE_ID_RE = re.compile(r"h(\d{2})v(\d{2})")


def tile_bounds(tile_id: str) -> Tuple[float, float, float, float]:
    """(left, bottom, right, top) in degrees for a tile id like 'h08v05'."""
    m = TILE_ID_RE.fullmatch(tile_id)
    if not m:
        raise ValueError(f"Invalid tile id {tile_id!r}")
    h, v = int(m.group(1)), int(m.group(2))
    if h >= N_H or v >= N_V:
        raise ValueError(f"Tile id {tile_id!r} is outside the {N_H}x{N_V} grid")
    left = -180.0 + TILE_SIZE_DEG * h
    top = 90.0 - TILE_SIZE_DEG * v
    return left, top - TILE_SIZE_DEG, left + TILE_SIZE_DEG, top


def tiles_extent(tile_ids: Iterable[str]) -> Tuple[float, float, float, float]:
    """(left, bottom, right, top) covering every tile in `tile_ids`."""
    bounds = [tile_bounds(t) for t in tile_ids]
    if not bounds:
        raise ValueError("No tile ids given")
    lefts, bottoms, rights, tops = zip(*bounds)
    return min(lefts), min(bottoms), max(rights), max(tops)


def tile_id_from_name(name: str) -> str:
    """Pull the 'hXXvYY' cell id out of a granule file name."""
    m = TILE_ID_RE.search(name)
    if not m:
        raise ValueError(f"Could not determine tile id for {name}")
    return m.group()


@lru_cache(maxsize=1)
def _grid() -> gpd.GeoDataFrame:
    rows = []
    for v in range(N_V):
        for h in range(N_H):
            tile_id = f"h{h:02d}v{v:02d}"
            rows.append({"TileID": tile_id, "geometry": box(*tile_bounds(tile_id))})
    return gpd.GeoDataFrame(rows, geometry="geometry", crs=WGS84)


def tile_grid() -> gpd.GeoDataFrame:
    """The global tile grid as a GeoDataFrame with a `TileID` column (EPSG:4326)."""
    return _grid().copy()


def ensure_wgs84(roi: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Return `roi` in EPSG:4326; a missing CRS is assumed to be WGS84."""
    if roi.crs is None:
        log.warning("Region of interest has no CRS; assuming EPSG:4326")
        return roi.set_crs(WGS84)
    if not CRS.from_user_input(roi.crs).equals(WGS84):
        log.warning("Region of interest is in %s; reprojecting to EPSG:4326", roi.crs)
        return roi.to_crs(WGS84)
    return roi


def intersecting_tiles(roi: Union[gpd.GeoDataFrame, gpd.GeoSeries]) -> List[str]:
    """
    Sorted, unique ids of the cells whose area overlaps any polygon of `roi`.
    Cells that only share an edge or corner with the region are left out.
    """
    if isinstance(roi, gpd.GeoSeries):
        roi = gpd.GeoDataFrame(geometry=roi)
    roi = ensure_wgs84(roi)
    grid = _grid()

    found = set()
    for geom in roi.geometry:
        if geom is None or geom.is_empty:
            continue
        candidates = grid.iloc[grid.sindex.query(geom, predicate="intersects")]
        hits = candidates[~candidates.touches(geom)]
        found.update(hits["TileID"])
    return sorted(found)


def expected_tile_prefixes(
                            product: Union[str, Product],
                            value: DateLike,
                            tile_ids: Iterable[str],
                        ) -> List[str]:
    """
    Granule name prefixes, one per tile, for a product/date:
        VNP46A2.A2021276.h08v05.
    The collection version and processing timestamp that follow are only
    known from the archive listing.
    """
    product = Product.from_id(product)
    year, day = archive_period(value, product)
    return [f"{product.value}.A{year}{day}.{t}." for t in sorted(set(tile_ids))]
