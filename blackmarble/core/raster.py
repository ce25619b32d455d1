"""In-memory multi-band raster and its GeoTIFF round trip"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple, Union

import numpy as np
import rasterio
from rasterio.transform import Affine
from rasterio.io import MemoryFile


@dataclass
class Raster:
    """
    Band-major pixel stack (bands, rows, cols), float32 with NaN as missing,
    on a north-up grid in EPSG:4326. One band name per date label.
    """
    data: np.ndarray
    transform: Affine
    band_names: List[str] = field(default_factory=list)
    crs: str = "EPSG:4326"

    def __post_init__(self):
        if self.data.ndim == 2:
            self.data = self.data[np.newaxis, ...]
        if self.data.ndim != 3:
            raise ValueError(f"Raster data must be 2D or 3D, got shape {self.data.shape}")
        if not self.band_names:
            self.band_names = [f"band_{i + 1}" for i in range(self.data.shape[0])]
        if len(self.band_names) != self.data.shape[0]:
            raise ValueError(f"{len(self.band_names)} band names for {self.data.shape[0]} bands")

    @property
    def count(self) -> int:
        return self.data.shape[0]

    @property
    def height(self) -> int:
        return self.data.shape[1]

    @property
    def width(self) -> int:
        return self.data.shape[2]

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(left, bottom, right, top)"""
        left, top = self.transform * (0, 0)
        right, bottom = self.transform * (self.width, self.height)
        return min(left, right), min(bottom, top), max(left, right), max(bottom, top)

    @property
    def profile(self) -> dict:
        return {
            "driver": "GTiff",
            "height": self.height,
            "width": self.width,
            "count": self.count,
            "dtype": "float32",
            "crs": self.crs,
            "transform": self.transform,
            "nodata": np.nan,
        }

    def band(self, name_or_index: Union[str, int]) -> np.ndarray:
        """One band as a 2D array, by date label or 0-based position."""
        if isinstance(name_or_index, str):
            return self.data[self.band_names.index(name_or_index)]
        return self.data[name_or_index]

    def open_memfile(self) -> MemoryFile:
        """MemoryFile holding this raster as a GeoTIFF; the caller closes it."""
        memfile = MemoryFile()
        with memfile.open(**self.profile) as dst:
            dst.write(self.data.astype(np.float32, copy=False))
            for i, name in enumerate(self.band_names, start=1):
                dst.set_band_description(i, name)
        return memfile


def write_raster(raster: Raster, path: Union[str, Path]) -> Path:
    """Write a raster as a float32 GeoTIFF with band descriptions set to the band names."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(path, "w", **raster.profile) as dst:
        dst.write(raster.data.astype(np.float32, copy=False))
        for i, name in enumerate(raster.band_names, start=1):
            dst.set_band_description(i, name)
    return path


def read_raster(path: Union[str, Path]) -> Raster:
    """Read a GeoTIFF written by write_raster back into memory."""
    with rasterio.open(path) as src:
        data = src.read().astype(np.float32)
        if src.nodata is not None and not np.isnan(src.nodata):
            data[data == src.nodata] = np.nan
        names = [d or f"band_{i + 1}" for i, d in enumerate(src.descriptions)]
        crs = src.crs.to_string() if src.crs else "EPSG:4326"
        return Raster(data, src.transform, names, crs)
