"""Shared fixtures: synthetic Black Marble tiles and an in-process archive"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Dict, List, Optional, Union

import geopandas as gpd
import h5py
import numpy as np
import pytest
import requests
from shapely.geometry import box

from blackmarble.core.products import Product
from blackmarble.utils.config import Config

ARCHIVE = "https://archive.test/allData"

# Test tiles are 20 x 20 pixels of 0.5 degrees
TILE_SHAPE = (20, 20)


def write_tile(
                path: Union[str, Path],
                product: str = "VNP46A2",
                values: Optional[np.ndarray] = None,
                variable: Optional[str] = None,
                qf: Optional[np.ndarray] = None,
                qf_name: Optional[str] = None,
                attrs: Optional[Dict] = None,
                fill: float = 10.0,
                ) -> Path:
    """Write an HDF5 file laid out like a Black Marble granule."""
    product = Product.from_id(product)
    variable = variable or product.info.default_variable
    if values is None:
        values = np.full(TILE_SHAPE, fill, dtype=np.float32)
    with h5py.File(path, "w") as f:
        fields = f.create_group(f"HDFEOS/GRIDS/{product.info.hdf_grid}/Data Fields")
        ds = fields.create_dataset(variable, data=values)
        for k, v in (attrs or {}).items():
            ds.attrs[k] = v
        if qf is not None:
            fields.create_dataset(qf_name or "Mandatory_Quality_Flag", data=qf)
    return Path(path)


def granule_name(product: str, year: str, day: str, tile_id: str) -> str:
    return f"{product}.A{year}{day}.{tile_id}.001.2021283021458.h5"


class FakeResponse:
    """Just enough of requests.Response for the archive client"""
    def __init__(self, status_code: int = 200, content: bytes = b""):
        self.status_code = status_code
        self.content = content
        self.headers = {"Content-Length": str(len(content))}

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def iter_content(self, chunk_size: int = 1024):
        buf = io.BytesIO(self.content)
        while True:
            chunk = buf.read(chunk_size)
            if not chunk:
                break
            yield chunk

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *_args):
        self.close()
        return False


class FakeSession:
    """Serves registered URLs; anything else is a 404. Records every request."""
    def __init__(self):
        self.routes: Dict[str, Union[bytes, Exception]] = {}
        self.calls: List[str] = []
        self.headers: List[Dict] = []

    def add(self, url: str, payload: Union[bytes, Exception]) -> None:
        self.routes[url] = payload

    def get(self, url, headers=None, timeout=None, stream=False, **_kwargs):
        self.calls.append(url)
        self.headers.append(dict(headers or {}))
        payload = self.routes.get(url)
        if payload is None:
            return FakeResponse(404, b"not found")
        if isinstance(payload, Exception):
            raise payload
        return FakeResponse(200, payload)


class FakeArchive:
    """Builds listings and granules for the fake session"""
    def __init__(self, session: FakeSession, tmp_dir: Path, config: Config):
        self.session = session
        self.tmp_dir = tmp_dir
        self.config = config

    def add_day(self, product: str, year: str, day: str, tiles: Dict[str, float],
                broken: Optional[List[str]] = None, corrupt: Optional[List[str]] = None,
                **tile_kwargs) -> List[str]:
        """
        Register a listing for one day and a granule per tile (value = constant fill).
        `broken` tiles fail to download; `corrupt` tiles download as non-HDF5 bytes.
        """
        names = []
        for tile_id, value in tiles.items():
            name = granule_name(product, year, day, tile_id)
            names.append(name)
            url = self.config.file_url(product, year, day, name)
            if broken and tile_id in broken:
                self.session.add(url, requests.ConnectionError("connection reset"))
                continue
            if corrupt and tile_id in corrupt:
                self.session.add(url, b"<html>maintenance</html>")
                continue
            src = write_tile(self.tmp_dir / name, product, fill=value, **tile_kwargs)
            self.session.add(url, src.read_bytes())
        listing = "name,last_modified,size\n" + "".join(f"{n},2021-10-10 02:14,1000\n" for n in names)
        self.session.add(self.config.listing_url(product, year, day), listing.encode("utf-8"))
        return names


@pytest.fixture
def config() -> Config:
    return Config(archive_url=ARCHIVE, collection="5200")


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def archive(session, tmp_path, config) -> FakeArchive:
    src = tmp_path / "granules"
    src.mkdir()
    return FakeArchive(session, src, config)


@pytest.fixture
def roi() -> gpd.GeoDataFrame:
    """Two-by-one degree box straddling tiles h17v08 and h18v08 (8 pixels)."""
    return gpd.GeoDataFrame({"name": ["straddle"]}, geometry=[box(-1.0, 1.0, 1.0, 2.0)], crs="EPSG:4326")
