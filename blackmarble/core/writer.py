"""Per-date output files: naming, skip-if-exists and post-write checks"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import pandas as pd

from blackmarble.core.errors import WriteVerificationError
from blackmarble.core.products import Product
from blackmarble.core.raster import Raster, write_raster

RASTER_EXT = "tif"
TABLE_EXT = "csv"


def output_path(
                file_dir: Optional[Union[str, Path]],
                file_prefix: Optional[str],
                product: Union[str, Product],
                label: str,
                ext: str,
                ) -> Path:
    """<file_dir>/<prefix><product>_<label>.<ext>; the current directory when file_dir is None."""
    product = Product.from_id(product)
    name = f"{file_prefix or ''}{product.value}_{label}.{ext}"
    return Path(file_dir or ".") / name


def _verify(path: Path) -> Path:
    if not path.exists():
        raise WriteVerificationError(f"File was not created: {path}")
    return path


def save_raster(raster: Raster, path: Union[str, Path]) -> Path:
    """Write a GeoTIFF and make sure it landed on disk."""
    path = Path(path)
    write_raster(raster, path)
    return _verify(path)


def save_table(table: pd.DataFrame, path: Union[str, Path]) -> Path:
    """Write an extraction table as CSV and make sure it landed on disk."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(path, index=False)
    return _verify(path)
