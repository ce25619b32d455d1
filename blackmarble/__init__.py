"""NASA Black Marble nighttime lights for regions of interest"""

from blackmarble.core.errors import (
    BlackMarbleError,
    EmptyIntersectionError,
    IncompleteTileCoverageError,
    InsufficientDataError,
    InvalidDateError,
    NoDataError,
    TileDecodeError,
    TileListingError,
    UnsupportedProductError,
    WriteVerificationError,
)
from blackmarble.core.products import Product, define_raster_name, define_variable
from blackmarble.core.raster import Raster, read_raster, write_raster
from blackmarble.core.report import DateResult, RunReport
from blackmarble.core.zonal import polygon_band_stat
from blackmarble.data_api.api_blackmarble import BlackMarbleAPI, bm_extract, bm_raster
from blackmarble.data_api.support_functions.support_functions import product_dates
from blackmarble.utils.config import Config, load_config

__version__ = "0.1.0"
