"""Black Marble products, default variables and date labels"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Dict, Optional, Tuple, Union

import pandas as pd

from blackmarble.core.errors import InvalidDateError, UnsupportedProductError
from blackmarble.utils.bm_logger import get_logger

log = get_logger(__name__)

DateLike = Union[str, int, date, datetime, pd.Timestamp]


class Cadence(Enum):
    """Time granularity of a product"""
    DAILY = "daily"
    MONTHLY = "monthly"
    ANNUAL = "annual"


class Product(Enum):
    """The four Black Marble products"""
    VNP46A1 = "VNP46A1"
    VNP46A2 = "VNP46A2"
    VNP46A3 = "VNP46A3"
    VNP46A4 = "VNP46A4"

    @classmethod
    def from_id(cls, product_id: Union[str, "Product"]) -> "Product":
        """Accepts a product id ("VNP46A2") or an alias ("daily-corrected")."""
        if isinstance(product_id, Product):
            return product_id
        key = str(product_id).strip()
        if key.upper() in cls.__members__:
            return cls[key.upper()]
        if key.lower() in _ALIASES:
            return _ALIASES[key.lower()]
        msg = f"Unsupported product_id {product_id!r}. Choose one of {sorted(cls.__members__)}."
        log.error(msg)
        raise UnsupportedProductError(msg)

    @property
    def info(self) -> "ProductInfo":
        return PRODUCTS[self]

    @property
    def cadence(self) -> Cadence:
        return PRODUCTS[self].cadence


@dataclass(frozen=True)
class ProductInfo:
    """Static description of one product"""
    cadence: Cadence
    default_variable: str
    hdf_grid: str
    description: str


PRODUCTS: Dict[Product, ProductInfo] = {
    Product.VNP46A1: ProductInfo(Cadence.DAILY, "DNB_At_Sensor_Radiance_500m",
                                 "VNP_Grid_DNB", "Daily (raw)"),
    Product.VNP46A2: ProductInfo(Cadence.DAILY, "Gap_Filled_DNB_BRDF-Corrected_NTL",
                                 "VNP_Grid_DNB", "Daily (corrected)"),
    Product.VNP46A3: ProductInfo(Cadence.MONTHLY, "NearNadir_Composite_Snow_Free",
                                 "VIIRS_Grid_DNB_2d", "Monthly"),
    Product.VNP46A4: ProductInfo(Cadence.ANNUAL, "NearNadir_Composite_Snow_Free",
                                 "VIIRS_Grid_DNB_2d", "Annual"),
}

_ALIASES: Dict[str, Product] = {
    "daily-raw": Product.VNP46A1,
    "raw-daily": Product.VNP46A1,
    "daily-corrected": Product.VNP46A2,
    "corrected-daily": Product.VNP46A2,
    "monthly": Product.VNP46A3,
    "monthly-composite": Product.VNP46A3,
    "annual": Product.VNP46A4,
    "annual-composite": Product.VNP46A4,
}

# VNP46A2 variables whose quality is described by Mandatory_Quality_Flag
_A2_FLAGGED = {
    "DNB_BRDF-Corrected_NTL",
    "Gap_Filled_DNB_BRDF-Corrected_NTL",
    "Latest_High_Quality_Retrieval",
}


def define_variable(variable: Optional[str], product_id: Union[str, Product]) -> str:
    """Return `variable`, or the product's default scientific variable when it is None."""
    if variable:
        return variable
    return Product.from_id(product_id).info.default_variable


def quality_flag_layer(product: Product, variable: str) -> Optional[str]:
    """Name of the per-pixel quality layer that applies to `variable`, if any."""
    if product is Product.VNP46A2:
        return "Mandatory_Quality_Flag" if variable in _A2_FLAGGED else None
    if product in (Product.VNP46A3, Product.VNP46A4):
        if variable.endswith(("_Num", "_Std", "_Quality")) or variable in ("lat", "lon"):
            return None
        return f"{variable}_Quality"
    return None


_YEAR = re.compile(r"^\d{4}$")
_YEAR_MONTH = re.compile(r"^(\d{4})[-_/](\d{1,2})$")


def parse_date(value: DateLike, product_id: Union[str, Product]) -> date:
    """
    Normalise a user date to the first day of the product's period.
    - daily:   needs a full date
    - monthly: "2021-10" or a full date (day ignored)
    - annual:  2021, "2021" or any longer date (month/day ignored)
    """
    product = Product.from_id(product_id)
    cadence = product.cadence

    if isinstance(value, bool):
        raise InvalidDateError(f"Invalid date {value!r}")

    full: Optional[date] = None
    year_month: Optional[Tuple[int, int]] = None
    year: Optional[int] = None

    if isinstance(value, (datetime, pd.Timestamp)):
        full = value.date()
    elif isinstance(value, date):
        full = value
    elif isinstance(value, int):
        year = value
    else:
        s = str(value).strip()
        if _YEAR.match(s):
            year = int(s)
        elif _YEAR_MONTH.match(s):
            m = _YEAR_MONTH.match(s)
            year_month = (int(m.group(1)), int(m.group(2)))
        else:
            try:
                full = datetime.strptime(s[:10], "%Y-%m-%d").date()
            except ValueError as e:
                raise InvalidDateError(f"Invalid date {value!r} for {product.value}") from e
            if len(s) > 10 and s[10] not in "T ":
                raise InvalidDateError(f"Invalid date {value!r} for {product.value}")

    try:
        if cadence is Cadence.DAILY:
            if full is None:
                raise InvalidDateError(
                    f"{product.value} is a daily product; a full date (YYYY-MM-DD) is required, got {value!r}")
            return full
        if cadence is Cadence.MONTHLY:
            if full is not None:
                return full.replace(day=1)
            if year_month is not None:
                return date(year_month[0], year_month[1], 1)
            raise InvalidDateError(
                f"{product.value} is a monthly product; a year-month (YYYY-MM) is required, got {value!r}")
        if full is not None:
            return date(full.year, 1, 1)
        if year_month is not None:
            return date(year_month[0], 1, 1)
        return date(year, 1, 1)
    except ValueError as e:
        raise InvalidDateError(f"Invalid date {value!r} for {product.value}") from e


def define_raster_name(value: DateLike, product_id: Union[str, Product]) -> str:
    """Canonical label for a date: t2021_10_03 (daily), t2021_10 (monthly), t2021 (annual)."""
    product = Product.from_id(product_id)
    d = parse_date(value, product)
    if product.cadence is Cadence.DAILY:
        return d.strftime("t%Y_%m_%d")
    if product.cadence is Cadence.MONTHLY:
        return d.strftime("t%Y_%m")
    return d.strftime("t%Y")


def archive_period(value: DateLike, product_id: Union[str, Product]) -> Tuple[str, str]:
    """(year, day-of-year) path segments used by the archive for this date."""
    product = Product.from_id(product_id)
    d = parse_date(value, product)
    return f"{d.year:04d}", f"{d.timetuple().tm_yday:03d}"
