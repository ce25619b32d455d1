from datetime import date

import pandas as pd
import pytest

from blackmarble.core.errors import InvalidDateError, UnsupportedProductError
from blackmarble.core.products import (
    Cadence,
    Product,
    archive_period,
    define_raster_name,
    define_variable,
    parse_date,
    quality_flag_layer,
)


def test_default_variables():
    assert define_variable(None, "VNP46A1") == "DNB_At_Sensor_Radiance_500m"
    assert define_variable(None, "VNP46A2") == "Gap_Filled_DNB_BRDF-Corrected_NTL"
    assert define_variable(None, "VNP46A3") == "NearNadir_Composite_Snow_Free"
    assert define_variable(None, "VNP46A4") == "NearNadir_Composite_Snow_Free"


def test_explicit_variable_wins():
    assert define_variable("DNB_Lunar_Irradiance", "VNP46A2") == "DNB_Lunar_Irradiance"


def test_unknown_product_without_variable():
    with pytest.raises(UnsupportedProductError):
        define_variable(None, "VNP99")


def test_aliases():
    assert Product.from_id("daily-corrected") is Product.VNP46A2
    assert Product.from_id("vnp46a3") is Product.VNP46A3
    assert Product.from_id("annual").cadence is Cadence.ANNUAL


@pytest.mark.parametrize("product, value, label", [
    ("VNP46A2", "2021-10-03", "t2021_10_03"),
    ("VNP46A1", date(2021, 1, 5), "t2021_01_05"),
    ("VNP46A3", "2021-10", "t2021_10"),
    ("VNP46A3", "2021-10-17", "t2021_10"),
    ("VNP46A4", 2021, "t2021"),
    ("VNP46A4", "2021-10-01", "t2021"),
    ("VNP46A4", pd.Timestamp("2019-06-30"), "t2019"),
])
def test_raster_names(product, value, label):
    assert define_raster_name(value, product) == label


@pytest.mark.parametrize("product, value", [
    ("VNP46A2", "2021-10"),
    ("VNP46A2", 2021),
    ("VNP46A2", "2021-13-01"),
    ("VNP46A3", "2021"),
    ("VNP46A3", "2021-13"),
    ("VNP46A4", "twenty-one"),
    ("VNP46A1", "2021-10-03xyz"),
])
def test_invalid_dates(product, value):
    with pytest.raises(InvalidDateError):
        parse_date(value, product)


def test_archive_period():
    assert archive_period("2021-10-03", "VNP46A2") == ("2021", "276")
    assert archive_period("2021-03", "VNP46A3") == ("2021", "060")
    assert archive_period(2020, "VNP46A4") == ("2020", "001")


def test_quality_flag_layers():
    assert quality_flag_layer(Product.VNP46A1, "DNB_At_Sensor_Radiance_500m") is None
    assert quality_flag_layer(Product.VNP46A2, "Gap_Filled_DNB_BRDF-Corrected_NTL") == "Mandatory_Quality_Flag"
    assert quality_flag_layer(Product.VNP46A2, "DNB_Lunar_Irradiance") is None
    assert quality_flag_layer(Product.VNP46A3, "NearNadir_Composite_Snow_Free") == \
        "NearNadir_Composite_Snow_Free_Quality"
    assert quality_flag_layer(Product.VNP46A4, "NearNadir_Composite_Snow_Free_Num") is None
