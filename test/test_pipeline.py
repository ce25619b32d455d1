import logging

import numpy as np
import pytest

from blackmarble import BlackMarbleAPI, bm_raster
from blackmarble.core.errors import InsufficientDataError, NoDataError, UnsupportedProductError
from blackmarble.core.report import ERROR, OK, SKIPPED
from blackmarble.utils.bm_logger import set_level

LABEL = "t2021_10_03"


def _api(config, session):
    return BlackMarbleAPI("secret-token", config=config, session=session)


def test_daily_raster_two_tiles(config, session, archive, roi):
    archive.add_day("VNP46A2", "2021", "276", {"h17v08": 10.0, "h18v08": 20.0})
    api = _api(config, session)

    r = api.raster(roi, "daily-corrected", "2021-10-03", quiet=True)

    assert r.count == 1
    assert r.band_names == [LABEL]
    values = r.band(0)[np.isfinite(r.band(0))]
    assert set(np.unique(values)) == {10.0, 20.0}
    assert api.report.succeeded == [LABEL]


def test_daily_extract_mean(config, session, archive, roi):
    archive.add_day("VNP46A2", "2021", "276", {"h17v08": 10.0, "h18v08": 20.0})
    api = _api(config, session)

    table = api.extract(roi, "daily-corrected", "2021-10-03", aggregation_fun=["mean"],
                        add_n_pixels=True, quiet=True)

    assert len(table) == 1
    row = table.iloc[0]
    assert row["name"] == "straddle"
    assert row["date"] == LABEL
    # 4 pixels of 10 and 4 of 20
    assert row["ntl_mean"] == pytest.approx(15.0)
    assert row["n_pixels"] == pytest.approx(8.0)
    assert row["n_non_na_pixels"] == pytest.approx(8.0)


def test_incomplete_tiles_drop_the_date(config, session, archive, roi):
    archive.add_day("VNP46A2", "2021", "276", {"h17v08": 10.0})
    archive.add_day("VNP46A2", "2021", "277", {"h17v08": 11.0, "h18v08": 21.0})
    api = _api(config, session)

    r = api.raster(roi, "VNP46A2", ["2021-10-03", "2021-10-04"], check_all_tiles_exist=True, quiet=True)

    assert r.band_names == ["t2021_10_04"]
    assert api.report.succeeded == ["t2021_10_04"]
    assert "IncompleteTileCoverageError" in api.report.failed[LABEL]
    # nothing of the incomplete day was downloaded
    assert not any("A2021276.h17v08" in url for url in session.calls)


def test_partial_tiles_allowed_when_not_checking(config, session, archive, roi):
    archive.add_day("VNP46A2", "2021", "276", {"h17v08": 10.0})
    api = _api(config, session)

    r = api.raster(roi, "VNP46A2", "2021-10-03", check_all_tiles_exist=False, quiet=True)

    band = r.band(0)
    assert set(np.unique(band[np.isfinite(band)])) == {10.0}


def test_failed_download_drops_date(config, session, archive, roi):
    archive.add_day("VNP46A2", "2021", "276", {"h17v08": 10.0, "h18v08": 20.0}, broken=["h18v08"])
    api = _api(config, session)

    assert api.raster(roi, "VNP46A2", "2021-10-03", quiet=True) is None
    assert api.report.results[0].status == ERROR


def test_interpolation_needs_two_dates_before_download(config, session, roi):
    api = _api(config, session)
    with pytest.raises(InsufficientDataError):
        api.raster(roi, "VNP46A2", ["2021-10-03"], interpol_na=True)
    with pytest.raises(InsufficientDataError):
        api.extract(roi, "VNP46A2", "2021-10-03", interpol_na=True)
    assert session.calls == []


def test_interpolated_extract(config, session, archive, roi):
    archive.add_day("VNP46A2", "2021", "276", {"h17v08": 10.0, "h18v08": 20.0})
    archive.add_day("VNP46A2", "2021", "277", {"h17v08": 30.0, "h18v08": 40.0})
    api = _api(config, session)

    table = api.extract(roi, "VNP46A2", ["2021-10-03", "2021-10-04"], interpol_na=True, quiet=True)

    assert list(table["date"]) == ["t2021_10_03", "t2021_10_04"]
    assert list(table["ntl_mean"]) == pytest.approx([15.0, 35.0])


def test_file_mode_is_idempotent(config, session, archive, roi, tmp_path):
    archive.add_day("VNP46A2", "2021", "276", {"h17v08": 10.0, "h18v08": 20.0})
    out_dir = tmp_path / "out"
    api = _api(config, session)

    assert api.raster(roi, "VNP46A2", "2021-10-03", output_location_type="file",
                      file_dir=out_dir, file_prefix="gha_", quiet=True) is None
    out = out_dir / f"gha_VNP46A2_{LABEL}.tif"
    first = out.read_bytes()
    calls = len(session.calls)

    api.raster(roi, "VNP46A2", "2021-10-03", output_location_type="file",
               file_dir=out_dir, file_prefix="gha_", quiet=True)

    assert len(session.calls) == calls
    assert out.read_bytes() == first
    assert api.report.results[0].status == SKIPPED


def test_extract_file_mode(config, session, archive, roi, tmp_path):
    archive.add_day("VNP46A2", "2021", "276", {"h17v08": 10.0, "h18v08": 20.0})
    api = _api(config, session)

    # interpolation is switched off in file mode; the second day has no listing
    result = api.extract(roi, "VNP46A2", ["2021-10-03", "2021-10-04"], output_location_type="file",
                         file_dir=tmp_path, interpol_na=True, quiet=True)

    assert result is None
    out = tmp_path / f"VNP46A2_{LABEL}.csv"
    assert out.exists()
    assert [r.status for r in api.report.results] == [OK, ERROR]
    assert api.report.results[0].path == out
    assert not (tmp_path / "VNP46A2_t2021_10_04.csv").exists()


def test_all_dates_fail(config, session, roi):
    api = _api(config, session)
    assert api.raster(roi, "VNP46A2", ["2021-10-03", "2021-10-04"], quiet=True) is None
    assert set(api.report.failed) == {"t2021_10_03", "t2021_10_04"}
    assert "TileListingError" in api.report.failed["t2021_10_03"]

    strict = _api(config.with_options(raise_if_empty=True), session)
    with pytest.raises(NoDataError):
        strict.extract(roi, "VNP46A2", "2021-10-03", quiet=True)


def test_top_level_errors_surface(config, session, roi):
    with pytest.raises(UnsupportedProductError):
        _api(config, session).raster(roi, "VNP99", "2021-10-03")
    with pytest.raises(ValueError):
        bm_raster(roi, "VNP46A2", "2021-10-03", bearer="not a token", config=config)


def test_report_frame(config, session, archive, roi):
    archive.add_day("VNP46A2", "2021", "276", {"h17v08": 10.0, "h18v08": 20.0})
    api = _api(config, session)
    api.raster(roi, "VNP46A2", ["2021-10-03", "2021-10-04"], quiet=True)

    frame = api.report.to_frame()
    assert list(frame["date"]) == ["t2021_10_03", "t2021_10_04"]
    assert list(frame["status"]) == [OK, ERROR]


def test_dates_with_different_tiles_share_a_grid(config, session, archive, roi):
    archive.add_day("VNP46A2", "2021", "276", {"h17v08": 10.0})
    archive.add_day("VNP46A2", "2021", "277", {"h17v08": 11.0, "h18v08": 21.0})
    api = _api(config, session)

    r = api.raster(roi, "VNP46A2", ["2021-10-03", "2021-10-04"], check_all_tiles_exist=False, quiet=True)

    assert r.band_names == ["t2021_10_03", "t2021_10_04"]
    assert api.report.succeeded == ["t2021_10_03", "t2021_10_04"]
    first, second = r.band(0), r.band(1)
    # the missing eastern tile is NaN on the shared grid
    assert set(np.unique(first[np.isfinite(first)])) == {10.0}
    assert np.isnan(first).any()
    assert set(np.unique(second[np.isfinite(second)])) == {11.0, 21.0}
    assert np.isfinite(second).sum() > np.isfinite(first).sum()


def test_corrupt_tile_drops_only_its_date(config, session, archive, roi):
    archive.add_day("VNP46A2", "2021", "276", {"h17v08": 10.0, "h18v08": 20.0}, corrupt=["h18v08"])
    archive.add_day("VNP46A2", "2021", "277", {"h17v08": 11.0, "h18v08": 21.0})
    api = _api(config, session)

    r = api.raster(roi, "VNP46A2", ["2021-10-03", "2021-10-04"], quiet=True)

    assert r.band_names == ["t2021_10_04"]
    assert "TileDecodeError" in api.report.failed[LABEL]
    band = r.band(0)
    assert set(np.unique(band[np.isfinite(band)])) == {11.0, 21.0}


def test_config_log_level_applied(config, session):
    base = logging.getLogger("blackmarble")
    try:
        _api(config.with_options(log_level="WARNING"), session)
        assert base.level == logging.WARNING
        assert all(h.level == logging.WARNING for h in base.handlers)
    finally:
        set_level("INFO")
