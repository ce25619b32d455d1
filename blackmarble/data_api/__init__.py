"""
Black Marble Data Access
=======================================================

* Retrieves NASA Black Marble (VIIRS DNB) nighttime-lights tiles from the
LAADS DAAC archive, mosaics them over a region of interest and optionally
aggregates them into zonal statistics per polygon and date.
* Dates are processed one after another; a date whose tiles are missing,
unreadable or unreachable is dropped and recorded in the run report while
the remaining dates go on.

* Notes
- Downloads need a NASA Earthdata bearer token.
- Regions of interest are GeoDataFrames in EPSG:4326 (others are reprojected).

* Products
------
    1) VNP46A1 - daily, at-sensor radiance
    2) VNP46A2 - daily, BRDF-corrected / gap-filled
    3) VNP46A3 - monthly composite
    4) VNP46A4 - annual composite
"""
