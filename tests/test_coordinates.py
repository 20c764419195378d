"""
Tests for the device -> physical -> sky coordinate chain and the cursor
readout formatting.
"""

import logging

import numpy as np
import pytest
from astropy.time import Time

import linecube.coordinates as coordinates
from linecube.coordinates import (
    CoordinateTransformPipeline,
    PanelExtent,
    UnsupportedFrameError,
    epoch_label,
    reference_time,
)
from linecube.cube import ARCSEC_TO_RAD
from linecube.slicer import CubeSlicer

ARCSEC = ARCSEC_TO_RAD


@pytest.fixture
def pipeline(line_cube):
    return CoordinateTransformPipeline(line_cube, frame="grid")


@pytest.fixture
def plane_slice(line_cube):
    return CubeSlicer().slice(line_cube, 10)


# 160 x 120 device pixels, y growing upward
EXTENT = PanelExtent(0, 160, 0, 120)


class TestReferenceTime:
    """Test the date built from a coordinate epoch."""

    def test_j2000(self):
        """Test that epoch 2000 is JD 2451545.0."""
        assert reference_time(2000).jd == pytest.approx(2451545.0)

    def test_integer_year(self):
        """Test that an integer epoch is January 1.5 of that year."""
        expected = Time("1950-01-01T12:00:00", scale="tt").jd
        assert reference_time(1950).jd == pytest.approx(expected)

    def test_fractional_epoch(self):
        """Test the Julian year approximation of fractional epochs."""
        assert reference_time(2000.5).jd == pytest.approx(2451727.625)

    def test_epoch_label(self):
        """Test the equinox labels."""
        assert epoch_label(2000.0) == "J2000"
        assert epoch_label(1950.0) == "1950"


class TestDeviceToPhysical:
    """Test the device to physical mapping."""

    @pytest.mark.parametrize(
        "bounds",
        [(-1.0, 1.0, 2.0, 6.0), (1.0, -1.0, 6.0, 2.0)],
    )
    def test_centre_is_midpoint(self, pipeline, bounds):
        """Test that the panel centre maps onto the middle of the bounds."""
        physical = pipeline.device_to_physical(80, 60, EXTENT, bounds)
        assert physical == (pytest.approx(0.0), pytest.approx(4.0))

    def test_screen_orientation(self, pipeline):
        """Test a panel whose rows grow downward."""
        extent = PanelExtent(0, 100, 50, 0)
        bounds = (0.0, 10.0, 0.0, 5.0)

        # top-left corner of the screen is x min, y max
        assert pipeline.device_to_physical(0, 0, extent, bounds) == (0.0, 5.0)
        assert pipeline.device_to_physical(100, 50, extent, bounds) == (
            10.0, 0.0
        )

    def test_rounding_error_is_clamped(self, pipeline):
        """Test that positions just off the panel clamp to the edge."""
        bounds = (0.0, 1.0, 0.0, 1.0)
        physical = pipeline.device_to_physical(160.4, -0.3, EXTENT, bounds)

        assert physical == (1.0, 0.0)
        assert not np.isnan(physical).any()

    def test_far_off_panel(self, pipeline):
        """Test that positions far off the panel give no position."""
        bounds = (0.0, 1.0, 0.0, 1.0)
        assert pipeline.device_to_physical(200, 60, EXTENT, bounds) is None

    def test_physical_to_device_inverse(self, pipeline):
        """Test that physical_to_device inverts device_to_physical."""
        bounds = (-2.0, 2.0, -1.0, 1.0)
        physical = pipeline.device_to_physical(40, 90, EXTENT, bounds)
        device = pipeline.physical_to_device(*physical, EXTENT, bounds)

        assert device == (pytest.approx(40), pytest.approx(90))


class TestQuery:
    """Test complete cursor queries."""

    def test_grid_readout(self, pipeline, plane_slice):
        """Test the readout of the bottom-left and top-right pixels."""
        readout = pipeline.query(0, 0, EXTENT, plane_slice)

        assert readout.pixel == (0, 0)
        assert readout.flux == 1000.0
        assert readout.position_text == "x: 1  y: 1"
        assert readout.flux_text == "1000.000 K"

        readout = pipeline.query(160, 120, EXTENT, plane_slice)
        assert readout.pixel == (7, 5)
        assert readout.flux == 1057.0
        assert readout.text == "x: 8  y: 6  1057.000 K"

    def test_off_panel_is_empty(self, pipeline, plane_slice):
        """Test that a cursor outside the panel gives an empty readout."""
        readout = pipeline.query(500, 60, EXTENT, plane_slice)

        assert readout.is_empty
        assert readout.text == ""
        assert readout.flux is None
        assert readout.device == (500.0, 60.0)

    def test_outside_data_is_empty(self, pipeline, plane_slice):
        """Test that a zoomed-out view off the data gives no readout."""
        view = (-20 * ARCSEC, 20 * ARCSEC, -5 * ARCSEC, 5 * ARCSEC)
        readout = pipeline.query(0, 60, EXTENT, plane_slice, view)

        assert readout.is_empty

    def test_inverted_x_axis(self, cube_factory):
        """Test that the left of the panel is the x minimum."""
        cube = cube_factory(x_bounds=(7 * ARCSEC, -7 * ARCSEC))
        pipeline = CoordinateTransformPipeline(cube)
        slice2d = CubeSlicer().slice(cube, 0)

        readout = pipeline.query(0, 0, EXTENT, slice2d)
        # column 0 is at x = +7 arcsec, on the right
        assert readout.pixel == (7, 0)
        assert readout.flux == 7.0

    def test_offset_frame(self, line_cube, plane_slice):
        """Test the readout in arcsec offsets."""
        pipeline = CoordinateTransformPipeline(line_cube, frame="offset")
        readout = pipeline.query(0, 120, EXTENT, plane_slice)

        assert readout.sky is None
        assert readout.position_text == 'dx: -7.00"  dy: 5.00"'

    def test_equatorial_frame(self, line_cube, plane_slice):
        """Test the readout at the reference position."""
        pipeline = CoordinateTransformPipeline(line_cube, frame="equatorial")
        readout = pipeline.query(80, 60, EXTENT, plane_slice)

        ra, dec = readout.sky
        assert ra == pytest.approx(266.41683, abs=1e-6)
        assert dec == pytest.approx(-29.00781, abs=1e-6)
        assert readout.position_text.startswith("RA (J2000): 17:45:40.0")
        assert "DEC (J2000): -29:00:28.1" in readout.position_text

    def test_galactic_frame(self, line_cube, plane_slice):
        """Test that Sgr A* lands near the galactic centre."""
        pipeline = CoordinateTransformPipeline(line_cube, frame="galactic")
        readout = pipeline.query(80, 60, EXTENT, plane_slice)

        lon, lat = readout.sky
        assert lon == pytest.approx(359.944, abs=0.01)
        assert lat == pytest.approx(-0.046, abs=0.01)
        assert readout.position_text.startswith("l: 359:56")

    def test_ecliptic_frame(self, line_cube):
        """Test the ecliptic conversion of the equinox direction."""
        pipeline = CoordinateTransformPipeline(line_cube, frame="ecliptic")
        lon, lat = pipeline.convert_frame(0.0, 0.0)

        assert min(lon, 360.0 - lon) == pytest.approx(0.0, abs=0.02)
        assert lat == pytest.approx(0.0, abs=0.02)

    def test_conversion_failure_falls_back(
            self, line_cube, monkeypatch, caplog
    ):
        """Test that a failing conversion returns equatorial values."""

        def broken(*args, **kwargs):
            raise ValueError("no ephemeris")

        monkeypatch.setattr(coordinates, "SkyCoord", broken)
        pipeline = CoordinateTransformPipeline(line_cube, frame="galactic")

        with caplog.at_level(logging.WARNING):
            result = pipeline.convert_frame(10.0, 20.0)

        assert result == (10.0, 20.0)
        assert "no ephemeris" in caplog.text

    def test_unknown_projection(self, cube_factory, plane_slice, caplog):
        """Test that a failed pixel to sky step gives an empty readout."""
        cube = cube_factory(projection="XYZ")
        pipeline = CoordinateTransformPipeline(cube, frame="equatorial")

        with caplog.at_level(logging.WARNING):
            readout = pipeline.query(80, 60, EXTENT, plane_slice)

        assert readout.is_empty
        assert readout.device == (80.0, 60.0)
        assert "No sky position" in caplog.text

    def test_unsupported_frame(self, line_cube, pipeline):
        """Test that unknown frames are rejected."""
        with pytest.raises(UnsupportedFrameError):
            CoordinateTransformPipeline(line_cube, frame="horizontal")
        with pytest.raises(UnsupportedFrameError):
            pipeline.set_frame("supergalactic")


class TestFluxFormatting:
    """Test the flux part of the readout."""

    def test_fixed_precision(self, pipeline):
        assert pipeline.format_flux(1.23456) == "1.235 K"

    def test_integrated_suffix(self, pipeline):
        assert pipeline.format_flux(1.23456, True) == "1.235 K km/s"

    def test_tiny_values(self, pipeline):
        """Test that small non-zero values are not shown as zero."""
        assert pipeline.format_flux(1.5e-5) == "1.5e-05 K"
        assert pipeline.format_flux(0.0) == "0.000 K"
