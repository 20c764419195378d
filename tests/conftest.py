"""
Pytest configuration and fixtures for linecube tests.

This module provides shared fixtures for testing the linecube package:
synthetic cubes with known sample values and recording render surfaces.
"""

import matplotlib
import numpy as np
import pytest

# use non-interactive backend for tests (prevents plot windows in CI)
matplotlib.use("Agg")

from linecube.controller import SliceSurface  # noqa: E402
from linecube.coordinates import PanelExtent  # noqa: E402
from linecube.cube import ARCSEC_TO_RAD, VolumetricCube  # noqa: E402
from linecube.sync import (  # noqa: E402
    BackendUnavailable,
    IsoSurfaceSurface,
    ProjectionState,
)

ARCSEC = ARCSEC_TO_RAD

# Sgr A*, J2000
SGR_A_RA_DEG = 266.41683
SGR_A_DEC_DEG = -29.00781


def make_samples(shape: tuple[int, int, int]) -> np.ndarray:
    """
    Samples whose value encodes their position:
    data[x, y, v] = x + 10 * y + 100 * v.
    """
    x, y, v = np.meshgrid(
        np.arange(shape[0]),
        np.arange(shape[1]),
        np.arange(shape[2]),
        indexing="ij",
    )
    return (x + 10 * y + 100 * v).astype(float)


@pytest.fixture
def cube_factory():
    """
    Build cubes with the encoded samples of make_samples.

    Returns:
        callable: cube factory taking the VolumetricCube keyword
            arguments, the shape defaulting to (8, 6, 21).
    """

    def factory(shape=(8, 6, 21), **kwargs) -> VolumetricCube:
        params = {
            "x_bounds": (-7 * ARCSEC, 7 * ARCSEC),
            "y_bounds": (-5 * ARCSEC, 5 * ARCSEC),
            "v_bounds": (-10.0, 10.0),
            "beam": (3 * ARCSEC, 2 * ARCSEC, np.deg2rad(30)),
            "flux_unit": "K",
            "reference_position": (
                np.deg2rad(SGR_A_RA_DEG), np.deg2rad(SGR_A_DEC_DEG)
            ),
            "source_name": "SgrA",
            "line": "CO(2-1)",
        }
        params.update(kwargs)
        data = params.pop("data", None)
        if data is None:
            data = make_samples(shape)
        return VolumetricCube(data, **params)

    return factory


@pytest.fixture
def line_cube(cube_factory):
    """
    Cube of shape (8, 6, 21): 2 arcsec spatial spacing, velocities from
    -10 to 10 km/s by 1 km/s.
    """
    return cube_factory()


class RecordingSurface(SliceSurface):
    """A SliceSurface keeping track of what it was asked to draw."""

    def __init__(self, extent: PanelExtent = None, fail_renders: int = 0):
        self.extent = extent or PanelExtent(0, 160, 0, 120)
        self.fail_renders = fail_renders
        self.renders = []
        self.beams = []
        self.bounds = None
        self.closed = False

    def render(self, grid, bounds, contour_levels=None):
        if self.fail_renders:
            self.fail_renders -= 1
            raise BackendUnavailable("surface not realised yet")
        self.renders.append((grid, bounds, contour_levels))

    def layer_extent(self):
        return self.extent

    def view_bounds(self):
        return self.bounds

    def set_view_bounds(self, bounds):
        self.bounds = tuple(bounds)

    def draw_beam(self, xs, ys):
        self.beams.append((xs, ys))

    def close(self):
        self.closed = True


class RecordingIsoView(IsoSurfaceSurface):
    """An in-memory IsoSurfaceSurface."""

    def __init__(self, ready: bool = True):
        self.ready = ready
        self.projection = ProjectionState()
        self.listeners = []
        self.samples = None
        self.axis_ranges = None
        self.resets = 0

    def get_projection(self):
        return self.projection

    def set_projection(self, state):
        if not self.ready:
            raise BackendUnavailable("no scene yet")
        self.projection = state

    def reset_projection(self):
        self.resets += 1
        self.projection = ProjectionState()

    def add_frame_listener(self, callback):
        self.listeners.append(callback)

    def set_data(self, x, y, z, value):
        self.samples = (x, y, z, value)

    def set_axis_ranges(self, ranges):
        self.axis_ranges = ranges

    def complete_frame(self):
        for callback in self.listeners:
            callback()


@pytest.fixture
def recording_surface():
    return RecordingSurface()


@pytest.fixture
def surface_factory():
    return RecordingSurface


@pytest.fixture
def iso_view_factory():
    return RecordingIsoView


def pytest_configure(config):
    """
    Pytest hook for configuration.

    This adds custom markers and configures the test environment.
    """
    config.addinivalue_line("markers", "unit: fast, isolated unit tests")
    config.addinivalue_line(
        "markers", "interactive: tests needing plotly or ipywidgets"
    )
