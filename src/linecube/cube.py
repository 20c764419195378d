"""
Data holders for spectral-line cubes.

A VolumetricCube stores the samples of a position-position-velocity
cube together with its axis metadata. A Slice2D is the renderable 2D
grid extracted from it, either a single velocity plane or the
velocity-integrated (moment-0) map.
"""

import numpy as np
from astropy.wcs import WCS

from linecube.utils import nan_to_zero, normalise_bounds, num_to_nan

RAD_TO_DEG = 180.0 / np.pi
RAD_TO_ARCSEC = RAD_TO_DEG * 3600.0
ARCSEC_TO_RAD = 1.0 / RAD_TO_ARCSEC

AXES = ("x", "y", "v")


class InvalidCubeError(ValueError):
    """Raised when a cube is malformed or empty."""


class VolumetricCube:
    """
    A read-only spectral-line cube. Samples are indexed
    [axis1][axis2][axis3], i.e. [x][y][v] with x and y the spatial
    offsets (radians) and v the spectral axis (km/s).

    The bound pairs give the position of the first and last channel of
    each axis and may be inverted (start > end).
    """

    def __init__(
            self,
            data: np.ndarray,
            x_bounds: tuple[float, float],
            y_bounds: tuple[float, float],
            v_bounds: tuple[float, float],
            channel_width: float = None,
            beam: tuple[float, float, float] = None,
            flux_unit: str = "K",
            epoch: float = 2000.0,
            reference_position: tuple[float, float] = (0.0, 0.0),
            projection: str = "TAN",
            source_name: str = "",
            line: str = "",
            blanking: float = None,
            reduced: bool = False
    ) -> None:
        """
        Initialise the cube.

        Args:
            data (np.ndarray): the 3D sample array of shape
                (axis1, axis2, axis3).
            x_bounds (tuple[float, float]): (start, end) offsets of the
                first axis in radians.
            y_bounds (tuple[float, float]): (start, end) offsets of the
                second axis in radians.
            v_bounds (tuple[float, float]): (start, end) velocities of
                the spectral axis in km/s.
            channel_width (float, optional): the signed spectral
                resolution. If None, derived from the velocity bounds.
                Defaults to None.
            beam (tuple[float, float, float], optional): beam major
                axis, minor axis and position angle, all in radians.
                Defaults to None (no beam).
            flux_unit (str, optional): label of the flux unit.
                Defaults to "K".
            epoch (float, optional): the reference epoch of the
                coordinates. Defaults to 2000.0.
            reference_position (tuple[float, float], optional): the
                (ra, dec) of the zero offset in radians. Defaults to
                (0.0, 0.0).
            projection (str, optional): the sky projection code.
                Defaults to "TAN".
            source_name (str, optional): the source name. Defaults to
                "".
            line (str, optional): the line name. Defaults to "".
            blanking (float, optional): the value of blanked samples,
                which are stored as nan. Defaults to None.
            reduced (bool, optional): whether the cube was resampled to
                a lower panel resolution. Defaults to False.

        Raises:
            InvalidCubeError: if the data are not a non-empty 3D array
                or the bounds are malformed.
        """
        try:
            data = np.array(data, dtype=float)
        except (TypeError, ValueError) as exc:
            raise InvalidCubeError(f"Cube samples are not numeric: {exc}")
        if data.ndim != 3:
            raise InvalidCubeError(
                f"Cube data must be 3D, got {data.ndim}D array."
            )
        if 0 in data.shape:
            raise InvalidCubeError(
                f"Cube has a zero-length axis, shape is {data.shape}."
            )
        if blanking is not None:
            data = num_to_nan(data, blanking)
        data.flags.writeable = False
        self._data = data

        self._bounds = {}
        for axis, bounds in zip(AXES, (x_bounds, y_bounds, v_bounds)):
            if bounds is None or len(bounds) != 2:
                raise InvalidCubeError(
                    f"Bounds of axis '{axis}' must be a (start, end) pair."
                )
            start, end = float(bounds[0]), float(bounds[1])
            if not (np.isfinite(start) and np.isfinite(end)):
                raise InvalidCubeError(
                    f"Bounds of axis '{axis}' must be finite."
                )
            self._bounds[axis] = (start, end)

        if channel_width is None:
            channel_width = self.axis_spacing("v")
        self.channel_width = float(channel_width)

        if beam is not None and len(beam) != 3:
            raise InvalidCubeError(
                "beam must be a (major, minor, position_angle) triplet."
            )
        self.beam = None if beam is None else tuple(float(b) for b in beam)
        self.flux_unit = flux_unit.strip()
        self.epoch = float(epoch)
        self.reference_position = tuple(
            float(p) for p in reference_position
        )
        self.projection = projection
        self.source_name = source_name.strip()
        self.line = line.strip()
        self.reduced = reduced
        self._wcs = None

    def __repr__(self) -> str:
        return (
            f"VolumetricCube(shape={self.shape}, "
            f"v_bounds={self._bounds['v']}, flux_unit='{self.flux_unit}')"
        )

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def shape(self) -> tuple[int, int, int]:
        return self._data.shape

    @property
    def axis1_count(self) -> int:
        return self._data.shape[0]

    @property
    def axis2_count(self) -> int:
        return self._data.shape[1]

    @property
    def axis3_count(self) -> int:
        return self._data.shape[2]

    @property
    def x_bounds(self) -> tuple[float, float]:
        return self._bounds["x"]

    @property
    def y_bounds(self) -> tuple[float, float]:
        return self._bounds["y"]

    @property
    def v_bounds(self) -> tuple[float, float]:
        return self._bounds["v"]

    @property
    def spatial_bounds(self) -> tuple[float, float, float, float]:
        """(x_start, x_end, y_start, y_end), in radians."""
        return self.x_bounds + self.y_bounds

    @property
    def beam_major(self) -> float:
        return 0.0 if self.beam is None else self.beam[0]

    @property
    def beam_minor(self) -> float:
        return 0.0 if self.beam is None else self.beam[1]

    @property
    def beam_position_angle(self) -> float:
        return 0.0 if self.beam is None else self.beam[2]

    def bounds(self, axis: str) -> tuple[float, float]:
        """Return the raw (start, end) pair of the given axis."""
        if axis not in self._bounds:
            raise ValueError(
                f"Unknown axis '{axis}', should be one of {AXES}."
            )
        return self._bounds[axis]

    def normalised_bounds(self, axis: str) -> tuple[float, float]:
        """Return the (min, max) pair of the given axis."""
        return normalise_bounds(*self.bounds(axis))

    def axis_count(self, axis: str) -> int:
        return self._data.shape[AXES.index(axis)]

    def axis_spacing(self, axis: str) -> float:
        """
        The signed distance between two consecutive samples of an axis,
        0 for an axis with a single sample.
        """
        start, end = self.bounds(axis)
        count = self.axis_count(axis)
        if count < 2:
            return 0.0
        return (end - start) / (count - 1)

    def plane_velocity(self, plane: int) -> float:
        v0, vf = self.v_bounds
        if self.axis3_count < 2:
            return v0
        return v0 + plane * (vf - v0) / (self.axis3_count - 1)

    def velocities(self) -> np.ndarray:
        """The velocity of every plane, in km/s."""
        v0, vf = self.v_bounds
        return np.linspace(v0, vf, self.axis3_count)

    def plane(self, plane: int) -> np.ndarray:
        """The (axis1, axis2) samples of one plane, blanks read as 0."""
        if plane < 0 or plane >= self.axis3_count:
            raise IndexError(f"Plane {plane} does not exist.")
        return nan_to_zero(self._data[:, :, plane])

    @property
    def wcs(self) -> WCS:
        """
        The celestial WCS of the spatial axes. Pixel (0, 0) is the first
        sample of the cube and the zero offset maps onto the reference
        position.
        """
        if self._wcs is None:
            self._wcs = self._build_wcs()
        return self._wcs

    def _build_wcs(self) -> WCS:
        wcs = WCS(naxis=2)
        projection = (self.projection or "TAN").upper()[:3]
        wcs.wcs.ctype = [f"RA---{projection}", f"DEC--{projection}"]
        wcs.wcs.crval = [p * RAD_TO_DEG for p in self.reference_position]

        cdelt, crpix = [], []
        for axis in ("x", "y"):
            spacing = self.axis_spacing(axis)
            if spacing == 0.0:
                # a single sample along this axis, any increment will do
                spacing = ARCSEC_TO_RAD
            start = self.bounds(axis)[0]
            cdelt.append(spacing * RAD_TO_DEG)
            # FITS pixels are 1-based
            crpix.append(1.0 - start / spacing)
        wcs.wcs.cdelt = cdelt
        wcs.wcs.crpix = crpix
        wcs.wcs.equinox = self.epoch
        return wcs


class Slice2D:
    """
    A renderable 2D grid. grid[row, col] holds the sample at column
    col of axis1 (x) and row row of axis2 (y). The bounds are the
    physical (x_start, x_end, y_start, y_end) the grid was extracted
    from.
    """

    def __init__(
            self,
            grid: np.ndarray,
            bounds: tuple[float, float, float, float],
            contour_levels: tuple[float, ...] = None,
            plane: int = None,
            integrated: bool = False,
            flux_unit: str = ""
    ) -> None:
        self.grid = np.asarray(grid, dtype=float)
        self.grid.flags.writeable = False
        self.bounds = tuple(float(b) for b in bounds)
        self.contour_levels = (
            None if contour_levels is None else tuple(contour_levels)
        )
        self.plane = plane
        self.integrated = integrated
        self.flux_unit = flux_unit

    def __repr__(self) -> str:
        what = "integrated" if self.integrated else f"plane={self.plane}"
        return f"Slice2D(shape={self.shape}, {what})"

    @property
    def shape(self) -> tuple[int, int]:
        return self.grid.shape

    @property
    def rows(self) -> int:
        return self.grid.shape[0]

    @property
    def cols(self) -> int:
        return self.grid.shape[1]

    def with_contours(self, levels) -> "Slice2D":
        """Return the same grid carrying a new contour level list."""
        return Slice2D(
            self.grid,
            self.bounds,
            contour_levels=None if levels is None else tuple(levels),
            plane=self.plane,
            integrated=self.integrated,
            flux_unit=self.flux_unit,
        )

    def contains(self, physical_x: float, physical_y: float) -> bool:
        """Whether a physical position lies within the grid bounds."""
        x_min, x_max = normalise_bounds(*self.bounds[:2])
        y_min, y_max = normalise_bounds(*self.bounds[2:])
        return (
            x_min <= physical_x <= x_max and y_min <= physical_y <= y_max
        )

    def fractional_pixel(
            self, physical_x: float, physical_y: float
    ) -> tuple[float, float]:
        """
        Return the fractional (column, row) indices of a physical
        position. Positions outside the bounds give indices outside
        [0, cols - 1] x [0, rows - 1].
        """
        x0, xf, y0, yf = self.bounds
        col = 0.0 if xf == x0 else (physical_x - x0) / (xf - x0)
        row = 0.0 if yf == y0 else (physical_y - y0) / (yf - y0)
        return col * (self.cols - 1), row * (self.rows - 1)

    def pixel_at(
            self, physical_x: float, physical_y: float
    ) -> tuple[int, int] | None:
        """
        Return the nearest (column, row) indices of a physical position,
        or None if it lies outside the grid.
        """
        if not self.contains(physical_x, physical_y):
            return None
        col, row = self.fractional_pixel(physical_x, physical_y)
        col = min(max(int(np.floor(col + 0.5)), 0), self.cols - 1)
        row = min(max(int(np.floor(row + 0.5)), 0), self.rows - 1)
        return col, row

    def value_at(self, physical_x: float, physical_y: float) -> float | None:
        pixel = self.pixel_at(physical_x, physical_y)
        if pixel is None:
            return None
        col, row = pixel
        return float(self.grid[row, col])
