"""
Cursor coordinate handling: device pixel -> physical offset -> sky
position -> display frame, plus the text readout shown under the map.
"""

import logging

import numpy as np
from astropy import units as u
from astropy.coordinates import (
    FK5,
    Angle,
    BarycentricTrueEcliptic,
    Galactic,
    SkyCoord,
)
from astropy.time import Time

from linecube.cube import RAD_TO_ARCSEC, RAD_TO_DEG, Slice2D, VolumetricCube
from linecube.utils import clamp, is_integer_year, normalise_bounds


logger = logging.getLogger(__name__)

J2000_JD = 2451545.0
DAYS_PER_YEAR = 365.25

FRAMES = ("equatorial", "ecliptic", "galactic", "offset", "grid")
SKY_FRAMES = ("equatorial", "ecliptic", "galactic")


class UnsupportedFrameError(ValueError):
    """Raised for an unknown coordinate frame selector."""


def check_frame(frame: str) -> str:
    """Return the lower-cased frame name, raise if it is unknown."""
    if not isinstance(frame, str) or frame.lower() not in FRAMES:
        raise UnsupportedFrameError(
            f"Unsupported frame '{frame}', should be one of {FRAMES}."
        )
    return frame.lower()


def reference_time(epoch: float) -> Time:
    """
    The date of a coordinate epoch: January 1.5 of the year for an
    integer epoch, J2000 + (epoch - 2000) Julian years otherwise.

    Args:
        epoch (float): the epoch, e.g. 2000 or 1950.

    Returns:
        Time: the reference date, in the TT scale.
    """
    if is_integer_year(epoch):
        return Time(f"{int(epoch):04d}-01-01T12:00:00", scale="tt")
    return Time(
        J2000_JD + (epoch - 2000.0) * DAYS_PER_YEAR, format="jd", scale="tt"
    )


def epoch_label(epoch: float) -> str:
    if epoch >= 2000:
        return f"J{epoch:g}"
    return f"{epoch:g}"


class PanelExtent:
    """
    The device-space extent of the displayed map. left/right map onto
    the low/high end of the horizontal axis and bottom/top onto the
    low/high end of the vertical one, whatever the device orientation
    (screen rows growing downward simply give bottom > top).
    """

    def __init__(
            self,
            left: float,
            right: float,
            bottom: float,
            top: float
    ) -> None:
        self.left = float(left)
        self.right = float(right)
        self.bottom = float(bottom)
        self.top = float(top)

    def __repr__(self) -> str:
        return (
            f"PanelExtent(left={self.left}, right={self.right}, "
            f"bottom={self.bottom}, top={self.top})"
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, PanelExtent):
            return NotImplemented
        return self.as_tuple() == other.as_tuple()

    def as_tuple(self) -> tuple[float, float, float, float]:
        return self.left, self.right, self.bottom, self.top

    @property
    def width(self) -> float:
        return abs(self.right - self.left)

    @property
    def height(self) -> float:
        return abs(self.top - self.bottom)

    def fractions(self, x: float, y: float) -> tuple[float, float]:
        """Unclamped position of a device point, 0 to 1 on each axis."""
        fx = 0.0 if self.right == self.left else (
            (x - self.left) / (self.right - self.left)
        )
        fy = 0.0 if self.top == self.bottom else (
            (y - self.bottom) / (self.top - self.bottom)
        )
        return fx, fy

    def contains(self, x: float, y: float, tolerance: float = 0.0) -> bool:
        x_min, x_max = normalise_bounds(self.left, self.right)
        y_min, y_max = normalise_bounds(self.bottom, self.top)
        return (
            x_min - tolerance <= x <= x_max + tolerance
            and y_min - tolerance <= y <= y_max + tolerance
        )


class CursorReadout:
    """
    The result of a cursor query. An empty readout (cursor off the
    map) carries no position and no flux.
    """

    def __init__(
            self,
            device: tuple[float, float] = None,
            physical: tuple[float, float] = None,
            pixel: tuple[int, int] = None,
            sky: tuple[float, float] = None,
            flux: float = None,
            frame: str = None,
            position_text: str = "",
            flux_text: str = ""
    ) -> None:
        self.device = device
        self.physical = physical
        self.pixel = pixel
        self.sky = sky
        self.flux = flux
        self.frame = frame
        self.position_text = position_text
        self.flux_text = flux_text

    @classmethod
    def empty(cls, device: tuple[float, float] = None) -> "CursorReadout":
        return cls(device=device)

    @property
    def is_empty(self) -> bool:
        return self.physical is None

    @property
    def text(self) -> str:
        if self.is_empty:
            return ""
        return f"{self.position_text}  {self.flux_text}".strip()

    def __repr__(self) -> str:
        if self.is_empty:
            return "CursorReadout(empty)"
        return f"CursorReadout({self.text!r})"


class CoordinateTransformPipeline:
    """
    Convert cursor positions into physical offsets, sky coordinates and
    readout strings for a given cube.

    The device to physical mapping is derived from the extent the render
    surface reports and the physical bounds it currently displays, so
    the mapping follows the zoom level.
    """

    def __init__(
            self,
            cube: VolumetricCube,
            frame: str = "grid",
            cursor_tolerance: float = 0.5,
            flux_precision: int = 3
    ) -> None:
        self.cube = cube
        self.frame = check_frame(frame)
        self.cursor_tolerance = cursor_tolerance
        self.flux_precision = flux_precision

    def set_frame(self, frame: str) -> None:
        self.frame = check_frame(frame)

    def device_to_physical(
            self,
            x: float,
            y: float,
            extent: PanelExtent,
            view_bounds: tuple[float, float, float, float]
    ) -> tuple[float, float] | None:
        """
        Map a device point onto the displayed physical bounds.

        Args:
            x (float): the horizontal device coordinate.
            y (float): the vertical device coordinate.
            extent (PanelExtent): the device extent of the panel.
            view_bounds (tuple[float, float, float, float]): the
                displayed (x_start, x_end, y_start, y_end), possibly
                inverted.

        Returns:
            tuple[float, float] | None: the physical position, or None
                if the point lies off the panel by more than the cursor
                tolerance.
        """
        if not extent.contains(x, y, self.cursor_tolerance):
            return None
        fx, fy = extent.fractions(x, y)
        fx, fy = clamp(fx, 0.0, 1.0), clamp(fy, 0.0, 1.0)
        x_min, x_max = normalise_bounds(*view_bounds[:2])
        y_min, y_max = normalise_bounds(*view_bounds[2:])
        return x_min + (x_max - x_min) * fx, y_min + (y_max - y_min) * fy

    @staticmethod
    def physical_to_device(
            physical_x: float,
            physical_y: float,
            extent: PanelExtent,
            view_bounds: tuple[float, float, float, float]
    ) -> tuple[float, float]:
        """Inverse of device_to_physical, without any clamping."""
        x_min, x_max = normalise_bounds(*view_bounds[:2])
        y_min, y_max = normalise_bounds(*view_bounds[2:])
        fx = 0.0 if x_max == x_min else (physical_x - x_min) / (x_max - x_min)
        fy = 0.0 if y_max == y_min else (physical_y - y_min) / (y_max - y_min)
        return (
            extent.left + fx * (extent.right - extent.left),
            extent.bottom + fy * (extent.top - extent.bottom),
        )

    def physical_to_sky(
            self, physical_x: float, physical_y: float
    ) -> tuple[float, float]:
        """
        Convert a physical offset (radians) into equatorial (ra, dec) in
        degrees, using the cube WCS.
        """
        spacing_x = self.cube.axis_spacing("x")
        spacing_y = self.cube.axis_spacing("y")
        x0, y0 = self.cube.x_bounds[0], self.cube.y_bounds[0]
        wcs = self.cube.wcs
        # the WCS increment is used for degenerate axes
        if spacing_x == 0.0:
            spacing_x = wcs.wcs.cdelt[0] / RAD_TO_DEG
        if spacing_y == 0.0:
            spacing_y = wcs.wcs.cdelt[1] / RAD_TO_DEG
        pixel = np.array(
            [[(physical_x - x0) / spacing_x, (physical_y - y0) / spacing_y]]
        )
        ra, dec = wcs.wcs_pix2world(pixel, 0)[0]
        return float(ra) % 360.0, float(dec)

    def convert_frame(
            self, ra: float, dec: float, frame: str = None
    ) -> tuple[float, float]:
        """
        Convert equatorial coordinates (degrees, at the cube epoch) into
        the given sky frame. Conversion errors are logged and the
        equatorial coordinates are returned unchanged.
        """
        frame = check_frame(frame or self.frame)
        if frame not in ("ecliptic", "galactic"):
            return ra, dec
        try:
            equinox = reference_time(self.cube.epoch)
            coord = SkyCoord(
                ra=ra * u.deg, dec=dec * u.deg, frame=FK5(equinox=equinox)
            )
            if frame == "galactic":
                converted = coord.transform_to(Galactic())
                return float(converted.l.deg), float(converted.b.deg)
            converted = coord.transform_to(
                BarycentricTrueEcliptic(equinox=equinox)
            )
            return float(converted.lon.deg), float(converted.lat.deg)
        except Exception as exc:
            logger.warning(
                f"Conversion to the {frame} frame failed ({exc}), "
                "showing equatorial coordinates."
            )
            return ra, dec

    def format_position(
            self,
            frame: str,
            physical: tuple[float, float],
            pixel: tuple[int, int],
            sky: tuple[float, float] = None
    ) -> str:
        if frame == "grid":
            return f"x: {pixel[0] + 1}  y: {pixel[1] + 1}"
        if frame == "offset":
            dx, dy = (p * RAD_TO_ARCSEC for p in physical)
            return f'dx: {dx:.2f}"  dy: {dy:.2f}"'
        lon, lat = sky
        if frame == "equatorial":
            label = epoch_label(self.cube.epoch)
            ra = Angle(lon, unit=u.deg).to_string(
                unit=u.hourangle, sep=":", precision=3, pad=True
            )
            dec = Angle(lat, unit=u.deg).to_string(
                unit=u.deg, sep=":", precision=2, pad=True, alwayssign=True
            )
            return f"RA ({label}): {ra}  DEC ({label}): {dec}"
        names = ("l", "b") if frame == "galactic" else ("lon", "lat")
        lon_text = Angle(lon, unit=u.deg).to_string(
            unit=u.deg, sep=":", precision=2, pad=True
        )
        lat_text = Angle(lat, unit=u.deg).to_string(
            unit=u.deg, sep=":", precision=2, pad=True, alwayssign=True
        )
        return f"{names[0]}: {lon_text}  {names[1]}: {lat_text}"

    def format_flux(self, flux: float, integrated: bool = False) -> str:
        """
        Format a flux value with the cube unit, values too small for the
        fixed precision are printed in general format.
        """
        text = f"{flux:.{self.flux_precision}f}"
        if flux != 0 and float(text) == 0:
            text = f"{flux:g}"
        text = f"{text} {self.cube.flux_unit}".rstrip()
        if integrated:
            text += " km/s"
        return text

    def query(
            self,
            x: float,
            y: float,
            extent: PanelExtent,
            slice2d: Slice2D,
            view_bounds: tuple[float, float, float, float] = None
    ) -> CursorReadout:
        """
        Run the whole chain for a cursor position.

        Args:
            x (float): the horizontal device coordinate.
            y (float): the vertical device coordinate.
            extent (PanelExtent): the device extent of the panel.
            slice2d (Slice2D): the displayed slice.
            view_bounds (tuple[float, float, float, float], optional):
                the displayed physical bounds. Defaults to the bounds of
                the slice.

        Returns:
            CursorReadout: the readout, empty if the cursor is off the
                panel or off the data.
        """
        device = (float(x), float(y))
        if slice2d is None:
            return CursorReadout.empty(device)
        if view_bounds is None:
            view_bounds = slice2d.bounds
        physical = self.device_to_physical(x, y, extent, view_bounds)
        if physical is None or not slice2d.contains(*physical):
            return CursorReadout.empty(device)

        pixel = slice2d.pixel_at(*physical)
        flux = float(slice2d.grid[pixel[1], pixel[0]])
        sky = None
        if self.frame in SKY_FRAMES:
            try:
                ra, dec = self.physical_to_sky(*physical)
            except Exception as exc:
                logger.warning(f"No sky position for the cursor: {exc}")
                return CursorReadout.empty(device)
            sky = self.convert_frame(ra, dec)

        return CursorReadout(
            device=device,
            physical=physical,
            pixel=pixel,
            sky=sky,
            flux=flux,
            frame=self.frame,
            position_text=self.format_position(
                self.frame, physical, pixel, sky
            ),
            flux_text=self.format_flux(flux, slice2d.integrated),
        )
