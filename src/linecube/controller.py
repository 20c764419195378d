"""
The SliceViewController drives a 2D slice view (and optionally linked
3D views) of a VolumetricCube from user events.

Example:
    controller = SliceViewController(cube, MatplotlibSliceSurface())
    controller.start()
    controller.handle(PlaneChange(velocity=3.4))
    readout = controller.handle(CursorMove(120, 80))
"""

import logging
from abc import ABC, abstractmethod

import numpy as np

from linecube.contours import ContourLevelSet, InvalidContourError
from linecube.coordinates import (
    CoordinateTransformPipeline,
    CursorReadout,
    PanelExtent,
)
from linecube.cube import InvalidCubeError, Slice2D, VolumetricCube
from linecube.parameters import check_params, validate_and_fill_params
from linecube.ranges import AxisRangeState
from linecube.slicer import (
    CubeSlicer,
    central_pixel,
    extract_spectrum,
    flatten_for_isosurface,
    isosurface_range,
    plane_for_velocity,
    velocity_step,
)
from linecube.sync import BackendUnavailable, LinkedViewSynchronizer
from linecube.utils import normalise_bounds


class ViewDisposedError(RuntimeError):
    """Raised when an event reaches a disposed controller."""


class SliceSurface(ABC):
    """
    A 2D render surface. It draws a grid over physical bounds and
    reports the device extent of the drawn layer, which the controller
    uses to invert cursor positions.
    """

    @abstractmethod
    def render(
            self,
            grid: np.ndarray,
            bounds: tuple[float, float, float, float],
            contour_levels: tuple[float, ...] = None
    ) -> None:
        pass

    @abstractmethod
    def layer_extent(self) -> PanelExtent:
        pass

    @abstractmethod
    def view_bounds(self) -> tuple[float, float, float, float]:
        pass

    @abstractmethod
    def set_view_bounds(
            self, bounds: tuple[float, float, float, float]
    ) -> None:
        pass

    def draw_beam(self, xs: np.ndarray, ys: np.ndarray) -> None:
        """Draw the beam outline given in physical coordinates."""

    def close(self) -> None:
        pass


# Events. Every event has a kind tag used by SliceViewController.handle.
class PlaneChange:
    """
    Request a velocity, or move the current one by a number of wheel
    steps (one channel each, a thousandth of the range if fine).
    """
    kind = "plane_change"

    def __init__(
            self,
            velocity: float = None,
            steps: int = 0,
            fine: bool = False,
            force: bool = False
    ) -> None:
        self.velocity = velocity
        self.steps = steps
        self.fine = fine
        self.force = force


class IntegrationToggle:
    """Switch to the integrated map, or back. None flips the mode."""
    kind = "integration_toggle"

    def __init__(self, integrated: bool = None) -> None:
        self.integrated = integrated


class Zoom:
    kind = "zoom"

    def __init__(
            self,
            x_range: tuple[float, float] = None,
            y_range: tuple[float, float] = None,
            reset: bool = False
    ) -> None:
        self.x_range = x_range
        self.y_range = y_range
        self.reset = reset


class CursorMove:
    kind = "cursor_move"

    def __init__(self, x: float, y: float) -> None:
        self.x = x
        self.y = y


class ContourEdit:
    """action is "add" (values), "remove" (index) or "clear"."""
    kind = "contour_edit"

    def __init__(
            self,
            action: str,
            values=None,
            index: int = None
    ) -> None:
        self.action = action
        self.values = values
        self.index = index


class RangeChange:
    kind = "range_change"

    def __init__(self, axis: str, minimum: float, maximum: float) -> None:
        self.axis = axis
        self.minimum = minimum
        self.maximum = maximum


class FrameChange:
    kind = "frame_change"

    def __init__(self, frame: str) -> None:
        self.frame = frame


class Reset:
    kind = "reset"


class BeamOverlay:
    """
    The beam ellipse drawn in a corner of the displayed map, in physical
    and device coordinates.
    """

    def __init__(
            self,
            physical: tuple[np.ndarray, np.ndarray],
            device: tuple[np.ndarray, np.ndarray],
            centre: tuple[float, float]
    ) -> None:
        self.physical = physical
        self.device = device
        self.centre = centre

    @staticmethod
    def ellipse(
            major: float,
            minor: float,
            position_angle: float,
            centre: tuple[float, float],
            points: int = 200
    ) -> tuple[np.ndarray, np.ndarray]:
        """
        Outline of an ellipse of the given full axes, rotated by the
        position angle (from +y towards +x).
        """
        angles = np.linspace(0, 2 * np.pi, points)
        half_x = minor * np.sin(angles) / 2
        half_y = major * np.cos(angles) / 2
        rotated = np.arctan2(half_x, half_y) + position_angle
        radius = np.hypot(half_x, half_y)
        return (
            centre[0] + radius * np.sin(rotated),
            centre[1] + radius * np.cos(rotated),
        )

    @staticmethod
    def corner_centre(
            view_bounds: tuple[float, float, float, float],
            major: float,
            position: int
    ) -> tuple[float, float]:
        x_min, x_max = normalise_bounds(*view_bounds[:2])
        y_min, y_max = normalise_bounds(*view_bounds[2:])
        offset = 1.2 * major / 2
        x = x_min + offset if position in (1, 3) else x_max - offset
        y = y_max - offset if position in (1, 2) else y_min + offset
        return x, y


class SliceViewController:
    """
    Orchestrate the slicing, cursor readout, contours, axis ranges and
    3D view linking of one cube view.

    The controller is "uninitialised" until its first slice is built,
    then "ready", and "disposed" once dispose() was called.

    Args:
        cube (VolumetricCube): the cube to display.
        surface (SliceSurface, optional): the 2D render surface.
            Defaults to None (headless).
        iso_views (list, optional): 3D views, the first one is the
            primary, the others are linked to it. Defaults to None.
        params (dict, optional): view parameters, see
            DEFAULT_VIEW_PARAMS. Defaults to None.
        range_controls (dict, optional): RangeControl per axis.
            Defaults to None.
    """

    def __init__(
            self,
            cube: VolumetricCube,
            surface: SliceSurface = None,
            iso_views: list = None,
            params: dict = None,
            range_controls: dict = None
    ) -> None:
        if not isinstance(cube, VolumetricCube):
            raise InvalidCubeError(
                f"Expected a VolumetricCube, got {type(cube).__name__}."
            )
        self.params = check_params(validate_and_fill_params(params or {}))
        self.logger = self._init_logger()

        self.cube = cube
        self.surface = surface
        self.slicer = CubeSlicer()
        self.pipeline = CoordinateTransformPipeline(
            cube,
            frame=self.params["frame"],
            cursor_tolerance=self.params["cursor_tolerance"],
            flux_precision=self.params["flux_precision"],
        )
        self.contours = ContourLevelSet(self.params["contours"])
        self.ranges = AxisRangeState(range_controls)
        self.ranges.restore(self.params["ranges"])
        self._fill_unset_ranges()

        self.integrated = bool(self.params["integrated"])
        if self.integrated and cube.channel_width == 0:
            self.logger.warning(
                "Cube has no channel width, showing single planes."
            )
            self.integrated = False
        velocity = self.params["velocity"]
        if velocity is None:
            velocity = sum(cube.v_bounds) / 2
        self.plane = None
        self.velocity = None
        self._requested_velocity = None
        self._select_velocity(velocity)

        self.iso_views = [v for v in (iso_views or []) if v is not None]
        self.synchronizer = None
        if self.iso_views:
            self.synchronizer = LinkedViewSynchronizer(
                self.iso_views[0],
                self.iso_views[1:],
                linked=self.params["linked"],
            )

        self.slice: Slice2D | None = None
        self.readout = CursorReadout.empty()
        self.spectrum = extract_spectrum(cube, *central_pixel(cube))
        self.beam_overlay: BeamOverlay | None = None
        self.state = "uninitialised"
        self._view_bounds = None
        self._last_cursor = None
        self._render_pending = False

        self._handlers = {
            PlaneChange.kind: self._on_plane_change,
            IntegrationToggle.kind: self._on_integration_toggle,
            Zoom.kind: self._on_zoom,
            CursorMove.kind: self._on_cursor_move,
            ContourEdit.kind: self._on_contour_edit,
            RangeChange.kind: self._on_range_change,
            FrameChange.kind: self._on_frame_change,
            Reset.kind: self._on_reset,
        }

    @staticmethod
    def _init_logger() -> logging.Logger:
        logger = logging.getLogger("linecube")

        # avoid adding a handler each time a controller is created
        if not logger.handlers:
            logger.setLevel(logging.DEBUG)

            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.setFormatter(
                logging.Formatter(fmt="[%(levelname)s] %(message)s")
            )
            logger.addHandler(console_handler)

        return logger

    def _fill_unset_ranges(self) -> None:
        for axis in ("x", "y", "v"):
            if self.ranges.get_range(axis) is None:
                self.ranges.set_range(
                    axis, *self.cube.normalised_bounds(axis)
                )

    @property
    def contour_values(self) -> tuple[float, ...] | None:
        if not len(self.contours):
            return None
        return tuple(self.contours.values())

    def start(self) -> Slice2D:
        """Build and render the first slice, feed the 3D views."""
        if self.state == "disposed":
            raise ViewDisposedError("The view has been disposed.")
        self._feed_iso_views()
        self._recompute()
        self._reset_zoom()
        return self.slice

    def handle(self, event):
        """
        Dispatch an event to its handler.

        Raises:
            ViewDisposedError: if the controller was disposed.
            ValueError: if the event kind is unknown.

        Returns:
            the handler result: the velocity used for a PlaneChange, the
            readout for a CursorMove, the current slice otherwise.
        """
        if self.state == "disposed":
            raise ViewDisposedError(
                f"Cannot handle '{getattr(event, 'kind', event)}', "
                "the view has been disposed."
            )
        kind = getattr(event, "kind", None)
        if kind not in self._handlers:
            raise ValueError(f"Unknown event: {event!r}.")
        if self.state == "uninitialised":
            self.start()
        elif self._render_pending:
            self._render()
        return self._handlers[kind](event)

    def dispose(self) -> None:
        if self.state == "disposed":
            return
        if self.synchronizer is not None:
            self.synchronizer.set_linked(False)
        if self.surface is not None:
            self.surface.close()
        self.state = "disposed"
        self.logger.debug("Slice view disposed.")

    # slice handling
    def _build_slice(self) -> Slice2D:
        if self.integrated:
            return self.slicer.integrate(self.cube, self.contour_values)
        return self.slicer.slice(self.cube, self.plane, self.contour_values)

    def _recompute(self) -> Slice2D:
        self.slice = self._build_slice()
        self.state = "ready"
        self._render()
        return self.slice

    def _render(self) -> None:
        if self.surface is None:
            self._render_pending = False
            return
        try:
            self.surface.render(
                self.slice.grid, self.slice.bounds, self.slice.contour_levels
            )
            self._render_pending = False
        except BackendUnavailable as exc:
            self._render_pending = True
            self.logger.warning(
                f"Render surface not ready, will retry: {exc}"
            )
            return
        self._update_beam()

    def _feed_iso_views(self) -> None:
        if not self.iso_views:
            return
        samples = flatten_for_isosurface(self.cube)
        for view in self.iso_views:
            view.set_data(*samples)
        self._push_iso_ranges()

    def _push_iso_ranges(self) -> None:
        ranges = tuple(
            None if pair is None else isosurface_range(self.cube, axis, pair)
            for axis, pair in zip(("x", "y", "v"), self.ranges.capture())
        )
        for view in self.iso_views:
            try:
                view.set_axis_ranges(ranges)
            except BackendUnavailable as exc:
                self.logger.warning(f"3D view not ready: {exc}")

    # view geometry
    def view_bounds(self) -> tuple[float, float, float, float]:
        """The physical bounds currently displayed."""
        bounds = None
        if self.surface is not None:
            bounds = self.surface.view_bounds()
        if bounds is None:
            bounds = self._view_bounds or self._full_view_bounds()
        return bounds

    def _full_view_bounds(self) -> tuple[float, float, float, float]:
        return (
            self.cube.normalised_bounds("x")
            + self.cube.normalised_bounds("y")
        )

    def layer_extent(self) -> PanelExtent:
        if self.surface is not None:
            return self.surface.layer_extent()
        width, height = self.params["panel_size"]
        # screen convention, rows grow downward
        return PanelExtent(0, width, height, 0)

    def _set_view_bounds(self, bounds) -> None:
        self._view_bounds = tuple(float(b) for b in bounds)
        if self.surface is not None:
            self.surface.set_view_bounds(self._view_bounds)
        self._update_beam()

    def _reset_zoom(self) -> None:
        self._set_view_bounds(self._full_view_bounds())

    def _update_beam(self) -> None:
        position = self.params["beam_position"]
        if self.cube.beam is None or position == 0:
            self.beam_overlay = None
            return
        view_bounds = self.view_bounds()
        extent = self.layer_extent()
        centre = BeamOverlay.corner_centre(
            view_bounds, self.cube.beam_major, position
        )
        xs, ys = BeamOverlay.ellipse(
            *self.cube.beam, centre, int(self.params["beam_points"])
        )
        device = self.pipeline.physical_to_device(
            xs, ys, extent, view_bounds
        )
        self.beam_overlay = BeamOverlay((xs, ys), device, centre)
        if self.surface is not None:
            self.surface.draw_beam(xs, ys)

    def _select_velocity(self, requested: float) -> bool:
        """
        Show the plane closest to a requested velocity. The request is
        kept unsnapped, so that steps smaller than half a channel add
        up, and is only pulled back onto the edge plane when it falls
        outside the spectral range.

        Returns:
            bool: whether the plane changed.
        """
        requested = float(requested)
        plane, self.velocity = plane_for_velocity(self.cube, requested)
        low, high = self.cube.normalised_bounds("v")
        if low <= requested <= high:
            self._requested_velocity = requested
        else:
            self._requested_velocity = self.velocity
        changed = plane != self.plane
        self.plane = plane
        return changed

    # handlers
    def _on_plane_change(self, event: PlaneChange) -> float:
        velocity = (
            self._requested_velocity if event.velocity is None
            else event.velocity
        )
        if event.steps:
            velocity += event.steps * velocity_step(self.cube, event.fine)
        changed = self._select_velocity(velocity)
        if event.force or (changed and not self.integrated):
            self._recompute()
            self.logger.debug(
                f"Plane {self.plane} ({self.velocity:.3f} km/s) displayed."
            )
        return self.velocity

    def _on_integration_toggle(self, event: IntegrationToggle) -> Slice2D:
        integrated = (
            not self.integrated if event.integrated is None
            else bool(event.integrated)
        )
        previous = self.integrated
        self.integrated = integrated
        try:
            self._recompute()
        except InvalidCubeError as exc:
            self.integrated = previous
            self.logger.error(f"Integration impossible: {exc}")
            self._recompute()
        return self.slice

    def _on_zoom(self, event: Zoom) -> tuple[float, float, float, float]:
        if event.reset:
            self._reset_zoom()
        else:
            current = self.view_bounds()
            x_range = current[:2] if event.x_range is None else event.x_range
            y_range = current[2:] if event.y_range is None else event.y_range
            self._set_view_bounds(
                normalise_bounds(*x_range) + normalise_bounds(*y_range)
            )
        return self.view_bounds()

    def _on_cursor_move(self, event: CursorMove) -> CursorReadout:
        self._last_cursor = (event.x, event.y)
        self.readout = self.pipeline.query(
            event.x,
            event.y,
            self.layer_extent(),
            self.slice,
            self.view_bounds(),
        )
        if self.readout.is_empty:
            pixel = central_pixel(self.cube)
        else:
            pixel = self.readout.pixel
        self.spectrum = extract_spectrum(self.cube, *pixel)
        return self.readout

    def _on_contour_edit(self, event: ContourEdit) -> Slice2D:
        if event.action == "add":
            try:
                self.contours.add(event.values)
            except InvalidContourError as exc:
                self.logger.warning(f"Contour levels rejected: {exc}")
                return self.slice
        elif event.action == "remove":
            index = (
                self.contours.selected if event.index is None
                else event.index
            )
            if index is None:
                return self.slice
            try:
                self.contours.remove(index)
            except IndexError as exc:
                self.logger.warning(f"Contour level not removed: {exc}")
                return self.slice
        elif event.action == "clear":
            self.contours.clear()
        else:
            raise ValueError(
                f"Unknown contour action '{event.action}', should be "
                "'add', 'remove' or 'clear'."
            )
        return self._recompute()

    def _on_range_change(self, event: RangeChange) -> tuple[float, float]:
        selected = self.ranges.set_range(
            event.axis, event.minimum, event.maximum
        )
        self._push_iso_ranges()
        return selected

    def _on_frame_change(self, event: FrameChange) -> CursorReadout:
        self.pipeline.set_frame(event.frame)
        if self._last_cursor is not None:
            return self._on_cursor_move(CursorMove(*self._last_cursor))
        return self.readout

    def _on_reset(self, event: Reset) -> Slice2D:
        self._recompute()
        self._reset_zoom()
        for view in self.iso_views:
            view.reset_projection()
        return self.slice

    # configuration
    def replace_cube(self, cube: VolumetricCube) -> Slice2D:
        """
        Display another cube, keeping the axis ranges and the contour
        levels of the current view.
        """
        if self.state == "disposed":
            raise ViewDisposedError("The view has been disposed.")
        if not isinstance(cube, VolumetricCube):
            raise InvalidCubeError(
                f"Expected a VolumetricCube, got {type(cube).__name__}."
            )
        ranges = self.ranges.capture()
        self.cube = cube
        self.pipeline.cube = cube
        self.plane = None
        self._select_velocity(self._requested_velocity)
        if self.integrated and cube.channel_width == 0:
            self.logger.warning(
                "New cube has no channel width, showing single planes."
            )
            self.integrated = False
        self.readout = CursorReadout.empty()
        self.spectrum = extract_spectrum(cube, *central_pixel(cube))
        self.ranges.restore(ranges)
        self._feed_iso_views()
        self._recompute()
        self._reset_zoom()
        self.logger.info(f"Displaying {cube!r}.")
        return self.slice

    def apply_preferences(
            self,
            velocity: float = None,
            integrated: bool = None,
            contours=None,
            ranges=None
    ) -> Slice2D:
        """
        Re-apply a stored configuration and redraw. None leaves a
        setting unchanged.
        """
        if self.state == "disposed":
            raise ViewDisposedError("The view has been disposed.")
        if contours is not None:
            levels = ContourLevelSet(contours)
            levels.select(len(levels) - 1 if len(levels) else None)
            self.contours = levels
        if ranges is not None:
            self.ranges.restore(ranges)
            self._push_iso_ranges()
        if velocity is not None:
            self._select_velocity(velocity)
        if integrated is None:
            return self._recompute()
        return self._on_integration_toggle(IntegrationToggle(integrated))

    def preferences(self) -> dict:
        """The view configuration, in a fixed key order."""
        self.ranges.capture()
        return {
            "velocity": self.velocity,
            "integrated": self.integrated,
            "contours": self.contours.list(),
            "ranges": self.ranges.as_dict(),
            "frame": self.pipeline.frame,
            "title": self.params["title"],
        }
