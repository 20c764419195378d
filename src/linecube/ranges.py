"""
Per-axis (min, max) selections of the 3D views, kept independently of
the cube currently displayed so that they survive a cube replacement.
"""

from abc import ABC, abstractmethod

from linecube.utils import normalise_bounds

AXES = ("x", "y", "v")


class RangeControl(ABC):
    """A user control selecting a (min, max) window on one axis."""

    @abstractmethod
    def get_min_max(self) -> tuple[float, float]:
        pass

    @abstractmethod
    def set_min_max(self, minimum: float, maximum: float) -> None:
        pass


def _as_axis_dict(values) -> dict:
    if values is None:
        return {axis: None for axis in AXES}
    if isinstance(values, dict):
        return {axis: values.get(axis) for axis in AXES}
    values = tuple(values)
    if len(values) != len(AXES):
        raise ValueError(
            f"Expected one (min, max) pair per axis {AXES}, "
            f"got {len(values)}."
        )
    return dict(zip(AXES, values))


def _as_range(pair) -> tuple[float, float] | None:
    if pair is None:
        return None
    return normalise_bounds(float(pair[0]), float(pair[1]))


class AxisRangeState:
    """
    The selected sub-range of each axis. A range may lie outside the
    bounds of the current cube; it is only reconciled with the cube by
    an explicit clamp_to call.
    """

    def __init__(self, controls: dict = None) -> None:
        self._ranges = {axis: None for axis in AXES}
        self._controls = {axis: None for axis in AXES}
        for axis, control in (controls or {}).items():
            self.attach(axis, control)

    def __repr__(self) -> str:
        return f"AxisRangeState({self._ranges})"

    @staticmethod
    def _check_axis(axis: str) -> None:
        if axis not in AXES:
            raise ValueError(f"Unknown axis '{axis}', should be in {AXES}.")

    def attach(self, axis: str, control: RangeControl | None) -> None:
        """Bind a range control to an axis (None to unbind)."""
        self._check_axis(axis)
        self._controls[axis] = control

    def control(self, axis: str) -> RangeControl | None:
        self._check_axis(axis)
        return self._controls[axis]

    def get_range(self, axis: str) -> tuple[float, float] | None:
        self._check_axis(axis)
        return self._ranges[axis]

    def set_range(
            self, axis: str, minimum: float, maximum: float
    ) -> tuple[float, float]:
        """Store a range and forward it to the attached control."""
        self._check_axis(axis)
        self._ranges[axis] = _as_range((minimum, maximum))
        self._push(axis)
        return self._ranges[axis]

    def _push(self, axis: str) -> None:
        control = self._controls[axis]
        if control is not None and self._ranges[axis] is not None:
            control.set_min_max(*self._ranges[axis])

    def capture(self) -> tuple:
        """
        Read the current ranges, from the attached controls when there
        are any.

        Returns:
            tuple: one (min, max) pair, or None if unset, per axis.
        """
        for axis in AXES:
            control = self._controls[axis]
            if control is not None:
                self._ranges[axis] = _as_range(control.get_min_max())
        return tuple(self._ranges[axis] for axis in AXES)

    def restore(self, ranges) -> None:
        """
        Re-apply previously captured ranges, as they are, even if they
        lie outside the bounds of the current cube. Axes missing from a
        dict are left unchanged.
        """
        if isinstance(ranges, dict):
            ranges = {
                axis: pair for axis, pair in ranges.items() if axis in AXES
            }
        else:
            ranges = _as_axis_dict(ranges)
        for axis, pair in ranges.items():
            self._ranges[axis] = _as_range(pair)
            self._push(axis)

    def clamp_to(self, bounds) -> tuple:
        """
        Intersect every range with the given cube bounds. Unset ranges
        and ranges disjoint from the bounds are reset to the full
        bounds.

        Args:
            bounds: one (start, end) pair per axis, as a dict keyed by
                axis or a sequence, possibly inverted.

        Returns:
            tuple: the clamped ranges.
        """
        for axis, pair in _as_axis_dict(bounds).items():
            if pair is None:
                continue
            low, high = _as_range(pair)
            current = self._ranges[axis]
            if (
                    current is None
                    or current[1] < low
                    or current[0] > high
            ):
                self._ranges[axis] = (low, high)
            else:
                self._ranges[axis] = (
                    max(current[0], low), min(current[1], high)
                )
            self._push(axis)
        return tuple(self._ranges[axis] for axis in AXES)

    def as_dict(self) -> dict:
        return {
            axis: None if pair is None else list(pair)
            for axis, pair in self._ranges.items()
        }
