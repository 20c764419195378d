"""ipywidgets adapters for the axis range controls."""

import ipywidgets as widgets

from linecube.controller import RangeChange
from linecube.cube import VolumetricCube
from linecube.ranges import RangeControl


def _span(minimum: float, maximum: float) -> tuple[float, float]:
    if minimum > maximum:
        minimum, maximum = maximum, minimum
    if maximum == minimum:
        maximum = minimum + 1.0
    return float(minimum), float(maximum)


class RangeSliderControl(RangeControl):
    """
    A FloatRangeSlider selecting the (min, max) window of one axis.

    Args:
        minimum (float): lowest selectable value.
        maximum (float): highest selectable value.
        description (str, optional): the slider label. Defaults to "".
        steps (int, optional): number of slider steps over the full
            range. Defaults to 100.
    """

    def __init__(
            self,
            minimum: float,
            maximum: float,
            description: str = "",
            steps: int = 100
    ) -> None:
        minimum, maximum = _span(minimum, maximum)
        self.slider = widgets.FloatRangeSlider(
            min=minimum,
            max=maximum,
            step=(maximum - minimum) / steps,
            value=(minimum, maximum),
            description=description,
            continuous_update=False,
            readout_format=".3g",
        )
        self._observers = []

    def set_bounds(
            self, minimum: float, maximum: float, steps: int = 100
    ) -> None:
        """Change the selectable interval, e.g. for a new cube."""
        minimum, maximum = _span(minimum, maximum)
        # the slider rejects min > max at every assignment
        if minimum > self.slider.max:
            self.slider.max = maximum
            self.slider.min = minimum
        else:
            self.slider.min = minimum
            self.slider.max = maximum
        self.slider.step = (maximum - minimum) / steps

    def get_min_max(self) -> tuple[float, float]:
        low, high = self.slider.value
        return float(low), float(high)

    def set_min_max(self, minimum: float, maximum: float) -> None:
        # values outside the slider bounds are clipped by the widget
        self.slider.value = (minimum, maximum)

    def link(self, controller, axis: str) -> None:
        """Send a RangeChange to a SliceViewController on every move."""

        def on_change(change: dict) -> None:
            controller.handle(RangeChange(axis, *change["new"]))

        self.slider.observe(on_change, names="value")
        self._observers.append(on_change)

    def unlink(self) -> None:
        for callback in self._observers:
            self.slider.unobserve(callback, names="value")
        self._observers = []


def make_range_controls(cube: VolumetricCube) -> dict:
    """One RangeSliderControl per cube axis, spanning the full bounds."""
    labels = {"x": "x (rad)", "y": "y (rad)", "v": "v (km/s)"}
    return {
        axis: RangeSliderControl(
            *cube.normalised_bounds(axis), description=labels[axis]
        )
        for axis in ("x", "y", "v")
    }
