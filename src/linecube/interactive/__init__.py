"""
Interactive 3D views and notebook controls.

Optional dependencies per component:
- PlotlyIsoSurfaceView, colormap_to_plotly: plotly
- RangeSliderControl, make_range_controls: ipywidgets

Install them with: pip install linecube[interactive]
"""

import importlib.util

_DEPS = {
    name: importlib.util.find_spec(name) is not None
    for name in ("ipywidgets", "plotly")
}

IS_INTERACTIVE_AVAILABLE = _DEPS["ipywidgets"]
IS_FULL_INTERACTIVE = all(_DEPS.values())

_INSTALL_HINT = "pip install linecube[interactive]"


def _missing_message(what: str, deps: list[str]) -> str:
    return (
        f"{what} requires {', '.join(deps)}. Install with: "
        f"pip install {' '.join(deps)} (or {_INSTALL_HINT})"
    )


def _make_unavailable_class(name: str, deps: list[str]) -> type:
    """A stand-in class raising ImportError when instantiated."""

    def __init__(self, *args, **kwargs):
        raise ImportError(_missing_message(name, deps))

    return type(name, (), {"__init__": __init__})


def _make_unavailable_func(name: str, deps: list[str]):
    def unavailable(*args, **kwargs):
        raise ImportError(_missing_message(f"{name}()", deps))

    unavailable.__name__ = name
    return unavailable


if _DEPS["plotly"]:
    from .volume import PlotlyIsoSurfaceView, colormap_to_plotly
else:
    PlotlyIsoSurfaceView = _make_unavailable_class(
        "PlotlyIsoSurfaceView", ["plotly"]
    )
    colormap_to_plotly = _make_unavailable_func(
        "colormap_to_plotly", ["plotly"]
    )

if _DEPS["ipywidgets"]:
    from .widgets import RangeSliderControl, make_range_controls
else:
    RangeSliderControl = _make_unavailable_class(
        "RangeSliderControl", ["ipywidgets"]
    )
    make_range_controls = _make_unavailable_func(
        "make_range_controls", ["ipywidgets"]
    )


__all__ = [
    "PlotlyIsoSurfaceView",
    "colormap_to_plotly",
    "RangeSliderControl",
    "make_range_controls",
    "IS_INTERACTIVE_AVAILABLE",
    "IS_FULL_INTERACTIVE",
]
