"""
linecube - A Python package to slice, integrate and explore
spectral-line (position-position-velocity) data cubes.
"""

__version__ = "0.1.0"
__author__ = "Clément Atlan"
__email__ = "c.atlan@outlook.com"
__license__ = "MIT"


import importlib

from .cube import InvalidCubeError, Slice2D, VolumetricCube
from .utils import normalise_bounds, round_half_up

__submodules__ = {
    "cube",
    "utils",
    "slicer",
    "coordinates",
    "contours",
    "ranges",
    "sync",
    "controller",
    "parameters",
    "io",
    "plot",
    "interactive",
}

__class_submodules__ = {
    "CubeSlicer": "slicer",
    "CoordinateTransformPipeline": "coordinates",
    "PanelExtent": "coordinates",
    "CursorReadout": "coordinates",
    "UnsupportedFrameError": "coordinates",
    "ContourLevelSet": "contours",
    "InvalidContourError": "contours",
    "AxisRangeState": "ranges",
    "ProjectionState": "sync",
    "LinkedViewSynchronizer": "sync",
    "BackendUnavailable": "sync",
    "SliceViewController": "controller",
    "ViewDisposedError": "controller",
    "CubeLoader": "io",
    "NpzCubeLoader": "io",
}

__function_submodules__ = {
    "plane_for_velocity": "slicer",
    "flatten_for_isosurface": "slicer",
    "parse_contour_levels": "contours",
    "reference_time": "coordinates",
    "load_parameters": "parameters",
    "update_plot_params": "plot",
}
__all__ = [
    "VolumetricCube", "Slice2D", "InvalidCubeError", "normalise_bounds",
    "round_half_up"
]
__all__ += (
    list(__submodules__)
    + list(__class_submodules__)
    + list(__function_submodules__)
)


def __getattr__(name):
    # Lazy load submodules
    if name in __submodules__:
        return importlib.import_module(f"{__name__}.{name}")

    # Lazy load specific classes
    if name in __class_submodules__:
        submodule = importlib.import_module(
            f"{__name__}.{__class_submodules__[name]}"
        )
        return getattr(submodule, name)

    # Lazy load specific functions
    if name in __function_submodules__:
        submodule = importlib.import_module(
            f"{__name__}.{__function_submodules__[name]}"
        )
        return getattr(submodule, name)

    raise AttributeError(f"module {__name__} has no attribute {name}.")
