"""
Plotly-based 3D iso-surface view of a cube.

PlotlyIsoSurfaceView implements the IsoSurfaceSurface interface, so
that several views can be linked with a LinkedViewSynchronizer. With
use_widget=True the figure is a plotly FigureWidget and every camera
move made with the mouse in a notebook completes a frame.
"""

from typing import Callable

import matplotlib.pyplot as plt
import numpy as np

from linecube.sync import BackendUnavailable, IsoSurfaceSurface, ProjectionState

# Plotly availability checked in __init__.py, but we need the imports
try:
    import plotly.graph_objects as go

    IS_PLOTLY_AVAILABLE = True
except ImportError:
    IS_PLOTLY_AVAILABLE = False
    go = None


class PlotlyImportError(ImportError):
    """Custom exception to handle Plotly import error."""

    def __init__(self, msg: str = None) -> None:
        _msg = (
            "Plotly is not installed. "
            "Install with: pip install linecube[interactive]"
        )
        if msg is not None:
            _msg += "\n" + msg
        super().__init__(_msg)


def colormap_to_plotly(cmap_name: str, n_colors: int = 256) -> list[list]:
    """
    Sample a matplotlib colormap into the colorscale of the iso-surface
    traces.

    Args:
        cmap_name (str): a matplotlib colormap name.
        n_colors (int, optional): number of samples. Defaults to 256.

    Raises:
        ValueError: if matplotlib does not know the colormap.

    Returns:
        list[list]: [position, "rgb(r,g,b)"] pairs, positions from 0 to
            1.
    """
    if cmap_name not in plt.colormaps():
        raise ValueError(f"Unknown matplotlib colormap '{cmap_name}'.")
    positions = np.linspace(0, 1, n_colors)
    rgb = (plt.get_cmap(cmap_name)(positions)[:, :3] * 255).astype(int)
    return [
        [float(p), "rgb({},{},{})".format(*c)]
        for p, c in zip(positions, rgb)
    ]


class PlotlyIsoSurfaceView(IsoSurfaceSurface):
    """
    Iso-surface rendering of the flattened cube samples.

    Args:
        title (str, optional): the figure title. Defaults to None.
        cmap (str, optional): matplotlib colormap name. Defaults to
            "turbo".
        isomin (float, optional): lowest iso-surface level, defaults to
            the mid value of the data.
        isomax (float, optional): highest iso-surface level, defaults to
            the data maximum.
        surface_count (int, optional): number of iso-surfaces. Defaults
            to 3.
        opacity (float, optional): surface opacity. Defaults to 0.6.
        use_widget (bool, optional): build a FigureWidget reporting the
            camera moves. Defaults to False.
        initial_projection (ProjectionState, optional): the projection
            restored by reset_projection. Defaults to ProjectionState().
    """

    def __init__(
            self,
            title: str = None,
            cmap: str = "turbo",
            isomin: float = None,
            isomax: float = None,
            surface_count: int = 3,
            opacity: float = 0.6,
            use_widget: bool = False,
            initial_projection: ProjectionState = None
    ) -> None:
        if not IS_PLOTLY_AVAILABLE:
            raise PlotlyImportError()
        self.colorscale = colormap_to_plotly(cmap)
        self.isomin = isomin
        self.isomax = isomax
        self.surface_count = surface_count
        self.opacity = opacity
        self.initial_projection = initial_projection or ProjectionState()
        self._projection = self.initial_projection
        self._listeners: list[Callable[[], None]] = []
        self._has_data = False

        self.figure = go.FigureWidget() if use_widget else go.Figure()
        self.figure.update_layout(
            title=title,
            scene={
                "xaxis_title": "x",
                "yaxis_title": "y",
                "zaxis_title": "v",
                "aspectmode": "cube",
                "camera": self._projection.to_camera(),
            },
            margin={"l": 0, "r": 0, "t": 30 if title else 0, "b": 0},
        )
        if use_widget:
            self.figure.layout.scene.on_change(self._on_camera_change, "camera")

    @property
    def has_data(self) -> bool:
        return self._has_data

    def set_data(self, x, y, z, value) -> None:
        value = np.asarray(value, dtype=float)
        isomax = np.max(value) if self.isomax is None else self.isomax
        isomin = (
            (np.min(value) + isomax) / 2 if self.isomin is None
            else self.isomin
        )
        trace = go.Isosurface(
            x=x,
            y=y,
            z=z,
            value=value,
            isomin=isomin,
            isomax=isomax,
            surface_count=self.surface_count,
            opacity=self.opacity,
            colorscale=self.colorscale,
            caps={"x_show": False, "y_show": False, "z_show": False},
        )
        self.figure.data = []
        self.figure.add_trace(trace)
        self._has_data = True

    def set_axis_ranges(self, ranges: tuple) -> None:
        scene = {}
        for name, pair in zip(("xaxis", "yaxis", "zaxis"), ranges):
            scene[name] = {
                "range": None if pair is None else list(pair),
                "autorange": pair is None,
            }
        self.figure.update_layout(scene=scene)

    def get_projection(self) -> ProjectionState:
        camera = self.figure.layout.scene.camera.to_plotly_json()
        state = ProjectionState.from_camera(camera)
        # the same object is handed out while the camera is unchanged
        if state == self._projection:
            return self._projection
        self._projection = state
        return state

    def set_projection(self, state: ProjectionState) -> None:
        """
        Apply a projection.

        Raises:
            BackendUnavailable: if no data have been displayed yet.
        """
        if not self._has_data:
            raise BackendUnavailable(
                "The 3D view has no data, projection cannot be set."
            )
        self._projection = state
        self.figure.update_layout(scene_camera=state.to_camera())

    def reset_projection(self) -> None:
        self._projection = self.initial_projection
        self.figure.update_layout(
            scene_camera=self.initial_projection.to_camera()
        )

    def add_frame_listener(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def notify_frame_complete(self) -> None:
        for callback in list(self._listeners):
            callback()

    def _on_camera_change(self, layout, camera) -> None:
        self.notify_frame_complete()

    def show(self) -> None:
        self.figure.show()
