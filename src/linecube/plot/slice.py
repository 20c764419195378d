import warnings

import matplotlib
import matplotlib.pyplot as plt
import matplotlib.ticker as mticker
import numpy as np

from linecube.controller import CursorMove, PlaneChange, SliceSurface
from linecube.coordinates import PanelExtent
from linecube.cube import RAD_TO_ARCSEC, Slice2D
from linecube.plot.formatting import add_colorbar
from linecube.utils import normalise_bounds


def _arcsec_formatter() -> mticker.FuncFormatter:
    return mticker.FuncFormatter(lambda value, _: f"{value * RAD_TO_ARCSEC:g}")


class MatplotlibSliceSurface(SliceSurface):
    """
    Render slices in a matplotlib axes. The physical coordinates are
    the axes data coordinates (radians, labelled in arcsec), the device
    coordinates are the figure display pixels, as reported by matplotlib
    mouse events.

    Args:
        ax (plt.Axes, optional): the axes to draw in. A new figure is
            created if None. Defaults to None.
        cmap (str, optional): the colormap. Defaults to "turbo".
        contour_color (str, optional): the contour line colour.
            Defaults to "w".
        show_cbar (bool, optional): whether to add a colorbar at the
            first render. Defaults to True.
        title (str, optional): the axes title. Defaults to None.
    """

    def __init__(
            self,
            ax: plt.Axes = None,
            cmap: str = "turbo",
            contour_color: str = "w",
            show_cbar: bool = True,
            title: str = None
    ) -> None:
        if ax is None:
            _, ax = plt.subplots()
        self.ax = ax
        self.figure = ax.get_figure()
        self.cmap = cmap
        self.contour_color = contour_color
        self.show_cbar = show_cbar
        self.colorbar = None
        self.image = None
        self.contour_set = None
        self.beam_line = None
        self.readout_text = None
        self._cids = []

        if title:
            self.ax.set_title(title)
        self.ax.set_xlabel("offset (arcsec)")
        self.ax.set_ylabel("offset (arcsec)")
        self.ax.xaxis.set_major_formatter(_arcsec_formatter())
        self.ax.yaxis.set_major_formatter(_arcsec_formatter())

    def render(
            self,
            grid: np.ndarray,
            bounds: tuple[float, float, float, float],
            contour_levels: tuple[float, ...] = None
    ) -> None:
        """
        Draw the grid, column 0 at bounds[0] and row 0 at bounds[2].
        The current zoom is kept across renders.
        """
        limits = None
        if self.image is not None:
            limits = self.ax.get_xlim(), self.ax.get_ylim()
            self.image.remove()
        if self.contour_set is not None:
            self.contour_set.remove()
            self.contour_set = None

        x0, xf, y0, yf = bounds
        self.image = self.ax.imshow(
            grid,
            origin="lower",
            extent=(x0, xf, y0, yf),
            cmap=self.cmap,
            aspect="equal",
        )
        if contour_levels and min(grid.shape) > 1:
            x = np.linspace(x0, xf, grid.shape[1])
            y = np.linspace(y0, yf, grid.shape[0])
            with warnings.catch_warnings():
                # levels outside the data range are not drawn
                warnings.simplefilter("ignore", category=UserWarning)
                self.contour_set = self.ax.contour(
                    x,
                    y,
                    grid,
                    levels=sorted(contour_levels),
                    colors=self.contour_color,
                    linewidths=0.8,
                )

        if limits is None:
            self.set_view_bounds(
                normalise_bounds(x0, xf) + normalise_bounds(y0, yf)
            )
        else:
            self.ax.set_xlim(limits[0])
            self.ax.set_ylim(limits[1])

        if self.show_cbar:
            if self.colorbar is None:
                self.colorbar = add_colorbar(self.ax, self.image)
            else:
                self.colorbar.update_normal(self.image)
        self.figure.canvas.draw_idle()

    def layer_extent(self) -> PanelExtent:
        bbox = self.ax.get_window_extent()
        return PanelExtent(bbox.x0, bbox.x1, bbox.y0, bbox.y1)

    def view_bounds(self) -> tuple[float, float, float, float]:
        return (
            normalise_bounds(*self.ax.get_xlim())
            + normalise_bounds(*self.ax.get_ylim())
        )

    def set_view_bounds(
            self, bounds: tuple[float, float, float, float]
    ) -> None:
        # axes always increase to the right and upward
        self.ax.set_xlim(normalise_bounds(*bounds[:2]))
        self.ax.set_ylim(normalise_bounds(*bounds[2:]))
        self.figure.canvas.draw_idle()

    def draw_beam(self, xs: np.ndarray, ys: np.ndarray) -> None:
        if self.beam_line is not None:
            self.beam_line.remove()
        (self.beam_line,) = self.ax.fill(
            xs, ys, facecolor="none", edgecolor="w", linewidth=1
        )

    def show_readout(self, text: str) -> None:
        if self.readout_text is None:
            self.readout_text = self.figure.text(
                0.01, 0.01, "", fontsize=7, ha="left", va="bottom"
            )
        self.readout_text.set_text(text)
        self.figure.canvas.draw_idle()

    def connect(self, controller) -> list[int]:
        """
        Forward the mouse motion and scroll events of the figure to a
        SliceViewController. Scrolling with shift held moves the
        velocity by fine steps.
        """

        def on_motion(event: matplotlib.backend_bases.MouseEvent) -> None:
            readout = controller.handle(CursorMove(event.x, event.y))
            self.show_readout(readout.text)

        def on_scroll(event: matplotlib.backend_bases.MouseEvent) -> None:
            if event.inaxes is not self.ax:
                return
            controller.handle(
                PlaneChange(
                    steps=int(np.sign(event.step)),
                    fine=event.key == "shift",
                )
            )

        canvas = self.figure.canvas
        self._cids = [
            canvas.mpl_connect("motion_notify_event", on_motion),
            canvas.mpl_connect("scroll_event", on_scroll),
        ]
        return self._cids

    def close(self) -> None:
        for cid in self._cids:
            self.figure.canvas.mpl_disconnect(cid)
        self._cids = []
        plt.close(self.figure)


def plot_slice(
        slice2d: Slice2D,
        ax: plt.Axes = None,
        title: str = None,
        cmap: str = "turbo",
        show: bool = False
) -> matplotlib.figure.Figure:
    """Plot a Slice2D with its contours and a colorbar."""
    surface = MatplotlibSliceSurface(ax=ax, cmap=cmap, title=title)
    surface.render(slice2d.grid, slice2d.bounds, slice2d.contour_levels)
    if slice2d.flux_unit and surface.colorbar is not None:
        label = slice2d.flux_unit
        if slice2d.integrated:
            label += " km/s"
        surface.colorbar.set_label(label)
    if show:
        plt.show()
    return surface.figure
