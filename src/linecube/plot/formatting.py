import warnings

import matplotlib
import matplotlib.pyplot as plt
from mpl_toolkits.axes_grid1 import make_axes_locatable

MAP_STYLES = {
    "default": {
        "lines.linewidth": 1,
        "font.size": 8,
        "figure.titlesize": 9,
        "axes.titlesize": 8,
        "axes.labelsize": 8,
        "xtick.labelsize": 7,
        "ytick.labelsize": 7,
        "font.family": "sans-serif",
        "font.sans-serif": ["DejaVu Sans", "Liberation Sans"],
        "figure.figsize": (5.0, 4.5),
    },
    "poster": {
        "lines.linewidth": 2,
        "font.size": 14,
        "figure.titlesize": 16,
        "axes.titlesize": 14,
        "axes.labelsize": 14,
        "xtick.labelsize": 12,
        "ytick.labelsize": 12,
        "figure.figsize": (8.0, 7.0),
    },
}

# applied whatever the style, maps are drawn pixel by pixel from the
# bottom-left corner
MAP_DEFAULTS = {
    "image.cmap": "turbo",
    "image.origin": "lower",
    "image.interpolation": "none",
    "legend.frameon": False,
}


def save_fig(fig: plt.Figure, path: str, **kwargs) -> None:
    """Save a figure, tightly cropped at 200 dpi unless told otherwise."""
    options = {"bbox_inches": "tight", "dpi": 200, "transparent": True}
    options.update(kwargs)
    fig.savefig(path, **options)


def update_plot_params(style: str | None = None, **kwargs) -> None:
    """
    Set the matplotlib rc parameters used by the map displays.

    Args:
        style (str | None, optional): None for the default sizes or
            "poster" for large fonts. Defaults to None.
        **kwargs: extra rc parameters, applied last.

    Raises:
        ValueError: if the style is unknown.
    """
    name = "default" if style is None else style
    if name not in MAP_STYLES:
        raise ValueError(
            f"Unknown style '{style}', should be None or 'poster'."
        )
    plt.rcParams.update(MAP_STYLES[name])
    plt.rcParams.update(MAP_DEFAULTS)
    plt.rcParams.update(**kwargs)


def get_mappable(ax: plt.Axes) -> matplotlib.cm.ScalarMappable | None:
    """The first image of ax, else its first colour-mapped collection."""
    if ax.images:
        return ax.images[0]
    return next(
        (c for c in ax.collections if hasattr(c, "cmap")), None
    )


def add_colorbar(
    ax: plt.Axes,
    mappable: matplotlib.cm.ScalarMappable = None,
    loc: str = "right",
    size: str = "5%",
    pad: float = 0.05,
    label: str = None,
    **kwargs,
) -> matplotlib.colorbar.Colorbar:
    """
    Attach a colorbar to a map axes, in a slot cut from the axes so
    that the map keeps its aspect.

    Args:
        ax (plt.Axes): the map axes.
        mappable (matplotlib.cm.ScalarMappable, optional): what the
            colorbar describes. Defaults to the map drawn in ax.
        loc (str, optional): side of the colorbar. Defaults to "right".
        size (str, optional): colorbar width relative to the axes.
            Defaults to "5%".
        pad (float, optional): gap between the axes and the colorbar.
            Defaults to 0.05.
        label (str, optional): the colorbar label, e.g. the flux unit.
            Defaults to None.

    Raises:
        ValueError: if no mappable is given and ax holds no map.

    Returns:
        matplotlib.colorbar.Colorbar: the colorbar.
    """
    if mappable is None:
        mappable = get_mappable(ax)
    if mappable is None:
        raise ValueError("No map drawn in ax, provide a mappable.")

    norm = mappable.norm
    if norm.vmin is not None and norm.vmin == norm.vmax:
        warnings.warn(
            "The displayed map is uniform, the colorbar has no range.",
            UserWarning,
        )

    cax = make_axes_locatable(ax).append_axes(loc, size=size, pad=pad)
    cbar = ax.get_figure().colorbar(mappable, cax=cax, **kwargs)
    if label:
        cbar.set_label(label)
    return cbar
