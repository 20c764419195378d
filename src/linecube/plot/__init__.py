import importlib

from .formatting import (
    add_colorbar,
    get_mappable,
    save_fig,
    update_plot_params,
)

__submodules__ = {"slice", "export"}

__class_func_submodules__ = {
    "MatplotlibSliceSurface": "slice",
    "plot_slice": "slice",
    "Exporter": "export",
    "MatplotlibExporter": "export",
}

__all__ = [
    "update_plot_params",
    "add_colorbar",
    "get_mappable",
    "save_fig",
]
__all__ += list(__submodules__) + list(__class_func_submodules__)


def __getattr__(name):
    if name in __submodules__:
        return importlib.import_module(f"{__name__}.{name}")

    if name in __class_func_submodules__:
        submodule = importlib.import_module(
            f"{__name__}.{__class_func_submodules__[name]}"
        )
        return getattr(submodule, name)
    raise AttributeError(f"module {__name__} has no attribute {name}.")
