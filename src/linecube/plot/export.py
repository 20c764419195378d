"""
Export of the displayed views. The controller never depends on an
exporter: front ends pick one and hand it a figure.
"""

import os
from abc import ABC, abstractmethod

import matplotlib.pyplot as plt

from linecube.plot.formatting import save_fig


class Exporter(ABC):
    """Write a rendered figure to a file format."""

    formats: tuple[str, ...] = ()

    def supports(self, path: str) -> bool:
        return os.path.splitext(path)[1].lower().lstrip(".") in self.formats

    @abstractmethod
    def export(self, figure, path: str, **kwargs) -> str:
        pass


class MatplotlibExporter(Exporter):
    """Raster and vector export through matplotlib savefig."""

    formats = ("png", "pdf", "svg", "eps", "ps")

    def export(self, figure: plt.Figure, path: str, **kwargs) -> str:
        if not self.supports(path):
            raise ValueError(
                f"Unsupported export format for '{path}', should be one of "
                f"{self.formats}."
            )
        save_fig(figure, path, **kwargs)
        return path
