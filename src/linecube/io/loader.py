"""
Cube loaders.

This module provides the abstract CubeLoader class and a loader for
numpy .npz archives.
"""

import os
from abc import ABC, abstractmethod

import numpy as np

from linecube.cube import InvalidCubeError, VolumetricCube


class CubeLoadError(ValueError):
    """Raised when a cube file cannot be read."""


class CubeLoader(ABC):
    """
    Abstract base class for cube loaders.

    Use the factory method :meth:`from_format` to get the loader of a
    file format.

    Examples:
        >>> loader = CubeLoader.from_format("npz")
        >>> cube = loader.load("/data/co21.npz")
    """

    @classmethod
    def from_format(cls, file_format: str, **kwargs) -> "CubeLoader":
        """
        Factory method to instantiate the loader of a file format.

        Args:
            file_format: format identifier (case-insensitive), "npz".
            **kwargs: keyword arguments passed to the loader
                constructor.

        Raises:
            ValueError: if the format is not recognised.
        """
        if file_format.lower() == "npz":
            return NpzCubeLoader(**kwargs)
        raise ValueError(f"Invalid cube file format: {file_format}.")

    @abstractmethod
    def load(self, path: str) -> VolumetricCube:
        pass


class NpzCubeLoader(CubeLoader):
    """
    Load a cube saved with :func:`save_cube`. The archive holds the
    sample array under "data" and the bounds under "x_bounds",
    "y_bounds" and "v_bounds"; the other VolumetricCube attributes are
    optional.

    Args:
        axis_order: order of the axes in the stored array, "xyv" or
            "vyx" (plane-major, as written by most radio imaging
            packages). Defaults to "xyv".
    """

    required_keys = ("data", "x_bounds", "y_bounds", "v_bounds")
    optional_keys = (
        "channel_width",
        "beam",
        "flux_unit",
        "epoch",
        "reference_position",
        "projection",
        "source_name",
        "line",
        "blanking",
    )
    string_keys = ("flux_unit", "projection", "source_name", "line")

    def __init__(self, axis_order: str = "xyv") -> None:
        if axis_order not in ("xyv", "vyx"):
            raise ValueError(
                f"axis_order must be 'xyv' or 'vyx', got '{axis_order}'."
            )
        self.axis_order = axis_order

    def load(self, path: str) -> VolumetricCube:
        """
        Read a cube from an .npz archive.

        Raises:
            CubeLoadError: if the file does not exist, is not an archive
                or misses a required key, or if its content is not a
                valid cube.
        """
        if not os.path.isfile(path):
            raise CubeLoadError(f"No cube file at '{path}'.")
        try:
            with np.load(path, allow_pickle=False) as file:
                content = {key: file[key] for key in file.files}
        except (OSError, ValueError) as exc:
            raise CubeLoadError(f"Could not read '{path}': {exc}")

        missing = [k for k in self.required_keys if k not in content]
        if missing:
            raise CubeLoadError(
                f"'{path}' is missing the keys {missing}, found "
                f"{sorted(content)}."
            )

        data = content["data"]
        if self.axis_order == "vyx":
            data = np.transpose(data, (2, 1, 0))

        metadata = {}
        for key in self.optional_keys:
            if key not in content:
                continue
            value = content[key]
            if key in self.string_keys:
                metadata[key] = str(value)
            elif value.ndim == 0:
                metadata[key] = value.item()
            else:
                metadata[key] = tuple(value.tolist())

        try:
            return VolumetricCube(
                data,
                tuple(content["x_bounds"]),
                tuple(content["y_bounds"]),
                tuple(content["v_bounds"]),
                **metadata,
            )
        except InvalidCubeError as exc:
            raise CubeLoadError(f"Invalid cube in '{path}': {exc}")


def save_cube(path: str, cube: VolumetricCube) -> None:
    """Save a cube in the .npz layout read by NpzCubeLoader."""
    content = {
        "data": np.asarray(cube.data),
        "x_bounds": np.array(cube.x_bounds),
        "y_bounds": np.array(cube.y_bounds),
        "v_bounds": np.array(cube.v_bounds),
        "channel_width": np.array(cube.channel_width),
        "flux_unit": np.array(cube.flux_unit),
        "epoch": np.array(cube.epoch),
        "reference_position": np.array(cube.reference_position),
        "projection": np.array(cube.projection),
        "source_name": np.array(cube.source_name),
        "line": np.array(cube.line),
    }
    if cube.beam is not None:
        content["beam"] = np.array(cube.beam)
    np.savez(path, **content)
