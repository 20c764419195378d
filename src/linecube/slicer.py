"""
Extraction of 2D grids, spectra and iso-surface samples from a
VolumetricCube. All functions are pure over the cube state.
"""

import numpy as np

from linecube.cube import InvalidCubeError, Slice2D, VolumetricCube
from linecube.utils import clamp, nan_to_zero, round_half_up


class CubeSlicer:
    """Build Slice2D instances from a VolumetricCube."""

    @staticmethod
    def _check(cube: VolumetricCube) -> None:
        if cube is None or 0 in cube.shape:
            raise InvalidCubeError("Cannot slice an empty cube.")

    def slice(
            self,
            cube: VolumetricCube,
            plane: int,
            contour_levels: tuple[float, ...] = None
    ) -> Slice2D:
        """
        Extract a single velocity plane.

        Args:
            cube (VolumetricCube): the cube to slice.
            plane (int): the spectral index, clamped into
                [0, axis3_count - 1].
            contour_levels (tuple[float, ...], optional): the levels to
                attach to the slice. Defaults to None.

        Returns:
            Slice2D: the plane, rows along y and columns along x.
        """
        self._check(cube)
        plane = int(clamp(int(plane), 0, cube.axis3_count - 1))
        grid = nan_to_zero(cube.data[:, :, plane]).T
        return Slice2D(
            grid,
            cube.spatial_bounds,
            contour_levels=contour_levels,
            plane=plane,
            integrated=False,
            flux_unit=cube.flux_unit,
        )

    def integrate(
            self,
            cube: VolumetricCube,
            contour_levels: tuple[float, ...] = None
    ) -> Slice2D:
        """
        Compute the velocity-integrated intensity (moment-0) map, i.e.
        the sum of all the planes times the absolute channel width.

        Raises:
            InvalidCubeError: if the cube is empty or its channel width
                is 0.
        """
        self._check(cube)
        if cube.channel_width == 0:
            raise InvalidCubeError(
                "Cannot integrate a cube whose channel width is 0."
            )
        grid = (
            nan_to_zero(cube.data).sum(axis=2) * abs(cube.channel_width)
        ).T
        return Slice2D(
            grid,
            cube.spatial_bounds,
            contour_levels=contour_levels,
            plane=None,
            integrated=True,
            flux_unit=cube.flux_unit,
        )


def plane_for_velocity(
        cube: VolumetricCube,
        velocity: float
) -> tuple[int, float]:
    """
    Find the plane closest to a requested velocity.

    Args:
        cube (VolumetricCube): the cube.
        velocity (float): the requested velocity in km/s.

    Returns:
        tuple[int, float]: the plane index, clamped into the valid range,
            and the velocity of that plane.
    """
    v0, vf = cube.v_bounds
    count = cube.axis3_count
    if count < 2 or vf == v0:
        return 0, v0
    step = (count - 1) / (vf - v0)
    plane = round_half_up(step * (velocity - v0))
    plane = int(clamp(plane, 0, count - 1))
    return plane, v0 + plane / step


def velocity_step(cube: VolumetricCube, fine: bool = False) -> float:
    """
    The velocity increment of one scroll step: one channel, or a
    thousandth of the spectral range if fine.
    """
    v0, vf = cube.v_bounds
    return (vf - v0) / (1000 if fine else cube.axis3_count)


def extract_spectrum(
        cube: VolumetricCube,
        ix: int,
        iy: int
) -> tuple[np.ndarray, np.ndarray]:
    """
    Return the (velocities, values) spectrum of a spatial pixel.

    Raises:
        IndexError: if the pixel lies outside the cube.
    """
    if not (0 <= ix < cube.axis1_count and 0 <= iy < cube.axis2_count):
        raise IndexError(
            f"Pixel ({ix}, {iy}) outside the cube of shape {cube.shape}."
        )
    return cube.velocities(), nan_to_zero(cube.data[ix, iy, :])


def central_pixel(cube: VolumetricCube) -> tuple[int, int]:
    return (
        max(cube.axis1_count // 2 - 1, 0),
        max(cube.axis2_count // 2 - 1, 0),
    )


def flatten_for_isosurface(
        cube: VolumetricCube
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Flatten the cube into the (x, y, z, value) samples expected by an
    iso-surface renderer. Sample ((v * ny) + y) * nx + x holds
    cube.data[x, y, v], its coordinates are re-centred so that the
    first sample sits at (-nx / 2, -ny / 2, -nv / 2).

    Args:
        cube (VolumetricCube): the cube to flatten.

    Returns:
        tuple[np.ndarray, ...]: the x, y, z and value 1D arrays.
    """
    nx, ny, nv = cube.shape
    # (v, y, x) ordering so that x varies fastest
    values = nan_to_zero(cube.data).transpose(2, 1, 0)
    z, y, x = np.meshgrid(
        np.arange(nv) - nv / 2,
        np.arange(ny) - ny / 2,
        np.arange(nx) - nx / 2,
        indexing="ij",
    )
    return x.ravel(), y.ravel(), z.ravel(), values.ravel()


def isosurface_range(
        cube: VolumetricCube,
        axis: str,
        value_range: tuple[float, float]
) -> tuple[float, float]:
    """
    Convert a physical (min, max) range of an axis into the re-centred
    sample coordinates of flatten_for_isosurface.
    """
    count = cube.axis_count(axis)
    start = cube.bounds(axis)[0]
    spacing = cube.axis_spacing(axis)
    if spacing == 0:
        return -count / 2, count / 2 - 1
    low, high = ((v - start) / spacing - count / 2 for v in value_range)
    return (low, high) if low <= high else (high, low)
