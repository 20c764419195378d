from .loader import CubeLoader, CubeLoadError, NpzCubeLoader, save_cube

__all__ = [
    "CubeLoader",
    "CubeLoadError",
    "NpzCubeLoader",
    "save_cube",
]
