"""
Camera synchronisation between a primary 3D view and its linked
secondary views.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable


logger = logging.getLogger(__name__)


class BackendUnavailable(RuntimeError):
    """Raised when a render surface is not ready to be used."""


def _as_vector(value) -> tuple[float, float, float]:
    if isinstance(value, dict):
        value = (value["x"], value["y"], value["z"])
    vector = tuple(float(v) for v in value)
    if len(vector) != 3:
        raise ValueError(f"Expected a 3D vector, got {value!r}.")
    return vector


class ProjectionState:
    """
    Immutable camera transform of a 3D view: the eye position (rotation
    and zoom), the up vector and the look-at centre (pan).
    """

    __slots__ = ("_eye", "_up", "_center")

    def __init__(
            self,
            eye=(1.25, 1.25, 1.25),
            up=(0.0, 0.0, 1.0),
            center=(0.0, 0.0, 0.0)
    ) -> None:
        object.__setattr__(self, "_eye", _as_vector(eye))
        object.__setattr__(self, "_up", _as_vector(up))
        object.__setattr__(self, "_center", _as_vector(center))

    def __setattr__(self, name, value):
        raise AttributeError("ProjectionState is immutable.")

    @property
    def eye(self) -> tuple[float, float, float]:
        return self._eye

    @property
    def up(self) -> tuple[float, float, float]:
        return self._up

    @property
    def center(self) -> tuple[float, float, float]:
        return self._center

    def __eq__(self, other) -> bool:
        if not isinstance(other, ProjectionState):
            return NotImplemented
        return (
            self.eye == other.eye
            and self.up == other.up
            and self.center == other.center
        )

    def __hash__(self) -> int:
        return hash((self.eye, self.up, self.center))

    def __repr__(self) -> str:
        return (
            f"ProjectionState(eye={self.eye}, up={self.up}, "
            f"center={self.center})"
        )

    def to_camera(self) -> dict:
        """Return the state as a plotly scene camera dict."""
        return {
            name: dict(zip("xyz", vector))
            for name, vector in (
                ("eye", self.eye), ("up", self.up), ("center", self.center)
            )
        }

    @classmethod
    def from_camera(cls, camera: dict) -> "ProjectionState":
        """Build a state from a plotly scene camera dict."""
        default = cls()
        camera = camera or {}
        return cls(
            eye=camera.get("eye") or default.eye,
            up=camera.get("up") or default.up,
            center=camera.get("center") or default.center,
        )


class IsoSurfaceSurface(ABC):
    """
    A 3D iso-surface view whose projection can be read and written and
    that signals every completed frame.
    """

    @abstractmethod
    def get_projection(self) -> ProjectionState:
        pass

    @abstractmethod
    def set_projection(self, state: ProjectionState) -> None:
        pass

    @abstractmethod
    def reset_projection(self) -> None:
        pass

    @abstractmethod
    def add_frame_listener(self, callback: Callable[[], None]) -> None:
        pass

    def set_axis_ranges(self, ranges: tuple) -> None:
        """
        Restrict the displayed axes to (min, max) pairs given in sample
        coordinates, None for a full axis. No-op unless overridden.
        """

    def set_data(self, x, y, z, value) -> None:
        """Replace the displayed samples, no-op unless overridden."""


class LinkedViewSynchronizer:
    """
    Copy the projection of a primary view into its secondary views each
    time the primary completes a frame, as long as the views are
    linked. Secondary projections are never copied back.
    """

    def __init__(
            self,
            primary: IsoSurfaceSurface,
            secondaries: list = None,
            linked: bool = True
    ) -> None:
        self.primary = primary
        self.secondaries = list(secondaries or [])
        self.linked = linked
        self.failed_attempts = 0
        self.primary.add_frame_listener(self.on_frame_complete)

    @property
    def state(self) -> str:
        return "linked" if self.linked else "unlinked"

    def set_linked(self, linked: bool) -> None:
        self.linked = bool(linked)
        logger.debug(f"3D views {self.state}.")

    def toggle(self) -> bool:
        self.set_linked(not self.linked)
        return self.linked

    def add_secondary(self, view: IsoSurfaceSurface) -> None:
        if view is self.primary:
            raise ValueError("The primary view cannot be its own secondary.")
        if view not in self.secondaries:
            self.secondaries.append(view)

    def remove_secondary(self, view: IsoSurfaceSurface) -> None:
        if view in self.secondaries:
            self.secondaries.remove(view)

    def on_frame_complete(self) -> int:
        """
        Propagate the primary projection. Never raises: failures are
        logged and the copy is attempted again on the next frame.

        Returns:
            int: the number of secondary views updated.
        """
        if not self.linked:
            return 0
        try:
            state = self.primary.get_projection()
        except Exception as exc:
            self.failed_attempts += 1
            logger.warning(f"Could not read the primary projection: {exc}")
            return 0

        updated = 0
        for view in list(self.secondaries):
            if view is None:
                continue
            try:
                view.set_projection(state)
                updated += 1
            except Exception as exc:
                self.failed_attempts += 1
                logger.warning(
                    f"Linked view not synchronised, retrying on next "
                    f"frame: {exc}"
                )
        return updated
