"""
Contour levels drawn over the 2D map.

Levels are kept as canonical decimal strings so that "1", "1.0" and
1.00 are the same level.
"""

import numbers

import numpy as np


class InvalidContourError(ValueError):
    """Raised when a contour level cannot be parsed."""


def canonical_level(value: str | float) -> str:
    """
    Return the canonical string of a level.

    Raises:
        InvalidContourError: if the value is not a finite number.
    """
    if isinstance(value, bool):
        raise InvalidContourError(f"Invalid contour level: {value!r}.")
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        raise InvalidContourError(f"Invalid contour level: {value!r}.")
    if not np.isfinite(number):
        raise InvalidContourError(
            f"Contour levels must be finite, got {value!r}."
        )
    # -0.0 and 0.0 are the same level
    return repr(number + 0.0)


def parse_contour_levels(text: str) -> list[str]:
    """
    Parse a comma-separated list of levels, e.g. "1.0, 2.5, 4".
    Empty tokens are ignored. Any invalid token rejects the whole input.

    Args:
        text (str): the user input.

    Returns:
        list[str]: the canonical levels in input order.
    """
    tokens = [token.strip() for token in text.split(",")]
    return [canonical_level(token) for token in tokens if token]


class ContourLevelSet:
    """
    A sorted set of distinct contour levels with a selection index used
    to highlight one level in a list widget.
    """

    def __init__(self, levels=None) -> None:
        self._levels: list[str] = []
        self.selected: int | None = None
        if levels:
            self.add(levels)

    def __len__(self) -> int:
        return len(self._levels)

    def __iter__(self):
        return iter(self._levels)

    def __contains__(self, value) -> bool:
        try:
            return canonical_level(value) in self._levels
        except InvalidContourError:
            return False

    def __repr__(self) -> str:
        return f"ContourLevelSet({self._levels})"

    def add(self, values) -> list[str]:
        """
        Merge new levels into the set.

        Args:
            values: a comma-separated string, or an iterable of strings
                and numbers (strings may themselves hold several
                comma-separated levels).

        Raises:
            InvalidContourError: if any token is invalid, in which case
                the set is left unchanged.

        Returns:
            list[str]: the levels that were not already present.
        """
        if isinstance(values, (str, numbers.Number)):
            values = [values]
        parsed = []
        for value in values:
            if isinstance(value, str):
                parsed.extend(parse_contour_levels(value))
            else:
                parsed.append(canonical_level(value))

        added = []
        for level in parsed:
            if level not in self._levels and level not in added:
                added.append(level)
        if not added:
            # nothing new, the selection is kept
            return added

        self._levels = sorted(self._levels + added, key=float)
        self.selected = self._levels.index(added[-1])
        return added

    def remove(self, index: int) -> str:
        """
        Delete the level at a position and clamp the selection.

        Raises:
            IndexError: if there is no level at index.
        """
        if not 0 <= index < len(self._levels):
            raise IndexError(
                f"No contour level at index {index} "
                f"({len(self._levels)} levels)."
            )
        removed = self._levels.pop(index)
        if not self._levels:
            self.selected = None
        elif index < len(self._levels):
            self.selected = index
        else:
            self.selected = len(self._levels) - 1
        return removed

    def clear(self) -> None:
        self._levels = []
        self.selected = None

    def select(self, index: int | None) -> None:
        if index is not None and not 0 <= index < len(self._levels):
            raise IndexError(f"No contour level at index {index}.")
        self.selected = index

    # defined last, the method name shadows the builtin in the class body
    def list(self) -> list[str]:
        return list(self._levels)

    def values(self) -> np.ndarray:
        return np.array([float(level) for level in self._levels])
