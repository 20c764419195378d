import numpy as np


def normalise_bounds(start: float, end: float) -> tuple[float, float]:
    """Return the (min, max) pair of a possibly inverted bound pair."""
    if start > end:
        return end, start
    return start, end


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves going up (2.5 -> 3,
    -2.5 -> -2).
    """
    return int(np.floor(value + 0.5))


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp value into [lower, upper]."""
    return max(lower, min(upper, value))


def num_to_nan(data: np.ndarray, num: int | float = 0) -> np.ndarray:
    """
    Convert a specific number to nan.

    Args:
        data (np.ndarray): the data to convert.
        num (int | float, optional): the number to convert to nan.
            Defaults to 0.

    Returns:
        np.ndarray: the converted data.
    """
    data = data.astype(float)
    data[data == num] = np.nan
    return data


def nan_to_zero(data: np.ndarray) -> np.ndarray:
    """Replace the nan values (blanked samples) by 0."""
    data = np.asarray(data, dtype=float)
    return np.where(np.isnan(data), 0.0, data)


def is_integer_year(value: float) -> bool:
    return float(value).is_integer()
