from collections.abc import Mapping  # more flexible than dict
import warnings

import yaml

DEFAULT_VIEW_PARAMS = {
    # coordinate frame of the cursor readout, one of "equatorial",
    # "ecliptic", "galactic", "offset" or "grid"
    "frame": "grid",
    "integrated": False,
    # initial velocity (km/s), None for the centre of the spectral range
    "velocity": None,
    "contours": [],
    "ranges": {
        "x": None,
        "y": None,
        "v": None,
    },
    # 0 no beam, 1 top-left, 2 top-right, 3 bottom-left, 4 bottom-right
    "beam_position": 3,
    "beam_points": 200,
    "panel_size": (600, 600),
    # device pixels a cursor may lie off the panel and still be clamped
    "cursor_tolerance": 0.5,
    "flux_precision": 3,
    "linked": True,
    "title": None,
    "cmap": "turbo",
}

BEAM_POSITIONS = (0, 1, 2, 3, 4)


def validate_and_fill_params(
        user_params: dict,
        defaults: dict = DEFAULT_VIEW_PARAMS
) -> dict:
    """
    Validate user parameters against DEFAULT_VIEW_PARAMS. Ensures
    required parameters are present and fills in missing optional ones.

    Args:
        user_params (dict): dict of user-provided parameters.
        defaults (dict, optional): default view parameters (can be
            nested). Defaults to DEFAULT_VIEW_PARAMS.

    Raises:
        ValueError: if a required parameter is missing.

    Returns:
        dict: new dictionary with defaults filled in
    """
    if user_params is None:
        user_params = {}
    filled_params = {}

    for key, default in defaults.items():
        user_value = user_params.get(key, None)

        # handle nested dictionaries recursively
        if isinstance(default, Mapping):
            if user_value is None:
                user_value = {}
            filled_params[key] = validate_and_fill_params(user_value, default)

        elif default == "REQUIRED" and user_value is None:
            raise ValueError(f"Missing required parameter: '{key}'")

        else:
            filled_params[key] = (
                user_value if user_value is not None else default
            )

    known_keys = set(defaults.keys())
    for key in user_params:
        if key not in known_keys:
            warnings.warn(
                f"Parameter '{key}' is unknown and will not be used.",
                UserWarning
            )

    return filled_params


def check_params(params: dict) -> dict:
    """
    Check the values of filled view parameters.

    Raises:
        ValueError: if a value is out of its allowed range.
    """
    if params["beam_position"] not in BEAM_POSITIONS:
        raise ValueError(
            f"beam_position must be one of {BEAM_POSITIONS}, "
            f"got {params['beam_position']}."
        )
    if int(params["beam_points"]) < 3:
        raise ValueError("beam_points must be at least 3.")
    if params["cursor_tolerance"] < 0:
        raise ValueError("cursor_tolerance must be positive.")
    if int(params["flux_precision"]) < 0:
        raise ValueError("flux_precision must be positive.")
    for axis, pair in params["ranges"].items():
        if pair is not None and len(pair) != 2:
            raise ValueError(
                f"Range of axis '{axis}' must be a (min, max) pair."
            )
    return params


def load_parameters(file_path: str) -> dict:
    """Load view parameters from a YAML file and fill the defaults."""
    with open(file_path, "r", encoding="utf8") as file:
        params = yaml.safe_load(file)
    return check_params(validate_and_fill_params(params or {}))


def dump_parameters(params: dict, file_path: str) -> None:
    """Save view parameters (e.g. a controller's preferences) to YAML."""
    with open(file_path, "w", encoding="utf8") as file:
        yaml.safe_dump(_to_builtin(params), file, sort_keys=False)


def _to_builtin(value):
    if isinstance(value, Mapping):
        return {key: _to_builtin(v) for key, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_builtin(v) for v in value]
    if hasattr(value, "item"):
        # numpy scalars
        return value.item()
    return value
