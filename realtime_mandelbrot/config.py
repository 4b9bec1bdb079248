"""
Startup settings.

Defaults live in DEFAULTS. An optional settings.json (next to this module,
or any path given on the command line) overrides individual keys:

    {
        "width": 1280,
        "height": 720,
        "max_iterations": 512,
        "center": [-0.743643887037151, 0.13182590420533],
        "scale": 3.0,
        "use_gpu": null,
        "color_mode": "clamp",
        "deep_precision": "double"
    }
"""

import json
import logging
import math
import os

from .controller import MAX_ITERATIONS_LIMIT, MAX_SCALE, MIN_SCALE
from .precision import DOUBLE, DOUBLE_SINGLE, precision_from_name
from .renderer import COLOR_MODES

logger = logging.getLogger(__name__)


SETTINGS_FILENAME = 'settings.json'

DEFAULTS = {
    'width': 800,
    'height': 600,
    'max_iterations': 256,
    'center': [-0.5, 0.0],
    'scale': 3.0,
    'zoom_factor': 1.18,
    'zoom_sensitivity': 1.0,
    'use_gpu': None,            # None = auto-detect
    'color_mode': 'clamp',      # 'clamp' or 'remap'
    'deep_precision': 'double',  # 'double' or 'double-single'
    'fps': 60,
}


def default_settings_path():
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), SETTINGS_FILENAME)


def load_settings(path=None):
    """
    Load settings, merging the JSON file over DEFAULTS.

    A missing default file is silent. A missing explicit path, unreadable
    JSON, or a non-object top level logs a warning and yields the defaults.
    Unknown keys are ignored and invalid values replaced by their default,
    each with a warning (see check_settings).

    Args:
        path: settings file (default: settings.json beside this module)

    Returns:
        New dict with every key of DEFAULTS
    """
    settings = dict(DEFAULTS)
    explicit = path is not None
    path = path or default_settings_path()

    try:
        with open(path, 'r') as f:
            loaded = json.load(f)
    except FileNotFoundError:
        if explicit:
            logger.warning("Settings file %s not found, using defaults", path)
        return settings
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not load %s: %s", path, e)
        return settings

    if not isinstance(loaded, dict):
        logger.warning("Ignoring %s: top level must be an object", path)
        return settings

    return check_settings(loaded, path)


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _is_positive_int(value):
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_point(value):
    return isinstance(value, (list, tuple)) and len(value) == 2 and all(_is_number(v) for v in value)


def _is_deep_precision(value):
    try:
        return precision_from_name(value) in (DOUBLE, DOUBLE_SINGLE)
    except KeyError:
        return False


VALIDATORS = {
    'width': _is_positive_int,
    'height': _is_positive_int,
    'max_iterations': lambda v: _is_positive_int(v) and v <= MAX_ITERATIONS_LIMIT,
    'center': _is_point,
    'scale': lambda v: _is_number(v) and MIN_SCALE <= v <= MAX_SCALE,
    'zoom_factor': lambda v: _is_number(v) and v > 1,
    'zoom_sensitivity': lambda v: _is_number(v) and v > 0,
    'use_gpu': lambda v: v is None or isinstance(v, bool),
    'color_mode': lambda v: v in COLOR_MODES,
    'deep_precision': _is_deep_precision,
    'fps': _is_positive_int,
}


def check_settings(settings, source='settings'):
    """
    Replace invalid values with their defaults.

    Args:
        settings: dict of setting overrides, possibly partial
        source: where the values came from, for the log message

    Returns:
        New dict with every key of DEFAULTS
    """
    checked = dict(DEFAULTS)
    for key, value in settings.items():
        if key not in DEFAULTS:
            logger.warning("Ignoring unknown setting %r in %s", key, source)
        elif not VALIDATORS[key](value):
            logger.warning("Invalid value %r for %r in %s, using %r",
                           value, key, source, DEFAULTS[key])
        else:
            checked[key] = value
    return checked
