"""
Property validation shared by Source and Mixture setters.

Every check raises ValidationError immediately; nothing is deferred to
render time.
"""

from __future__ import annotations

import math
import numbers
from typing import Any

import numpy as np

from binaural_mixer.errors import ValidationError


def check_scalar(
    name: str,
    value: Any,
    *,
    positive: bool = False,
    integer: bool = False,
) -> Any:
    """Return value if it is a finite real scalar, else raise ValidationError."""
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, numbers.Real):
        raise ValidationError(name, "must be a scalar", value)
    if not math.isfinite(value):
        raise ValidationError(name, "must be finite", value)
    if positive and value <= 0:
        raise ValidationError(name, "must be positive", value)
    if integer:
        if not float(value).is_integer():
            raise ValidationError(name, "must be an integer", value)
        return int(value)
    return value


def check_bool(name: str, value: Any) -> bool:
    """Return value as bool if it is exactly true or false."""
    if not isinstance(value, (bool, np.bool_)):
        raise ValidationError(name, "property must be true or false", value)
    return bool(value)
