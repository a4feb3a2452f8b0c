# Shared utilities: validators, bar conversion
from signalforge.utils.frames import BarArrays, bars_to_arrays
from signalforge.utils.validators import (
    as_float_array,
    require_length,
    validate_bars,
    validate_period,
    validate_same_length,
)

__all__ = [
    "BarArrays",
    "as_float_array",
    "bars_to_arrays",
    "require_length",
    "validate_bars",
    "validate_period",
    "validate_same_length",
]
