"""sensible_calibrate public API."""
from .calibrate import CalibrationResult, fit
from .model import Model, ModelFit
from .solver import MutationConfig, Status, TerminationConfig, minimize
from .streams import Stream
from .variables import Fixed, Optimized, Range

__all__ = [
    "CalibrationResult",
    "fit",
    "Model",
    "ModelFit",
    "MutationConfig",
    "Status",
    "TerminationConfig",
    "minimize",
    "Stream",
    "Fixed",
    "Optimized",
    "Range",
]
