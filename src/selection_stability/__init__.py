"""
selection_stability package

Bootstrap selection stability of |t|-ranked predictors in linear regression.
"""

__version__ = "0.1.0"

from .errors import (
    DegenerateDesign,
    InsufficientPredictors,
    InsufficientResamples,
    InvalidDimension,
    StabilityError,
)
from .io import load_folder_as_df, select_design
from .simulate import simulate_dataset
from .stability import StabilityResult, bootstrap_stability

__all__ = [
    "bootstrap_stability",
    "StabilityResult",
    "simulate_dataset",
    "load_folder_as_df",
    "select_design",
    "StabilityError",
    "InvalidDimension",
    "InsufficientResamples",
    "InsufficientPredictors",
    "DegenerateDesign",
    "__version__",
]
