# src/selection_stability/errors.py
from __future__ import annotations


class StabilityError(ValueError):
    """Base class for invalid inputs to the stability estimator."""


class InvalidDimension(StabilityError):
    """Model size outside the open interval (0, p)."""

    def __init__(self, d, n_features: int):
        self.d = d
        self.n_features = n_features
        super().__init__(
            f"model size d={d!r} must be an integer with 0 < d < p (p={n_features})."
        )


class InsufficientResamples(StabilityError):
    def __init__(self, n_boot: int):
        self.n_boot = n_boot
        super().__init__(f"need at least 2 bootstrap resamples, got {n_boot}.")


class InsufficientPredictors(StabilityError):
    def __init__(self, n_features: int):
        self.n_features = n_features
        super().__init__(f"need at least 2 predictors, got {n_features}.")


class DegenerateDesign(StabilityError):
    """Design matrix that cannot support a (weighted) least-squares fit."""
