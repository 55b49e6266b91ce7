"""
Linear regression implementation for studentmath.

This module fits ordinary least squares through the closed-form normal
equations, beta = (X^T X)^-1 X^T y, inverting X^T X with Gauss-Jordan
elimination and partial pivoting.
"""

import logging
import numpy as np
from typing import Any, Dict, NamedTuple, Sequence, Tuple, Union

from studentmath.data.loader import Dataset, StudentRecord
from studentmath.utils.general import safe_denominator

logger = logging.getLogger(__name__)


FEATURES = [
    'attention',
    'focus',
    'comprehension',
    'retention',
    'engagement_time',
]

TARGET = 'assessment_score'

# Substituted for an exactly-zero pivot in lenient mode
PIVOT_EPSILON = 1e-8


class SingularMatrixError(ArithmeticError):
    """Raised in strict mode when X^T X has an exactly-zero pivot."""


class RegressionModel(NamedTuple):
    """
    A fitted linear model.

    ``pivot_substitutions`` counts the zero pivots that were replaced by
    PIVOT_EPSILON during inversion. A non-zero count means the coefficients
    are an approximation of a singular system.
    """

    intercept: float
    coefficients: Dict[str, float]
    r2: float
    mae: float
    pivot_substitutions: int = 0

    @property
    def features(self) -> list:
        return list(self.coefficients.keys())

    @property
    def approximate(self) -> bool:
        return self.pivot_substitutions > 0

    def beta(self) -> np.ndarray:
        """Intercept followed by coefficients in feature order."""
        return np.array([self.intercept] + list(self.coefficients.values()), dtype=float)


def design_matrix(dataset: Dataset, features: Sequence[str] = FEATURES) -> np.ndarray:
    """
    Build the design matrix X with a leading column of ones.

    Args:
        dataset: Dataset to read features from
        features: Ordered feature names

    Returns:
        Matrix of shape (n_records, len(features) + 1)
    """
    values = dataset.matrix(features)
    return np.hstack([np.ones((values.shape[0], 1)), values])


def normal_equations(X: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Compute X^T X and X^T y.

    Args:
        X: Design matrix
        y: Target vector

    Returns:
        Tuple (X^T X, X^T y)
    """
    Xt = X.T
    return Xt @ X, Xt @ y


def invert_matrix(A: np.ndarray, strict: bool = False) -> Tuple[np.ndarray, int]:
    """
    Invert a square matrix with Gauss-Jordan elimination.

    For each column the row with the largest absolute value at or below the
    diagonal is swapped into the pivot position, in both the working matrix
    and the accumulating inverse. An exactly-zero pivot is replaced by
    PIVOT_EPSILON, unless ``strict`` is set.

    Args:
        A: Square matrix
        strict: Raise SingularMatrixError instead of substituting epsilon

    Returns:
        Tuple of (inverse, number of substituted pivots)
    """
    M = np.array(A, dtype=float)
    if M.ndim != 2 or M.shape[0] != M.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {M.shape}")

    n = M.shape[0]
    inv = np.eye(n)
    substitutions = 0

    for i in range(n):
        # Partial pivoting
        p = i + int(np.argmax(np.abs(M[i:, i])))
        if p != i:
            M[[i, p]] = M[[p, i]]
            inv[[i, p]] = inv[[p, i]]

        pivot = M[i, i]
        if pivot == 0:
            if strict:
                raise SingularMatrixError(f"Matrix is singular at pivot column {i}")
            logger.warning(f"Zero pivot at column {i}; substituting {PIVOT_EPSILON}")
            pivot = PIVOT_EPSILON
            substitutions += 1

        M[i] = M[i] / pivot
        inv[i] = inv[i] / pivot

        for r in range(n):
            if r != i:
                factor = M[r, i]
                M[r] = M[r] - factor * M[i]
                inv[r] = inv[r] - factor * inv[i]

    return inv, substitutions


def r_squared(y: np.ndarray, y_hat: np.ndarray) -> float:
    """
    Coefficient of determination, with a zero total sum of squares replaced by 1.

    Args:
        y: Observed values
        y_hat: Fitted values

    Returns:
        R^2
    """
    ss_res = float(np.sum((y - y_hat) ** 2))
    ss_tot = float(np.sum((y - np.mean(y)) ** 2))
    return 1.0 - ss_res / safe_denominator(ss_tot)


def mean_absolute_error(y: np.ndarray, y_hat: np.ndarray) -> float:
    """Mean absolute residual."""
    return float(np.mean(np.abs(y - y_hat)))


def fit_ols(dataset: Dataset,
            features: Sequence[str] = FEATURES,
            target: str = TARGET,
            strict: bool = False) -> RegressionModel:
    """
    Fit ``target ~ intercept + sum(coefficient_i * feature_i)``.

    Fewer records than features + 1 leave the system under-determined; the
    fit still runs and may return unstable coefficients.

    Args:
        dataset: Dataset to fit on
        features: Ordered feature names
        target: Target metric name
        strict: Raise SingularMatrixError on a singular X^T X

    Returns:
        Fitted RegressionModel
    """
    if len(dataset) == 0:
        raise ValueError("Cannot fit a regression on an empty dataset")

    X = design_matrix(dataset, features)
    y = dataset.column(target)

    XtX, Xty = normal_equations(X, y)
    XtX_inv, substitutions = invert_matrix(XtX, strict=strict)
    beta = XtX_inv @ Xty

    y_hat = X @ beta

    model = RegressionModel(
        intercept=float(beta[0]),
        coefficients={f: float(b) for f, b in zip(features, beta[1:])},
        r2=r_squared(y, y_hat),
        mae=mean_absolute_error(y, y_hat),
        pivot_substitutions=substitutions
    )

    logger.debug(f"Fitted OLS on {len(dataset)} records: r2={model.r2:.4f} mae={model.mae:.4f}")
    if len(dataset) < len(features) + 1:
        logger.warning(f"Only {len(dataset)} records for {len(features) + 1} parameters; "
                       "coefficients are under-determined")

    return model


def predict(model: RegressionModel, data: Union[Dataset, StudentRecord]) -> Union[np.ndarray, float]:
    """
    Apply a fitted model.

    Args:
        model: Fitted model
        data: A Dataset (returns an array) or a single StudentRecord (returns a float)

    Returns:
        Predicted target values
    """
    if isinstance(data, StudentRecord):
        x = np.array([1.0] + [data.get(f) for f in model.features])
        return float(x @ model.beta())

    return design_matrix(data, model.features) @ model.beta()


def model_to_dict(model: RegressionModel) -> Dict[str, Any]:
    """
    Convert a model to its document form.

    Args:
        model: Fitted model

    Returns:
        {'coefficients', 'intercept', 'metrics': {'r2', 'mae'}, 'provenance'}
    """
    return {
        'coefficients': dict(model.coefficients),
        'intercept': model.intercept,
        'metrics': {
            'r2': model.r2,
            'mae': model.mae
        },
        'provenance': {
            'method': 'normal_equations',
            'pivot_substitutions': model.pivot_substitutions,
            'approximate': model.approximate
        }
    }
