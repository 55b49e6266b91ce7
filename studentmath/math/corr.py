"""
Correlation implementation for studentmath.

This module computes Pearson correlations between every pair of a fixed
metric set, and ranks metrics by their correlation with the assessment score.
"""

import logging
import numpy as np
from typing import Any, Dict, List, Optional, Sequence, Tuple

from studentmath.data.loader import Dataset
from studentmath.utils.general import round_to, safe_denominator

logger = logging.getLogger(__name__)


METRICS = [
    'attention',
    'focus',
    'comprehension',
    'retention',
    'engagement_time',
    'assessment_score',
]

SKILLS = ['attention', 'focus', 'comprehension', 'retention']

TARGET = 'assessment_score'


def pearson(xs: Sequence[float], ys: Sequence[float]) -> float:
    """
    Compute the Pearson correlation coefficient of two equal-length samples.

    A zero-variance sample gives a zero denominator, which is replaced by 1,
    so the coefficient degrades to 0 instead of failing.

    Args:
        xs: First sample
        ys: Second sample

    Returns:
        Correlation coefficient
    """
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)

    if xs.shape != ys.shape:
        raise ValueError(f"Samples differ in length: {xs.shape[0]} vs {ys.shape[0]}")
    if xs.size == 0:
        raise ValueError("Cannot correlate empty samples")

    dx = xs - xs.mean()
    dy = ys - ys.mean()

    num = float(np.sum(dx * dy))
    den = float(np.sqrt(np.sum(dx * dx) * np.sum(dy * dy)))

    return num / safe_denominator(den)


def correlation_matrix(dataset: Dataset,
                       metrics: Sequence[str] = METRICS,
                       precision: int = 3) -> Dict[str, Dict[str, float]]:
    """
    Compute the full correlation matrix over a set of metrics.

    Args:
        dataset: Dataset to analyse
        metrics: Ordered metric names
        precision: Decimal digits kept in each coefficient

    Returns:
        Nested mapping metric -> metric -> coefficient, in metric order
    """
    if len(dataset) == 0:
        raise ValueError("Cannot correlate an empty dataset")

    columns = {m: dataset.column(m) for m in metrics}

    matrix = {}
    for a in metrics:
        matrix[a] = {}
        for b in metrics:
            matrix[a][b] = round_to(pearson(columns[a], columns[b]), precision)

    return matrix


def sorted_vs_target(matrix: Dict[str, Dict[str, float]],
                     target: str = TARGET) -> Dict[str, float]:
    """
    Rank every other metric by its correlation with a target metric.

    Args:
        matrix: Correlation matrix from correlation_matrix
        target: Metric to rank against

    Returns:
        Ordered mapping metric -> coefficient, descending; ties keep matrix order
    """
    if target not in matrix:
        raise ValueError(f"Unknown metric: {target}")

    pairs = [(metric, row[target]) for metric, row in matrix.items() if metric != target]
    # sorted() is stable, so equal coefficients stay in metric order
    pairs = sorted(pairs, key=lambda p: p[1], reverse=True)

    return dict(pairs)


def top_correlation(ranking: Dict[str, float]) -> Optional[Tuple[str, float]]:
    """
    Pick the metric with the strongest correlation in either direction.

    Args:
        ranking: Mapping metric -> coefficient

    Returns:
        (metric, coefficient), or None for an empty ranking
    """
    best = None
    for metric, value in ranking.items():
        if best is None or abs(value) > abs(best[1]):
            best = (metric, value)
    return best


def skill_vs_score(dataset: Dataset,
                   skills: Sequence[str] = SKILLS,
                   precision: int = 2) -> List[Dict[str, Any]]:
    """
    Correlate each skill with the assessment score.

    This is the per-cohort view shown next to a selected student.

    Args:
        dataset: Dataset (typically one class)
        skills: Skill metric names
        precision: Decimal digits kept

    Returns:
        List of {'skill', 'score'} in skill order; empty for an empty dataset
    """
    if len(dataset) == 0:
        return []

    scores = dataset.column(TARGET)
    return [
        {'skill': skill, 'score': round_to(pearson(dataset.column(skill), scores), precision)}
        for skill in skills
    ]


def compute_correlation(dataset: Dataset,
                        metrics: Sequence[str] = METRICS,
                        target: str = TARGET,
                        precision: int = 3) -> Dict[str, Any]:
    """
    Compute the correlation document for a dataset.

    Args:
        dataset: Dataset to analyse
        metrics: Ordered metric names
        target: Metric used for the ranking view
        precision: Decimal digits kept

    Returns:
        {'matrix': ..., 'sorted_vs_score': ...}
    """
    matrix = correlation_matrix(dataset, metrics, precision)
    ranking = sorted_vs_target(matrix, target)

    logger.debug(f"Correlation ranking vs {target}: {ranking}")

    return {
        'matrix': matrix,
        'sorted_vs_score': ranking
    }

