"""
General utility functions for the studentmath package.

Small helpers shared by the engines, the pipeline and the server.
"""

import decimal
import math
import numpy as np
from typing import Any, Iterable, List, TypeVar

T = TypeVar('T')


def round_to(n: float, digits: int = 0) -> float:
    """
    Round a number to a specific number of decimal places.

    Args:
        n: Number to round
        digits: Number of decimal digits to keep

    Returns:
        Rounded number as a plain Python float
    """
    # Adding 0.0 turns -0.0 into 0.0
    return float(round(float(n), digits)) + 0.0


def round_half_up(n: float) -> int:
    """
    Round to the nearest integer, with halves rounded towards positive infinity.

    Args:
        n: Number to round

    Returns:
        Rounded integer
    """
    return int(math.floor(float(n) + 0.5))


def safe_denominator(value: float) -> float:
    """Replace a zero denominator with 1 so the ratio degrades to the numerator."""
    return value if value != 0 else 1.0


def mean(values: Iterable[float]) -> float:
    """
    Arithmetic mean of a collection of values.

    Args:
        values: Values to average

    Returns:
        Mean value

    Raises:
        ValueError: If there are no values
    """
    values_array = np.asarray(list(values), dtype=float)
    if values_array.size == 0:
        raise ValueError("Cannot take the mean of an empty collection")
    return float(np.mean(values_array))


def distinct(coll: Iterable[T]) -> List[T]:
    """
    Return a list with duplicates removed, preserving order.

    Args:
        coll: Collection to process

    Returns:
        List with duplicates removed
    """
    seen = set()
    result = []
    for item in coll:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def prepare_for_json(obj: Any) -> Any:
    """
    Recursively convert numpy and decimal values into JSON-serialisable types.

    Args:
        obj: Object to convert

    Returns:
        Object made of dicts, lists, str, int, float, bool and None
    """
    if isinstance(obj, decimal.Decimal):
        return float(obj)
    elif isinstance(obj, dict):
        return {k: prepare_for_json(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple, set)):
        return [prepare_for_json(item) for item in obj]
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif hasattr(obj, 'tolist'):
        return obj.tolist()
    else:
        return obj

