"""
Pytest configuration and fixtures for studentmath tests.
"""

import os
import sys

import numpy as np
import pytest

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from studentmath.components.config import ConfigManager
from studentmath.data.loader import records_from_dicts


class FixedIndexRng:
    """Stand-in generator whose ``integers`` returns preset row indices."""

    def __init__(self, indices):
        self.indices = list(indices)
        self.calls = []

    def integers(self, low, high, size=None):
        self.calls.append((low, high, size))
        return np.array(self.indices[:size])


def student(student_id, attention=50.0, focus=50.0, comprehension=50.0, retention=50.0,
            engagement_time=30.0, assessment_score=60.0, name=None, class_name='A'):
    """Build one record mapping with sensible defaults."""
    return {
        'student_id': student_id,
        'name': name or f"Student {student_id}",
        'class': class_name,
        'attention': attention,
        'focus': focus,
        'comprehension': comprehension,
        'retention': retention,
        'engagement_time': engagement_time,
        'assessment_score': assessment_score,
    }


@pytest.fixture
def fixed_rng():
    """Factory for FixedIndexRng."""
    return FixedIndexRng


@pytest.fixture
def make_student():
    """Factory for record mappings."""
    return student


@pytest.fixture
def four_students():
    """Two low-attention and two high-attention students; other skills constant."""
    attention = [10, 90, 12, 88]
    scores = [20, 95, 22, 93]
    return records_from_dicts([
        student(i + 1, attention=a, assessment_score=s, class_name='A' if i < 2 else 'B')
        for i, (a, s) in enumerate(zip(attention, scores))
    ])


@pytest.fixture
def random_students():
    """Forty students with independent random skills and a noisy linear score."""
    rng = np.random.default_rng(7)
    rows = []
    for i in range(40):
        skills = rng.uniform(20, 100, size=5)
        score = 5 + 0.4 * skills[0] + 0.3 * skills[2] + rng.normal(0, 3)
        rows.append(student(
            100 + i,
            attention=float(skills[0]),
            focus=float(skills[1]),
            comprehension=float(skills[2]),
            retention=float(skills[3]),
            engagement_time=float(skills[4]),
            assessment_score=float(score),
            class_name=['A', 'B', 'C'][i % 3]
        ))
    return records_from_dicts(rows)


@pytest.fixture(autouse=True)
def reset_config_manager():
    """Keep the configuration singleton from leaking between tests."""
    ConfigManager.reset()
    yield
    ConfigManager.reset()
