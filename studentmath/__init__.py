"""
Studentmath package for student cognitive-skill analysis.

Computes metric correlations, a closed-form regression of the assessment
score on skill features, and k-means personas, from a validated dataset.
"""

__version__ = '0.1.0'

from studentmath.components.config import Config, ConfigManager
from studentmath.data.loader import Dataset, DatasetValidationError, StudentRecord, load_students
from studentmath.pipeline import AnalysisResult, run_analysis, run_pipeline, write_artifacts
