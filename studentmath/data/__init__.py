"""
Data loading for studentmath.
"""

from studentmath.data.loader import (
    FIELDS, METRIC_FIELDS, Dataset, DatasetValidationError, StudentRecord,
    load_students, load_students_csv, load_students_json, parse_students_csv,
    records_from_dicts, save_students_csv, students_to_csv
)
