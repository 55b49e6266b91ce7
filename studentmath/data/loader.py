"""
Dataset loading for studentmath.

This module reads student cognitive-skill records from JSON or CSV documents,
validates them against the fixed field schema and exposes them as an
immutable, ordered Dataset backed by a pandas DataFrame.
"""

import csv
import io
import json
import logging
import numbers
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Union

import numpy as np
import pandas as pd

from studentmath.utils.general import distinct

logger = logging.getLogger(__name__)


FIELDS = [
    'student_id',
    'name',
    'class',
    'attention',
    'focus',
    'comprehension',
    'retention',
    'engagement_time',
    'assessment_score',
]

METRIC_FIELDS = FIELDS[3:]

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024


class DatasetValidationError(ValueError):
    """Raised when input records do not match the student record schema."""


class StudentRecord(NamedTuple):
    """A single student's measurements. ``class_name`` holds the ``class`` field."""

    student_id: int
    name: str
    class_name: str
    attention: float
    focus: float
    comprehension: float
    retention: float
    engagement_time: float
    assessment_score: float

    def get(self, field: str) -> Any:
        """Look up a value by its schema field name."""
        if field == 'class':
            return self.class_name
        return getattr(self, field)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary keyed by schema field names."""
        return {field: self.get(field) for field in FIELDS}


class Dataset:
    """
    An ordered, read-only collection of StudentRecords.

    Rows are named by ``student_id`` and columns by schema field, in the
    spirit of a named matrix. Every accessor returns fresh arrays so callers
    can never mutate the snapshot.
    """

    def __init__(self, records: Iterable[StudentRecord]):
        """
        Initialize a Dataset.

        Args:
            records: Student records in their stable output order

        Raises:
            DatasetValidationError: If two records share a student_id
        """
        self._records = tuple(records)

        seen = set()
        for record in self._records:
            if record.student_id in seen:
                raise DatasetValidationError(f"Duplicate student_id: {record.student_id}")
            seen.add(record.student_id)

        self._frame = pd.DataFrame(
            [r.to_dict() for r in self._records],
            columns=FIELDS
        ).set_index('student_id', drop=False)

    @property
    def frame(self) -> pd.DataFrame:
        """Get a copy of the underlying DataFrame."""
        return self._frame.copy()

    def records(self) -> List[StudentRecord]:
        """Get the records in dataset order."""
        return list(self._records)

    def rownames(self) -> List[int]:
        """Get the student ids in dataset order."""
        return [r.student_id for r in self._records]

    def colnames(self) -> List[str]:
        """Get the schema field names."""
        return list(FIELDS)

    def column(self, name: str) -> np.ndarray:
        """
        Get a metric column as a float array.

        Args:
            name: Metric field name

        Returns:
            Column values in dataset order
        """
        if name not in METRIC_FIELDS:
            raise ValueError(f"Unknown metric: {name}")
        return self._frame[name].to_numpy(dtype=float, copy=True)

    def matrix(self, columns: Sequence[str]) -> np.ndarray:
        """
        Get several metric columns as a (rows x columns) float matrix.

        Args:
            columns: Metric field names, in the desired column order

        Returns:
            Matrix with one row per record
        """
        for name in columns:
            if name not in METRIC_FIELDS:
                raise ValueError(f"Unknown metric: {name}")
        return self._frame[list(columns)].to_numpy(dtype=float, copy=True)

    def get_record(self, student_id: int) -> StudentRecord:
        """
        Look up a record by student id.

        Raises:
            KeyError: If no record has this id
        """
        for record in self._records:
            if record.student_id == student_id:
                return record
        raise KeyError(student_id)

    def subset(self, selector: Union[Callable[[StudentRecord], bool], Iterable[int]]) -> 'Dataset':
        """
        Create a new Dataset with a subset of the records.

        Args:
            selector: Either a predicate over records, or a collection of
                student ids to keep

        Returns:
            A new Dataset preserving the original record order
        """
        if callable(selector):
            return Dataset(r for r in self._records if selector(r))

        keep = set(selector)
        return Dataset(r for r in self._records if r.student_id in keep)

    def by_class(self, class_name: str) -> 'Dataset':
        """Records belonging to one class."""
        return self.subset(lambda r: r.class_name == class_name)

    def classes(self) -> List[str]:
        """Distinct class labels in first-seen order."""
        return distinct(r.class_name for r in self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def __repr__(self) -> str:
        return f"Dataset(records={len(self._records)}, classes={len(self.classes())})"


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _to_student_id(value: Any, row: int) -> int:
    if _is_number(value) and float(value).is_integer():
        return int(value)
    raise DatasetValidationError(f"Row {row}: student_id must be an integer, got {value!r}")


def _to_metric(value: Any, field: str, row: int) -> float:
    if not _is_number(value) or not np.isfinite(float(value)):
        raise DatasetValidationError(f"Row {row}: field '{field}' must be numeric, got {value!r}")
    return float(value)


def record_from_dict(row: Dict[str, Any], index: int = 0) -> StudentRecord:
    """
    Build a StudentRecord from a mapping with exactly the schema fields.

    Args:
        row: Mapping of field name to value
        index: Position of the row, used in error messages

    Returns:
        Validated StudentRecord
    """
    if not isinstance(row, dict):
        raise DatasetValidationError(f"Row {index}: expected an object, got {type(row).__name__}")

    missing = [f for f in FIELDS if f not in row]
    if missing:
        raise DatasetValidationError(f"Row {index}: missing fields {missing}")

    extra = [k for k in row if k not in FIELDS]
    if extra:
        raise DatasetValidationError(f"Row {index}: unexpected fields {extra}")

    return StudentRecord(
        student_id=_to_student_id(row['student_id'], index),
        name=str(row['name']),
        class_name=str(row['class']),
        **{field: _to_metric(row[field], field, index) for field in METRIC_FIELDS}
    )


def records_from_dicts(rows: Iterable[Dict[str, Any]]) -> Dataset:
    """
    Validate a sequence of mappings and build a Dataset.

    Args:
        rows: Record mappings

    Returns:
        Dataset in input order

    Raises:
        DatasetValidationError: On any schema violation or an empty input
    """
    records = [record_from_dict(row, i) for i, row in enumerate(rows)]
    if not records:
        raise DatasetValidationError("Dataset is empty")
    return Dataset(records)


def parse_students_csv(text: str, max_bytes: Optional[int] = DEFAULT_MAX_UPLOAD_BYTES) -> Dataset:
    """
    Parse CSV text whose first row is exactly the schema header.

    Args:
        text: CSV document
        max_bytes: Maximum accepted size in bytes, or None for no limit

    Returns:
        Dataset in file order
    """
    if max_bytes is not None and len(text.encode('utf-8')) > max_bytes:
        raise DatasetValidationError(f"CSV too large (max {max_bytes} bytes)")

    if not text.strip():
        raise DatasetValidationError("Empty CSV")

    try:
        raw = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise DatasetValidationError(f"Malformed CSV: {e}") from e

    header = [str(h).strip() for h in raw.iloc[0]]
    if header != FIELDS:
        raise DatasetValidationError(
            f"Invalid CSV header: expected {','.join(FIELDS)}, got {','.join(header)}"
        )

    df = raw.iloc[1:].copy()
    df.columns = FIELDS

    # Rows made only of empty cells are treated like blank lines
    cells = df.fillna('').to_numpy(dtype=str)
    blank = (np.char.strip(cells) == '').all(axis=1)
    df = df[~blank].reset_index(drop=True)

    if df.isna().any().any():
        row = int(df.isna().any(axis=1).to_numpy().argmax())
        raise DatasetValidationError(f"Row {row}: missing fields")

    for field in ['student_id'] + METRIC_FIELDS:
        parsed = pd.to_numeric(df[field].str.strip(), errors='coerce')
        bad = parsed.isna() | ~np.isfinite(parsed.astype(float))
        if bad.any():
            row = int(bad.to_numpy().argmax())
            raise DatasetValidationError(
                f"Row {row}: field '{field}' must be numeric, got {df[field].iloc[row]!r}"
            )
        df[field] = parsed

    return records_from_dicts(df.to_dict(orient='records'))


def load_students_csv(path: Union[str, Path], max_bytes: Optional[int] = None) -> Dataset:
    """
    Load a Dataset from a CSV file.

    Args:
        path: Path to the CSV file
        max_bytes: Optional size limit

    Returns:
        Dataset
    """
    path = Path(path)
    logger.info(f"Loading students from CSV {path}")
    dataset = parse_students_csv(path.read_text(encoding='utf-8'), max_bytes=max_bytes)
    logger.info(f"Loaded {len(dataset)} students in {len(dataset.classes())} classes")
    return dataset


def load_students_json(path: Union[str, Path]) -> Dataset:
    """
    Load a Dataset from a JSON file holding an array of records.

    Args:
        path: Path to the JSON file

    Returns:
        Dataset
    """
    path = Path(path)
    logger.info(f"Loading students from JSON {path}")
    with open(path, 'r', encoding='utf-8') as f:
        try:
            rows = json.load(f)
        except json.JSONDecodeError as e:
            raise DatasetValidationError(f"Malformed JSON: {e}") from e

    if not isinstance(rows, list):
        raise DatasetValidationError("Expected a JSON array of student records")

    dataset = records_from_dicts(rows)
    logger.info(f"Loaded {len(dataset)} students in {len(dataset.classes())} classes")
    return dataset


def load_students(path: Union[str, Path], max_bytes: Optional[int] = None) -> Dataset:
    """
    Load a Dataset, choosing the reader from the file extension.

    Args:
        path: Path to a ``.json`` or ``.csv`` file
        max_bytes: Optional size limit for CSV files

    Returns:
        Dataset
    """
    suffix = Path(path).suffix.lower()
    if suffix == '.json':
        return load_students_json(path)
    elif suffix == '.csv':
        return load_students_csv(path, max_bytes=max_bytes)
    else:
        raise ValueError(f"Unsupported dataset format: {path}")


def _format_cell(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def students_to_csv(dataset: Dataset) -> str:
    """
    Render a Dataset as CSV text with the schema header.

    Cells containing quotes, commas or newlines are quoted.

    Args:
        dataset: Dataset to export

    Returns:
        CSV document
    """
    df = dataset.frame[FIELDS].copy()
    for field in FIELDS:
        df[field] = df[field].map(_format_cell)
    return df.to_csv(index=False, quoting=csv.QUOTE_MINIMAL, lineterminator='\n')


def save_students_csv(dataset: Dataset, path: Union[str, Path]) -> None:
    """
    Write a Dataset to a CSV file.

    Args:
        dataset: Dataset to export
        path: Destination path
    """
    with open(path, 'w', encoding='utf-8', newline='') as f:
        f.write(students_to_csv(dataset))
