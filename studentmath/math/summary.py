"""
Dataset summaries for studentmath.

Headline averages, class cohorts and persona distribution, computed from
the same dataset snapshot as the engines.
"""

from typing import Any, Dict, Optional

from studentmath.data.loader import Dataset
from studentmath.math.clusters import persona_counts
from studentmath.math.corr import skill_vs_score
from studentmath.utils.general import mean, round_half_up


KPI_FIELDS = {
    'attention': 'attention',
    'focus': 'focus',
    'comprehension': 'comprehension',
    'retention': 'retention',
    'score': 'assessment_score',
}


def kpis(dataset: Dataset) -> Dict[str, int]:
    """
    Headline figures for a dataset.

    Args:
        dataset: Dataset to summarise

    Returns:
        {'count', 'attention', 'focus', 'comprehension', 'retention', 'score'},
        each metric being the mean rounded to an integer
    """
    if len(dataset) == 0:
        raise ValueError("Cannot summarise an empty dataset")

    result = {'count': len(dataset)}
    for key, field in KPI_FIELDS.items():
        result[key] = round_half_up(mean(dataset.column(field)))
    return result


def cohort(dataset: Dataset, student_id: int) -> Dataset:
    """
    The students sharing a class with the given student.

    Args:
        dataset: Dataset to select from
        student_id: Selected student

    Returns:
        Dataset of the selected student's class, selected student included

    Raises:
        KeyError: If the student is not in the dataset
    """
    selected = dataset.get_record(student_id)
    return dataset.by_class(selected.class_name)


def cohort_skill_vs_score(dataset: Dataset, student_id: int) -> Dict[str, Any]:
    """Skill/score correlations within a student's class."""
    members = cohort(dataset, student_id)
    return {
        'student_id': student_id,
        'class': dataset.get_record(student_id).class_name,
        'size': len(members),
        'skill_vs_score': skill_vs_score(members)
    }


def summarize(dataset: Dataset, personas_doc: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Build the summary document.

    Args:
        dataset: Dataset to summarise
        personas_doc: Optional result from cluster_dataset

    Returns:
        {'kpis', 'classes', 'skill_vs_score', 'persona_counts'}
    """
    return {
        'kpis': kpis(dataset),
        'classes': dataset.classes(),
        'skill_vs_score': skill_vs_score(dataset),
        'persona_counts': persona_counts(personas_doc) if personas_doc is not None else []
    }
