"""
Analysis pipeline for studentmath.

Loads a dataset, runs the correlation, regression and clustering engines
and writes their documents for the dashboard.
"""

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

from studentmath.components.config import Config
from studentmath.data.loader import Dataset, load_students
from studentmath.math.clusters import DEFAULT_ITERATIONS, DEFAULT_K, cluster_dataset, make_rng
from studentmath.math.corr import compute_correlation
from studentmath.math.regression import fit_ols, model_to_dict
from studentmath.math.summary import summarize
from studentmath.utils.general import prepare_for_json

logger = logging.getLogger(__name__)


ARTIFACT_FILES = {
    'correlations': 'correlations.json',
    'model': 'model.json',
    'personas': 'personas.json',
    'summary': 'summary.json',
}


class AnalysisResult:
    """
    The documents produced by one analysis run.
    """

    def __init__(self,
                 correlations: Dict[str, Any],
                 model: Dict[str, Any],
                 personas: Dict[str, Any],
                 summary: Dict[str, Any]):
        self.correlations = correlations
        self.model = model
        self.personas = personas
        self.summary = summary

    def to_dict(self) -> Dict[str, Any]:
        """All documents keyed by artifact name, JSON-ready."""
        return prepare_for_json({
            'correlations': self.correlations,
            'model': self.model,
            'personas': self.personas,
            'summary': self.summary
        })

    def __repr__(self) -> str:
        return (f"AnalysisResult(students={len(self.personas['personas'])}, "
                f"r2={self.model['metrics']['r2']:.3f})")


def run_analysis(dataset: Dataset,
                 k: int = DEFAULT_K,
                 iterations: int = DEFAULT_ITERATIONS,
                 rng: Any = None,
                 strict: bool = False,
                 precision: int = 3) -> AnalysisResult:
    """
    Run every engine on a dataset.

    Args:
        dataset: Validated dataset
        k: Number of personas
        iterations: Number of k-means rounds
        rng: Random generator for persona seeding (entropy seeded if None)
        strict: Fail on a singular regression system instead of approximating
        precision: Decimal digits kept in correlation coefficients

    Returns:
        Fresh AnalysisResult
    """
    if len(dataset) == 0:
        raise ValueError("Cannot analyse an empty dataset")

    start_time = time.time()

    correlations = compute_correlation(dataset, precision=precision)
    logger.info(f"[{time.time() - start_time:.2f}s] Correlations computed")

    model = model_to_dict(fit_ols(dataset, strict=strict))
    logger.info(f"[{time.time() - start_time:.2f}s] Regression fitted "
                f"(r2={model['metrics']['r2']:.4f}, mae={model['metrics']['mae']:.4f})")
    if model['provenance']['approximate']:
        logger.warning(f"Regression used {model['provenance']['pivot_substitutions']} "
                       "substituted pivots; coefficients are approximate")

    personas = cluster_dataset(dataset, k=k, iterations=iterations, rng=rng)
    logger.info(f"[{time.time() - start_time:.2f}s] Clustered {len(dataset)} students into {k} personas")

    summary = summarize(dataset, personas)

    return AnalysisResult(correlations, model, personas, summary)


def write_artifacts(result: AnalysisResult, out_dir: Union[str, Path]) -> Dict[str, Path]:
    """
    Write every document of a result as JSON.

    Documents are serialised first, then written to temporary files in
    ``out_dir`` and renamed into place. A failure while rendering or writing
    leaves no new artifacts. A failed rename removes the staged files that
    were not yet moved; the artifacts renamed before it are already in
    place, and the error is logged and re-raised.

    Args:
        result: Result from run_analysis
        out_dir: Output directory (created if missing)

    Returns:
        Mapping artifact name -> written path
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    documents = result.to_dict()
    rendered = {name: json.dumps(documents[name], indent=2) for name in ARTIFACT_FILES}

    staged = {}
    try:
        for name, filename in ARTIFACT_FILES.items():
            fd, tmp_path = tempfile.mkstemp(prefix=f".{filename}.", dir=str(out_dir))
            staged[name] = tmp_path
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(rendered[name])
    except OSError:
        for tmp_path in staged.values():
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
        raise

    written = {}
    try:
        for name, tmp_path in staged.items():
            target = out_dir / ARTIFACT_FILES[name]
            os.replace(tmp_path, target)
            written[name] = target
    except OSError:
        for name, tmp_path in staged.items():
            if name not in written and os.path.exists(tmp_path):
                os.remove(tmp_path)
        logger.error(f"Renaming artifacts failed; already replaced: {sorted(written)}")
        raise

    logger.info(f"Analysis artifacts written to {out_dir}")
    return written


def run_pipeline(config: Config, dataset: Optional[Dataset] = None) -> AnalysisResult:
    """
    Load, analyse and write, as configured.

    Args:
        config: Configuration
        dataset: Already loaded dataset; read from ``data.path`` if None

    Returns:
        The AnalysisResult that was written
    """
    start_time = time.time()

    if dataset is None:
        path = config.get('data.path')
        logger.info(f"[{time.time() - start_time:.2f}s] Loading dataset from {path}")
        dataset = load_students(path, max_bytes=config.get('data.max-upload-bytes'))

    seed = config.get('clustering.seed')
    result = run_analysis(
        dataset,
        k=config.get('clustering.k', DEFAULT_K),
        iterations=config.get('clustering.iterations', DEFAULT_ITERATIONS),
        rng=make_rng(seed),
        strict=config.get('regression.strict', False),
        precision=config.get('correlation.precision', 3)
    )

    write_artifacts(result, config.get('output.dir'))
    logger.info(f"[{time.time() - start_time:.2f}s] Pipeline complete")

    return result
