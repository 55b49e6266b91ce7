"""
Server component for studentmath.

This module provides a FastAPI server that runs the analysis pipeline on
uploaded student records and returns the result documents.
"""

import logging
from typing import Any, Dict, List, Optional

import fastapi
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from studentmath import __version__
from studentmath.components.config import Config, ConfigManager
from studentmath.data.loader import DatasetValidationError, parse_students_csv, records_from_dicts
from studentmath.math.clusters import make_rng
from studentmath.math.regression import SingularMatrixError
from studentmath.math.summary import cohort_skill_vs_score
from studentmath.pipeline import run_analysis

# Set up logging
logger = logging.getLogger(__name__)


class AnalysisRequest(BaseModel):
    """Analysis request model."""

    students: List[Dict[str, Any]]
    seed: Optional[int] = None


class CohortRequest(BaseModel):
    """Cohort request model."""

    students: List[Dict[str, Any]]


class Server:
    """
    FastAPI server for studentmath.
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize a server.

        Args:
            config: Configuration for the server
        """
        self.config = config or ConfigManager.get_config()

        self.app = FastAPI(
            title="Student Analytics API",
            description="Correlation, regression and persona clustering of student skill data",
            version=__version__
        )

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self._setup_routes()
        self._setup_validation()
        self._setup_error_handling()

    def _analyse(self, dataset, seed: Optional[int]) -> Dict[str, Any]:
        if seed is None:
            seed = self.config.get('clustering.seed')

        result = run_analysis(
            dataset,
            k=self.config.get('clustering.k', 3),
            iterations=self.config.get('clustering.iterations', 20),
            rng=make_rng(seed),
            strict=self.config.get('regression.strict', False),
            precision=self.config.get('correlation.precision', 3)
        )
        return result.to_dict()

    def _setup_routes(self) -> None:
        """
        Set up API routes.
        """
        @self.app.get("/health")
        async def health_check():
            return {"status": "ok"}

        @self.app.post("/api/v1/analysis")
        async def analyse_records(analysis_request: AnalysisRequest):
            dataset = records_from_dicts(analysis_request.students)
            logger.info(f"Analysing {len(dataset)} uploaded records")
            return self._analyse(dataset, analysis_request.seed)

        @self.app.post("/api/v1/analysis/csv")
        async def analyse_csv(request: Request, seed: Optional[int] = None):
            max_bytes = self.config.get('data.max-upload-bytes')
            body = await request.body()

            if max_bytes is not None and len(body) > max_bytes:
                raise DatasetValidationError(f"CSV too large (max {max_bytes} bytes)")

            try:
                text = body.decode('utf-8-sig')
            except UnicodeDecodeError as e:
                raise DatasetValidationError("CSV must be UTF-8 encoded") from e

            dataset = parse_students_csv(text, max_bytes=max_bytes)
            logger.info(f"Analysing {len(dataset)} records from CSV upload")
            return self._analyse(dataset, seed)

        @self.app.post("/api/v1/cohort/{student_id}")
        async def cohort_view(student_id: int, cohort_request: CohortRequest):
            dataset = records_from_dicts(cohort_request.students)
            try:
                return cohort_skill_vs_score(dataset, student_id)
            except KeyError:
                raise HTTPException(status_code=404, detail=f"Unknown student_id: {student_id}")

    def _setup_validation(self) -> None:
        """
        Set up request validation.
        """
        @self.app.exception_handler(fastapi.exceptions.RequestValidationError)
        async def validation_exception_handler(request, exc):
            return JSONResponse(
                status_code=422,
                content={"detail": str(exc)}
            )

        @self.app.exception_handler(DatasetValidationError)
        async def dataset_exception_handler(request, exc):
            logger.info(f"Rejected dataset: {exc}")
            return JSONResponse(
                status_code=422,
                content={"detail": str(exc)}
            )

        @self.app.exception_handler(SingularMatrixError)
        async def singular_exception_handler(request, exc):
            return JSONResponse(
                status_code=422,
                content={"detail": str(exc)}
            )

    def _setup_error_handling(self) -> None:
        """
        Set up error handling.
        """
        @self.app.exception_handler(Exception)
        async def generic_exception_handler(request, exc):
            logger.exception("Unhandled exception")
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal server error"}
            )

    def run(self) -> None:
        """
        Serve the API until interrupted.
        """
        import uvicorn

        port = self.config.get('server.port', 8080)
        host = self.config.get('server.host', 'localhost')

        logger.info(f"Server starting at http://{host}:{port}")
        uvicorn.run(
            self.app,
            host=host,
            port=port,
            log_level=self.config.get('logging.level', 'info')
        )
