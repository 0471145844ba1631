"""FastAPI application entrypoint for stdlib-merger service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import ConfigError, MergerConfig, parse_config
from ..errors import MergerError, ParseError, UnsupportedEcosystemError
from ..models import Pattern
from ..orchestrator import Orchestrator


class LibraryPayload(BaseModel):
    ecosystem: str
    path: str


class AnalyzeRequest(BaseModel):
    libraries: List[LibraryPayload]
    config: Dict[str, Any] = Field(default_factory=dict)


class PatternSummary(BaseModel):
    id: str
    name: str
    category: str
    similarity_score: float
    is_universal: bool
    ecosystems: List[str]


class AnalyzeResponse(BaseModel):
    libraries: Dict[str, int]
    patterns: List[PatternSummary]
    warnings: List[str]


class MergeRequest(AnalyzeRequest):
    output_dir: str


class MergeResponse(BaseModel):
    statistics: Dict[str, Any]
    reports: Dict[str, str]
    modules: List[str]
    warnings: List[str]


class HealthResponse(BaseModel):
    status: str


def _default_orchestrator() -> Orchestrator:
    return Orchestrator()


def _summarize(pattern: Pattern) -> PatternSummary:
    return PatternSummary(
        id=pattern.id,
        name=pattern.name,
        category=pattern.category,
        similarity_score=pattern.similarity_score,
        is_universal=pattern.is_universal,
        ecosystems=list(pattern.implementations),
    )


def _sources(payload: AnalyzeRequest) -> List[tuple[str, str]]:
    return [(library.ecosystem, library.path) for library in payload.libraries]


def _config(payload: AnalyzeRequest) -> MergerConfig:
    return parse_config(payload.config)


async def _in_executor(func: Callable[[], Any]) -> Any:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func)


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing stdlib-merger operations."""
    app = FastAPI(title="stdlib-merger Service", version="0.1.0")

    async def get_orchestrator() -> Orchestrator:
        # A fresh orchestrator per request keeps stage tracking isolated.
        return orchestrator_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/analyze", response_model=AnalyzeResponse)
    async def analyze(
        payload: AnalyzeRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> AnalyzeResponse:
        config = _config(payload)
        analysis = await _in_executor(
            lambda: orchestrator.run_analyze(_sources(payload), config)
        )
        return AnalyzeResponse(
            libraries={library.ecosystem: len(library.functions) for library in analysis.libraries},
            patterns=[_summarize(pattern) for pattern in analysis.patterns],
            warnings=analysis.warnings,
        )

    @app.post("/merge", response_model=MergeResponse)
    async def merge(
        payload: MergeRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> MergeResponse:
        config = _config(payload)
        result = await _in_executor(
            lambda: orchestrator.run_merge(_sources(payload), payload.output_dir, config)
        )
        return MergeResponse(
            statistics=result.statistics,
            reports=result.reports,
            modules=[module.output_path for module in result.extracted_modules],
            warnings=result.warnings,
        )

    @app.exception_handler(ParseError)
    async def parse_error_handler(_: Any, exc: ParseError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(UnsupportedEcosystemError)
    async def unsupported_handler(_: Any, exc: UnsupportedEcosystemError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Any, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(MergerError)
    async def merger_error_handler(_: Any, exc: MergerError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(_: Any, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    host: str = "127.0.0.1", port: int = 8000, *, orchestrator_factory: Optional[Callable[[], Orchestrator]] = None
) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app(orchestrator_factory or _default_orchestrator)
    uvicorn.run(app, host=host, port=port)
