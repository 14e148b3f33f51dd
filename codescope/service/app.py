"""FastAPI application entrypoint for codescope service mode."""

from __future__ import annotations

import asyncio
import threading
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import CodeScopeConfig, load_config
from ..fetch import parse_repo_url
from ..models import Audit, Finding
from ..orchestrator import ScanOrchestrator, build_orchestrator

Category = Literal["security", "stability", "maintainability", "scalability", "cicd"]
Severity = Literal["critical", "high", "medium", "low"]
Effort = Literal["S", "M", "L"]
FindingStatus = Literal["open", "acknowledged", "resolved", "wont_fix"]


class HealthResponse(BaseModel):
    status: str


class CreateAuditRequest(BaseModel):
    repo_url: str


class ScanLogEntryModel(BaseModel):
    step: str
    status: str
    message: str
    timestamp: str


class RemediationPhaseModel(BaseModel):
    phase: str
    days: str
    tasks: List[str]


class TreeEntryModel(BaseModel):
    path: str
    type: str
    size: Optional[int] = None


class AuditResponse(BaseModel):
    id: str
    owner_name: str
    repo_name: str
    repo_url: str
    status: str
    scores: Optional[Dict[str, int]] = None
    executive_summary: Optional[str] = None
    remediation_plan: Optional[List[RemediationPhaseModel]] = None
    repo_meta: Optional[Dict[str, Any]] = None
    file_tree: List[TreeEntryModel] = []
    scan_log: List[ScanLogEntryModel] = []
    scanned_at: Optional[str] = None
    created_at: str


class CreateFindingRequest(BaseModel):
    category: Category
    severity: Severity
    title: str
    description: str = ""
    business_impact: str = ""
    fix_steps: str = ""
    effort: Effort = "S"
    file_path: Optional[str] = None
    line_start: Optional[int] = None
    line_end: Optional[int] = None
    code_snippet: Optional[str] = None


class UpdateFindingRequest(BaseModel):
    status: Optional[FindingStatus] = None
    category: Optional[Category] = None
    severity: Optional[Severity] = None
    effort: Optional[Effort] = None
    title: Optional[str] = None
    description: Optional[str] = None
    business_impact: Optional[str] = None
    fix_steps: Optional[str] = None


class FindingResponse(BaseModel):
    id: str
    audit_id: str
    category: str
    severity: str
    title: str
    description: str
    business_impact: str
    fix_steps: str
    effort: str
    file_path: Optional[str] = None
    line_start: Optional[int] = None
    line_end: Optional[int] = None
    code_snippet: Optional[str] = None
    status: str
    auto_detected: bool


class ScanStartResponse(BaseModel):
    accepted: bool
    reason: str


class ScanStatusResponse(BaseModel):
    status: str
    scan_log: List[ScanLogEntryModel]
    scanned_at: Optional[str] = None


def _default_orchestrator(config: CodeScopeConfig | None = None) -> Callable[[], ScanOrchestrator]:
    def factory() -> ScanOrchestrator:
        return build_orchestrator(config or load_config(Path.cwd()))

    return factory


def create_app(
    orchestrator_factory: Callable[[], ScanOrchestrator] | None = None,
) -> FastAPI:
    """Create the FastAPI application exposing audit and scan operations."""

    factory = orchestrator_factory or _default_orchestrator()
    holder: Dict[str, ScanOrchestrator] = {}
    holder_lock = threading.Lock()

    def _orchestrator() -> ScanOrchestrator:
        # Scans outlive requests, so one orchestrator serves the whole app.
        with holder_lock:
            if "instance" not in holder:
                holder["instance"] = factory()
            return holder["instance"]

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        instance = holder.get("instance")
        if instance is not None:
            instance.shutdown(wait=False)

    app = FastAPI(title="CodeScope Service", version="0.1.0", lifespan=lifespan)

    async def get_orchestrator() -> ScanOrchestrator:
        return _orchestrator()

    def _require_audit(orchestrator: ScanOrchestrator, audit_id: str) -> Audit:
        audit = orchestrator.store.get_audit(audit_id)
        if audit is None:
            raise HTTPException(status_code=404, detail=f"Audit {audit_id} not found")
        return audit

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/audits", response_model=AuditResponse, status_code=201)
    async def create_audit(
        payload: CreateAuditRequest,
        orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    ) -> AuditResponse:
        owner, name = parse_repo_url(payload.repo_url)
        audit = orchestrator.store.create_audit(owner, name, repo_url=payload.repo_url.strip())
        return _audit_response(audit)

    @app.get("/audits", response_model=List[AuditResponse])
    async def list_audits(
        orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    ) -> List[AuditResponse]:
        return [_audit_response(audit) for audit in orchestrator.store.list_audits()]

    @app.get("/audits/{audit_id}", response_model=AuditResponse)
    async def get_audit(
        audit_id: str,
        orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    ) -> AuditResponse:
        return _audit_response(_require_audit(orchestrator, audit_id))

    @app.delete("/audits/{audit_id}", status_code=204)
    async def delete_audit(
        audit_id: str,
        orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    ) -> Response:
        try:
            deleted = orchestrator.store.delete_audit(audit_id)
        except ValueError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        if not deleted:
            raise HTTPException(status_code=404, detail=f"Audit {audit_id} not found")
        return Response(status_code=204)

    @app.get("/audits/{audit_id}/findings", response_model=List[FindingResponse])
    async def list_findings(
        audit_id: str,
        orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    ) -> List[FindingResponse]:
        _require_audit(orchestrator, audit_id)
        return [_finding_response(item) for item in orchestrator.store.list_findings(audit_id)]

    @app.post("/audits/{audit_id}/findings", response_model=FindingResponse, status_code=201)
    async def create_finding(
        audit_id: str,
        payload: CreateFindingRequest,
        orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    ) -> FindingResponse:
        _require_audit(orchestrator, audit_id)
        finding = Finding(auto_detected=False, **payload.model_dump())
        return _finding_response(orchestrator.store.create_finding(audit_id, finding))

    @app.patch("/findings/{finding_id}", response_model=FindingResponse)
    async def update_finding(
        finding_id: str,
        payload: UpdateFindingRequest,
        orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    ) -> FindingResponse:
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        updated = orchestrator.store.update_finding(finding_id, **changes)
        if updated is None:
            raise HTTPException(status_code=404, detail=f"Finding {finding_id} not found")
        return _finding_response(updated)

    @app.delete("/findings/{finding_id}", status_code=204)
    async def delete_finding(
        finding_id: str,
        orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    ) -> Response:
        if not orchestrator.store.delete_finding(finding_id):
            raise HTTPException(status_code=404, detail=f"Finding {finding_id} not found")
        return Response(status_code=204)

    @app.post("/audits/{audit_id}/scan", response_model=ScanStartResponse, status_code=202)
    async def start_scan(
        audit_id: str,
        orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    ) -> ScanStartResponse:
        _require_audit(orchestrator, audit_id)
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, orchestrator.start_scan, audit_id)
        if not result.accepted:
            raise HTTPException(status_code=409, detail=result.reason)
        return ScanStartResponse(accepted=result.accepted, reason=result.reason)

    @app.get("/audits/{audit_id}/scan-status", response_model=ScanStatusResponse)
    async def scan_status(
        audit_id: str,
        orchestrator: ScanOrchestrator = Depends(get_orchestrator),
    ) -> ScanStatusResponse:
        audit = _require_audit(orchestrator, audit_id)
        return ScanStatusResponse(
            status=audit.status,
            scan_log=[ScanLogEntryModel(**asdict(entry)) for entry in audit.scan_log],
            scanned_at=audit.scanned_at,
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(_: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def _audit_response(audit: Audit) -> AuditResponse:
    payload = asdict(audit)
    return AuditResponse(**payload)


def _finding_response(finding: Finding) -> FindingResponse:
    return FindingResponse(**asdict(finding))


def run_service(
    host: str = "127.0.0.1",
    port: int = 8000,
    *,
    config: CodeScopeConfig | None = None,
) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app(_default_orchestrator(config))
    uvicorn.run(app, host=host, port=port)


__all__ = ["create_app", "run_service"]
