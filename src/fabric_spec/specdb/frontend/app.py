from __future__ import annotations

import os
from typing import Any, List, Optional

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route
from starlette.staticfiles import StaticFiles

from ...errors import FabricSpecError, InputError
from ...logging import get_logger
from ...paths import find_project_root
from ..constants import MATERIAL_LABELS
from ..inventory import label_material
from ..service import FabricSpecService


LOG = get_logger("fabric-spec-frontend")

DEFAULT_STATIC_SUBDIR = os.path.join("frontend", "fabric-spec-ui", "dist")


def _parse_int(value: Optional[str], *, default: int, minimum: int, maximum: int) -> int:
    try:
        parsed = int(value) if value is not None else default
    except (TypeError, ValueError):
        parsed = default
    if parsed < minimum:
        return minimum
    if parsed > maximum:
        return maximum
    return parsed


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        raise InputError("Request body must be JSON") from exc


async def _fabric_spec_error(request: Request, exc: FabricSpecError) -> JSONResponse:
    if exc.status_code >= 500:
        LOG.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        LOG.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(exc.as_payload(), status_code=exc.status_code)


def create_app(
    root_dir: Optional[str] = None,
    *,
    service: Optional[FabricSpecService] = None,
    static_dir: Optional[str] = None,
    allow_origins: Optional[List[str]] = None,
    serve_static: bool = True,
) -> Starlette:
    """Create a Starlette app exposing the analysis/review API and optional frontend."""

    project_root = find_project_root(root_dir)
    svc = service or FabricSpecService(root_dir=project_root)

    resolved_static_dir: Optional[str] = None
    if serve_static:
        candidate = os.path.abspath(os.path.join(project_root, static_dir or DEFAULT_STATIC_SUBDIR))
        if os.path.isdir(candidate):
            resolved_static_dir = candidate
            LOG.info("Serving static frontend from %s", resolved_static_dir)
        else:
            LOG.warning("Frontend build not found at %s; API will run without static assets.", candidate)

    async def health(_: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "db_path": svc.db.db_path})

    async def analyze(request: Request) -> JSONResponse:
        body = await _json_body(request)
        if not isinstance(body, dict) or not body.get("image"):
            raise InputError("Image is required")
        payload = await run_in_threadpool(svc.analyze, body["image"], body.get("generation"))
        return JSONResponse(payload)

    async def review_detail(request: Request) -> JSONResponse:
        return JSONResponse(svc.get_review(request.path_params["session_id"]))

    async def review_edit(request: Request) -> JSONResponse:
        body = await _json_body(request)
        edits = body.get("fields") if isinstance(body, dict) else None
        if edits is None:
            raise InputError("'fields' is required")
        return JSONResponse(svc.edit_review(request.path_params["session_id"], edits))

    async def review_commit(request: Request) -> JSONResponse:
        stored = svc.commit_review(request.path_params["session_id"])
        return JSONResponse(stored.as_dict(), status_code=201)

    async def review_discard(request: Request) -> JSONResponse:
        svc.discard_review(request.path_params["session_id"])
        return JSONResponse({"status": "discarded"})

    async def search_material(request: Request) -> JSONResponse:
        result = await run_in_threadpool(svc.lookup_material, request.query_params.get("artcno"))
        return JSONResponse(result.raw if result.raw is not None else [])

    async def materials(request: Request) -> JSONResponse:
        result = await run_in_threadpool(svc.lookup_material, request.query_params.get("artcno"))
        return JSONResponse(
            {
                "code": result.code,
                "found": result.found,
                "message": None if result.found else "조회 결과가 없습니다.",
                "items": [{"artcno": r.artcno, "rows": label_material(r)} for r in result.records],
            }
        )

    async def material_labels(_: Request) -> JSONResponse:
        return JSONResponse(MATERIAL_LABELS)

    async def specs(request: Request) -> JSONResponse:
        qp = request.query_params
        limit = _parse_int(qp.get("limit"), default=25, minimum=1, maximum=200)
        page = _parse_int(qp.get("page"), default=0, minimum=0, maximum=100_000)
        payload = svc.list_records(limit=limit, offset=limit * page, search=qp.get("search") or None)
        payload.update({"page": page})
        return JSONResponse(payload)

    async def spec_detail(request: Request) -> JSONResponse:
        record = svc.get_record(int(request.path_params["spec_id"]))
        if record is None:
            raise HTTPException(status_code=404, detail="Fabric spec not found")
        return JSONResponse(record.as_dict())

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/analyze", analyze, methods=["POST"]),
        Route("/api/reviews/{session_id:str}", review_detail, methods=["GET"]),
        Route("/api/reviews/{session_id:str}", review_edit, methods=["PATCH"]),
        Route("/api/reviews/{session_id:str}", review_discard, methods=["DELETE"]),
        Route("/api/reviews/{session_id:str}/commit", review_commit, methods=["POST"]),
        Route("/api/search-material", search_material, methods=["GET"]),
        Route("/api/materials", materials, methods=["GET"]),
        Route("/api/material-labels", material_labels, methods=["GET"]),
        Route("/api/specs", specs, methods=["GET"]),
        Route("/api/specs/{spec_id:int}", spec_detail, methods=["GET"]),
    ]

    if resolved_static_dir:
        routes.append(Mount("/", StaticFiles(directory=resolved_static_dir, html=True), name="frontend"))
    else:
        async def api_only(_: Request) -> JSONResponse:
            return JSONResponse({"detail": "Fabric spec API is running. Static frontend not served."})

        routes.append(Route("/", api_only, methods=["GET"]))

    app = Starlette(
        debug=False,
        routes=routes,
        exception_handlers={FabricSpecError: _fabric_spec_error},
    )

    origins = allow_origins or ["http://localhost:5173", "http://127.0.0.1:5173"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if "*" in origins else origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


__all__ = ["create_app"]
