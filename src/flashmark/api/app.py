"""FastAPI application for the flashmark local JSON API."""

import secrets
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .. import __version__
from ..core.model import NoteRecord, Report, SyncPlan
from ..format.cloze import render_clozes


def _record(record: NoteRecord) -> dict[str, Any]:
    return {
        "note_type": record.note_type,
        "deck": record.deck,
        "fields": dict(record.fields),
        "tags": list(record.tags),
    }


def _report(report: Report) -> dict[str, Any]:
    return {
        "kind": report.kind,
        "message": report.message,
        "identifier": report.identifier,
        "span": [report.span.start, report.span.end] if report.span else None,
    }


def plan_to_dict(plan: SyncPlan) -> dict[str, Any]:
    """JSON view of a plan before any identifier is assigned."""
    return {
        "path": plan.document.path,
        "add": [
            {**_record(n.record), "span": [n.span.start, n.span.end]}
            for n in plan.to_add
        ],
        "edit": [
            {"id": e.identifier, **_record(e.record)}
            for e in plan.to_edit
        ],
        "delete": list(plan.to_delete),
        "use_frontmatter_id": plan.state.use_frontmatter_id,
        "reports": [_report(r) for r in plan.reports],
    }


def create_app(runtime: Any, token: str | None = None, enable_cors: bool = False) -> FastAPI:
    """
    Create FastAPI application with runtime injected.

    Args:
        runtime: Runtime instance with storage, store and sync
        token: Bearer token for authentication (None to disable auth)
        enable_cors: Enable CORS middleware

    Returns:
        FastAPI application instance
    """
    app = FastAPI(
        title="Flashmark API",
        description="Local JSON API for syncing Markdown flashcards",
        version=__version__,
        docs_url="/docs" if token is None else None,
        redoc_url="/redoc" if token is None else None,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    if token:
        security_scheme = HTTPBearer(auto_error=False)

        async def verify_token(
            credentials: HTTPAuthorizationCredentials | None = Security(security_scheme),  # noqa: B008
        ) -> None:
            """Verify bearer token."""
            if credentials is None or credentials.credentials != token:
                raise HTTPException(status_code=401, detail="Invalid or missing token")
    else:

        async def verify_token() -> None:
            """No-op when auth is disabled."""
            return None

    @app.get("/health")  # type: ignore[misc]
    async def health(auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Health check endpoint."""
        return {"status": "ok", "version": __version__}

    @app.get("/documents")  # type: ignore[misc]
    def documents(auth: None = Depends(verify_token)) -> dict[str, Any]:
        """List the documents a sync would visit."""
        return {"paths": list(runtime.storage.list_all_paths())}

    # Store calls block, so the handlers below run in the threadpool
    @app.get("/plan")  # type: ignore[misc]
    def plan(
        path: str = Query(..., description="Vault-relative document path"),
        auth: None = Depends(verify_token),
    ) -> dict[str, Any]:
        """Preview what syncing one document would do."""
        doc = runtime.sync.load(path)
        if doc is None:
            raise HTTPException(status_code=404, detail=f"Document {path} not found")
        known_ids = runtime.sync.prepare()
        return plan_to_dict(runtime.sync.plan(doc, known_ids))

    @app.post("/sync")  # type: ignore[misc]
    def sync(
        path: list[str] | None = Query(None, description="Documents (default: whole vault)"),
        dry_run: bool = Query(False),
        force: bool = Query(False),
        auth: None = Depends(verify_token),
    ) -> dict[str, Any]:
        """Run a sync and return its totals."""
        summary = runtime.sync.sync(paths=path, dry_run=dry_run, force=force)
        return {
            "totals": summary.totals(),
            "documents": [
                {
                    "path": d.path,
                    "added": d.added,
                    "updated": d.updated,
                    "deleted": d.deleted,
                    "written": d.written,
                    "error": d.error,
                    "reports": [_report(r) for r in d.reports],
                }
                for d in summary.documents
            ],
        }

    @app.get("/cloze/render")  # type: ignore[misc]
    async def cloze_render(
        text: str = Query(..., description="Text holding {{cN::...}} clozes"),
        highlight: bool = Query(False, description="Wrap answers in <mark>"),
        auth: None = Depends(verify_token),
    ) -> dict[str, Any]:
        """Reveal clozes for reading."""
        return {"text": render_clozes(text, highlight=highlight)}

    return app


def generate_token() -> str:
    """Generate a random bearer token."""
    return secrets.token_urlsafe(32)
