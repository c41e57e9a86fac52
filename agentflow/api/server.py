"""
Agent Flow Studio - FastAPI Server
REST surface for the visual flow editor: compile a script document to a flow
graph, re-run layout and data-edge annotation, validate edits, and rebuild
the script document on save.
"""

import json
import logging
from typing import List, Dict, Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError as SchemaError

from agentflow.config.settings import settings
from agentflow.flow.actions import ScriptDocument
from agentflow.flow.catalog import list_blocks
from agentflow.flow.dataflow import annotate_data_edges
from agentflow.flow.graph import FlowGraph, FlowNode, FlowEdge
from agentflow.flow.layout import LayoutEngine
from agentflow.flow.reconstructor import reconstruct
from agentflow.flow.session import load_flow
from agentflow.flow.validator import validate_flow

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


# ── Request Models ────────────────────────────────────────────────────────────

class GraphRequest(BaseModel):
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)


class ReconstructRequest(GraphRequest):
    original: Dict[str, Any] = Field(default_factory=dict)
    force: bool = False


def _graph_response(graph: FlowGraph) -> Dict[str, Any]:
    return graph.to_dict()


def _schema_error(e: SchemaError) -> HTTPException:
    return HTTPException(422, detail=json.loads(e.json(include_url=False)))


_openapi_tags = [
    {"name": "System", "description": "Health and catalog"},
    {"name": "Flows", "description": "Script document <-> flow graph conversion, layout, validation"},
]

app = FastAPI(
    title=settings.api_title or "Agent Flow Studio",
    description="Visual authoring core for browser-automation agent scripts.",
    version="1.0.0",
    openapi_tags=_openapi_tags,
    docs_url="/docs",
    redoc_url="/redoc",
)

_cors_origins_raw = settings.cors_allowed_origins
_cors_origins = ["*"] if _cors_origins_raw.strip() == "*" else [o.strip() for o in _cors_origins_raw.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ══════════════════════════════════════════════════════════════════
# SYSTEM
# ══════════════════════════════════════════════════════════════════

@app.get("/health", tags=["System"])
async def health():
    return {"status": "ok", "environment": settings.environment}


@app.get("/catalog", tags=["System"])
async def catalog():
    """Palette blocks with defaults and required fields."""
    blocks = list_blocks()
    return {"count": len(blocks), "blocks": [b.model_dump(mode="json") for b in blocks]}


# ══════════════════════════════════════════════════════════════════
# FLOWS
# ══════════════════════════════════════════════════════════════════

@app.post("/flows/compile", tags=["Flows"])
async def compile_flow(document: Dict[str, Any]):
    """Compile a script document into a laid-out, annotated flow graph."""
    try:
        graph = load_flow(ScriptDocument.from_dict(document))
    except SchemaError as e:
        raise _schema_error(e)
    logger.info(f"Compiled flow: {len(graph.nodes)} nodes, {len(graph.edges)} edges")
    return _graph_response(graph)


@app.post("/flows/layout", tags=["Flows"])
async def layout_flow(req: GraphRequest):
    graph = LayoutEngine().apply(FlowGraph(nodes=req.nodes, edges=req.edges))
    return _graph_response(graph)


@app.post("/flows/annotate", tags=["Flows"])
async def annotate_flow(req: GraphRequest):
    graph = annotate_data_edges(FlowGraph(nodes=req.nodes, edges=req.edges))
    return _graph_response(graph)


@app.post("/flows/validate", tags=["Flows"])
async def validate(req: GraphRequest):
    errors = validate_flow(req.nodes, req.edges)
    return {
        "valid": not errors,
        "errors": [e.model_dump(mode="json", by_alias=True) for e in errors],
    }


@app.post("/flows/reconstruct", tags=["Flows"])
async def reconstruct_flow(req: ReconstructRequest):
    """Rebuild the script document. Refused while validation errors remain, unless forced."""
    errors = validate_flow(req.nodes, req.edges)
    if errors and not req.force:
        raise HTTPException(
            400,
            detail={
                "message": "Flow has validation errors",
                "errors": [e.model_dump(mode="json", by_alias=True) for e in errors],
            },
        )
    try:
        document = reconstruct(req.nodes, req.edges, req.original)
    except SchemaError as e:
        raise _schema_error(e)
    return {"document": document.to_dict(), "forced": bool(errors)}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)
