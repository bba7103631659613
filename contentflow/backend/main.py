"""
contentflow Backend - FastAPI Application

It provides:
- REST API mirroring the node store's mutation API
- Connection checks against the handle registry
- WebSocket endpoint for real-time updates
- CORS configuration for local editor development
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from ..core.defaults import build_registries, default_nodes
from ..core.errors import DuplicateNodeError, HierarchyError, NodeNotFoundError
from ..core.models import (
    ConnectionCheckRequest,
    ConnectRequest,
    Node,
    NodePatchRequest,
    RemoveNodesRequest,
    Snapshot,
)
from ..core.validation import validation_summary
from .settings import Settings, settings as default_settings
from .storage import JsonFileStorage
from .store import NodeStore
from .websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)


def _http_error(e: HierarchyError) -> HTTPException:
    """Map a rejected request to an HTTP error."""
    if isinstance(e, NodeNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, DuplicateNodeError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def build_store(settings: Settings) -> NodeStore:
    """Create the registries and the store for a server process."""
    node_types, handles = build_registries()
    return NodeStore(
        node_types=node_types,
        handles=handles,
        storage=JsonFileStorage(settings.storage_dir),
        default_nodes=default_nodes() if settings.load_defaults else [],
        reject_cycles=settings.reject_cycles,
    )


def get_store(request: Request) -> NodeStore:
    return request.app.state.store


def _nodes_response(store: NodeStore, include_hidden: bool = False) -> dict:
    nodes = store.state.all_nodes() if include_hidden else store.nodes
    return {"nodes": [n.to_json_dict() for n in nodes]}


router = APIRouter(prefix="/api")


# --- Health Check ---

@router.get("/health")
async def health_check(request: Request, store: NodeStore = Depends(get_store)):
    """Health check endpoint."""
    return {
        "status": "ok",
        "nodes": len(store.state.node_map),
        "version": store.version,
        "connections": request.app.state.ws_manager.connection_count,
    }


# --- Node Operations ---

@router.get("/nodes")
async def list_nodes(
    include_hidden: bool = Query(default=False),
    store: NodeStore = Depends(get_store),
):
    """Visible nodes in render order, or every node with include_hidden."""
    return _nodes_response(store, include_hidden)


@router.put("/nodes")
async def replace_nodes(nodes: list[dict], store: NodeStore = Depends(get_store)):
    """Replace the whole forest."""
    try:
        store.set_all(nodes, raise_errors=True)
    except HierarchyError as e:
        raise _http_error(e)
    return _nodes_response(store)


@router.post("/nodes")
async def insert_node(node: dict, store: NodeStore = Depends(get_store)):
    """Insert one node. A parent that does not exist demotes it to root."""
    try:
        parsed = Node.model_validate(node)
        store.insert(parsed, raise_errors=True)
    except ValueError as e:
        if isinstance(e, HierarchyError):
            raise _http_error(e)
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "node": store.get(parsed.id).to_json_dict()}


@router.patch("/nodes")
async def patch_nodes(nodes: list[dict], store: NodeStore = Depends(get_store)):
    """Patch several nodes at once; unknown ids are skipped."""
    try:
        store.patch_many(nodes, raise_errors=True)
    except HierarchyError as e:
        raise _http_error(e)
    return _nodes_response(store)


@router.post("/nodes/remove")
async def remove_nodes(request: RemoveNodesRequest, store: NodeStore = Depends(get_store)):
    """Remove nodes and everything they contain."""
    before = set(store.state.node_map)
    store.remove(request.node_ids)
    removed = sorted(before - set(store.state.node_map))
    return {"success": True, "removed": removed}


@router.get("/nodes/{node_id}")
async def get_node(node_id: str, store: NodeStore = Depends(get_store)):
    node = store.get(node_id)
    if node is None:
        raise HTTPException(status_code=404, detail="Node not found")
    return node.to_json_dict()


@router.get("/nodes/{node_id}/children")
async def get_children(node_id: str, store: NodeStore = Depends(get_store)):
    if store.get(node_id) is None:
        raise HTTPException(status_code=404, detail="Node not found")
    return {"nodes": [n.to_json_dict() for n in store.state.children_of(node_id)]}


@router.patch("/nodes/{node_id}")
async def patch_node(node_id: str, request: NodePatchRequest, store: NodeStore = Depends(get_store)):
    """Replace a node's content (and containment)."""
    node = Node(id=node_id, **request.model_dump())
    try:
        store.patch_one(node, raise_errors=True)
    except HierarchyError as e:
        raise _http_error(e)
    return {"success": True, "node": store.get(node_id).to_json_dict()}


@router.delete("/nodes/{node_id}")
async def delete_node(node_id: str, store: NodeStore = Depends(get_store)):
    if store.get(node_id) is None:
        raise HTTPException(status_code=404, detail="Node not found")
    before = set(store.state.node_map)
    store.remove([node_id])
    return {"success": True, "removed": sorted(before - set(store.state.node_map))}


@router.post("/nodes/{node_id}/toggle")
async def toggle_node(node_id: str, store: NodeStore = Depends(get_store)):
    """Flip a node's expanded flag and show/hide its contents."""
    try:
        store.toggle_expanded(node_id, raise_errors=True)
    except HierarchyError as e:
        raise _http_error(e)
    return {"success": True, "node": store.get(node_id).to_json_dict()}


# --- Snapshot ---

@router.get("/snapshot")
async def get_snapshot(store: NodeStore = Depends(get_store)):
    """The persisted form of the forest (hidden nodes included)."""
    return store.snapshot().to_json_dict()


@router.put("/snapshot")
async def restore_snapshot(snapshot: Snapshot, store: NodeStore = Depends(get_store)):
    """Rebuild every index from a snapshot."""
    try:
        store.rehydrate(snapshot, raise_errors=True)
    except HierarchyError as e:
        raise _http_error(e)
    return _nodes_response(store)


# --- Hierarchy Analysis ---

@router.get("/hierarchy/validate")
async def validate(store: NodeStore = Depends(get_store)):
    issues = store.validate()
    return {
        "summary": validation_summary(issues),
        "issues": [i.to_dict() for i in issues],
    }


@router.get("/hierarchy/summary")
async def summary(store: NodeStore = Depends(get_store)):
    return store.summary().to_dict()


# --- Edge Operations ---

@router.get("/edges")
async def list_edges(node_id: Optional[str] = None, store: NodeStore = Depends(get_store)):
    edges = store.edge_state.edges_for_node(node_id) if node_id else store.edges
    return {"edges": [e.to_json_dict() for e in edges]}


@router.post("/edges")
async def create_edge(request: ConnectRequest, store: NodeStore = Depends(get_store)):
    """Connect two handles if the registry allows it."""
    edge, result = store.connect(
        request.source, request.source_handle, request.target, request.target_handle
    )
    if edge is None:
        raise HTTPException(status_code=400, detail=result.reason)
    return {"success": True, "edge": edge.to_json_dict()}


@router.delete("/edges/{edge_id}")
async def delete_edge(edge_id: str, store: NodeStore = Depends(get_store)):
    if not store.disconnect([edge_id]):
        raise HTTPException(status_code=404, detail="Edge not found")
    return {"success": True}


# --- Connection Registry ---

@router.post("/connections/check")
async def check_connection(request: ConnectionCheckRequest, store: NodeStore = Depends(get_store)):
    """Validate a connection between two node types (no edge is created)."""
    result = store.handles.can_connect(
        request.source_type, request.source_handle, request.target_type, request.target_handle
    )
    return result.to_dict()


@router.get("/handles/{node_type}")
async def get_handles(node_type: str, store: NodeStore = Depends(get_store)):
    category = store.handles.get_node_category(node_type)
    if category is None:
        raise HTTPException(status_code=404, detail="Node type has no handles")
    return {
        "node_type": node_type,
        "category": category,
        "handles": [
            {**h.model_dump(mode="json"), "id": h.handle_id}
            for h in store.handles.get_node_handles(node_type)
        ],
    }


@router.get("/handles/{node_type}/{handle_id}/targets")
async def get_targets(node_type: str, handle_id: str, store: NodeStore = Depends(get_store)):
    return {"categories": store.handles.get_compatible_targets(node_type, handle_id)}


@router.get("/node-types")
async def get_node_types(store: NodeStore = Depends(get_store)):
    return {
        "types": [
            {"type": t, "is_parent": store.node_types.get(t).is_parent}
            for t in store.node_types.registered_types()
        ]
    }


# --- App Factory ---

def create_app(store: Optional[NodeStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application.

    The store (and its registries) is created once here and shared by every
    request through `app.state`.
    """
    settings = settings or default_settings
    store = store if store is not None else build_store(settings)
    ws_manager = WebSocketManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Bridge between sync store callbacks and async WebSocket broadcasts
        changes: asyncio.Queue = asyncio.Queue()
        store.on_change(changes.put_nowait)

        async def change_broadcaster():
            while True:
                change = await changes.get()
                await ws_manager.publish(change)

        broadcaster_task = asyncio.create_task(change_broadcaster())
        logger.info("contentflow backend started with %d nodes", len(store.state.node_map))

        try:
            yield
        finally:
            store.off_change(changes.put_nowait)
            broadcaster_task.cancel()
            try:
                await broadcaster_task
            except asyncio.CancelledError:
                pass

    app = FastAPI(
        title="contentflow API",
        description="Hierarchy and connection engine for the content-flow editor",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.ws_manager = ws_manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        WebSocket endpoint for real-time updates.

        Clients get a hello with the store version, then nodes_updated events.
        """
        await ws_manager.connect(websocket, store.version, len(store.state.node_map))
        try:
            while True:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text('{"type": "pong"}')
        except WebSocketDisconnect:
            await ws_manager.disconnect(websocket)
        except Exception:
            logger.exception("WebSocket error")
            await ws_manager.disconnect(websocket)

    return app


def run(host: Optional[str] = None, port: Optional[int] = None):
    """Run the server with uvicorn."""
    import uvicorn
    uvicorn.run(
        "contentflow.backend.main:create_app",
        factory=True,
        host=host or default_settings.host,
        port=port or default_settings.port,
    )


if __name__ == "__main__":
    run()
