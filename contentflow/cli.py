#!/usr/bin/env python3
"""contentflow CLI - run the backend and drive the node store over its REST API."""

import argparse
import json
import sys
import urllib.error
import urllib.parse
import urllib.request

from .backend.settings import settings, configure_logging


def _json_out(data, code=0):
    print(json.dumps(data))
    sys.exit(code)


def _error(message):
    _json_out({"status": "error", "error": message}, code=1)


def _api_request(method, endpoint, data=None, params=None):
    """Make a request to the contentflow backend."""
    url = f"{settings.api_base}{endpoint}"

    if params:
        filtered = {k: v for k, v in params.items() if v is not None}
        if filtered:
            url = f"{url}?{urllib.parse.urlencode(filtered)}"

    headers = {"Content-Type": "application/json"}
    body = json.dumps(data).encode() if data is not None else None

    req = urllib.request.Request(url, data=body, headers=headers, method=method)

    try:
        with urllib.request.urlopen(req, timeout=30) as response:
            return json.loads(response.read().decode())
    except urllib.error.HTTPError as e:
        error_body = e.read().decode()
        try:
            error_data = json.loads(error_body)
            _error(f"API error: {error_data.get('detail', 'Unknown error')}")
        except json.JSONDecodeError:
            _error(f"API error ({e.code}): {error_body}")
    except urllib.error.URLError as e:
        _error(f"Connection failed: {e.reason}. Is the contentflow backend running?")


def _parse_json_arg(value, name):
    """Parse a JSON object argument, exiting with an error if it is malformed."""
    if value is None:
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        _error(f"Invalid JSON for --{name}: {e}")
    if not isinstance(parsed, dict):
        _error(f"--{name} must be a JSON object")
    return parsed


# ── Service ──────────────────────────────────────────────────────────────────

def cmd_serve(args):
    from .backend.main import run
    configure_logging(args.log_level)
    run(host=args.host, port=args.port)


# ── Nodes ────────────────────────────────────────────────────────────────────

def cmd_nodes(args):
    _json_out(_api_request("GET", "/nodes", params={"include_hidden": "true" if args.all else None}))


def cmd_get(args):
    _json_out(_api_request("GET", f"/nodes/{args.node_id}"))


def cmd_children(args):
    _json_out(_api_request("GET", f"/nodes/{args.node_id}/children"))


def cmd_add(args):
    data = _parse_json_arg(args.data, "data") or {}
    if args.label is not None:
        data["label"] = args.label
    node = {
        "type": args.node_type,
        "parent_id": args.parent,
        "data": data,
        "position": {"x": args.x, "y": args.y},
    }
    if args.node_id:
        node["id"] = args.node_id
    _json_out(_api_request("POST", "/nodes", data=node))


def cmd_patch(args):
    # Patches replace the whole node, so start from the current one
    node = _api_request("GET", f"/nodes/{args.node_id}")
    node.pop("id", None)

    if args.node_type is not None:
        node["type"] = args.node_type
    if args.root:
        node["parent_id"] = None
    elif args.parent is not None:
        node["parent_id"] = args.parent
    data = _parse_json_arg(args.data, "data")
    if data is not None:
        node["data"] = {**node.get("data", {}), **data}
    if args.label is not None:
        node.setdefault("data", {})["label"] = args.label
    if args.hidden is not None:
        node["hidden"] = args.hidden == "true"

    _json_out(_api_request("PATCH", f"/nodes/{args.node_id}", data=node))


def cmd_remove(args):
    _json_out(_api_request("POST", "/nodes/remove", data={"node_ids": args.node_ids}))


def cmd_toggle(args):
    _json_out(_api_request("POST", f"/nodes/{args.node_id}/toggle"))


# ── Edges ────────────────────────────────────────────────────────────────────

def cmd_edges(args):
    _json_out(_api_request("GET", "/edges", params={"node_id": args.node_id}))


def cmd_connect(args):
    _json_out(_api_request("POST", "/edges", data={
        "source": args.source,
        "source_handle": args.source_handle,
        "target": args.target,
        "target_handle": args.target_handle,
    }))


def cmd_disconnect(args):
    _json_out(_api_request("DELETE", f"/edges/{args.edge_id}"))


def cmd_check(args):
    _json_out(_api_request("POST", "/connections/check", data={
        "source_type": args.source_type,
        "source_handle": args.source_handle,
        "target_type": args.target_type,
        "target_handle": args.target_handle,
    }))


def cmd_handles(args):
    _json_out(_api_request("GET", f"/handles/{args.node_type}"))


# ── Analysis ─────────────────────────────────────────────────────────────────

def cmd_snapshot(args):
    _json_out(_api_request("GET", "/snapshot"))


def cmd_validate(args):
    _json_out(_api_request("GET", "/hierarchy/validate"))


def cmd_summary(args):
    _json_out(_api_request("GET", "/hierarchy/summary"))


# ── Main ─────────────────────────────────────────────────────────────────────

def build_parser():
    parser = argparse.ArgumentParser(prog="contentflow", description="contentflow CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    # Service
    p = sub.add_parser("serve")
    p.add_argument("--host", default=settings.host)
    p.add_argument("--port", type=int, default=settings.port)
    p.add_argument("--log-level", default=settings.log_level)

    # Nodes
    p = sub.add_parser("nodes")
    p.add_argument("--all", action="store_true", help="include hidden nodes")

    p = sub.add_parser("get")
    p.add_argument("node_id")

    p = sub.add_parser("children")
    p.add_argument("node_id")

    p = sub.add_parser("add")
    p.add_argument("--node-id", default=None)
    p.add_argument("--node-type", default="default")
    p.add_argument("--parent", default=None)
    p.add_argument("--label", default=None)
    p.add_argument("--data", default=None, help="JSON object payload")
    p.add_argument("--x", type=float, default=0)
    p.add_argument("--y", type=float, default=0)

    p = sub.add_parser("patch")
    p.add_argument("node_id")
    p.add_argument("--node-type", default=None)
    p.add_argument("--parent", default=None)
    p.add_argument("--root", action="store_true", help="move the node to top level")
    p.add_argument("--label", default=None)
    p.add_argument("--data", default=None, help="JSON object merged into the payload")
    p.add_argument("--hidden", choices=["true", "false"], default=None)

    p = sub.add_parser("remove")
    p.add_argument("node_ids", nargs="+")

    p = sub.add_parser("toggle")
    p.add_argument("node_id")

    # Edges
    p = sub.add_parser("edges")
    p.add_argument("--node-id", default=None)

    p = sub.add_parser("connect")
    p.add_argument("source")
    p.add_argument("source_handle")
    p.add_argument("target")
    p.add_argument("target_handle")

    p = sub.add_parser("disconnect")
    p.add_argument("edge_id")

    p = sub.add_parser("check")
    p.add_argument("source_type")
    p.add_argument("source_handle")
    p.add_argument("target_type")
    p.add_argument("target_handle")

    p = sub.add_parser("handles")
    p.add_argument("node_type")

    # Analysis
    sub.add_parser("snapshot")
    sub.add_parser("validate")
    sub.add_parser("summary")

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    cmd_map = {
        "serve": cmd_serve,
        "nodes": cmd_nodes,
        "get": cmd_get,
        "children": cmd_children,
        "add": cmd_add,
        "patch": cmd_patch,
        "remove": cmd_remove,
        "toggle": cmd_toggle,
        "edges": cmd_edges,
        "connect": cmd_connect,
        "disconnect": cmd_disconnect,
        "check": cmd_check,
        "handles": cmd_handles,
        "snapshot": cmd_snapshot,
        "validate": cmd_validate,
        "summary": cmd_summary,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
