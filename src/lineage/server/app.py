"""lineage.server.app - Flask app factory and REST API routes.

This is a THIN REST wrapper: every route delegates to LineageService and
serializes the result. Engine errors become JSON error responses through
one error handler.
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify, request
from flask_cors import CORS

from lineage.errors import (
    BuildCancelledError,
    ConflictError,
    CycleError,
    LineageError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from lineage.graph.assembler import ContentMetrics
from lineage.graph.models import RelationshipKind
from lineage.graph.serialize import (
    relationship_from_dict,
    serialize_build,
    serialize_content,
    serialize_family,
    serialize_node,
    serialize_relationship,
)
from lineage.service import LineageService

logger = logging.getLogger(__name__)

# Checked in order; subclasses resolve through their base entries.
_ERROR_STATUS: tuple[tuple[type[LineageError], int], ...] = (
    (NotFoundError, 404),
    (ValidationError, 400),
    (CycleError, 409),
    (ConflictError, 409),
    (BuildCancelledError, 409),
    (StorageError, 503),
)


def status_for(error: LineageError) -> int:
    """HTTP status code for an engine error."""
    for error_type, status in _ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 400


def _json_body() -> dict[str, Any]:
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _require(data: dict[str, Any], *fields: str) -> list[Any]:
    missing = [name for name in fields if not data.get(name)]
    if missing:
        raise ValidationError(f"{', '.join(missing)} required")
    return [data[name] for name in fields]


def create_app(service: LineageService, config: dict[str, Any]) -> Flask:
    """Create the Flask application with REST API routes.

    Args:
        service: Service bound to the store the API serves.
        config: lineage configuration dict.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)
    CORS(app)

    _state: dict[str, Any] = {"service": service, "config": config}

    @app.errorhandler(LineageError)
    def _lineage_error(error: LineageError):
        status = status_for(error)
        if status >= 500:
            logger.error(f"{request.method} {request.path} failed: {error}")
        return jsonify({"success": False, "error": str(error)}), status

    # ─────────────────────────────────────────────────────────────────
    # Read-only GET endpoints
    # ─────────────────────────────────────────────────────────────────

    @app.route("/api/status")
    def api_status():
        """GET /api/status - Store counts and mutation log size."""
        return jsonify(_state["service"].status())

    @app.route("/api/node/<content_id>")
    def api_node(content_id: str):
        """GET /api/node/<content_id> - One hierarchy node."""
        return jsonify(serialize_node(_state["service"].get_node(content_id)))

    @app.route("/api/content/<content_id>")
    def api_content(content_id: str):
        """GET /api/content/<content_id> - One content record."""
        return jsonify(serialize_content(_state["service"].get_content(content_id)))

    @app.route("/api/roots")
    def api_roots():
        """GET /api/roots - Every family root."""
        return jsonify([serialize_node(n) for n in _state["service"].list_roots()])

    @app.route("/api/family/<content_id>")
    def api_family(content_id: str):
        """GET /api/family/<content_id> - Node plus descendants by (depth, path)."""
        nodes = _state["service"].get_family(content_id)
        return jsonify({"root_id": content_id, "nodes": [serialize_node(n) for n in nodes]})

    @app.route("/api/family/<content_id>/levels")
    def api_family_levels(content_id: str):
        """GET /api/family/<content_id>/levels - Family nodes grouped by depth."""
        levels = _state["service"].traverse_level_order(content_id)
        return jsonify(
            {
                "root_id": content_id,
                "levels": [[serialize_node(n) for n in level] for level in levels],
            }
        )

    @app.route("/api/family/<content_id>/graph", methods=["GET", "POST"])
    def api_family_graph(content_id: str):
        """GET|POST /api/family/<content_id>/graph - Assembled family.

        POST body (optional):
            metrics: {content_id: {views, engagements, shares, comments, watch_time}}
            format: "family" (default) or "visualization"
        """
        data = _json_body() if request.method == "POST" else {}
        raw_metrics = data.get("metrics") or {}
        if not isinstance(raw_metrics, dict):
            raise ValidationError("metrics must be an object keyed by content id")
        metrics = {cid: ContentMetrics.from_dict(m) for cid, m in raw_metrics.items()}
        family = _state["service"].get_family_graph(content_id, metrics)
        fmt = data.get("format") or request.args.get("format", "family")
        if fmt == "visualization":
            return jsonify(family.to_visualization())
        return jsonify(serialize_family(family))

    @app.route("/api/ancestors/<content_id>")
    def api_ancestors(content_id: str):
        """GET /api/ancestors/<content_id> - Ancestors, root first."""
        nodes = _state["service"].get_ancestors(content_id)
        return jsonify([serialize_node(n) for n in nodes])

    @app.route("/api/common-ancestor", methods=["POST"])
    def api_common_ancestor():
        """POST /api/common-ancestor - Deepest shared ancestor of content_ids."""
        data = _json_body()
        content_ids = data.get("content_ids")
        if not isinstance(content_ids, list):
            raise ValidationError("content_ids must be a list")
        node = _state["service"].find_common_ancestor(content_ids)
        return jsonify({"found": node is not None, "node": serialize_node(node) if node else None})

    @app.route("/api/path-between")
    def api_path_between():
        """GET /api/path-between?source=<id>&target=<id> - Tree path between two nodes."""
        source = request.args.get("source", "")
        target = request.args.get("target", "")
        if not source or not target:
            raise ValidationError("source and target required")
        nodes = _state["service"].find_path_between(source, target)
        return jsonify(
            {
                "source": source,
                "target": target,
                "distance": len(nodes) - 1,
                "nodes": [serialize_node(n) for n in nodes],
            }
        )

    @app.route("/api/orphans")
    def api_orphans():
        """GET /api/orphans?without=nodes|relationships - Content outside any family.

        Optional filters: platform_id, content_type.
        """
        without = request.args.get("without", "nodes")
        if without == "nodes":
            finder = _state["service"].list_unplaced_content
        elif without == "relationships":
            finder = _state["service"].list_unlinked_content
        else:
            raise ValidationError("without must be 'nodes' or 'relationships'")
        items = finder(
            platform_id=request.args.get("platform_id") or None,
            content_type=request.args.get("content_type") or None,
        )
        return jsonify({"without": without, "content": [serialize_content(i) for i in items]})

    @app.route("/api/query")
    def api_query():
        """GET /api/query?pattern=<pattern> - Nodes whose path matches."""
        pattern = request.args.get("pattern", "")
        nodes = _state["service"].query_by_path(pattern)
        return jsonify([serialize_node(n) for n in nodes])

    @app.route("/api/path/validate")
    def api_path_validate():
        """GET /api/path/validate?path=<path> - Check a path against the grammar."""
        path = request.args.get("path", "")
        return jsonify({"path": path, "valid": _state["service"].validate_path(path)})

    @app.route("/api/path/generate")
    def api_path_generate():
        """GET /api/path/generate?content_id=<id>&parent_id=<id> - Prospective path."""
        content_id = request.args.get("content_id", "")
        if not content_id:
            raise ValidationError("content_id required")
        path = _state["service"].generate_path(content_id, request.args.get("parent_id") or None)
        return jsonify({"content_id": content_id, "path": ".".join(path)})

    @app.route("/api/mutations")
    def api_mutations():
        """GET /api/mutations?limit=<n>&content_id=<id> - Most recent committed mutations."""
        limit = request.args.get("limit", "50")
        if not limit.isdigit():
            raise ValidationError("limit must be a non-negative integer")
        entries = _state["service"].mutation_history(
            int(limit), content_id=request.args.get("content_id") or None
        )
        return jsonify({"count": len(entries), "mutations": [e.to_dict() for e in entries]})

    @app.route("/api/mutations/<mutation_id>")
    def api_mutation(mutation_id: str):
        """GET /api/mutations/<mutation_id> - One committed mutation."""
        return jsonify(_state["service"].get_mutation(mutation_id).to_dict())

    @app.route("/api/integrity")
    def api_integrity():
        """GET /api/integrity - Node-set invariant violations."""
        violations = _state["service"].check_integrity()
        return jsonify({"consistent": not violations, "violations": violations})

    # ─────────────────────────────────────────────────────────────────
    # Mutation POST endpoints
    # ─────────────────────────────────────────────────────────────────

    @app.route("/api/content", methods=["POST"])
    def api_content_add():
        """POST /api/content - Register or update a content record."""
        data = _json_body()
        (content_id,) = _require(data, "id")
        item = _state["service"].add_content(
            content_id,
            platform_id=data.get("platform_id"),
            title=data.get("title", ""),
            content_type=data.get("content_type", ""),
            url=data.get("url", ""),
        )
        return jsonify({"success": True, "content": serialize_content(item)}), 201

    @app.route("/api/mutate/create", methods=["POST"])
    def api_mutate_create():
        """POST /api/mutate/create - Attach content as a root or under parent_id."""
        data = _json_body()
        (content_id,) = _require(data, "content_id")
        node = _state["service"].create_node(content_id, data.get("parent_id") or None)
        return jsonify({"success": True, "node": serialize_node(node)}), 201

    @app.route("/api/mutate/relocate", methods=["POST"])
    def api_mutate_relocate():
        """POST /api/mutate/relocate - Move a subtree under new_parent_id."""
        data = _json_body()
        content_id, new_parent_id = _require(data, "content_id", "new_parent_id")
        node = _state["service"].relocate(content_id, new_parent_id)
        return jsonify({"success": True, "node": serialize_node(node)})

    @app.route("/api/mutate/remove", methods=["POST"])
    def api_mutate_remove():
        """POST /api/mutate/remove - Remove a node, cascading or re-parenting."""
        data = _json_body()
        (content_id,) = _require(data, "content_id")
        preserve = bool(data.get("preserve_descendants", False))
        removed = _state["service"].remove(content_id, preserve_descendants=preserve)
        return jsonify({"success": removed})

    @app.route("/api/mutate/link", methods=["POST"])
    def api_mutate_link():
        """POST /api/mutate/link - Persist a relationship and place its target."""
        edge = relationship_from_dict(_json_body())
        _state["service"].link(edge)
        return jsonify({"success": True, "relationship": serialize_relationship(edge)}), 201

    @app.route("/api/mutate/unlink", methods=["POST"])
    def api_mutate_unlink():
        """POST /api/mutate/unlink - Delete a relationship record."""
        data = _json_body()
        source_id, target_id = _require(data, "source_id", "target_id")
        try:
            kind = RelationshipKind(data.get("kind", RelationshipKind.DERIVATIVE.value))
        except ValueError as e:
            raise ValidationError(str(e)) from e
        removed = _state["service"].unlink(source_id, target_id, kind)
        return jsonify({"success": removed})

    @app.route("/api/build", methods=["POST"])
    def api_build():
        """POST /api/build - Build and persist families from an edge list.

        Body:
            edges: list of edge objects
            root_hint: optional content id
            replace: rebuild existing families (default false)
        """
        data = _json_body()
        raw_edges = data.get("edges")
        if not isinstance(raw_edges, list):
            raise ValidationError("edges must be a list")
        edges = [relationship_from_dict(e) for e in raw_edges]
        result = _state["service"].rebuild(
            edges,
            root_hint=data.get("root_hint") or None,
            replace=bool(data.get("replace", False)),
        )
        return jsonify({"success": True, **serialize_build(result)}), 201

    return app
