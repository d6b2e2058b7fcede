# Overview: Flask API routes for item alias mappings.

# backend/truckcheck/routes/aliases.py
from flask import Blueprint, current_app, jsonify, request

from ..errors import TallyError
from ..extensions import db
from ..services import alias_service


aliases_bp = Blueprint("aliases", __name__, url_prefix="/api/item-aliases")


def _error_response(exc: TallyError):
    db.session.rollback()
    return jsonify(exc.to_dict()), exc.status_code


@aliases_bp.get("/mappings")
def list_mappings_route():
    try:
        mappings = alias_service.list_mappings()
        return jsonify([m.to_dict() for m in mappings]), 200
    except Exception:
        current_app.logger.exception("Failed to list alias mappings")
        return jsonify({"error": "Internal server error"}), 500


@aliases_bp.post("/mappings")
def create_mapping_route():
    """
    Create a canonical item name with aliases.

    Request body:
    {
        "canonical_name": str,
        "description": str (optional),
        "aliases": ["name", ...] or [{"name": str, "notes": str?}, ...]
    }

    Returns:
        201: Mapping created
        400: Invalid request
        409: Name already in use
    """
    data = request.get_json(silent=True) or {}

    try:
        mapping = alias_service.create_mapping(
            data.get("canonical_name"),
            aliases=data.get("aliases"),
            description=data.get("description"),
        )
        return jsonify(mapping.to_dict()), 201

    except TallyError as e:
        return _error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create alias mapping")
        return jsonify({"error": "Internal server error"}), 500


@aliases_bp.get("/mappings/<int:mapping_id>")
def get_mapping_route(mapping_id: int):
    try:
        return jsonify(alias_service.get_mapping(mapping_id).to_dict()), 200
    except TallyError as e:
        return _error_response(e)


@aliases_bp.put("/mappings/<int:mapping_id>")
def update_mapping_route(mapping_id: int):
    """
    Rename a mapping and/or replace its aliases.

    Request body (all optional):
    {
        "canonical_name": str,
        "description": str,
        "aliases": [...]   # replaces the full alias list
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        mapping = alias_service.update_mapping(
            mapping_id,
            canonical_name=data.get("canonical_name"),
            aliases=data.get("aliases"),
            description=data.get("description"),
        )
        return jsonify(mapping.to_dict()), 200

    except TallyError as e:
        return _error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update alias mapping")
        return jsonify({"error": "Internal server error"}), 500


@aliases_bp.delete("/mappings/<int:mapping_id>")
def delete_mapping_route(mapping_id: int):
    try:
        alias_service.delete_mapping(mapping_id)
        return jsonify({"deleted": True, "id": mapping_id}), 200
    except TallyError as e:
        return _error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete alias mapping")
        return jsonify({"error": "Internal server error"}), 500


@aliases_bp.post("/mappings/<int:mapping_id>/aliases")
def add_alias_route(mapping_id: int):
    """
    Request body:
    {
        "name": str,
        "notes": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        mapping = alias_service.add_alias(mapping_id, data.get("name"), notes=data.get("notes"))
        return jsonify(mapping.to_dict()), 201
    except TallyError as e:
        return _error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to add alias")
        return jsonify({"error": "Internal server error"}), 500


@aliases_bp.get("/resolve")
def resolve_route():
    """Resolve ?name=... to its canonical item name."""
    name = request.args.get("name")
    if not name or not name.strip():
        return jsonify({"error": "name is required"}), 400

    resolver = alias_service.AliasResolver.load()
    return jsonify({
        "name": name,
        "canonical_name": resolver.resolve(name),
        "mapped": resolver.is_mapped(name),
    }), 200
