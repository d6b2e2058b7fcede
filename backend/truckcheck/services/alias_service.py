# backend/truckcheck/services/alias_service.py
"""
Item alias resolution and alias-mapping management.

Resolution rules:
- Names are normalized before lookup: stripped, lowercased, internal
  whitespace collapsed to one space.
- A normalized name matching an alias resolves to that alias's mapping's
  canonical_name; one matching a mapping's own canonical name resolves to it.
- Anything else resolves to its normalized form (its own canonical name).

Resolution is deterministic for a given table state. Batch callers take one
AliasResolver snapshot so every line item in the batch sees the same state.
"""
from __future__ import annotations

import logging
import re

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import ItemNameAlias, ItemNameMapping
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_name(raw_name: str | None) -> str:
    if raw_name is None:
        return ""
    return _WHITESPACE.sub(" ", str(raw_name)).strip().lower()


class AliasResolver:
    """In-memory snapshot of the alias tables."""

    def __init__(self, lookup: dict[str, str] | None = None):
        self._lookup = dict(lookup or {})

    @classmethod
    def load(cls) -> "AliasResolver":
        lookup: dict[str, str] = {}
        for mapping in db.session.query(ItemNameMapping).all():
            lookup[mapping.normalized_name] = mapping.canonical_name
        rows = (
            db.session.query(ItemNameAlias.normalized_name, ItemNameMapping.canonical_name)
            .join(ItemNameMapping, ItemNameAlias.mapping_id == ItemNameMapping.id)
            .all()
        )
        for normalized, canonical in rows:
            lookup[normalized] = canonical
        return cls(lookup)

    def resolve(self, raw_name: str | None) -> str:
        key = normalize_name(raw_name)
        return self._lookup.get(key, key)

    def is_mapped(self, raw_name: str | None) -> bool:
        return normalize_name(raw_name) in self._lookup


def resolve(raw_name: str | None) -> str:
    """Resolve one name against the current tables."""
    return AliasResolver.load().resolve(raw_name)


# ---------------------------------------------------------------------------
# Mapping management
# ---------------------------------------------------------------------------

def _clean_alias_entries(aliases) -> list[dict]:
    """Accept ["name", ...] or [{"name": ..., "notes": ...}, ...]."""
    if aliases is None:
        return []
    if not isinstance(aliases, list):
        raise ValidationError("aliases must be a list")

    cleaned = []
    seen = set()
    for entry in aliases:
        if isinstance(entry, dict):
            name, notes = entry.get("name"), entry.get("notes")
        else:
            name, notes = entry, None
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("alias names must be non-empty strings")
        normalized = normalize_name(name)
        if normalized in seen:
            continue
        seen.add(normalized)
        cleaned.append({"name": name.strip(), "normalized_name": normalized, "notes": notes})
    return cleaned


def _assert_names_free(normalized_names: list[str], *, mapping_id: int | None = None) -> None:
    """Every normalized name may appear once across all mappings and aliases."""
    if not normalized_names:
        return
    taken_alias = (
        db.session.query(ItemNameAlias)
        .filter(ItemNameAlias.normalized_name.in_(normalized_names))
        .filter(ItemNameAlias.mapping_id != (mapping_id or -1))
        .first()
    )
    if taken_alias:
        raise ConflictError(
            f"Alias '{taken_alias.name}' already maps to '{taken_alias.mapping.canonical_name}'"
        )
    taken_mapping = (
        db.session.query(ItemNameMapping)
        .filter(ItemNameMapping.normalized_name.in_(normalized_names))
        .filter(ItemNameMapping.id != (mapping_id or -1))
        .first()
    )
    if taken_mapping:
        raise ConflictError(f"'{taken_mapping.canonical_name}' is already a canonical item name")


def get_mapping(mapping_id: int) -> ItemNameMapping:
    mapping = db.session.get(ItemNameMapping, mapping_id)
    if mapping is None:
        raise NotFoundError(f"Alias mapping {mapping_id} not found")
    return mapping


def list_mappings() -> list[ItemNameMapping]:
    return db.session.query(ItemNameMapping).order_by(ItemNameMapping.canonical_name).all()


def create_mapping(canonical_name: str, aliases=None, description: str | None = None) -> ItemNameMapping:
    """
    Create a canonical item name with its aliases.

    Raises:
        ValidationError: blank canonical name or malformed aliases
        ConflictError: canonical name or an alias already in use
    """
    if not isinstance(canonical_name, str) or not canonical_name.strip():
        raise ValidationError("canonical_name is required")
    canonical_name = _WHITESPACE.sub(" ", canonical_name).strip()
    normalized = normalize_name(canonical_name)
    entries = [e for e in _clean_alias_entries(aliases) if e["normalized_name"] != normalized]

    def _op():
        _assert_names_free([normalized] + [e["normalized_name"] for e in entries])

        mapping = ItemNameMapping(
            canonical_name=canonical_name,
            normalized_name=normalized,
            description=description,
        )
        for entry in entries:
            mapping.aliases.append(ItemNameAlias(**entry))
        db.session.add(mapping)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"Alias names for '{canonical_name}' are already in use")

        logger.info("Alias mapping %r created with %d aliases", canonical_name, len(entries))
        return mapping

    return run_with_retry(_op)


def update_mapping(
    mapping_id: int,
    *,
    canonical_name: str | None = None,
    aliases=None,
    description: str | None = None,
) -> ItemNameMapping:
    """Rename a mapping and/or replace its alias list wholesale."""
    def _op():
        mapping = get_mapping(mapping_id)

        if canonical_name is not None:
            if not isinstance(canonical_name, str) or not canonical_name.strip():
                raise ValidationError("canonical_name cannot be blank")
            new_normalized = normalize_name(canonical_name)
            _assert_names_free([new_normalized], mapping_id=mapping.id)
            mapping.canonical_name = _WHITESPACE.sub(" ", canonical_name).strip()
            mapping.normalized_name = new_normalized

        if aliases is not None:
            entries = [
                e for e in _clean_alias_entries(aliases)
                if e["normalized_name"] != mapping.normalized_name
            ]
            _assert_names_free([e["normalized_name"] for e in entries], mapping_id=mapping.id)
            mapping.aliases.clear()
            db.session.flush()
            for entry in entries:
                mapping.aliases.append(ItemNameAlias(**entry))

        if description is not None:
            mapping.description = description

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Alias names are already in use")
        return mapping

    return run_with_retry(_op)


def add_alias(mapping_id: int, alias_name: str, notes: str | None = None) -> ItemNameMapping:
    entries = _clean_alias_entries([{"name": alias_name, "notes": notes}])

    def _op():
        mapping = get_mapping(mapping_id)
        entry = entries[0]
        if entry["normalized_name"] == mapping.normalized_name:
            return mapping
        if any(a.normalized_name == entry["normalized_name"] for a in mapping.aliases):
            return mapping
        _assert_names_free([entry["normalized_name"]])
        mapping.aliases.append(ItemNameAlias(**entry))
        db.session.commit()
        return mapping

    return run_with_retry(_op)


def delete_mapping(mapping_id: int) -> None:
    def _op():
        mapping = get_mapping(mapping_id)
        canonical_name = mapping.canonical_name
        db.session.delete(mapping)
        db.session.commit()
        logger.info("Alias mapping %r deleted", canonical_name)

    run_with_retry(_op)
