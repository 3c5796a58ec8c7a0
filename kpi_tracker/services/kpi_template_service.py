"""
KPI template engine.

Owns the built-in hierarchy, template storage and the remapping that turns
template items into KpiDefinition rows owned by one scope.

ID remapping:
    template item  "<template_id>_<base>"  →  definition "<scope_id>_<base>"
    (legacy scope: the definition id is the bare base id)

Only a leading "<template_id>_" counts as the template prefix; an id that
contains the template id elsewhere keeps it. Parent ids go through the same
transform so links survive the copy. Ownership is recorded in
``KpiDefinition.tenant_id`` / ``local_id``; ids are never parsed back.

Rules:
  - scope_id is always an explicit parameter (None = legacy scope).
  - db.session.commit() happens only in service modules.
"""

from __future__ import annotations

import logging
import re
import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from kpi_tracker.core.exceptions import (
    ConflictError,
    DuplicateIdError,
    HasChildrenError,
    NotFoundError,
    ValidationError,
)
from kpi_tracker.models import db
from kpi_tracker.models.kpi import AGENTS, KpiDefinition, KpiTemplate, KpiTemplateItem
from kpi_tracker.services.kpi_catalog import (
    DEFAULT_KPI_DATA,
    DEFAULT_TEMPLATE_DESCRIPTION,
    DEFAULT_TEMPLATE_ID,
    DEFAULT_TEMPLATE_NAME,
)
from kpi_tracker.utils.helpers import parse_int, parse_number, require_fields

logger = logging.getLogger(__name__)

_VALUE_FIELDS = ("default_target", "benchmark_min", "benchmark_max")

# "<digits>_" is the tenant prefix of stored definition ids.
_RESERVED_PREFIX = re.compile(r"^\d+_")


# ── Id mapping ───────────────────────────────────────────────────────────


def base_kpi_id(item_id: str, template_id: str | None) -> str:
    """Strip an exact leading ``template_id + "_"`` from a template item id."""
    if template_id:
        prefix = f"{template_id}_"
        if item_id.startswith(prefix):
            return item_id[len(prefix):]
    return item_id


def scoped_kpi_id(scope_id: int | None, base_id: str) -> str:
    """Definition id of ``base_id`` inside ``scope_id``."""
    if scope_id is None:
        return base_id
    return f"{scope_id}_{base_id}"


def template_item_id(template_id: str, base_id: str) -> str:
    return f"{template_id}_{base_id}"


def validate_local_id(local_id: str, field: str = "id") -> str:
    """Reject local ids that would read as another tenant's stored id."""
    if _RESERVED_PREFIX.match(local_id):
        raise ValidationError(
            f"{field} must not start with digits followed by '_'",
            details={field: "reserved_prefix"},
        )
    return local_id


# ── Default template ─────────────────────────────────────────────────────


def get_default_template_id() -> str | None:
    return db.session.execute(
        select(KpiTemplate.id).where(KpiTemplate.is_default.is_(True))
    ).scalar()


def ensure_default_template() -> str:
    """Create the built-in default template unless a default already exists.

    Returns the id of the default template. Safe to run from several
    processes at once: the partial unique index on ``is_default`` rejects a
    second default, and the loser re-reads the winner's id.
    """
    existing = get_default_template_id()
    if existing:
        return existing

    template = db.session.get(KpiTemplate, DEFAULT_TEMPLATE_ID)
    if template is not None:
        # Built-in template exists but lost its flag; restore it.
        template.is_default = True
    else:
        template = KpiTemplate(
            id=DEFAULT_TEMPLATE_ID,
            name=DEFAULT_TEMPLATE_NAME,
            description=DEFAULT_TEMPLATE_DESCRIPTION,
            is_default=True,
        )
        db.session.add(template)
        for kpi in DEFAULT_KPI_DATA:
            db.session.add(_template_item(DEFAULT_TEMPLATE_ID, kpi))

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        winner = get_default_template_id()
        if winner is None:
            raise
        logger.info("Default KPI template created concurrently: %s", winner)
        return winner

    logger.info("Default KPI template ready: %s (%d items)", template.id, len(DEFAULT_KPI_DATA))
    return template.id


def _template_item(template_id: str, kpi: dict) -> KpiTemplateItem:
    parent = kpi.get("parent_kpi_id")
    return KpiTemplateItem(
        id=template_item_id(template_id, kpi["id"]),
        template_id=template_id,
        agent=kpi["agent"],
        category=kpi["category"],
        name=kpi["name"],
        unit=kpi["unit"],
        default_target=kpi.get("default_target"),
        benchmark_min=kpi.get("benchmark_min"),
        benchmark_max=kpi.get("benchmark_max"),
        parent_kpi_id=template_item_id(template_id, parent) if parent else None,
        level=kpi["level"],
        description=kpi.get("description"),
    )


# ── Instantiation ────────────────────────────────────────────────────────


def _source_items(template_id: str | None) -> tuple[list[dict], str | None]:
    """Items to copy and the template id whose prefix they carry."""
    if template_id:
        if db.session.get(KpiTemplate, template_id) is None:
            raise NotFoundError("KpiTemplate", template_id)
        source_id = template_id
    else:
        source_id = get_default_template_id()

    if source_id:
        items = db.session.execute(
            select(KpiTemplateItem).where(KpiTemplateItem.template_id == source_id)
        ).scalars().all()
        if items or template_id:
            return [item.to_dict() for item in items], source_id

    return [dict(kpi) for kpi in DEFAULT_KPI_DATA], None


def scope_has_definitions(scope_id: int | None) -> bool:
    return db.session.execute(
        select(KpiDefinition.id).where(KpiDefinition.scope_filter(scope_id)).limit(1)
    ).first() is not None


def instantiate_for_scope(scope_id: int | None, template_id: str | None = None) -> int:
    """Copy a template into KpiDefinition rows owned by ``scope_id``.

    Source: ``template_id`` if given, else the default template, else the
    built-in list. A scope that already has definitions is left untouched.

    Returns:
        Number of definitions created (0 when skipped).
    """
    if scope_has_definitions(scope_id):
        logger.debug("KPI set already provisioned for scope=%s; skipping", scope_id)
        return 0

    items, source_id = _source_items(template_id)
    for item in items:
        base = base_kpi_id(item["id"], source_id)
        parent = item.get("parent_kpi_id")
        parent_id = scoped_kpi_id(scope_id, base_kpi_id(parent, source_id)) if parent else None
        db.session.add(KpiDefinition(
            id=scoped_kpi_id(scope_id, base),
            tenant_id=scope_id,
            local_id=base,
            agent=item["agent"],
            category=item["category"],
            name=item["name"],
            unit=item["unit"],
            default_target=item.get("default_target"),
            benchmark_min=item.get("benchmark_min"),
            benchmark_max=item.get("benchmark_max"),
            parent_kpi_id=parent_id,
            level=item["level"],
            description=item.get("description"),
        ))

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if scope_has_definitions(scope_id):
            logger.info("KPI set for scope=%s provisioned concurrently", scope_id)
            return 0
        logger.warning("KPI ids for scope=%s collide with existing definitions", scope_id)
        raise ConflictError("KpiDefinition", message="KPI ids for this scope are already taken")

    logger.info(
        "Provisioned %d KPI definitions for scope=%s from %s",
        len(items), scope_id, source_id or "built-in list",
    )
    return len(items)


def seed_kpis() -> str:
    """Startup provisioning: default template plus the legacy global set."""
    template_id = ensure_default_template()
    instantiate_for_scope(None)
    return template_id


# ── Definitions ──────────────────────────────────────────────────────────


def list_definitions(scope_id: int | None) -> list[KpiDefinition]:
    return db.session.execute(
        select(KpiDefinition)
        .where(KpiDefinition.scope_filter(scope_id))
        .order_by(
            KpiDefinition.level,
            KpiDefinition.agent,
            KpiDefinition.category,
            KpiDefinition.id,
        )
    ).scalars().all()


def get_definition(kpi_id: str, scope_id: int | None) -> KpiDefinition:
    kpi = db.session.get(KpiDefinition, kpi_id)
    if kpi is None or not kpi.in_scope(scope_id):
        raise NotFoundError("KpiDefinition", kpi_id, scope_id)
    return kpi


def _find_parent(scope_id: int | None, parent_ref: str) -> KpiDefinition:
    """Resolve a parent given by local id (or by full id) within one scope."""
    parent = db.session.execute(
        select(KpiDefinition).where(
            KpiDefinition.scope_filter(scope_id),
            KpiDefinition.local_id == parent_ref,
        )
    ).scalar_one_or_none()
    if parent is None:
        candidate = db.session.get(KpiDefinition, parent_ref)
        if candidate is not None and candidate.in_scope(scope_id):
            parent = candidate
    if parent is None:
        raise ValidationError(
            f"Parent KPI '{parent_ref}' not found", details={"parent_kpi_id": "not_found"}
        )
    return parent


def _root_exists(scope_id: int | None, exclude_id: str | None = None) -> bool:
    query = select(KpiDefinition.id).where(
        KpiDefinition.scope_filter(scope_id),
        KpiDefinition.level == 1,
    )
    if exclude_id is not None:
        query = query.where(KpiDefinition.id != exclude_id)
    return db.session.execute(query.limit(1)).first() is not None


def _resolve_placement(scope_id, parent_ref, requested_level, self_id=None):
    """Return ``(parent_id, level)`` for a definition placed under ``parent_ref``."""
    requested = parse_int(requested_level, "level", allow_none=True, minimum=1)

    if parent_ref:
        parent = _find_parent(scope_id, str(parent_ref).strip())
        level = parent.level + 1
        if requested is not None and requested != level:
            raise ValidationError(
                f"level must be {level} (parent level + 1)", details={"level": "mismatch"}
            )
        return parent.id, level

    if requested not in (None, 1):
        raise ValidationError("A KPI without a parent must be level 1", details={"level": "mismatch"})
    if _root_exists(scope_id, exclude_id=self_id):
        raise ConflictError("KpiDefinition", message="This KPI set already has a level 1 root")
    return None, 1


def _validate_fields(data: dict) -> dict:
    require_fields(data, "agent", "category", "name", "unit")
    agent = str(data["agent"]).strip().upper()
    if agent not in AGENTS:
        raise ValidationError(
            f"agent must be one of: {', '.join(AGENTS)}", details={"agent": "invalid"}
        )
    fields = {
        "agent": agent,
        "category": str(data["category"]).strip(),
        "name": str(data["name"]).strip(),
        "unit": str(data["unit"]).strip(),
        "description": data.get("description") or None,
    }
    for key in _VALUE_FIELDS:
        fields[key] = parse_number(data.get(key), key)
    return fields


def add_definition(data: dict, scope_id: int | None = None) -> KpiDefinition:
    """Insert one definition; ``data["id"]`` and ``parent_kpi_id`` are unprefixed."""
    require_fields(data, "id")
    local_id = validate_local_id(str(data["id"]).strip())
    fields = _validate_fields(data)

    kpi_id = scoped_kpi_id(scope_id, local_id)
    if db.session.get(KpiDefinition, kpi_id) is not None:
        raise DuplicateIdError(kpi_id)

    parent_id, level = _resolve_placement(scope_id, data.get("parent_kpi_id"), data.get("level"))
    kpi = KpiDefinition(
        id=kpi_id,
        tenant_id=scope_id,
        local_id=local_id,
        parent_kpi_id=parent_id,
        level=level,
        **fields,
    )
    db.session.add(kpi)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise DuplicateIdError(kpi_id) from exc

    logger.info("KPI %s added (scope=%s, level=%d)", kpi_id, scope_id, level)
    return kpi


def _has_children(kpi_id: str) -> bool:
    return db.session.execute(
        select(KpiDefinition.id).where(KpiDefinition.parent_kpi_id == kpi_id).limit(1)
    ).first() is not None


def _is_descendant(candidate_id: str, ancestor_id: str) -> bool:
    """True when ``candidate_id`` is ``ancestor_id`` or lies below it."""
    seen = set()
    current = candidate_id
    while current is not None and current not in seen:
        if current == ancestor_id:
            return True
        seen.add(current)
        node = db.session.get(KpiDefinition, current)
        current = node.parent_kpi_id if node else None
    return False


def update_definition(kpi_id: str, data: dict, scope_id: int | None = None) -> KpiDefinition:
    """Overwrite every editable field of a definition.

    The id and owner scope never change; a new parent is resolved inside the
    definition's own scope.
    """
    kpi = get_definition(kpi_id, scope_id)
    fields = _validate_fields(data)

    parent_id, level = _resolve_placement(
        kpi.tenant_id, data.get("parent_kpi_id"), data.get("level"), self_id=kpi.id
    )
    if parent_id is not None and _is_descendant(parent_id, kpi.id):
        raise ValidationError(
            "A KPI cannot be moved under itself or its descendants",
            details={"parent_kpi_id": "cycle"},
        )
    if level != kpi.level and _has_children(kpi.id):
        raise ConflictError(
            "KpiDefinition", message="Cannot change the level of a KPI that has child KPIs"
        )

    for key, value in fields.items():
        setattr(kpi, key, value)
    kpi.parent_kpi_id = parent_id
    kpi.level = level
    db.session.commit()

    logger.info("KPI %s updated (scope=%s)", kpi.id, kpi.tenant_id)
    return kpi


def delete_definition(kpi_id: str, scope_id: int | None = None) -> None:
    kpi = get_definition(kpi_id, scope_id)
    if _has_children(kpi.id):
        raise HasChildrenError(kpi.id)
    db.session.delete(kpi)
    db.session.commit()
    logger.info("KPI %s deleted (scope=%s)", kpi_id, scope_id)


# ── Template administration ──────────────────────────────────────────────


def list_templates() -> list[dict]:
    counts = dict(db.session.execute(
        select(KpiTemplateItem.template_id, func.count(KpiTemplateItem.id))
        .group_by(KpiTemplateItem.template_id)
    ).all())
    templates = db.session.execute(
        select(KpiTemplate).order_by(KpiTemplate.is_default.desc(), KpiTemplate.created_at.desc())
    ).scalars().all()
    return [{**t.to_dict(), "item_count": counts.get(t.id, 0)} for t in templates]


def get_template(template_id: str) -> dict:
    template = db.session.get(KpiTemplate, template_id)
    if template is None:
        raise NotFoundError("KpiTemplate", template_id)
    items = db.session.execute(
        select(KpiTemplateItem)
        .where(KpiTemplateItem.template_id == template_id)
        .order_by(KpiTemplateItem.level, KpiTemplateItem.agent, KpiTemplateItem.category)
    ).scalars().all()
    return {**template.to_dict(), "items": [item.to_dict() for item in items]}


def _normalize_template_items(raw_items) -> list[dict]:
    """Validate a template's items as one rooted forest and derive levels."""
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list", details={"items": "required"})

    items: dict[str, dict] = {}
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise ValidationError("each item must be an object", details={"items": "invalid"})
        require_fields(raw, "id")
        item_id = validate_local_id(str(raw["id"]).strip())
        if item_id in items:
            raise ValidationError(f"Duplicate item id '{item_id}'", details={"items": "duplicate"})
        items[item_id] = {
            "id": item_id,
            "parent_kpi_id": (str(raw["parent_kpi_id"]).strip() if raw.get("parent_kpi_id") else None),
            "level": raw.get("level"),
            **_validate_fields(raw),
        }

    roots = [i for i in items.values() if i["parent_kpi_id"] is None]
    if len(roots) != 1:
        raise ValidationError("A template needs exactly one root item", details={"items": "root"})

    levels: dict[str, int] = {}

    def level_of(item_id: str, trail: tuple = ()) -> int:
        if item_id in levels:
            return levels[item_id]
        if item_id in trail:
            raise ValidationError("Template items contain a cycle", details={"items": "cycle"})
        parent = items[item_id]["parent_kpi_id"]
        if parent is None:
            level = 1
        elif parent not in items:
            raise ValidationError(
                f"Unknown parent '{parent}' for item '{item_id}'", details={"items": "parent"}
            )
        else:
            level = level_of(parent, trail + (item_id,)) + 1
        levels[item_id] = level
        return level

    for item_id, item in items.items():
        level = level_of(item_id)
        requested = parse_int(item["level"], "level", allow_none=True, minimum=1)
        if requested is not None and requested != level:
            raise ValidationError(
                f"Item '{item_id}' must be level {level}", details={"items": "level"}
            )
        item["level"] = level
    return list(items.values())


def create_template(data: dict) -> dict:
    """Create a template from unprefixed items; ids get the template prefix."""
    require_fields(data, "name")
    template_id = str(data.get("id") or f"tpl_{uuid.uuid4().hex[:12]}").strip()
    if db.session.get(KpiTemplate, template_id) is not None:
        raise ConflictError("KpiTemplate", "id", template_id)
    items = _normalize_template_items(data.get("items"))

    is_default = bool(data.get("is_default"))
    if is_default:
        db.session.execute(
            KpiTemplate.__table__.update()
            .where(KpiTemplate.is_default.is_(True))
            .values(is_default=False)
        )

    db.session.add(KpiTemplate(
        id=template_id,
        name=str(data["name"]).strip(),
        description=data.get("description"),
        is_default=is_default,
    ))
    for item in items:
        db.session.add(_template_item(template_id, item))

    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("KpiTemplate", "id", template_id) from exc

    logger.info("KPI template %s created (%d items, default=%s)", template_id, len(items), is_default)
    return get_template(template_id)
