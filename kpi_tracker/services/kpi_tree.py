"""
KPI tree aggregator.

Pure functions: no database access. Callers pass flat definition rows plus
the target and actual rows of one project period and get back a forest of
``KpiNode`` objects with computed figures.

    build_tree(definitions, targets, actuals, filter_root_id=None)

Targets are the rows for (year, month) and (year, NULL); the month-specific
row wins, the annual row is the fallback, ``default_target`` is the last
resort. Actuals are the rows for the exact (year, month) only.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Mapping

VALID = "valid"
WARNING = "warning"
DANGER = "danger"


def achievement_rate(target: float | None, actual: float | None) -> int | None:
    """``round(actual / target * 100)``, or None when either side is unset or target is 0.

    Halves round up, matching how the dashboards display percentages.
    """
    if target is None or actual is None or target == 0:
        return None
    return int(math.floor(actual / target * 100 + 0.5))


def classify_benchmark(target, benchmark_min, benchmark_max) -> str | None:
    """Judge a target against its benchmark band."""
    if target is None or benchmark_min is None or benchmark_max is None:
        return None
    if target < benchmark_min:
        return WARNING
    if target > benchmark_max:
        return DANGER
    return VALID


@dataclass
class KpiNode:
    id: str
    name: str
    level: int
    parent_kpi_id: str | None = None
    agent: str | None = None
    category: str | None = None
    unit: str | None = None
    description: str | None = None
    default_target: float | None = None
    benchmark_min: float | None = None
    benchmark_max: float | None = None
    target_value: float | None = None
    actual_value: float | None = None
    achievement_rate: int | None = None
    benchmark_status: str | None = None
    children: list["KpiNode"] = field(default_factory=list)

    def walk(self):
        """Yield this node and every descendant, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "parent_kpi_id": self.parent_kpi_id,
            "agent": self.agent,
            "category": self.category,
            "unit": self.unit,
            "description": self.description,
            "default_target": self.default_target,
            "benchmark_min": self.benchmark_min,
            "benchmark_max": self.benchmark_max,
            "target_value": self.target_value,
            "actual_value": self.actual_value,
            "achievement_rate": self.achievement_rate,
            "benchmark_status": self.benchmark_status,
            "children": [child.to_dict() for child in self.children],
        }


def resolve_targets(definitions: Iterable[Mapping], targets: Iterable[Mapping]) -> dict:
    """Effective target per kpi id: month row, else annual row, else default."""
    monthly: dict[str, float | None] = {}
    annual: dict[str, float | None] = {}
    for row in targets:
        bucket = annual if row.get("month") is None else monthly
        bucket[row["kpi_id"]] = row.get("target_value")

    resolved = {}
    for d in definitions:
        kpi_id = d["id"]
        if monthly.get(kpi_id) is not None:
            resolved[kpi_id] = monthly[kpi_id]
        elif annual.get(kpi_id) is not None:
            resolved[kpi_id] = annual[kpi_id]
        else:
            resolved[kpi_id] = d.get("default_target")
    return resolved


def _children_index(definitions: Iterable[Mapping]) -> dict[str | None, list[str]]:
    index: dict[str | None, list[str]] = defaultdict(list)
    for d in definitions:
        index[d.get("parent_kpi_id")].append(d["id"])
    return index


def subtree_ids(definitions: Iterable[Mapping], root_id: str) -> set[str]:
    """``root_id`` plus all of its transitive descendants."""
    index = _children_index(definitions)
    keep: set[str] = set()
    stack = [root_id]
    while stack:
        current = stack.pop()
        if current in keep:
            continue
        keep.add(current)
        stack.extend(index.get(current, ()))
    return keep


def build_tree(
    definitions: Iterable[Mapping],
    targets: Iterable[Mapping] = (),
    actuals: Iterable[Mapping] = (),
    filter_root_id: str | None = None,
) -> list[KpiNode]:
    """Assemble the KPI forest for one project period.

    With ``filter_root_id`` only that node, its descendants and the level 1
    root are kept. Nodes whose parent is not in the kept set become roots
    when they are level 1 and are dropped otherwise.
    """
    definitions = list(definitions)
    effective_targets = resolve_targets(definitions, targets)
    actual_by_kpi = {row["kpi_id"]: row.get("actual_value") for row in actuals}

    if filter_root_id is not None:
        keep = subtree_ids(definitions, filter_root_id)
        keep.update(d["id"] for d in definitions if d.get("level") == 1)
        definitions = [d for d in definitions if d["id"] in keep]

    nodes: dict[str, KpiNode] = {}
    for d in definitions:
        if d["id"] in nodes:
            continue
        target = effective_targets.get(d["id"])
        actual = actual_by_kpi.get(d["id"])
        nodes[d["id"]] = KpiNode(
            id=d["id"],
            name=d.get("name"),
            level=d.get("level"),
            parent_kpi_id=d.get("parent_kpi_id"),
            agent=d.get("agent"),
            category=d.get("category"),
            unit=d.get("unit"),
            description=d.get("description"),
            default_target=d.get("default_target"),
            benchmark_min=d.get("benchmark_min"),
            benchmark_max=d.get("benchmark_max"),
            target_value=target,
            actual_value=actual,
            achievement_rate=achievement_rate(target, actual),
            benchmark_status=classify_benchmark(
                target, d.get("benchmark_min"), d.get("benchmark_max")
            ),
        )

    roots: list[KpiNode] = []
    for node in nodes.values():
        parent = nodes.get(node.parent_kpi_id) if node.parent_kpi_id else None
        if parent is not None and parent is not node:
            parent.children.append(node)
        elif node.level == 1:
            roots.append(node)
    return roots


def drivers(definitions: Iterable[Mapping]) -> list[dict]:
    """Level 2 definitions, offered as driver filters."""
    return [
        {"id": d["id"], "name": d.get("name"), "agent": d.get("agent")}
        for d in definitions
        if d.get("level") == 2
    ]
