"""Tree walker — flattens the device tree into pre-order plans."""

from __future__ import annotations

from nested_edge.core.models import DeviceNode, FlatPlan


def flatten(root: DeviceNode) -> list[str]:
    """Return every device id in pre-order, root first."""
    result = [root.device_id]
    for child in root.children:
        result.extend(flatten(child))
    return result


def edges(root: DeviceNode) -> list[tuple[str, str]]:
    """Return (parent, child) pairs in the same order flatten() visits them."""
    result: list[tuple[str, str]] = []
    for child in root.children:
        result.append((root.device_id, child.device_id))
        result.extend(edges(child))
    return result


def count_nodes(root: DeviceNode) -> int:
    return 1 + sum(count_nodes(child) for child in root.children)


def build_plan(root: DeviceNode) -> FlatPlan:
    return FlatPlan(nodes=tuple(flatten(root)), edges=tuple(edges(root)))
