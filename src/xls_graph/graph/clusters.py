"""Cluster bounding boxes for grouped layouts."""

from __future__ import annotations

from collections.abc import Sequence

from ..models import ClusterBox, GraphNode, Position
from .builder import display_name
from .layout import EXTERNAL_GROUP, NODE_HEIGHT, NODE_WIDTH

CLUSTER_PAD = 24
CLUSTER_LABEL_H = 28

EXTERNAL_LABEL = "External Files"


def compute_cluster_nodes(nodes: Sequence[GraphNode]) -> list[ClusterBox]:
    """Compute one background rectangle per workbook group.

    The external group gets a box only when it has more than one member.
    Boxes cover every member's footprint, padded on all sides, with a label
    band on top. Positions must already be assigned.
    """
    groups: dict[str, list[GraphNode]] = {}
    external: list[GraphNode] = []
    for node in nodes:
        if node.is_external:
            external.append(node)
        else:
            groups.setdefault(node.workbook_name, []).append(node)

    clusters = [
        _enclose(members, f"[cluster]{wb}", display_name(wb), wb, is_external=False)
        for wb, members in groups.items()
    ]

    if len(external) > 1:
        clusters.append(_enclose(
            external, f"[cluster]{EXTERNAL_GROUP}", EXTERNAL_LABEL, EXTERNAL_GROUP, is_external=True,
        ))

    return clusters


def _enclose(members: list[GraphNode], cluster_id: str, label: str, workbook: str, is_external: bool) -> ClusterBox:
    min_x = min(n.position.x for n in members)
    min_y = min(n.position.y for n in members)
    max_x = max(n.position.x + NODE_WIDTH for n in members)
    max_y = max(n.position.y + NODE_HEIGHT for n in members)

    return ClusterBox(
        id=cluster_id,
        label=label,
        workbook_name=workbook,
        position=Position(min_x - CLUSTER_PAD, min_y - CLUSTER_PAD - CLUSTER_LABEL_H),
        width=max_x - min_x + CLUSTER_PAD * 2,
        height=max_y - min_y + CLUSTER_PAD * 2 + CLUSTER_LABEL_H,
        is_external=is_external,
    )
