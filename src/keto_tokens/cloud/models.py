# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/cloud/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, NewType, Tuple

NodeID = NewType("NodeID", str)


class NodeTags(Dict[str, str]):
    """
    A collection of resource tags on a node or pool.
    """

    def render(self) -> str:
        """Sorted key=value pairs joined by commas, e.g. 'Env=dev,Role=compute'."""
        return ",".join(f"{k}={self[k]}" for k in sorted(self))

    def clone(self) -> "NodeTags":
        return NodeTags(self)

    def matches(self, required: Mapping[str, str]) -> bool:
        """
        True when every required key is present with exactly the same value.
        An empty requirement matches everything.
        """
        return all(k in self and self[k] == v for k, v in required.items())

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]]) -> "NodeTags":
        return cls({k: v for k, v in pairs})


@dataclass
class Pool:
    """
    A named group of compute nodes (e.g. an auto-scaling group).
    """
    name: str
    nodes: List[NodeID] = field(default_factory=list)
    tags: NodeTags = field(default_factory=NodeTags)


def filter_pools(pools: Iterable[Pool], filters: Mapping[str, str]) -> List[Pool]:
    return [p for p in pools if NodeTags(p.tags).matches(filters)]
