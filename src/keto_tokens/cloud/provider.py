# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/cloud/provider.py
from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional, Protocol

from keto_tokens.cloud.models import NodeID, NodeTags, Pool
from keto_tokens.errors import ProviderNotRegisteredError


class TagStore(Protocol):
    """
    Key/value tags attached to compute nodes.

    Unknown node ids raise NotFoundError. Writes to a single node are atomic;
    nothing is transactional across nodes.
    """

    def get_node_id(self) -> NodeID: ...

    def describe_pools(self, filters: Mapping[str, str]) -> List[Pool]: ...

    def get_node_tags(self, node_id: NodeID) -> NodeTags: ...

    def get_node_tag(self, node_id: NodeID, key: str) -> Optional[str]: ...

    def set_node_tags(self, node_id: NodeID, tags: Mapping[str, str]) -> None: ...


ProviderFactory = Callable[[], TagStore]


class ProviderRegistry:
    """
    Table of cloud providers by name, built once at startup and handed to
    whoever needs a TagStore.
    """

    def __init__(self, factories: Optional[Dict[str, ProviderFactory]] = None):
        self._factories: Dict[str, ProviderFactory] = dict(factories or {})

    def register(self, name: str, factory: ProviderFactory) -> "ProviderRegistry":
        self._factories[name] = factory
        return self

    def has(self, name: str) -> bool:
        return name in self._factories

    def names(self) -> List[str]:
        return sorted(self._factories)

    def get(self, name: str) -> TagStore:
        """Construct the named provider. Raises ProviderNotRegisteredError if unknown."""
        try:
            factory = self._factories[name]
        except KeyError:
            raise ProviderNotRegisteredError(
                f"provider '{name}' not registered "
                f"(available: {', '.join(self.names()) or 'none'})"
            ) from None
        return factory()


def default_registry() -> ProviderRegistry:
    from keto_tokens.cloud.aws import AWSProvider

    return ProviderRegistry().register("aws", AWSProvider.from_environment)
