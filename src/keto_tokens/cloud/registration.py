# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/cloud/registration.py

"""
The registration tag carries the whole bootstrap protocol state in one string:

  absent            -> no token issued yet
  any other value   -> a token offered to the node, not yet claimed
  "Success"         -> the node claimed its token

Only this module looks at raw tag values.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from keto_tokens.cloud.models import NodeID, NodeTags
from keto_tokens.cloud.provider import TagStore

# Written by the client once it has consumed the token
COMPLETED_TAG_VALUE = "Success"

DEFAULT_TAG_NAME = "KubeletToken"


class TagState(str, enum.Enum):
    ABSENT = "absent"
    OFFERED = "offered"
    CLAIMED = "claimed"


@dataclass(frozen=True)
class RegistrationState:
    state: TagState
    token: Optional[str] = None

    @property
    def present(self) -> bool:
        return self.state is not TagState.ABSENT

    @classmethod
    def from_raw(cls, value: Optional[str]) -> "RegistrationState":
        if value is None:
            return cls(TagState.ABSENT)
        if value == COMPLETED_TAG_VALUE:
            return cls(TagState.CLAIMED)
        return cls(TagState.OFFERED, token=value)


class RegistrationTag:
    """
    Reads and writes the registration tag of a node through a TagStore.
    """

    def __init__(self, store: TagStore, tag_name: str = DEFAULT_TAG_NAME):
        self.store = store
        self.tag_name = tag_name

    def read(self, node_id: NodeID) -> RegistrationState:
        return RegistrationState.from_raw(self.store.get_node_tag(node_id, self.tag_name))

    def offer(self, node_id: NodeID, token: str) -> None:
        if token == COMPLETED_TAG_VALUE:
            raise ValueError("refusing to offer the completion marker as a token")
        self.store.set_node_tags(node_id, NodeTags({self.tag_name: token}))

    def mark_claimed(self, node_id: NodeID) -> None:
        self.store.set_node_tags(node_id, NodeTags({self.tag_name: COMPLETED_TAG_VALUE}))
