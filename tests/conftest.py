import threading
from typing import Dict, List, Optional, Set, Tuple

import pytest

from keto_tokens.cloud.models import NodeID, NodeTags, Pool, filter_pools
from keto_tokens.errors import NotFoundError, SecretConflictError, TransientStoreError


# ----------------- Fake tag store -----------------

class FakeTagStore:
    def __init__(self, pools: Optional[List[Pool]] = None, node_id: str = "compute00",
                 node_tags: Optional[Dict[str, Dict[str, str]]] = None):
        self._lock = threading.RLock()
        self.pools = pools or []
        self.node_id = NodeID(node_id)
        self.nodes: Dict[NodeID, NodeTags] = {}
        for p in self.pools:
            for n in p.nodes:
                self.nodes[n] = NodeTags(p.tags).clone()
        for n, tags in (node_tags or {}).items():
            self.nodes[NodeID(n)] = NodeTags(tags)
        self.fail_writes: Set[str] = set()
        self.fail_reads: Set[str] = set()
        self.describe_error: Optional[Exception] = None
        self.writes: List[Tuple[str, Dict[str, str]]] = []

    def get_node_id(self):
        return self.node_id

    def describe_pools(self, filters):
        if self.describe_error:
            raise self.describe_error
        return filter_pools(self.pools, filters)

    def get_node_tags(self, node_id):
        with self._lock:
            if node_id in self.fail_reads:
                raise RuntimeError(f"access denied reading {node_id}")
            if node_id not in self.nodes:
                raise NotFoundError(f"instance {node_id} not found")
            return self.nodes[node_id].clone()

    def get_node_tag(self, node_id, key):
        return self.get_node_tags(node_id).get(key)

    def set_node_tags(self, node_id, tags):
        with self._lock:
            if node_id in self.fail_writes:
                raise RuntimeError(f"access denied tagging {node_id}")
            if node_id not in self.nodes:
                raise NotFoundError(f"instance {node_id} not found")
            self.nodes[node_id].update(tags)
            self.writes.append((node_id, dict(tags)))


# ----------------- Fake secret store -----------------

class FakeSecretStore:
    def __init__(self):
        self._lock = threading.Lock()
        self.secrets: Dict[Tuple[str, str], Dict[str, str]] = {}
        self.types: Dict[Tuple[str, str], str] = {}
        self.calls: List[Tuple[str, str]] = []
        self.transient_creates = 0           # fail this many creates with a transient error
        self.create_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None

    def get(self, name, namespace):
        with self._lock:
            self.calls.append(("get", name))
            data = self.secrets.get((namespace, name))
            return dict(data) if data is not None else None

    def create(self, name, namespace, data, secret_type):
        with self._lock:
            self.calls.append(("create", name))
            if self.create_error:
                raise self.create_error
            if self.transient_creates > 0:
                self.transient_creates -= 1
                raise TransientStoreError("etcd leader changed")
            if (namespace, name) in self.secrets:
                raise SecretConflictError(f"secret {namespace}/{name} already exists")
            self.secrets[(namespace, name)] = dict(data)
            self.types[(namespace, name)] = secret_type

    def delete(self, name, namespace):
        with self._lock:
            self.calls.append(("delete", name))
            if self.delete_error:
                raise self.delete_error
            self.secrets.pop((namespace, name), None)

    def count(self, what):
        return sum(1 for c, _ in self.calls if c == what)


def fake_pools() -> List[Pool]:
    return [
        Pool(
            name="masters",
            nodes=[NodeID("master0"), NodeID("master1")],
            tags=NodeTags({"Role": "master", "Env": "dev"}),
        ),
        Pool(
            name="compute0",
            nodes=[NodeID("compute00-gp0"), NodeID("compute01-gp0")],
            tags=NodeTags({"Role": "compute", "Env": "dev"}),
        ),
        Pool(
            name="compute1",
            nodes=[NodeID(n) for n in ("compute00-gp1", "compute01-gp1", "compute02-gp1", "compute02-gp1")],
            tags=NodeTags({"Role": "compute", "Env": "dev"}),
        ),
    ]


@pytest.fixture
def pools():
    return fake_pools()


@pytest.fixture
def tag_store(pools):
    return FakeTagStore(pools)


@pytest.fixture
def secret_store():
    return FakeSecretStore()


@pytest.fixture
def make_tag_store():
    return FakeTagStore


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)

    def kinds(self):
        return [e.__class__.__name__ for e in self.events]


@pytest.fixture
def capture():
    return Capture()
