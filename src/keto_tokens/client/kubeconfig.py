# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/client/kubeconfig.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONTEXT_NAME = "bootstrap-context"
CLUSTER_NAME = "cluster"


def build_kubeconfig(token: str, master: str, ca_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Minimal bootstrap kubeconfig: one cluster, one token user, one context.
    Without a CA path the cluster is marked insecure-skip-tls-verify.
    """
    cluster: Dict[str, Any] = {"server": master}
    if ca_path:
        cluster["certificate-authority"] = ca_path
    else:
        cluster["insecure-skip-tls-verify"] = True

    return {
        "kind": "Config",
        "apiVersion": "v1",
        "preferences": {},
        "clusters": [
            {"name": CLUSTER_NAME, "cluster": cluster},
        ],
        "users": [
            {"name": CONTEXT_NAME, "user": {"token": token}},
        ],
        "contexts": [
            {
                "name": CONTEXT_NAME,
                "context": {"cluster": CLUSTER_NAME, "user": CONTEXT_NAME},
            },
        ],
        "current-context": CONTEXT_NAME,
    }


def render_kubeconfig(token: str, master: str, ca_path: Optional[str] = None) -> str:
    return yaml.safe_dump(
        build_kubeconfig(token, master, ca_path),
        sort_keys=False,
        default_flow_style=False,
    )


def write_kubeconfig(path: str | Path, content: str) -> Path:
    path = Path(path)
    path.parent.mkdir(mode=0o775, parents=True, exist_ok=True)
    # the file carries a live credential
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o640)
    with os.fdopen(fd, "w") as f:
        f.write(content)
    os.chmod(path, 0o640)
    return path
