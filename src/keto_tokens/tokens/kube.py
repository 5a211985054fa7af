# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/tokens/kube.py

from __future__ import annotations

import base64
import logging
from typing import Dict, Optional

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from keto_tokens.config.models import ServerConfig
from keto_tokens.errors import SecretConflictError, StoreError, TransientStoreError

log = logging.getLogger("keto_tokens")


def _b64encode_str(s: str) -> str:
    return base64.b64encode(s.encode("utf-8")).decode("ascii")


def _b64decode_str(s: str) -> str:
    return base64.b64decode(s).decode("utf-8", errors="replace")


def _is_transient(status: Optional[int]) -> bool:
    return status is None or status == 429 or status >= 500


def get_kube_client(cfg: ServerConfig) -> client.CoreV1Api:
    """
    Build a CoreV1Api client, in order of preference:
      - master URL + bearer token (TLS verification disabled)
      - an explicit kubeconfig file
      - the in-cluster service account
    """
    if cfg.master and cfg.kube_token:
        configuration = client.Configuration()
        configuration.host = cfg.master
        configuration.api_key = {"authorization": cfg.kube_token}
        configuration.api_key_prefix = {"authorization": "Bearer"}
        configuration.verify_ssl = False
        api_client = client.ApiClient(configuration)
    elif cfg.kubeconfig:
        api_client = config.new_client_from_config(config_file=cfg.kubeconfig)
    else:
        config.load_incluster_config()
        api_client = client.ApiClient()
    return client.CoreV1Api(api_client)


class KubeSecretStore:
    """
    SecretStore over the Kubernetes API.
    """

    def __init__(self, api: client.CoreV1Api):
        self.api = api

    def get(self, name: str, namespace: str) -> Optional[Dict[str, str]]:
        try:
            secret = self.api.read_namespaced_secret(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise self._translate(e, f"read secret {namespace}/{name}") from e
        except HTTPError as e:
            raise TransientStoreError(f"failed to read secret {namespace}/{name}: {e}") from e
        return {k: _b64decode_str(v) for k, v in (secret.data or {}).items()}

    def create(self, name: str, namespace: str, data: Dict[str, str], secret_type: str) -> None:
        body = client.V1Secret(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace),
            type=secret_type,
            data={k: _b64encode_str(v) for k, v in data.items()},
        )
        try:
            self.api.create_namespaced_secret(namespace=namespace, body=body)
        except ApiException as e:
            if e.status == 409:
                raise SecretConflictError(f"secret {namespace}/{name} already exists") from e
            raise self._translate(e, f"create secret {namespace}/{name}") from e
        except HTTPError as e:
            raise TransientStoreError(f"failed to create secret {namespace}/{name}: {e}") from e
        log.debug("created secret %s/%s", namespace, name)

    def delete(self, name: str, namespace: str) -> None:
        try:
            self.api.delete_namespaced_secret(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return
            raise self._translate(e, f"delete secret {namespace}/{name}") from e
        except HTTPError as e:
            raise TransientStoreError(f"failed to delete secret {namespace}/{name}: {e}") from e
        log.debug("deleted secret %s/%s", namespace, name)

    @staticmethod
    def _translate(e: ApiException, what: str) -> StoreError:
        msg = f"failed to {what}: {e.status} {e.reason}"
        if _is_transient(e.status):
            return TransientStoreError(msg)
        return StoreError(msg)
