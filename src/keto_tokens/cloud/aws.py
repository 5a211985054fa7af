# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/cloud/aws.py

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Iterable, List, Mapping, Optional

import boto3
import requests
from botocore.exceptions import ClientError

from keto_tokens.cloud.models import NodeID, NodeTags, Pool
from keto_tokens.errors import NotFoundError

log = logging.getLogger("keto_tokens")

IMDS_URL = "http://169.254.169.254/latest"
IMDS_TOKEN_TTL = "300"


def get_instance_identity(timeout: float = 2.0) -> Dict[str, Any]:
    """
    Fetch the EC2 instance identity document (IMDSv2: session token first).
    """
    r = requests.put(
        f"{IMDS_URL}/api/token",
        headers={"X-aws-ec2-metadata-token-ttl-seconds": IMDS_TOKEN_TTL},
        timeout=timeout,
    )
    r.raise_for_status()
    doc = requests.get(
        f"{IMDS_URL}/dynamic/instance-identity/document",
        headers={"X-aws-ec2-metadata-token": r.text},
        timeout=timeout,
    )
    doc.raise_for_status()
    return doc.json()


def _tags_from(items: Optional[Iterable[Mapping[str, Any]]]) -> NodeTags:
    tags = NodeTags()
    for t in items or []:
        key, value = t.get("Key"), t.get("Value")
        if key is None or value is None:
            continue
        tags[key] = value
    return tags


class AWSProvider:
    """
    Tag store backed by EC2 instance tags; pools are auto-scaling groups.
    """

    def __init__(
        self,
        *,
        ec2,
        autoscaling,
        identity: Optional[Dict[str, Any]] = None,
    ):
        self.ec2 = ec2
        self.autoscaling = autoscaling
        self._identity = identity

    @classmethod
    def from_environment(cls) -> "AWSProvider":
        identity = None
        region = os.environ.get("AWS_DEFAULT_REGION")
        if not region:
            identity = get_instance_identity()
            region = identity["region"]
        log.debug("using aws region %s", region)
        return cls(
            ec2=boto3.client("ec2", region_name=region),
            autoscaling=boto3.client("autoscaling", region_name=region),
            identity=identity,
        )

    # ------------------------------------------------------------------
    # TagStore
    # ------------------------------------------------------------------
    def get_node_id(self) -> NodeID:
        if self._identity is None:
            self._identity = get_instance_identity()
        return NodeID(self._identity["instanceId"])

    def describe_pools(self, filters: Mapping[str, str]) -> List[Pool]:
        # autoscaling cannot search by tag, so filter client side
        pools: List[Pool] = []
        paginator = self.autoscaling.get_paginator("describe_auto_scaling_groups")
        for page in paginator.paginate():
            for group in page.get("AutoScalingGroups", []):
                tags = _tags_from(group.get("Tags"))
                if not tags.matches(filters):
                    continue
                pools.append(
                    Pool(
                        name=group["AutoScalingGroupName"],
                        nodes=[NodeID(i["InstanceId"]) for i in group.get("Instances", [])],
                        tags=tags,
                    )
                )
        return pools

    def get_node_tags(self, node_id: NodeID) -> NodeTags:
        try:
            resp = self.ec2.describe_instances(InstanceIds=[str(node_id)])
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code.startswith("InvalidInstanceID"):
                raise NotFoundError(f"instance {node_id} not found") from e
            raise

        reservations = resp.get("Reservations") or []
        if not reservations or not reservations[0].get("Instances"):
            raise NotFoundError(f"instance {node_id} not found")

        return _tags_from(reservations[0]["Instances"][0].get("Tags"))

    def get_node_tag(self, node_id: NodeID, key: str) -> Optional[str]:
        return self.get_node_tags(node_id).get(key)

    def set_node_tags(self, node_id: NodeID, tags: Mapping[str, str]) -> None:
        if not tags:
            return
        try:
            self.ec2.create_tags(
                Resources=[str(node_id)],
                Tags=[{"Key": k, "Value": v} for k, v in tags.items()],
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code.startswith("InvalidInstanceID"):
                raise NotFoundError(f"instance {node_id} not found") from e
            raise
