"""
AWS EKS, read only for now
"""
import logging
import os
from typing import List, Optional

import boto3

HAKE_AWS_REGION = os.environ.get("HAKE_AWS_REGION", "us-east-1")


def list_clusters(region: Optional[str] = None) -> List[str]:
    """Names of the EKS clusters in a region"""
    region = region or HAKE_AWS_REGION
    logging.debug(f"Listing EKS clusters in {region}")
    client = boto3.client("eks", region_name=region)
    paginator = client.get_paginator("list_clusters")
    clusters: List[str] = []
    for page in paginator.paginate():
        clusters.extend(page.get("clusters", []))
    return clusters
