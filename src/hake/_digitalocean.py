"""
DigitalOcean Kubernetes (DOKS) through the v2 REST API:

https://docs.digitalocean.com/reference/api/api-reference/#tag/Kubernetes
"""
import json
import logging
import os
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urljoin
from urllib.request import urlopen

from ._state import ClusterDir
from ._utils import create_request, env_int

ENV_DO_PROVIDER = "HAKE_PROVIDER_DIGITALOCEAN_API_KEY"
DO_API_URL = "https://api.digitalocean.com/v2/"

HAKE_DO_REGION = os.environ.get("HAKE_DO_REGION", "lon1")
HAKE_DO_VERSION = os.environ.get("HAKE_DO_VERSION", "latest")
HAKE_DO_NODE_SIZE = os.environ.get("HAKE_DO_NODE_SIZE", "s-6vcpu-16gb")
HAKE_DO_NODE_COUNT = env_int("HAKE_DO_NODE_COUNT", 2)

# The kubeconfig is not served until the cluster has been "prepared"
KUBECONFIG_INITIAL_WAIT = 10
KUBECONFIG_POLL_INTERVAL = 10
KUBECONFIG_POLL_ATTEMPTS = 30

PER_PAGE = 200

# Kubeconfig polling also retries on 5xx and network errors
RETRY_STATUSES = {404, 429}


class DigitalOceanError(Exception):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


@dataclass
class LoadBalancer:
    id: str  # noqa: A003
    name: str
    droplet_ids: List[int] = field(default_factory=list)
    status: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoadBalancer":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            droplet_ids=list(data.get("droplet_ids") or []),
            status=data.get("status"),
        )


def get_api_key() -> str:
    api_key = os.environ.get(ENV_DO_PROVIDER)
    if not api_key:
        raise DigitalOceanError(f"Please define ${ENV_DO_PROVIDER}")
    return api_key


def cluster_request(
    name: str,
    region: str = HAKE_DO_REGION,
    version: str = HAKE_DO_VERSION,
    node_size: str = HAKE_DO_NODE_SIZE,
    node_count: int = HAKE_DO_NODE_COUNT,
) -> Dict[str, Any]:
    """The payload to create a cluster with a single node pool"""
    return {
        "name": name,
        "region": region,
        "version": version,
        "node_pools": [
            {
                "size": node_size,
                "count": int(node_count),
                "name": f"nodepool-{name}",
            }
        ],
    }


class DigitalOceanClient:
    """Minimal client for the endpoints hake needs"""

    def __init__(self, api_key: str, base_url: str = DO_API_URL):
        self.api_key = api_key
        self.base_url = base_url

    def url(self, path: str) -> str:
        if path.startswith(("http:", "https:")):
            return path
        return urljoin(self.base_url, path.lstrip("/"))

    def request(self, method: str, path: str, payload=None):
        """Sends a request, returns (status, body bytes)"""
        url = self.url(path)
        data = None if payload is None else json.dumps(payload).encode("utf-8")
        logging.debug(f"{method} {url}")
        req = create_request(url, method=method, token=self.api_key, data=data)
        try:
            with urlopen(req) as response:  # noqa: S310
                return response.status, response.read()
        except HTTPError as error:
            body = error.read().decode("utf-8", errors="replace")
            raise DigitalOceanError(
                f"{method} {url} failed: {error.code} {error.reason} {body}".strip(),
                status=error.code,
            ) from error
        except URLError as error:
            raise DigitalOceanError(f"{method} {url} failed: {error.reason}") from error

    def request_json(self, method: str, path: str, payload=None) -> Dict[str, Any]:
        _, body = self.request(method, path, payload)
        try:
            return json.loads(body) if body else {}
        except ValueError as error:
            raise DigitalOceanError(f"Invalid JSON from {path}: {error}") from error

    def paginate(self, path: str, key: str) -> Iterator[Dict[str, Any]]:
        """Iterates over the items of a listing, following links.pages.next"""
        next_path: Optional[str] = f"{path}?per_page={PER_PAGE}"
        while next_path:
            data = self.request_json("GET", next_path)
            yield from data.get(key, [])
            next_path = data.get("links", {}).get("pages", {}).get("next")

    def create_cluster(self, payload: Dict[str, Any]) -> str:
        status, body = self.request("POST", "kubernetes/clusters", payload)
        if status != 201:
            raise DigitalOceanError(f"Could not create cluster: {status}")
        try:
            return json.loads(body)["kubernetes_cluster"]["id"]
        except (ValueError, KeyError, TypeError) as error:
            raise DigitalOceanError(f"Unexpected create response: {error}") from error

    def get_kubeconfig(self, cluster_id: str) -> bytes:
        _, body = self.request("GET", f"kubernetes/clusters/{cluster_id}/kubeconfig")
        return body

    def delete_cluster(self, cluster_id: str) -> None:
        self.request("DELETE", f"kubernetes/clusters/{cluster_id}")

    def droplet_ids(self) -> List[int]:
        return [droplet["id"] for droplet in self.paginate("droplets", "droplets")]

    def load_balancers(self) -> List[LoadBalancer]:
        return [
            LoadBalancer.from_dict(lb)
            for lb in self.paginate("load_balancers", "load_balancers")
        ]

    def delete_load_balancer(self, lb_id: str) -> None:
        self.request("DELETE", f"load_balancers/{lb_id}")


def get_client() -> DigitalOceanClient:
    return DigitalOceanClient(get_api_key())


def is_retryable(error: DigitalOceanError) -> bool:
    """Whether polling again can succeed"""
    return error.status is None or error.status in RETRY_STATUSES or error.status >= 500


def wait_for_kubeconfig(
    client: DigitalOceanClient,
    cluster_id: str,
    initial_wait=KUBECONFIG_INITIAL_WAIT,
    interval=KUBECONFIG_POLL_INTERVAL,
    attempts=KUBECONFIG_POLL_ATTEMPTS,
) -> bytes:
    """Sleeps, then polls the kubeconfig endpoint until it is served"""
    time.sleep(initial_wait)
    for attempt in range(1, attempts + 1):
        try:
            return client.get_kubeconfig(cluster_id)
        except DigitalOceanError as error:
            if attempt == attempts or not is_retryable(error):
                raise
            logging.info(f"Kubeconfig not ready ({attempt}/{attempts}): {error}")
            time.sleep(interval)


def create(
    name: str,
    region: str = HAKE_DO_REGION,
    version: str = HAKE_DO_VERSION,
    node_size: str = HAKE_DO_NODE_SIZE,
    node_count: int = HAKE_DO_NODE_COUNT,
    client: Optional[DigitalOceanClient] = None,
) -> ClusterDir:
    """Creates a DOKS cluster, saves its id and kubeconfig in ~/.hake/name"""
    cluster = ClusterDir.for_name(name)
    if cluster.exists():
        raise FileExistsError(f"Cluster {name} already exists in {cluster.path}")
    client = client or get_client()
    cluster_id = client.create_cluster(
        cluster_request(name, region, version, node_size, node_count)
    )
    print(f"Cluster created with id: {cluster_id}", file=sys.stderr)
    cluster.create()
    cluster.write_cluster_id(cluster_id)
    cluster.kubeconfig.write_bytes(wait_for_kubeconfig(client, cluster_id))
    return cluster


def delete(name: str, client: Optional[DigitalOceanClient] = None) -> None:
    cluster = ClusterDir.for_name(name).require()
    cluster_id = cluster.read_cluster_id()
    client = client or get_client()
    try:
        client.delete_cluster(cluster_id)
    except DigitalOceanError as error:
        if error.status != 404:
            raise
        logging.warning(f"Cluster {cluster_id} not found in DigitalOcean: {error}")
    cluster.remove()


def orphan_load_balancers(
    load_balancers: List[LoadBalancer], droplet_ids: List[int]
) -> List[LoadBalancer]:
    """Load balancers not pointing to any existing droplet"""
    existing = set(droplet_ids)
    return [lb for lb in load_balancers if not existing.intersection(lb.droplet_ids)]


def clean(dry_run=False, client: Optional[DigitalOceanClient] = None) -> List[LoadBalancer]:
    """Removes the load balancers left behind by deleted clusters"""
    client = client or get_client()
    orphans = orphan_load_balancers(client.load_balancers(), client.droplet_ids())
    for lb in orphans:
        if dry_run:
            print(f"Would delete load balancer {lb.name} ({lb.id})", file=sys.stderr)
            continue
        print(f"Deleting load balancer {lb.name} ({lb.id})", file=sys.stderr)
        client.delete_load_balancer(lb.id)
    return orphans
