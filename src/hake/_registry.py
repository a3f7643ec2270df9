"""
Private registry credentials for the kubelet.

The credentials are fetched with the ECR docker credential helper
(https://github.com/awslabs/amazon-ecr-credential-helper) and written as a
docker config.json that kind mounts in the control plane node.
"""
import base64
import json
import os
from dataclasses import dataclass
from io import StringIO
from pathlib import Path
from typing import Union

from invoke import Context

from ._utils import ToolError, run_tool

HAKE_ECR_REGISTRY = os.environ.get("HAKE_ECR_REGISTRY")
CREDENTIAL_HELPER = "docker-credential-ecr-login"


class RegistryError(Exception):
    pass


@dataclass
class DockerLogin:
    Username: str
    Secret: str

    def auth(self) -> str:
        pair = f"{self.Username}:{self.Secret}"
        return base64.b64encode(pair.encode("utf-8")).decode("ascii")


def get_docker_credentials(ctx: Context, registry: str) -> DockerLogin:
    """Asks the credential helper for the registry login"""
    try:
        result = run_tool(ctx, [CREDENTIAL_HELPER, "get"], in_stream=StringIO(registry))
    except ToolError as error:
        raise RegistryError(f"Could not get credentials for {registry}: {error}")
    try:
        data = json.loads(result.stdout)
        return DockerLogin(Username=data["Username"], Secret=data["Secret"])
    except (ValueError, KeyError, TypeError) as error:
        raise RegistryError(
            f"Unexpected output from {CREDENTIAL_HELPER} for {registry}: {error}"
        )


def docker_config_json(registry: str, login: DockerLogin) -> str:
    return json.dumps({"auths": {registry: {"auth": login.auth()}}})


def write_docker_config(ctx: Context, registry: str, path: Union[str, Path]) -> Path:
    """Writes a docker config.json with the credentials of the registry"""
    login = get_docker_credentials(ctx, registry)
    path = Path(path)
    path.write_text(docker_config_json(registry, login))
    path.chmod(0o600)
    return path
