"""
Shared fixtures. Unit tests never call the real binaries, commands are
answered by invoke's MockContext.
"""
import io
import json
import os
import shlex
from pathlib import Path
from shutil import which
from typing import Callable, Dict, List, Sequence, Union
from urllib.error import HTTPError

import pytest
from invoke import Context, MockContext, Result


@pytest.fixture()
def hake_home(tmp_path, monkeypatch) -> Path:
    """Points $HAKE_HOME to a temporary folder"""
    home = tmp_path / ".hake"
    monkeypatch.setenv("HAKE_HOME", str(home))
    return home


def command(args: Sequence[str]) -> str:
    """The command line run_tool produces for args"""
    return shlex.join(args)


@pytest.fixture()
def mock_ctx() -> Callable[..., MockContext]:
    """Builds a MockContext from {args or command: stdout or Result}"""

    def _build(answers: Dict[Union[str, tuple], Union[str, Result]]) -> MockContext:
        run = {}
        for cmd, answer in answers.items():
            if not isinstance(cmd, str):
                cmd = command(cmd)
            if not isinstance(answer, Result):
                answer = Result(stdout=answer)
            run[cmd] = answer
        return MockContext(run=run, repeat=True)

    return _build


def docker_ps_line(name: str, image="kindest/node:v1.27.3") -> str:
    return json.dumps({"ID": "abc123", "Image": image, "Names": name, "State": "running"})


class FakeResponse:
    def __init__(self, status=200, body: Union[bytes, dict] = b""):
        self.status = status
        if isinstance(body, dict):
            body = json.dumps(body).encode("utf-8")
        self.body = body

    def read(self) -> bytes:
        return self.body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeDigitalOcean:
    """Replaces urlopen, answers by (method, url) and records the requests"""

    def __init__(self):
        self.routes: Dict[tuple, List] = {}
        self.requests: List = []

    def add(self, method: str, url: str, *answers):
        self.routes.setdefault((method, url), []).extend(answers)

    def __call__(self, req, *args, **kwargs):
        self.requests.append(req)
        key = (req.get_method(), req.full_url)
        answers = self.routes.get(key)
        if not answers:
            raise AssertionError(f"Unexpected request {key}")
        answer = answers.pop(0) if len(answers) > 1 else answers[0]
        if isinstance(answer, int) and answer >= 400:
            raise HTTPError(req.full_url, answer, "error", {}, io.BytesIO(b"{}"))
        return answer

    def sent(self, method: str, url: str) -> List:
        return [r for r in self.requests if (r.get_method(), r.full_url) == (method, url)]


@pytest.fixture()
def fake_do(monkeypatch) -> FakeDigitalOcean:
    fake = FakeDigitalOcean()
    monkeypatch.setattr("hake._digitalocean.urlopen", fake)
    monkeypatch.setattr("hake._digitalocean.time.sleep", lambda _seconds: None)
    monkeypatch.setenv("HAKE_PROVIDER_DIGITALOCEAN_API_KEY", "secret-token")
    return fake


@pytest.fixture(scope="session")
def docker():
    path = which("docker")
    if not path:
        raise pytest.skip("docker not available")
    return path


@pytest.fixture(scope="session")
def kind(docker):
    if not os.environ.get("HAKE_TEST_EXTERNAL"):
        raise pytest.skip("Set HAKE_TEST_EXTERNAL=1 to create real clusters")
    path = which("kind")
    if not path:
        raise pytest.skip("kind not available")
    return path


@pytest.fixture()
def ctx() -> Context:
    return Context()
