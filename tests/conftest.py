import copy
import inspect
import itertools
import json
import types
from typing import Any, Dict, List, Optional
from urllib.parse import unquote

import httpx
import pytest

from spechub.core.config import Settings
from spechub.remote.client import SpecHubClient

# Core modules / symbols we forbid patching for network realism
_FORBIDDEN_PREFIXES = [
    "httpx.",
    "requests.",
]

@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_call(item):
    # Capture monkeypatch fixture (if used) and inspect its setattribute/setitem usage
    mp = item.funcargs.get("monkeypatch") if hasattr(item, "funcargs") else None
    if mp:
        original_setattr = mp.setattr
        original_setitem = mp.setitem

        def guarded_setattr(target, name, value, *a, **kw):
            fq = None
            if isinstance(target, types.ModuleType):
                fq = f"{target.__name__}.{name}"
            elif inspect.isclass(target):
                fq = f"{target.__module__}.{target.__name__}.{name}"
            elif isinstance(target, str):
                fq = target
            if fq and any(fq.startswith(p) for p in _FORBIDDEN_PREFIXES):
                raise RuntimeError(f"Forbidden monkeypatch of core real dependency: {fq}")
            return original_setattr(target, name, value, *a, **kw)

        def guarded_setitem(mapping, key, value, *a, **kw):
            if any(str(key).startswith(p.split('.')[0]) for p in _FORBIDDEN_PREFIXES):
                raise RuntimeError(f"Forbidden monkeypatch attempt affecting: {key}")
            return original_setitem(mapping, key, value, *a, **kw)

        mp.setattr = guarded_setattr  # type: ignore
        mp.setitem = guarded_setitem  # type: ignore
    yield


# =============================================================================
# In-memory Spec Hub
# =============================================================================

OWNER = "17929829"


def default_collection_items() -> List[Dict[str, Any]]:
    """Item tree a generation of the sample spec produces (folder per tag)."""
    def request(name, method, path):
        return {
            "name": name,
            "request": {"method": method, "url": {"raw": "{{baseUrl}}" + path}},
            "event": [
                {"listen": "prerequest", "script": {"type": "text/javascript", "exec": ["// setup"]}},
                {"listen": "test", "script": {"type": "text/javascript", "exec": ["// stale"]}},
            ],
        }

    return [
        {
            "name": "tasks",
            "item": [
                request("List tasks", "GET", "/tasks"),
                request("Create task", "POST", "/tasks"),
                {
                    "name": "{taskId}",
                    "item": [
                        request("Get task", "GET", "/tasks/:taskId"),
                        request("Delete task", "DELETE", "/tasks/:taskId"),
                    ],
                },
            ],
        },
        {"name": "Health check", "request": {"method": "GET", "url": {"raw": "{{baseUrl}}/health"}}},
    ]


class FakeSpecHub:
    """
    Just enough of the Postman API for the sync protocol.

    Generated collections become visible in the workspace listing only after
    `generation_lag` further listing calls; `stall_generations` keeps them
    hidden for good.
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self.specs: Dict[str, Dict[str, Any]] = {}
        self.generations: Dict[str, List[Dict[str, str]]] = {}
        self.collections: Dict[str, Dict[str, Any]] = {}
        self.environments: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.generation_lag = 1
        self.stall_generations = False
        self.fail: Dict[tuple, int] = {}
        self.collection_items = default_collection_items()
        self._pending: Dict[str, int] = {}

    def _next(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids):04d}"

    # -- seeding helpers ------------------------------------------------------

    def add_spec(self, name: str, content: str = "{}") -> str:
        spec_id = self._next("spec")
        self.specs[spec_id] = {"id": spec_id, "name": name, "files": {"index.json": content}}
        return spec_id

    def add_collection(self, name: str, spec_id: Optional[str] = None, uid: Optional[str] = None) -> str:
        cid = self._next("col")
        uid = uid or f"{OWNER}-{cid}"
        self.collections[uid] = {
            "id": cid,
            "uid": uid,
            "name": name,
            "collection": {"info": {"name": name}, "item": copy.deepcopy(self.collection_items)},
            "tags": [],
        }
        if spec_id is not None:
            self.generations.setdefault(spec_id, []).append({"id": cid, "name": name})
        return uid

    def add_environment(self, name: str) -> str:
        uid = f"{OWNER}-{self._next('env')}"
        self.environments[uid] = {"uid": uid, "id": uid, "name": name, "values": []}
        return uid

    def count(self, method: str, prefix: str) -> int:
        return sum(1 for m, p in self.calls if m == method and p.startswith(prefix))

    def collection_named(self, name: str) -> Dict[str, Any]:
        return next(c for c in self.collections.values() if c["name"] == name)

    # -- transport ------------------------------------------------------------

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(lambda request: self.handle(request))

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = unquote(request.url.path)
        method = request.method
        self.calls.append((method, path))

        if (method, path) in self.fail:
            return httpx.Response(self.fail[(method, path)], json={"error": {"name": "serverError"}})
        if request.headers.get("X-Api-Key") != "test-key":
            return httpx.Response(401, json={"error": {"name": "AuthenticationError"}})

        body = json.loads(request.content) if request.content else {}
        params = request.url.params
        parts = path.strip("/").split("/")

        if parts[0] == "specs":
            return self._specs(method, parts, params, body)
        if parts[0] == "collections":
            return self._collections(method, parts, params, body)
        if parts[0] == "environments":
            return self._environments(method, parts, body)
        return httpx.Response(404, json={"error": {"name": "notFound"}})

    def _specs(self, method, parts, params, body):
        if len(parts) == 1 and method == "GET":
            specs = [{"id": s["id"], "name": s["name"]} for s in self.specs.values()]
            return httpx.Response(200, json={"specs": specs, "meta": {}})
        if len(parts) == 1 and method == "POST":
            spec_id = self._next("spec")
            files = {f["path"]: f["content"] for f in body.get("files", [])}
            self.specs[spec_id] = {"id": spec_id, "name": body["name"], "type": body.get("type"), "files": files}
            return httpx.Response(200, json={"id": spec_id, "name": body["name"]})

        spec = self.specs.get(parts[1])
        if spec is None:
            return httpx.Response(404, json={"error": {"name": "specNotFound"}})
        if len(parts) >= 4 and parts[2] == "files" and method == "PATCH":
            spec["files"]["/".join(parts[3:])] = body["content"]
            return httpx.Response(200, json={"id": spec["id"]})
        if parts[2:] == ["generations", "collection"]:
            if method == "GET":
                return httpx.Response(200, json={"collections": list(self.generations.get(spec["id"], []))})
            uid = self.add_collection(body["name"], spec_id=spec["id"])
            self._pending[uid] = self.generation_lag
            return httpx.Response(202, json={"taskId": self._next("task")})
        return httpx.Response(405)

    def _visible(self, uid: str) -> bool:
        return uid not in self._pending

    def _collections(self, method, parts, params, body):
        if len(parts) == 1:
            listed = [c for uid, c in self.collections.items() if self._visible(uid)]
            if not self.stall_generations:
                for uid in list(self._pending):
                    self._pending[uid] -= 1
                    if self._pending[uid] <= 0:
                        del self._pending[uid]
            return httpx.Response(200, json={"collections": [
                {"id": c["id"], "name": c["name"], "uid": c["uid"]} for c in listed
            ]})

        key = parts[1]
        found = self.collections.get(key) or next(
            (c for c in self.collections.values() if c["id"] == key), None
        )
        if found is None:
            return httpx.Response(404, json={"error": {"name": "instanceNotFoundError"}})

        tail = parts[2:]
        if tail == ["synchronizations"] and method == "PUT":
            return httpx.Response(202, json={"taskId": self._next("task")})
        if tail == ["tags"]:
            if method == "PUT":
                found["tags"] = [t["slug"] for t in body.get("tags", [])]
            return httpx.Response(200, json={"tags": [{"slug": t} for t in found["tags"]]})
        if method == "GET":
            return httpx.Response(200, json={"collection": copy.deepcopy(found["collection"])})
        if method == "PUT":
            found["collection"] = body["collection"]
            return httpx.Response(200, json={"collection": {"id": found["id"], "uid": found["uid"]}})
        if method == "DELETE":
            del self.collections[found["uid"]]
            return httpx.Response(200, json={"collection": {"id": found["id"], "uid": found["uid"]}})
        return httpx.Response(405)

    def _environments(self, method, parts, body):
        if len(parts) == 1 and method == "GET":
            return httpx.Response(200, json={"environments": [
                {"id": e["id"], "name": e["name"], "uid": e["uid"]} for e in self.environments.values()
            ]})
        if len(parts) == 1 and method == "POST":
            uid = self.add_environment(body["environment"]["name"])
            self.environments[uid].update(body["environment"])
            return httpx.Response(200, json={"environment": {"id": uid, "name": body["environment"]["name"], "uid": uid}})

        env = self.environments.get(parts[1])
        if env is None:
            return httpx.Response(404, json={"error": {"name": "instanceNotFoundError"}})
        if method == "PUT":
            env.update(body["environment"])
            return httpx.Response(200, json={"environment": {"id": env["id"], "name": env["name"], "uid": env["uid"]}})
        if method == "DELETE":
            del self.environments[parts[1]]
            return httpx.Response(200, json={"environment": {"id": env["id"], "uid": env["uid"]}})
        return httpx.Response(405)


# =============================================================================
# Fixtures
# =============================================================================

SAMPLE_SPEC_YAML = """\
openapi: 3.0.3
info:
  title: Task Management API
  version: 1.0.0
servers:
  - url: https://api.tasks.example.com/v1
tags:
  - name: tasks
paths:
  /tasks:
    get:
      summary: List tasks
      tags: [tasks]
      responses:
        "200":
          description: OK
          content:
            application/json:
              schema:
                type: array
                items:
                  $ref: "#/components/schemas/Task"
        "401":
          description: Unauthorized
    post:
      summary: Create task
      tags: [tasks]
      security:
        - bearerAuth: []
      responses:
        "201":
          description: Created
          content:
            application/json; charset=utf-8:
              schema:
                $ref: "#/components/schemas/Task"
        "400":
          description: Bad request
  /tasks/{taskId}:
    get:
      summary: Get task
      tags: [tasks]
      responses:
        "200":
          description: OK
          content:
            application/json:
              schema:
                $ref: "#/components/schemas/Task"
        "404":
          description: Not found
    delete:
      summary: Delete task
      tags: [tasks]
      responses:
        "204":
          description: Deleted
components:
  securitySchemes:
    bearerAuth:
      type: http
      scheme: bearer
  schemas:
    Task:
      type: object
      required: [id, title]
      properties:
        id:
          type: string
        title:
          type: string
        done:
          type: boolean
"""


class SleepRecorder:
    """Stand-in for asyncio.sleep that returns at once and remembers delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def spec_hub():
    return FakeSpecHub()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        api_key="test-key",
        workspace_id="ws-test",
        poll_interval_seconds=0,
        poll_max_attempts=3,
        settle_delay_seconds=0,
    )


@pytest.fixture
def api_client(spec_hub, settings):
    return SpecHubClient.from_settings(settings, transport=spec_hub.transport)


@pytest.fixture
def no_sleep():
    return SleepRecorder()


@pytest.fixture
def sample_spec_path(tmp_path):
    path = tmp_path / "openapi.yaml"
    path.write_text(SAMPLE_SPEC_YAML, encoding="utf-8")
    return str(path)
