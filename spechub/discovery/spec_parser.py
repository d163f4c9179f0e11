"""
Spec Parser

Parses OpenAPI/Swagger specifications into endpoint descriptors.
Local `$ref` pointers (`#/components/...`, `#/definitions/...`) are resolved
in place so downstream consumers only ever see concrete schemas.
"""
import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import requests
import yaml

from spechub.core.errors import SpecLoadError, SpecValidationError
from spechub.discovery.models import ApiSpec, EndpointDescriptor, ResponseSpec

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")


class SpecParser:
    """
    Parses OpenAPI/Swagger specs (v2, v3).
    """

    def parse_file(self, path: str) -> ApiSpec:
        """Read and parse a spec from disk."""
        spec_path = Path(path)
        try:
            text = spec_path.read_text(encoding="utf-8")
        except OSError as e:
            raise SpecLoadError(path, e.strerror or str(e)) from e
        return self.parse_text(text, source=path)

    def parse_from_url(self, url: str) -> ApiSpec:
        """
        Fetch and parse a spec from a URL.
        """
        try:
            response = requests.get(url, timeout=10)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to fetch spec from {url}: {e}")
            raise SpecLoadError(url, str(e)) from e

        return self.parse_text(response.text, source=url, source_url=url)

    def parse_text(self, text: str, source: str = "<string>", source_url: str = "") -> ApiSpec:
        """Decode JSON or YAML text and parse it."""
        source_format = "json"
        # Try JSON first
        try:
            data = json.loads(text)
        except ValueError:
            # Try YAML
            source_format = "yaml"
            try:
                data = yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise SpecLoadError(source, f"not valid JSON or YAML ({e})") from e

        spec = self.parse_spec(data, source_url=source_url, source_format=source_format)
        spec.source_text = text
        return spec

    def parse_spec(
        self,
        data: Any,
        source_url: str = "",
        source_format: str = "json",
    ) -> ApiSpec:
        """
        Parse raw spec dictionary into ApiSpec model.
        """
        if not isinstance(data, dict):
            raise SpecValidationError("document root must be a mapping")

        # Detect version
        is_openapi_v3 = "openapi" in data
        is_swagger_v2 = "swagger" in data

        if not (is_openapi_v3 or is_swagger_v2):
            raise SpecValidationError("expected an 'openapi' or 'swagger' key")

        info = data.get("info") or {}
        if not isinstance(info, dict):
            raise SpecValidationError("'info' must be a mapping")
        title = info.get("title") or "Untitled API"
        version = str(info.get("version", "unknown version"))
        openapi_version = str(data.get("openapi") or data.get("swagger"))

        paths = data.get("paths", {})
        if not isinstance(paths, dict):
            raise SpecValidationError("'paths' must be a mapping")

        resolved = resolve_refs(data, data)

        # Determine Base URL
        base_url = ""
        servers: List[Dict[str, Any]] = []
        if is_openapi_v3:
            servers = [s for s in resolved.get("servers", []) if isinstance(s, dict)]
            if servers:
                base_url = servers[0].get("url", "")
        elif is_swagger_v2:
            host = data.get("host", "")
            base_path = data.get("basePath", "")
            schemes = data.get("schemes", ["https"])
            scheme = schemes[0] if schemes else "https"
            if host:
                base_url = f"{scheme}://{host}{base_path}"
                servers = [{"url": base_url}]

        if not base_url and source_url:
            # Fallback to source domain
            parsed = urlparse(source_url)
            base_url = f"{parsed.scheme}://{parsed.netloc}"

        global_security = resolved.get("security")
        default_produces = resolved.get("produces") or ["application/json"]

        endpoints = []
        for path, methods in resolved.get("paths", {}).items():
            if not isinstance(methods, dict):
                raise SpecValidationError(f"path item {path!r} must be a mapping")
            for method, details in methods.items():
                if method.lower() not in HTTP_METHODS:
                    continue
                if not isinstance(details, dict):
                    raise SpecValidationError(f"operation {method.upper()} {path} must be a mapping")
                endpoints.append(self._build_endpoint(
                    path,
                    method,
                    details,
                    global_security,
                    default_produces if is_swagger_v2 else None,
                ))

        tags = [str(t["name"]) for t in resolved.get("tags", []) if isinstance(t, dict) and t.get("name")]

        return ApiSpec(
            title=title,
            version=version,
            openapi_version=openapi_version,
            base_url=base_url,
            endpoints=endpoints,
            servers=servers,
            tags=tags,
            raw_spec=data,
            source_format=source_format,
        )

    def _build_endpoint(
        self,
        path: str,
        method: str,
        details: Dict[str, Any],
        global_security: Optional[List[Dict[str, Any]]],
        swagger_produces: Optional[List[str]],
    ) -> EndpointDescriptor:
        summary = (details.get("summary") or "").strip()
        operation_id = details.get("operationId")
        name = summary or operation_id or f"{method.upper()} {path}"

        responses: Dict[str, ResponseSpec] = {}
        for code, response in (details.get("responses") or {}).items():
            response = response if isinstance(response, dict) else {}
            if swagger_produces is not None:
                # Swagger 2 keeps one schema per response plus a produces list
                produces = details.get("produces") or swagger_produces
                content = (
                    {mt: {"schema": response["schema"]} for mt in produces}
                    if "schema" in response else {}
                )
            else:
                content = response.get("content") or {}
            responses[str(code)] = ResponseSpec(content=content)

        security = details.get("security", global_security)

        return EndpointDescriptor(
            method=method.upper(),
            path=path,
            name=name,
            responses=responses,
            security=security or None,
            operation_id=operation_id,
            summary=summary,
            tags=list(details.get("tags") or []),
        )


# =============================================================================
# Reference Resolution
# =============================================================================

def _lookup_pointer(root: Dict[str, Any], ref: str) -> Any:
    node: Any = root
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        if not isinstance(node, dict) or part not in node:
            raise SpecValidationError(f"unresolvable reference {ref}")
        node = node[part]
    return node


def resolve_refs(node: Any, root: Dict[str, Any], _stack: Tuple[str, ...] = ()) -> Any:
    """
    Return a copy of `node` with local `$ref`s inlined.

    A reference back into one of its own ancestors is left as-is so recursive
    schemas (trees, linked lists) terminate. Remote refs are left untouched.
    """
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith("#/"):
            if ref in _stack:
                return copy.deepcopy(node)
            target = _lookup_pointer(root, ref)
            return resolve_refs(target, root, _stack + (ref,))
        return {k: resolve_refs(v, root, _stack) for k, v in node.items()}
    if isinstance(node, list):
        return [resolve_refs(v, root, _stack) for v in node]
    return node


# =============================================================================
# Response Schema Helpers
# =============================================================================

def get_response_schema(
    responses: Dict[str, ResponseSpec],
    status_code: str,
) -> Optional[Dict[str, Any]]:
    """
    First media type under `status_code` that declares a schema.

    Returns:
        {"media_type": ..., "schema": ...} or None
    """
    response = responses.get(status_code)
    if response is None:
        return None
    for media_type, media in response.content.items():
        if isinstance(media, dict) and isinstance(media.get("schema"), dict):
            return {"media_type": media_type, "schema": media["schema"]}
    return None


def get_required_fields(schema: Dict[str, Any]) -> List[str]:
    """
    Required property names of a response body, in first-seen order.

    Follows allOf/oneOf/anyOf members and, for arrays, the item schema (the
    generated assertion checks the first element of an array body).
    """
    fields: List[str] = []
    seen_nodes = set()

    def collect(node: Any) -> None:
        if not isinstance(node, dict) or id(node) in seen_nodes:
            return
        seen_nodes.add(id(node))
        for name in node.get("required") or []:
            if isinstance(name, str) and name not in fields:
                fields.append(name)
        for key in ("allOf", "oneOf", "anyOf"):
            for member in node.get(key) or []:
                collect(member)
        if node.get("type") == "array":
            collect(node.get("items"))

    collect(schema)
    return fields
