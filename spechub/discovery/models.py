"""
Discovery Models

Data models for parsed OpenAPI documents.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ResponseSpec:
    """One declared response; `content` maps media type -> {"schema": ...}."""
    content: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def media_types(self) -> List[str]:
        return list(self.content.keys())


@dataclass(frozen=True)
class EndpointDescriptor:
    method: str
    path: str
    name: str
    responses: Dict[str, ResponseSpec] = field(default_factory=dict)
    security: Optional[List[Dict[str, Any]]] = None
    operation_id: Optional[str] = None
    summary: str = ""
    tags: List[str] = field(default_factory=list)

    @property
    def status_codes(self) -> List[str]:
        return list(self.responses.keys())


@dataclass
class ApiSpec:
    title: str
    version: str
    openapi_version: str
    base_url: str
    endpoints: List[EndpointDescriptor] = field(default_factory=list)
    servers: List[Dict[str, Any]] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    raw_spec: Dict[str, Any] = field(default_factory=dict)
    source_format: str = "json"
    source_text: str = ""

    @property
    def spec_type(self) -> str:
        """Spec Hub `type` for this document."""
        if self.openapi_version.startswith("3.1"):
            return "OPENAPI:3.1"
        return "OPENAPI:3.0"

    @property
    def root_file_path(self) -> str:
        return "index.yaml" if self.source_format == "yaml" else "index.json"
