"""OpenAPI discovery: spec loading and endpoint extraction."""
from .models import ApiSpec, EndpointDescriptor, ResponseSpec
from .spec_parser import SpecParser, get_required_fields, get_response_schema, resolve_refs

__all__ = [
    "ApiSpec", "EndpointDescriptor", "ResponseSpec",
    "SpecParser", "get_required_fields", "get_response_schema", "resolve_refs",
]
