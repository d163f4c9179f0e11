"""Collection tree model, test injection and tag slugs."""
from .injector import build_test_event, inject, inject_collection
from .nodes import CollectionNode, FolderNode, RequestNode, iter_requests, parse_items, parse_node
from .tags import is_valid_tag, normalize_tags, validate_tag

__all__ = [
    "build_test_event", "inject", "inject_collection",
    "CollectionNode", "FolderNode", "RequestNode", "iter_requests", "parse_items", "parse_node",
    "is_valid_tag", "normalize_tags", "validate_tag",
]
