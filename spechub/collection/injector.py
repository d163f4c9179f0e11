"""
Test Script Injector

Writes generated test scripts into the requests of a collection tree.

For each request the existing `test` event is replaced; every other event
(pre-request hooks and the like) stays the same object in the same relative
order. Folders are walked, never added or removed. The tree is mutated in
place.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from spechub.collection.nodes import (
    TEST_LISTEN,
    CollectionNode,
    FolderNode,
    RequestNode,
    parse_items,
)
from spechub.core.errors import CollectionShapeError, MissingTestScriptError
from spechub.generators.script_generator import DEFAULT_KEY, TestScript

logger = logging.getLogger(__name__)


def _script_for(scripts: Mapping[str, TestScript], name: str) -> TestScript:
    if name in scripts:
        return scripts[name]
    if DEFAULT_KEY in scripts:
        return scripts[DEFAULT_KEY]
    raise MissingTestScriptError(name)


def build_test_event(script: TestScript) -> Dict[str, Any]:
    return {
        "listen": TEST_LISTEN,
        "script": {
            "type": "text/javascript",
            "exec": list(script),
        },
    }


def _inject_request(node: RequestNode, scripts: Mapping[str, TestScript]) -> None:
    script = _script_for(scripts, node.name)
    events = node.events
    events[:] = node.other_events() + [build_test_event(script)]


def _inject_nodes(nodes: List[CollectionNode], scripts: Mapping[str, TestScript]) -> int:
    touched = 0
    for node in nodes:
        if isinstance(node, RequestNode):
            _inject_request(node, scripts)
            touched += 1
        elif isinstance(node, FolderNode):
            touched += _inject_nodes(node.children, scripts)
        else:  # pragma: no cover
            raise CollectionShapeError(node)
    return touched


def inject(items: List[Any], scripts: Mapping[str, TestScript]) -> List[Any]:
    """
    Replace the test event of every request under `items`.

    Args:
        items: Raw collection items (requests and folders, any depth)
        scripts: Request name -> script; misses use scripts["default"]

    Returns:
        The same `items` list, mutated

    Raises:
        CollectionShapeError: An item is neither a request nor a folder
        MissingTestScriptError: A name misses and there is no default entry
    """
    _inject_nodes(parse_items(items), scripts)
    return items


def inject_collection(collection: Dict[str, Any], scripts: Mapping[str, TestScript]) -> int:
    """Inject into a full collection document; returns the request count."""
    items = collection.setdefault("item", [])
    touched = _inject_nodes(parse_items(items), scripts)
    logger.debug(f"Injected test scripts into {touched} request(s)")
    return touched
