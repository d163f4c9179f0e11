"""
Collection Nodes

Tagged view over the raw item tree of a Postman collection (v2.1 JSON).

A raw item is either a request (has `request`) or a folder (has `item`).
Each node keeps a reference to its raw dict, so anything done through a node
lands in the host document directly.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from spechub.core.errors import CollectionShapeError

TEST_LISTEN = "test"


@dataclass(eq=False)
class RequestNode:
    """Leaf: one executable request and its event hooks."""
    raw: Dict[str, Any]

    @property
    def name(self) -> str:
        return self.raw.get("name", "")

    @property
    def events(self) -> List[Dict[str, Any]]:
        """The raw event list, created on first access."""
        events = self.raw.get("event")
        if events is None:
            events = self.raw["event"] = []
        return events

    def test_events(self) -> List[Dict[str, Any]]:
        return [e for e in self.events if e.get("listen") == TEST_LISTEN]

    def other_events(self) -> List[Dict[str, Any]]:
        return [e for e in self.events if e.get("listen") != TEST_LISTEN]


@dataclass(eq=False)
class FolderNode:
    """Folder: an ordered list of child nodes."""
    raw: Dict[str, Any]
    children: List["CollectionNode"] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.raw.get("name", "")


CollectionNode = Union[RequestNode, FolderNode]


def parse_node(raw: Any) -> CollectionNode:
    """Classify one raw item, recursing into folders."""
    if isinstance(raw, dict):
        if "request" in raw:
            return RequestNode(raw)
        if isinstance(raw.get("item"), list):
            return FolderNode(raw, [parse_node(child) for child in raw["item"]])
    raise CollectionShapeError(raw)


def parse_items(items: List[Any]) -> List[CollectionNode]:
    return [parse_node(item) for item in items]


def iter_requests(nodes: List[CollectionNode]):
    """Depth-first walk yielding every RequestNode in document order."""
    for node in nodes:
        if isinstance(node, RequestNode):
            yield node
        elif isinstance(node, FolderNode):
            yield from iter_requests(node.children)
        else:  # pragma: no cover
            raise CollectionShapeError(node)


def count_folders(nodes: List[CollectionNode]) -> int:
    total = 0
    for node in nodes:
        if isinstance(node, FolderNode):
            total += 1 + count_folders(node.children)
    return total
