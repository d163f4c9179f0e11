"""
Remote Identifiers

Spec Hub uses several identifier spaces that look alike but are not
interchangeable:

- SpecId: spec resources (`/specs/{id}`)
- GenerationId: the short collection id reported by
  `/specs/{id}/generations/collection`
- CollectionUid: the owner-prefixed uid (`<owner>-<id>`) that the collection
  fetch/update endpoints and handles use
- EnvironmentUid: environment resources

Each is its own frozen type, so a GenerationId cannot be handed to code that
expects a CollectionUid; the synchronizer's name lookup is the only way to
turn one into the other.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SpecId:
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class GenerationId:
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CollectionUid:
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class EnvironmentUid:
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SpecHandle:
    id: SpecId
    name: str


@dataclass(frozen=True)
class GeneratedCollectionRef:
    """A collection as listed under a spec's generations (short id only)."""
    id: GenerationId
    name: str


@dataclass(frozen=True)
class CollectionHandle:
    uid: CollectionUid
    name: str


@dataclass(frozen=True)
class EnvironmentHandle:
    uid: EnvironmentUid
    name: str
