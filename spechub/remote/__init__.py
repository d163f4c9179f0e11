"""Spec Hub API client and resource synchronization."""
from .client import SpecHubClient
from .identifiers import (
    CollectionHandle,
    CollectionUid,
    EnvironmentHandle,
    EnvironmentUid,
    GeneratedCollectionRef,
    GenerationId,
    SpecHandle,
    SpecId,
)
from .synchronizer import GenerationOptions, ResourceSynchronizer, SpecUpload

__all__ = [
    "SpecHubClient",
    "CollectionHandle", "CollectionUid", "EnvironmentHandle", "EnvironmentUid",
    "GeneratedCollectionRef", "GenerationId", "SpecHandle", "SpecId",
    "GenerationOptions", "ResourceSynchronizer", "SpecUpload",
]
