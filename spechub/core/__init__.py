"""spechub-sync Core Package."""
from .config import Settings, get_settings
from .errors import (
    SpecHubError,
    InputError,
    MissingOptionError,
    SpecLoadError,
    SpecValidationError,
    InvariantViolationError,
    SyncedCollectionNotFoundError,
    UidMissingError,
    CollectionUidMissingError,
    MissingTestScriptError,
    CollectionShapeError,
    CollectionDocumentError,
    PollTimeoutError,
    GenerationTimeoutError,
    RemoteServiceError,
)
from .polling import ExhaustionPolicy, poll_until

__all__ = [
    "Settings", "get_settings",
    "SpecHubError", "InputError", "MissingOptionError", "SpecLoadError",
    "SpecValidationError", "InvariantViolationError",
    "SyncedCollectionNotFoundError", "UidMissingError", "CollectionUidMissingError",
    "MissingTestScriptError", "CollectionShapeError", "CollectionDocumentError",
    "PollTimeoutError", "GenerationTimeoutError", "RemoteServiceError",
    "ExhaustionPolicy", "poll_until",
]
