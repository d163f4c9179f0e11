"""
Error Catalog Module

Structured failure catalog with error codes and metadata.

Features:
- Canonical error codes (SPHB-XXXX format)
- Error categories (input, invariant, timeout, remote)
- Process exit code mapping for the CLI

Usage:
    from spechub.core.errors import (
        SpecHubError, RemoteServiceError, GenerationTimeoutError,
    )

    # Raise typed error
    raise SpecLoadError("specs/api.yaml", "No such file or directory")

    # Remote failures carry the HTTP status and body
    raise RemoteServiceError(status_code=409, body={"error": "conflict"})
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    """Error categories for classification."""
    INPUT = "input"            # Missing options, unreadable or malformed spec
    INVARIANT = "invariant"    # Contract violations between components
    TIMEOUT = "timeout"        # Eventual-consistency waits that ran out
    REMOTE = "remote"          # Non-2xx or transport failure from Spec Hub


class ErrorSeverity(str, Enum):
    """Error severity levels."""
    WARNING = "warning"     # Degraded but functional
    ERROR = "error"         # Operation failed
    CRITICAL = "critical"   # Run aborted


@dataclass(frozen=True)
class ErrorDefinition:
    """Definition of an error in the catalog."""
    code: str                    # e.g., "SPHB-1001"
    message: str                 # Human-readable message template
    category: ErrorCategory
    severity: ErrorSeverity
    exit_code: int
    resolution: str = ""         # How to fix

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "exit_code": self.exit_code,
            "resolution": self.resolution,
        }


# =============================================================================
# Error Catalog (Canonical Error Definitions)
# =============================================================================

ERROR_CATALOG: Dict[str, ErrorDefinition] = {
    # =========================================================================
    # 1000-1999: Input Errors
    # =========================================================================
    "SPHB-1001": ErrorDefinition(
        code="SPHB-1001",
        message="Missing required option: {option}",
        category=ErrorCategory.INPUT,
        severity=ErrorSeverity.ERROR,
        exit_code=1,
        resolution="Pass the option on the command line or set its environment variable",
    ),
    "SPHB-1002": ErrorDefinition(
        code="SPHB-1002",
        message="Could not load spec {path}: {reason}",
        category=ErrorCategory.INPUT,
        severity=ErrorSeverity.ERROR,
        exit_code=1,
        resolution="Check the path and that the file is valid JSON or YAML",
    ),
    "SPHB-1003": ErrorDefinition(
        code="SPHB-1003",
        message="Invalid OpenAPI document: {reason}",
        category=ErrorCategory.INPUT,
        severity=ErrorSeverity.ERROR,
        exit_code=1,
        resolution="The document needs an 'openapi' or 'swagger' key, an info block and paths",
    ),

    # =========================================================================
    # 2000-2999: Invariant Violations
    # =========================================================================
    "SPHB-2001": ErrorDefinition(
        code="SPHB-2001",
        message="Synced collection \"{name}\" not found in workspace",
        category=ErrorCategory.INVARIANT,
        severity=ErrorSeverity.CRITICAL,
        exit_code=2,
        resolution="The collection was synchronized but is not listed; re-run or inspect the workspace",
    ),
    "SPHB-2002": ErrorDefinition(
        code="SPHB-2002",
        message="{kind} \"{name}\" is listed without a uid",
        category=ErrorCategory.INVARIANT,
        severity=ErrorSeverity.CRITICAL,
        exit_code=2,
    ),
    "SPHB-2003": ErrorDefinition(
        code="SPHB-2003",
        message="No test script for request \"{name}\" and no default script",
        category=ErrorCategory.INVARIANT,
        severity=ErrorSeverity.CRITICAL,
        exit_code=2,
        resolution="Script maps must carry a 'default' entry",
    ),
    "SPHB-2004": ErrorDefinition(
        code="SPHB-2004",
        message="Unrecognized collection item: {item}",
        category=ErrorCategory.INVARIANT,
        severity=ErrorSeverity.CRITICAL,
        exit_code=2,
        resolution="Every item needs either a 'request' or an 'item' key",
    ),
    "SPHB-2005": ErrorDefinition(
        code="SPHB-2005",
        message="Collection {uid} was fetched without a collection document",
        category=ErrorCategory.INVARIANT,
        severity=ErrorSeverity.CRITICAL,
        exit_code=2,
        resolution="Nothing was written back; check the collection in the workspace and re-run",
    ),

    # =========================================================================
    # 5000-5999: Timeouts
    # =========================================================================
    "SPHB-5001": ErrorDefinition(
        code="SPHB-5001",
        message="Timed out waiting for {what} after {attempts} attempts",
        category=ErrorCategory.TIMEOUT,
        severity=ErrorSeverity.ERROR,
        exit_code=2,
    ),
    "SPHB-5002": ErrorDefinition(
        code="SPHB-5002",
        message="Collection generation timed out after {seconds} seconds",
        category=ErrorCategory.TIMEOUT,
        severity=ErrorSeverity.CRITICAL,
        exit_code=2,
        resolution="Spec Hub may still finish the generation; re-run to pick it up by name",
    ),

    # =========================================================================
    # 6000-6999: Remote Service Errors
    # =========================================================================
    "SPHB-6001": ErrorDefinition(
        code="SPHB-6001",
        message="API Error {status_code}: {body}",
        category=ErrorCategory.REMOTE,
        severity=ErrorSeverity.CRITICAL,
        exit_code=2,
        resolution="Check the API key, workspace ID and the Spec Hub status page",
    ),
}


# =============================================================================
# Exception Classes
# =============================================================================

class SpecHubError(Exception):
    """Base exception for spechub-sync errors."""

    default_code = "SPHB-0000"

    def __init__(
        self,
        code: Optional[str] = None,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        **format_args,
    ):
        self.code = code or self.default_code
        self.details = details or {}

        # Get definition from catalog
        self.definition = ERROR_CATALOG.get(self.code)

        if self.definition:
            if message:
                self.message = message
            else:
                try:
                    self.message = self.definition.message.format(**format_args)
                except KeyError:
                    self.message = self.definition.message
            self.category = self.definition.category
            self.exit_code = self.definition.exit_code
        else:
            self.message = message or f"Unknown error: {self.code}"
            self.category = ErrorCategory.INVARIANT
            self.exit_code = 2

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Machine-readable form, used by the JSON log formatter."""
        payload: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
        }
        if self.details:
            # Never echo credentials back
            payload["details"] = {
                k: v for k, v in self.details.items()
                if k not in ("api_key", "token", "secret", "password")
            }
        if self.definition and self.definition.resolution:
            payload["resolution"] = self.definition.resolution
        return payload


class InputError(SpecHubError):
    """Input errors (1000 series). Raised before any remote call."""


class MissingOptionError(InputError):
    default_code = "SPHB-1001"

    def __init__(self, option: str):
        super().__init__(option=option, details={"option": option})
        self.option = option


class SpecLoadError(InputError):
    default_code = "SPHB-1002"

    def __init__(self, path: str, reason: str):
        super().__init__(path=path, reason=reason, details={"path": path})


class SpecValidationError(InputError):
    default_code = "SPHB-1003"

    def __init__(self, reason: str):
        super().__init__(reason=reason)


class InvariantViolationError(SpecHubError):
    """Invariant violations (2000 series)."""


class SyncedCollectionNotFoundError(InvariantViolationError):
    default_code = "SPHB-2001"

    def __init__(self, name: str):
        super().__init__(name=name, details={"name": name})
        self.name = name


class UidMissingError(InvariantViolationError):
    default_code = "SPHB-2002"
    kind = "Resource"

    def __init__(self, name: str, kind: Optional[str] = None):
        kind = kind or self.kind
        super().__init__(name=name, kind=kind, details={"name": name, "kind": kind})
        self.name = name


class CollectionUidMissingError(UidMissingError):
    kind = "Collection"


class MissingTestScriptError(InvariantViolationError):
    default_code = "SPHB-2003"

    def __init__(self, name: str):
        super().__init__(name=name, details={"name": name})
        self.name = name


class CollectionShapeError(InvariantViolationError):
    default_code = "SPHB-2004"

    def __init__(self, item: Any):
        summary = json.dumps(item, default=str)[:120]
        super().__init__(item=summary)


class CollectionDocumentError(InvariantViolationError):
    default_code = "SPHB-2005"

    def __init__(self, uid: str):
        super().__init__(uid=uid, details={"uid": uid})
        self.uid = uid


class PollTimeoutError(SpecHubError):
    """Raised when a fatal poll exhausts its attempts (5000 series)."""

    default_code = "SPHB-5001"

    def __init__(self, what: str, attempts: int, interval: float, code: Optional[str] = None, **format_args):
        super().__init__(
            code,
            what=what,
            attempts=attempts,
            seconds=round(attempts * interval, 2),
            details={"what": what, "attempts": attempts},
            **format_args,
        )
        self.attempts = attempts


class GenerationTimeoutError(PollTimeoutError):
    """A generated collection never appeared in the workspace listing."""

    default_code = "SPHB-5002"


class RemoteServiceError(SpecHubError):
    """Non-2xx response (or transport failure, status 0) from Spec Hub."""

    default_code = "SPHB-6001"

    def __init__(self, status_code: int, body: Any, method: str = "", path: str = ""):
        rendered = body if isinstance(body, str) else json.dumps(body, default=str)
        super().__init__(
            status_code=status_code,
            body=rendered[:500],
            details={"method": method, "path": path, "status_code": status_code},
        )
        self.status_code = status_code
        self.body = body
        self.method = method
        self.path = path

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


# =============================================================================
# Helper Functions
# =============================================================================

def get_error_catalog() -> Dict[str, Dict[str, Any]]:
    """Get the full error catalog as JSON-serializable dict."""
    return {code: defn.to_dict() for code, defn in ERROR_CATALOG.items()}


def list_error_codes() -> List[str]:
    """List all error codes."""
    return sorted(ERROR_CATALOG.keys())
