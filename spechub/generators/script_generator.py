"""
Test Script Generator

Turns endpoint descriptors into Postman test scripts (lists of JavaScript
lines run in the `pm.*` sandbox). Two tiers:

- smoke: success status, response time, JSON body present
- contract: everything smoke checks, plus exact status, Content-Type,
  body type, required fields and error body shape

Generation is pure: the same descriptor and tier always yield the same lines,
which keeps re-runs from rewriting unchanged collections.

Usage:
    from spechub.generators.script_generator import TestTier, generate_scripts_for_spec

    scripts = generate_scripts_for_spec(api_spec, TestTier.CONTRACT)
    scripts.script_for("Get task")   # falls back to scripts["default"]
"""
from __future__ import annotations

import json
import logging
import re
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, Union

from spechub.discovery.models import ApiSpec, EndpointDescriptor
from spechub.discovery.spec_parser import get_required_fields, get_response_schema

logger = logging.getLogger(__name__)

TestScript = List[str]

DEFAULT_KEY = "default"
THRESHOLD_VARIABLE = "RESPONSE_TIME_THRESHOLD"
DEFAULT_THRESHOLD_MS = 2000

_SUCCESS_CODE = re.compile(r"2\d\d")
_PATH_PARAM = re.compile(r"\{([^}]+)\}")


class TestTier(str, Enum):
    """Test rigor level."""
    __test__ = False

    SMOKE = "smoke"
    CONTRACT = "contract"


class TestLevel(str, Enum):
    """Which tiers a sync run produces."""
    __test__ = False

    SMOKE = "smoke"
    CONTRACT = "contract"
    ALL = "all"

    def tiers(self) -> List[TestTier]:
        if self is TestLevel.ALL:
            return [TestTier.SMOKE, TestTier.CONTRACT]
        return [TestTier(self.value)]


class TestScriptMap(Mapping[str, TestScript]):
    """
    Request name -> test script, with a mandatory "default" entry.

    `script_for` never misses: unknown names get the default script.
    """
    __test__ = False

    def __init__(self, scripts: Mapping[str, TestScript]):
        if DEFAULT_KEY not in scripts:
            raise ValueError("TestScriptMap requires a 'default' entry")
        self._scripts: Dict[str, TestScript] = dict(scripts)

    def __getitem__(self, name: str) -> TestScript:
        return self._scripts[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._scripts)

    def __len__(self) -> int:
        return len(self._scripts)

    def script_for(self, name: str) -> TestScript:
        return self._scripts.get(name, self._scripts[DEFAULT_KEY])

    @property
    def endpoint_count(self) -> int:
        """Number of endpoint-specific scripts (excludes the default)."""
        return len(self._scripts) - 1


# =============================================================================
# Shared Blocks
# =============================================================================

def _js(value: str) -> str:
    """Double-quoted JavaScript string literal."""
    return json.dumps(value)


def _success_codes(endpoint: EndpointDescriptor) -> List[str]:
    codes = [c for c in endpoint.status_codes if _SUCCESS_CODE.fullmatch(c)]
    return sorted(codes, key=int)


def _error_codes(endpoint: EndpointDescriptor) -> List[str]:
    return [c for c in endpoint.status_codes if c[:1] in ("4", "5")]


def _latency_block(comment: str) -> TestScript:
    return [
        f"// {comment}",
        'pm.test("Response time is acceptable", function () {',
        f'    const threshold = parseInt(pm.environment.get("{THRESHOLD_VARIABLE}") || "{DEFAULT_THRESHOLD_MS}");',
        "    pm.expect(pm.response.responseTime).to.be.below(threshold);",
        "});",
        "",
    ]


def _body_present_block() -> TestScript:
    return [
        "// Response body exists",
        'pm.test("Response body is not empty", function () {',
        "    if (pm.response.code >= 200 && pm.response.code < 300) {",
        '        const contentType = pm.response.headers.get("Content-Type");',
        '        if (contentType && contentType.includes("application/json")) {',
        "            const jsonData = pm.response.json();",
        "            pm.expect(jsonData).to.not.be.undefined;",
        "        }",
        "    }",
        "});",
        "",
    ]


# =============================================================================
# Smoke Tier
# =============================================================================

def generate_smoke_script(endpoint: EndpointDescriptor) -> TestScript:
    """Basic health checks only."""
    tests: TestScript = [
        f"// Smoke tests for: {endpoint.method} {endpoint.path}",
        "// Basic health checks - generated from OpenAPI spec",
        "",
    ]

    success_codes = _success_codes(endpoint)
    if success_codes:
        tests += [
            "// Status code validation",
            'pm.test("Status code is success", function () {',
            f"    pm.expect(pm.response.code).to.be.oneOf([{', '.join(success_codes)}]);",
            "});",
            "",
        ]

    tests += _latency_block("Performance check")
    tests += _body_present_block()
    return tests


# =============================================================================
# Contract Tier
# =============================================================================

def generate_contract_script(endpoint: EndpointDescriptor) -> TestScript:
    """Comprehensive validation."""
    tests: TestScript = [
        f"// Contract tests for: {endpoint.method} {endpoint.path}",
        "// Comprehensive validation - generated from OpenAPI spec",
        "",
    ]

    success_codes = _success_codes(endpoint)
    if success_codes:
        expected = success_codes[0]
        tests += [
            "// Status code validation",
            f'pm.test("Status code is {expected}", function () {{',
            f"    pm.response.to.have.status({expected});",
            "});",
            "",
        ]

    tests += _latency_block("Performance baseline check")
    tests += _body_present_block()

    success_response = endpoint.responses.get("200") or endpoint.responses.get("201")
    if success_response is not None and success_response.media_types:
        expected_type = success_response.media_types[0].split(";")[0].strip()
        tests += [
            "// Content-Type validation",
            f"pm.test({_js('Content-Type is ' + expected_type)}, function () {{",
            '    pm.response.to.have.header("Content-Type");',
            '    const contentType = pm.response.headers.get("Content-Type");',
            f"    pm.expect(contentType).to.include({_js(expected_type)});",
            "});",
            "",
        ]

    schema_info = (
        get_response_schema(endpoint.responses, "200")
        or get_response_schema(endpoint.responses, "201")
    )
    if schema_info:
        schema = schema_info["schema"]
        tests += [
            "// JSON Schema validation",
            'pm.test("Response matches schema structure", function () {',
            "    const jsonData = pm.response.json();",
            "",
            "    // Basic type validation",
        ]
        if schema.get("type") == "object":
            tests.append("    pm.expect(jsonData).to.be.an('object');")
        elif schema.get("type") == "array":
            tests.append("    pm.expect(jsonData).to.be.an('array');")
        tests += ["});", ""]

        required_fields = get_required_fields(schema)
        if required_fields:
            tests += [
                "// Required field validation",
                'pm.test("Response has required fields", function () {',
                "    const jsonData = pm.response.json();",
                "    const dataToCheck = Array.isArray(jsonData) ? (jsonData[0] || {}) : jsonData;",
                "",
            ]
            tests += [
                f"    pm.expect(dataToCheck).to.have.property({_js(name)});"
                for name in required_fields
            ]
            tests += ["});", ""]

    if _error_codes(endpoint):
        tests += [
            "// Error response structure validation",
            'pm.test("Error responses have proper structure", function () {',
            "    if (pm.response.code >= 400) {",
            "        const jsonData = pm.response.json();",
            "        const hasErrorField = jsonData.hasOwnProperty('error') || jsonData.hasOwnProperty('message') || jsonData.hasOwnProperty('detail');",
            "        pm.expect(hasErrorField).to.be.true;",
            "    }",
            "});",
            "",
        ]

    return tests


# =============================================================================
# Public API
# =============================================================================

def generate(endpoint: EndpointDescriptor, tier: TestTier) -> TestScript:
    """Test script for one endpoint at the given tier."""
    if tier is TestTier.SMOKE:
        return generate_smoke_script(endpoint)
    return generate_contract_script(endpoint)


def generate_default(tier: TestTier) -> TestScript:
    """Script for requests that match no endpoint name."""
    if tier is TestTier.SMOKE:
        return [
            "// Default smoke tests",
            'pm.test("Status code is success", function () {',
            "    pm.expect(pm.response.code).to.be.oneOf([200, 201, 204]);",
            "});",
            "",
            'pm.test("Response time is acceptable", function () {',
            f'    const threshold = parseInt(pm.environment.get("{THRESHOLD_VARIABLE}") || "{DEFAULT_THRESHOLD_MS}");',
            "    pm.expect(pm.response.responseTime).to.be.below(threshold);",
            "});",
        ]
    return [
        "// Default contract tests",
        'pm.test("Status code is valid", function () {',
        "    pm.expect(pm.response.code).to.be.oneOf([200, 201, 204]);",
        "});",
        "",
        'pm.test("Response time is acceptable", function () {',
        f'    const threshold = parseInt(pm.environment.get("{THRESHOLD_VARIABLE}") || "{DEFAULT_THRESHOLD_MS}");',
        "    pm.expect(pm.response.responseTime).to.be.below(threshold);",
        "});",
        "",
        'pm.test("Response body is valid JSON", function () {',
        "    pm.response.to.be.json;",
        "});",
    ]


def generate_scripts_for_spec(
    spec: Union[ApiSpec, Iterable[EndpointDescriptor]],
    tier: TestTier,
) -> TestScriptMap:
    """
    Build the name -> script map for every endpoint plus the default entry.

    Names must be unique per map; when two endpoints share a display name the
    first one keeps it.
    """
    endpoints = spec.endpoints if isinstance(spec, ApiSpec) else list(spec)
    scripts: Dict[str, TestScript] = {}

    for endpoint in endpoints:
        if endpoint.name == DEFAULT_KEY:
            logger.warning(f"Endpoint {endpoint.method} {endpoint.path} is named 'default'; using the default script")
            continue
        if endpoint.name in scripts:
            logger.warning(
                f"Duplicate request name {endpoint.name!r} ({endpoint.method} {endpoint.path}); keeping the first"
            )
            continue
        scripts[endpoint.name] = generate(endpoint, tier)

    scripts[DEFAULT_KEY] = generate_default(tier)
    return TestScriptMap(scripts)


def generate_pre_request_script(endpoint: EndpointDescriptor) -> TestScript:
    """Seed path parameters and note auth requirements before a request runs."""
    scripts: TestScript = [
        f"// Pre-request script for: {endpoint.method} {endpoint.path}",
        "",
    ]

    path_params = _PATH_PARAM.findall(endpoint.path)
    if path_params:
        scripts.append("// Set path parameters if not defined")
        for name in path_params:
            scripts += [
                f"if (!pm.variables.get({_js(name)})) {{",
                f"    pm.variables.set({_js(name)}, {_js(f'test-{name}-001')});",
                "}",
            ]
        scripts.append("")

    if endpoint.security:
        scripts += [
            "// Authentication setup",
            '// Set auth token via environment: pm.environment.set("auth_token", "your-token")',
            "",
        ]

    return scripts
