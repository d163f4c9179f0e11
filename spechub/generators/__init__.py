"""Test script generation."""
from .script_generator import (
    DEFAULT_KEY,
    TestLevel,
    TestScript,
    TestScriptMap,
    TestTier,
    generate,
    generate_default,
    generate_pre_request_script,
    generate_scripts_for_spec,
)

__all__ = [
    "DEFAULT_KEY", "TestLevel", "TestScript", "TestScriptMap", "TestTier",
    "generate", "generate_default", "generate_pre_request_script",
    "generate_scripts_for_spec",
]
