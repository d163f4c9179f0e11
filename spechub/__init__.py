"""
spechub-sync v1.0.0 - Contract tests from OpenAPI, synced into Postman Spec Hub.

Parses an OpenAPI document, generates smoke/contract test scripts per endpoint,
and keeps the Spec Hub spec, its generated collections and the environment in
step with every run.
"""

__version__ = "1.0.0"
__author__ = "SomaTech"
