"""
Sync Orchestrator

Runs one spec through the full Spec Hub workflow, in a fixed order:

1. ParseSpec                    parse and structurally validate the document
2. ResolveExistingSpec          look the spec up by title
3. UploadSpec                   PATCH it in place or create it
4. GenerateDocsCollection       always; no tests injected
5. GenerateSmokeCollection      smoke/all only
6. InjectSmokeTests
7. GenerateContractCollection   contract/all only
8. InjectContractTests
9. UpsertEnvironment
10. Summarize

A failing stage aborts the run; stages already completed are not rolled back.
Dry runs stop after ParseSpec without any remote call.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from spechub.core.config import Settings
from spechub.core.metrics import stage_runs
from spechub.core.structured_logging import (
    log_stage_end,
    log_stage_start,
    with_correlation_id,
    with_stage,
)
from spechub.discovery.models import ApiSpec
from spechub.discovery.spec_parser import SpecParser
from spechub.generators.script_generator import TestLevel, TestTier, generate_scripts_for_spec
from spechub.remote.client import SpecHubClient
from spechub.remote.identifiers import CollectionHandle, EnvironmentHandle, SpecHandle
from spechub.remote.synchronizer import GenerationOptions, ResourceSynchronizer

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    PARSE_SPEC = "ParseSpec"
    RESOLVE_EXISTING_SPEC = "ResolveExistingSpec"
    UPLOAD_SPEC = "UploadSpec"
    GENERATE_DOCS_COLLECTION = "GenerateDocsCollection"
    GENERATE_SMOKE_COLLECTION = "GenerateSmokeCollection"
    INJECT_SMOKE_TESTS = "InjectSmokeTests"
    GENERATE_CONTRACT_COLLECTION = "GenerateContractCollection"
    INJECT_CONTRACT_TESTS = "InjectContractTests"
    UPSERT_ENVIRONMENT = "UpsertEnvironment"
    SUMMARIZE = "Summarize"


class CollectionKind(str, Enum):
    DOCS = "docs"
    SMOKE = "smoke"
    CONTRACT = "contract"

    @property
    def suffix(self) -> str:
        return {
            CollectionKind.DOCS: "Docs",
            CollectionKind.SMOKE: "Smoke Tests",
            CollectionKind.CONTRACT: "Contract Tests",
        }[self]

    @property
    def tag(self) -> str:
        return {
            CollectionKind.DOCS: "docs",
            CollectionKind.SMOKE: "smoke-tests",
            CollectionKind.CONTRACT: "contract-tests",
        }[self]


_TIER_STAGES = {
    TestTier.SMOKE: (CollectionKind.SMOKE, Stage.GENERATE_SMOKE_COLLECTION, Stage.INJECT_SMOKE_TESTS),
    TestTier.CONTRACT: (CollectionKind.CONTRACT, Stage.GENERATE_CONTRACT_COLLECTION, Stage.INJECT_CONTRACT_TESTS),
}


@dataclass
class SyncOptions:
    spec_path: str
    test_level: TestLevel = TestLevel.ALL
    dry_run: bool = False


@dataclass
class CollectionResult:
    kind: CollectionKind
    handle: CollectionHandle
    test_scripts: Optional[int] = None
    tags: List[str] = field(default_factory=list)


@dataclass
class SyncSummary:
    spec_name: str
    spec_version: str
    dry_run: bool = False
    spec: Optional[SpecHandle] = None
    spec_created: Optional[bool] = None
    collections: List[CollectionResult] = field(default_factory=list)
    environment: Optional[EnvironmentHandle] = None
    stages: List[Stage] = field(default_factory=list)
    correlation_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "spec_name": self.spec_name,
            "spec_version": self.spec_version,
            "dry_run": self.dry_run,
            "spec_id": str(self.spec.id) if self.spec else None,
            "spec_created": self.spec_created,
            "collections": [
                {
                    "type": c.kind.value,
                    "name": c.handle.name,
                    "uid": str(c.handle.uid),
                    "test_scripts": c.test_scripts,
                    "tags": c.tags,
                }
                for c in self.collections
            ],
            "environment_uid": str(self.environment.uid) if self.environment else None,
            "stages": [s.value for s in self.stages],
            "correlation_id": self.correlation_id,
        }


def build_environment(spec: ApiSpec, default_base_url: str = "https://api.example.com",
                      response_time_threshold_ms: int = 2000) -> Dict[str, Any]:
    """Environment document for the spec's generated collections."""
    return {
        "name": f"{spec.title} Environment",
        "values": [
            {
                "key": "baseUrl",
                "value": spec.base_url or default_base_url,
                "type": "default",
                "enabled": True,
            },
            {
                "key": "RESPONSE_TIME_THRESHOLD",
                "value": str(response_time_threshold_ms),
                "type": "default",
                "enabled": True,
            },
            {
                "key": "auth_token",
                "value": "",
                "type": "secret",
                "enabled": True,
            },
        ],
    }


class SyncOrchestrator:
    """
    Drives one sync run.

    Args:
        settings: Explicit configuration (never read from the environment here)
        options: What to sync and how much
        client: Pre-built client; one is created from settings (and closed
            afterwards) when omitted
        parser: Spec parser
        sleep: Injected for tests; used for the settle delay and polls
    """

    def __init__(
        self,
        settings: Settings,
        options: SyncOptions,
        client: Optional[SpecHubClient] = None,
        parser: Optional[SpecParser] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.options = options
        self.parser = parser or SpecParser()
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self._synchronizer: Optional[ResourceSynchronizer] = None

    @property
    def synchronizer(self) -> ResourceSynchronizer:
        if self._synchronizer is None:
            if self._client is None:
                self._client = SpecHubClient.from_settings(self.settings)
            self._synchronizer = ResourceSynchronizer.from_settings(
                self._client, self.settings, sleep=self._sleep
            )
        return self._synchronizer

    @property
    def generation_options(self) -> GenerationOptions:
        return GenerationOptions(
            enable_optional_parameters=self.settings.enable_optional_parameters,
            folder_strategy=self.settings.folder_strategy,
        )

    async def _stage(self, stage: Stage, summary: SyncSummary, action: Callable[[], Awaitable[Any]],
                     **params) -> Any:
        log_stage_start(stage.value, params)
        with with_stage(stage.value):
            try:
                result = await action()
            except Exception as e:
                stage_runs.labels(stage=stage.value, status="error").inc()
                log_stage_end(stage.value, success=False, error=str(e))
                raise
        stage_runs.labels(stage=stage.value, status="success").inc()
        summary.stages.append(stage)
        log_stage_end(stage.value, success=True)
        return result

    def _parse(self) -> ApiSpec:
        path = self.options.spec_path
        if path.startswith(("http://", "https://")):
            return self.parser.parse_from_url(path)
        return self.parser.parse_file(path)

    async def run(self) -> SyncSummary:
        with with_correlation_id() as correlation_id:
            try:
                return await self._run(correlation_id)
            finally:
                if self._owns_client and self._client is not None:
                    await self._client.close()

    async def _run(self, correlation_id: str) -> SyncSummary:
        tiers = self.options.test_level.tiers()
        logger.info(
            f"Test level: {self.options.test_level.value}",
            extra={"smoke": TestTier.SMOKE in tiers, "contract": TestTier.CONTRACT in tiers},
        )

        # Step 1: Parse OpenAPI spec
        # ---------------------------------------------------------
        summary = SyncSummary(
            spec_name="",
            spec_version="",
            dry_run=self.options.dry_run,
            correlation_id=correlation_id,
        )

        async def parse():
            return await asyncio.to_thread(self._parse)

        spec: ApiSpec = await self._stage(Stage.PARSE_SPEC, summary, parse, path=self.options.spec_path)
        summary.spec_name = spec.title
        summary.spec_version = spec.version
        logger.info(f"Parsed: {spec.title} ({spec.version}), {len(spec.endpoints)} endpoint(s)")

        if self.options.dry_run:
            logger.info("Dry run complete - spec is valid")
            return summary

        sync = self.synchronizer

        # Steps 2-3: Resolve and upload spec
        # ---------------------------------------------------------
        existing = await self._stage(
            Stage.RESOLVE_EXISTING_SPEC, summary, lambda: sync.find_spec(spec.title), spec=spec.title
        )
        if existing:
            logger.info(f"Found existing spec: {existing.id}")
        else:
            logger.info("No existing spec found - will create new")

        upload = await self._stage(
            Stage.UPLOAD_SPEC,
            summary,
            lambda: sync.upload_spec(
                spec.title,
                spec.source_text,
                existing=existing,
                spec_type=spec.spec_type,
                file_path=spec.root_file_path,
            ),
            spec=spec.title,
        )
        summary.spec = upload.handle
        summary.spec_created = upload.created

        # Step 4: Docs collection (always, no tests)
        # ---------------------------------------------------------
        docs = await self._stage(
            Stage.GENERATE_DOCS_COLLECTION,
            summary,
            lambda: self._produce_collection(spec, upload.handle, CollectionKind.DOCS),
        )
        summary.collections.append(docs)

        # Steps 5-8: Test collections
        # ---------------------------------------------------------
        for tier in tiers:
            kind, generate_stage, inject_stage = _TIER_STAGES[tier]

            logger.info(f"Waiting {self.settings.settle_delay_seconds}s for Spec Hub...")
            await self._sleep(self.settings.settle_delay_seconds)

            result = await self._stage(
                generate_stage,
                summary,
                lambda: self._produce_collection(spec, upload.handle, kind),
            )
            scripts = generate_scripts_for_spec(spec, tier)
            logger.info(f"Generated {scripts.endpoint_count} {tier.value} test scripts")
            await self._stage(
                inject_stage,
                summary,
                lambda: sync.inject_tests(result.handle.uid, scripts),
                collection=result.handle.name,
            )
            result.test_scripts = scripts.endpoint_count
            summary.collections.append(result)

        # Step 9: Environment
        # ---------------------------------------------------------
        environment = build_environment(
            spec,
            default_base_url=self.settings.default_base_url,
            response_time_threshold_ms=self.settings.response_time_threshold_ms,
        )
        summary.environment = await self._stage(
            Stage.UPSERT_ENVIRONMENT,
            summary,
            lambda: sync.upsert_environment(environment),
            environment=environment["name"],
        )

        # Step 10: Summary
        # ---------------------------------------------------------
        async def summarize():
            self._log_summary(summary)

        await self._stage(Stage.SUMMARIZE, summary, summarize)
        return summary

    async def _produce_collection(self, spec: ApiSpec, spec_handle: SpecHandle,
                                  kind: CollectionKind) -> CollectionResult:
        name = f"{spec.title} - {kind.suffix}"
        handle = await self.synchronizer.generate_or_sync_collection(
            spec_handle.id, name, self.generation_options
        )
        logger.info(f"{kind.value.capitalize()} collection ready: {handle.uid}")

        tags: List[str] = []
        if self.settings.apply_tags:
            tags = await self.synchronizer.apply_tags(handle.uid, ["generated", kind.tag, *spec.tags])
        return CollectionResult(kind=kind, handle=handle, tags=tags)

    def _log_summary(self, summary: SyncSummary) -> None:
        logger.info(f"Spec: {summary.spec_name}")
        if summary.spec:
            action = "created" if summary.spec_created else "updated"
            logger.info(f"Spec Hub ID: {summary.spec.id} ({action})")
        for result in summary.collections:
            logger.info(f"{result.kind.value.upper()}: {result.handle.name} (UID: {result.handle.uid})")
        if summary.environment:
            logger.info(f"Environment: {summary.environment.name} (UID: {summary.environment.uid})")
        for result in summary.collections:
            if result.kind is not CollectionKind.DOCS:
                logger.info(f"Run {result.kind.value} tests: postman collection run \"{result.handle.name}\"")
