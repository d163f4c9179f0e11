"""
Remote Resource Synchronizer

Idempotent, name-keyed upserts for the three resource kinds Spec Hub hosts:

- spec: find by name, PATCH the root file if present, POST otherwise
- collection: re-sync an existing generation of the spec, or generate a new
  one; both are asynchronous server-side, so each is followed by a poll
- environment: find by name, PUT if present, POST otherwise

Name lookups are the only memory between runs; the workspace is the store.
Running two syncs against the same names concurrently is not supported.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set, cast

from spechub.collection.injector import inject_collection
from spechub.collection.tags import normalize_tags
from spechub.core.config import Settings
from spechub.core.errors import (
    CollectionDocumentError,
    CollectionUidMissingError,
    GenerationTimeoutError,
    RemoteServiceError,
    SyncedCollectionNotFoundError,
    UidMissingError,
)
from spechub.core.polling import ExhaustionPolicy, poll_until
from spechub.generators.script_generator import TestScript
from spechub.remote.client import SpecHubClient
from spechub.remote.identifiers import (
    CollectionHandle,
    CollectionUid,
    EnvironmentHandle,
    EnvironmentUid,
    GeneratedCollectionRef,
    GenerationId,
    SpecHandle,
    SpecId,
)

logger = logging.getLogger(__name__)


@dataclass
class GenerationOptions:
    """Per-call options for a spec -> collection generation."""
    enable_optional_parameters: bool = True
    folder_strategy: str = "Tags"
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "enableOptionalParameters": self.enable_optional_parameters,
            "folderStrategy": self.folder_strategy,
            **self.extra,
        }


@dataclass(frozen=True)
class SpecUpload:
    handle: SpecHandle
    created: bool


class ResourceSynchronizer:
    """
    Upsert/poll protocol on top of SpecHubClient.

    Args:
        client: Spec Hub API client
        poll_interval: Seconds between existence polls
        poll_max_attempts: Attempt cap for every poll
        sleep: Injected for tests
    """

    def __init__(
        self,
        client: SpecHubClient,
        poll_interval: float = 2.0,
        poll_max_attempts: int = 10,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.poll_interval = poll_interval
        self.poll_max_attempts = poll_max_attempts
        self._sleep = sleep

    @classmethod
    def from_settings(cls, client: SpecHubClient, settings: Settings, **kwargs) -> "ResourceSynchronizer":
        return cls(
            client,
            poll_interval=settings.poll_interval_seconds,
            poll_max_attempts=settings.poll_max_attempts,
            **kwargs,
        )

    # =========================================================================
    # Specs
    # =========================================================================

    async def find_spec(self, name: str) -> Optional[SpecHandle]:
        """Linear scan of the workspace specs; None when absent."""
        for spec in await self.client.list_specs():
            if spec.get("name") == name:
                if not spec.get("id"):
                    raise UidMissingError(name, kind="Spec")
                return SpecHandle(id=SpecId(str(spec["id"])), name=name)
        return None

    async def upload_spec(
        self,
        name: str,
        content: str,
        existing: Optional[SpecHandle] = None,
        spec_type: str = "OPENAPI:3.0",
        file_path: str = "index.json",
    ) -> SpecUpload:
        """Update `existing` in place, or create a new spec."""
        if existing is not None:
            await self.client.update_spec_file(existing.id, content, file_path=file_path)
            logger.info(f"Updated spec {name!r}: {existing.id}")
            return SpecUpload(handle=existing, created=False)

        spec_id = await self.client.create_spec(name, content, spec_type=spec_type, file_path=file_path)
        logger.info(f"Created spec {name!r}: {spec_id}")
        return SpecUpload(handle=SpecHandle(id=spec_id, name=name), created=True)

    async def upsert_spec(self, name: str, content: str, **kwargs) -> SpecUpload:
        existing = await self.find_spec(name)
        return await self.upload_spec(name, content, existing=existing, **kwargs)

    # =========================================================================
    # Collections
    # =========================================================================

    async def find_generated_collection(self, spec_id: SpecId, name: str) -> Optional[GeneratedCollectionRef]:
        """A collection already generated from this spec under `name`."""
        try:
            generations = await self.client.list_spec_generations(spec_id)
        except RemoteServiceError as e:
            if e.is_not_found:
                return None
            raise
        for entry in generations:
            if entry.get("name") == name and entry.get("id"):
                return GeneratedCollectionRef(id=GenerationId(str(entry["id"])), name=name)
        return None

    async def _workspace_collections_named(self, name: str) -> List[Dict[str, Any]]:
        return [c for c in await self.client.list_collections() if c.get("name") == name]

    async def resolve_collection_uid(
        self,
        name: str,
        generation_id: Optional[GenerationId] = None,
    ) -> Optional[CollectionHandle]:
        """
        Name -> uid lookup in the workspace listing.

        With `generation_id`, the entry carrying that id (or a uid ending in
        `-<id>`) wins over other collections sharing the name. The first
        listed name match is used only when no entry carries the id.
        """
        matches = await self._workspace_collections_named(name)
        if not matches:
            return None

        chosen = matches[0]
        if generation_id is not None:
            gen = generation_id.value
            for entry in matches:
                if str(entry.get("id") or "") == gen or str(entry.get("uid") or "").endswith(f"-{gen}"):
                    chosen = entry
                    break
            else:
                if len(matches) > 1:
                    logger.warning(
                        f"{len(matches)} collections named {name!r}, none listed with id {gen}; "
                        "using the first"
                    )

        uid = chosen.get("uid")
        if not uid:
            raise CollectionUidMissingError(name)
        return CollectionHandle(uid=CollectionUid(uid), name=name)

    async def wait_for_collection_sync(self, generation_id: GenerationId) -> bool:
        """
        Poll until the collection can be fetched again.

        Fetch failures count as "not yet". Running out of attempts only
        warns: the collection existed before the sync started.
        """
        async def probe():
            data = await self.client.get_collection_by_generation_id(generation_id)
            return data or None

        result = await poll_until(
            probe,
            interval=self.poll_interval,
            max_attempts=self.poll_max_attempts,
            on_exhausted=ExhaustionPolicy.WARN,
            description=f"sync of collection {generation_id}",
            retry_on=(RemoteServiceError,),
            sleep=self._sleep,
        )
        return result is not None

    async def wait_for_collection_generation(self, name: str, known_uids: Set[str]) -> CollectionHandle:
        """
        Poll the workspace listing until a new collection named `name` shows up.

        Raises:
            GenerationTimeoutError: Nothing appeared within the attempt cap
        """
        async def probe():
            for entry in await self._workspace_collections_named(name):
                uid = entry.get("uid")
                if not uid:
                    raise CollectionUidMissingError(name)
                if uid not in known_uids:
                    return CollectionHandle(uid=CollectionUid(uid), name=name)
            return None

        handle = await poll_until(
            probe,
            interval=self.poll_interval,
            max_attempts=self.poll_max_attempts,
            on_exhausted=ExhaustionPolicy.RAISE,
            description=f"generation of collection {name!r}",
            timeout_error=GenerationTimeoutError,
            sleep=self._sleep,
        )
        return cast(CollectionHandle, handle)

    async def generate_or_sync_collection(
        self,
        spec_id: SpecId,
        name: str,
        options: Optional[GenerationOptions] = None,
    ) -> CollectionHandle:
        """
        Make sure a collection named `name` generated from `spec_id` exists
        and matches the spec, and return its uid handle.

        Raises:
            SyncedCollectionNotFoundError: Synced, but the name is not listed
            GenerationTimeoutError: A new generation never appeared
            RemoteServiceError: Any remote call failed
        """
        existing = await self.find_generated_collection(spec_id, name)

        if existing is not None:
            logger.info(f"Syncing existing collection: {existing.id}")
            await self.client.sync_collection_with_spec(existing.id, spec_id)
            await self.wait_for_collection_sync(existing.id)

            handle = await self.resolve_collection_uid(name, generation_id=existing.id)
            if handle is None:
                raise SyncedCollectionNotFoundError(name)
            return handle

        options = options or GenerationOptions()
        known_uids = {c["uid"] for c in await self._workspace_collections_named(name) if c.get("uid")}
        if known_uids:
            logger.warning(
                f"{len(known_uids)} collection(s) named {name!r} exist but were not generated "
                "from this spec; waiting for a new one"
            )

        logger.info(f"Generating new collection: {name}")
        await self.client.generate_collection(spec_id, name, options.to_payload())
        return await self.wait_for_collection_generation(name, known_uids)

    async def inject_tests(self, uid: CollectionUid, scripts: Mapping[str, TestScript]) -> int:
        """
        Fetch the collection, inject test scripts, write it back.

        No concurrency control: a concurrent writer between the GET and the
        PUT loses its changes.

        Raises:
            CollectionDocumentError: The GET carried no collection with an
                item list; nothing is written back
        """
        data = await self.client.get_collection(uid)
        collection = data.get("collection")
        if not isinstance(collection, dict) or not isinstance(collection.get("item"), list):
            raise CollectionDocumentError(uid.value)
        touched = inject_collection(collection, scripts)
        await self.client.update_collection(uid, collection)
        logger.info(f"Injected tests into {touched} request(s) of {uid}")
        return touched

    async def apply_tags(self, uid: CollectionUid, tags: List[str]) -> List[str]:
        """Replace the collection's tags with the validated `tags`."""
        slugs = normalize_tags(tags)
        return await self.client.update_collection_tags(uid, slugs)

    async def get_tags(self, uid: CollectionUid) -> List[str]:
        return await self.client.get_collection_tags(uid)

    # =========================================================================
    # Environments
    # =========================================================================

    async def find_environment(self, name: str) -> Optional[EnvironmentHandle]:
        for env in await self.client.list_environments():
            if env.get("name") == name and env.get("uid"):
                return EnvironmentHandle(uid=EnvironmentUid(env["uid"]), name=name)
        return None

    async def upsert_environment(self, environment: Dict[str, Any]) -> EnvironmentHandle:
        name = environment["name"]
        existing = await self.find_environment(name)
        if existing is not None:
            await self.client.update_environment(existing.uid, environment)
            logger.info(f"Environment updated: {existing.uid}")
            return existing

        created = await self.client.create_environment(environment)
        uid = created.get("uid")
        if not uid:
            raise UidMissingError(name, kind="Environment")
        logger.info(f"Environment created: {uid}")
        return EnvironmentHandle(uid=EnvironmentUid(uid), name=name)
