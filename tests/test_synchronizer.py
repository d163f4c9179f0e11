"""
Resource Synchronizer

Upsert and poll protocol against the in-memory Spec Hub.
"""
import json

import httpx
import pytest

from conftest import OWNER
from spechub.core.errors import (
    CollectionDocumentError,
    CollectionUidMissingError,
    GenerationTimeoutError,
    RemoteServiceError,
    SpecHubError,
    SyncedCollectionNotFoundError,
    UidMissingError,
)
from spechub.generators.script_generator import TestTier, generate_scripts_for_spec
from spechub.remote.client import SpecHubClient
from spechub.remote.identifiers import CollectionUid, GenerationId, SpecId
from spechub.remote.synchronizer import GenerationOptions, ResourceSynchronizer


@pytest.fixture
def sync(api_client, settings, no_sleep):
    return ResourceSynchronizer.from_settings(api_client, settings, sleep=no_sleep)


def sync_over(handler, no_sleep):
    client = SpecHubClient("test-key", "ws-test", transport=httpx.MockTransport(handler))
    return ResourceSynchronizer(client, poll_interval=0, poll_max_attempts=3, sleep=no_sleep)


# =============================================================================
# Specs
# =============================================================================

@pytest.mark.asyncio
async def test_new_then_existing_spec(sync, spec_hub):
    first = await sync.upsert_spec("Task API", "v1 content")
    assert first.created is True
    assert spec_hub.count("POST", "/specs") == 1

    second = await sync.upsert_spec("Task API", "v2 content")
    assert second.created is False
    assert second.handle.id == first.handle.id
    assert spec_hub.count("POST", "/specs") == 1
    assert spec_hub.count("PATCH", f"/specs/{first.handle.id}/files/index.json") == 1
    assert spec_hub.specs[first.handle.id.value]["files"]["index.json"] == "v2 content"


@pytest.mark.asyncio
async def test_find_spec_by_exact_name(sync, spec_hub):
    spec_hub.add_spec("Task API v2")
    wanted = spec_hub.add_spec("Task API")
    handle = await sync.find_spec("Task API")
    assert handle.id == SpecId(wanted)
    assert await sync.find_spec("task api") is None


@pytest.mark.asyncio
async def test_spec_lookup_errors_propagate(sync, spec_hub):
    spec_hub.fail[("GET", "/specs")] = 500
    with pytest.raises(RemoteServiceError):
        await sync.upsert_spec("Task API", "x")
    assert spec_hub.count("POST", "/specs") == 0


@pytest.mark.asyncio
async def test_created_spec_without_id_is_named_error(no_sleep):
    def handler(request):
        if request.method == "GET":
            return httpx.Response(200, json={"specs": []})
        return httpx.Response(200, json={"name": "Task API"})

    with pytest.raises(UidMissingError) as exc:
        await sync_over(handler, no_sleep).upsert_spec("Task API", "x")
    assert isinstance(exc.value, SpecHubError)
    assert exc.value.exit_code == 2
    assert exc.value.message == 'Spec "Task API" is listed without a uid'


@pytest.mark.asyncio
async def test_listed_spec_without_id_is_named_error(no_sleep):
    def handler(request):
        return httpx.Response(200, json={"specs": [{"name": "Task API"}]})

    with pytest.raises(UidMissingError):
        await sync_over(handler, no_sleep).find_spec("Task API")


# =============================================================================
# Collections
# =============================================================================

@pytest.mark.asyncio
async def test_generate_new_collection(sync, spec_hub):
    spec_id = spec_hub.add_spec("Task API")
    spec_hub.generation_lag = 2

    handle = await sync.generate_or_sync_collection(SpecId(spec_id), "Task API - Docs")

    assert handle.name == "Task API - Docs"
    assert handle.uid.value.startswith(f"{OWNER}-")
    assert spec_hub.count("POST", f"/specs/{spec_id}/generations/collection") == 1
    assert spec_hub.count("PUT", "/collections/") == 0


@pytest.mark.asyncio
async def test_generation_options_payload(api_client, settings, no_sleep, spec_hub):
    bodies = []
    handle = spec_hub.handle

    def recording(request):
        if request.method == "POST" and request.url.path.endswith("/generations/collection"):
            bodies.append(json.loads(request.content))
        return handle(request)

    spec_hub.handle = recording
    sync = ResourceSynchronizer.from_settings(api_client, settings, sleep=no_sleep)
    spec_id = spec_hub.add_spec("Task API")

    await sync.generate_or_sync_collection(
        SpecId(spec_id), "Docs", GenerationOptions(enable_optional_parameters=False, folder_strategy="Paths")
    )
    assert bodies == [{
        "name": "Docs",
        "options": {"enableOptionalParameters": False, "folderStrategy": "Paths"},
    }]


@pytest.mark.asyncio
async def test_generation_timeout(sync, spec_hub, no_sleep, settings):
    spec_id = spec_hub.add_spec("Task API")
    spec_hub.stall_generations = True

    with pytest.raises(GenerationTimeoutError):
        await sync.generate_or_sync_collection(SpecId(spec_id), "Task API - Docs")
    assert len(no_sleep.delays) == settings.poll_max_attempts


@pytest.mark.asyncio
async def test_generation_ignores_unrelated_same_name(sync, spec_hub):
    spec_id = spec_hub.add_spec("Task API")
    stale = spec_hub.add_collection("Task API - Docs")

    handle = await sync.generate_or_sync_collection(SpecId(spec_id), "Task API - Docs")
    assert handle.uid != CollectionUid(stale)


@pytest.mark.asyncio
async def test_existing_generation_is_synced(sync, spec_hub):
    spec_id = spec_hub.add_spec("Task API")
    uid = spec_hub.add_collection("Task API - Docs", spec_id=spec_id)
    gen_id = spec_hub.collections[uid]["id"]

    handle = await sync.generate_or_sync_collection(SpecId(spec_id), "Task API - Docs")

    assert handle.uid == CollectionUid(uid)
    assert spec_hub.count("PUT", f"/collections/{gen_id}/synchronizations") == 1
    assert spec_hub.count("POST", f"/specs/{spec_id}/generations/collection") == 0


@pytest.mark.asyncio
async def test_sync_resolves_generated_collection_over_same_name(sync, spec_hub):
    spec_id = spec_hub.add_spec("Task API")
    hand_made = spec_hub.add_collection("Task API - Docs")
    generated = spec_hub.add_collection("Task API - Docs", spec_id=spec_id)

    handle = await sync.generate_or_sync_collection(SpecId(spec_id), "Task API - Docs")

    assert handle.uid == CollectionUid(generated)
    assert handle.uid != CollectionUid(hand_made)


@pytest.mark.asyncio
async def test_resolve_matches_generation_id_by_uid_suffix(no_sleep):
    def handler(request):
        return httpx.Response(200, json={"collections": [
            {"name": "Docs", "uid": "1-other"},
            {"name": "Docs", "uid": "1-gen-7"},
        ]})

    handle = await sync_over(handler, no_sleep).resolve_collection_uid("Docs", generation_id=GenerationId("gen-7"))
    assert handle.uid == CollectionUid("1-gen-7")


@pytest.mark.asyncio
async def test_sync_wait_exhaustion_only_warns(sync, spec_hub, caplog):
    spec_id = spec_hub.add_spec("Task API")
    uid = spec_hub.add_collection("Task API - Docs", spec_id=spec_id)
    gen_id = spec_hub.collections[uid]["id"]
    spec_hub.fail[("GET", f"/collections/{gen_id}")] = 404

    handle = await sync.generate_or_sync_collection(SpecId(spec_id), "Task API - Docs")

    assert handle.uid == CollectionUid(uid)
    assert "timed out" in caplog.text


@pytest.mark.asyncio
async def test_synced_collection_missing_from_listing(sync, spec_hub):
    spec_id = spec_hub.add_spec("Task API")
    spec_hub.generations[spec_id] = [{"id": "col-gone", "name": "Task API - Docs"}]
    spec_hub.add_collection("Something else")
    spec_hub.collections[f"{OWNER}-col-gone"] = {
        "id": "col-gone", "uid": "renamed", "name": "Renamed", "collection": {}, "tags": [],
    }

    with pytest.raises(SyncedCollectionNotFoundError):
        await sync.generate_or_sync_collection(SpecId(spec_id), "Task API - Docs")


@pytest.mark.asyncio
async def test_generations_404_means_none(sync, spec_hub):
    spec_hub.fail[("GET", "/specs/spec-x/generations/collection")] = 404
    assert await sync.find_generated_collection(SpecId("spec-x"), "Docs") is None

    spec_hub.fail[("GET", "/specs/spec-x/generations/collection")] = 500
    with pytest.raises(RemoteServiceError):
        await sync.find_generated_collection(SpecId("spec-x"), "Docs")


@pytest.mark.asyncio
async def test_resolve_uid_missing(sync, spec_hub):
    uid = spec_hub.add_collection("Task API - Docs")
    spec_hub.collections[uid]["uid"] = ""
    with pytest.raises(CollectionUidMissingError):
        await sync.resolve_collection_uid("Task API - Docs")
    assert await sync.resolve_collection_uid("Nope") is None


@pytest.mark.asyncio
async def test_inject_tests_writes_back(sync, spec_hub):
    uid = spec_hub.add_collection("Task API - Smoke Tests")
    scripts = generate_scripts_for_spec([], TestTier.SMOKE)

    touched = await sync.inject_tests(CollectionUid(uid), scripts)

    assert touched == 5
    stored = spec_hub.collections[uid]["collection"]
    first_request = stored["item"][0]["item"][0]
    assert first_request["event"][0]["listen"] == "prerequest"
    assert first_request["event"][1]["script"]["exec"] == scripts["default"]


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"unexpected": True},
    {"collection": None},
    {"collection": {"info": {"name": "Docs"}}},
    {"collection": {"info": {"name": "Docs"}, "item": {}}},
])
async def test_inject_never_writes_back_without_document(no_sleep, body):
    puts = []

    def handler(request):
        if request.method == "PUT":
            puts.append(request)
        return httpx.Response(200, json=body)

    scripts = generate_scripts_for_spec([], TestTier.SMOKE)
    with pytest.raises(CollectionDocumentError) as exc:
        await sync_over(handler, no_sleep).inject_tests(CollectionUid("1-2"), scripts)

    assert exc.value.code == "SPHB-2005"
    assert exc.value.exit_code == 2
    assert puts == []


@pytest.mark.asyncio
async def test_apply_and_get_tags(sync, spec_hub):
    uid = CollectionUid(spec_hub.add_collection("Docs"))
    applied = await sync.apply_tags(uid, ["generated", "Smoke Tests", "generated", "a", "b", "c", "d"])
    assert applied == ["generated", "smoke-tests", "a0", "b0", "c0"]
    assert await sync.get_tags(uid) == applied


# =============================================================================
# Environments
# =============================================================================

@pytest.mark.asyncio
async def test_environment_upsert(sync, spec_hub):
    env = {"name": "Task API Environment", "values": [{"key": "baseUrl", "value": "https://a"}]}

    created = await sync.upsert_environment(env)
    assert spec_hub.count("POST", "/environments") == 1

    env["values"][0]["value"] = "https://b"
    updated = await sync.upsert_environment(env)

    assert updated.uid == created.uid
    assert spec_hub.count("POST", "/environments") == 1
    assert spec_hub.count("PUT", f"/environments/{created.uid}") == 1
    assert spec_hub.environments[created.uid.value]["values"][0]["value"] == "https://b"
