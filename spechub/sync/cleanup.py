"""
Workspace collection cleanup.

Repeated generations leave orphaned and duplicate collections behind. Given the
uids to keep, everything else in the workspace is reported and, once
confirmed, deleted one by one. A failed deletion is logged and the loop moves
on to the next collection.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from spechub.core.errors import RemoteServiceError
from spechub.remote.client import SpecHubClient
from spechub.remote.identifiers import CollectionUid

logger = logging.getLogger(__name__)


@dataclass
class CleanupPlan:
    keep: List[Dict[str, Any]] = field(default_factory=list)
    delete: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class CleanupResult:
    plan: CleanupPlan
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    confirmed: bool = False


def plan_cleanup(collections: Iterable[Dict[str, Any]], keep: Iterable[str]) -> CleanupPlan:
    keep_uids = set(keep)
    plan = CleanupPlan()
    for collection in collections:
        if collection.get("uid") in keep_uids:
            plan.keep.append(collection)
        else:
            plan.delete.append(collection)
    return plan


async def cleanup_collections(client: SpecHubClient, keep: Iterable[str], confirm: bool = False) -> CleanupResult:
    """
    Delete every workspace collection whose uid is not in `keep`.

    Without `confirm` nothing is deleted; the plan is only logged.
    """
    collections = await client.list_collections()
    logger.info(f"Found {len(collections)} collection(s) in workspace")

    plan = plan_cleanup(collections, keep)
    for c in plan.keep:
        logger.info(f"Keeping: {c.get('name')} ({c.get('uid')})")
    for c in plan.delete:
        logger.info(f"Marked for deletion: {c.get('name')} ({c.get('uid')})")

    result = CleanupResult(plan=plan, confirmed=confirm)
    if not confirm:
        logger.info(f"Dry run: {len(plan.delete)} collection(s) would be deleted; pass --yes to delete")
        return result

    for c in plan.delete:
        uid = c.get("uid")
        if not uid:
            logger.warning(f"Skipping {c.get('name')!r}: listed without a uid")
            result.failed.append(str(c.get("name")))
            continue
        try:
            await client.delete_collection(CollectionUid(uid))
        except RemoteServiceError as e:
            if e.is_not_found:
                logger.info(f"Already gone: {c.get('name')} ({uid})")
                result.deleted.append(uid)
                continue
            logger.error(f"Failed to delete {c.get('name')}: {e.message}")
            result.failed.append(uid)
            continue
        logger.info(f"Deleted: {c.get('name')} ({uid})")
        result.deleted.append(uid)

    logger.info(f"Cleanup complete: {len(result.deleted)} deleted, {len(result.failed)} failed")
    return result
