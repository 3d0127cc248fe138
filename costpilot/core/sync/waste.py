"""Waste finding refresh module.

Scans every subscription target for unattached disks, unused public IPs and
stopped VMs, then replaces the findings of every user whose inventory was
scanned with the fresh snapshot.
"""

import logging
from datetime import datetime, timedelta

from azure.core.exceptions import HttpResponseError

from costpilot.api.services.azure_client import AzureInventoryProvider
from costpilot.api.services.cost_store import CostRecordStore
from costpilot.core.config import get_settings
from costpilot.core.database import get_db_context
from costpilot.core.exceptions import ProviderError
from costpilot.core.sync.tracking import track_sync_job
from costpilot.engine.types import WasteCandidate
from costpilot.engine.waste import (
    ResourceActivity,
    build_activity_profiles,
    build_waste_findings,
    stopped_vm_candidate,
    unattached_disk_candidate,
    unused_public_ip_candidate,
)

logger = logging.getLogger(__name__)


@track_sync_job("waste")
async def refresh_waste_findings(
    user_id: str | None = None,
    inventory_provider: AzureInventoryProvider | None = None,
) -> dict:
    """Rebuild waste findings from live inventory and cost history.

    Cost activity and prior VM findings are read once, before any target is
    scanned, and passed to the classifier as read-only snapshots. Users whose
    every target failed keep their previous findings.

    Args:
        user_id: Restrict the scan to one user
        inventory_provider: Inventory adapter, defaults to the Azure APIs

    Returns:
        Dict with inserted finding count, scanned target count and errors
    """
    settings = get_settings()
    provider = inventory_provider or AzureInventoryProvider()
    now = datetime.utcnow()
    today = now.date()
    lookback_start = today - timedelta(days=settings.waste_lookback_days - 1)

    logger.info(f"Starting waste scan at {now}")

    with get_db_context() as db:
        store = CostRecordStore(db)
        targets = store.list_scan_targets(user_id)
        user_ids = sorted({t.user_id for t in targets})
        activity_by_user: dict[str, dict[str, ResourceActivity]] = {
            uid: build_activity_profiles(store.cost_points(uid, lookback_start, today))
            for uid in user_ids
        }
        prior_findings = store.prior_vm_findings(user_ids)

    logger.info(f"Found {len(targets)} subscription targets to scan")

    candidates: list[WasteCandidate] = []
    scanned_users: set[str] = set()
    scanned = 0
    errors = 0

    for target in targets:
        try:
            disks = await provider.list_unattached_disks(target)
            public_ips = await provider.list_unused_public_ips(target)
            stopped_vms = await provider.list_stopped_vms(target)
        except (ProviderError, HttpResponseError) as e:
            errors += 1
            logger.error(f"Waste scan failed for subscription {target.subscription_id}: {e}")
            continue
        except Exception as e:
            errors += 1
            logger.error(
                f"Waste scan failed for subscription {target.subscription_id}: {e}",
                exc_info=True
            )
            continue

        found = [
            *(unattached_disk_candidate(target.user_id, target.subscription_id, row) for row in disks),
            *(unused_public_ip_candidate(target.user_id, target.subscription_id, row) for row in public_ips),
            *(stopped_vm_candidate(target.user_id, target.subscription_id, row) for row in stopped_vms),
        ]
        candidates.extend(c for c in found if c is not None)
        scanned_users.add(target.user_id)
        scanned += 1
        logger.info(
            f"Subscription {target.subscription_id[:8]}...: {len(disks)} unattached disks, "
            f"{len(public_ips)} unused public IPs, {len(stopped_vms)} stopped VMs"
        )

    findings = build_waste_findings(
        (c for c in candidates if c.user_id in scanned_users),
        activity_by_user,
        prior_findings,
        today,
        now,
    )

    with get_db_context() as db:
        inserted = CostRecordStore(db).replace_waste_findings(sorted(scanned_users), findings)

    logger.info(
        f"Waste scan completed. Findings inserted: {inserted} across "
        f"{scanned} subscription(s), {errors} errors encountered"
    )
    return {"processed": inserted, "scanned": scanned, "errors": errors}
