#!/usr/bin/env python3
"""Create access packages and their assignment policies from a spreadsheet.

Each row names a catalog, an access package and a target group, and turns on
an approval policy, an auto-assignment policy, both, or neither. Packages and
policies that already exist by name are left untouched. A package created
before a policy failure stays in place.
"""
import logging
import sys
from typing import List, Optional, Sequence, Tuple

import batch_runner
from graph_client import ENTITLEMENT, GraphSession, created_id
from policy_builder import (
    approval_policy,
    auto_assignment_policy,
    group_subject,
    user_subject,
)
from records import AccessPackageRow, RecordError
from reporting import CREATED, SKIPPED
from resolver import ResourceKind, find_catalog_by_name, find_policy_by_name, resolve
from settings import PolicySettings

logger = logging.getLogger(__name__)

APPROVER_KINDS = {
    "user": ResourceKind.USER,
    "group": ResourceKind.GROUP,
}


def approver_kind(value: Optional[str], column: str) -> ResourceKind:
    kind = APPROVER_KINDS.get((value or "").strip().lower())
    if kind is None:
        raise RecordError(f"{column} must be User or Group, got '{value}'")
    return kind


def subject(entity: dict, kind: ResourceKind) -> dict:
    if kind is ResourceKind.USER:
        return user_subject(entity)
    return group_subject(entity)


def ensure_access_package(session: GraphSession, row: AccessPackageRow, catalog: dict) -> Tuple[str, bool]:
    """Return (package_id, created)."""
    existing = resolve(session, row.access_package_name, ResourceKind.ACCESS_PACKAGE)
    if existing:
        logger.info(f"Access package '{row.access_package_name}' already exists ({existing['id']}), skipping creation")
        return existing["id"], False

    body = {
        "displayName": row.access_package_name,
        "description": row.description,
        "isHidden": row.is_hidden,
        "catalog": {"id": catalog["id"]},
    }
    created = session.post(f"{ENTITLEMENT}/accessPackages", body)
    logger.info(f"Created access package '{row.access_package_name}' in catalog '{row.catalog_name}'")
    return created_id(created, row.access_package_name), True


def ensure_policy(session: GraphSession, body: dict) -> bool:
    name = body["displayName"]
    if find_policy_by_name(session, name):
        logger.info(f"Assignment policy '{name}' already exists, skipping")
        return False
    session.post(f"{ENTITLEMENT}/assignmentPolicies", body)
    logger.info(f"Created assignment policy '{name}'")
    return True


def build_approval_policy(
    session: GraphSession,
    row: AccessPackageRow,
    package_id: str,
    target_group: dict,
    settings: PolicySettings,
) -> Optional[dict]:
    kind = approver_kind(row.approver_type, "ApproverType")
    approver = resolve(session, row.approver, kind)
    if approver is None:
        logger.warning(f"Approver {kind.value} '{row.approver}' not found, skipping approval policy for '{row.access_package_name}'")
        return None

    escalation = None
    if row.escalation_approver:
        escalation_kind = approver_kind(row.escalation_approver_type, "EscalationApproverType")
        found = resolve(session, row.escalation_approver, escalation_kind)
        if found is None:
            logger.warning(f"Escalation approver {escalation_kind.value} '{row.escalation_approver}' not found, escalation disabled")
        else:
            escalation = subject(found, escalation_kind)

    return approval_policy(
        package_id,
        row.access_package_name,
        subject(approver, kind),
        settings,
        escalation_approver=escalation,
        duration_in_days=row.duration_in_days,
        access_reviews=row.access_reviews,
        reviewers=[group_subject(target_group)],
    )


def process_row(session: GraphSession, row: AccessPackageRow, settings: PolicySettings) -> Tuple[str, str]:
    group = resolve(session, row.target_group_name, ResourceKind.GROUP)
    if group is None:
        logger.warning(f"Target group '{row.target_group_name}' not found, skipping '{row.access_package_name}'")
        return SKIPPED, f"target group '{row.target_group_name}' not found"
    catalog = find_catalog_by_name(session, row.catalog_name)
    if catalog is None:
        logger.warning(f"Catalog '{row.catalog_name}' not found, skipping '{row.access_package_name}'")
        return SKIPPED, f"catalog '{row.catalog_name}' not found"

    package_id, created = ensure_access_package(session, row, catalog)
    notes: List[str] = ["access package created" if created else "access package exists"]

    if row.approval_enabled:
        body = build_approval_policy(session, row, package_id, group, settings)
        if body is None:
            notes.append("approval policy skipped: approver not found")
        elif ensure_policy(session, body):
            created = True
            notes.append("approval policy created")
        else:
            notes.append("approval policy exists")

    if row.auto_assignment_enabled and not row.dynamic_membership_rule:
        logger.warning(f"AutoAssignmentEnabled is set for '{row.access_package_name}' but DynamicMembershipRule is empty, skipping auto-assignment policy")
        notes.append("auto-assignment policy skipped: DynamicMembershipRule is empty")
    elif row.auto_assignment_enabled:
        body = auto_assignment_policy(package_id, row.access_package_name, row.dynamic_membership_rule, settings)
        if ensure_policy(session, body):
            created = True
            notes.append("auto-assignment policy created")
        else:
            notes.append("auto-assignment policy exists")

    return (CREATED if created else SKIPPED), "; ".join(notes)


def main(argv: Optional[Sequence[str]] = None) -> int:
    return batch_runner.main(
        argv,
        job="create-access-packages",
        description="Create access packages and assignment policies from a spreadsheet",
        row_type=AccessPackageRow,
        process=process_row,
        name_column="AccessPackageName",
        settings_factory=PolicySettings.from_env,
    )


if __name__ == "__main__":
    sys.exit(main())
