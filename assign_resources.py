#!/usr/bin/env python3
"""Add groups, applications and SharePoint sites to access packages.

For each row the resource is registered in the access package's catalog
(unless it already is) and the requested role is granted through the
package. Role assignments are not checked for duplicates before they are
requested.
"""
import logging
import sys
from typing import Iterable, List, Optional, Sequence, Tuple

import batch_runner
from graph_client import ENTITLEMENT, GraphSession, odata_quote
from records import RecordError, ResourceAssignmentRow
from reporting import CREATED, SKIPPED
from resolver import ResourceKind, resolve

logger = logging.getLogger(__name__)

ORIGIN_SYSTEMS = {
    ResourceKind.GROUP: "AadGroup",
    ResourceKind.APPLICATION: "AadApplication",
    ResourceKind.SHAREPOINT: "SharePointOnline",
}

# SharePoint permission levels map onto the site's default group ids
SHAREPOINT_ROLES = {
    "owners": 3,
    "members": 5,
    "visitors": 4,
}
DEFAULT_SHAREPOINT_ROLE = 4


def sharepoint_role_code(permission_level: Optional[str]) -> int:
    return SHAREPOINT_ROLES.get((permission_level or "").strip().lower(), DEFAULT_SHAREPOINT_ROLE)


def resource_kind(value: str) -> ResourceKind:
    try:
        kind = ResourceKind.parse(value)
    except ValueError:
        kind = None
    if kind not in ORIGIN_SYSTEMS:
        raise RecordError(f"ResourceType must be Group, Application or SharePoint, got '{value}'")
    return kind


def catalog_resources(session: GraphSession, catalog_id: str) -> List[dict]:
    return session.get_all(f"{ENTITLEMENT}/catalogs/{catalog_id}/resources", params={"$expand": "scopes"})


def find_catalog_resource(resources: Iterable[dict], names: Iterable[str], origin_id: str) -> Optional[dict]:
    names = {n for n in names if n}
    for resource in resources:
        if resource.get("originId") == origin_id:
            return resource
        if resource.get("displayName") in names or resource.get("description") in names:
            return resource
    return None


def add_resource_to_catalog(session: GraphSession, catalog_id: str, kind: ResourceKind, origin_id: str) -> None:
    body = {
        "requestType": "adminAdd",
        "resource": {
            "originId": origin_id,
            "originSystem": ORIGIN_SYSTEMS[kind],
        },
        "catalog": {"id": catalog_id},
    }
    session.post(f"{ENTITLEMENT}/resourceRequests", body)


def find_resource_role(session: GraphSession, catalog_id: str, origin_system: str,
                       resource_id: str, role_name: str) -> Optional[dict]:
    params = {
        "$filter": f"originSystem eq {odata_quote(origin_system)} and resource/id eq {odata_quote(resource_id)}",
        "$expand": "resource",
    }
    roles = session.get_all(f"{ENTITLEMENT}/catalogs/{catalog_id}/resourceRoles", params=params)
    wanted = role_name.strip().lower()
    for role in roles:
        if (role.get("displayName") or "").lower() == wanted:
            return role
    return None


def _resource_ref(resource: dict) -> dict:
    return {
        "id": resource["id"],
        "originId": resource["originId"],
        "originSystem": resource["originSystem"],
    }


def role_scope(role: dict, resource: dict, scope: dict) -> dict:
    return {
        "role": {
            "id": role["id"],
            "displayName": role.get("displayName"),
            "originId": role["originId"],
            "originSystem": role["originSystem"],
            "resource": _resource_ref(resource),
        },
        "scope": {
            "id": scope["id"],
            "originId": scope["originId"],
            "originSystem": scope["originSystem"],
        },
    }


def sharepoint_role_scope(resource: dict, site_url: str, permission_level: str) -> dict:
    return {
        "role": {
            "displayName": permission_level or "Visitors",
            "originId": str(sharepoint_role_code(permission_level)),
            "originSystem": ORIGIN_SYSTEMS[ResourceKind.SHAREPOINT],
            "resource": _resource_ref(resource),
        },
        "scope": {
            "displayName": "Root",
            "description": "Root Scope",
            "originId": site_url,
            "originSystem": ORIGIN_SYSTEMS[ResourceKind.SHAREPOINT],
            "isRootScope": True,
        },
    }


def process_row(session: GraphSession, row: ResourceAssignmentRow) -> Tuple[str, str]:
    kind = resource_kind(row.resource_type)

    package = resolve(session, row.access_package_name, ResourceKind.ACCESS_PACKAGE)
    if package is None:
        logger.warning(f"Access package '{row.access_package_name}' not found, skipping")
        return SKIPPED, f"access package '{row.access_package_name}' not found"
    catalog_id = (package.get("catalog") or {}).get("id")
    if not catalog_id:
        raise RecordError(f"Access package '{row.access_package_name}' has no catalog")
    catalog = resolve(session, catalog_id, ResourceKind.CATALOG)
    if catalog is None:
        logger.warning(f"Catalog {catalog_id} of '{row.access_package_name}' not found, skipping")
        return SKIPPED, f"catalog {catalog_id} not found"

    target = resolve(session, row.resource_name, kind)
    if target is None:
        logger.warning(f"{kind.value} '{row.resource_name}' not found, skipping")
        return SKIPPED, f"{kind.value} '{row.resource_name}' not found"

    # SharePoint sites are registered by URL rather than object id
    origin_id = row.resource_name if kind is ResourceKind.SHAREPOINT else target["id"]
    names = (target.get("displayName"), row.resource_name)

    notes = []
    if find_catalog_resource(catalog_resources(session, catalog_id), names, origin_id):
        logger.info(f"{kind.value} '{row.resource_name}' already in catalog '{catalog.get('displayName')}'")
        notes.append("already in catalog")
    else:
        add_resource_to_catalog(session, catalog_id, kind, origin_id)
        logger.info(f"Added {kind.value} '{row.resource_name}' to catalog '{catalog.get('displayName')}'")
        notes.append("added to catalog")

    registered = find_catalog_resource(catalog_resources(session, catalog_id), names, origin_id)
    if registered is None:
        if session.what_if:
            notes.append(f"would assign '{row.permission_level}'")
            return CREATED, "; ".join(notes)
        raise RecordError(f"{kind.value} '{row.resource_name}' is not visible in the catalog after adding it")

    if kind is ResourceKind.SHAREPOINT:
        body = sharepoint_role_scope(registered, row.resource_name, row.permission_level)
    else:
        role = find_resource_role(session, catalog_id, ORIGIN_SYSTEMS[kind], registered["id"], row.permission_level)
        if role is None:
            raise RecordError(f"Role '{row.permission_level}' not found on {kind.value} '{row.resource_name}'")
        scopes = registered.get("scopes") or []
        if not scopes:
            raise RecordError(f"{kind.value} '{row.resource_name}' has no scopes in the catalog")
        body = role_scope(role, registered, scopes[0])

    session.post(f"{ENTITLEMENT}/accessPackages/{package['id']}/resourceRoleScopes", body)
    logger.info(f"Assigned '{row.permission_level}' on {kind.value} '{row.resource_name}' to '{row.access_package_name}'")
    notes.append(f"'{row.permission_level}' assigned")
    return CREATED, "; ".join(notes)


def main(argv: Optional[Sequence[str]] = None) -> int:
    return batch_runner.main(
        argv,
        job="assign-resources",
        description="Add catalog resources to access packages from a spreadsheet",
        row_type=ResourceAssignmentRow,
        process=process_row,
        name_column="AccessPackageName",
    )


if __name__ == "__main__":
    sys.exit(main())
