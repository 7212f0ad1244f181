"""Look up directory and entitlement-management objects by name.

Every lookup returns the first matching object as a dict, or None when
nothing matches. Not finding something is a normal outcome; callers decide
whether to skip the row.
"""
import logging
from enum import Enum
from typing import Callable, Dict, Optional

from graph_client import ENTITLEMENT, GraphError, GraphSession, odata_quote

logger = logging.getLogger(__name__)


class ResourceKind(str, Enum):
    ACCESS_PACKAGE = "AccessPackage"
    CATALOG = "Catalog"
    GROUP = "Group"
    APPLICATION = "Application"
    SHAREPOINT = "SharePoint"
    USER = "User"

    @classmethod
    def parse(cls, value: str) -> "ResourceKind":
        for kind in cls:
            if kind.value.lower() == str(value).strip().lower():
                return kind
        raise ValueError(f"Unknown resource kind '{value}'")


def _first(session: GraphSession, path: str, params: dict) -> Optional[dict]:
    data = session.get(path, params=params)
    items = data.get("value") or []
    if len(items) > 1:
        logger.debug(f"{len(items)} matches for {params}; using the first")
    return items[0] if items else None


def _by_display_name(path: str, expand: Optional[str] = None) -> Callable[[GraphSession, str], Optional[dict]]:
    def lookup(session: GraphSession, name: str) -> Optional[dict]:
        params = {"$filter": f"displayName eq {odata_quote(name)}"}
        if expand:
            params["$expand"] = expand
        return _first(session, path, params)
    return lookup


def _catalog_by_id(session: GraphSession, catalog_id: str) -> Optional[dict]:
    try:
        return session.get(f"{ENTITLEMENT}/catalogs/{catalog_id}")
    except GraphError as e:
        if e.status == 404:
            return None
        raise


def _user_by_upn(session: GraphSession, upn: str) -> Optional[dict]:
    return _first(session, "/users", {"$filter": f"userPrincipalName eq {odata_quote(upn)}"})


def _site_by_search(session: GraphSession, name: str) -> Optional[dict]:
    return _first(session, "/sites", {"search": name})


LOOKUPS: Dict[ResourceKind, Callable[[GraphSession, str], Optional[dict]]] = {
    ResourceKind.ACCESS_PACKAGE: _by_display_name(f"{ENTITLEMENT}/accessPackages", expand="catalog"),
    ResourceKind.CATALOG: _catalog_by_id,
    ResourceKind.GROUP: _by_display_name("/groups"),
    ResourceKind.APPLICATION: _by_display_name("/servicePrincipals"),
    ResourceKind.SHAREPOINT: _site_by_search,
    ResourceKind.USER: _user_by_upn,
}


def resolve(session: GraphSession, name: str, kind: ResourceKind) -> Optional[dict]:
    """Resolve ``name`` (an id for catalogs) to the remote object of ``kind``."""
    if not name:
        return None
    found = LOOKUPS[kind](session, name)
    if found is None:
        logger.debug(f"{kind.value} '{name}' not found")
    return found


def find_catalog_by_name(session: GraphSession, name: str) -> Optional[dict]:
    return _first(session, f"{ENTITLEMENT}/catalogs", {"$filter": f"displayName eq {odata_quote(name)}"})


def find_policy_by_name(session: GraphSession, name: str) -> Optional[dict]:
    # tenant-wide, not limited to one access package
    return _first(session, f"{ENTITLEMENT}/assignmentPolicies", {"$filter": f"displayName eq {odata_quote(name)}"})
