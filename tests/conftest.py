"""
Shared pytest fixtures.

FakeGraph stands in for GraphSession: it keeps tenant objects in memory,
answers the GET/POST calls the jobs make and records every POST.
"""

import itertools
import re
from typing import Dict, List, Optional

import pytest

from graph_client import ENTITLEMENT, GraphError
from settings import PolicySettings

FILTER_TERM = re.compile(r"([\w/]+) eq '((?:[^']|'')*)'")

ORIGIN_ROLES = {
    "AadGroup": ["Owner", "Member"],
    "AadApplication": ["Default Access"],
}


def parse_filter(expression: str) -> Dict[str, str]:
    return {k: v.replace("''", "'") for k, v in FILTER_TERM.findall(expression or "")}


class FakeGraph:
    def __init__(self) -> None:
        self.what_if = False
        self.catalogs: List[dict] = []
        self.access_packages: List[dict] = []
        self.policies: List[dict] = []
        self.groups: List[dict] = []
        self.users: List[dict] = []
        self.service_principals: List[dict] = []
        self.sites: List[dict] = []
        self.catalog_resources: Dict[str, List[dict]] = {}
        self.resource_roles: Dict[str, List[dict]] = {}
        self.posts: List[tuple] = []
        self.fail_posts: Dict[str, int] = {}
        self._ids = itertools.count(1)

    def new_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    # -- seeding -----------------------------------------------------------

    def add_group(self, name: str) -> dict:
        group = {"id": self.new_id("group"), "displayName": name}
        self.groups.append(group)
        return group

    def add_user(self, upn: str) -> dict:
        user = {"id": self.new_id("user"), "userPrincipalName": upn, "displayName": upn.split("@")[0]}
        self.users.append(user)
        return user

    def add_service_principal(self, name: str) -> dict:
        sp = {"id": self.new_id("sp"), "displayName": name}
        self.service_principals.append(sp)
        return sp

    def add_site(self, name: str, url: str) -> dict:
        site = {"id": self.new_id("site"), "displayName": name, "webUrl": url}
        self.sites.append(site)
        return site

    def add_catalog(self, name: str, description: str = "") -> dict:
        catalog = {"id": self.new_id("catalog"), "displayName": name, "description": description}
        self.catalogs.append(catalog)
        return catalog

    def add_access_package(self, name: str, catalog: dict) -> dict:
        package = {"id": self.new_id("package"), "displayName": name, "catalog": {"id": catalog["id"]}}
        self.access_packages.append(package)
        return package

    def register_resource(self, catalog_id: str, origin_system: str, origin_id: str, display_name: str) -> dict:
        resource = {
            "id": self.new_id("resource"),
            "displayName": display_name,
            "description": display_name,
            "originId": origin_id,
            "originSystem": origin_system,
            "scopes": [{
                "id": self.new_id("scope"),
                "originId": origin_id,
                "originSystem": origin_system,
                "isRootScope": True,
            }],
        }
        self.catalog_resources.setdefault(catalog_id, []).append(resource)
        for role_name in ORIGIN_ROLES.get(origin_system, []):
            self.resource_roles.setdefault(catalog_id, []).append({
                "id": self.new_id("role"),
                "displayName": role_name,
                "originId": f"{role_name}_{origin_id}",
                "originSystem": origin_system,
                "resource": {"id": resource["id"]},
            })
        return resource

    def posted(self, suffix: str) -> List[dict]:
        return [body for path, body in self.posts if path.endswith(suffix)]

    # -- GraphSession interface ---------------------------------------------

    @staticmethod
    def _by_name(items: List[dict], params: Optional[dict], key: str = "displayName") -> List[dict]:
        wanted = parse_filter((params or {}).get("$filter", "")).get(key)
        return [i for i in items if i.get(key) == wanted]

    def get(self, path: str, params: Optional[dict] = None) -> dict:
        params = params or {}
        if path == "/users":
            return {"value": self._by_name(self.users, params, "userPrincipalName")}
        if path == "/groups":
            return {"value": self._by_name(self.groups, params)}
        if path == "/servicePrincipals":
            return {"value": self._by_name(self.service_principals, params)}
        if path == "/sites":
            term = params.get("search", "").lower()
            return {"value": [s for s in self.sites if term in s["displayName"].lower() or term in s["webUrl"].lower()]}
        if path == f"{ENTITLEMENT}/catalogs":
            return {"value": self._by_name(self.catalogs, params)}
        if path == f"{ENTITLEMENT}/accessPackages":
            return {"value": self._by_name(self.access_packages, params)}
        if path == f"{ENTITLEMENT}/assignmentPolicies":
            return {"value": self._by_name(self.policies, params)}

        match = re.fullmatch(rf"{ENTITLEMENT}/catalogs/([^/]+)(/\w+)?", path)
        if match:
            catalog_id, child = match.groups()
            if child is None:
                for catalog in self.catalogs:
                    if catalog["id"] == catalog_id:
                        return catalog
                raise GraphError("GET", path, 404, "catalog not found")
            if child == "/resources":
                return {"value": list(self.catalog_resources.get(catalog_id, []))}
            if child == "/resourceRoles":
                terms = parse_filter(params.get("$filter", ""))
                return {"value": [
                    r for r in self.resource_roles.get(catalog_id, [])
                    if r["originSystem"] == terms.get("originSystem") and r["resource"]["id"] == terms.get("resource/id")
                ]}
        raise GraphError("GET", path, 400, "unexpected path in test")

    def get_all(self, path: str, params: Optional[dict] = None) -> List[dict]:
        return self.get(path, params).get("value", [])

    def post(self, path: str, body: dict) -> dict:
        for suffix, status in self.fail_posts.items():
            if path.endswith(suffix):
                raise GraphError("POST", path, status, "injected failure")
        self.posts.append((path, body))
        if self.what_if:
            return {"what_if": True, "url": path, "body": body}

        if path == f"{ENTITLEMENT}/catalogs":
            catalog = dict(body, id=self.new_id("catalog"))
            self.catalogs.append(catalog)
            return catalog
        if path == f"{ENTITLEMENT}/accessPackages":
            package = dict(body, id=self.new_id("package"))
            self.access_packages.append(package)
            return package
        if path == f"{ENTITLEMENT}/assignmentPolicies":
            policy = dict(body, id=self.new_id("policy"))
            self.policies.append(policy)
            return policy
        if path == f"{ENTITLEMENT}/resourceRequests":
            resource = body["resource"]
            names = {g["id"]: g["displayName"] for g in self.groups + self.service_principals}
            display = names.get(resource["originId"], resource["originId"])
            self.register_resource(body["catalog"]["id"], resource["originSystem"], resource["originId"], display)
            return {"id": self.new_id("request"), "requestState": "delivered"}
        if path.endswith("/resourceRoleScopes"):
            return dict(body, id=self.new_id("rrs"))
        raise GraphError("POST", path, 400, "unexpected path in test")


@pytest.fixture
def graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def policy_settings() -> PolicySettings:
    return PolicySettings()


@pytest.fixture
def write_csv(tmp_path):
    """Write rows (first row is the header) to a CSV file and return its path."""
    def _write(name: str, rows: List[List[str]]) -> str:
        path = tmp_path / name
        lines = [",".join(f'"{cell}"' for cell in row) for row in rows]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return str(path)
    return _write
