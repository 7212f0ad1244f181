import logging
from typing import Any, Dict, List, Optional

import requests
from msal import ConfidentialClientApplication

from settings import GraphSettings

logger = logging.getLogger(__name__)

ENTITLEMENT = "/identityGovernance/entitlementManagement"

_session: Optional["GraphSession"] = None


class GraphError(RuntimeError):
    def __init__(self, method: str, url: str, status: int, text: str):
        super().__init__(f"{method} {url} failed: {status} {text}")
        self.method = method
        self.url = url
        self.status = status
        self.text = text


def odata_quote(value: str) -> str:
    """Quote a string literal for use inside a $filter expression."""
    return "'" + str(value).replace("'", "''") + "'"


def get_token(settings: GraphSettings, app: Optional[ConfidentialClientApplication] = None) -> str:
    app = app or ConfidentialClientApplication(
        settings.client_id,
        authority=settings.authority,
        client_credential=settings.client_secret,
    )
    result = app.acquire_token_for_client(settings.scopes)
    if "access_token" not in result:
        raise RuntimeError(f"Token acquisition failed: {result.get('error_description') or result}")
    return result["access_token"]


class GraphSession:
    """Authenticated connection to Microsoft Graph.

    GET calls always go to the service. With ``what_if`` set, POST calls are
    logged and answered with a synthetic body instead of being sent.
    """

    def __init__(self, settings: GraphSettings, what_if: bool = False,
                 http: Optional[requests.Session] = None):
        self.settings = settings
        self.what_if = what_if
        self._app = ConfidentialClientApplication(
            settings.client_id,
            authority=settings.authority,
            client_credential=settings.client_secret,
        )
        self.http = http or requests.Session()
        self.http.headers.update({"Accept": "application/json"})

    def _url(self, path: str) -> str:
        if path.startswith("https://"):
            return path
        return f"{self.settings.base_url}{path}"

    def _headers(self) -> Dict[str, str]:
        # msal serves the cached token until it nears expiry
        return {"Authorization": f"Bearer {get_token(self.settings, self._app)}"}

    def get(self, path: str, params: Optional[dict] = None) -> dict:
        url = self._url(path)
        logger.debug(f"GET {url} {params or ''}")
        r = self.http.get(url, headers=self._headers(), params=params, timeout=self.settings.timeout)
        if r.status_code >= 400:
            raise GraphError("GET", url, r.status_code, r.text)
        return r.json()

    def get_all(self, path: str, params: Optional[dict] = None) -> List[dict]:
        """GET a collection, following @odata.nextLink until exhausted."""
        data = self.get(path, params=params)
        items = list(data.get("value", []))
        next_link = data.get("@odata.nextLink")
        while next_link:
            data = self.get(next_link)
            items.extend(data.get("value", []))
            next_link = data.get("@odata.nextLink")
        return items

    def post(self, path: str, body: dict) -> dict:
        url = self._url(path)
        if self.what_if:
            logger.info(f"[WHAT-IF] POST {url}")
            logger.debug(f"[WHAT-IF] body: {body}")
            return {"what_if": True, "url": url, "body": body}
        logger.debug(f"POST {url}")
        headers = self._headers()
        headers["Content-Type"] = "application/json"
        r = self.http.post(url, headers=headers, json=body, timeout=self.settings.timeout)
        if r.status_code >= 400:
            raise GraphError("POST", url, r.status_code, r.text)
        return r.json() if r.text else {}

    def close(self) -> None:
        self.http.close()


def open_session(settings: Optional[GraphSettings] = None, what_if: bool = False) -> GraphSession:
    """Return the process-wide session, creating it on first use."""
    global _session
    if _session is not None:
        logger.info("Reusing existing Graph session")
        _session.what_if = what_if
        return _session
    settings = settings or GraphSettings.from_env()
    session = GraphSession(settings, what_if=what_if)
    # fail here rather than on the first record
    get_token(settings, session._app)
    logger.info(f"Connected to Microsoft Graph for tenant {settings.tenant_id}")
    _session = session
    return _session


def close_session() -> None:
    global _session
    if _session is None:
        return
    try:
        _session.close()
        logger.info("Disconnected from Microsoft Graph")
    except Exception as e:
        logger.warning(f"Failed to close Graph session: {e}")
    finally:
        _session = None


def created_id(response: Dict[str, Any], name: str) -> str:
    """Id of a freshly created object, or a stand-in during a what-if run."""
    if response.get("what_if"):
        return f"whatif-{name}"
    return response["id"]
