import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

SCOPES = ["https://graph.microsoft.com/.default"]
DEFAULT_GRAPH = "https://graph.microsoft.com/v1.0"

load_dotenv()


class ConfigError(RuntimeError):
    """Raised when credentials are missing or a setting cannot be parsed."""


def _positive_int(name: str) -> int:
    value = os.environ[name].strip()
    try:
        number = int(value)
    except ValueError:
        raise ConfigError(f"{name} must be a whole number, got '{value}'")
    if number <= 0:
        raise ConfigError(f"{name} must be greater than zero, got '{value}'")
    return number


@dataclass
class GraphSettings:
    tenant_id: str
    client_id: str
    client_secret: str
    base_url: str = DEFAULT_GRAPH
    timeout: Optional[float] = None
    scopes: list = field(default_factory=lambda: list(SCOPES))

    @property
    def authority(self) -> str:
        return f"https://login.microsoftonline.com/{self.tenant_id}"

    @classmethod
    def from_env(cls) -> "GraphSettings":
        tenant_id = os.getenv("TENANT_ID", "")
        client_id = os.getenv("CLIENT_ID", "")
        client_secret = os.getenv("CLIENT_SECRET", "")
        if not (tenant_id and client_id and client_secret):
            raise ConfigError("TENANT_ID / CLIENT_ID / CLIENT_SECRET must be set (via .env or env vars).")
        timeout = os.getenv("GRAPH_TIMEOUT")
        return cls(
            tenant_id=tenant_id,
            client_id=client_id,
            client_secret=client_secret,
            base_url=os.getenv("GRAPH_BASE_URL", DEFAULT_GRAPH).rstrip("/"),
            timeout=float(timeout) if timeout else None,
        )


@dataclass
class PolicySettings:
    """Process-wide policy constants handed to the policy builder.

    Durations are ISO 8601 literals as Graph expects them.
    """
    approval_prefix: str = "Approval: "
    auto_assignment_prefix: str = "Auto-Assignment: "
    approval_denial_after: str = "P7D"
    escalation_after: str = "P3D"
    auto_removal_grace_period: str = "P7D"
    review_recurrence_type: str = "absoluteMonthly"
    review_interval: int = 3
    review_duration_days: int = 14
    review_expiration_behavior: str = "keepAccess"

    @classmethod
    def from_env(cls) -> "PolicySettings":
        settings = cls()
        if os.getenv("REVIEW_RECURRENCE_TYPE"):
            settings.review_recurrence_type = os.environ["REVIEW_RECURRENCE_TYPE"]
        if os.getenv("REVIEW_INTERVAL"):
            settings.review_interval = _positive_int("REVIEW_INTERVAL")
        if os.getenv("REVIEW_DURATION_DAYS"):
            settings.review_duration_days = _positive_int("REVIEW_DURATION_DAYS")
        return settings
