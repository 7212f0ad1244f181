"""Typed views of the spreadsheet rows each job consumes."""
from dataclasses import dataclass
from typing import Any, Dict, Optional


class RecordError(ValueError):
    """A single row cannot be processed; the batch carries on."""


TRUE_VALUES = {"true", "yes", "y", "1"}
FALSE_VALUES = {"false", "no", "n", "0"}


def parse_bool(value: Any, column: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES or text == "":
        return False
    raise RecordError(f"{column} must be true or false, got '{value}'")


def parse_days(value: Any, column: str) -> Optional[int]:
    if value is None or str(value).strip() == "":
        return None
    try:
        days = float(value)
    except (TypeError, ValueError):
        raise RecordError(f"{column} must be a whole number of days, got '{value}'")
    if days != int(days) or days <= 0:
        raise RecordError(f"{column} must be a positive whole number of days, got '{value}'")
    return int(days)


def text(record: Dict[str, Any], column: str) -> Optional[str]:
    value = record.get(column)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def required_text(record: Dict[str, Any], column: str) -> str:
    value = text(record, column)
    if value is None:
        raise RecordError(f"{column} is empty")
    return value


@dataclass(frozen=True)
class CatalogRow:
    display_name: str
    description: str

    COLUMNS = ("DisplayName", "Description")

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "CatalogRow":
        name = required_text(record, "DisplayName")
        return cls(display_name=name, description=text(record, "Description") or name)


@dataclass(frozen=True)
class AccessPackageRow:
    catalog_name: str
    access_package_name: str
    description: str
    target_group_name: str
    approval_enabled: bool
    approver_type: Optional[str]
    approver: Optional[str]
    escalation_approver_type: Optional[str]
    escalation_approver: Optional[str]
    duration_in_days: Optional[int]
    access_reviews: bool
    auto_assignment_enabled: bool
    dynamic_membership_rule: Optional[str]
    is_hidden: bool = False

    COLUMNS = (
        "CatalogName",
        "AccessPackageName",
        "Description",
        "TargetGroupName",
        "ApprovalEnabled",
        "ApproverType",
        "Approver",
        "EscalationApproverType",
        "EscalationApprover",
        "DurationInDays",
        "AccessReviews",
        "AutoAssignmentEnabled",
        "DynamicMembershipRule",
    )

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "AccessPackageRow":
        name = required_text(record, "AccessPackageName")
        return cls(
            catalog_name=required_text(record, "CatalogName"),
            access_package_name=name,
            description=text(record, "Description") or name,
            target_group_name=required_text(record, "TargetGroupName"),
            approval_enabled=parse_bool(record.get("ApprovalEnabled"), "ApprovalEnabled"),
            approver_type=text(record, "ApproverType"),
            approver=text(record, "Approver"),
            escalation_approver_type=text(record, "EscalationApproverType"),
            escalation_approver=text(record, "EscalationApprover"),
            duration_in_days=parse_days(record.get("DurationInDays"), "DurationInDays"),
            access_reviews=parse_bool(record.get("AccessReviews"), "AccessReviews"),
            auto_assignment_enabled=parse_bool(record.get("AutoAssignmentEnabled"), "AutoAssignmentEnabled"),
            dynamic_membership_rule=text(record, "DynamicMembershipRule"),
            is_hidden=parse_bool(record.get("IsHidden"), "IsHidden"),
        )


@dataclass(frozen=True)
class ResourceAssignmentRow:
    access_package_name: str
    resource_name: str
    resource_type: str
    permission_level: str

    COLUMNS = ("AccessPackageName", "ResourceName", "ResourceType", "PermissionLevel")

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ResourceAssignmentRow":
        return cls(
            access_package_name=required_text(record, "AccessPackageName"),
            resource_name=required_text(record, "ResourceName"),
            resource_type=required_text(record, "ResourceType"),
            permission_level=text(record, "PermissionLevel") or "",
        )
