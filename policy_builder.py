"""Request bodies for access package assignment policies."""
import datetime
from typing import List, Optional

from settings import PolicySettings

REQUESTOR_SETTINGS = {
    "enableTargetsToSelfAddAccess": True,
    "enableTargetsToSelfUpdateAccess": False,
    "enableTargetsToSelfRemoveAccess": True,
    "allowCustomAssignmentSchedule": False,
    "enableOnBehalfRequestorsToAddAccess": False,
    "enableOnBehalfRequestorsToUpdateAccess": False,
    "enableOnBehalfRequestorsToRemoveAccess": False,
    "onBehalfRequestors": [],
}


def user_subject(user: dict) -> dict:
    return {
        "@odata.type": "#microsoft.graph.singleUser",
        "userId": user["id"],
        "description": user.get("userPrincipalName") or user.get("displayName", ""),
    }


def group_subject(group: dict) -> dict:
    return {
        "@odata.type": "#microsoft.graph.groupMembers",
        "groupId": group["id"],
        "description": group.get("displayName", ""),
    }


def expiration(duration_in_days: Optional[int]) -> dict:
    if duration_in_days is None:
        return {"type": "noExpiration"}
    return {"type": "afterDuration", "duration": f"P{duration_in_days}D"}


def approval_policy_name(package_name: str, settings: PolicySettings) -> str:
    return f"{settings.approval_prefix}{package_name}"


def auto_assignment_policy_name(package_name: str, settings: PolicySettings) -> str:
    return f"{settings.auto_assignment_prefix}{package_name}"


def review_settings(settings: PolicySettings, fallback_reviewers: List[dict],
                    start: Optional[datetime.datetime] = None) -> dict:
    """Recurring access review: the requestor's manager reviews, with
    ``fallback_reviewers`` used when no manager is set."""
    start = start or datetime.datetime.now(datetime.timezone.utc)
    return {
        "isEnabled": True,
        "expirationBehavior": settings.review_expiration_behavior,
        "isRecommendationEnabled": True,
        "isReviewerJustificationRequired": True,
        "isSelfReview": False,
        "schedule": {
            "startDateTime": start.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "expiration": {
                "type": "afterDuration",
                "duration": f"P{settings.review_duration_days}D",
            },
            "recurrence": {
                "pattern": {
                    "type": settings.review_recurrence_type,
                    "interval": settings.review_interval,
                },
                "range": {
                    "type": "noEnd",
                    "startDate": start.strftime("%Y-%m-%d"),
                },
            },
        },
        "primaryReviewers": [
            {"@odata.type": "#microsoft.graph.requestorManager", "managerLevel": 1},
        ],
        "fallbackReviewers": fallback_reviewers,
    }


def approval_policy(
    package_id: str,
    package_name: str,
    approver: dict,
    settings: PolicySettings,
    escalation_approver: Optional[dict] = None,
    duration_in_days: Optional[int] = None,
    access_reviews: bool = False,
    reviewers: Optional[List[dict]] = None,
    start: Optional[datetime.datetime] = None,
) -> dict:
    """Body for an approval-based policy open to all member users.

    ``approver`` and ``escalation_approver`` are subject sets built with
    user_subject or group_subject.
    """
    escalation = escalation_approver is not None
    stage = {
        "durationBeforeAutomaticDenial": settings.approval_denial_after,
        "isApproverJustificationRequired": True,
        "isEscalationEnabled": escalation,
        "durationBeforeEscalation": settings.escalation_after if escalation else "PT0S",
        "primaryApprovers": [approver],
        "fallbackPrimaryApprovers": [],
        "escalationApprovers": [escalation_approver] if escalation else [],
        "fallbackEscalationApprovers": [],
    }
    body = {
        "displayName": approval_policy_name(package_name, settings),
        "description": f"Approval required to request {package_name}",
        "allowedTargetScope": "allMemberUsers",
        "expiration": expiration(duration_in_days),
        "requestorSettings": dict(REQUESTOR_SETTINGS),
        "requestApprovalSettings": {
            "isApprovalRequiredForAdd": True,
            "isApprovalRequiredForUpdate": False,
            "stages": [stage],
        },
        "accessPackage": {"id": package_id},
    }
    if access_reviews:
        body["reviewSettings"] = review_settings(settings, reviewers or [approver], start=start)
    return body


def auto_assignment_policy(package_id: str, package_name: str, membership_rule: str,
                           settings: PolicySettings) -> dict:
    """Body for a policy that assigns the package to every user matching
    ``membership_rule`` and removes it when they stop matching."""
    return {
        "displayName": auto_assignment_policy_name(package_name, settings),
        "description": f"Automatic assignment of {package_name} by membership rule",
        "allowedTargetScope": "specificDirectoryUsers",
        "specificAllowedTargets": [
            {
                "@odata.type": "#microsoft.graph.attributeRuleMembers",
                "description": f"Users matching the rule for {package_name}",
                "membershipRule": membership_rule,
            }
        ],
        "automaticRequestSettings": {
            "requestAccessForAllowedTargets": True,
            "removeAccessWhenTargetLeavesAllowedTargets": True,
            "gracePeriodBeforeAccessRemoval": settings.auto_removal_grace_period,
        },
        "accessPackage": {"id": package_id},
    }
