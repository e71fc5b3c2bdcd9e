from typing import Callable, Iterable, List, NamedTuple, Optional
from datetime import datetime
import logging

from ..models.application import (
    Application,
    ApplicationCreate,
    ApplicationStatusCheck,
    OPEN_APPLICATION_STATUSES,
)
from ..models.base import utc_now
from .database_service import DuplicateKeyError
from .exceptions import (
    DuplicateApplicationError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .repositories import ApplicationRepository, OpportunityRepository, application_id_for

logger = logging.getLogger(__name__)


class ApplyOutcome(NamedTuple):
    application: Application
    resubmitted: bool


class ApplicationLedger:
    """Owns Application records and their status transitions.

    At most one non-withdrawn application exists per (athlete, opportunity)
    pair: the record id is derived from the pair, inserts are create-only and
    every status change is a compare-and-set on the current status.
    """

    def __init__(self, applications: ApplicationRepository, opportunities: OpportunityRepository,
                 clock: Callable[[], datetime] = utc_now):
        self.applications = applications
        self.opportunities = opportunities
        self.clock = clock

    async def get(self, application_id: str) -> Application:
        """Get application by ID, whatever its status"""
        if not application_id:
            raise ValidationError("Application ID is required")
        application = await self.applications.get(application_id)
        if application is None:
            raise NotFoundError("Application", application_id)
        return application

    async def apply(self, athlete_id: str, opportunity_id: str,
                    details: Optional[ApplicationCreate] = None) -> ApplyOutcome:
        """Submit an application, or resubmit a withdrawn one in place."""
        violations = []
        if not athlete_id:
            violations.append("Athlete ID is required")
        if not opportunity_id:
            violations.append("Opportunity ID is required")
        if violations:
            raise ValidationError(violations)

        opportunity = await self.opportunities.get(opportunity_id)
        if opportunity is None:
            raise NotFoundError("Opportunity", opportunity_id)
        if opportunity.status != "active":
            raise InvalidTransitionError("opportunity", opportunity_id, opportunity.status, "apply to")

        try:
            existing = await self.applications.find_by_pair(athlete_id, opportunity_id)
        except StorageError as e:
            logger.error(f"Failed to check existing application for athlete {athlete_id} "
                         f"on opportunity {opportunity_id}: {e.__cause__}")
            raise StorageError("check existing application", cause=e.__cause__ or e) from e

        fields = {
            "cover_letter": details.cover_letter if details else None,
            "portfolio_url": details.portfolio_url if details else None,
            "additional_info": details.additional_info if details else None,
        }

        if existing is not None and existing.status != "withdrawn":
            raise DuplicateApplicationError(athlete_id, opportunity_id, existing.id)

        if existing is not None:
            resubmitted = await self.applications.transition(existing.id, {"withdrawn"}, {
                **fields,
                "status": "pending",
                "submitted_at": self.clock(),
                "reviewed_by": None,
                "reviewed_at": None,
                "rejection_reason": None,
            })
            if not resubmitted:
                # Another request resubmitted it first
                raise DuplicateApplicationError(athlete_id, opportunity_id, existing.id)
            logger.info(f"Application {existing.id} resubmitted by athlete {athlete_id}")
            return ApplyOutcome(await self.get(existing.id), True)

        application = Application(
            id=application_id_for(athlete_id, opportunity_id),
            athlete_id=athlete_id,
            opportunity_id=opportunity_id,
            status="pending",
            submitted_at=self.clock(),
            **fields,
        )
        try:
            await self.applications.insert(application)
        except DuplicateKeyError:
            raise DuplicateApplicationError(athlete_id, opportunity_id, application.id)

        logger.info(f"Application {application.id} submitted by athlete {athlete_id} for {opportunity_id}")
        return ApplyOutcome(await self.get(application.id), False)

    async def withdraw(self, application_id: str) -> Application:
        """Withdraw a pending or under-review application"""
        return await self._transition(application_id, OPEN_APPLICATION_STATUSES, "withdrawn", "withdraw", {})

    async def reject(self, application_id: str, reviewer_id: str, reason: Optional[str] = None) -> Application:
        """Reject an application with optional reason"""
        if not reviewer_id:
            raise ValidationError("Reviewer ID is required")
        return await self._transition(application_id, OPEN_APPLICATION_STATUSES, "rejected", "reject", {
            "reviewed_by": reviewer_id,
            "reviewed_at": self.clock(),
            "rejection_reason": reason,
        })

    async def mark_under_review(self, application_id: str, reviewer_id: str) -> Application:
        """Move a pending application to under_review"""
        if not reviewer_id:
            raise ValidationError("Reviewer ID is required")
        return await self._transition(application_id, {"pending"}, "under_review", "review", {
            "reviewed_by": reviewer_id,
            "reviewed_at": self.clock(),
        })

    async def mark_accepted(self, application_id: str, reviewer_id: str) -> Application:
        """Phase A of the conversion step"""
        return await self._transition(application_id, OPEN_APPLICATION_STATUSES, "accepted", "accept", {
            "reviewed_by": reviewer_id,
            "reviewed_at": self.clock(),
        })

    async def list_for_athlete(self, athlete_id: str) -> List[Application]:
        """All applications by an athlete, newest first, including withdrawn ones"""
        if not athlete_id:
            raise ValidationError("Athlete ID is required")
        return await self.applications.list_by("athlete_id", athlete_id)

    async def list_for_opportunity(self, opportunity_id: str) -> List[Application]:
        """Non-withdrawn applications for an opportunity"""
        if not opportunity_id:
            raise ValidationError("Opportunity ID is required")
        return await self.applications.list_by("opportunity_id", opportunity_id, exclude_statuses=["withdrawn"])

    async def has_applied(self, athlete_id: str, opportunity_id: str) -> ApplicationStatusCheck:
        existing = await self.applications.find_by_pair(athlete_id, opportunity_id)
        if existing is None:
            return ApplicationStatusCheck(applied=False)
        return ApplicationStatusCheck(applied=existing.status != "withdrawn", status=existing.status)

    async def _transition(self, application_id: str, allowed: Iterable[str], target: str,
                          action: str, changes: dict) -> Application:
        application = await self.get(application_id)
        allowed = set(allowed)
        if application.status not in allowed:
            raise InvalidTransitionError("application", application_id, application.status, action)

        moved = await self.applications.transition(application_id, allowed, {**changes, "status": target})
        if not moved:
            current = await self.get(application_id)
            raise InvalidTransitionError("application", application_id, current.status, action)

        logger.info(f"Application {application_id}: {application.status} -> {target}")
        return await self.get(application_id)
