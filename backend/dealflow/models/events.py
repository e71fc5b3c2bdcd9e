from datetime import datetime
from typing import Any, Dict, List, Literal
from pydantic import BaseModel, Field
from .base import utc_now


EventType = Literal[
    "ApplicationSubmitted",
    "ApplicationResubmitted",
    "ApplicationWithdrawn",
    "ApplicationUnderReview",
    "ApplicationAccepted",
    "ApplicationRejected",
    "DealCreated",
    "ContractDrafted",
    "ContractDraftFailed",
    "ContractUpdated",
    "ContractSent",
    "ContractSigned",
    "ContractFullySigned",
    "ContractActivated",
    "ContractDeclined",
    "ContractVoided",
    "ContractCancelled",
]

# Title and message used when an event is turned into a notification
EVENT_TEMPLATES: Dict[str, Dict[str, str]] = {
    "ApplicationSubmitted": {
        "title": "New Application",
        "message": "A new application was submitted for your opportunity",
    },
    "ApplicationResubmitted": {
        "title": "Application Resubmitted",
        "message": "An athlete resubmitted an application for your opportunity",
    },
    "ApplicationWithdrawn": {
        "title": "Application Withdrawn",
        "message": "An application for your opportunity was withdrawn",
    },
    "ApplicationUnderReview": {
        "title": "Application Update",
        "message": "Your application is now under review",
    },
    "ApplicationAccepted": {
        "title": "Application Accepted",
        "message": "Your application has been accepted",
    },
    "ApplicationRejected": {
        "title": "Application Update",
        "message": "Your application has been rejected",
    },
    "DealCreated": {
        "title": "New Deal",
        "message": "A new deal has been created",
    },
    "ContractDrafted": {
        "title": "Contract Drafted",
        "message": "A contract has been drafted for your deal",
    },
    "ContractDraftFailed": {
        "title": "Contract Needs Attention",
        "message": "The contract for your deal could not be drafted automatically",
    },
    "ContractUpdated": {
        "title": "Contract Updated",
        "message": "The terms of your contract have been updated",
    },
    "ContractSent": {
        "title": "Signature Requested",
        "message": "A contract is waiting for your signature",
    },
    "ContractSigned": {
        "title": "Contract Signed",
        "message": "A party has signed the contract",
    },
    "ContractFullySigned": {
        "title": "Contract Fully Signed",
        "message": "All parties have signed the contract",
    },
    "ContractActivated": {
        "title": "Contract Active",
        "message": "The contract is now active",
    },
    "ContractDeclined": {
        "title": "Contract Declined",
        "message": "A party declined to sign the contract",
    },
    "ContractVoided": {
        "title": "Contract Voided",
        "message": "The contract has been voided",
    },
    "ContractCancelled": {
        "title": "Contract Cancelled",
        "message": "The contract has been cancelled",
    },
}


class DomainEvent(BaseModel):
    """Something that happened in the workflow, for external collaborators"""
    type: EventType
    recipients: List[str] = Field(default_factory=list)
    payload: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=utc_now)
