from .application import Application, ApplicationCreate, ApplicationReject, ApplicationStatusCheck
from .opportunity import Opportunity
from .deal import Deal
from .contract import (
    Contract,
    ContractClause,
    ContractDraftCreate,
    ContractOptions,
    ContractStatusSummary,
    SignatureParty,
    SignaturePartyInput,
)
from .events import DomainEvent
from .user import AthleteIdentity, BrandIdentity, DirectorIdentity, AdminIdentity, CurrentUser

__all__ = [
    "Application",
    "ApplicationCreate",
    "ApplicationReject",
    "ApplicationStatusCheck",
    "Opportunity",
    "Deal",
    "Contract",
    "ContractClause",
    "ContractDraftCreate",
    "ContractOptions",
    "ContractStatusSummary",
    "SignatureParty",
    "SignaturePartyInput",
    "DomainEvent",
    "AthleteIdentity",
    "BrandIdentity",
    "DirectorIdentity",
    "AdminIdentity",
    "CurrentUser",
]
