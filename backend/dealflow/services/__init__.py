"""
Services module for the application, deal and contract workflow

This module provides the business logic services for the workflow.
"""

from .application_ledger import ApplicationLedger, ApplyOutcome
from .contract_state_machine import ContractStateMachine, derive_status
from .conversion_coordinator import ConversionCoordinator, AcceptOutcome
from .database_service import DatabaseService, InMemoryDatabaseService
from .notification_service import NotificationService
from .repositories import (
    ApplicationRepository,
    ContractRepository,
    DealRepository,
    OpportunityRepository,
    ProfileDirectory,
    SignatureRepository,
)
from .workflow_facade import WorkflowFacade, WorkflowResult

__all__ = [
    'AcceptOutcome',
    'ApplicationLedger',
    'ApplicationRepository',
    'ApplyOutcome',
    'ContractRepository',
    'ContractStateMachine',
    'ConversionCoordinator',
    'DatabaseService',
    'DealRepository',
    'InMemoryDatabaseService',
    'NotificationService',
    'OpportunityRepository',
    'ProfileDirectory',
    'SignatureRepository',
    'WorkflowFacade',
    'WorkflowResult',
    'derive_status',
]
