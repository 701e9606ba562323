"""
Price Verify - Workflow Package

The verify-then-commit state machine and the collaborators it drives.
"""

from workflow.states import (
    SubmissionState, SubmissionRun, AcceptedPrice, WorkflowOutcome, TERMINAL_STATES,
)
from workflow.collaborators import (
    CatalogService, LedgerService, HTTPCatalogClient, HTTPLedgerClient,
)
from workflow.orchestrator import PriceSubmission, PriceUpdateWorkflow
