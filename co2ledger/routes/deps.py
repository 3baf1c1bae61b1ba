"""
Shared route dependencies: the per-process service instances.
"""

from fastapi import Request

from co2ledger.services.emission_service import EmissionCacheService
from co2ledger.services.review_workflow import ReviewWorkflow


def get_emission_service(request: Request) -> EmissionCacheService:
    """EmissionCacheService created in the application lifespan."""
    return request.app.state.emission_service


def get_review_workflow(request: Request) -> ReviewWorkflow:
    """ReviewWorkflow created in the application lifespan."""
    return request.app.state.review_workflow
