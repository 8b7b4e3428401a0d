"""
Delivery criteria validation endpoint, for clients checking a document
before attaching it to a package.
"""

from __future__ import annotations

from fastapi import APIRouter

from streamdrop.core.criteria import validate_criteria
from streamdrop_shared.schemas.packages import CriteriaValidationRequest, CriteriaValidationResponse

router = APIRouter()


@router.post("/validation", response_model=CriteriaValidationResponse)
async def validate_criteria_endpoint(body: CriteriaValidationRequest):
    errors = validate_criteria(body.delivery_criteria)
    return CriteriaValidationResponse(valid=not errors, errors=[e.as_dict() for e in errors])
