"""Pydantic schemas for BodyMap API."""

from bodymap_api.schemas.base import ApiResponse, ErrorDetail
from bodymap_api.schemas.body_assignment import (
    BodyAssignmentCreateRequest,
    BodyAssignmentPreview,
    BodyAssignmentResponse,
    BodyAssignmentSummary,
    BodyAssignmentUpdateRequest,
    FinalOption,
    FinalOptionRequest,
    FinalOptionsRequest,
    MainColor,
    MainColorRequest,
    SubFeeling,
    SubFeelingRequest,
    VoiceMeta,
)

__all__ = [
    # Base
    "ApiResponse",
    "ErrorDetail",
    # Tree documents
    "FinalOption",
    "MainColor",
    "SubFeeling",
    "VoiceMeta",
    # Requests
    "BodyAssignmentCreateRequest",
    "BodyAssignmentUpdateRequest",
    "FinalOptionRequest",
    "FinalOptionsRequest",
    "MainColorRequest",
    "SubFeelingRequest",
    # Responses
    "BodyAssignmentPreview",
    "BodyAssignmentResponse",
    "BodyAssignmentSummary",
]
