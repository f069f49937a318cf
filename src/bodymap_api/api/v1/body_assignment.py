"""Body assignment API endpoints.

Domain errors raised by the service propagate to the application's exception
handlers, which map them to status codes and the error envelope.
"""

from fastapi import APIRouter, Query, status

from bodymap_api.deps import BodyAssignmentServiceDep, CurrentAdminId, ExpectedVersion
from bodymap_api.schemas.base import ApiResponse
from bodymap_api.schemas.body_assignment import (
    BodyAssignmentCreateRequest,
    BodyAssignmentPreview,
    BodyAssignmentResponse,
    BodyAssignmentSummary,
    BodyAssignmentUpdateRequest,
    FinalOptionRequest,
    FinalOptionsRequest,
    MainColorRequest,
    SortField,
    SortOrder,
    SubFeelingRequest,
)

router = APIRouter(prefix="/body-assignments", tags=["Body Assignments"])


# Assignments


@router.get("", response_model=ApiResponse[list[BodyAssignmentSummary]])
async def list_body_assignments(
    admin_id: CurrentAdminId,
    service: BodyAssignmentServiceDep,
    search: str | None = Query(default=None, description="Matches title or description"),
    published: bool | None = Query(default=None),
    sort_by: SortField = Query(default="updatedAt", alias="sortBy"),
    order: SortOrder = Query(default="desc"),
) -> ApiResponse[list[BodyAssignmentSummary]]:
    """List body assignments with optional search and published filter."""
    assignments = await service.list_assignments(search, published, sort_by, order)
    return ApiResponse.ok(assignments, "Body Assignments retrieved successfully")


@router.get("/{assignment_id}", response_model=ApiResponse[BodyAssignmentResponse])
async def get_body_assignment(
    assignment_id: str,
    admin_id: CurrentAdminId,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[BodyAssignmentResponse]:
    """Get a body assignment with its full color tree."""
    assignment = await service.get_assignment(assignment_id)
    return ApiResponse.ok(assignment, "Body Assignment retrieved successfully")


@router.post(
    "",
    response_model=ApiResponse[BodyAssignmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_body_assignment(
    data: BodyAssignmentCreateRequest,
    admin_id: CurrentAdminId,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[BodyAssignmentResponse]:
    """Create an empty body assignment."""
    assignment = await service.create_assignment(data, admin_id)
    return ApiResponse.ok(assignment, "Body Assignment created successfully")


@router.put("/{assignment_id}", response_model=ApiResponse[BodyAssignmentResponse])
async def update_body_assignment(
    assignment_id: str,
    data: BodyAssignmentUpdateRequest,
    admin_id: CurrentAdminId,
    expected_version: ExpectedVersion,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[BodyAssignmentResponse]:
    """Update title, description or published status."""
    assignment = await service.update_assignment(assignment_id, data, admin_id, expected_version)
    return ApiResponse.ok(assignment, "Body Assignment updated successfully")


@router.delete("/{assignment_id}", response_model=ApiResponse[None])
async def delete_body_assignment(
    assignment_id: str,
    admin_id: CurrentAdminId,
    expected_version: ExpectedVersion,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[None]:
    """Delete a body assignment and its whole tree."""
    await service.delete_assignment(assignment_id, admin_id, expected_version)
    return ApiResponse.ok(None, "Body Assignment deleted successfully")


@router.post(
    "/{assignment_id}/duplicate",
    response_model=ApiResponse[BodyAssignmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_body_assignment(
    assignment_id: str,
    admin_id: CurrentAdminId,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[BodyAssignmentResponse]:
    """Copy a body assignment into a new unpublished one."""
    assignment = await service.duplicate_assignment(assignment_id, admin_id)
    return ApiResponse.ok(assignment, "Body Assignment duplicated successfully")


# Main colors


@router.post(
    "/{assignment_id}/main-colors",
    response_model=ApiResponse[BodyAssignmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_main_color(
    assignment_id: str,
    data: MainColorRequest,
    admin_id: CurrentAdminId,
    expected_version: ExpectedVersion,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[BodyAssignmentResponse]:
    """Add a main color to an assignment."""
    assignment = await service.add_main_color(assignment_id, data, admin_id, expected_version)
    return ApiResponse.ok(assignment, "Main color added successfully")


@router.put(
    "/{assignment_id}/main-colors/{color_id}",
    response_model=ApiResponse[BodyAssignmentResponse],
)
async def update_main_color(
    assignment_id: str,
    color_id: str,
    data: MainColorRequest,
    admin_id: CurrentAdminId,
    expected_version: ExpectedVersion,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[BodyAssignmentResponse]:
    """Update the provided fields of a main color."""
    assignment = await service.update_main_color(
        assignment_id, color_id, data, admin_id, expected_version
    )
    return ApiResponse.ok(assignment, "Main color updated successfully")


@router.delete(
    "/{assignment_id}/main-colors/{color_id}",
    response_model=ApiResponse[BodyAssignmentResponse],
)
async def delete_main_color(
    assignment_id: str,
    color_id: str,
    admin_id: CurrentAdminId,
    expected_version: ExpectedVersion,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[BodyAssignmentResponse]:
    """Delete a main color with its sub-feelings and final options."""
    assignment = await service.delete_main_color(assignment_id, color_id, admin_id, expected_version)
    return ApiResponse.ok(assignment, "Main color deleted successfully")


# Sub-feelings


@router.post(
    "/{assignment_id}/main-colors/{color_id}/sub-feelings",
    response_model=ApiResponse[BodyAssignmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_sub_feeling(
    assignment_id: str,
    color_id: str,
    data: SubFeelingRequest,
    admin_id: CurrentAdminId,
    expected_version: ExpectedVersion,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[BodyAssignmentResponse]:
    """Add a sub-feeling (shade) to a main color."""
    assignment = await service.add_sub_feeling(
        assignment_id, color_id, data, admin_id, expected_version
    )
    return ApiResponse.ok(assignment, "Sub-feeling added successfully")


@router.put(
    "/{assignment_id}/main-colors/{color_id}/sub-feelings/{sub_feeling_id}",
    response_model=ApiResponse[BodyAssignmentResponse],
)
async def update_sub_feeling(
    assignment_id: str,
    color_id: str,
    sub_feeling_id: str,
    data: SubFeelingRequest,
    admin_id: CurrentAdminId,
    expected_version: ExpectedVersion,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[BodyAssignmentResponse]:
    """Update the provided fields of a sub-feeling."""
    assignment = await service.update_sub_feeling(
        assignment_id, color_id, sub_feeling_id, data, admin_id, expected_version
    )
    return ApiResponse.ok(assignment, "Sub-feeling updated successfully")


@router.delete(
    "/{assignment_id}/main-colors/{color_id}/sub-feelings/{sub_feeling_id}",
    response_model=ApiResponse[BodyAssignmentResponse],
)
async def delete_sub_feeling(
    assignment_id: str,
    color_id: str,
    sub_feeling_id: str,
    admin_id: CurrentAdminId,
    expected_version: ExpectedVersion,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[BodyAssignmentResponse]:
    """Delete a sub-feeling and its final options."""
    assignment = await service.delete_sub_feeling(
        assignment_id, color_id, sub_feeling_id, admin_id, expected_version
    )
    return ApiResponse.ok(assignment, "Sub-feeling deleted successfully")


# Final options


@router.post(
    "/{assignment_id}/main-colors/{color_id}/sub-feelings/{sub_feeling_id}/final-options",
    response_model=ApiResponse[BodyAssignmentResponse],
)
async def set_final_options(
    assignment_id: str,
    color_id: str,
    sub_feeling_id: str,
    data: FinalOptionsRequest,
    admin_id: CurrentAdminId,
    expected_version: ExpectedVersion,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[BodyAssignmentResponse]:
    """Replace a sub-feeling's final options (exactly 2)."""
    assignment = await service.set_final_options(
        assignment_id, color_id, sub_feeling_id, data.options, admin_id, expected_version
    )
    return ApiResponse.ok(assignment, "Final options set successfully")


@router.put(
    "/{assignment_id}/main-colors/{color_id}/sub-feelings/{sub_feeling_id}/final-options/{option_id}",
    response_model=ApiResponse[BodyAssignmentResponse],
)
async def update_final_option(
    assignment_id: str,
    color_id: str,
    sub_feeling_id: str,
    option_id: str,
    data: FinalOptionRequest,
    admin_id: CurrentAdminId,
    expected_version: ExpectedVersion,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[BodyAssignmentResponse]:
    """Update the provided fields of one final option."""
    assignment = await service.update_final_option(
        assignment_id, color_id, sub_feeling_id, option_id, data, admin_id, expected_version
    )
    return ApiResponse.ok(assignment, "Final option updated successfully")


# Preview & publish


@router.get("/{assignment_id}/preview", response_model=ApiResponse[BodyAssignmentPreview])
async def get_preview(
    assignment_id: str,
    admin_id: CurrentAdminId,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[BodyAssignmentPreview]:
    """
    Get preview data for an assignment.

    Flattens every node to its color, text, narration and playable audio URL,
    as rendered by the front-end preview.
    """
    preview = await service.get_preview(assignment_id)
    return ApiResponse.ok(preview, "Preview data retrieved successfully")


@router.post("/{assignment_id}/publish", response_model=ApiResponse[BodyAssignmentResponse])
async def publish_body_assignment(
    assignment_id: str,
    admin_id: CurrentAdminId,
    expected_version: ExpectedVersion,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[BodyAssignmentResponse]:
    """Publish an assignment; it must have at least one main color."""
    assignment = await service.publish(assignment_id, admin_id, expected_version)
    return ApiResponse.ok(assignment, "Body Assignment published successfully")


@router.post("/{assignment_id}/unpublish", response_model=ApiResponse[BodyAssignmentResponse])
async def unpublish_body_assignment(
    assignment_id: str,
    admin_id: CurrentAdminId,
    expected_version: ExpectedVersion,
    service: BodyAssignmentServiceDep,
) -> ApiResponse[BodyAssignmentResponse]:
    """Unpublish an assignment."""
    assignment = await service.unpublish(assignment_id, admin_id, expected_version)
    return ApiResponse.ok(assignment, "Body Assignment unpublished successfully")
