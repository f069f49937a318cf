"""Body assignment aggregate manager.

The only code path that mutates an assignment's tree. Every mutation loads the
whole aggregate, applies one change in memory, checks the tree invariants and
then writes the whole document back in a single UPDATE.
"""

import logging
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from bodymap_api.config import get_settings
from bodymap_api.core.exceptions import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from bodymap_api.core.logging import ActionType, audit_logger
from bodymap_api.models import BodyAssignment
from bodymap_api.schemas.body_assignment import (
    BodyAssignmentCreateRequest,
    BodyAssignmentPreview,
    BodyAssignmentResponse,
    BodyAssignmentSummary,
    BodyAssignmentUpdateRequest,
    FinalOption,
    FinalOptionPreview,
    FinalOptionRequest,
    MainColor,
    MainColorPreview,
    MainColorRequest,
    SortField,
    SortOrder,
    SubFeeling,
    SubFeelingPreview,
    SubFeelingRequest,
    utc_now,
)
from bodymap_api.services.tree_rules import (
    ASSIGNMENT,
    FINAL_OPTION,
    FINAL_OPTION_COUNT,
    MAIN_COLOR,
    SUB_FEELING,
    build_node,
    clone_tree,
    dump_tree,
    ensure_capacity,
    ensure_unique_hex,
    find_index,
    find_node,
    hex_key,
    load_tree,
    merge_node,
    require_fields,
    validate_tree,
)

logger = logging.getLogger(__name__)
settings = get_settings()

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
COPY_SUFFIX = " (Copy)"

SORT_COLUMNS = {
    "updatedAt": BodyAssignment.updated_at,
    "createdAt": BodyAssignment.created_at,
    "title": BodyAssignment.title,
}


def _clean_title(title: str | None) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required", field="title")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(
            f"Title must be at most {TITLE_MAX_LENGTH} characters", field="title"
        )
    return title


def _clean_description(description: str | None) -> str | None:
    if description is None:
        return None
    description = description.strip()
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters",
            field="description",
        )
    return description


def _sent_fields(data: Any) -> dict[str, Any]:
    """Fields the client actually provided, by attribute name."""
    return data.model_dump(exclude_unset=True)


class BodyAssignmentService:
    """Service for editing body assignments and their nested color trees."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.max_sub_feelings = settings.max_sub_feelings

    # ---------------------------------------------------------------- storage

    async def _get_row(self, assignment_id: str) -> BodyAssignment:
        try:
            result = await self.db.execute(
                select(BodyAssignment).where(BodyAssignment.id == assignment_id)
            )
        except SQLAlchemyError:
            logger.exception("Failed to load body assignment %s", assignment_id)
            raise PersistenceError("load")
        row = result.scalar_one_or_none()
        if not row:
            raise NotFoundError(ASSIGNMENT, assignment_id)
        return row

    async def _load(
        self, assignment_id: str, expected_version: int | None = None
    ) -> tuple[BodyAssignment, list[MainColor]]:
        """Load the aggregate for a mutation."""
        row = await self._get_row(assignment_id)
        if expected_version is not None and expected_version != row.version:
            raise ConflictError(expected_version, row.version)
        return row, load_tree(row.main_colors)

    async def _flush(self, operation: str) -> None:
        try:
            await self.db.flush()
        except StaleDataError:
            raise ConflictError() from None
        except SQLAlchemyError:
            logger.exception("Failed to persist body assignment (%s)", operation)
            raise PersistenceError(operation)

    async def _save(
        self,
        row: BodyAssignment,
        main_colors: list[MainColor],
        admin_id: str | None,
        operation: str,
    ) -> BodyAssignmentResponse:
        """Validate the whole tree and write the aggregate back."""
        validate_tree(main_colors, self.max_sub_feelings)
        row.main_colors = dump_tree(main_colors)
        row.last_edited_by = admin_id
        row.updated_at = utc_now()
        await self._flush(operation)
        return self.to_response(row, main_colors)

    def _audit(self, **entry: Any) -> None:
        """Queue an audit entry; it is written once the transaction commits."""
        audit_logger.record(self.db.sync_session, **entry)

    # ------------------------------------------------------------ assignments

    async def list_assignments(
        self,
        search: str | None = None,
        published: bool | None = None,
        sort_by: SortField = "updatedAt",
        order: SortOrder = "desc",
    ) -> list[BodyAssignmentSummary]:
        """List assignments, optionally searching title and description."""
        column = SORT_COLUMNS.get(sort_by)
        if column is None:
            raise ValidationError(f"Cannot sort by '{sort_by}'", field="sortBy")

        query = select(BodyAssignment)
        if search:
            # Wildcards in the search term match literally
            query = query.where(
                or_(
                    BodyAssignment.title.icontains(search, autoescape=True),
                    BodyAssignment.description.icontains(search, autoescape=True),
                )
            )
        if published is not None:
            query = query.where(BodyAssignment.published == published)
        query = query.order_by(column.desc() if order == "desc" else column.asc())

        try:
            result = await self.db.execute(query)
        except SQLAlchemyError:
            logger.exception("Failed to list body assignments")
            raise PersistenceError("list")
        return [self.to_summary(row) for row in result.scalars().all()]

    async def get_assignment(self, assignment_id: str) -> BodyAssignmentResponse:
        """Get one assignment with its full tree."""
        row = await self._get_row(assignment_id)
        return self.to_response(row)

    async def create_assignment(
        self, data: BodyAssignmentCreateRequest, admin_id: str | None = None
    ) -> BodyAssignmentResponse:
        """Create an assignment with no main colors."""
        row = BodyAssignment(
            title=_clean_title(data.title),
            description=_clean_description(data.description),
            main_colors=[],
            published=False,
            created_by=admin_id,
            last_edited_by=admin_id,
        )
        self.db.add(row)
        await self._flush("create")

        self._audit(
            action_type=ActionType.ASSIGNMENT_CREATE,
            assignment_id=row.id,
            admin_id=admin_id,
            action_data={"title": row.title},
        )
        return self.to_response(row, [])

    async def update_assignment(
        self,
        assignment_id: str,
        data: BodyAssignmentUpdateRequest,
        admin_id: str | None = None,
        expected_version: int | None = None,
    ) -> BodyAssignmentResponse:
        """Partially update title, description and published status."""
        changes = _sent_fields(data)
        row, main_colors = await self._load(assignment_id, expected_version)

        title = _clean_title(changes["title"]) if "title" in changes else row.title
        description = (
            _clean_description(changes["description"]) if "description" in changes else row.description
        )
        publish = changes.get("published")
        if publish:
            self._check_publishable(main_colors)

        row.title = title
        row.description = description
        if publish:
            self._mark_published(row)
        elif publish is False:
            row.published = False

        response = await self._save(row, main_colors, admin_id, "update")
        self._audit(
            action_type=ActionType.ASSIGNMENT_UPDATE,
            assignment_id=assignment_id,
            admin_id=admin_id,
            action_data={"fields": sorted(changes)},
        )
        return response

    async def delete_assignment(
        self,
        assignment_id: str,
        admin_id: str | None = None,
        expected_version: int | None = None,
    ) -> None:
        """Delete an assignment together with its whole tree."""
        row, _ = await self._load(assignment_id, expected_version)
        await self.db.delete(row)
        await self._flush("delete")

        self._audit(
            action_type=ActionType.ASSIGNMENT_DELETE,
            assignment_id=assignment_id,
            admin_id=admin_id,
        )

    async def duplicate_assignment(
        self, assignment_id: str, admin_id: str | None = None
    ) -> BodyAssignmentResponse:
        """Copy an assignment into a new, unpublished one.

        Every node of the copy gets a new id, so the two trees never share
        identifiers.
        """
        original, main_colors = await self._load(assignment_id)
        base_title = original.title[: TITLE_MAX_LENGTH - len(COPY_SUFFIX)]
        copied_colors = clone_tree(main_colors)

        row = BodyAssignment(
            title=f"{base_title}{COPY_SUFFIX}",
            description=original.description,
            main_colors=dump_tree(copied_colors),
            published=False,
            published_at=None,
            created_by=admin_id,
            last_edited_by=admin_id,
        )
        self.db.add(row)
        await self._flush("duplicate")

        self._audit(
            action_type=ActionType.ASSIGNMENT_DUPLICATE,
            assignment_id=row.id,
            admin_id=admin_id,
            action_data={"source_id": assignment_id},
        )
        return self.to_response(row, copied_colors)

    # ------------------------------------------------------------ main colors

    async def add_main_color(
        self,
        assignment_id: str,
        data: MainColorRequest,
        admin_id: str | None = None,
        expected_version: int | None = None,
    ) -> BodyAssignmentResponse:
        """Append a main color with no sub-feelings."""
        fields = _sent_fields(data)
        require_fields(fields, ("hex", "feeling"), "Hex color and feeling are required")

        row, main_colors = await self._load(assignment_id, expected_version)
        color = build_node(MainColor, {**fields, "sub_feelings": []})
        ensure_unique_hex(main_colors, color.hex, MAIN_COLOR)
        main_colors.append(color)

        response = await self._save(row, main_colors, admin_id, "add_main_color")
        self._audit(
            action_type=ActionType.MAIN_COLOR_ADD,
            assignment_id=assignment_id,
            admin_id=admin_id,
            action_data={"color_id": color.id, "hex": color.hex},
        )
        return response

    async def update_main_color(
        self,
        assignment_id: str,
        color_id: str,
        data: MainColorRequest,
        admin_id: str | None = None,
        expected_version: int | None = None,
    ) -> BodyAssignmentResponse:
        """Merge the provided fields into one main color."""
        changes = _sent_fields(data)
        row, main_colors = await self._load(assignment_id, expected_version)
        index = find_index(main_colors, color_id, MAIN_COLOR)
        current = main_colors[index]

        updated = merge_node(current, changes)
        if hex_key(updated.hex) != hex_key(current.hex):
            ensure_unique_hex(main_colors, updated.hex, MAIN_COLOR, exclude_id=color_id)
        main_colors[index] = updated

        response = await self._save(row, main_colors, admin_id, "update_main_color")
        self._audit(
            action_type=ActionType.MAIN_COLOR_UPDATE,
            assignment_id=assignment_id,
            admin_id=admin_id,
            action_data={"color_id": color_id, "fields": sorted(changes)},
        )
        return response

    async def delete_main_color(
        self,
        assignment_id: str,
        color_id: str,
        admin_id: str | None = None,
        expected_version: int | None = None,
    ) -> BodyAssignmentResponse:
        """Remove a main color and everything under it."""
        row, main_colors = await self._load(assignment_id, expected_version)
        removed = main_colors.pop(find_index(main_colors, color_id, MAIN_COLOR))

        response = await self._save(row, main_colors, admin_id, "delete_main_color")
        self._audit(
            action_type=ActionType.MAIN_COLOR_DELETE,
            assignment_id=assignment_id,
            admin_id=admin_id,
            action_data={"color_id": color_id, "sub_feeling_count": len(removed.sub_feelings)},
        )
        return response

    # ----------------------------------------------------------- sub-feelings

    async def add_sub_feeling(
        self,
        assignment_id: str,
        color_id: str,
        data: SubFeelingRequest,
        admin_id: str | None = None,
        expected_version: int | None = None,
    ) -> BodyAssignmentResponse:
        """Append a sub-feeling to a main color."""
        fields = _sent_fields(data)
        require_fields(fields, ("hex", "sub_feeling"), "Hex color and sub-feeling are required")

        row, main_colors = await self._load(assignment_id, expected_version)
        color = find_node(main_colors, color_id, MAIN_COLOR)
        ensure_capacity(color.sub_feelings, self.max_sub_feelings)

        sub_feeling = build_node(SubFeeling, {**fields, "final_options": []})
        ensure_unique_hex(color.sub_feelings, sub_feeling.hex, SUB_FEELING)
        color.sub_feelings.append(sub_feeling)
        color.updated_at = utc_now()

        response = await self._save(row, main_colors, admin_id, "add_sub_feeling")
        self._audit(
            action_type=ActionType.SUB_FEELING_ADD,
            assignment_id=assignment_id,
            admin_id=admin_id,
            action_data={
                "color_id": color_id,
                "sub_feeling_id": sub_feeling.id,
                "hex": sub_feeling.hex,
            },
        )
        return response

    async def update_sub_feeling(
        self,
        assignment_id: str,
        color_id: str,
        sub_feeling_id: str,
        data: SubFeelingRequest,
        admin_id: str | None = None,
        expected_version: int | None = None,
    ) -> BodyAssignmentResponse:
        """Merge the provided fields into one sub-feeling."""
        changes = _sent_fields(data)
        row, main_colors = await self._load(assignment_id, expected_version)
        color = find_node(main_colors, color_id, MAIN_COLOR)
        index = find_index(color.sub_feelings, sub_feeling_id, SUB_FEELING)
        current = color.sub_feelings[index]

        updated = merge_node(current, changes)
        if hex_key(updated.hex) != hex_key(current.hex):
            ensure_unique_hex(color.sub_feelings, updated.hex, SUB_FEELING, exclude_id=sub_feeling_id)
        color.sub_feelings[index] = updated

        response = await self._save(row, main_colors, admin_id, "update_sub_feeling")
        self._audit(
            action_type=ActionType.SUB_FEELING_UPDATE,
            assignment_id=assignment_id,
            admin_id=admin_id,
            action_data={
                "color_id": color_id,
                "sub_feeling_id": sub_feeling_id,
                "fields": sorted(changes),
            },
        )
        return response

    async def delete_sub_feeling(
        self,
        assignment_id: str,
        color_id: str,
        sub_feeling_id: str,
        admin_id: str | None = None,
        expected_version: int | None = None,
    ) -> BodyAssignmentResponse:
        """Remove a sub-feeling and its final options."""
        row, main_colors = await self._load(assignment_id, expected_version)
        color = find_node(main_colors, color_id, MAIN_COLOR)
        color.sub_feelings.pop(find_index(color.sub_feelings, sub_feeling_id, SUB_FEELING))
        color.updated_at = utc_now()

        response = await self._save(row, main_colors, admin_id, "delete_sub_feeling")
        self._audit(
            action_type=ActionType.SUB_FEELING_DELETE,
            assignment_id=assignment_id,
            admin_id=admin_id,
            action_data={"color_id": color_id, "sub_feeling_id": sub_feeling_id},
        )
        return response

    # ---------------------------------------------------------- final options

    async def set_final_options(
        self,
        assignment_id: str,
        color_id: str,
        sub_feeling_id: str,
        options: list[FinalOptionRequest] | None,
        admin_id: str | None = None,
        expected_version: int | None = None,
    ) -> BodyAssignmentResponse:
        """Replace a sub-feeling's final options with exactly two new ones."""
        if options is None or len(options) != FINAL_OPTION_COUNT:
            raise ValidationError("Exactly 2 final options are required", field="options")
        option_fields = [_sent_fields(option) for option in options]
        for fields in option_fields:
            require_fields(fields, ("hex", "feeling"), "Each option must have hex color and feeling")

        row, main_colors = await self._load(assignment_id, expected_version)
        color = find_node(main_colors, color_id, MAIN_COLOR)
        sub_feeling = find_node(color.sub_feelings, sub_feeling_id, SUB_FEELING)

        first, second = (hex_key(fields["hex"]) for fields in option_fields)
        if first == second:
            raise ValidationError("Final options must have different colors", field="options")

        sub_feeling.final_options = [build_node(FinalOption, fields) for fields in option_fields]
        sub_feeling.updated_at = utc_now()

        response = await self._save(row, main_colors, admin_id, "set_final_options")
        self._audit(
            action_type=ActionType.FINAL_OPTIONS_SET,
            assignment_id=assignment_id,
            admin_id=admin_id,
            action_data={
                "color_id": color_id,
                "sub_feeling_id": sub_feeling_id,
                "hex": [option.hex for option in sub_feeling.final_options],
            },
        )
        return response

    async def update_final_option(
        self,
        assignment_id: str,
        color_id: str,
        sub_feeling_id: str,
        option_id: str,
        data: FinalOptionRequest,
        admin_id: str | None = None,
        expected_version: int | None = None,
    ) -> BodyAssignmentResponse:
        """Merge the provided fields into one of the two final options."""
        changes = _sent_fields(data)
        row, main_colors = await self._load(assignment_id, expected_version)
        color = find_node(main_colors, color_id, MAIN_COLOR)
        sub_feeling = find_node(color.sub_feelings, sub_feeling_id, SUB_FEELING)
        index = find_index(sub_feeling.final_options, option_id, FINAL_OPTION)
        current = sub_feeling.final_options[index]

        updated = merge_node(current, changes)
        if hex_key(updated.hex) != hex_key(current.hex):
            ensure_unique_hex(
                sub_feeling.final_options, updated.hex, FINAL_OPTION, exclude_id=option_id
            )
        sub_feeling.final_options[index] = updated

        response = await self._save(row, main_colors, admin_id, "update_final_option")
        self._audit(
            action_type=ActionType.FINAL_OPTION_UPDATE,
            assignment_id=assignment_id,
            admin_id=admin_id,
            action_data={
                "color_id": color_id,
                "sub_feeling_id": sub_feeling_id,
                "option_id": option_id,
                "fields": sorted(changes),
            },
        )
        return response

    # ------------------------------------------------------ publish & preview

    def _check_publishable(self, main_colors: list[MainColor]) -> None:
        if not main_colors:
            raise ValidationError("Cannot publish assignment without main colors", field="mainColors")

    def _mark_published(self, row: BodyAssignment) -> None:
        """Set the flag; ``publishedAt`` records only the first publish."""
        row.published = True
        if row.published_at is None:
            row.published_at = utc_now()

    async def publish(
        self,
        assignment_id: str,
        admin_id: str | None = None,
        expected_version: int | None = None,
    ) -> BodyAssignmentResponse:
        """Publish an assignment that has at least one main color."""
        row, main_colors = await self._load(assignment_id, expected_version)
        self._check_publishable(main_colors)
        self._mark_published(row)

        response = await self._save(row, main_colors, admin_id, "publish")
        self._audit(
            action_type=ActionType.ASSIGNMENT_PUBLISH,
            assignment_id=assignment_id,
            admin_id=admin_id,
        )
        return response

    async def unpublish(
        self,
        assignment_id: str,
        admin_id: str | None = None,
        expected_version: int | None = None,
    ) -> BodyAssignmentResponse:
        """Clear the published flag; ``publishedAt`` is kept."""
        row, main_colors = await self._load(assignment_id, expected_version)
        row.published = False

        response = await self._save(row, main_colors, admin_id, "unpublish")
        self._audit(
            action_type=ActionType.ASSIGNMENT_UNPUBLISH,
            assignment_id=assignment_id,
            admin_id=admin_id,
        )
        return response

    async def get_preview(self, assignment_id: str) -> BodyAssignmentPreview:
        """Read-only rendering projection of the whole tree."""
        row = await self._get_row(assignment_id)
        return BodyAssignmentPreview(
            id=row.id,
            title=row.title,
            description=row.description,
            published=row.published,
            main_colors=[
                MainColorPreview(
                    id=color.id,
                    hex=color.hex,
                    feeling=color.feeling,
                    voice_text=color.voice_text,
                    audio_url=color.audio_url,
                    has_audio=color.has_audio,
                    sub_feelings=[
                        SubFeelingPreview(
                            id=sub_feeling.id,
                            hex=sub_feeling.hex,
                            sub_feeling=sub_feeling.sub_feeling,
                            voice_text=sub_feeling.voice_text,
                            audio_url=sub_feeling.audio_url,
                            has_audio=sub_feeling.has_audio,
                            final_options=[
                                FinalOptionPreview(
                                    id=option.id,
                                    hex=option.hex,
                                    feeling=option.feeling,
                                    voice_text=option.voice_text,
                                    audio_url=option.audio_url,
                                    has_audio=option.has_audio,
                                )
                                for option in sub_feeling.final_options
                            ],
                        )
                        for sub_feeling in color.sub_feelings
                    ],
                )
                for color in load_tree(row.main_colors)
            ],
        )

    # -------------------------------------------------------------- responses

    def to_summary(self, row: BodyAssignment) -> BodyAssignmentSummary:
        """Convert a row to a listing entry."""
        return BodyAssignmentSummary(
            id=row.id,
            title=row.title,
            description=row.description,
            main_color_count=len(row.main_colors or []),
            version=row.version,
            published=row.published,
            published_at=row.published_at,
            created_by=row.created_by,
            last_edited_by=row.last_edited_by,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_response(
        self, row: BodyAssignment, main_colors: list[MainColor] | None = None
    ) -> BodyAssignmentResponse:
        """Convert a row to the full aggregate response."""
        if main_colors is None:
            main_colors = load_tree(row.main_colors)
        return BodyAssignmentResponse(
            **self.to_summary(row).model_dump(),
            main_colors=main_colors,
        )
