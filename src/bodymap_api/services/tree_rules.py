"""Invariant checks and helpers for the body assignment tree.

Every list in the tree is small (a handful of nodes, ten at most), so lookups
are linear scans by id over the owning list.
"""

from typing import Any, Sequence, TypeVar

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from bodymap_api.core.exceptions import (
    DuplicateError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
)
from bodymap_api.schemas.body_assignment import (
    AudioNode,
    FinalOption,
    MainColor,
    SubFeeling,
    new_node_id,
    utc_now,
)

N = TypeVar("N", bound=AudioNode)

# Resource names, used in not-found messages
ASSIGNMENT = "Body Assignment"
MAIN_COLOR = "Main color"
SUB_FEELING = "Sub-feeling"
FINAL_OPTION = "Final option"

FINAL_OPTION_COUNT = 2

DUPLICATE_MESSAGES = {
    MAIN_COLOR: "This color already exists in the assignment",
    SUB_FEELING: "This shade already exists for this main color",
    FINAL_OPTION: "This color already exists in final options",
}

_tree_adapter = TypeAdapter(list[MainColor])


def hex_key(value: str) -> str:
    """Comparison key for hex colors (case-insensitive)."""
    return value.strip().lower()


def load_tree(document: list[dict[str, Any]] | None) -> list[MainColor]:
    """Parse the stored tree document."""
    return _tree_adapter.validate_python(document or [])


def dump_tree(main_colors: Sequence[MainColor]) -> list[dict[str, Any]]:
    """Serialize the tree to its persisted camelCase shape."""
    return [color.model_dump(by_alias=True, mode="json") for color in main_colors]


def build_node(model: type[N], data: dict[str, Any]) -> N:
    """Validate node fields, reporting failures as ``ValidationError``."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        if error["type"] == "string_pattern_mismatch" and error["loc"][-1] == "hex":
            raise ValidationError(f"Invalid hex color: {error['input']!r}", field=field) from None
        raise ValidationError(f"{field}: {error['msg']}", field=field) from None


def merge_node(node: N, changes: dict[str, Any]) -> N:
    """Apply a partial update; fields absent from ``changes`` keep their values."""
    data = node.model_dump()
    data.update(changes)
    data["id"] = node.id
    data["created_at"] = node.created_at
    data["updated_at"] = utc_now()
    return build_node(type(node), data)


def require_fields(data: dict[str, Any], fields: Sequence[str], message: str) -> None:
    """Reject input missing any of ``fields`` (absent, None or blank)."""
    for field in fields:
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(message, field=field)


def find_index(nodes: Sequence[AudioNode], node_id: str, resource: str) -> int:
    """Position of the node with ``node_id``."""
    for index, node in enumerate(nodes):
        if node.id == node_id:
            return index
    raise NotFoundError(resource, node_id)


def find_node(nodes: Sequence[N], node_id: str, resource: str) -> N:
    """Node with ``node_id``."""
    return nodes[find_index(nodes, node_id, resource)]


def ensure_unique_hex(
    nodes: Sequence[AudioNode],
    hex_value: str,
    level: str,
    exclude_id: str | None = None,
) -> None:
    """Reject ``hex_value`` if a sibling already uses it."""
    key = hex_key(hex_value)
    for node in nodes:
        if node.id != exclude_id and hex_key(node.hex) == key:
            raise DuplicateError(DUPLICATE_MESSAGES[level], level=level, hex_value=hex_value)


def ensure_capacity(sub_feelings: Sequence[SubFeeling], limit: int) -> None:
    if len(sub_feelings) >= limit:
        raise LimitExceededError(
            f"Cannot add more than {limit} sub-feelings per main color", limit=limit
        )


def _check_unique(nodes: Sequence[AudioNode], level: str) -> None:
    seen: set[str] = set()
    for node in nodes:
        key = hex_key(node.hex)
        if key in seen:
            raise DuplicateError(DUPLICATE_MESSAGES[level], level=level, hex_value=node.hex)
        seen.add(key)


def validate_final_options(options: Sequence[FinalOption]) -> None:
    """Final options are either empty or exactly two distinct colors."""
    if len(options) not in (0, FINAL_OPTION_COUNT):
        raise ValidationError("Final options must be exactly 2 or empty", field="finalOptions")
    if options and hex_key(options[0].hex) == hex_key(options[1].hex):
        raise ValidationError("Final options must have different colors", field="finalOptions")


def validate_sub_feelings(sub_feelings: Sequence[SubFeeling], limit: int) -> None:
    if len(sub_feelings) > limit:
        raise LimitExceededError(
            f"Cannot have more than {limit} sub-feelings per main color", limit=limit
        )
    _check_unique(sub_feelings, SUB_FEELING)
    for sub_feeling in sub_feelings:
        validate_final_options(sub_feeling.final_options)


def validate_tree(main_colors: Sequence[MainColor], max_sub_feelings: int) -> None:
    """Check every structural invariant of the tree.

    Runs against the in-memory tree before each write; the first violation
    is raised and nothing is persisted.
    """
    _check_unique(main_colors, MAIN_COLOR)
    for color in main_colors:
        validate_sub_feelings(color.sub_feelings, max_sub_feelings)


def clone_tree(main_colors: Sequence[MainColor]) -> list[MainColor]:
    """Deep copy of the tree with fresh ids and timestamps on every node."""
    now = utc_now()

    def fresh(node: N, **children: Any) -> N:
        return node.model_copy(
            update={"id": new_node_id(), "created_at": now, "updated_at": now, **children},
            deep=True,
        )

    return [
        fresh(
            color,
            sub_feelings=[
                fresh(
                    sub_feeling,
                    final_options=[fresh(option) for option in sub_feeling.final_options],
                )
                for sub_feeling in color.sub_feelings
            ],
        )
        for color in main_colors
    ]
