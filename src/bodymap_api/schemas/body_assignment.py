"""Body assignment schemas.

The node documents (``MainColor``, ``SubFeeling``, ``FinalOption``) double as
the persisted shape of the owned tree: dumped by alias in JSON mode they give
the camelCase document stored in ``body_assignments.main_colors``.
"""

from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from pydantic import ConfigDict, Field, computed_field

from bodymap_api.schemas.base import BaseSchema

HEX_PATTERN = r"^#([0-9A-Fa-f]{3}){1,2}$"

VoiceStyle = Literal["male", "female", "neutral"]
SortField = Literal["updatedAt", "createdAt", "title"]
SortOrder = Literal["asc", "desc"]


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def new_node_id() -> str:
    """Generate an identifier for a tree node."""
    return str(uuid4())


class VoiceMeta(BaseSchema):
    """TTS voice options attached to a node."""

    language: str = "en-US"
    voice_style: VoiceStyle = Field("neutral", alias="voiceStyle")
    speech_rate: float = Field(1.0, ge=0.5, le=2.0, alias="speechRate")
    volume: float = Field(1.0, ge=0, le=1)


class AudioNode(BaseSchema):
    """Fields shared by every level of the tree: a color, narration and audio."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_node_id)
    hex: str = Field(..., pattern=HEX_PATTERN)
    voice_text: str | None = Field(None, max_length=300, alias="voiceText")
    voice_meta: VoiceMeta | None = Field(None, alias="voiceMeta")
    audio_file: str | None = Field(None, alias="audioFile")
    generated_tts_url: str | None = Field(None, alias="generatedTtsUrl")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")

    @computed_field(alias="hasAudio")  # type: ignore[prop-decorator]
    @property
    def has_audio(self) -> bool:
        return bool(self.audio_file or self.generated_tts_url)

    @property
    def audio_url(self) -> str | None:
        """Uploaded audio wins over generated TTS."""
        return self.audio_file or self.generated_tts_url or None


class FinalOption(AudioNode):
    """Level 3 node; a sub-feeling holds exactly two of these or none."""

    feeling: str = Field(..., min_length=1, max_length=100)


class SubFeeling(AudioNode):
    """Level 2 node; up to ten per main color."""

    sub_feeling: str = Field(..., min_length=1, max_length=100, alias="subFeeling")
    final_options: list[FinalOption] = Field(default_factory=list, alias="finalOptions")


class MainColor(AudioNode):
    """Level 1 node."""

    feeling: str = Field(..., min_length=1, max_length=100)
    sub_feelings: list[SubFeeling] = Field(default_factory=list, alias="subFeelings")


# Requests
#
# Request fields are all optional so that missing values reach the service,
# which reports them with level-specific messages. Only the fields a client
# actually sent count for partial updates (``model_fields_set``).


class BodyAssignmentCreateRequest(BaseSchema):
    """Create an empty assignment."""

    title: str | None = None
    description: str | None = None


class BodyAssignmentUpdateRequest(BaseSchema):
    """Partial update of the assignment's own fields."""

    title: str | None = None
    description: str | None = None
    published: bool | None = None


class AudioNodeRequest(BaseSchema):
    """Color, narration and audio fields accepted at every level."""

    hex: str | None = None
    voice_text: str | None = Field(None, alias="voiceText")
    voice_meta: VoiceMeta | None = Field(None, alias="voiceMeta")
    audio_file: str | None = Field(None, alias="audioFile")
    generated_tts_url: str | None = Field(None, alias="generatedTtsUrl")


class MainColorRequest(AudioNodeRequest):
    """Add or partially update a main color."""

    feeling: str | None = None


class SubFeelingRequest(AudioNodeRequest):
    """Add or partially update a sub-feeling."""

    sub_feeling: str | None = Field(None, alias="subFeeling")


class FinalOptionRequest(AudioNodeRequest):
    """One final option, or a partial update of one."""

    feeling: str | None = None


class FinalOptionsRequest(BaseSchema):
    """Replace a sub-feeling's final options."""

    options: list[FinalOptionRequest] | None = None


# Responses


class BodyAssignmentSummary(BaseSchema):
    """Assignment listing entry without the tree."""

    id: str
    title: str
    description: str | None = None
    main_color_count: int = Field(..., alias="mainColorCount")
    version: int
    published: bool
    published_at: datetime | None = Field(None, alias="publishedAt")
    created_by: str | None = Field(None, alias="createdBy")
    last_edited_by: str | None = Field(None, alias="lastEditedBy")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class BodyAssignmentResponse(BodyAssignmentSummary):
    """Full assignment aggregate."""

    main_colors: list[MainColor] = Field(default_factory=list, alias="mainColors")


class NodePreview(BaseSchema):
    """Rendering fields shared by every preview level."""

    id: str
    hex: str
    voice_text: str | None = Field(None, alias="voiceText")
    audio_url: str | None = Field(None, alias="audioUrl")
    has_audio: bool = Field(..., alias="hasAudio")


class FinalOptionPreview(NodePreview):
    feeling: str


class SubFeelingPreview(NodePreview):
    sub_feeling: str = Field(..., alias="subFeeling")
    final_options: list[FinalOptionPreview] = Field(default_factory=list, alias="finalOptions")


class MainColorPreview(NodePreview):
    feeling: str
    sub_feelings: list[SubFeelingPreview] = Field(default_factory=list, alias="subFeelings")


class BodyAssignmentPreview(BaseSchema):
    """Read-only projection of the tree for front-end preview."""

    id: str
    title: str
    description: str | None = None
    published: bool
    main_colors: list[MainColorPreview] = Field(default_factory=list, alias="mainColors")
