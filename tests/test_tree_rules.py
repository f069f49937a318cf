"""Tests for the tree documents and invariant helpers."""

import pytest

from bodymap_api.core.exceptions import (
    DuplicateError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
)
from bodymap_api.schemas.body_assignment import FinalOption, MainColor, SubFeeling
from bodymap_api.services.tree_rules import (
    MAIN_COLOR,
    SUB_FEELING,
    build_node,
    clone_tree,
    dump_tree,
    ensure_capacity,
    ensure_unique_hex,
    find_node,
    hex_key,
    load_tree,
    merge_node,
    require_fields,
    validate_final_options,
    validate_tree,
)


def make_tree() -> list[MainColor]:
    return [
        MainColor(
            hex="#FF0000",
            feeling="Anger",
            audioFile="/uploads/anger.mp3",
            subFeelings=[
                SubFeeling(
                    hex="#CC0000",
                    subFeeling="Frustration",
                    finalOptions=[
                        FinalOption(hex="#111111", feeling="Tight"),
                        FinalOption(hex="#222222", feeling="Loose"),
                    ],
                )
            ],
        ),
        MainColor(hex="#00F", feeling="Calm"),
    ]


class TestHexFormat:
    @pytest.mark.parametrize("value", ["#FFF", "#fff", "#A1b2C3", " #abcdef "])
    def test_accepts_three_and_six_digit_codes(self, value: str) -> None:
        color = build_node(MainColor, {"hex": value, "feeling": "Joy"})
        assert color.hex == value.strip()

    @pytest.mark.parametrize("value", ["FF0000", "#FF00", "#GGGGGG", "#FF00000", ""])
    def test_rejects_malformed_codes(self, value: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            build_node(MainColor, {"hex": value, "feeling": "Joy"})
        assert exc_info.value.details["field"] == "hex"

    def test_hex_key_ignores_case(self) -> None:
        assert hex_key("#AbCdEf") == hex_key("#abcdef")


class TestNodeFields:
    def test_feeling_length_is_limited(self) -> None:
        with pytest.raises(ValidationError):
            build_node(MainColor, {"hex": "#FF0000", "feeling": "x" * 101})

    def test_voice_text_length_is_limited(self) -> None:
        with pytest.raises(ValidationError):
            build_node(MainColor, {"hex": "#FF0000", "feeling": "Joy", "voice_text": "x" * 301})

    def test_voice_meta_defaults_and_bounds(self) -> None:
        color = build_node(MainColor, {"hex": "#FF0000", "feeling": "Joy", "voice_meta": {}})
        assert color.voice_meta is not None
        assert color.voice_meta.language == "en-US"
        assert color.voice_meta.voice_style == "neutral"

        with pytest.raises(ValidationError):
            build_node(
                MainColor,
                {"hex": "#FF0000", "feeling": "Joy", "voice_meta": {"speechRate": 2.5}},
            )
        with pytest.raises(ValidationError):
            build_node(
                MainColor,
                {"hex": "#FF0000", "feeling": "Joy", "voice_meta": {"voiceStyle": "robot"}},
            )

    def test_nodes_get_distinct_ids(self) -> None:
        first = build_node(FinalOption, {"hex": "#111", "feeling": "A"})
        second = build_node(FinalOption, {"hex": "#222", "feeling": "B"})
        assert first.id != second.id

    def test_require_fields_rejects_blank_values(self) -> None:
        with pytest.raises(ValidationError, match="required"):
            require_fields({"hex": "#FFF", "feeling": "  "}, ("hex", "feeling"), "Hex color and feeling are required")


class TestHasAudio:
    @pytest.mark.parametrize(
        ("audio_file", "tts_url", "expected"),
        [
            (None, None, False),
            ("", "", False),
            ("/uploads/a.mp3", None, True),
            (None, "https://tts.example/a.mp3", True),
            ("/uploads/a.mp3", "https://tts.example/a.mp3", True),
        ],
    )
    def test_derived_from_audio_fields(self, audio_file, tts_url, expected) -> None:
        option = FinalOption(hex="#111", feeling="A", audioFile=audio_file, generatedTtsUrl=tts_url)
        assert option.has_audio is expected

    def test_client_value_is_ignored(self) -> None:
        option = FinalOption.model_validate({"hex": "#111", "feeling": "A", "hasAudio": True})
        assert option.has_audio is False

    def test_audio_url_prefers_uploaded_file(self) -> None:
        option = FinalOption(
            hex="#111", feeling="A", audioFile="/uploads/a.mp3", generatedTtsUrl="https://tts/a.mp3"
        )
        assert option.audio_url == "/uploads/a.mp3"


class TestPersistedShape:
    def test_dump_uses_camel_case_and_includes_derived_flag(self) -> None:
        document = dump_tree(make_tree())
        color = document[0]
        assert color["hasAudio"] is True
        assert set(color) >= {
            "id",
            "hex",
            "feeling",
            "voiceText",
            "voiceMeta",
            "audioFile",
            "generatedTtsUrl",
            "hasAudio",
            "subFeelings",
            "createdAt",
            "updatedAt",
        }
        sub_feeling = color["subFeelings"][0]
        assert sub_feeling["subFeeling"] == "Frustration"
        assert len(sub_feeling["finalOptions"]) == 2

    def test_load_restores_ids(self) -> None:
        tree = make_tree()
        restored = load_tree(dump_tree(tree))
        assert [c.id for c in restored] == [c.id for c in tree]
        assert restored[0].sub_feelings[0].final_options[1].id == tree[0].sub_feelings[0].final_options[1].id

    def test_load_recomputes_has_audio(self) -> None:
        document = dump_tree(make_tree())
        document[1]["hasAudio"] = True
        assert load_tree(document)[1].has_audio is False


class TestMergeNode:
    def test_only_given_fields_change(self) -> None:
        color = make_tree()[0]
        merged = merge_node(color, {"feeling": "Rage"})
        assert merged.feeling == "Rage"
        assert merged.hex == color.hex
        assert merged.id == color.id
        assert merged.created_at == color.created_at
        assert merged.updated_at >= color.updated_at
        assert [s.id for s in merged.sub_feelings] == [s.id for s in color.sub_feelings]

    def test_clearing_audio_recomputes_flag(self) -> None:
        color = make_tree()[0]
        merged = merge_node(color, {"audio_file": None})
        assert merged.has_audio is False

    def test_invalid_value_raises(self) -> None:
        with pytest.raises(ValidationError):
            merge_node(make_tree()[0], {"hex": None})


class TestInvariants:
    def test_find_node_reports_level(self) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            find_node(make_tree(), "missing", MAIN_COLOR)
        assert exc_info.value.resource == MAIN_COLOR

    def test_unique_hex_is_case_insensitive(self) -> None:
        with pytest.raises(DuplicateError):
            ensure_unique_hex(make_tree(), "#ff0000", MAIN_COLOR)

    def test_unique_hex_skips_the_node_itself(self) -> None:
        tree = make_tree()
        ensure_unique_hex(tree, "#ff0000", MAIN_COLOR, exclude_id=tree[0].id)

    def test_capacity(self) -> None:
        sub_feelings = [SubFeeling(hex=f"#00000{i}", subFeeling=f"S{i}") for i in range(10)]
        with pytest.raises(LimitExceededError):
            ensure_capacity(sub_feelings, 10)
        ensure_capacity(sub_feelings[:9], 10)

    @pytest.mark.parametrize("count", [1, 3])
    def test_final_options_must_be_zero_or_two(self, count: int) -> None:
        options = [FinalOption(hex=f"#00000{i}", feeling="x") for i in range(count)]
        with pytest.raises(ValidationError):
            validate_final_options(options)

    def test_final_options_must_differ(self) -> None:
        options = [FinalOption(hex="#ABCDEF", feeling="A"), FinalOption(hex="#abcdef", feeling="B")]
        with pytest.raises(ValidationError, match="different colors"):
            validate_final_options(options)

    def test_validate_tree_accepts_valid_tree(self) -> None:
        validate_tree(make_tree(), 10)

    def test_validate_tree_finds_nested_duplicates(self) -> None:
        tree = make_tree()
        tree[0].sub_feelings.append(SubFeeling(hex="#cc0000", subFeeling="Copy"))
        with pytest.raises(DuplicateError) as exc_info:
            validate_tree(tree, 10)
        assert exc_info.value.details["level"] == SUB_FEELING

    def test_validate_tree_enforces_sub_feeling_cap(self) -> None:
        tree = make_tree()
        tree[1].sub_feelings = [SubFeeling(hex=f"#0000{i:02d}", subFeeling=f"S{i}") for i in range(11)]
        with pytest.raises(LimitExceededError):
            validate_tree(tree, 10)


class TestCloneTree:
    def test_every_id_is_regenerated(self) -> None:
        tree = make_tree()
        clone = clone_tree(tree)

        def ids(colors: list[MainColor]) -> set[str]:
            found = set()
            for color in colors:
                found.add(color.id)
                for sub_feeling in color.sub_feelings:
                    found.add(sub_feeling.id)
                    found.update(option.id for option in sub_feeling.final_options)
            return found

        assert len(ids(clone)) == len(ids(tree)) == 5
        assert ids(clone).isdisjoint(ids(tree))

    def test_content_is_preserved(self) -> None:
        tree = make_tree()
        clone = clone_tree(tree)
        assert [c.hex for c in clone] == [c.hex for c in tree]
        assert clone[0].sub_feelings[0].final_options[0].feeling == "Tight"
        assert clone[0].has_audio is True
