"""Tests for voice resolution."""
from __future__ import annotations

import pytest

from tts_bridge.synthesis.voices import VoiceGender, VoiceResolver, is_qualified_voice


@pytest.fixture
def resolver() -> VoiceResolver:
    return VoiceResolver(
        aliases={
            "JennyNeural": "en-US-JennyNeural",
            "AndrewNeural": "en-US-AndrewNeural",
            "FableNeural": "en-US-FableNeural",
        },
        male_default="en-US-AndrewNeural",
        female_default="en-US-JennyNeural",
    )


class TestVoiceGender:
    """Tests for VoiceGender.parse()."""

    @pytest.mark.parametrize("value,expected", [
        ("male", VoiceGender.MALE),
        ("MALE", VoiceGender.MALE),
        (" Female ", VoiceGender.FEMALE),
        ("other", VoiceGender.UNSPECIFIED),
        ("", VoiceGender.UNSPECIFIED),
        (None, VoiceGender.UNSPECIFIED),
        (1, VoiceGender.UNSPECIFIED),
        (VoiceGender.MALE, VoiceGender.MALE),
    ])
    def test_parse(self, value, expected):
        assert VoiceGender.parse(value) is expected


class TestQualifiedVoice:
    """Tests for is_qualified_voice()."""

    @pytest.mark.parametrize("name", [
        "en-US-JennyNeural",
        "en-US-Alloy:DragonHDLatestNeural",
        "zh-Hans-CN-XiaoxiaoNeural",
        "fil-PH-AngeloNeural",
    ])
    def test_qualified(self, name):
        assert is_qualified_voice(name)

    @pytest.mark.parametrize("name", [
        "JennyNeural",
        "en-JennyNeural",
        "EN-us-JennyNeural",
        "en-US-",
    ])
    def test_not_qualified(self, name):
        assert not is_qualified_voice(name)


class TestVoiceResolver:
    """Tests for VoiceResolver.resolve()."""

    def test_alias_wins_over_gender(self, resolver):
        """A known alias is used even when the gender points elsewhere."""
        assert resolver.resolve("FableNeural", "male") == "en-US-FableNeural"
        assert resolver.resolve("AndrewNeural", "female") == "en-US-AndrewNeural"

    def test_qualified_passthrough(self, resolver):
        assert resolver.resolve("en-US-Alloy:DragonHDLatestNeural") == "en-US-Alloy:DragonHDLatestNeural"

    def test_unknown_name_falls_back_to_gender(self, resolver):
        assert resolver.resolve("NotAVoice", "male") == "en-US-AndrewNeural"
        assert resolver.resolve("NotAVoice", "female") == "en-US-JennyNeural"

    def test_gender_defaults(self, resolver):
        assert resolver.resolve(voice_gender="male") == "en-US-AndrewNeural"
        assert resolver.resolve(voice_gender=VoiceGender.MALE) == "en-US-AndrewNeural"
        assert resolver.resolve(voice_gender="female") == "en-US-JennyNeural"

    def test_anything_else_is_female_default(self, resolver):
        assert resolver.resolve() == "en-US-JennyNeural"
        assert resolver.resolve("", "robot") == "en-US-JennyNeural"

    def test_name_is_stripped(self, resolver):
        assert resolver.resolve("  JennyNeural  ") == "en-US-JennyNeural"

    def test_aliases_copy(self, resolver):
        """The aliases property cannot be used to mutate the table."""
        aliases = resolver.aliases
        aliases["JennyNeural"] = "xx-XX-Changed"
        assert resolver.resolve("JennyNeural") == "en-US-JennyNeural"

    def test_from_settings(self):
        from tts_bridge.core.config import Settings

        settings = Settings(raw={"voices": {
            "male_default": "en-GB-RyanNeural",
            "aliases": {"Ryan": "en-GB-RyanNeural"},
        }})
        resolver = VoiceResolver.from_settings(settings)
        assert resolver.resolve("Ryan") == "en-GB-RyanNeural"
        assert resolver.resolve(voice_gender="male") == "en-GB-RyanNeural"
        assert resolver.resolve("FableNeural", "female") == "en-US-JennyNeural"
