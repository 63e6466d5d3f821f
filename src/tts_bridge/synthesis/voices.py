"""
Voice Resolution.

Maps a caller's voice request (an optional name and an optional gender) to
exactly one locale-qualified voice identifier.

Resolution order:
    1. voice_name is a known short form (alias table) -> mapped identifier
    2. voice_name is already locale-qualified         -> unchanged
    3. otherwise                                      -> gender default
       (male -> male default, anything else -> female default)

Resolution is pure and total: it never raises and always returns one
identifier. The alias table and defaults come from the ``voices`` section
of the settings file.

Examples:
    >>> resolver = VoiceResolver.from_settings(settings)
    >>> resolver.resolve(voice_name="FableNeural", voice_gender="male")
    'en-US-FableNeural'
    >>> resolver.resolve(voice_name="en-US-Alloy:DragonHDLatestNeural")
    'en-US-Alloy:DragonHDLatestNeural'
    >>> resolver.resolve(voice_gender="male")
    'en-US-AndrewNeural'
"""
from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, Optional

from tts_bridge.core.config import Settings, VoiceConfig

# language[-Script]-REGION-<voice>, e.g. en-US-JennyNeural, zh-Hans-CN-XiaoxiaoNeural
_QUALIFIED_VOICE = re.compile(r"^[a-z]{2,3}(-[A-Za-z]{4})?-[A-Z]{2}-\S+$")


class VoiceGender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    UNSPECIFIED = "unspecified"

    @classmethod
    def parse(cls, value: Any) -> "VoiceGender":
        """Lenient parse; unknown or missing values are UNSPECIFIED."""
        if isinstance(value, VoiceGender):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.UNSPECIFIED
        return cls.UNSPECIFIED


def is_qualified_voice(name: str) -> bool:
    return bool(_QUALIFIED_VOICE.match(name))


class VoiceResolver:
    """Resolve voice requests against an explicit alias table."""

    def __init__(
        self,
        aliases: Dict[str, str],
        male_default: str,
        female_default: str,
    ):
        self._aliases = dict(aliases)
        self.male_default = male_default
        self.female_default = female_default

    @classmethod
    def from_config(cls, config: VoiceConfig) -> "VoiceResolver":
        return cls(config.aliases, config.male_default, config.female_default)

    @classmethod
    def from_settings(cls, settings: Settings) -> "VoiceResolver":
        return cls.from_config(settings.get_service_config().voices)

    @property
    def aliases(self) -> Dict[str, str]:
        return dict(self._aliases)

    def resolve(
        self,
        voice_name: Optional[str] = None,
        voice_gender: Any = None,
    ) -> str:
        name = (voice_name or "").strip()
        if name:
            mapped = self._aliases.get(name)
            if mapped:
                return mapped
            if is_qualified_voice(name):
                return name

        if VoiceGender.parse(voice_gender) is VoiceGender.MALE:
            return self.male_default
        return self.female_default
