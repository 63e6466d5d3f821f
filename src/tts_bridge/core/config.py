"""
Configuration Management for tts-bridge.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration sections
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (AZURE_SPEECH_KEY, TTS_BRIDGE_ENGINE, etc.)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    engine:
      type: azure
      region: eastus
      output_format: Raw16Khz16BitMonoPcm

    voices:
      male_default: en-US-AndrewNeural
      female_default: en-US-JennyNeural
      aliases:
        JennyNeural: en-US-JennyNeural

    stream:
      chunk_bytes: 4096
      inactivity_timeout_s: 30
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import os

import yaml
from dotenv import load_dotenv


class ConfigValidationError(Exception):
    """Raised when a configuration value is out of bounds or of the wrong type."""
    pass


# Raw PCM output formats the bridge can stream without a container,
# mapped to their sample rate.
RAW_PCM_FORMATS: Dict[str, int] = {
    "Raw8Khz16BitMonoPcm": 8000,
    "Raw16Khz16BitMonoPcm": 16000,
    "Raw22050Hz16BitMonoPcm": 22050,
    "Raw24Khz16BitMonoPcm": 24000,
    "Raw44100Hz16BitMonoPcm": 44100,
    "Raw48Khz16BitMonoPcm": 48000,
}


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Engine: Synthesis backend and Azure connection
        - Voices: Alias table and gender defaults
        - Markup: SSML document options
        - Stream: Pull loop sizing and inactivity timeout
        - Concurrency: Stream admission control
        - Logging: Log level and text previews
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Engine
    # ─────────────────────────────────────────────────────────────────────────
    ENGINE_TYPE = "azure"
    ENGINE_REGION = "eastus"
    ENGINE_OUTPUT_FORMAT = "Raw16Khz16BitMonoPcm"

    # ─────────────────────────────────────────────────────────────────────────
    # Voices
    # ─────────────────────────────────────────────────────────────────────────
    VOICE_MALE_DEFAULT = "en-US-AndrewNeural"
    VOICE_FEMALE_DEFAULT = "en-US-JennyNeural"
    VOICE_ALIASES = {
        "JennyNeural": "en-US-JennyNeural",
        "AndrewNeural": "en-US-AndrewNeural",
        "FableNeural": "en-US-FableNeural",
    }

    # ─────────────────────────────────────────────────────────────────────────
    # Markup
    # ─────────────────────────────────────────────────────────────────────────
    MARKUP_LANGUAGE = "en-US"
    MARKUP_ESCAPE_TEXT = True
    MARKUP_MAX_TEXT_CHARS = 4000

    # ─────────────────────────────────────────────────────────────────────────
    # Stream
    # ─────────────────────────────────────────────────────────────────────────
    STREAM_CHUNK_BYTES = 4096           # Bytes requested per sink pull
    STREAM_INACTIVITY_TIMEOUT_S = 30.0  # 0 disables the per-pull timeout
    STREAM_MEDIA_TYPE = "audio/wav"

    # ─────────────────────────────────────────────────────────────────────────
    # Concurrency
    # ─────────────────────────────────────────────────────────────────────────
    CONCURRENCY_ENABLED = True
    CONCURRENCY_MAX_CONCURRENT = 8      # Simultaneous engine jobs
    CONCURRENCY_MAX_QUEUE = 32          # Waiting streams before rejection
    CONCURRENCY_TIMEOUT_S = 10.0        # Wait for a slot before failing

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 80
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


@dataclass
class EngineConfig:
    """
    Synthesis engine connection.

    The subscription key is never read from YAML in production setups;
    AZURE_SPEECH_KEY takes precedence over anything in the file.
    """
    type: str = Defaults.ENGINE_TYPE
    key: Optional[str] = None
    region: str = Defaults.ENGINE_REGION
    endpoint: Optional[str] = None
    output_format: str = Defaults.ENGINE_OUTPUT_FORMAT

    @property
    def sample_rate(self) -> int:
        """Sample rate implied by the raw PCM output format."""
        return RAW_PCM_FORMATS[self.output_format]


@dataclass
class VoiceConfig:
    """Voice alias table and the two gender fallbacks."""
    male_default: str = Defaults.VOICE_MALE_DEFAULT
    female_default: str = Defaults.VOICE_FEMALE_DEFAULT
    aliases: Dict[str, str] = field(default_factory=lambda: dict(Defaults.VOICE_ALIASES))


@dataclass
class MarkupConfig:
    """SSML document options."""
    language: str = Defaults.MARKUP_LANGUAGE
    escape_text: bool = Defaults.MARKUP_ESCAPE_TEXT
    max_text_chars: int = Defaults.MARKUP_MAX_TEXT_CHARS


@dataclass
class StreamConfig:
    """
    Audio pull loop configuration.

    chunk_bytes bounds each pull from the engine's output stream.
    inactivity_timeout_s bounds how long one pull may block; 0 disables it.
    """
    chunk_bytes: int = Defaults.STREAM_CHUNK_BYTES
    inactivity_timeout_s: float = Defaults.STREAM_INACTIVITY_TIMEOUT_S
    media_type: str = Defaults.STREAM_MEDIA_TYPE


@dataclass
class ConcurrencyConfig:
    """Admission control for simultaneous streams."""
    enabled: bool = Defaults.CONCURRENCY_ENABLED
    max_concurrent: int = Defaults.CONCURRENCY_MAX_CONCURRENT
    max_queue: int = Defaults.CONCURRENCY_MAX_QUEUE
    timeout_s: float = Defaults.CONCURRENCY_TIMEOUT_S


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Stream lifecycle (default)
        3 = VERBOSE: Per-chunk flow, timings
        4 = DEBUG: Internal state, full tracing
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class ServiceConfig:
    """
    Validated configuration for the streaming service.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ServiceConfig.from_settings(settings)
        print(config.stream.chunk_bytes)
    """
    engine: EngineConfig = field(default_factory=EngineConfig)
    voices: VoiceConfig = field(default_factory=VoiceConfig)
    markup: MarkupConfig = field(default_factory=MarkupConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ServiceConfig":
        """
        Create ServiceConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated ServiceConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Engine
        # ─────────────────────────────────────────────────────────────────────
        engine_raw = raw.get("engine", {}) or {}
        engine = EngineConfig(
            type=str(engine_raw.get("type", Defaults.ENGINE_TYPE)).strip().lower(),
            key=engine_raw.get("key") or None,
            region=str(engine_raw.get("region", Defaults.ENGINE_REGION)),
            endpoint=engine_raw.get("endpoint") or None,
            output_format=str(engine_raw.get("output_format", Defaults.ENGINE_OUTPUT_FORMAT)),
        )
        if engine.output_format not in RAW_PCM_FORMATS:
            raise ConfigValidationError(
                f"engine.output_format must be one of {sorted(RAW_PCM_FORMATS)}, "
                f"got {engine.output_format}"
            )

        # ─────────────────────────────────────────────────────────────────────
        # Voices
        # ─────────────────────────────────────────────────────────────────────
        voices_raw = raw.get("voices", {}) or {}
        aliases_raw = voices_raw.get("aliases")
        if aliases_raw is None:
            aliases = dict(Defaults.VOICE_ALIASES)
        elif isinstance(aliases_raw, dict):
            aliases = {str(k): str(v) for k, v in aliases_raw.items()}
        else:
            raise ConfigValidationError(
                f"voices.aliases must be a mapping, got {type(aliases_raw).__name__}"
            )
        voices = VoiceConfig(
            male_default=str(voices_raw.get("male_default", Defaults.VOICE_MALE_DEFAULT)),
            female_default=str(voices_raw.get("female_default", Defaults.VOICE_FEMALE_DEFAULT)),
            aliases=aliases,
        )
        cls._validate_not_blank("voices.male_default", voices.male_default)
        cls._validate_not_blank("voices.female_default", voices.female_default)

        # ─────────────────────────────────────────────────────────────────────
        # Markup
        # ─────────────────────────────────────────────────────────────────────
        markup_raw = raw.get("markup", {}) or {}
        markup = MarkupConfig(
            language=str(markup_raw.get("language", Defaults.MARKUP_LANGUAGE)),
            escape_text=bool(markup_raw.get("escape_text", Defaults.MARKUP_ESCAPE_TEXT)),
            max_text_chars=int(markup_raw.get("max_text_chars", Defaults.MARKUP_MAX_TEXT_CHARS)),
        )
        cls._validate_not_blank("markup.language", markup.language)
        cls._validate_positive("markup.max_text_chars", markup.max_text_chars)

        # ─────────────────────────────────────────────────────────────────────
        # Stream
        # ─────────────────────────────────────────────────────────────────────
        stream_raw = raw.get("stream", {}) or {}
        stream = StreamConfig(
            chunk_bytes=int(stream_raw.get("chunk_bytes", Defaults.STREAM_CHUNK_BYTES)),
            inactivity_timeout_s=float(
                stream_raw.get("inactivity_timeout_s", Defaults.STREAM_INACTIVITY_TIMEOUT_S)
            ),
            media_type=str(stream_raw.get("media_type", Defaults.STREAM_MEDIA_TYPE)),
        )
        cls._validate_positive("stream.chunk_bytes", stream.chunk_bytes)
        cls._validate_non_negative("stream.inactivity_timeout_s", stream.inactivity_timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Concurrency
        # ─────────────────────────────────────────────────────────────────────
        concurrency_raw = raw.get("concurrency", {}) or {}
        concurrency = ConcurrencyConfig(
            enabled=bool(concurrency_raw.get("enabled", Defaults.CONCURRENCY_ENABLED)),
            max_concurrent=int(concurrency_raw.get("max_concurrent", Defaults.CONCURRENCY_MAX_CONCURRENT)),
            max_queue=int(concurrency_raw.get("max_queue", Defaults.CONCURRENCY_MAX_QUEUE)),
            timeout_s=float(concurrency_raw.get("timeout_s", Defaults.CONCURRENCY_TIMEOUT_S)),
        )
        cls._validate_positive("concurrency.max_concurrent", concurrency.max_concurrent)
        cls._validate_non_negative("concurrency.max_queue", concurrency.max_queue)
        cls._validate_positive("concurrency.timeout_s", concurrency.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # String levels ("INFO", "DEBUG", "3") are accepted as well
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.strip().upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            engine=engine,
            voices=voices,
            markup=markup,
            stream=stream,
            concurrency=concurrency,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")

    @staticmethod
    def _validate_not_blank(name: str, value: str) -> None:
        if not value or not value.strip():
            raise ConfigValidationError(f"{name} must not be empty")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_service_config() to get the validated ServiceConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def engine_type(self) -> str:
        """Get the synthesis engine type (azure)."""
        return str(self.raw.get("engine", {}).get("type", Defaults.ENGINE_TYPE))

    @property
    def output_format(self) -> str:
        """Get the raw PCM output format name."""
        return str(self.raw.get("engine", {}).get("output_format", Defaults.ENGINE_OUTPUT_FORMAT))

    @property
    def sample_rate(self) -> int:
        """Get the output audio sample rate."""
        return RAW_PCM_FORMATS.get(self.output_format, RAW_PCM_FORMATS[Defaults.ENGINE_OUTPUT_FORMAT])

    def get_service_config(self) -> ServiceConfig:
        """
        Get validated ServiceConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ServiceConfig.from_settings(self)


def _apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    engine = raw.setdefault("engine", {}) or {}
    raw["engine"] = engine

    key = os.getenv("AZURE_SPEECH_KEY")
    if key:
        engine["key"] = key
    region = os.getenv("AZURE_SPEECH_REGION")
    if region:
        engine["region"] = region
    endpoint = os.getenv("AZURE_SPEECH_ENDPOINT")
    if endpoint:
        engine["endpoint"] = endpoint
    engine_type = os.getenv("TTS_BRIDGE_ENGINE")
    if engine_type:
        engine["type"] = engine_type
    return raw


def load_settings(path: Optional[str] = None, required: bool = False) -> Settings:
    """
    Load settings from a YAML configuration file.

    A ``.env`` file in the working directory is loaded first (without
    overriding variables that are already set), then these overrides apply:
        - AZURE_SPEECH_KEY / AZURE_SPEECH_REGION / AZURE_SPEECH_ENDPOINT
        - TTS_BRIDGE_ENGINE: Override engine.type

    Args:
        path: Path to the YAML file. Defaults to TTS_BRIDGE_SETTINGS or
            config/settings.yaml.
        required: Raise if the file does not exist instead of using defaults.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If required and the settings file doesn't exist.
    """
    load_dotenv(override=False)

    p = Path(path or os.getenv("TTS_BRIDGE_SETTINGS", "config/settings.yaml"))
    raw: Dict[str, Any] = {}
    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    elif required:
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    return Settings(raw=_apply_env_overrides(raw))
