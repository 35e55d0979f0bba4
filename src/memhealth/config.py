"""Configuration loading from environment variables and memhealth.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_CLAUDE_HOME = Path.home() / ".claude"
_CONFIG_FILENAME = "memhealth.toml"


@dataclass
class EngineConfig:
    """Configuration for the AI engine behind session analysis."""

    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 4096
    timeout: int = 120
    api_key: str = ""


@dataclass
class AnalysisConfig:
    """Session analysis and context budget settings."""

    cooldown_seconds: int = 300
    context_window: int = 200_000
    max_transcript_messages: int = 30
    message_truncate: int = 800


@dataclass
class MemhealthConfig:
    """Top-level configuration."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    claude_home: Path = _DEFAULT_CLAUDE_HOME
    log_level: str = "INFO"


def load_config(config_path: Path | None = None) -> MemhealthConfig:
    """Load configuration from environment variables and optional memhealth.toml.

    Priority: environment variables > memhealth.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.memhealth/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, Path.home() / ".memhealth" / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    engine_data = file_data.get("engine", {})
    analysis_data = file_data.get("analysis", {})

    config = MemhealthConfig(
        engine=EngineConfig(
            model=os.getenv("MEMHEALTH_MODEL", engine_data.get("model", EngineConfig.model)),
            max_tokens=int(engine_data.get("max_tokens", 4096)),
            timeout=int(os.getenv("MEMHEALTH_TIMEOUT", engine_data.get("timeout", 120))),
            api_key=os.getenv("ANTHROPIC_API_KEY", engine_data.get("api_key", "")),
        ),
        analysis=AnalysisConfig(
            cooldown_seconds=int(
                os.getenv("MEMHEALTH_COOLDOWN", analysis_data.get("cooldown_seconds", 300))
            ),
            context_window=int(analysis_data.get("context_window", 200_000)),
            max_transcript_messages=int(analysis_data.get("max_transcript_messages", 30)),
            message_truncate=int(analysis_data.get("message_truncate", 800)),
        ),
        claude_home=Path(
            os.getenv("MEMHEALTH_CLAUDE_HOME", file_data.get("claude_home", str(_DEFAULT_CLAUDE_HOME)))
        ).expanduser(),
        log_level=os.getenv("MEMHEALTH_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
