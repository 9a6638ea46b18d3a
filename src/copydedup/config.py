"""Configuration loader for the copy dedup engine.

Reads YAML configuration, applies environment variable overrides, and returns typed
dataclasses consumed by the engine, library store, judge, and HTTP API.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_JUDGE_PROMPT = """You are an expert at de-duplicating and cleaning short inspirational, devotional and prayer copy.
Analyse the batch and find repeated or near-identical items.

# Ignore while comparing
- Generic titles ("THE MOST POWERFUL PRAYER", "Read it once", "A sign from God")
- Call-to-action endings ("Type Amen", "Share this", "Pass to someone", "Link in bio")
- Garbled or meaningless noise

# Similarity rules (compare the core body only)
1. Exact duplicate: more than 90% semantic overlap, including synonym swaps.
   Keep only the cleanest, best formatted version.
2. Containment: B fully contains A and adds less than 10% new content.
   Keep the shorter original A.
3. Variant: similar, but with clearly different timely details or a specific scene.
   Keep both.
4. Same title, different body: keep both.

# Output format (strict JSON)
{
  "uniqueItems": [{"index": <item number>, "reason": "<why it is unique>"}],
  "duplicateGroups": [
    {"keepIndex": <kept item number>, "removeIndices": [<removed item numbers>], "reason": "<short reason>"}
  ]
}"""


@dataclass
class EngineSettings:
    num_hash_functions: int = 128
    shingle_size: int = 3
    num_bands: int = 16
    similarity_threshold: float = 0.7

    def __post_init__(self) -> None:
        if self.num_hash_functions <= 0 or self.shingle_size <= 0 or self.num_bands <= 0:
            raise ValueError("num_hash_functions, shingle_size and num_bands must be positive")
        if self.num_bands > self.num_hash_functions:
            raise ValueError(f"num_bands ({self.num_bands}) cannot exceed num_hash_functions ({self.num_hash_functions})")
        if self.num_hash_functions % self.num_bands:
            raise ValueError(
                f"num_hash_functions ({self.num_hash_functions}) must be divisible by num_bands ({self.num_bands})"
            )
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ValueError(f"similarity_threshold must be within [0, 1], got {self.similarity_threshold}")

    @property
    def rows_per_band(self) -> int:
        return self.num_hash_functions // self.num_bands


@dataclass
class LibrarySettings:
    db_url: str = "sqlite:///data/library.db"
    search_max_results: int = 20
    check_library: bool = True


@dataclass
class JudgeSettings:
    api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    model: str = "gemini-2.0-flash"
    api_key: str = ""
    batch_size: int = 20
    batch_delay_seconds: float = 0.5
    timeout_seconds: float = 60.0
    system_prompt: str = DEFAULT_JUDGE_PROMPT


@dataclass
class ApiSettings:
    host: str = "0.0.0.0"
    port: int = 8000


@dataclass
class Config:
    engine: EngineSettings = field(default_factory=EngineSettings)
    library: LibrarySettings = field(default_factory=LibrarySettings)
    judge: JudgeSettings = field(default_factory=JudgeSettings)
    api: ApiSettings = field(default_factory=ApiSettings)


SECTIONS: Dict[str, type] = {
    "engine": EngineSettings,
    "library": LibrarySettings,
    "judge": JudgeSettings,
    "api": ApiSettings,
}

_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}


def _coerce(raw: str, default: Any, where: str) -> Any:
    """Parse an env string into the type of the setting's default."""
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        raise ValueError(f"{where}: expected a boolean, got {raw!r}")
    if isinstance(default, (int, float)):
        try:
            return type(default)(raw)
        except ValueError as exc:
            raise ValueError(f"{where}: expected {type(default).__name__}, got {raw!r}") from exc
    return raw


def _env_overrides(prefix: str) -> Dict[str, Dict[str, str]]:
    """Collect ``<PREFIX>_<SECTION>__<FIELD>`` variables grouped by section."""
    marker = prefix + "_"
    found: Dict[str, Dict[str, str]] = {}
    for env_key, env_val in os.environ.items():
        if not env_key.startswith(marker):
            continue
        section, sep, name = env_key[len(marker) :].lower().partition("__")
        if not sep or section not in SECTIONS:
            logger.debug("Ignoring env var %s", env_key)
            continue
        found.setdefault(section, {})[name] = env_val
    return found


def build_section(section: str, file_values: Optional[Dict[str, Any]], env_values: Dict[str, str]) -> Any:
    """Settings for one section: defaults, then file values, then env strings."""
    cls = SECTIONS[section]
    defaults = {f.name: f.default for f in fields(cls)}
    values: Dict[str, Any] = {}
    for name, value in (file_values or {}).items():
        if name not in defaults:
            raise ValueError(f"Unknown setting {section}.{name}")
        values[name] = os.path.expandvars(value) if isinstance(value, str) else value
    for name, raw in env_values.items():
        if name not in defaults:
            logger.warning("Ignoring unknown setting %s.%s from environment", section, name)
            continue
        values[name] = _coerce(raw, defaults[name], f"{section}.{name}")
    return cls(**values)


def load_config(path: Optional[Path | str] = None, env_prefix: str = "COPYDEDUP") -> Config:
    """Load YAML config and apply env overrides on top."""
    config_path = Path(path) if path else Path("config.yaml")
    data: Dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    unknown = set(data) - set(SECTIONS)
    if unknown:
        raise ValueError(f"Unknown config sections: {', '.join(sorted(unknown))}")
    env = _env_overrides(env_prefix)
    return Config(**{section: build_section(section, data.get(section), env.get(section, {})) for section in SECTIONS})


__all__ = [
    "Config",
    "EngineSettings",
    "LibrarySettings",
    "JudgeSettings",
    "ApiSettings",
    "DEFAULT_JUDGE_PROMPT",
    "SECTIONS",
    "build_section",
    "load_config",
]
