"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Constructor arguments  (used by tests and the CLI flags)
  2. Environment variables  (AGENTFORGE__GENERATION__CONCURRENCY=5)
  3. agentforge.yaml        (searched in cwd, then platform config dir)
  4. Hardcoded defaults

Invalid values fail fast: ``load_settings`` turns pydantic's validation
error into ``AgentForgeError(INVALID_CONFIG)`` before any work is scheduled.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from agentforge.errors import AgentForgeError, ErrorCode
from agentforge.models.generation import ItemKind, ModelTier

_DEFAULT_CACHE_DIR = platformdirs.user_cache_dir("agentforge")

MAX_CONCURRENCY = 32


def _find_config_file() -> str | None:
    """Return the path of the first agentforge.yaml found, or None."""
    candidates = [
        Path("agentforge.yaml"),
        Path(platformdirs.user_config_dir("agentforge")) / "agentforge.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class CacheSettings(BaseModel):
    dir: str = _DEFAULT_CACHE_DIR
    enabled: bool = True
    schema_version: str = "1"
    analysis_ttl_hours: float = Field(default=24, gt=0)
    generation_ttl_hours: float = Field(default=7 * 24, gt=0)


class GenerationSettings(BaseModel):
    concurrency: int = Field(default=3, ge=1, le=MAX_CONCURRENCY)
    model: ModelTier | None = None  # global user choice
    pinned_tiers: dict[ItemKind, ModelTier] = {}
    default_tier: ModelTier = ModelTier.MID
    failure_threshold: float = Field(default=0.5, gt=0, le=1)


class TierPrice(BaseModel):
    """USD per 1M tokens."""

    input_per_1m: float = Field(ge=0)
    output_per_1m: float = Field(ge=0)


def _default_prices() -> dict[ModelTier, TierPrice]:
    return {
        ModelTier.LOW: TierPrice(input_per_1m=0.25, output_per_1m=1.25),
        ModelTier.MID: TierPrice(input_per_1m=3.0, output_per_1m=15.0),
        ModelTier.HIGH: TierPrice(input_per_1m=15.0, output_per_1m=75.0),
    }


class PricingSettings(BaseModel):
    tiers: dict[ModelTier, TierPrice] = Field(default_factory=_default_prices)

    @model_validator(mode="after")
    def every_tier_priced(self) -> PricingSettings:
        missing = [tier.value for tier in ModelTier if tier not in self.tiers]
        if missing:
            raise ValueError(f"pricing missing for tiers: {', '.join(missing)}")
        return self


class ApiSettings(BaseModel):
    base_url: str = "https://api.anthropic.com"
    api_key: str | None = None
    api_version: str = "2023-06-01"
    timeout_seconds: float = Field(default=60.0, gt=0)
    model_ids: dict[ModelTier, str] = {
        ModelTier.LOW: "claude-3-5-haiku-20241022",
        ModelTier.MID: "claude-sonnet-4-5-20250929",
        ModelTier.HIGH: "claude-opus-4-5-20251101",
    }
    # Scaled by kind to keep output cost proportional to the artifact
    max_tokens: dict[ItemKind, int] = {
        ItemKind.AGENT: 8000,
        ItemKind.SKILL: 4000,
        ItemKind.OVERVIEW: 6000,
        ItemKind.HOOK: 2000,
    }


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "text"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: AGENTFORGE__CACHE__DIR=/tmp/x
        env_prefix="AGENTFORGE__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    cache: CacheSettings = CacheSettings()
    generation: GenerationSettings = GenerationSettings()
    pricing: PricingSettings = PricingSettings()
    api: ApiSettings = ApiSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
        )


def load_settings(**overrides: Any) -> Settings:
    """Build Settings, converting validation failures into INVALID_CONFIG."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise AgentForgeError(
            code=ErrorCode.INVALID_CONFIG,
            message=f"Invalid configuration: {exc}",
            suggestion=(
                "Check agentforge.yaml and AGENTFORGE__* environment variables "
                f"(concurrency must be 1..{MAX_CONCURRENCY}, tiers low|mid|high)."
            ),
            recoverable=False,
        ) from exc
