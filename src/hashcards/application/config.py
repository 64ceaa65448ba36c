"""
Configuration for hashcards.

A collection may carry a `hashcards.toml` file with a `[drill]` table:

    [drill]
    card-limit = 50
    new-card-limit = 10
    host = "127.0.0.1"
    port = 8000
    open-browser = true
    answer-controls = "full"   # or "binary"
    bury-siblings = true

Resolution order: CLI arguments > config file > defaults.
"""

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from hashcards.domain.constants import (
    CONFIG_FILENAME,
    DEFAULT_BURY_SIBLINGS,
    DEFAULT_HOST,
    DEFAULT_OPEN_BROWSER,
    DEFAULT_PORT,
    DEFAULT_SHUFFLE,
)
from hashcards.domain.errors import ConfigError
from hashcards.domain.models import AnswerControls

logger = logging.getLogger(__name__)


def _kebab(name: str) -> str:
    return name.replace("_", "-")


class DrillSettings(BaseModel):
    """The `[drill]` table. Unset keys stay None so the CLI can fill them."""

    model_config = ConfigDict(alias_generator=_kebab, populate_by_name=True, extra="ignore")

    card_limit: int | None = Field(default=None, ge=0)
    new_card_limit: int | None = Field(default=None, ge=0)
    host: str | None = None
    port: int | None = Field(default=None, ge=0, le=65535)
    open_browser: bool | None = None
    answer_controls: AnswerControls | None = None
    bury_siblings: bool | None = None


class HashcardsConfig(BaseSettings):
    """
    Contents of a collection's config file.

    Only explicit values are read: the file is passed in by `load_config`,
    environment variables are not consulted.
    """

    model_config = SettingsConfigDict(extra="ignore")

    drill: DrillSettings = Field(default_factory=DrillSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings,)


def load_config(directory: Path) -> HashcardsConfig:
    """Load `hashcards.toml` from a collection; an absent file yields defaults."""
    path = directory / CONFIG_FILENAME
    if not path.is_file():
        return HashcardsConfig()

    try:
        data = TomlConfigSettingsSource(HashcardsConfig, toml_file=path)()
        config = HashcardsConfig(**data)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"failed to parse {path}: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"invalid settings in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e

    logger.debug(f"Loaded config from {path}: {config.model_dump(exclude_none=True)}")
    return config


@dataclass(frozen=True)
class DrillOptions:
    """Fully resolved options of one drill invocation."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    card_limit: int | None = None
    new_card_limit: int | None = None
    deck_filter: str | None = None
    open_browser: bool = DEFAULT_OPEN_BROWSER
    bury_siblings: bool = DEFAULT_BURY_SIBLINGS
    shuffle: bool = DEFAULT_SHUFFLE
    answer_controls: AnswerControls = AnswerControls.FULL


def resolve_drill_options(
    config: HashcardsConfig, cli_overrides: dict[str, Any] | None = None
) -> DrillOptions:
    """
    Multi-layered option resolution.
    1. Defaults in DrillOptions
    2. [drill] table of the config file
    3. cli_overrides (passed from Typer, None meaning "not given")
    """
    merged: dict[str, Any] = {
        k: v for k, v in config.drill.model_dump().items() if v is not None
    }
    merged.update({k: v for k, v in (cli_overrides or {}).items() if v is not None})
    if "answer_controls" in merged:
        merged["answer_controls"] = AnswerControls(merged["answer_controls"])
    return DrillOptions(**merged)
