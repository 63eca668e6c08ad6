"""Application configuration management for chansync.

Global settings come from init arguments and the environment, channels from a
YAML file whose location is itself a setting (``CONFIG_FILE``). The run policy
flags live here too and are frozen into a SyncPolicy by the CLI.
"""

import logging
from pathlib import Path
from typing import Any, Literal, cast

from pydantic import Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
import yaml

from ..exceptions import ConfigLoadError
from .channel_config import ChannelConfig

logger = logging.getLogger(__name__)

YAML_ENCODING = "utf-8"


class YamlFileFromFieldSource(PydanticBaseSettingsSource):
    """Settings source reading the YAML file named by the ``config_file`` field.

    Must come after the sources that can set ``config_file`` (init arguments,
    environment, .env), since it looks the path up in their combined state.
    """

    def __init__(self, settings_cls: type[BaseSettings]):
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}

    def _config_path(self) -> Path:
        field_info = self.settings_cls.model_fields["config_file"]
        for key in ("config_file", field_info.validation_alias):
            if not isinstance(key, str):
                continue
            value = self.current_state.get(key)
            if value is not None and value is not PydanticUndefined:
                return Path(value).expanduser()
        return Path(field_info.get_default()).expanduser()

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, self.field_is_complex(field)

    def __call__(self) -> dict[str, Any]:
        config_path = self._config_path()
        logger.debug(
            "Loading YAML configuration.", extra={"config_file": str(config_path)}
        )
        try:
            with config_path.open(encoding=YAML_ENCODING) as f:
                loaded = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigLoadError(
                "Failed to load or parse YAML configuration file.",
                config_file=str(config_path),
            ) from e

        match loaded:
            case None:
                logger.info(
                    "YAML configuration file is empty.",
                    extra={"config_file": str(config_path)},
                )
                self._data = {}
            case dict():
                self._data = cast(dict[str, Any], loaded)
            case _:
                raise ConfigLoadError(
                    "YAML configuration must be a mapping, "
                    f"got {type(loaded).__name__}.",
                    config_file=str(config_path),
                )
        return self._data.copy()


class AppSettings(BaseSettings):
    """Application settings and channel configurations.

    Configuration is loaded from initialization arguments, environment
    variables, a .env file, and finally the YAML file named by config_file.
    Command-line flags are parsed only when the CLI asks for them.

    Attributes:
        log_format: Console log rendering (human or json).
        log_level: Level of the chansync logger.
        log_include_stacktrace: Print tracebacks with logged errors.
        data_dir: Root directory for channel state and the key store.
        config_file: YAML file declaring the channels.
        ytdlp_path: yt-dlp executable used by the bundled adapters.
        prevent_download: Log downloads instead of performing them.
        prevent_renaming: Log renames instead of performing them.
        prevent_deletion: Log deletions instead of performing them.
        prevent_playlist_edit: Log playlist updates instead of writing them.
        prevent_channel_fetch: Reuse cached catalogs instead of fetching.
        retry_previous_failures: Clear blocked items before reconciling.
        download_timeout: Seconds before a download attempt is abandoned.
        reset_channels: Channels whose state is deleted before the run.
        channels: Configuration for all channels, keyed by channel key.
    """

    log_format: Literal["human", "json"] = Field(
        default="human",
        validation_alias="LOG_FORMAT",
        description="Console log rendering: 'human' text or 'json' lines.",
    )
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Level of the chansync logger, case-insensitive (e.g., DEBUG).",
    )
    log_include_stacktrace: bool = Field(
        default=False,
        validation_alias="LOG_INCLUDE_STACKTRACE",
        description="Print tracebacks instead of the chain of error messages.",
    )
    data_dir: Path = Field(
        default=Path("~/.chansync"),
        validation_alias="DATA_DIR",
        description="Root directory for channel state files and the key store.",
    )
    config_file: Path = Field(
        default=Path("~/.chansync/channels.yaml"),
        validation_alias="CONFIG_FILE",
        description="YAML file declaring the channels.",
    )
    ytdlp_path: str = Field(
        default="yt-dlp",
        validation_alias="YTDLP_PATH",
        description="Name or path of the yt-dlp executable.",
    )

    # Run policy
    prevent_download: bool = Field(default=False, validation_alias="PREVENT_DOWNLOAD")
    prevent_renaming: bool = Field(default=False, validation_alias="PREVENT_RENAMING")
    prevent_deletion: bool = Field(default=False, validation_alias="PREVENT_DELETION")
    prevent_playlist_edit: bool = Field(
        default=False, validation_alias="PREVENT_PLAYLIST_EDIT"
    )
    prevent_channel_fetch: bool = Field(
        default=False,
        validation_alias="PREVENT_CHANNEL_FETCH",
        description="Reuse each channel's cached catalog instead of fetching it.",
    )
    retry_previous_failures: bool = Field(
        default=False,
        validation_alias="RETRY_PREVIOUS_FAILURES",
        description="Clear blocked items so they are attempted again.",
    )
    download_timeout: float | None = Field(
        default=None,
        gt=0,
        validation_alias="DOWNLOAD_TIMEOUT",
        description="Seconds before a single download attempt is abandoned.",
    )

    reset_channels: list[str] = Field(
        default_factory=list[str],
        validation_alias="RESET_CHANNELS",
        description="Channel keys whose persisted state is deleted before the run.",
    )

    channels: dict[str, ChannelConfig] = Field(
        default_factory=dict[str, ChannelConfig],
        description="Configuration for all channels. Must be read from a YAML file.",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
        cli_ignore_unknown_args=True,
        cli_kebab_case=True,
        extra="ignore",
    )

    @field_validator("data_dir", mode="after")
    @classmethod
    def expand_data_dir(cls, v: Path) -> Path:
        """Expand user directories in the data directory."""
        return v.expanduser()

    @field_validator("channels", mode="after")
    @classmethod
    def validate_channel_keys(
        cls, v: dict[str, ChannelConfig]
    ) -> dict[str, ChannelConfig]:
        """Reject channel keys that cannot name a state directory."""
        for key in v:
            if not key.strip() or key in (".", "..") or Path(key).name != key:
                raise ValueError(f"Invalid channel key {key!r}: must be a plain name")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Read the YAML file last so earlier sources can choose it."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlFileFromFieldSource(settings_cls=settings_cls),
            file_secret_settings,
        )
