"""Race server configuration via environment variables."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from race.logic.constants import DEFAULT_GAME_TIMEOUT_SECONDS
from shared.validators import StringListEnvSettingsSource, parse_string_list


class RaceServerSettings(BaseSettings):
    model_config = {"env_prefix": "RACE_"}

    max_rooms: int = Field(default=500, ge=1)
    log_dir: str = Field(default="backend/logs/race", min_length=1)
    cors_origins: list[str] = ["http://localhost:8081"]
    countdown_tick_seconds: float = Field(default=1.0, ge=0)
    # 0 disables the forced end; races then only finish by tapping.
    game_timeout_seconds: float = Field(default=DEFAULT_GAME_TIMEOUT_SECONDS, ge=0)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
