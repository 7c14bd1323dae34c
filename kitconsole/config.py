from pathlib import Path
from typing import Annotated, Any, List, Literal, Union

from pydantic import (
    AnyUrl,
    BeforeValidator,
    computed_field,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self


def parse_cors(v: Any) -> Union[List[str], str]:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",")]
    elif isinstance(v, (list, str)):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_ignore_empty=True, extra="ignore"
    )
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Kit Console"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"

    BACKEND_CORS_ORIGINS: Annotated[
        Union[List[AnyUrl], str], BeforeValidator(parse_cors)
    ] = [
        "http://localhost:3000",  # The prototype kit itself
        "http://127.0.0.1:3000",
    ]

    # The prototype project managed by this console (holds package.json)
    PROJECT_DIR: Path = Path.cwd()

    # npm invocation
    NPM_COMMAND: str = "npm"
    NPM_REGISTRY_URL: str = "https://registry.npmjs.org"
    REGISTRY_TIMEOUT: float = 10.0

    # Catalog of optional plugins; relative paths resolve against PROJECT_DIR
    KNOWN_PLUGINS_FILE: str = "known-plugins.json"

    LOG_LEVEL: str = "INFO"
    # npm child output goes here; relative paths resolve against PROJECT_DIR
    LOG_DIR: str = ".tmp/kitconsole"

    # Restart detection for the running kit
    KIT_URL: str = "http://localhost:3000"
    KIT_WATCH_ENABLED: bool = True
    KIT_WATCH_INTERVAL: float = 1.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def IS_DEVELOPMENT(self) -> bool:
        return self.ENVIRONMENT == "local"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def manifest_path(self) -> Path:
        return self.PROJECT_DIR / "package.json"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def known_plugins_path(self) -> Path:
        return self._resolve(self.KNOWN_PLUGINS_FILE)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def log_dir(self) -> Path:
        return self._resolve(self.LOG_DIR)

    def _resolve(self, value: str) -> Path:
        path = Path(value)
        if path.is_absolute():
            return path
        return self.PROJECT_DIR / path

    @model_validator(mode="after")
    def _normalize_project_dir(self) -> Self:
        self.PROJECT_DIR = self.PROJECT_DIR.expanduser().resolve()
        self.NPM_REGISTRY_URL = self.NPM_REGISTRY_URL.rstrip("/")
        return self


settings = Settings()  # type: ignore
