import os
from pathlib import Path

import click
from pydantic import BaseModel

DEFAULT_BASE_URL = "https://api.rollbar.com/api/1"


class AppConfig(BaseModel):
    access_token: str = ""
    base_url: str = DEFAULT_BASE_URL
    config_dir: Path
    request_timeout: float = 8.0
    command_timeout: float = 10.0
    debug: bool = False

    @classmethod
    def from_env(cls):
        return cls(
            access_token=os.getenv("ROLLBAR_ACCESS_TOKEN", ""),
            base_url=os.getenv("ROLLBAR_API_URL", DEFAULT_BASE_URL),
            config_dir=Path(
                os.getenv("ROLLBAZ_CONFIG_DIR") or click.get_app_dir("rollbaz")
            ),
            request_timeout=float(os.getenv("ROLLBAZ_REQUEST_TIMEOUT", "8")),
            command_timeout=float(os.getenv("ROLLBAZ_COMMAND_TIMEOUT", "10")),
            debug=os.getenv("ROLLBAZ_DEBUG", "false").lower() == "true",
        )

    @property
    def config_path(self) -> Path:
        return self.config_dir / "config.json"
