"""
Local store of per-project Rollbar tokens
"""

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from rollbaz.errors import ConfigError, DecodeError
from rollbaz.models.rollbar import describe_validation_error

logger = logging.getLogger(__name__)


class Project(BaseModel):
    name: str
    token: str = ""


class ConfigFile(BaseModel):
    active_project: str = ""
    projects: list[Project] = []

    def find(self, name: str) -> Project | None:
        for project in self.projects:
            if project.name == name:
                return project
        return None

    def normalized(self) -> "ConfigFile":
        projects = [
            Project(name=project.name.strip(), token=project.token.strip())
            for project in self.projects
            if project.name.strip()
        ]
        projects.sort(key=lambda project: project.name)
        return ConfigFile(active_project=self.active_project.strip(), projects=projects)


class ConfigStore:
    """JSON token store, read then written whole on every change"""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> ConfigFile:
        try:
            body = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ConfigFile()
        except OSError as e:
            raise ConfigError(f"read config: {e}") from e

        try:
            config = ConfigFile.model_validate_json(body)
        except PydanticValidationError as e:
            raise DecodeError(f"decode config: {describe_validation_error(e)}") from e

        return config.normalized()

    def save(self, config: ConfigFile) -> None:
        try:
            self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            body = json.dumps(config.normalized().model_dump(), indent=2) + "\n"
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(body)
            os.chmod(self.path, 0o600)
        except OSError as e:
            raise ConfigError(f"write config: {e}") from e

        logger.debug(f"Saved config to {self.path}")

    def add_project(self, name: str, token: str) -> None:
        if not name.strip():
            raise ConfigError("project name is required")
        if not token.strip():
            raise ConfigError("project token is required")

        config = self.load()
        name = name.strip()
        existing = config.find(name)
        if existing is not None:
            existing.token = token
        else:
            config.projects.append(Project(name=name, token=token))
        if not config.active_project:
            config.active_project = name

        self.save(config)

    def remove_project(self, name: str) -> None:
        config = self.load()
        remaining = [project for project in config.projects if project.name != name]
        if len(remaining) == len(config.projects):
            raise ConfigError(f'project "{name}" not found')

        config.projects = remaining
        if config.active_project == name:
            config.active_project = remaining[0].name if remaining else ""

        self.save(config)

    def remove_all_projects(self) -> None:
        self.save(ConfigFile())

    def use_project(self, name: str) -> None:
        config = self.load()
        if config.find(name) is None:
            raise ConfigError(f'project "{name}" not found')

        config.active_project = name
        self.save(config)

    def cycle_project(self) -> str:
        """Activate the next project in name order, wrapping around"""
        config = self.load()
        if not config.projects:
            raise ConfigError("no configured projects")

        names = [project.name for project in config.projects]
        next_index = 0
        if config.active_project in names:
            next_index = (names.index(config.active_project) + 1) % len(names)

        config.active_project = names[next_index]
        self.save(config)
        return config.active_project

    def resolve_token(self, project_name: str = "") -> tuple[str, str]:
        """Return ``(token, project_name)`` for a named or the active project"""
        config = self.load()
        if not config.projects:
            raise ConfigError("no configured projects")

        target = project_name or config.active_project
        if not target:
            raise ConfigError("no active project configured")

        project = config.find(target)
        if project is None:
            raise ConfigError(f'project "{target}" not found')
        if not project.token.strip():
            raise ConfigError(f'project "{target}" has no token')

        return project.token, target
