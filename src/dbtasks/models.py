"""Shared domain models for dbtasks."""

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple


def database_name_for(project_name: str, suffix: str = "") -> str:
    """Derive a database name from a project name (``-`` and ``.`` become ``_``)."""
    return project_name.replace("-", "_").replace(".", "_") + suffix


@dataclass(frozen=True)
class Project:
    """Project name and root directory that scripts are resolved against."""

    name: str
    directory: Path

    @classmethod
    def from_directory(cls, directory, name: Optional[str] = None) -> "Project":
        path = Path(directory).resolve()
        return cls(name=name or path.name, directory=path)


@dataclass
class Settings:
    """Configuration read by every database task.

    Fields may be changed between calls; each task works on a copy taken when
    it is called.
    """

    engine_type: Optional[str] = None
    database_name: str = ""
    create_arguments: str = ""
    create_suffix: str = ""
    # Falls back to root (MySQL) or postgres (PostgreSQL) when unset.
    create_username: Optional[str] = None
    compare_username: str = "dev"
    compare_password: str = "dev"
    execute_arguments: str = ""
    execute_username: str = "dev"
    execute_password: str = "dev"
    grant_username: Optional[str] = "dev"
    grant_password: str = "dev"
    host: str = "localhost"
    port: Optional[int] = None

    @classmethod
    def for_project(cls, project: Project, **overrides) -> "Settings":
        values = {"database_name": database_name_for(project.name)}
        values.update(overrides)
        return cls(**values)

    def derive(self, **changes) -> "Settings":
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class Command:
    """One database client invocation and the optional text fed to its stdin."""

    args: Tuple[str, ...]
    input_text: Optional[str] = None
    display_name: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, args, input_text=None, display_name=None, env=None) -> "Command":
        tokens = tuple(str(arg) for arg in args if arg is not None and str(arg).strip())
        return cls(args=tokens, input_text=input_text, display_name=display_name, env=dict(env or {}))

    def command_line(self) -> str:
        line = " ".join(self.args)
        if self.input_text is not None:
            line = f"{line} < {self.display_name or 'stdin'}"
        return line


@dataclass(frozen=True)
class ProcessResult:
    returncode: int
    stdout: str
    stderr: str
