"""Engine-specific command construction for dbtasks."""

import shlex
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from sqlalchemy.engine import URL

from dbtasks.errors import DatabaseTaskError, UnsupportedEngineError
from dbtasks.errors_catalog import actionable_error
from dbtasks.models import Command, Settings


class Engine(ABC):
    """Builds client commands and connection URLs for one database product."""

    name = ""
    client = ""
    default_create_username = ""
    default_port = 0
    drivername = ""
    password_env_var = ""
    compare_sequences = False

    def create_username(self, settings: Settings) -> str:
        return settings.create_username or self.default_create_username

    def build_create_commands(self, settings: Settings) -> List[Command]:
        return self.build_drop_create_commands(settings) + self.build_grant_commands(settings)

    def build_drop_create_commands(self, settings: Settings) -> List[Command]:
        name = settings.database_name
        statements = [
            f"DROP DATABASE IF EXISTS {name}",
            f"CREATE DATABASE {name} {settings.create_suffix}".rstrip(),
        ]
        return [self.create_command(settings, statement) for statement in statements]

    def build_grant_commands(self, settings: Settings) -> List[Command]:
        if not settings.grant_username:
            return []
        return [self.create_command(settings, statement) for statement in self.grant_statements(settings)]

    def build_execute_command(self, settings: Settings, script_text: str, display_name: str) -> Command:
        return Command.build(
            self.execute_args(settings),
            input_text=script_text,
            display_name=display_name,
            env={self.password_env_var: settings.execute_password},
        )

    def connection_url(self, settings: Settings, database_name: str) -> URL:
        return URL.create(
            drivername=self.drivername,
            username=settings.compare_username,
            password=settings.compare_password,
            host=settings.host,
            port=settings.port or self.default_port,
            database=database_name,
        )

    @abstractmethod
    def grant_statements(self, settings: Settings) -> List[str]:
        """SQL statements granting privileges to ``settings.grant_username``."""

    @abstractmethod
    def create_command(self, settings: Settings, statement: str) -> Command:
        """Client invocation running one statement as the create user."""

    @abstractmethod
    def execute_args(self, settings: Settings) -> List[str]:
        """Client arguments that read a script from stdin."""


class MySQLEngine(Engine):
    name = "mysql"
    client = "mysql"
    default_create_username = "root"
    default_port = 3306
    drivername = "mysql+pymysql"
    password_env_var = "MYSQL_PWD"

    GRANT_HOSTS = ("localhost", "127.0.0.1")

    def grant_statements(self, settings: Settings) -> List[str]:
        return [
            f"GRANT ALL PRIVILEGES ON {settings.database_name}.* TO "
            f"'{settings.grant_username}'@'{host}' IDENTIFIED BY '{settings.grant_password}'"
            for host in self.GRANT_HOSTS
        ]

    def create_command(self, settings: Settings, statement: str) -> Command:
        return Command.build(
            [
                self.client,
                f"-u{self.create_username(settings)}",
                "-v",
                *_split_arguments(settings.create_arguments, "create_arguments"),
                "-e",
                statement,
            ]
        )

    def execute_args(self, settings: Settings) -> List[str]:
        return [
            self.client,
            f"-u{settings.execute_username}",
            "-v",
            *_split_arguments(settings.execute_arguments, "execute_arguments"),
            settings.database_name,
        ]


class PostgreSQLEngine(Engine):
    name = "postgresql"
    client = "psql"
    default_create_username = "postgres"
    default_port = 5432
    drivername = "postgresql+psycopg2"
    password_env_var = "PGPASSWORD"
    compare_sequences = True

    def grant_statements(self, settings: Settings) -> List[str]:
        return [
            f"GRANT ALL PRIVILEGES ON DATABASE {settings.database_name} TO {settings.grant_username}"
        ]

    def create_command(self, settings: Settings, statement: str) -> Command:
        return Command.build(
            [
                self.client,
                "-U",
                self.create_username(settings),
                *_split_arguments(settings.create_arguments, "create_arguments"),
                "-c",
                statement,
            ]
        )

    def execute_args(self, settings: Settings) -> List[str]:
        return [
            self.client,
            "-U",
            settings.execute_username,
            "-v",
            "ON_ERROR_STOP=1",
            *_split_arguments(settings.execute_arguments, "execute_arguments"),
            settings.database_name,
        ]


ENGINES: Dict[str, Engine] = {
    engine.name: engine for engine in (MySQLEngine(), PostgreSQLEngine())
}


def supported_engines() -> List[str]:
    return sorted(ENGINES)


def get_engine(engine_type: Optional[str]) -> Engine:
    supported = ", ".join(supported_engines())
    if engine_type is None or not str(engine_type).strip():
        raise UnsupportedEngineError(actionable_error("missing_engine", supported=supported))

    engine = ENGINES.get(str(engine_type).strip().lower())
    if engine is None:
        raise UnsupportedEngineError(
            actionable_error("unsupported_engine", engine_type=engine_type, supported=supported)
        )
    return engine


def _split_arguments(arguments: Optional[str], setting_name: str) -> List[str]:
    if arguments is None or not str(arguments).strip():
        return []
    try:
        return shlex.split(str(arguments))
    except ValueError as exc:
        raise DatabaseTaskError(
            actionable_error(
                "invalid_arguments", setting=setting_name, arguments=str(arguments), reason=str(exc)
            )
        ) from exc
