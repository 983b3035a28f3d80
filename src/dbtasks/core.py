import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape
from sqlalchemy.exc import SQLAlchemyError

from .errors import DatabaseTaskError, InvalidScriptError, SchemaMismatchError
from .errors_catalog import actionable_error
from .models import Project, Settings, database_name_for
from .services.command_runner import CommandRunner
from .services.engines import Engine, get_engine
from .services.schema_diff import SchemaDiffResult, SchemaDiffService

console = Console()
logger = logging.getLogger("dbtasks")


class DatabaseTasks:
    """Creates databases, runs SQL scripts and compares schemas for a project.

    Example::

        tasks = DatabaseTasks(Project.from_directory("."))
        tasks.settings.engine_type = "mysql"
        tasks.create_main_database()
        tasks.execute_script("src/main/sql/schema.sql")
        tasks.ensure_equal("app_main", "app_test")
    """

    TEST_SUFFIX = "_test"

    def __init__(
        self,
        project: Project,
        settings: Optional[Settings] = None,
        command_runner: Optional[CommandRunner] = None,
        schema_diff_service: Optional[SchemaDiffService] = None,
    ):
        self.project = project
        self.settings = settings if settings is not None else Settings.for_project(project)
        self.command_runner = command_runner or CommandRunner(logger=logger)
        self.schema_diff_service = schema_diff_service or SchemaDiffService(logger=logger)

    def _snapshot(self):
        settings = self.settings.derive()
        engine = get_engine(settings.engine_type)
        return settings, engine

    @staticmethod
    def _require_database_name(settings: Settings):
        if settings.database_name is None or not str(settings.database_name).strip():
            raise DatabaseTaskError(actionable_error("missing_database_name"))

    def create_database(self):
        """Drops, creates and optionally grants privileges on ``settings.database_name``.

        Commands run in order and the first failure stops the sequence. Nothing
        is rolled back; running this again starts from an unconditional drop.
        """
        settings, engine = self._snapshot()
        self._require_database_name(settings)

        create_commands = engine.build_drop_create_commands(settings)
        grant_commands = engine.build_grant_commands(settings)

        console.print(f"[blue]Creating database {escape(str(settings.database_name))}...[/blue]")
        logger.info("Creating database [%s]", settings.database_name)
        for command in create_commands:
            self.command_runner.run(command)

        if grant_commands:
            logger.info("Granting privileges to [%s]", settings.grant_username)
            for command in grant_commands:
                self.command_runner.run(command)
        console.print(f"[green]Database {escape(str(settings.database_name))} created.[/green]")

    def create_main_database(self):
        """Creates the database named after the project.

        ``settings.database_name`` is overwritten and keeps the derived value
        after the call.
        """
        self.settings.database_name = self.main_database_name()
        self.create_database()

    def create_test_database(self):
        """Same as :meth:`create_main_database` with ``_test`` appended to the name."""
        self.settings.database_name = self.test_database_name()
        self.create_database()

    def main_database_name(self) -> str:
        return database_name_for(self.project.name)

    def test_database_name(self) -> str:
        return database_name_for(self.project.name, self.TEST_SUFFIX)

    def resolve_script(self, file) -> Path:
        return self.project.directory / Path(file)

    def execute_script(self, file):
        """Pipes a SQL file, resolved against the project directory, into the engine client."""
        if file is None or not str(file).strip():
            raise InvalidScriptError(actionable_error("invalid_script", path=str(file)))

        settings, engine = self._snapshot()
        self._require_database_name(settings)

        console.print(f"[blue]Executing SQL script {escape(str(file))}...[/blue]")
        logger.info("Executing SQL script [%s]", file)

        script_path = self.resolve_script(file)
        script = self._read_script(script_path)

        command = engine.build_execute_command(settings, script, str(file))
        self.command_runner.run(command)

    @staticmethod
    def _read_script(script_path: Path) -> str:
        if not script_path.is_file():
            raise InvalidScriptError(actionable_error("invalid_script", path=str(script_path)))
        try:
            return script_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise InvalidScriptError(actionable_error("invalid_script", path=str(script_path))) from exc

    def compare(self, left: str, right: str) -> SchemaDiffResult:
        """Compares the schemas of two databases on the configured engine.

        The caller must close the returned result (``result.close()`` or a
        ``with`` block) to release both connections.
        """
        if not left or not right:
            raise DatabaseTaskError(actionable_error("missing_compare_names"))

        settings, engine = self._snapshot()

        console.print(f"[blue]Comparing database {escape(str(left))} to {escape(str(right))}...[/blue]")
        logger.info("Comparing database [%s] to [%s]", left, right)
        return self._compare_with(settings, engine, left, right)

    def _compare_with(self, settings: Settings, engine: Engine, left: str, right: str) -> SchemaDiffResult:
        try:
            return self.schema_diff_service.compare(
                engine.connection_url(settings, left),
                engine.connection_url(settings, right),
                include_sequences=engine.compare_sequences,
            )
        except SQLAlchemyError as exc:
            raise DatabaseTaskError(
                f"Could not compare database [{left}] to [{right}]: {exc}"
            ) from exc

    def ensure_equal(self, left: str, right: str):
        """Fails with :class:`SchemaMismatchError` unless both schemas are identical."""
        with self.compare(left, right) as result:
            if not result.are_equal():
                report = result.render_report()
                raise SchemaMismatchError(
                    actionable_error("schemas_not_equal", report=report),
                    report=report,
                )

        console.print(f"[green]Databases {escape(str(left))} and {escape(str(right))} are equal.[/green]")
