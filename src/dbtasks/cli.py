import functools
import logging
import os
from typing import Any, Dict, Tuple

import click
from rich.logging import RichHandler

from .core import DatabaseTasks
from .errors import DatabaseTaskError
from .models import Project, Settings
from .services.config_loader import ConfigLoader
from .services.engines import supported_engines

DEFAULT_CONFIG_FILE = ".dbtasks.yml"


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


class CliState:
    """Values shared by every subcommand once the group options are resolved."""

    def __init__(self, project: Project, config_values: Dict[str, Any]):
        self.project = project
        self.config_values = config_values

    def build_tasks(self, clear: Tuple[str, ...] = (), **cli_settings) -> DatabaseTasks:
        """Merge config and CLI values; keys in ``clear`` are forced to None afterwards."""
        values = ConfigLoader().settings_values(self.config_values)
        values.update({key: value for key, value in cli_settings.items() if value is not None})
        values.update({key: None for key in clear})
        settings = Settings.for_project(self.project, **values)
        return DatabaseTasks(project=self.project, settings=settings)


def _fail_on_task_error(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DatabaseTaskError as exc:
            raise click.ClickException(str(exc)) from exc

    return wrapper


def _engine_option(func):
    return click.option(
        "--engine",
        "engine_type",
        required=False,
        help=f"Database engine: {', '.join(supported_engines())}. Not case-sensitive.",
    )(func)


def _create_options(func):
    options = [
        click.option("--create-user", "create_username", help="User that drops and creates the database."),
        click.option("--grant-user", "grant_username", help="User granted all privileges on the new database."),
        click.option("--grant-password", "grant_password", help="Password for the granted user."),
        click.option("--no-grant", is_flag=True, default=False, help="Skip the grant step."),
        click.option("--create-args", "create_arguments", help="Extra arguments for the database client."),
        click.option("--create-suffix", "create_suffix", help="SQL appended to the CREATE DATABASE statement."),
    ]
    for option in reversed(options):
        func = option(func)
    return _engine_option(func)


def _compare_options(func):
    options = [
        click.option("--left", required=True, help="Reference database name."),
        click.option("--right", required=True, help="Comparison database name."),
        click.option("--compare-user", "compare_username", help="User for both connections."),
        click.option("--compare-password", "compare_password", help="Password for both connections."),
        click.option("--host", required=False, help="Database host (default: localhost)."),
        click.option("--port", type=int, required=False, help="Database port (default: engine port)."),
    ]
    for option in reversed(options):
        func = option(func)
    return _engine_option(func)


def _cleared_settings(no_grant) -> Tuple[str, ...]:
    return ("grant_username",) if no_grant else ()


@click.group()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.option(
    "--project-dir",
    required=False,
    type=click.Path(file_okay=False),
    help="Project root used to resolve scripts (default: current directory).",
)
@click.option(
    "--project-name",
    required=False,
    help="Project name used for default database names (default: project directory name).",
)
@click.pass_context
def main(ctx, config, verbose, log_file, project_dir, project_name):
    """Create, script and compare development databases."""
    logger = logging.getLogger("dbtasks")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except DatabaseTaskError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    project_dir = _resolve_option(project_dir, config_values, "project_dir", default=os.getcwd())
    project_name = _resolve_option(project_name, config_values, "project_name")

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    ctx.obj = CliState(Project.from_directory(project_dir, project_name), config_values)


@main.command("create-database")
@click.option("--name", "database_name", help="Database name (default: derived from the project name).")
@_create_options
@click.pass_obj
@_fail_on_task_error
def create_database(state: CliState, no_grant, **values):
    """Drop and re-create a database, then grant privileges."""
    state.build_tasks(clear=_cleared_settings(no_grant), **values).create_database()


@main.command("create-main-database")
@_create_options
@click.pass_obj
@_fail_on_task_error
def create_main_database(state: CliState, no_grant, **values):
    """Re-create the database named after the project."""
    state.build_tasks(clear=_cleared_settings(no_grant), **values).create_main_database()


@main.command("create-test-database")
@_create_options
@click.pass_obj
@_fail_on_task_error
def create_test_database(state: CliState, no_grant, **values):
    """Re-create the project's test database (project name plus _test)."""
    state.build_tasks(clear=_cleared_settings(no_grant), **values).create_test_database()


@main.command("execute-script")
@_engine_option
@click.option("--name", "database_name", help="Database to run the script against.")
@click.option("--file", "script_file", required=True, help="SQL file, relative to the project directory.")
@click.option("--exec-user", "execute_username", help="User that runs the script.")
@click.option("--exec-password", "execute_password", help="Password for the script user.")
@click.option("--exec-args", "execute_arguments", help="Extra arguments for the database client.")
@click.pass_obj
@_fail_on_task_error
def execute_script(state: CliState, script_file, **values):
    """Pipe a SQL script into the database client."""
    state.build_tasks(**values).execute_script(script_file)


@main.command("compare")
@_compare_options
@click.pass_obj
@_fail_on_task_error
def compare(state: CliState, left, right, **values):
    """Print the schema differences between two databases."""
    with state.build_tasks(**values).compare(left, right) as result:
        click.echo(result.render_report())


@main.command("ensure-equal")
@_compare_options
@click.pass_obj
@_fail_on_task_error
def ensure_equal(state: CliState, left, right, **values):
    """Fail unless two databases have identical schemas."""
    state.build_tasks(**values).ensure_equal(left, right)


if __name__ == "__main__":
    main()
