import pytest

from dbtasks.errors import DatabaseTaskError, UnsupportedEngineError
from dbtasks.models import Settings
from dbtasks.services.engines import Engine, MySQLEngine, PostgreSQLEngine, get_engine


def _settings(**kwargs) -> Settings:
    values = {"engine_type": "mysql", "database_name": "foo_bar"}
    values.update(kwargs)
    return Settings(**values)


@pytest.mark.parametrize("engine_type", ["mysql", "MySQL", " MYSQL "])
def test_get_engine_is_case_insensitive(engine_type):
    assert isinstance(get_engine(engine_type), MySQLEngine)


def test_get_engine_postgresql():
    assert isinstance(get_engine("PostgreSQL"), PostgreSQLEngine)


def test_get_engine_rejects_unknown_type():
    with pytest.raises(UnsupportedEngineError, match=r"Unsupported database type \[oracle\]"):
        get_engine("oracle")


@pytest.mark.parametrize("engine_type", [None, "", "  "])
def test_get_engine_rejects_missing_type(engine_type):
    with pytest.raises(UnsupportedEngineError, match="not set"):
        get_engine(engine_type)


def test_mysql_create_commands_with_grants():
    commands = MySQLEngine().build_create_commands(_settings(grant_username="app", grant_password="secret"))

    assert [command.args for command in commands] == [
        ("mysql", "-uroot", "-v", "-e", "DROP DATABASE IF EXISTS foo_bar"),
        ("mysql", "-uroot", "-v", "-e", "CREATE DATABASE foo_bar"),
        (
            "mysql",
            "-uroot",
            "-v",
            "-e",
            "GRANT ALL PRIVILEGES ON foo_bar.* TO 'app'@'localhost' IDENTIFIED BY 'secret'",
        ),
        (
            "mysql",
            "-uroot",
            "-v",
            "-e",
            "GRANT ALL PRIVILEGES ON foo_bar.* TO 'app'@'127.0.0.1' IDENTIFIED BY 'secret'",
        ),
    ]
    assert all(command.input_text is None for command in commands)


def test_mysql_create_commands_use_create_user_arguments_and_suffix():
    settings = _settings(
        create_username="admin",
        create_arguments="--host=db --port 3307",
        create_suffix="CHARACTER SET utf8mb4",
        grant_username=None,
    )

    commands = MySQLEngine().build_create_commands(settings)

    assert commands[1].args == (
        "mysql",
        "-uadmin",
        "-v",
        "--host=db",
        "--port",
        "3307",
        "-e",
        "CREATE DATABASE foo_bar CHARACTER SET utf8mb4",
    )


def test_postgresql_create_commands_grant_once():
    settings = _settings(engine_type="postgresql", grant_username="app")

    commands = PostgreSQLEngine().build_create_commands(settings)

    assert [command.args for command in commands] == [
        ("psql", "-U", "postgres", "-c", "DROP DATABASE IF EXISTS foo_bar"),
        ("psql", "-U", "postgres", "-c", "CREATE DATABASE foo_bar"),
        ("psql", "-U", "postgres", "-c", "GRANT ALL PRIVILEGES ON DATABASE foo_bar TO app"),
    ]


@pytest.mark.parametrize("engine", [MySQLEngine(), PostgreSQLEngine()])
@pytest.mark.parametrize("grant_username", [None, ""])
def test_no_grant_commands_without_grant_user(engine, grant_username):
    settings = _settings(grant_username=grant_username)

    commands = engine.build_create_commands(settings)

    assert len(commands) == 2
    assert "DROP DATABASE IF EXISTS" in commands[0].args[-1]
    assert not any("GRANT" in command.args[-1] for command in commands)
    assert engine.build_grant_commands(settings) == []


def test_mysql_execute_command_keeps_password_out_of_argv():
    settings = _settings(execute_username="dev", execute_password="s3cret", execute_arguments="--force")

    command = MySQLEngine().build_execute_command(settings, "CREATE TABLE t (id INT);", "schema.sql")

    assert command.args == ("mysql", "-udev", "-v", "--force", "foo_bar")
    assert command.input_text == "CREATE TABLE t (id INT);"
    assert command.display_name == "schema.sql"
    assert command.env == {"MYSQL_PWD": "s3cret"}
    assert "s3cret" not in command.command_line()


def test_postgresql_execute_command():
    settings = _settings(engine_type="postgresql", execute_username="dev", execute_password="pw")

    command = PostgreSQLEngine().build_execute_command(settings, "SELECT 1;", "seed.sql")

    assert command.args == ("psql", "-U", "dev", "-v", "ON_ERROR_STOP=1", "foo_bar")
    assert command.env == {"PGPASSWORD": "pw"}
    assert command.command_line() == "psql -U dev -v ON_ERROR_STOP=1 foo_bar < seed.sql"


def test_connection_urls_use_default_ports():
    settings = _settings(compare_username="cmp", compare_password="p@ss")

    mysql_url = MySQLEngine().connection_url(settings, "left_db")
    postgres_url = PostgreSQLEngine().connection_url(settings, "right_db")

    assert mysql_url.drivername == "mysql+pymysql"
    assert (mysql_url.host, mysql_url.port, mysql_url.database) == ("localhost", 3306, "left_db")
    assert (mysql_url.username, mysql_url.password) == ("cmp", "p@ss")
    assert postgres_url.drivername == "postgresql+psycopg2"
    assert (postgres_url.port, postgres_url.database) == (5432, "right_db")


def test_connection_url_honors_host_and_port_override():
    settings = _settings(host="db.internal", port=3310)

    url = MySQLEngine().connection_url(settings, "app")

    assert (url.host, url.port) == ("db.internal", 3310)


@pytest.mark.parametrize("engine_type", [5, 3.5, True])
def test_get_engine_rejects_non_string_type(engine_type):
    with pytest.raises(UnsupportedEngineError, match="Unsupported database type"):
        get_engine(engine_type)


@pytest.mark.parametrize("engine", [MySQLEngine(), PostgreSQLEngine()])
def test_unbalanced_quotes_in_arguments_raise_task_error(engine):
    settings = _settings(create_arguments="--init-command=it's")

    with pytest.raises(DatabaseTaskError, match=r"Could not parse create_arguments \[--init-command=it's\]"):
        engine.build_create_commands(settings)


def test_unbalanced_quotes_in_execute_arguments_name_the_setting():
    settings = _settings(execute_arguments='--comment "open')

    with pytest.raises(DatabaseTaskError, match="execute_arguments"):
        MySQLEngine().build_execute_command(settings, "SELECT 1;", "seed.sql")


def test_engine_base_class_is_abstract():
    with pytest.raises(TypeError):
        Engine()

    class PartialEngine(Engine):
        def grant_statements(self, settings):
            return []

    with pytest.raises(TypeError):
        PartialEngine()
