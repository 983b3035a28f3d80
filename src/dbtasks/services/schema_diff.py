"""Schema comparison between two live databases.

The reference (left) database is reflected into SQLAlchemy metadata and
compared against the comparison (right) connection with alembic's
autogenerate comparator. View names, and optionally sequence names, are
compared separately since autogenerate does not cover them.
"""

from contextlib import ExitStack
from typing import Any, Callable, List, Optional

from alembic.autogenerate import compare_metadata
from alembic.migration import MigrationContext
from sqlalchemy import MetaData, Table, create_engine, inspect
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError


class DatabaseSnapshot:
    """An open connection to one of the compared databases."""

    def __init__(self, name: str, engine: Engine, connection: Connection):
        self.name = name
        self.engine = engine
        self.connection = connection

    @property
    def closed(self) -> bool:
        return self.connection.closed

    def close(self):
        if not self.connection.closed:
            self.connection.close()
        self.engine.dispose()


class SchemaDiffResult:
    """Differences between two databases plus the connections used to find them.

    Callers own the connections: use ``close()`` or a ``with`` block.
    """

    def __init__(self, reference: DatabaseSnapshot, comparison: DatabaseSnapshot, differences: List[Any]):
        self.reference = reference
        self.comparison = comparison
        self.differences = differences

    def are_equal(self) -> bool:
        return not self.differences

    def render_report(self) -> str:
        lines = [
            f"Reference Database: {self.reference.name}",
            f"Comparison Database: {self.comparison.name}",
            "",
        ]
        if self.are_equal():
            lines.append("No differences found.")
            return "\n".join(lines)

        lines.append("Differences:")
        for difference in self.differences:
            lines.extend(f"- {line}" for line in _describe(difference))
        return "\n".join(lines)

    def close(self):
        try:
            self.reference.close()
        finally:
            self.comparison.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class SchemaDiffService:
    """Opens two connections and reports their structural differences."""

    def __init__(self, logger, engine_factory: Callable[..., Engine] = create_engine):
        self.logger = logger
        self.engine_factory = engine_factory

    def connect(self, url) -> DatabaseSnapshot:
        engine = self.engine_factory(url)
        try:
            connection = engine.connect()
        except SQLAlchemyError:
            engine.dispose()
            raise
        return DatabaseSnapshot(_database_name(url), engine, connection)

    def compare(self, left_url, right_url, include_sequences: bool = False) -> SchemaDiffResult:
        with ExitStack() as stack:
            reference = self.connect(left_url)
            stack.callback(reference.close)
            comparison = self.connect(right_url)
            stack.callback(comparison.close)

            differences = self.diff(reference.connection, comparison.connection, include_sequences)
            self.logger.debug(
                "Found %s difference(s) between [%s] and [%s]",
                len(differences),
                reference.name,
                comparison.name,
            )
            stack.pop_all()

        return SchemaDiffResult(reference, comparison, differences)

    def diff(self, reference: Connection, comparison: Connection, include_sequences: bool = False) -> List[Any]:
        metadata = MetaData()
        metadata.reflect(bind=reference)

        context = MigrationContext.configure(connection=comparison, opts={"compare_type": True})
        differences = list(compare_metadata(context, metadata))

        reference_inspector = inspect(reference)
        comparison_inspector = inspect(comparison)
        differences.extend(
            _compare_names(
                "view",
                reference_inspector.get_view_names(),
                comparison_inspector.get_view_names(),
            )
        )
        if include_sequences:
            differences.extend(
                _compare_names(
                    "sequence",
                    reference_inspector.get_sequence_names(),
                    comparison_inspector.get_sequence_names(),
                )
            )
        return differences


def _database_name(url) -> str:
    parsed = make_url(url)
    return parsed.database or parsed.render_as_string(hide_password=True)


def _compare_names(kind: str, reference_names, comparison_names) -> List[tuple]:
    reference_set = set(reference_names)
    comparison_set = set(comparison_names)
    added = [(f"add_{kind}", name) for name in sorted(reference_set - comparison_set)]
    removed = [(f"remove_{kind}", name) for name in sorted(comparison_set - reference_set)]
    return added + removed


def _describe(difference) -> List[str]:
    if isinstance(difference, list):
        return [line for item in difference for line in _describe(item)]

    kind, *parts = difference
    labels = [_label(part) for part in parts if part is not None and not isinstance(part, dict)]
    return [f"{kind}: {', '.join(labels)}"]


def _label(part) -> str:
    if isinstance(part, Table):
        return part.name
    if hasattr(part, "name"):
        table_name = _table_name(part)
        name = part.name
        if name is None:
            name = type(part).__name__
        return f"{table_name}.{name}" if table_name else str(name)
    return str(part)


def _table_name(part) -> Optional[str]:
    try:
        table = part.table
    except (AttributeError, SQLAlchemyError):
        return None
    return getattr(table, "name", None)
