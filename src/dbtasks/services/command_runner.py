"""Subprocess execution service for dbtasks."""

import os
import subprocess
import threading
from typing import IO, List, Optional

from dbtasks.errors import CommandFailedError, IOFailureError
from dbtasks.errors_catalog import actionable_error
from dbtasks.models import Command, ProcessResult


class _StreamReader(threading.Thread):
    """Drains one pipe in full so the child never blocks on a full buffer."""

    def __init__(self, stream: IO[str]):
        super().__init__(daemon=True)
        self.stream = stream
        self.chunks: List[str] = []

    def run(self):
        try:
            for chunk in iter(lambda: self.stream.read(8192), ""):
                self.chunks.append(chunk)
        finally:
            self.stream.close()

    def text(self) -> str:
        return "".join(self.chunks)


class CommandRunner:
    """Runs database client commands and fails on any nonzero exit."""

    def __init__(self, logger, popen=subprocess.Popen):
        self.logger = logger
        self.popen = popen

    def run(self, command: Command) -> ProcessResult:
        cmd_str = command.command_line()
        self.logger.debug("Running [%s]", cmd_str)

        env: Optional[dict] = None
        if command.env:
            env = dict(os.environ)
            env.update(command.env)

        try:
            process = self.popen(
                list(command.args),
                stdin=subprocess.PIPE if command.input_text is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=env,
            )
        except OSError as exc:
            raise CommandFailedError(
                actionable_error("command_not_started", command=cmd_str, reason=str(exc))
            ) from exc

        readers = [_StreamReader(process.stdout), _StreamReader(process.stderr)]
        for reader in readers:
            reader.start()

        write_error: Optional[OSError] = None
        if command.input_text is not None:
            try:
                process.stdin.write(command.input_text)
                process.stdin.close()
            except OSError as exc:
                write_error = exc
                self._close_quietly(process.stdin)

        returncode = process.wait()
        for reader in readers:
            reader.join()

        result = ProcessResult(returncode=returncode, stdout=readers[0].text(), stderr=readers[1].text())
        self.logger.debug("Command output: %s", result.stdout)
        self.logger.debug("Command error output: %s", result.stderr)

        if write_error is not None:
            raise IOFailureError(
                actionable_error(
                    "input_write_failed",
                    display_name=command.display_name or "input",
                    command=cmd_str,
                    reason=str(write_error),
                )
            ) from write_error

        if result.returncode != 0:
            self.logger.debug("Command exited with code %s: %s", result.returncode, cmd_str)
            raise CommandFailedError(actionable_error("command_failed", command=cmd_str))

        return result

    @staticmethod
    def _close_quietly(stream):
        try:
            stream.close()
        except OSError:
            # pipe already broken
            return None
