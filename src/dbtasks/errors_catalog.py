"""Actionable error catalog for dbtasks."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "unsupported_engine": {
        "what": "Unsupported database type [{engine_type}].",
        "next": "Set the engine type to one of: {supported}.",
    },
    "missing_engine": {
        "what": "The database type is not set.",
        "next": "Set the engine type (`--engine`) to one of: {supported}.",
    },
    "missing_database_name": {
        "what": "The database name is not set.",
        "next": "Provide a database name with `--name` or set a project name.",
    },
    "invalid_script": {
        "what": "Invalid SQL script to execute [{path}].",
        "next": "Check that the file exists, is a regular file and is readable.",
    },
    "invalid_arguments": {
        "what": "Could not parse {setting} [{arguments}]: {reason}.",
        "next": "Quote the arguments as you would in a shell, for example `--init-command=\"SET x=1\"`.",
    },
    "command_not_started": {
        "what": "Command [{command}] could not be started: {reason}.",
        "next": "Install the database client and make sure it is on the PATH.",
    },
    "command_failed": {
        "what": "Command [{command}] failed.",
        "next": "Turn on debugging (`--verbose`) to see the error message from the database.",
    },
    "input_write_failed": {
        "what": "Could not write [{display_name}] to command [{command}]: {reason}.",
        "next": "Turn on debugging (`--verbose`) to see the output from the database client.",
    },
    "missing_compare_names": {
        "what": "You must specify the names of the databases to compare.",
        "next": "Pass both names, for example `--left database1 --right database2`.",
    },
    "schemas_not_equal": {
        "what": "Databases are not equal. Errors are:\n\n[{report}]\n",
        "next": "Apply the missing changes to one database and compare again.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
