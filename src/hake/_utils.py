"""
Utilities to use from task definitions
"""
import ast
import logging
import os
import shlex
import sys
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional, Sequence
from urllib.request import Request

from invoke import Context, Result

from .__about__ import __version__


class ToolError(Exception):
    """An external tool exited with a non-zero status"""

    def __init__(self, command: str, result: Result):
        self.command = command
        self.result = result
        stderr = (result.stderr or "").strip()
        super().__init__(
            f"{command!r} failed with exit code {result.exited}"
            + (f": {stderr}" if stderr else "")
        )


def env_flag(name: str, default: bool = False) -> bool:
    """Reads a Python literal (True/False/1/0) from the environment"""
    try:
        return bool(ast.literal_eval(os.environ.get(name, str(default))))
    except Exception as error:
        logging.error(f"Reading env var {name}: {error}")
        return default


def env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError as error:
        logging.error(f"Reading env var {name}: {error}")
        return default


def run_tool(
    ctx: Context,
    args: Sequence[str],
    verbose=False,
    in_stream=None,
) -> Result:
    """Runs an external binary with a list of arguments.

    Parameters
    ----------
    ctx : Context
        The invoke context
    args : Sequence[str]
        Binary and arguments, they are shell quoted before running
    verbose : bool, optional
        Stream the output to the terminal instead of capturing it
    in_stream : optional
        File like object used as the standard input

    Returns
    -------
    Result
        The invoke result, only returned when the command succeeded

    Raises
    ------
    ToolError
        If the command exits with non-zero status
    """
    command = shlex.join(args)
    logging.debug(f"Running {command}")
    kwargs: Dict[str, Any] = {"hide": not verbose, "warn": True}
    if in_stream is not None:
        kwargs["in_stream"] = in_stream
    result: Result = ctx.run(command, **kwargs)
    if not result.ok:
        raise ToolError(command, result)
    return result


def dict_to_dataclass(
    data: Dict[str, Any],
    dt: dataclass,
):
    """Create a dataclass with only the fields in the dataclass"""
    fields_to_include = {f.name for f in fields(dt)}
    init_values = {
        name: value for name, value in data.items() if name in fields_to_include
    }
    return dt(
        **init_values,
    )


def drop_empty(data: Dict[str, Any]) -> Dict[str, Any]:
    """Removes None values and empty lists from a (nested) dictionary"""
    result = {}
    for key, value in data.items():
        if isinstance(value, dict):
            value = drop_empty(value)
        elif isinstance(value, list):
            value = [drop_empty(v) if isinstance(v, dict) else v for v in value]
        if value is None or value == [] or value == {}:
            continue
        result[key] = value
    return result


def create_request(
    url: str,
    method: str = "GET",
    token: Optional[str] = None,
    data: Optional[bytes] = None,
) -> Request:
    """Creates a Request object with headers"""
    headers = {"User-Agent": f"hake/{__version__}"}
    if data is not None:
        headers["Content-Type"] = "application/json"
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return Request(url, data=data, headers=headers, method=method)  # noqa: S310


def format_table(rows: List[Sequence[str]], headers: Sequence[str]) -> str:
    """Left aligned plain text table"""
    all_rows = [list(headers), *[list(map(str, row)) for row in rows]]
    widths = [max(len(row[i]) for row in all_rows) for i in range(len(headers))]
    lines = [
        "  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip()
        for row in all_rows
    ]
    return "\n".join(lines)


def exit_with(error: Exception) -> None:
    """Ends the task printing the error"""
    logging.debug("Task failed", exc_info=error)
    sys.exit(str(error))
