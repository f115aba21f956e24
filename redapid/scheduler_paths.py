"""Absolute file system paths a program scheduler works with, and their creation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from redapid.config_values import StdioRedirection
from redapid.program_config import ProgramConfig

log = logging.getLogger(__name__)

DIRECTORY_MODE = 0o755

PathLike = Union[str, "os.PathLike[str]"]


class SchedulerError(Exception):
    """The scheduler could not prepare what it needs to start a program."""


@dataclass(frozen=True)
class SchedulerPaths:
    """Absolute paths below ``<root>/bin`` used when spawning a program.

    A file name is only set for a stream that is redirected to a file.
    """

    working_directory: str
    stdin_file_name: Optional[str] = None
    stdout_file_name: Optional[str] = None
    stderr_file_name: Optional[str] = None


def _in_bin(root_directory: PathLike, name: str) -> str:
    return f"{os.fspath(root_directory)}/bin/{name}"


def _file_path(
    root_directory: PathLike,
    redirection: StdioRedirection,
    file_name: Optional[str],
    stream: str,
) -> Optional[str]:
    if redirection != StdioRedirection.FILE:
        return None
    if file_name is None:
        raise SchedulerError(f"{stream} is redirected to a file but has no file name")
    return _in_bin(root_directory, file_name)


def prepare_paths(root_directory: PathLike, config: ProgramConfig) -> SchedulerPaths:
    """Work out the absolute working directory and redirection file names."""
    return SchedulerPaths(
        working_directory=_in_bin(root_directory, config.working_directory),
        stdin_file_name=_file_path(
            root_directory, config.stdin_redirection, config.stdin_file_name, "stdin"
        ),
        stdout_file_name=_file_path(
            root_directory, config.stdout_redirection, config.stdout_file_name, "stdout"
        ),
        stderr_file_name=_file_path(
            root_directory, config.stderr_redirection, config.stderr_file_name, "stderr"
        ),
    )


def _make_directory(path: str, description: str) -> None:
    try:
        os.makedirs(path, mode=DIRECTORY_MODE, exist_ok=True)
    except OSError as error:
        log.debug("Could not create %s '%s': %s", description, path, error)
        raise SchedulerError(f"Could not create {description} '{path}': {error}") from error


def _parent_of(file_name: str) -> Optional[str]:
    slash = file_name.rfind("/")
    if slash < 0:
        return None
    return file_name[:slash] or "/"


def create_directories(paths: SchedulerPaths) -> None:
    """Create the working directory and the directories of output files."""
    _make_directory(paths.working_directory, "absolute program working directory")
    for stream, file_name in (
        ("stdout", paths.stdout_file_name),
        ("stderr", paths.stderr_file_name),
    ):
        if file_name is None:
            continue
        parent = _parent_of(file_name)
        if parent is not None:
            _make_directory(parent, f"directory for {stream} file")


def create_program_directories(root_directory: PathLike) -> tuple[Path, Path]:
    """Create ``<root>/bin`` and ``<root>/log`` and return them in that order."""
    bin_directory = f"{os.fspath(root_directory)}/bin"
    log_directory = f"{os.fspath(root_directory)}/log"
    _make_directory(bin_directory, "program bin directory")
    _make_directory(log_directory, "program log directory")
    return Path(bin_directory), Path(log_directory)