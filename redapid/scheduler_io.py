"""Opening the standard streams of a program process and its log files."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, Union

from redapid.config_values import StdioRedirection
from redapid.program_config import ProgramConfig
from redapid.scheduler_paths import PathLike, SchedulerError, SchedulerPaths

log = logging.getLogger(__name__)

LOG_FILE_MODE = 0o644
MAX_INDIVIDUAL_LOG_ATTEMPTS = 1000
_HEADER_RULE = "-" * 79
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class Pipe:
    """A pipe whose read end feeds a process and whose write end never blocks."""

    read_end: BinaryIO
    write_end: BinaryIO

    def fileno(self) -> int:
        return self.read_end.fileno()

    def close(self) -> None:
        self.read_end.close()
        self.write_end.close()

    def __enter__(self) -> "Pipe":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


Stream = Union[BinaryIO, Pipe]


def _localize(timestamp: datetime) -> datetime:
    """Aware timestamps keep their zone; naive ones are taken as local time."""
    return timestamp if timestamp.tzinfo is not None else timestamp.astimezone()


def _microseconds(timestamp: datetime) -> int:
    return (_localize(timestamp) - _EPOCH) // timedelta(microseconds=1)


def _fail(message: str, error: Union[OSError, None] = None) -> SchedulerError:
    log.error("%s", message)
    failure = SchedulerError(message)
    if error is not None:
        failure.__cause__ = error
    return failure


def individual_log_name(
    log_directory: PathLike, timestamp: datetime, suffix: str, counter: int = 0
) -> str:
    """Return the name of an individual log file.

    The form is ``<dir>/YYYYMMDDThhmmss±hhmm_<usec>_<suffix>.log``, with
    ``+NNN`` after the microseconds for a non-zero collision counter.
    """
    local = _localize(timestamp)
    iso8601 = local.strftime("%Y%m%dT%H%M%S%z")
    microseconds = _microseconds(timestamp)
    directory = os.fspath(log_directory)
    if counter == 0:
        return f"{directory}/{iso8601}_{microseconds}_{suffix}.log"
    return f"{directory}/{iso8601}_{microseconds}+{counter:03d}_{suffix}.log"


def _open_fd(path: str, flags: int, mode: str) -> BinaryIO:
    fd = os.open(path, flags, LOG_FILE_MODE)
    try:
        return os.fdopen(fd, mode)
    except BaseException:
        os.close(fd)
        raise


def open_individual_log(
    log_directory: PathLike, timestamp: datetime, suffix: str
) -> BinaryIO:
    """Create a new log file, trying up to 1000 names to avoid collisions."""
    flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL
    for counter in range(MAX_INDIVIDUAL_LOG_ATTEMPTS):
        name = individual_log_name(log_directory, timestamp, suffix, counter)
        if os.path.lexists(name):
            continue
        try:
            return _open_fd(name, flags, "wb")
        except FileExistsError:
            continue
        except OSError as error:
            raise _fail(f"Could not create {suffix} log file: {error}", error)
    raise _fail(
        f"Could not create {suffix} log file within "
        f"{MAX_INDIVIDUAL_LOG_ATTEMPTS} attempts"
    )


def continuous_log_header(timestamp: datetime) -> str:
    """Return the timestamp header written before each run in a continuous log."""
    local = _localize(timestamp)
    stamp = (
        local.strftime("%Y-%m-%dT%H:%M:%S")
        + f".{local.microsecond:06d}"
        + local.strftime("%z")
    )
    return f"\n\n{stamp}\n{_HEADER_RULE}\n"


def open_continuous_log(
    log_directory: PathLike, timestamp: datetime, suffix: str
) -> BinaryIO:
    """Open ``continuous_<suffix>.log`` for appending and write a header to it."""
    name = f"{os.fspath(log_directory)}/continuous_{suffix}.log"
    try:
        file = _open_fd(name, os.O_WRONLY | os.O_CREAT | os.O_APPEND, "wb")
    except OSError as error:
        raise _fail(f"Could not open/create {suffix} log file: {error}", error)
    try:
        file.write(continuous_log_header(timestamp).encode("utf-8"))
        file.flush()
    except OSError as error:
        file.close()
        raise _fail(f"Could not write timestamp to {suffix} log file: {error}", error)
    return file


def _open_pipe() -> Pipe:
    read_fd, write_fd = os.pipe()
    os.set_blocking(write_fd, False)
    return Pipe(os.fdopen(read_fd, "rb"), os.fdopen(write_fd, "wb", buffering=0))


def _open_dev_null(mode: str) -> BinaryIO:
    direction = "reading" if "r" in mode else "writing"
    try:
        return open(os.devnull, mode)
    except OSError as error:
        raise SchedulerError(f"Could not open /dev/null for {direction}: {error}") from error


def open_stdin(config: ProgramConfig, paths: SchedulerPaths) -> Stream:
    """Open what the program reads as stdin; a pipe is returned as a Pipe."""
    redirection = config.stdin_redirection
    if redirection == StdioRedirection.DEV_NULL:
        return _open_dev_null("rb")
    if redirection == StdioRedirection.PIPE:
        try:
            return _open_pipe()
        except OSError as error:
            raise SchedulerError(f"Could not create pipe: {error}") from error
    if redirection == StdioRedirection.FILE:
        if paths.stdin_file_name is None:
            raise _fail("Absolute stdin file name not set")
        try:
            return open(paths.stdin_file_name, "rb")
        except OSError as error:
            raise SchedulerError(
                f"Could not open '{paths.stdin_file_name}' for reading: {error}"
            ) from error
    if redirection == StdioRedirection.INDIVIDUAL_LOG:
        raise _fail("Cannot redirect stdin to a individual log file")
    if redirection == StdioRedirection.CONTINUOUS_LOG:
        raise _fail("Cannot redirect stdin to a continuous log file")
    if redirection == StdioRedirection.STDOUT:
        raise _fail("Cannot redirect stdin to stdout")
    raise _fail(f"Invalid stdin redirection {redirection}")


def _open_output_file(path: str) -> BinaryIO:
    try:
        return _open_fd(path, os.O_WRONLY | os.O_CREAT, "wb")
    except OSError as error:
        raise SchedulerError(
            f"Could not open/create '{path}' for writing: {error}"
        ) from error


def _open_output(
    stream: str,
    redirection: StdioRedirection,
    file_name: Union[str, None],
    log_directory: PathLike,
    timestamp: datetime,
) -> BinaryIO:
    if redirection == StdioRedirection.DEV_NULL:
        return _open_dev_null("wb")
    if redirection == StdioRedirection.FILE:
        if file_name is None:
            raise _fail(f"Absolute {stream} file name not set")
        return _open_output_file(file_name)
    if redirection == StdioRedirection.INDIVIDUAL_LOG:
        return open_individual_log(log_directory, timestamp, stream)
    if redirection == StdioRedirection.CONTINUOUS_LOG:
        return open_continuous_log(log_directory, timestamp, stream)
    raise _fail(f"Invalid {stream} redirection {redirection}")


def open_stdout(
    config: ProgramConfig,
    paths: SchedulerPaths,
    log_directory: PathLike,
    timestamp: datetime,
) -> BinaryIO:
    """Open what the program writes its stdout to."""
    if config.stdout_redirection == StdioRedirection.STDOUT:
        raise _fail("Cannot redirect stdout to stdout")
    return _open_output(
        "stdout",
        config.stdout_redirection,
        paths.stdout_file_name,
        log_directory,
        timestamp,
    )


def open_stderr(
    config: ProgramConfig,
    paths: SchedulerPaths,
    log_directory: PathLike,
    timestamp: datetime,
    stdout: BinaryIO,
) -> BinaryIO:
    """Open what the program writes its stderr to; may share ``stdout``."""
    if config.stderr_redirection == StdioRedirection.STDOUT:
        return stdout
    return _open_output(
        "stderr",
        config.stderr_redirection,
        paths.stderr_file_name,
        log_directory,
        timestamp,
    )