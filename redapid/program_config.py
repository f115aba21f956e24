"""Program configuration stored in a ``program.conf`` option file."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Type, TypeVar, Union

from redapid.config_values import (
    ConfigStore,
    StartMode,
    StdioRedirection,
    format_integer,
    parse_boolean,
    parse_integer,
    parse_symbol,
    symbol_name,
)

log = logging.getLogger(__name__)

CUSTOM_PREFIX = "custom."
DEFAULT_START_FIELDS = "* * * * *"
DEFAULT_WORKING_DIRECTORY = "."

_UINT32_MASK = 0xFFFFFFFF
_INT32_LIMIT = 2**31

E = TypeVar("E", StdioRedirection, StartMode)

_INVALID_STDIN = {
    StdioRedirection.INDIVIDUAL_LOG,
    StdioRedirection.CONTINUOUS_LOG,
    StdioRedirection.STDOUT,
}
_INVALID_STDOUT = {StdioRedirection.PIPE, StdioRedirection.STDOUT}
_INVALID_STDERR = {StdioRedirection.PIPE}


@dataclass
class CustomOption:
    """A free-form ``custom.<name>`` option of a program."""

    name: str
    value: str


@dataclass
class _Reader:
    """Reads typed option values, falling back to defaults on bad input."""

    store: ConfigStore
    filename: str

    def string(self, name: str, default: str) -> str:
        value = self.store.get(name)
        return default if value is None else value

    def integer(self, name: str, default: int) -> int:
        text = self.store.get(name)
        if text is None:
            return default
        try:
            return parse_integer(text)
        except ValueError as error:
            log.warning(
                "Could not parse integer from value of '%s' option in '%s', "
                "using default value instead: %s",
                name,
                self.filename,
                error,
            )
            return default

    def boolean(self, name: str, default: bool) -> bool:
        text = self.store.get(name)
        if text is None:
            return default
        try:
            return parse_boolean(text)
        except ValueError:
            log.warning(
                "Could not parse boolean from value of '%s' option in '%s', "
                "using default value instead",
                name,
                self.filename,
            )
            return default

    def symbol(self, name: str, enum_type: Type[E], default: E) -> E:
        text = self.store.get(name)
        if text is None:
            return default
        try:
            return parse_symbol(enum_type, text)
        except ValueError:
            log.warning(
                "Invalid symbol for '%s' option in '%s', using default value instead",
                name,
                self.filename,
            )
            return default

    def string_list(self, name: str) -> list[str]:
        length = self.integer(f"{name}.length", 0)
        count = length & _UINT32_MASK
        if count >= _INT32_LIMIT:
            count = 0
        return [self.string(f"{name}.item{index}", "") for index in range(count)]

    def redirection(
        self, stream: str, invalid: set[StdioRedirection]
    ) -> tuple[StdioRedirection, Optional[str]]:
        option = f"{stream}_redirection"
        redirection = self.symbol(option, StdioRedirection, StdioRedirection.DEV_NULL)
        if redirection in invalid:
            log.warning(
                "Invalid '%s' option in '%s', using default value instead",
                option,
                self.filename,
            )
            redirection = StdioRedirection.DEV_NULL
        if redirection != StdioRedirection.FILE:
            return redirection, None
        file_name = self.string(f"{stream}_file_name", "")
        if not file_name:
            log.warning(
                "Cannot redirect %s to empty file name, redirecting to /dev/null instead",
                stream,
            )
            return StdioRedirection.DEV_NULL, None
        return redirection, file_name


def _set_string_list(store: ConfigStore, name: str, values: list[str]) -> None:
    store.set(f"{name}.length", format_integer(len(values)))
    # drop stale items in case the list shrank
    store.remove(f"{name}.item", prefix=True)
    for index, value in enumerate(values):
        store.set(f"{name}.item{index}", value)


@dataclass
class ProgramConfig:
    """Settings of one program object, loaded from and saved to ``filename``.

    A file name is only kept for a stream redirected to a file, and the cron
    fields only for the cron start mode.
    """

    filename: Union[str, Path]
    executable: str = ""
    arguments: list[str] = field(default_factory=list)
    environment: list[str] = field(default_factory=list)
    working_directory: str = DEFAULT_WORKING_DIRECTORY
    stdin_redirection: StdioRedirection = StdioRedirection.DEV_NULL
    stdin_file_name: Optional[str] = None
    stdout_redirection: StdioRedirection = StdioRedirection.DEV_NULL
    stdout_file_name: Optional[str] = None
    stderr_redirection: StdioRedirection = StdioRedirection.DEV_NULL
    stderr_file_name: Optional[str] = None
    start_mode: StartMode = StartMode.NEVER
    continue_after_error: bool = False
    start_interval: int = 0
    start_fields: Optional[str] = None
    custom_options: list[CustomOption] = field(default_factory=list)

    def load(self) -> None:
        """Replace all settings with those read from the file.

        Invalid values fall back to their defaults. If the file cannot be
        read the current settings are kept and the error is raised.
        """
        filename = str(self.filename)
        try:
            store = ConfigStore.read(self.filename)
        except FileNotFoundError:
            raise
        except OSError as error:
            log.error("Could not read from '%s': %s", filename, error)
            raise

        reader = _Reader(store, filename)

        executable = reader.string("executable", "")
        arguments = reader.string_list("arguments")
        environment = reader.string_list("environment")
        working_directory = reader.string("working_directory", DEFAULT_WORKING_DIRECTORY)
        stdin_redirection, stdin_file_name = reader.redirection("stdin", _INVALID_STDIN)
        stdout_redirection, stdout_file_name = reader.redirection("stdout", _INVALID_STDOUT)
        stderr_redirection, stderr_file_name = reader.redirection("stderr", _INVALID_STDERR)
        start_mode = reader.symbol("start_mode", StartMode, StartMode.NEVER)
        continue_after_error = reader.boolean("continue_after_error", False)
        start_interval = reader.integer("start_interval", 0) & _UINT32_MASK

        start_fields: Optional[str] = None
        if start_mode == StartMode.CRON:
            start_fields = reader.string("start_fields", DEFAULT_START_FIELDS)
            if not start_fields:
                log.warning("Cannot start with empty cron fields, starting never instead")
                start_fields = None
                start_mode = StartMode.NEVER

        custom_options = [
            CustomOption(name[len(CUSTOM_PREFIX):], value)
            for name, value in store.items()
            if name.lower().startswith(CUSTOM_PREFIX)
        ]

        self.executable = executable
        self.arguments = arguments
        self.environment = environment
        self.working_directory = working_directory
        self.stdin_redirection = stdin_redirection
        self.stdin_file_name = stdin_file_name
        self.stdout_redirection = stdout_redirection
        self.stdout_file_name = stdout_file_name
        self.stderr_redirection = stderr_redirection
        self.stderr_file_name = stderr_file_name
        self.start_mode = start_mode
        self.continue_after_error = continue_after_error
        self.start_interval = start_interval
        self.start_fields = start_fields
        self.custom_options = custom_options

    def save(self) -> None:
        """Write all settings to the file, keeping any unrelated options in it."""
        try:
            store = ConfigStore.read(self.filename)
        except FileNotFoundError:
            store = ConfigStore()
        except OSError as error:
            log.error("Could not read from '%s': %s", self.filename, error)
            raise

        store.set("executable", self.executable)
        _set_string_list(store, "arguments", self.arguments)
        _set_string_list(store, "environment", self.environment)
        store.set("working_directory", self.working_directory)

        for stream, redirection, file_name in (
            ("stdin", self.stdin_redirection, self.stdin_file_name),
            ("stdout", self.stdout_redirection, self.stdout_file_name),
            ("stderr", self.stderr_redirection, self.stderr_file_name),
        ):
            store.set(f"{stream}_redirection", symbol_name(redirection))
            is_file = redirection == StdioRedirection.FILE
            store.set(f"{stream}_file_name", (file_name or "") if is_file else "")

        store.set("start_mode", symbol_name(self.start_mode))
        store.set("continue_after_error", "true" if self.continue_after_error else "false")
        store.set("start_interval", format_integer(self.start_interval))
        is_cron = self.start_mode == StartMode.CRON
        store.set("start_fields", (self.start_fields or "") if is_cron else "")

        store.remove(CUSTOM_PREFIX, prefix=True)
        for option in self.custom_options:
            store.set(f"{CUSTOM_PREFIX}{option.name}", option.value)

        try:
            store.write(self.filename)
        except OSError as error:
            log.error("Could not write program config to '%s': %s", self.filename, error)
            raise