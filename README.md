# redapid

Building blocks for a daemon that runs user-defined programs. The package
keeps each program's settings in a `program.conf` file, lays out the
program's `bin/` and `log/` directories, and opens the files a program's
standard streams are connected to. It has no dependencies outside the
standard library.

## Modules

- `redapid.string_object`: `StringObject` is a byte string that can be
  locked against changes. Create one with `StringObject.wrap(text)` or
  `StringObject.allocate(reserve, buffer)` (the initial buffer is cut to
  58 bytes). `set_chunk(offset, buffer)` writes up to 58 bytes and pads any
  gap with spaces; `get_chunk(offset)` returns up to 63 bytes. `truncate`,
  `get_length`, `lock`, `unlock`, the `locked()` context manager and
  `signature()` complete it. Changing a locked string raises
  `ObjectLockedError`; bad lengths or offsets raise `OutOfRangeError`. Both
  derive from `ObjectError`.
- `redapid.session`: `Session` tracks external references to objects and
  expires after its lifetime (at most 3600 seconds; zero means it never
  expires on its own). Use `keep_alive`, `is_expired`, `expire`,
  `add_external_reference`, `remove_external_reference`,
  `external_reference_count` and `close`, or use it as a context manager.
  A lifetime out of range raises `SessionLifetimeError`.
- `redapid.config_values`: `ConfigStore` reads and writes an ordered
  `name = value` file, keeping comments, matching names without regard to
  case and replacing the file atomically on `write`. The helpers
  `format_integer`, `parse_integer` (binary `0b…`, hex, octal and decimal),
  `parse_boolean`, `parse_symbol` and `symbol_name` convert option values.
  The enums `StdioRedirection` and `StartMode` live here.
- `redapid.program_config`: `ProgramConfig` holds a program's executable,
  arguments, environment, working directory, stdio redirections and file
  names, start mode, `continue_after_error`, start interval, cron fields and
  `custom.*` options (`CustomOption`). `load()` reads the file, falling back
  to defaults for invalid values; `save()` writes the settings back and
  keeps unrelated options.
- `redapid.scheduler_paths`: `prepare_paths(root, config)` returns the
  absolute paths below `<root>/bin` as `SchedulerPaths`;
  `create_directories(paths)` creates the working directory and the
  directories of output files; `create_program_directories(root)` creates
  `<root>/bin` and `<root>/log`. Failures raise `SchedulerError`.
- `redapid.scheduler_io`: `open_stdin`, `open_stdout` and `open_stderr` open
  `/dev/null`, a pipe (stdin only), a plain file, an individual timestamped
  log (`open_individual_log`, named by `individual_log_name`) or a
  continuous log with a header per run (`open_continuous_log`,
  `continuous_log_header`). stderr may share the stdout file.
- `redapid.socat`: `Socat` collects one fixed-size notification from a
  socket, either through `handle_receive()` or by calling `feed(data)`, and
  hands it to a callback.

## Example

```python
from redapid.program_config import ProgramConfig
from redapid.config_values import StartMode

config = ProgramConfig("/home/tf/programs/demo/program.conf")
config.load()
config.start_mode = StartMode.INTERVAL
config.start_interval = 60
config.save()
```

## What it does not do

The package does not start or watch program processes. It records the
start mode, interval and cron fields, but nothing here acts on them: there
is no scheduler, timer, cron handling or event loop, and no command to run.

## Running the tests

```
pip install .[test]
pytest
```