"""Program configuration files, stdio and log file handling, sessions and string objects for a program-running daemon."""

__version__ = "0.1.0"