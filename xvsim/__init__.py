"""In-memory model of a teaching kernel's file system, buffer cache, log, pipes and tools."""

__version__ = "0.1.0"

__all__ = [
    "console",
    "disk",
    "dlist",
    "file",
    "fmt",
    "fs",
    "grep",
    "keyboard",
    "layout",
    "log",
    "mkfs",
    "tools",
]