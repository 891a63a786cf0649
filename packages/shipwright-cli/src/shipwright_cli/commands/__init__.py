"""shipwright subcommands.

Each module exposes one click command, loaded lazily by the main group.
"""
