"""Command line interface for mcnotify."""
