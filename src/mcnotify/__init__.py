"""mcnotify - Modrinth/CurseForge update notifications for chat channels."""

__version__ = "0.1.0"
