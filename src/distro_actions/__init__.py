"""distro-actions: custom actions and startup sequences for WSL distributions."""

__version__ = "0.1.0"
