"""Command dispatchers: the boundary to whatever runs commands."""

from .base import CommandDispatcher, DistroInspector
from .http import HttpDispatcher
from .local import DryRunRunner, FileDispatcher
from .probe import DistroProbe

__all__ = [
    "CommandDispatcher",
    "DistroInspector",
    "HttpDispatcher",
    "DryRunRunner",
    "FileDispatcher",
    "DistroProbe",
]
