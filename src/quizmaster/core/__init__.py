"""Core shared helpers for quizmaster subcommands."""

from __future__ import annotations

from .ai import DEFAULT_API_BASE, DEFAULT_API_KEY_ENV, load_client
from .logging import JsonLogFormatter, configure_logger
from .workspace import (
    WORKSPACE_ENV,
    WorkspaceError,
    WorkspaceLayout,
    ensure_workspace,
    resolve_home,
)

__all__ = [
    "DEFAULT_API_BASE",
    "DEFAULT_API_KEY_ENV",
    "load_client",
    "configure_logger",
    "JsonLogFormatter",
    "ensure_workspace",
    "resolve_home",
    "WorkspaceLayout",
    "WorkspaceError",
    "WORKSPACE_ENV",
]
