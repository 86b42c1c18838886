"""Interactive layout document editor."""

from .commands import CommandError, CommandInterpreter, Reply, parse_transaction
from .session import EditorSession

__all__ = [
    "CommandError",
    "CommandInterpreter",
    "EditorSession",
    "Reply",
    "parse_transaction",
]
