"""Metadata describing a registered command."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CommandInfo:
    """Bindings, description and usage example of a command.

    The first binding is the primary one; the rest are aliases.
    """

    bindings: tuple[str, ...]
    description: str
    example: str

    @property
    def primary(self) -> str:
        return self.bindings[0] if self.bindings else ""

    @property
    def aliases(self) -> tuple[str, ...]:
        return self.bindings[1:]

    def sort_key(self) -> str:
        return self.primary.lower()
