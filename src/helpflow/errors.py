"""Error types for helpflow.

Engine operations never raise for out-of-order calls; the classes here are
for CLI-visible problems (message plus an actionable hint) and for the
content-service boundary, where failures are caught by the gateway.
"""

from __future__ import annotations

import difflib
from typing import Iterable, List, Optional

import click


class HelpflowError(click.ClickException):
    """A CLI-visible error rendered as an emoji line and an optional hint."""

    emoji: str = "❌"
    hint: Optional[str] = None

    def __init__(self, message: str, hint: Optional[str] = None) -> None:
        super().__init__(message)
        if hint is not None:
            self.hint = hint

    @property
    def formatted_message(self) -> str:
        lines = [f"{self.emoji}  {click.style(self.message, fg='red', bold=True)}"]
        if self.hint:
            lines.append(click.style(f"💡 {self.hint}", fg='yellow'))
        return "\n".join(lines)

    def show(self, file=None) -> None:
        click.echo(self.formatted_message, err=True, file=file)


class ConfigError(HelpflowError):
    """The YAML configuration, environment or a tutorial catalog is unusable."""
    emoji = "🔧"

    def __init__(self, details: str):
        hint = f"Run {click.style('helpflow config init', fg='cyan')} to write a default configuration."
        super().__init__(f"Configuration problem: {details}", hint)


class ResourceNotFoundError(HelpflowError):
    """A tutorial (or other catalog entry) id that does not exist.

    When the known ids are supplied, the hint names the closest matches.
    """
    emoji = "🔍"

    def __init__(
        self,
        kind: str,
        resource_id: str,
        known: Iterable[str] = (),
        cmd: Optional[str] = None,
    ):
        self.kind = kind
        self.resource_id = resource_id
        self.suggestions: List[str] = difflib.get_close_matches(resource_id, list(known), n=3, cutoff=0.5)

        if self.suggestions:
            hint = f"Did you mean {', '.join(self.suggestions)}?"
        else:
            hint = "Double-check the id."
        if cmd:
            hint += f" Run {click.style(f'helpflow {cmd}', fg='cyan')} to list what is available."
        super().__init__(f"No {kind} named {click.style(resource_id, fg='magenta')} could be found.", hint)


class ContentServiceError(Exception):
    """Raised by content services when the collaborator cannot produce a reply.

    Never escapes the recommendation gateway.
    """


class ContentServiceUnavailable(ContentServiceError):
    """The content service is disabled or not configured."""
