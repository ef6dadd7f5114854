"""Name templates: resolve ${...} references against a field dict."""

from __future__ import annotations

import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_INTERP_PATTERN = re.compile(r"\$\$\{|(\$\{([^{}]+)\})")


class Resolver:
    """Resolve ${...} interpolation references against a context dict."""

    def __init__(self, context: dict[str, Any] | None = None) -> None:
        self._context = context or {}

    def _resolve_ref(self, ref: str) -> Any:
        """Resolve a dotted reference (e.g., 'env.HOME') against the context."""
        current: Any = self._context

        for part in ref.split("."):
            try:
                current = current[part]
            except (KeyError, TypeError):
                try:
                    current = getattr(current, part)
                except AttributeError:
                    raise ValueError(f"undefined template field '{ref}'") from None

        if callable(current) and not isinstance(current, type):
            current = current()

        return current

    def render(self, template: str) -> str:
        """Replace each ${ref} in template with its stringified value.

        Use $${...} for a literal ${...}.
        """
        if "${" not in template:
            return template

        def _replace(m: re.Match) -> str:  # type: ignore[type-arg]
            if m.group(0) == "$${":
                return "${"
            return str(self._resolve_ref(m.group(2).strip()))

        return _INTERP_PATTERN.sub(_replace, template)

    def render_all(self, templates: list[str]) -> list[str]:
        """Render every element of an argv-style list."""
        return [self.render(t) for t in templates]


def render(template: str, fields: dict[str, Any]) -> str:
    return Resolver(fields).render(template)
