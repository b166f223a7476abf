"""Provider-specific argument shape fixes.

A short, name-keyed list of renames for documented provider quirks. This is
not a general rewriting layer; add an entry only for a known, reproducible
provider behavior.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from toolrelay.tools.models import is_chatgpt_model

_log = logging.getLogger("toolrelay.tools.compat")


@dataclass(frozen=True)
class ArgumentRename:
    """Rename ``source`` to ``target`` for one tool and one model family.

    Applied only when ``source`` is present and ``target`` is not.
    """

    tool_name: str
    source: str
    target: str
    applies_to: Callable[[str], bool]

    def apply(self, tool_name: str, model_id: str, arguments: Any) -> Any:
        if tool_name != self.tool_name or not isinstance(arguments, dict):
            return arguments
        if not self.applies_to(model_id):
            return arguments
        if arguments.get(self.source) is None or arguments.get(self.target) is not None:
            return arguments

        _log.info(
            "Renaming %r to %r for %s on %s (keys: %s)",
            self.source,
            self.target,
            tool_name,
            model_id,
            sorted(arguments),
        )
        fixed = {k: v for k, v in arguments.items() if k != self.source}
        fixed[self.target] = arguments[self.source]
        return fixed


DEFAULT_ARGUMENT_FIXES: tuple[ArgumentRename, ...] = (
    # GPT models send call_tool's nested payload as "args"
    ArgumentRename(
        tool_name="call_tool",
        source="args",
        target="arguments",
        applies_to=is_chatgpt_model,
    ),
)


def apply_argument_fixes(
    tool_name: str,
    model_id: str,
    arguments: Any,
    fixes: Iterable[ArgumentRename] = DEFAULT_ARGUMENT_FIXES,
) -> Any:
    for fix in fixes:
        arguments = fix.apply(tool_name, model_id, arguments)
    return arguments
