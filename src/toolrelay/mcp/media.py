"""Post-processing of tool results that carry binary payloads.

Tool servers can return images inline as base64. Passing them back to the
model verbatim wastes context, so a ``ResultProcessor`` may rewrite such
results before the registry returns them. ``ImageExtractor`` saves image
parts to disk and leaves a text reference in their place.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Protocol, runtime_checkable

from toolrelay.mcp.types import ToolResult

_log = logging.getLogger("toolrelay.mcp.media")


@runtime_checkable
class ResultProcessor(Protocol):
    """Optional collaborator that rewrites raw tool results."""

    def matches(self, result: ToolResult) -> bool: ...

    async def process(self, session_key: str, result: ToolResult) -> ToolResult: ...


def _extension_for(mime_type: str | None) -> str:
    if mime_type:
        guessed = mimetypes.guess_extension(mime_type)
        if guessed:
            return guessed
    return ".bin"


class ImageExtractor:
    """Saves inline image parts under ``<output_dir>/<session digest>/``.

    Session keys are opaque, so the directory is named by a SHA-256 digest of
    the key rather than the key itself. Files are named by random UUID.
    """

    def __init__(self, output_dir: Path | str) -> None:
        self.output_dir = Path(output_dir)

    def session_dir(self, session_key: str) -> Path:
        return self.output_dir / hashlib.sha256(session_key.encode("utf-8")).hexdigest()

    def matches(self, result: ToolResult) -> bool:
        return any(part.get("type") == "image" and part.get("data") for part in result.content)

    async def process(self, session_key: str, result: ToolResult) -> ToolResult:
        """Decode every image part, then write them all.

        Raises:
            ValueError: If any image part is not valid base64; nothing is
                written in that case
        """
        target_dir = self.session_dir(session_key)

        content = []
        pending: list[tuple[Path, bytes]] = []
        for part in result.content:
            if part.get("type") != "image" or not part.get("data"):
                content.append(part)
                continue

            mime_type = part.get("mimeType") or part.get("mime_type")
            data = base64.b64decode(part["data"], validate=True)
            path = target_dir / f"{uuid.uuid4().hex}{_extension_for(mime_type)}"
            pending.append((path, data))
            content.append({"type": "text", "text": f"[Image saved to {path}]"})

        await asyncio.to_thread(_write_files, target_dir, pending)

        _log.debug("Extracted %d image(s) for session %s", len(pending), session_key)
        return ToolResult(
            content=content,
            is_error=result.is_error,
            structured_content=result.structured_content,
            saved_files=[*result.saved_files, *(str(path) for path, _ in pending)],
        )


def _write_files(target_dir: Path, files: list[tuple[Path, bytes]]) -> None:
    target_dir.mkdir(parents=True, exist_ok=True)
    for path, data in files:
        path.write_bytes(data)
