"""Size limit for tool output entering the message log."""

from __future__ import annotations

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_TOOL_OUTPUT_CHARS = 20000

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9_.-]")


def clip_tool_output(
    text: str,
    limit: int = MAX_TOOL_OUTPUT_CHARS,
    *,
    call_id: str = "call",
    spill_dir: str | Path | None = None,
) -> str:
    """Clip ``text`` to about ``limit`` characters, keeping its start and end.

    The head and tail survive with a marker between them giving how much was
    removed. With ``spill_dir`` set, the complete text is written to
    ``<spill_dir>/<call_id>.txt`` and the marker names that file.

    A ``limit`` of 0 or less disables clipping.
    """
    if limit <= 0 or len(text) <= limit:
        return text

    keep = limit // 2
    removed = len(text) - 2 * keep
    marker = f"[... {removed} of {len(text)} characters removed"

    if spill_dir is not None:
        path = Path(spill_dir) / f"{_UNSAFE_FILENAME.sub('_', call_id)}.txt"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save full tool output to %s: %s", path, e)
        else:
            marker += f"; full output in {path}"

    return f"{text[:keep]}\n{marker} ...]\n{text[len(text) - keep:]}"
