"""Call-time compression of conversation history.

Only the outbound copy is shrunk; stored turns are never touched.
"""

from __future__ import annotations

import re
from dataclasses import replace

from loguru import logger

from zaycode.core.types import ERROR_MARKER, ConversationTurn

PROTECTED_RECENT = 3
COMPRESS_THRESHOLD = 500
ELIDE_THRESHOLD = 2000
ELIDE_MIN_LINES = 50
HEAD_LINES = 10
TAIL_LINES = 10
ELISION_MARKER = "\n\n... [compressed] ...\n\n"
_BLANK_RUN = re.compile(r"\n{3,}")


def compress_content(content: str) -> str:
    """Shrink one oversized turn body."""
    if len(content) < COMPRESS_THRESHOLD:
        return content

    compressed = _BLANK_RUN.sub("\n\n", content)
    if len(compressed) > ELIDE_THRESHOLD and not compressed.startswith(ERROR_MARKER):
        lines = compressed.split("\n")
        if len(lines) > ELIDE_MIN_LINES:
            compressed = "\n".join(lines[:HEAD_LINES]) + ELISION_MARKER + "\n".join(lines[-TAIL_LINES:])
    return compressed


def _is_protected(turn: ConversationTurn) -> bool:
    return turn.role == "user" or turn.is_tool_error


def compress_history(turns: list[ConversationTurn]) -> list[ConversationTurn]:
    """Return compressed copies of ``turns`` for one outbound request."""
    cutoff = len(turns) - PROTECTED_RECENT
    result: list[ConversationTurn] = []
    before = after = 0
    for index, turn in enumerate(turns):
        before += len(turn.content)
        if index >= cutoff or _is_protected(turn):
            result.append(turn)
            after += len(turn.content)
            continue
        content = compress_content(turn.content)
        after += len(content)
        result.append(turn if content == turn.content else replace(turn, content=content))

    if before and (saved := round((1 - after / before) * 100)) > 5:
        logger.info("memory.compressed reduced_by={}%", saved)
    return result
