"""Chat log parser for JSON Lines transcripts.

Each line of a chat log is one JSON object.  Message lines carry a body
(``mes``, ``message`` or ``text``) plus ``name``, ``is_user`` and
``is_system``; a header line with chat metadata and no body is skipped.
Lines that are not valid JSON objects, or fail validation, are reported as
:class:`~stage_presence.models.transcript.ParseWarning` entries instead of
aborting the parse.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from stage_presence.exceptions import ChatLogError
from stage_presence.models.transcript import (
    ChatLogParseResult,
    Message,
    ParseWarning,
    Transcript,
)

logger = logging.getLogger(__name__)

_BODY_KEYS = ("mes", "message", "text")


def parse_chat_log(text: str, source: str = "<string>") -> ChatLogParseResult:
    """Parse a JSON Lines chat log string into structured data.

    Args:
        text: Raw chat log, one JSON object per line.  Blank lines are
            ignored.
        source: Label for the log origin (e.g. a file path).

    Returns:
        A :class:`ChatLogParseResult` with the messages, speakers ordered by
        first appearance, and a warning for every malformed line.
    """
    if not text or not text.strip():
        return ChatLogParseResult(source=source)

    messages: list[Message] = []
    warnings: list[ParseWarning] = []

    for line_idx, raw_line in enumerate(text.split("\n")):
        line_number = line_idx + 1
        if not raw_line.strip():
            continue

        try:
            payload = json.loads(raw_line)
        except json.JSONDecodeError as exc:
            warnings.append(
                ParseWarning(line_number, f"Invalid JSON: {exc.msg}", raw_line)
            )
            continue

        if not isinstance(payload, dict):
            warnings.append(
                ParseWarning(line_number, "Line is not a JSON object", raw_line)
            )
            continue

        # Chat header: metadata only, no message body.
        if not any(key in payload for key in _BODY_KEYS):
            logger.debug("Skipping header line %d in %s", line_number, source)
            continue

        try:
            messages.append(Message.model_validate(payload))
        except ValidationError as exc:
            warnings.append(
                ParseWarning(
                    line_number,
                    f"Invalid message: {exc.error_count()} validation error(s)",
                    raw_line,
                )
            )

    for warning in warnings:
        logger.warning(
            "Parse warning at %s:%d: %s", source, warning.line_number, warning.message
        )

    speakers = list(dict.fromkeys(m.speaker_name for m in messages if m.speaker_name))

    return ChatLogParseResult(
        transcript=Transcript(messages),
        speakers=speakers,
        warnings=warnings,
        source=source,
    )


def parse_chat_log_file(file_path: str | Path) -> ChatLogParseResult:
    """Parse a chat log file into structured data.

    Args:
        file_path: Path to the ``.jsonl`` chat log.

    Returns:
        A :class:`ChatLogParseResult` with ``source`` set to *file_path*.

    Raises:
        FileNotFoundError: If *file_path* does not exist.
        ChatLogError: If the file is not valid UTF-8 text.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Chat log not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ChatLogError(f"Chat log is not UTF-8 text: {path}", source=str(path)) from exc

    return parse_chat_log(text, source=str(path))
