"""Host message-store interface and a chat-file implementation.

Responsibilities:
- Define the message access contract used by the formatting pipeline.
- Read and write JSONL chat files (one header line, one message per line),
  keeping unknown message fields intact.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
import tempfile
from typing import Any, Protocol

from ..models.datatypes import ChatMessage


class MessageStore(Protocol):
    """Protocol for host chat storage used by the formatting pipeline."""

    def get_message(self, message_id: int) -> ChatMessage | None:
        """Return the message at `message_id`, or `None` when missing."""

    def set_message(self, message_id: int, text: str) -> None:
        """Replace the text of an existing message."""

    def persist(self) -> None:
        """Write pending changes to durable storage."""

    def message_ids(self) -> list[int]:
        """Return all message ids in chat order."""


class InMemoryMessageStore:
    """Message store kept in process memory."""

    def __init__(self, messages: list[ChatMessage] | None = None) -> None:
        """Initialize with messages whose ids are their list positions."""

        self._messages: dict[int, ChatMessage] = {
            message.message_id: message for message in messages or []
        }
        self.persist_count = 0

    def get_message(self, message_id: int) -> ChatMessage | None:
        """Return the message at `message_id`, or `None` when missing."""

        return self._messages.get(message_id)

    def set_message(self, message_id: int, text: str) -> None:
        """Replace the text of an existing message."""

        current = self._messages.get(message_id)
        if current is None:
            raise KeyError(f"Message with ID {message_id} not found.")
        self._messages[message_id] = ChatMessage(
            message_id=message_id,
            text=text,
            author_name=current.author_name,
            is_user=current.is_user,
        )

    def persist(self) -> None:
        """Count persist calls; memory needs no flush."""

        self.persist_count += 1

    def message_ids(self) -> list[int]:
        """Return all message ids in ascending order."""

        return sorted(self._messages)


class JsonlChatStore:
    """Chat file store: line 1 holds chat metadata, later lines hold messages.

    Message ids are 0-based positions after the header line. Each message
    object needs `name`, `is_user` and `mes`; any other fields are preserved.
    """

    def __init__(self, path: Path) -> None:
        """Load the chat file at `path`."""

        self.path = path
        self._header, self._records = self._load(path)
        self._dirty = False

    @staticmethod
    def _load(path: Path) -> tuple[dict[str, Any], list[dict[str, Any]]]:
        """Parse header and message records from a JSONL chat file."""

        lines = [line for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]
        if not lines:
            raise ValueError(f"Chat file `{path}` is empty.")

        records: list[dict[str, Any]] = []
        for line_number, line in enumerate(lines, start=1):
            try:
                payload = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(
                    f"Chat file `{path}` has invalid JSON on line {line_number}: {exc.msg}."
                ) from exc
            if not isinstance(payload, dict):
                raise ValueError(
                    f"Chat file `{path}` line {line_number} must be a JSON object."
                )
            records.append(payload)

        header, messages = records[0], records[1:]
        for line_number, message in enumerate(messages, start=2):
            if not isinstance(message.get("mes"), str):
                raise ValueError(
                    f"Chat file `{path}` line {line_number} is missing string field `mes`."
                )
        return header, messages

    def get_message(self, message_id: int) -> ChatMessage | None:
        """Return the message at `message_id`, or `None` when missing."""

        if message_id < 0 or message_id >= len(self._records):
            return None
        record = self._records[message_id]
        return ChatMessage(
            message_id=message_id,
            text=record["mes"],
            author_name=str(record.get("name") or ""),
            is_user=bool(record.get("is_user", False)),
        )

    def set_message(self, message_id: int, text: str) -> None:
        """Replace the text of an existing message."""

        if message_id < 0 or message_id >= len(self._records):
            raise KeyError(f"Message with ID {message_id} not found.")
        if self._records[message_id]["mes"] != text:
            self._records[message_id]["mes"] = text
            self._dirty = True

    def persist(self) -> None:
        """Atomically rewrite the chat file when messages changed."""

        if not self._dirty:
            return
        lines = [json.dumps(self._header, ensure_ascii=False)]
        lines.extend(json.dumps(record, ensure_ascii=False) for record in self._records)
        content = "\n".join(lines) + "\n"

        file_descriptor, temp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(file_descriptor, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(temp_name, self.path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        self._dirty = False

    def message_ids(self) -> list[int]:
        """Return all message ids in chat order."""

        return list(range(len(self._records)))
