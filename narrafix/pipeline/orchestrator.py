"""Message formatting orchestration.

Responsibilities:
- Decide per message whether the normalizer and HTML post-processing run.
- Persist normalized text before any HTML work starts, so analysis failures
  never leave a half-applied message behind.
- Map stage failures to `FormatStageError` diagnostics.

Key types:
- `MessagePipeline`: orchestration facade over a `MessageStore`.
"""

from __future__ import annotations

from collections.abc import Iterable
import threading

from ..config import FormatterConfig
from ..errors import FormatStageError
from ..io.chat_store import MessageStore
from ..markup.render import NarrativeFormatter, format_narrative_html, render_with_markup
from ..markup.sanitizer import ScriptSanitizer
from ..markup.security import AnalysisCancelledError, ScriptSecurityAnalyzer
from ..models.datatypes import ChatMessage, MessageResult, SanitizedHtml
from ..telemetry.logger import RunLogger
from ..text.normalizer import normalize
from .telemetry import PipelineTelemetryMixin, StageProgressCallback


class MessagePipeline(PipelineTelemetryMixin):
    """Format chat messages held by a host message store."""

    def __init__(
        self,
        config: FormatterConfig,
        store: MessageStore,
        *,
        analyzer: ScriptSecurityAnalyzer | None = None,
        formatter: NarrativeFormatter = format_narrative_html,
        run_logger: RunLogger | None = None,
        stage_progress_callback: StageProgressCallback | None = None,
        api_token: str | None = None,
    ) -> None:
        """Initialize the pipeline with explicit configuration and collaborators."""

        config.validate()
        self.config = config
        self.store = store
        self.formatter = formatter
        self.api_token = api_token
        self._analyzer = analyzer
        self._run_logger = run_logger
        self._stage_progress_callback = stage_progress_callback

    @property
    def analyzer(self) -> ScriptSecurityAnalyzer:
        """Return the script analyzer, creating one from config on first use."""

        if self._analyzer is None:
            self._analyzer = ScriptSecurityAnalyzer(
                self.config.security, api_token=self.api_token
            )
        return self._analyzer

    def should_auto_format(self, message: ChatMessage) -> bool:
        """Return whether the configured auto mode covers `message`."""

        if message.is_user:
            return self.config.auto_mode.formats_outgoing
        return self.config.auto_mode.formats_incoming

    def format_message(
        self,
        message_id: int,
        *,
        cancel_event: threading.Event | None = None,
    ) -> MessageResult:
        """Normalize, persist and optionally render one message.

        Raises:
            FormatStageError: When the message is missing or a stage fails.
            AnalysisCancelledError: When `cancel_event` is set during analysis.
        """

        message = self._run_stage("load", message_id, lambda: self._load(message_id))
        original_text = message.text
        text = original_text
        changed = False

        if self.config.enable_markdown_simplification:
            speaker_name = message.author_name if self.config.strip_speaker_prefix else None
            text = self._run_stage(
                "normalize",
                message_id,
                lambda: normalize(original_text, self.config.wrap_narrative, speaker_name),
            )
            if text != original_text:
                self._run_stage("persist", message_id, lambda: self._persist(message_id, text))
                changed = True

        rendered: SanitizedHtml | None = None
        if self.config.include_html:
            html = self._run_stage("render", message_id, lambda: self._render(message_id, text))
            rendered = self._run_stage(
                "sanitize",
                message_id,
                lambda: self._sanitize(message_id, html, cancel_event),
            )

        return MessageResult(
            message_id=message_id,
            original_text=original_text,
            text=text,
            changed=changed,
            rendered=rendered,
        )

    def format_chat(
        self,
        message_ids: Iterable[int] | None = None,
        *,
        auto_only: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> list[MessageResult]:
        """Format the selected messages (all by default) in chat order.

        With `auto_only`, messages outside the configured auto mode are skipped.
        """

        selected = list(message_ids) if message_ids is not None else self.store.message_ids()
        results: list[MessageResult] = []
        for message_id in selected:
            if auto_only:
                message = self.store.get_message(message_id)
                if message is None or not self.should_auto_format(message):
                    continue
            results.append(self.format_message(message_id, cancel_event=cancel_event))
        return results

    def _load(self, message_id: int) -> ChatMessage:
        """Load a message or raise a stage error when it does not exist."""

        message = self.store.get_message(message_id)
        if message is None:
            raise FormatStageError(
                stage="load",
                detail=f"Message with ID {message_id} not found.",
                hint="Check the message id against the chat length.",
            )
        return message

    def _persist(self, message_id: int, text: str) -> None:
        """Store the new text and flush the store."""

        try:
            self.store.set_message(message_id, text)
            self.store.persist()
        except (OSError, KeyError) as exc:
            raise FormatStageError(
                stage="persist",
                detail=f"Failed to save message {message_id}: {exc}",
                hint="Verify the chat file is writable.",
            ) from exc

    def _render(self, message_id: int, text: str) -> str:
        """Render message text around its markup blocks."""

        try:
            return render_with_markup(
                text,
                self.formatter,
                include_code_blocks=self.config.include_code_blocks,
            )
        except Exception as exc:
            raise FormatStageError(
                stage="render",
                detail=f"Failed to render message {message_id}: {exc}",
            ) from exc

    def _sanitize(
        self,
        message_id: int,
        html: str,
        cancel_event: threading.Event | None,
    ) -> SanitizedHtml:
        """Strip and vet scripts in rendered HTML."""

        try:
            return ScriptSanitizer(self.analyzer).sanitize(
                html, message_id, cancel_event=cancel_event
            )
        except AnalysisCancelledError:
            raise
        except Exception as exc:
            raise FormatStageError(
                stage="sanitize",
                detail=f"Failed to sanitize HTML for message {message_id}: {exc}",
                hint="Check that the analysis endpoint is configured correctly.",
            ) from exc
