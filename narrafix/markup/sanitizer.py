"""Script and inline event-handler sanitization for rendered message HTML.

Responsibilities:
- Strip every `<script>` element from rendered markup.
- Keep analyzer-approved script code aside for the host to execute.
- Rewrite or drop inline event handlers according to the analyzer verdict.
"""

from __future__ import annotations

import threading

from bs4 import BeautifulSoup
from loguru import logger

from ..models.datatypes import SanitizedHtml, SecurityViolation
from .security import ScriptSecurityAnalyzer


DANGEROUS_EVENT_HANDLERS = frozenset(
    {
        "onabort",
        "onafterprint",
        "onbeforeprint",
        "onbeforeunload",
        "onblur",
        "oncanplay",
        "oncanplaythrough",
        "onchange",
        "onclick",
        "oncontextmenu",
        "oncopy",
        "oncuechange",
        "oncut",
        "ondblclick",
        "ondrag",
        "ondragend",
        "ondragenter",
        "ondragleave",
        "ondragover",
        "ondragstart",
        "ondrop",
        "ondurationchange",
        "onemptied",
        "onended",
        "onerror",
        "onfocus",
        "onformchange",
        "onforminput",
        "onhashchange",
        "oninput",
        "oninvalid",
        "onkeydown",
        "onkeypress",
        "onkeyup",
        "onload",
        "onloadeddata",
        "onloadedmetadata",
        "onloadstart",
        "onmessage",
        "onmousedown",
        "onmousemove",
        "onmouseout",
        "onmouseover",
        "onmouseup",
        "onmousewheel",
        "onoffline",
        "ononline",
        "onpagehide",
        "onpageshow",
        "onpaste",
        "onpause",
        "onplay",
        "onplaying",
        "onpopstate",
        "onprogress",
        "onratechange",
        "onreadystatechange",
        "onredo",
        "onresize",
        "onscroll",
        "onseeked",
        "onseeking",
        "onselect",
        "onstalled",
        "onstorage",
        "onsubmit",
        "onsuspend",
        "ontimeupdate",
        "onundo",
        "onunload",
        "onvolumechange",
        "onwaiting",
        "onwheel",
    }
)


class ScriptSanitizer:
    """Remove scripts from rendered HTML and vet inline handler code."""

    def __init__(self, analyzer: ScriptSecurityAnalyzer) -> None:
        """Initialize with the analyzer used for every snippet."""

        self.analyzer = analyzer

    def sanitize(
        self,
        html: str,
        message_id: int,
        *,
        cancel_event: threading.Event | None = None,
    ) -> SanitizedHtml:
        """Return sanitized markup, approved script code and collected violations."""

        soup = BeautifulSoup(html, "html.parser")
        executable_scripts: list[str] = []
        violations: list[SecurityViolation] = []

        for script in soup.find_all("script"):
            code = "".join(str(child) for child in script.contents)
            source = script.get("src")

            if source:
                logger.warning(
                    "External script sources are not supported for security reasons: {}",
                    source,
                )
                script.decompose()
                continue
            if not code.strip():
                script.decompose()
                continue

            analysis = self.analyzer.analyze_script(code, cancel_event=cancel_event)
            script.decompose()
            violations.extend(analysis.violations)

            if analysis.rejected:
                logger.error(
                    "Blocked unsafe JavaScript in message {}: {}",
                    message_id,
                    "; ".join(item.message for item in analysis.violations) or "no details",
                )
                continue

            executable_scripts.append(analysis.sanitized_code)
            for warning in analysis.warnings():
                logger.warning(
                    "JavaScript security warning [{}]: type={} position={}:{} node={} {}",
                    message_id,
                    warning.type,
                    warning.position.row,
                    warning.position.col,
                    warning.node,
                    warning.message,
                )
            if analysis.violations:
                logger.info(
                    "JavaScript approved with {} security findings for message {}",
                    len(analysis.violations),
                    message_id,
                )

        violations.extend(self._sanitize_event_handlers(soup, cancel_event))

        return SanitizedHtml(
            html=str(soup),
            executable_scripts=tuple(executable_scripts),
            violations=tuple(violations),
        )

    def _sanitize_event_handlers(
        self,
        soup: BeautifulSoup,
        cancel_event: threading.Event | None,
    ) -> list[SecurityViolation]:
        """Analyze inline handler attributes on every element."""

        violations: list[SecurityViolation] = []
        for element in soup.find_all(True):
            tag_label = f"<{element.name.lower()}>"
            for attribute in list(element.attrs):
                attribute_name = attribute.lower()
                if attribute_name not in DANGEROUS_EVENT_HANDLERS:
                    continue
                raw_value = element.attrs[attribute]
                handler_code = (
                    " ".join(raw_value) if isinstance(raw_value, list) else str(raw_value)
                ).strip()
                if not handler_code:
                    continue

                analysis = self.analyzer.analyze_script(handler_code, cancel_event=cancel_event)
                if analysis.rejected:
                    del element.attrs[attribute]
                    verb = "Removed"
                elif analysis.sanitized_code != handler_code:
                    element.attrs[attribute] = analysis.sanitized_code
                    verb = "Sanitized"
                else:
                    continue

                violations.extend(
                    item.retagged(
                        type=f"inline_event_handler:{attribute_name}",
                        node=tag_label,
                        message=f"{verb} {attribute_name} event handler: {item.message}",
                    )
                    for item in analysis.violations
                )
        return violations
