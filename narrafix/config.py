"""Configuration model and loaders for Narrafix.

Responsibilities:
- Define formatting and security settings as immutable dataclasses.
- Provide deterministic precedence resolution for the analysis-service token.
- Provide loader entry points for file- and environment-based configuration.

Key types:
- `FormatterConfig`: settings passed explicitly into every formatting run.
- `SecuritySettings`: code-safety analysis settings and endpoint.
- `AutoMode`: which chat messages are formatted automatically.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `FormatterConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .parsing import normalize_optional_string, parse_name_list, parse_permissive_boolean


DEFAULT_ALLOWED_APIS = (
    "console",
    "Math",
    "Date",
    "JSON",
    "parseInt",
    "parseFloat",
    "isNaN",
    "isFinite",
)
DEFAULT_BLOCKED_APIS = (
    "fetch",
    "XMLHttpRequest",
    "eval",
    "Function",
    "WebSocket",
    "localStorage",
    "sessionStorage",
)
DEFAULT_ANALYSIS_ENDPOINT = "http://127.0.0.1:8000/api/plugins/js-security/analyze"
_DEFAULT_MAX_SCRIPT_LENGTH = 50000
_DEFAULT_TIMEOUT_SECONDS = 30.0
ANALYSIS_TOKEN_ENV_KEY = "NARRAFIX_ANALYSIS_TOKEN"


class AutoMode(str, Enum):
    """Message directions that are formatted without an explicit request."""

    NONE = "none"
    RESPONSES = "responses"
    INPUT = "input"
    BOTH = "both"

    @property
    def formats_incoming(self) -> bool:
        """Return whether character responses are formatted automatically."""

        return self in {AutoMode.RESPONSES, AutoMode.BOTH}

    @property
    def formats_outgoing(self) -> bool:
        """Return whether user messages are formatted automatically."""

        return self in {AutoMode.INPUT, AutoMode.BOTH}

    @classmethod
    def parse(cls, value: object) -> AutoMode:
        """Parse an auto-mode token, raising `ValueError` for unknown values."""

        if isinstance(value, AutoMode):
            return value
        normalized = normalize_optional_string(value)
        if normalized is None:
            return cls.NONE
        try:
            return cls(normalized.lower())
        except ValueError as exc:
            supported = ", ".join(mode.value for mode in cls)
            raise ValueError(
                f"Unsupported auto mode `{normalized}`; supported: {supported}."
            ) from exc


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        secure: Values loaded from secure local credential storage.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SecuritySettings:
    """Settings sent to, and used to reach, the code-safety analysis service.

    Attributes:
        enabled: Whether scripts are analyzed at all. When disabled every
            snippet is approved unchanged.
        allowed_apis: API names the analyzer should allow.
        blocked_apis: API names the analyzer should reject.
        max_script_length: Maximum accepted snippet length in characters.
        allow_obfuscation: Whether obfuscated code is acceptable.
        endpoint: Analysis endpoint URL.
        timeout_seconds: Request timeout for one analysis call.
    """

    enabled: bool = True
    allowed_apis: tuple[str, ...] = DEFAULT_ALLOWED_APIS
    blocked_apis: tuple[str, ...] = DEFAULT_BLOCKED_APIS
    max_script_length: int = _DEFAULT_MAX_SCRIPT_LENGTH
    allow_obfuscation: bool = False
    endpoint: str = DEFAULT_ANALYSIS_ENDPOINT
    timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS

    def validate(self) -> None:
        """Validate security settings values."""

        if self.max_script_length <= 0:
            raise ValueError("`max_script_length` must be a positive integer.")
        if self.timeout_seconds <= 0:
            raise ValueError("`timeout_seconds` must be a positive number.")
        if not isinstance(self.endpoint, str) or not self.endpoint.strip():
            raise ValueError("`endpoint` must be a non-empty string.")


@dataclass(frozen=True, slots=True)
class FormatterConfig:
    """Immutable configuration for formatting chat messages.

    Attributes:
        auto_mode: Message directions formatted automatically.
        enable_markdown_simplification: Run the narrative/quote normalizer.
        wrap_narrative: Wrap narrative spans in emphasis markers.
        strip_speaker_prefix: Remove a leading `Author:` label.
        include_html: Render and sanitize message HTML after normalization.
        include_code_blocks: Render markup written inside fenced code blocks.
        security: Code-safety analysis settings.
    """

    auto_mode: AutoMode = AutoMode.NONE
    enable_markdown_simplification: bool = True
    wrap_narrative: bool = True
    strip_speaker_prefix: bool = False
    include_html: bool = False
    include_code_blocks: bool = True
    security: SecuritySettings = field(default_factory=SecuritySettings)

    def validate(self) -> None:
        """Validate configuration values before formatting."""

        if not isinstance(self.auto_mode, AutoMode):
            raise ValueError("`auto_mode` must be an `AutoMode` value.")
        self.security.validate()

    def with_overrides(self, **changes: Any) -> FormatterConfig:
        """Return a validated copy with selected fields replaced."""

        updated = replace(self, **changes)
        updated.validate()
        return updated

    @staticmethod
    def resolve_analysis_token(sources: RuntimeConfigSources | None = None) -> str | None:
        """Resolve the analysis-service token.

        Precedence is `cli` > `secure` > `env` > no token.
        """

        resolved_sources = sources if sources is not None else RuntimeConfigSources()
        for mapping, key in (
            (resolved_sources.cli, "analysis_token"),
            (resolved_sources.secure, "analysis_token"),
            (resolved_sources.env, ANALYSIS_TOKEN_ENV_KEY),
        ):
            if key in mapping:
                value = normalize_optional_string(mapping.get(key))
                if value is not None:
                    return value
        return None


class ConfigLoader:
    """Factory methods for creating `FormatterConfig` from external sources."""

    _SUPPORTED_YAML_KEYS = frozenset(
        {
            "auto_mode",
            "enable_markdown_simplification",
            "wrap_narrative",
            "strip_speaker_prefix",
            "include_html",
            "include_code_blocks",
            "security",
        }
    )
    _SUPPORTED_SECURITY_KEYS = frozenset(
        {
            "enabled",
            "allowed_apis",
            "blocked_apis",
            "max_script_length",
            "allow_obfuscation",
            "endpoint",
            "timeout_seconds",
        }
    )

    @staticmethod
    def from_yaml(path: Path) -> FormatterConfig:
        """Create a validated config from a YAML file."""

        path_text = path.read_text(encoding="utf-8")
        payload = yaml.safe_load(path_text)
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")

        return ConfigLoader._build_config_from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> FormatterConfig:
        """Create a validated config from `NARRAFIX_*` environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        label = "Environment"
        defaults = FormatterConfig()
        security_defaults = defaults.security

        def _flag(key: str, default: bool) -> bool:
            if key not in env_map:
                return default
            return ConfigLoader._boolean(env_map.get(key), f"variable `{key}`", label)

        security = SecuritySettings(
            enabled=_flag("NARRAFIX_ENABLE_JS_ANALYSIS", security_defaults.enabled),
            allowed_apis=(
                parse_name_list(env_map["NARRAFIX_ALLOWED_APIS"])
                if "NARRAFIX_ALLOWED_APIS" in env_map
                else security_defaults.allowed_apis
            ),
            blocked_apis=(
                parse_name_list(env_map["NARRAFIX_BLOCKED_APIS"])
                if "NARRAFIX_BLOCKED_APIS" in env_map
                else security_defaults.blocked_apis
            ),
            max_script_length=ConfigLoader._positive_int(
                env_map.get("NARRAFIX_MAX_SCRIPT_LENGTH"),
                "variable `NARRAFIX_MAX_SCRIPT_LENGTH`",
                label,
                default=security_defaults.max_script_length,
            ),
            allow_obfuscation=_flag(
                "NARRAFIX_ALLOW_OBFUSCATION", security_defaults.allow_obfuscation
            ),
            endpoint=normalize_optional_string(env_map.get("NARRAFIX_ANALYSIS_ENDPOINT"))
            or security_defaults.endpoint,
            timeout_seconds=ConfigLoader._positive_float(
                env_map.get("NARRAFIX_ANALYSIS_TIMEOUT"),
                "variable `NARRAFIX_ANALYSIS_TIMEOUT`",
                label,
                default=security_defaults.timeout_seconds,
            ),
        )

        config = FormatterConfig(
            auto_mode=AutoMode.parse(env_map.get("NARRAFIX_AUTO_MODE")),
            enable_markdown_simplification=_flag(
                "NARRAFIX_ENABLE_SIMPLIFICATION", defaults.enable_markdown_simplification
            ),
            wrap_narrative=_flag("NARRAFIX_WRAP_NARRATIVE", defaults.wrap_narrative),
            strip_speaker_prefix=_flag(
                "NARRAFIX_STRIP_SPEAKER_PREFIX", defaults.strip_speaker_prefix
            ),
            include_html=_flag("NARRAFIX_INCLUDE_HTML", defaults.include_html),
            include_code_blocks=_flag(
                "NARRAFIX_INCLUDE_CODE_BLOCKS", defaults.include_code_blocks
            ),
            security=security,
        )
        config.validate()
        return config

    @staticmethod
    def _build_config_from_mapping(
        payload: Mapping[str, Any], source_label: str
    ) -> FormatterConfig:
        """Build a validated config from a normalized mapping payload."""

        ConfigLoader._validate_keys(payload, ConfigLoader._SUPPORTED_YAML_KEYS, source_label)
        defaults = FormatterConfig()

        security_payload = payload.get("security")
        if security_payload is None:
            security_payload = {}
        if not isinstance(security_payload, Mapping):
            raise ValueError(f"{source_label} field `security` must be a mapping/object.")
        security = ConfigLoader._build_security_from_mapping(
            security_payload, f"{source_label} `security`"
        )

        def _flag(key: str, default: bool) -> bool:
            if key not in payload:
                return default
            return ConfigLoader._boolean(payload[key], f"field `{key}`", source_label)

        try:
            auto_mode = AutoMode.parse(payload.get("auto_mode"))
        except ValueError as exc:
            raise ValueError(f"{source_label} field `auto_mode`: {exc}") from exc

        config = FormatterConfig(
            auto_mode=auto_mode,
            enable_markdown_simplification=_flag(
                "enable_markdown_simplification", defaults.enable_markdown_simplification
            ),
            wrap_narrative=_flag("wrap_narrative", defaults.wrap_narrative),
            strip_speaker_prefix=_flag("strip_speaker_prefix", defaults.strip_speaker_prefix),
            include_html=_flag("include_html", defaults.include_html),
            include_code_blocks=_flag("include_code_blocks", defaults.include_code_blocks),
            security=security,
        )
        config.validate()
        return config

    @staticmethod
    def _build_security_from_mapping(
        payload: Mapping[str, Any], source_label: str
    ) -> SecuritySettings:
        """Build security settings from the nested `security` mapping."""

        ConfigLoader._validate_keys(
            payload, ConfigLoader._SUPPORTED_SECURITY_KEYS, source_label
        )
        defaults = SecuritySettings()

        def _names(key: str, default: tuple[str, ...]) -> tuple[str, ...]:
            if key not in payload:
                return default
            try:
                return parse_name_list(payload[key])
            except ValueError as exc:
                raise ValueError(f"{source_label} field `{key}`: {exc}") from exc

        enabled = defaults.enabled
        if "enabled" in payload:
            enabled = ConfigLoader._boolean(payload["enabled"], "field `enabled`", source_label)
        allow_obfuscation = defaults.allow_obfuscation
        if "allow_obfuscation" in payload:
            allow_obfuscation = ConfigLoader._boolean(
                payload["allow_obfuscation"], "field `allow_obfuscation`", source_label
            )

        return SecuritySettings(
            enabled=enabled,
            allowed_apis=_names("allowed_apis", defaults.allowed_apis),
            blocked_apis=_names("blocked_apis", defaults.blocked_apis),
            max_script_length=ConfigLoader._positive_int(
                payload.get("max_script_length"),
                "field `max_script_length`",
                source_label,
                default=defaults.max_script_length,
            ),
            allow_obfuscation=allow_obfuscation,
            endpoint=normalize_optional_string(payload.get("endpoint")) or defaults.endpoint,
            timeout_seconds=ConfigLoader._positive_float(
                payload.get("timeout_seconds"),
                "field `timeout_seconds`",
                source_label,
                default=defaults.timeout_seconds,
            ),
        )

    @staticmethod
    def _validate_keys(
        payload: Mapping[str, Any], supported: frozenset[str], source_label: str
    ) -> None:
        """Reject unknown keys in a config mapping."""

        unknown = sorted(str(key) for key in set(payload).difference(supported))
        if unknown:
            key_list = ", ".join(unknown)
            raise ValueError(f"{source_label} includes unsupported key(s): {key_list}.")

    @staticmethod
    def _boolean(raw_value: object, field_label: str, source_label: str) -> bool:
        """Parse a boolean value or raise a labelled `ValueError`."""

        parsed = parse_permissive_boolean(raw_value)
        if parsed is None:
            raise ValueError(
                f"{source_label} {field_label} must be a boolean value "
                "(`true`/`false`, `1`/`0`, `yes`/`no`)."
            )
        return parsed

    @staticmethod
    def _positive_int(
        raw_value: object, field_label: str, source_label: str, default: int
    ) -> int:
        """Parse an optional positive integer, falling back to `default` when blank."""

        if isinstance(raw_value, bool):
            raise ValueError(f"{source_label} {field_label} must be a positive integer.")
        if isinstance(raw_value, int):
            parsed = raw_value
        else:
            normalized = normalize_optional_string(raw_value)
            if normalized is None:
                return default
            try:
                parsed = int(normalized)
            except ValueError as exc:
                raise ValueError(
                    f"{source_label} {field_label} must be a positive integer."
                ) from exc

        if parsed <= 0:
            raise ValueError(f"{source_label} {field_label} must be a positive integer.")
        return parsed

    @staticmethod
    def _positive_float(
        raw_value: object, field_label: str, source_label: str, default: float
    ) -> float:
        """Parse an optional positive number, falling back to `default` when blank."""

        if isinstance(raw_value, bool):
            raise ValueError(f"{source_label} {field_label} must be a positive number.")
        if isinstance(raw_value, (int, float)):
            parsed = float(raw_value)
        else:
            normalized = normalize_optional_string(raw_value)
            if normalized is None:
                return default
            try:
                parsed = float(normalized)
            except ValueError as exc:
                raise ValueError(
                    f"{source_label} {field_label} must be a positive number."
                ) from exc

        if parsed <= 0:
            raise ValueError(f"{source_label} {field_label} must be a positive number.")
        return parsed
