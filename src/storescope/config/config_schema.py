"""JSON Schema-based validation for storescope YAML configuration.

The schema ships inside the package as ``storescope/config/config-schema.json``
so installed copies validate exactly like a source checkout.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft202012Validator, ValidationError

from ..errors import ConfigError

logger = logging.getLogger(__name__)

UNKNOWN_KEY_POLICIES = ("ignore", "warn", "error")


def get_default_schema_path() -> Path:
    """Brief: Resolve the JSON Schema bundled with the package.

    Inputs:
      - None.

    Outputs:
      - Path to ``config-schema.json`` next to this module.
    """

    return Path(__file__).resolve().with_name("config-schema.json")


def _load_schema(schema_path: Optional[Path] = None) -> Dict[str, Any]:
    path = schema_path or get_default_schema_path()
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _format_errors(errors: List[ValidationError], *, config_path: Optional[str]) -> str:
    """Brief: Render jsonschema errors as one line per offending path.

    Inputs:
      - errors: jsonschema.ValidationError instances.
      - config_path: Optional path of the YAML file, for the header line.

    Outputs:
      - Multi-line string suitable for logs or CLI output.
    """

    lines: List[str] = [f"Invalid configuration in {config_path or '<config dict>'}:"]
    for err in errors:
        instance_path = "/".join(str(p) for p in err.path) or "<root>"
        schema_path = "/".join(str(p) for p in err.schema_path)
        lines.append(f"- {instance_path}: {err.message} (schema: {schema_path})")
    return "\n".join(lines)


def _split_extra_property_errors(
    errors: List[ValidationError],
) -> Tuple[List[ValidationError], List[ValidationError]]:
    """Partition errors into (unexpected-property errors, everything else)."""
    extra: List[ValidationError] = []
    other: List[ValidationError] = []
    for err in errors:
        if getattr(err, "validator", None) in {"additionalProperties", "unevaluatedProperties"}:
            extra.append(err)
        else:
            other.append(err)
    return extra, other


def validate_config(
    cfg: Dict[str, Any],
    *,
    schema_path: Optional[Path] = None,
    config_path: Optional[str] = None,
    unknown_keys: str = "warn",
) -> None:
    """Brief: Validate a parsed YAML configuration mapping against JSON Schema.

    Inputs:
      - cfg: Top-level configuration mapping loaded from YAML.
      - schema_path: Optional explicit schema file (default: bundled schema).
      - config_path: Optional YAML path, used only in error messages.
      - unknown_keys: Policy for keys the schema does not describe:
        "ignore" drops them silently, "warn" (default) logs the offending
        paths, "error" makes them fatal.

    Outputs:
      - None on success.

    Raises:
      - ConfigError: on any non-extra validation failure, when unknown_keys
        is "error" and extra keys exist, when the schema cannot be loaded,
        or when ``unknown_keys`` is not a known policy.

    Example:
      >>> validate_config({"scan": {"top_n": 20}})  # does not raise
    """

    if unknown_keys not in UNKNOWN_KEY_POLICIES:
        raise ConfigError(
            f"unknown_keys policy must be 'ignore', 'warn', or 'error', got {unknown_keys!r}"
        )
    if not isinstance(cfg, dict):
        raise ConfigError(
            f"Invalid configuration in {config_path or '<config dict>'}: "
            "top level must be a mapping"
        )

    effective_schema_path = schema_path or get_default_schema_path()
    try:
        schema = _load_schema(effective_schema_path)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(
            f"cannot load configuration schema {effective_schema_path}: {exc}"
        ) from exc

    validator = Draft202012Validator(schema)
    all_errors = sorted(validator.iter_errors(cfg), key=lambda e: [str(p) for p in e.path])
    if not all_errors:
        return None

    extra_errors, other_errors = _split_extra_property_errors(all_errors)

    # Report extra keys alongside real errors so one fix pass is enough.
    if other_errors:
        raise ConfigError(_format_errors(other_errors + extra_errors, config_path=config_path))

    message = _format_errors(extra_errors, config_path=config_path)
    if unknown_keys == "ignore":
        return None
    if unknown_keys == "warn":
        logger.warning(message)
        return None
    raise ConfigError(message)
