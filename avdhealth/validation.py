"""
Design (validation.py)
- Purpose: Gate acceptance of an externally supplied settings document (import) before it
           is deserialized and persisted.
- Inputs: A decoded JSON value (dict expected).
- Outputs: List of (path, message) pairs; empty list means the document is acceptable.
- Side effects: None.
- Thread-safety: Stateless.

The SettingsFile pydantic model is the schema. Validation runs in strict JSON mode so
values of the wrong JSON type are rejected instead of coerced ("10" is not an integer).
Missing fields are fine: every field has a default, so {} is a valid document.
"""

import json
from typing import Any, List, Tuple

import pydantic

from .errors import ValidationError
from .models import SettingsFile


def _pointer(loc: Tuple[Any, ...]) -> str:
    return "/" + "/".join(str(part) for part in loc)


def validate_settings(document: Any) -> List[Tuple[str, str]]:
    """
    Purpose: Check `document` against the settings schema.
    Outputs: [] when valid, else one (json-pointer path, message) per problem.
    """
    if not isinstance(document, dict):
        return [("/", f"expected a JSON object, got {type(document).__name__}")]
    try:
        SettingsFile.model_validate_json(json.dumps(document), strict=True)
    except pydantic.ValidationError as exc:
        return [(_pointer(err["loc"]), err["msg"]) for err in exc.errors()]
    return []


def ensure_valid(document: Any) -> None:
    """Raise ValidationError carrying every (path, message) when `document` is rejected."""
    errors = validate_settings(document)
    if errors:
        raise ValidationError(errors)
