"""Schema loading and record validation."""

import json
from functools import lru_cache
from pathlib import Path

import jsonschema

from corehill.core.errors import ValidationError

_SCHEMA_DIR = Path(__file__).parent


def load_schema(path: Path) -> dict:
    """Load a JSON Schema file and return as dict."""
    with open(path) as f:
        return json.load(f)


@lru_cache(maxsize=None)
def battle_record_schema() -> dict:
    return load_schema(_SCHEMA_DIR / "battle_record.schema.json")


def validate_battle_doc(doc: dict) -> None:
    """Raise ValidationError if ``doc`` is not a well-formed battle record."""
    try:
        jsonschema.validate(doc, battle_record_schema())
    except jsonschema.ValidationError as e:
        raise ValidationError(f"Invalid battle record: {e.message}") from e
