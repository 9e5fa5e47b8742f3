"""Runs jsonschema validation for all request and event schemas."""

from pathlib import Path
import json
from jsonschema import Draft202012Validator


SCHEMA_DIR = Path(__file__).resolve().parent.parent / "auction_escrow" / "schemas"


def validate() -> list[str]:
    checked = []
    for schema in sorted(SCHEMA_DIR.glob("*.json")):
        data = json.loads(schema.read_text())
        Draft202012Validator.check_schema(data)
        checked.append(schema.stem)
    return checked


if __name__ == "__main__":
    validate()
