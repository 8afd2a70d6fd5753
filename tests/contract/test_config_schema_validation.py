from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest
import yaml

"""Config schema contract: the shipped sample config validates, unknown keys do not."""

ROOT = Path(__file__).resolve().parents[2]
SCHEMA_PATH = ROOT / "gas_attendance" / "config" / "config_schema.json"
SAMPLE_CONFIG = ROOT / "config" / "dashboard.yml"


@pytest.fixture()
def schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_sample_config_is_valid(schema: dict):
    jsonschema.validate(yaml.safe_load(SAMPLE_CONFIG.read_text(encoding="utf-8")), schema)


@pytest.mark.parametrize("doc", [
    {"unknown": 1},
    {"endpoint": {"url": "x"}},
    {"attendance": {"rank_size": 2.5}},
    {"cache_ttl_seconds": {"login": 10}},
])
def test_schema_rejects(schema: dict, doc: dict):
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(doc, schema)
