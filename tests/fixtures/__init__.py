"""Test fixtures: sample entity metadata as JSON."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Literal

from sqlforge.schema.columns import EntityMeta

_FIXTURES_DIR = Path(__file__).parent


@lru_cache(maxsize=None)
def _raw_entities() -> dict:
    return json.loads((_FIXTURES_DIR / "entities.json").read_text())


def load_entity(name: Literal["todo", "users"]) -> EntityMeta:
    """Load one sample EntityMeta from entities.json.

    Args:
        name: ``'todo'`` (Id, Title, Description, IsCompleted) or ``'users'``.
    """
    return EntityMeta.model_validate(_raw_entities()[name])
