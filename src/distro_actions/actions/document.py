"""Export document format and import merge rules."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Sequence

from .errors import DocumentFormatError
from .models import Action, actions_from_list

DOCUMENT_VERSION = 1


class ImportMode(str, Enum):
    MERGE = "merge"      # same id replaces, others appended
    REPLACE = "replace"  # imported collection supersedes everything

    @classmethod
    def parse(cls, value: Any) -> "ImportMode":
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.MERGE if value else cls.REPLACE
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown import mode: {value!r}") from None


def build_document(actions: Sequence[Action]) -> Dict[str, Any]:
    return {
        "version": DOCUMENT_VERSION,
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "actions": [a.to_dict() for a in actions],
    }


def dump_document(actions: Sequence[Action]) -> str:
    return json.dumps(build_document(actions), indent=2, ensure_ascii=False)


def parse_document(document: str) -> List[Action]:
    """Parse an exported document into actions.

    The whole document is validated before anything is returned, so a
    caller never sees a partial import.

    Raises:
        DocumentFormatError: if the text is not a valid export document.
    """
    try:
        payload = json.loads(document)
    except (TypeError, ValueError) as exc:
        raise DocumentFormatError(f"Failed to parse actions: {exc}") from exc

    if not isinstance(payload, dict):
        raise DocumentFormatError("Failed to parse actions: document must be a JSON object")
    version = payload.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise DocumentFormatError("Failed to parse actions: missing document version")
    if version < 1 or version > DOCUMENT_VERSION:
        raise DocumentFormatError(f"Failed to parse actions: unsupported document version {version}")

    try:
        actions = actions_from_list(payload.get("actions"))
    except ValueError as exc:
        raise DocumentFormatError(f"Failed to parse actions: {exc}") from exc

    seen = set()
    for action in actions:
        if action.id in seen:
            raise DocumentFormatError(f"Failed to parse actions: duplicate id {action.id!r}")
        seen.add(action.id)
    return actions


def merge_actions(existing: Sequence[Action], imported: Sequence[Action], mode: ImportMode) -> List[Action]:
    if mode is ImportMode.REPLACE:
        return list(imported)
    merged = list(existing)
    index = {a.id: i for i, a in enumerate(merged)}
    for action in imported:
        if action.id in index:
            merged[index[action.id]] = action
        else:
            index[action.id] = len(merged)
            merged.append(action)
    return merged
