"""
Node Notes - advisory descriptions attached to canvas nodes.
A note is persisted inside the action config under `_aiNote` together with a
hash of the config it describes, so the editor can tell when it went stale.
"""

import json
import hashlib
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from pydantic import BaseModel, Field

NOTE_KEY = "_aiNote"


class NodeNote(BaseModel):
    content: str = ""
    config_hash: Optional[str] = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> Dict[str, Any]:
        """Persisted form, as stored in an action config."""
        return {"content": self.content, "configHash": self.config_hash}


def config_hash(config: Dict[str, Any]) -> str:
    """Stable short hash of a node config, ignoring any attached note."""
    stripped = {k: v for k, v in config.items() if k != NOTE_KEY}
    raw = json.dumps(stripped, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:12]


def note_from_config(config: Dict[str, Any]) -> Optional[NodeNote]:
    payload = config.get(NOTE_KEY)
    if not isinstance(payload, dict) or not payload.get("content"):
        return None
    return NodeNote(content=str(payload["content"]), config_hash=payload.get("configHash"))


def note_payload(note: Any) -> Optional[Dict[str, Any]]:
    """Persistable payload for a note, or None unless it has content and a hash."""
    if isinstance(note, NodeNote):
        note = note.to_payload()
    if not isinstance(note, dict):
        return None
    content = note.get("content")
    digest = note.get("configHash") or note.get("config_hash")
    if not content or not digest:
        return None
    return {"content": content, "configHash": digest}


def is_stale(note: Optional[NodeNote], config: Dict[str, Any]) -> bool:
    if note is None or not note.config_hash:
        return True
    return note.config_hash != config_hash(config)


def presentation_note(note: Any, config: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Canvas form of a note: the persisted payload plus a `stale` flag
    computed against the node's current config."""
    if isinstance(note, dict):
        if not note.get("content"):
            return None
        note = NodeNote(content=str(note["content"]), config_hash=note.get("configHash"))
    if not isinstance(note, NodeNote):
        return None
    payload = note.to_payload()
    payload["stale"] = is_stale(note, config)
    return payload
