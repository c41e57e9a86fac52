"""
Action Tree Schema - Declarative script format for browser-automation agents.
A script document holds capabilities; each capability holds an ordered
action tree made of leaf operations and If / ForEach / While constructs.
The JSON shape is flat and tagged by "type"; these models are the typed view.
"""

import copy
from typing import Optional, Dict, List, Any, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Tags of the control-flow constructs; every other "type" is a leaf.
IF_TYPE = "if"
FOR_EACH_TYPE = "forEach"
WHILE_TYPE = "while"
LOOP_TYPES = (FOR_EACH_TYPE, WHILE_TYPE)
CONTROL_TYPES = (IF_TYPE, FOR_EACH_TYPE, WHILE_TYPE)

# Keys that hold nested bodies rather than configuration.
BODY_KEYS = ("then", "else", "do")


class LeafAction(BaseModel):
    """A single operation. `fields` holds every key except `type`, verbatim."""
    type: str
    fields: Dict[str, Any] = Field(default_factory=dict)


class IfAction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    condition: Any = None
    then: List["Action"] = Field(default_factory=list)
    else_: List["Action"] = Field(default_factory=list, alias="else")
    extra: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("then", "else_", mode="before")
    @classmethod
    def _parse_bodies(cls, v: Any) -> List[Any]:
        return _coerce_actions(v)


class ForEachAction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: Any = ""
    item_as: Any = Field(default="item", alias="itemAs")
    do: List["Action"] = Field(default_factory=list)
    extra: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("do", mode="before")
    @classmethod
    def _parse_body(cls, v: Any) -> List[Any]:
        return _coerce_actions(v)


class WhileAction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    condition: Any = None
    max_iterations: Optional[Any] = Field(default=None, alias="maxIterations")
    do: List["Action"] = Field(default_factory=list)
    extra: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("do", mode="before")
    @classmethod
    def _parse_body(cls, v: Any) -> List[Any]:
        return _coerce_actions(v)


Action = Union[IfAction, ForEachAction, WhileAction, LeafAction]

IfAction.model_rebuild()
ForEachAction.model_rebuild()
WhileAction.model_rebuild()


# ══════════════════════════════════════════════════════════════════════════════
# DICT <-> MODEL
# ══════════════════════════════════════════════════════════════════════════════

def parse_action(data: Any) -> Action:
    """Convert a flat, type-tagged action dict into its typed model.

    Never raises on well-typed JSON: a dict without a recognized control tag
    becomes a leaf, and a non-dict becomes an empty-typed leaf.
    """
    if isinstance(data, (LeafAction, IfAction, ForEachAction, WhileAction)):
        return data
    if not isinstance(data, dict):
        return LeafAction(type="", fields={"value": data})

    action_type = data.get("type")
    rest = {k: v for k, v in data.items() if k != "type"}

    if action_type == IF_TYPE:
        return IfAction(
            then=rest.get("then") or [],
            else_=rest.get("else") or [],
            **_supplied(rest, {"condition": "condition"}, ("then", "else")),
        )
    if action_type == FOR_EACH_TYPE:
        return ForEachAction(
            do=rest.get("do") or [],
            **_supplied(rest, {"source": "source", "itemAs": "item_as"}, ("do",)),
        )
    if action_type == WHILE_TYPE:
        return WhileAction(
            do=rest.get("do") or [],
            **_supplied(rest, {"condition": "condition", "maxIterations": "max_iterations"}, ("do",)),
        )
    return LeafAction(type=str(action_type) if action_type is not None else "", fields=rest)


def _supplied(data: Dict[str, Any], keys: Dict[str, str], bodies: tuple) -> Dict[str, Any]:
    """Constructor kwargs for the scalar keys present in `data`, plus the
    leftover keys as `extra`. Absent keys stay unset so they are not written back."""
    kwargs: Dict[str, Any] = {field: data[key] for key, field in keys.items() if key in data}
    kwargs["extra"] = {
        k: v for k, v in data.items() if k not in keys and k not in bodies
    }
    return kwargs


def action_to_dict(action: Action) -> Dict[str, Any]:
    """Inverse of parse_action: produce the flat JSON shape.

    Scalar keys are written only when they were supplied, so a stored
    document comes back without keys it never had.
    """
    supplied = action.model_fields_set
    if isinstance(action, IfAction):
        out: Dict[str, Any] = {"type": IF_TYPE}
        if "condition" in supplied:
            out["condition"] = copy.deepcopy(action.condition)
        out.update(copy.deepcopy(action.extra))
        out["then"] = [action_to_dict(a) for a in action.then]
        out["else"] = [action_to_dict(a) for a in action.else_]
        return out
    if isinstance(action, ForEachAction):
        out = {"type": FOR_EACH_TYPE}
        if "source" in supplied:
            out["source"] = copy.deepcopy(action.source)
        if "item_as" in supplied:
            out["itemAs"] = copy.deepcopy(action.item_as)
        out.update(copy.deepcopy(action.extra))
        out["do"] = [action_to_dict(a) for a in action.do]
        return out
    if isinstance(action, WhileAction):
        out = {"type": WHILE_TYPE}
        if "condition" in supplied:
            out["condition"] = copy.deepcopy(action.condition)
        if "max_iterations" in supplied:
            out["maxIterations"] = copy.deepcopy(action.max_iterations)
        out.update(copy.deepcopy(action.extra))
        out["do"] = [action_to_dict(a) for a in action.do]
        return out
    out = {"type": action.type}
    out.update(copy.deepcopy(action.fields))
    return out


def action_type_of(action: Action) -> str:
    if isinstance(action, IfAction):
        return IF_TYPE
    if isinstance(action, ForEachAction):
        return FOR_EACH_TYPE
    if isinstance(action, WhileAction):
        return WHILE_TYPE
    return action.type


def _coerce_actions(value: Any) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        value = [value]
    return [parse_action(v) for v in value]


# ══════════════════════════════════════════════════════════════════════════════
# CAPABILITY & DOCUMENT
# ══════════════════════════════════════════════════════════════════════════════

class Capability(BaseModel):
    """A named, invocable unit: parameters + trigger + ordered action list.
    Unknown keys (isLongRunning, processType, ...) are kept as extras."""
    model_config = ConfigDict(extra="allow")

    name: str = ""
    description: str = ""
    parameters: List[Any] = Field(default_factory=list)
    trigger: Optional[Any] = None
    actions: List[Action] = Field(default_factory=list)

    @field_validator("name", "description", mode="before")
    @classmethod
    def _null_text(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("parameters", mode="before")
    @classmethod
    def _null_parameters(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("actions", mode="before")
    @classmethod
    def _parse_actions(cls, v: Any) -> List[Any]:
        return _coerce_actions(v)

    def metadata(self) -> Dict[str, Any]:
        """Everything except the action list, in JSON shape. Only keys that
        were supplied are written."""
        meta: Dict[str, Any] = {}
        for key in ("name", "description", "parameters", "trigger"):
            if key in self.model_fields_set:
                meta[key] = copy.deepcopy(getattr(self, key))
        meta.update(copy.deepcopy(self.model_extra or {}))
        return meta

    def to_dict(self) -> Dict[str, Any]:
        data = self.metadata()
        data["actions"] = [action_to_dict(a) for a in self.actions]
        return data


class ScriptDocument(BaseModel):
    """
    Complete agent script. Only `capabilities` is interpreted; every other
    top-level key (id, name, version, configFields, ...) is opaque metadata
    that must survive a tree -> graph -> tree round trip unchanged.
    """
    model_config = ConfigDict(extra="allow")

    capabilities: List[Capability] = Field(default_factory=list)

    @field_validator("capabilities", mode="before")
    @classmethod
    def _null_capabilities(cls, v: Any) -> Any:
        return [] if v is None else v

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScriptDocument":
        return cls.model_validate(data)

    def metadata(self) -> Dict[str, Any]:
        return copy.deepcopy(self.model_extra or {})

    def to_dict(self) -> Dict[str, Any]:
        data = self.metadata()
        data["capabilities"] = [c.to_dict() for c in self.capabilities]
        return data


def document_metadata(document: Union[ScriptDocument, Dict[str, Any]]) -> Dict[str, Any]:
    """Top-level keys other than `capabilities`, deep-copied. A raw dict is
    read directly so its capabilities are never parsed."""
    if isinstance(document, ScriptDocument):
        return document.metadata()
    return {k: copy.deepcopy(v) for k, v in (document or {}).items() if k != "capabilities"}
