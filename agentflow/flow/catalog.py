"""
Action Catalog - Static metadata for every action type the palette offers.
Categories, icons, short canvas labels, descriptions, default configs, and the
required-field table the flow validator checks against.
"""

from typing import Optional, Dict, List, Any, Tuple
from enum import Enum
from pydantic import BaseModel, Field


class ActionCategory(str, Enum):
    ENTRY = "entry"
    DOM = "dom"
    CONTROL = "control"
    DATA = "data"
    CLIENT = "client"
    LLM = "llm"
    CHROME = "chrome"
    EXIT = "exit"


class FieldKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    VARIABLE = "variable"
    JSON = "json"


class RequiredField(BaseModel):
    """A field a block cannot run without."""
    key: str
    kind: FieldKind = FieldKind.TEXT


CAPABILITY_TYPE = "capability"
GENERIC_ICON = "📦"

_CATEGORY_MAP: Dict[str, ActionCategory] = {
    # DOM
    "querySelector": ActionCategory.DOM,
    "querySelectorAll": ActionCategory.DOM,
    "click": ActionCategory.DOM,
    "remove": ActionCategory.DOM,
    "setAttribute": ActionCategory.DOM,
    "getAttribute": ActionCategory.DOM,
    "getText": ActionCategory.DOM,
    "setValue": ActionCategory.DOM,
    "addStyle": ActionCategory.DOM,
    # Control flow
    "if": ActionCategory.CONTROL,
    "forEach": ActionCategory.CONTROL,
    "while": ActionCategory.CONTROL,
    "wait": ActionCategory.CONTROL,
    "waitFor": ActionCategory.CONTROL,
    "startProcess": ActionCategory.CONTROL,
    "stopProcess": ActionCategory.CONTROL,
    "registerCleanup": ActionCategory.CONTROL,
    # Data
    "set": ActionCategory.DATA,
    "get": ActionCategory.DATA,
    "transform": ActionCategory.DATA,
    "merge": ActionCategory.DATA,
    # Clients
    "callClient": ActionCategory.CLIENT,
    # LLM
    "inspectPage": ActionCategory.LLM,
    "analyzeWithLLM": ActionCategory.LLM,
    "callLLMForOperations": ActionCategory.LLM,
    "executeSafeOperations": ActionCategory.LLM,
    "executeScript": ActionCategory.LLM,
    # Chrome APIs
    "storage.get": ActionCategory.CHROME,
    "storage.set": ActionCategory.CHROME,
    "tabs.create": ActionCategory.CHROME,
    "notify": ActionCategory.CHROME,
    "translatePage": ActionCategory.CHROME,
    # Exit
    "return": ActionCategory.EXIT,
    CAPABILITY_TYPE: ActionCategory.ENTRY,
}

_ICON_MAP: Dict[str, str] = {
    "querySelector": "🔍",
    "querySelectorAll": "🔍",
    "click": "👆",
    "remove": "🗑️",
    "setAttribute": "✏️",
    "getAttribute": "📖",
    "getText": "📝",
    "setValue": "✍️",
    "addStyle": "🎨",
    "if": "🔀",
    "forEach": "🔁",
    "while": "🔄",
    "wait": "⏱️",
    "waitFor": "⏳",
    "set": "📥",
    "get": "📤",
    "transform": "🔄",
    "merge": "🔗",
    "callClient": "🌐",
    "inspectPage": "🔬",
    "analyzeWithLLM": "🤖",
    "callLLMForOperations": "🧠",
    "executeSafeOperations": "⚡",
    "executeScript": "💻",
    "storage.get": "📂",
    "storage.set": "💾",
    "tabs.create": "🪟",
    "notify": "🔔",
    "translatePage": "🌍",
    "startProcess": "▶️",
    "stopProcess": "⏹️",
    "registerCleanup": "🧹",
    "return": "🚪",
    CAPABILITY_TYPE: "📥",
}

NODE_DESCRIPTIONS: Dict[str, str] = {
    CAPABILITY_TYPE: "The entry point for this agent capability. When triggered, execution flows down from here.",
    "querySelector": "Finds a single element on the page using a CSS selector.",
    "querySelectorAll": "Finds all elements matching a CSS selector and returns them as a list.",
    "click": "Clicks on an element on the page.",
    "remove": "Removes an element from the page DOM.",
    "setValue": "Sets the value of an input field or textarea.",
    "getAttribute": "Gets an attribute value from an element.",
    "setAttribute": "Sets an attribute on an element.",
    "getText": "Gets the text content from an element.",
    "addStyle": "Sets inline CSS styles on an element.",
    "wait": "Pauses execution for a specified number of milliseconds.",
    "waitFor": "Waits until an element appears on the page.",
    "set": "Sets a variable to a value for use later in the flow.",
    "get": "Gets the value of a previously set variable.",
    "transform": "Transforms a value and stores the result.",
    "merge": "Merges several lists into one.",
    "if": "Runs one branch when the condition holds and the other branch otherwise.",
    "forEach": "Runs its body once for every item of a list.",
    "while": "Runs its body while the condition holds, up to a maximum number of iterations.",
    "callClient": "Calls a method on a registered API client.",
    "notify": "Shows a browser notification.",
    "return": "Stops the capability and returns a value.",
}

# Required fields per action type. `ms` must be numeric; the rest non-empty.
REQUIRED_FIELDS: Dict[str, Tuple[RequiredField, ...]] = {
    "querySelector": (RequiredField(key="selector"),),
    "querySelectorAll": (RequiredField(key="selector"),),
    "waitFor": (RequiredField(key="selector"),),
    "click": (RequiredField(key="target"),),
    "remove": (RequiredField(key="target"),),
    "setValue": (RequiredField(key="target"),),
    "setAttribute": (RequiredField(key="target"),),
    "getAttribute": (RequiredField(key="target"),),
    "getText": (RequiredField(key="target"),),
    "addStyle": (RequiredField(key="target"),),
    "wait": (RequiredField(key="ms", kind=FieldKind.NUMBER),),
    "callClient": (RequiredField(key="client"), RequiredField(key="method")),
    "set": (RequiredField(key="variable", kind=FieldKind.VARIABLE),),
}

DEFAULT_CONFIGS: Dict[str, Dict[str, Any]] = {
    "querySelector": {"selector": "", "saveAs": "element"},
    "querySelectorAll": {"selector": "", "saveAs": "elements"},
    "click": {"target": ""},
    "remove": {"target": ""},
    "setValue": {"target": "", "value": ""},
    "getText": {"target": "", "saveAs": ""},
    "if": {"condition": {"type": "exists", "target": ""}},
    "forEach": {"source": "", "itemAs": "item"},
    "while": {"condition": {"type": "exists", "target": ""}, "maxIterations": 10},
    "wait": {"ms": 1000},
    "waitFor": {"selector": "", "timeout": 5000},
    "set": {"variable": "", "value": ""},
    "callClient": {"client": "", "method": "", "params": {}, "saveAs": ""},
    "notify": {"title": "", "message": ""},
}


class BlockInfo(BaseModel):
    """Palette entry for one action type."""
    type: str
    category: ActionCategory
    icon: str
    description: str = ""
    default_config: Dict[str, Any] = Field(default_factory=dict)
    required_fields: List[str] = Field(default_factory=list)


def category_for(action_type: str) -> ActionCategory:
    """Category of an action type; unknown types fall into the generic data bucket."""
    return _CATEGORY_MAP.get(action_type, ActionCategory.DATA)


def icon_for(action_type: str) -> str:
    return _ICON_MAP.get(action_type, GENERIC_ICON)


def description_for(action_type: str) -> Optional[str]:
    return NODE_DESCRIPTIONS.get(action_type)


def required_fields_for(action_type: str) -> Tuple[RequiredField, ...]:
    return REQUIRED_FIELDS.get(action_type, ())


def is_known_type(action_type: str) -> bool:
    return action_type in _CATEGORY_MAP


def _clip(value: Any, length: int) -> str:
    if not isinstance(value, str):
        return ""
    return value[:length]


def label_for(action_type: str, config: Dict[str, Any]) -> str:
    """Short human-readable canvas label for a node."""
    if action_type in ("querySelector", "querySelectorAll"):
        return _clip(config.get("selector"), 30) or action_type
    if action_type in ("click", "remove"):
        return f"{action_type} {_clip(config.get('target'), 20)}"
    if action_type == "setValue":
        return f'{action_type} "{_clip(config.get("value"), 15)}"'
    if action_type == "wait":
        return f"wait {config.get('ms')}ms"
    if action_type == "waitFor":
        return f"waitFor {_clip(config.get('selector'), 20)}"
    if action_type == "if":
        return "if condition"
    if action_type == "forEach":
        return f"forEach {config.get('source') or 'items'}"
    if action_type == "while":
        return "while loop"
    if action_type in ("set", "get"):
        return f"{action_type} {config.get('variable') or 'var'}"
    if action_type == "callClient":
        return f"{config.get('client')}.{config.get('method')}"
    if action_type == "notify":
        return f'notify "{_clip(config.get("title"), 15)}"'
    return action_type or "action"


def list_blocks() -> List[BlockInfo]:
    """All palette blocks, in catalog order."""
    return [
        BlockInfo(
            type=t,
            category=c,
            icon=icon_for(t),
            description=NODE_DESCRIPTIONS.get(t, ""),
            default_config=dict(DEFAULT_CONFIGS.get(t, {})),
            required_fields=[f.key for f in required_fields_for(t)],
        )
        for t, c in _CATEGORY_MAP.items()
        if t != CAPABILITY_TYPE
    ]
