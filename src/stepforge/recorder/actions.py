"""
Action records - the reduced, replayable vocabulary of user intent.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from stepforge.exceptions import ActionValidationError
from stepforge.selectors.locator import Locator, LocatorKind


class ActionType(str, Enum):
    """Types of recordable actions."""
    NAVIGATE = "Navigate"
    CLICK = "Click"
    SEND_KEYS = "SendKeys"
    SEND_KEYS_ENTER = "SendKeysEnter"
    SELECT_OPTION = "SelectOption"
    CHECKBOX = "Checkbox"
    RADIO = "Radio"
    SUBMIT = "Submit"

    @property
    def is_click_family(self) -> bool:
        return self in (ActionType.CLICK, ActionType.CHECKBOX, ActionType.RADIO)

    @property
    def is_input(self) -> bool:
        return self in (ActionType.SEND_KEYS, ActionType.SEND_KEYS_ENTER)


# Wire names used in page-to-host messages.
MESSAGE_TYPES: Dict[ActionType, str] = {
    ActionType.NAVIGATE: "navigate",
    ActionType.CLICK: "click",
    ActionType.SEND_KEYS: "type",
    ActionType.SEND_KEYS_ENTER: "enterkey",
    ActionType.SELECT_OPTION: "select",
    ActionType.CHECKBOX: "checkbox",
    ActionType.RADIO: "radio",
    ActionType.SUBMIT: "submit",
}

_FROM_MESSAGE_TYPE: Dict[str, ActionType] = {v: k for k, v in MESSAGE_TYPES.items()}
# A committed "change" on a text field is a typed value.
_FROM_MESSAGE_TYPE["change"] = ActionType.SEND_KEYS


@dataclass(frozen=True)
class ActionRecord:
    """
    One semantically meaningful user action.

    Records are immutable: a second tap on the same control produces a new
    record instead of updating an old one.

    Attributes:
        action_type: What the user did
        timestamp_ms: Capture time in milliseconds (page clock)
        locator: How to find the element again (None only for Navigate)
        value: Typed text, selected option value, URL, or "check"/"uncheck"
        tag_name: Upper-case tag name as the browser reports it
        element_type: Input subtype ("checkbox", "text", ...)
        source_url: Page URL at capture time
        checked: Resulting state for Checkbox/Radio actions
        key: Key that triggered the action (SendKeysEnter)
        selected_text: Visible label of the chosen option (SelectOption)
    """
    action_type: ActionType
    timestamp_ms: float
    locator: Optional[Locator] = None
    value: Optional[str] = None
    tag_name: Optional[str] = None
    element_type: Optional[str] = None
    source_url: str = ""
    checked: Optional[bool] = None
    key: Optional[str] = None
    selected_text: Optional[str] = None

    def __post_init__(self) -> None:
        if self.action_type != ActionType.NAVIGATE:
            if self.locator is None or not self.locator.value:
                raise ActionValidationError(
                    f"{self.action_type.value} action requires a locator",
                    self.action_type.value,
                )
        if self.action_type in (ActionType.CHECKBOX, ActionType.RADIO):
            if self.value not in ("check", "uncheck"):
                raise ActionValidationError(
                    f"{self.action_type.value} value must be 'check' or 'uncheck'",
                    self.action_type.value,
                )

    def same_target(self, other: "ActionRecord") -> bool:
        """True when both records point at the same locator."""
        return self.locator is not None and self.locator == other.locator

    def describe(self) -> str:
        if self.action_type == ActionType.NAVIGATE:
            return f"Navigate -> {self.value}"
        text = f"{self.action_type.value} on {self.locator}"
        if self.value is not None:
            text += f" = {self.value!r}"
        return text

    # ------------------------------------------------------------------
    # Outbound message
    # ------------------------------------------------------------------

    def to_message(self) -> Dict[str, Any]:
        """
        Convert to the page-to-host message shape.

        Optional keys (``key``, ``elementType``, ``checked``,
        ``selectedText``) are present only when set.
        """
        message: Dict[str, Any] = {
            "type": MESSAGE_TYPES[self.action_type],
            "selector": self.locator.kind.value if self.locator else None,
            "selectorValue": self.locator.value if self.locator else None,
            "value": self.value,
            "tagName": self.tag_name,
            "url": self.source_url,
            "timestamp": self.timestamp_ms,
        }
        if self.key is not None:
            message["key"] = self.key
        if self.element_type is not None:
            message["elementType"] = self.element_type
        if self.checked is not None:
            message["checked"] = self.checked
        if self.selected_text is not None:
            message["selectedText"] = self.selected_text
        return message

    @classmethod
    def from_message(
        cls,
        message: Dict[str, Any],
        timestamp_ms: Optional[float] = None,
    ) -> "ActionRecord":
        """
        Parse a page-to-host message.

        Raises:
            ActionValidationError: For unknown types, unknown locator kinds,
                or a message that violates record invariants
        """
        raw_type = str(message.get("type") or "").lower()
        action_type = _FROM_MESSAGE_TYPE.get(raw_type)
        if action_type is None:
            raise ActionValidationError(f"Unknown action type: {raw_type!r}", raw_type)

        locator = None
        kind_name = message.get("selector")
        if kind_name:
            kind = LocatorKind.parse(str(kind_name))
            if kind is None:
                raise ActionValidationError(f"Unknown locator kind: {kind_name!r}", raw_type)
            locator = Locator(kind, str(message.get("selectorValue") or ""))

        if timestamp_ms is None:
            timestamp_ms = float(message.get("timestamp") or 0)

        return cls(
            action_type=action_type,
            timestamp_ms=timestamp_ms,
            locator=locator,
            value=message.get("value"),
            tag_name=message.get("tagName"),
            element_type=message.get("elementType"),
            source_url=message.get("url") or "",
            checked=message.get("checked"),
            key=message.get("key"),
            selected_text=message.get("selectedText"),
        )

    # ------------------------------------------------------------------
    # Session files
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result: Dict[str, Any] = {
            "action_type": self.action_type.value,
            "timestamp_ms": self.timestamp_ms,
        }
        if self.locator:
            result["locator"] = {"kind": self.locator.kind.value, "value": self.locator.value}
        for name in ("value", "tag_name", "element_type", "checked", "key", "selected_text"):
            field_value = getattr(self, name)
            if field_value is not None:
                result[name] = field_value
        if self.source_url:
            result["source_url"] = self.source_url
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActionRecord":
        """Create from dictionary."""
        locator = None
        if data.get("locator"):
            kind = LocatorKind.parse(data["locator"].get("kind", ""))
            if kind is None:
                raise ActionValidationError(
                    f"Unknown locator kind: {data['locator'].get('kind')!r}",
                    data.get("action_type"),
                )
            locator = Locator(kind, data["locator"].get("value", ""))
        return cls(
            action_type=ActionType(data["action_type"]),
            timestamp_ms=data.get("timestamp_ms", 0),
            locator=locator,
            value=data.get("value"),
            tag_name=data.get("tag_name"),
            element_type=data.get("element_type"),
            source_url=data.get("source_url", ""),
            checked=data.get("checked"),
            key=data.get("key"),
            selected_text=data.get("selected_text"),
        )
