"""
Message - The unit of work routed through the bus
=================================================

A message is a name plus a mutable mapping of fields, and the flags
handlers use to report back:

- handled: a handler produced a final answer
- result: that answer
- error: failure detail, if any
- returned: internal short-circuit signal of a rule context; cleared
  before the message leaves the context that set it
"""

from datetime import datetime
from typing import Any, Dict, Iterator, Optional
from dataclasses import dataclass, field


@dataclass
class Message:
    """
    Represents a message dispatched to installed handlers.

    Attributes:
        name (str): Message name handlers subscribe to
        fields (dict): Arbitrary field values (str, int, float or bool)
        handled (bool): Whether a handler produced a final result
        result (Any): Final result value
        error (str): Failure detail
        returned (bool): Context short-circuit signal
        timestamp (datetime): Creation time
    """
    name: str
    fields: Dict[str, Any] = field(default_factory=dict)
    handled: bool = False
    result: Any = None
    error: Optional[str] = None
    returned: bool = False
    timestamp: datetime = field(default_factory=datetime.now)

    # Value returned by get() for absent fields
    NOT_FOUND = ""

    def get(self, key: str, default: Any = NOT_FOUND) -> Any:
        """Return a field value, or default when the field is absent."""
        return self.fields.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a field value."""
        self.fields[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self.fields

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def __str__(self) -> str:
        """String representation."""
        state = "handled" if self.handled else "unhandled"
        return f"[{self.name}] {state} result={self.result!r} fields={self.fields}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "fields": dict(self.fields),
            "handled": self.handled,
            "result": self.result,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Message':
        """Create from dictionary."""
        return cls(
            name=data["name"],
            fields=dict(data.get("fields", {})),
            handled=data.get("handled", False),
            result=data.get("result"),
            error=data.get("error"),
            timestamp=datetime.fromisoformat(data["timestamp"]) if "timestamp" in data else datetime.now(),
        )
