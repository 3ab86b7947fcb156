"""Action records as they exist during a run.

Configuration-side action specs (``flowtester.core.config.ActionSpec``) are
stamped into ``Action`` instances at registration time. Once stamped, an
action is immutable for the lifetime of the run.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from flowtester.contracts.enums import ActionKind

# Reserved node key for setup/cleanup groups that are not bound to a node.
GLOBAL_NODE_KEY = "global"

# Action kinds whose outcome counts toward the expected-checks total unless
# the action says otherwise.
_CHECKING_KINDS: frozenset[str] = frozenset({ActionKind.MATCH})


def default_perform_check(kind: str) -> bool:
    """Return whether an action of ``kind`` performs a check by default."""
    return kind in _CHECKING_KINDS


@dataclass(frozen=True)
class Action:
    """A single scripted step, stamped with run metadata.

    Attributes:
        kind: Built-in kind name or addon action name
        fields: Kind-specific payload (read-only view)
        index: Zero-based position within its registration batch
        suite_id: Owning suite
        test_id: Owning test case
        perform_check: Whether the outcome counts toward expected checks
    """

    kind: str
    fields: Mapping[str, Any] = field(default_factory=dict)
    index: int = 0
    suite_id: str = ""
    test_id: str = ""
    perform_check: bool = False

    def __post_init__(self) -> None:
        if not self.kind:
            raise ValueError("Action kind must be a non-empty string")
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @property
    def builtin_kind(self) -> ActionKind | None:
        """The built-in kind, or None when the kind is addon-defined."""
        try:
            return ActionKind(self.kind)
        except ValueError:
            return None

    def get(self, name: str, default: Any = None) -> Any:
        """Read a payload field."""
        return self.fields.get(name, default)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for addon contexts and notifications."""
        return {
            **self.fields,
            "kind": self.kind,
            "index": self.index,
            "suiteID": self.suite_id,
            "testID": self.test_id,
            "performCheck": self.perform_check,
        }
