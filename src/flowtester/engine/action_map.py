# src/flowtester/engine/action_map.py
"""Registry of scripted actions for a run, keyed by event category and node."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from flowtester.contracts.actions import GLOBAL_NODE_KEY, Action
from flowtester.contracts.enums import EventCategory
from flowtester.contracts.errors import ConfigurationError, UnknownEventCategoryError
from flowtester.core.config import ActionSpec
from flowtester.core.logging import get_logger

slog = get_logger(__name__)

ActionSource = ActionSpec | Mapping[str, Any]


def _to_spec(item: ActionSource) -> ActionSpec:
    if isinstance(item, ActionSpec):
        return item
    try:
        return ActionSpec.model_validate(dict(item))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid action {dict(item)!r}: {e}") from e
    except TypeError as e:
        raise ConfigurationError(f"Action must be a mapping, got {type(item).__name__}") from e


def parse_event_category(event: str | EventCategory) -> EventCategory:
    """Map a wire name to its category.

    Raises:
        UnknownEventCategoryError: If ``event`` names no category
    """
    try:
        return EventCategory(event)
    except ValueError:
        raise UnknownEventCategoryError(str(event)) from None


class ActionMap:
    """Actions grouped by event category, then by node id.

    Node groups keep registration order. Registering the same event/node
    pair twice appends to the existing group.
    """

    def __init__(self) -> None:
        self._groups: dict[EventCategory, dict[str, list[Action]]] = {category: {} for category in EventCategory}

    def register(
        self,
        event: str | EventCategory,
        actions: Mapping[str, Sequence[ActionSource]],
        suite_id: str = "",
        test_id: str = "",
        start_index: int = 0,
    ) -> int:
        """Stamp and store one batch of actions.

        Each action gets a sequential ``index`` starting at ``start_index``,
        in node-group order then list order.

        Args:
            event: Event category (wire name or enum)
            actions: Node id to list of action specs
            suite_id: Owning suite, stamped onto every action
            test_id: Owning test case, stamped onto every action
            start_index: First index of this batch

        Returns:
            The index following the last stamped action

        Raises:
            UnknownEventCategoryError: If ``event`` names no category
            ConfigurationError: If an action spec is malformed
        """
        category = parse_event_category(event)
        # Validate the whole batch before storing any of it.
        specs = {node_id: [_to_spec(item) for item in items] for node_id, items in actions.items()}

        index = start_index
        groups = self._groups[category]
        for node_id, node_specs in specs.items():
            stamped = groups.setdefault(node_id, [])
            for spec in node_specs:
                stamped.append(
                    Action(
                        kind=spec.kind,
                        fields=spec.payload(),
                        index=index,
                        suite_id=suite_id,
                        test_id=test_id,
                        perform_check=spec.perform_check,
                    )
                )
                index += 1

        slog.debug("actions_registered", category=str(category), count=index - start_index, next_index=index)
        return index

    def lookup(self, event: EventCategory, node_id: str) -> tuple[Action, ...]:
        """Actions for ``node_id`` under ``event`` (empty when none)."""
        return tuple(self._groups[event].get(node_id, ()))

    def ordered_groups(self, event: EventCategory) -> Iterator[tuple[str, tuple[Action, ...]]]:
        """Node groups for ``event``, the global group first."""
        groups = self._groups[event]
        if GLOBAL_NODE_KEY in groups:
            yield GLOBAL_NODE_KEY, tuple(groups[GLOBAL_NODE_KEY])
        for node_id, actions in groups.items():
            if node_id != GLOBAL_NODE_KEY:
                yield node_id, tuple(actions)

    def __iter__(self) -> Iterator[Action]:
        for groups in self._groups.values():
            for actions in groups.values():
                yield from actions

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def clear(self) -> None:
        for groups in self._groups.values():
            groups.clear()
