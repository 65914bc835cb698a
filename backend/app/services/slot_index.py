"""Adjacency queries over a day's time slots.

Two slots are adjacent only when their ``slot_order`` values differ by exactly
one and neither is a break. A break between two teaching slots means there is
no adjacency across it; lookups never skip over a break.

Every query works on a snapshot passed in by the caller and never raises for
unknown ids.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol, TypeVar


class SlotLike(Protocol):
    id: str
    slot_order: int
    is_break: bool


SlotT = TypeVar("SlotT", bound=SlotLike)


def _find_slot(slot_id: str, slots: Iterable[SlotT]) -> SlotT | None:
    return next((slot for slot in slots if slot.id == slot_id), None)


def _neighbour(slot_id: str, slots: Sequence[SlotT], offset: int) -> SlotT | None:
    current = _find_slot(slot_id, slots)
    if current is None:
        return None
    target_order = current.slot_order + offset
    return next(
        (slot for slot in slots if slot.slot_order == target_order and not slot.is_break),
        None,
    )


def next_slot(slot_id: str, slots: Sequence[SlotT]) -> SlotT | None:
    return _neighbour(slot_id, slots, 1)


def previous_slot(slot_id: str, slots: Sequence[SlotT]) -> SlotT | None:
    return _neighbour(slot_id, slots, -1)


def ordered_teaching_slots(slots: Iterable[SlotT]) -> list[SlotT]:
    return sorted((slot for slot in slots if not slot.is_break), key=lambda slot: (slot.slot_order, slot.id))


class SlotIndex:
    """Pre-built lookup for repeated adjacency queries against one snapshot."""

    def __init__(self, slots: Iterable[SlotT]) -> None:
        self._slots: tuple[SlotT, ...] = tuple(slots)
        self._by_id: dict[str, SlotT] = {slot.id: slot for slot in self._slots}
        self._teaching_by_order: dict[int, SlotT] = {}
        for slot in self._slots:
            if not slot.is_break:
                self._teaching_by_order.setdefault(slot.slot_order, slot)

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, slot_id: object) -> bool:
        return slot_id in self._by_id

    def get(self, slot_id: str) -> SlotT | None:
        return self._by_id.get(slot_id)

    def next_slot(self, slot_id: str) -> SlotT | None:
        current = self._by_id.get(slot_id)
        if current is None:
            return None
        return self._teaching_by_order.get(current.slot_order + 1)

    def previous_slot(self, slot_id: str) -> SlotT | None:
        current = self._by_id.get(slot_id)
        if current is None:
            return None
        return self._teaching_by_order.get(current.slot_order - 1)

    def ordered_teaching_slots(self) -> list[SlotT]:
        return ordered_teaching_slots(self._slots)
