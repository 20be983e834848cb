"""Interaction modes — bulk selection versus drag reordering.

The pending list supports both a selection mode (for bulk pause, resume and
remove) and drag reordering.  They are mutually exclusive: turning pending
selection on suppresses reordering, and turning reordering on leaves
pending selection and clears what was selected.
"""

from __future__ import annotations

from typing import Literal

type Section = Literal["templates", "running", "pending"]

SECTIONS: tuple[Section, ...] = ("templates", "running", "pending")


class InteractionModes:
    """Selection state per section plus the reorder toggle."""

    __slots__ = ("_reorder", "_selecting", "_selected")

    def __init__(self) -> None:
        self._selecting: dict[Section, bool] = dict.fromkeys(SECTIONS, False)
        self._selected: dict[Section, set[str]] = {section: set() for section in SECTIONS}
        self._reorder = True

    # ----- Selection -----

    def is_selecting(self, section: Section) -> bool:
        return self._selecting[section]

    def selected(self, section: Section) -> frozenset[str]:
        return frozenset(self._selected[section])

    def set_selecting(self, section: Section, enabled: bool) -> None:
        """Enter or leave selection mode for ``section``. Leaving clears it."""
        self._selecting[section] = enabled
        if not enabled:
            self._selected[section].clear()
        elif section == "pending":
            self._reorder = False

    def toggle(self, section: Section, item_id: str) -> bool:
        """Flip ``item_id``'s selection. Returns whether it is now selected.

        Selecting an item implicitly enters selection mode.
        """
        if not self._selecting[section]:
            self.set_selecting(section, True)
        chosen = self._selected[section]
        if item_id in chosen:
            chosen.discard(item_id)
            return False
        chosen.add(item_id)
        return True

    def clear(self, section: Section) -> None:
        """Drop the selection and leave selection mode (after a bulk action)."""
        self.set_selecting(section, False)

    def reset(self) -> None:
        """Leave every selection mode, e.g. when switching tabs."""
        for section in SECTIONS:
            self.set_selecting(section, False)
        self._reorder = True

    # ----- Reorder -----

    @property
    def can_reorder(self) -> bool:
        return self._reorder and not self._selecting["pending"]

    def enable_reorder(self) -> None:
        self.set_selecting("pending", False)
        self._reorder = True
