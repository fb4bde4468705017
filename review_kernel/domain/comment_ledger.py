"""
Comment ledger (``review_kernel.domain.comment_ledger``).

Responsibility
--------------
Holds a plan's review remarks in two role-partitioned, insertion-ordered
sequences (supervisor history, reviewer history).

Architecture position
---------------------
**Kernel domain layer** -- pure value object, ZERO I/O.  The ledger does
no authorization; the workflow coordinator decides whether an entry may
be written before it ever reaches ``append``.

Invariants enforced
-------------------
* Append-only: ``append`` returns a new ledger whose role sequence is the
  old sequence plus one entry at the tail.  There is no update or
  delete; a correction is a new ``comment`` entry.
* Insertion order is preserved and numbered: the appended entry's
  ``sequence`` is its 1-based position in the role sequence.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, replace
from typing import overload
from uuid import UUID

from review_kernel.domain.values import CommentEntry, ReviewRole


class LedgerHistory(Sequence[CommentEntry]):
    """Read-only, restartable view over one role's ledger entries.

    Each ``iter()`` starts a fresh generator over the same finite
    sequence, so the history can be walked any number of times.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: tuple[CommentEntry, ...] = ()):
        self._entries = entries

    def __iter__(self) -> Iterator[CommentEntry]:
        yield from self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @overload
    def __getitem__(self, index: int) -> CommentEntry: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[CommentEntry, ...]: ...

    def __getitem__(self, index):
        return self._entries[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, LedgerHistory):
            return self._entries == other._entries
        if isinstance(other, (tuple, list)):
            return self._entries == tuple(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._entries)

    def __repr__(self) -> str:
        return f"LedgerHistory({len(self._entries)} entries)"


@dataclass(frozen=True)
class CommentLedger:
    """Append-only, role-partitioned comment history for one plan."""

    plan_id: UUID
    supervisor: tuple[CommentEntry, ...] = ()
    reviewer: tuple[CommentEntry, ...] = ()

    def entries(self, role: ReviewRole) -> tuple[CommentEntry, ...]:
        """Return the ordered entries written under ``role``."""
        if role == ReviewRole.SUPERVISOR:
            return self.supervisor
        return self.reviewer

    @property
    def total_entries(self) -> int:
        return len(self.supervisor) + len(self.reviewer)

    def append(
        self,
        plan_id: UUID,
        role: ReviewRole,
        entry: CommentEntry,
    ) -> CommentLedger:
        """Insert ``entry`` at the tail of the role's sequence.

        Returns a new ledger; this ledger is left untouched.  The updated
        role sequence is ``new_ledger.entries(role)``.

        Raises:
            ValueError: ``plan_id`` is not this ledger's plan, or the
                entry was authored under a different role.
        """
        if plan_id != self.plan_id:
            raise ValueError(
                f"Ledger belongs to plan {self.plan_id}, not {plan_id}"
            )
        if entry.role != role:
            raise ValueError(
                f"Entry authored as {entry.role.value} cannot go on the "
                f"{role.value} ledger"
            )

        current = self.entries(role)
        numbered = replace(entry, sequence=len(current) + 1)
        if role == ReviewRole.SUPERVISOR:
            return replace(self, supervisor=current + (numbered,))
        return replace(self, reviewer=current + (numbered,))

    def read_all(self, plan_id: UUID | None = None) -> dict[str, LedgerHistory]:
        """Return both histories keyed by role name, for audit display."""
        if plan_id is not None and plan_id != self.plan_id:
            raise ValueError(
                f"Ledger belongs to plan {self.plan_id}, not {plan_id}"
            )
        return {
            ReviewRole.SUPERVISOR.value: LedgerHistory(self.supervisor),
            ReviewRole.REVIEWER.value: LedgerHistory(self.reviewer),
        }
