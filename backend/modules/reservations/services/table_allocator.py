# backend/modules/reservations/services/table_allocator.py

"""
Capacity-based table selection, before any time-availability checks.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Set
import logging
import re

from ..exceptions import InvalidCombinedTable
from ..models.availability_types import CombinedTable, Table, TableAssignment

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"(\d+)")


def _natural_key(label: str):
    """Sort "T2" before "T10"."""
    return [
        (0, int(part)) if part.isdigit() else (1, part.lower())
        for part in _DIGITS.split(label)
        if part
    ]


@dataclass(frozen=True)
class TableCandidate:
    assignment: TableAssignment
    capacity: int
    label: str
    physical_table_ids: FrozenSet[int]
    room_id: Optional[int] = None


class TableIndex:
    """
    Table inventory with the combined-table coupling made explicit:
    ``table id -> owning combined table ids`` and
    ``combined table id -> member table ids``.
    """

    def __init__(self, tables: Iterable[Table], combined_tables: Iterable[CombinedTable] = ()):
        self.tables: Dict[int, Table] = {t.id: t for t in tables}
        self.combined_tables: Dict[int, CombinedTable] = {}
        self._owners: Dict[int, Set[int]] = defaultdict(set)

        for combo in combined_tables:
            self._register_combined(combo)

    def _register_combined(self, combo: CombinedTable) -> None:
        if len(combo.member_table_ids) < 2:
            raise InvalidCombinedTable(combo.id, "needs at least two member tables")

        missing = combo.member_table_ids - self.tables.keys()
        if missing:
            raise InvalidCombinedTable(
                combo.id, f"unknown member tables {sorted(missing)}"
            )

        member_capacity = sum(self.tables[t].capacity for t in combo.member_table_ids)
        if member_capacity != combo.total_capacity:
            raise InvalidCombinedTable(
                combo.id,
                f"total capacity {combo.total_capacity} does not match "
                f"member capacity {member_capacity}",
            )

        self.combined_tables[combo.id] = combo
        for table_id in combo.member_table_ids:
            self._owners[table_id].add(combo.id)

    def combined_tables_for(self, table_id: int) -> FrozenSet[int]:
        return frozenset(self._owners.get(table_id, ()))

    def members_of(self, combined_table_id: int) -> FrozenSet[int]:
        combo = self.combined_tables.get(combined_table_id)
        return combo.member_table_ids if combo else frozenset()

    def physical_tables(self, assignment: Optional[TableAssignment]) -> FrozenSet[int]:
        """Physical tables occupied by an assignment."""
        if assignment is None:
            return frozenset()
        if assignment.is_combined:
            members = self.members_of(assignment.combined_table_id)
            if not members:
                logger.warning(
                    f"Combined table {assignment.combined_table_id} is not in the inventory"
                )
            return members
        return frozenset({assignment.table_id})

    def shares_tables(self, a: Optional[TableAssignment], b: Optional[TableAssignment]) -> bool:
        return bool(self.physical_tables(a) & self.physical_tables(b))

    def capacity_of(self, assignment: TableAssignment) -> Optional[int]:
        if assignment.is_combined:
            combo = self.combined_tables.get(assignment.combined_table_id)
            return combo.total_capacity if combo else None
        table = self.tables.get(assignment.table_id)
        return table.capacity if table else None

    def label_of(self, assignment: TableAssignment) -> str:
        if assignment.is_combined:
            combo = self.combined_tables.get(assignment.combined_table_id)
            return combo.name if combo else str(assignment)
        table = self.tables.get(assignment.table_id)
        return table.number if table else str(assignment)

    def room_of(self, assignment: TableAssignment) -> Optional[int]:
        rooms = {
            self.tables[t].room_id
            for t in self.physical_tables(assignment)
            if t in self.tables
        }
        return rooms.pop() if len(rooms) == 1 else None

    def is_bookable(self, assignment: TableAssignment) -> bool:
        """Active, and for a combined table every member is active too."""
        if assignment.is_combined:
            combo = self.combined_tables.get(assignment.combined_table_id)
            if combo is None or not combo.is_active:
                return False
            return all(self.tables[t].is_active for t in combo.member_table_ids)
        table = self.tables.get(assignment.table_id)
        return table is not None and table.is_active

    @property
    def total_seating_capacity(self) -> int:
        return sum(t.capacity for t in self.tables.values() if t.is_active)

    @property
    def largest_table_capacity(self) -> int:
        return max((t.capacity for t in self.tables.values() if t.is_active), default=0)


class TableAllocator:
    """
    Produces the capacity-qualified tables and combined tables for a party,
    tightest fit first. Time availability is left to the conflict detector.
    """

    def __init__(self, index: TableIndex, empty_seats_buffer: int = 0):
        self.index = index
        self.empty_seats_buffer = empty_seats_buffer

    def candidate_for(self, assignment: TableAssignment) -> Optional[TableCandidate]:
        capacity = self.index.capacity_of(assignment)
        if capacity is None:
            return None
        return TableCandidate(
            assignment=assignment,
            capacity=capacity,
            label=self.index.label_of(assignment),
            physical_table_ids=self.index.physical_tables(assignment),
            room_id=self.index.room_of(assignment),
        )

    def _all_candidates(self) -> List[TableCandidate]:
        assignments = [TableAssignment.single(t) for t in self.index.tables]
        assignments += [TableAssignment.combined(c) for c in self.index.combined_tables]
        return [
            self.candidate_for(a) for a in assignments if self.index.is_bookable(a)
        ]

    def candidates(self, guest_count: int) -> List[TableCandidate]:
        """
        Bookable candidates with room for ``guest_count`` plus the empty-seat
        buffer, ordered by capacity then single tables before combined ones
        then label. An empty list means no table qualifies.
        """
        required = guest_count + self.empty_seats_buffer
        qualified = [c for c in self._all_candidates() if c.capacity >= required]
        qualified.sort(
            key=lambda c: (c.capacity, c.assignment.is_combined, _natural_key(c.label))
        )
        logger.debug(f"{len(qualified)} tables qualify for a party of {guest_count}")
        return qualified
