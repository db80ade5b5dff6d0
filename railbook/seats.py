# railbook/seats.py
"""
Coach layouts, request-scoped seat selection and cross-request seat holds.
"""
import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from railbook.exceptions import SeatUnavailable

logger = logging.getLogger(__name__)

SEATS_PER_ROW = 8
# lower, middle, upper-and-side
ROW_GROUPS = (3, 3, 2)


@dataclass
class LayoutSeat:
    seat_number: str
    is_booked: bool


def berth_code(position: int) -> str:
    """Berth code of a 1-based seat position within its bay of eight."""
    slot = position % SEATS_PER_ROW
    if slot <= 2:
        return "LB"
    if slot <= 4:
        return "MB"
    if slot <= 6:
        return "UB"
    return "SL"


def seat_number_for(position: int) -> str:
    return f"{berth_code(position)}{position}"


def generate_layout(total_seats: int, booked_count: int, seed: Optional[str] = None) -> List[LayoutSeat]:
    """
    Build a coach layout of total_seats seats with exactly booked_count of
    them already booked. The booked positions are picked with a seeded RNG so
    the same (seed, counts) always yields the same layout.
    """
    booked_count = max(0, min(booked_count, total_seats))
    rng = random.Random(seed)
    booked = set(rng.sample(range(1, total_seats + 1), booked_count))
    return [
        LayoutSeat(seat_number=seat_number_for(position), is_booked=position in booked)
        for position in range(1, total_seats + 1)
    ]


def partition_rows(seat_numbers: Sequence[str]) -> List[List[List[str]]]:
    """Split a layout into display rows of eight, grouped 3/3/2. Display only."""
    rows = []
    for start in range(0, len(seat_numbers), SEATS_PER_ROW):
        row = list(seat_numbers[start:start + SEATS_PER_ROW])
        groups, offset = [], 0
        for size in ROW_GROUPS:
            groups.append(row[offset:offset + size])
            offset += size
        rows.append(groups)
    return rows


class SeatAllocator:
    """
    Seat selection over a coach layout, bounded by max_selection.

    Booked seats and unknown seat numbers can never be selected. Toggling a
    selected seat removes it; toggling a free seat adds it only while there
    is room, otherwise the toggle is rejected and the selection is unchanged.
    """

    def __init__(self, layout: Iterable, max_selection: int):
        self._booked: Dict[str, bool] = {seat.seat_number: bool(seat.is_booked) for seat in layout}
        self._order = list(self._booked)
        self.max_selection = max_selection
        self._selected: List[str] = []

    @property
    def selected(self) -> List[str]:
        return list(self._selected)

    def is_booked(self, seat_number: str) -> bool:
        return self._booked.get(seat_number, False)

    def toggle(self, seat_number: str) -> bool:
        """Toggle a seat. Returns True if the selection changed."""
        if seat_number not in self._booked or self._booked[seat_number]:
            return False
        if seat_number in self._selected:
            self._selected.remove(seat_number)
            return True
        if len(self._selected) < self.max_selection:
            self._selected.append(seat_number)
            return True
        return False

    def clear(self):
        self._selected = []

    def rows(self) -> List[List[List[str]]]:
        return partition_rows(self._order)


@dataclass
class SeatHold:
    owner: str
    expires_at: float

    @property
    def is_expired(self) -> bool:
        return time.monotonic() > self.expires_at


class SeatHoldRegistry:
    """
    Exclusive per-seat holds shared across booking attempts.

    A hold keeps a seat reserved for one booking attempt while it waits for
    payment. Holds expire after ttl_seconds without being renewed; an expired
    hold may be taken over by another attempt.
    """

    def __init__(self, ttl_seconds: float = 600):
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        self._holds: Dict[Tuple[str, str], SeatHold] = {}

    def acquire(self, coach_key: str, seat_numbers: Sequence[str], owner: str) -> None:
        """Hold every seat for owner or none of them. Raises SeatUnavailable."""
        with self._lock:
            for seat_number in seat_numbers:
                hold = self._holds.get((coach_key, seat_number))
                if hold and hold.owner != owner and not hold.is_expired:
                    raise SeatUnavailable(f"Seat {seat_number} is being booked by another passenger")
            expires_at = time.monotonic() + self.ttl_seconds
            for seat_number in seat_numbers:
                self._holds[(coach_key, seat_number)] = SeatHold(owner=owner, expires_at=expires_at)
        logger.debug(f"{owner} holds {list(seat_numbers)} on {coach_key}")

    def holds_all(self, coach_key: str, seat_numbers: Sequence[str], owner: str) -> bool:
        with self._lock:
            for seat_number in seat_numbers:
                hold = self._holds.get((coach_key, seat_number))
                if hold is None or hold.owner != owner or hold.is_expired:
                    return False
            return True

    def renew(self, coach_key: str, seat_numbers: Sequence[str], owner: str) -> bool:
        with self._lock:
            held = [self._holds.get((coach_key, seat_number)) for seat_number in seat_numbers]
            if any(h is None or h.owner != owner or h.is_expired for h in held):
                return False
            expires_at = time.monotonic() + self.ttl_seconds
            for hold in held:
                hold.expires_at = expires_at
            return True

    def release(self, coach_key: str, seat_numbers: Sequence[str], owner: str) -> None:
        with self._lock:
            for seat_number in seat_numbers:
                hold = self._holds.get((coach_key, seat_number))
                if hold and hold.owner == owner:
                    del self._holds[(coach_key, seat_number)]

    def held_by_others(self, coach_key: str, owner: Optional[str] = None) -> List[str]:
        with self._lock:
            return [
                seat_number for (key, seat_number), hold in self._holds.items()
                if key == coach_key and hold.owner != owner and not hold.is_expired
            ]
