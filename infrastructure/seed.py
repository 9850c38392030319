"""Demo room inventory, loaded into an empty RoomStore"""
import logging
from decimal import Decimal
from typing import Dict, List, Tuple

from domain.entities import NewRoom
from domain.repositories import RoomStore

logger = logging.getLogger(__name__)

# code -> (type, capacity, beds, price, amenities)
ROOM_TYPES: Dict[str, Tuple[str, int, int, Decimal, List[str]]] = {
    "C": ("Casal", 2, 1, Decimal("120"), ["wifi", "tv"]),
    "S": ("Solteiro", 1, 1, Decimal("100"), ["wifi", "tv"]),
    "A": ("Casal com AR", 2, 1, Decimal("149"), ["wifi", "tv", "ar-condicionado"]),
    "T": ("Triplo", 3, 2, Decimal("100"), ["wifi", "tv"]),
}

# One string per floor, one type code per room, numbered from 01
FLOOR_LAYOUT = [
    "CCSS",
    "ATASCSSCSC",
    "ATASCSSCCC",
    "CTCSCSSCCC",
    "ATASCSSCCA",
    "SSCCC",
]


def demo_rooms() -> List[NewRoom]:
    rooms = []
    for floor, layout in enumerate(FLOOR_LAYOUT, start=1):
        for position, code in enumerate(layout, start=1):
            room_type, capacity, beds, price, amenities = ROOM_TYPES[code]
            rooms.append(NewRoom(
                number=f"{floor}{position:02d}",
                type=room_type,
                capacity=capacity,
                beds=beds,
                price=price,
                amenities=amenities
            ))
    return rooms


async def seed_demo_rooms(store: RoomStore) -> int:
    """Insert the demo inventory when the store has no rooms yet"""
    if await store.get_all_rooms():
        return 0
    rooms = demo_rooms()
    for room in rooms:
        await store.create_room(room)
    logger.info("Seeded %d demo rooms", len(rooms))
    return len(rooms)
