"""
Garden System
Planting and harvesting on a fixed number of garden slots
"""
import random
from datetime import datetime
from typing import List, Optional, Tuple

from ..database.models import Garden, GardenSlot
from .errors import InsufficientFunds, InvalidSlot, NoFreeSlot, SlotOccupied, UnknownSeed
from .item_catalog import ItemCatalog


DEFAULT_SLOTS = 6
MAX_PLANT_LEVEL = 10
UNKNOWN_GROW_TIME = 24


class GardenSystem:
    """Grow timer for gardens.

    A slot is harvestable once the plant kind's grow time has passed since
    it was planted. Harvesting keeps the plant in place, raises its level
    (up to MAX_PLANT_LEVEL) and restarts its timer.
    """

    def __init__(self, catalog: ItemCatalog, rng: Optional[random.Random] = None,
                 slot_count: int = DEFAULT_SLOTS):
        self.catalog = catalog
        self.rng = rng or random.Random()
        self.slot_count = slot_count

    def new_garden(self, user_id: int) -> Garden:
        return Garden(user_id, [None] * self.slot_count)

    def grow_time_hours(self, plant_kind: str) -> float:
        plant = self.catalog.get_plant(plant_kind)
        return plant['grow_time'] if plant else UNKNOWN_GROW_TIME

    def is_ready(self, slot: GardenSlot, now: datetime) -> bool:
        hours_grown = (now - slot.planted_at).total_seconds() / 3600
        return hours_grown >= self.grow_time_hours(slot.plant_kind)

    def hours_remaining(self, slot: GardenSlot, now: datetime) -> float:
        hours_grown = (now - slot.planted_at).total_seconds() / 3600
        return max(0.0, self.grow_time_hours(slot.plant_kind) - hours_grown)

    def usable_slots(self, garden: Garden) -> int:
        """Slots open for planting. Plants left past a lowered slot count can still be harvested."""
        return min(len(garden.slots), self.slot_count)

    def first_free_slot(self, garden: Garden) -> int:
        """1-based number of the first empty slot"""
        for index, slot in enumerate(garden.slots[:self.usable_slots(garden)]):
            if slot is None:
                return index + 1
        raise NoFreeSlot("All garden slots are taken!")

    def plant(self, garden: Garden, slot: Optional[int], seed_kind: str, now: datetime,
              coins: int, prepaid: bool = False) -> Tuple[Garden, int]:
        """Plant a seed in a slot (1-based). Returns the new garden and the seed price to charge.

        A prepaid planting uses a seed packet the player already holds and costs nothing.
        """
        if slot is None:
            slot = self.first_free_slot(garden)
        if not 1 <= slot <= self.usable_slots(garden):
            raise InvalidSlot(f"Slot must be between 1 and {self.usable_slots(garden)}")
        if garden.slots[slot - 1] is not None:
            raise SlotOccupied(f"Slot {slot} is already taken!")

        seed = self.catalog.get_seed(seed_kind)
        if not seed:
            raise UnknownSeed(f"There is no seed called '{seed_kind}'")
        price = 0 if prepaid else seed.price
        if coins < price:
            raise InsufficientFunds(f"Not enough coins! Need: {price}")

        slots = list(garden.slots)
        slots[slot - 1] = GardenSlot(seed_kind, now, 1)
        return Garden(garden.user_id, slots), price

    def harvest(self, garden: Garden, now: datetime) -> Tuple[Garden, List[Tuple[str, int]]]:
        """Collect every ready slot. Slots still growing are left alone."""
        slots = list(garden.slots)
        yields = []

        for index, slot in enumerate(slots):
            if slot is None or not self.is_ready(slot, now):
                continue

            plant = self.catalog.get_plant(slot.plant_kind)
            if not plant:
                continue

            quantity = self.rng.randint(0, plant['spread']) + plant['per_level'] * slot.level
            if quantity > 0:
                yields.append((plant['yield_item'], quantity))

            slots[index] = GardenSlot(slot.plant_kind, now, min(MAX_PLANT_LEVEL, slot.level + 1))

        return Garden(garden.user_id, slots), yields
