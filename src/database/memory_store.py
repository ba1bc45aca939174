"""
Memory Store
In-process repository with the same contract as GameRepository
"""
import copy
import threading
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .models import BattleRecord, Garden, Inventory, Pet, User


class MemoryRepository:
    """Keeps all game state in dictionaries owned by this instance.

    Create one per process and pass it to the game service; nothing here is
    module-global. Records are copied on the way in and out so callers never
    share state with the store.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._users: Dict[int, User] = {}
        self._user_ids_by_external: Dict[int, int] = {}
        self._pets: Dict[int, Pet] = {}
        self._gardens: Dict[int, Garden] = {}
        self._inventories: Dict[int, Inventory] = {}
        self._battles: List[BattleRecord] = []
        self._next_user_id = 1
        self._next_pet_id = 1
        self._next_record_id = 1

    def get_or_create_user(self, external_id: int, username: Optional[str], now: datetime) -> Tuple[User, bool]:
        with self._lock:
            user_id = self._user_ids_by_external.get(external_id)
            if user_id is not None:
                return copy.deepcopy(self._users[user_id]), False

            user = User(self._next_user_id, external_id, username, created_at=now)
            self._next_user_id += 1
            self._users[user.user_id] = user
            self._user_ids_by_external[external_id] = user.user_id
            return copy.deepcopy(user), True

    def get_user(self, user_id: int) -> Optional[User]:
        return copy.deepcopy(self._users.get(user_id))

    def get_pet(self, user_id: int) -> Optional[Pet]:
        return copy.deepcopy(self._pets.get(user_id))

    def create_pet(self, pet: Pet) -> Pet:
        with self._lock:
            pet.pet_id = self._next_pet_id
            self._next_pet_id += 1
            self._pets[pet.user_id] = copy.deepcopy(pet)
        return pet

    def pet_owner_ids(self) -> List[int]:
        return sorted(self._pets.keys())

    def get_garden(self, user_id: int, slot_count: int) -> Garden:
        garden = copy.deepcopy(self._gardens.get(user_id)) or Garden(user_id, [])
        garden.slots.extend([None] * (slot_count - len(garden.slots)))
        return garden

    def get_inventory(self, user_id: int) -> Inventory:
        return copy.deepcopy(self._inventories.get(user_id)) or Inventory(user_id)

    def save_turn(self, user: Optional[User] = None, pet: Optional[Pet] = None,
                  garden: Optional[Garden] = None, inventory: Optional[Inventory] = None,
                  battle_record: Optional[BattleRecord] = None):
        """Store every record touched by one turn at once"""
        staged = copy.deepcopy((user, pet, garden, inventory))
        with self._lock:
            user, pet, garden, inventory = staged
            if user:
                self._users[user.user_id] = user
            if pet:
                self._pets[pet.user_id] = pet
            if garden:
                self._gardens[garden.user_id] = garden
            if inventory:
                inventory.items = {item_id: qty for item_id, qty in inventory.items.items() if qty > 0}
                self._inventories[inventory.user_id] = inventory
            if battle_record:
                battle_record.record_id = self._next_record_id
                self._next_record_id += 1
                self._battles.append(copy.deepcopy(battle_record))

    def battle_history(self, user_id: int, limit: int = 10) -> List[BattleRecord]:
        records = [record for record in self._battles if record.user_id == user_id]
        return copy.deepcopy(list(reversed(records))[:limit])

    def trim_battle_history(self, keep: int) -> int:
        with self._lock:
            kept = []
            counts: Dict[int, int] = {}
            for record in reversed(self._battles):
                counts[record.user_id] = counts.get(record.user_id, 0) + 1
                if counts[record.user_id] <= keep:
                    kept.append(record)
            deleted = len(self._battles) - len(kept)
            self._battles = list(reversed(kept))
            return deleted
