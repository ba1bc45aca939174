"""
Game Service
Runs each player command: bring the pet up to date, act, then save everything at once
"""
import copy
import random
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from ..database.models import BattleRecord, Item, Pet, User
from .battle_system import Action, Battle, BattleManager
from .case_system import CaseSystem
from .errors import LevelTooLow, StorageError
from .garden import DEFAULT_SLOTS, GardenSystem
from .item_catalog import ItemCatalog, RARITY_ORDER
from .ledger import EconomyLedger
from .pet_care import apply_battle_health, apply_decay, check_vitals, create_pet, use_item
from .rewards import Rewards, RewardSystem


DEFAULT_HISTORY_LIMIT = 100


class GameService:
    """Entry point used by the bot for every game action"""

    def __init__(self, repository, catalog: Optional[ItemCatalog] = None,
                 rng: Optional[random.Random] = None, clock: Callable[[], datetime] = datetime.now,
                 garden_slots: int = DEFAULT_SLOTS, history_limit: int = DEFAULT_HISTORY_LIMIT):
        self.repository = repository
        self.catalog = catalog or ItemCatalog()
        self.rng = rng or random.Random()
        self.clock = clock
        self.history_limit = history_limit

        self.garden = GardenSystem(self.catalog, self.rng, garden_slots)
        self.battles = BattleManager(self.rng)
        self.rewards = RewardSystem(self.catalog, self.rng)
        self.cases = CaseSystem(self.catalog, self.rng)
        self.ledger = EconomyLedger(self.catalog)

        self._sweep_guard = threading.Lock()
        self._trim_guard = threading.Lock()

    def _load_pet(self, user: User, now: datetime) -> Pet:
        pet = self.repository.get_pet(user.user_id)
        if pet is None:
            pet = self.repository.create_pet(create_pet(0, user.user_id, now, self.rng))
            print(f"[GAME] Hatched {pet.name} for user {user.user_id}")
        return pet

    @contextmanager
    def _user_turn(self, external_id: int, username: Optional[str]) -> Iterator[Tuple[User, Pet, datetime]]:
        """Lock the user, reload their records and apply decay before the action runs"""
        now = self.clock()
        user, _ = self.repository.get_or_create_user(external_id, username, now)
        with self.ledger.lock_for(user.user_id):
            user = self.repository.get_user(user.user_id)
            if username and user.username != username:
                user = replace(user, username=username)
            pet = apply_decay(self._load_pet(user, now), now)
            yield user, pet, now

    def _save(self, user: Optional[User] = None, pet: Optional[Pet] = None, **records):
        if pet is not None:
            check_vitals(pet)
        self.repository.save_turn(user=user, pet=pet, **records)

    # Profile

    def register(self, external_id: int, username: Optional[str] = None) -> Dict[str, Any]:
        """Get-or-create the player, their pet and their garden"""
        now = self.clock()
        _, created = self.repository.get_or_create_user(external_id, username, now)
        with self._user_turn(external_id, username) as (user, pet, now):
            garden = self.repository.get_garden(user.user_id, self.garden.slot_count)
            self._save(user=user, pet=pet, garden=garden)
        return {'user': user, 'pet': pet, 'created': created}

    def status(self, external_id: int, username: Optional[str] = None) -> Dict[str, Any]:
        with self._user_turn(external_id, username) as (user, pet, now):
            self._save(user=user, pet=pet)
        return {'user': user, 'pet': pet, 'in_battle': self.battles.get_player_active_battle(user.user_id) is not None}

    def use_item(self, external_id: int, username: Optional[str], item_name: str) -> Dict[str, Any]:
        """Feed an item from the inventory to the pet"""
        with self._user_turn(external_id, username) as (user, pet, now):
            item = self.ledger.find_item(item_name)
            inventory = self.repository.get_inventory(user.user_id)
            inventory = self.ledger.remove_items(inventory, item)
            pet = use_item(pet, item)
            self._save(user=user, pet=pet, inventory=inventory)
        return {'item': item, 'pet': pet}

    # Garden

    def garden_status(self, external_id: int, username: Optional[str] = None) -> Dict[str, Any]:
        with self._user_turn(external_id, username) as (user, pet, now):
            garden = self.repository.get_garden(user.user_id, self.garden.slot_count)

        slots = []
        for number, slot in enumerate(garden.slots, start=1):
            if slot is None:
                slots.append({'slot': number, 'empty': True})
                continue
            slots.append({
                'slot': number,
                'empty': False,
                'plant_kind': slot.plant_kind,
                'level': slot.level,
                'ready': self.garden.is_ready(slot, now),
                'hours_remaining': self.garden.hours_remaining(slot, now)
            })
        return {'garden': garden, 'slots': slots}

    def plant(self, external_id: int, username: Optional[str], seed_kind: str,
              slot: Optional[int] = None) -> Dict[str, Any]:
        """Plant a seed, using a held seed packet or paying its price in coins"""
        seed_kind = seed_kind.strip().lower()
        seed = self.catalog.get_seed(seed_kind)
        with self._user_turn(external_id, username) as (user, pet, now):
            garden = self.repository.get_garden(user.user_id, self.garden.slot_count)
            inventory = self.repository.get_inventory(user.user_id)
            if slot is None:
                slot = self.garden.first_free_slot(garden)
            if seed is not None and pet.level < seed.min_level:
                raise LevelTooLow(f"{seed.name} unlocks at level {seed.min_level}")

            prepaid = seed is not None and inventory.quantity(seed.item_id) > 0
            garden, price = self.garden.plant(garden, slot, seed_kind, now, user.coins, prepaid)
            if prepaid:
                inventory = self.ledger.remove_items(inventory, seed)
            user = self.ledger.debit(user, price)
            self._save(user=user, pet=pet, garden=garden, inventory=inventory)

        return {'slot': slot, 'seed': seed, 'price': price, 'prepaid': prepaid,
                'grow_time': self.garden.grow_time_hours(seed_kind), 'coins': user.coins}

    def harvest(self, external_id: int, username: Optional[str] = None) -> List[Tuple[str, int]]:
        """Collect every ready plant into the inventory"""
        with self._user_turn(external_id, username) as (user, pet, now):
            garden = self.repository.get_garden(user.user_id, self.garden.slot_count)
            garden, yields = self.garden.harvest(garden, now)

            inventory = self.repository.get_inventory(user.user_id)
            for item_name, quantity in yields:
                inventory = self.ledger.add_items(inventory, self.ledger.find_item(item_name), quantity)

            self._save(user=user, pet=pet, garden=garden, inventory=inventory)
        return yields

    # Battles

    def start_battle(self, external_id: int, username: Optional[str] = None) -> Battle:
        """Start a new battle, or return the one already running"""
        with self._user_turn(external_id, username) as (user, pet, now):
            battle = self.battles.get_player_active_battle(user.user_id)
            if battle:
                return battle
            battle = self.battles.start_battle(pet, pet.level, now)
            self._save(user=user, pet=pet)
        return battle

    def active_battle(self, external_id: int, username: Optional[str] = None) -> Optional[Battle]:
        now = self.clock()
        user, _ = self.repository.get_or_create_user(external_id, username, now)
        return self.battles.get_player_active_battle(user.user_id)

    def battle_action(self, external_id: int, username: Optional[str], action: str) -> Dict[str, Any]:
        """Play one turn; when the battle ends, pay out and record it.

        If paying out fails the battle is put back as it was before the turn,
        so the same action can be retried.
        """
        with self._user_turn(external_id, username) as (user, pet, now):
            battle = self.battles.require_active_battle(user.user_id)
            snapshot = copy.deepcopy(battle, {id(self.rng): self.rng})
            result = battle.resolve_turn(action, now)
            if not battle.is_over:
                return result

            try:
                if result['player_action'] == Action.FLEE.value:
                    rewards = Rewards(0, 0)
                else:
                    rewards = self.rewards.resolve_rewards(battle.victory, battle.difficulty)
                    pet = apply_battle_health(pet, battle.victory, battle.player.current_health)

                inventory = self.repository.get_inventory(user.user_id)
                user, pet, inventory, levels_gained = self.ledger.apply_rewards(user, pet, inventory, rewards)

                record = BattleRecord(user.user_id, 'win' if battle.victory else 'lose', battle.difficulty,
                                      rewards.to_dict(), now)
                self._save(user=user, pet=pet, inventory=inventory, battle_record=record)
            except Exception:
                self.battles.restore_battle(user.user_id, snapshot)
                raise
            self.battles.finish_battle(user.user_id)

        result.update({'rewards': rewards, 'levels_gained': levels_gained, 'pet': pet, 'coins': user.coins})
        return result

    def battle_history(self, external_id: int, username: Optional[str] = None, limit: int = 10) -> List[BattleRecord]:
        now = self.clock()
        user, _ = self.repository.get_or_create_user(external_id, username, now)
        return self.repository.battle_history(user.user_id, limit)

    # Shop, inventory and cases

    def shop_items(self) -> Dict[str, List[Item]]:
        return self.ledger.shop_items()

    def buy(self, external_id: int, username: Optional[str], item_name: str, quantity: int = 1) -> Dict[str, Any]:
        with self._user_turn(external_id, username) as (user, pet, now):
            inventory = self.repository.get_inventory(user.user_id)
            user, inventory, item, cost = self.ledger.buy(user, pet, inventory, item_name, quantity)
            self._save(user=user, pet=pet, inventory=inventory)
        return {'item': item, 'quantity': quantity, 'cost': cost, 'coins': user.coins}

    def sell(self, external_id: int, username: Optional[str], item_name: str, quantity: int = 1) -> Dict[str, Any]:
        with self._user_turn(external_id, username) as (user, pet, now):
            inventory = self.repository.get_inventory(user.user_id)
            user, inventory, item, earned = self.ledger.sell(user, inventory, item_name, quantity)
            self._save(user=user, pet=pet, inventory=inventory)
        return {'item': item, 'quantity': quantity, 'earned': earned, 'coins': user.coins}

    def inventory_view(self, external_id: int, username: Optional[str] = None) -> List[Tuple[Item, int]]:
        """Held items ordered by rarity, then name"""
        now = self.clock()
        user, _ = self.repository.get_or_create_user(external_id, username, now)
        inventory = self.repository.get_inventory(user.user_id)

        held = []
        for item_id, quantity in inventory.items.items():
            item = self.catalog.get_item(item_id)
            if item:
                held.append((item, quantity))
        held.sort(key=lambda entry: (RARITY_ORDER.index(entry[0].rarity), entry[0].name))
        return held

    def held_keys(self, external_id: int, username: Optional[str] = None) -> List[Tuple[Item, int]]:
        now = self.clock()
        user, _ = self.repository.get_or_create_user(external_id, username, now)
        return self.cases.held_keys(self.repository.get_inventory(user.user_id))

    def open_case(self, external_id: int, username: Optional[str], key_rarity: str) -> Dict[str, Any]:
        """Spend a key and add the prize to the inventory"""
        with self._user_turn(external_id, username) as (user, pet, now):
            inventory = self.repository.get_inventory(user.user_id)
            inventory, item = self.cases.open_case(key_rarity, inventory)
            self._save(user=user, pet=pet, inventory=inventory)
        return {'item': item, 'key_rarity': key_rarity}

    # Background jobs

    def run_decay_sweep(self) -> int:
        """Apply decay to every pet. Returns how many pets changed, or -1 if a sweep is already running."""
        if not self._sweep_guard.acquire(blocking=False):
            print("[TASKS] Decay sweep already running, skipping")
            return -1

        try:
            now = self.clock()
            updated = 0
            for user_id in self.repository.pet_owner_ids():
                with self.ledger.lock_for(user_id):
                    try:
                        pet = self.repository.get_pet(user_id)
                        decayed = apply_decay(pet, now)
                        if decayed != pet:
                            self._save(pet=decayed)
                            updated += 1
                    except StorageError as e:
                        print(f"[TASKS] Could not update pet for user {user_id}: {e}")
            print(f"[TASKS] Decay sweep updated {updated} pets")
            return updated
        finally:
            self._sweep_guard.release()

    def trim_battle_history(self) -> int:
        """Drop battle records beyond each user's most recent history_limit"""
        if not self._trim_guard.acquire(blocking=False):
            print("[TASKS] History trim already running, skipping")
            return -1

        try:
            deleted = self.repository.trim_battle_history(self.history_limit)
            print(f"[TASKS] Trimmed {deleted} old battle records")
            return deleted
        finally:
            self._trim_guard.release()
