"""
Economy Ledger
Applies coin, item and experience changes to a user's records
"""
import threading
from dataclasses import replace
from typing import Dict, Tuple

from ..database.models import Inventory, Item, Pet, User
from .errors import InsufficientFunds, ItemNotOwned, LevelTooLow, NotEnoughItems, UnknownItem, ValidationError
from .item_catalog import ItemCatalog
from .rewards import Rewards, grant_experience


SHOP_CATEGORIES = ('food', 'seed', 'key')


class EconomyLedger:
    """Computes balance and inventory changes. Callers persist the results together."""

    def __init__(self, catalog: ItemCatalog):
        self.catalog = catalog
        self._locks: Dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def lock_for(self, user_key: int) -> threading.Lock:
        """Per-user lock so one user's read-modify-write turns never overlap"""
        with self._locks_guard:
            if user_key not in self._locks:
                self._locks[user_key] = threading.Lock()
            return self._locks[user_key]

    def find_item(self, item_name: str) -> Item:
        item = self.catalog.get_item_by_name(item_name)
        if not item:
            raise UnknownItem(f"There is no item called '{item_name}'")
        return item

    def credit(self, user: User, coins: int) -> User:
        return replace(user, coins=user.coins + coins)

    def debit(self, user: User, coins: int) -> User:
        if coins > user.coins:
            raise InsufficientFunds(f"Not enough coins! Need: {coins}, you have: {user.coins}")
        return replace(user, coins=user.coins - coins)

    def add_items(self, inventory: Inventory, item: Item, quantity: int = 1) -> Inventory:
        updated = inventory.copy()
        updated.add(item.item_id, quantity)
        return updated

    def remove_items(self, inventory: Inventory, item: Item, quantity: int = 1) -> Inventory:
        """Take items out, dropping the entry once it reaches zero"""
        held = inventory.quantity(item.item_id)
        if held == 0:
            raise ItemNotOwned(f"You don't have any {item.name}")

        updated = inventory.copy()
        if not updated.remove(item.item_id, quantity):
            raise NotEnoughItems(f"You only have {held} {item.name}")
        return updated

    def apply_rewards(self, user: User, pet: Pet, inventory: Inventory,
                      rewards: Rewards) -> Tuple[User, Pet, Inventory, int]:
        """Credit coins, grant experience and add any dropped items"""
        user = self.credit(user, rewards.coins)
        pet, levels_gained = grant_experience(pet, rewards.exp)

        if rewards.item:
            inventory = self.add_items(inventory, rewards.item)
        if rewards.key:
            inventory = self.add_items(inventory, rewards.key)

        return user, pet, inventory, levels_gained

    def shop_items(self) -> Dict[str, list]:
        """Items for sale grouped by category"""
        catalog = {}
        for category in SHOP_CATEGORIES:
            catalog[category] = sorted(self.catalog.get_items_by_category(category), key=lambda item: item.price)
        return catalog

    def buy(self, user: User, pet: Pet, inventory: Inventory, item_name: str,
            quantity: int = 1) -> Tuple[User, Inventory, Item, int]:
        """Buy items from the shop, returns the new records, the item and the total cost"""
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        item = self.find_item(item_name)
        if item.category not in SHOP_CATEGORIES:
            raise ValidationError(f"{item.name} is not sold in the shop")
        if pet.level < item.min_level:
            raise LevelTooLow(f"{item.name} unlocks at level {item.min_level}")

        cost = item.price * quantity
        user = self.debit(user, cost)
        return user, self.add_items(inventory, item, quantity), item, cost

    def sell(self, user: User, inventory: Inventory, item_name: str,
             quantity: int = 1) -> Tuple[User, Inventory, Item, int]:
        """Sell held items back for their sell price"""
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        item = self.find_item(item_name)
        inventory = self.remove_items(inventory, item, quantity)
        earned = item.sell_price * quantity
        return self.credit(user, earned), inventory, item, earned
