"""
Case System
Handles key-locked cases and their rarity rolls
"""
import random
from typing import Dict, List, Optional, Tuple

from ..database.models import Inventory, Item
from .errors import NoKeyAvailable, NotFound
from .item_catalog import ItemCatalog, RARITY_ORDER
from .random_utils import weighted_choice


# Key rarity -> chances of the rarity that comes out of the case
CASE_REWARD_TABLES = {
    'common': {'common': 0.7, 'uncommon': 0.25, 'rare': 0.05},
    'uncommon': {'common': 0.5, 'uncommon': 0.4, 'rare': 0.1},
    'rare': {'uncommon': 0.5, 'rare': 0.4, 'epic': 0.1},
    'epic': {'rare': 0.4, 'epic': 0.5, 'legendary': 0.1}
}


class CaseSystem:
    """Opens cases by spending keys"""

    def __init__(self, catalog: ItemCatalog, rng: Optional[random.Random] = None):
        self.catalog = catalog
        self.rng = rng or random.Random()

    def held_keys(self, inventory: Inventory) -> List[Tuple[Item, int]]:
        """Keys in the inventory with their quantities"""
        keys = []
        for item in self.catalog.get_items_by_category('key'):
            quantity = inventory.quantity(item.item_id)
            if quantity > 0:
                keys.append((item, quantity))
        return keys

    def get_case_drop_rates(self, key_rarity: str) -> Dict[str, float]:
        return dict(CASE_REWARD_TABLES.get(key_rarity, CASE_REWARD_TABLES['common']))

    def roll_rarity(self, key_rarity: str) -> str:
        table = self.get_case_drop_rates(key_rarity)
        return weighted_choice(list(table.keys()), list(table.values()), self.rng)

    def pick_item(self, rarity: str) -> Optional[Item]:
        """Random non-key item of a rarity, stepping down a tier while a tier is empty"""
        tier = RARITY_ORDER.index(rarity) if rarity in RARITY_ORDER else 0
        for candidate in reversed(RARITY_ORDER[:tier + 1]):
            item = self.catalog.random_item_by_rarity(candidate, self.rng, exclude_categories=('key',))
            if item:
                return item
        return None

    def open_case(self, key_rarity: str, inventory: Inventory) -> Tuple[Inventory, Item]:
        """Spend one key of the given rarity and return the updated inventory and the prize"""
        key = self.catalog.get_key(key_rarity)
        if not key or inventory.quantity(key.item_id) < 1:
            raise NoKeyAvailable(f"You have no {key_rarity} keys! Win battles or visit the shop.")

        rarity = self.roll_rarity(key_rarity)
        item = self.pick_item(rarity)
        if item is None:
            raise NotFound("The case is empty")

        updated = inventory.copy()
        updated.remove(key.item_id)
        updated.add(item.item_id)
        return updated, item

