"""
Item Catalog
Contains all item definitions, rarity tiers and plant data
"""
import random
from typing import List, Dict, Any, Optional, Sequence

from ..database.models import Item


RARITY_ORDER = ['common', 'uncommon', 'rare', 'epic', 'legendary']


class ItemCatalog:
    """Read-only lookup over the seeded item catalog"""

    def __init__(self, items: Optional[List[Item]] = None):
        # Rarity tiers, lowest first
        self.rarities = {
            'common': {'color': 0x808080, 'emoji': '⚪'},
            'uncommon': {'color': 0x2ecc71, 'emoji': '🟢'},
            'rare': {'color': 0x0080ff, 'emoji': '🔵'},
            'epic': {'color': 0x8000ff, 'emoji': '🟣'},
            'legendary': {'color': 0xffd700, 'emoji': '🟡'}
        }

        self.categories = {
            'food': '🍎',
            'equipment': '⚔️',
            'key': '🔑',
            'seed': '🌱'
        }

        # Plant kinds: grow time in hours and yield as randint(0, spread) + per_level * level
        self.plants = {
            'carrot': {'seed': 'Carrot Seeds', 'grow_time': 2, 'yield_item': 'Carrot',
                       'spread': 2, 'per_level': 1, 'emoji': '🥕'},
            'apple': {'seed': 'Apple Sapling', 'grow_time': 6, 'yield_item': 'Apple',
                      'spread': 3, 'per_level': 2, 'emoji': '🍎'},
            'golden_apple': {'seed': 'Golden Seed', 'grow_time': 24, 'yield_item': 'Golden Apple',
                             'spread': 1, 'per_level': 1, 'emoji': '🌟'}
        }

        self._items = items if items is not None else self._create_item_catalog()
        self._by_id = {item.item_id: item for item in self._items}

    def get_all_items(self) -> List[Item]:
        """Get all items in the catalog"""
        return list(self._items)

    def get_item(self, item_id: int) -> Optional[Item]:
        return self._by_id.get(item_id)

    def get_item_by_name(self, name: str) -> Optional[Item]:
        """Get a specific item by name (case-insensitive)"""
        for item in self._items:
            if item.name.lower() == name.strip().lower():
                return item
        return None

    def get_items_by_category(self, category: str) -> List[Item]:
        return [item for item in self._items if item.category == category]

    def get_items_by_rarity(self, rarity: str, exclude_categories: Sequence[str] = ()) -> List[Item]:
        """Get all items of a rarity, optionally skipping some categories"""
        return [item for item in self._items
                if item.rarity == rarity and item.category not in exclude_categories]

    def random_item_by_rarity(self, rarity: str, rng: Optional[random.Random] = None,
                              exclude_categories: Sequence[str] = ()) -> Optional[Item]:
        """Pick an item of the given rarity uniformly, None if the tier is empty"""
        candidates = self.get_items_by_rarity(rarity, exclude_categories)
        if not candidates:
            return None
        return (rng or random).choice(candidates)

    def get_key(self, rarity: str) -> Optional[Item]:
        for item in self.get_items_by_category('key'):
            if item.rarity == rarity:
                return item
        return None

    def get_plant(self, plant_kind: str) -> Optional[Dict[str, Any]]:
        return self.plants.get(plant_kind)

    def get_seed(self, plant_kind: str) -> Optional[Item]:
        """Seed item for a plant kind"""
        plant = self.plants.get(plant_kind)
        if not plant:
            return None
        return self.get_item_by_name(plant['seed'])

    def rarity_emoji(self, rarity: str) -> str:
        return self.rarities.get(rarity, {}).get('emoji', '⚪')

    def category_emoji(self, category: str) -> str:
        return self.categories.get(category, '📦')

    def _create_item_catalog(self) -> List[Item]:
        """Create the complete item catalog"""
        definitions = [
            # Food
            ('Carrot', 'food', 'common', {'hunger': 20}, 5, 2, 1),
            ('Apple', 'food', 'common', {'hunger': 30, 'mood': 5}, 10, 5, 1),
            ('Berry Pie', 'food', 'uncommon', {'hunger': 40, 'mood': 10}, 25, 12, 2),
            ('Golden Apple', 'food', 'rare', {'hunger': 50, 'health': 20, 'mood': 15}, 50, 25, 5),
            ('Star Fruit', 'food', 'legendary', {'hunger': 60, 'health': 50, 'mood': 40, 'energy': 40}, 800, 400, 15),

            # Equipment
            ('Wooden Sword', 'equipment', 'common', {'attack': 5}, 30, 15, 1),
            ('Iron Armor', 'equipment', 'uncommon', {'defense': 10}, 100, 50, 5),
            ('Dragon Scale', 'equipment', 'epic', {'attack': 15, 'defense': 10, 'health': 20}, 500, 250, 10),
            ('Crown of Legends', 'equipment', 'legendary', {'attack': 25, 'defense': 20}, 2000, 1000, 20),

            # Keys
            ('Common Key', 'key', 'common', {}, 100, 20, 1),
            ('Rare Key', 'key', 'rare', {}, 300, 60, 5),
            ('Epic Key', 'key', 'epic', {}, 1000, 200, 10),

            # Garden seeds
            ('Carrot Seeds', 'seed', 'common', {'grow_time': 2, 'yield': 'carrot'}, 10, 3, 1),
            ('Apple Sapling', 'seed', 'uncommon', {'grow_time': 6, 'yield': 'apple'}, 50, 15, 3),
            ('Golden Seed', 'seed', 'rare', {'grow_time': 24, 'yield': 'golden_apple'}, 200, 50, 8),
        ]

        return [
            Item(item_id, name, category, rarity, effect, price, sell_price, min_level)
            for item_id, (name, category, rarity, effect, price, sell_price, min_level)
            in enumerate(definitions, start=1)
        ]
