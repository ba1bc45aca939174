"""
Reward System
Battle payouts, loot drops and the pet leveling curve
"""
import random
from dataclasses import dataclass, replace
from typing import Dict, Any, Optional, Tuple

from ..database.models import Item, Pet
from .item_catalog import ItemCatalog
from .pet_care import clamp
from .random_utils import weighted_choice


COIN_RANGE = (10, 30)
EXP_RANGE = (5, 15)
WIN_MULTIPLIER = 2

ITEM_DROP_CHANCES = {'easy': 0.1, 'normal': 0.25, 'hard': 0.5}
ITEM_RARITY_WEIGHTS = {
    'easy': {'common': 0.7, 'uncommon': 0.3},
    'normal': {'common': 0.5, 'uncommon': 0.35, 'rare': 0.15},
    'hard': {'common': 0.3, 'uncommon': 0.4, 'rare': 0.2, 'epic': 0.1}
}

KEY_DROP_CHANCES = {'easy': 0.05, 'normal': 0.1, 'hard': 0.2}
KEY_RARITY_WEIGHTS = {
    'easy': {'common': 1.0},
    'normal': {'common': 0.8, 'rare': 0.2},
    'hard': {'common': 0.6, 'rare': 0.3, 'epic': 0.1}
}

# Stat growth per level gained
ATTACK_PER_LEVEL = 2
DEFENSE_PER_LEVEL = 1
HEALTH_PER_LEVEL = 10
EXP_PER_LEVEL = 100


@dataclass
class Rewards:
    """What a finished battle pays out"""
    coins: int
    exp: int
    item: Optional[Item] = None
    key: Optional[Item] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'coins': self.coins,
            'exp': self.exp,
            'item': self.item.name if self.item else None,
            'key': self.key.name if self.key else None
        }


def grant_experience(pet: Pet, amount: int) -> Tuple[Pet, int]:
    """Add experience and apply every level-up it pays for.

    Returns the updated pet and the number of levels gained. Leftover
    experience always ends below the new level's threshold.
    """
    exp = pet.exp + max(0, amount)
    level = pet.level
    attack, defense, health = pet.attack, pet.defense, pet.health
    levels_gained = 0

    while exp >= level * EXP_PER_LEVEL:
        exp -= level * EXP_PER_LEVEL
        level += 1
        levels_gained += 1
        attack += ATTACK_PER_LEVEL
        defense += DEFENSE_PER_LEVEL
        health = clamp(health + HEALTH_PER_LEVEL)

    return replace(pet, exp=exp, level=level, attack=attack, defense=defense, health=health), levels_gained


class RewardSystem:
    """Rolls battle rewards"""

    def __init__(self, catalog: ItemCatalog, rng: Optional[random.Random] = None):
        self.catalog = catalog
        self.rng = rng or random.Random()

    def resolve_rewards(self, victory: bool, difficulty: str) -> Rewards:
        """Roll coins, experience and the independent item and key drops"""
        coins = self.rng.randint(*COIN_RANGE)
        exp = self.rng.randint(*EXP_RANGE)
        if victory:
            coins *= WIN_MULTIPLIER
            exp *= WIN_MULTIPLIER

        rewards = Rewards(coins, exp)
        if not victory:
            return rewards

        if self.rng.random() < ITEM_DROP_CHANCES.get(difficulty, ITEM_DROP_CHANCES['easy']):
            weights = ITEM_RARITY_WEIGHTS.get(difficulty, ITEM_RARITY_WEIGHTS['normal'])
            rarity = weighted_choice(list(weights.keys()), list(weights.values()), self.rng)
            rewards.item = self.catalog.random_item_by_rarity(rarity, self.rng)

        if self.rng.random() < KEY_DROP_CHANCES.get(difficulty, KEY_DROP_CHANCES['normal']):
            weights = KEY_RARITY_WEIGHTS.get(difficulty, KEY_RARITY_WEIGHTS['normal'])
            rarity = weighted_choice(list(weights.keys()), list(weights.values()), self.rng)
            rewards.key = self.catalog.get_key(rarity)

        return rewards
