"""
Database Models
Data classes representing the game's persisted entities
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any, List


@dataclass
class User:
    """Player account, keyed by the messaging-platform id"""
    user_id: int
    external_id: int
    username: Optional[str] = None
    coins: int = 100
    gems: int = 10
    created_at: Optional[datetime] = None


@dataclass
class Pet:
    """A user's pet with vital and combat stats"""
    pet_id: int
    user_id: int
    name: str
    species: str = 'dragon'
    level: int = 1
    exp: int = 0
    hunger: float = 50.0
    energy: float = 80.0
    mood: float = 70.0
    health: float = 100.0
    attack: float = 10.0
    defense: float = 5.0
    speed: float = 8.0
    character: str = 'friendly'
    created_at: Optional[datetime] = None
    last_update: Optional[datetime] = None

    @property
    def exp_to_next_level(self) -> int:
        return self.level * 100


@dataclass
class GardenSlot:
    """A planted slot: plant kind, when it was (re)planted, and its level"""
    plant_kind: str
    planted_at: datetime
    level: int = 1

    def to_storage(self) -> str:
        """Serialize as 'kind:level@iso-timestamp'"""
        return f"{self.plant_kind}:{self.level}@{self.planted_at.isoformat()}"

    @classmethod
    def from_storage(cls, value: Optional[str]) -> Optional['GardenSlot']:
        if not value:
            return None
        head, _, planted = value.partition('@')
        kind, _, level = head.partition(':')
        return cls(kind, datetime.fromisoformat(planted), int(level or 1))


@dataclass
class Garden:
    """A user's garden; empty slots are None"""
    user_id: int
    slots: List[Optional[GardenSlot]] = field(default_factory=lambda: [None] * 6)

    def occupied(self) -> List[int]:
        """Indexes of planted slots"""
        return [index for index, slot in enumerate(self.slots) if slot is not None]


@dataclass
class Item:
    """Catalog item. Immutable after seeding."""
    item_id: int
    name: str
    category: str
    rarity: str
    effect: Dict[str, Any] = field(default_factory=dict)
    price: int = 0
    sell_price: int = 0
    min_level: int = 1


@dataclass
class Inventory:
    """A user's held items as item_id -> quantity. Zero entries are never kept."""
    user_id: int
    items: Dict[int, int] = field(default_factory=dict)

    def quantity(self, item_id: int) -> int:
        return self.items.get(item_id, 0)

    def add(self, item_id: int, quantity: int = 1):
        if quantity <= 0:
            return
        self.items[item_id] = self.items.get(item_id, 0) + quantity

    def remove(self, item_id: int, quantity: int = 1) -> bool:
        """Remove items, returns False if not enough are held"""
        current = self.items.get(item_id, 0)
        if quantity <= 0 or current < quantity:
            return False

        if current == quantity:
            del self.items[item_id]
        else:
            self.items[item_id] = current - quantity
        return True

    def copy(self) -> 'Inventory':
        return Inventory(self.user_id, dict(self.items))


@dataclass
class BattleRecord:
    """Battle history entry"""
    user_id: int
    result: str
    opponent_type: str
    reward: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    record_id: Optional[int] = None
