# Database module for Pet Arena
from .config_store import ConfigStore
from .connection import DatabaseManager, StorageError
from .memory_store import MemoryRepository
from .models import BattleRecord, Garden, GardenSlot, Inventory, Item, Pet, User
from .repository import GameRepository
from .setup import DatabaseSetup

__all__ = ['ConfigStore', 'DatabaseManager', 'StorageError', 'MemoryRepository', 'GameRepository',
           'DatabaseSetup', 'BattleRecord', 'Garden', 'GardenSlot', 'Inventory', 'Item', 'Pet', 'User']
