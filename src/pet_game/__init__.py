# Pet game module for Pet Arena
from .battle_system import BattleManager
from .case_system import CaseSystem
from .game_service import GameService
from .garden import GardenSystem
from .item_catalog import ItemCatalog
from .ledger import EconomyLedger
from .rewards import RewardSystem

__all__ = ['BattleManager', 'CaseSystem', 'GameService', 'GardenSystem', 'ItemCatalog',
           'EconomyLedger', 'RewardSystem']
