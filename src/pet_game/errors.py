"""
Game Errors
Typed failures reported back to the player with a readable reason
"""
from ..database.connection import StorageError


class GameError(Exception):
    """Base class for recoverable game failures"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ValidationError(GameError):
    pass


class UnknownSeed(ValidationError):
    pass


class UnknownItem(ValidationError):
    pass


class SlotOccupied(ValidationError):
    pass


class NoFreeSlot(ValidationError):
    pass


class InvalidSlot(ValidationError):
    pass


class LevelTooLow(ValidationError):
    pass


class PetTooWeak(ValidationError):
    pass


class InvalidAction(ValidationError):
    pass


class InsufficientResources(GameError):
    pass


class InsufficientFunds(InsufficientResources):
    pass


class NoKeyAvailable(InsufficientResources):
    pass


class NotEnoughItems(InsufficientResources):
    pass


class NotFound(GameError):
    pass


class BattleNotFound(NotFound):
    pass


class ItemNotOwned(NotFound):
    pass


class InvariantViolation(GameError):
    """Raised when a state that clamping should prevent is detected"""
    pass


__all__ = [
    'GameError', 'ValidationError', 'UnknownSeed', 'UnknownItem', 'SlotOccupied',
    'NoFreeSlot', 'InvalidSlot', 'LevelTooLow', 'PetTooWeak', 'InvalidAction',
    'InsufficientResources', 'InsufficientFunds', 'NoKeyAvailable', 'NotEnoughItems',
    'NotFound', 'BattleNotFound', 'ItemNotOwned', 'InvariantViolation', 'StorageError',
]
