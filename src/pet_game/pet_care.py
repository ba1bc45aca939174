"""
Pet Care
Time-based stat decay, feeding, and the rules that keep vitals in range
"""
import random
from dataclasses import replace
from datetime import datetime
from typing import Optional

from ..database.models import Pet, Item
from .errors import InvariantViolation, LevelTooLow, ValidationError


VITALS = ('hunger', 'energy', 'mood', 'health')
VITAL_MIN = 0.0
VITAL_MAX = 100.0

# Per-hour rates
HUNGER_DECAY = 5.0
MOOD_DECAY = 3.0
ENERGY_REGEN = 2.0
STARVING_HEALTH_DECAY = 2.0
LOW_HUNGER_THRESHOLD = 20.0

# Health rules around battles
MIN_BATTLE_HEALTH = 10.0
DEFEAT_RECOVERY_HEALTH = 50.0

PET_SPECIES = ['dragon', 'robot', 'cat', 'wolf', 'bird']


def clamp(value: float, low: float = VITAL_MIN, high: float = VITAL_MAX) -> float:
    return max(low, min(high, value))


def check_vitals(pet: Pet):
    """Raise InvariantViolation if any vital is out of range"""
    for stat in VITALS:
        value = getattr(pet, stat)
        if not VITAL_MIN <= value <= VITAL_MAX:
            raise InvariantViolation(f"{pet.name}'s {stat} is out of range: {value}")


def apply_decay(pet: Pet, now: datetime) -> Pet:
    """Bring a pet's vitals up to date with the wall clock.

    Hunger and mood fall linearly, energy recovers toward 100. If hunger ends
    up below the low-hunger threshold, health also drops for the whole
    elapsed window. Calling again at the same instant changes nothing.
    """
    if pet.last_update is None:
        return replace(pet, last_update=now)

    hours_passed = (now - pet.last_update).total_seconds() / 3600
    if hours_passed <= 0:
        return pet

    hunger = clamp(pet.hunger - HUNGER_DECAY * hours_passed)
    energy = clamp(pet.energy + ENERGY_REGEN * hours_passed)
    mood = clamp(pet.mood - MOOD_DECAY * hours_passed)
    health = pet.health

    if hunger < LOW_HUNGER_THRESHOLD:
        health = clamp(health - STARVING_HEALTH_DECAY * hours_passed)

    return replace(pet, hunger=hunger, energy=energy, mood=mood, health=clamp(health), last_update=now)


def create_pet(pet_id: int, user_id: int, now: datetime, rng: Optional[random.Random] = None) -> Pet:
    """Hatch a new pet of a random species"""
    species = (rng or random).choice(PET_SPECIES)
    return Pet(
        pet_id=pet_id,
        user_id=user_id,
        name=f"My {species}",
        species=species,
        created_at=now,
        last_update=now
    )


def use_item(pet: Pet, item: Item) -> Pet:
    """Feed a food item to the pet, applying its effect to the vitals"""
    if item.category != 'food':
        raise ValidationError(f"{item.name} can't be used on your pet")
    if pet.level < item.min_level:
        raise LevelTooLow(f"{item.name} requires level {item.min_level}")

    changes = {}
    for stat, amount in item.effect.items():
        if stat in VITALS:
            changes[stat] = clamp(getattr(pet, stat) + amount)
    return replace(pet, **changes)


def apply_battle_health(pet: Pet, victory: bool, remaining_health: float) -> Pet:
    """Write a finished battle's outcome back to the pet's health.

    Winners keep what they had left (never below 1). Losers are patched up
    to a fixed recovery value.
    """
    if victory:
        return replace(pet, health=clamp(remaining_health, 1.0))
    return replace(pet, health=DEFEAT_RECOVERY_HEALTH)


def status_emoji(value: float) -> str:
    if value >= 80:
        return '🟢'
    if value >= 50:
        return '🟡'
    if value >= 30:
        return '🟠'
    return '🔴'
