from datetime import datetime, timedelta

import pytest

from src.database.models import Pet
from src.pet_game.errors import InvariantViolation, LevelTooLow, ValidationError
from src.pet_game.item_catalog import ItemCatalog
from src.pet_game.pet_care import (
    DEFEAT_RECOVERY_HEALTH,
    apply_battle_health,
    apply_decay,
    check_vitals,
    create_pet,
    use_item,
)

NOW = datetime(2024, 5, 1, 12, 0, 0)


def make_pet(**stats):
    return Pet(pet_id=1, user_id=1, name="Sparky", last_update=NOW - timedelta(hours=2), **stats)


def test_hungry_pet_loses_health_over_two_hours():
    pet = make_pet(hunger=15, health=100, energy=50, mood=50)
    decayed = apply_decay(pet, NOW)
    assert decayed.hunger == pytest.approx(5)
    assert decayed.health == pytest.approx(96)
    assert decayed.energy == pytest.approx(54)
    assert decayed.mood == pytest.approx(44)
    assert decayed.last_update == NOW


def test_fed_pet_keeps_health():
    pet = make_pet(hunger=90, health=80)
    decayed = apply_decay(pet, NOW)
    assert decayed.hunger == pytest.approx(80)
    assert decayed.health == pytest.approx(80)


def test_decay_twice_at_same_instant_changes_nothing():
    pet = make_pet(hunger=60)
    once = apply_decay(pet, NOW)
    twice = apply_decay(once, NOW)
    assert once == twice


def test_decay_ignores_clock_going_backwards():
    pet = make_pet()
    assert apply_decay(pet, NOW - timedelta(hours=5)) == pet


def test_long_absence_clamps_every_vital():
    pet = make_pet(hunger=10, health=30, energy=99, mood=5)
    decayed = apply_decay(pet, NOW + timedelta(days=30))
    assert decayed.hunger == 0
    assert decayed.health == 0
    assert decayed.energy == 100
    assert decayed.mood == 0
    check_vitals(decayed)


def test_check_vitals_rejects_out_of_range():
    with pytest.raises(InvariantViolation):
        check_vitals(make_pet(hunger=120))


def test_feeding_food_raises_vitals_up_to_cap():
    catalog = ItemCatalog()
    pet = make_pet(hunger=90, mood=50)
    fed = use_item(pet, catalog.get_item_by_name("Apple"))
    assert fed.hunger == 100
    assert fed.mood == 55


def test_equipment_cannot_be_eaten():
    catalog = ItemCatalog()
    with pytest.raises(ValidationError):
        use_item(make_pet(), catalog.get_item_by_name("Wooden Sword"))


def test_food_respects_min_level():
    catalog = ItemCatalog()
    with pytest.raises(LevelTooLow):
        use_item(make_pet(level=1), catalog.get_item_by_name("Golden Apple"))


def test_battle_health_rules():
    pet = make_pet(health=90)
    assert apply_battle_health(pet, True, 42.5).health == 42.5
    assert apply_battle_health(pet, True, -3).health == 1
    assert apply_battle_health(pet, False, 0).health == DEFEAT_RECOVERY_HEALTH


def test_new_pet_is_named_after_its_species():
    pet = create_pet(0, 7, NOW)
    assert pet.name == f"My {pet.species}"
    assert pet.last_update == NOW
    check_vitals(pet)
