import random
from datetime import datetime, timedelta

import pytest

from src.database.models import Garden, GardenSlot
from src.pet_game.errors import InsufficientFunds, InvalidSlot, NoFreeSlot, SlotOccupied, UnknownSeed
from src.pet_game.garden import MAX_PLANT_LEVEL, GardenSystem
from src.pet_game.item_catalog import ItemCatalog

NOW = datetime(2024, 5, 1, 8, 0, 0)


def make_garden_system(seed=1):
    return GardenSystem(ItemCatalog(), random.Random(seed))


def test_plant_charges_seed_price():
    system = make_garden_system()
    garden, price = system.plant(system.new_garden(1), 2, "carrot", NOW, coins=100)
    assert price == 10
    assert garden.slots[1].plant_kind == "carrot"
    assert garden.slots[1].level == 1
    assert garden.occupied() == [1]


def test_carrot_is_not_ready_just_before_two_hours():
    system = make_garden_system()
    garden, _ = system.plant(system.new_garden(1), 1, "carrot", NOW, coins=100)
    almost = NOW + timedelta(hours=2) - timedelta(seconds=1)
    harvested, yields = system.harvest(garden, almost)
    assert yields == []
    assert harvested.slots == garden.slots


def test_carrot_yield_after_two_hours():
    system = make_garden_system()
    garden, _ = system.plant(system.new_garden(1), 1, "carrot", NOW, coins=100)
    later = NOW + timedelta(hours=2, seconds=1)
    harvested, yields = system.harvest(garden, later)

    assert len(yields) == 1
    item_name, quantity = yields[0]
    assert item_name == "Carrot"
    assert 1 <= quantity <= 3
    # Plant stays, levels up and its timer restarts
    assert harvested.slots[0].level == 2
    assert harvested.slots[0].planted_at == later


def test_plant_level_is_capped():
    system = make_garden_system()
    garden = Garden(1, [GardenSlot("apple", NOW - timedelta(hours=7), MAX_PLANT_LEVEL)] + [None] * 5)
    harvested, yields = system.harvest(garden, NOW)
    assert harvested.slots[0].level == MAX_PLANT_LEVEL
    assert yields[0][1] >= 2 * MAX_PLANT_LEVEL


def test_unknown_stored_plant_waits_a_day_and_yields_nothing():
    system = make_garden_system()
    garden = Garden(1, [GardenSlot("mystery", NOW - timedelta(hours=25), 1)] + [None] * 5)
    assert system.is_ready(garden.slots[0], NOW)
    _, yields = system.harvest(garden, NOW)
    assert yields == []


def test_occupied_slot_is_rejected():
    system = make_garden_system()
    garden, _ = system.plant(system.new_garden(1), 1, "carrot", NOW, coins=100)
    with pytest.raises(SlotOccupied):
        system.plant(garden, 1, "apple", NOW, coins=100)


def test_slot_out_of_range():
    system = make_garden_system()
    with pytest.raises(InvalidSlot):
        system.plant(system.new_garden(1), 7, "carrot", NOW, coins=100)


def test_unknown_seed():
    system = make_garden_system()
    with pytest.raises(UnknownSeed):
        system.plant(system.new_garden(1), 1, "banana", NOW, coins=100)


def test_not_enough_coins():
    system = make_garden_system()
    with pytest.raises(InsufficientFunds):
        system.plant(system.new_garden(1), 1, "golden_apple", NOW, coins=50)


def test_prepaid_planting_is_free():
    system = make_garden_system()
    _, price = system.plant(system.new_garden(1), 1, "golden_apple", NOW, coins=0, prepaid=True)
    assert price == 0


def test_first_free_slot_and_full_garden():
    system = make_garden_system()
    garden = system.new_garden(1)
    for _ in range(system.slot_count):
        garden, _ = system.plant(garden, None, "carrot", NOW, coins=100)
    assert garden.occupied() == list(range(6))
    with pytest.raises(NoFreeSlot):
        system.plant(garden, None, "carrot", NOW, coins=100)


def test_lowered_slot_count_closes_extra_slots():
    system = make_garden_system()
    garden, _ = system.plant(system.new_garden(1), 6, "apple", NOW, coins=100)
    system.slot_count = 3
    with pytest.raises(InvalidSlot):
        system.plant(garden, 4, "carrot", NOW, coins=100)
    for _ in range(3):
        garden, _ = system.plant(garden, None, "carrot", NOW, coins=100)
    with pytest.raises(NoFreeSlot):
        system.plant(garden, None, "carrot", NOW, coins=100)

    # The apple planted before the change still grows and can be picked
    garden, yields = system.harvest(garden, NOW + timedelta(hours=6))
    assert "Apple" in [name for name, _ in yields]


def test_hours_remaining_counts_down():
    system = make_garden_system()
    garden, _ = system.plant(system.new_garden(1), 1, "apple", NOW, coins=100)
    assert system.hours_remaining(garden.slots[0], NOW + timedelta(hours=2)) == pytest.approx(4)
    assert system.hours_remaining(garden.slots[0], NOW + timedelta(hours=9)) == 0
