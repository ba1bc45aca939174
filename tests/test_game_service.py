import random
import threading
from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from src.database.connection import StorageError
from src.database.memory_store import MemoryRepository
from src.pet_game.errors import (
    BattleNotFound,
    InsufficientFunds,
    ItemNotOwned,
    LevelTooLow,
    NoKeyAvailable,
    PetTooWeak,
    UnknownItem,
)
from src.pet_game.game_service import GameService

START = datetime(2024, 6, 1, 10, 0, 0)


class Clock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **delta):
        self.now += timedelta(**delta)


def make_service(seed=1, history_limit=100):
    clock = Clock()
    repository = MemoryRepository()
    service = GameService(repository, rng=random.Random(seed), clock=clock, history_limit=history_limit)
    return service, repository, clock


def test_register_creates_user_pet_and_garden_once():
    service, repository, _ = make_service()
    first = service.register(1001, "ann")
    second = service.register(1001, "ann")
    assert first['created'] and not second['created']
    assert first['pet'].pet_id == second['pet'].pet_id
    assert first['user'].coins == 100
    assert repository.get_garden(first['user'].user_id, 6).slots == [None] * 6


def test_status_applies_decay():
    service, _, clock = make_service()
    service.register(1001, "ann")
    clock.advance(hours=4)
    pet = service.status(1001, "ann")['pet']
    assert pet.hunger == pytest.approx(30)
    assert pet.last_update == clock.now


def test_buy_then_feed():
    service, _, _ = make_service()
    service.register(1001, "ann")
    bought = service.buy(1001, "ann", "apple", 2)
    assert bought['cost'] == 20
    assert bought['coins'] == 80

    fed = service.use_item(1001, "ann", "Apple")
    assert fed['pet'].hunger == pytest.approx(80)
    assert [(item.name, qty) for item, qty in service.inventory_view(1001)] == [('Apple', 1)]


def test_feed_without_item():
    service, _, _ = make_service()
    service.register(1001, "ann")
    with pytest.raises(ItemNotOwned):
        service.use_item(1001, "ann", "Carrot")
    with pytest.raises(UnknownItem):
        service.use_item(1001, "ann", "Pizza")


def test_shop_rules():
    service, _, _ = make_service()
    service.register(1001, "ann")
    with pytest.raises(InsufficientFunds):
        service.buy(1001, "ann", "Common Key", 2)
    with pytest.raises(LevelTooLow):
        service.buy(1001, "ann", "Golden Seed")
    # Nothing was charged for the failed purchases
    assert service.status(1001, "ann")['user'].coins == 100


def test_sell_credits_sell_price():
    service, _, _ = make_service()
    service.register(1001, "ann")
    service.buy(1001, "ann", "Carrot", 3)
    sold = service.sell(1001, "ann", "carrot", 3)
    assert sold['earned'] == 6
    assert sold['coins'] == 100 - 15 + 6
    assert service.inventory_view(1001) == []


def test_plant_and_harvest_cycle():
    service, _, clock = make_service()
    service.register(1001, "ann")
    planted = service.plant(1001, "ann", "carrot")
    assert planted['slot'] == 1
    assert planted['coins'] == 90

    assert service.harvest(1001, "ann") == []
    clock.advance(hours=2, minutes=1)
    yields = service.harvest(1001, "ann")
    assert yields and yields[0][0] == 'Carrot'
    held = dict((item.name, qty) for item, qty in service.inventory_view(1001))
    assert held['Carrot'] == yields[0][1]

    slot = service.garden_status(1001, "ann")['slots'][0]
    assert slot['level'] == 2 and not slot['ready']


def test_planting_uses_held_seed_packet_first():
    service, _, _ = make_service()
    service.register(1001, "ann")
    service.buy(1001, "ann", "Carrot Seeds")
    planted = service.plant(1001, "ann", "carrot", 3)
    assert planted['prepaid'] and planted['price'] == 0
    assert planted['coins'] == 90
    assert service.inventory_view(1001) == []


def test_planting_locked_seed():
    service, _, _ = make_service()
    service.register(1001, "ann")
    with pytest.raises(LevelTooLow):
        service.plant(1001, "ann", "golden_apple")


def test_battle_to_the_end_pays_and_records():
    service, repository, _ = make_service(seed=3)
    service.register(1001, "ann")
    battle = service.start_battle(1001, "ann")
    assert service.start_battle(1001, "ann") is battle

    result = {'outcome': None}
    while not result['outcome']:
        result = service.battle_action(1001, "ann", 'special')

    status = service.status(1001, "ann")
    assert status['user'].coins == 100 + result['rewards'].coins
    assert not status['in_battle']
    history = service.battle_history(1001)
    assert len(history) == 1
    assert history[0].result == ('win' if result['outcome'] == 'victory' else 'lose')
    if result['outcome'] == 'defeat':
        assert status['pet'].health == 50

    with pytest.raises(BattleNotFound):
        service.battle_action(1001, "ann", 'attack')


def test_fleeing_pays_nothing():
    service, _, _ = make_service()
    service.register(1001, "ann")
    service.start_battle(1001, "ann")
    result = service.battle_action(1001, "ann", 'flee')
    assert result['outcome'] == 'defeat'
    assert result['rewards'].coins == 0
    assert result['coins'] == 100


def test_fleeing_leaves_health_alone():
    service, repository, _ = make_service()
    user = service.register(1001, "ann")['user']
    repository.save_turn(pet=replace(repository.get_pet(user.user_id), health=12.0))

    service.start_battle(1001, "ann")
    result = service.battle_action(1001, "ann", 'flee')
    assert result['pet'].health == pytest.approx(12.0)
    assert service.status(1001, "ann")['pet'].health == pytest.approx(12.0)


class FlakyRepository(MemoryRepository):
    """Fails the first save that records a battle"""

    def __init__(self):
        super().__init__()
        self.failures = 1

    def save_turn(self, **records):
        if records.get('battle_record') is not None and self.failures:
            self.failures -= 1
            raise StorageError("connection reset")
        super().save_turn(**records)


def test_failed_final_save_keeps_battle_for_retry():
    repository = FlakyRepository()
    service = GameService(repository, rng=random.Random(3), clock=Clock())
    service.register(1001, "ann")
    service.start_battle(1001, "ann")

    failures = 0
    result = {'outcome': None}
    while not result['outcome']:
        try:
            result = service.battle_action(1001, "ann", 'special')
        except StorageError:
            failures += 1
            assert service.active_battle(1001) is not None
            assert service.battle_history(1001) == []
            assert service.status(1001, "ann")['user'].coins == 100

    assert failures == 1
    assert len(service.battle_history(1001)) == 1
    assert service.status(1001, "ann")['user'].coins == 100 + result['rewards'].coins
    assert service.active_battle(1001) is None


def test_battle_log_uses_game_clock():
    service, _, clock = make_service()
    service.register(1001, "ann")
    battle = service.start_battle(1001, "ann")
    clock.advance(minutes=5)
    service.battle_action(1001, "ann", 'flee')
    assert battle.created_at == START
    assert battle.finished_at == clock.now
    assert battle.battle_log[0]['timestamp'] == START.isoformat()
    assert battle.battle_log[-1]['timestamp'] == clock.now.isoformat()


def test_starving_pet_cannot_battle():
    service, _, clock = make_service()
    service.register(1001, "ann")
    clock.advance(days=5)
    with pytest.raises(PetTooWeak):
        service.start_battle(1001, "ann")


def test_open_case_needs_a_key():
    service, _, _ = make_service()
    service.register(1001, "ann")
    with pytest.raises(NoKeyAvailable):
        service.open_case(1001, "ann", 'common')

    service.buy(1001, "ann", "Common Key")
    assert [key.name for key, _ in service.held_keys(1001)] == ['Common Key']
    opened = service.open_case(1001, "ann", 'common')
    assert opened['item'].category != 'key'
    assert service.held_keys(1001) == []


def test_decay_sweep_updates_every_pet_once():
    service, repository, clock = make_service()
    service.register(1, "ann")
    service.register(2, "bob")
    clock.advance(hours=1)
    assert service.run_decay_sweep() == 2
    assert service.run_decay_sweep() == 0
    assert repository.get_pet(1).hunger == pytest.approx(45)


def test_decay_sweep_is_not_reentrant():
    service, _, _ = make_service()
    service._sweep_guard.acquire()
    try:
        assert service.run_decay_sweep() == -1
    finally:
        service._sweep_guard.release()


def test_history_trim_uses_limit():
    service, _, _ = make_service(history_limit=1)
    service.register(1001, "ann")
    for _ in range(3):
        service.start_battle(1001, "ann")
        service.battle_action(1001, "ann", 'flee')
    assert service.trim_battle_history() == 2
    assert len(service.battle_history(1001)) == 1


def test_concurrent_purchases_never_overspend():
    service, _, _ = make_service()
    service.register(1001, "ann")
    errors = []

    def shop():
        try:
            service.buy(1001, "ann", "Carrot", 1)
        except InsufficientFunds as e:
            errors.append(e)

    threads = [threading.Thread(target=shop) for _ in range(30)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    coins = service.status(1001, "ann")['user'].coins
    carrots = dict((item.name, qty) for item, qty in service.inventory_view(1001))['Carrot']
    assert coins == 0
    assert carrots == 20
    assert len(errors) == 10
