import random
from datetime import datetime

import pytest

from src.database.models import Pet
from src.pet_game.battle_system import (
    MAX_TURNS,
    Action,
    Battle,
    BattleAI,
    BattleManager,
    BattleState,
    Combatant,
    action_weights,
    calculate_damage,
    difficulty_weights,
)
from src.pet_game.errors import BattleNotFound, InvalidAction, PetTooWeak


class ScriptedRandom(random.Random):
    """Random whose random() replays fixed values"""

    def __init__(self, values):
        super().__init__(0)
        self.values = list(values)

    def random(self):
        return self.values.pop(0) if self.values else 0.99


class AlwaysDefend(BattleAI):
    def choose_action(self, own_state, foe_state):
        return Action.DEFEND


def make_pet(**stats):
    return Pet(pet_id=1, user_id=1, name="Sparky", last_update=datetime(2024, 1, 1), **stats)


def fighter(attack=20, defense=10, health=100, energy=None):
    return Combatant("Fighter", 1, health, attack, defense, 8, energy=energy)


def test_attack_damage_formula():
    damage = calculate_damage(fighter(attack=20), fighter(defense=10), Action.ATTACK, ScriptedRandom([0.9]))
    assert damage == pytest.approx(13.0)


def test_special_hits_harder_and_defend_deals_nothing():
    rng = ScriptedRandom([0.9])
    assert calculate_damage(fighter(attack=20), fighter(defense=10), Action.SPECIAL, rng) == pytest.approx(27.0)
    assert calculate_damage(fighter(), fighter(), Action.DEFEND, rng) == 0


def test_critical_hit():
    damage = calculate_damage(fighter(attack=20), fighter(defense=10), Action.ATTACK, ScriptedRandom([0.01]))
    assert damage == pytest.approx(19.5)


def test_damage_never_below_one():
    damage = calculate_damage(fighter(attack=1), fighter(defense=100), Action.ATTACK, ScriptedRandom([0.9]))
    assert damage == 1


def test_tired_pet_hits_softer():
    half = calculate_damage(fighter(attack=20, energy=50), fighter(defense=10), Action.ATTACK, ScriptedRandom([0.9]))
    assert half == pytest.approx(6.5)
    spent = calculate_damage(fighter(attack=20, energy=0), fighter(defense=10), Action.ATTACK, ScriptedRandom([0.9]))
    assert spent == 0


def test_defending_halves_next_hit_only():
    defender = fighter(health=100)
    defender.is_defending = True
    assert defender.take_damage(10) == 5
    assert defender.is_defending is False
    assert defender.take_damage(10) == 10
    assert defender.current_health == 85


def test_cunning_goes_all_in_on_weak_foe():
    weights = action_weights('cunning', 'normal', foe_health=20)
    assert weights == {Action.ATTACK: 0.8, Action.SPECIAL: 0.2, Action.DEFEND: 0.0}
    assert action_weights('cunning', 'normal', foe_health=80)[Action.ATTACK] == 0.4


def test_difficulty_adjusts_weights():
    assert action_weights('aggressive', 'hard', 100)[Action.SPECIAL] == pytest.approx(0.4)
    assert action_weights('defensive', 'easy', 100)[Action.DEFEND] == pytest.approx(0.8)


def test_higher_level_pets_meet_harder_opponents():
    assert difficulty_weights(3) == [0.5, 0.35, 0.15]
    assert difficulty_weights(10) == [0.2, 0.5, 0.3]


def test_stalemate_ends_at_turn_limit():
    battle = Battle(1, fighter(), fighter(), AlwaysDefend('normal', 'defensive'), rng=random.Random(3))
    battle.begin()
    for _ in range(MAX_TURNS):
        result = battle.resolve_turn('defend')
    assert battle.is_over
    # Equal health left: the opponent takes it
    assert battle.state == BattleState.DEFEAT
    assert result['outcome'] == 'defeat'
    assert result['turn'] == MAX_TURNS


def test_healthier_side_wins_at_turn_limit():
    tank = fighter(health=10000)
    battle = Battle(1, fighter(), tank, AlwaysDefend('normal', 'defensive'), rng=random.Random(3))
    battle.begin()
    for _ in range(MAX_TURNS):
        result = battle.resolve_turn('attack')
    # Never hit back, so the player ends with the larger share of health
    assert tank.is_alive()
    assert battle.state == BattleState.VICTORY
    assert result['outcome'] == 'victory'
    assert result['turn'] == MAX_TURNS


@pytest.mark.parametrize("seed", range(25))
def test_random_battles_always_finish(seed):
    rng = random.Random(seed)
    manager = BattleManager(rng)
    battle = manager.start_battle(make_pet(energy=rng.choice([0, 40, 100])))
    turns = 0
    while not battle.is_over:
        battle.resolve_turn(rng.choice(['attack', 'special', 'defend']))
        turns += 1
    assert turns <= MAX_TURNS


def test_flee_is_a_defeat():
    manager = BattleManager(random.Random(5))
    battle = manager.start_battle(make_pet())
    result = battle.resolve_turn('flee')
    assert result['outcome'] == 'defeat'
    assert result['opponent_action'] is None


def test_unknown_action_and_finished_battle():
    manager = BattleManager(random.Random(5))
    battle = manager.start_battle(make_pet())
    with pytest.raises(InvalidAction):
        battle.resolve_turn('dance')
    battle.resolve_turn('flee')
    with pytest.raises(InvalidAction):
        battle.resolve_turn('attack')


def test_weak_pet_cannot_fight():
    with pytest.raises(PetTooWeak):
        BattleManager(random.Random(1)).start_battle(make_pet(health=5))


def test_opponent_stats_follow_level_and_difficulty():
    manager = BattleManager(random.Random(2))
    opponent = manager.create_opponent(5, 'hard')
    assert 4 <= opponent.level <= 6
    assert opponent.max_health == pytest.approx((80 + 5 * opponent.level) * 1.2)
    assert opponent.energy is None


def test_manager_tracks_one_battle_per_user():
    manager = BattleManager(random.Random(4))
    battle = manager.start_battle(make_pet())
    assert manager.get_player_active_battle(1) is battle
    manager.finish_battle(1)
    assert manager.get_player_active_battle(1) is None
    with pytest.raises(BattleNotFound):
        manager.require_active_battle(1)
