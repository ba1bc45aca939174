"""
Battle System
Handles turn-based battles between a player's pet and an AI opponent
"""
import random
from datetime import datetime
from enum import Enum
from typing import Dict, Any, List, Optional

from ..database.models import Pet
from .errors import BattleNotFound, InvalidAction, PetTooWeak
from .pet_care import MIN_BATTLE_HEALTH
from .random_utils import weighted_choice


class BattleState(Enum):
    """Battle state enumeration"""
    SETUP = "setup"
    IN_PROGRESS = "in_progress"
    VICTORY = "victory"
    DEFEAT = "defeat"


class Action(Enum):
    """Actions available to either side"""
    ATTACK = "attack"
    SPECIAL = "special"
    DEFEND = "defend"
    FLEE = "flee"


DIFFICULTIES = ['easy', 'normal', 'hard']
PERSONALITIES = ['aggressive', 'defensive', 'balanced', 'cunning']
OPPONENT_NAMES = ['Dragon', 'Warrior', 'Beast', 'Guardian', 'Knight']
OPPONENT_SPECIES = ['dragon', 'robot', 'cat', 'wolf']

DIFFICULTY_STAT_MULTIPLIERS = {'easy': 0.9, 'normal': 1.0, 'hard': 1.2}

ACTION_MULTIPLIERS = {Action.ATTACK: 0.8, Action.SPECIAL: 1.5}
DEFENSE_FACTOR = 0.3
CRIT_CHANCE = 0.05
CRIT_MULTIPLIER = 1.5
# Defending halves the next damaging hit taken
DEFEND_DAMAGE_REDUCTION = 0.5
CUNNING_FINISH_THRESHOLD = 30
MAX_TURNS = 20


def difficulty_weights(player_level: int) -> List[float]:
    """Chance of easy/normal/hard opponents for a given pet level"""
    if player_level < 10:
        return [0.5, 0.35, 0.15]
    return [0.2, 0.5, 0.3]


def action_weights(personality: str, difficulty: str, foe_health: float) -> Dict[Action, float]:
    """Opponent action weights for its personality and difficulty"""
    weights = {Action.ATTACK: 0.4, Action.SPECIAL: 0.3, Action.DEFEND: 0.3}

    if personality == 'aggressive':
        weights = {Action.ATTACK: 0.6, Action.SPECIAL: 0.3, Action.DEFEND: 0.1}
    elif personality == 'defensive':
        weights = {Action.ATTACK: 0.2, Action.SPECIAL: 0.2, Action.DEFEND: 0.6}
    elif personality == 'cunning' and foe_health < CUNNING_FINISH_THRESHOLD:
        # Smells blood: go all in
        weights = {Action.ATTACK: 0.8, Action.SPECIAL: 0.2, Action.DEFEND: 0.0}

    if difficulty == 'hard':
        weights[Action.SPECIAL] += 0.1
    elif difficulty == 'easy':
        weights[Action.DEFEND] += 0.2

    return weights


class Combatant:
    """One side of a battle with its current stats"""

    def __init__(self, name: str, level: int, health: float, attack: float, defense: float,
                 speed: float, energy: Optional[float] = None, species: str = '',
                 owner_id: Optional[int] = None):
        self.name = name
        self.level = level
        self.species = species
        self.owner_id = owner_id

        self.current_health = health
        self.max_health = health
        self.attack = attack
        self.defense = defense
        self.speed = speed
        # Only the player's pet tires; None means damage is never scaled
        self.energy = energy

        self.is_defending = False

    @classmethod
    def from_pet(cls, pet: Pet) -> 'Combatant':
        return cls(pet.name, pet.level, pet.health, pet.attack, pet.defense, pet.speed,
                   energy=pet.energy, species=pet.species, owner_id=pet.user_id)

    def is_alive(self) -> bool:
        """Check if the combatant is still standing"""
        return self.current_health > 0

    def health_fraction(self) -> float:
        if self.max_health <= 0:
            return 0.0
        return max(0.0, self.current_health) / self.max_health

    def take_damage(self, damage: float) -> float:
        """Apply damage, returns actual damage taken"""
        if damage <= 0:
            return 0

        if self.is_defending:
            damage = round(damage * (1 - DEFEND_DAMAGE_REDUCTION), 1)
            self.is_defending = False

        self.current_health = round(self.current_health - damage, 1)
        return damage


def calculate_damage(attacker: Combatant, defender: Combatant, action: Action,
                     rng: Optional[random.Random] = None) -> float:
    """Raw damage for an action, before the defender's defend bonus.

    A tired attacker hits proportionally softer: damage scales with
    energy / 100, so a pet at 0 energy deals nothing.
    """
    multiplier = ACTION_MULTIPLIERS.get(action)
    if not multiplier:
        return 0

    rng = rng or random
    damage = max(1, attacker.attack * multiplier - defender.defense * DEFENSE_FACTOR)

    if rng.random() < CRIT_CHANCE:
        damage *= CRIT_MULTIPLIER

    if attacker.energy is not None:
        damage *= attacker.energy / 100

    return round(damage, 1)


class BattleAI:
    """Opponent policy: a weighted draw shaped by personality and difficulty"""

    def __init__(self, difficulty: str, personality: str, rng: Optional[random.Random] = None):
        self.difficulty = difficulty
        self.personality = personality
        self.rng = rng or random.Random()

    def choose_action(self, own_state: Combatant, foe_state: Combatant) -> Action:
        weights = action_weights(self.personality, self.difficulty, foe_state.current_health)
        return weighted_choice(list(weights.keys()), list(weights.values()), self.rng)


class Battle:
    """A single PvE encounter"""

    def __init__(self, user_id: int, player: Combatant, opponent: Combatant, ai: BattleAI,
                 max_turns: int = MAX_TURNS, rng: Optional[random.Random] = None,
                 now: Optional[datetime] = None):
        self.user_id = user_id
        self.player = player
        self.opponent = opponent
        self.ai = ai
        self.difficulty = ai.difficulty
        self.max_turns = max_turns
        self.rng = rng or random.Random()

        self.state = BattleState.SETUP
        self.turn_number = 1
        self.battle_log = []
        self.created_at = now or datetime.now()
        # Time of the turn being resolved, stamped on its log entries
        self.updated_at = self.created_at
        self.finished_at = None

    def begin(self):
        self.state = BattleState.IN_PROGRESS
        self.log_event(f"Battle begins! {self.player.name} vs {self.opponent.name} ({self.difficulty})")

    @property
    def is_over(self) -> bool:
        return self.state in (BattleState.VICTORY, BattleState.DEFEAT)

    @property
    def victory(self) -> bool:
        return self.state == BattleState.VICTORY

    def resolve_turn(self, player_action, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Resolve the player's action and the opponent's reply"""
        if self.state != BattleState.IN_PROGRESS:
            raise InvalidAction("This battle is already over!")
        self.updated_at = now or datetime.now()

        try:
            action = Action(player_action)
        except ValueError:
            raise InvalidAction(f"Unknown action '{player_action}'")

        result = {
            'turn': self.turn_number,
            'player_action': action.value,
            'opponent_action': None,
            'player_damage': 0,
            'opponent_damage': 0,
            'outcome': None
        }
        first_log_entry = len(self.battle_log)

        if action == Action.FLEE:
            self.log_event(f"{self.player.name} ran away!")
            self._end_battle(BattleState.DEFEAT)
            return self._finish_result(result, first_log_entry)

        result['player_damage'] = self._perform(self.player, self.opponent, action)

        if not self.opponent.is_alive():
            self.log_event(f"{self.opponent.name} has been defeated!")
            self._end_battle(BattleState.VICTORY)
            return self._finish_result(result, first_log_entry)

        opponent_action = self.ai.choose_action(self.opponent, self.player)
        result['opponent_action'] = opponent_action.value
        result['opponent_damage'] = self._perform(self.opponent, self.player, opponent_action)

        if not self.player.is_alive():
            self.log_event(f"{self.player.name} has been defeated!")
            self._end_battle(BattleState.DEFEAT)
        elif self.turn_number >= self.max_turns:
            self._end_on_turn_limit()
        else:
            self.turn_number += 1

        return self._finish_result(result, first_log_entry)

    def _perform(self, attacker: Combatant, defender: Combatant, action: Action) -> float:
        """Carry out one side's action, returns damage dealt"""
        if action == Action.DEFEND:
            attacker.is_defending = True
            self.log_event(f"{attacker.name} takes a defensive stance!")
            return 0

        damage = calculate_damage(attacker, defender, action, self.rng)
        dealt = defender.take_damage(damage)
        verb = 'unleashes a special on' if action == Action.SPECIAL else 'attacks'
        self.log_event(f"{attacker.name} {verb} {defender.name} for {dealt} damage!")
        return dealt

    def _end_on_turn_limit(self):
        """Out of turns: the side with more of its health left wins, ties go to the opponent"""
        self.log_event(f"Turn limit of {self.max_turns} reached!")
        if self.player.health_fraction() > self.opponent.health_fraction():
            self._end_battle(BattleState.VICTORY)
        else:
            self._end_battle(BattleState.DEFEAT)

    def _end_battle(self, final_state: BattleState):
        self.state = final_state
        self.finished_at = self.updated_at
        winner = self.player.name if final_state == BattleState.VICTORY else self.opponent.name
        self.log_event(f"Battle ends! {winner} wins!")

    def _finish_result(self, result: Dict[str, Any], first_log_entry: int) -> Dict[str, Any]:
        result['log'] = [entry['message'] for entry in self.battle_log[first_log_entry:]]
        if self.is_over:
            result['outcome'] = self.state.value
        return result

    def log_event(self, message: str):
        """Add an event to the battle log"""
        self.battle_log.append({
            'timestamp': self.updated_at.isoformat(),
            'turn': self.turn_number,
            'message': message
        })


class BattleManager:
    """Creates encounters and tracks each user's active battle"""

    def __init__(self, rng: Optional[random.Random] = None, max_turns: int = MAX_TURNS):
        self.rng = rng or random.Random()
        self.max_turns = max_turns
        self.active_battles: Dict[int, Battle] = {}

    def create_opponent(self, player_level: int, difficulty: str) -> Combatant:
        """Build an AI opponent around the player's level"""
        level = max(1, player_level + self.rng.choice([-1, 0, 1]))
        scale = DIFFICULTY_STAT_MULTIPLIERS.get(difficulty, 1.0)

        return Combatant(
            name=f"AI {self.rng.choice(OPPONENT_NAMES)}",
            level=level,
            health=round((80 + level * 5) * scale, 1),
            attack=round((10 + level * 2) * scale, 1),
            defense=round((5 + level) * scale, 1),
            speed=round((8 + level * 1.5) * scale, 1),
            species=self.rng.choice(OPPONENT_SPECIES)
        )

    def start_battle(self, pet: Pet, player_level: Optional[int] = None,
                     now: Optional[datetime] = None) -> Battle:
        """Set up a new encounter for the pet's owner"""
        if pet.health < MIN_BATTLE_HEALTH:
            raise PetTooWeak(f"{pet.name} is too weak to fight! Feed it first.")

        level = player_level if player_level is not None else pet.level
        difficulty = weighted_choice(DIFFICULTIES, difficulty_weights(level), self.rng)
        personality = self.rng.choice(PERSONALITIES)

        battle = Battle(
            pet.user_id,
            Combatant.from_pet(pet),
            self.create_opponent(level, difficulty),
            BattleAI(difficulty, personality, self.rng),
            max_turns=self.max_turns,
            rng=self.rng,
            now=now
        )
        battle.begin()
        self.active_battles[pet.user_id] = battle

        print(f"[BATTLE_MANAGER] User {pet.user_id} started a {difficulty} battle vs {battle.opponent.name}")
        return battle

    def get_player_active_battle(self, user_id: int) -> Optional[Battle]:
        """Get a player's active battle"""
        battle = self.active_battles.get(user_id)
        if battle and not battle.is_over:
            return battle
        return None

    def require_active_battle(self, user_id: int) -> Battle:
        battle = self.get_player_active_battle(user_id)
        if not battle:
            raise BattleNotFound("You are not in a battle! Use /battle to start one.")
        return battle

    def finish_battle(self, user_id: int):
        """Forget a user's battle"""
        if self.active_battles.pop(user_id, None):
            print(f"[BATTLE_MANAGER] Finished battle for user {user_id}")

    def restore_battle(self, user_id: int, battle: Battle):
        """Put back a battle whose final turn could not be saved"""
        self.active_battles[user_id] = battle
        print(f"[BATTLE_MANAGER] Restored battle for user {user_id} at turn {battle.turn_number}")
