import asyncio
import random
from types import SimpleNamespace

from src.database.connection import StorageError
from src.database.models import Pet
from src.pet_game.battle_system import BattleManager
from src.pet_game.battle_ui import BattleView, CaseSelectView, create_result_embed
from src.pet_game.errors import NoKeyAvailable
from src.pet_game.rewards import Rewards


class FakeResponse:
    def __init__(self):
        self.sent = []

    async def send_message(self, message, ephemeral=False):
        self.sent.append((message, ephemeral))


def make_interaction(user_id):
    return SimpleNamespace(user=SimpleNamespace(id=user_id), response=FakeResponse())


class BrokenService:
    def active_battle(self, user_id, username):
        return None

    def battle_action(self, user_id, username, action):
        raise StorageError("database is locked")

    def open_case(self, user_id, username, key_rarity):
        raise NoKeyAvailable("You have no Rare Key!")


def test_database_failure_during_battle_is_answered():
    async def press():
        view = BattleView(BrokenService(), 1001, "ann")
        interaction = make_interaction(1001)
        await view.handle_action(interaction, 'attack')
        return interaction.response.sent

    assert asyncio.run(press()) == [("❌ Something went wrong. Please try again.", True)]


def test_game_error_when_opening_case_shows_reason():
    async def press():
        view = CaseSelectView(BrokenService(), 1001, "ann", [])
        interaction = make_interaction(1001)
        await view.open_case(interaction, 'rare')
        return interaction.response.sent

    assert asyncio.run(press()) == [("❌ You have no Rare Key!", True)]


def test_other_players_cannot_press_buttons():
    async def press():
        view = BattleView(BrokenService(), 1001, "ann")
        interaction = make_interaction(2002)
        await view.handle_action(interaction, 'attack')
        return interaction.response.sent

    assert asyncio.run(press()) == [("❌ This battle is not yours!", True)]


def test_result_embed_names_the_opponent():
    pet = Pet(pet_id=1, user_id=1, name="Sparky")
    battle = BattleManager(random.Random(5)).start_battle(pet)
    result = battle.resolve_turn('flee')
    result.update({'rewards': Rewards(0, 0), 'levels_gained': 0, 'pet': pet})
    embed = create_result_embed(result, battle)
    assert embed.title == f"🏃 Fled from {battle.opponent.name}"
