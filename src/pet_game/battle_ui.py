"""
Battle UI Components
Interactive Discord UI for pet battles and case opening using buttons and views
"""
import discord
from typing import List, Tuple

from ..database.models import Item
from .battle_system import Battle
from .errors import GameError


async def send_view_error(interaction: discord.Interaction, error: Exception, action: str):
    """Answer a button press that failed"""
    if isinstance(error, GameError):
        message = f"❌ {error.reason}"
    else:
        print(f"[BATTLE_UI] {action} failed: {error}")
        message = "❌ Something went wrong. Please try again."
    await interaction.response.send_message(message, ephemeral=True)


def create_health_bar(current_hp: float, max_hp: float, length: int = 10) -> str:
    """Text health bar like ████░░░░░░ 40/100"""
    if max_hp <= 0:
        return "░" * length
    filled = int(length * max(0, current_hp) / max_hp)
    filled = max(0, min(length, filled))
    bar = "█" * filled + "░" * (length - filled)
    return f"{bar} {max(0, current_hp):.0f}/{max_hp:.0f}"


def create_battle_embed(battle: Battle, recent_log: List[str] = None) -> discord.Embed:
    """Embed showing both sides of an ongoing battle"""
    difficulty_colors = {'easy': 0x2ecc71, 'normal': 0x3498db, 'hard': 0xe74c3c}
    embed = discord.Embed(
        title=f"⚔️ {battle.player.name} vs {battle.opponent.name}",
        description=f"**Turn {battle.turn_number}/{battle.max_turns}** • Difficulty: **{battle.difficulty.title()}**",
        color=difficulty_colors.get(battle.difficulty, 0x3498db)
    )

    player = battle.player
    embed.add_field(
        name=f"🐾 {player.name} (Lv.{player.level})",
        value=f"❤️ {create_health_bar(player.current_health, player.max_health)}\n"
              f"⚔️ {player.attack} ATK • 🛡️ {player.defense} DEF\n"
              f"⚡ {player.energy:.0f} energy{' • 🛡️ Defending' if player.is_defending else ''}",
        inline=True
    )

    opponent = battle.opponent
    opponent_lines = [
        f"❤️ {create_health_bar(opponent.current_health, opponent.max_health)}",
        f"⚔️ {opponent.attack} ATK • 🛡️ {opponent.defense} DEF"
    ]
    if opponent.is_defending:
        opponent_lines.append("🛡️ Defending")
    embed.add_field(name=f"🤖 {opponent.name} (Lv.{opponent.level})", value="\n".join(opponent_lines), inline=True)

    if recent_log:
        embed.add_field(name="📜 Last Turn", value="\n".join(recent_log), inline=False)

    embed.set_footer(text="Choose your action below!")
    return embed


def create_result_embed(result: dict, battle: Battle) -> discord.Embed:
    """Embed for a finished battle with its rewards"""
    victory = result['outcome'] == 'victory'
    if victory:
        title = f"🏆 Victory over {battle.opponent.name}!"
    elif result['player_action'] == 'flee':
        title = f"🏃 Fled from {battle.opponent.name}"
    else:
        title = f"💀 Defeated by {battle.opponent.name}"
    embed = discord.Embed(
        title=title,
        description="\n".join(result['log']),
        color=0xffd700 if victory else 0x95a5a6
    )

    rewards = result['rewards']
    lines = [f"💰 +{rewards.coins} coins", f"✨ +{rewards.exp} EXP"]
    if rewards.item:
        lines.append(f"🎁 {rewards.item.name} ({rewards.item.rarity})")
    if rewards.key:
        lines.append(f"🔑 {rewards.key.name}")
    embed.add_field(name="🎁 Rewards", value="\n".join(lines), inline=True)

    pet = result['pet']
    pet_lines = [f"❤️ Health: {pet.health:.0f}/100", f"⭐ Level {pet.level} ({pet.exp}/{pet.exp_to_next_level} EXP)"]
    if result['levels_gained']:
        pet_lines.insert(0, f"🎉 **Level up!** +{result['levels_gained']}")
    embed.add_field(name=f"🐾 {pet.name}", value="\n".join(pet_lines), inline=True)

    embed.set_footer(text=f"Battle lasted {result['turn']} turns • Use /battle to fight again")
    return embed


class BattleView(discord.ui.View):
    """Interactive battle interface with buttons"""

    def __init__(self, service, user_id: int, username: str):
        super().__init__(timeout=600)  # 10 minute timeout
        self.service = service
        self.user_id = user_id
        self.username = username

        self.add_battle_buttons()

    def add_battle_buttons(self):
        """Add battle action buttons"""
        for action, label, emoji, style in (
            ('attack', 'Attack', '⚔️', discord.ButtonStyle.danger),
            ('special', 'Special', '💥', discord.ButtonStyle.primary),
            ('defend', 'Defend', '🛡️', discord.ButtonStyle.success),
            ('flee', 'Flee', '🏃', discord.ButtonStyle.secondary)
        ):
            button = discord.ui.Button(label=label, emoji=emoji, style=style)
            button.callback = self._make_callback(action)
            self.add_item(button)

    def _make_callback(self, action: str):
        async def callback(interaction: discord.Interaction):
            await self.handle_action(interaction, action)
        return callback

    async def handle_action(self, interaction: discord.Interaction, action: str):
        """Run one turn for the button pressed"""
        if interaction.user.id != self.user_id:
            await interaction.response.send_message("❌ This battle is not yours!", ephemeral=True)
            return

        try:
            battle = self.service.active_battle(self.user_id, self.username)
            result = self.service.battle_action(self.user_id, self.username, action)
        except Exception as e:
            await send_view_error(interaction, e, f"Battle {action}")
            return

        if result['outcome']:
            for item in self.children:
                item.disabled = True
            self.stop()
            await interaction.response.edit_message(embed=create_result_embed(result, battle), view=None)
            return

        await interaction.response.edit_message(embed=create_battle_embed(battle, result['log']), view=self)

    async def on_timeout(self):
        for item in self.children:
            item.disabled = True


class CaseSelectView(discord.ui.View):
    """One button per key the player holds"""

    def __init__(self, service, user_id: int, username: str, keys: List[Tuple[Item, int]]):
        super().__init__(timeout=300)
        self.service = service
        self.user_id = user_id
        self.username = username

        for key, quantity in keys:
            button = discord.ui.Button(
                label=f"{key.name} x{quantity}",
                emoji=service.catalog.rarity_emoji(key.rarity),
                style=discord.ButtonStyle.primary
            )
            button.callback = self._make_callback(key.rarity)
            self.add_item(button)

    def _make_callback(self, key_rarity: str):
        async def callback(interaction: discord.Interaction):
            await self.open_case(interaction, key_rarity)
        return callback

    async def open_case(self, interaction: discord.Interaction, key_rarity: str):
        if interaction.user.id != self.user_id:
            await interaction.response.send_message("❌ These keys are not yours!", ephemeral=True)
            return

        try:
            result = self.service.open_case(self.user_id, self.username, key_rarity)
        except Exception as e:
            await send_view_error(interaction, e, f"Opening {key_rarity} case")
            return

        item = result['item']
        rarity_info = self.service.catalog.rarities.get(item.rarity, {})
        embed = discord.Embed(
            title="🎁 Case Opened!",
            description=f"You used a **{key_rarity.title()} Key** and found:",
            color=rarity_info.get('color', 0x95a5a6)
        )
        embed.add_field(
            name=f"{rarity_info.get('emoji', '')} {item.name}",
            value=f"{self.service.catalog.category_emoji(item.category)} {item.category.title()} • "
                  f"{item.rarity.title()}\n💰 Sells for {item.sell_price} coins",
            inline=False
        )

        for child in self.children:
            child.disabled = True
        self.stop()
        await interaction.response.edit_message(embed=embed, view=None)
