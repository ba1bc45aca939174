"""
Pet Arena - Discord Virtual Pet Bot
Main entry point: slash commands, background jobs and the health server
"""
import asyncio
import os
import threading
from datetime import datetime
from typing import Optional

import discord
import requests
from discord import app_commands
from discord.ext import commands, tasks
from dotenv import load_dotenv
from flask import Flask

from src.database.config_store import ConfigStore
from src.database.connection import DatabaseManager
from src.database.repository import GameRepository
from src.database.setup import DatabaseSetup
from src.pet_game.battle_ui import BattleView, CaseSelectView, create_battle_embed
from src.pet_game.errors import GameError, StorageError
from src.pet_game.game_service import GameService
from src.pet_game.item_catalog import ItemCatalog
from src.pet_game.pet_care import status_emoji

load_dotenv()

# Bot setup
intents = discord.Intents.default()
bot = commands.Bot(command_prefix='!', intents=intents, help_command=None)

# Filled in by init_game() before the bot starts
config_store: Optional[ConfigStore] = None
game: Optional[GameService] = None

SEED_CHOICES = [
    app_commands.Choice(name='🥕 Carrot (2h)', value='carrot'),
    app_commands.Choice(name='🍎 Apple (6h)', value='apple'),
    app_commands.Choice(name='🌟 Golden Apple (24h)', value='golden_apple')
]


def init_game():
    """Connect the database and build the game service"""
    global config_store, game

    catalog = ItemCatalog()
    db_manager = DatabaseManager()
    DatabaseSetup(db_manager, catalog).initialize_database()

    config_store = ConfigStore(db_manager)
    game = GameService(
        GameRepository(db_manager),
        catalog,
        garden_slots=config_store.get_int('garden_slots', 6),
        history_limit=config_store.get_int('battle_history_limit', 100)
    )
    print("[BOT_STARTUP] Game service ready")


def apply_runtime_config():
    """Push config values that can change at runtime into the running service"""
    game.garden.slot_count = config_store.get_int('garden_slots', game.garden.slot_count)
    game.history_limit = config_store.get_int('battle_history_limit', game.history_limit)
    decay_sweep.change_interval(minutes=config_store.get_int('decay_interval_minutes', 60))
    keep_alive_ping.change_interval(minutes=config_store.get_int('keep_alive_minutes', 5))


def is_admin(user_id: int) -> bool:
    admin_id = os.getenv('ADMIN_ID')
    return bool(admin_id) and admin_id.strip() == str(user_id)


async def game_disabled(interaction: discord.Interaction) -> bool:
    if config_store.get_bool('game_enabled'):
        return False
    await interaction.response.send_message("The pet game is currently disabled.", ephemeral=True)
    return True


async def send_error(interaction: discord.Interaction, error: Exception, command: str):
    """Report a failed command back to the user"""
    if isinstance(error, GameError):
        message = f"❌ {error.reason}"
    else:
        print(f"[COMMANDS] /{command} failed: {error}")
        message = "❌ Something went wrong. Please try again."

    if not interaction.response.is_done():
        await interaction.response.send_message(message, ephemeral=True)
    else:
        await interaction.followup.send(message, ephemeral=True)


def create_pet_embed(user, pet, in_battle: bool = False) -> discord.Embed:
    embed = discord.Embed(
        title=f"🐾 {pet.name}",
        description=f"Level {pet.level} {pet.species.title()} • {pet.character.title()}",
        color=0x00d4ff
    )
    embed.add_field(
        name="💗 Vitals",
        value=f"{status_emoji(pet.health)} Health: {pet.health:.0f}/100\n"
              f"{status_emoji(pet.hunger)} Hunger: {pet.hunger:.0f}/100\n"
              f"{status_emoji(pet.energy)} Energy: {pet.energy:.0f}/100\n"
              f"{status_emoji(pet.mood)} Mood: {pet.mood:.0f}/100",
        inline=True
    )
    embed.add_field(
        name="⚔️ Stats",
        value=f"ATK {pet.attack} • DEF {pet.defense} • SPD {pet.speed}\n"
              f"⭐ EXP {pet.exp}/{pet.exp_to_next_level}",
        inline=True
    )
    embed.add_field(name="💰 Wallet", value=f"{user.coins} coins • 💎 {user.gems} gems", inline=False)
    if in_battle:
        embed.set_footer(text="⚔️ Currently in a battle! Use /battle to continue")
    else:
        embed.set_footer(text="Use /feed, /battle and /garden to look after your pet")
    return embed


# Bot Events
@bot.event
async def on_ready():
    print(f'[BOT_STARTUP] {bot.user} has connected to Discord!')

    try:
        apply_runtime_config()
    except (GameError, StorageError) as e:
        print(f"[BOT_STARTUP] Could not load runtime config: {e}")

    for job in (decay_sweep, trim_history, keep_alive_ping):
        if not job.is_running():
            job.start()

    # Sync slash commands
    try:
        print("[BOT_STARTUP] 🔄 Syncing slash commands...")
        synced = await bot.tree.sync()
        print(f"[BOT_STARTUP] ✅ Successfully synced {len(synced)} slash command(s)")
        for cmd in synced:
            print(f"[BOT_STARTUP] - Synced command: /{cmd.name}")
    except discord.HTTPException as e:
        print(f"[BOT_STARTUP] ❌ Failed to sync slash commands: {e}")


# Background jobs
@tasks.loop(minutes=60)
async def decay_sweep():
    try:
        await asyncio.to_thread(game.run_decay_sweep)
    except (GameError, StorageError) as e:
        print(f"[TASKS] Decay sweep failed: {e}")


@tasks.loop(hours=24)
async def trim_history():
    try:
        await asyncio.to_thread(game.trim_battle_history)
    except (GameError, StorageError) as e:
        print(f"[TASKS] History trim failed: {e}")


@tasks.loop(minutes=5)
async def keep_alive_ping():
    url = os.getenv('KEEP_ALIVE_URL')
    if not url:
        return
    try:
        response = await asyncio.to_thread(requests.get, f"{url.rstrip('/')}/health", timeout=10)
        if response.status_code != 200:
            print(f"[KEEP_ALIVE] Ping returned status code: {response.status_code}")
    except requests.RequestException as e:
        print(f"[KEEP_ALIVE] Ping failed: {e}")


# Pet Commands
@bot.tree.command(name='start', description='Adopt your pet and start playing')
async def start_slash(interaction: discord.Interaction):
    if await game_disabled(interaction):
        return
    try:
        result = game.register(interaction.user.id, interaction.user.name)
        user, pet = result['user'], result['pet']

        if result['created']:
            welcome = config_store.get('welcome_message') or 'Welcome, {user}!'
            embed = discord.Embed(
                title="🥚 Your egg hatched!",
                description=welcome.replace('{user}', interaction.user.mention),
                color=0x2ecc71
            )
            embed.add_field(name="🐾 Your Pet", value=f"**{pet.name}** the {pet.species}", inline=True)
            embed.add_field(name="💰 Starting Wallet", value=f"{user.coins} coins • {user.gems} gems", inline=True)
            embed.set_footer(text="Use /help to see everything you can do")
        else:
            embed = create_pet_embed(user, pet)
        await interaction.response.send_message(embed=embed)
    except Exception as e:
        await send_error(interaction, e, 'start')


@bot.tree.command(name='pet', description='Check on your pet')
async def pet_slash(interaction: discord.Interaction):
    if await game_disabled(interaction):
        return
    try:
        result = game.status(interaction.user.id, interaction.user.name)
        await interaction.response.send_message(embed=create_pet_embed(result['user'], result['pet'],
                                                                       result['in_battle']))
    except Exception as e:
        await send_error(interaction, e, 'pet')


@bot.tree.command(name='feed', description='Feed your pet an item from your inventory')
@app_commands.describe(item='Name of the food item')
async def feed_slash(interaction: discord.Interaction, item: str):
    if await game_disabled(interaction):
        return
    try:
        result = game.use_item(interaction.user.id, interaction.user.name, item)
        pet = result['pet']
        embed = discord.Embed(
            title=f"🍽️ {pet.name} ate {result['item'].name}!",
            description=f"❤️ Health: {pet.health:.0f} • 🍖 Hunger: {pet.hunger:.0f} • "
                        f"⚡ Energy: {pet.energy:.0f} • 😊 Mood: {pet.mood:.0f}",
            color=0x2ecc71
        )
        await interaction.response.send_message(embed=embed)
    except Exception as e:
        await send_error(interaction, e, 'feed')


# Battle Commands
@bot.tree.command(name='battle', description='Fight an AI opponent (or continue your current battle)')
async def battle_slash(interaction: discord.Interaction):
    if await game_disabled(interaction):
        return
    try:
        battle = game.start_battle(interaction.user.id, interaction.user.name)
        embed = create_battle_embed(battle, [entry['message'] for entry in battle.battle_log[-3:]])
        view = BattleView(game, interaction.user.id, interaction.user.name)
        await interaction.response.send_message(embed=embed, view=view)
    except Exception as e:
        await send_error(interaction, e, 'battle')


@bot.tree.command(name='history', description='Your recent battles')
async def history_slash(interaction: discord.Interaction):
    try:
        records = game.battle_history(interaction.user.id, interaction.user.name, 10)
        if not records:
            await interaction.response.send_message("📜 No battles yet! Use /battle to fight.", ephemeral=True)
            return

        lines = []
        for record in records:
            icon = '🏆' if record.result == 'win' else '💀'
            when = record.created_at.strftime('%m/%d %H:%M') if record.created_at else '?'
            lines.append(f"{icon} **{record.result.title()}** vs {record.opponent_type} • "
                         f"+{record.reward.get('coins', 0)} coins • {when}")

        wins = sum(1 for record in records if record.result == 'win')
        embed = discord.Embed(title="📜 Battle History", description="\n".join(lines), color=0x3498db)
        embed.set_footer(text=f"Last {len(records)} battles: {wins} wins, {len(records) - wins} losses")
        await interaction.response.send_message(embed=embed)
    except Exception as e:
        await send_error(interaction, e, 'history')


# Garden Commands
@bot.tree.command(name='garden', description='Look at your garden')
async def garden_slash(interaction: discord.Interaction):
    if await game_disabled(interaction):
        return
    try:
        status = game.garden_status(interaction.user.id, interaction.user.name)
        lines = []
        for slot in status['slots']:
            if slot['empty']:
                lines.append(f"**{slot['slot']}.** 🟫 Empty")
                continue
            plant = game.catalog.get_plant(slot['plant_kind']) or {}
            name = slot['plant_kind'].replace('_', ' ').title()
            if slot['ready']:
                state = "✅ Ready to harvest!"
            else:
                state = f"⏳ {slot['hours_remaining']:.1f}h left"
            lines.append(f"**{slot['slot']}.** {plant.get('emoji', '🌱')} {name} (Lv.{slot['level']}) • {state}")

        embed = discord.Embed(title="🌻 Your Garden", description="\n".join(lines), color=0x27ae60)
        embed.set_footer(text="Use /plant to sow seeds and /harvest to collect")
        await interaction.response.send_message(embed=embed)
    except Exception as e:
        await send_error(interaction, e, 'garden')


@bot.tree.command(name='plant', description='Plant a seed in your garden')
@app_commands.describe(seed='What to plant', slot='Garden slot (defaults to the first free one)')
@app_commands.choices(seed=SEED_CHOICES)
async def plant_slash(interaction: discord.Interaction, seed: app_commands.Choice[str], slot: Optional[int] = None):
    if await game_disabled(interaction):
        return
    try:
        result = game.plant(interaction.user.id, interaction.user.name, seed.value, slot)
        if result['prepaid']:
            paid = f"Used 1 {result['seed'].name}"
        else:
            paid = f"Paid {result['price']} coins ({result['coins']} left)"
        embed = discord.Embed(
            title=f"🌱 Planted {seed.name} in slot {result['slot']}",
            description=f"{paid}\n⏳ Ready in {result['grow_time']} hours",
            color=0x27ae60
        )
        await interaction.response.send_message(embed=embed)
    except Exception as e:
        await send_error(interaction, e, 'plant')


@bot.tree.command(name='harvest', description='Harvest every ready plant')
async def harvest_slash(interaction: discord.Interaction):
    if await game_disabled(interaction):
        return
    try:
        yields = game.harvest(interaction.user.id, interaction.user.name)
        if not yields:
            await interaction.response.send_message("🌱 Nothing is ready to harvest yet!", ephemeral=True)
            return

        lines = [f"🧺 {quantity}x {item_name}" for item_name, quantity in yields]
        embed = discord.Embed(title="🌾 Harvest Complete!", description="\n".join(lines), color=0xf1c40f)
        embed.set_footer(text="Harvested plants level up and keep growing")
        await interaction.response.send_message(embed=embed)
    except Exception as e:
        await send_error(interaction, e, 'harvest')


# Economy Commands
@bot.tree.command(name='inventory', description='See what you are carrying')
async def inventory_slash(interaction: discord.Interaction):
    try:
        held = game.inventory_view(interaction.user.id, interaction.user.name)
        if not held:
            await interaction.response.send_message("🎒 Your inventory is empty! Visit /shop.", ephemeral=True)
            return

        lines = [f"{game.catalog.rarity_emoji(item.rarity)} {game.catalog.category_emoji(item.category)} "
                 f"**{item.name}** x{quantity}" for item, quantity in held]
        embed = discord.Embed(title="🎒 Inventory", description="\n".join(lines), color=0x9b59b6)
        await interaction.response.send_message(embed=embed)
    except Exception as e:
        await send_error(interaction, e, 'inventory')


@bot.tree.command(name='shop', description='Browse the shop')
async def shop_slash(interaction: discord.Interaction):
    try:
        embed = discord.Embed(title="🏪 Shop", description="Use `/buy <item>` to purchase", color=0xe67e22)
        for category, items in game.shop_items().items():
            lines = []
            for item in items:
                level_note = f" (Lv.{item.min_level}+)" if item.min_level > 1 else ""
                lines.append(f"{game.catalog.rarity_emoji(item.rarity)} **{item.name}** - {item.price} coins{level_note}")
            if lines:
                embed.add_field(name=f"{game.catalog.category_emoji(category)} {category.title()}",
                                value="\n".join(lines), inline=False)
        await interaction.response.send_message(embed=embed)
    except Exception as e:
        await send_error(interaction, e, 'shop')


@bot.tree.command(name='buy', description='Buy an item from the shop')
@app_commands.describe(item='Item name', quantity='How many to buy')
async def buy_slash(interaction: discord.Interaction, item: str, quantity: int = 1):
    if await game_disabled(interaction):
        return
    try:
        result = game.buy(interaction.user.id, interaction.user.name, item, quantity)
        await interaction.response.send_message(
            f"🛒 Bought {result['quantity']}x **{result['item'].name}** for {result['cost']} coins. "
            f"💰 {result['coins']} coins left.")
    except Exception as e:
        await send_error(interaction, e, 'buy')


@bot.tree.command(name='sell', description='Sell an item from your inventory')
@app_commands.describe(item='Item name', quantity='How many to sell')
async def sell_slash(interaction: discord.Interaction, item: str, quantity: int = 1):
    if await game_disabled(interaction):
        return
    try:
        result = game.sell(interaction.user.id, interaction.user.name, item, quantity)
        await interaction.response.send_message(
            f"💸 Sold {result['quantity']}x **{result['item'].name}** for {result['earned']} coins. "
            f"💰 {result['coins']} coins now.")
    except Exception as e:
        await send_error(interaction, e, 'sell')


@bot.tree.command(name='open_case', description='Open a case with one of your keys')
async def open_case_slash(interaction: discord.Interaction):
    if await game_disabled(interaction):
        return
    try:
        keys = game.held_keys(interaction.user.id, interaction.user.name)
        if not keys:
            await interaction.response.send_message("🔑 You don't have any keys! Win battles or visit /shop.",
                                                    ephemeral=True)
            return

        embed = discord.Embed(title="🎁 Open a Case", description="Pick a key to use:", color=0xffd700)
        for key, quantity in keys:
            rates = game.cases.get_case_drop_rates(key.rarity)
            odds = ", ".join(f"{rarity} {chance:.0%}" for rarity, chance in rates.items())
            embed.add_field(name=f"{key.name} x{quantity}", value=odds, inline=False)

        view = CaseSelectView(game, interaction.user.id, interaction.user.name, keys)
        await interaction.response.send_message(embed=embed, view=view)
    except Exception as e:
        await send_error(interaction, e, 'open_case')


# Information Commands
@bot.tree.command(name='help', description='Show all available commands')
async def help_slash(interaction: discord.Interaction):
    embed = discord.Embed(
        title="🐾 Pet Arena Commands",
        description="Raise a pet, grow a garden and battle AI opponents!",
        color=0x00d4ff
    )
    embed.add_field(
        name="🐾 Pet",
        value="🔹 `/start` - Adopt your pet\n🔹 `/pet` - Check your pet's vitals\n🔹 `/feed <item>` - Feed your pet",
        inline=False
    )
    embed.add_field(
        name="⚔️ Battles",
        value="🔹 `/battle` - Fight an AI opponent\n🔹 `/history` - Your recent battles",
        inline=False
    )
    embed.add_field(
        name="🌻 Garden",
        value="🔹 `/garden` - See your plots\n🔹 `/plant <seed> [slot]` - Plant a seed\n🔹 `/harvest` - Collect ready plants",
        inline=False
    )
    embed.add_field(
        name="💰 Economy",
        value="🔹 `/inventory` - Your items\n🔹 `/shop` - Browse the shop\n🔹 `/buy <item> [qty]` / `/sell <item> [qty]`\n"
              "🔹 `/open_case` - Open a case with a key",
        inline=False
    )
    if is_admin(interaction.user.id):
        embed.add_field(name="🔧 Admin", value="🔹 `/set_config <key> <value>` - Configure bot settings", inline=False)
    embed.set_footer(text="💡 Pets get hungry over time, so feed them often!")
    await interaction.response.send_message(embed=embed)


# Admin Commands
@bot.tree.command(name='set_config', description='Configure bot settings (Admin only)')
@app_commands.default_permissions(administrator=True)
@app_commands.describe(key='Configuration key', value='Configuration value')
async def set_config_slash(interaction: discord.Interaction, key: str, value: str):
    if not is_admin(interaction.user.id):
        await interaction.response.send_message("❌ Only the bot admin can change settings.", ephemeral=True)
        return
    try:
        config_store.set(key, value)
        apply_runtime_config()

        embed = discord.Embed(title="✅ Configuration Updated", color=0x00ff00)
        embed.add_field(name="Key", value=f"`{key}`", inline=True)
        embed.add_field(name="Value", value=f"`{value}`", inline=True)
        embed.set_footer(text=f"Updated {datetime.now().strftime('%Y-%m-%d %H:%M')}")
        await interaction.response.send_message(embed=embed, ephemeral=True)
    except Exception as e:
        await send_error(interaction, e, 'set_config')


# Flask web server for cloud hosting
app = Flask(__name__)


@app.route('/')
def home():
    return "Pet Arena is running! 🐾"


@app.route('/health')
def health():
    return {"status": "healthy", "bot": "online" if bot.is_ready() else "starting"}


def run_flask():
    port = int(os.environ.get('PORT', 10000))
    app.run(host='0.0.0.0', port=port, debug=False, use_reloader=False)


if __name__ == '__main__':
    token = os.getenv('DISCORD_TOKEN')
    print(f"[MAIN] Discord token present: {bool(token)}")

    if not token:
        print("[MAIN] ❌ Please set the DISCORD_TOKEN environment variable")
    else:
        init_game()

        # Start Flask server in a separate thread for cloud hosting
        flask_thread = threading.Thread(target=run_flask)
        flask_thread.daemon = True
        flask_thread.start()
        print("[MAIN] Flask server started")

        print("[MAIN] Starting Pet Arena...")
        bot.run(token)
