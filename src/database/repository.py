"""
Game Repository
Loads and saves users, pets, gardens, inventories and battle history
"""
import json
from datetime import datetime
from typing import List, Optional, Tuple

from .connection import DatabaseManager
from .models import BattleRecord, Garden, GardenSlot, Inventory, Pet, User


PET_COLUMNS = ('pet_id, user_id, name, species, level, exp, hunger, energy, mood, health, '
               'attack, defense, speed, character, created_at, last_update')


def _parse_time(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _row_to_user(row) -> User:
    return User(row[0], row[1], row[2], row[3], row[4], _parse_time(row[5]))


def _row_to_pet(row) -> Pet:
    return Pet(row[0], row[1], row[2], row[3], row[4], row[5], row[6], row[7], row[8], row[9],
               row[10], row[11], row[12], row[13], _parse_time(row[14]), _parse_time(row[15]))


class GameRepository:
    """SQL-backed persistence for the game, one transaction per turn"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def get_or_create_user(self, external_id: int, username: Optional[str], now: datetime) -> Tuple[User, bool]:
        """Get user data with automatic creation"""
        with self.db.transaction() as cursor:
            row = cursor.execute('SELECT user_id, external_id, username, coins, gems, created_at FROM users '
                                 'WHERE external_id = ?', (external_id,)).fetchone()
            if row:
                return _row_to_user(row), False

            user = User(0, external_id, username, created_at=now)
            user.user_id = cursor.insert('INSERT INTO users (external_id, username, coins, gems, created_at) '
                                         'VALUES (?, ?, ?, ?, ?)',
                                         (external_id, username, user.coins, user.gems, _format_time(now)),
                                         'user_id')
            print(f"[DATABASE] Created user {user.user_id} for external id {external_id}")
            return user, True

    def get_user(self, user_id: int) -> Optional[User]:
        row = self.db.fetch_one('SELECT user_id, external_id, username, coins, gems, created_at FROM users '
                                'WHERE user_id = ?', (user_id,))
        return _row_to_user(row) if row else None

    def get_pet(self, user_id: int) -> Optional[Pet]:
        row = self.db.fetch_one(f'SELECT {PET_COLUMNS} FROM pets WHERE user_id = ?', (user_id,))
        return _row_to_pet(row) if row else None

    def create_pet(self, pet: Pet) -> Pet:
        """Insert a new pet row, returns the pet with its id"""
        with self.db.transaction() as cursor:
            pet.pet_id = cursor.insert(
                'INSERT INTO pets (user_id, name, species, level, exp, hunger, energy, mood, health, '
                'attack, defense, speed, character, created_at, last_update) '
                'VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)',
                (pet.user_id, pet.name, pet.species, pet.level, pet.exp, pet.hunger, pet.energy, pet.mood,
                 pet.health, pet.attack, pet.defense, pet.speed, pet.character,
                 _format_time(pet.created_at), _format_time(pet.last_update)),
                'pet_id')
        return pet

    def pet_owner_ids(self) -> List[int]:
        return [row[0] for row in self.db.fetch_all('SELECT user_id FROM pets ORDER BY user_id')]

    def get_garden(self, user_id: int, slot_count: int) -> Garden:
        """Load a garden, padding or creating empty slots up to slot_count"""
        row = self.db.fetch_one('SELECT slots FROM gardens WHERE user_id = ?', (user_id,))
        slots = [GardenSlot.from_storage(value) for value in json.loads(row[0])] if row else []
        slots.extend([None] * (slot_count - len(slots)))
        return Garden(user_id, slots)

    def get_inventory(self, user_id: int) -> Inventory:
        rows = self.db.fetch_all('SELECT item_id, quantity FROM inventory WHERE user_id = ? AND quantity > 0',
                                 (user_id,))
        return Inventory(user_id, {item_id: quantity for item_id, quantity in rows})

    def save_turn(self, user: Optional[User] = None, pet: Optional[Pet] = None,
                  garden: Optional[Garden] = None, inventory: Optional[Inventory] = None,
                  battle_record: Optional[BattleRecord] = None):
        """Persist every record touched by one turn in a single transaction"""
        with self.db.transaction() as cursor:
            if user:
                cursor.execute('UPDATE users SET username = ?, coins = ?, gems = ? WHERE user_id = ?',
                               (user.username, user.coins, user.gems, user.user_id))
            if pet:
                cursor.execute('''UPDATE pets SET name = ?, species = ?, level = ?, exp = ?, hunger = ?,
                                  energy = ?, mood = ?, health = ?, attack = ?, defense = ?, speed = ?,
                                  character = ?, last_update = ? WHERE pet_id = ?''',
                               (pet.name, pet.species, pet.level, pet.exp, pet.hunger, pet.energy, pet.mood,
                                pet.health, pet.attack, pet.defense, pet.speed, pet.character,
                                _format_time(pet.last_update), pet.pet_id))
            if garden:
                self._save_garden(cursor, garden)
            if inventory:
                cursor.execute('DELETE FROM inventory WHERE user_id = ?', (inventory.user_id,))
                for item_id, quantity in sorted(inventory.items.items()):
                    if quantity > 0:
                        cursor.execute('INSERT INTO inventory (user_id, item_id, quantity) VALUES (?, ?, ?)',
                                       (inventory.user_id, item_id, quantity))
            if battle_record:
                battle_record.record_id = cursor.insert(
                    'INSERT INTO battle_history (user_id, result, opponent_type, reward, created_at) '
                    'VALUES (?, ?, ?, ?, ?)',
                    (battle_record.user_id, battle_record.result, battle_record.opponent_type,
                     json.dumps(battle_record.reward), _format_time(battle_record.created_at)),
                    'record_id')

    def _save_garden(self, cursor, garden: Garden):
        slots = json.dumps([slot.to_storage() if slot else None for slot in garden.slots])
        if self.db.db_type == 'postgresql':
            cursor.execute('INSERT INTO gardens (user_id, slots) VALUES (?, ?) '
                           'ON CONFLICT (user_id) DO UPDATE SET slots = EXCLUDED.slots', (garden.user_id, slots))
        else:
            cursor.execute('INSERT OR REPLACE INTO gardens (user_id, slots) VALUES (?, ?)', (garden.user_id, slots))

    def battle_history(self, user_id: int, limit: int = 10) -> List[BattleRecord]:
        """Most recent battles first"""
        rows = self.db.fetch_all('SELECT record_id, user_id, result, opponent_type, reward, created_at '
                                 'FROM battle_history WHERE user_id = ? ORDER BY record_id DESC LIMIT ?',
                                 (user_id, limit))
        return [BattleRecord(row[1], row[2], row[3], json.loads(row[4] or '{}'), _parse_time(row[5]), row[0])
                for row in rows]

    def trim_battle_history(self, keep: int) -> int:
        """Keep only each user's most recent battles, returns rows deleted"""
        with self.db.transaction() as cursor:
            cursor.execute('''DELETE FROM battle_history WHERE record_id IN (
                                SELECT b.record_id FROM battle_history b
                                WHERE (SELECT COUNT(*) FROM battle_history newer
                                       WHERE newer.user_id = b.user_id AND newer.record_id > b.record_id) >= ?
                              )''', (keep,))
            return cursor.rowcount
