"""
Database Setup and Initialization
Handles table creation, migrations, and initial data population
"""
import json

from .connection import DatabaseManager


DEFAULT_CONFIG = {
    'game_enabled': 'True',
    'battle_history_limit': '100',
    'garden_slots': '6',
    'decay_interval_minutes': '60',
    'keep_alive_minutes': '5',
    'welcome_message': 'Welcome to Pet Arena, {user}!'
}


class DatabaseSetup:
    """Handles database initialization and migrations"""

    def __init__(self, db: DatabaseManager, catalog):
        self.db = db
        self.catalog = catalog

    def initialize_database(self):
        """Initialize all database tables and populate initial data"""
        print("[DATABASE] Initializing database...")

        self._create_tables()
        self._run_migrations()
        self._populate_initial_data()

        print("[DATABASE] Database initialization complete")

    def _create_tables(self):
        """Create all necessary database tables"""
        with self.db.transaction() as cursor:
            if self.db.db_type == 'postgresql':
                self._create_postgresql_tables(cursor)
            else:
                self._create_sqlite_tables(cursor)
        print("[DATABASE] Database tables created")

    def _create_postgresql_tables(self, cursor):
        """Create PostgreSQL tables"""
        cursor.execute('''CREATE TABLE IF NOT EXISTS users
                         (user_id SERIAL PRIMARY KEY, external_id BIGINT UNIQUE NOT NULL,
                          username TEXT, coins INTEGER DEFAULT 100, gems INTEGER DEFAULT 10,
                          created_at TEXT)''')

        cursor.execute('''CREATE TABLE IF NOT EXISTS pets
                         (pet_id SERIAL PRIMARY KEY, user_id INTEGER UNIQUE NOT NULL REFERENCES users(user_id),
                          name TEXT NOT NULL, species TEXT DEFAULT 'dragon', level INTEGER DEFAULT 1,
                          exp INTEGER DEFAULT 0, hunger REAL DEFAULT 50.0, energy REAL DEFAULT 80.0,
                          mood REAL DEFAULT 70.0, health REAL DEFAULT 100.0, attack REAL DEFAULT 10.0,
                          defense REAL DEFAULT 5.0, speed REAL DEFAULT 8.0, character TEXT DEFAULT 'friendly',
                          created_at TEXT, last_update TEXT)''')

        cursor.execute('''CREATE TABLE IF NOT EXISTS gardens
                         (user_id INTEGER PRIMARY KEY REFERENCES users(user_id), slots TEXT NOT NULL)''')

        cursor.execute('''CREATE TABLE IF NOT EXISTS items
                         (item_id INTEGER PRIMARY KEY, name TEXT NOT NULL UNIQUE, category TEXT NOT NULL,
                          rarity TEXT NOT NULL, effect TEXT NOT NULL, price INTEGER DEFAULT 0,
                          sell_price INTEGER DEFAULT 0, min_level INTEGER DEFAULT 1)''')

        cursor.execute('''CREATE TABLE IF NOT EXISTS inventory
                         (user_id INTEGER NOT NULL REFERENCES users(user_id),
                          item_id INTEGER NOT NULL REFERENCES items(item_id),
                          quantity INTEGER NOT NULL CHECK (quantity > 0),
                          PRIMARY KEY (user_id, item_id))''')

        cursor.execute('''CREATE TABLE IF NOT EXISTS battle_history
                         (record_id SERIAL PRIMARY KEY, user_id INTEGER NOT NULL REFERENCES users(user_id),
                          result TEXT NOT NULL, opponent_type TEXT, reward TEXT, created_at TEXT)''')

        cursor.execute('''CREATE TABLE IF NOT EXISTS config
                         (key TEXT PRIMARY KEY, value TEXT)''')

        cursor.execute('''CREATE TABLE IF NOT EXISTS db_version
                         (version INTEGER PRIMARY KEY)''')

    def _create_sqlite_tables(self, cursor):
        """Create SQLite tables"""
        cursor.execute('''CREATE TABLE IF NOT EXISTS users
                         (user_id INTEGER PRIMARY KEY AUTOINCREMENT, external_id INTEGER UNIQUE NOT NULL,
                          username TEXT, coins INTEGER DEFAULT 100, gems INTEGER DEFAULT 10,
                          created_at TEXT)''')

        cursor.execute('''CREATE TABLE IF NOT EXISTS pets
                         (pet_id INTEGER PRIMARY KEY AUTOINCREMENT, user_id INTEGER UNIQUE NOT NULL,
                          name TEXT NOT NULL, species TEXT DEFAULT 'dragon', level INTEGER DEFAULT 1,
                          exp INTEGER DEFAULT 0, hunger REAL DEFAULT 50.0, energy REAL DEFAULT 80.0,
                          mood REAL DEFAULT 70.0, health REAL DEFAULT 100.0, attack REAL DEFAULT 10.0,
                          defense REAL DEFAULT 5.0, speed REAL DEFAULT 8.0, character TEXT DEFAULT 'friendly',
                          created_at TEXT, last_update TEXT,
                          FOREIGN KEY (user_id) REFERENCES users(user_id))''')

        cursor.execute('''CREATE TABLE IF NOT EXISTS gardens
                         (user_id INTEGER PRIMARY KEY, slots TEXT NOT NULL,
                          FOREIGN KEY (user_id) REFERENCES users(user_id))''')

        cursor.execute('''CREATE TABLE IF NOT EXISTS items
                         (item_id INTEGER PRIMARY KEY, name TEXT NOT NULL UNIQUE, category TEXT NOT NULL,
                          rarity TEXT NOT NULL, effect TEXT NOT NULL, price INTEGER DEFAULT 0,
                          sell_price INTEGER DEFAULT 0, min_level INTEGER DEFAULT 1)''')

        cursor.execute('''CREATE TABLE IF NOT EXISTS inventory
                         (user_id INTEGER NOT NULL, item_id INTEGER NOT NULL,
                          quantity INTEGER NOT NULL CHECK (quantity > 0),
                          PRIMARY KEY (user_id, item_id),
                          FOREIGN KEY (user_id) REFERENCES users(user_id),
                          FOREIGN KEY (item_id) REFERENCES items(item_id))''')

        cursor.execute('''CREATE TABLE IF NOT EXISTS battle_history
                         (record_id INTEGER PRIMARY KEY AUTOINCREMENT, user_id INTEGER NOT NULL,
                          result TEXT NOT NULL, opponent_type TEXT, reward TEXT, created_at TEXT,
                          FOREIGN KEY (user_id) REFERENCES users(user_id))''')

        cursor.execute('''CREATE TABLE IF NOT EXISTS config
                         (key TEXT PRIMARY KEY, value TEXT)''')

        cursor.execute('''CREATE TABLE IF NOT EXISTS db_version
                         (version INTEGER PRIMARY KEY)''')

    def _run_migrations(self):
        """Run database migrations"""
        with self.db.transaction() as cursor:
            result = cursor.execute('SELECT version FROM db_version ORDER BY version DESC LIMIT 1').fetchone()
            current_version = result[0] if result else 0

            if current_version < 1:
                # Migration 1: Populate item catalog
                count = cursor.execute('SELECT COUNT(*) FROM items').fetchone()[0]
                if count == 0:
                    print("[DATABASE] Populating item catalog...")
                    self._populate_item_catalog(cursor)
                self._set_version(cursor, 1)

        print(f"[DATABASE] Database migrations complete (version {max(current_version, 1)})")

    def _set_version(self, cursor, version: int):
        if self.db.db_type == 'postgresql':
            cursor.execute('INSERT INTO db_version (version) VALUES (?) ON CONFLICT (version) DO NOTHING', (version,))
        else:
            cursor.execute('INSERT OR REPLACE INTO db_version (version) VALUES (?)', (version,))

    def _populate_item_catalog(self, cursor):
        """Populate the items table from the catalog definitions"""
        for item in self.catalog.get_all_items():
            cursor.execute('''INSERT INTO items (item_id, name, category, rarity, effect, price, sell_price, min_level)
                             VALUES (?, ?, ?, ?, ?, ?, ?, ?)''',
                           (item.item_id, item.name, item.category, item.rarity, json.dumps(item.effect),
                            item.price, item.sell_price, item.min_level))

    def _populate_initial_data(self):
        """Populate default configuration"""
        with self.db.transaction() as cursor:
            for key, value in DEFAULT_CONFIG.items():
                if self.db.db_type == 'postgresql':
                    cursor.execute('INSERT INTO config (key, value) VALUES (?, ?) ON CONFLICT (key) DO NOTHING', (key, value))
                else:
                    cursor.execute('INSERT OR IGNORE INTO config (key, value) VALUES (?, ?)', (key, value))
        print("[DATABASE] Default configuration populated")
