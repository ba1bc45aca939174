"""
Config Store
Runtime bot settings kept in the config table
"""
from typing import Optional

from .connection import DatabaseManager
from .setup import DEFAULT_CONFIG


class ConfigStore:
    """Key/value configuration with defaults for missing keys"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def get(self, key: str) -> Optional[str]:
        """Get configuration value"""
        result = self.db.fetch_one('SELECT value FROM config WHERE key = ?', (key,))
        if result:
            return result[0]
        return DEFAULT_CONFIG.get(key)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.get(key)
        try:
            return int(value)
        except (TypeError, ValueError):
            print(f"[CONFIG] Invalid integer for {key}: {value!r}, using {default}")
            return default

    def get_bool(self, key: str) -> bool:
        return str(self.get(key)).lower() in ('true', '1', 'yes', 'on')

    def set(self, key: str, value: str):
        """Set configuration value"""
        if self.db.db_type == 'postgresql':
            self.db.execute_query('INSERT INTO config (key, value) VALUES (?, ?) ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value', (key, value))
        else:
            self.db.execute_query('INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)', (key, value))

    def all(self) -> dict:
        return {key: value for key, value in self.db.fetch_all('SELECT key, value FROM config ORDER BY key')}
