"""
Database Connection Manager
Handles PostgreSQL and SQLite connections with automatic fallback
"""
import os
import sqlite3
from contextlib import contextmanager
from typing import Optional, Iterator


class StorageError(Exception):
    """Raised when the database cannot complete a read or write"""
    pass


class TransactionCursor:
    """Cursor wrapper converting SQLite placeholders for PostgreSQL"""

    def __init__(self, cursor, db_type: str):
        self._cursor = cursor
        self.db_type = db_type

    def _convert(self, query: str) -> str:
        if self.db_type == 'postgresql':
            return query.replace('?', '%s')
        return query

    def execute(self, query: str, params: Optional[tuple] = None) -> 'TransactionCursor':
        if params:
            self._cursor.execute(self._convert(query), params)
        else:
            self._cursor.execute(self._convert(query))
        return self

    def insert(self, query: str, params: tuple, id_column: str) -> int:
        """Run an INSERT and return the generated id"""
        if self.db_type == 'postgresql':
            self._cursor.execute(self._convert(f"{query} RETURNING {id_column}"), params)
            return self._cursor.fetchone()[0]

        self._cursor.execute(query, params)
        return self._cursor.lastrowid

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount

    def fetchone(self):
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        return self._cursor.fetchall()


class DatabaseManager:
    """Manages database connections with automatic PostgreSQL/SQLite fallback"""

    def __init__(self, database_url: Optional[str] = None, sqlite_path: Optional[str] = None):
        self.database_url = database_url if database_url is not None else os.getenv('DATABASE_URL')
        self.sqlite_path = sqlite_path or os.getenv('SQLITE_PATH') or self._get_sqlite_path()
        self.db_type = 'sqlite'
        self._test_connection()

    def _test_connection(self):
        """Test and determine the best database connection"""
        if self.database_url and self.database_url.startswith('postgresql://'):
            try:
                import psycopg2
                print("[DATABASE] Attempting to connect to PostgreSQL database...")

                conn = psycopg2.connect(
                    self.database_url,
                    connect_timeout=10,
                    sslmode='require'
                )
                conn.close()

                print("[DATABASE] Successfully connected to PostgreSQL database")
                self.db_type = 'postgresql'
                return

            except ImportError:
                print("[DATABASE] psycopg2 not installed. Install with: pip install psycopg2-binary")
                print("[DATABASE] Falling back to SQLite...")

            except Exception as e:
                print(f"[DATABASE] PostgreSQL connection failed: {e}")
                print("[DATABASE] Falling back to SQLite...")

        directory = os.path.dirname(self.sqlite_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        print(f"[DATABASE] Using SQLite database at: {self.sqlite_path}")
        self.db_type = 'sqlite'

    def _get_sqlite_path(self) -> str:
        """Get the appropriate SQLite database path for the environment"""
        if os.getenv('RENDER') or os.getenv('RAILWAY_ENVIRONMENT') or os.getenv('PORT'):
            # Use /tmp for cloud hosting (ephemeral but works)
            return '/tmp/pet_arena.db'
        return os.path.join('data', 'pet_arena.db')

    def get_connection(self):
        """Get a database connection"""
        try:
            if self.db_type == 'postgresql':
                import psycopg2
                return psycopg2.connect(
                    self.database_url,
                    connect_timeout=10,
                    sslmode='require'
                )
            conn = sqlite3.connect(self.sqlite_path)
            conn.execute('PRAGMA foreign_keys = ON')
            return conn
        except Exception as e:
            raise StorageError(f"Could not open database connection: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[TransactionCursor]:
        """Run several statements atomically, rolling back on any failure"""
        conn = self.get_connection()
        try:
            cursor = TransactionCursor(conn.cursor(), self.db_type)
            yield cursor
            conn.commit()
        except Exception as e:
            conn.rollback()
            if isinstance(e, StorageError):
                raise
            if isinstance(e, sqlite3.Error) or type(e).__module__.startswith('psycopg2'):
                print(f"[DATABASE] Transaction rolled back: {e}")
                raise StorageError(str(e)) from e
            raise
        finally:
            conn.close()

    def execute_query(self, query: str, params: Optional[tuple] = None):
        """Execute a single write statement"""
        try:
            with self.transaction() as cursor:
                cursor.execute(query, params)
            return True
        except StorageError:
            print(f"[DATABASE] Query: {query}")
            print(f"[DATABASE] Params: {params}")
            raise

    def fetch_all(self, query: str, params: Optional[tuple] = None) -> list:
        """Fetch all results from a query"""
        with self.transaction() as cursor:
            return cursor.execute(query, params).fetchall()

    def fetch_one(self, query: str, params: Optional[tuple] = None):
        """Fetch one result from a query, None when there are no rows"""
        with self.transaction() as cursor:
            return cursor.execute(query, params).fetchone()
