import os
import sys
import json
import sqlite3
import threading
import time
from typing import Callable, Dict, List, Optional, Any

from quillchain.utils.console import print_error

CONNECTED_WALLET_KEY = "connectedWallet"


def _safe_home_dir() -> str:
    home = os.path.expanduser("~")
    if home and home != "~":
        return home
    env_home = os.getenv("HOME") or os.getenv("USERPROFILE")
    if env_home:
        return env_home
    return os.getcwd()


def get_default_data_dir() -> str:
    """Resolve a writable default data directory across platforms."""
    override = os.getenv("QUILL_DATA_DIR")
    if override:
        return override

    home = _safe_home_dir()

    if os.name == "nt":
        base = os.getenv("APPDATA") or os.getenv("LOCALAPPDATA") or home
        return os.path.join(base, "QuillChain")

    if sys.platform == "darwin":
        return os.path.join(home, "Library", "Application Support", "QuillChain")

    xdg_base = os.getenv("XDG_DATA_HOME") or os.path.join(home, ".local", "share")
    return os.path.join(xdg_base, "QuillChain")


def resolve_ledger_db_path(db_path: Optional[str] = None) -> str:
    if db_path:
        return db_path
    return os.path.join(get_default_data_dir(), "ledger.db")


class LedgerDatabase:
    """Stores one serialized transaction list per wallet address, plus session keys.

    Every mutation goes through ``modify_ledger`` which reads, transforms and
    writes the list inside one SQLite write transaction while holding a
    process-wide lock, so concurrent background flows never interleave.
    """

    def __init__(self, db_path=None):
        self.db_path = resolve_ledger_db_path(db_path)
        self._lock = threading.RLock()
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=10, isolation_level=None)

    def _init_database(self):
        conn = self._connect()
        try:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS ledgers (
                    wallet_address TEXT PRIMARY KEY,
                    records TEXT NOT NULL,
                    updated REAL
                )
            ''')
            conn.execute('''
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            ''')
        finally:
            conn.close()

    @staticmethod
    def _read_records(conn: sqlite3.Connection, address: str) -> List[Dict]:
        row = conn.execute(
            'SELECT records FROM ledgers WHERE wallet_address = ?', (address,)
        ).fetchone()
        if not row or not row[0]:
            return []
        try:
            records = json.loads(row[0])
        except (TypeError, ValueError):
            print_error(f"Ledger for {address} is not valid JSON; starting empty")
            return []
        return records if isinstance(records, list) else []

    @staticmethod
    def _write_records(conn: sqlite3.Connection, address: str, records: List[Dict]):
        conn.execute('''
            INSERT OR REPLACE INTO ledgers (wallet_address, records, updated)
            VALUES (?, ?, ?)
        ''', (address, json.dumps(records), time.time()))

    def load_ledger(self, address: str) -> List[Dict]:
        """Load the raw record list for a wallet"""
        if not address:
            return []
        with self._lock:
            conn = self._connect()
            try:
                return self._read_records(conn, address)
            finally:
                conn.close()

    def save_ledger(self, address: str, records: List[Dict]) -> None:
        if not address:
            raise ValueError("wallet address is required")
        with self._lock:
            conn = self._connect()
            try:
                conn.execute('BEGIN IMMEDIATE')
                self._write_records(conn, address, records)
                conn.execute('COMMIT')
            except Exception:
                if conn.in_transaction:
                    conn.execute('ROLLBACK')
                raise
            finally:
                conn.close()

    def modify_ledger(self, address: str, mutate: Callable[[List[Dict]], Optional[List[Dict]]]) -> List[Dict]:
        """Atomically read, transform and write one wallet's ledger.

        ``mutate`` receives the current list and returns the new one, or None
        to leave storage untouched. Exceptions raised by ``mutate`` roll back.
        """
        if not address:
            raise ValueError("wallet address is required")
        with self._lock:
            conn = self._connect()
            try:
                conn.execute('BEGIN IMMEDIATE')
                current = self._read_records(conn, address)
                result = mutate(current)
                if result is None:
                    conn.execute('ROLLBACK')
                    return current
                self._write_records(conn, address, result)
                conn.execute('COMMIT')
                return result
            except Exception:
                if conn.in_transaction:
                    conn.execute('ROLLBACK')
                raise
            finally:
                conn.close()

    def list_wallets(self) -> List[str]:
        with self._lock:
            conn = self._connect()
            try:
                rows = conn.execute('SELECT wallet_address FROM ledgers ORDER BY wallet_address').fetchall()
                return [row[0] for row in rows]
            finally:
                conn.close()

    def get_setting(self, key: str) -> Optional[Any]:
        with self._lock:
            conn = self._connect()
            try:
                row = conn.execute('SELECT value FROM settings WHERE key = ?', (key,)).fetchone()
            finally:
                conn.close()
        if not row or row[0] is None:
            return None
        return json.loads(row[0])

    def set_setting(self, key: str, value: Any) -> None:
        with self._lock:
            conn = self._connect()
            try:
                conn.execute(
                    'INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)',
                    (key, json.dumps(value)),
                )
            finally:
                conn.close()

    def delete_setting(self, key: str) -> None:
        with self._lock:
            conn = self._connect()
            try:
                conn.execute('DELETE FROM settings WHERE key = ?', (key,))
            finally:
                conn.close()

    def get_connected_address(self) -> Optional[str]:
        return self.get_setting(CONNECTED_WALLET_KEY)

    def set_connected_address(self, address: Optional[str]) -> None:
        if address:
            self.set_setting(CONNECTED_WALLET_KEY, address)
        else:
            self.delete_setting(CONNECTED_WALLET_KEY)
