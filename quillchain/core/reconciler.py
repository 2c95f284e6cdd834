# quillchain/core/reconciler.py
"""
Housekeeping sweep over the active wallet's ledger.

Records whose fee is not chain-confirmed get another fee resolution; records
that are chain-priced but not yet mirrored get another backend push. The
sweep is requested whenever the ledger or the session changes. Only one
sweep runs at a time; requests arriving meanwhile collapse into one rerun.
"""

import threading
import time
from typing import Callable, Dict, Optional

from quillchain.config import env_float
from quillchain.core.fees import FeeResolver
from quillchain.core.ledger import LedgerStore
from quillchain.core.models import FeeSource
from quillchain.core.scheduler import BackgroundRunner
from quillchain.core.sync import BackendSyncBridge
from quillchain.utils.console import print_debug

# Session events that change which records need attention.
SWEEP_EVENTS = ("connected", "restored", "network")


class LedgerReconciler:
    def __init__(self, session, ledger: LedgerStore, fee_resolver: FeeResolver,
                 sync_bridge: BackendSyncBridge, runner: Optional[BackgroundRunner] = None,
                 fee_delay: Optional[float] = None, sync_delay: Optional[float] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.session = session
        self.ledger = ledger
        self.fee_resolver = fee_resolver
        self.sync_bridge = sync_bridge
        self.runner = runner or BackgroundRunner()
        self.fee_delay = fee_delay if fee_delay is not None else env_float("QUILL_SWEEP_FEE_DELAY", 0.5)
        self.sync_delay = sync_delay if sync_delay is not None else env_float("QUILL_SWEEP_SYNC_DELAY", 0.2)
        self.sleep = sleep
        self._lock = threading.Lock()
        self._running = False
        self._dirty = False

    def sweep(self, address: Optional[str] = None) -> Dict[str, int]:
        """One pass: relaunch fee lookups, then retry backend pushes."""
        address = address or self.session.address
        if not address:
            return {'fees': 0, 'pushes': 0}

        records = self.ledger.records(address)
        unpriced = [r for r in records if r.tx_hash and r.fee_source != FeeSource.BLOCKCHAIN.value]
        for record in unpriced:
            self.fee_resolver.resolve_in_background(address, record.id)
            self.sleep(self.fee_delay)

        unsynced = [r for r in records if r.fee_source == FeeSource.BLOCKCHAIN.value and not r.backend_synced]
        for record in unsynced:
            self.sync_bridge.push(address, record)
            self.sleep(self.sync_delay)

        if unpriced or unsynced:
            print_debug(f"Sweep for {address[:20]}...: {len(unpriced)} fee lookup(s), {len(unsynced)} push(es)")
        return {'fees': len(unpriced), 'pushes': len(unsynced)}

    def request_sweep(self):
        """Schedule a sweep, or mark the running one for a rerun."""
        with self._lock:
            if self._running:
                self._dirty = True
                return None
            self._running = True
            self._dirty = False
        try:
            return self.runner.submit("ledger-sweep", self._drain)
        except Exception:
            with self._lock:
                self._running = False
            raise

    def _drain(self):
        try:
            while True:
                self.sweep()
                with self._lock:
                    if not self._dirty:
                        self._running = False
                        return
                    self._dirty = False
        except Exception:
            with self._lock:
                self._running = False
            raise

    def _on_ledger_change(self, address, event, record):
        if address == self.session.address:
            self.request_sweep()

    def _on_session_change(self, event, session):
        if event not in SWEEP_EVENTS or not session.address:
            return
        if event in ("connected", "restored"):
            address = session.address
            self.runner.submit(
                "backend-backfill", self.sync_bridge.push_many, address, self.ledger.records(address)
            )
        self.request_sweep()

    def attach(self):
        """Subscribe to ledger and session changes"""
        self.ledger.on_change(self._on_ledger_change)
        self.session.add_listener(self._on_session_change)
