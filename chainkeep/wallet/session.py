"""Explicit per-session wallet state."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from chainkeep.models import BalanceReport, SecretState
from chainkeep.wallet.secret import Secret


@dataclass
class WalletSession:
    """Mutable state of one wallet session, owned by the caller.

    Passed into every lifecycle, registry and aggregator operation instead
    of living as ambient shared state.

    Attributes:
        current_chain: Chain whose report is being displayed.
        state: Where the secret currently lives.
        secret: The unlocked mnemonic (None while locked).
        accounts: Account handles derived during this session, by chain id.
        reports: Latest balance report per chain.
        transition_lock: Single-flight guard for lifecycle transitions.
    """

    current_chain: str = "ethereum"
    state: SecretState = SecretState.NO_RECORD
    secret: Secret | None = None
    accounts: dict[str, Any] = field(default_factory=dict)
    reports: dict[str, BalanceReport] = field(default_factory=dict)
    transition_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    _refresh_task: "asyncio.Task[BalanceReport] | None" = field(default=None, repr=False)

    @property
    def is_unlocked(self) -> bool:
        """Whether a secret is available in memory."""
        return (
            self.state == SecretState.UNLOCKED
            and self.secret is not None
            and not self.secret.is_wiped
        )

    @property
    def refresh_task(self) -> "asyncio.Task[BalanceReport] | None":
        """The in-flight balance refresh, if any."""
        return self._refresh_task

    def switch_chain(self, chain_id: str) -> None:
        """Make another chain current, abandoning the in-flight refresh."""
        if chain_id == self.current_chain:
            return
        self.cancel_refresh()
        logger.debug("Switched chain: {} -> {}", self.current_chain, chain_id)
        self.current_chain = chain_id

    def track_refresh(self, task: "asyncio.Task[BalanceReport]") -> None:
        """Register a refresh task, cancelling any previous one."""
        self.cancel_refresh()
        self._refresh_task = task

    def cancel_refresh(self) -> None:
        """Cancel the in-flight refresh; its result will be discarded."""
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._refresh_task = None

    def clear_secret(self) -> None:
        """Wipe the secret and drop everything derived from it."""
        self.cancel_refresh()
        if self.secret is not None:
            self.secret.wipe()
            self.secret = None
        self.accounts.clear()
        self.reports.clear()
