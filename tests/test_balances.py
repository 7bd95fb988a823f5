"""Tests for the balance aggregator."""

import asyncio
import json
from collections.abc import Iterable
from decimal import Decimal
from typing import Any
from unittest.mock import patch

import pytest

from chainkeep.chains import build_chain_configs
from chainkeep.exceptions import (
    BalanceFetchFailed,
    NoSecretUnlocked,
    PriceOracleUnavailable,
    ProviderError,
)
from chainkeep.interfaces.oracle import PriceOracle
from chainkeep.managers import AccountRegistry, BalanceAggregator, CustomTokenCatalog
from chainkeep.managers.balances import to_display
from chainkeep.models import ChainConfig, ChainFamily, SecretState, TokenDescriptor
from chainkeep.persistence import MemorySecretStore
from chainkeep.pricing import CoinGeckoOracle
from chainkeep.providers import HttpTransport
from chainkeep.wallet.secret import Secret
from chainkeep.wallet.session import WalletSession

CHAINS = build_chain_configs()
USDT = "0xc2132D05D31c914a87C6611C10748AEb04B58e8F"
USDC = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
LINK = "0x514910771AF9Ca656af840dff83E8264EcF986CA"


# =============================================================================
# Mock Classes
# =============================================================================


class MockAccount:
    """Account handle with scripted balances.

    Values may be ints, exceptions to raise, or None to hang forever.
    """

    def __init__(self, native: object = 0, tokens: dict[str, object] | None = None) -> None:
        self.native = native
        self.tokens = {k.lower(): v for k, v in (tokens or {}).items()}

    def get_address(self) -> str:
        return "0x9858EfFD232B4033E47d90003D41EC34EcaEda94"

    @staticmethod
    async def _resolve(value: object) -> int:
        if value is None:
            await asyncio.sleep(3600)
        if isinstance(value, Exception):
            raise value
        assert isinstance(value, int)
        return value

    async def get_balance(self) -> int:
        return await self._resolve(self.native)

    async def get_token_balance(self, address: str) -> int:
        return await self._resolve(self.tokens.get(address.lower(), 0))


class MockProvider:
    """Provider handing out the same scripted account."""

    def __init__(self, account: MockAccount) -> None:
        self.account = account

    def derive_account(self, secret: Secret, index: int, chain: ChainConfig) -> MockAccount:
        return self.account


class MockOracle(PriceOracle):
    """Price oracle recording its calls."""

    def __init__(
        self,
        prices: dict[str, Decimal] | None = None,
        fail: bool = False,
        error: Exception | None = None,
    ) -> None:
        self.prices = prices or {}
        self.fail = fail
        self.error = error
        self.calls: list[set[str]] = []

    async def get_prices(self, ids: Iterable[str]) -> dict[str, Decimal]:
        requested = set(ids)
        self.calls.append(requested)
        if self.fail:
            raise PriceOracleUnavailable()
        if self.error is not None:
            raise self.error
        return {k: v for k, v in self.prices.items() if k in requested}


class HtmlPage:
    """200 response carrying an HTML page where JSON was expected."""

    status = 200
    headers: dict[str, str] = {}

    async def json(self, content_type: str | None = "application/json") -> Any:
        return json.loads("<html>Just a moment...</html>")

    async def __aenter__(self) -> "HtmlPage":
        return self

    async def __aexit__(self, *args: object) -> None:
        pass


def polygon_tokens() -> list[TokenDescriptor]:
    return [
        TokenDescriptor(chain_id="polygon", address=USDT, symbol="USDT", name="Tether USD", decimals=6, price_id="tether"),
        TokenDescriptor(chain_id="polygon", address=USDC, symbol="USDC", name="USD Coin", decimals=6, price_id="usd-coin"),
    ]


def make_aggregator(
    account: MockAccount, oracle: MockOracle, store: MemorySecretStore | None = None
) -> BalanceAggregator:
    registry = AccountRegistry(CHAINS, {family: MockProvider(account) for family in ChainFamily})
    catalog = CustomTokenCatalog(store or MemorySecretStore(), CHAINS)
    return BalanceAggregator(registry, catalog, oracle, timeout=0.5)


@pytest.fixture
def session() -> WalletSession:
    """Unlocked session on polygon."""
    return WalletSession(
        current_chain="polygon", state=SecretState.UNLOCKED, secret=Secret("alpha beta gamma")
    )


# =============================================================================
# Rounding
# =============================================================================


class TestToDisplay:
    """Tests for display rounding."""

    def test_native_precision(self) -> None:
        """Native amounts keep 6 decimals, rounding half up."""
        assert to_display(1_234_567_500_000_000_000, 18, Decimal("0.000001")) == Decimal("1.234568")

    def test_token_precision(self) -> None:
        """Token amounts keep 4 decimals."""
        assert to_display(1_500_000, 6, Decimal("0.0001")) == Decimal("1.5000")
        assert str(to_display(0, 6, Decimal("0.0001"))) == "0.0000"

    def test_huge_balance(self) -> None:
        """uint256-sized balances do not overflow the decimal context."""
        assert to_display(2**256 - 1, 18, Decimal("0.000001")) > 0


# =============================================================================
# fetch_report
# =============================================================================


class TestFetchReport:
    """Tests for fetch_report()."""

    @pytest.mark.asyncio
    async def test_polygon_stablecoin_scenario(self, session: WalletSession) -> None:
        """USDT 1.5 at $1.00 and USDC 0 at $0.999."""
        account = MockAccount(native=0, tokens={USDT: 1_500_000, USDC: 0})
        oracle = MockOracle({"tether": Decimal("1.00"), "usd-coin": Decimal("0.999")})
        aggregator = make_aggregator(account, oracle)

        report = await aggregator.fetch_report(session, "polygon", tokens=polygon_tokens())

        usdt = report.row("USDT")
        usdc = report.row("USDC")
        assert usdt is not None and usdc is not None
        assert str(usdt.balance) == "1.5000"
        assert str(usdt.usd_value) == "1.50"
        assert str(usdc.balance) == "0.0000"
        assert str(usdc.usd_value) == "0.00"
        assert report.prices_available

    @pytest.mark.asyncio
    async def test_native_row_first(self, session: WalletSession) -> None:
        """The native asset leads the report with 6-decimal precision."""
        account = MockAccount(native=2 * 10**18 + 123_456_789)
        oracle = MockOracle({"matic-network": Decimal("0.5")})
        aggregator = make_aggregator(account, oracle)

        report = await aggregator.fetch_report(session, "polygon", tokens=[])

        native = report.rows[0]
        assert native.is_native
        assert native.symbol == "MATIC"
        assert str(native.balance) == "2.000000"
        assert str(native.usd_value) == "1.00"
        assert report.total_usd == Decimal("1.00")

    @pytest.mark.asyncio
    async def test_single_price_request(self, session: WalletSession) -> None:
        """All distinct price ids are fetched in one batched call."""
        tokens = polygon_tokens() + [
            TokenDescriptor(chain_id="polygon", address=LINK, symbol="LINK", name="Chainlink", price_id="tether"),
        ]
        oracle = MockOracle()
        aggregator = make_aggregator(MockAccount(), oracle)

        await aggregator.fetch_report(session, "polygon", tokens=tokens)

        assert oracle.calls == [{"matic-network", "tether", "usd-coin"}]

    @pytest.mark.asyncio
    async def test_partial_failure(self, session: WalletSession) -> None:
        """One failing token yields one zero row; the rest are correct."""
        account = MockAccount(native=10**18, tokens={USDT: ProviderError("boom"), USDC: 2_000_000})
        oracle = MockOracle({"tether": Decimal("1"), "usd-coin": Decimal("1")})
        aggregator = make_aggregator(account, oracle)

        report = await aggregator.fetch_report(session, "polygon", tokens=polygon_tokens())

        assert len(report.rows) == 3
        assert [row.symbol for row in report.failed_rows] == ["USDT"]
        usdt = report.row("USDT")
        assert usdt is not None
        assert usdt.balance == 0
        assert usdt.usd_value == 0
        assert "boom" in (usdt.error or "")
        usdc = report.row("USDC")
        assert usdc is not None and str(usdc.usd_value) == "2.00"

    @pytest.mark.asyncio
    async def test_timeout_is_a_failed_row(self, session: WalletSession) -> None:
        """A hanging balance query is bounded by the timeout."""
        account = MockAccount(native=10**18, tokens={USDT: None})
        aggregator = make_aggregator(account, MockOracle())

        report = await aggregator.fetch_report(session, "polygon", tokens=polygon_tokens(), timeout=0.05)

        usdt = report.row("USDT")
        assert usdt is not None and usdt.failed
        assert "timed out" in (usdt.error or "")
        assert report.rows[0].balance == Decimal("1.000000")

    @pytest.mark.asyncio
    async def test_oracle_unavailable(self, session: WalletSession) -> None:
        """Balances are still reported with all USD values at zero."""
        account = MockAccount(native=10**18, tokens={USDT: 1_500_000})
        aggregator = make_aggregator(account, MockOracle(fail=True))

        report = await aggregator.fetch_report(session, "polygon", tokens=polygon_tokens())

        assert not report.prices_available
        assert all(row.usd_value == 0 for row in report.rows)
        assert str(report.rows[0].balance) == "1.000000"
        assert str(report.row("USDT").balance) == "1.5000"  # type: ignore[union-attr]
        assert report.failed_rows == []

    @pytest.mark.asyncio
    async def test_unexpected_oracle_error_degrades(self, session: WalletSession) -> None:
        """Any oracle exception degrades to zero USD values, not a failed report."""
        account = MockAccount(native=10**18, tokens={USDT: 1_500_000})
        aggregator = make_aggregator(account, MockOracle(error=RuntimeError("bad payload")))

        report = await aggregator.fetch_report(session, "polygon", tokens=polygon_tokens())

        assert not report.prices_available
        assert str(report.row("USDT").balance) == "1.5000"  # type: ignore[union-attr]
        assert report.total_usd == 0

    @pytest.mark.asyncio
    async def test_oracle_html_page_degrades(self, session: WalletSession) -> None:
        """An HTML challenge page from the price API still yields balances."""
        account = MockAccount(native=10**18, tokens={USDT: 1_500_000})
        registry = AccountRegistry(CHAINS, {family: MockProvider(account) for family in ChainFamily})
        catalog = CustomTokenCatalog(MemorySecretStore(), CHAINS)

        async with HttpTransport(timeout=1.0, max_retries=1) as transport:
            aggregator = BalanceAggregator(registry, catalog, CoinGeckoOracle(transport))
            with patch.object(transport._session, "request", return_value=HtmlPage()):
                report = await aggregator.fetch_report(session, "polygon", tokens=polygon_tokens())

        assert not report.prices_available
        assert [row.symbol for row in report.rows] == ["MATIC", "USDT", "USDC"]
        assert str(report.row("USDT").balance) == "1.5000"  # type: ignore[union-attr]
        assert all(row.usd_value == 0 for row in report.rows)
        assert report.failed_rows == []
        assert report.failed_rows == []

    @pytest.mark.asyncio
    async def test_missing_price_is_zero(self, session: WalletSession) -> None:
        """Tokens the oracle does not know are valued at 0.00."""
        account = MockAccount(tokens={USDT: 1_500_000})
        aggregator = make_aggregator(account, MockOracle({"usd-coin": Decimal("1")}))

        report = await aggregator.fetch_report(session, "polygon", tokens=polygon_tokens())

        usdt = report.row("USDT")
        assert usdt is not None
        assert usdt.usd_price is None
        assert str(usdt.usd_value) == "0.00"
        assert report.prices_available

    @pytest.mark.asyncio
    async def test_defaults_to_catalog(self, session: WalletSession) -> None:
        """Without explicit tokens, built-in plus custom tokens are used."""
        store = MemorySecretStore()
        aggregator = make_aggregator(MockAccount(tokens={LINK: 10**18}), MockOracle(), store)
        await aggregator._catalog.add(
            "polygon",
            TokenDescriptor(chain_id="polygon", address=LINK, symbol="link", name="Chainlink"),
        )

        report = await aggregator.fetch_report(session, "polygon")

        assert [row.symbol for row in report.rows] == ["MATIC", "USDT", "USDC", "LINK"]
        assert str(report.row("LINK").balance) == "1.0000"  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_duplicate_tokens_reported_once(self, session: WalletSession) -> None:
        """Tokens with the same address in different case appear once."""
        tokens = polygon_tokens()
        tokens.append(tokens[0].model_copy(update={"address": USDT.lower(), "symbol": "USDT2"}))
        aggregator = make_aggregator(MockAccount(), MockOracle())

        report = await aggregator.fetch_report(session, "polygon", tokens=tokens)

        assert [row.symbol for row in report.rows] == ["MATIC", "USDT", "USDC"]

    @pytest.mark.asyncio
    async def test_non_evm_chain_is_native_only(self, session: WalletSession) -> None:
        """Tokens are ignored on non-EVM chains."""
        account = MockAccount(native=150_000_000)
        oracle = MockOracle({"bitcoin": Decimal("60000")})
        aggregator = make_aggregator(account, oracle)

        report = await aggregator.fetch_report(session, "bitcoin", tokens=polygon_tokens())

        assert len(report.rows) == 1
        assert report.rows[0].symbol == "BTC"
        assert str(report.rows[0].balance) == "1.500000"
        assert str(report.rows[0].usd_value) == "90000.00"
        assert oracle.calls == [{"bitcoin"}]

    @pytest.mark.asyncio
    async def test_locked_session_raises(self) -> None:
        """Lifecycle errors are surfaced verbatim."""
        aggregator = make_aggregator(MockAccount(), MockOracle())
        with pytest.raises(NoSecretUnlocked):
            await aggregator.fetch_report(WalletSession(), "polygon")


class TestFetchNativeBalance:
    """Tests for fetch_native_balance()."""

    @pytest.mark.asyncio
    async def test_converts_decimals(self) -> None:
        """TRON's 6 decimals are applied."""
        aggregator = make_aggregator(MockAccount(), MockOracle())
        balance = await aggregator.fetch_native_balance(MockAccount(native=2_500_000), CHAINS["tron"])
        assert str(balance) == "2.500000"

    @pytest.mark.asyncio
    async def test_failure_raises(self) -> None:
        """Provider failures raise BalanceFetchFailed for the caller to handle."""
        aggregator = make_aggregator(MockAccount(), MockOracle())
        with pytest.raises(BalanceFetchFailed) as exc_info:
            await aggregator.fetch_native_balance(
                MockAccount(native=ProviderError("down")), CHAINS["ethereum"]
            )
        assert exc_info.value.symbol == "ETH"

    @pytest.mark.asyncio
    async def test_timeout_raises(self) -> None:
        """Timeouts are treated as failures."""
        aggregator = make_aggregator(MockAccount(), MockOracle())
        with pytest.raises(BalanceFetchFailed, match="timed out"):
            await aggregator.fetch_native_balance(MockAccount(native=None), CHAINS["ethereum"], timeout=0.01)

    @pytest.mark.asyncio
    async def test_zero_timeout_is_honoured(self) -> None:
        """An explicit zero timeout is not replaced by the default."""
        aggregator = make_aggregator(MockAccount(), MockOracle())
        with pytest.raises(BalanceFetchFailed, match="after 0s"):
            await aggregator.fetch_native_balance(MockAccount(native=None), CHAINS["ethereum"], timeout=0)


# =============================================================================
# refresh
# =============================================================================


class TestRefresh:
    """Tests for refresh() and chain-switch cancellation."""

    @pytest.mark.asyncio
    async def test_stores_report_for_current_chain(self, session: WalletSession) -> None:
        """A completed refresh is recorded on the session."""
        aggregator = make_aggregator(MockAccount(native=10**18), MockOracle())

        report = await aggregator.refresh(session)

        assert report is not None
        assert session.reports["polygon"] is report

    @pytest.mark.asyncio
    async def test_chain_switch_discards_result(self, session: WalletSession) -> None:
        """Switching chain mid-fetch cancels and discards the stale refresh."""
        aggregator = make_aggregator(MockAccount(native=None), MockOracle())

        refresh = asyncio.create_task(aggregator.refresh(session))
        await asyncio.sleep(0.01)
        session.switch_chain("ethereum")

        assert await refresh is None
        assert session.reports == {}

    @pytest.mark.asyncio
    async def test_refreshes_current_chain(self, session: WalletSession) -> None:
        """refresh() always targets the chain that is current when it starts."""
        aggregator = make_aggregator(MockAccount(native=10**18), MockOracle())
        session.switch_chain("ethereum")

        report = await aggregator.refresh(session)

        assert report is not None and report.chain_id == "ethereum"
        assert set(session.reports) == {"ethereum"}

    @pytest.mark.asyncio
    async def test_lock_cancels_refresh(self, session: WalletSession) -> None:
        """Clearing the secret abandons the in-flight refresh."""
        aggregator = make_aggregator(MockAccount(native=None), MockOracle())

        refresh = asyncio.create_task(aggregator.refresh(session))
        await asyncio.sleep(0.01)
        session.clear_secret()

        assert await refresh is None
        assert session.reports == {}
