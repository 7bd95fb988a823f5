"""Balance aggregation: native and token balances valued in USD."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from decimal import ROUND_HALF_UP, Decimal, localcontext

from loguru import logger

from chainkeep.exceptions import BalanceFetchFailed, PriceOracleUnavailable
from chainkeep.interfaces.oracle import PriceOracle
from chainkeep.interfaces.provider import AccountHandle
from chainkeep.managers.accounts import AccountRegistry
from chainkeep.managers.tokens import CustomTokenCatalog, dedupe_tokens
from chainkeep.models import BalanceReport, BalanceRow, ChainConfig, TokenDescriptor
from chainkeep.wallet.session import WalletSession

NATIVE_PRECISION = Decimal("0.000001")
TOKEN_PRECISION = Decimal("0.0001")
USD_PRECISION = Decimal("0.01")
ZERO_USD = Decimal("0.00")

# uint256 has 78 decimal digits
_DECIMAL_PRECISION = 100


def to_display(raw: int, decimals: int, quantum: Decimal) -> Decimal:
    """Scale a smallest-unit amount and round half-up to the display quantum."""
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        return (Decimal(raw) / (Decimal(10) ** decimals)).quantize(
            quantum, rounding=ROUND_HALF_UP
        )


def to_usd(balance: Decimal, price: Decimal | None) -> Decimal:
    """USD value of a rounded balance, 0.00 when the price is unknown."""
    if price is None:
        return ZERO_USD
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        return (balance * price).quantize(USD_PRECISION, rounding=ROUND_HALF_UP)


class BalanceAggregator:
    """Builds per-chain balance reports for the unlocked account.

    One report issues a single batched price request alongside all balance
    queries. A failing balance query zeroes its own row only; an unreachable
    oracle values every row at 0.00 and marks the report.

    Example:
        aggregator = BalanceAggregator(registry, catalog, oracle)
        report = await aggregator.refresh(session)
        print(report.total_usd)
    """

    def __init__(
        self,
        registry: AccountRegistry,
        catalog: CustomTokenCatalog,
        oracle: PriceOracle,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the aggregator.

        Args:
            registry: Account registry for per-chain handles.
            catalog: Token catalog (built-in plus custom tokens).
            oracle: Batched USD price source.
            timeout: Default per-query timeout in seconds.
        """
        self._registry = registry
        self._catalog = catalog
        self._oracle = oracle
        self._timeout = timeout

    async def _fetch_raw(
        self,
        query: Callable[[], Awaitable[int]],
        chain_id: str,
        symbol: str,
        timeout: float,
    ) -> int:
        try:
            return await asyncio.wait_for(query(), timeout)
        except asyncio.TimeoutError:
            raise BalanceFetchFailed(chain_id, symbol, f"timed out after {timeout}s") from None
        except Exception as e:
            raise BalanceFetchFailed(chain_id, symbol, str(e) or type(e).__name__) from e

    async def _fetch_row_raw(
        self,
        query: Callable[[], Awaitable[int]],
        chain_id: str,
        symbol: str,
        timeout: float,
    ) -> tuple[int, str | None]:
        try:
            return await self._fetch_raw(query, chain_id, symbol, timeout), None
        except BalanceFetchFailed as e:
            logger.warning("{}", e)
            return 0, e.reason

    async def fetch_native_balance(
        self,
        account: AccountHandle,
        chain: ChainConfig,
        timeout: float | None = None,
    ) -> Decimal:
        """Fetch the native balance, rounded to 6 decimals.

        Raises:
            BalanceFetchFailed: On provider failure or timeout.
        """
        raw = await self._fetch_raw(
            account.get_balance,
            chain.chain_id,
            chain.currency,
            self._timeout if timeout is None else timeout,
        )
        return to_display(raw, chain.decimals, NATIVE_PRECISION)

    async def _fetch_prices(
        self, ids: set[str], timeout: float
    ) -> tuple[dict[str, Decimal], bool]:
        if not ids:
            return {}, True
        try:
            return await asyncio.wait_for(self._oracle.get_prices(ids), timeout), True
        except asyncio.TimeoutError:
            logger.warning("Price oracle timed out after {}s", timeout)
        except PriceOracleUnavailable as e:
            logger.warning("Price oracle unavailable: {}", e)
        except Exception as e:
            logger.warning("Price oracle failed: {}", str(e) or type(e).__name__)
        return {}, False

    async def fetch_report(
        self,
        session: WalletSession,
        chain_id: str,
        tokens: Sequence[TokenDescriptor] | None = None,
        timeout: float | None = None,
    ) -> BalanceReport:
        """Build the balance report for one chain.

        The native row always comes first. EVM chains add one row per
        token (deduplicated by address); other chains report native only.

        Args:
            session: Unlocked wallet session.
            chain_id: Chain to report on.
            tokens: Tokens to include; defaults to the chain's catalog.
            timeout: Per-query timeout in seconds.

        Returns:
            The assembled report.

        Raises:
            ChainNotConfigured: If the chain id is unknown.
            NoSecretUnlocked: If the session is locked.
        """
        chain = self._registry.chain(chain_id)
        account = self._registry.ensure_account(session, chain_id)
        timeout = self._timeout if timeout is None else timeout

        token_list: list[TokenDescriptor] = []
        if chain.is_evm:
            if tokens is None:
                token_list = await self._catalog.combined(chain_id)
            else:
                token_list = dedupe_tokens(tokens, chain.family)

        price_ids = {t.price_id for t in token_list if t.price_id}
        if chain.price_id:
            price_ids.add(chain.price_id)

        def token_query(token: TokenDescriptor) -> Callable[[], Awaitable[int]]:
            return lambda: account.get_token_balance(token.address)

        (prices, prices_available), native, *token_results = await asyncio.gather(
            self._fetch_prices(price_ids, timeout),
            self._fetch_row_raw(account.get_balance, chain_id, chain.currency, timeout),
            *(
                self._fetch_row_raw(token_query(t), chain_id, t.symbol, timeout)
                for t in token_list
            ),
        )

        rows = [
            self._build_row(
                symbol=chain.currency,
                name=chain.name,
                address=None,
                decimals=chain.decimals,
                price_id=chain.price_id,
                result=native,
                prices=prices,
                quantum=NATIVE_PRECISION,
            )
        ]
        for token, result in zip(token_list, token_results):
            rows.append(
                self._build_row(
                    symbol=token.symbol,
                    name=token.name,
                    address=token.address,
                    decimals=token.decimals,
                    price_id=token.price_id,
                    result=result,
                    prices=prices,
                    quantum=TOKEN_PRECISION,
                )
            )

        report = BalanceReport(
            chain_id=chain_id,
            address=account.get_address(),
            rows=rows,
            prices_available=prices_available,
        )
        logger.info(
            "{} report: {} rows, {} failed, total ${}",
            chain.name,
            len(rows),
            len(report.failed_rows),
            report.total_usd,
        )
        return report

    @staticmethod
    def _build_row(
        *,
        symbol: str,
        name: str,
        address: str | None,
        decimals: int,
        price_id: str | None,
        result: tuple[int, str | None],
        prices: dict[str, Decimal],
        quantum: Decimal,
    ) -> BalanceRow:
        raw, error = result
        balance = to_display(raw, decimals, quantum)
        price = prices.get(price_id) if price_id else None
        return BalanceRow(
            symbol=symbol,
            name=name,
            address=address,
            decimals=decimals,
            raw_balance=raw,
            balance=balance,
            usd_price=price,
            usd_value=to_usd(balance, price),
            is_native=address is None,
            error=error,
        )

    async def refresh(
        self, session: WalletSession, timeout: float | None = None
    ) -> BalanceReport | None:
        """Refresh the current chain's report and store it on the session.

        The refresh is tracked on the session so that switching chains or
        locking cancels it. A result for a chain that is no longer current
        is discarded.

        Returns:
            The new report, or None if it was cancelled or discarded.
        """
        chain_id = session.current_chain
        task = asyncio.create_task(self.fetch_report(session, chain_id, timeout=timeout))
        session.track_refresh(task)

        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task.cancelled():
            logger.debug("Discarded cancelled refresh for {}", chain_id)
            return None

        report = task.result()
        if chain_id != session.current_chain:
            logger.debug("Discarded stale report for {}", chain_id)
            return None

        session.reports[chain_id] = report
        return report
