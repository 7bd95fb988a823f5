"""Main entry point for the chainkeep wallet CLI."""

import argparse
import asyncio
import sys
from dataclasses import dataclass
from getpass import getpass
from pathlib import Path

from loguru import logger

from chainkeep.chains import build_chain_configs
from chainkeep.config import Settings, get_settings
from chainkeep.exceptions import WalletError
from chainkeep.managers import AccountRegistry, BalanceAggregator, CustomTokenCatalog
from chainkeep.models import BalanceReport, ChainConfig, TokenDescriptor, short_address
from chainkeep.persistence import SqliteSecretStore
from chainkeep.pricing import CoinGeckoOracle
from chainkeep.providers import HttpTransport, build_providers
from chainkeep.wallet import AesGcmCipher, SecretLifecycleManager, WalletSession


def setup_logging(verbose: bool = False) -> None:
    """Configure loguru logging."""
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level="INFO" if verbose else "WARNING",
    )
    logger.add(
        "logs/chainkeep_{time}.log",
        rotation="10 MB",
        retention="7 days",
        level="DEBUG",
    )


@dataclass
class WalletContext:
    """Components shared by all commands for one process."""

    settings: Settings
    chains: dict[str, ChainConfig]
    lifecycle: SecretLifecycleManager
    catalog: CustomTokenCatalog
    session: WalletSession


def prompt_password(prompt: str = "Password: ") -> str | None:
    """Read a password without echo; None when the user cancels."""
    try:
        return getpass(prompt)
    except (EOFError, KeyboardInterrupt):
        return None


def prompt_new_password(min_length: int) -> str | None:
    """Ask for a new password twice. Empty input means no password."""
    password = prompt_password(
        f"New password (min {min_length} chars, empty to store unencrypted): "
    )
    if not password:
        return None
    if prompt_password("Confirm password: ") != password:
        raise WalletError("Passwords do not match")
    return password


def print_warning(warning: Warning | None) -> None:
    if warning is not None:
        print(f"WARNING: {warning}", file=sys.stderr)


def print_report(report: BalanceReport, chain: ChainConfig) -> None:
    """Print a balance report as a table."""
    print(f"{chain.name} | {report.address}")
    print(f"{'Asset':<8} {'Balance':>24} {'USD':>14}")
    for row in report.rows:
        usd = f"${row.usd_value}" if report.prices_available else "n/a"
        line = f"{row.symbol:<8} {row.balance:>24} {usd:>14}"
        if row.failed:
            line += f"  (failed: {row.error})"
        print(line)
    if report.prices_available:
        print(f"{'Total':<8} {'':>24} {'$' + str(report.total_usd):>14}")
    else:
        print("Prices unavailable; USD values shown as n/a")


# =============================================================================
# Commands
# =============================================================================


async def cmd_create(ctx: WalletContext, args: argparse.Namespace) -> int:
    secret = ctx.lifecycle.generate(args.words or ctx.settings.wallet.word_count)
    print("Write down your recovery phrase and keep it offline:\n")
    print(f"  {secret.reveal()}\n")
    password = None if args.no_password else prompt_new_password(
        ctx.settings.wallet.min_password_length
    )
    result = await ctx.lifecycle.persist(secret, password)
    print_warning(result.warning)
    print("Wallet created" + (" (encrypted)" if result.encrypted else ""))
    secret.wipe()
    return 0


async def cmd_import(ctx: WalletContext, args: argparse.Namespace) -> int:
    phrase = prompt_password("Recovery phrase: ")
    if phrase is None:
        return 1
    secret = ctx.lifecycle.restore(phrase)
    password = None if args.no_password else prompt_new_password(
        ctx.settings.wallet.min_password_length
    )
    result = await ctx.lifecycle.persist(secret, password)
    print_warning(result.warning)
    print("Wallet imported" + (" (encrypted)" if result.encrypted else ""))
    secret.wipe()
    return 0


async def unlock(ctx: WalletContext) -> bool:
    """Unlock the session, reporting a cancelled prompt."""
    result = await ctx.lifecycle.unlock(ctx.session, prompt_password)
    if result.aborted:
        print("Unlock cancelled", file=sys.stderr)
        return False
    print_warning(result.warning)
    return True


async def cmd_unlock(ctx: WalletContext, args: argparse.Namespace) -> int:
    if not await unlock(ctx):
        return 1
    async with HttpTransport(
        timeout=ctx.settings.network.request_timeout,
        max_retries=ctx.settings.network.max_retries,
    ) as transport:
        registry = AccountRegistry(ctx.chains, build_providers(transport))
        for chain_id, account in registry.ensure_all(ctx.session).items():
            print(f"{chain_id:<10} {account.get_address()}")
    await ctx.lifecycle.lock(ctx.session)
    return 0


async def cmd_report(ctx: WalletContext, args: argparse.Namespace) -> int:
    chain_id = args.chain or ctx.settings.wallet.default_chain
    if not await unlock(ctx):
        return 1
    ctx.session.switch_chain(chain_id)

    network = ctx.settings.network
    async with HttpTransport(
        timeout=network.request_timeout, max_retries=network.max_retries
    ) as transport:
        registry = AccountRegistry(ctx.chains, build_providers(transport))
        aggregator = BalanceAggregator(
            registry,
            ctx.catalog,
            CoinGeckoOracle(transport, base_url=network.price_oracle_url),
            timeout=network.request_timeout,
        )
        try:
            report = await aggregator.refresh(ctx.session)
        finally:
            await ctx.lifecycle.lock(ctx.session)

    if report is None:
        print("Report discarded", file=sys.stderr)
        return 1
    print_report(report, registry.chain(chain_id))
    logger.info("Reported {} for {}", chain_id, short_address(report.address))
    return 0


async def cmd_set_password(ctx: WalletContext, args: argparse.Namespace) -> int:
    password = prompt_new_password(ctx.settings.wallet.min_password_length)
    if password is None:
        print("No password entered", file=sys.stderr)
        return 1
    migrated = await ctx.lifecycle.set_password(password, remember=args.remember)
    print("Mnemonic encrypted" if migrated else "Password set")
    return 0


async def cmd_clear_password(ctx: WalletContext, args: argparse.Namespace) -> int:
    await ctx.lifecycle.clear_password()
    print("Remembered password removed")
    return 0


async def cmd_export(ctx: WalletContext, args: argparse.Namespace) -> int:
    secret = await ctx.lifecycle.export()
    print(secret.reveal())
    secret.wipe()
    return 0


async def cmd_logout(ctx: WalletContext, args: argparse.Namespace) -> int:
    if not args.yes:
        answer = input("Remove the mnemonic from this device? [y/N] ")
        if answer.strip().lower() != "y":
            return 1
    await ctx.lifecycle.logout(ctx.session)
    print("Logged out")
    return 0


async def cmd_add_token(ctx: WalletContext, args: argparse.Namespace) -> int:
    chain_id = args.chain or ctx.settings.wallet.default_chain
    token = TokenDescriptor(
        chain_id=chain_id,
        address=args.address,
        symbol=args.symbol,
        name=args.name,
        decimals=args.decimals,
        price_id=args.price_id,
    )
    if await ctx.catalog.add(chain_id, token):
        print(f"Added {token.symbol.upper()} on {chain_id}")
    else:
        print(f"Token already listed on {chain_id}")
    return 0


async def cmd_list_tokens(ctx: WalletContext, args: argparse.Namespace) -> int:
    chain_id = args.chain or ctx.settings.wallet.default_chain
    tokens = (
        await ctx.catalog.combined(chain_id)
        if args.all
        else await ctx.catalog.list_tokens(chain_id)
    )
    for token in tokens:
        print(f"{token.symbol:<8} {token.address}  {token.name} ({token.decimals})")
    if not tokens:
        print(f"No tokens on {chain_id}")
    return 0


COMMANDS = {
    "create": cmd_create,
    "import": cmd_import,
    "unlock": cmd_unlock,
    "report": cmd_report,
    "set-password": cmd_set_password,
    "clear-password": cmd_clear_password,
    "export": cmd_export,
    "logout": cmd_logout,
    "add-token": cmd_add_token,
    "list-tokens": cmd_list_tokens,
}


async def main(args: argparse.Namespace) -> int:
    """Run one wallet command."""
    setup_logging(verbose=args.verbose)
    settings = get_settings()
    chains = dict(build_chain_configs(settings.network.rpc_overrides()))

    async with SqliteSecretStore(settings.storage.db_path) as store:
        ctx = WalletContext(
            settings=settings,
            chains=chains,
            lifecycle=SecretLifecycleManager(
                store,
                AesGcmCipher.from_config(settings.cipher),
                min_password_length=settings.wallet.min_password_length,
            ),
            catalog=CustomTokenCatalog(store, chains),
            session=WalletSession(current_chain=settings.wallet.default_chain),
        )
        try:
            return await COMMANDS[args.command](ctx, args)
        except WalletError as e:
            logger.debug("Command {} failed: {}", args.command, e)
            print(f"Error: {e}", file=sys.stderr)
            return 1


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="chainkeep - multi-chain wallet core",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at INFO level")
    commands = parser.add_subparsers(dest="command", required=True)

    create = commands.add_parser("create", help="Generate and store a new mnemonic")
    create.add_argument("--words", type=int, choices=(12, 15, 18, 21, 24))
    create.add_argument("--no-password", action="store_true", help="Store unencrypted")

    imp = commands.add_parser("import", help="Import an existing mnemonic")
    imp.add_argument("--no-password", action="store_true", help="Store unencrypted")

    commands.add_parser("unlock", help="Unlock and print account addresses")

    report = commands.add_parser("report", help="Show balances for a chain")
    report.add_argument("--chain", help="Chain id (default: configured default)")

    set_password = commands.add_parser("set-password", help="Encrypt the stored mnemonic")
    set_password.add_argument(
        "--remember",
        action="store_true",
        help="Also store the password so later runs can export without prompting",
    )

    commands.add_parser("clear-password", help="Forget the remembered password")
    commands.add_parser("export", help="Print the stored mnemonic")

    logout = commands.add_parser("logout", help="Remove the mnemonic from storage")
    logout.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")

    add_token = commands.add_parser("add-token", help="Add a custom token")
    add_token.add_argument("address")
    add_token.add_argument("symbol")
    add_token.add_argument("name")
    add_token.add_argument("--decimals", type=int, default=18)
    add_token.add_argument("--price-id", help="Price oracle id, e.g. 'tether'")
    add_token.add_argument("--chain", help="Chain id (default: configured default)")

    list_tokens = commands.add_parser("list-tokens", help="List custom tokens")
    list_tokens.add_argument("--chain", help="Chain id (default: configured default)")
    list_tokens.add_argument("--all", action="store_true", help="Include built-in tokens")

    return parser.parse_args(argv)


if __name__ == "__main__":
    # Create logs directory if it doesn't exist
    Path("logs").mkdir(exist_ok=True)

    sys.exit(asyncio.run(main(parse_args())))
