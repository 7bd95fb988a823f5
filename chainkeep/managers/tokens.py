"""Custom token catalog persisted in the secret store."""

import json
from collections.abc import Iterable, Mapping

from loguru import logger
from pydantic import ValidationError

from chainkeep.chains import builtin_tokens
from chainkeep.exceptions import ChainNotConfigured, InvalidToken
from chainkeep.interfaces.store import SecretStore
from chainkeep.models import ChainConfig, ChainFamily, TokenDescriptor, canonical_address

CUSTOM_TOKENS_KEY = "custom_tokens"


def dedupe_tokens(
    tokens: Iterable[TokenDescriptor], family: ChainFamily
) -> list[TokenDescriptor]:
    """Drop tokens whose canonical address was already seen; first wins."""
    seen: set[str] = set()
    unique: list[TokenDescriptor] = []
    for token in tokens:
        key = token.canonical_address(family)
        if key in seen:
            continue
        seen.add(key)
        unique.append(token)
    return unique


class CustomTokenCatalog:
    """User-added tokens keyed by chain id, in insertion order.

    The whole catalog is stored as one JSON document under
    'custom_tokens' and rewritten after every mutation.
    """

    def __init__(self, store: SecretStore, chains: Mapping[str, ChainConfig]) -> None:
        """Initialize the catalog.

        Args:
            store: Store holding the catalog document.
            chains: Configured chains, for address normalization.
        """
        self._store = store
        self._chains = chains
        self._tokens: dict[str, list[TokenDescriptor]] | None = None

    async def load(self) -> None:
        """Load the catalog from the store.

        Entries that fail validation are skipped with a warning.
        """
        self._tokens = {}
        raw = await self._store.get(CUSTOM_TOKENS_KEY)
        if not raw:
            return

        try:
            document = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Ignoring unreadable custom token catalog: {}", e)
            return
        if not isinstance(document, dict):
            logger.warning("Ignoring malformed custom token catalog")
            return

        for chain_id, entries in document.items():
            tokens: list[TokenDescriptor] = []
            for entry in entries if isinstance(entries, list) else []:
                try:
                    tokens.append(TokenDescriptor.model_validate({**entry, "chain_id": chain_id}))
                except (ValidationError, TypeError) as e:
                    logger.warning("Skipping invalid custom token on {}: {}", chain_id, e)
            self._tokens[chain_id] = tokens

        logger.debug("Loaded custom tokens for {} chains", len(self._tokens))

    async def _ensure_loaded(self) -> dict[str, list[TokenDescriptor]]:
        if self._tokens is None:
            await self.load()
        assert self._tokens is not None
        return self._tokens

    async def _save(self) -> None:
        tokens = await self._ensure_loaded()
        document = {
            chain_id: [token.model_dump(mode="json") for token in chain_tokens]
            for chain_id, chain_tokens in tokens.items()
        }
        await self._store.set(CUSTOM_TOKENS_KEY, json.dumps(document))

    def _family(self, chain_id: str) -> ChainFamily:
        chain = self._chains.get(chain_id)
        if chain is None:
            raise ChainNotConfigured(chain_id)
        return chain.family

    async def add(self, chain_id: str, descriptor: TokenDescriptor) -> bool:
        """Append a token to a chain's catalog.

        Args:
            chain_id: Chain to add the token to.
            descriptor: Token to add; its chain_id is overwritten.

        Returns:
            True if appended, False if a token with the same address
            (built-in or custom) already exists.

        Raises:
            InvalidToken: If address, symbol or name is blank.
            ChainNotConfigured: If the chain id is unknown.
        """
        for field in ("address", "symbol", "name"):
            if not getattr(descriptor, field).strip():
                raise InvalidToken(f"Token {field} is required")

        family = self._family(chain_id)
        token = descriptor.model_copy(
            update={
                "chain_id": chain_id,
                "address": descriptor.address.strip(),
                "symbol": descriptor.symbol.strip().upper(),
                "name": descriptor.name.strip(),
            }
        )

        existing = {t.canonical_address(family) for t in await self.combined(chain_id)}
        if token.canonical_address(family) in existing:
            logger.info("Token {} already listed on {}", token.symbol, chain_id)
            return False

        tokens = await self._ensure_loaded()
        tokens.setdefault(chain_id, []).append(token)
        await self._save()
        logger.info("Added custom token {} on {}", token.symbol, chain_id)
        return True

    async def remove(self, chain_id: str, address: str) -> bool:
        """Remove a custom token by address.

        Returns:
            True if removed, False if not found.
        """
        family = self._family(chain_id)
        target = canonical_address(address, family)
        tokens = await self._ensure_loaded()
        chain_tokens = tokens.get(chain_id, [])
        kept = [t for t in chain_tokens if t.canonical_address(family) != target]
        if len(kept) == len(chain_tokens):
            return False

        tokens[chain_id] = kept
        await self._save()
        logger.info("Removed custom token {} on {}", address, chain_id)
        return True

    async def list_tokens(self, chain_id: str) -> list[TokenDescriptor]:
        """Custom tokens for a chain, in insertion order (empty if none)."""
        tokens = await self._ensure_loaded()
        return list(tokens.get(chain_id, []))

    async def combined(self, chain_id: str) -> list[TokenDescriptor]:
        """Built-in plus custom tokens for a chain, deduplicated by address."""
        family = self._family(chain_id)
        custom = await self.list_tokens(chain_id)
        return dedupe_tokens([*builtin_tokens(chain_id), *custom], family)
