"""Secret lifecycle management: generation, at-rest protection, unlock and export.

The mnemonic is stored in one of two forms in the SecretStore: plaintext
(degraded, flagged for migration) or encrypted with a password. Writing one
form always removes the other within the same operation.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from eth_account.hdaccount import generate_mnemonic
from eth_account.types import Language
from loguru import logger
from mnemonic import Mnemonic

from chainkeep.exceptions import (
    DecryptionFailed,
    ExportUnavailable,
    InvalidMnemonic,
    InvalidPassword,
    NoWalletFound,
    PlaintextAtRiskWarning,
    WeakPassword,
)
from chainkeep.interfaces.cipher import SymmetricCipher
from chainkeep.interfaces.store import SecretStore
from chainkeep.models import RecordKind, SecretRecord, SecretState, UnlockStatus
from chainkeep.wallet.secret import Secret
from chainkeep.wallet.session import WalletSession

# Store keys
KEY_ENCRYPTED = "wallet_mnemonic_encrypted"
KEY_PLAINTEXT = "wallet_mnemonic_plain"
KEY_ENCRYPTION_FLAG = "wallet_enc_password"  # presence flag, not the password
KEY_REMEMBERED_PASSWORD = "wallet_enc_pass_plain"

VALID_WORD_COUNTS = (12, 15, 18, 21, 24)

PLAINTEXT_WARNING = "Mnemonic is stored unencrypted; set a password to encrypt it"

# Returns the password, or None when the user cancels
PasswordSupplier = Callable[[], Awaitable[str | None] | str | None]


@dataclass
class PersistResult:
    """Outcome of persisting a secret."""

    kind: RecordKind
    warning: PlaintextAtRiskWarning | None = None

    @property
    def encrypted(self) -> bool:
        """Whether the secret was written encrypted."""
        return self.kind == RecordKind.ENCRYPTED


@dataclass
class UnlockResult:
    """Outcome of an unlock attempt that did not raise."""

    status: UnlockStatus
    secret: Secret | None = None
    warning: PlaintextAtRiskWarning | None = None

    @property
    def aborted(self) -> bool:
        """Whether the user cancelled the password prompt."""
        return self.status == UnlockStatus.ABORTED


class SecretLifecycleManager:
    """Owns the state machine governing how the mnemonic exists.

    States: NO_RECORD -> (persist) -> LOCKED -> UNLOCKING -> UNLOCKED,
    back to LOCKED on lock() or to NO_RECORD on logout().

    The remembered password is kept in process memory so that new or
    plaintext mnemonics can be encrypted without prompting again. It is
    written to the store only when set_password(..., remember=True) is
    requested; that is an explicit trust trade-off, not a security feature.

    Usage:
        manager = SecretLifecycleManager(store, cipher)
        session = WalletSession()

        secret = manager.generate()
        await manager.persist(secret, password="secret1")

        result = await manager.unlock(session, lambda: getpass("Password: ") or None)
        if result.aborted:
            ...
    """

    DEFAULT_MIN_PASSWORD_LENGTH = 6

    def __init__(
        self,
        store: SecretStore,
        cipher: SymmetricCipher,
        min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH,
    ) -> None:
        """Initialize the lifecycle manager.

        Args:
            store: Key/value store holding the secret record.
            cipher: Password-based cipher for the encrypted form.
            min_password_length: Shortest accepted password.
        """
        self._store = store
        self._cipher = cipher
        self._min_password_length = min_password_length
        self._password: str | None = None

    @property
    def has_password(self) -> bool:
        """Whether a password is remembered in memory."""
        return self._password is not None

    # =========================================================================
    # Creation
    # =========================================================================

    def generate(self, word_count: int = 12) -> Secret:
        """Generate a new random mnemonic. Nothing is persisted.

        Args:
            word_count: Number of words (12, 15, 18, 21 or 24).

        Raises:
            ValueError: If word_count is not a BIP-39 length.
        """
        if word_count not in VALID_WORD_COUNTS:
            raise ValueError(f"word_count must be one of {VALID_WORD_COUNTS}")
        secret = Secret(generate_mnemonic(num_words=word_count, lang=Language.ENGLISH))
        logger.info("Generated new {}-word mnemonic", word_count)
        return secret

    def restore(self, phrase: str) -> Secret:
        """Validate an imported mnemonic. Nothing is persisted.

        Raises:
            InvalidMnemonic: If the phrase fails the BIP-39 checksum.
        """
        normalized = " ".join(phrase.lower().split())
        if not normalized or not Mnemonic("english").check(normalized):
            raise InvalidMnemonic()
        return Secret(normalized)

    # =========================================================================
    # Record Access
    # =========================================================================

    async def read_record(self) -> SecretRecord:
        """Read the persisted secret record.

        An encrypted value wins over a stale plaintext one left behind by an
        interrupted write.
        """
        ciphertext = await self._store.get(KEY_ENCRYPTED)
        if ciphertext:
            flag = await self._store.get(KEY_ENCRYPTION_FLAG)
            return SecretRecord(
                kind=RecordKind.ENCRYPTED,
                ciphertext=ciphertext,
                password_present=bool(flag),
            )

        plaintext = await self._store.get(KEY_PLAINTEXT)
        if plaintext:
            return SecretRecord(kind=RecordKind.PLAINTEXT, mnemonic=plaintext)

        return SecretRecord(kind=RecordKind.ABSENT)

    async def state(self, session: WalletSession) -> SecretState:
        """Current lifecycle state for a session."""
        if session.state in (SecretState.UNLOCKED, SecretState.UNLOCKING):
            return session.state
        record = await self.read_record()
        if record.kind == RecordKind.ABSENT:
            return SecretState.NO_RECORD
        return SecretState.LOCKED

    # =========================================================================
    # Persistence
    # =========================================================================

    async def persist(
        self, secret: Secret, password: str | None = None
    ) -> PersistResult:
        """Persist a confirmed secret.

        Encrypts when a password is supplied or remembered; otherwise stores
        plaintext and returns a PlaintextAtRiskWarning the caller must surface.

        Args:
            secret: The secret to store.
            password: Password to encrypt with. Remembered for this process.

        Raises:
            WeakPassword: If the supplied password is too short.
        """
        if password is not None:
            self._validate_password(password)
            self._password = password

        effective = await self._known_password()
        if effective:
            await self._write_encrypted(secret.reveal(), effective)
            logger.info("Secret persisted encrypted")
            return PersistResult(kind=RecordKind.ENCRYPTED)

        await self._write_plaintext(secret.reveal())
        warning = PlaintextAtRiskWarning(PLAINTEXT_WARNING)
        logger.warning("Secret persisted as plaintext; set a password to encrypt it")
        return PersistResult(kind=RecordKind.PLAINTEXT, warning=warning)

    async def _write_encrypted(self, phrase: str, password: str) -> None:
        """Write the encrypted form and remove the plaintext one.

        Order matters: ciphertext, then flag, then plaintext removal, so an
        interruption leaves a state unlock() can repair.
        """
        ciphertext = await asyncio.to_thread(self._cipher.encrypt, phrase, password)
        await self._store.set(KEY_ENCRYPTED, ciphertext)
        await self._store.set(KEY_ENCRYPTION_FLAG, "1")
        await self._store.remove(KEY_PLAINTEXT)

    async def _write_plaintext(self, phrase: str) -> None:
        """Write the plaintext form and remove the encrypted one."""
        await self._store.set(KEY_PLAINTEXT, phrase)
        await self._store.remove(KEY_ENCRYPTED)
        await self._store.remove(KEY_ENCRYPTION_FLAG)

    # =========================================================================
    # Unlock / Lock
    # =========================================================================

    async def unlock(
        self, session: WalletSession, password_supplier: PasswordSupplier
    ) -> UnlockResult:
        """Load the secret into the session.

        Args:
            session: Session receiving the secret.
            password_supplier: Sync or async callable returning the password,
                or None if the user cancelled.

        Returns:
            UnlockResult; status ABORTED when the prompt was cancelled.

        Raises:
            NoWalletFound: If nothing is stored.
            InvalidPassword: If the password is empty or wrong.
        """
        async with session.transition_lock:
            if session.is_unlocked:
                return UnlockResult(status=UnlockStatus.UNLOCKED, secret=session.secret)

            record = await self.read_record()
            if record.kind == RecordKind.ABSENT:
                raise NoWalletFound()

            session.state = SecretState.UNLOCKING
            try:
                result = await self._unlock_record(record, password_supplier)
            except BaseException:
                session.state = SecretState.LOCKED
                raise

            if result.aborted:
                session.state = SecretState.LOCKED
                logger.info("Unlock aborted by user")
                return result

            session.secret = result.secret
            session.state = SecretState.UNLOCKED
            logger.info("Wallet unlocked")
            return result

    async def _unlock_record(
        self, record: SecretRecord, password_supplier: PasswordSupplier
    ) -> UnlockResult:
        if record.kind == RecordKind.PLAINTEXT:
            assert record.mnemonic is not None
            logger.warning("Plaintext mnemonic found in storage; set a password to encrypt it")
            return UnlockResult(
                status=UnlockStatus.UNLOCKED,
                secret=Secret(record.mnemonic.get_secret_value()),
                warning=PlaintextAtRiskWarning(PLAINTEXT_WARNING),
            )

        assert record.ciphertext is not None
        phrase: str | None = None

        if record.is_inconsistent:
            # Encrypted without the flag: try the empty password before prompting
            phrase = await self._try_decrypt(record.ciphertext, "")
            if phrase is not None:
                logger.warning("Recovered secret encrypted without password flag")

        if phrase is None:
            password = await self._ask_password(password_supplier)
            if password is None:
                return UnlockResult(status=UnlockStatus.ABORTED)
            if not password:
                raise InvalidPassword()
            phrase = await self._try_decrypt(record.ciphertext, password)
            if phrase is None:
                logger.warning("Unlock failed: invalid password")
                raise InvalidPassword()

        await self._reconcile_encrypted()
        return UnlockResult(status=UnlockStatus.UNLOCKED, secret=Secret(phrase))

    async def _reconcile_encrypted(self) -> None:
        """Repair leftovers of an interrupted encrypted write."""
        if not await self._store.get(KEY_ENCRYPTION_FLAG):
            await self._store.set(KEY_ENCRYPTION_FLAG, "1")
        if await self._store.get(KEY_PLAINTEXT):
            logger.warning("Removing stale plaintext record next to encrypted secret")
            await self._store.remove(KEY_PLAINTEXT)

    async def lock(self, session: WalletSession) -> None:
        """Drop the in-memory secret and account handles; storage is untouched."""
        async with session.transition_lock:
            session.clear_secret()
            record = await self.read_record()
            session.state = (
                SecretState.NO_RECORD
                if record.kind == RecordKind.ABSENT
                else SecretState.LOCKED
            )
            logger.info("Wallet locked")

    async def logout(self, session: WalletSession) -> None:
        """Delete the persisted secret and end the session.

        The remembered password and the custom token catalog are kept.
        """
        async with session.transition_lock:
            await self._store.remove(KEY_ENCRYPTED)
            await self._store.remove(KEY_PLAINTEXT)
            await self._store.remove(KEY_ENCRYPTION_FLAG)
            session.clear_secret()
            session.state = SecretState.NO_RECORD
            logger.info("Logged out; mnemonic removed from storage")

    # =========================================================================
    # Password Management
    # =========================================================================

    async def set_password(self, password: str, remember: bool = False) -> bool:
        """Set the encryption password, migrating a plaintext record.

        Args:
            password: New password (at least the minimum length).
            remember: Also persist the password so later processes can
                encrypt and export without prompting.

        Returns:
            True if a plaintext record was encrypted.

        Raises:
            WeakPassword: If the password is too short. Nothing changes.
        """
        self._validate_password(password)
        self._password = password
        if remember:
            await self._store.set(KEY_REMEMBERED_PASSWORD, password)

        plaintext = await self._store.get(KEY_PLAINTEXT)
        if plaintext:
            await self._write_encrypted(plaintext, password)
            logger.info("Plaintext mnemonic encrypted and saved")
            return True

        logger.info("Password set; new mnemonics will be encrypted automatically")
        return False

    async def clear_password(self) -> None:
        """Forget the remembered password."""
        self._password = None
        await self._store.remove(KEY_REMEMBERED_PASSWORD)
        logger.warning("Password removed; mnemonic will be stored plaintext if re-created")

    def _validate_password(self, password: str) -> None:
        if len(password) < self._min_password_length:
            raise WeakPassword(self._min_password_length)

    async def _known_password(self) -> str | None:
        if self._password is not None:
            return self._password
        remembered = await self._store.get(KEY_REMEMBERED_PASSWORD)
        if remembered:
            self._password = remembered
        return self._password

    # =========================================================================
    # Export
    # =========================================================================

    async def export(self) -> Secret:
        """Return the stored secret, decrypting with the known password.

        Raises:
            NoWalletFound: If nothing is stored.
            ExportUnavailable: If the secret is encrypted and no password is known.
            InvalidPassword: If the known password does not decrypt it.
        """
        record = await self.read_record()
        if record.kind == RecordKind.ABSENT:
            raise NoWalletFound()

        if record.kind == RecordKind.PLAINTEXT:
            assert record.mnemonic is not None
            return Secret(record.mnemonic.get_secret_value())

        assert record.ciphertext is not None
        password = await self._known_password()
        if password is None:
            if record.is_inconsistent:
                phrase = await self._try_decrypt(record.ciphertext, "")
                if phrase is not None:
                    return Secret(phrase)
            raise ExportUnavailable()

        phrase = await self._try_decrypt(record.ciphertext, password)
        if phrase is None:
            raise InvalidPassword("Failed to decrypt mnemonic with the known password")
        logger.info("Mnemonic exported")
        return Secret(phrase)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _try_decrypt(self, ciphertext: str, password: str) -> str | None:
        """Decrypt, returning None on failure or empty output."""
        try:
            phrase = await asyncio.to_thread(self._cipher.decrypt, ciphertext, password)
        except DecryptionFailed:
            return None
        return phrase or None

    @staticmethod
    async def _ask_password(password_supplier: PasswordSupplier) -> str | None:
        result = password_supplier()
        if inspect.isawaitable(result):
            result = await result
        return result
