"""In-memory container for the mnemonic secret."""


class Secret:
    """The mnemonic phrase held in a wipeable buffer.

    The phrase lives in a bytearray so it can be zeroed on lock. Strings
    returned by reveal() are immutable copies the runtime may keep around;
    wiping is best-effort in a managed-memory runtime.

    Usage:
        secret = Secret("abandon ability able ...")
        phrase = secret.reveal()
        secret.wipe()
    """

    __slots__ = ("_buffer",)

    def __init__(self, phrase: str) -> None:
        # Normalize whitespace so equal phrases compare equal
        self._buffer = bytearray(" ".join(phrase.split()).encode("utf-8"))

    def reveal(self) -> str:
        """Return the phrase.

        Raises:
            ValueError: If the secret has been wiped.
        """
        if self.is_wiped:
            raise ValueError("Secret has been wiped")
        return self._buffer.decode("utf-8")

    @property
    def words(self) -> list[str]:
        """The phrase split into words."""
        return self.reveal().split(" ")

    @property
    def word_count(self) -> int:
        """Number of words in the phrase."""
        return len(self.words)

    @property
    def is_wiped(self) -> bool:
        """Whether wipe() has been called."""
        return len(self._buffer) == 0

    def wipe(self) -> None:
        """Zero and release the buffer."""
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        self._buffer.clear()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Secret):
            return NotImplemented
        return bytes(self._buffer) == bytes(other._buffer)

    # Compared by value over a mutable buffer, so not hashable
    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        if self.is_wiped:
            return "Secret(<wiped>)"
        return f"Secret(<{self.word_count} words>)"

    __str__ = __repr__
