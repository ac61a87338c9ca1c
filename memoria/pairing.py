"""Pairing codes and the create/join flow for cloud sync.

A sync code is the only partition key into the cloud store. New codes look
like ``ABC-2345-DEFG`` and are protected by a password whose SHA-256 hash is
stored next to the code. Older ``ABC-234-DEF`` codes have no password and are
still accepted when joining.
"""

import hashlib
import logging
import random
import secrets
from enum import Enum
from typing import Optional

from .api import MirrorClient
from .config import Config
from .exceptions import (
    MemoriaAPIError,
    PairingError,
    PairingRejectedError,
    PairingValidationError,
)
from .models import CURRENT_CODE_PATTERN, LEGACY_CODE_PATTERN, SyncCredential

logger = logging.getLogger(__name__)

# No I or O, which are easy to confuse with 1 and 0
CODE_LETTERS = "ABCDEFGHJKLMNPQRSTUVWXYZ"
CODE_DIGITS = "23456789"

MIN_PASSWORD_LENGTH = 4


def generate_sync_code(rng: Optional[random.Random] = None) -> str:
    """Generate a new ``LLL-DDDD-LLLL`` sync code.

    Args:
        rng: Random source (default: secrets.SystemRandom())

    Returns:
        The new code

    Examples:
        >>> generate_sync_code()  # doctest: +SKIP
        'KXP-4729-MWQA'
    """
    rng = rng or secrets.SystemRandom()

    def letters(count: int) -> str:
        return "".join(rng.choice(CODE_LETTERS) for _ in range(count))

    digits = "".join(rng.choice(CODE_DIGITS) for _ in range(4))
    return f"{letters(3)}-{digits}-{letters(4)}"


def hash_password(password: str) -> str:
    """Return the hex SHA-256 digest of ``password``."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def normalize_sync_code(code: str) -> str:
    return code.strip().upper()


def is_valid_sync_code(code: str) -> bool:
    """Check a code against the current and the legacy format.

    Examples:
        >>> is_valid_sync_code("ABC-2345-DEFG")
        True
        >>> is_valid_sync_code("ABC-234-DEF")
        True
        >>> is_valid_sync_code("ABC-2345")
        False
    """
    return bool(CURRENT_CODE_PATTERN.match(code) or LEGACY_CODE_PATTERN.match(code))


def is_legacy_sync_code(code: str) -> bool:
    """Check if ``code`` uses the old password-less format."""
    return bool(LEGACY_CODE_PATTERN.match(normalize_sync_code(code)))


class PairingState(str, Enum):
    """Steps of the pairing flow."""

    MENU = "menu"
    NEW = "new"
    EXISTING = "existing"
    CONNECTED = "connected"


class PairingFlow:
    """State machine for creating or joining a sync code.

    ``menu -> new -> connected`` creates a fresh password-protected code;
    ``menu -> existing -> connected`` joins a code created elsewhere. Input
    problems raise PairingValidationError before anything is sent to the
    backend. On success the credential is saved to the config store.
    """

    def __init__(self, client: MirrorClient, store: Config):
        """Initialize the pairing flow.

        Args:
            client: Cloud mirror client
            store: Config used to persist the credential
        """
        self.client = client
        self.store = store
        self.generated_code: Optional[str] = None
        self.credential = store.get_sync_credential()
        self.state = (
            PairingState.CONNECTED if self.credential else PairingState.MENU
        )

    def _require(self, *states: PairingState) -> None:
        if self.state not in states:
            raise PairingError(
                f"Cannot do this while in state '{self.state.value}'"
            )

    def start_new(self, rng: Optional[random.Random] = None) -> str:
        """Generate a code to be confirmed with :meth:`confirm_new`."""
        self._require(PairingState.MENU)
        self.generated_code = generate_sync_code(rng)
        self.state = PairingState.NEW
        return self.generated_code

    def confirm_new(self, password: str, confirm_password: str) -> SyncCredential:
        """Bind a password to the generated code and register it.

        Raises:
            PairingValidationError: If the password is too short or the
                confirmation does not match
            PairingError: If the backend rejects the new code
        """
        self._require(PairingState.NEW)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise PairingValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        if password != confirm_password:
            raise PairingValidationError("Passwords do not match")

        code = str(self.generated_code)
        password_hash = hash_password(password)
        try:
            self.client.create_sync_credentials(code, password_hash)
        except MemoriaAPIError as e:
            logger.error(f"Failed to create sync: {e}")
            raise PairingError("Failed to create sync. Please try again.") from e

        return self._connect(SyncCredential(code=code, password_hash=password_hash))

    def start_existing(self) -> None:
        self._require(PairingState.MENU)
        self.state = PairingState.EXISTING

    def join(self, code: str, password: Optional[str] = None) -> SyncCredential:
        """Join an existing sync code.

        Existence is checked before the password, so an unknown code is
        reported as not found even when the password is also wrong.

        Raises:
            PairingValidationError: For a malformed code or missing password
            PairingRejectedError: If the code is unknown or the password
                is wrong
            PairingError: If the backend cannot be reached
        """
        self._require(PairingState.EXISTING)
        clean_code = normalize_sync_code(code)

        if is_legacy_sync_code(clean_code):
            return self._join_legacy(clean_code)

        if not CURRENT_CODE_PATTERN.match(clean_code):
            raise PairingValidationError("Invalid format. Use: ABC-1234-DEFG")
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise PairingValidationError("Enter your password")

        try:
            credential = self.client.get_sync_credentials(clean_code)
            if credential is None:
                raise PairingRejectedError("Sync code not found")

            password_hash = hash_password(password)
            if not self.client.verify_sync_password(clean_code, password_hash):
                raise PairingRejectedError("Incorrect password")
        except MemoriaAPIError as e:
            logger.error(f"Failed to connect: {e}")
            raise PairingError("Failed to connect. Please try again.") from e

        return self._connect(
            SyncCredential(code=clean_code, password_hash=password_hash)
        )

    def _join_legacy(self, code: str) -> SyncCredential:
        """Join a pre-password code; it only has to have brains stored."""
        try:
            exists = self.client.sync_code_exists(code)
        except MemoriaAPIError as e:
            logger.error(f"Failed to connect: {e}")
            raise PairingError("Failed to connect. Please try again.") from e
        if not exists:
            raise PairingRejectedError("Sync code not found")
        return self._connect(SyncCredential(code=code))

    def _connect(self, credential: SyncCredential) -> SyncCredential:
        self.store.save_sync_credential(credential)
        self.credential = credential
        self.generated_code = None
        self.state = PairingState.CONNECTED
        logger.info(f"Connected to sync code {credential.code}")
        return credential

    def cancel(self) -> None:
        """Abandon a half-finished create or join."""
        self._require(PairingState.NEW, PairingState.EXISTING)
        self.generated_code = None
        self.state = PairingState.MENU

    def disconnect(self) -> None:
        """Forget the stored credential and return to the menu."""
        self._require(PairingState.CONNECTED)
        self.store.clear_sync_credential()
        self.credential = None
        self.state = PairingState.MENU
