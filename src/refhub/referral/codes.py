"""Referral code generation."""

import secrets
import string
from typing import Callable

from tenacity import RetryError, Retrying, retry_if_exception_type, stop_after_attempt

from refhub.errors import GenerationExhaustedError
from refhub.logging_config import get_logger

logger = get_logger(__name__)

REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits
REFERRAL_CODE_LENGTH = 8


class CodeCollision(Exception):
    """Candidate code is already assigned to a user."""


class ReferralCodeGenerator:
    """Mints random referral codes that no stored user holds yet.

    The existence check is only a pre-check: two concurrent generators can
    still pick the same code, and the unique index on
    ``user_accounts.referral_code`` settles that race at insert time.
    """

    def __init__(
        self,
        code_exists: Callable[[str], bool],
        length: int = REFERRAL_CODE_LENGTH,
        max_attempts: int = 10,
        alphabet: str = REFERRAL_CODE_ALPHABET,
    ):
        """Initialize generator.

        Args:
            code_exists: Returns True if a code is already stored
            length: Code length
            max_attempts: Candidates tried before giving up
            alphabet: Characters codes are drawn from
        """
        self.code_exists = code_exists
        self.length = length
        self.max_attempts = max_attempts
        self.alphabet = alphabet

    def _candidate(self) -> str:
        return "".join(secrets.choice(self.alphabet) for _ in range(self.length))

    def _attempt(self) -> str:
        code = self._candidate()
        if self.code_exists(code):
            logger.debug("referral_code_collision", code=code)
            raise CodeCollision(code)
        return code

    def generate(self) -> str:
        """Generate a referral code not held by any stored user.

        Returns:
            Code such as ``K3Z9Q0AB``

        Raises:
            GenerationExhaustedError: Every attempt collided
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            retry=retry_if_exception_type(CodeCollision),
        )
        try:
            return retrying(self._attempt)
        except RetryError as e:
            logger.error("referral_code_generation_exhausted", attempts=self.max_attempts)
            raise GenerationExhaustedError(self.max_attempts) from e
