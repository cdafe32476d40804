"""Attribution pipeline: registration, referral recording and reward settlement.

One ``register`` call runs these steps strictly in order:

1. create the user with a fresh referral code (authoritative; a duplicate
   email or username aborts everything)
2. resolve the supplied referral code, if any
3. record the referral as pending
4. send the welcome email
5. mark the referral successful and grant the referrer's reward
6. invalidate cached reads of every user whose data changed

Steps 2-6 only enrich the registration. Their failures are logged and never
undo the created user. Settlement (step 5) is idempotent, so a referral left
half-done can be finished later with ``settle`` or ``reconcile``.
"""

from typing import Awaitable

from sqlalchemy.exc import SQLAlchemyError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from refhub.auth.local import LocalAuthService
from refhub.auth.models import RegisteredUser, UserAccount
from refhub.cache.response_cache import ResponseCache
from refhub.email.service import EmailService
from refhub.errors import DuplicateReferralError, DuplicateRewardError, ReferralCodeTakenError, RefHubError
from refhub.logging_config import get_logger
from refhub.referral.codes import ReferralCodeGenerator
from refhub.referral.ledger import ReferralLedger
from refhub.referral.models import ReferralStatus
from refhub.rewards.ledger import RewardLedger

REFERRAL_REWARD_AMOUNT = 100
USER_INSERT_ATTEMPTS = 3

# Failures that may occur in the enrichment steps
LEDGER_ERRORS = (RefHubError, SQLAlchemyError)


def reward_description(referred_user_id: int) -> str:
    return f"Reward for successful referral of user ID {referred_user_id}"


class AttributionPipeline:
    """Coordinates a registration with referral attribution."""

    def __init__(
        self,
        auth_service: LocalAuthService,
        code_generator: ReferralCodeGenerator,
        referral_ledger: ReferralLedger,
        reward_ledger: RewardLedger,
        cache: ResponseCache,
        notifier: EmailService,
        reward_amount: int = REFERRAL_REWARD_AMOUNT,
    ):
        self.auth_service = auth_service
        self.code_generator = code_generator
        self.referral_ledger = referral_ledger
        self.reward_ledger = reward_ledger
        self.cache = cache
        self.notifier = notifier
        self.reward_amount = reward_amount
        self.logger = get_logger(__name__)

    # ==================== REGISTRATION ====================

    async def register(
        self,
        email: str,
        username: str,
        password_hash: str,
        referral_code: str | None = None,
    ) -> RegisteredUser:
        """Register a user and attribute the signup to a referrer.

        Args:
            email: New user's email
            username: New user's username
            password_hash: Hashed password
            referral_code: Code of the user who referred them, if any

        Returns:
            Public projection of the created user

        Raises:
            DuplicateUserError: Email or username already registered
        """
        user = self._create_user(email, username, password_hash)
        registered = RegisteredUser.model_validate(user)

        referrer_id = self._resolve_referrer(referral_code, user) if referral_code else None

        if referrer_id is None:
            await self._notify(
                self.notifier.send_welcome_email(user.email, user.username),
                user_id=user.id,
                kind="welcome",
            )
            self.logger.info("user_registered", user_id=user.id, referred_by=None)
            return registered

        try:
            await self._attribute(referrer_id, user)
        finally:
            self.cache.invalidate_all(referrer_id)
            self.cache.invalidate_all(user.id)

        self.logger.info("user_registered", user_id=user.id, referred_by=referrer_id)
        return registered

    def _create_user(self, email: str, username: str, password_hash: str) -> UserAccount:
        # The unique index may still reject a code that passed the pre-check
        retrying = Retrying(
            stop=stop_after_attempt(USER_INSERT_ATTEMPTS),
            retry=retry_if_exception_type(ReferralCodeTakenError),
            reraise=True,
        )
        return retrying(self._insert_user, email, username, password_hash)

    def _insert_user(self, email: str, username: str, password_hash: str) -> UserAccount:
        code = self.code_generator.generate()
        return self.auth_service.create_user(
            email=email,
            username=username,
            password_hash=password_hash,
            referral_code=code,
        )

    def _resolve_referrer(self, referral_code: str, user: UserAccount) -> int | None:
        try:
            referrer_id = self.referral_ledger.resolve_referrer(referral_code)
        except LEDGER_ERRORS as e:
            self.logger.error("referral_lookup_failed", user_id=user.id, error=str(e))
            return None

        if referrer_id is None:
            self.logger.warning(
                "invalid_referral_code",
                referral_code=referral_code,
                user_id=user.id,
            )
        return referrer_id

    async def _attribute(self, referrer_id: int, user: UserAccount) -> None:
        try:
            referral_id = self.referral_ledger.record_pending(referrer_id, user.id)
        except DuplicateReferralError:
            self.logger.warning("referral_already_recorded", referrer_id=referrer_id, user_id=user.id)
            return
        except LEDGER_ERRORS as e:
            self.logger.error(
                "referral_record_failed",
                referrer_id=referrer_id,
                user_id=user.id,
                error=str(e),
            )
            return

        await self._notify(
            self._send_referral_welcome(referrer_id, user),
            user_id=user.id,
            kind="referral_welcome",
        )

        try:
            self._settle(referral_id, referrer_id, user.id)
        except LEDGER_ERRORS as e:
            self.logger.error(
                "referral_settlement_failed",
                referral_id=referral_id,
                referrer_id=referrer_id,
                error=str(e),
            )

    async def _send_referral_welcome(self, referrer_id: int, user: UserAccount) -> bool:
        referrer = self.auth_service.get_user_by_id(referrer_id)
        return await self.notifier.send_welcome_email(
            user.email,
            user.username,
            referrer_username=referrer.username if referrer else None,
        )

    async def _notify(self, send: Awaitable[bool], user_id: int, kind: str) -> None:
        """Await a notification; delivery problems are logged only."""
        try:
            await send
        except Exception as e:
            self.logger.warning("notification_failed", kind=kind, user_id=user_id, error=str(e))

    # ==================== SETTLEMENT ====================

    def _settle(self, referral_id: int, referrer_id: int, referred_user_id: int) -> bool:
        self.referral_ledger.mark_successful(referrer_id, referred_user_id)
        try:
            self.reward_ledger.grant(
                referrer_id,
                self.reward_amount,
                reward_description(referred_user_id),
                referral_id=referral_id,
            )
        except DuplicateRewardError:
            self.logger.info("referral_already_rewarded", referral_id=referral_id)
            return False
        return True

    def settle(self, referral_id: int) -> bool:
        """Finish the attribution of one referral.

        Safe to call repeatedly: a referral that already has a reward is only
        moved to successful (if still pending) and never credited twice.

        Returns:
            True if a reward was granted by this call
        """
        referral = self.referral_ledger.get(referral_id)
        if referral is None:
            self.logger.warning("settle_unknown_referral", referral_id=referral_id)
            return False

        try:
            if self.reward_ledger.has_reward_for_referral(referral_id):
                if referral.status == ReferralStatus.PENDING:
                    self.referral_ledger.mark_successful(referral.referrer_id, referral.referred_user_id)
                return False

            if referral.status == ReferralStatus.SUCCESSFUL:
                self.reward_ledger.grant(
                    referral.referrer_id,
                    self.reward_amount,
                    reward_description(referral.referred_user_id),
                    referral_id=referral_id,
                )
                return True

            return self._settle(referral_id, referral.referrer_id, referral.referred_user_id)
        finally:
            self.cache.invalidate_all(referral.referrer_id)

    def reconcile(self) -> int:
        """Settle every referral whose attribution stopped half way.

        Returns:
            Number of rewards granted
        """
        granted = 0
        for referral in self.referral_ledger.list_unsettled():
            try:
                if self.settle(referral.id):
                    granted += 1
            except LEDGER_ERRORS as e:
                self.logger.error("reconcile_failed", referral_id=referral.id, error=str(e))

        self.logger.info("reconcile_finished", rewards_granted=granted)
        return granted
