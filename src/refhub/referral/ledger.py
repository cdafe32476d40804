"""Referral ledger: referral relationships and their status transitions."""

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from refhub.auth.models import UserAccount
from refhub.errors import DuplicateReferralError, ReferralNotFoundError
from refhub.logging_config import get_logger
from refhub.referral.models import Referral, ReferralEntry, ReferralStatus
from refhub.rewards.models import Reward
from refhub.storage.db import Database


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


class ReferralLedger:
    """Records referrals and moves them from pending to successful.

    ``mark_successful`` on a pair with no pending referral is a logged no-op
    unless the ledger is strict, in which case it raises
    ``ReferralNotFoundError``.
    """

    def __init__(self, database: Database, strict: bool = False):
        """Initialize referral ledger.

        Args:
            database: Database holding the referrals table
            strict: Fail on transitions that match no pending referral
        """
        self.db = database
        self.strict = strict
        self.logger = get_logger(__name__)

    def resolve_referrer(self, code: str | None) -> int | None:
        """Look up the owner of a referral code.

        Args:
            code: Referral code as typed by the user

        Returns:
            Referrer's user ID, or None if the code is empty or unknown
        """
        code = normalize_code(code)
        if not code:
            return None

        with self.db.session() as session:
            return session.scalar(
                select(UserAccount.id).where(UserAccount.referral_code == code)
            )

    def get(self, referral_id: int) -> Referral | None:
        with self.db.session() as session:
            return session.get(Referral, referral_id)

    def get_for_pair(self, referrer_id: int, referred_user_id: int) -> Referral | None:
        with self.db.session() as session:
            return session.scalar(
                select(Referral).where(
                    Referral.referrer_id == referrer_id,
                    Referral.referred_user_id == referred_user_id,
                )
            )

    def record_pending(self, referrer_id: int, referred_user_id: int) -> int:
        """Create a pending referral.

        Args:
            referrer_id: User who owns the referral code
            referred_user_id: Newly registered user

        Returns:
            Referral ID

        Raises:
            DuplicateReferralError: A referral already exists for the pair
        """
        if self.get_for_pair(referrer_id, referred_user_id):
            raise DuplicateReferralError(referrer_id, referred_user_id)

        referral = Referral(
            referrer_id=referrer_id,
            referred_user_id=referred_user_id,
            status=ReferralStatus.PENDING,
        )
        try:
            with self.db.session() as session:
                session.add(referral)
                session.flush()
        except IntegrityError as e:
            # Concurrent insert for the same pair won
            raise DuplicateReferralError(referrer_id, referred_user_id) from e

        self.logger.info(
            "referral_recorded",
            referral_id=referral.id,
            referrer_id=referrer_id,
            referred_user_id=referred_user_id,
        )
        return referral.id

    def mark_successful(self, referrer_id: int, referred_user_id: int) -> None:
        """Transition the pair's pending referral to successful.

        Raises:
            ReferralNotFoundError: Strict ledger and no pending referral matched
        """
        with self.db.session() as session:
            updated = session.query(Referral).filter(
                Referral.referrer_id == referrer_id,
                Referral.referred_user_id == referred_user_id,
                Referral.status == ReferralStatus.PENDING,
            ).update({Referral.status: ReferralStatus.SUCCESSFUL}, synchronize_session=False)

        if updated:
            self.logger.info(
                "referral_marked_successful",
                referrer_id=referrer_id,
                referred_user_id=referred_user_id,
            )
            return

        if self.strict:
            raise ReferralNotFoundError(referrer_id, referred_user_id)

        self.logger.warning(
            "referral_transition_noop",
            referrer_id=referrer_id,
            referred_user_id=referred_user_id,
        )

    def list_for_referrer(self, referrer_id: int) -> list[ReferralEntry]:
        """List a referrer's referrals, newest first."""
        with self.db.session() as session:
            referrals = session.scalars(
                select(Referral)
                .options(joinedload(Referral.referred_user))
                .where(Referral.referrer_id == referrer_id)
                .order_by(Referral.date_referred.desc(), Referral.id.desc())
            ).all()

            return [
                ReferralEntry(
                    username=r.referred_user.username,
                    email=r.referred_user.email,
                    date_referred=r.date_referred,
                    status=r.status,
                )
                for r in referrals
            ]

    def count_successful(self, referrer_id: int) -> int:
        with self.db.session() as session:
            return session.scalar(
                select(func.count(Referral.id)).where(
                    Referral.referrer_id == referrer_id,
                    Referral.status == ReferralStatus.SUCCESSFUL,
                )
            ) or 0

    def list_unsettled(self) -> list[Referral]:
        """Referrals whose attribution did not run to completion.

        That is every pending referral plus every successful one that has no
        reward yet.
        """
        with self.db.session() as session:
            rewarded = select(Reward.referral_id).where(Reward.referral_id.isnot(None))
            return list(session.scalars(
                select(Referral)
                .where(
                    (Referral.status == ReferralStatus.PENDING)
                    | (Referral.id.not_in(rewarded))
                )
                .order_by(Referral.id)
            ))
