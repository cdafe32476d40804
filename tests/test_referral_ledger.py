import pytest
from sqlalchemy.exc import IntegrityError

from refhub.errors import DuplicateReferralError, ReferralNotFoundError
from refhub.referral.ledger import ReferralLedger
from refhub.referral.models import ReferralStatus


@pytest.fixture
def alice(make_user):
    return make_user("alice", "ALICE001")


@pytest.fixture
def bob(make_user):
    return make_user("bob", "BOB00001")


@pytest.fixture
def carol(make_user):
    return make_user("carol", "CAROL001")


class TestResolveReferrer:
    def test_known_code(self, referral_ledger, alice):
        assert referral_ledger.resolve_referrer("ALICE001") == alice.id

    def test_code_is_normalized(self, referral_ledger, alice):
        assert referral_ledger.resolve_referrer("  alice001 ") == alice.id

    def test_unknown_code(self, referral_ledger, alice):
        assert referral_ledger.resolve_referrer("NOPE0000") is None

    @pytest.mark.parametrize("code", [None, "", "   "])
    def test_empty_code(self, referral_ledger, code):
        assert referral_ledger.resolve_referrer(code) is None


class TestRecordPending:
    def test_records_pending(self, referral_ledger, alice, bob):
        referral_id = referral_ledger.record_pending(alice.id, bob.id)

        referral = referral_ledger.get(referral_id)
        assert referral.referrer_id == alice.id
        assert referral.referred_user_id == bob.id
        assert referral.status == ReferralStatus.PENDING

    def test_duplicate_pair_rejected(self, referral_ledger, alice, bob):
        referral_ledger.record_pending(alice.id, bob.id)

        with pytest.raises(DuplicateReferralError):
            referral_ledger.record_pending(alice.id, bob.id)

    def test_concurrent_insert_maps_to_duplicate(self, referral_ledger, alice, bob, mocker):
        referral_ledger.record_pending(alice.id, bob.id)
        # Another request inserted the pair after this one's pre-check
        mocker.patch.object(referral_ledger, "get_for_pair", return_value=None)

        with pytest.raises(DuplicateReferralError) as exc_info:
            referral_ledger.record_pending(alice.id, bob.id)

        assert isinstance(exc_info.value.__cause__, IntegrityError)
        assert len(referral_ledger.list_for_referrer(alice.id)) == 1

    def test_same_referrer_many_users(self, referral_ledger, alice, bob, carol):
        referral_ledger.record_pending(alice.id, bob.id)
        referral_ledger.record_pending(alice.id, carol.id)

        assert len(referral_ledger.list_for_referrer(alice.id)) == 2


class TestMarkSuccessful:
    def test_transitions_pending(self, referral_ledger, alice, bob):
        referral_id = referral_ledger.record_pending(alice.id, bob.id)

        referral_ledger.mark_successful(alice.id, bob.id)

        assert referral_ledger.get(referral_id).status == ReferralStatus.SUCCESSFUL

    def test_second_call_is_noop(self, referral_ledger, alice, bob):
        referral_id = referral_ledger.record_pending(alice.id, bob.id)
        referral_ledger.mark_successful(alice.id, bob.id)

        referral_ledger.mark_successful(alice.id, bob.id)

        assert referral_ledger.get(referral_id).status == ReferralStatus.SUCCESSFUL

    def test_missing_referral_is_noop(self, referral_ledger, alice, bob):
        referral_ledger.mark_successful(alice.id, bob.id)

        assert referral_ledger.get_for_pair(alice.id, bob.id) is None

    def test_strict_ledger_raises(self, database, alice, bob):
        ledger = ReferralLedger(database, strict=True)

        with pytest.raises(ReferralNotFoundError):
            ledger.mark_successful(alice.id, bob.id)


class TestQueries:
    def test_list_for_referrer_newest_first(self, referral_ledger, alice, bob, carol):
        referral_ledger.record_pending(alice.id, bob.id)
        referral_ledger.record_pending(alice.id, carol.id)
        referral_ledger.mark_successful(alice.id, bob.id)

        entries = referral_ledger.list_for_referrer(alice.id)

        assert [e.username for e in entries] == ["carol", "bob"]
        assert entries[0].email == "carol@example.com"
        assert entries[0].status == ReferralStatus.PENDING
        assert entries[1].status == ReferralStatus.SUCCESSFUL

    def test_list_for_referrer_without_referrals(self, referral_ledger, alice):
        assert referral_ledger.list_for_referrer(alice.id) == []

    def test_count_successful_ignores_pending(self, referral_ledger, alice, bob, carol):
        referral_ledger.record_pending(alice.id, bob.id)
        referral_ledger.record_pending(alice.id, carol.id)
        referral_ledger.mark_successful(alice.id, bob.id)

        assert referral_ledger.count_successful(alice.id) == 1
        assert referral_ledger.count_successful(bob.id) == 0

    def test_list_unsettled(self, referral_ledger, reward_ledger, alice, bob, carol):
        pending_id = referral_ledger.record_pending(alice.id, bob.id)
        unrewarded_id = referral_ledger.record_pending(carol.id, bob.id)
        referral_ledger.mark_successful(carol.id, bob.id)
        settled_id = referral_ledger.record_pending(alice.id, carol.id)
        referral_ledger.mark_successful(alice.id, carol.id)
        reward_ledger.grant(alice.id, 100, "done", referral_id=settled_id)

        unsettled = [r.id for r in referral_ledger.list_unsettled()]

        assert unsettled == [pending_id, unrewarded_id]
