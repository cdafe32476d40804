import pytest

from refhub.errors import GenerationExhaustedError
from refhub.referral.codes import REFERRAL_CODE_ALPHABET, ReferralCodeGenerator


def test_code_shape():
    code = ReferralCodeGenerator(lambda code: False).generate()

    assert len(code) == 8
    assert all(ch in REFERRAL_CODE_ALPHABET for ch in code)


def test_ten_thousand_codes_are_unique_against_populated_store():
    store = {f"SEED{i:04d}" for i in range(1000)}
    generator = ReferralCodeGenerator(lambda code: code in store)

    for _ in range(10_000):
        code = generator.generate()
        assert code not in store
        store.add(code)

    assert len(store) == 11_000


def test_collision_is_retried(mocker):
    code_exists = mocker.Mock(side_effect=[True, True, False])
    generator = ReferralCodeGenerator(code_exists)

    code = generator.generate()

    assert len(code) == 8
    assert code_exists.call_count == 3


def test_gives_up_after_max_attempts(mocker):
    code_exists = mocker.Mock(return_value=True)
    generator = ReferralCodeGenerator(code_exists, max_attempts=3)

    with pytest.raises(GenerationExhaustedError) as exc_info:
        generator.generate()

    assert exc_info.value.attempts == 3
    assert code_exists.call_count == 3


def test_custom_length_and_alphabet():
    code = ReferralCodeGenerator(lambda code: False, length=12, alphabet="AB").generate()

    assert len(code) == 12
    assert set(code) <= {"A", "B"}
