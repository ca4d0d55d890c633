"""Tests for destination ledger settlement."""

import threading

import pytest

from conftest import RECIPIENT
from shadowbridge.chain.receiver import ZERO_ADDRESS, ReceiverLedger, is_zero_identity
from shadowbridge.errors import (
    AlreadyProcessedError,
    AuthorizationError,
    InvalidAmountError,
    InvalidRecipientError,
)

RELAYER = "0xRelayer00000000000000000000000000000001"
OWNER = "0x0000000000000000000000000000000000000abc"
MESSAGE = "0x" + "11" * 32


@pytest.fixture
def ledger() -> ReceiverLedger:
    return ReceiverLedger(relayer=RELAYER, owner=OWNER)


def snapshot(ledger: ReceiverLedger):
    return (
        ledger.get_stats(),
        ledger.balance_of(RECIPIENT),
        ledger.is_processed(MESSAGE),
        len(ledger.events),
    )


class TestExecute:
    """Tests for ReceiverLedger.execute."""

    def test_settles(self, ledger):
        event = ledger.execute(RELAYER, RECIPIENT, 500, MESSAGE, proof="0xcdcd")

        assert ledger.get_stats() == (1, 500)
        assert ledger.balance_of(RECIPIENT) == 500
        assert ledger.is_processed(MESSAGE)
        assert event.amount == 500
        assert event.message_hash == MESSAGE
        assert ledger.events == [event]

    def test_relayer_match_is_case_insensitive(self, ledger):
        ledger.execute(RELAYER.lower(), RECIPIENT, 1, MESSAGE)
        assert ledger.total_transactions == 1

    def test_replay_rejected_without_state_change(self, ledger):
        ledger.execute(RELAYER, RECIPIENT, 500, MESSAGE)
        before = snapshot(ledger)

        with pytest.raises(AlreadyProcessedError) as exc_info:
            ledger.execute(RELAYER, RECIPIENT, 700, MESSAGE)

        assert exc_info.value.message_hash == MESSAGE
        assert snapshot(ledger) == before
        assert ledger.get_stats() == (1, 500)

    def test_message_hash_forms_are_equivalent(self, ledger):
        ledger.execute(RELAYER, RECIPIENT, 1, bytes.fromhex("11" * 32))
        with pytest.raises(AlreadyProcessedError):
            ledger.execute(RELAYER, RECIPIENT, 1, MESSAGE.upper().replace("0X", "0x"))

    @pytest.mark.parametrize(
        "caller", [RECIPIENT, OWNER, ZERO_ADDRESS, "", "0xRelayer00000000000000000000000000000002"]
    )
    def test_non_relayer_rejected(self, ledger, caller):
        before = snapshot(ledger)
        with pytest.raises(AuthorizationError, match="Not relayer"):
            ledger.execute(caller, RECIPIENT, 500, MESSAGE)
        assert snapshot(ledger) == before

    def test_authorization_checked_before_replay(self, ledger):
        ledger.execute(RELAYER, RECIPIENT, 5, MESSAGE)
        with pytest.raises(AuthorizationError):
            ledger.execute(RECIPIENT, RECIPIENT, 5, MESSAGE)

    @pytest.mark.parametrize("amount", [0, -1])
    def test_invalid_amount(self, ledger, amount):
        before = snapshot(ledger)
        with pytest.raises(InvalidAmountError):
            ledger.execute(RELAYER, RECIPIENT, amount, MESSAGE)
        assert snapshot(ledger) == before
        assert not ledger.is_processed(MESSAGE)

    @pytest.mark.parametrize("recipient", [ZERO_ADDRESS, "", "0x0"])
    def test_zero_recipient(self, ledger, recipient):
        before = snapshot(ledger)
        with pytest.raises(InvalidRecipientError):
            ledger.execute(RELAYER, recipient, 500, MESSAGE)
        assert snapshot(ledger) == before

    def test_rejected_message_can_settle_later(self, ledger):
        with pytest.raises(InvalidAmountError):
            ledger.execute(RELAYER, RECIPIENT, 0, MESSAGE)
        ledger.execute(RELAYER, RECIPIENT, 10, MESSAGE)
        assert ledger.get_stats() == (1, 10)

    def test_racing_submitters_have_one_winner(self, ledger):
        outcomes = []

        def submit():
            try:
                ledger.execute(RELAYER, RECIPIENT, 100, MESSAGE)
                outcomes.append("settled")
            except AlreadyProcessedError:
                outcomes.append("already")

        threads = [threading.Thread(target=submit) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("settled") == 1
        assert outcomes.count("already") == 7
        assert ledger.get_stats() == (1, 100)

    def test_block_numbers_increase(self, ledger):
        first = ledger.execute(RELAYER, RECIPIENT, 1, "0x" + "01" * 32)
        second = ledger.execute(RELAYER, RECIPIENT, 1, "0x" + "02" * 32)
        assert second.block_number == first.block_number + 1
        assert ledger.block_number == second.block_number


class TestSetRelayer:
    """Tests for relayer rotation."""

    def test_owner_rotates(self, ledger):
        new_relayer = "0x0000000000000000000000000000000000000def"
        ledger.set_relayer(OWNER, new_relayer)

        assert ledger.relayer == new_relayer
        with pytest.raises(AuthorizationError):
            ledger.execute(RELAYER, RECIPIENT, 1, MESSAGE)
        ledger.execute(new_relayer, RECIPIENT, 1, MESSAGE)

    def test_non_owner_rejected(self, ledger):
        with pytest.raises(AuthorizationError, match="Not owner"):
            ledger.set_relayer(RELAYER, RECIPIENT)

    def test_no_owner_means_no_rotation(self):
        ledger = ReceiverLedger(relayer=RELAYER)
        with pytest.raises(AuthorizationError):
            ledger.set_relayer("", RECIPIENT)

    def test_zero_relayer_rejected(self, ledger):
        with pytest.raises(InvalidRecipientError):
            ledger.set_relayer(OWNER, ZERO_ADDRESS)


def test_is_zero_identity():
    assert is_zero_identity(ZERO_ADDRESS)
    assert is_zero_identity("")
    assert not is_zero_identity(RECIPIENT)
