"""Tests for transfer intake."""

from decimal import Decimal

import pytest

from conftest import RECIPIENT, SENDER, make_input
from shadowbridge.errors import MissingProofError, ValidationError
from shadowbridge.ledger.models import ProofBundle, TransferSource, TransferStatus, canonical_decimal
from shadowbridge.services.transfer_service import (
    calculate_fee,
    compute_message_hash,
    parse_amount,
    to_base_units,
)


class TestAmountHelpers:
    """Tests for amount parsing, fees and base unit scaling."""

    def test_parse_amount_accepts_numbers_and_strings(self):
        assert parse_amount(100) == Decimal("100")
        assert parse_amount("100.50") == Decimal("100.5")
        assert parse_amount(2.25) == Decimal("2.25")

    @pytest.mark.parametrize("value", [None, "abc", "", True, "NaN", "Infinity", [1]])
    def test_parse_amount_rejects_non_numbers(self, value):
        with pytest.raises(ValidationError, match="valid number"):
            parse_amount(value)

    def test_fee_is_exact(self):
        assert calculate_fee(Decimal("100"), 150) == Decimal("1.5")
        assert calculate_fee(Decimal("1000"), 150) == Decimal("15")
        assert str(calculate_fee(Decimal("1000"), 150)) == "15"
        assert calculate_fee(Decimal("0.1"), 150) == Decimal("0.0015")

    def test_base_units(self):
        assert to_base_units(Decimal("100"), 18) == 100 * 10**18
        assert to_base_units(Decimal("1.5"), 6) == 1_500_000

    def test_base_units_rejects_sub_unit_precision(self):
        with pytest.raises(ValidationError):
            to_base_units(Decimal("1.0000001"), 6)

    def test_base_units_beyond_default_precision(self):
        with pytest.raises(ValidationError, match="more than 18 decimal places"):
            to_base_units(Decimal("1.0000000000000000000000000001"), 18)
        assert to_base_units(Decimal("9999.123456789012345678"), 18) == 9999123456789012345678

    def test_canonical_decimal_never_rounds(self):
        assert str(canonical_decimal("1.0000000000000000000000000001")) == "1.0000000000000000000000000001"
        assert str(canonical_decimal(Decimal("1E+40"))) == "1" + "0" * 40
        assert str(canonical_decimal("100.500")) == "100.5"


class TestMessageHash:
    """Tests for message hash derivation."""

    def test_same_inputs_same_hash(self):
        args = (SENDER, RECIPIENT, Decimal("100"), "ethereum-sepolia", "0xsource")
        assert compute_message_hash(*args) == compute_message_hash(*args)

    def test_hash_format(self):
        value = compute_message_hash(SENDER, RECIPIENT, Decimal("1"), "ethereum-sepolia", "tx")
        assert value.startswith("0x")
        assert len(value) == 66

    def test_addresses_are_case_insensitive(self):
        mixed = "0xAbCdEf0000000000000000000000000000000001"
        lower = compute_message_hash(mixed.lower(), RECIPIENT, Decimal("5"), "ethereum-sepolia", "tx")
        upper = compute_message_hash(mixed, RECIPIENT, Decimal("5"), "ethereum-sepolia", "tx")
        assert lower == upper

    def test_each_input_changes_hash(self):
        base = compute_message_hash(SENDER, RECIPIENT, Decimal("5"), "ethereum-sepolia", "tx")
        assert base != compute_message_hash(SENDER, RECIPIENT, Decimal("6"), "ethereum-sepolia", "tx")
        assert base != compute_message_hash(SENDER, RECIPIENT, Decimal("5"), "base-sepolia", "tx")
        assert base != compute_message_hash(SENDER, RECIPIENT, Decimal("5"), "ethereum-sepolia", "tx2")

    def test_missing_source_reference_gets_fresh_nonce(self):
        first = compute_message_hash(SENDER, RECIPIENT, Decimal("5"), "ethereum-sepolia")
        second = compute_message_hash(SENDER, RECIPIENT, Decimal("5"), "ethereum-sepolia")
        assert first != second


class TestCreateTransfer:
    """Tests for TransferService.create_transfer."""

    @pytest.mark.asyncio
    async def test_below_minimum_rejected(self, service, store):
        with pytest.raises(ValidationError, match="between 1 and 10000"):
            await service.create_transfer(make_input(amount_usd="0.5"))
        assert await store.list() == []

    @pytest.mark.asyncio
    async def test_above_maximum_rejected(self, service, store):
        with pytest.raises(ValidationError):
            await service.create_transfer(make_input(amount_usd="10000.01"))
        assert await store.list() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [1e40, "1e40", -1e40, "1E+999999"])
    async def test_huge_amount_rejected_by_range(self, service, store, amount):
        with pytest.raises(ValidationError, match="between 1 and 10000"):
            await service.create_transfer(make_input(amount_usd=amount))
        assert await store.list() == []

    @pytest.mark.asyncio
    async def test_excess_precision_rejected_not_rounded(self, service, store):
        with pytest.raises(ValidationError, match="decimal places"):
            await service.create_transfer(make_input(amount_usd="1.0000000000000000000000000001"))
        assert await store.list() == []

    @pytest.mark.asyncio
    async def test_bounds_are_inclusive(self, service):
        low = await service.create_transfer(make_input(amount_usd="1"))
        high = await service.create_transfer(make_input(amount_usd="10000"))
        assert low.amount_usd == Decimal("1")
        assert high.amount_usd == Decimal("10000")

    @pytest.mark.asyncio
    async def test_creates_queued_record_with_fee(self, service, store):
        record = await service.create_transfer(make_input(amount_usd=100))

        assert record.status == TransferStatus.QUEUED
        assert record.fee_usd == Decimal("1.5")
        assert record.amount_base_units == 100 * 10**18
        assert record.source == TransferSource.API
        assert record.created_at == record.updated_at
        assert (await store.get(record.id)).message_hash == record.message_hash

    @pytest.mark.asyncio
    async def test_fee_for_thousand(self, service):
        record = await service.create_transfer(make_input(amount_usd="1000"))
        assert record.fee_usd == Decimal("15")
        assert record.to_dict()["feeUsd"] == "15"

    @pytest.mark.asyncio
    async def test_record_is_enqueued(self, service, processor, store):
        record = await service.create_transfer(make_input())
        await processor.wait_idle()

        settled = await store.get(record.id)
        assert settled.status == TransferStatus.SETTLED

    @pytest.mark.asyncio
    async def test_missing_sender(self, service, store):
        with pytest.raises(ValidationError, match="Sender and recipient are required"):
            await service.create_transfer(make_input(sender=""))
        assert await store.list() == []

    @pytest.mark.asyncio
    async def test_missing_recipient(self, service):
        with pytest.raises(ValidationError, match="Sender and recipient are required"):
            await service.create_transfer(make_input(recipient=None))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("wire", ["kycProof", "amountProof", "sanctionsProof"])
    async def test_missing_proof(self, service, store, wire):
        proofs = {"kycProof": "0x1234abcd", "amountProof": "0x1234abcd", "sanctionsProof": "0x1234abcd"}
        proofs.pop(wire)

        with pytest.raises(MissingProofError) as exc_info:
            await service.create_transfer(make_input(proofs=ProofBundle.from_dict(proofs)))

        assert exc_info.value.field == wire
        assert str(exc_info.value) == f"Missing {wire}"
        assert await store.list() == []

    @pytest.mark.asyncio
    async def test_first_missing_proof_reported(self, service):
        with pytest.raises(MissingProofError, match="Missing kycProof"):
            await service.create_transfer(make_input(proofs=ProofBundle()))

    @pytest.mark.asyncio
    async def test_validation_order(self, service):
        # Party check comes before amount, amount before proofs
        with pytest.raises(ValidationError, match="Sender and recipient"):
            await service.create_transfer(
                make_input(sender=None, amount_usd="abc", proofs=ProofBundle())
            )
        with pytest.raises(ValidationError, match="valid number"):
            await service.create_transfer(make_input(amount_usd="abc", proofs=ProofBundle()))
        with pytest.raises(ValidationError, match="between"):
            await service.create_transfer(make_input(amount_usd="0", proofs=ProofBundle()))

    @pytest.mark.asyncio
    async def test_same_source_reference_same_hash(self, service):
        first = await service.create_transfer(make_input(source_tx_hash="0xabc"))
        second = await service.create_transfer(make_input(source_tx_hash="0xabc"))

        assert first.id != second.id
        assert first.message_hash == second.message_hash

    @pytest.mark.asyncio
    async def test_no_source_reference_distinct_hashes(self, service):
        first = await service.create_transfer(make_input())
        second = await service.create_transfer(make_input())
        assert first.message_hash != second.message_hash

    @pytest.mark.asyncio
    async def test_equal_amount_spellings_hash_alike(self, service):
        first = await service.create_transfer(make_input(amount_usd="100", source_tx_hash="tx"))
        second = await service.create_transfer(make_input(amount_usd="100.00", source_tx_hash="tx"))
        assert first.message_hash == second.message_hash

    @pytest.mark.asyncio
    async def test_stats(self, service, processor):
        await service.create_transfer(make_input(amount_usd="100"))
        await service.create_transfer(make_input(amount_usd="50.5"))
        await processor.wait_idle()

        stats = await service.stats()
        assert stats.total_transfers == 2
        assert stats.settled == 2
        assert stats.total_volume_usd == Decimal("150.5")
