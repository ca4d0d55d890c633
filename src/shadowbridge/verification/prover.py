"""Prover service backed verifier.

The prover exposes ``POST /verify/{circuit}`` for the ``kyc``, ``amount`` and
``sanctions`` circuits and answers ``{"circuit": ..., "valid": bool}``.
Proofs travel through the relay as ``0x`` + hex of the prover's JSON output.
"""

import json
import logging
from typing import Any, Optional

import httpx

from shadowbridge.errors import VerificationError
from shadowbridge.ledger.models import ProofBundle
from shadowbridge.verification.base import StructuralProofVerifier

logger = logging.getLogger(__name__)


def decode_proof(proof_hex: str) -> dict[str, Any]:
    """Turn a hex proof into the prover's ``{proof, publicSignals}`` request body.

    Payloads that are not hex-encoded JSON are forwarded as-is.
    """
    try:
        decoded = json.loads(bytes.fromhex(proof_hex[2:]).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return {"proof": proof_hex, "publicSignals": []}

    if isinstance(decoded, dict) and "proof" in decoded and "publicSignals" in decoded:
        return {"proof": decoded["proof"], "publicSignals": decoded["publicSignals"]}
    return {"proof": decoded, "publicSignals": []}


class ProverServiceVerifier(StructuralProofVerifier):
    """Runs structural checks, then asks the prover service to verify each circuit."""

    kind = "prover-service"

    def __init__(
        self,
        base_url: str,
        min_length: int = 8,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize verifier.

        Args:
            base_url: Prover service root, e.g. http://localhost:4000
            min_length: Minimum length of each proof string
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        super().__init__(min_length=min_length)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def verify(self, proofs: ProofBundle) -> None:
        self.check_structure(proofs)

        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            for attr, wire, circuit in ProofBundle.FIELDS:
                await self._verify_circuit(client, circuit, wire, getattr(proofs, attr))

        logger.debug("Zero-knowledge proofs verified by prover service")

    async def _verify_circuit(
        self, client: httpx.AsyncClient, circuit: str, wire: str, proof_hex: str
    ) -> None:
        try:
            response = await client.post(f"/verify/{circuit}", json=decode_proof(proof_hex))
        except httpx.HTTPError as e:
            logger.error(f"Prover request for {circuit} failed: {e}")
            raise VerificationError(f"Prover unavailable for {wire}: {e}") from e

        if response.status_code != 200:
            try:
                detail = response.json().get("error", response.text)
            except ValueError:
                detail = response.text
            raise VerificationError(f"{wire} rejected by prover: {detail}")

        try:
            valid = response.json().get("valid")
        except ValueError as e:
            raise VerificationError(f"Malformed prover response for {wire}") from e

        if valid is not True:
            raise VerificationError(f"{wire} failed verification")
        logger.debug(f"{circuit} proof verified")
