"""Base interfaces for proof verification.

Verification flow:
1. Structural checks on each of the three proofs (presence, length, hex encoding)
2. Optional cryptographic check by the external prover service
3. Any non-affirmative outcome raises VerificationError

The relay never runs zero-knowledge verification itself.
"""

import asyncio
import logging
import random
import re
from abc import ABC, abstractmethod

from shadowbridge.errors import VerificationError
from shadowbridge.ledger.models import ProofBundle

logger = logging.getLogger(__name__)

HEX_BODY = re.compile(r"^[0-9a-fA-F]*$")


class ProofVerifier(ABC):
    """Abstract base class for proof verifiers."""

    kind = "abstract"

    @abstractmethod
    async def verify(self, proofs: ProofBundle) -> None:
        """Verify a proof bundle.

        Args:
            proofs: The three compliance proofs of a transfer

        Raises:
            VerificationError: If any proof is rejected
        """
        pass


class StructuralProofVerifier(ProofVerifier):
    """Gates malformed bundles cheaply without any cryptography."""

    kind = "structural"

    def __init__(self, min_length: int = 8, max_latency_ms: int = 0):
        """Initialize verifier.

        Args:
            min_length: Minimum length of each proof string, prefix included
            max_latency_ms: Upper bound of a random delay simulating verifier work
        """
        self.min_length = min_length
        self.max_latency_ms = max_latency_ms

    def check_structure(self, proofs: ProofBundle) -> None:
        for attr, wire, _ in ProofBundle.FIELDS:
            value = getattr(proofs, attr)
            if not value or len(value) < self.min_length:
                raise VerificationError(f"Invalid {wire} payload")
            if not value.startswith("0x"):
                raise VerificationError(f"{wire} must be a hex string")
            if not HEX_BODY.match(value[2:]):
                raise VerificationError(f"{wire} must be a hex string")

    async def verify(self, proofs: ProofBundle) -> None:
        self.check_structure(proofs)

        if self.max_latency_ms > 0:
            latency = random.randint(0, self.max_latency_ms)
            logger.debug(f"Verifying zero-knowledge proofs (simulated latency {latency}ms)")
            await asyncio.sleep(latency / 1000)
        logger.debug("Zero-knowledge proofs passed structural checks")
