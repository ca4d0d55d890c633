"""Factory for the configured proof verifier."""

import logging

from shadowbridge.config import Settings
from shadowbridge.verification.base import ProofVerifier, StructuralProofVerifier
from shadowbridge.verification.prover import ProverServiceVerifier

logger = logging.getLogger(__name__)


def get_proof_verifier(settings: Settings) -> ProofVerifier:
    """Prover-backed verifier when PROVER_URL is set, structural checks otherwise."""
    if settings.prover_url:
        logger.info(f"Proofs verified by prover service at {settings.prover_url}")
        return ProverServiceVerifier(
            settings.prover_url,
            min_length=settings.proof_min_length,
            timeout=settings.prover_timeout_seconds,
        )

    logger.info("Proofs verified structurally only (PROVER_URL not set)")
    return StructuralProofVerifier(
        min_length=settings.proof_min_length,
        max_latency_ms=settings.verifier_latency_ms,
    )
