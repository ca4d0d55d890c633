"""Proof verification boundary.

Structural checks run in-process; cryptographic validity is delegated to the
external prover service.
"""

from shadowbridge.verification.base import ProofVerifier, StructuralProofVerifier
from shadowbridge.verification.factory import get_proof_verifier
from shadowbridge.verification.prover import ProverServiceVerifier

__all__ = [
    "ProofVerifier",
    "StructuralProofVerifier",
    "ProverServiceVerifier",
    "get_proof_verifier",
]
