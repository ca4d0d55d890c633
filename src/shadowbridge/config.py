"""Application configuration using pydantic-settings.

Covers the relay pipeline limits, the proof verifier, the destination chain
credentials and the source chain listener.
"""

from decimal import Decimal
from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreBackend(str, Enum):
    """Where transfer records are kept."""

    MEMORY = "memory"
    SQL = "sql"


class AlreadyProcessedPolicy(str, Enum):
    """Outcome recorded when the destination ledger already consumed a message."""

    SETTLED = "settled"
    FAILED = "failed"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=3001, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug mode")

    # ======================
    # Transfer store
    # ======================
    store_backend: StoreBackend = Field(
        default=StoreBackend.MEMORY, description="Transfer store backend (memory or sql)"
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/shadowbridge.db",
        description="Database connection URL for the sql backend",
    )

    # ======================
    # Transfer limits
    # ======================
    min_amount: Decimal = Field(default=Decimal("1"), description="Minimum transfer in USD")
    max_amount: Decimal = Field(default=Decimal("10000"), description="Maximum transfer in USD")
    fee_bps: int = Field(default=150, ge=0, le=10000, description="Relay fee in basis points")
    # wUSDC on Sepolia is a standard 18-decimal ERC20, not 6 like real USDC
    token_decimals: int = Field(default=18, ge=0, le=36, description="Settlement token decimals")
    default_destination_chain: str = Field(
        default="ethereum-sepolia", description="Destination chain tag when none is given"
    )

    # ======================
    # Proof verification
    # ======================
    prover_url: str = Field(
        default="", description="Prover service base URL (empty = structural checks only)"
    )
    prover_timeout_seconds: float = Field(default=30.0, description="Prover request timeout")
    proof_min_length: int = Field(default=8, description="Minimum proof payload length")
    verifier_latency_ms: int = Field(
        default=0, description="Simulated verification latency upper bound (ms)"
    )

    # ======================
    # Destination chain (Ethereum)
    # ======================
    ethereum_rpc_url: str = Field(default="", description="Ethereum RPC URL")
    ethereum_bridge_address: str = Field(default="", description="BridgeReceiver contract address")
    ethereum_private_key: str = Field(default="", description="Relayer signing key")
    submission_timeout_seconds: float = Field(
        default=180.0, gt=0, description="Upper bound on one chain submission"
    )
    confirmation_timeout_seconds: float = Field(
        default=120.0, gt=0, description="How long to wait for a receipt"
    )
    already_processed_policy: AlreadyProcessedPolicy = Field(
        default=AlreadyProcessedPolicy.SETTLED,
        description="Status recorded when the message was already settled on-chain",
    )

    # ======================
    # Safety Guards
    # ======================
    dry_run: bool = Field(
        default=False, description="Settle against an in-process ledger (no real transactions)"
    )
    dry_run_relayer: str = Field(
        default="0x00000000000000000000000000000000000000aa",
        description="Relayer identity used by the in-process ledger",
    )

    # ======================
    # Source chain (Midnight)
    # ======================
    source_indexer_url: str = Field(default="", description="Source chain indexer URL")
    source_contract_address: str = Field(default="", description="Source bridge contract")
    source_poll_interval: float = Field(default=10.0, description="Seconds between event polls")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def has_chain_credentials(self) -> bool:
        """Check if the destination chain client can be built."""
        return bool(
            self.ethereum_rpc_url and self.ethereum_bridge_address and self.ethereum_private_key
        )

    @property
    def has_source_listener(self) -> bool:
        """Check if the source chain listener is configured."""
        return bool(self.source_contract_address and self.source_indexer_url)

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "store_backend": self.store_backend.value,
            "database_url": self._redact_url(self.database_url),
            "limits": {
                "min_amount": str(self.min_amount),
                "max_amount": str(self.max_amount),
                "fee_bps": self.fee_bps,
                "token_decimals": self.token_decimals,
            },
            "prover_url": self.prover_url or "(structural only)",
            "ethereum": {
                "rpc": self.ethereum_rpc_url or "(not set)",
                "bridge_address": self.ethereum_bridge_address or "(not set)",
                "private_key": "***" if self.ethereum_private_key else "(not set)",
                "submission_timeout": self.submission_timeout_seconds,
                "already_processed_policy": self.already_processed_policy.value,
            },
            "source": {
                "indexer": self.source_indexer_url or "(not set)",
                "contract_address": self.source_contract_address or "(not set)",
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
