"""Application configuration using pydantic-settings.

The custodial seed is configured either encrypted (SEED_PHRASE_ENCRYPTED +
MASTER_KEY) or, for development only, as a plaintext WALLET_SEED_PHRASE.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


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
    api_port: int = Field(default=5177, description="API server port")
    public_base_url: str = Field(
        default="http://localhost:5177", description="Externally reachable base URL"
    )
    cors_origins: str = Field(
        default="http://localhost:5174,http://localhost:5175",
        description="Comma-separated list of allowed browser origins",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")

    # ======================
    # Admin
    # ======================
    admin_token: str = Field(default="", description="Admin API token for policy/reconcile endpoints")

    # ======================
    # Seed / Keyring
    # ======================
    wallet_seed_phrase: Optional[str] = Field(
        default=None, description="Plaintext BIP-39 seed phrase (development only)"
    )
    seed_phrase_encrypted: Optional[str] = Field(
        default=None, description="Fernet-encrypted BIP-39 seed phrase"
    )
    master_key: Optional[str] = Field(
        default=None, description="Master encryption key for the seed (Fernet key)"
    )
    max_account_index: int = Field(
        default=4, description="Highest account index scanned when resolving an address"
    )

    # ======================
    # Sessions
    # ======================
    session_ttl_ms: int = Field(
        default=24 * 60 * 60 * 1000, description="Session lifetime measured from creation"
    )
    session_header: str = Field(default="X-NFTGen-Session", description="Session token header")
    origin_header: str = Field(default="X-NFTGen-Origin", description="Origin header")

    # ======================
    # Storage
    # ======================
    storage_backend: str = Field(default="file", description="Key-value backend: file or sql")
    data_dir: str = Field(default="./data", description="Directory for the file store")
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/nijawallet.db",
        description="Database connection URL for the sql backend",
    )
    sql_echo: bool = Field(default=False, description="Log SQL statements and bound parameters")

    # ======================
    # Chains
    # ======================
    default_chain_id: str = Field(default="0xaa36a7", description="Default EVM chain id (Sepolia)")
    sol_chain_id: str = Field(default="solana:devnet", description="Chain id used for Solana sessions")
    eth_rpc_url: str = Field(default="https://rpc.sepolia.org", description="Ethereum RPC URL")
    sol_rpc_url: str = Field(default="https://api.devnet.solana.com", description="Solana RPC URL")
    rpc_timeout: float = Field(default=15.0, description="Per-request RPC timeout in seconds")
    rpc_max_retries: int = Field(default=3, description="Retries for transient RPC failures")
    rpc_backoff_base: float = Field(default=1.0, description="First retry delay in seconds")

    # ======================
    # Activity channel
    # ======================
    observer_idle_timeout: float = Field(
        default=30.0, description="Close observers silent for this many seconds"
    )
    observer_handshake_timeout: float = Field(
        default=10.0, description="Seconds an observer has to send HANDSHAKE"
    )
    observer_queue_size: int = Field(default=256, description="Per-observer outbound queue bound")
    watcher_poll_interval: float = Field(default=5.0, description="Receipt poll interval in seconds")
    watcher_max_polls: int = Field(default=60, description="Receipt polls before giving up")

    # ======================
    # Safety Guards
    # ======================
    dry_run: bool = Field(default=True, description="Enable dry-run mode (no real broadcasts)")
    wallet_lock_timeout: float = Field(
        default=30.0, description="Seconds to wait for the per-wallet critical section"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def has_wallet(self) -> bool:
        """Check if a seed phrase is configured in either form."""
        if self.seed_phrase_encrypted and self.master_key:
            return True
        return bool(self.wallet_seed_phrase and len(self.wallet_seed_phrase.split()) >= 12)

    @property
    def allowed_origins(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_rpc_url(self, chain: str) -> str:
        """Get RPC URL for a chain tag."""
        rpc_map = {
            "ETH": self.eth_rpc_url,
            "SOL": self.sol_rpc_url,
        }
        return rpc_map.get(chain.upper(), "")

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "storage_backend": self.storage_backend,
            "database_url": self._redact_url(self.database_url),
            "wallet_configured": self.has_wallet,
            "seed_encrypted": bool(self.seed_phrase_encrypted),
            "admin_token": "***" if self.admin_token else "(not set)",
            "chains": {
                "ETH": {"rpc": self.eth_rpc_url, "chain_id": self.default_chain_id},
                "SOL": {"rpc": self.sol_rpc_url, "chain_id": self.sol_chain_id},
            },
            "sessions": {
                "ttl_ms": self.session_ttl_ms,
                "headers": [self.session_header, self.origin_header],
            },
            "observers": {
                "idle_timeout": self.observer_idle_timeout,
                "queue_size": self.observer_queue_size,
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
