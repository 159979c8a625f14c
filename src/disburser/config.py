"""
Configuration management for the Token Disburser.

Supports configuration via environment variables and .env files.
"""

from enum import Enum
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NetworkType(str, Enum):
    """Supported networks."""
    MAINNET = "mainnet"
    TESTNET = "testnet"


NETWORK_RPC_URLS = {
    NetworkType.MAINNET: "https://bsc-dataseed3.binance.org",
    NetworkType.TESTNET: "https://data-seed-prebsc-1-s1.binance.org:8545",
}

NETWORK_TOKEN_CONTRACTS = {
    NetworkType.MAINNET: "0x6aa91cbfe045f9d154050226fcc830ddba886ced",
    NetworkType.TESTNET: "0xffe5548b5c3023b3277c1a6f24ac6382a0087db5",
}


class DisburserConfig(BaseSettings):
    """
    Configuration settings for the Token Disburser.

    All settings can be configured via environment variables with the DISBURSER_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="DISBURSER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Network settings
    network: NetworkType = Field(
        default=NetworkType.MAINNET,
        description="Network to connect to"
    )
    rpc_url: Optional[str] = Field(
        default=None,
        description="Custom RPC endpoint (overrides the network default)"
    )
    contract_address: Optional[str] = Field(
        default=None,
        description="Custom token contract address (overrides the network default)"
    )
    chain_id: Optional[int] = Field(
        default=None,
        description="Chain ID for signed transactions (read from the node if unset)"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for RPC calls"
    )

    # Funding wallet settings
    private_key_path: Optional[str] = Field(
        default=None,
        description="Path to a file containing the funding account's private key"
    )
    private_key_hex: Optional[str] = Field(
        default=None,
        description="Hex-encoded private key (alternative to file path)"
    )

    # Balance query retry
    query_retry_attempts: int = Field(
        default=2,
        ge=1,
        description="Total attempts for a single balance query"
    )
    query_retry_delay_seconds: float = Field(
        default=0.2,
        ge=0,
        description="Delay before retrying a failed balance query"
    )

    # Settlement timing
    mint_settlement_delay_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Wait after a mint before confirming the funding balance"
    )
    settlement_delay_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Wait after submitting a chunk before checking balances"
    )
    settlement_check_attempts: int = Field(
        default=3,
        ge=1,
        description="Total balance checks per recipient before marking it failed"
    )
    settlement_retry_delay_seconds: float = Field(
        default=3.0,
        ge=0,
        description="Delay between settlement re-checks"
    )

    # Logging settings
    log_level: str = Field(
        default="WARNING",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )

    @property
    def rpc_endpoint(self) -> str:
        """Get the RPC URL, falling back to the network default."""
        if self.rpc_url:
            return self.rpc_url
        return NETWORK_RPC_URLS[self.network]

    @property
    def token_contract(self) -> str:
        """Get the token contract address, falling back to the network default."""
        if self.contract_address:
            return self.contract_address
        return NETWORK_TOKEN_CONTRACTS[self.network]


# Global config instance
_config: Optional[DisburserConfig] = None


def get_config() -> DisburserConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = DisburserConfig()
    return _config


def set_config(config: DisburserConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
