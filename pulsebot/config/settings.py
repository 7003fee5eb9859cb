# pulsebot/config/settings.py

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, model_validator


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Core ---
    network_env: str = Field(default="testnet")
    testing: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    data_dir: str = Field(default="./data")

    # --- RPC endpoints ---
    base_mainnet_rpc_url: Optional[str] = None
    ethereum_mainnet_rpc_url: Optional[str] = None
    base_testnet_rpc_url: Optional[str] = None
    ethereum_testnet_rpc_url: Optional[str] = None

    # --- DEX wallet (ethereum family) ---
    ethereum_private_key: Optional[str] = None

    # --- Family switches ---
    base_enabled: bool = Field(default=True)
    ethereum_enabled: bool = Field(default=True)

    # --- Trading ---
    trade_balance_fraction: float = Field(default=0.10, gt=0.0, le=1.0)
    base_min_trade_eth: float = Field(default=0.001)
    ethereum_min_trade_eth: float = Field(default=0.001)
    dex_min_trade_eth: float = Field(default=0.0015)
    max_slippage_pct: float = Field(default=3.0, ge=0.0, lt=100.0)
    fallback_slippage_pct: Optional[float] = Field(default=None, ge=0.0, lt=100.0)

    # --- Timeouts ---
    rpc_call_timeout_sec: float = Field(default=20.0)
    confirmation_timeout_sec: float = Field(default=300.0)

    # --- Static token resolution: SYMBOL:network_id:address[:decimals],... ---
    token_addresses: Optional[str] = None

    # --- Helpers ---
    def rpc_url_for(self, network_id: str) -> Optional[str]:
        """Return the configured RPC endpoint for a network id."""
        mapping = {
            "base-mainnet": self.base_mainnet_rpc_url,
            "ethereum-mainnet": self.ethereum_mainnet_rpc_url,
            "base-sepolia": self.base_testnet_rpc_url,
            "ethereum-sepolia": self.ethereum_testnet_rpc_url,
        }
        return mapping.get(network_id)

    def family_enabled(self, chain_type: str) -> bool:
        return {"base": self.base_enabled, "ethereum": self.ethereum_enabled}.get(
            chain_type, False
        )

    def min_trade_for(self, chain_type: str) -> float:
        return {
            "base": self.base_min_trade_eth,
            "ethereum": self.ethereum_min_trade_eth,
        }.get(chain_type, self.ethereum_min_trade_eth)

    # --- Validators ---
    @model_validator(mode="after")
    def configure_network_defaults(self):
        """Fill public RPC defaults for the selected environment."""
        self.network_env = self.network_env.lower()
        if self.network_env not in ("mainnet", "testnet"):
            raise ValueError(f"NETWORK_ENV must be mainnet or testnet, got {self.network_env}")

        if self.network_env == "mainnet":
            self.base_mainnet_rpc_url = self.base_mainnet_rpc_url or "https://mainnet.base.org"
        else:
            self.base_testnet_rpc_url = self.base_testnet_rpc_url or "https://sepolia.base.org"

        return self


# Global settings instance
settings = Settings()
