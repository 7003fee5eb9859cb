import logging
from dataclasses import dataclass, replace
from typing import Literal, Optional

from pulsebot.config import Settings, settings as default_settings

logger = logging.getLogger("pulsebot.chains")

ChainType = Literal["base", "ethereum"]


@dataclass(frozen=True)
class NetworkDescriptor:
    id: str
    name: str
    chain_id: int
    native_currency: str
    chain_type: ChainType
    explorer_url: str
    rpc_url: Optional[str] = None

    @property
    def is_mainnet(self) -> bool:
        return "sepolia" not in self.id


BASE_MAINNET = NetworkDescriptor(
    "base-mainnet", "Base Mainnet", 8453, "ETH", "base", "https://basescan.org"
)
ETHEREUM_MAINNET = NetworkDescriptor(
    "ethereum-mainnet", "Ethereum Mainnet", 1, "ETH", "ethereum", "https://etherscan.io"
)
BASE_SEPOLIA = NetworkDescriptor(
    "base-sepolia", "Base Sepolia", 84532, "ETH", "base", "https://sepolia.basescan.org"
)
ETHEREUM_SEPOLIA = NetworkDescriptor(
    "ethereum-sepolia",
    "Ethereum Sepolia",
    11155111,
    "ETH",
    "ethereum",
    "https://sepolia.etherscan.io",
)

NETWORKS = {
    "mainnet": (BASE_MAINNET, ETHEREUM_MAINNET),
    "testnet": (BASE_SEPOLIA, ETHEREUM_SEPOLIA),
}

# Tokens that trade better on one family; everything else defaults to base.
TOKEN_PREFERENCES: dict[str, ChainType] = {
    "EIGEN": "ethereum",
    "UNI": "ethereum",
    "LINK": "ethereum",
    "AAVE": "ethereum",
    "USDC": "base",
    "WETH": "base",
    "ETH": "base",
    "USDT": "base",
    "DAI": "base",
}

EXPLORER_TX_URLS = {
    "ethereum": "https://etherscan.io/tx/",
    "mainnet": "https://etherscan.io/tx/",
    "ethereum-mainnet": "https://etherscan.io/tx/",
    "sepolia": "https://sepolia.etherscan.io/tx/",
    "ethereum-sepolia": "https://sepolia.etherscan.io/tx/",
    "base": "https://basescan.org/tx/",
    "base-mainnet": "https://basescan.org/tx/",
    "base-sepolia": "https://sepolia.basescan.org/tx/",
}


def build_explorer_url(tx_hash: str, network_id: str) -> str:
    base_url = EXPLORER_TX_URLS.get(network_id, EXPLORER_TX_URLS["ethereum"])
    return f"{base_url}{tx_hash}"


class NetworkRegistry:
    """The fixed set of networks for one environment, with RPC urls from settings."""

    def __init__(self, cfg: Settings | None = None):
        cfg = cfg or default_settings
        self.environment = cfg.network_env
        self.networks: tuple[NetworkDescriptor, ...] = tuple(
            replace(n, rpc_url=cfg.rpc_url_for(n.id)) for n in NETWORKS[self.environment]
        )
        logger.info(
            "[network] %s networks: %s",
            self.environment,
            ", ".join(n.name for n in self.networks),
        )

    def get(self, network_id: str) -> NetworkDescriptor:
        for n in self.networks:
            if n.id == network_id:
                return n
        raise KeyError(network_id)

    def by_chain_type(self, chain_type: str) -> Optional[NetworkDescriptor]:
        return next((n for n in self.networks if n.chain_type == chain_type), None)

    def best_network_for_token(self, symbol: str) -> NetworkDescriptor:
        preferred = TOKEN_PREFERENCES.get(symbol.upper(), "base")
        network = self.by_chain_type(preferred)
        if network is None:
            logger.info("[network] %s not available, using %s", preferred, self.networks[0].name)
            return self.networks[0]
        return network

    def summary(self) -> str:
        return ", ".join(f"{n.name} ({n.id})" for n in self.networks)
