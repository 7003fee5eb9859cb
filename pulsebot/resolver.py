import logging
from typing import Optional

from pulsebot.chains import NetworkRegistry
from pulsebot.config import settings
from pulsebot.onchain.eth import is_address
from pulsebot.types import ResolvedToken, TokenResolution

logger = logging.getLogger("pulsebot.resolver")


def _parse_token_addresses(val: Optional[str]) -> dict[tuple[str, str], tuple[str, int]]:
    """Parse 'SYMBOL:network_id:address[:decimals],...' into {(SYMBOL, network_id): (address, decimals)}."""
    table: dict[tuple[str, str], tuple[str, int]] = {}
    if not val:
        return table
    for part in val.split(","):
        part = part.strip()
        if not part:
            continue
        bits = part.split(":")
        if len(bits) not in (3, 4):
            raise ValueError(f"bad TOKEN_ADDRESSES entry: {part}")
        decimals = int(bits[3]) if len(bits) == 4 else 18
        table[(bits[0].upper(), bits[1])] = (bits[2], decimals)
    return table


class StaticTokenResolver:
    """Resolves symbols from a configured address table, preferred network first."""

    def __init__(self, registry: NetworkRegistry, table: Optional[str] = None):
        self.registry = registry
        self.table = _parse_token_addresses(table if table is not None else settings.token_addresses)

    async def resolve_token_address(self, symbol: str) -> TokenResolution:
        preferred = self.registry.best_network_for_token(symbol)
        ordered = [preferred] + [n for n in self.registry.networks if n.id != preferred.id]
        for network in ordered:
            hit = self.table.get((symbol.upper(), network.id))
            if hit is None:
                continue
            address, decimals = hit
            if not is_address(address):
                logger.warning("[resolver] %s has invalid address on %s", symbol, network.id)
                continue
            token = ResolvedToken(
                symbol=symbol.upper(),
                name=symbol.upper(),
                address=address,
                decimals=decimals,
                network=network,
            )
            return TokenResolution(found=True, token=token, reason=f"configured on {network.name}")
        return TokenResolution(found=False, reason=f"{symbol} not configured on any network")
