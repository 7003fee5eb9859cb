import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from web3 import Web3

from pulsebot.chains import NetworkDescriptor, NetworkRegistry, build_explorer_url
from pulsebot.config import Settings, settings as default_settings
from pulsebot.errors import (
    ConfigurationError,
    TradingDisabledError,
    VenueExhaustedError,
    classify_error,
)
from pulsebot.exec.custodial import CustodialWallet, execute_custodial_trade
from pulsebot.exec.notify import ToastService
from pulsebot.exec.positions import PositionStore
from pulsebot.exec.sim import mock_token_price, simulate_trade
from pulsebot.onchain.eth import EvmWallet, WalletLocks
from pulsebot.onchain.gas import create_gas_manager
from pulsebot.onchain.retry import Sleep
from pulsebot.onchain.uniswap_v2 import UniswapV2Swapper
from pulsebot.onchain.uniswap_v3 import QuoteEngine, UniswapV3Trader
from pulsebot.types import ResolvedToken, TokenResolver, TradeRequest, TradeResult, TradingPosition

logger = logging.getLogger("pulsebot.trade")


@dataclass
class DexVenues:
    """Signing wallet plus the primary and fallback swap venues bound to it."""

    wallet: EvmWallet
    primary: UniswapV3Trader
    fallback: UniswapV2Swapper


DexFactory = Callable[[NetworkDescriptor], DexVenues]
CustodialFactory = Callable[[NetworkDescriptor], CustodialWallet]


def build_dex_venues(
    network: NetworkDescriptor, cfg: Settings, sleep: Optional[Sleep] = None
) -> DexVenues:
    if not network.rpc_url:
        raise ConfigurationError(f"No RPC URL configured for {network.id}")
    wallet = EvmWallet.from_key(
        network.rpc_url, cfg.ethereum_private_key, network.chain_id, cfg.rpc_call_timeout_sec
    )
    gas = create_gas_manager(wallet.w3, network.chain_id, cfg.rpc_call_timeout_sec, sleep)
    quotes = QuoteEngine(wallet.w3, rpc_timeout=cfg.rpc_call_timeout_sec)
    primary = UniswapV3Trader(
        wallet,
        gas,
        quotes,
        confirmation_timeout=cfg.confirmation_timeout_sec,
        sleep=sleep,
    )
    fallback = UniswapV2Swapper(
        wallet,
        gas,
        slippage_pct=cfg.fallback_slippage_pct,
        confirmation_timeout=cfg.confirmation_timeout_sec,
        sleep=sleep,
    )
    return DexVenues(wallet=wallet, primary=primary, fallback=fallback)


def no_custodial_wallet(network: NetworkDescriptor) -> CustodialWallet:
    raise ConfigurationError(f"No custodial wallet configured for {network.name}")


class TradeOrchestrator:
    """
    Turns a sentiment trade request into one executed buy.

    Flow: resolve token -> pick network -> check the family is enabled ->
    size from the balance -> primary venue -> fallback venue (ethereum only,
    at most once) -> record the position and notify.
    """

    def __init__(
        self,
        resolver: TokenResolver,
        store: PositionStore,
        toasts: ToastService,
        cfg: Optional[Settings] = None,
        registry: Optional[NetworkRegistry] = None,
        dex_factory: Optional[DexFactory] = None,
        custodial_factory: Optional[CustodialFactory] = None,
        sleep: Optional[Sleep] = None,
        wallet_locks: Optional[WalletLocks] = None,
    ):
        self.cfg = cfg or default_settings
        self.registry = registry or NetworkRegistry(self.cfg)
        self.resolver = resolver
        self.store = store
        self.toasts = toasts
        self.sleep = sleep or asyncio.sleep
        self.dex_factory = dex_factory or (
            lambda network: build_dex_venues(network, self.cfg, self.sleep)
        )
        self.custodial_factory = custodial_factory or no_custodial_wallet
        self.wallet_locks = wallet_locks or WalletLocks()

    async def execute_trade(self, request: TradeRequest) -> TradeResult:
        logger.info("[trade] %s requested by %s (tweet %s)", request.token, request.influencer, request.tweet_id)

        if self.cfg.testing:
            return self._simulated_trade(request)

        resolution = await self.resolver.resolve_token_address(request.token)
        if not resolution.found or resolution.token is None:
            logger.info("[trade] skipping %s: %s", request.token, resolution.reason)
            self.store.mark_tweet_as_processed(request.tweet_id)
            return TradeResult(status="skipped", reason="token_not_found")

        token = resolution.token
        network = token.network
        logger.info("[trade] %s -> %s on %s", token.symbol, token.address, network.name)

        if not self.cfg.family_enabled(network.chain_type):
            disabled = TradingDisabledError(network.chain_type)
            logger.info("[trade] %s, skipping %s", disabled, token.symbol)
            self.store.mark_tweet_as_processed(request.tweet_id)
            return TradeResult(status="skipped", reason=classify_error(disabled))

        if network.chain_type == "ethereum":
            return await self._dex_trade(request, token)
        return await self._custodial_trade(request, token)

    def size_trade(self, balance_eth: float, chain_type: str) -> Optional[float]:
        """ETH to spend for one trade, or None when the balance is below the minimum."""
        minimum = self.cfg.min_trade_for(chain_type)
        if chain_type == "ethereum":
            minimum = max(minimum, self.cfg.dex_min_trade_eth)
        if balance_eth < minimum:
            logger.info(
                "[trade] insufficient balance: %s ETH available, need at least %s ETH for %s",
                balance_eth,
                minimum,
                chain_type,
            )
            return None
        preferred = balance_eth * self.cfg.trade_balance_fraction
        amount = max(preferred, minimum)
        logger.info("[trade] balance %s ETH, trading %s ETH", balance_eth, amount)
        return amount

    async def _dex_trade(self, request: TradeRequest, token: ResolvedToken) -> TradeResult:
        try:
            venues = self.dex_factory(token.network)
        except Exception as e:
            self._notify_failure(request, e)
            raise

        async with self.wallet_locks.get(venues.wallet.address):
            balance_eth = float(Web3.from_wei(await venues.wallet.get_balance(), "ether"))
            amount_eth = self.size_trade(balance_eth, "ethereum")
            if amount_eth is None:
                self.store.mark_tweet_as_processed(request.tweet_id)
                return TradeResult(status="skipped", reason="insufficient_balance")

            position = self._begin(request, amount_eth)
            amount_wei = Web3.to_wei(amount_eth, "ether")
            try:
                outcome = await venues.primary.swap_eth_for_token(
                    token.address, amount_wei, slippage=self.cfg.max_slippage_pct
                )
                if not outcome.success:
                    logger.warning("[trade] uniswap v3 failed: %s; trying v2", outcome.error)
                    primary_error = outcome.error
                    outcome = await venues.fallback.swap_eth_for_token(token.address, amount_wei)
                    if not outcome.success:
                        raise VenueExhaustedError(primary_error, outcome.error)
                    logger.info("[trade] uniswap v2 fallback succeeded")
            except Exception as e:
                self._record_failure(request, position, e)
                raise

        if outcome.to_token_amount:
            logger.info("[trade] received ~%s %s", outcome.to_token_amount, token.symbol)
        return self._record_success(request, token, position, outcome.transaction_hash)

    async def _custodial_trade(self, request: TradeRequest, token: ResolvedToken) -> TradeResult:
        try:
            wallet = self.custodial_factory(token.network)
            address = await wallet.get_address()
        except Exception as e:
            self._notify_failure(request, e)
            raise

        async with self.wallet_locks.get(address):
            balance_eth = float(await wallet.get_balance())
            amount_eth = self.size_trade(balance_eth, token.network.chain_type)
            if amount_eth is None:
                self.store.mark_tweet_as_processed(request.tweet_id)
                return TradeResult(status="skipped", reason="insufficient_balance")

            position = self._begin(request, amount_eth)
            try:
                tx_hash = await execute_custodial_trade(
                    wallet,
                    amount_eth,
                    token.symbol,
                    token.address,
                    settle_timeout=self.cfg.confirmation_timeout_sec,
                )
            except Exception as e:
                self._record_failure(request, position, e)
                raise

        return self._record_success(request, token, position, tx_hash)

    def _begin(self, request: TradeRequest, amount_eth: float) -> TradingPosition:
        self.toasts.add_info(
            "Trade Initiated",
            f"Buying {request.token} with {amount_eth:.4f} ETH",
            token=request.token,
            influencer=request.influencer,
        )
        return TradingPosition(
            id=uuid.uuid4().hex,
            token=request.token,
            amount=amount_eth,
            purchase_price=mock_token_price(request.token),
            purchase_time=datetime.now(timezone.utc),
            tweet=request.tweet,
            influencer=request.influencer,
            status="holding",
        )

    def _record_success(
        self,
        request: TradeRequest,
        token: ResolvedToken,
        position: TradingPosition,
        tx_hash: Optional[str],
    ) -> TradeResult:
        explorer_url = build_explorer_url(tx_hash, token.network.id) if tx_hash else None
        self.store.save_position(position)
        self.store.mark_tweet_as_processed(request.tweet_id)
        self.toasts.add_trade_buy(
            token=request.token,
            amount=f"{position.amount:.4f}",
            influencer=request.influencer,
            price=str(position.purchase_price),
            tx_hash=tx_hash,
            explorer_url=explorer_url,
        )
        logger.info("[trade] executed %s tx=%s %s", request.token, tx_hash, explorer_url or "")
        return TradeResult(
            status="executed",
            reason="executed",
            position=position,
            transaction_hash=tx_hash,
            explorer_url=explorer_url,
        )

    def _record_failure(
        self, request: TradeRequest, position: TradingPosition, exc: BaseException
    ) -> None:
        logger.error("[trade] %s failed: %s", request.token, exc)
        self.store.save_position(position.model_copy(update={"status": "failed"}))
        self._notify_failure(request, exc)

    def _notify_failure(self, request: TradeRequest, exc: BaseException) -> None:
        reason = classify_error(exc)
        self.toasts.add_error(
            "Trade Failed",
            f"Failed to buy {request.token}: {reason}",
            token=request.token,
            reason=reason,
        )

    def _simulated_trade(self, request: TradeRequest) -> TradeResult:
        position, tx_hash = simulate_trade(request)
        explorer_url = build_explorer_url(tx_hash, "base")
        self.store.save_position(position)
        self.store.mark_tweet_as_processed(request.tweet_id)
        self.toasts.add_trade_buy(
            token=request.token,
            amount=f"{position.amount:.6f} (test)",
            influencer=request.influencer,
            price=str(position.purchase_price),
            tx_hash=tx_hash,
            explorer_url=explorer_url,
        )
        logger.info("[trade] test trade %s amount=%.6f tx=%s", request.token, position.amount, tx_hash)
        return TradeResult(
            status="executed",
            reason="simulated",
            position=position,
            transaction_hash=tx_hash,
            explorer_url=explorer_url,
        )
