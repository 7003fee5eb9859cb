import asyncio
import logging
import uuid
from typing import Optional

import typer

from pulsebot.chains import NetworkRegistry
from pulsebot.config.settings import settings
from pulsebot.errors import TradeError, classify_error
from pulsebot.exec.notify import ToastService
from pulsebot.exec.orchestrator import TradeOrchestrator
from pulsebot.exec.positions import PositionStore
from pulsebot.resolver import StaticTokenResolver
from pulsebot.types import TradeRequest


app = typer.Typer()

# --- Logging setup ---
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(threadName)s - %(message)s",
)
logger = logging.getLogger("pulsebot")


def build_orchestrator() -> TradeOrchestrator:
    registry = NetworkRegistry(settings)
    return TradeOrchestrator(
        resolver=StaticTokenResolver(registry),
        store=PositionStore(),
        toasts=ToastService(),
        cfg=settings,
        registry=registry,
    )


@app.callback()
def main(debug: bool = typer.Option(False, help="verbose logs")):
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)


@app.command()
def trade(
    symbol: str = typer.Argument(..., help="token symbol to buy"),
    tweet: str = typer.Option("", help="tweet text that triggered the trade"),
    influencer: str = typer.Option("manual", help="influencer handle"),
    tweet_id: Optional[str] = typer.Option(None, help="tweet id (random if omitted)"),
):
    """Execute one buy for SYMBOL through the network router."""
    request = TradeRequest(
        token=symbol.upper(),
        tweet=tweet,
        influencer=influencer,
        tweet_id=tweet_id or uuid.uuid4().hex,
    )
    logger.info(f"Starting trade for {request.token} (env={settings.network_env}, testing={settings.testing})")
    orchestrator = build_orchestrator()
    try:
        result = asyncio.run(orchestrator.execute_trade(request))
    except TradeError as e:
        print(f"[trade] failed reason={classify_error(e)} error={e}")
        raise typer.Exit(code=1)

    print(f"[trade] status={result.status} reason={result.reason}")
    if result.transaction_hash:
        print(f"[trade] tx={result.transaction_hash}")
    if result.explorer_url:
        print(f"[trade] explorer={result.explorer_url}")


@app.command()
def networks():
    """List the networks available in the configured environment."""
    registry = NetworkRegistry(settings)
    for n in registry.networks:
        rpc = "configured" if n.rpc_url else "missing"
        print(f"{n.id:18} chain_id={n.chain_id:<9} type={n.chain_type:9} rpc={rpc}")


@app.command()
def positions():
    """Show open (holding) positions."""
    holding = PositionStore().get_holding_positions()
    if not holding:
        print("No open positions.")
        return
    for p in holding:
        print(
            f"{p.purchase_time.isoformat()} {p.token:8} amount={p.amount:.6f} "
            f"price={p.purchase_price} influencer={p.influencer}"
        )


if __name__ == "__main__":
    app()
