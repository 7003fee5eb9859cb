import time

from pulsebot.exec.notify import ToastService


def test_ring_buffer_keeps_last_fifty():
    svc = ToastService()
    for i in range(60):
        svc.add_info("t", str(i))
    toasts = svc.all()
    assert len(toasts) == 50
    assert toasts[0].message == "10"
    assert toasts[-1].message == "59"


def test_get_recent_window():
    svc = ToastService()
    old = svc.add_info("old", "x")
    old.timestamp = time.time() - 60
    new = svc.add_success("new", "y")
    assert svc.get_recent() == [new]
    assert svc.get_recent(since=0) == [old, new]


def test_trade_buy_and_error_payloads():
    svc = ToastService()
    buy = svc.add_trade_buy("UNI", "0.0100", "alice", price="6.5", tx_hash="0xabc", explorer_url="https://x/0xabc")
    assert buy.type == "trade-buy"
    assert buy.data["tx_hash"] == "0xabc"
    assert "0.0100 ETH" in buy.message

    err = svc.add_error("Trade Failed", "nope", reason="no_liquidity")
    assert err.duration_ms == 10_000
    assert err.data == {"reason": "no_liquidity"}

    sell = svc.add_trade_sell("UNI", "0.01", profit="0.001")
    assert sell.type == "trade-sell"

    svc.clear()
    assert svc.all() == []
