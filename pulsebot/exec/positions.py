import csv
import os
import pathlib
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pulsebot.config import settings
from pulsebot.types import TradingPosition

POSITION_FIELDS = [
    "id",
    "token",
    "amount",
    "purchase_price",
    "purchase_time",
    "sell_time",
    "sell_price",
    "profit",
    "tweet",
    "influencer",
    "status",
]
PROCESSED_FIELDS = ["tweet_id", "processed_at"]


def _data_dir() -> pathlib.Path:
    d = pathlib.Path(os.getenv("PULSEBOT_DATA_DIR", settings.data_dir))
    d.mkdir(parents=True, exist_ok=True)
    return d


def _read_csv(path: pathlib.Path) -> List[Dict[str, Any]]:
    if not path.exists():
        return []
    with open(path, newline="") as f:
        return list(csv.DictReader(f))


def _write_csv(path: pathlib.Path, rows: List[Dict[str, Any]], fieldnames: List[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="") as f:
        w = csv.DictWriter(f, fieldnames=fieldnames)
        w.writeheader()
        for r in rows:
            w.writerow(r)


def _to_row(pos: TradingPosition) -> Dict[str, Any]:
    row = pos.model_dump()
    for k in ("purchase_time", "sell_time"):
        row[k] = row[k].isoformat() if row[k] else ""
    return {k: ("" if v is None else v) for k, v in row.items()}


OPTIONAL_FIELDS = ("sell_time", "sell_price", "profit")


def _from_row(row: Dict[str, Any]) -> TradingPosition:
    clean = {k: (None if k in OPTIONAL_FIELDS and v == "" else v) for k, v in row.items()}
    return TradingPosition.model_validate(clean)


class PositionStore:
    """Positions and processed tweet ids kept as CSV files under the data dir."""

    def __init__(self, data_dir: Optional[pathlib.Path] = None):
        self.data_dir = pathlib.Path(data_dir) if data_dir else _data_dir()

    @property
    def positions_csv(self) -> pathlib.Path:
        return self.data_dir / "positions.csv"

    @property
    def processed_csv(self) -> pathlib.Path:
        return self.data_dir / "processed_tweets.csv"

    def save_position(self, position: TradingPosition) -> None:
        rows = _read_csv(self.positions_csv)
        if any(r["id"] == position.id for r in rows):
            raise ValueError(f"position {position.id} already exists")
        rows.append(_to_row(position))
        _write_csv(self.positions_csv, rows, POSITION_FIELDS)

    def update_position(self, position_id: str, **updates: Any) -> Optional[TradingPosition]:
        rows = _read_csv(self.positions_csv)
        updated = None
        for i, r in enumerate(rows):
            if r["id"] == position_id:
                updated = _from_row(r).model_copy(update=updates)
                rows[i] = _to_row(updated)
        if updated is not None:
            _write_csv(self.positions_csv, rows, POSITION_FIELDS)
        return updated

    def list_positions(self) -> List[TradingPosition]:
        return [_from_row(r) for r in _read_csv(self.positions_csv)]

    def get_holding_positions(self) -> List[TradingPosition]:
        return [p for p in self.list_positions() if p.status == "holding"]

    def mark_tweet_as_processed(self, tweet_id: str) -> None:
        rows = _read_csv(self.processed_csv)
        if any(r["tweet_id"] == tweet_id for r in rows):
            return
        rows.append({"tweet_id": tweet_id, "processed_at": datetime.now(timezone.utc).isoformat()})
        _write_csv(self.processed_csv, rows, PROCESSED_FIELDS)

    def is_tweet_processed(self, tweet_id: str) -> bool:
        return any(r["tweet_id"] == tweet_id for r in _read_csv(self.processed_csv))
