import argparse
import json
from datetime import datetime, timezone
from pathlib import Path


def _iso(ts_ms: object) -> str:
    if not isinstance(ts_ms, (int, float)):
        return "-"
    return datetime.fromtimestamp(float(ts_ms) / 1000.0, tz=timezone.utc).isoformat()


def _load(path: Path) -> dict:
    if not path.exists():
        raise SystemExit(f"No snapshot found at {path}")
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise SystemExit(f"{path} does not hold a JSON object")
    return data


def main() -> None:
    parser = argparse.ArgumentParser(description="Summarize a price snapshot file")
    parser.add_argument("path", nargs="?", default="priceData.json")
    args = parser.parse_args()

    data = _load(Path(args.path))
    history = data.get("history") or []

    print(f"latest price : {data.get('latestPrice')}")
    print(f"last updated : {_iso(data.get('lastUpdated'))}")
    print(f"history ticks: {len(history)}")
    if history:
        print(f"  oldest     : {_iso(history[0].get('timestamp'))}")
        print(f"  newest     : {_iso(history[-1].get('timestamp'))}")

    ohlc = data.get("ohlc") or {}
    print("candles:")
    for name, candles in ohlc.items():
        if not candles:
            print(f"  {name:>4}: 0")
            continue
        first = _iso(candles[0].get("timestamp"))
        last = _iso(candles[-1].get("timestamp"))
        print(f"  {name:>4}: {len(candles)} ({first} .. {last})")


if __name__ == "__main__":
    main()
