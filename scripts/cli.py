"""
CLI to replay recorded landmark frames -> JSON.

Each input line: {"t": seconds, "landmarks": [[x, y], ...] | null}
"""
from __future__ import annotations
import argparse, json
from confusense.calibration import CalibrationStore
from confusense.config import Settings
from confusense.pipeline import ConfusionPipeline

def replay(frames_path: str, settings: Settings, calibration_path: str | None = None) -> dict:
    store = CalibrationStore(calibration_path or settings.CALIBRATION_PATH)
    pipeline = ConfusionPipeline(settings, store=store, on_trigger=None)
    results = []
    with open(frames_path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            rec = json.loads(line)
            results.append(pipeline.process_frame(rec.get("landmarks"), now=float(rec["t"])).model_dump())
    return {
        "calibrated": pipeline.calibrator.baseline is not None,
        "frames": results,
        "rising_edges": [r["ts"] for r in results if r["debounce_armed"]],
    }

def main():
    p = argparse.ArgumentParser()
    p.add_argument("--frames", required=True, help="Path to JSONL landmark frames")
    p.add_argument("--calibration", default=None, help="Calibration store (defaults to CALIBRATION_PATH)")
    p.add_argument("--out", default="output/replay.json", help="Path to output JSON")
    args = p.parse_args()

    result = replay(args.frames, Settings(), args.calibration)
    print(json.dumps(result, indent=2, ensure_ascii=False))

    import os
    os.makedirs(os.path.dirname(args.out) or ".", exist_ok=True)
    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(result, f, indent=2, ensure_ascii=False)
    print(f"Replay written to {args.out}")

if __name__ == "__main__":
    main()
