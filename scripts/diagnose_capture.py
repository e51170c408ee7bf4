import argparse
import asyncio
import os
import sys
import tempfile

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from moment_companion.capture import (  # noqa: E402
    CaptureError,
    compute_video_region,
    strategy_for_platform,
    take_screenshot,
)
from moment_companion.config import load_config  # noqa: E402


def _describe_window(window) -> None:
    print(f"Window id: {window.id}")
    print(f"Owner: {window.owner}")
    print(f"Title: {window.title}")
    print(f"Bounds: {window.x},{window.y} {window.width}x{window.height}")


async def _run(args) -> int:
    config = load_config(args.config) if args.config else load_config()
    mode = args.mode or config.capture_mode
    strategy = strategy_for_platform()
    print(f"Platform strategy: {strategy.name}")
    print(f"Capture mode: {mode}")

    if strategy.supports_window_lookup:
        window = await strategy.find_window()
        if window is None:
            print("Meeting window: not found (full screen fallback)")
        else:
            _describe_window(window)
            region = compute_video_region(window, config.video_margins)
            if region is not None:
                print(
                    f"Video region: {region.x},{region.y} {region.width}x{region.height}"
                )
    else:
        print("Window lookup not supported; captures are full screen.")

    out = args.out or os.path.join(tempfile.gettempdir(), "moment-diagnose.png")
    try:
        await take_screenshot(out, mode, config.video_margins, strategy)
    except CaptureError as exc:
        print(f"Capture failed: {exc}")
        return 1
    size = os.path.getsize(out) if os.path.exists(out) else 0
    print(f"Wrote {out} ({size} bytes)")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", help="Path to the companion config JSON.")
    parser.add_argument(
        "--mode", choices=["window", "screen", "video"], help="Override capture mode."
    )
    parser.add_argument("--out", help="Output PNG path.")
    args = parser.parse_args()
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
