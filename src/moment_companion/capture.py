"""Screenshot capture via platform utilities."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence

from .config import VideoMargins

logger = logging.getLogger("moment_companion")

Runner = Callable[[str, Sequence[str]], Awaitable[str]]

MEETING_WINDOW_OWNER = "zoom.us"
MEETING_TITLE_MARKERS = ("Meeting", "Webinar")

# Prints one line per on-screen window: id|x|y|width|height|owner|title
LIST_WINDOWS_SWIFT = """
import CoreGraphics
let windows = CGWindowListCopyWindowInfo(.optionOnScreenOnly, kCGNullWindowID) as! [[String: Any]]
for w in windows {
    guard let owner = w["kCGWindowOwnerName"] as? String,
          let bounds = w["kCGWindowBounds"] as? [String: Any],
          let x = bounds["X"] as? Int, let y = bounds["Y"] as? Int,
          let width = bounds["Width"] as? Int, let height = bounds["Height"] as? Int,
          let wid = w["kCGWindowNumber"] as? Int else { continue }
    let name = (w["kCGWindowName"] as? String) ?? ""
    print("\\(wid)|\\(x)|\\(y)|\\(width)|\\(height)|\\(owner)|\\(name)")
}
"""

WINDOWS_SCREEN_PS = """
param([string]$outPath)
Add-Type -AssemblyName System.Windows.Forms
Add-Type -AssemblyName System.Drawing
$screen = [System.Windows.Forms.Screen]::PrimaryScreen.Bounds
$bitmap = New-Object System.Drawing.Bitmap($screen.Width, $screen.Height)
$graphics = [System.Drawing.Graphics]::FromImage($bitmap)
$graphics.CopyFromScreen($screen.Location, [System.Drawing.Point]::Empty, $screen.Size)
$bitmap.Save($outPath)
$graphics.Dispose()
$bitmap.Dispose()
"""


class CaptureError(RuntimeError):
    """Raised when the screenshot utility fails."""


@dataclass
class WindowInfo:
    id: int
    x: int
    y: int
    width: int
    height: int
    owner: str = ""
    title: str = ""

    @property
    def area(self) -> int:
        return self.width * self.height


@dataclass
class Region:
    x: int
    y: int
    width: int
    height: int


async def run_tool(program: str, args: Sequence[str]) -> str:
    try:
        proc = await asyncio.create_subprocess_exec(
            program,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise CaptureError(f"{program} could not be started: {exc}") from exc
    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        detail = stderr.decode("utf-8", "replace").strip()
        raise CaptureError(f"{program} exited with {proc.returncode}: {detail}")
    return stdout.decode("utf-8", "replace")


def parse_window_list(output: str) -> List[WindowInfo]:
    windows: List[WindowInfo] = []
    for line in output.splitlines():
        parts = line.strip().split("|", 6)
        if len(parts) < 5:
            continue
        try:
            wid, x, y, width, height = (int(p) for p in parts[:5])
        except ValueError:
            continue
        owner = parts[5] if len(parts) > 5 else ""
        title = parts[6] if len(parts) > 6 else ""
        windows.append(WindowInfo(wid, x, y, width, height, owner, title))
    return windows


def select_meeting_window(
    candidates: List[WindowInfo],
    owner: str = MEETING_WINDOW_OWNER,
    markers: Sequence[str] = MEETING_TITLE_MARKERS,
) -> Optional[WindowInfo]:
    best: Optional[WindowInfo] = None
    for window in candidates:
        if window.owner != owner:
            continue
        if not any(marker in window.title for marker in markers):
            continue
        if window.area <= 0:
            continue
        # Later windows win ties.
        if best is None or window.area >= best.area:
            best = window
    return best


def compute_video_region(window: WindowInfo, margins: VideoMargins) -> Optional[Region]:
    width = window.width - margins.left - margins.right
    height = window.height - margins.top - margins.bottom
    if width <= 0 or height <= 0:
        return None
    return Region(window.x + margins.left, window.y + margins.top, width, height)


class CaptureStrategy:
    """Invokes one platform's screenshot utility."""

    name = "generic"
    supports_window_lookup = False

    def __init__(self, runner: Optional[Runner] = None):
        self.runner = runner or run_tool

    async def find_window(self) -> Optional[WindowInfo]:
        return None

    async def capture_screen(self, path: str) -> None:
        raise NotImplementedError

    async def capture_window(self, window: WindowInfo, path: str) -> None:
        await self.capture_screen(path)

    async def capture_region(self, region: Region, path: str) -> None:
        await self.capture_screen(path)


class MacCaptureStrategy(CaptureStrategy):
    name = "macos"
    supports_window_lookup = True

    async def find_window(self) -> Optional[WindowInfo]:
        try:
            output = await self.runner("swift", ["-e", LIST_WINDOWS_SWIFT])
        except CaptureError as exc:
            logger.debug("Window lookup failed: %s", exc)
            return None
        return select_meeting_window(parse_window_list(output))

    async def capture_screen(self, path: str) -> None:
        await self.runner("screencapture", ["-x", path])

    async def capture_window(self, window: WindowInfo, path: str) -> None:
        await self.runner("screencapture", [f"-l{window.id}", "-x", path])

    async def capture_region(self, region: Region, path: str) -> None:
        rect = f"{region.x},{region.y},{region.width},{region.height}"
        await self.runner("screencapture", ["-R", rect, "-x", path])


class WindowsCaptureStrategy(CaptureStrategy):
    name = "windows"

    async def capture_screen(self, path: str) -> None:
        await self.runner(
            "powershell",
            ["-NoProfile", "-Command", WINDOWS_SCREEN_PS, "-outPath", path],
        )


class LinuxCaptureStrategy(CaptureStrategy):
    name = "linux"

    async def capture_screen(self, path: str) -> None:
        try:
            await self.runner("gnome-screenshot", ["-f", path])
        except CaptureError as exc:
            logger.debug("gnome-screenshot failed, trying import: %s", exc)
            await self.runner("import", ["-window", "root", path])


def strategy_for_platform(
    platform: Optional[str] = None, runner: Optional[Runner] = None
) -> CaptureStrategy:
    name = platform or sys.platform
    if name == "darwin":
        return MacCaptureStrategy(runner)
    if name.startswith("win"):
        return WindowsCaptureStrategy(runner)
    return LinuxCaptureStrategy(runner)


async def take_screenshot(
    path: str,
    capture_mode: str,
    margins: VideoMargins,
    strategy: CaptureStrategy,
) -> None:
    """Write a screenshot to ``path`` following the capture mode.

    Window and video modes fall back to a full-screen capture when the
    meeting window cannot be found. Utility failures raise CaptureError.
    """
    if capture_mode in ("window", "video") and strategy.supports_window_lookup:
        window = await strategy.find_window()
        if window is None:
            logger.warning("Meeting window not found, falling back to full screen")
        elif capture_mode == "video":
            region = compute_video_region(window, margins)
            if region is None:
                logger.warning("Video margins exceed window size, capturing window")
                await strategy.capture_window(window, path)
            else:
                await strategy.capture_region(region, path)
            return
        else:
            await strategy.capture_window(window, path)
            return
    await strategy.capture_screen(path)
