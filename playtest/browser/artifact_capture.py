"""
Artifact Capture - Captures screenshots and console logs for a session
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.test_result import ScreenshotMetadata
from ..utils.errors import Issue, create_issue
from ..utils.helpers import sanitize_filename, timestamp_now
from .controller import BrowserController

logger = logging.getLogger(__name__)


class CaptureResult(BaseModel):
    screenshots: List[ScreenshotMetadata] = Field(default_factory=list)
    logs_path: Optional[str] = None
    issues: List[Issue] = Field(default_factory=list)


class ArtifactCapture:
    """
    Captures and stores test evidence for one session directory:
    - Screenshots (PNG), keyed by step index
    - Console logs (text)
    - An index.json listing every screenshot
    """

    def __init__(self, session_dir: Path):
        """
        Initialize artifact capture for a session.

        Args:
            session_dir: Directory holding output.json for the run
        """
        self.session_dir = Path(session_dir)
        self.screenshots_dir = self.session_dir / "screenshots"
        self.screenshots_dir.mkdir(parents=True, exist_ok=True)
        self.screenshots: List[ScreenshotMetadata] = []
        self.issues: List[Issue] = []

    async def take_screenshot(
        self,
        browser: BrowserController,
        label: str,
        step_index: int
    ) -> Optional[ScreenshotMetadata]:
        """
        Capture a screenshot.

        Args:
            browser: Browser session
            label: Short label, e.g. "action_3" or "end"
            step_index: Index of the step the screenshot belongs to

        Returns:
            Screenshot metadata, or None when the page is unavailable
        """
        if not browser.is_connected():
            logger.warning(f"Skipping screenshot '{label}': browser connection is closed")
            return None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        filename = f"{step_index:03d}_{sanitize_filename(label)}_{timestamp}.png"
        path = self.screenshots_dir / filename

        try:
            await browser.screenshot(str(path))
        except Exception as e:
            logger.error(f"Screenshot '{label}' failed: {e}")
            self.issues.append(create_issue("screenshot_failed", f"Screenshot '{label}' failed: {e}", step_index))
            return None

        metadata = ScreenshotMetadata(
            filename=filename,
            path=str(path),
            timestamp=timestamp_now(),
            label=label,
            step_index=step_index,
        )
        self.screenshots.append(metadata)
        try:
            self._save_index()
        except OSError as e:
            logger.error(f"Failed to update screenshot index: {e}")
            self.issues.append(create_issue("screenshot_failed", f"Screenshot index not written: {e}", step_index))
        return metadata

    async def capture_baseline(self, browser: BrowserController) -> Optional[ScreenshotMetadata]:
        """Screenshot taken right after the game loads."""
        return await self.take_screenshot(browser, "baseline", 0)

    def save_console_logs(self, logs: List[str]) -> Optional[str]:
        """
        Save console logs.

        Args:
            logs: Console lines

        Returns:
            Path to saved logs file, or None on failure
        """
        path = self.session_dir / "console.log"
        try:
            path.write_text("\n".join(logs), encoding='utf-8')
        except OSError as e:
            logger.error(f"Failed to save console logs: {e}")
            self.issues.append(create_issue("log_failed", f"Failed to save console logs: {e}"))
            return None
        return str(path)

    def reset(self):
        """Forget captured evidence before a fresh run attempt. Files stay on disk."""
        self.screenshots.clear()
        self.issues.clear()

    def get_screenshots(self) -> List[ScreenshotMetadata]:
        return list(self.screenshots)

    def get_issues(self) -> List[Issue]:
        return list(self.issues)

    def get_result(self, logs_path: Optional[str] = None) -> CaptureResult:
        return CaptureResult(
            screenshots=self.get_screenshots(),
            logs_path=logs_path,
            issues=self.get_issues(),
        )

    def _save_index(self):
        """Save the screenshot index."""
        index_path = self.screenshots_dir / "index.json"
        index_path.write_text(
            json.dumps([s.model_dump() for s in self.screenshots], indent=2),
            encoding='utf-8'
        )
