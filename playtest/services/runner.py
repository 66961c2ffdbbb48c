"""
Runner - one complete test run, shared by the CLI and the API
"""
import logging
from pathlib import Path
from typing import Optional

from ..config import settings
from ..models.test_result import TestResult
from ..models.test_spec import TestSpec
from ..reporting.incremental_writer import IncrementalWriter
from ..utils.errors import QATestError
from ..utils.helpers import generate_session_id, timestamp_now
from .container import create_orchestrator
from .progress import ProgressReporter

logger = logging.getLogger(__name__)


def new_session_dir(session_id: Optional[str] = None) -> Path:
    return Path(settings.RESULTS_DIR) / (session_id or generate_session_id())


async def run_test(
    url: str,
    spec: TestSpec,
    session_dir: Optional[Path] = None,
    config_path: Optional[str] = None,
    headless: Optional[bool] = None,
    enable_llm: bool = False,
    progress_reporter: Optional[ProgressReporter] = None
) -> TestResult:
    """
    Run a test end to end and release the browser afterwards.

    Raises:
        RunFailedError: Every attempt failed; output.json is marked failed
        UnknownActionError: A step has no registered handler
    """
    session_dir = Path(session_dir) if session_dir else new_session_dir()
    logger.info(f"Session directory: {session_dir}")

    orchestrator = None
    try:
        orchestrator = await create_orchestrator(
            spec,
            session_dir,
            headless=headless,
            progress_reporter=progress_reporter,
            enable_llm=enable_llm,
        )
        return await orchestrator.run_test(url, config_path=config_path)
    except QATestError as e:
        mark_failed(session_dir, url, str(e), config_path)
        raise
    finally:
        if orchestrator is not None:
            await orchestrator.cleanup()


def mark_failed(session_dir: Path, url: str, error: str, config_path: Optional[str] = None):
    """Leave a terminal document behind for runs that never finalized one."""
    writer = IncrementalWriter(session_dir)
    now = timestamp_now()
    if not writer.output_path.exists():
        writer.initialize(TestResult(
            status="fail",
            url=url,
            config_path=config_path,
            started_at=now,
            ended_at=now,
            timestamp=now,
            success=False,
            error=error,
        ))
        return
    writer.update_run(status="fail", success=False, error=error, ended_at=now, timestamp=now)
