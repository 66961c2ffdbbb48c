"""
Service Container - wires the collaborators of a test run
"""
import logging
from pathlib import Path
from typing import Callable, Optional

from ..agents.cua_agent import ComputerUseAgent, CUACapability
from ..agents.orchestrator_agent import OrchestratorAgent
from ..browser.artifact_capture import ArtifactCapture
from ..browser.controller import BrowserController
from ..config import settings
from ..models.test_spec import TestSpec
from ..reporting.incremental_writer import IncrementalWriter
from .progress import LoggingProgressReporter, ProgressReporter

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    The collaborators one run uses: browser session, capture manager,
    CUA capability, result writer and progress reporter.
    """

    def __init__(
        self,
        spec: TestSpec,
        session_dir: Path,
        browser: BrowserController,
        capture: ArtifactCapture,
        cua: CUACapability,
        writer: IncrementalWriter,
        progress: ProgressReporter
    ):
        self.spec = spec
        self.session_dir = Path(session_dir)
        self.browser = browser
        self.capture = capture
        self.cua = cua
        self.writer = writer
        self.progress = progress

    async def reset_session(self):
        """Fresh browser and evidence for another run attempt."""
        await self.browser.restart()
        self.capture.reset()

    async def cleanup(self):
        await self.browser.cleanup()


async def create_cua_capability(
    spec: TestSpec,
    browser: BrowserController,
    progress: ProgressReporter,
    cua_factory: Optional[Callable[[BrowserController], ComputerUseAgent]] = None
) -> CUACapability:
    """
    Decide once whether the computer-use agent is available for this run.

    The agent is only built when the config asks for it. A failure to
    start it is a warning; steps that need it will fail on their own.
    """
    if not spec.needs_cua():
        return CUACapability.absent("not requested by the config")

    if not settings.CUA_ENABLED:
        reason = "CUA_ENABLED is off"
        logger.warning(f"Config requests the computer-use agent but {reason}")
        progress.warn(f"CUA unavailable: {reason}")
        return CUACapability.absent(reason)

    # The agent drives the live page, so the session has to exist first
    await browser.initialize()

    factory = cua_factory or ComputerUseAgent
    try:
        agent = factory(browser)
        await agent.initialize(spec.cua_model, spec.cua_max_steps)
    except Exception as e:
        reason = str(e)
        logger.warning(f"CUA initialization failed, continuing without it: {reason}")
        progress.warn(f"CUA unavailable: {reason}")
        return CUACapability.absent(reason)

    progress.info(f"CUA ready (model: {spec.cua_model})")
    return CUACapability.present(agent)


async def create_service_container(
    spec: TestSpec,
    session_dir: Path,
    headless: Optional[bool] = None,
    progress_reporter: Optional[ProgressReporter] = None,
    browser: Optional[BrowserController] = None,
    capture: Optional[ArtifactCapture] = None,
    cua_factory: Optional[Callable[[BrowserController], ComputerUseAgent]] = None,
    writer: Optional[IncrementalWriter] = None
) -> ServiceContainer:
    """
    Build the collaborators for one run.

    Args:
        spec: Validated test spec
        session_dir: Directory for output.json and screenshots
        headless: Browser mode, defaults to settings
        progress_reporter: Defaults to LoggingProgressReporter
        browser: Session override, mainly for tests
        capture: Capture manager override
        cua_factory: Builds the agent from the session
        writer: Result writer override

    Returns:
        A ready ServiceContainer
    """
    session_dir = Path(session_dir)
    session_dir.mkdir(parents=True, exist_ok=True)

    progress = progress_reporter or LoggingProgressReporter()
    browser = browser or BrowserController(headless=headless)
    capture = capture or ArtifactCapture(session_dir)
    writer = writer or IncrementalWriter(session_dir)
    cua = await create_cua_capability(spec, browser, progress, cua_factory)

    return ServiceContainer(
        spec=spec,
        session_dir=session_dir,
        browser=browser,
        capture=capture,
        cua=cua,
        writer=writer,
        progress=progress,
    )


async def create_orchestrator(
    spec: TestSpec,
    session_dir: Path,
    headless: Optional[bool] = None,
    progress_reporter: Optional[ProgressReporter] = None,
    enable_llm: bool = False,
    stop_on_failure: bool = False,
    **overrides
) -> OrchestratorAgent:
    """Container plus a ready OrchestratorAgent."""
    container = await create_service_container(
        spec, session_dir, headless=headless, progress_reporter=progress_reporter, **overrides
    )
    return OrchestratorAgent(container, enable_llm=enable_llm, stop_on_failure=stop_on_failure)
