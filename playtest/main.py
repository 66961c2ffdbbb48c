"""
FastAPI Main Application - starts test runs and serves their results
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .config import configure_logging, settings
from .models.test_spec import TestSpec
from .services.progress import SilentProgressReporter
from .services.runner import new_session_dir, run_test
from .utils.errors import ConfigLoadError, ConfigValidationError, QATestError
from .utils.helpers import generate_session_id
from .validation.validator import load_test_spec, validate

logger = logging.getLogger(__name__)

configure_logging()

app = FastAPI(
    title=settings.APP_NAME,
    description="Automated behavioral testing for browser games",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response Models
class TestRunRequest(BaseModel):
    __test__ = False

    model_config = ConfigDict(populate_by_name=True)

    url: str
    config: Optional[Dict[str, Any]] = None
    config_path: Optional[str] = Field(default=None, alias="configPath")
    headless: Optional[bool] = None
    enable_llm: bool = Field(default=False, alias="enableLLM")


class TestRunResponse(BaseModel):
    __test__ = False

    session_id: str
    status: str


def _session_dir(session_id: str) -> Path:
    """Resolve a session directory, refusing ids that escape the results directory."""
    results_dir = Path(settings.RESULTS_DIR).resolve()
    session_dir = (results_dir / session_id).resolve()
    if session_dir.parent != results_dir:
        raise HTTPException(status_code=404, detail="Session not found")
    return session_dir


def _read_output(session_dir: Path) -> Optional[Dict[str, Any]]:
    output_path = session_dir / "output.json"
    if not output_path.exists():
        return None
    try:
        return json.loads(output_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Unreadable result document {output_path}: {e}")
        return None


async def _run_in_background(url: str, spec: TestSpec, session_dir: Path, config_path: Optional[str],
                             headless: Optional[bool], enable_llm: bool):
    try:
        await run_test(
            url,
            spec,
            session_dir=session_dir,
            config_path=config_path,
            headless=headless,
            enable_llm=enable_llm,
            progress_reporter=SilentProgressReporter(),
        )
    except QATestError as e:
        logger.error(f"Test run {session_dir.name} failed: {e}")


# API Endpoints
@app.post("/api/test/run", response_model=TestRunResponse)
async def start_test_run(request: TestRunRequest, background_tasks: BackgroundTasks):
    """
    Validate the config and start a test run in the background.
    """
    try:
        if request.config is not None:
            spec = validate(request.config)
        else:
            spec = load_test_spec(request.config_path)
    except ConfigValidationError as e:
        raise HTTPException(status_code=422, detail={"message": "Invalid test config", "issues": e.issues})
    except ConfigLoadError as e:
        raise HTTPException(status_code=400, detail=e.message)

    session_id = generate_session_id()
    session_dir = new_session_dir(session_id)
    background_tasks.add_task(
        _run_in_background, request.url, spec, session_dir, request.config_path, request.headless, request.enable_llm
    )
    logger.info(f"Started test run {session_id} for {request.url}")

    return TestRunResponse(session_id=session_id, status="started")


@app.get("/api/sessions")
async def list_sessions():
    """
    List sessions with output.json, newest first.
    """
    results_dir = Path(settings.RESULTS_DIR)
    if not results_dir.exists():
        return {"sessions": []}

    sessions = []
    for session_dir in sorted(results_dir.iterdir(), reverse=True):
        if not session_dir.is_dir():
            continue
        output = _read_output(session_dir)
        if output is None:
            continue
        sessions.append({
            "session_id": session_dir.name,
            "status": output.get("status"),
            "url": output.get("url"),
            "timestamp": output.get("timestamp"),
            "playability_score": output.get("playability_score"),
        })

    return {"sessions": sessions}


@app.get("/api/sessions/{session_id}")
async def get_session(session_id: str):
    """
    Get a session's result document.
    """
    output = _read_output(_session_dir(session_id))
    if output is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return JSONResponse(output)


@app.get("/api/sessions/{session_id}/screenshots/{filename}")
async def get_screenshot(session_id: str, filename: str):
    """
    Get a screenshot file.
    """
    screenshots_dir = _session_dir(session_id) / "screenshots"
    file_path = (screenshots_dir / filename).resolve()

    if file_path.parent != screenshots_dir or not file_path.is_file():
        raise HTTPException(status_code=404, detail="Screenshot not found")

    return FileResponse(str(file_path))


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
