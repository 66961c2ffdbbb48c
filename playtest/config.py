"""
Configuration settings for the Playtest engine
"""
import logging
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Playtest"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Paths
    BASE_DIR: Path = Path(__file__).parent.parent
    RESULTS_DIR: Path = BASE_DIR / "results"

    # Ollama settings
    OLLAMA_HOST: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llava"
    OLLAMA_TEXT_MODEL: str = "llama3.2"
    CUA_ENABLED: bool = True

    # Browser settings
    BROWSER_HEADLESS: bool = True
    BROWSER_TIMEOUT: int = 30000  # ms
    VIEWPORT_WIDTH: int = 1280
    VIEWPORT_HEIGHT: int = 720

    # Execution settings
    MAX_SEQUENCE_STEPS: int = 100
    ACTION_RETRY_BASE_DELAY_MS: int = 500
    ACTION_RETRY_MAX_DELAY_MS: int = 5000
    RUN_RETRY_BASE_DELAY_MS: int = 1000
    RUN_RETRY_MAX_DELAY_MS: int = 30000

    class Config:
        env_file = ".env"
        extra = "allow"


settings = Settings()


def configure_logging(level: str = None):
    """Configure root logging for the CLI and API entry points."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
