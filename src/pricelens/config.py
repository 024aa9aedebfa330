from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "PriceLens"
    DEBUG: bool = False

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    # Money parsing
    DEFAULT_CURRENCY: str = "USD"

    # Scan budgets (best effort once exceeded, never an error)
    MAX_NODES_TO_SCAN: int = 2000
    MAX_TEXT_DEPTH: int = 20

    # Candidate selection
    MIN_CANDIDATE_SCORE: int = 20
    MAX_EVIDENCE_CANDIDATES: int = 5

    # Approximate viewport for static documents
    VIEWPORT_WIDTH: int = 1280
    VIEWPORT_HEIGHT: int = 800
    VIEWPORT_MARGIN: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
