# config.py
from dataclasses import dataclass
from typing import Optional

@dataclass
class Config:
    """Holds all application configuration."""
    SEARCH_URL: str = "https://itunes.apple.com/search"
    SEARCH_ENTITY: str = "song"
    SEARCH_RESULT_LIMIT: int = 25
    HTTP_TIMEOUT_SECONDS: Optional[float] = None
    USER_AGENT: str = "music-finder/0.1"
    DATABASE_FILENAME: str = "music_finder.db"
    FAVOURITES_KEY: str = "music-finder-favs-v1"
    PLAYER_COMMAND: str = "mpv"
    DEFAULT_QUERY: str = "Drake"
    LOG_LEVEL: str = "INFO"
