from courtguardian.core.config import settings, Settings
from courtguardian.core.database import get_db, Base, get_engine

__all__ = ["settings", "Settings", "get_db", "Base", "get_engine"]
