"""
Configuration Management
Centralized settings loaded from environment variables
"""

import os
from functools import lru_cache
from pydantic import BaseModel
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings(BaseModel):
    """Engine settings loaded from environment variables"""
    
    # Logging
    log_level: str = os.getenv("PLANCOST_LOG_LEVEL", "INFO")
    
    # Registry
    include_catch_all: bool = os.getenv("PLANCOST_INCLUDE_CATCH_ALL", "true").lower() == "true"
    
    # Reconciliation
    discrepancy_tolerance: float = float(os.getenv("PLANCOST_DISCREPANCY_TOLERANCE", "0.01"))
    
    # Documents longer than this should be pre-chunked by the caller
    large_document_lines: int = int(os.getenv("PLANCOST_LARGE_DOCUMENT_LINES", "20000"))


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
