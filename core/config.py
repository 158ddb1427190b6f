# core/config.py
import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
import logging

# Load variables from .env file located in the project root directory
dotenv_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), '.env')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path)
else:
    load_dotenv() # Fallback

class Settings(BaseSettings):
    """Loads configuration settings from environment variables and .env file."""

    # --- Supabase Configuration ---
    SUPABASE_URL: str | None = None
    SUPABASE_KEY: str | None = None # ANON key usually
    SUPABASE_SERVICE_KEY: str | None = None # SERVICE_ROLE key

    # --- Storage Buckets ---
    AVATARS_BUCKET: str = "avatars"
    PROFILE_FOLDER: str = "profiles"
    USER_FILES_BUCKET: str = "user-files"
    GALLERY_BUCKET: str = "gallery"

    # --- Upload / Listing Limits ---
    PROFILE_MAX_BYTES: int = 5 * 1024 * 1024
    LIST_PAGE_LIMIT: int = 100

    # --- Edge Functions ---
    IMAGE_PROCESS_FUNCTION: str = "image-process"

    # --- UI ---
    UI_ENABLED: bool = True
    DOWNLOAD_DIR: str = "downloads"

    class Config:
        env_file = '.env'
        env_file_encoding = 'utf-8'
        extra = 'ignore'

# Instantiate settings once for import
settings = Settings()

# --- Logging Setup ---
log_level_str = os.getenv("LOG_LEVEL", "INFO").upper(); log_level = getattr(logging, log_level_str, logging.INFO)
logging.basicConfig(level=log_level, format='%(asctime)s - %(name)s - [%(levelname)s] - %(message)s', datefmt='%Y-%m-%d %H:%M:%S')
logger = logging.getLogger("SFH_Core")
logging.getLogger("httpx").setLevel(logging.WARNING); logging.getLogger("supabase").setLevel(logging.WARNING)
logging.getLogger("gradio").setLevel(logging.WARNING)

# --- Configuration Validation Checks ---
logger.info(f"Core Settings loaded. Log Level: {log_level_str}")
if not settings.SUPABASE_URL or not settings.SUPABASE_KEY: logger.warning("Supabase URL/Key missing. The app will start in 'not configured' mode.")
if not settings.SUPABASE_SERVICE_KEY: logger.warning("Supabase Service Key missing. Admin client unavailable.")
logger.info(f"Buckets: avatars='{settings.AVATARS_BUCKET}', files='{settings.USER_FILES_BUCKET}', gallery='{settings.GALLERY_BUCKET}'")

try: assert settings.LIST_PAGE_LIMIT > 0; logger.info(f"Listing page limit: {settings.LIST_PAGE_LIMIT}")
except AssertionError: logger.error(f"Invalid LIST_PAGE_LIMIT: {settings.LIST_PAGE_LIMIT}.")
logger.info(f"Profile upload limit: {settings.PROFILE_MAX_BYTES} bytes")
