# booklingo/config/settings.py
"""
Application settings management for Booklingo.

Settings file layout:
- settings.template.json: developer defaults, overwritten on update
- user_settings.json: only the keys a user changed
- On load the template is read first and user settings are layered on top

Caching:
- _settings_cache: AppSettings instances keyed by path
- load() prefers the cache and reloads when either file's mtime changes
- save() refreshes the cache entry
"""

import json
import logging
import os
import threading
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

# Module logger
logger = logging.getLogger(__name__)

# Settings cache: path -> (mtime_template, mtime_user, AppSettings)
_settings_cache: dict[str, tuple[float, float, "AppSettings"]] = {}
_settings_cache_lock = threading.Lock()

# Keys a user may override (persisted to user_settings.json)
USER_SETTINGS_KEYS = {
    "provider",
    "target_language",
    "llm_endpoint",
    "llm_model",
    "request",
    "pdf",
    "output_directory",
}

GOOGLE_CREDENTIALS_ENV = "GOOGLE_APPLICATION_CREDENTIALS"
LLM_API_KEY_ENV = "BOOKLINGO_LLM_API_KEY"


@dataclass
class RequestOptions:
    """Batching and concurrency options for the translation scheduler"""
    batch_size: int = 10
    max_concurrency: int = 5


@dataclass
class PdfLayoutOptions:
    """
    Page geometry for re-flowed PDF output (PDF user space units, 1/72 in).

    Text width is estimated as character_count * char_width; it is not
    measured against the font.
    """
    max_width: float = 500.0
    line_height: float = 14.0
    paragraph_spacing: float = 20.0
    min_y_pos: float = 50.0
    max_y_pos: float = 750.0
    max_image_width: float = 500.0
    max_image_height: float = 700.0
    left_margin: float = 50.0
    font_size: float = 12.0
    char_width: float = 6.0
    image_gap: float = 10.0
    page_width: float = 612.0
    page_height: float = 792.0


def _from_dict(cls, data: Any):
    """Build a nested options dataclass from JSON, ignoring unknown keys."""
    if isinstance(data, cls):
        return data
    if not isinstance(data, dict):
        return cls()
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class AppSettings:
    """Application settings"""

    # Translation provider: "google", "llm" or "passthrough"
    provider: str = "google"
    target_language: str = "en"

    # Credentials (never written to user_settings.json)
    google_api_key: Optional[str] = field(default=None, repr=False)
    llm_api_key: Optional[str] = field(default=None, repr=False)

    # LLM completion endpoint
    llm_endpoint: str = "http://localhost:8080"
    llm_model: str = "llama-3.2-3B"
    llm_max_tokens: int = 100

    request_timeout: int = 60           # Seconds per translation call

    # Output (None = next to the input file)
    output_directory: Optional[str] = None

    request: RequestOptions = field(default_factory=RequestOptions)
    pdf: PdfLayoutOptions = field(default_factory=PdfLayoutOptions)

    def __post_init__(self):
        self.request = _from_dict(RequestOptions, self.request)
        self.pdf = _from_dict(PdfLayoutOptions, self.pdf)

    @classmethod
    def load(cls, path: Path, use_cache: bool = True) -> "AppSettings":
        """Load settings from the template and user settings files.

        1. settings.template.json supplies defaults
        2. user_settings.json overrides USER_SETTINGS_KEYS
        3. empty credentials are filled from the environment

        Args:
            path: Base settings path (config/settings.json); the template and
                  user settings are looked up in its directory
            use_cache: Reuse a cached instance when neither file changed
        """
        config_dir = path.parent
        template_path = config_dir / "settings.template.json"
        user_settings_path = config_dir / "user_settings.json"

        cache_key = str(path.resolve())

        template_mtime = template_path.stat().st_mtime if template_path.exists() else 0.0
        user_mtime = user_settings_path.stat().st_mtime if user_settings_path.exists() else 0.0

        if use_cache:
            with _settings_cache_lock:
                if cache_key in _settings_cache:
                    cached_template_mtime, cached_user_mtime, cached_settings = _settings_cache[cache_key]
                    if cached_template_mtime == template_mtime and cached_user_mtime == user_mtime:
                        logger.debug("Using cached settings for: %s", path)
                        return cached_settings

        data: dict[str, Any] = {}

        if template_path.exists():
            try:
                with open(template_path, 'r', encoding='utf-8-sig') as f:
                    data = json.load(f)
                    logger.debug("Loaded template settings from: %s", template_path)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Failed to load template settings: %s", e)

        if not isinstance(data, dict):
            logger.warning("Settings template is not a JSON object, using defaults")
            data = {}

        if user_settings_path.exists():
            try:
                with open(user_settings_path, 'r', encoding='utf-8-sig') as f:
                    user_data = json.load(f)
                    for key in USER_SETTINGS_KEYS:
                        if key not in user_data:
                            continue
                        # Nested option groups are merged key by key
                        if isinstance(data.get(key), dict) and isinstance(user_data[key], dict):
                            data[key] = {**data[key], **user_data[key]}
                        else:
                            data[key] = user_data[key]
                    logger.debug("Loaded user settings from: %s", user_settings_path)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Failed to load user settings: %s", e)

        known_fields = {f.name for f in fields(cls)}
        filtered_data = {k: v for k, v in data.items() if k in known_fields}

        settings = cls(**filtered_data)
        settings.apply_environment()
        settings._validate()

        with _settings_cache_lock:
            _settings_cache[cache_key] = (template_mtime, user_mtime, settings)

        return settings

    def apply_environment(self) -> None:
        """Fill missing credentials from environment variables."""
        if not self.google_api_key:
            self.google_api_key = os.environ.get(GOOGLE_CREDENTIALS_ENV) or None
        if not self.llm_api_key:
            self.llm_api_key = os.environ.get(LLM_API_KEY_ENV) or None

    def _validate(self) -> None:
        """Reset unusable layout values to defaults with a warning.

        batch_size and max_concurrency are left untouched: a zero there is a
        configuration error reported by the scheduler, not silently fixed.
        """
        defaults = PdfLayoutOptions()
        pdf = self.pdf

        for name in ("max_width", "line_height", "max_image_width", "max_image_height",
                     "font_size", "char_width", "page_width", "page_height"):
            if getattr(pdf, name) <= 0:
                logger.warning("%s must be positive (%s), resetting to %s",
                               name, getattr(pdf, name), getattr(defaults, name))
                setattr(pdf, name, getattr(defaults, name))

        for name in ("paragraph_spacing", "image_gap", "left_margin"):
            if getattr(pdf, name) < 0:
                logger.warning("%s must not be negative (%s), resetting to %s",
                               name, getattr(pdf, name), getattr(defaults, name))
                setattr(pdf, name, getattr(defaults, name))

        if pdf.min_y_pos >= pdf.max_y_pos or pdf.max_y_pos > pdf.page_height:
            logger.warning(
                "Vertical bounds out of range (min_y_pos=%s, max_y_pos=%s), resetting to %s/%s",
                pdf.min_y_pos, pdf.max_y_pos, defaults.min_y_pos, defaults.max_y_pos
            )
            pdf.min_y_pos = defaults.min_y_pos
            pdf.max_y_pos = defaults.max_y_pos

        if self.request_timeout < 1:
            logger.warning("request_timeout too small (%d), resetting to 60", self.request_timeout)
            self.request_timeout = 60

    def save(self, path: Path) -> None:
        """Save user-changeable settings to user_settings.json.

        The template is never modified. Credentials are not persisted.
        """
        config_dir = path.parent
        user_settings_path = config_dir / "user_settings.json"
        template_path = config_dir / "settings.template.json"

        config_dir.mkdir(parents=True, exist_ok=True)

        data = {}
        for key in USER_SETTINGS_KEYS:
            value = getattr(self, key)
            if isinstance(value, (RequestOptions, PdfLayoutOptions)):
                value = asdict(value)
            data[key] = value

        with open(user_settings_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        logger.debug("Saved user settings to: %s", user_settings_path)

        cache_key = str(path.resolve())
        template_mtime = template_path.stat().st_mtime if template_path.exists() else 0.0
        user_mtime = user_settings_path.stat().st_mtime if user_settings_path.exists() else 0.0
        with _settings_cache_lock:
            _settings_cache[cache_key] = (template_mtime, user_mtime, self)

    def get_output_directory(self, input_path: Path) -> Path:
        """
        Get output directory for the translated file.
        Returns the input file's directory if output_directory is None.
        """
        if self.output_directory:
            return Path(self.output_directory)
        return input_path.parent


def get_default_settings_path() -> Path:
    """Get default settings file path"""
    return Path(__file__).parent.parent.parent / "config" / "settings.json"


def invalidate_settings_cache(path: Optional[Path] = None) -> None:
    """Invalidate settings cache.

    Args:
        path: Clear only this path's entry; None clears everything.
    """
    with _settings_cache_lock:
        if path is None:
            _settings_cache.clear()
            logger.debug("Cleared all settings cache")
        else:
            cache_key = str(path.resolve())
            if cache_key in _settings_cache:
                del _settings_cache[cache_key]
                logger.debug("Cleared settings cache for: %s", path)
