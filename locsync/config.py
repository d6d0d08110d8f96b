import copy
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

from locsync.core.models import TranslationSettings
from locsync.exceptions import ConfigurationError
from locsync.logger import clear_log_mode_cache, get_logger

logger = get_logger(__name__)

# Get base directory (project root)
BASE_DIR = Path(__file__).parent.parent
CONFIG_DIR = BASE_DIR / "config"
CONFIG_FILE = CONFIG_DIR / "config.json"

# Provider defaults from the LibreTranslate options
PROVIDER_DEFAULTS = {
    "retries_on_failure": 10,
    "wait_seconds_before_retry": 2,
}

BACKEND_TYPES = ["json", "sqlite", "http"]

# Default configuration template
DEFAULT_CONFIG = {
    "TranslationsOptions": {
        "DefaultLanguage": "en",
        "IgnoredForJson": [],
        "IgnoredForMd": [],
        "MdFolders": [],
        "MinutesBetweenCycles": 20,
        "Languages": [],  # Empty: use every language the provider supports
    },
    "LibreTranslateOptions": {
        "Host": "http://localhost:5000",
        "ApiKey": "",
        "NeedsKey": False,
        "LanguagesEndpoint": "/languages",
        "TranslateEndpoint": "/translate",
        "DetectLanguageEndpoint": "/detect",
        "RetriesOnFailure": PROVIDER_DEFAULTS["retries_on_failure"],
        "WaitSecondsBeforeRetry": PROVIDER_DEFAULTS["wait_seconds_before_retry"],
        "BackoffFactor": 2.0,
        "MaxWaitSeconds": 60,
        "Jitter": 0.5,
        "TimeoutSeconds": 30,
    },
    "Storage": {
        "Backends": [
            {"Type": "json", "Path": "locales", "Nested": False, "ReadOnly": False},
        ],
        "StatePath": "state",
    },
    "Worker": {
        "MaxWorkers": 4,
        "ProgressBatchSize": 10,
    },
    "LogMode": "info",
}


@dataclass(frozen=True)
class ProviderOptions:
    """Connection and retry options for the translation provider."""
    host: str
    api_key: str = ""
    needs_key: bool = False
    languages_endpoint: str = "/languages"
    translate_endpoint: str = "/translate"
    detect_language_endpoint: str = "/detect"
    retries_on_failure: int = PROVIDER_DEFAULTS["retries_on_failure"]
    wait_seconds_before_retry: float = PROVIDER_DEFAULTS["wait_seconds_before_retry"]
    backoff_factor: float = 2.0
    max_wait_seconds: float = 60
    jitter: float = 0.5
    timeout_seconds: float = 30

    def url(self, endpoint: str) -> str:
        """Join the host and an endpoint path."""
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.host.rstrip('/')}/{endpoint.lstrip('/')}"


@dataclass(frozen=True)
class WorkerOptions:
    max_workers: int = 4
    progress_batch_size: int = 10


def config_file() -> Path:
    """Resolve the config file path (LOCSYNC_CONFIG overrides the default)."""
    override = os.environ.get("LOCSYNC_CONFIG")
    return Path(override) if override else CONFIG_FILE


def ensure_config_directory():
    """Ensure the config directory exists."""
    config_file().parent.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Config directory ensured: {config_file().parent}")


def create_default_config():
    """Create the default config.json file."""
    ensure_config_directory()
    with open(config_file(), 'w', encoding='utf-8') as f:
        json.dump(DEFAULT_CONFIG, f, indent=4, ensure_ascii=False)
    logger.info(f"Created default config file: {config_file()}")


def initialize_app():
    """Create the default configuration on first run."""
    logger.info("Initializing application...")
    if not config_file().exists():
        create_default_config()
    else:
        logger.debug("Config already exists")
    logger.info("Application initialization complete")


def _merge(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively overlay overrides on top of a copy of defaults."""
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config() -> Dict[str, Any]:
    """Load the configuration file merged over the defaults."""
    path = config_file()
    if not path.exists():
        logger.debug(f"No config file at {path}, using defaults")
        return copy.deepcopy(DEFAULT_CONFIG)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse config file {path}: {e}")
        raise ConfigurationError(f"Config file {path} is not valid JSON: {e}", code="config_invalid")
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object", code="config_invalid")
    return _merge(DEFAULT_CONFIG, data)


def save_config(config: Dict[str, Any]):
    """Save the configuration file."""
    ensure_config_directory()
    try:
        with open(config_file(), 'w', encoding='utf-8') as f:
            json.dump(config, f, indent=4, ensure_ascii=False)
        logger.info("Configuration saved")
    except OSError as e:
        logger.error(f"Failed to save config: {e}")
        raise
    clear_log_mode_cache()


def _string_list(section: Dict[str, Any], key: str) -> List[str]:
    value = section.get(key) or []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigurationError(
            f"{key} must be a list of strings",
            code="config_invalid",
            details={"option": key, "value": value},
        )
    return [item.strip() for item in value if item.strip()]


def load_translation_settings(config: Dict[str, Any] = None) -> TranslationSettings:
    """Build TranslationSettings from the TranslationsOptions section."""
    config = config if config is not None else load_config()
    section = config.get("TranslationsOptions") or {}

    default_language = section.get("DefaultLanguage")
    if not isinstance(default_language, str) or not default_language.strip():
        raise ConfigurationError(
            "DefaultLanguage is not configured",
            code="config_missing",
            details={"option": "DefaultLanguage"},
        )

    minutes = section.get("MinutesBetweenCycles", 20)
    if not isinstance(minutes, (int, float)) or isinstance(minutes, bool) or minutes <= 0:
        raise ConfigurationError(
            "MinutesBetweenCycles must be a positive number",
            code="config_invalid",
            details={"option": "MinutesBetweenCycles", "value": minutes},
        )

    return TranslationSettings(
        default_language=default_language.strip(),
        ignored_for_json=tuple(_string_list(section, "IgnoredForJson")),
        ignored_for_md=tuple(_string_list(section, "IgnoredForMd")),
        md_folders=tuple(_string_list(section, "MdFolders")),
        minutes_between_cycles=minutes,
        languages=tuple(_string_list(section, "Languages")),
    )


def load_provider_options(config: Dict[str, Any] = None) -> ProviderOptions:
    """Build ProviderOptions from the LibreTranslateOptions section."""
    config = config if config is not None else load_config()
    section = config.get("LibreTranslateOptions") or {}

    host = section.get("Host")
    if not host:
        raise ConfigurationError(
            "LibreTranslateOptions.Host is not configured",
            code="config_missing",
            details={"option": "Host"},
        )

    return ProviderOptions(
        host=host,
        api_key=section.get("ApiKey", ""),
        needs_key=bool(section.get("NeedsKey", False)),
        languages_endpoint=section.get("LanguagesEndpoint", "/languages"),
        translate_endpoint=section.get("TranslateEndpoint", "/translate"),
        detect_language_endpoint=section.get("DetectLanguageEndpoint", "/detect"),
        retries_on_failure=int(section.get("RetriesOnFailure", PROVIDER_DEFAULTS["retries_on_failure"])),
        wait_seconds_before_retry=float(
            section.get("WaitSecondsBeforeRetry", PROVIDER_DEFAULTS["wait_seconds_before_retry"])
        ),
        backoff_factor=float(section.get("BackoffFactor", 2.0)),
        max_wait_seconds=float(section.get("MaxWaitSeconds", 60)),
        jitter=float(section.get("Jitter", 0.5)),
        timeout_seconds=float(section.get("TimeoutSeconds", 30)),
    )


def load_worker_options(config: Dict[str, Any] = None) -> WorkerOptions:
    config = config if config is not None else load_config()
    section = config.get("Worker") or {}
    return WorkerOptions(
        max_workers=max(1, int(section.get("MaxWorkers", 4))),
        progress_batch_size=max(1, int(section.get("ProgressBatchSize", 10))),
    )


def resolve_path(value: str) -> Path:
    """Resolve a configured path relative to the project root."""
    path = Path(value)
    return path if path.is_absolute() else BASE_DIR / path
