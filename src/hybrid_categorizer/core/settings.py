import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

from hybrid_categorizer.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_SIMPLIFY_MODEL = "anthropic/claude-3.5-sonnet"
DEFAULT_CATEGORY_MODEL = "anthropic/claude-3.5-sonnet"
DEFAULT_FALLBACK_MODEL = "google/gemini-2.0-flash-exp:free"
DEFAULT_SITE_URL = "http://localhost:3000"
DEFAULT_SITE_NAME = "Hybrid Categorizer"
DEFAULT_SIMPLIFY_BATCH_SIZE = 25
DEFAULT_CATEGORIZE_BATCH_SIZE = 50
DEFAULT_RULE_CONFIDENCE_THRESHOLD = 0.75
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_CONCURRENCY = 4
DEFAULT_RATE_LIMIT_BACKOFF = 2.0

_CONFIG_FILE_PATH: str | None = None
_CONFIG_FILE_VALUES: dict[str, str] = {}
_EXTERNAL_ENV_KEYS: set[str] = set()

_CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "OPENROUTER_API_KEY",
    "OPENROUTER_BASE_URL",
    "OPENROUTER_SIMPLIFY_MODEL",
    "OPENROUTER_CATEGORY_MODEL",
    "OPENROUTER_FALLBACK_MODEL",
    "SITE_URL",
    "SITE_NAME",
    "SIMPLIFY_BATCH_SIZE",
    "CATEGORIZE_BATCH_SIZE",
    "RULE_CONFIDENCE_THRESHOLD",
    "REMOTE_TIMEOUT_SECONDS",
    "REMOTE_CONCURRENCY",
    "REMOTE_RATE_LIMIT_BACKOFF",
)


def _resolve_dotenv_path() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        candidate = os.path.join(config_dir, ".env")
        if os.path.exists(candidate):
            return candidate
    resolved = find_dotenv(usecwd=True)
    return resolved or None


def _resolve_config_path() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    cwd = os.getcwd()
    candidate = os.path.join(cwd, "config", CONFIG_FILENAME)
    if os.path.exists(candidate):
        return candidate
    return os.path.join(cwd, CONFIG_FILENAME)


def _strip_inline_comment(raw_value: str) -> str:
    in_single = False
    in_double = False
    escaped = False
    for index, char in enumerate(raw_value):
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
            continue
        if char == '"' and not in_single:
            in_double = not in_double
            continue
        if char == "'" and not in_double:
            in_single = not in_single
            continue
        if char == "#" and not in_single and not in_double:
            return raw_value[:index].rstrip()
    return raw_value


def _unquote_value(raw_value: str) -> str:
    if len(raw_value) < 2:
        return raw_value
    if raw_value[0] == raw_value[-1] == '"':
        value = raw_value[1:-1]
        return value.replace('\\"', '"').replace("\\\\", "\\")
    if raw_value[0] == raw_value[-1] == "'":
        value = raw_value[1:-1]
        return value.replace("\\'", "'").replace("\\\\", "\\")
    return raw_value


def read_config_file(path: str | None) -> dict[str, str]:
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            key = key.strip()
            if not key:
                continue
            cleaned = _strip_inline_comment(raw_value).strip()
            if not cleaned:
                continue
            value = _unquote_value(cleaned)
            if value:
                values[key] = value
    return values


def load_environment() -> None:
    global _CONFIG_FILE_PATH
    global _CONFIG_FILE_VALUES
    global _EXTERNAL_ENV_KEYS

    dotenv_path = _resolve_dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    _EXTERNAL_ENV_KEYS = set(os.environ.keys())

    _CONFIG_FILE_PATH = _resolve_config_path()
    _CONFIG_FILE_VALUES = read_config_file(_CONFIG_FILE_PATH)

    for key in _CONFIG_KEYS:
        if key not in os.environ and key in _CONFIG_FILE_VALUES:
            os.environ[key] = _CONFIG_FILE_VALUES[key]


def get_config_path() -> str | None:
    return _CONFIG_FILE_PATH


def is_env_override(name: str) -> bool:
    return name in _EXTERNAL_ENV_KEYS


def get_env_int(name: str, default: int, min_value: int | None = None) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning(
            "[ENV] %s='%s' below minimum %s, using default %s.",
            name,
            raw,
            min_value,
            default,
        )
        return default
    return value


def get_env_float(name: str, default: float = 0.0, min_value: float | None = None) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning(
            "[ENV] %s='%s' below minimum %s, using default %s.",
            name,
            raw,
            min_value,
            default,
        )
        return default
    return value


@dataclass(frozen=True)
class RemoteSettings:
    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    site_url: str = DEFAULT_SITE_URL
    site_name: str = DEFAULT_SITE_NAME
    simplify_model: str = DEFAULT_SIMPLIFY_MODEL
    category_model: str = DEFAULT_CATEGORY_MODEL
    fallback_model: str = DEFAULT_FALLBACK_MODEL
    simplify_batch_size: int = DEFAULT_SIMPLIFY_BATCH_SIZE
    categorize_batch_size: int = DEFAULT_CATEGORIZE_BATCH_SIZE
    rule_confidence_threshold: float = DEFAULT_RULE_CONFIDENCE_THRESHOLD
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    concurrency: int = DEFAULT_CONCURRENCY
    rate_limit_backoff: float = DEFAULT_RATE_LIMIT_BACKOFF

    @classmethod
    def from_env(cls) -> "RemoteSettings":
        threshold = get_env_float(
            "RULE_CONFIDENCE_THRESHOLD",
            DEFAULT_RULE_CONFIDENCE_THRESHOLD,
            min_value=0.0,
        )
        return cls(
            api_key=os.getenv("OPENROUTER_API_KEY") or None,
            base_url=os.getenv("OPENROUTER_BASE_URL") or DEFAULT_BASE_URL,
            site_url=os.getenv("SITE_URL") or DEFAULT_SITE_URL,
            site_name=os.getenv("SITE_NAME") or DEFAULT_SITE_NAME,
            simplify_model=os.getenv("OPENROUTER_SIMPLIFY_MODEL") or DEFAULT_SIMPLIFY_MODEL,
            category_model=os.getenv("OPENROUTER_CATEGORY_MODEL") or DEFAULT_CATEGORY_MODEL,
            fallback_model=os.getenv("OPENROUTER_FALLBACK_MODEL") or DEFAULT_FALLBACK_MODEL,
            simplify_batch_size=get_env_int(
                "SIMPLIFY_BATCH_SIZE", DEFAULT_SIMPLIFY_BATCH_SIZE, min_value=1
            ),
            categorize_batch_size=get_env_int(
                "CATEGORIZE_BATCH_SIZE", DEFAULT_CATEGORIZE_BATCH_SIZE, min_value=1
            ),
            rule_confidence_threshold=min(threshold, 1.0),
            timeout_seconds=get_env_float(
                "REMOTE_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS, min_value=0.1
            ),
            concurrency=get_env_int("REMOTE_CONCURRENCY", DEFAULT_CONCURRENCY, min_value=1),
            rate_limit_backoff=get_env_float(
                "REMOTE_RATE_LIMIT_BACKOFF", DEFAULT_RATE_LIMIT_BACKOFF, min_value=0.0
            ),
        )


_SENSITIVE_ENV_KEYS = (
    "KEY",
    "TOKEN",
    "SECRET",
    "PASSWORD",
    "PASS",
    "AUTH",
    "BEARER",
    "PRIVATE",
)


def _should_mask_env_value(name: str, value: str) -> bool:
    upper_name = name.upper()
    if any(marker in upper_name for marker in _SENSITIVE_ENV_KEYS):
        return True
    if value.startswith("sk-") or value.startswith("rk-"):
        return True
    if value.startswith("Bearer ") or value.startswith("bearer "):
        return True
    return False


def _mask_env_value(name: str, value: str) -> str:
    sanitized = value.replace("\r", "\\r").replace("\n", "\\n")
    if not _should_mask_env_value(name, sanitized):
        return sanitized
    if len(sanitized) <= 4:
        return "****"
    return f"{sanitized[:2]}...{sanitized[-2:]}"


def log_environment() -> None:
    logger.info("[ENV] Logging configured environment variables (masked where needed).")
    for key in _CONFIG_KEYS:
        raw_value = os.getenv(key)
        value = "<unset>" if raw_value is None else _mask_env_value(key, raw_value)
        logger.info("[ENV] %s=%s", key, value)


load_environment()
