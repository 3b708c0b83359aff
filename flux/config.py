from dotenv import load_dotenv
import logging
import os

load_dotenv()

logger = logging.getLogger("flux.config")

ENV_VARS = [
    "ACCESS_TOKEN",
    "APP_SECRET",
    "VERIFY_TOKEN",
    "GRAPH_API_URL",
    "REDIS_HOST",
    "REDIS_PORT",
    "REDIS_PASSWORD",
    "REDIS_SSL",
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "WEATHER_API_KEY",
    "AZURE_STORAGE_CONNECTION_STRING",
    "AZURE_STORAGE_CONTAINER",
]


def _resolve_dir(env_name, base_dir, default):
    value = os.getenv(env_name)
    if not value:
        return default
    return value if os.path.isabs(value) else os.path.join(base_dir, value)


def _parse_delays(raw):
    delays = []
    for part in (raw or "").split(","):
        part = part.strip()
        if part:
            delays.append(max(0.0, float(part)))
    return delays


class Config:
    app_secret = os.getenv("APP_SECRET", "")
    access_token = os.getenv("ACCESS_TOKEN", "")
    verify_token = os.getenv("VERIFY_TOKEN", "")
    graph_api_url = os.getenv("GRAPH_API_URL", "https://graph.facebook.com/v24.0")
    # Used when the webhook did not say which business number was addressed
    phone_number_id = os.getenv("PHONE_NUMBER_ID", "")

    port = int(os.getenv("PORT", "8080"))
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    # "memory" keeps sessions for the process lifetime only
    session_backend = os.getenv("SESSION_BACKEND", "redis").lower()
    use_local_redis = os.getenv("USE_LOCAL_REDIS", "false").lower() == "true"
    redis_host = os.getenv("REDIS_HOST", "localhost")
    redis_port = int(os.getenv("REDIS_PORT", "6379"))
    redis_password = os.getenv("REDIS_PASSWORD", "")
    # Default to True for managed Redis, allow False for local dev
    redis_ssl = os.getenv("REDIS_SSL", "true").lower() == "true"
    session_ttl_seconds = int(os.getenv("SESSION_TTL_SECONDS", str(30 * 24 * 3600)))

    openai_api_key = os.getenv("OPENAI_API_KEY", "")
    openai_model = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    gemini_api_key = os.getenv("GEMINI_API_KEY", "")
    gemini_model = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    weather_api_key = os.getenv("WEATHER_API_KEY", "")
    weather_api_url = os.getenv("WEATHER_API_URL", "https://api.openweathermap.org/data/2.5/weather")

    azure_storage_connection_string = os.getenv("AZURE_STORAGE_CONNECTION_STRING", "")
    azure_storage_container = os.getenv("AZURE_STORAGE_CONTAINER", "")

    progress_delays = _parse_delays(os.getenv("PROGRESS_DELAYS", "3,3,2"))
    collaborator_timeout_seconds = float(os.getenv("COLLABORATOR_TIMEOUT_SECONDS", "20"))

    _base_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

    data_dir = _resolve_dir("DATA_DIR", _base_dir, os.path.join(_base_dir, "data"))
    market_prices_file = _resolve_dir(
        "MARKET_PRICES_FILE", _base_dir, os.path.join(data_dir, "market_prices.json")
    )
    profiles_dir = _resolve_dir("PROFILES_DIR", _base_dir, os.path.join(_base_dir, "profiles"))

    @staticmethod
    def check_env_variables():
        for key in ENV_VARS:
            if not os.getenv(key):
                logger.warning("Missing the environment variable %s", key)

    @staticmethod
    def print_config():
        # Secrets are reported as set/unset only
        logger.info("Config values:")
        logger.info("app_secret set=%s", bool(Config.app_secret))
        logger.info("access_token set=%s", bool(Config.access_token))
        logger.info("verify_token set=%s", bool(Config.verify_token))
        logger.info("graph_api_url=%s", Config.graph_api_url)
        logger.info("port=%s", Config.port)
        logger.info("session_backend=%s", Config.session_backend)
        logger.info("use_local_redis=%s", Config.use_local_redis)
        logger.info("redis_host=%s", Config.redis_host)
        logger.info("redis_port=%s", Config.redis_port)
        logger.info("session_ttl_seconds=%s", Config.session_ttl_seconds)
        logger.info("openai_model=%s", Config.openai_model)
        logger.info("gemini_model=%s", Config.gemini_model)
        logger.info("weather_api_url=%s", Config.weather_api_url)
        logger.info("data_dir=%s", Config.data_dir)
        logger.info("market_prices_file=%s", Config.market_prices_file)
        logger.info("profiles_dir=%s", Config.profiles_dir)
        logger.info("blob_container=%s", Config.azure_storage_container)
        logger.info("progress_delays=%s", Config.progress_delays)
        logger.info("collaborator_timeout_seconds=%s", Config.collaborator_timeout_seconds)
