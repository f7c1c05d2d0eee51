import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _secret(name: str, *fallbacks: str) -> str:
    # Copied secrets often carry quotes or a literal trailing "\n".
    for key in (name, *fallbacks):
        raw = (os.getenv(key) or "").strip()
        if not raw:
            continue
        if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ("'", '"'):
            raw = raw[1:-1].strip()
        if raw.endswith("\\n"):
            raw = raw[:-2].strip()
        return raw
    return ""


class Settings:
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./editorial.db")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    # Server-to-server shared secret for the automation endpoints.
    automation_token: str = _secret("AUTOMATION_TOKEN", "AUTOMATION_API_TOKEN")

    # First-party editorial engine ("si")
    si_endpoint: str = os.getenv("SI_ENDPOINT", "").strip()
    si_image_endpoint: str = os.getenv("SI_IMAGE_ENDPOINT", "").strip()
    si_api_key: str = _secret("SI_API_KEY")
    si_timeout: float = float(os.getenv("SI_TIMEOUT", "28"))

    # OpenAI-compatible engine
    openai_api_key: str = _secret("OPENAI_API_KEY")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com").strip()
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini").strip()
    openai_image_model: str = os.getenv("OPENAI_IMAGE_MODEL", "gpt-image-1").strip()
    openai_timeout: float = float(os.getenv("OPENAI_TIMEOUT", "24"))

    preferred_engine: str = os.getenv("PREFERRED_ENGINE", "si").strip().lower()

    # News
    news_search_url: str = os.getenv("NEWS_SEARCH_URL", "https://api.gdeltproject.org/api/v2/doc/doc")
    news_search_timeout: float = float(os.getenv("NEWS_SEARCH_TIMEOUT", "8"))
    feed_timeout: float = float(os.getenv("FEED_TIMEOUT", "6.5"))
    feed_max_sources: int = int(os.getenv("FEED_MAX_SOURCES", "8"))

    # Images
    media_search_url: str = os.getenv("MEDIA_SEARCH_URL", "https://commons.wikimedia.org/w/api.php")
    media_user_agent: str = os.getenv("MEDIA_USER_AGENT", "campaign-editorial/1.0 (news automation)")
    image_max_bytes: int = int(os.getenv("IMAGE_MAX_BYTES", "6500000"))
    image_download_timeout: float = float(os.getenv("IMAGE_DOWNLOAD_TIMEOUT", "12"))
    placeholder_base_url: str = os.getenv("PLACEHOLDER_BASE_URL", "https://picsum.photos").rstrip("/")

    # Durable object storage (bucket-style REST API)
    storage_url: str = os.getenv("STORAGE_URL", "").rstrip("/")
    storage_public_url: str = os.getenv("STORAGE_PUBLIC_URL", "").rstrip("/")
    storage_key: str = _secret("STORAGE_KEY")
    storage_bucket: str = os.getenv("STORAGE_BUCKET", "candidate-media")

    # Social fan-out through the workflow-automation webhook
    dispatch_enabled: bool = _flag("DISPATCH_ENABLED")
    dispatch_webhook_url: str = os.getenv("DISPATCH_WEBHOOK_URL", "").strip()
    dispatch_webhook_token: str = _secret("DISPATCH_WEBHOOK_TOKEN")
    dispatch_timeout: float = float(os.getenv("DISPATCH_TIMEOUT", "15"))

    site_base_url: str = os.getenv("SITE_BASE_URL", "").rstrip("/")
    editorial_policy_path: str = os.getenv("EDITORIAL_POLICY_PATH", "")

settings = Settings()
