from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./inventory_agent.db"
    debug: bool = False
    log_level: str = "INFO"

    whatsapp_access_token: str | None = None
    whatsapp_phone_number_id: str | None = None
    whatsapp_verify_token: str | None = None
    whatsapp_app_secret: str | None = None
    graph_api_base: str = "https://graph.facebook.com/v17.0"

    cloudinary_cloud_name: str | None = None
    cloudinary_api_key: str | None = None
    cloudinary_api_secret: str | None = None
    media_folder_images: str = "badminton-store/products"
    media_folder_videos: str = "badminton-store/videos"

    http_timeout_seconds: float = 30.0
    debounce_seconds: float = 3.0
    state_timeout_seconds: int = 600
    pending_media_ttl_seconds: int = 300

    session_backend: str = "memory"  # memory, redis
    redis_url: str = "redis://localhost:6379/0"

    debug_token: str | None = None
    admin_token: str | None = None

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
