import os

class Settings:
    PROJECT_NAME: str = "clipqueue"
    DATABASE_URL: str = os.getenv("DATABASE_URL", "postgresql://postgres:postgres@db:5432/clipqueue")
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://redis:6379/0")  # empty disables the live log stream
    LOG_CHANNEL: str = os.getenv("LOG_CHANNEL", "system_logs")

    # logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR: str = os.getenv("LOG_DIR", "")  # empty = stdout only

    # job queue
    JOB_MAX_ATTEMPTS: int = int(os.getenv("JOB_MAX_ATTEMPTS", "3"))
    JOB_RETENTION_DAYS: int = int(os.getenv("JOB_RETENTION_DAYS", "7"))
    JOB_STALE_MINUTES: int = int(os.getenv("JOB_STALE_MINUTES", "30"))
    JOB_PROCESSOR_TOKEN: str = os.getenv("JOB_PROCESSOR_TOKEN", "")  # bearer token for /api/jobs/process
    DISPATCH_POLL_SECONDS: float = float(os.getenv("DISPATCH_POLL_SECONDS", "5"))

    # external rendering service (shotstack edit api)
    RENDER_API_URL: str = os.getenv("RENDER_API_URL", "https://api.shotstack.io/edit/stage")
    RENDER_API_KEY: str = os.getenv("RENDER_API_KEY", "")
    RENDER_WEBHOOK_SECRET: str = os.getenv("RENDER_WEBHOOK_SECRET", "")
    RENDER_CALLBACK_URL: str = os.getenv("RENDER_CALLBACK_URL", "")  # public url of /api/webhooks/render
    RENDER_POLL_INTERVAL_SECONDS: int = int(os.getenv("RENDER_POLL_INTERVAL_SECONDS", "10"))

    # content analysis service
    ANALYSIS_API_URL: str = os.getenv("ANALYSIS_API_URL", "http://analysis:8080")
    ANALYSIS_API_KEY: str = os.getenv("ANALYSIS_API_KEY", "")

    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

settings = Settings()
