from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Detection
    detection_interval_seconds: float = 2.0
    elapsed_interval_seconds: float = 1.0
    head_movement_probability: float = 0.3
    device_detection_probability: float = 0.1
    detection_seed: int | None = None

    # Scoring / advisories
    excessive_movement_threshold: int = 5
    movement_advisory_seconds: float = 3.0
    device_advisory_seconds: float = 5.0
    camera_advisory_seconds: float = 5.0
    flag_threshold: int = 50

    # Authentication
    challenge_success_rate: float = 0.9
    denial_display_seconds: float = 3.0

    # Camera
    camera_enabled: bool = True
    camera_index: int = 0
    camera_width: int = 640
    camera_height: int = 480

    # Voice
    voice_capture_enabled: bool = False
    voice_sample_rate: int = 16000
    voice_record_seconds: float = 3.0
    profiles_root: str = "profiles"

    # Storage
    database_path: str | None = None

    # Server
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
