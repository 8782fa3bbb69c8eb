"""Server configuration via environment variables."""

from pydantic_settings import BaseSettings

from overlay.session import SessionConfig


class Settings(BaseSettings):
    # Machine credentials; when unset they are looked up in cookie_file
    machine_host: str = ""
    api_key_id: str = ""
    api_key: str = ""
    machine_path: str = ""  # e.g. /machine/<key>/inspect
    cookie_file: str | None = None  # Netscape cookies.txt
    machine_backend: str = "mock"  # "mock" or "local"
    camera_device: int = 0

    camera_name: str = "overhead-cam"
    vision_service: str = "block-detection-service"
    arm_name: str = "dofbot-arm"
    command_service: str | None = None
    stream_source: str = "overhead-cam"
    container: str = "detectionsView"
    poll_interval_ms: float = 200
    acquire_timeout_s: float | None = None
    stream_tick_ms: float = 33
    stream_width: int = 640
    stream_height: int = 480
    jpeg_quality: int = 85
    start_joint_positions: list[float] = [0, 0, 0, 90, 0]
    reset_joint_positions: list[float] = [0, 25, 0, 90, 0]

    host: str = "0.0.0.0"
    port: int = 8420
    cors_origins: list[str] = ["*"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def session_config(self) -> SessionConfig:
        return SessionConfig(
            camera_name=self.camera_name,
            vision_service=self.vision_service,
            arm_name=self.arm_name,
            command_service=self.command_service,
            stream_source=self.stream_source,
            container=self.container,
            poll_interval_ms=self.poll_interval_ms,
            acquire_timeout_s=self.acquire_timeout_s,
            stream_tick_ms=self.stream_tick_ms,
            stream_size=(self.stream_width, self.stream_height),
            start_joint_positions=list(self.start_joint_positions),
            reset_joint_positions=list(self.reset_joint_positions),
        )
