from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Chat Store"
    debug: bool = False

    # Paths
    data_dir: Path = Path(__file__).resolve().parent.parent.parent / "data"
    # Defaults to data_dir / "chatstore.db"
    db_path: Optional[Path] = None

    # Overrides db_path when set; "sqlite://" keeps everything in memory
    database_url: str = ""

    # Store policy
    title_max_length: int = 50
    create_retries: int = 3

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = ["*"]

    model_config = {
        "env_file": str(Path(__file__).resolve().parent.parent.parent / ".env"),
        "env_prefix": "CHATSTORE_",
    }

    @property
    def database_file(self) -> Path:
        return self.db_path or self.data_dir / "chatstore.db"

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.database_file}"


settings = Settings()
