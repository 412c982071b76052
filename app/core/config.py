from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str
    sql_echo: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    # Presence: клиент шлет heartbeat каждые 30с, сервер чистит раз в 60с
    heartbeat_interval_seconds: int = 30
    presence_timeout_seconds: int = 60
    presence_sweep_interval_seconds: int = 60

    # Advisory-блокировки живут 30с без продления на сервере
    lock_ttl_seconds: int = 30

    # Сериализация read-modify-write по проекту (по умолчанию выключена)
    serialize_mutations: bool = False

    # Гостевые идентификаторы не материализуются в таблице users
    guest_prefix: str = "guest_"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
