from pathlib import Path

import yaml
from pydantic import BaseModel, Field


class Config(BaseModel):
    """Configuration data for running a check-in roster instance."""

    name: str = Field("rollcall-event", description="Name of the event.")
    namespace: str = Field(
        "roseCity", description="Prefix for the local cache keys."
    )
    participants_csv: Path = Field(..., description="Path to the participant roster CSV.")
    staff_csv: Path = Field(..., description="Path to the staff roster CSV.")
    coerce_numbers: bool = Field(
        False, description="Convert numeric-looking CSV cells to numbers."
    )
    transport: str = Field(
        "local_cache",
        description="Registered transport name: local_cache, remote, polling, realtime, broadcast.",
    )
    cache_path: Path = Field(
        Path("rollcall_cache.json"), description="Local cache file."
    )
    remote_url: str | None = Field(
        None, description="Base URL of the remote JSON document store."
    )
    remote_path: str = Field("checkin", description="Document path under remote_url.")
    remote_auth: str | None = Field(
        None, description="Auth token sent as the `auth` query parameter."
    )
    request_timeout: float = Field(10.0, description="HTTP timeout in seconds.")
    poll_interval: float = Field(5.0, description="Seconds between remote polls.")
    channel_dir: Path = Field(
        Path(".rollcall"), description="Directory holding same-device broadcast channels."
    )
    channel_name: str = Field("roseCitySync", description="Broadcast channel name.")
    heartbeat_interval: float = Field(
        5.0, description="Seconds between broadcast heartbeats."
    )
    heartbeat_timeout: float = Field(
        15.0, description="Seconds after which a silent session is considered gone."
    )
    channel_max_bytes: int = Field(
        1024 * 1024, description="Size at which the broadcast channel is compacted."
    )
    export_dir: Path = Field(Path("."), description="Where exported reports are written.")
    log_level: str = Field("INFO", description="Logging level name.")

    def missing_paths(self) -> list[str]:
        """Names of roster CSV settings that do not point at an existing file."""
        missing = []
        for path_attr in ["participants_csv", "staff_csv"]:
            path_value = getattr(self, path_attr)
            if not path_value.is_file():
                missing.append(path_attr)
        return missing


def _path_fields() -> list[str]:
    return [name for name, field in Config.model_fields.items() if field.annotation is Path]


def resolve_config_paths(config_data: dict, config_path: Path) -> dict:
    """Anchor relative file settings at the directory holding the config file.

    An event folder can then carry its YAML next to the roster CSVs and be
    started from anywhere.

    Args:
        config_data: Raw configuration dictionary.
        config_path: Path to the configuration file.

    Returns:
        dict: Copy of `config_data` with every relative path setting made absolute.
    """
    resolved = dict(config_data or {})
    event_dir = Path(config_path).parent
    for key in _path_fields():
        value = resolved.get(key)
        if not isinstance(value, (str, Path)) or not str(value):
            continue
        if not Path(value).is_absolute():
            resolved[key] = (event_dir / value).resolve()
    return resolved


def read_config(config_path: Path) -> Config:
    """
    Loads and validates a YAML configuration file.

    Raises:
        pydantic.ValidationError: If required settings are missing or invalid.
        OSError: If the file cannot be read.
        yaml.YAMLError: If the file is not valid YAML.
    """
    config_path = Path(config_path)
    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return Config(**resolve_config_paths(data, config_path))
