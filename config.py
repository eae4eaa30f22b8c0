import json
import os
from typing import Any, Dict
from pathlib import Path

from dotenv import load_dotenv

from errors import ConfigError


# Load environment variables from .env.local
def load_env_local():
    """Load environment variables from .env.local / .env without overriding."""
    env_paths = [
        Path(__file__).parent / ".env.local",
        Path(__file__).parent / ".env",
    ]

    for env_path in env_paths:
        if env_path.exists():
            load_dotenv(env_path, override=False)

# Load env on import
load_env_local()


# =============================================================================
# Defaults
# =============================================================================

# Settings that fall back to an environment variable when left empty
ENV_FALLBACKS = {
    "credentials_path": "GOOGLE_TTS_CREDENTIALS",
    "gemini_api_key": "GEMINI_API_KEY",
}

# Settings holding filesystem paths, resolved against the config folder
PATH_KEYS = ("credentials_path", "tables_dir", "output_dir")


# =============================================================================
# Config Manager
# =============================================================================

class ConfigManager:
    def __init__(self, path: str):
        self.path = path

    @property
    def base_dir(self) -> str:
        return os.path.dirname(os.path.abspath(self.path))

    def default_config(self) -> Dict[str, Any]:
        return {
            # Service-account JSON used for the speech API; empty reads
            # GOOGLE_TTS_CREDENTIALS at load time
            "credentials_path": "",
            # Gemini key (empty reads GEMINI_API_KEY) and model for sentence backfill
            "gemini_api_key": "",
            "model_name": "gemini-2.0-flash",
            "generation_max_tokens": 60,
            "generation_temperature": 0.7,

            # Lesson tables (CSV) and where finished audio goes
            "tables_dir": "tables",
            "output_dir": "output",
            # Write audio next to the credential file when possible
            "co_locate_output": True,

            # Speech settings
            "speaking_rate": 0.8,
            "pause_ms": 500,
            "request_timeout": 60,
            # Re-acquire the token once if the speech API answers 401
            "refresh_token_on_unauthorized": True,
        }

    def ensure_config(self) -> None:
        if not os.path.exists(self.path):
            data = self.default_config()
            self._write_file(data)

    def load(self) -> Dict[str, Any]:
        if os.path.exists(self.path):
            with open(self.path, "r", encoding="utf-8") as f:
                try:
                    data = json.load(f)
                except ValueError as e:
                    raise ConfigError(f"Config file {self.path} is not valid JSON: {e}") from e
        else:
            data = {}
        # Ensure any new defaults exist
        defaults = self.default_config()
        for k, v in defaults.items():
            data.setdefault(k, v)

        # Empty config values fall back to env, so the file can stay secret-free
        for key, env_name in ENV_FALLBACKS.items():
            if not data.get(key) and os.environ.get(env_name):
                data[key] = os.environ[env_name]

        for key in PATH_KEYS:
            value = data.get(key)
            if value and not os.path.isabs(os.path.expanduser(value)):
                data[key] = os.path.join(self.base_dir, value)

        return data

    def _write_file(self, data: Dict[str, Any]) -> None:
        os.makedirs(self.base_dir, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)

    @staticmethod
    def require(cfg: Dict[str, Any], key: str) -> Any:
        """Return ``cfg[key]`` or raise ConfigError if it is empty."""
        value = cfg.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            hint = f" (or set {ENV_FALLBACKS[key]})" if key in ENV_FALLBACKS else ""
            raise ConfigError(f"Missing required setting '{key}'{hint}")
        return value
