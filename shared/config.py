import os
from typing import Optional
from dotenv import load_dotenv
load_dotenv(".venv/.env")


def require_env(var_name: str, default: Optional[str] = None) -> str:
    val = os.getenv(var_name)
    if not val:
        if default is None:
            raise ValueError(f"Missing required environment variable: {var_name}")
        val = default
    return val


def env_flag(var_name: str, default: bool = True) -> bool:
    val = os.getenv(var_name)
    if val is None or val == "":
        return default
    return val.strip().lower() not in ("0", "false", "no", "off")


SECRETS_DIR = require_env("SECRETS_DIR", ".secrets")

# Completion provider
AI_ENABLED = env_flag("AI_ENABLED", True)
AI_MODEL_NAME = require_env("AI_MODEL_NAME", "gpt-3.5-turbo")
AI_TIMEOUT_SECONDS = float(require_env("AI_TIMEOUT_SECONDS", "30"))
AI_MAX_TOKENS = int(require_env("AI_MAX_TOKENS", "500"))
AI_TEMPERATURE = float(require_env("AI_TEMPERATURE", "0.7"))

# Synthetic participant that answers in the normal message flow
AI_AGENT_USER_ID = require_env("AI_AGENT_USER_ID", "ai-assistant")
AI_HISTORY_SIZE = int(require_env("AI_HISTORY_SIZE", "5"))
ESCALATION_HISTORY_SIZE = int(require_env("ESCALATION_HISTORY_SIZE", "10"))

DEFAULT_PAGE_SIZE = int(require_env("DEFAULT_PAGE_SIZE", "50"))
PREVIEW_MAX_CHARS = 100
