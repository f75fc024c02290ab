# observability/langfuse_client.py
from langfuse import get_client
from dotenv import load_dotenv

load_dotenv(".venv/.env")
# 1 global instance for the whole process; LANGFUSE_TRACING_ENABLED=false turns spans into no-ops
langfuse = get_client()
