"""Application configuration with sensible defaults."""
import os
from pathlib import Path

from dotenv import load_dotenv

# Paths
BASE_DIR = Path(__file__).parent.parent

# Values already in the environment take precedence over .env
load_dotenv(BASE_DIR / ".env", override=False)

DOCUMENT_PATH = Path(os.getenv("DOCUMENT_PATH", str(BASE_DIR / "pdfs" / "resume-1.pdf")))

# Ollama configuration
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_API_KEY = os.getenv("OLLAMA_API_KEY")  # Only needed behind an authenticating proxy
CHAT_MODEL = os.getenv("CHAT_MODEL", "gemma3:12b")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "mxbai-embed-large:latest")
GENERATION_TEMPERATURE = float(os.getenv("GENERATION_TEMPERATURE", "0.7"))

# Upstream call bounds (seconds)
EMBED_TIMEOUT = float(os.getenv("EMBED_TIMEOUT", "30.0"))
GENERATE_TIMEOUT = float(os.getenv("GENERATE_TIMEOUT", "120.0"))
EMBED_BATCH_SIZE = int(os.getenv("EMBED_BATCH_SIZE", "10"))

# RAG parameters (character-based to avoid tokenizer inconsistencies)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "1000"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "100"))
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "3"))

# Request limits
MAX_QUESTION_LENGTH = int(os.getenv("MAX_QUESTION_LENGTH", "2000"))

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
