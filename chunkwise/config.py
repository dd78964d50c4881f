"""
Chunkwise Configuration Module
Centralized configuration for the summarization engine.
"""

import copy
import os
from pathlib import Path

import yaml

# Debug Mode Configuration
DEBUG_MODE = os.environ.get('DEBUG', 'false').lower() == 'true'

# Application Paths
APP_NAME = "Chunkwise"
APPDATA_DIR = Path(os.environ.get('CHUNKWISE_HOME', os.path.expanduser('~/.config'))) / APP_NAME
LOGS_DIR = APPDATA_DIR / "logs"

# Logging Configuration
LOG_FILE = LOGS_DIR / "chunkwise.log"
LOG_FORMAT = "[%(levelname)s %(asctime)s] %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

# Tokenization
# cl100k_base matches the GPT-4 family; only used for sizing decisions
DEFAULT_ENCODING = "cl100k_base"

# Summarization Defaults
DEFAULT_ANNOTATION_FIELD = "summary"
DEFAULT_ANNOTATION_FIELD_DELTA = "summary_delta"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_CHUNK_GROUP_NAME = "pages"
DEFAULT_SOURCES_GROUP_NAME = "sources"

# Budget-aware generation: average tokens per English word
DEFAULT_TOKENS_PER_WORD = 1.33

# Structured output repair loop (used when a request opts in)
DEFAULT_REPAIR_ATTEMPTS = 3

# Job Execution
# Independent jobs may run concurrently; chunks within a job never do.
JOB_MAX_WORKERS = min(os.cpu_count() or 4, 4)

# AI Model Configuration (Ollama chat adapter)
OLLAMA_API_BASE = os.environ.get('OLLAMA_API_BASE', "http://localhost:11434")
OLLAMA_MODEL_NAME = os.environ.get('OLLAMA_MODEL', "gemma3:1b")
OLLAMA_TIMEOUT_SECONDS = int(os.environ.get('OLLAMA_TIMEOUT_SECONDS', "600"))
OLLAMA_CONTEXT_WINDOW = int(os.environ.get('OLLAMA_CONTEXT_WINDOW', "8192"))

# --- Summarizer YAML configuration ---
SUMMARIZER_CONFIG_FILE = Path(__file__).parent.parent / "config" / "summarizer.yaml"

_DEFAULT_SUMMARIZER_CONFIG = {
    'tokenization': {
        'encoding': DEFAULT_ENCODING,
    },
    'summarization': {
        'annotation_field': DEFAULT_ANNOTATION_FIELD,
        'annotation_field_delta': DEFAULT_ANNOTATION_FIELD_DELTA,
        'temperature': DEFAULT_TEMPERATURE,
        'tokens_per_word': DEFAULT_TOKENS_PER_WORD,
        'repair_attempts': DEFAULT_REPAIR_ATTEMPTS,
    },
    'jobs': {
        'max_workers': JOB_MAX_WORKERS,
    },
    'ollama': {
        'api_base': OLLAMA_API_BASE,
        'model': OLLAMA_MODEL_NAME,
        'timeout_seconds': OLLAMA_TIMEOUT_SECONDS,
        'context_window': OLLAMA_CONTEXT_WINDOW,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Return a copy of base with override's keys merged in recursively."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_summarizer_config(config_path: Path = None) -> dict:
    """
    Load summarizer settings from YAML, falling back to built-in defaults.

    Values present in the file override the defaults section by section;
    anything missing keeps its default.

    Args:
        config_path: Path to summarizer.yaml. If None, uses the repo default.

    Returns:
        Configuration dictionary with 'tokenization', 'summarization',
        'jobs' and 'ollama' sections.
    """
    if config_path is None:
        config_path = SUMMARIZER_CONFIG_FILE

    try:
        with open(config_path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        if DEBUG_MODE:
            from chunkwise.logging_config import debug_log
            debug_log(f"[Config] Summarizer config not found at {config_path}. Using defaults.")
        return copy.deepcopy(_DEFAULT_SUMMARIZER_CONFIG)
    except yaml.YAMLError as e:
        from chunkwise.logging_config import warning
        warning(f"[Config] Failed to parse {config_path}: {e}. Using defaults.")
        return copy.deepcopy(_DEFAULT_SUMMARIZER_CONFIG)

    if not isinstance(data, dict):
        from chunkwise.logging_config import warning
        warning(f"[Config] {config_path} does not contain a mapping. Using defaults.")
        return copy.deepcopy(_DEFAULT_SUMMARIZER_CONFIG)

    return _deep_merge(_DEFAULT_SUMMARIZER_CONFIG, data)
