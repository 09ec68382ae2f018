"""
Configuration Management for Mindloom

Loads configuration from ~/.mindloom/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("mindloom.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".mindloom"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOGS_DIR = CONFIG_DIR / "logs"
DATA_DIR = CONFIG_DIR / "data"


@dataclass
class LLMConfig:
    """Text-generation provider configuration"""
    provider: str = "openai"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    anthropic_fast_model: str = "claude-haiku-4-5-20251001"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    openai_fast_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"
    google_fast_model: str = ""

    @property
    def api_key(self) -> str:
        return getattr(self, f"{self.provider}_api_key", "")

    @property
    def model(self) -> str:
        return getattr(self, f"{self.provider}_model", "")

    @property
    def fast_model(self) -> str:
        """Model used for cheap extraction calls; falls back to the main model."""
        return getattr(self, f"{self.provider}_fast_model", "") or self.model


@dataclass
class KnowledgeConfig:
    """Knowledge retrieval configuration"""
    encyclopedia_endpoint: str = "https://en.wikipedia.org/api/rest_v1/page/summary/"
    web_search_provider: str = "placeholder"  # "placeholder" or "duckduckgo"
    web_search_endpoint: str = "https://api.duckduckgo.com/"
    web_topk: int = 3
    insight_confidence: float = 0.8
    request_timeout: float = 10.0
    expansion_depth: int = 1
    expansion_fanout: int = 3


@dataclass
class OrchestratorConfig:
    """Orchestration loop configuration"""
    poll_interval: float = 1.0
    llm_timeout: float = 60.0
    queue_path: str = ""  # empty → <store_dir>/queue.json
    store_dir: str = ""  # empty → DATA_DIR
    knowledge_context_limit: int = 5
    in_memory: bool = False  # keep queue and stores in memory only


@dataclass
class ServerConfig:
    """HTTP shell configuration"""
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"


@dataclass
class MindloomConfig:
    """Main Mindloom configuration"""
    llm: LLMConfig = field(default_factory=LLMConfig)
    knowledge: KnowledgeConfig = field(default_factory=KnowledgeConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    defaults = LLMConfig()
    return LLMConfig(
        provider=llm_data.get("provider", defaults.provider),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", defaults.anthropic_model),
        anthropic_fast_model=llm_data.get("anthropic_fast_model", defaults.anthropic_fast_model),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", defaults.openai_model),
        openai_fast_model=llm_data.get("openai_fast_model", defaults.openai_fast_model),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", defaults.google_model),
        google_fast_model=llm_data.get("google_fast_model", ""),
    )


def _parse_knowledge_config(data: dict) -> KnowledgeConfig:
    """Parse knowledge section from config dict"""
    knowledge_data = data.get("knowledge", {})
    defaults = KnowledgeConfig()
    return KnowledgeConfig(
        encyclopedia_endpoint=knowledge_data.get("encyclopedia_endpoint", defaults.encyclopedia_endpoint),
        web_search_provider=knowledge_data.get("web_search_provider", defaults.web_search_provider),
        web_search_endpoint=knowledge_data.get("web_search_endpoint", defaults.web_search_endpoint),
        web_topk=knowledge_data.get("web_topk", defaults.web_topk),
        insight_confidence=knowledge_data.get("insight_confidence", defaults.insight_confidence),
        request_timeout=knowledge_data.get("request_timeout", defaults.request_timeout),
        expansion_depth=knowledge_data.get("expansion_depth", defaults.expansion_depth),
        expansion_fanout=knowledge_data.get("expansion_fanout", defaults.expansion_fanout),
    )


def _parse_orchestrator_config(data: dict) -> OrchestratorConfig:
    """Parse orchestrator section from config dict"""
    orch_data = data.get("orchestrator", {})
    defaults = OrchestratorConfig()
    return OrchestratorConfig(
        poll_interval=orch_data.get("poll_interval", defaults.poll_interval),
        llm_timeout=orch_data.get("llm_timeout", defaults.llm_timeout),
        queue_path=orch_data.get("queue_path", ""),
        store_dir=orch_data.get("store_dir", ""),
        knowledge_context_limit=orch_data.get("knowledge_context_limit", defaults.knowledge_context_limit),
        in_memory=orch_data.get("in_memory", defaults.in_memory),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    defaults = ServerConfig()
    return ServerConfig(
        host=server_data.get("host", defaults.host),
        port=server_data.get("port", defaults.port),
        log_level=server_data.get("log_level", defaults.log_level),
    )


def load_config() -> MindloomConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.mindloom/config.json)
    3. Default values
    """
    config = MindloomConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.llm = _parse_llm_config(data)
            config.knowledge = _parse_knowledge_config(data)
            config.orchestrator = _parse_orchestrator_config(data)
            config.server = _parse_server_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    # LLM env var overrides (track env-sourced keys)
    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "MINDLOOM_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("MINDLOOM_WEB_SEARCH"):
        config.knowledge.web_search_provider = os.getenv("MINDLOOM_WEB_SEARCH")
    if os.getenv("MINDLOOM_POLL_INTERVAL"):
        config.orchestrator.poll_interval = float(os.getenv("MINDLOOM_POLL_INTERVAL"))
    if os.getenv("MINDLOOM_LLM_TIMEOUT"):
        config.orchestrator.llm_timeout = float(os.getenv("MINDLOOM_LLM_TIMEOUT"))
    if os.getenv("MINDLOOM_QUEUE_PATH"):
        config.orchestrator.queue_path = os.getenv("MINDLOOM_QUEUE_PATH")
    if os.getenv("MINDLOOM_STORE_DIR"):
        config.orchestrator.store_dir = os.getenv("MINDLOOM_STORE_DIR")
    if os.getenv("MINDLOOM_IN_MEMORY"):
        config.orchestrator.in_memory = os.getenv("MINDLOOM_IN_MEMORY").lower() in ("1", "true", "yes")

    if os.getenv("MINDLOOM_HOST"):
        config.server.host = os.getenv("MINDLOOM_HOST")
    if os.getenv("MINDLOOM_PORT"):
        config.server.port = int(os.getenv("MINDLOOM_PORT"))
    if os.getenv("MINDLOOM_LOG_LEVEL"):
        config.server.log_level = os.getenv("MINDLOOM_LOG_LEVEL")

    return config


def save_config(config: MindloomConfig) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "anthropic_fast_model": config.llm.anthropic_fast_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "openai_fast_model": config.llm.openai_fast_model,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
        "google_fast_model": config.llm.google_fast_model,
    }
    for key in ("anthropic_api_key", "openai_api_key", "google_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "llm": llm_section,
        "knowledge": {
            "encyclopedia_endpoint": config.knowledge.encyclopedia_endpoint,
            "web_search_provider": config.knowledge.web_search_provider,
            "web_search_endpoint": config.knowledge.web_search_endpoint,
            "web_topk": config.knowledge.web_topk,
            "insight_confidence": config.knowledge.insight_confidence,
            "request_timeout": config.knowledge.request_timeout,
            "expansion_depth": config.knowledge.expansion_depth,
            "expansion_fanout": config.knowledge.expansion_fanout,
        },
        "orchestrator": {
            "poll_interval": config.orchestrator.poll_interval,
            "llm_timeout": config.orchestrator.llm_timeout,
            "queue_path": config.orchestrator.queue_path,
            "store_dir": config.orchestrator.store_dir,
            "knowledge_context_limit": config.orchestrator.knowledge_context_limit,
            "in_memory": config.orchestrator.in_memory,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
            "log_level": config.server.log_level,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    DATA_DIR.mkdir(parents=True, exist_ok=True)
