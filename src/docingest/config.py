"""docingest configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (DOCINGEST_*, provider API keys)
  3. Per-project docingest.yaml  (working directory)
  4. Global ~/.docingest/config.yaml  (non-secret defaults only)
  5. Hardcoded defaults

Secrets (store credential, embedding API key) are only ever read from the
environment. Global config must never contain them.
All YAML reads use yaml.safe_load(), never yaml.load().

The loaded ``ServiceConfig`` is built once at process start and passed by
parameter; nothing below the CLI / app factory reads ``os.environ``.
"""

from __future__ import annotations

import importlib.metadata
import os
import re
import warnings
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from docingest.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".docingest"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "docingest.yaml"

ENV_STORE_URL = "DOCINGEST_STORE_URL"
ENV_STORE_KEY = "DOCINGEST_STORE_KEY"
ENV_EMBEDDING_MODEL = "DOCINGEST_EMBEDDING_MODEL"
ENV_CHUNK_SIZE = "DOCINGEST_CHUNK_SIZE"

# Fields that suggest a secret; forbidden in any config file.
# Does NOT match legitimate keys like max_chars, max_bytes, chunk_size.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|^key$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["store", "embedding", "chunking", "extraction", "fetch", "service"]
)

# Provider prefix → env var holding its API key. None = no key required.
PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "ollama": None,
}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ConfigurationError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class StoreCfg:
    """Chunk store location and credential (docingest.yaml: store:).

    Attributes:
        url: ``sqlite:///path/to.db`` or a bare filesystem path.
        key: Store credential. Environment only (DOCINGEST_STORE_KEY).
    """

    url: str = ""
    key: str = field(default="", repr=False)


@dataclass
class EmbeddingCfg:
    """Embedding service configuration (docingest.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    workers: int = 1
    max_input_chars: int = 8_000
    api_key: str = field(default="", repr=False)

    @property
    def provider(self) -> str:
        return self.model.split("/")[0].lower() if "/" in self.model else "openai"

    @property
    def api_key_env(self) -> str | None:
        """Env var that holds the key for this model's provider (None = keyless)."""
        if self.provider in PROVIDER_ENV:
            return PROVIDER_ENV[self.provider]
        return f"{self.provider.upper()}_API_KEY"


@dataclass
class ChunkingCfg:
    """Sentence chunker settings (docingest.yaml: chunking:)."""

    chunk_size: int = 1_000


@dataclass
class ExtractionCfg:
    """Text extraction settings (docingest.yaml: extraction:)."""

    max_chars: int = 10_000


@dataclass
class FetchCfg:
    """Source download limits (docingest.yaml: fetch:)."""

    timeout: int = 30
    max_bytes: int = 20 * 1024 * 1024
    max_redirects: int = 3
    block_private_hosts: bool = True


@dataclass
class HttpCfg:
    """HTTP service settings (docingest.yaml: service:)."""

    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"


@dataclass
class ServiceConfig:
    """Root configuration object, built by load_config() from merged layers."""

    store: StoreCfg = field(default_factory=StoreCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    extraction: ExtractionCfg = field(default_factory=ExtractionCfg)
    fetch: FetchCfg = field(default_factory=FetchCfg)
    service: HttpCfg = field(default_factory=HttpCfg)

    def missing_credentials(self) -> list[str]:
        """Return the names of required settings that are empty."""
        missing: list[str] = []
        if not self.store.url:
            missing.append(ENV_STORE_URL)
        if not self.store.key:
            missing.append(ENV_STORE_KEY)
        key_env = self.embedding.api_key_env
        if key_env is not None and not self.embedding.api_key:
            missing.append(key_env)
        return missing

    def require_store(self) -> None:
        """Raise ConfigurationError unless the store URL and credential are set."""
        missing = [n for n in self.missing_credentials() if n in (ENV_STORE_URL, ENV_STORE_KEY)]
        if missing:
            raise ConfigurationError(
                "Missing required configuration: " + ", ".join(missing)
            )

    def require_credentials(self) -> None:
        """Raise ConfigurationError naming every missing required setting."""
        missing = self.missing_credentials()
        if missing:
            raise ConfigurationError(
                "Missing required configuration: " + ", ".join(missing)
            )


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any secret-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Config file '{source}' contains a forbidden key '{full}'.\n"
                        f"  Secrets must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name}."
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' (ignored).",
                UserWarning,
                stacklevel=4,
            )


def _positive_int(value: Any, name: str, minimum: int = 1) -> int:
    try:
        result = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc
    if result < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {result}")
    return result


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data[name] or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping, got {section!r}")
    return section


def _read_yaml(path: Path) -> dict[str, Any]:
    """Parse *path* as a YAML mapping. An empty file yields {}."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file '{path}' is not valid YAML: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read config file '{path}': {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config file '{path}' must contain a mapping at the top level, "
            f"got {type(data).__name__}"
        )
    return data


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> ServiceConfig:
    """Build a *ServiceConfig* from a merged raw YAML dict."""
    cfg = ServiceConfig()

    if "store" in data:
        s = _section(data, "store")
        cfg.store = StoreCfg(url=str(s.get("url", cfg.store.url) or ""))

    if "embedding" in data:
        e = _section(data, "embedding")
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=_positive_int(
                e.get("dimensions", cfg.embedding.dimensions), "embedding.dimensions"
            ),
            workers=_positive_int(e.get("workers", cfg.embedding.workers), "embedding.workers"),
            max_input_chars=_positive_int(
                e.get("max_input_chars", cfg.embedding.max_input_chars),
                "embedding.max_input_chars",
            ),
        )

    if "chunking" in data:
        c = _section(data, "chunking")
        cfg.chunking = ChunkingCfg(
            chunk_size=_positive_int(
                c.get("chunk_size", cfg.chunking.chunk_size), "chunking.chunk_size"
            ),
        )

    if "extraction" in data:
        x = _section(data, "extraction")
        cfg.extraction = ExtractionCfg(
            max_chars=_positive_int(
                x.get("max_chars", cfg.extraction.max_chars), "extraction.max_chars"
            ),
        )

    if "fetch" in data:
        f = _section(data, "fetch")
        cfg.fetch = FetchCfg(
            timeout=_positive_int(f.get("timeout", cfg.fetch.timeout), "fetch.timeout"),
            max_bytes=_positive_int(f.get("max_bytes", cfg.fetch.max_bytes), "fetch.max_bytes"),
            max_redirects=_positive_int(
                f.get("max_redirects", cfg.fetch.max_redirects), "fetch.max_redirects", minimum=0
            ),
            block_private_hosts=_as_bool(
                f.get("block_private_hosts", cfg.fetch.block_private_hosts)
            ),
        )

    if "service" in data:
        h = _section(data, "service")
        origins = h.get("cors_origins", cfg.service.cors_origins)
        if isinstance(origins, str):
            origins = [o.strip() for o in origins.split(",") if o.strip()]
        cfg.service = HttpCfg(
            host=str(h.get("host", cfg.service.host)),
            port=_positive_int(h.get("port", cfg.service.port), "service.port"),
            cors_origins=list(origins),
            log_level=str(h.get("log_level", cfg.service.log_level)).upper(),
        )

    return cfg


def _apply_env_overrides(cfg: ServiceConfig, environ: Mapping[str, str]) -> ServiceConfig:
    """Apply DOCINGEST_* overrides and pick up secrets (layer 2)."""
    if url := environ.get(ENV_STORE_URL):
        cfg.store.url = url
    if model := environ.get(ENV_EMBEDDING_MODEL):
        cfg.embedding.model = model
    if size := environ.get(ENV_CHUNK_SIZE):
        cfg.chunking.chunk_size = _positive_int(size, ENV_CHUNK_SIZE)

    cfg.store.key = environ.get(ENV_STORE_KEY, "")
    key_env = cfg.embedding.api_key_env
    cfg.embedding.api_key = environ.get(key_env, "") if key_env else ""
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> ServiceConfig:
    """Load and return a merged *ServiceConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *docingest.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).
        environ: Environment mapping to read. Defaults to ``os.environ``.

    Returns:
        Fully merged *ServiceConfig*. Credentials are NOT validated here;
        call ``require_credentials()`` before starting a run.

    Raises:
        ConfigError: If a config file is not a readable YAML mapping or holds
            secret-like fields, or if a numeric setting is invalid.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()
    env = environ if environ is not None else os.environ

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _check_no_api_keys(raw_project, project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    return _apply_env_overrides(cfg, env)


def package_version() -> str:
    """Return the installed docingest version, or "dev" from a source checkout."""
    try:
        return importlib.metadata.version("docingest")
    except importlib.metadata.PackageNotFoundError:
        return "dev"
