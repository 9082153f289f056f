"""Configuration management for Notestage.

Supports TOML configuration format with auto-discovery.
"""

import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path

CONFIG_FILENAME = "notestage.toml"

COLLISION_POLICIES = ("error", "warn")

DEFAULT_CONTAINER_LABELS = {
    "tip": "提示",
    "info": "相关信息",
    "warning": "注意",
    "danger": "警告",
    "details": "详细信息",
}


@dataclass
class ServerConfig:
    """Preview server configuration."""

    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class DocsConfig:
    """Content and output directories."""

    source_dir: Path = field(default_factory=lambda: Path("docs"))
    out_dir: Path = field(default_factory=lambda: Path("dist"))
    cache_dir: Path = field(default_factory=lambda: Path(".cache"))
    cache_enabled: bool = True


@dataclass
class DiagramsConfig:
    """Diagram rendering configuration."""

    kroki_url: str | None = None
    format: str = "svg"
    dpi: int = 192


@dataclass
class MarkdownConfig:
    """Markdown transform pipeline configuration."""

    home_page: str = "index.md"
    metadata_placeholder: str = "<ArticleMetadata />"
    nested_fence_marker: str = "render"
    max_nesting: int = 4


@dataclass
class RoutingConfig:
    """Permalink routing configuration."""

    on_collision: str = "error"


@dataclass
class LocalesConfig:
    """Locale configuration.

    The root locale has no path prefix. Documents under one of ``prefixes``
    belong to that locale and keep the engine's default container labels.
    """

    prefixes: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_CONTAINER_LABELS))


@dataclass
class Config:
    """Application configuration."""

    server: ServerConfig
    docs: DocsConfig
    diagrams: DiagramsConfig
    markdown: MarkdownConfig
    routing: RoutingConfig
    locales: LocalesConfig
    config_path: Path | None = None

    @classmethod
    def load(cls, config_path: Path | None = None) -> "Config":
        """Load configuration from file.

        If config_path is provided, loads from that file.
        Otherwise, searches for notestage.toml in current directory and parents.

        Args:
            config_path: Optional explicit path to config file

        Returns:
            Config instance with defaults for missing sections

        Raises:
            FileNotFoundError: If explicit config_path doesn't exist
            ValueError: If configuration is invalid
        """
        if config_path is not None:
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return cls._load_from_file(config_path)

        discovered_path = cls._discover_config()
        if discovered_path is None:
            return cls.default()

        return cls._load_from_file(discovered_path)

    @classmethod
    def _discover_config(cls) -> Path | None:
        """Search for config file in current directory and parents."""
        current = Path.cwd()
        while True:
            candidate = current / CONFIG_FILENAME
            if candidate.exists():
                return candidate
            parent = current.parent
            if parent == current:
                return None
            current = parent

    @classmethod
    def default(cls) -> "Config":
        """Create config with all defaults."""
        return cls(
            server=ServerConfig(),
            docs=DocsConfig(),
            diagrams=DiagramsConfig(),
            markdown=MarkdownConfig(),
            routing=RoutingConfig(),
            locales=LocalesConfig(),
        )

    @classmethod
    def _load_from_file(cls, path: Path) -> "Config":
        """Load configuration from a specific file.

        Args:
            path: Path to TOML configuration file

        Returns:
            Config instance

        Raises:
            ValueError: If configuration is invalid
        """
        with path.open("rb") as f:
            data = tomllib.load(f)

        config_dir = path.parent

        return cls(
            server=cls._parse_server(data.get("server")),
            docs=cls._parse_docs(data.get("docs"), config_dir),
            diagrams=cls._parse_diagrams(data.get("diagrams")),
            markdown=cls._parse_markdown(data.get("markdown")),
            routing=cls._parse_routing(data.get("routing")),
            locales=cls._parse_locales(data.get("locales")),
            config_path=path,
        )

    @classmethod
    def _parse_server(cls, data: object) -> ServerConfig:
        if data is None:
            return ServerConfig()

        if not isinstance(data, dict):
            raise ValueError("server section must be a dictionary")

        host = data.get("host", "127.0.0.1")
        if not isinstance(host, str):
            raise ValueError("server.host must be a string")

        port = data.get("port", 8080)
        if not isinstance(port, int) or isinstance(port, bool):
            raise ValueError("server.port must be an integer")

        return ServerConfig(host=host, port=port)

    @classmethod
    def _parse_docs(cls, data: object, config_dir: Path) -> DocsConfig:
        """Parse docs configuration section.

        Args:
            data: Raw docs section data
            config_dir: Directory containing config file (for relative paths)

        Returns:
            DocsConfig instance
        """
        if data is None:
            return DocsConfig(
                source_dir=config_dir / "docs",
                out_dir=config_dir / "dist",
                cache_dir=config_dir / ".cache",
            )

        if not isinstance(data, dict):
            raise ValueError("docs section must be a dictionary")

        paths: dict[str, Path] = {}
        for key, default in (("source_dir", "docs"), ("out_dir", "dist"), ("cache_dir", ".cache")):
            value = data.get(key, default)
            if not isinstance(value, str):
                raise ValueError(f"docs.{key} must be a string")
            paths[key] = config_dir / value

        cache_enabled = data.get("cache_enabled", True)
        if not isinstance(cache_enabled, bool):
            raise ValueError("docs.cache_enabled must be a boolean")

        return DocsConfig(cache_enabled=cache_enabled, **paths)

    @classmethod
    def _parse_diagrams(cls, data: object) -> DiagramsConfig:
        if data is None:
            return DiagramsConfig()

        if not isinstance(data, dict):
            raise ValueError("diagrams section must be a dictionary")

        kroki_url = data.get("kroki_url")
        if kroki_url is not None and not isinstance(kroki_url, str):
            raise ValueError("diagrams.kroki_url must be a string")

        fmt = data.get("format", "svg")
        if fmt not in ("svg", "png"):
            raise ValueError("diagrams.format must be 'svg' or 'png'")

        dpi = data.get("dpi", 192)
        if not isinstance(dpi, int) or isinstance(dpi, bool):
            raise ValueError("diagrams.dpi must be an integer")

        return DiagramsConfig(kroki_url=kroki_url, format=fmt, dpi=dpi)

    @classmethod
    def _parse_markdown(cls, data: object) -> MarkdownConfig:
        """Parse markdown configuration section.

        Args:
            data: Raw markdown section data

        Returns:
            MarkdownConfig instance
        """
        if data is None:
            return MarkdownConfig()

        if not isinstance(data, dict):
            raise ValueError("markdown section must be a dictionary")

        defaults = MarkdownConfig()
        strings: dict[str, str] = {}
        for key in ("home_page", "metadata_placeholder", "nested_fence_marker"):
            value = data.get(key, getattr(defaults, key))
            if not isinstance(value, str):
                raise ValueError(f"markdown.{key} must be a string")
            strings[key] = value

        if not strings["nested_fence_marker"].strip():
            raise ValueError("markdown.nested_fence_marker must not be empty")

        max_nesting = data.get("max_nesting", defaults.max_nesting)
        if not isinstance(max_nesting, int) or isinstance(max_nesting, bool) or max_nesting < 1:
            raise ValueError("markdown.max_nesting must be a positive integer")

        return MarkdownConfig(max_nesting=max_nesting, **strings)

    @classmethod
    def _parse_routing(cls, data: object) -> RoutingConfig:
        if data is None:
            return RoutingConfig()

        if not isinstance(data, dict):
            raise ValueError("routing section must be a dictionary")

        on_collision = data.get("on_collision", "error")
        if on_collision not in COLLISION_POLICIES:
            raise ValueError(
                f"routing.on_collision must be one of: {', '.join(COLLISION_POLICIES)}"
            )

        return RoutingConfig(on_collision=on_collision)

    @classmethod
    def _parse_locales(cls, data: object) -> LocalesConfig:
        """Parse locales configuration section.

        Labels given in the file are merged over the default labels.

        Args:
            data: Raw locales section data

        Returns:
            LocalesConfig instance
        """
        if data is None:
            return LocalesConfig()

        if not isinstance(data, dict):
            raise ValueError("locales section must be a dictionary")

        prefixes_raw = data.get("prefixes", [])
        if not isinstance(prefixes_raw, list):
            raise ValueError("locales.prefixes must be a list")
        prefixes: list[str] = []
        for item in prefixes_raw:
            if not isinstance(item, str) or not item.strip("/"):
                raise ValueError("locales.prefixes items must be non-empty strings")
            prefixes.append(item.strip("/"))

        labels_raw = data.get("labels", {})
        if not isinstance(labels_raw, dict):
            raise ValueError("locales.labels must be a dictionary")
        labels = dict(DEFAULT_CONTAINER_LABELS)
        for kind, label in labels_raw.items():
            if not isinstance(label, str):
                raise ValueError(f"locales.labels.{kind} must be a string")
            labels[kind] = label

        return LocalesConfig(prefixes=prefixes, labels=labels)

    def with_overrides(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        source_dir: Path | None = None,
        out_dir: Path | None = None,
        cache_enabled: bool | None = None,
        kroki_url: str | None = None,
    ) -> "Config":
        """Create a new Config with CLI overrides applied.

        Only non-None values override the existing config. The original
        Config is not modified.

        Args:
            host: Override server.host
            port: Override server.port
            source_dir: Override docs.source_dir
            out_dir: Override docs.out_dir
            cache_enabled: Override docs.cache_enabled
            kroki_url: Override diagrams.kroki_url

        Returns:
            New Config instance with overrides applied
        """
        server = self.server
        if host is not None or port is not None:
            server = replace(
                self.server,
                host=host if host is not None else self.server.host,
                port=port if port is not None else self.server.port,
            )

        docs = self.docs
        if source_dir is not None or out_dir is not None or cache_enabled is not None:
            docs = replace(
                self.docs,
                source_dir=source_dir if source_dir is not None else self.docs.source_dir,
                out_dir=out_dir if out_dir is not None else self.docs.out_dir,
                cache_enabled=(
                    cache_enabled if cache_enabled is not None else self.docs.cache_enabled
                ),
            )

        diagrams = self.diagrams
        if kroki_url is not None:
            diagrams = replace(self.diagrams, kroki_url=kroki_url)

        return replace(self, server=server, docs=docs, diagrams=diagrams)
