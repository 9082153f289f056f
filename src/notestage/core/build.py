"""Static site build.

Loads the content tree, resolves the rewrite table once, then renders every
document independently. A document that cannot be loaded, rendered or
written is recorded in the report and the build moves on to the next one.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from notestage.config import Config
from notestage.core.cache import FileCache
from notestage.core.content import ContentFile, list_content_paths, load_content_file, scan_content
from notestage.core.permalinks import RewriteTable, output_path_for, resolve_permalinks
from notestage.core.renderer import PageRenderer
from notestage.core.types import ServedPath, SourcePath

logger = logging.getLogger(__name__)

REWRITES_FILENAME = "rewrites.json"


@dataclass
class DocumentResult:
    """Outcome of building one document."""

    source_path: SourcePath
    served_path: ServedPath
    output_path: Path | None = None
    error: str | None = None
    from_cache: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BuildReport:
    """Per-document results of a build."""

    rewrites: RewriteTable
    documents: list[DocumentResult]

    @property
    def succeeded(self) -> list[DocumentResult]:
        return [d for d in self.documents if d.ok]

    @property
    def failed(self) -> list[DocumentResult]:
        return [d for d in self.documents if not d.ok]

    @property
    def ok(self) -> bool:
        return not self.failed


def _describe(error: Exception) -> str:
    return f"{type(error).__name__}: {error}"


class SiteBuilder:
    """Builds every document of a content tree into an output directory."""

    def __init__(self, config: Config) -> None:
        self._config = config
        cache = FileCache(config.docs.cache_dir) if config.docs.cache_enabled else None
        self._renderer = PageRenderer.from_config(config, cache)

    @property
    def renderer(self) -> PageRenderer:
        return self._renderer

    def resolve(self) -> RewriteTable:
        """Scan content and resolve the rewrite table.

        Any unreadable file fails the whole resolution.

        Raises:
            FileNotFoundError: If the source directory doesn't exist
            FrontMatterError: If a file has invalid front-matter
            PermalinkCollisionError: If served paths collide under the "error" policy
        """
        files = scan_content(self._config.docs.source_dir)
        return resolve_permalinks(files, on_collision=self._config.routing.on_collision)

    def build(self) -> BuildReport:
        """Render all documents and write them to the output directory.

        Files that fail to load are reported as failed documents and left out
        of the rewrite table.

        Returns:
            BuildReport with one DocumentResult per content file, sorted by source path

        Raises:
            FileNotFoundError: If the source directory doesn't exist
            PermalinkCollisionError: If served paths collide under the "error" policy
        """
        files, documents = self._load_each()
        rewrites = resolve_permalinks(files, on_collision=self._config.routing.on_collision)
        out_dir = self._config.docs.out_dir

        for content in files:
            served = rewrites[content.source_path]
            document = DocumentResult(source_path=content.source_path, served_path=served)
            documents.append(document)
            try:
                target = out_dir / output_path_for(served)
                result = self._renderer.render(content)
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(result.html, encoding="utf-8")
            except Exception as e:
                logger.error(f"Failed to build {content.source_path}: {e}")
                document.error = _describe(e)
                continue

            document.output_path = target
            document.from_cache = result.from_cache
            document.warnings = result.warnings
            for warning in result.warnings:
                logger.warning(f"{content.source_path}: {warning}")

        out_dir.mkdir(parents=True, exist_ok=True)
        (out_dir / REWRITES_FILENAME).write_text(
            json.dumps(rewrites.to_dict(), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

        documents.sort(key=lambda d: d.source_path)
        report = BuildReport(rewrites=rewrites, documents=documents)
        logger.info(f"Built {len(report.succeeded)} documents, {len(report.failed)} failed")
        return report

    def _load_each(self) -> tuple[list[ContentFile], list[DocumentResult]]:
        """Load content files one by one, collecting load failures."""
        source_dir = self._config.docs.source_dir
        files: list[ContentFile] = []
        failures: list[DocumentResult] = []
        for path in list_content_paths(source_dir):
            try:
                files.append(load_content_file(source_dir, path))
            except (ValueError, OSError) as e:
                source_path = SourcePath(path.relative_to(source_dir).as_posix())
                logger.error(f"Failed to load {source_path}: {e}")
                failures.append(
                    DocumentResult(
                        source_path=source_path,
                        served_path=ServedPath(source_path),
                        error=_describe(e),
                    )
                )
        return files, failures
