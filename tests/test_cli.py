"""Tests for CLI commands."""

import json
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner
from notestage.cli import cli


def _write_site(tmp_path: Path) -> Path:
    """Create a config file and a small content tree."""
    docs = tmp_path / "docs"
    (docs / "guide").mkdir(parents=True)
    (docs / "index.md").write_text("# Home\n")
    (docs / "guide" / "intro.md").write_text("---\npermalink: /pages/intro/\n---\n# Intro\n")
    config_file = tmp_path / "notestage.toml"
    config_file.write_text('[docs]\nsource_dir = "docs"\nout_dir = "dist"\n')
    return config_file


class TestBuildCommand:
    """Tests for the build command."""

    def test__builds_site(self, tmp_path: Path) -> None:
        config_file = _write_site(tmp_path)

        result = CliRunner().invoke(cli, ["build", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Built 2 documents (0 from cache)" in result.output
        assert "Build complete!" in result.output
        assert (tmp_path / "dist" / "pages" / "intro" / "index.html").exists()
        assert (tmp_path / "dist" / "rewrites.json").exists()

    def test__out_dir_override(self, tmp_path: Path) -> None:
        config_file = _write_site(tmp_path)
        out_dir = tmp_path / "public"

        result = CliRunner().invoke(
            cli, ["build", "-c", str(config_file), "-o", str(out_dir), "--no-cache"]
        )

        assert result.exit_code == 0, result.output
        assert (out_dir / "index.html").exists()
        assert not (tmp_path / ".cache").exists()

    def test__failed_document__exit_code_1(self, tmp_path: Path) -> None:
        config_file = _write_site(tmp_path)
        config_file.write_text(
            '[docs]\nsource_dir = "docs"\nout_dir = "dist"\n\n[markdown]\nmax_nesting = 1\n'
        )
        deep = "````md render\n```md render\nx\n```\n````\n"
        (tmp_path / "docs" / "deep.md").write_text(deep)

        result = CliRunner().invoke(cli, ["build", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "1 document(s) failed" in result.output
        assert "deep.md: NestedFenceError" in result.output

    def test__unloadable_file__others_built(self, tmp_path: Path) -> None:
        config_file = _write_site(tmp_path)
        (tmp_path / "docs" / "broken.md").write_text("---\ntitle: [unclosed\n---\n")

        result = CliRunner().invoke(cli, ["build", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "1 document(s) failed" in result.output
        assert "broken.md: FrontMatterError" in result.output
        assert (tmp_path / "dist" / "index.html").exists()

    def test__collision__reports_error(self, tmp_path: Path) -> None:
        config_file = _write_site(tmp_path)
        (tmp_path / "docs" / "other.md").write_text("---\npermalink: pages/intro\n---\n")

        result = CliRunner().invoke(cli, ["build", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "Permalink collision" in result.output

    def test__invalid_config__reports_error(self, tmp_path: Path) -> None:
        config_file = tmp_path / "notestage.toml"
        config_file.write_text('[routing]\non_collision = "maybe"\n')

        result = CliRunner().invoke(cli, ["build", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "Error: routing.on_collision" in result.output


class TestRoutesCommand:
    """Tests for the routes command."""

    def test__plain_output(self, tmp_path: Path) -> None:
        config_file = _write_site(tmp_path)

        result = CliRunner().invoke(cli, ["routes", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == ["guide/intro.md -> /pages/intro/", "index.md"]

    def test__json_output(self, tmp_path: Path) -> None:
        config_file = _write_site(tmp_path)

        result = CliRunner().invoke(cli, ["routes", "-c", str(config_file), "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {
            "guide/intro.md": "/pages/intro/",
            "index.md": "index.md",
        }


class TestServeCommand:
    def test__starts_server_with_overrides(self, tmp_path: Path) -> None:
        config_file = _write_site(tmp_path)

        with patch("notestage.server.run_server") as mock_run:
            result = CliRunner().invoke(
                cli, ["serve", "-c", str(config_file), "--host", "0.0.0.0", "-p", "9000"]
            )

        assert result.exit_code == 0, result.output
        assert "Starting server on 0.0.0.0:9000" in result.output
        assert "Diagram rendering: client-side" in result.output
        config = mock_run.call_args[0][0]
        assert config.server.port == 9000
