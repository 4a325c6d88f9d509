import runpy
from pathlib import Path

from click.testing import CliRunner

from kiln import __version__
from kiln.cli import cli


def create_site(tmp_path: Path) -> Path:
    site = tmp_path / "site"
    (site / "_layouts").mkdir(parents=True)
    (site / "_posts").mkdir()
    (site / "_config.yml").write_text(
        "url: https://example.com\npermalink: /blog/:title/\n", encoding="utf-8"
    )
    (site / "_layouts" / "default.html").write_text(
        "<body>{{ content }}</body>", encoding="utf-8"
    )
    (site / "index.md").write_text("# Home\n", encoding="utf-8")
    (site / "_posts" / "2021-03-07-folds.md").write_text(
        "---\ntitle: Folding\n---\nFolds.\n", encoding="utf-8"
    )
    return site


def test_build_command_writes_site(tmp_path):
    site = create_site(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, ["build", "--source", str(site)], catch_exceptions=False)
    assert result.exit_code == 0, result.output
    assert "Built 2 pages" in result.output
    assert (site / "_site" / "blog" / "folding" / "index.html").exists()
    assert (site / "_site" / "sitemap.xml").exists()


def test_build_command_options(tmp_path):
    site = create_site(tmp_path)
    (site / "_drafts").mkdir()
    (site / "_drafts" / "ideas.md").write_text("---\ntitle: Ideas\n---\nx", encoding="utf-8")
    out = tmp_path / "public"
    runner = CliRunner()
    result = runner.invoke(
        cli,
        [
            "build",
            "-s",
            str(site),
            "-d",
            str(out),
            "--drafts",
            "--jobs",
            "2",
            "--url",
            "https://school.example/",
            "-v",
        ],
        catch_exceptions=False,
    )
    assert result.exit_code == 0, result.output
    assert (out / "blog" / "ideas" / "index.html").exists()
    sitemap = (out / "sitemap.xml").read_text(encoding="utf-8")
    assert "<loc>https://school.example/blog/folding/</loc>" in sitemap


def test_build_command_uses_explicit_config(tmp_path):
    site = create_site(tmp_path)
    config = tmp_path / "staging.yml"
    config.write_text("permalink: /posts/:title/\n", encoding="utf-8")
    runner = CliRunner()
    result = runner.invoke(cli, ["build", "-s", str(site), "--config", str(config)])
    assert result.exit_code == 0, result.output
    assert (site / "_site" / "posts" / "folding" / "index.html").exists()


def test_build_command_reports_render_errors(tmp_path):
    site = create_site(tmp_path)
    (site / "broken.md").write_text("```\nnever closed\n", encoding="utf-8")
    runner = CliRunner()
    result = runner.invoke(cli, ["build", "-s", str(site)])
    assert result.exit_code == 1
    assert "1 error(s)" in result.output
    assert "RenderError in broken.md" in result.output
    assert "Unterminated code fence opened on line 1" in result.output
    assert (site / "_site" / "index.html").exists()


def test_build_command_fails_on_bad_config(tmp_path):
    site = create_site(tmp_path)
    (site / "_config.yml").write_text("permalink: [oops\n", encoding="utf-8")
    runner = CliRunner()
    result = runner.invoke(cli, ["build", "-s", str(site)])
    assert result.exit_code == 1
    assert "Build failed" in result.output
    assert "ConfigParseError in _config.yml" in result.output
    assert not (site / "_site").exists()


def test_build_command_reports_impossible_config_date(tmp_path):
    site = create_site(tmp_path)
    (site / "_config.yml").write_text("built: 2021-13-45\n", encoding="utf-8")
    runner = CliRunner()
    result = runner.invoke(cli, ["build", "-s", str(site)])
    assert result.exit_code == 1
    assert "ConfigParseError in _config.yml" in result.output


def test_build_command_rejects_bad_jobs(tmp_path):
    site = create_site(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, ["build", "-s", str(site), "--jobs", "0"])
    assert result.exit_code == 2


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert f"kiln, version {__version__}" in result.output


def test_module_main_entrypoint(monkeypatch):
    called = {}
    monkeypatch.setattr("kiln.cli.main", lambda: called.setdefault("main", True))
    runpy.run_module("kiln.__main__", run_name="__main__")
    assert called["main"] is True
