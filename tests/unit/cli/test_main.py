"""Unit tests for the CLI entry point."""

from click.testing import CliRunner

from tsdual.cli.main import main


class TestMain:
    def test_lists_commands(self):
        result = CliRunner().invoke(main, ["--help"])

        assert result.exit_code == 0
        for command in ("split-types", "fix-import-dirs", "split-stars", "merge-package", "compile", "release",
                        "make-import-map"):
            assert command in result.output

    def test_dispatches_to_command(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "index.ts").write_text("export const a = 1\n")

        result = CliRunner().invoke(main, ["-v", "fix-import-dirs", "."])

        assert result.exit_code == 0
        assert "No modules needed changes" in result.output
