"""
Command Line Tests
"""

import json

import pytest

from sol2seq import cli
from sol2seq.errors import CompilationError

from .fixtures import STORE_SOURCE, VAULT_SOURCE, create_store_ast


@pytest.fixture
def ast_file(tmp_path):
    path = tmp_path / "store.json"
    path.write_text(json.dumps(create_store_ast()), encoding="utf-8")
    return path


class TestAstInput:

    def test_prints_to_stdout(self, ast_file, capsys):
        assert cli.main([str(ast_file)]) == 0
        out = capsys.readouterr().out
        assert out.startswith("%%{init: {")
        assert "User->>+Store: setValue(newValue: uint256)" in out

    def test_writes_output_file(self, ast_file, tmp_path, capsys):
        target = tmp_path / "diagram.mmd"
        assert cli.main([str(ast_file), str(target)]) == 0
        assert capsys.readouterr().out == "Sequence diagram generated successfully!\n"
        assert target.read_text(encoding="utf-8").startswith("%%{init: {")

    def test_markdown_output_is_fenced(self, ast_file, tmp_path):
        target = tmp_path / "diagram.md"
        assert cli.main([str(ast_file), str(target)]) == 0
        text = target.read_text(encoding="utf-8")
        assert text.startswith("```mermaid\n%%{init: {")
        assert text.endswith("\n```\n")

    def test_light_colors(self, ast_file, capsys):
        assert cli.main(["-l", str(ast_file)]) == 0
        assert "'primaryColor': '#fafbfc'" in capsys.readouterr().out

    def test_invalid_json(self, tmp_path, capsys):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        assert cli.main([str(path)]) == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err.startswith("error: ")
        assert "not valid JSON" in captured.err

    def test_malformed_document(self, tmp_path, capsys):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]", encoding="utf-8")
        assert cli.main([str(path)]) == 1
        assert "source unit #0 is not a JSON object" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        assert cli.main([str(tmp_path / "absent.json")]) == 1
        assert capsys.readouterr().err.startswith("error: ")

    def test_verbose_failure_prints_traceback(self, tmp_path, capsys):
        assert cli.main(["-v", str(tmp_path / "absent.json")]) == 1
        assert "Traceback" in capsys.readouterr().err


class TestSourceInput:

    def test_source_files(self, tmp_path, capsys):
        token = tmp_path / "Vault.sol"
        token.write_text(VAULT_SOURCE, encoding="utf-8")
        store = tmp_path / "Store.sol"
        store.write_text(STORE_SOURCE, encoding="utf-8")

        assert cli.main(["-s", str(token), str(store)]) == 0
        out = capsys.readouterr().out
        participants = [line.split()[1] for line in out.splitlines() if line.startswith("participant ")]
        assert participants == ["User", "IToken", "Token", "Vault", "Store", "Events"]

    def test_positional_names_the_output(self, tmp_path):
        source = tmp_path / "Store.sol"
        source.write_text(STORE_SOURCE, encoding="utf-8")
        target = tmp_path / "out.md"

        assert cli.main([str(target), "-s", str(source)]) == 0
        assert "User->>+Store: constructor()" in target.read_text(encoding="utf-8")

    def test_compile_feeds_the_ast(self, tmp_path, monkeypatch, capsys):
        source = tmp_path / "Store.sol"
        source.write_text(STORE_SOURCE, encoding="utf-8")
        calls = []

        def fake_compile(target, solc="", solc_args=""):
            calls.append((target, solc, solc_args))
            return create_store_ast()

        monkeypatch.setattr(cli, "compile_sources", fake_compile)
        assert cli.main(["-s", str(source), "--compile", "--solc", "solc-0.8.20", "--solc-args=--via-ir"]) == 0
        assert calls == [(str(source), "solc-0.8.20", "--via-ir")]
        assert "participant Store as" in capsys.readouterr().out

    def test_compile_failure(self, tmp_path, monkeypatch, capsys):
        def failing_compile(target, solc="", solc_args=""):
            raise CompilationError(f"Compilation of {target} failed: solc not found")

        monkeypatch.setattr(cli, "compile_sources", failing_compile)
        assert cli.main(["-s", "Missing.sol", "--compile"]) == 1
        assert "solc not found" in capsys.readouterr().err


class TestArguments:

    @pytest.mark.parametrize(
        "argv",
        [
            [],
            ["--compile", "store.json"],
            ["a.json", "b.md", "-s", "c.sol"],
        ],
    )
    def test_usage_errors(self, argv, capsys):
        with pytest.raises(SystemExit) as excinfo:
            cli.main(argv)
        assert excinfo.value.code == 2
        assert "usage:" in capsys.readouterr().err
