"""Integration tests for the redraft CLI."""

import pytest
from click.testing import CliRunner

from redraft.cli.main import cli
from redraft.services.version_store import VersionStore


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Isolated HOME, config file and document."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("REDRAFT_STORAGE_VERSIONS_DIR", raising=False)

    versions_dir = tmp_path / "versions"
    config_file = tmp_path / "config.yaml"
    config_file.write_text(f"""
llm:
  endpoint: http://localhost:11434/v1
  api_key: ollama

storage:
  versions_dir: {versions_dir}
""")

    document = tmp_path / "essay.md"
    document.write_text("# Intro\nIt was a long time ago.\n# Body\nThings happened.\n")

    return {"config": config_file, "document": document, "versions_dir": versions_dir}


@pytest.fixture
def fake_llm(monkeypatch, fake_streamer):
    """Replace the model client the CLI builds with a scripted one."""
    def _install(fragments, error=None):
        streamer = fake_streamer(fragments, error=error)
        monkeypatch.setattr("redraft.cli.main.LLMClient", lambda config: streamer)
        return streamer

    return _install


def run(workspace, *args, input=None):
    runner = CliRunner()
    return runner.invoke(cli, ["--config", str(workspace["config"]), *args], input=input, obj={})


class TestSectionsCommand:

    def test_lists_sections(self, workspace):
        result = run(workspace, "sections", str(workspace["document"]))

        assert result.exit_code == 0
        assert "Intro" in result.output
        assert "Body" in result.output

    def test_document_without_headings(self, workspace, tmp_path):
        plain = tmp_path / "plain.md"
        plain.write_text("just text\n")

        result = run(workspace, "sections", str(plain))

        assert result.exit_code == 0
        assert "No sections" in result.output


class TestEditCommand:

    def test_edit_with_yes_writes_file(self, workspace, fake_llm):
        fake_llm(["# Intro\n", "Long ago.\n"])

        result = run(workspace, "edit", str(workspace["document"]), "-i", "shorten this", "--yes")

        assert result.exit_code == 0, result.output
        assert "Long ago." in result.output
        assert workspace["document"].read_text() == "# Intro\nLong ago.\n"

    def test_edit_declined_leaves_file(self, workspace, fake_llm):
        original = workspace["document"].read_text()
        fake_llm(["Rewritten\n"])

        result = run(workspace, "edit", str(workspace["document"]), "-i", "rewrite", input="n\n")

        assert result.exit_code == 0
        assert "Edit rejected." in result.output
        assert workspace["document"].read_text() == original

    def test_edit_save_version_snapshots_original(self, workspace, fake_llm):
        original = workspace["document"].read_text()
        fake_llm(["Rewritten\n"])

        result = run(workspace, "edit", str(workspace["document"]), "-i", "rewrite", "--yes", "--save-version")

        assert result.exit_code == 0, result.output
        assert "Saved Version 1" in result.output
        store = VersionStore(workspace["versions_dir"])
        [meta] = store.list()
        assert store.get_content(meta.id) == original

    def test_section_edit_sends_targets(self, workspace, fake_llm):
        streamer = fake_llm(["# Intro\nShort.\n# Body\nThings happened.\n"])

        result = run(workspace, "edit", str(workspace["document"]), "-i", "tighten", "-s", "Intro", "--yes")

        assert result.exit_code == 0, result.output
        assert 'Section "Intro"' in streamer.calls[0]["prompt"]

    def test_repeated_section_targets_once(self, workspace, fake_llm):
        streamer = fake_llm(["# Intro\nShort.\n# Body\nThings happened.\n"])

        result = run(
            workspace, "edit", str(workspace["document"]), "-i", "tighten", "-s", "Intro", "-s", "Intro", "--yes"
        )

        assert result.exit_code == 0, result.output
        assert streamer.calls[0]["prompt"].count('Section "Intro"') == 1

    def test_crlf_document_keeps_line_endings(self, workspace, fake_llm):
        document = workspace["document"]
        original = b"# Intro\r\nIt was a long time ago.\r\n# Body\r\nThings happened.\r\n"
        document.write_bytes(original)
        streamer = fake_llm(["# Intro\r\nLong ago.\r\n"])

        result = run(
            workspace, "edit", str(document), "-i", "shorten", "-s", "Intro", "--yes", "--save-version"
        )

        assert result.exit_code == 0, result.output
        assert "It was a long time ago.\r\n" in streamer.calls[0]["prompt"]
        assert document.read_bytes() == b"# Intro\r\nLong ago.\r\n"
        store = VersionStore(workspace["versions_dir"])
        [meta] = store.list()
        assert store.get_content(meta.id).encode("utf-8") == original

    def test_unknown_section(self, workspace, fake_llm):
        fake_llm(["never"])

        result = run(workspace, "edit", str(workspace["document"]), "-i", "tighten", "-s", "Missing")

        assert result.exit_code == 1
        assert "No section titled 'Missing'" in result.output

    def test_model_error_exits_nonzero(self, workspace, fake_llm):
        original = workspace["document"].read_text()
        fake_llm([], error=RuntimeError("model unavailable"))

        result = run(workspace, "edit", str(workspace["document"]), "-i", "rewrite", "--yes")

        assert result.exit_code == 1
        assert "model unavailable" in result.output
        assert workspace["document"].read_text() == original


class TestChatCommand:

    def test_chat_prints_answer_without_writing(self, workspace, fake_llm):
        original = workspace["document"].read_text()
        streamer = fake_llm(["The intro ", "is vague."])

        result = run(workspace, "chat", str(workspace["document"]), "Is the intro clear?")

        assert result.exit_code == 0
        assert "The intro is vague." in result.output
        assert "User: Is the intro clear?" in streamer.calls[0]["prompt"]
        assert workspace["document"].read_text() == original


class TestVersionsCommands:

    def test_save_list_show_restore_clear(self, workspace, tmp_path):
        document = workspace["document"]
        original = document.read_text()

        saved = run(workspace, "versions", "save", str(document))
        assert saved.exit_code == 0
        assert "Saved Version 1" in saved.output

        again = run(workspace, "versions", "save", str(document))
        assert "not saved" in again.output

        listed = run(workspace, "versions", "list")
        assert listed.exit_code == 0
        assert "Version 1" in listed.output

        [meta] = VersionStore(workspace["versions_dir"]).list()

        shown = run(workspace, "versions", "show", meta.id)
        assert shown.exit_code == 0
        assert shown.output == original

        document.write_text("changed\n")
        restored = run(workspace, "versions", "restore", meta.id, str(document))
        assert restored.exit_code == 0
        assert document.read_text() == original

        cleared = run(workspace, "versions", "clear", "--yes")
        assert cleared.exit_code == 0
        assert VersionStore(workspace["versions_dir"]).list() == []

    def test_save_keeps_crlf(self, workspace):
        document = workspace["document"]
        document.write_bytes(b"# Title\r\nBody\r\n")

        assert run(workspace, "versions", "save", str(document)).exit_code == 0

        store = VersionStore(workspace["versions_dir"])
        [meta] = store.list()
        assert store.get_content(meta.id) == "# Title\r\nBody\r\n"

    def test_show_unknown_version(self, workspace):
        result = run(workspace, "versions", "show", "nope")

        assert result.exit_code == 1
        assert "Version not found: nope" in result.output

    def test_show_corrupted_version(self, workspace):
        store = VersionStore(workspace["versions_dir"])
        meta = store.save("text")
        next(workspace["versions_dir"].glob("v1-*.md")).unlink()

        result = run(workspace, "versions", "show", meta.id)

        assert result.exit_code == 3

    def test_list_empty(self, workspace):
        result = run(workspace, "versions", "list")

        assert result.exit_code == 0
        assert "No saved versions" in result.output
