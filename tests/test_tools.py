from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from conductor.config.schema import Configuration
from conductor.exceptions import ValidationError
from conductor.tools.base import Tool
from conductor.tools.builtin.bash import BashTool
from conductor.tools.builtin.delete_file import DeleteTool
from conductor.tools.builtin.edit_file import EditTool, replace_text
from conductor.tools.builtin.multi_edit import MultiEditTool
from conductor.tools.builtin.read_file import ReadTool
from conductor.tools.builtin.write_file import WriteTool
from conductor.tools.models import ToolInvocation, ToolKind, ToolResult
from conductor.tools.registry import ToolRegistry


@pytest.fixture
def config(make_config: Callable[..., Configuration]) -> Configuration:
    return make_config()


def invocation(project_dir: Path, **params: Any) -> ToolInvocation:
    return ToolInvocation(params=params, cwd=project_dir)


def test_registry_exposes_fixed_tool_table(config: Configuration) -> None:
    registry = ToolRegistry(config)

    assert registry.names == ["Read", "Write", "Edit", "MultiEdit", "Delete", "Bash"]
    assert registry.restricted_names == {"Write", "Edit", "MultiEdit", "Delete", "Bash"}
    assert "Read" in registry
    assert registry.get("Glob") is None
    schema = registry.get_schemas()[1]
    assert schema["name"] == "Write"
    assert set(schema["parameters"]["required"]) == {"file_path", "content"}


def test_registry_rejects_tool_kind_mismatch(config: Configuration) -> None:
    class SneakyWrite(WriteTool):
        kind = ToolKind.READ

    with pytest.raises(ValidationError):
        ToolRegistry(config, tool_classes=(ReadTool, SneakyWrite))


def test_registry_rejects_duplicate_names(config: Configuration) -> None:
    with pytest.raises(ValidationError):
        ToolRegistry(config, tool_classes=(ReadTool, ReadTool))


def test_validate_params_lists_missing_fields(config: Configuration) -> None:
    errors = WriteTool(config).validate_params({"file_path": "a.txt"})

    assert errors == ["Parameter 'content': Field required"]


@pytest.mark.asyncio
async def test_read_numbers_lines_and_honours_window(config: Configuration, project_dir: Path) -> None:
    (project_dir / "notes.txt").write_text("one\ntwo\nthree\n")

    result = await ReadTool(config).execute(invocation(project_dir, file_path="notes.txt", offset=2, limit=1))

    assert result.success
    assert result.content == "     2\ttwo"
    assert result.metadata["total_lines"] == 3


@pytest.mark.asyncio
async def test_read_reports_missing_and_binary_files(config: Configuration, project_dir: Path) -> None:
    (project_dir / "blob.bin").write_bytes(b"\x00\x01\x02")
    tool = ReadTool(config)

    missing = await tool.execute(invocation(project_dir, file_path="nope.txt"))
    binary = await tool.execute(invocation(project_dir, file_path="blob.bin"))

    assert missing.error == "File not found: nope.txt"
    assert binary.error == "Cannot read binary file: blob.bin"


@pytest.mark.asyncio
async def test_write_creates_parents_and_reports_diff(config: Configuration, project_dir: Path) -> None:
    result = await WriteTool(config).execute(invocation(project_dir, file_path="src/app.py", content="print(1)\n"))

    assert result.success
    assert (project_dir / "src" / "app.py").read_text() == "print(1)\n"
    assert result.diff.is_new_file
    assert "+print(1)" in result.diff.to_diff()


@pytest.mark.asyncio
async def test_write_preview_refuses_directories(config: Configuration, project_dir: Path) -> None:
    (project_dir / "src").mkdir()

    preview = await WriteTool(config).preview(invocation(project_dir, file_path="src", content="x"))

    assert preview.error == "Path is a directory: src"


def test_replace_text_requires_unique_match() -> None:
    assert replace_text("a b a", "a", "c", True, "f.txt") == ("c b c", None)
    assert replace_text("a b a", "b", "c", False, "f.txt") == ("a c a", None)
    assert replace_text("a b a", "a", "c", False, "f.txt")[1] == (
        "old_string found 2 times in f.txt; add context or set replace_all"
    )
    assert replace_text("a b", "a", "a", False, "f.txt")[1] == "No change made - old_string equals new_string"


@pytest.mark.asyncio
async def test_edit_replaces_text(config: Configuration, project_dir: Path) -> None:
    target = project_dir / "app.py"
    target.write_text("x = 1\ny = 2\n")

    result = await EditTool(config).execute(
        invocation(project_dir, file_path="app.py", old_string="y = 2", new_string="y = 3"),
    )

    assert result.success
    assert target.read_text() == "x = 1\ny = 3\n"
    assert "-y = 2" in result.diff.to_diff()


@pytest.mark.asyncio
async def test_edit_preview_suggests_similar_lines(config: Configuration, project_dir: Path) -> None:
    (project_dir / "app.py").write_text("def main():\n    return 1\n")

    preview = await EditTool(config).preview(
        invocation(project_dir, file_path="app.py", old_string="def main( ):", new_string="x"),
    )

    assert preview.error.startswith("old_string not found in app.py.")
    assert "Line 1: def main():" in preview.error


@pytest.mark.asyncio
async def test_edit_with_empty_old_string_creates_file(config: Configuration, project_dir: Path) -> None:
    result = await EditTool(config).execute(invocation(project_dir, file_path="new.txt", new_string="hello"))

    assert result.success
    assert (project_dir / "new.txt").read_text() == "hello"


@pytest.mark.asyncio
async def test_multi_edit_is_all_or_nothing(config: Configuration, project_dir: Path) -> None:
    target = project_dir / "app.py"
    target.write_text("alpha\nbeta\n")
    tool = MultiEditTool(config)

    failed = await tool.execute(
        invocation(
            project_dir,
            file_path="app.py",
            edits=[
                {"old_string": "alpha", "new_string": "ALPHA"},
                {"old_string": "gamma", "new_string": "GAMMA"},
            ],
        ),
    )
    assert not failed.success
    assert failed.error.startswith("Edit 2: old_string not found")
    assert target.read_text() == "alpha\nbeta\n"

    applied = await tool.execute(
        invocation(
            project_dir,
            file_path="app.py",
            edits=[
                {"old_string": "alpha", "new_string": "ALPHA"},
                {"old_string": "ALPHA\nbeta", "new_string": "ALPHA\nBETA"},
            ],
        ),
    )
    assert applied.success
    assert target.read_text() == "ALPHA\nBETA\n"


@pytest.mark.asyncio
async def test_delete_refuses_project_root(config: Configuration, project_dir: Path) -> None:
    (project_dir / "keep.txt").write_text("x")

    result = await DeleteTool(config).execute(invocation(project_dir, file_path=".", recursive=True))

    assert result.error == "Refusing to delete the project root"
    assert (project_dir / "keep.txt").exists()


@pytest.mark.asyncio
async def test_delete_needs_recursive_for_non_empty_directory(config: Configuration, project_dir: Path) -> None:
    build = project_dir / "build"
    build.mkdir()
    (build / "out.o").write_text("x")
    tool = DeleteTool(config)

    refused = await tool.execute(invocation(project_dir, file_path="build"))
    deleted = await tool.execute(invocation(project_dir, file_path="build", recursive=True))

    assert refused.error == "Directory is not empty: build. Use recursive=true to delete it."
    assert deleted.success
    assert not build.exists()


@pytest.mark.asyncio
async def test_delete_preview_shows_removed_content(config: Configuration, project_dir: Path) -> None:
    (project_dir / "old.txt").write_text("bye\n")

    preview = await DeleteTool(config).preview(invocation(project_dir, file_path="old.txt"))

    assert preview.description == "Delete old.txt"
    assert "-bye" in preview.diff.to_diff()


@pytest.mark.asyncio
async def test_bash_reports_output_and_exit_code(config: Configuration, project_dir: Path) -> None:
    tool = BashTool(config)

    ok = await tool.execute(invocation(project_dir, command="pwd"))
    failed = await tool.execute(invocation(project_dir, command="echo oops >&2; exit 3"))

    assert ok.success
    assert Path(ok.content).resolve() == project_dir
    assert not failed.success
    assert failed.exit_code == 3
    assert failed.error == "oops"
    assert "Exit code: 3" in failed.content


@pytest.mark.asyncio
async def test_bash_timeout_and_blocklist(config: Configuration, project_dir: Path) -> None:
    tool = BashTool(config)

    timed_out = await tool.execute(invocation(project_dir, command="sleep 5", timeout=1))
    preview = await tool.preview(invocation(project_dir, command="sudo shutdown now"))

    assert timed_out.error == "Command timed out after 1s"
    assert preview.error == "Command blocked for safety: sudo shutdown now"


def test_error_result_text_for_model() -> None:
    assert ToolResult.error_result("denied").to_model_output() == "denied"
    assert ToolResult.error_result("failed", content="partial").to_model_output() == (
        "Error: failed\n\nOutput:\npartial"
    )
    assert ToolResult.success_result("ok").to_model_output() == "ok"


def test_openai_schema_shape(config: Configuration) -> None:
    tool: Tool = BashTool(config)

    schema = tool.to_openai_schema()

    assert schema["name"] == "Bash"
    assert schema["parameters"]["type"] == "object"
    assert schema["parameters"]["required"] == ["command"]
