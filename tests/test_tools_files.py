"""Tests for council_ai/tools/files.py."""

from council_ai.tools.files import (
    MAX_READ_BYTES,
    edit_file,
    parse_jsonc,
    read_file,
    resolve_path,
    tree_view,
    write_file,
)


def test_resolve_path_relative_and_absolute(tmp_path):
    assert resolve_path(tmp_path, "a/b.txt") == (tmp_path / "a" / "b.txt").resolve()
    assert resolve_path(tmp_path, str(tmp_path / "c.txt")) == tmp_path / "c.txt"


def test_write_creates_parent_dirs(tmp_path):
    result = write_file(tmp_path, "pkg/mod.py", "x = 1\n")
    assert result.error is None
    assert result.output == "File saved to pkg/mod.py"
    assert (tmp_path / "pkg" / "mod.py").read_text(encoding="utf-8") == "x = 1\n"


def test_write_to_directory_is_an_error(tmp_path):
    (tmp_path / "src").mkdir()
    result = write_file(tmp_path, "src", "data")
    assert "is a directory" in result.error


def test_write_invalid_json_is_rejected(tmp_path):
    result = write_file(tmp_path, "conf.json", "{not json")
    assert result.error.startswith("Write failed: Invalid JSON content.")
    assert not (tmp_path / "conf.json").exists()


def test_write_json_with_comments_is_accepted(tmp_path):
    content = '{\n  // editor settings\n  "url": "http://x.io", /* block */ "n": 1\n}'
    assert write_file(tmp_path, "tsconfig.json", content).error is None


def test_parse_jsonc_keeps_slashes_inside_strings():
    assert parse_jsonc('{"url": "http://example.org"} // tail') == {"url": "http://example.org"}


def test_edit_exact_match_replaces_first_occurrence(tmp_path):
    target = tmp_path / "app.py"
    target.write_text("a = 1\na = 1\n", encoding="utf-8")

    result = edit_file(tmp_path, "app.py", "a = 1", "a = 2")

    assert result.output == "Successfully edited app.py (Exact Match)"
    assert target.read_text(encoding="utf-8") == "a = 2\na = 1\n"


def test_edit_fuzzy_match_ignores_indentation_and_blank_lines(tmp_path):
    target = tmp_path / "app.py"
    target.write_text("def f():\n    x = 1\n\n    return  x\nprint(f())", encoding="utf-8")

    result = edit_file(tmp_path, "app.py", "x = 1\nreturn x", "    return 1")

    assert result.output == "Successfully edited app.py (Fuzzy Match)"
    assert target.read_text(encoding="utf-8") == "def f():\n    return 1\nprint(f())"


def test_edit_not_found(tmp_path):
    (tmp_path / "app.py").write_text("pass\n", encoding="utf-8")
    result = edit_file(tmp_path, "app.py", "missing()", "found()")
    assert result.error == "Search string not found in app.py. Tried exact match and fuzzy line match."


def test_edit_blank_search_is_rejected(tmp_path):
    (tmp_path / "app.py").write_text("pass\n", encoding="utf-8")
    result = edit_file(tmp_path, "app.py", "   \n", "x")
    assert result.error == "Search block is empty or whitespace only."


def test_edit_missing_file(tmp_path):
    assert edit_file(tmp_path, "nope.py", "a", "b").error.startswith("Edit failed:")


def test_read_whole_file_and_range(tmp_path):
    (tmp_path / "notes.txt").write_text("one\ntwo\nthree\nfour", encoding="utf-8")
    assert read_file(tmp_path, "notes.txt").output == "one\ntwo\nthree\nfour"
    assert read_file(tmp_path, "notes.txt", 2, 3).output == "two\nthree"


def test_read_large_file_requires_range(tmp_path):
    (tmp_path / "big.log").write_text("x\n" * (MAX_READ_BYTES // 2 + 10), encoding="utf-8")
    whole = read_file(tmp_path, "big.log")
    assert whole.error.startswith("File is too large")
    assert read_file(tmp_path, "big.log", 1, 2).output == "x\nx"


def test_read_missing_file(tmp_path):
    assert read_file(tmp_path, "nope.txt").error


def test_tree_view_sorted_with_ignores(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.py").write_text("", encoding="utf-8")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "README.md").write_text("", encoding="utf-8")

    output = tree_view(tmp_path).output

    lines = output.splitlines()
    assert lines[0] == f"{tmp_path.name}/"
    assert lines[1] == "├── README.md"
    assert lines[2] == "└── src/"
    assert lines[3] == "    └── main.py"
    assert "node_modules" not in output


def test_tree_view_empty_and_missing(tmp_path):
    assert tree_view(tmp_path).output == "(empty directory)"
    assert tree_view(tmp_path, "missing").error.startswith("Tree failed")
