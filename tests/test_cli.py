import os
import sys
from pathlib import Path

import pytest

from file_concatenator.cli import main


def _run(*args: str) -> None:
    main(list(args))


def _exit_code(*args: str) -> int:
    with pytest.raises(SystemExit) as exc:
        main(list(args))
    return exc.value.code


@pytest.fixture
def ts_project(tmp_path: Path) -> Path:
    root = tmp_path / "proj"
    (root / "node_modules").mkdir(parents=True)
    (root / "a.ts").write_text("export const a = 1;\n", encoding="utf-8")
    (root / "b.ts").write_text("export const b = 2;\n", encoding="utf-8")
    (root / "node_modules" / "c.ts").write_text("module c\n", encoding="utf-8")
    (root / "readme.txt").write_text("hello\n", encoding="utf-8")
    return root


def test_excludes_node_modules(ts_project: Path, tmp_path: Path) -> None:
    out = tmp_path / "out.txt"
    _run("-d", str(ts_project), "-o", str(out), "-p", "**/*.ts", "-p", "!**/node_modules/**")
    assert out.read_text(encoding="utf-8") == (
        "// a.ts\nexport const a = 1;\n"
        "// b.ts\nexport const b = 2;\n"
    )


def test_comma_separated_patterns(ts_project: Path, tmp_path: Path) -> None:
    out = tmp_path / "out.txt"
    _run("-d", str(ts_project), "-o", str(out), "-p", "**/*.ts,!**/node_modules/**")
    text = out.read_text(encoding="utf-8")
    assert "a.ts" in text and "b.ts" in text
    assert "module c" not in text


def test_patterns_from_config_file(ts_project: Path, tmp_path: Path) -> None:
    cfg = tmp_path / "patterns.txt"
    cfg.write_text("# sources only\n\n!**/node_modules/**\n", encoding="utf-8")
    out = tmp_path / "out.txt"
    _run("-d", str(ts_project), "-o", str(out), "-p", "*.ts", "--config", str(cfg))
    text = out.read_text(encoding="utf-8")
    assert "export const a" in text
    assert "module c" not in text
    assert "hello" not in text


def test_no_patterns_concatenates_everything(ts_project: Path, tmp_path: Path) -> None:
    out = tmp_path / "out.txt"
    _run("-d", str(ts_project), "-o", str(out))
    text = out.read_text(encoding="utf-8")
    for needle in ("export const a", "export const b", "module c", "hello"):
        assert needle in text


def test_write_tree_with_max_depth(tmp_path: Path) -> None:
    root = tmp_path / "proj"
    (root / "l1" / "l2" / "l3").mkdir(parents=True)
    (root / "top.txt").write_text("top\n", encoding="utf-8")
    (root / "l1" / "one.txt").write_text("one\n", encoding="utf-8")
    (root / "l1" / "l2" / "two.txt").write_text("two\n", encoding="utf-8")
    (root / "l1" / "l2" / "l3" / "three.txt").write_text("three\n", encoding="utf-8")
    out = tmp_path / "out.txt"

    _run("-d", str(root), "-o", str(out), "--write-tree", "--max-depth", "2")

    text = out.read_text(encoding="utf-8")
    tree, _, body = text.partition("\n\n")
    assert tree.splitlines()[0] == "proj/"
    assert "l2/" in tree and "two.txt" in tree
    assert "three.txt" not in tree
    assert "// l1/l2/two.txt\ntwo\n" in body
    assert "three" not in body


def test_tree_ignores_pattern_filtering(ts_project: Path, tmp_path: Path) -> None:
    out = tmp_path / "out.txt"
    _run("-d", str(ts_project), "-o", str(out), "-p", "a.ts", "--write-tree")
    tree, _, body = out.read_text(encoding="utf-8").partition("\n\n")
    assert "node_modules/" in tree
    assert "readme.txt" in tree
    assert body == "// a.ts\nexport const a = 1;\n"


def test_comment_style_wraps_path(tmp_path: Path) -> None:
    root = tmp_path / "docs"
    root.mkdir()
    (root / "notes.md").write_bytes(b"# Notes\n\nbody\n")
    out = tmp_path / "out.md"
    _run("-d", str(root), "-o", str(out), "-p", "**/*.md", "--comment-style", "<!--")
    assert out.read_bytes() == b"<!-- notes.md -->\n# Notes\n\nbody\n"


def test_no_write_filenames(ts_project: Path, tmp_path: Path) -> None:
    out = tmp_path / "out.txt"
    _run("-d", str(ts_project), "-o", str(out), "-p", "a.ts", "--no-write-filenames")
    assert out.read_text(encoding="utf-8") == "export const a = 1;\n"


def test_small_buffer_size(ts_project: Path, tmp_path: Path) -> None:
    out = tmp_path / "out.txt"
    _run("-d", str(ts_project), "-o", str(out), "-p", "*.ts", "--buffer-size", "1")
    assert "module c\n" in out.read_text(encoding="utf-8")


def test_output_inside_root_is_idempotent(ts_project: Path) -> None:
    out = ts_project / "bundle.txt"
    args = ("-d", str(ts_project), "-o", str(out), "--write-tree")
    _run(*args)
    first = out.read_bytes()
    _run(*args)
    assert out.read_bytes() == first
    assert b"bundle.txt" not in first


def test_verbose_reports_progress(ts_project: Path, tmp_path: Path, capsys) -> None:
    out = tmp_path / "out.txt"
    _run("-d", str(ts_project), "-o", str(out), "-p", "*.ts", "-v")
    stdout = capsys.readouterr().out
    assert "[file_concatenator]" in stdout
    assert "3 kept after filtering" in stdout


def test_missing_directory_exits_nonzero(tmp_path: Path, capsys) -> None:
    out = tmp_path / "out.txt"
    assert _exit_code("-d", str(tmp_path / "nope"), "-o", str(out)) == 1
    assert "Error:" in capsys.readouterr().err
    assert not out.exists()


def test_invalid_pattern_reported_before_io(ts_project: Path, tmp_path: Path, capsys) -> None:
    out = tmp_path / "out.txt"
    assert _exit_code("-d", str(ts_project), "-o", str(out), "-p", "!") == 1
    assert "Invalid pattern" in capsys.readouterr().err
    assert not out.exists()


@pytest.mark.parametrize(
    "extra",
    [("--max-depth", "-1"), ("--buffer-size", "0"), ("--config", "missing.txt")],
)
def test_bad_configuration_exits_one(ts_project: Path, tmp_path: Path, extra) -> None:
    out = tmp_path / "out.txt"
    assert _exit_code("-d", str(ts_project), "-o", str(out), *extra) == 1
    assert not out.exists()


def test_missing_required_option_is_usage_error(ts_project: Path) -> None:
    assert _exit_code("-d", str(ts_project)) == 2


def test_non_integer_depth_is_usage_error(ts_project: Path, tmp_path: Path) -> None:
    assert _exit_code("-d", str(ts_project), "-o", str(tmp_path / "o"), "--max-depth", "x") == 2


def test_undecodable_file_name_does_not_abort(tmp_path: Path) -> None:
    root = tmp_path / "proj"
    root.mkdir()
    (root / "ok.txt").write_text("ok\n", encoding="utf-8")
    try:
        with open(os.path.join(os.fsencode(root), b"bad\xff.txt"), "wb") as fh:
            fh.write(b"raw\n")
    except OSError:
        pytest.skip("filesystem rejects non-UTF-8 file names")
    out = tmp_path / "out.txt"

    _run("-d", str(root), "-o", str(out), "--write-tree", "-v")

    assert out.read_bytes().endswith(b"// bad\xff.txt\nraw\n// ok.txt\nok\n")


def test_hash_pattern_is_not_dropped(tmp_path: Path) -> None:
    root = tmp_path / "proj"
    root.mkdir()
    (root / "#draft.ts").write_text("draft\n", encoding="utf-8")
    (root / "a.ts").write_text("a\n", encoding="utf-8")
    out = tmp_path / "out.txt"
    _run("-d", str(root), "-o", str(out), "-p", "#*.ts")
    assert out.read_text(encoding="utf-8") == "// #draft.ts\ndraft\n"


def test_unclosed_bracket_exits_one(ts_project: Path, tmp_path: Path, capsys) -> None:
    out = tmp_path / "out.txt"
    assert _exit_code("-d", str(ts_project), "-o", str(out), "-p", "[abc") == 1
    assert "unclosed" in capsys.readouterr().err
    assert not out.exists()


def test_main_does_not_rewrap_std_streams(ts_project: Path, tmp_path: Path) -> None:
    stdout, stderr = sys.stdout, sys.stderr
    for _ in range(2):
        _run("-d", str(ts_project), "-o", str(tmp_path / "out.txt"))
    assert sys.stdout is stdout
    assert sys.stderr is stderr
