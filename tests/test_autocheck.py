import json
import pathlib

import pytest

import autocheck
from autocheck import load_manifest, main, run_checks

from .fixtures import PostWriter, front_matter


def _run(posts_dir: pathlib.Path, tmp_path: pathlib.Path, **kwargs) -> int:
    kwargs.setdefault("report_dir", str(tmp_path / "_report"))
    kwargs.setdefault("manifest_path", str(tmp_path / "manifest.json"))
    return run_checks(posts_dir=str(posts_dir), **kwargs)


def test_clean_run_writes_outputs(
    posts_dir: pathlib.Path,
    write_post: PostWriter,
    tmp_path: pathlib.Path,
) -> None:
    write_post("2021-03-14-older.md", front_matter(title="Older"))
    write_post(
        "2021-09-05-newer.md",
        front_matter(title="Newer").replace("tags: [rust]", "tags: [rust, Code Generation]"),
    )

    assert _run(posts_dir, tmp_path) == 0

    report_dir = tmp_path / "_report"
    posts = json.loads((report_dir / "posts.json").read_text(encoding="utf-8"))
    assert [p["title"] for p in posts] == ["Newer", "Older"]
    assert posts[0]["date"] == "2021-09-05"
    assert posts[0]["link"] == "/2021-09-05-newer/"
    assert posts[0]["url"].endswith("/2021-09-05-newer/")
    assert posts[0]["author"] == "Someone"

    tags = json.loads((report_dir / "tags.json").read_text(encoding="utf-8"))
    assert list(tags) == ["rust", "Code Generation"]
    assert tags["rust"]["posts"] == ["/2021-09-05-newer/", "/2021-03-14-older/"]
    assert tags["Code Generation"]["slug"] == "code-generation"

    html = (report_dir / "index.html").read_text(encoding="utf-8")
    assert "All 2 post(s) passed." in html
    assert "Newer" in html

    manifest = load_manifest(str(tmp_path / "manifest.json"))
    assert set(manifest) == {"core", "posts"}
    assert len(manifest["posts"]) == 2


def test_incremental_run(
    posts_dir: pathlib.Path,
    write_post: PostWriter,
    tmp_path: pathlib.Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    write_post("2021-01-01-a.md", front_matter(title="A"))
    write_post("2021-01-02-b.md", front_matter(title="B"))
    assert _run(posts_dir, tmp_path) == 0
    out = capsys.readouterr().out
    assert out.count("[CHECKED]") == 2

    assert _run(posts_dir, tmp_path) == 0
    out = capsys.readouterr().out
    assert out.count("[CACHED]") == 2
    assert "[CHECKED]" not in out

    # the cached post still takes part in the duplicate title check
    write_post("2021-01-02-b.md", front_matter(title="A"))
    assert _run(posts_dir, tmp_path) == 1
    out = capsys.readouterr().out
    assert "[CACHED] 2021-01-01-a.md" in out
    assert "[CHECKED] 2021-01-02-b.md" in out
    assert out.count("[duplicate-title]") == 2

    (posts_dir / "2021-01-02-b.md").unlink()
    assert _run(posts_dir, tmp_path) == 0
    out = capsys.readouterr().out
    assert "[DELETED]" in out
    assert len(load_manifest(str(tmp_path / "manifest.json"))["posts"]) == 1


def test_cached_issues_are_reported(
    posts_dir: pathlib.Path,
    write_post: PostWriter,
    tmp_path: pathlib.Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    write_post("2021-01-01-a.md", front_matter() + "```rust\nfn main() {}\n")
    assert _run(posts_dir, tmp_path) == 1
    capsys.readouterr()

    assert _run(posts_dir, tmp_path) == 1
    out = capsys.readouterr().out
    assert "[CACHED]" in out
    assert "error [unclosed-fence]" in out


def test_core_change_forces_recheck(
    posts_dir: pathlib.Path,
    write_post: PostWriter,
    tmp_path: pathlib.Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    write_post("2021-01-01-a.md", front_matter())
    assert _run(posts_dir, tmp_path) == 0

    manifest_path = tmp_path / "manifest.json"
    manifest = load_manifest(str(manifest_path))
    manifest["core"] = {"linter.py": "stale"}
    manifest_path.write_text(json.dumps(manifest), encoding="utf-8")
    capsys.readouterr()

    assert _run(posts_dir, tmp_path) == 0
    out = capsys.readouterr().out
    assert "[CHANGE DETECTED]" in out
    assert "[CHECKED] 2021-01-01-a.md" in out


def test_strict_mode(posts_dir: pathlib.Path, write_post: PostWriter, tmp_path: pathlib.Path) -> None:
    write_post("2021-01-01-a.md", front_matter() + "```\nno language\n```\n")
    assert _run(posts_dir, tmp_path, use_cache=False) == 0
    assert _run(posts_dir, tmp_path, use_cache=False, strict=True) == 1
    assert not (tmp_path / "manifest.json").exists()


def test_report_lists_issues(posts_dir: pathlib.Path, write_post: PostWriter, tmp_path: pathlib.Path) -> None:
    write_post("2021-01-01-a.md", "---\ntitle: No author\n---\nbody\n")
    assert _run(posts_dir, tmp_path) == 1

    html = (tmp_path / "_report" / "index.html").read_text(encoding="utf-8")
    assert "1 error(s), 0 warning(s) in 1 file(s)." in html
    assert "required-field" in html


def test_no_posts(posts_dir: pathlib.Path, tmp_path: pathlib.Path) -> None:
    with pytest.raises(SystemExit) as exc_info:
        _run(posts_dir, tmp_path)
    assert exc_info.value.code == 2

    with pytest.raises(SystemExit) as exc_info:
        _run(tmp_path / "does-not-exist", tmp_path)
    assert exc_info.value.code == 2


def test_main(posts_dir: pathlib.Path, write_post: PostWriter, tmp_path: pathlib.Path) -> None:
    write_post("2021-01-01-a.md", front_matter())
    manifest = tmp_path / "manifest.json"
    argv = ["--posts-dir", str(posts_dir), "--manifest", str(manifest), "--no-cache", "--no-report"]
    assert main(argv) == 0
    assert not manifest.exists()
    assert not (tmp_path / "_report").exists()


def test_load_manifest(tmp_path: pathlib.Path) -> None:
    assert load_manifest(str(tmp_path / "missing.json")) == {}

    p = tmp_path / "broken.json"
    p.write_text("{not json", encoding="utf-8")
    assert load_manifest(str(p)) == {}

    p.write_text("[1, 2]", encoding="utf-8")
    assert load_manifest(str(p)) == {}


def test_format_file_mod_time(tmp_path: pathlib.Path) -> None:
    p = tmp_path / "2021-01-01-a.md"
    p.write_text("x", encoding="utf-8")
    assert "(UTC - " in autocheck.format_file_mod_time(str(p))
    assert "Fallback" in autocheck.format_file_mod_time(str(tmp_path / "missing.md"))


def test_default_manifest_is_relative_to_the_working_directory() -> None:
    args = autocheck.build_parser().parse_args([])
    assert args.manifest == ".check_manifest.json"
    assert not pathlib.Path(args.manifest).is_absolute()
