import pathlib

import pytest

from .fixtures import PostWriter


@pytest.fixture
def posts_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    d = tmp_path / "_posts"
    d.mkdir()
    return d


@pytest.fixture
def write_post(posts_dir: pathlib.Path) -> PostWriter:
    def _write(name: str, text: str) -> pathlib.Path:
        p = posts_dir / name
        p.write_text(text, encoding="utf-8")
        return p

    return _write
