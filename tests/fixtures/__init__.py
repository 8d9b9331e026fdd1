import pathlib
from typing import Callable

PostWriter = Callable[[str, str], pathlib.Path]


def front_matter(title: str = "A post", author: str = "Someone", extra: str = "") -> str:
    return f"---\nlayout: post\ntitle: {title}\nauthor: {author}\ntags: [rust]\n{extra}---\n"
