# linter.py - 文章内容完整性检查

import re
from collections import defaultdict
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional, Iterable
from urllib.parse import urlparse
import ipaddress

from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

import config
from parser import split_lines

ERROR = 'error'
WARNING = 'warning'

GH_REPO_RE = re.compile(config.GH_REPO_PATTERN)


@dataclass(frozen=True)
class Issue:
    """一条检查结果。line 为 None 表示针对整个文件。"""

    path: str
    line: Optional[int]
    code: str
    severity: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Issue':
        return cls(
            path=data['path'],
            line=data.get('line'),
            code=data['code'],
            severity=data['severity'],
            message=data['message'],
        )

    def format(self) -> str:
        location = f"{self.path}:{self.line}" if self.line else self.path
        return f"{location}: {self.severity} [{self.code}] {self.message}"


def sort_issues(issues: Iterable[Issue]) -> List[Issue]:
    return sorted(issues, key=lambda i: (i.path, i.line or 0, i.code, i.message))


def has_errors(issues: Iterable[Issue], strict: bool = False) -> bool:
    return any(i.severity == ERROR or strict for i in issues)


# -------------------------------------------------------------------------
# 单项检查
# -------------------------------------------------------------------------

def check_url(url: str) -> Optional[str]:
    """
    检查外部链接 URL 是否完整 (scheme + host)。
    相对链接、锚点返回 None；有问题时返回原因。
    """
    url = url.strip()
    if url.lower().startswith('www.'):
        return "link has no scheme (did you mean https://...?)"

    try:
        parsed = urlparse(url)
        # 非法端口会在访问 .port 时抛出 ValueError
        hostname, _port = parsed.hostname, parsed.port
    except ValueError as e:
        return f"cannot parse URL: {e}"

    if url.startswith('//'):
        return "protocol-relative link has no scheme"

    if not parsed.scheme:
        return None

    if parsed.scheme.lower() in config.HOSTLESS_SCHEMES:
        return None

    if not parsed.netloc or not hostname:
        return "link has a scheme but no host"

    if parsed.scheme.lower() in ('http', 'https'):
        if '.' not in hostname and hostname != 'localhost' and not is_ip_address(hostname):
            return f"host '{hostname}' is not a fully qualified domain"

    return None


def is_ip_address(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return True


def is_known_language(lang: str) -> bool:
    try:
        get_lexer_by_name(lang)
    except ClassNotFound:
        return False
    return True


def _type_name(expected: type) -> str:
    return {str: 'string', bool: 'boolean', list: 'list'}.get(expected, expected.__name__)


def check_front_matter(post: Dict[str, Any]) -> List[Issue]:
    path = post['path']
    metadata = post['metadata']
    issues = []

    for field in config.REQUIRED_FIELDS:
        value = metadata.get(field)
        if not isinstance(value, str) or not value.strip():
            issues.append(Issue(path, 1, 'required-field', ERROR,
                                f"'{field}' must be a non-empty string"))

    for field, (expected, item_type) in config.FIELD_TYPES.items():
        if field not in metadata:
            continue
        value = metadata[field]
        # 必填字段已在上面报告过
        if field in config.REQUIRED_FIELDS and not isinstance(value, str):
            continue
        if not isinstance(value, expected):
            issues.append(Issue(path, 1, 'field-type', ERROR,
                                f"'{field}' must be a {_type_name(expected)}, got {type(value).__name__}"))
            continue
        if item_type is not None:
            bad = [v for v in value if not isinstance(v, item_type) or not str(v).strip()]
            if bad:
                issues.append(Issue(path, 1, 'field-type', ERROR,
                                    f"'{field}' must only contain non-empty strings, got {bad!r}"))

    badges = metadata.get('gh-badge')
    if isinstance(badges, list):
        unknown = [b for b in badges if isinstance(b, str) and b not in config.ALLOWED_BADGES]
        if unknown:
            issues.append(Issue(path, 1, 'unknown-badge', WARNING,
                                f"unknown gh-badge value(s) {unknown!r}, expected one of {config.ALLOWED_BADGES!r}"))

    repo = metadata.get('gh-repo')
    if isinstance(repo, str) and not GH_REPO_RE.match(repo):
        issues.append(Issue(path, 1, 'gh-repo-format', WARNING,
                            f"gh-repo '{repo}' is not of the form owner/name"))

    layout = metadata.get('layout')
    if isinstance(layout, str) and layout != config.EXPECTED_LAYOUT:
        issues.append(Issue(path, 1, 'layout-value', WARNING,
                            f"layout is '{layout}', expected '{config.EXPECTED_LAYOUT}'"))

    return issues


def check_fences(post: Dict[str, Any]) -> List[Issue]:
    path = post['path']
    issues = []
    for fence in post['fences']:
        if fence['end_line'] is None:
            issues.append(Issue(path, fence['line'], 'unclosed-fence', ERROR,
                                f"code block opened with '{fence['marker']}' is never closed"))
        lang = fence['lang']
        if not lang:
            issues.append(Issue(path, fence['line'], 'fence-language', WARNING,
                                "code block has no language label"))
        elif not is_known_language(lang):
            issues.append(Issue(path, fence['line'], 'fence-language', WARNING,
                                f"unknown code block language '{lang}'"))
    return issues


def check_links(post: Dict[str, Any]) -> List[Issue]:
    issues = []
    for link in post['links']:
        problem = check_url(link['url'])
        if problem:
            issues.append(Issue(post['path'], link['line'], 'malformed-url', ERROR,
                                f"{link['url']}: {problem}"))
    return issues


def check_markers(post: Dict[str, Any]) -> List[Issue]:
    issues = []
    sections = [
        (post['raw_front_matter'], 2),
        (post['content_markdown'], post['body_line_offset']),
    ]
    for marker in config.INTERNAL_MARKERS:
        for text, offset in sections:
            for index, line in enumerate(split_lines(text)):
                if marker in line:
                    issues.append(Issue(post['path'], index + offset, 'internal-marker', WARNING,
                                        f"internal tooling marker '{marker}' found in post"))
    return issues


def check_post(post: Dict[str, Any]) -> List[Issue]:
    """对单篇文章执行所有检查。"""
    path = post['path']
    issues = [
        Issue(path, e['line'], e['code'], ERROR, e['message'])
        for e in post['parse_errors']
    ]

    if post['filename_error']:
        issues.append(Issue(path, None, 'filename', ERROR, post['filename_error']))

    # 读取失败时没有任何内容可查
    if any(e['code'] == 'read-error' for e in post['parse_errors']):
        return sort_issues(issues)

    # YAML 无法解析时 metadata 为空，字段检查只会误报
    invalid = any(e['code'] == 'front-matter-invalid' for e in post['parse_errors'])
    if post['has_front_matter'] and not invalid:
        issues.extend(check_front_matter(post))
    issues.extend(check_fences(post))
    issues.extend(check_links(post))
    issues.extend(check_markers(post))

    return sort_issues(issues)


# -------------------------------------------------------------------------
# 跨文章检查
# -------------------------------------------------------------------------

def check_corpus(posts: List[Dict[str, Any]]) -> List[Issue]:
    """
    跨文章检查：标题重复 (error) 和永久链接重复 (warning)。
    posts 可以是完整的 post 字典，也可以是清单中的摘要 (path/title/link)。
    """
    issues = []

    by_title = defaultdict(list)
    by_link = defaultdict(list)
    for post in posts:
        title = (post.get('title') or '').strip()
        if title:
            by_title[title].append(post['path'])
        if post.get('link'):
            by_link[post['link']].append(post['path'])

    for title, paths in by_title.items():
        if len(paths) < 2:
            continue
        for path in paths:
            others = ', '.join(p for p in sorted(paths) if p != path)
            issues.append(Issue(path, 1, 'duplicate-title', ERROR,
                                f"title '{title}' is also used by {others}"))

    for link, paths in by_link.items():
        if len(paths) < 2:
            continue
        for path in paths:
            others = ', '.join(p for p in sorted(paths) if p != path)
            issues.append(Issue(path, None, 'duplicate-slug', WARNING,
                                f"permalink '{link}' is also produced by {others}"))

    return sort_issues(issues)


def check_posts(posts: List[Dict[str, Any]]) -> List[Issue]:
    issues = []
    for post in posts:
        issues.extend(check_post(post))
    issues.extend(check_corpus(posts))
    return sort_issues(issues)
