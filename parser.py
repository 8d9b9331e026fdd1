# parser.py

import os
import re
import yaml
import markdown
from datetime import date
from typing import Dict, Any, List, Optional, Tuple
import config
import unicodedata
from bs4 import BeautifulSoup

FRONT_MATTER_RE = re.compile(
    r'\A---[ \t]*\r?\n(?:(.*?)\r?\n)?---[ \t]*(?:\r?\n|\Z)', re.DOTALL
)
FILENAME_RE = re.compile(config.POST_FILENAME_PATTERN)

# CommonMark: 最多 3 个空格缩进，3 个以上 ` 或 ~
FENCE_OPEN_RE = re.compile(r'^( {0,3})(`{3,}|~{3,})(.*)$')
FENCE_CLOSE_RE = re.compile(r'^ {0,3}(`{3,}|~{3,})[ \t]*$')


# -------------------------------------------------------------------------
# 【标签/Tag 专用 Slugify】
# -------------------------------------------------------------------------
def tag_to_slug(tag_name: str) -> str:
    """将标签名转换为 URL 友好的 slug，保留中文等国际字符。"""
    slug = str(tag_name).lower()
    slug = unicodedata.normalize('NFKD', slug)
    # Python 3 的 \w 是 Unicode-aware 的
    slug = re.sub(r'[^\w\s-]', '', slug)
    slug = re.sub(r'[\s-]+', '-', slug).strip('-')
    return slug


def split_front_matter(text: str) -> Tuple[Optional[str], str, int]:
    """
    分离 Front-matter 与正文。
    返回: (yaml_text, body, body_line_offset)
    没有 Front-matter (或者只有开头的 --- 而没有结尾) 时 yaml_text 为 None。
    body_line_offset 是正文第一行在文件中的行号 (从 1 开始)。
    """
    match = FRONT_MATTER_RE.match(text)
    if not match:
        return None, text, 1

    yaml_text = match.group(1) or ''
    body = text[len(match.group(0)):]
    offset = match.group(0).count('\n') + 1
    return yaml_text, body, offset


def parse_filename(file_name: str) -> Tuple[Optional[date], str, Optional[str]]:
    """
    解析 YYYY-MM-DD-slug.md 格式的文件名。
    返回: (date, slug, error)
    """
    base_name = os.path.basename(file_name)
    match = FILENAME_RE.match(base_name)
    if not match:
        slug = os.path.splitext(base_name)[0].lower()
        return None, slug, f"file name '{base_name}' does not match YYYY-MM-DD-slug.md"

    year, month, day, slug = match.groups()
    try:
        post_date = date(int(year), int(month), int(day))
    except ValueError:
        return None, slug, f"'{year}-{month}-{day}' is not a valid calendar date"

    if not slug.strip('-'):
        return post_date, slug, f"file name '{base_name}' has an empty slug"

    return post_date, slug, None


def make_permalink(post_date: Optional[date], slug: str) -> str:
    if post_date is None:
        return f"/{slug}/"
    return config.PERMALINK_PATTERN.format(
        year=post_date.year, month=post_date.month, day=post_date.day, slug=slug
    )


def split_lines(text: str) -> List[str]:
    """按换行符分行 (与 body_line_offset 的计数方式一致)，并去掉行尾的回车符。"""
    return [line.rstrip('\r') for line in text.split('\n')]


def _fence_language(info: str) -> str:
    info = info.strip()
    if not info:
        return ''
    lang = info.split()[0]
    # {.rust} / {rust}
    return lang.strip('{}').lstrip('.')


def scan_fences(body: str, line_offset: int = 1) -> List[Dict[str, Any]]:
    """
    扫描正文中的围栏代码块。
    每个代码块: {'line', 'end_line', 'marker', 'lang'}，未闭合时 end_line 为 None。
    """
    fences = []
    current = None

    for index, line in enumerate(split_lines(body)):
        line_no = index + line_offset

        if current is None:
            match = FENCE_OPEN_RE.match(line)
            if not match:
                continue
            marker, info = match.group(2), match.group(3)
            # 反引号围栏的 info string 不能再包含反引号 (那是行内代码)
            if marker[0] == '`' and '`' in info:
                continue
            current = {
                'line': line_no,
                'end_line': None,
                'marker': marker,
                'lang': _fence_language(info),
            }
            continue

        match = FENCE_CLOSE_RE.match(line)
        if match:
            closing = match.group(1)
            if closing[0] == current['marker'][0] and len(closing) >= len(current['marker']):
                current['end_line'] = line_no
                fences.append(current)
                current = None

    if current is not None:
        fences.append(current)

    return fences


def _line_of(needle: str, lines: List[str], line_offset: int) -> Optional[int]:
    for index, line in enumerate(lines):
        if needle in line:
            return index + line_offset
    return None


def render_markdown(content_markdown: str) -> str:
    md = markdown.Markdown(
        extensions=config.MARKDOWN_EXTENSIONS,
        extension_configs=config.MARKDOWN_EXTENSION_CONFIGS,
        output_format='html5',
    )
    return md.convert(content_markdown)


def extract_links(content_html: str, content_markdown: str = '', line_offset: int = 1) -> List[Dict[str, Any]]:
    """
    从渲染后的 HTML 中提取所有链接 (a[href] 和 img[src])。
    行号通过在 Markdown 原文中查找 URL 得到，找不到时为 None。
    """
    soup = BeautifulSoup(content_html, 'html.parser')
    lines = split_lines(content_markdown)
    links = []

    for tag_name, attr in (('a', 'href'), ('img', 'src')):
        for element in soup.find_all(tag_name):
            url = element.get(attr)
            if not url:
                continue
            links.append({
                'url': url,
                'kind': tag_name,
                'line': _line_of(url, lines, line_offset),
            })

    return links


def get_metadata_and_content(md_file_path: str) -> Dict[str, Any]:
    """
    读取一篇文章，返回包含元数据和正文信息的 post 字典。
    读取、解码和 YAML 错误不会抛出，而是记录在 post['parse_errors'] 中。
    """
    file_name = os.path.basename(md_file_path)
    post_date, slug, filename_error = parse_filename(file_name)

    post: Dict[str, Any] = {
        'path': md_file_path,
        'file_name': file_name,
        'date': post_date,
        'slug': slug,
        'link': make_permalink(post_date, slug),
        'filename_error': filename_error,
        'has_front_matter': False,
        'metadata': {},
        'content_markdown': '',
        'content_html': '',
        'body_line_offset': 1,
        'raw_front_matter': '',
        'links': [],
        'fences': [],
        'parse_errors': [],
    }

    try:
        with open(md_file_path, 'r', encoding='utf-8') as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        post['parse_errors'].append({
            'code': 'read-error', 'line': None, 'message': f"cannot read file: {e}",
        })
        return post

    yaml_data, content_markdown, offset = split_front_matter(content)
    post['content_markdown'] = content_markdown
    post['body_line_offset'] = offset

    if yaml_data is None:
        post['parse_errors'].append({
            'code': 'front-matter-missing', 'line': 1,
            'message': "no front-matter block delimited by '---' lines",
        })
    else:
        post['has_front_matter'] = True
        post['raw_front_matter'] = yaml_data
        try:
            metadata = yaml.safe_load(yaml_data)
        except yaml.YAMLError as exc:
            mark = getattr(exc, 'problem_mark', None)
            # +2: 文件第一行是开头的 ---，mark.line 从 0 开始
            line = mark.line + 2 if mark is not None else 1
            problem = getattr(exc, 'problem', None) or str(exc)
            post['parse_errors'].append({
                'code': 'front-matter-invalid', 'line': line,
                'message': f"front-matter is not valid YAML: {problem}",
            })
            metadata = {}

        if metadata is None:
            metadata = {}
        if not isinstance(metadata, dict):
            post['parse_errors'].append({
                'code': 'front-matter-invalid', 'line': 1,
                'message': f"front-matter must be a mapping, got {type(metadata).__name__}",
            })
            metadata = {}
        post['metadata'] = metadata

    # --- 元数据处理 ---
    metadata = post['metadata']
    title = metadata.get('title')
    post['title'] = title.strip() if isinstance(title, str) else ''

    tags_list = metadata.get('tags') or []
    if isinstance(tags_list, str):
        tags_list = [t.strip() for t in tags_list.split(',')]
    if not isinstance(tags_list, list):
        tags_list = []
    post['tags'] = [
        {'name': str(t), 'slug': tag_to_slug(t)}
        for t in tags_list if isinstance(t, str) and t.strip()
    ]

    # --- Markdown 渲染 (只用于提取链接) ---
    post['fences'] = scan_fences(content_markdown, offset)
    post['content_html'] = render_markdown(content_markdown)
    post['links'] = extract_links(post['content_html'], content_markdown, offset)

    return post
