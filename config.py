# config.py

import os

# --- 站点配置 ---
# 只用于生成报告中的绝对链接，真正的发布由外部站点生成器负责
BASE_URL = "https://blog.example.dev/"

# Beautiful Jekyll 风格的永久链接
PERMALINK_PATTERN = "/{year:04d}-{month:02d}-{day:02d}-{slug}/"

BLOG_TITLE = "Kernel Notes"

# 时区 (报告中的 "最后编辑时间")
TIMEZONE_OFFSET_HOURS = 0
TIMEZONE_LABEL = "UTC"

# --- 目录和文件配置 ---
POSTS_DIR = '_posts'
REPORT_DIR = '_report'
TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), 'templates')
REPORT_TEMPLATE = 'report.html'

MANIFEST_FILE = '.check_manifest.json'
POSTS_INDEX_FILE = 'posts.json'
TAGS_INDEX_FILE = 'tags.json'
REPORT_FILE = 'index.html'

# 文件名格式: YYYY-MM-DD-slug.md
POST_FILENAME_PATTERN = r'^(\d{4})-(\d{2})-(\d{2})-(.+)\.md$'

# --- Front-matter 规则 ---
EXPECTED_LAYOUT = 'post'

REQUIRED_FIELDS = ['title', 'author']

# 字段名 -> (类型, 列表元素类型)
FIELD_TYPES = {
    'layout': (str, None),
    'title': (str, None),
    'subtitle': (str, None),
    'gh-repo': (str, None),
    'gh-badge': (list, str),
    'tags': (list, str),
    'comments': (bool, None),
    'mathjax': (bool, None),
    'author': (str, None),
}

ALLOWED_BADGES = ['star', 'watch', 'fork', 'follow']

GH_REPO_PATTERN = r'^[A-Za-z0-9][A-Za-z0-9-]*/[A-Za-z0-9._-]+$'

# 语料处理工具留下的标记，不应出现在正文中
INTERNAL_MARKERS = ['RELATED_DOC_SEP']

# 不需要 host 的 URL scheme
HOSTLESS_SCHEMES = ['mailto', 'tel']

# --- Markdown 配置 ---
# 只用于提取链接，不用于发布
MARKDOWN_EXTENSIONS = [
    'extra',              # fenced_code, tables, footnotes
    'toc',
    'sane_lists',
    'pymdownx.tilde',
    'pymdownx.tasklist',
]

MARKDOWN_EXTENSION_CONFIGS = {
    'toc': {
        'baselevel': 2,
    },
    'pymdownx.tasklist': {
        'custom_checkbox': False,
        'clickable_checkbox': False,
    },
}
# --- Markdown 配置结束 ---

# --- 增量检查 ---
# 这些文件变化时，所有文章都需要重新检查
CORE_DEPENDENCIES = [
    'autocheck.py',
    'parser.py',
    'linter.py',
    'generator.py',
    'config.py',
    os.path.join('templates', 'report.html'),
]
