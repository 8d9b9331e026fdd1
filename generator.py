# generator.py - 文章索引 (JSON) 与检查报告 (HTML)

import os
import json
from collections import defaultdict, Counter
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional
from jinja2 import Environment, FileSystemLoader

import config
from linter import Issue, ERROR, WARNING

# --- Jinja2 环境配置 ---
env = Environment(
    loader=FileSystemLoader(config.TEMPLATE_DIR),
    autoescape=True,
    trim_blocks=True,
    lstrip_blocks=True
)


def make_absolute_url(link: str) -> str:
    if not link:
        return ""
    normalized = link if link.startswith('/') else f'/{link}'
    return f"{config.BASE_URL.rstrip('/')}{normalized}"


def sort_summaries(summaries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """按日期倒序排列，没有日期的排在最后。"""
    dated = [s for s in summaries if s.get('date')]
    undated = [s for s in summaries if not s.get('date')]
    dated.sort(key=lambda s: (s['date'], s.get('title', '')), reverse=True)
    undated.sort(key=lambda s: s['path'])
    return dated + undated


def build_posts_index(summaries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    index = []
    for summary in sort_summaries(summaries):
        index.append({
            'title': summary.get('title', ''),
            'subtitle': summary.get('subtitle', ''),
            'author': summary.get('author', ''),
            'date': summary.get('date') or None,
            'slug': summary.get('slug', ''),
            'link': summary.get('link', ''),
            'url': make_absolute_url(summary.get('link', '')),
            'tags': summary.get('tags', []),
            'gh_repo': summary.get('gh_repo', ''),
            'last_edited': summary.get('last_edited', ''),
            'source': summary['path'],
        })
    return index


def build_tag_map(summaries: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """标签名 -> {'slug', 'posts'}，按文章数量倒序。"""
    tag_map = defaultdict(list)
    slugs = {}
    for summary in sort_summaries(summaries):
        for tag in summary.get('tags', []):
            tag_map[tag['name']].append(summary.get('link', ''))
            slugs[tag['name']] = tag['slug']

    sorted_tags = sorted(tag_map.items(), key=lambda item: (-len(item[1]), item[0]))
    return {
        name: {'slug': slugs[name], 'posts': links}
        for name, links in sorted_tags
    }


def _write_json(path: str, data: Any):
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=4)
        f.write('\n')


def generate_posts_index(summaries: List[Dict[str, Any]], output_dir: str) -> bool:
    """生成 posts.json"""
    try:
        output_path = os.path.join(output_dir, config.POSTS_INDEX_FILE)
        _write_json(output_path, build_posts_index(summaries))
        print(f"Generated: {output_path}")
        return True
    except (OSError, TypeError) as e:
        print(f"Error {config.POSTS_INDEX_FILE}: {e}")
        return False


def generate_tags_index(summaries: List[Dict[str, Any]], output_dir: str) -> bool:
    """生成 tags.json"""
    try:
        output_path = os.path.join(output_dir, config.TAGS_INDEX_FILE)
        _write_json(output_path, build_tag_map(summaries))
        print(f"Generated: {output_path}")
        return True
    except (OSError, TypeError) as e:
        print(f"Error {config.TAGS_INDEX_FILE}: {e}")
        return False


def group_issues(issues: List[Issue]) -> List[Dict[str, Any]]:
    by_path = defaultdict(list)
    for issue in issues:
        by_path[issue.path].append(issue)
    return [
        {'path': path, 'issues': by_path[path]}
        for path in sorted(by_path)
    ]


def generate_report_html(summaries: List[Dict[str, Any]], issues: List[Issue],
                         output_dir: str, run_time_info: str,
                         template_name: Optional[str] = None) -> bool:
    """生成 HTML 检查报告"""
    try:
        output_path = os.path.join(output_dir, config.REPORT_FILE)
        template = env.get_template(template_name or config.REPORT_TEMPLATE)

        severities = Counter(i.severity for i in issues)
        tag_map = build_tag_map(summaries)
        tag_cloud = []
        for name, data in tag_map.items():
            count = len(data['posts'])
            font_size = max(1.0, min(2.5, 0.8 + count * 0.15))
            tag_cloud.append({'name': name, 'slug': data['slug'], 'count': count, 'font_size': font_size})

        context = {
            'page_title': f"{config.BLOG_TITLE} - content check",
            'blog_title': config.BLOG_TITLE,
            'posts': build_posts_index(summaries),
            'issue_groups': group_issues(issues),
            'error_count': severities.get(ERROR, 0),
            'warning_count': severities.get(WARNING, 0),
            'tag_cloud': tag_cloud,
            'current_year': datetime.now(timezone.utc).year,
            'footer_time_info': run_time_info,
        }

        html_content = template.render(context)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(html_content)
        print(f"Generated: {output_path}")
        return True
    except Exception as e:
        print(f"Error {config.REPORT_FILE}: {e}")
        return False
