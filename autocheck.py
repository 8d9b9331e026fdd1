# autocheck.py - 文章内容检查 (支持增量检查)

import os
import sys
import glob
import hashlib
import json
import subprocess
from argparse import ArgumentParser
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone, timedelta

import config
from parser import get_metadata_and_content
from linter import Issue, check_post, check_corpus, sort_issues, has_errors, ERROR, WARNING
import generator

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
# 与 _posts、_report 一样相对于当前工作目录
DEFAULT_MANIFEST = config.MANIFEST_FILE

TIMEZONE_INFO = timezone(timedelta(hours=config.TIMEZONE_OFFSET_HOURS))


# --- Manifest 辅助函数 (增量检查所需) ---
def load_manifest(manifest_path: str) -> Dict[str, Any]:
    """加载上一次的检查清单文件。"""
    try:
        with open(manifest_path, 'r', encoding='utf-8') as f:
            manifest = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        return {}
    return manifest if isinstance(manifest, dict) else {}


def save_manifest(manifest: Dict[str, Any], manifest_path: str):
    """保存当前的检查清单文件。"""
    try:
        with open(manifest_path, 'w', encoding='utf-8') as f:
            json.dump(manifest, f, ensure_ascii=False, indent=4)
    except OSError as e:
        print(f"警告：无法写入检查清单文件 {manifest_path}: {e}")


def get_full_content_hash(filepath: str) -> str:
    """计算文件的完整 SHA256 哈希值。文件不存在时返回空字符串。"""
    h = hashlib.sha256()
    try:
        with open(filepath, 'rb') as f:
            for byte_block in iter(lambda: f.read(4096), b""):
                h.update(byte_block)
    except OSError:
        return ""
    return h.hexdigest()


def format_dt(dt: datetime, source: str) -> str:
    # Naive 对象视为 UTC
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(TIMEZONE_INFO)
    return f"{dt.strftime('%Y-%m-%d %H:%M:%S')} ({config.TIMEZONE_LABEL} - {source})"


def format_file_mod_time(filepath: str) -> str:
    """
    获取文件的最后编辑时间。
    优先级：1. Git Author Time -> 2. 文件系统修改时间 -> 3. 当前时间。
    """
    # --- 1. Git 最后提交时间 (Author Time) ---
    try:
        git_command = ['git', 'log', '-1', '--pretty=format:%aI', '--', os.path.basename(filepath)]
        result = subprocess.run(
            git_command, capture_output=True, text=True,
            cwd=os.path.dirname(os.path.abspath(filepath)),
        )
        git_time_str = result.stdout.strip() if result.returncode == 0 else ''
        if git_time_str:
            if git_time_str.endswith('Z'):
                git_time_str = git_time_str[:-1] + '+00:00'
            return format_dt(datetime.fromisoformat(git_time_str), 'Git')
    except (OSError, ValueError, subprocess.SubprocessError):
        pass

    # --- 2. 文件系统修改时间 ---
    try:
        timestamp = os.path.getmtime(filepath)
        return format_dt(datetime.fromtimestamp(timestamp, tz=timezone.utc), 'Filesystem')
    except OSError:
        pass

    # --- 3. 最终回退 ---
    return format_dt(datetime.now(timezone.utc), 'Fallback')


def summarize_post(post: Dict[str, Any], content_hash: str, issues: List[Issue]) -> Dict[str, Any]:
    """清单中保存的文章摘要：跨文章检查与索引生成只需要这些字段。"""
    metadata = post['metadata']

    def text(field: str) -> str:
        value = metadata.get(field)
        return value.strip() if isinstance(value, str) else ''

    return {
        'path': post['path'],
        'hash': content_hash,
        'title': post['title'],
        'subtitle': text('subtitle'),
        'author': text('author'),
        'gh_repo': text('gh-repo'),
        'date': post['date'].isoformat() if post['date'] else '',
        'slug': post['slug'],
        'link': post['link'],
        'tags': post['tags'],
        'last_edited': format_file_mod_time(post['path']),
        'issues': [i.to_dict() for i in issues],
    }


def find_post_files(posts_dir: str) -> List[str]:
    md_files = glob.glob(os.path.join(posts_dir, '*.md'))
    return sorted(p.replace('\\', '/') for p in md_files)


def core_dependency_hashes() -> Dict[str, str]:
    hashes = {}
    for core_file in config.CORE_DEPENDENCIES:
        full_path = os.path.join(SCRIPT_DIR, core_file)
        if os.path.exists(full_path):
            hashes[core_file.replace('\\', '/')] = get_full_content_hash(full_path)
    return hashes


def run_checks(posts_dir: str = config.POSTS_DIR,
               report_dir: Optional[str] = config.REPORT_DIR,
               manifest_path: str = DEFAULT_MANIFEST,
               use_cache: bool = True,
               strict: bool = False) -> int:
    """
    检查 posts_dir 下的所有文章，返回进程退出码。
    report_dir 为 None 时不生成索引和报告。
    """
    print("\n" + "=" * 40)
    print("   STARTING CONTENT CHECK")
    print("=" * 40 + "\n")

    # -------------------------------------------------------------------------
    # [1/4] 准备工作
    # -------------------------------------------------------------------------
    print("[1/4] Loading manifest and checking core dependencies...")
    md_files = find_post_files(posts_dir)
    if not md_files:
        print(f"[error] no posts found in {posts_dir}", file=sys.stderr)
        raise SystemExit(2)

    old_manifest = load_manifest(manifest_path) if use_cache else {}
    new_manifest: Dict[str, Any] = {'core': core_dependency_hashes(), 'posts': {}}

    core_changed = new_manifest['core'] != old_manifest.get('core')
    if old_manifest and core_changed:
        print("   -> [CHANGE DETECTED] Core dependency changed, re-checking all posts.")

    # -------------------------------------------------------------------------
    # [2/4] 逐篇检查 (增量检查核心)
    # -------------------------------------------------------------------------
    print("\n[2/4] Checking posts...")
    issues: List[Issue] = []
    summaries: List[Dict[str, Any]] = []
    checked = 0

    for md_file in md_files:
        current_hash = get_full_content_hash(md_file)
        old_item = old_manifest.get('posts', {}).get(md_file, {})

        if not core_changed and old_item.get('hash') == current_hash and 'issues' in old_item:
            print(f"   -> [CACHED] {os.path.basename(md_file)}")
            summary = dict(old_item, path=md_file)
            post_issues = [Issue.from_dict(i) for i in old_item['issues']]
        else:
            print(f"   -> [CHECKED] {os.path.basename(md_file)}")
            post = get_metadata_and_content(md_file)
            post_issues = check_post(post)
            summary = summarize_post(post, current_hash, post_issues)
            checked += 1

        issues.extend(post_issues)
        summaries.append(summary)
        new_manifest['posts'][md_file] = summary

    deleted_paths = set(old_manifest.get('posts', {})) - set(new_manifest['posts'])
    for deleted_path in sorted(deleted_paths):
        print(f"   -> [DELETED] Source file {deleted_path} removed.")

    print(f"   -> {len(md_files)} post(s), {checked} checked, {len(md_files) - checked} from cache.")

    # -------------------------------------------------------------------------
    # [3/4] 跨文章检查 (每次都重新执行)
    # -------------------------------------------------------------------------
    print("\n[3/4] Checking the post collection...")
    issues.extend(check_corpus(summaries))
    issues = sort_issues(issues)

    for issue in issues:
        print(issue.format())

    errors = sum(1 for i in issues if i.severity == ERROR)
    warnings = sum(1 for i in issues if i.severity == WARNING)
    print(f"   -> {errors} error(s), {warnings} warning(s).")

    # -------------------------------------------------------------------------
    # [4/4] 生成索引和报告
    # -------------------------------------------------------------------------
    if report_dir:
        print("\n[4/4] Generating index and report...")
        os.makedirs(report_dir, exist_ok=True)
        run_time_info = f"Checked at: {format_dt(datetime.now(timezone.utc), 'Run')}"
        generator.generate_posts_index(summaries, report_dir)
        generator.generate_tags_index(summaries, report_dir)
        if not generator.generate_report_html(summaries, issues, report_dir, run_time_info):
            print(f"   -> [WARNING] HTML report was not written (template dir: {config.TEMPLATE_DIR})")
    else:
        print("\n[4/4] Report generation skipped.")

    if use_cache:
        save_manifest(new_manifest, manifest_path)
        print("   -> Manifest file updated.")

    if has_errors(issues, strict=strict):
        print("\nCHECK FAILED")
        return 1

    print("\nCHECK PASSED")
    return 0


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        description="Check blog posts for front-matter, code fence, link and naming problems."
    )
    parser.add_argument(
        "--posts-dir", type=str, default=config.POSTS_DIR,
        help=f"Directory holding YYYY-MM-DD-slug.md posts (default: {config.POSTS_DIR})",
    )
    parser.add_argument(
        "--report-dir", type=str, default=config.REPORT_DIR,
        help=f"Output directory for posts.json, tags.json and the HTML report (default: {config.REPORT_DIR})",
    )
    parser.add_argument(
        "--manifest", type=str, default=DEFAULT_MANIFEST,
        help="Path of the incremental check manifest",
    )
    parser.add_argument(
        "--no-cache", dest="use_cache", action="store_false",
        help="Ignore and do not update the manifest",
    )
    parser.add_argument(
        "--no-report", dest="write_report", action="store_false",
        help="Do not write the index and the HTML report",
    )
    parser.add_argument(
        "--strict", action="store_true",
        help="Treat warnings as errors",
    )
    parser.set_defaults(use_cache=True, write_report=True)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return run_checks(
        posts_dir=args.posts_dir,
        report_dir=args.report_dir if args.write_report else None,
        manifest_path=args.manifest,
        use_cache=args.use_cache,
        strict=args.strict,
    )


if __name__ == '__main__':
    sys.exit(main())
