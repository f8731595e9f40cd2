"""Render collected articles as JSON or Markdown."""
import json
from datetime import datetime, timezone

from .models import Article
from .timestamps import format_local, format_timestamp, isoformat_utc, sort_key

FORMATS = ("json", "grouped", "list")


def generate_json_export(articles: list[Article], now: datetime | None = None) -> str:
    """JSON export shared with the browser extension.

    Key names and order are a compatibility contract:
    ``exportTime``, ``exportTimeFormatted``, ``total``, ``articles``.
    """
    now = now or datetime.now(timezone.utc)
    return json.dumps({
        "exportTime": isoformat_utc(now),
        "exportTimeFormatted": format_local(now),
        "total": len(articles),
        "articles": [article.to_dict() for article in articles],
    }, indent=2, ensure_ascii=False)


def parse_json_export(text: str) -> list[Article]:
    """Read the article list back out of a JSON export."""
    data = json.loads(text)
    return [Article.from_dict(item) for item in data.get("articles", [])]


def format_article_markdown(article: Article) -> str:
    md = f"### {article.title}\n"
    md += f"- Source: {article.feed_title}\n"
    md += f"- Time: {format_timestamp(article.published_at)}\n"
    md += f"- Link: {article.url}\n"
    if article.summary:
        md += f"- Summary: {article.summary}\n"
    md += "\n"
    return md


def group_by_category(articles: list[Article]) -> list[tuple[str, list[Article]]]:
    """Partition by category, largest group first.

    Ties keep first-encountered order and members keep accumulation order.
    """
    grouped: dict[str, list[Article]] = {}
    for article in articles:
        grouped.setdefault(article.category or "Uncategorized", []).append(article)
    return sorted(grouped.items(), key=lambda item: len(item[1]), reverse=True)


def sort_by_published(articles: list[Article]) -> list[Article]:
    """Newest first; missing or unparseable timestamps sort last."""
    return sorted(articles, key=lambda a: sort_key(a.published_at), reverse=True)


def generate_markdown_export(articles: list[Article], format: str = "list", now: datetime | None = None) -> str:
    """Markdown export, either a flat time-sorted list or grouped by category."""
    now = now or datetime.now(timezone.utc)

    md = "# Folo Unread Articles Export\n"
    md += f"Export time: {format_local(now)}\n"
    md += f"Total: {len(articles)} articles\n\n"
    md += "---\n\n"

    if format == "grouped":
        for category, items in group_by_category(articles):
            md += f"## {category} ({len(items)})\n\n"
            for article in items:
                md += format_article_markdown(article)
            md += "---\n\n"
    else:
        for article in sort_by_published(articles):
            md += format_article_markdown(article)

    return md


def render(articles: list[Article], format: str, now: datetime | None = None) -> str:
    """Render ``articles`` in one of FORMATS."""
    if format not in FORMATS:
        raise ValueError(f"Unsupported format: {format}")
    if format == "json":
        return generate_json_export(articles, now=now)
    return generate_markdown_export(articles, format, now=now)
