"""Markdown-to-HTML rendering for exported metrics reports."""

import html

import mistune

# Reports are mostly tables; hard_wrap keeps multi-line notes readable
_md = mistune.create_markdown(hard_wrap=True, plugins=["table"])

_PAGE_STYLE = (
    "body{font-family:sans-serif;max-width:960px;margin:2em auto;color:#1f2933}"
    "table{border-collapse:collapse;margin:0.5em 0 1.5em}"
    "th,td{border:1px solid #cbd2d9;padding:0.3em 0.7em;text-align:left}"
    "th{background:#f0f4f8}"
)


def markdown_to_html(content: str) -> str:
    """Convert Markdown content to an HTML fragment."""
    if not content:
        return ""
    return _md(content)


def render_html_document(content: str, title: str = "Ticket Metrics Report") -> str:
    """Wrap a Markdown report into a standalone HTML page.

    Args:
        content: Markdown report text.
        title: Page title (escaped).

    Returns:
        A complete HTML document.
    """
    body = markdown_to_html(content)
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n<meta charset="utf-8">\n'
        f"<title>{html.escape(title)}</title>\n"
        f"<style>{_PAGE_STYLE}</style>\n"
        "</head>\n<body>\n"
        f"{body}"
        "</body>\n</html>\n"
    )
