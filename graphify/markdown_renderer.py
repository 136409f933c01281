"""
HTML rendering of graph documents.

Graph documents only contain headings and bullet lists, so rendering needs
no code highlighting; headings get anchor ids so the browser view can link
straight to a service, endpoint or use case section.
"""

import markdown
from markdown.extensions.sane_lists import SaneListExtension
from markdown.extensions.toc import TocExtension

from graphify.markdown_serializer import serialize


def render_markdown(content: str) -> str:
    """
    Convert a Markdown document to HTML.

    Args:
        content: Markdown text to convert

    Returns:
        HTML string, empty for empty input

    Example:
        >>> html = render_markdown("# Services overview\\n- Id: 1")
        >>> '<h1 id="services-overview">Services overview</h1>' in html
        True
    """
    if not content:
        return ""

    md = markdown.Markdown(extensions=[
        TocExtension(permalink=False),
        SaneListExtension(),
    ])
    return md.convert(content)


def render_model_html(instance) -> str:
    """Serialize a model with the Markdown codec and render the result."""
    return render_markdown(serialize(instance))
