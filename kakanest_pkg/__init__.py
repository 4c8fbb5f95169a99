"""
Kakanest - a markdown blog generator.

Kakanest renders posts written in Markdown with YAML front matter through
Jinja2 templates. Fenced code blocks are highlighted with Pygments and
blockquotes starting with a ``[!type]`` marker become callouts. It writes
post, tag and home pages plus an RSS feed.
"""

__version__ = "0.1.0"

from .core import Kakanest, FileProcessor
from .errors import (
    KakanestError,
    UnsupportedLanguage,
    HighlightEngineFailure,
    TemplateRenderFailure,
    MalformedCalloutMarker,
    FrontMatterError,
)
from .render import BuildContext, render_markdown, create_markdown_parser

__all__ = [
    'Kakanest', 'FileProcessor', 'BuildContext', 'render_markdown', 'create_markdown_parser',
    'KakanestError', 'UnsupportedLanguage', 'HighlightEngineFailure', 'TemplateRenderFailure',
    'MalformedCalloutMarker', 'FrontMatterError',
]
