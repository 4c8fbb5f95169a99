"""
Syntax highlighting for fenced code blocks.

HighlightEngine wraps Pygments. CodeBlockHighlighter is the stream filter
that replaces every fenced code block in an event sequence with a single
Html event rendered through the "codeblock" template.
"""

import logging

import mistune
import pygments
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .errors import HighlightEngineFailure, UnsupportedLanguage
from .events import End, Html, Start, Text

logger = logging.getLogger(__name__)

DEFAULT_THEME = 'one-dark'


class HighlightEngine:
    """
    Pygments lexers plus an inline-styled HTML formatter.

    Lexers and formatters are cached on the instance, so one engine belongs
    to one worker and must not be shared by documents rendering concurrently.
    """

    def __init__(self, theme=DEFAULT_THEME):
        self.theme = theme
        self._lexers = {}
        self._formatters = {}

    def lexer_for(self, language):
        """Return the lexer for a language name or alias."""
        if not language:
            raise UnsupportedLanguage(language)
        if language not in self._lexers:
            try:
                # Keep the code byte-for-byte: no newline stripping or adding
                self._lexers[language] = get_lexer_by_name(language, stripnl=False, ensurenl=False)
            except ClassNotFound:
                self._lexers[language] = None
        lexer = self._lexers[language]
        if lexer is None:
            raise UnsupportedLanguage(language)
        return lexer

    def supports(self, language):
        try:
            self.lexer_for(language)
        except UnsupportedLanguage:
            return False
        return True

    def process(self, code, language):
        """Tokenize code, returning a list of (token type, text) pairs."""
        lexer = self.lexer_for(language)
        try:
            return list(lexer.get_tokens(code))
        except Exception as e:
            raise HighlightEngineFailure(language, e) from e

    def render(self, tokens, theme=None):
        """Render processed tokens to styled spans (no wrapping <pre>)."""
        theme = theme or self.theme
        try:
            formatter = self._formatters.get(theme)
            if formatter is None:
                formatter = HtmlFormatter(style=theme, nowrap=True, noclasses=True)
                self._formatters[theme] = formatter
            return pygments.format(tokens, formatter)
        except Exception as e:
            raise HighlightEngineFailure(theme, e) from e


class CodeBlockState:
    """Buffer for the fenced code block currently being read."""

    def __init__(self):
        self.buffering = False
        self.language = None
        self.buffer = ''

    def open(self, language):
        self.buffering = True
        self.language = language
        self.buffer = ''

    def close(self):
        code, language = self.buffer, self.language
        self.buffering = False
        self.language = None
        self.buffer = ''
        return code, language


def code_language(info):
    """The language of a fence info string is its first word."""
    if not info:
        return None
    return info.split(None, 1)[0]


class CodeBlockHighlighter:
    """
    Replace each fenced code block with one rendered Html event.

    The Start, Text and End events of a fenced block are suppressed and the
    code is collected until the block ends. It is then highlighted, or
    escaped if the language is missing or unknown, and wrapped by the
    "codeblock" template. Every other event is passed through in order.
    """

    template = 'modules/codeblock.html'

    def __init__(self, events, context, engine):
        self.events = events
        self.context = context
        self.engine = engine
        self.state = CodeBlockState()

    def __iter__(self):
        state = self.state
        for event in self.events:
            if isinstance(event, Start) and event.tag == 'block_code' and event.style == 'fenced':
                state.open(code_language(event.attrs.get('info')))
            elif isinstance(event, Text) and state.buffering:
                state.buffer += event.content
            elif isinstance(event, End) and event.tag == 'block_code' and state.buffering:
                code, language = state.close()
                yield Html(self.render_block(code, language))
            else:
                yield event

    def render_block(self, code, language):
        try:
            tokens = self.engine.process(code, language)
        except UnsupportedLanguage:
            if language:
                logger.debug(f"No lexer for {language!r}, rendering code block unhighlighted")
            return self.context.render(self.template, lang='', contents=mistune.escape(code))

        contents = self.engine.render(tokens, self.context.theme)
        return self.context.render(self.template, lang=language, contents=contents)
