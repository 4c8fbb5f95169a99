"""
Parse events for the markdown pipeline.

Mistune parses a document into a tree of token dicts. The pipeline filters
work on a flat, lazily produced sequence of events instead, so a filter only
ever holds the one span it is rewriting:

    Start(tag, attrs, style)  opening of a container token
    End(tag)                  closing of a container token
    Text(content)             plain text, escaped when serialized
    Code(content)             inline code span
    Html(content)             raw HTML, written out verbatim
    Void(tag, attrs)          breaks, thematic breaks and blank lines

Tags are mistune token types ('paragraph', 'block_quote', 'block_code', ...).
"""

import re
from collections import namedtuple

Start = namedtuple('Start', ['tag', 'attrs', 'style'], defaults=(None, None))
End = namedtuple('End', ['tag'])
Text = namedtuple('Text', ['content'])
Code = namedtuple('Code', ['content'])
Html = namedtuple('Html', ['content'])
Void = namedtuple('Void', ['tag', 'attrs'], defaults=(None,))

# Container tokens whose text is literal content, not inline markdown
RAW_BLOCKS = ('block_code', 'block_error')

_BRACKETS = re.compile(r'([\[\]])')


def split_brackets(text):
    """Split a text run so every square bracket is a piece of its own."""
    return [piece for piece in _BRACKETS.split(text) if piece]


def iter_events(tokens):
    """
    Lazily flatten mistune tokens into parse events.

    Adjacent text tokens are merged into one run, and the run is then split
    at square brackets. Bracket delimiters that did not form a link therefore
    always arrive as standalone Text events, whatever way the inline parser
    happened to cut the text.
    """
    pending = []
    for token in tokens:
        if token['type'] == 'text':
            pending.append(token['raw'])
            continue
        if pending:
            yield from _text_events(pending)
            pending = []
        yield from _token_events(token)
    if pending:
        yield from _text_events(pending)


def _text_events(runs):
    for piece in split_brackets(''.join(runs)):
        yield Text(piece)


def _token_events(token):
    token_type = token['type']
    attrs = token.get('attrs') or {}

    if token_type == 'codespan':
        yield Code(token['raw'])
    elif token_type == 'inline_html':
        yield Html(token['raw'])
    elif token_type == 'block_html':
        yield Html(token['raw'] + '\n')
    elif 'children' in token:
        yield Start(token_type, attrs, token.get('style'))
        yield from iter_events(token['children'])
        yield End(token_type)
    elif 'raw' in token:
        yield Start(token_type, attrs, token.get('style'))
        yield Text(token['raw'])
        yield End(token_type)
    else:
        yield Void(token_type, attrs)
