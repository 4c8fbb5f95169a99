"""
Callout blockquotes.

A callout is a blockquote that starts with a type marker:

    > [!question]
    > What is the meaning of life?

BlockquoteFormatter renders callouts through the "blockquote" template and
passes ordinary blockquotes through untouched.
"""

import logging

from .errors import MalformedCalloutMarker
from .events import End, Html, Start, Text, Void

logger = logging.getLogger(__name__)

# Marker keywords with a dedicated visual variant
CALLOUT_TYPES = {
    'question': 'question',
}

# Break events that end the marker line
BREAKS = ('softbreak', 'linebreak')


def split_lines(text):
    """Split on '\\n' only; a trailing newline adds no empty line and a trailing '\\r' is dropped."""
    lines = text.split('\n')
    if lines[-1] == '':
        lines.pop()
    return [line[:-1] if line.endswith('\r') else line for line in lines]


def read_marker(buffer):
    """
    Split buffered blockquote text into (keyword, body).

    The first three lines must be exactly "[", "!<keyword>" and "]".
    Remaining lines form the body. Raises MalformedCalloutMarker otherwise.
    """
    lines = split_lines(buffer)
    if len(lines) < 3:
        raise MalformedCalloutMarker(f"expected at least 3 lines, got {len(lines)}")
    if lines[0] != '[':
        raise MalformedCalloutMarker(f"first line is {lines[0]!r}, not '['")
    if not lines[1].startswith('!'):
        raise MalformedCalloutMarker(f"marker line {lines[1]!r} does not start with '!'")
    if lines[2] != ']':
        raise MalformedCalloutMarker(f"third line is {lines[2]!r}, not ']'")
    return lines[1][1:], '\n'.join(lines[3:])


def parse_marker(buffer):
    """Return (keyword, body) for callout text, or None for anything else."""
    try:
        return read_marker(buffer)
    except MalformedCalloutMarker:
        return None


def callout_type(keyword):
    """Map a marker keyword to a callout type; unknown keywords are generic (None)."""
    return CALLOUT_TYPES.get(keyword)


def callout_body(events, keyword):
    """
    The events inside a callout blockquote, without its marker.

    The marker must be the opening text of the first block. The break after
    it is dropped, and so is that block if the marker was all it held.
    """
    inner = events[1:-1]
    marker = [Text('['), Text('!' + keyword), Text(']')]
    if len(inner) < 5 or not isinstance(inner[0], Start) or inner[1:4] != marker:
        raise MalformedCalloutMarker("marker is not the opening text of the blockquote")

    opening, rest = inner[0], inner[4:]
    if isinstance(rest[0], Void) and rest[0].tag in BREAKS:
        rest = rest[1:]
    if rest and rest[0] == End(opening.tag):
        return rest[1:]
    return [opening] + rest


class BlockquoteState:
    """Buffer for the outermost blockquote currently being read."""

    def __init__(self):
        self.buffering = False
        self.buffer = ''
        self.events = []
        self.depth = 0

    def open(self, event):
        self.buffering = True
        self.buffer = ''
        self.events = [event]
        self.depth = 1

    def close(self):
        buffer, events = self.buffer, self.events
        self.buffering = False
        self.buffer = ''
        self.events = []
        self.depth = 0
        return buffer, events


class BlockquoteFormatter:
    """
    Render marked blockquotes as callouts.

    All events of the outermost blockquote are suppressed while it is open.
    Text events are also appended, one line each, to a buffer that is
    matched against the marker grammar when the blockquote ends. A match is
    emitted as one Html event, with the body serialized from the held events
    so code, raw HTML and inline markup are kept. No match replays the
    original events.
    """

    template = 'modules/blockquote.html'

    def __init__(self, events, context, render_events):
        self.events = events
        self.context = context
        self.render_events = render_events
        self.state = BlockquoteState()

    def __iter__(self):
        state = self.state
        for event in self.events:
            if not state.buffering:
                if isinstance(event, Start) and event.tag == 'block_quote':
                    state.open(event)
                else:
                    yield event
                continue

            state.events.append(event)
            if isinstance(event, Text):
                state.buffer += event.content + '\n'
            elif isinstance(event, Start) and event.tag == 'block_quote':
                state.depth += 1
            elif isinstance(event, End) and event.tag == 'block_quote':
                state.depth -= 1
                if state.depth == 0:
                    yield from self.finish(*state.close())

        # Unterminated blockquote: hand back what was held
        if state.buffering:
            yield from state.close()[1]

    def finish(self, buffer, events):
        try:
            keyword = read_marker(buffer)[0]
            body = callout_body(events, keyword)
        except MalformedCalloutMarker as e:
            logger.debug(f"Passing blockquote through unchanged: {e}")
            yield from events
            return

        yield Html(self.context.render(
            self.template,
            blockquote_type=callout_type(keyword),
            contents=self.render_events(body),
        ))
