"""
Mistune plugins for wikilinks and YAML-style metadata blocks.
"""

import re

from mistune.util import escape_url

WIKILINK_PATTERN = (
    r'\[\[(?P<wikilink_target>[^\[\]|\n]+)'
    r'(?:\|(?P<wikilink_label>[^\[\]\n]+))?\]\]'
)

METADATA_BLOCK = re.compile(
    r'\A---[ \t]*\n(?P<metadata>.*?)^(?:---|\.\.\.)[ \t]*(?:\n|\Z)',
    re.S | re.M,
)


def parse_wikilink(inline, m, state):
    target = m.group('wikilink_target').strip()
    label = (m.group('wikilink_label') or target).strip()
    if state.in_link:
        inline.process_text(m.group(0), state)
        return m.end()
    state.append_token({
        'type': 'link',
        'children': [{'type': 'text', 'raw': label}],
        'attrs': {'url': escape_url(target)},
    })
    return m.end()


def wikilinks(md):
    """
    Support ``[[Target]]`` and ``[[Target|label]]`` links.

    The link points at ``Target`` as written; resolving it to a page is up
    to the site.
    """
    md.inline.register('wikilink', WIKILINK_PATTERN, parse_wikilink, before='link')


def skip_metadata_block(md, state):
    m = METADATA_BLOCK.match(state.src)
    if m:
        state.env['metadata_block'] = m.group('metadata')
        state.cursor = m.end()


def metadata_block(md):
    """
    Consume a leading ``---`` delimited metadata block.

    The block is not rendered. Its raw text is left in the parse state env
    under ``metadata_block`` for the caller to load.
    """
    md.before_parse_hooks.append(skip_metadata_block)
