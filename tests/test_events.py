"""Tests for flattening mistune tokens into parse events."""

from kakanest_pkg.events import Start, End, Text, Code, Html, Void, iter_events, split_brackets


class TestSplitBrackets:
    """Test cases for split_brackets."""

    def test_brackets_are_separate_pieces(self):
        assert split_brackets('[!question]') == ['[', '!question', ']']

    def test_no_brackets(self):
        assert split_brackets('plain text') == ['plain text']

    def test_adjacent_brackets_drop_empty_pieces(self):
        assert split_brackets('[[x]]') == ['[', '[', 'x', ']', ']']


class TestIterEvents:
    """Test cases for iter_events."""

    def test_container_with_children(self):
        tokens = [{'type': 'paragraph', 'children': [{'type': 'text', 'raw': 'hi'}]}]
        assert list(iter_events(tokens)) == [
            Start('paragraph', {}, None),
            Text('hi'),
            End('paragraph'),
        ]

    def test_adjacent_text_tokens_are_merged_before_splitting(self):
        tokens = [
            {'type': 'text', 'raw': '[!que'},
            {'type': 'text', 'raw': 'stion'},
            {'type': 'text', 'raw': ']'},
        ]
        assert list(iter_events(tokens)) == [Text('['), Text('!question'), Text(']')]

    def test_raw_block_yields_text_without_splitting(self):
        tokens = [{
            'type': 'block_code',
            'raw': 'a[0]\n',
            'style': 'fenced',
            'attrs': {'info': 'python'},
        }]
        assert list(iter_events(tokens)) == [
            Start('block_code', {'info': 'python'}, 'fenced'),
            Text('a[0]\n'),
            End('block_code'),
        ]

    def test_inline_tokens(self):
        tokens = [
            {'type': 'codespan', 'raw': 'x = 1'},
            {'type': 'inline_html', 'raw': '<kbd>'},
            {'type': 'softbreak'},
        ]
        assert list(iter_events(tokens)) == [Code('x = 1'), Html('<kbd>'), Void('softbreak', {})]

    def test_block_html_keeps_line_ending(self):
        tokens = [{'type': 'block_html', 'raw': '<div></div>'}]
        assert list(iter_events(tokens)) == [Html('<div></div>\n')]

    def test_events_are_lazy(self):
        """Events are produced on demand, not collected up front."""
        def tokens():
            yield {'type': 'text', 'raw': 'a'}
            yield {'type': 'thematic_break'}
            raise AssertionError("consumed too far")

        events = iter_events(tokens())
        assert next(events) == Text('a')
        assert next(events) == Void('thematic_break', {})
