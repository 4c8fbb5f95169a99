"""Tests for the markdown renderer and its plugins."""

import os

import pytest

from kakanest_pkg.errors import TemplateRenderFailure
from kakanest_pkg.events import Start, End, Text, Code, Html, Void
from kakanest_pkg.highlight import HighlightEngine
from kakanest_pkg.render import BuildContext, PipelineRenderer, create_markdown_parser, render_markdown


class TestBuildContext:
    """Test cases for BuildContext."""

    def test_bundled_templates(self, context):
        output = context.render('modules/codeblock.html', lang='rust', contents='x')
        assert '<p class="lang-label">rust</p>' in output
        assert '<pre>x</pre>' in output

    def test_site_templates_override_bundled(self, temp_dir):
        modules = os.path.join(temp_dir, 'modules')
        os.makedirs(modules)
        with open(os.path.join(modules, 'codeblock.html'), 'w') as f:
            f.write('<pre data-lang="{{ lang }}">{{ contents }}</pre>')

        context = BuildContext(temp_dir)
        output = render_markdown("```python\npass\n```\n", context)
        assert output.startswith('<pre data-lang="python">')

    def test_missing_template(self, context):
        with pytest.raises(TemplateRenderFailure, match='missing.html'):
            context.render('missing.html')

    def test_broken_template(self, temp_dir):
        with open(os.path.join(temp_dir, 'broken.html'), 'w') as f:
            f.write('{% for x in %}')
        with pytest.raises(TemplateRenderFailure):
            BuildContext(temp_dir).render('broken.html')

    def test_template_failure_fails_the_document(self, temp_dir):
        modules = os.path.join(temp_dir, 'modules')
        os.makedirs(modules)
        with open(os.path.join(modules, 'blockquote.html'), 'w') as f:
            f.write('{{ missing.attribute }}')

        with pytest.raises(TemplateRenderFailure):
            render_markdown("> [!question]\n> Why?\n", BuildContext(temp_dir))


class TestPipelineRenderer:
    """Test cases for serializing events."""

    def renderer(self, context):
        return PipelineRenderer(context, HighlightEngine())

    def test_render_events(self, context):
        events = [
            Start('paragraph', {}, None),
            Text('a < b '), Code('x'), Html('<kbd>k</kbd>'), Void('linebreak', {}),
            End('paragraph'),
        ]
        output = self.renderer(context).render_events(events)
        assert output == '<p>a &lt; b <code>x</code><kbd>k</kbd><br />\n</p>\n'

    def test_unbalanced_end(self, context):
        with pytest.raises(ValueError):
            self.renderer(context).render_events([Start('paragraph', {}, None), End('block_quote')])

    def test_unclosed_start(self, context):
        with pytest.raises(ValueError):
            self.renderer(context).render_events([Start('paragraph', {}, None)])

    def test_not_an_event(self, context):
        with pytest.raises(TypeError):
            self.renderer(context).render_events(['text'])


class TestRenderMarkdown:
    """End-to-end rendering."""

    def test_plain_markdown(self, context):
        output = render_markdown("# Title\n\nSome **bold** text.\n\n- one\n- two\n", context)

        assert '<h1>Title</h1>' in output
        assert '<strong>bold</strong>' in output
        assert '<li>one</li>' in output

    def test_rendering_is_repeatable(self, context):
        text = "```rust\nfn bob() {}\n```\n\n> [!question]\n> Why?\n\nDone.\n"
        parser = create_markdown_parser(context)
        assert parser(text) == parser(text) == render_markdown(text, context)

    def test_raw_html_is_kept(self, context):
        output = render_markdown('<div class="x">raw</div>\n\nText with <kbd>k</kbd>.\n', context)

        assert '<div class="x">raw</div>' in output
        assert '<kbd>k</kbd>' in output

    def test_links_and_images(self, context):
        output = render_markdown("[site](https://example.com) ![alt](images/a.png)\n", context)

        assert '<a href="https://example.com">site</a>' in output
        assert '<img src="images/a.png" alt="alt" />' in output

    def test_brackets_that_are_not_links(self, context):
        output = render_markdown("array[0] and [not a link]\n", context)
        assert output == '<p>array[0] and [not a link]</p>\n'

    def test_wikilinks(self, context):
        output = render_markdown("See [[Target]] and [[Other|the other]].\n", context)

        assert '<a href="Target">Target</a>' in output
        assert '<a href="Other">the other</a>' in output

    def test_strikethrough_and_task_lists(self, context):
        output = render_markdown("~~gone~~\n\n- [x] done\n- [ ] todo\n", context)

        assert '<del>gone</del>' in output
        assert 'task-list-item' in output
        assert 'checked' in output

    def test_tables(self, context):
        output = render_markdown("| a | b |\n|---|---|\n| 1 | 2 |\n", context)

        assert '<table>' in output
        assert '<th>a</th>' in output
        assert '<td>2</td>' in output

    def test_metadata_block_is_not_rendered(self, context):
        parser = create_markdown_parser(context)
        output, state = parser.parse("---\ndate: 2024-01-02\ntags: [a]\n---\n\nBody\n")

        assert output == '<p>Body</p>\n'
        assert state.env['metadata_block'] == 'date: 2024-01-02\ntags: [a]\n'

    def test_thematic_break_is_not_a_metadata_block_later(self, context):
        output = render_markdown("Intro\n\n---\n\nafter\n", context)
        assert '<hr />' in output
