"""
Markdown rendering: the template context, the event pipeline and the
serializer that turns pipeline output back into HTML.
"""

import os

import mistune
from jinja2 import ChoiceLoader, Environment, FileSystemLoader, PackageLoader, TemplateError

from .callouts import BlockquoteFormatter
from .errors import TemplateRenderFailure
from .events import RAW_BLOCKS, Code, End, Html, Start, Text, Void, iter_events
from .highlight import DEFAULT_THEME, CodeBlockHighlighter, HighlightEngine
from .plugins import metadata_block, wikilinks

MARKDOWN_PLUGINS = ['strikethrough', 'table', 'task_lists', wikilinks, metadata_block]


class BuildContext:
    """
    Templates and highlighting theme for one build.

    Created once per invocation (and once per worker process) and handed to
    the pipeline filters explicitly. Site templates in ``templates_dir``
    override the defaults bundled with the package.
    """

    def __init__(self, templates_dir=None, theme=DEFAULT_THEME):
        self.templates_dir = templates_dir
        self.theme = theme

        loaders = []
        if templates_dir and os.path.isdir(templates_dir):
            loaders.append(FileSystemLoader(templates_dir))
        loaders.append(PackageLoader('kakanest_pkg', 'templates'))
        self.env = Environment(loader=ChoiceLoader(loaders))

    def render(self, template_name, **context):
        """Render a template, raising TemplateRenderFailure on any template error."""
        try:
            template = self.env.get_template(template_name)
            return template.render(**context)
        except TemplateError as e:
            raise TemplateRenderFailure(template_name, e) from e


class PipelineRenderer(mistune.HTMLRenderer):
    """
    Mistune renderer that runs parsed tokens through the event pipeline.

    Tokens are flattened into events, code blocks are highlighted, callouts
    are formatted, and the result is serialized with the HTMLRenderer
    methods. Raw HTML in the source is kept as written.
    """

    def __init__(self, context, engine):
        super().__init__(escape=False)
        self.context = context
        self.engine = engine

    def __call__(self, tokens, state):
        return self.render_events(self.pipeline(iter_events(tokens)))

    def pipeline(self, events):
        events = CodeBlockHighlighter(events, self.context, self.engine)
        return BlockquoteFormatter(events, self.context, self.render_events)

    def render_events(self, events):
        """Fold an event sequence into an HTML fragment."""
        frames = []
        parts = []
        for event in events:
            if isinstance(event, Start):
                frames.append((event, parts))
                parts = []
            elif isinstance(event, End):
                if not frames or frames[-1][0].tag != event.tag:
                    raise ValueError(f"Unbalanced end event for {event.tag!r}")
                start, parts_outer = frames.pop()
                text = ''.join(parts)
                parts = parts_outer
                parts.append(self.render_container(start, text))
            elif isinstance(event, Text):
                if frames and frames[-1][0].tag in RAW_BLOCKS:
                    parts.append(event.content)
                else:
                    parts.append(self.text(event.content))
            elif isinstance(event, Code):
                parts.append(self.codespan(event.content))
            elif isinstance(event, Html):
                parts.append(event.content)
            elif isinstance(event, Void):
                method = self._get_method(event.tag)
                parts.append(method(**event.attrs) if event.attrs else method())
            else:
                raise TypeError(f"Not a parse event: {event!r}")

        if frames:
            raise ValueError(f"Unclosed {frames[-1][0].tag!r} at end of document")
        return ''.join(parts)

    def render_container(self, start, text):
        method = self._get_method(start.tag)
        if start.attrs:
            return method(text, **start.attrs)
        return method(text)


def create_markdown_parser(context, engine=None):
    """Create a mistune parser whose renderer runs the event pipeline."""
    if engine is None:
        engine = HighlightEngine(context.theme)
    return mistune.create_markdown(
        renderer=PipelineRenderer(context, engine),
        plugins=MARKDOWN_PLUGINS,
    )


def render_markdown(text, context, engine=None):
    """Render markdown text to an HTML fragment."""
    return create_markdown_parser(context, engine)(text)
