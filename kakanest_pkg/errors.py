"""
Exception classes for Kakanest.

Recoverable conditions (UnsupportedLanguage, MalformedCalloutMarker) are
resolved inside the markdown pipeline. Everything else is fatal for the
document being built and is surfaced to the site builder.
"""


class KakanestError(Exception):
    """Base exception for all Kakanest errors."""


class UnsupportedLanguage(KakanestError):
    """No highlighting lexer exists for a code block language."""

    def __init__(self, language):
        self.language = language
        super().__init__(f"Unsupported code block language: {language!r}")


class HighlightEngineFailure(KakanestError):
    """The highlighting engine failed while processing a code block."""

    def __init__(self, language, reason):
        self.language = language
        self.reason = reason
        super().__init__(f"Highlighting {language!r} code failed: {reason}")


class TemplateRenderFailure(KakanestError):
    """A template could not be loaded or rendered."""

    def __init__(self, template_name, reason):
        self.template_name = template_name
        self.reason = reason
        super().__init__(f"Failed to render template {template_name!r}: {reason}")


class MalformedCalloutMarker(KakanestError):
    """Blockquote text does not start with a ``[`` / ``!type`` / ``]`` marker."""


class FrontMatterError(KakanestError):
    """A post has missing or invalid YAML front matter."""

    def __init__(self, source, reason):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid front matter in {source}: {reason}")
