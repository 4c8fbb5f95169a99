"""Test configuration and fixtures for Kakanest tests."""

import pytest
import tempfile
import shutil
from pathlib import Path

from PIL import Image

from kakanest_pkg.highlight import HighlightEngine
from kakanest_pkg.render import BuildContext, PipelineRenderer


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def context():
    """A build context using only the bundled templates."""
    return BuildContext()


@pytest.fixture
def render_events(context):
    """Serializer for event sequences, as used by the markdown pipeline."""
    return PipelineRenderer(context, HighlightEngine()).render_events


@pytest.fixture
def mock_templates_dir(temp_dir):
    """Create a minimal site templates directory."""
    templates_dir = Path(temp_dir) / 'assets' / 'templates'
    (templates_dir / 'modules').mkdir(parents=True)

    (templates_dir / 'blog.html').write_text(
        "<h1>{{ post.title }}</h1>\n"
        "<time>{{ post.metadata.date }}</time>\n"
        "<article>{{ post.contents }}</article>\n"
    )
    (templates_dir / 'homepage.html').write_text(
        "{% for post in posts %}<a href=\"/posts/{{ post.slug }}/index.html\">{{ post.title }}</a>\n{% endfor %}"
    )
    (templates_dir / 'tag_page.html').write_text(
        "<h1>#{{ name }}</h1>\n{% for post in posts %}<li>{{ post.title }}</li>\n{% endfor %}"
    )
    return str(templates_dir)


@pytest.fixture
def mock_site(temp_dir, mock_templates_dir):
    """Create a site tree with posts, images and static files."""
    site = Path(temp_dir)
    blog_dir = site / 'assets' / 'blog'
    images_dir = blog_dir / 'images'
    static_dir = site / 'assets' / 'static'
    images_dir.mkdir(parents=True)
    (static_dir / 'css').mkdir(parents=True)

    (blog_dir / 'Hello World.md').write_text("""---
date: 2024-01-02
published: true
tags: ["#python", "rust"]
read_mins: 2
---

Hello there.

```rust
fn bob() {}
```

> [!question]
> Why?

![cat](images/cat.png)
""")

    (blog_dir / 'Older Post.md').write_text("""---
date: 2023-06-01
published: true
tags: ["#python"]
---

An older post.
""")

    (blog_dir / 'Draft.md').write_text("""---
date: 2024-05-05
published: false
tags: ["drafts"]
---

Not yet.
""")

    Image.new('RGB', (4, 4), color='red').save(images_dir / 'cat.png', 'PNG')
    (static_dir / 'css' / 'site.css').write_text("body {\n    color: red;\n}\n")
    (static_dir / 'favicon.txt').write_text("icon")

    return {
        'root': str(site),
        'content': str(blog_dir),
        'templates': mock_templates_dir,
        'static': str(static_dir),
        'images': str(images_dir),
        'output': str(site / 'output'),
    }
