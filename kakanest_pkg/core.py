import os
import re
import shutil
import logging
import unicodedata
from datetime import datetime, date
from email.utils import formatdate
from xml.sax.saxutils import escape
from concurrent.futures import ProcessPoolExecutor, as_completed

import yaml
import rcssmin
import rjsmin
from PIL import Image

from .errors import KakanestError, FrontMatterError
from .highlight import HighlightEngine, DEFAULT_THEME
from .render import BuildContext, create_markdown_parser

RASTER_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.gif', '.bmp', '.tiff')
IMG_SRC = re.compile(r'(<img\b[^>]*?\bsrc=")([^"]+)(")', re.IGNORECASE)
WORDS_PER_MINUTE = 200

# FileProcessor owned by this worker process (multiprocessing builds only)
_worker_processor = None


def initializer(templates_dir, output_dir, site, theme, webp):
    """Create the FileProcessor, and so the highlighting engine, owned by a worker process."""
    global _worker_processor
    _worker_processor = FileProcessor(templates_dir, output_dir, site, theme=theme, webp=webp)


def process_file(file_path):
    """Process a markdown file with this worker's FileProcessor."""
    return _worker_processor.process(file_path)


def slugify(text):
    """Lowercase ASCII slug with runs of other characters collapsed to '-'."""
    text = unicodedata.normalize('NFKD', text).encode('ascii', 'ignore').decode('ascii')
    slug = re.sub(r'[^a-zA-Z0-9]+', '-', text).strip('-').lower()
    return slug or 'post'


def parse_date(date_str):
    """Parse a date string."""
    if isinstance(date_str, datetime):
        return date_str
    elif isinstance(date_str, date):
        return datetime(date_str.year, date_str.month, date_str.day)
    elif isinstance(date_str, str):
        for fmt in ['%Y-%m-%dT%H:%M:%S', '%Y-%m-%d %H:%M:%S', '%Y-%m-%d', '%b %d, %Y']:
            try:
                return datetime.strptime(date_str, fmt)
            except ValueError:
                continue
    return datetime.min


class FileProcessor:
    """
    Render markdown posts to pages.

    Each FileProcessor owns its own HighlightEngine. A build uses one
    processor in-process, or one per worker process when posts are rendered
    in parallel.
    """

    def __init__(self, templates_dir, output_dir, site, theme=DEFAULT_THEME, webp=False, context=None):
        self.templates_dir = templates_dir
        self.output_dir = output_dir
        self.site = site
        self.webp = webp
        self.logger = logging.getLogger('Kakanest.FileProcessor')

        self.context = context or BuildContext(templates_dir, theme)
        self.engine = HighlightEngine(self.context.theme)
        self.markdown_parser = create_markdown_parser(self.context, self.engine)

    def markdown_filter(self, text):
        """Convert markdown text to HTML, returning (html, raw front matter or None)."""
        html, state = self.markdown_parser.parse(text)
        return html, state.env.get('metadata_block')

    def parse_front_matter(self, raw, source, markdown_content=''):
        """Load and normalize the YAML front matter of a post."""
        if raw is None:
            raise FrontMatterError(source, "no '---' metadata block at the start of the file")
        try:
            metadata = yaml.safe_load(raw) or {}
        except yaml.YAMLError as e:
            raise FrontMatterError(source, e) from e
        if not isinstance(metadata, dict):
            raise FrontMatterError(source, f"expected a mapping, got {type(metadata).__name__}")

        post_date = metadata.get('date', '')
        if isinstance(post_date, (datetime, date)):
            post_date = post_date.isoformat()
        metadata['date'] = str(post_date) if post_date is not None else ''

        published = metadata.get('published', True)
        if not isinstance(published, bool):
            raise FrontMatterError(source, f"'published' must be true or false, got {published!r}")
        metadata['published'] = published

        tags = metadata.get('tags')
        if tags is not None:
            if isinstance(tags, str):
                tags = [tags]
            # Tags may be written as #tag
            metadata['tags'] = [str(tag)[1:] if str(tag).startswith('#') else str(tag) for tag in tags]

        read_mins = metadata.get('read_mins')
        if read_mins is None:
            words = len(markdown_content.split())
            read_mins = max(1, round(words / WORDS_PER_MINUTE))
        try:
            metadata['read_mins'] = int(read_mins)
        except (TypeError, ValueError):
            raise FrontMatterError(source, f"'read_mins' must be a number, got {read_mins!r}")

        metadata.setdefault('description', None)
        return metadata

    def render_post(self, file_path):
        """Read a markdown file and render it into a post dict."""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except UnicodeDecodeError as e:
            raise FrontMatterError(file_path, f"file is not valid UTF-8: {e}") from e

        html_content, raw_metadata = self.markdown_filter(content)
        metadata = self.parse_front_matter(raw_metadata, file_path, content)

        title = os.path.splitext(os.path.basename(file_path))[0]
        return {
            'title': title,
            'slug': slugify(title),
            'metadata': metadata,
            'contents': html_content,
            'source': file_path,
        }

    def rewrite_image_links(self, html):
        """Point relative <img src> values at /images/, where post images are copied."""
        def replace(m):
            src = m.group(2)
            lowered = src.lower()
            if lowered.startswith(('http://', 'https://', 'data:')) or src.startswith('/'):
                return m.group(0)
            image_name = os.path.basename(src)
            if self.webp and image_name.lower().endswith(RASTER_EXTENSIONS):
                image_name = os.path.splitext(image_name)[0] + '.webp'
            return f"{m.group(1)}/images/{image_name}{m.group(3)}"

        return IMG_SRC.sub(replace, html)

    def build_post_page(self, post):
        """Render the full page for a post."""
        page = self.context.render('blog.html', post=post, **self.site)
        return self.rewrite_image_links(page)

    def write_post_page(self, post, page_html):
        """Write a rendered post page to posts/<slug>/index.html."""
        post_dir = os.path.join(self.output_dir, 'posts', post['slug'])
        os.makedirs(post_dir, exist_ok=True)
        output_file_path = os.path.join(post_dir, 'index.html')
        with open(output_file_path, 'w', encoding='utf-8') as output_file:
            output_file.write(page_html)
        self.logger.debug(f"Generated HTML: {output_file_path}")

    def process(self, file_path):
        """
        Process a single markdown file.

        The page is rendered completely before anything is written, so a
        failing post never leaves a partial file behind. Failures are
        reported in the result rather than raised.
        """
        try:
            post = self.render_post(file_path)
            if not post['metadata']['published']:
                self.logger.debug(f"Skipping unpublished post: {file_path}")
                return {"post": post, "written": False, "error": None}

            page_html = self.build_post_page(post)
            self.write_post_page(post, page_html)
            return {"post": post, "written": True, "error": None}
        except KakanestError as e:
            self.logger.error(f"Error processing {file_path}: {e}")
            return {"post": None, "written": False, "error": str(e)}
        except (IOError, OSError) as e:
            self.logger.error(f"I/O error processing {file_path}: {e}")
            return {"post": None, "written": False, "error": str(e)}


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Site build completed in",
            "Total posts generated:",
            "Total tag pages generated:",
            "Total images copied:",
            "Total images converted to WebP:",
            "Failed documents:",
            "Copying static files and images",
            "Building tag pages",
            "Building homepage",
            "Generating RSS feed",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


class Kakanest:
    def __init__(self, content_dir='assets/blog', templates_dir='assets/templates', output_dir='output',
                 static_dir='assets/static', images_dir='assets/blog/images', site_title='Kakanest',
                 site_url=None, site_description=None, author_email=None, theme=DEFAULT_THEME,
                 workers=None, minify=False, webp=False, log_dir='logs', verbose=False):
        self.content_dir = content_dir
        self.templates_dir = templates_dir
        self.output_dir = output_dir
        self.static_dir = static_dir
        self.images_dir = images_dir
        self.site_title = site_title
        self.site_url = site_url.rstrip('/') if site_url else None
        self.site_description = site_description
        self.author_email = author_email
        self.theme = theme
        self.workers = workers
        self.minify = minify
        self.webp = webp
        self.log_dir = log_dir
        self.verbose = verbose

        self.posts_generated = 0
        self.tags_generated = 0
        self.images_copied = 0
        self.image_conversion_count = 0
        self.posts = []  # Published posts, collected during processing
        self.tags = {}  # tag -> set of post slugs
        self.failed_documents = []  # (file path, error message)

        self.setup_logging()

        if not os.path.isdir(self.content_dir):
            raise FileNotFoundError(f"Content directory '{self.content_dir}' does not exist")
        if self.templates_dir and not os.path.isdir(self.templates_dir):
            self.logger.warning(f"Templates directory '{self.templates_dir}' not found, using bundled templates")

        # Shared by every page rendered in this process
        self.context = BuildContext(self.templates_dir, self.theme)

    def setup_logging(self):
        """Set up logging configuration."""
        self.logger = logging.getLogger('Kakanest')
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            # Console handler with filter
            console_handler = logging.StreamHandler()
            if self.verbose:
                console_handler.setLevel(logging.DEBUG)
            else:
                console_handler.setLevel(logging.INFO)
                console_handler.addFilter(InfoFilter())
            console_formatter = logging.Formatter('%(message)s')
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

            # File handler for all logs
            if self.log_dir:
                os.makedirs(self.log_dir, exist_ok=True)
                log_filename = datetime.now().strftime('kakanest_%Y-%m-%d_%H-%M-%S.log')
                log_filepath = os.path.join(self.log_dir, log_filename)

                file_handler = logging.FileHandler(log_filepath)
                file_handler.setLevel(logging.DEBUG)
                file_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
                file_handler.setFormatter(file_formatter)
                self.logger.addHandler(file_handler)

    def site_context(self):
        """Template variables shared by every page."""
        return {
            'site_title': self.site_title,
            'site_url': self.site_url,
            'site_description': self.site_description,
        }

    def get_markdown_files(self, directory):
        """Get all markdown files below a directory, recursively."""
        markdown_files = []
        if os.path.exists(directory):
            for root, dirs, files in os.walk(directory):
                dirs.sort()
                for file in sorted(files):
                    if file.endswith('.md'):
                        markdown_files.append(os.path.join(root, file))
        return markdown_files

    def create_output_dir(self):
        """Remove any previous output and create a fresh output directory."""
        if os.path.exists(self.output_dir):
            self.logger.debug(f"Deleting output directory {self.output_dir}")
            shutil.rmtree(self.output_dir)
        os.makedirs(os.path.join(self.output_dir, 'posts'))
        os.makedirs(os.path.join(self.output_dir, 'tags'))

    def copy_static_files(self):
        """Copy the contents of the static directory to the output root."""
        if not self.static_dir or not os.path.isdir(self.static_dir):
            self.logger.debug(f"No static directory at {self.static_dir}")
            return
        for entry in sorted(os.listdir(self.static_dir)):
            src_path = os.path.join(self.static_dir, entry)
            dest_path = os.path.join(self.output_dir, entry)
            try:
                if os.path.isdir(src_path):
                    shutil.copytree(src_path, dest_path, dirs_exist_ok=True)
                else:
                    shutil.copy2(src_path, dest_path)
            except (IOError, OSError, shutil.Error) as e:
                self.logger.error(f"Failed to copy static file {src_path}: {e}")

    def copy_images(self):
        """Copy post images to output/images, converting them to WebP when enabled."""
        images_output_dir = os.path.join(self.output_dir, 'images')
        os.makedirs(images_output_dir, exist_ok=True)
        if not self.images_dir or not os.path.isdir(self.images_dir):
            self.logger.debug(f"No images directory at {self.images_dir}")
            return

        for image_name in sorted(os.listdir(self.images_dir)):
            src_path = os.path.join(self.images_dir, image_name)
            if os.path.isdir(src_path):
                continue
            dest_path = os.path.join(images_output_dir, image_name)
            try:
                shutil.copy2(src_path, dest_path)
                self.images_copied += 1
            except (IOError, OSError) as e:
                self.logger.error(f"Failed to copy image {src_path}: {e}")
                continue

            if self.webp and image_name.lower().endswith(RASTER_EXTENSIONS):
                if self.convert_image_to_webp(dest_path):
                    self.image_conversion_count += 1

    def convert_image_to_webp(self, image_path):
        """Convert an image to WebP next to the original, removing the original."""
        try:
            ext = os.path.splitext(image_path)[1].lower()
            webp_path = image_path.rsplit('.', 1)[0] + '.webp'

            with Image.open(image_path) as img:
                if ext == ".gif":
                    img.save(webp_path, "WEBP", save_all=True)
                else:
                    img.save(webp_path, "WEBP")

            os.remove(image_path)
            return webp_path
        except (IOError, OSError, ValueError) as e:
            self.logger.error(f"Failed to convert {image_path}: {e}")
            return None

    def minify_assets(self):
        """Write .min.css/.min.js siblings for the copied CSS and JS files."""
        minifiers = {'.css': rcssmin.cssmin, '.js': rjsmin.jsmin}
        for root, dirs, files in os.walk(self.output_dir):
            for file in files:
                base, ext = os.path.splitext(file)
                if ext not in minifiers or base.endswith('.min'):
                    continue
                path = os.path.join(root, file)
                try:
                    with open(path, 'r', encoding='utf-8') as f:
                        source = f.read()
                    with open(os.path.join(root, f"{base}.min{ext}"), 'w', encoding='utf-8') as f:
                        f.write(minifiers[ext](source))
                    self.logger.debug(f"Minified {file}")
                except (IOError, OSError, UnicodeDecodeError) as e:
                    self.logger.error(f"Failed to minify {path}: {e}")

    def build_posts(self):
        """Render all posts using adaptive processing based on workload size."""
        files = self.get_markdown_files(self.content_dir)
        if not files:
            self.logger.warning("No markdown files found to process.")
            return

        # Multiprocessing only pays off from around a dozen files
        workers = self.workers
        if workers is None:
            workers = os.cpu_count() if len(files) >= 12 else 1

        if workers > 1:
            self.logger.info(f"Using multiprocessing for {len(files)} files with {workers} workers")
            self._build_with_multiprocessing(files, workers)
        else:
            self.logger.info(f"Using single-threaded processing for {len(files)} files")
            self._build_single_threaded(files)

        self.posts.sort(key=lambda p: (parse_date(p['metadata']['date']), p['title']), reverse=True)
        for post in self.posts:
            for tag in post['metadata'].get('tags') or []:
                self.tags.setdefault(tag, set()).add(post['slug'])

    def _collect(self, file_path, result):
        if result['error']:
            self.failed_documents.append((file_path, result['error']))
        elif result['written']:
            self.posts_generated += 1
            self.posts.append(result['post'])

    def _build_single_threaded(self, files):
        """Render posts in this process with one FileProcessor."""
        processor = FileProcessor(
            self.templates_dir, self.output_dir, self.site_context(),
            webp=self.webp, context=self.context
        )
        for file_path in files:
            self._collect(file_path, processor.process(file_path))

    def _build_with_multiprocessing(self, files, workers):
        """Render posts in worker processes, each owning its own FileProcessor."""
        with ProcessPoolExecutor(
            max_workers=workers,
            initializer=initializer,
            initargs=(self.templates_dir, self.output_dir, self.site_context(), self.theme, self.webp)
        ) as executor:
            futures = {executor.submit(process_file, file_path): file_path for file_path in files}
            for future in as_completed(futures):
                file_path = futures[future]
                try:
                    result = future.result()
                except Exception as e:
                    self.logger.error(f"Error building post {file_path}: {e}")
                    result = {"post": None, "written": False, "error": str(e)}
                self._collect(file_path, result)

    def tag_dir_name(self, tag):
        """Directory name for a tag page; unsafe names fall back to a slug."""
        name = tag[1:] if tag.startswith('#') else tag
        if not name or '..' in name or '/' in name or '\\' in name:
            name = slugify(name)
        return name

    def build_tag_pages(self):
        """Build one page per tag listing its posts."""
        self.logger.info("Building tag pages")
        for tag, slugs in sorted(self.tags.items()):
            posts = [post for post in self.posts if post['slug'] in slugs]
            try:
                html = self.context.render('tag_page.html', name=tag, posts=posts, **self.site_context())
            except KakanestError as e:
                self.logger.error(f"Failed to build tag page for {tag}: {e}")
                self.failed_documents.append((f"tags/{tag}", str(e)))
                continue

            tag_dir = os.path.join(self.output_dir, 'tags', self.tag_dir_name(tag))
            os.makedirs(tag_dir, exist_ok=True)
            with open(os.path.join(tag_dir, 'index.html'), 'w', encoding='utf-8') as f:
                f.write(html)
            self.tags_generated += 1

    def build_homepage(self):
        """Build the homepage listing every published post."""
        self.logger.info("Building homepage")
        try:
            html = self.context.render('homepage.html', posts=self.posts, **self.site_context())
        except KakanestError as e:
            self.logger.error(f"Failed to build homepage: {e}")
            self.failed_documents.append(('index.html', str(e)))
            return False

        with open(os.path.join(self.output_dir, 'index.html'), 'w', encoding='utf-8') as f:
            f.write(html)
        return True

    def generate_rss_feed(self):
        """Generate RSS feed at index.xml."""
        if not self.site_url:
            self.logger.info("Skipping RSS feed (no site_url).")
            return False

        site_name = self.site_title or self.site_url
        description = self.site_description or f"The RSS feed for {site_name}"

        rss_content = f'''<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">
<channel>
<title>{escape(site_name)}</title>
<link>{escape(self.site_url)}</link>
<description>{escape(description)}</description>
<lastBuildDate>{formatdate()}</lastBuildDate>
'''

        for post in self.posts:
            link = f"{self.site_url}/posts/{post['slug']}/index.html"
            post_date = parse_date(post['metadata']['date'])
            pub_date = formatdate(post_date.timestamp()) if post_date != datetime.min else formatdate()
            categories = ''.join(
                f"\n<category>{escape(tag)}</category>" for tag in post['metadata'].get('tags') or []
            )
            author = f"\n<author>{escape(self.author_email)}</author>" if self.author_email else ''
            # A literal "]]>" would end the CDATA section early
            content = post['contents'].replace(']]>', ']]]]><![CDATA[>')

            rss_content += f'''
<item>
<title>{escape(post['title'])}</title>
<link>{escape(link)}</link>{author}{categories}
<pubDate>{pub_date}</pubDate>
<guid>{escape(link)}</guid>
<content:encoded><![CDATA[{content}]]></content:encoded>
</item>'''

        rss_content += '''
</channel>
</rss>'''

        rss_file = os.path.join(self.output_dir, 'index.xml')
        try:
            with open(rss_file, 'w', encoding='utf-8') as f:
                f.write(rss_content)
            self.logger.info("Generating RSS feed")
        except (IOError, OSError) as e:
            self.logger.error(f"Failed to write RSS feed file {rss_file}: {e}")
            return False

        return True

    def build(self):
        """Main build process."""
        self.logger.info("Starting site build...")

        self.create_output_dir()

        self.logger.info("Copying static files and images")
        self.copy_static_files()
        self.copy_images()
        if self.minify:
            self.minify_assets()

        self.build_posts()
        self.build_tag_pages()
        self.build_homepage()
        self.generate_rss_feed()

        return not self.failed_documents
