#!/usr/bin/env python3
"""
Command-line interface for Kakanest.
"""

import os
import sys
import argparse
import time
import shutil
from typing import List, Optional

from . import __version__
from .core import Kakanest
from .errors import KakanestError
from .settings import KakanestSettings

PACKAGE_TEMPLATES = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'templates')

SAMPLE_POST = """---
date: 2025-01-01
published: true
tags:
  - "#meta"
description: "A first post"
---

Kakanest turns markdown in `assets/blog` into a blog.

```python
def hello():
    print("hello")
```

> [!question]
> Where do images go?

Into `assets/blog/images`, and linked like this: ![a cat](images/cat.png)
"""


def create_starter_structure() -> None:
    """Create a starter site: directories, editable templates and a first post."""
    current_dir = os.getcwd()

    directories = [
        'assets/blog',
        'assets/blog/images',
        'assets/static',
        'assets/templates/modules',
    ]

    for directory in directories:
        dir_path = os.path.join(current_dir, directory)
        if os.path.exists(dir_path):
            print(f"Directory already exists: {directory}")
        else:
            os.makedirs(dir_path, exist_ok=True)
            print(f"Created directory: {directory}")

    # Copy the bundled templates so they can be customized
    template_dest = os.path.join(current_dir, 'assets', 'templates')
    for root, dirs, files in os.walk(PACKAGE_TEMPLATES):
        rel_dir = os.path.relpath(root, PACKAGE_TEMPLATES)
        for template_file in sorted(files):
            if not template_file.endswith('.html'):
                continue
            rel_path = os.path.normpath(os.path.join(rel_dir, template_file))
            dest_path = os.path.join(template_dest, rel_path)
            if os.path.exists(dest_path):
                print(f"Template already exists: assets/templates/{rel_path}")
            else:
                os.makedirs(os.path.dirname(dest_path), exist_ok=True)
                shutil.copy2(os.path.join(root, template_file), dest_path)
                print(f"Created template: assets/templates/{rel_path}")

    post_path = os.path.join(current_dir, 'assets', 'blog', 'Hello Kakanest.md')
    if os.path.exists(post_path):
        print("Sample post already exists: assets/blog/Hello Kakanest.md")
    else:
        with open(post_path, 'w', encoding='utf-8') as f:
            f.write(SAMPLE_POST)
        print("Created sample post: assets/blog/Hello Kakanest.md")

    print("\nStarter structure created successfully!")
    print("\nNext steps:")
    print("1. Edit the configuration file (kakanest.yml)")
    print("2. Customize templates in 'assets/templates/'")
    print("3. Write posts in 'assets/blog/'")
    print("4. Run 'kakanest build' to build your site")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='kakanest', description='Kakanest - markdown blog generator')
    parser.add_argument('command', nargs='?', choices=['build'], default='build',
                        help='Command to run (default: build)')
    parser.add_argument('--verbose', action='store_true',
                        help='Show all log messages on the console')
    parser.add_argument('--output', type=str,
                        help='Output directory for generated site')
    parser.add_argument('--content', type=str,
                        help='Directory containing markdown posts')
    parser.add_argument('--templates', type=str,
                        help='Templates directory')
    parser.add_argument('--static', type=str,
                        help='Directory copied to the output root')
    parser.add_argument('--images', type=str,
                        help='Directory of post images copied to output/images')
    parser.add_argument('--site-url', type=str,
                        help='Site URL for the RSS feed')
    parser.add_argument('--site-title', type=str, help='Site title')
    parser.add_argument('--theme', type=str,
                        help='Pygments style used for code highlighting')
    parser.add_argument('--workers', type=int,
                        help='Number of worker processes (1 disables multiprocessing)')
    parser.add_argument('--minify', action='store_true', default=None,
                        help='Write minified copies of CSS and JS files')
    parser.add_argument('--webp', action='store_true', default=None,
                        help='Convert post images to WebP')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file and starter site')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    # Handle init command
    if args.init:
        settings_loader = KakanestSettings()
        config_path = settings_loader.create_sample_config(args.init)
        print(f"Created sample configuration file: {config_path}")

        print("\nCreating starter project structure...")
        create_starter_structure()
        return

    # Load settings from configuration file
    settings_loader = KakanestSettings()
    settings_loader.load_settings()

    args_dict = {k: v for k, v in vars(args).items()
                 if v is not None and k not in ('command', 'verbose', 'init')}

    # Command line arguments take precedence
    final_settings = settings_loader.merge_with_args(args_dict)

    output_dir = os.path.expanduser(final_settings['output'])

    overall_start_time = time.time()

    try:
        generator = Kakanest(
            content_dir=final_settings['content'],
            templates_dir=final_settings['templates'],
            output_dir=output_dir,
            static_dir=final_settings['static'],
            images_dir=final_settings['images'],
            site_title=final_settings['site_title'],
            site_url=final_settings['site_url'],
            site_description=final_settings['site_description'],
            author_email=final_settings['author_email'],
            theme=final_settings['theme'],
            workers=final_settings['workers'],
            minify=final_settings['minify'],
            webp=final_settings['webp'],
            log_dir=final_settings['log_dir'],
            verbose=args.verbose,
        )

        succeeded = generator.build()

        # Show build statistics
        total_time = time.time() - overall_start_time
        generator.logger.info(f"Site build completed in {total_time:.6f} seconds.")
        generator.logger.info(f"Total posts generated: {generator.posts_generated}")
        generator.logger.info(f"Total tag pages generated: {generator.tags_generated}")
        generator.logger.info(f"Total images copied: {generator.images_copied}")
        generator.logger.info(f"Total images converted to WebP: {generator.image_conversion_count}")

    except (KakanestError, IOError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if not succeeded:
        generator.logger.error(f"Failed documents: {len(generator.failed_documents)}")
        for path, error in generator.failed_documents:
            generator.logger.error(f"  {path}: {error}")
        sys.exit(1)


if __name__ == '__main__':
    main()
