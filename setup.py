#!/usr/bin/env python3
"""
Setup script for Kakanest - markdown blog generator.
"""

from setuptools import setup, find_packages

# Metadata and dependencies are defined in pyproject.toml

setup(
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={
        'kakanest_pkg': [
            'templates/*.html',
            'templates/**/*.html',
        ],
    },
    include_package_data=True,
)
