"""
Grade Portal Backend Package
============================

Flask-based backend for the grade contract portal.

Structure:
- routes/: API route blueprints
- services/: Canvas grade import pipeline
- storage.py: JSON document store for classes, assignments and progress
- config.py: Configuration management
"""

from .config import config, Config

__version__ = "1.0.0"

__all__ = ['config', 'Config']
