"""
Grade Portal API Routes
=======================

All API route blueprints for the grade portal.

Usage:
    from gradeportal.routes import register_routes
    register_routes(app)
"""
from .class_routes import class_bp
from .canvas_import_routes import canvas_import_bp


def register_routes(app):
    """Register all route blueprints with the Flask app."""
    app.register_blueprint(class_bp)
    app.register_blueprint(canvas_import_bp)


__all__ = [
    'register_routes',
    'class_bp',
    'canvas_import_bp',
]
