# src/taskdeck/__init__.py

"""Personal task tracker: projects -> user stories -> tasks."""

__version__ = "0.1.0"
