"""Repository risk scanning for GitHub projects."""

__version__ = "0.1.0"
