"""
What-if story simulator.

Prompt and branch suggestion engine for interactive fiction.
"""

__version__ = "1.0.0"
