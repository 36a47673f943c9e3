"""
Masoria Script Library

Parses .masoria dialogue scripts into a scene graph and renders reports
from the result.

Modules:
- parse_script: Parse script text into scenes and characters (scene_graph.json)
- model: Scene, Choice, Dialogue, Character and ParseResult dataclasses
- errors: Fatal parse errors
- report: Render a parsed script as HTML
"""

__version__ = "1.0.0"
