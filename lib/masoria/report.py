#!/usr/bin/env python3
"""
Scene Graph Report Module

Renders a parsed script as a human-readable HTML page.

Input:
    - ParseResult (from parse_script)

Output:
    - HTML string (written by the parse_script CLI with --format html)

Responsibilities:
    - Compute graph statistics (counts, start scene, ending scenes)
    - Flag choices whose target scene is never declared
    - Render the Jinja2 template
"""

from datetime import datetime
from pathlib import Path
from typing import Dict, List

from jinja2 import Environment, FileSystemLoader

from lib.masoria.model import ParseResult

TEMPLATE_DIR = Path(__file__).parent / 'templates'
TEMPLATE_NAME = 'scene_graph.html.jinja2'


def find_dangling_targets(result: ParseResult) -> List[Dict[str, str]]:
    """Find choices that point at a scene label nobody declares.

    This is informational only; the parser never checks targets.

    Args:
        result: Parsed script

    Returns:
        List of dicts with 'scene', 'choice' and 'target' keys, in
        declaration order
    """
    labels = {scene.label for scene in result.scenes}
    dangling = []
    for scene in result.scenes:
        for choice in scene.choices or []:
            if choice.target_scene not in labels:
                dangling.append({
                    'scene': scene.label,
                    'choice': choice.label,
                    'target': choice.target_scene,
                })
    return dangling


def build_report_context(result: ParseResult, title: str) -> Dict:
    """Build the template context for a parsed script.

    Args:
        result: Parsed script
        title: Report title

    Returns:
        Dict with statistics, scene rows and character rows
    """
    dangling = find_dangling_targets(result)
    dangling_targets = {entry['target'] for entry in dangling}

    scene_rows = []
    for scene in result.scenes:
        scene_rows.append({
            'label': scene.label,
            'condition': scene.condition,
            'previous_scene': scene.previous_scene,
            'next_scene': scene.next_scene,
            'is_ending_scene': scene.is_ending_scene,
            'dialogue_count': len(scene.dialogues),
            'choices': [
                {
                    'label': choice.label,
                    'target_scene': choice.target_scene,
                    'dangling': choice.target_scene in dangling_targets,
                }
                for choice in scene.choices or []
            ],
        })

    return {
        'title': title,
        'generated_date': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
        'total_scenes': len(result.scenes),
        'total_characters': len(result.characters),
        'total_choices': sum(len(scene.choices or []) for scene in result.scenes),
        'start_scene': result.scenes[0].label if result.scenes else None,
        'ending_scenes': [scene.label for scene in result.scenes if scene.is_ending_scene],
        'dangling': dangling,
        'scenes': scene_rows,
        'characters': [
            {'name': character.name, 'emotions': sorted(character.emotions.items())}
            for character in result.characters
        ],
    }


def generate_html_report(result: ParseResult, title: str = 'Masoria Script') -> str:
    """Render a parsed script to HTML using the Jinja2 template."""
    env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), autoescape=True)
    template = env.get_template(TEMPLATE_NAME)
    return template.render(**build_report_context(result, title))
