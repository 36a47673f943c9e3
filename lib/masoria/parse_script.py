#!/usr/bin/env python3
"""
Parse Script Module

Converts a .masoria script into a scene graph: scenes, choices and
characters with their emotion tables.

Input: .masoria script text
Output: scene_graph.json (scenes, characters) or an HTML report

Script grammar (one statement per line, 4 spaces per indentation level):

    character Alice:
        emotion happy: assets/alice/happy.png
    scene intro<hasKey>:
        choice<left>: Take the left door
    scene left -> ending:

Usage:
    python3 -m lib.masoria.parse_script input.masoria output.json
"""

import os
import re
import sys
import json
import logging
import argparse
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from lib.masoria.errors import (
    ScriptParseError,
    ForbiddenInlineText,
    ChoiceOutsideScene,
    ChoiceMissingTarget,
    EmotionOutsideCharacter,
    EmotionMissingPath,
)
from lib.masoria.model import Scene, Character, Choice, ParseResult
from lib.masoria.report import generate_html_report

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1

# Spaces per indentation level
INDENT_WIDTH = 4

DEFAULT_LOG_LEVEL = os.getenv('MASORIA_LOG_LEVEL', 'WARNING').upper()

PARAMETER_PATTERN = re.compile(r'<([^>]*)>')


class Keyword(Enum):
    SCENE = 'scene'
    CHOICE = 'choice'
    ENDING_SCENE = 'ending scene'
    EMOTION = 'emotion'
    USE_EMOTION = 'use emotion'
    CHARACTER = 'character'


class LineKind(Enum):
    CHARACTER_START = 'character_start'
    EMOTION = 'emotion'
    SCENE_START = 'scene_start'
    CHOICE = 'choice'
    ENDING_SCENE = 'ending_scene'
    USE_EMOTION = 'use_emotion'
    UNRECOGNIZED = 'unrecognized'


# (kind, keyword, indentation level), checked in order; first match wins
KEYWORD_LEVELS: List[Tuple[LineKind, Keyword, int]] = [
    (LineKind.CHARACTER_START, Keyword.CHARACTER, 0),
    (LineKind.EMOTION, Keyword.EMOTION, 1),
    (LineKind.SCENE_START, Keyword.SCENE, 0),
    (LineKind.CHOICE, Keyword.CHOICE, 1),
    (LineKind.ENDING_SCENE, Keyword.ENDING_SCENE, 0),
    (LineKind.USE_EMOTION, Keyword.USE_EMOTION, 1),
]

# Recognized but without builder behavior
RESERVED_KINDS = {LineKind.ENDING_SCENE, LineKind.USE_EMOTION}


# =============================================================================
# LINE PREPROCESSING
# =============================================================================

def get_lines(script: str) -> List[Tuple[int, str]]:
    """Split a script into its non-empty lines.

    Args:
        script: Full script text

    Returns:
        List of (line_number, line) tuples in source order. Line numbers
        are 1-based and count the blank lines that were dropped. Leading
        whitespace is preserved since it carries the indentation level.
    """
    lines = []
    for line_number, line in enumerate(script.split('\n'), start=1):
        line = line.rstrip('\r')
        if line.strip():
            lines.append((line_number, line))
    return lines


def remove_extra_spaces(line: str = '') -> str:
    """Collapse whitespace runs to single spaces and trim the line."""
    return re.sub(r'\s+', ' ', line).strip()


# =============================================================================
# KEYWORD CLASSIFICATION
# =============================================================================

def get_indentation(line: str) -> Optional[int]:
    """Count the leading spaces of a line.

    Returns:
        Number of leading spaces, or None if the indentation contains
        any other whitespace character (tabs are not spaces)
    """
    indentation = line[:len(line) - len(line.lstrip())]
    if indentation.strip(' '):
        return None
    return len(indentation)


def is_indentation_level_correct(line: str, level: int) -> bool:
    """Check that a line is indented exactly `level` levels deep."""
    spaces = get_indentation(line)
    if spaces is None:
        return False
    return spaces % 2 == 0 and spaces / INDENT_WIDTH == level


def has_keyword(keyword: Keyword, line: str, level: int = 0) -> bool:
    """Check if a line starts with a keyword at the given indentation level.

    The keyword match is case-insensitive and ignores surrounding
    whitespace. A line that starts with the keyword at the wrong level
    does not match.
    """
    if not line.strip().lower().startswith(keyword.value):
        return False
    return is_indentation_level_correct(line, level)


def classify_line(line: str) -> LineKind:
    """Decide which grammar rule applies to a line."""
    for kind, keyword, level in KEYWORD_LEVELS:
        if has_keyword(keyword, line, level):
            return kind
    return LineKind.UNRECOGNIZED


# =============================================================================
# STATEMENT BUILDERS
# =============================================================================

def get_parameter(text: str) -> Tuple[str, Optional[str]]:
    """Separate a label from its inline parameter.

    Only the first <...> segment is a parameter; it is removed from the
    label. An empty <> counts as no parameter.

    Examples:
        >>> get_parameter("intro<hasKey>")
        ('intro', 'hasKey')
        >>> get_parameter("intro")
        ('intro', None)
    """
    match = PARAMETER_PATTERN.search(text)
    if not match:
        return text, None
    label = text[:match.start()] + text[match.end():]
    return label, match.group(1) or None


def has_forbidden_inline(line: str = '') -> bool:
    """Check if a declaration line carries text after its colon.

    A colon inside the first <...> parameter (a condition such as
    <flag:on>) is not the declaration colon. A <...> that only starts
    after the declaration colon is inline text like any other.
    """
    colon = line.find(':')
    match = PARAMETER_PATTERN.search(line)
    if match and colon != -1 and match.start() < colon < match.end():
        colon = line.find(':', match.end())
    if colon == -1:
        return False
    return len(line[colon + 1:].strip()) > 0


def make_scene(line: str) -> Scene:
    """Create a scene from a `scene label<condition> -> next:` line.

    Raises:
        ForbiddenInlineText: If text follows the colon
    """
    if has_forbidden_inline(line):
        raise ForbiddenInlineText(line, context='scenes')

    tokens = remove_extra_spaces(line).split(' ')
    label_condition = tokens[1] if len(tokens) > 1 else ''
    pointed_scene = tokens[3] if len(tokens) > 3 else ''

    label, condition = get_parameter(label_condition)
    return Scene(
        label=label.rstrip(':'),
        condition=condition,
        next_scene=pointed_scene.rstrip(':') or None,
        is_ending_scene=False,
        dialogues=[],
    )


def make_character(line: str) -> Character:
    """Create a character from a `character Name:` line.

    Raises:
        ForbiddenInlineText: If text follows the colon
    """
    if has_forbidden_inline(line):
        raise ForbiddenInlineText(line, context='characters')

    tokens = remove_extra_spaces(line).split(' ')
    name = tokens[1] if len(tokens) > 1 else ''
    return Character(name=name.rstrip(':'), emotions={})


def add_choice(line: str, current_scene: Optional[Scene]) -> Choice:
    """Add a `choice<target>: Label` line to the open scene.

    Returns:
        The choice that was appended

    Raises:
        ChoiceOutsideScene: If no scene is open
        ChoiceMissingTarget: If the instruction has no <target>
    """
    if current_scene is None:
        raise ChoiceOutsideScene(line)

    instruction, _, label = line.partition(':')
    _, target_scene = get_parameter(instruction)
    if not target_scene:
        raise ChoiceMissingTarget(line)

    choice = Choice(label=label.strip(), target_scene=target_scene)
    if current_scene.choices is None:
        current_scene.choices = []
    current_scene.choices.append(choice)
    return choice


def add_emotion(line: str, current_character: Optional[Character]) -> Tuple[str, str]:
    """Add an `emotion name: path` line to the open character.

    Returns:
        The (emotion_name, path) entry that was set

    Raises:
        EmotionOutsideCharacter: If no character is open
        EmotionMissingPath: If nothing follows the colon
    """
    if current_character is None:
        raise EmotionOutsideCharacter(line)

    instruction, _, emotion_path = line.partition(':')
    tokens = remove_extra_spaces(instruction).split(' ')
    emotion_name = tokens[1] if len(tokens) > 1 else ''
    emotion_path = emotion_path.strip()
    if not emotion_path:
        raise EmotionMissingPath(line)

    current_character.emotions[emotion_name] = emotion_path
    return emotion_name, emotion_path


# =============================================================================
# ACCUMULATION
# =============================================================================

@dataclass
class ParseState:
    """Open blocks and finished entities threaded through the line pass."""
    open_scene: Optional[Scene] = None
    open_character: Optional[Character] = None
    scenes: List[Scene] = field(default_factory=list)
    characters: List[Character] = field(default_factory=list)

    def finalize_scene(self) -> None:
        if self.open_scene is not None:
            logger.debug(f"Finalized scene '{self.open_scene.label}'")
            self.scenes.append(self.open_scene)
            self.open_scene = None

    def finalize_character(self) -> None:
        if self.open_character is not None:
            logger.debug(f"Finalized character '{self.open_character.name}'")
            self.characters.append(self.open_character)
            self.open_character = None


def process_line(state: ParseState, line: str) -> ParseState:
    """Apply one script line to the parse state.

    Args:
        state: State produced by the previous line
        line: Raw script line

    Returns:
        The updated state
    """
    kind = classify_line(line)

    if kind is LineKind.CHARACTER_START:
        state.finalize_character()
        state.open_character = make_character(line)

    elif kind is LineKind.EMOTION:
        add_emotion(line, state.open_character)

    elif kind is LineKind.SCENE_START:
        new_scene = make_scene(line)
        if state.open_scene is not None:
            # An explicit `-> next` wins over chaining
            if state.open_scene.next_scene is None:
                state.open_scene.next_scene = new_scene.label
            new_scene.previous_scene = state.open_scene.label
            state.finalize_scene()
        state.open_scene = new_scene

    elif kind is LineKind.CHOICE:
        add_choice(line, state.open_scene)

    elif kind in RESERVED_KINDS:
        logger.debug(f"Ignoring reserved statement: {line.strip()}")

    return state


# =============================================================================
# REFERENCE RECONCILIATION
# =============================================================================

def organize_scene_refs(scenes: List[Scene]) -> List[Scene]:
    """Point each scene's previous_scene at the scene whose choice targets it.

    Choice-derived back references take precedence over the ones set by
    chaining. When several scenes target the same label, the first one
    in declaration order is kept.

    Args:
        scenes: Finalized scenes in declaration order

    Returns:
        New list of scenes; scenes that gained a parent are copies, the
        input scenes are left untouched
    """
    parents: Dict[str, str] = {}
    for scene in scenes:
        for choice in scene.choices or []:
            parents.setdefault(choice.target_scene, scene.label)

    return [
        replace(scene, previous_scene=parents[scene.label]) if scene.label in parents else scene
        for scene in scenes
    ]


# =============================================================================
# MAIN PARSER FUNCTION
# =============================================================================

def parse_script(script: str) -> ParseResult:
    """Parse a .masoria script into scenes and characters.

    This is the main entry point for the parse_script module.

    Args:
        script: Full script text

    Returns:
        ParseResult with scenes and characters in declaration order

    Raises:
        ScriptParseError: On the first invalid statement; the error's
            line_number points at the offending source line
    """
    state = ParseState()

    for line_number, line in get_lines(script):
        try:
            state = process_line(state, line)
        except ScriptParseError as e:
            e.at_line(line_number)
            raise

    state.finalize_scene()
    state.finalize_character()

    result = ParseResult(
        scenes=organize_scene_refs(state.scenes),
        characters=state.characters,
    )
    logger.info(f"Parsed {len(result.scenes)} scenes and {len(result.characters)} characters")
    return result


# =============================================================================
# CLI INTERFACE
# =============================================================================

def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for command-line usage."""
    parser = argparse.ArgumentParser(
        description='Parse a .masoria script into scene_graph.json format'
    )
    parser.add_argument('input_script', type=Path, help='Path to .masoria script')
    parser.add_argument('output_file', type=Path, help='Path to output JSON (or HTML) file')
    parser.add_argument('--format', choices=['json', 'html'], default='json',
                        help='Output format (default: json)')
    parser.add_argument('--title', default=None,
                        help='Title of the HTML report (default: script file name)')
    parser.add_argument('--log-level', type=str.upper, default=DEFAULT_LOG_LEVEL,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: $MASORIA_LOG_LEVEL or WARNING)')

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format='%(levelname)s %(name)s: %(message)s')

    # Read input script
    if not args.input_script.exists():
        print(f"Error: Input file not found: {args.input_script}", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    with open(args.input_script, 'r', encoding='utf-8') as f:
        script = f.read()

    # Parse script
    try:
        result = parse_script(script)
    except ScriptParseError as e:
        print(f"Error: {args.input_script}: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    # Write output
    args.output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(args.output_file, 'w', encoding='utf-8') as f:
        if args.format == 'html':
            f.write(generate_html_report(result, args.title or args.input_script.stem))
        else:
            json.dump(result.to_dict(), f, indent=2)

    print(f"✓ Parsed {len(result.scenes)} scenes", file=sys.stderr)
    print(f"✓ Parsed {len(result.characters)} characters", file=sys.stderr)
    print(f"✓ Output: {args.output_file}", file=sys.stderr)


if __name__ == '__main__':
    main()
