"""
Scene Graph Model

Dataclasses produced by parse_script. All of them serialize to plain
JSON-ready dicts through to_dict().
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional


@dataclass
class Dialogue:
    """A spoken line: who says it, with which emotion, and the text."""
    character: str
    emotion: str
    text: str

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class Choice:
    """A labeled edge from the owning scene to target_scene."""
    label: str
    target_scene: str

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class Scene:
    """A node in the dialogue graph."""
    label: str
    condition: Optional[str] = None
    next_scene: Optional[str] = None
    previous_scene: Optional[str] = None
    is_ending_scene: bool = False
    dialogues: List[Dialogue] = field(default_factory=list)
    choices: Optional[List[Choice]] = None  # None until the first choice

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class Character:
    """A speaker profile mapping emotion names to asset paths."""
    name: str
    emotions: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class ParseResult:
    scenes: List[Scene] = field(default_factory=list)
    characters: List[Character] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'scenes': [scene.to_dict() for scene in self.scenes],
            'characters': [character.to_dict() for character in self.characters],
        }

    def get_scene(self, label: str) -> Optional[Scene]:
        """Return the scene with the given label, or None."""
        for scene in self.scenes:
            if scene.label == label:
                return scene
        return None

    def get_character(self, name: str) -> Optional[Character]:
        """Return the character with the given name, or None."""
        for character in self.characters:
            if character.name == name:
                return character
        return None
