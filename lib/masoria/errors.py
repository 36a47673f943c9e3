"""
Parse Errors

Every violation detected while parsing a .masoria script is fatal. The
parser raises one of the exceptions below and returns no partial result.

Lines that do not match any keyword are not errors; they are skipped.
"""

from typing import Optional


class ScriptParseError(ValueError):
    """Base class for all fatal script errors.

    Attributes:
        reason: Human-readable description of the violation
        line: The offending source line (as written, without line ending)
        line_number: 1-based line number in the script, or None when a
            statement builder is called outside of a full parse
    """

    reason = "Invalid statement"

    def __init__(self, line: str = "", line_number: Optional[int] = None,
                 reason: Optional[str] = None) -> None:
        if reason is not None:
            self.reason = reason
        self.line = line
        self.line_number = line_number
        super().__init__(self._format())

    def _format(self) -> str:
        location = f"line {self.line_number}: " if self.line_number else ""
        source = f": '{self.line.strip()}'" if self.line else ""
        return f"{location}{self.reason}{source}"

    def at_line(self, line_number: int) -> 'ScriptParseError':
        """Attach a source line number and refresh the message."""
        self.line_number = line_number
        self.args = (self._format(),)
        return self


class ForbiddenInlineText(ScriptParseError):
    """A scene or character declaration carries text after its colon."""

    def __init__(self, line: str = "", line_number: Optional[int] = None,
                 context: str = "scenes") -> None:
        self.context = context
        super().__init__(
            line,
            line_number,
            reason=f"Inline instructions are forbidden in this context ({context})",
        )


class ChoiceOutsideScene(ScriptParseError):
    reason = "Choice must be inside a scene"


class ChoiceMissingTarget(ScriptParseError):
    reason = "Choice must have a target scene"


class EmotionOutsideCharacter(ScriptParseError):
    reason = "Emotion must be inside a character"


class EmotionMissingPath(ScriptParseError):
    reason = "An emotion declaration must have a path"
