"""
M-Pesa Code Extractor.

Pulls a transaction reference out of the free-text confirmation SMS a student
pastes into the portal. This is a best-effort heuristic, not a parse against
Safaricom's authoritative format.
"""

import re
from dataclasses import dataclass

from skillyme.config import settings
from skillyme.models.domain import MPESA_CODE_MAX_LENGTH, MPESA_CODE_MIN_LENGTH


@dataclass(frozen=True)
class CodeMatcher:
    """A named pattern tried in priority order (lower runs first)."""

    priority: int
    name: str
    pattern: re.Pattern[str]

    def first_match(self, message: str) -> str | None:
        """Return the first match of this pattern in the message, if any."""
        match = self.pattern.search(message)
        return match.group(0) if match else None


MATCHERS: tuple[CodeMatcher, ...] = (
    CodeMatcher(1, "tid_prefixed", re.compile(r"TID[A-Z0-9]{6,12}")),
    CodeMatcher(2, "letters_then_digits", re.compile(r"[A-Z]{3}[0-9]{6,12}")),
    CodeMatcher(3, "generic_alphanumeric", re.compile(r"[A-Z0-9]{6,20}")),
)


def sanitize_message(message: str | None) -> str:
    """Trim and bound the message before any pattern runs."""
    if not message:
        return ""
    return message.strip()[: settings.max_mpesa_message_length]


def extract_mpesa_code(message: str | None) -> str | None:
    """
    Extract an M-Pesa transaction code from a confirmation message.

    The first matcher (by priority) that finds anything decides the result;
    later matchers are not consulted even if the candidate fails the length
    check.

    Returns:
        The code (6-20 characters) or None when nothing usable was found.
    """
    text = sanitize_message(message)
    if not text:
        return None

    for matcher in sorted(MATCHERS, key=lambda m: m.priority):
        candidate = matcher.first_match(text)
        if candidate is None:
            continue
        if MPESA_CODE_MIN_LENGTH <= len(candidate) <= MPESA_CODE_MAX_LENGTH:
            return candidate
        return None

    return None
