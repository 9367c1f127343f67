"""
Core constants used across the application. Keep these simple and documented.
"""

# Interaction types that mean the attendee already has the session on their agenda
CONSUMED_INTERACTION_TYPES: frozenset[str] = frozenset({"saved", "attended"})

# Templated reasons, used when the explanation provider gives nothing back
SEMANTIC_REASON: str = "Matches your interests in {track}"
KEYWORD_REASON: str = "Matches your interest in {tag}"
BEHAVIORAL_REASON: str = "Attendees like you found this valuable"
EDITORIAL_REASON: str = "Featured keynote session"
DEFAULT_REASON: str = "Recommended for you"

EDITORIAL_SESSION_TYPES: frozenset[str] = frozenset({"keynote"})

EMBEDDING_TEXT_MAX_CHARS: int = 8000
