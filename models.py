from dataclasses import dataclass, field
from typing import List, Optional

MP3_MIME_TYPE = "audio/mpeg"
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"


# =============================================================================
# Lesson Tables
# =============================================================================

@dataclass
class Row:
    """One lesson entry: source phrase, target word, target sentence."""
    source_phrase: str = ""
    target_word: str = ""
    target_sentence: str = ""

    def fields(self) -> List[str]:
        """Fields in narration order."""
        return [self.source_phrase, self.target_word, self.target_sentence]

    def is_complete(self) -> bool:
        return all(value.strip() for value in self.fields())

    def needs_sentence(self) -> bool:
        return bool(self.target_word.strip()) and not self.target_sentence.strip()


@dataclass
class Table:
    """Named, ordered rows of one lesson. Row order is playback order."""
    name: str
    rows: List[Row] = field(default_factory=list)

    def complete_rows(self) -> List[Row]:
        return [row for row in self.rows if row.is_complete()]


# =============================================================================
# Credentials
# =============================================================================

@dataclass(frozen=True)
class Credential:
    """Service-account identity used to sign token assertions."""
    client_email: str
    private_key: str = field(repr=False)
    token_uri: str = DEFAULT_TOKEN_URI
    source_path: Optional[str] = None


@dataclass(frozen=True)
class Token:
    """Bearer token and the unix time it stops being valid."""
    value: str = field(repr=False)
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


# =============================================================================
# Audio
# =============================================================================

@dataclass(frozen=True)
class AudioSegment:
    """Encoded audio for exactly one (text, locale) pair."""
    data: bytes
    text: str = ""
    locale_code: str = ""
    mime_type: str = MP3_MIME_TYPE


@dataclass
class FinalAudio:
    """A finished lesson track that was handed to the sink."""
    name: str
    data: bytes
    location: str
    row_count: int
    segment_count: int
    mime_type: str = MP3_MIME_TYPE


@dataclass
class EmptyResult:
    """Nothing to do: the table had no eligible rows."""
    table_name: str
    reason: str = "no complete rows"
