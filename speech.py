import base64
from typing import Callable, Optional
from xml.sax.saxutils import escape

import requests

from errors import SynthesisError
from models import AudioSegment, Token


# =============================================================================
# Google Cloud Text-to-Speech (REST)
# =============================================================================

GOOGLE_TTS_API_URL = "https://texttospeech.googleapis.com/v1/text:synthesize"

# Learners need slower speech and a short gap after every item
DEFAULT_SPEAKING_RATE = 0.8
DEFAULT_PAUSE_MS = 500
DEFAULT_VOICE_GENDER = "NEUTRAL"
AUDIO_ENCODING = "MP3"


def build_ssml(text: str, pause_ms: int = DEFAULT_PAUSE_MS) -> str:
    """Wrap text in SSML with a trailing pause."""
    return f'<speak>{escape(text)}<break time="{int(pause_ms)}ms"/></speak>'


def _response_error_message(response: requests.Response) -> str:
    try:
        error_data = response.json()
        error = error_data.get("error", error_data)
        if isinstance(error, dict):
            return error.get("message", str(error))
        return str(error)
    except Exception:
        return response.text[:200] if response.text else "Unknown error"


class SpeechClient:
    """One synchronous synthesis request per text segment.

    Nothing is cached: the same text requested twice is two calls.
    """

    def __init__(self,
                 api_url: str = GOOGLE_TTS_API_URL,
                 speaking_rate: float = DEFAULT_SPEAKING_RATE,
                 pause_ms: int = DEFAULT_PAUSE_MS,
                 voice_gender: str = DEFAULT_VOICE_GENDER,
                 timeout: float = 60,
                 log: Optional[Callable[[str], None]] = None):
        self.api_url = api_url
        self.speaking_rate = speaking_rate
        self.pause_ms = pause_ms
        self.voice_gender = voice_gender
        self.timeout = timeout
        self.log = log or (lambda _msg: None)

    def build_request(self, text: str, locale_code: str) -> dict:
        return {
            "input": {"ssml": build_ssml(text, self.pause_ms)},
            "voice": {
                "languageCode": locale_code,
                "ssmlGender": self.voice_gender,
            },
            "audioConfig": {
                "audioEncoding": AUDIO_ENCODING,
                "speakingRate": self.speaking_rate,
            },
        }

    def synthesize(self, token: Token, text: str, locale_code: str) -> AudioSegment:
        """Synthesize ``text`` in ``locale_code`` and return MP3 bytes.

        Raises SynthesisError on transport failure, non-2xx status or a
        response without audioContent. HTTP 401 is reported with its
        status code so callers can re-acquire the token.
        """
        headers = {
            "Authorization": f"Bearer {token.value}",
            "Content-Type": "application/json; charset=utf-8",
        }
        label = f"{locale_code} '{text[:40]}'"

        try:
            response = requests.post(
                self.api_url,
                json=self.build_request(text, locale_code),
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise SynthesisError(f"Speech API timed out after {self.timeout}s for {label}") from e
        except requests.exceptions.RequestException as e:
            raise SynthesisError(f"Cannot connect to speech API for {label}: {e}") from e

        if not response.ok:
            raise SynthesisError(
                f"Speech API error for {label}: {_response_error_message(response)}",
                status_code=response.status_code,
                response_body=response.text,
            )

        try:
            result = response.json()
        except ValueError as e:
            raise SynthesisError(
                f"Speech API returned invalid JSON for {label}",
                status_code=response.status_code,
                response_body=response.text,
            ) from e

        audio_b64 = result.get("audioContent") if isinstance(result, dict) else None
        if not audio_b64:
            raise SynthesisError(
                f"No audioContent in response for {label}",
                status_code=response.status_code,
                response_body=response.text,
            )

        try:
            data = base64.b64decode(audio_b64)
        except (ValueError, TypeError) as e:
            raise SynthesisError(
                f"Undecodable audioContent for {label}",
                response_body=response.text,
            ) from e

        self.log(f"Synthesized {len(data):,} bytes for {label}")
        return AudioSegment(data=data, text=text, locale_code=locale_code)
