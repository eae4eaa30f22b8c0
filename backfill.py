from typing import Callable, Optional

from google import genai
from google.genai import types

from errors import ConfigError, GenerationError
from models import Table
from progress import ProgressTracker


# =============================================================================
# Gemini Prompts
# =============================================================================

FEW_SHOT_EXAMPLES = [
    ("Hund", "Der Hund schläft."),
    ("Apfel", "Ich esse einen Apfel."),
    ("schnell", "Das Auto fährt schnell."),
    ("Schule", "Die Schule beginnt um acht."),
]


def _build_sentence_system_prompt() -> str:
    return (
        "You write example sentences for beginner German learners.\n"
        "\n"
        "Strict requirements (follow exactly):\n"
        "- Output exactly ONE short German sentence, nothing else.\n"
        "- The sentence must use the given word exactly as written.\n"
        "- Use only simple, everyday vocabulary around the given word.\n"
        "- At most eight words. End with a period.\n"
        "- No translation, no quotes, no explanations, no markdown.\n"
    )


def _build_sentence_prompt(word: str) -> str:
    examples = "\n".join(f"Word: {w}\nSentence: {s}" for w, s in FEW_SHOT_EXAMPLES)
    return (
        "Examples:\n"
        f"{examples}\n"
        "\n"
        f"Word: {word}\n"
        "Sentence:"
    )


def _clean_sentence(text: str) -> str:
    sentence = text.strip().splitlines()[0].strip() if text.strip() else ""
    if sentence.lower().startswith("sentence:"):
        sentence = sentence[len("sentence:"):].strip()
    return sentence.strip('"„“”\'').strip()


# =============================================================================
# Sentence Generator (Gemini)
# =============================================================================

class GeminiSentenceGenerator:
    """Generates one short example sentence for a word with Gemini."""

    def __init__(self, api_key: str, model_name: str = "gemini-2.0-flash",
                 max_output_tokens: int = 60, temperature: float = 0.7,
                 client=None):
        if not api_key and client is None:
            raise ConfigError("Gemini API key is missing. Please set it in config.json.")
        self.model_name = model_name
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature
        self.client = client or genai.Client(api_key=api_key)

    def generate_sentence(self, word: str) -> str:
        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=_build_sentence_prompt(word),
                config=types.GenerateContentConfig(
                    system_instruction=_build_sentence_system_prompt(),
                    max_output_tokens=self.max_output_tokens,
                    temperature=self.temperature,
                ),
            )
        except Exception as e:
            raise GenerationError(f"Gemini error for '{word}': {e}") from e

        text = getattr(response, "text", None)
        sentence = _clean_sentence(text) if text else ""
        if not sentence:
            raise GenerationError(
                f"No sentence returned from Gemini for '{word}'",
                response_body=str(response),
            )
        return sentence


# =============================================================================
# Backfill
# =============================================================================

class SentenceBackfiller:
    """Fills the empty third column of rows that have a target word.

    Only ``target_sentence`` is ever written; rows are not reordered,
    added or removed.
    """

    def __init__(self, log: Optional[Callable[[str], None]] = None,
                 progress_callback: Optional[Callable] = None,
                 show_progress: bool = True):
        self.log = log or (lambda _msg: None)
        self.progress_callback = progress_callback
        self.show_progress = show_progress

    def fill(self, table: Table, generator) -> int:
        """Return the number of rows updated; 0 means nothing to do."""
        targets = [row for row in table.rows if row.needs_sentence()]
        if not targets:
            self.log(f"No rows in '{table.name}' need a sentence")
            return 0

        self.log(f"Generating {len(targets)} sentence(s) for '{table.name}'...")
        updated = 0
        with ProgressTracker(len(targets), "Generating sentences",
                             callback=self.progress_callback, unit="row",
                             use_tqdm=self.show_progress) as progress:
            for row in targets:
                word = row.target_word.strip()
                sentence = generator.generate_sentence(word)
                if not sentence or not sentence.strip():
                    raise GenerationError(f"Empty sentence generated for '{word}'")
                row.target_sentence = sentence.strip()
                updated += 1
                self.log(f"{word}: {row.target_sentence}")
                progress.update(1, word)

        return updated
