import time
from typing import Callable, List, Optional, Union

from audio import merge_all
from auth import SPEECH_SCOPES, TokenProvider
from backfill import GeminiSentenceGenerator, SentenceBackfiller
from config import ConfigManager
from errors import ConfigError, StorageError, SynthesisError
from models import AudioSegment, Credential, EmptyResult, FinalAudio, Row, Table, Token
from progress import ProgressTracker, relieve_memory_pressure
from speech import SpeechClient
from storage import CsvTableStore, LocalFolderSink, audio_blob_name, load_credential


# =============================================================================
# Lesson Pipeline
# =============================================================================

SOURCE_LOCALE = "en-US"
TARGET_LOCALE = "de-DE"
FIELDS_PER_ROW = 3
# Refresh a little early so a token does not lapse mid-request
TOKEN_EXPIRY_MARGIN_SECONDS = 30


def row_requests(row: Row) -> List[tuple]:
    """(text, locale) pairs for one row, in narration order."""
    return [
        (row.source_phrase, SOURCE_LOCALE),
        (row.target_word, TARGET_LOCALE),
        (row.target_sentence, TARGET_LOCALE),
    ]


class LessonPipeline:
    """Synthesizes every complete row and concatenates the result.

    Field order inside a row is source phrase, target word, target
    sentence; rows keep table order. Any auth or synthesis failure aborts
    the run before anything reaches the sink.
    """

    def __init__(self,
                 token_provider: TokenProvider,
                 speech_client: SpeechClient,
                 sink,
                 scopes=SPEECH_SCOPES,
                 refresh_on_unauthorized: bool = True,
                 log: Optional[Callable[[str], None]] = None,
                 progress_callback: Optional[Callable] = None,
                 show_progress: bool = True,
                 clock: Callable[[], float] = time.time):
        self.token_provider = token_provider
        self.speech_client = speech_client
        self.sink = sink
        self.scopes = scopes
        self.refresh_on_unauthorized = refresh_on_unauthorized
        self.log = log or (lambda _msg: None)
        self.progress_callback = progress_callback
        self.show_progress = show_progress
        self.clock = clock
        self.token_requests = 0

    def _acquire_token(self, credential: Credential) -> Token:
        self.token_requests += 1
        return self.token_provider.get_access_token(credential, self.scopes)

    def _synthesize(self, token: Token, credential: Credential,
                    text: str, locale_code: str) -> tuple:
        """Synthesize one segment with a live token.

        The token is re-acquired when it is about to expire, and once more
        on HTTP 401. Returns (segment, token) so the refreshed token is used
        from here on.
        """
        if token.is_expired(self.clock() + TOKEN_EXPIRY_MARGIN_SECONDS):
            self.log("Access token expired, requesting a new one...")
            token = self._acquire_token(credential)

        try:
            return self.speech_client.synthesize(token, text, locale_code), token
        except SynthesisError as e:
            if not (self.refresh_on_unauthorized and e.status_code == 401):
                raise
            self.log("Speech API rejected the token, requesting a new one...")

        token = self._acquire_token(credential)
        return self.speech_client.synthesize(token, text, locale_code), token

    def run(self, table: Table, credential: Credential) -> Union[FinalAudio, EmptyResult]:
        rows = table.complete_rows()
        skipped = len(table.rows) - len(rows)
        if skipped:
            self.log(f"Skipping {skipped} incomplete row(s)")

        if not rows:
            return EmptyResult(table_name=table.name)

        token = self._acquire_token(credential)

        row_tracks: List[bytes] = []
        total_segments = len(rows) * FIELDS_PER_ROW
        with ProgressTracker(total_segments, "Synthesizing",
                             callback=self.progress_callback, unit="segment",
                             use_tqdm=self.show_progress) as progress:
            for index, row in enumerate(rows, start=1):
                segments: List[AudioSegment] = []
                for text, locale_code in row_requests(row):
                    segment, token = self._synthesize(token, credential, text, locale_code)
                    segments.append(segment)
                    progress.update(1, f"Row {index}/{len(rows)}")

                row_tracks.append(merge_all(segment.data for segment in segments))

                relieve_memory_pressure(self.log)

        final = merge_all(row_tracks)
        row_tracks.clear()

        name = audio_blob_name(table.name)
        self.log(f"Storing {name} ({len(final):,} bytes)...")
        try:
            location = self.sink.store(name, final, credential)
        except OSError as e:
            raise StorageError(f"Could not store {name}: {e}") from e

        return FinalAudio(
            name=name,
            data=final,
            location=location,
            row_count=len(rows),
            segment_count=total_segments,
        )


# =============================================================================
# Lesson Worker
# =============================================================================

class LessonWorker:
    """Operator entry points, wired from configuration."""

    @staticmethod
    def run_text_to_speech_process(table_name: str,
                                   config_mgr: ConfigManager,
                                   log: Callable[[str], None],
                                   progress_callback: Optional[Callable] = None,
                                   show_progress: bool = True
                                   ) -> Union[FinalAudio, EmptyResult]:
        """Build the narrated lesson for ``table_name``."""
        if not table_name or not table_name.strip():
            raise ConfigError("Table name is missing")

        cfg = config_mgr.load()
        credentials_path = ConfigManager.require(cfg, "credentials_path")
        tables_dir = ConfigManager.require(cfg, "tables_dir")

        credential = load_credential(credentials_path)
        table = CsvTableStore(tables_dir).load_table(table_name)
        log(f"Loaded '{table.name}' ({len(table.rows)} rows)")

        timeout = cfg.get("request_timeout", 60)
        pipeline = LessonPipeline(
            token_provider=TokenProvider(timeout=timeout, log=log),
            speech_client=SpeechClient(
                speaking_rate=cfg.get("speaking_rate", 0.8),
                pause_ms=cfg.get("pause_ms", 500),
                timeout=timeout,
                log=log,
            ),
            sink=LocalFolderSink(
                cfg.get("output_dir") or config_mgr.base_dir,
                co_locate=cfg.get("co_locate_output", True),
            ),
            refresh_on_unauthorized=cfg.get("refresh_token_on_unauthorized", True),
            log=log,
            progress_callback=progress_callback,
            show_progress=show_progress,
        )
        return pipeline.run(table, credential)

    @staticmethod
    def fill_column3_from_table_name(table_name: str,
                                     config_mgr: ConfigManager,
                                     log: Callable[[str], None],
                                     progress_callback: Optional[Callable] = None,
                                     generator=None,
                                     show_progress: bool = True) -> int:
        """Backfill missing example sentences and save the table.

        Returns the number of rows updated. The table is only rewritten
        when every generation call succeeded.
        """
        if not table_name or not table_name.strip():
            raise ConfigError("Table name is missing")

        cfg = config_mgr.load()
        tables_dir = ConfigManager.require(cfg, "tables_dir")
        if generator is None:
            generator = GeminiSentenceGenerator(
                api_key=ConfigManager.require(cfg, "gemini_api_key"),
                model_name=cfg.get("model_name", "gemini-2.0-flash"),
                max_output_tokens=cfg.get("generation_max_tokens", 60),
                temperature=cfg.get("generation_temperature", 0.7),
            )

        store = CsvTableStore(tables_dir)
        table = store.load_table(table_name)
        log(f"Loaded '{table.name}' ({len(table.rows)} rows)")

        backfiller = SentenceBackfiller(log=log, progress_callback=progress_callback,
                                        show_progress=show_progress)
        updated = backfiller.fill(table, generator)
        if updated:
            path = store.save_table(table)
            log(f"Saved {updated} sentence(s) to {path}")
        return updated

