"""Row source, credential source and blob sink.

The pipeline only sees these through ``load_table`` / ``save_table`` and
``store``; nothing else in the project touches the filesystem for lesson
data.
"""
import csv
import json
import os
from pathlib import Path
from typing import Callable, List, Optional

from errors import ConfigError, StorageError
from models import Credential, DEFAULT_TOKEN_URI, Row, Table

HEADER = ["source_phrase", "target_word", "target_sentence"]
AUDIO_EXTENSION = ".mp3"


def _replace_file(path: str, write: Callable, mode: str, **open_kwargs) -> None:
    """Write through a temp file and swap it in, so readers never see half a file.

    Raises StorageError; the temp file does not survive a failed write.
    """
    tmp_path = f"{path}.tmp"
    try:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(tmp_path, mode, **open_kwargs) as f:
            write(f)
        os.replace(tmp_path, path)
    except OSError as e:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise StorageError(f"Could not write {path}: {e}") from e


# =============================================================================
# Tables (CSV)
# =============================================================================

class CsvTableStore:
    """Tables stored as ``<tables_dir>/<name>.csv`` with three columns."""

    def __init__(self, tables_dir: str):
        self.tables_dir = tables_dir

    def path_for(self, name: str) -> str:
        return os.path.join(self.tables_dir, f"{name}.csv")

    def load_table(self, name: str) -> Table:
        if not name or not name.strip():
            raise ConfigError("Table name is missing")

        path = self.path_for(name)
        if not os.path.exists(path):
            raise ConfigError(f"Table not found: {name} ({path})")

        rows: List[Row] = []
        # utf-8-sig drops the BOM spreadsheet exports put before the header
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            for index, record in enumerate(csv.reader(f)):
                if index == 0 and [c.strip().lower() for c in record[:3]] == HEADER:
                    continue
                if not record:
                    continue
                # Pad short rows so every row has three fields
                cells = (record + ["", "", ""])[:3]
                rows.append(Row(*cells))

        return Table(name=name, rows=rows)

    def save_table(self, table: Table) -> str:
        """Rewrite the whole table, keeping row order."""
        path = self.path_for(table.name)

        def write_rows(f):
            writer = csv.writer(f)
            writer.writerow(HEADER)
            for row in table.rows:
                writer.writerow(row.fields())

        _replace_file(path, write_rows, "w", encoding="utf-8", newline="")
        return path


# =============================================================================
# Credentials
# =============================================================================

def load_credential(path: Optional[str]) -> Credential:
    """Load a service-account JSON document."""
    if not path:
        raise ConfigError("Credential file is not configured (credentials_path)")

    resolved = Path(path).expanduser()
    if not resolved.exists():
        raise ConfigError(f"Credential file not found: {resolved}")

    try:
        with open(resolved, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Could not read credential file {resolved}: {e}") from e

    missing = [key for key in ("client_email", "private_key") if not data.get(key)]
    if missing:
        raise ConfigError(f"Credential file {resolved} is missing: {', '.join(missing)}")

    return Credential(
        client_email=data["client_email"],
        private_key=data["private_key"],
        token_uri=data.get("token_uri") or DEFAULT_TOKEN_URI,
        source_path=str(resolved.resolve()),
    )


# =============================================================================
# Output Sink
# =============================================================================

def audio_blob_name(table_name: str) -> str:
    return f"{table_name}{AUDIO_EXTENSION}"


class LocalFolderSink:
    """Writes named blobs into a folder and returns their paths.

    With ``co_locate`` the destination is the folder holding the credential
    file, when that can be resolved; otherwise ``default_dir``.
    """

    def __init__(self, default_dir: str, co_locate: bool = True):
        self.default_dir = default_dir
        self.co_locate = co_locate

    def destination_for(self, credential: Optional[Credential] = None) -> str:
        if self.co_locate and credential is not None and credential.source_path:
            folder = os.path.dirname(credential.source_path)
            if os.path.isdir(folder):
                return folder
        return self.default_dir

    def store(self, name: str, data: bytes, credential: Optional[Credential] = None) -> str:
        path = os.path.join(self.destination_for(credential), name)
        _replace_file(path, lambda f: f.write(data), "wb")
        return path
