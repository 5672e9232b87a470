"""JSON corpus storage.

One file holds the whole corpus. Saves go through a temp file + os.replace so a
crash mid-write leaves the previous checkpoint intact.
"""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
import os
import shutil
import tempfile
from typing import Any, Dict, List, Optional, Sequence

from contentscout.contracts.corpus import corpus_document, records_from_document, validate_corpus
from contentscout.ingestion.content_types import ContentRecord

logger = logging.getLogger(__name__)


class CorpusLoadError(Exception):
    """The corpus file exists but cannot be read or does not match the contract."""


class CorpusWriteError(Exception):
    """The corpus file could not be written."""


class CorpusStore:
    def __init__(self, path: str, *, backup_dir: Optional[str] = None, indent: Optional[int] = 2):
        self.path = path
        self.backup_dir = backup_dir
        self.indent = indent

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def load_document(self) -> Optional[Dict[str, Any]]:
        """Raw corpus document, or None on a first run."""
        if not self.exists():
            logger.info(f"No corpus at {self.path}; starting from an empty corpus")
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, ValueError) as e:
            raise CorpusLoadError(f"Cannot read corpus {self.path}: {e}") from e
        if not isinstance(payload, dict):
            raise CorpusLoadError(f"Corpus {self.path} is not a JSON object")
        errors = validate_corpus(payload)
        if errors:
            shown = "; ".join(errors[:5])
            raise CorpusLoadError(f"Corpus {self.path} failed validation ({len(errors)} errors): {shown}")
        return payload

    def load(self) -> List[ContentRecord]:
        payload = self.load_document()
        if payload is None:
            return []
        records = records_from_document(payload)
        logger.info(f"Loaded {len(records)} existing records from {self.path}")
        return records

    def save(self, records: Sequence[ContentRecord], *, last_updated: str, summary: Dict[str, Any]) -> str:
        payload = corpus_document(records, last_updated=last_updated, summary=summary)
        errors = validate_corpus(payload)
        if errors:
            raise CorpusWriteError(f"Refusing to write invalid corpus: {'; '.join(errors[:5])}")
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".corpus-", suffix=".json", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=self.indent)
                f.write("\n")
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise CorpusWriteError(f"Cannot write corpus {self.path}: {e}") from e
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
        return self.path

    def backup(self, *, now: Optional[datetime] = None) -> Optional[str]:
        """Copy the current corpus into backup_dir; best-effort, returns the backup path."""
        if not self.backup_dir or not self.exists():
            return None
        stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d-%H%M%S")
        base = os.path.splitext(os.path.basename(self.path))[0]
        target = os.path.join(self.backup_dir, f"{base}-{stamp}.json")
        try:
            os.makedirs(self.backup_dir, exist_ok=True)
            shutil.copyfile(self.path, target)
        except OSError as e:
            logger.warning(f"Could not back up corpus: {e}")
            return None
        logger.info(f"Backed up previous corpus to {target}")
        return target
