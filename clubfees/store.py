"""JSON-file persistence for matches, participations, events and overrides.

Each match is one document at <data_dir>/matches/<match_id>.json holding the
rate configuration, the participations with their save-time fees, the events
and the fee overrides. One MatchStore is created per process and handed to the
services that need it.
"""

import logging
import re
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .exceptions import MatchNotFoundError
from .schemas import MatchRecord
from .utils import load_json, save_json

logger = logging.getLogger('clubfees.store')

_MATCH_ID_PATTERN = re.compile(r'^[A-Za-z0-9_.\-]+$')


class MatchStore:
    """File-backed store for match documents."""

    def __init__(self, data_dir: Path | str):
        self.data_dir = Path(data_dir)
        self.matches_dir = self.data_dir / 'matches'
        self._lock = threading.RLock()

    def match_path(self, match_id: str) -> Path:
        if not match_id or not _MATCH_ID_PATTERN.match(match_id) or match_id in ('.', '..'):
            raise ValueError(f'Invalid match id: {match_id!r}')
        return self.matches_dir / f'{match_id}.json'

    def exists(self, match_id: str) -> bool:
        return self.match_path(match_id).exists()

    def list_match_ids(self) -> list[str]:
        if not self.matches_dir.exists():
            return []
        return sorted(p.stem for p in self.matches_dir.glob('*.json'))

    def load_match(self, match_id: str) -> MatchRecord:
        """
        Load a match document.

        Raises:
            MatchNotFoundError: If no document exists for match_id
            ValueError: If the document fails schema validation
        """
        path = self.match_path(match_id)
        try:
            return load_json(path, schema=MatchRecord)
        except FileNotFoundError:
            raise MatchNotFoundError(match_id) from None

    def save_match(self, match: MatchRecord) -> None:
        with self._lock:
            save_json(self.match_path(match.match_id), match)
        logger.debug(f'Saved match {match.match_id}')

    def create_match(self, match: MatchRecord) -> MatchRecord:
        """Store a new match. Raises FileExistsError if the id is taken."""
        with self._lock:
            if self.exists(match.match_id):
                raise FileExistsError(f'Match {match.match_id} already exists')
            self.save_match(match)
        logger.info(f'Created match {match.match_id}')
        return match

    def delete_match(self, match_id: str) -> None:
        with self._lock:
            path = self.match_path(match_id)
            if not path.exists():
                raise MatchNotFoundError(match_id)
            path.unlink()
        logger.info(f'Deleted match {match_id}')

    @contextmanager
    def update(self, match_id: str) -> Iterator[MatchRecord]:
        """
        Load a match for modification and save it when the block exits.

        If the block raises, nothing is written, so each update is
        all-or-nothing.

        Example:
            with store.update('m1') as match:
                match.notes = 'rained off'
        """
        with self._lock:
            match = self.load_match(match_id)
            yield match
            # Re-validate so a bad mutation never reaches disk
            validated = MatchRecord.model_validate(match.model_dump())
            self.save_match(validated)
