"""Queue state persistence.

Stores the manual queue, the playlist queue and the sequencer pointer in a
singleton SQLite row so a session can resume where the last one stopped.
"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from loguru import logger

from .models import PlaylistQueueItem, QueueItem
from .sequencer import PlaybackSequencer, SequencerPosition
from .store import QueueStore


@contextmanager
def get_state_connection(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Open the queue state database with row access by column name."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_queue_state_table(db_conn: sqlite3.Connection) -> None:
    db_conn.execute(
        """
        CREATE TABLE IF NOT EXISTS queue_state (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            queue_items TEXT NOT NULL,
            playlist_items TEXT NOT NULL,
            position TEXT NOT NULL,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    db_conn.commit()


def save_queue_state(
    store: QueueStore, sequencer: PlaybackSequencer, db_conn: sqlite3.Connection
) -> bool:
    """Persist queue state to database.

    Uses INSERT OR REPLACE for singleton pattern (id=1).

    Returns:
        True if the state was written
    """
    try:
        queue_json = json.dumps([item.to_dict() for item in store.queue])
        playlists_json = json.dumps([item.to_dict() for item in store.playlist_queue])
        position_json = json.dumps(sequencer.position().to_dict())

        db_conn.execute(
            """
            INSERT OR REPLACE INTO queue_state (
                id, queue_items, playlist_items, position, updated_at
            ) VALUES (1, ?, ?, ?, CURRENT_TIMESTAMP)
            """,
            (queue_json, playlists_json, position_json),
        )
        db_conn.commit()
        logger.info(
            f"Saved queue state: {len(store.queue)} tracks, "
            f"{len(store.playlist_queue)} playlists"
        )
        return True

    except sqlite3.Error:
        # Persistence failing shouldn't crash playback
        logger.exception("Failed to save queue state")
        return False


def load_queue_state(
    store: QueueStore, sequencer: PlaybackSequencer, db_conn: sqlite3.Connection
) -> bool:
    """Restore queue state from database into the store and sequencer.

    Returns:
        True if a saved state was found and applied
    """
    try:
        row: Optional[sqlite3.Row] = db_conn.execute(
            "SELECT queue_items, playlist_items, position FROM queue_state WHERE id = 1"
        ).fetchone()
    except sqlite3.Error:
        logger.exception("Failed to read queue state")
        return False

    if not row:
        logger.info("No saved queue state found")
        return False

    try:
        queue = [QueueItem.from_dict(d) for d in json.loads(row["queue_items"])]
        playlists = [
            PlaylistQueueItem.from_dict(d) for d in json.loads(row["playlist_items"])
        ]
        position = SequencerPosition.from_dict(json.loads(row["position"]))
    except (ValueError, KeyError, TypeError):
        logger.exception("Saved queue state is corrupt, ignoring it")
        return False

    store.replace_contents(queue, playlists)
    sequencer.restore_position(position)
    logger.info(f"Restored queue state: {len(queue)} tracks, {len(playlists)} playlists")
    return True
