# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Database layer for SleepGuard.

This module handles SQLite database operations for persisting:
- Detection sessions and their final statistics
- Detection events
- Session recordings (files on disk, indexed in the database)
- System events

Uses aiosqlite for async database operations.

Usage:
    from sleepguard.persistence.database import Database

    db = Database("data/sleepguard.db", "data/recordings")
    await db.initialize()
    session_id = await db.create_session("local")
    await db.append_event(session_id, event)
    await db.close()
"""

import asyncio
import json
import logging
import os
import shutil
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite

from sleepguard.models.detection import DetectionEvent, EventLabel
from sleepguard.models.session import RecordingBlob, SessionStats
from sleepguard.session.aggregator import (
    compute_stats,
    events_per_hour,
    severity_category,
    summary_severity_score,
)

logger = logging.getLogger(__name__)


class Database:
    """Async SQLite database manager for SleepGuard.

    Handles all database operations including:
    - Schema initialization
    - Session/Event/Recording persistence
    - History queries and summaries
    - Data retention and cleanup

    Attributes:
        db_path: Path to SQLite database file
        recordings_dir: Directory recordings are written under
    """

    def __init__(self, db_path: str, recordings_dir: Optional[str] = None):
        """Initialize database manager.

        Args:
            db_path: Path to SQLite database file
            recordings_dir: Directory for recording files (default: next to the database)
        """
        self.db_path = str(db_path)
        if recordings_dir is None:
            recordings_dir = os.path.join(os.path.dirname(self.db_path) or ".", "recordings")
        self.recordings_dir = Path(recordings_dir)
        self._connection: Optional[aiosqlite.Connection] = None
        logger.info(f"Database initialized (path: {self.db_path})")

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("Database not initialized")
        return self._connection

    async def initialize(self) -> None:
        """Initialize database connection and create tables.

        Creates the database file and all tables if they don't exist.
        """
        # Ensure directory exists
        db_dir = os.path.dirname(self.db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir)
            logger.info(f"Created database directory: {db_dir}")

        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row

        await self._create_tables()
        logger.info("Database initialized and tables created")

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    async def _create_tables(self) -> None:
        """Create all database tables if they don't exist."""
        async with self.connection.cursor() as cursor:
            # Detection sessions - one row per tracking interval
            await cursor.execute("""
                CREATE TABLE IF NOT EXISTS detection_sessions (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    start_time DATETIME NOT NULL,
                    end_time DATETIME,
                    duration_minutes REAL,
                    total_events INTEGER DEFAULT 0,
                    apnea_count INTEGER DEFAULT 0,
                    normal_count INTEGER DEFAULT 0,
                    apnea_percentage REAL DEFAULT 0,
                    average_confidence REAL DEFAULT 0,
                    severity_score REAL DEFAULT 0,
                    source TEXT DEFAULT 'audio',
                    notes TEXT
                )
            """)

            await cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_sessions_start_time
                ON detection_sessions(start_time)
            """)

            # Detection events
            await cursor.execute("""
                CREATE TABLE IF NOT EXISTS detection_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT NOT NULL,
                    timestamp DATETIME NOT NULL,
                    label TEXT NOT NULL,
                    confidence REAL NOT NULL,
                    duration_seconds REAL,
                    source TEXT DEFAULT 'audio',
                    FOREIGN KEY (session_id) REFERENCES detection_sessions(id)
                )
            """)

            await cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_detection_events_session
                ON detection_events(session_id, timestamp)
            """)

            # Recordings
            await cursor.execute("""
                CREATE TABLE IF NOT EXISTS recordings (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    session_id TEXT,
                    file_path TEXT NOT NULL,
                    content_type TEXT,
                    file_size INTEGER,
                    duration_seconds REAL,
                    recorded_at DATETIME NOT NULL
                )
            """)

            # System events table
            await cursor.execute("""
                CREATE TABLE IF NOT EXISTS system_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp DATETIME NOT NULL,
                    event_type TEXT NOT NULL,
                    message TEXT,
                    metadata TEXT
                )
            """)

            await cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_system_events_timestamp
                ON system_events(timestamp)
            """)

            await self.connection.commit()

    # ==================== Sessions ====================

    async def create_session(
        self,
        owner_id: str,
        start_time: Optional[datetime] = None,
        source: str = "audio",
        session_id: Optional[str] = None,
    ) -> str:
        """Create a session row.

        Args:
            owner_id: Owner of the session
            start_time: Session start (default: now)
            source: Event source ("audio" or "synthetic")
            session_id: Explicit ID (default: new UUID)

        Returns:
            ID of the created session
        """
        session_id = session_id or str(uuid.uuid4())
        async with self.connection.cursor() as cursor:
            await cursor.execute("""
                INSERT INTO detection_sessions (id, owner_id, start_time, source)
                VALUES (?, ?, ?, ?)
            """, (
                session_id,
                owner_id,
                (start_time or datetime.now()).isoformat(),
                source,
            ))
            await self.connection.commit()
        return session_id

    async def append_event(self, session_id: str, event: DetectionEvent) -> int:
        """Store one detection event.

        Returns:
            ID of the inserted event
        """
        async with self.connection.cursor() as cursor:
            await cursor.execute("""
                INSERT INTO detection_events
                (session_id, timestamp, label, confidence, duration_seconds, source)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                session_id,
                event.timestamp.isoformat(),
                event.label.value,
                event.confidence,
                event.duration_seconds,
                event.source.value,
            ))
            await self.connection.commit()
            return cursor.lastrowid

    async def finalize_session(
        self,
        session_id: str,
        stats: SessionStats,
        end_time: Optional[datetime] = None,
        duration_minutes: Optional[float] = None,
    ) -> bool:
        """Write final statistics for a session.

        Returns:
            True if the session was updated
        """
        async with self.connection.cursor() as cursor:
            await cursor.execute("""
                UPDATE detection_sessions
                SET end_time = ?,
                    duration_minutes = ?,
                    total_events = ?,
                    apnea_count = ?,
                    normal_count = ?,
                    apnea_percentage = ?,
                    average_confidence = ?,
                    severity_score = ?
                WHERE id = ?
            """, (
                (end_time or datetime.now()).isoformat(),
                duration_minutes if duration_minutes is not None else stats.elapsed_seconds / 60.0,
                stats.total_events,
                stats.apnea_count,
                stats.normal_count,
                stats.apnea_percentage,
                stats.average_confidence,
                stats.severity_score,
                session_id,
            ))
            await self.connection.commit()
            return cursor.rowcount > 0

    async def get_sessions(
        self,
        owner_id: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 50,
        include_unfinished: bool = False,
    ) -> List[Dict[str, Any]]:
        """Get sessions, newest first.

        Args:
            owner_id: Only sessions of this owner
            start_time: Sessions starting at or after this time
            end_time: Sessions starting at or before this time
            limit: Maximum number of sessions to return
            include_unfinished: Also return sessions whose hand-off never
                reached finalize_session (no end_time)

        Returns:
            List of session dictionaries
        """
        query = "SELECT * FROM detection_sessions"
        params = []
        conditions = []

        if not include_unfinished:
            conditions.append("end_time IS NOT NULL")

        if owner_id:
            conditions.append("owner_id = ?")
            params.append(owner_id)

        if start_time:
            conditions.append("start_time >= ?")
            params.append(start_time.isoformat())

        if end_time:
            conditions.append("start_time <= ?")
            params.append(end_time.isoformat())

        if conditions:
            query += " WHERE " + " AND ".join(conditions)

        query += " ORDER BY start_time DESC LIMIT ?"
        params.append(limit)

        async with self.connection.cursor() as cursor:
            await cursor.execute(query, params)
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Get one session by ID."""
        async with self.connection.cursor() as cursor:
            await cursor.execute(
                "SELECT * FROM detection_sessions WHERE id = ?", (session_id,)
            )
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def get_session_events(self, session_id: str, limit: int = 10000) -> List[Dict[str, Any]]:
        """Get a session's events in emission order."""
        async with self.connection.cursor() as cursor:
            await cursor.execute("""
                SELECT * FROM detection_events
                WHERE session_id = ?
                ORDER BY id ASC
                LIMIT ?
            """, (session_id, limit))
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def get_session_summary(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Session results: stats recomputed from stored events.

        Returns:
            Dict with the session row, recomputed stats, summary severity,
            apnea events per hour and its severity category; None if the
            session does not exist
        """
        session = await self.get_session(session_id)
        if session is None:
            return None

        rows = await self.get_session_events(session_id)
        events = [
            DetectionEvent(
                timestamp=datetime.fromisoformat(row["timestamp"]),
                label=EventLabel(row["label"]),
                confidence=row["confidence"],
                duration_seconds=row["duration_seconds"],
            )
            for row in rows
        ]

        duration_seconds = (session["duration_minutes"] or 0.0) * 60.0
        stats = compute_stats(events, elapsed_seconds=duration_seconds)
        rate = events_per_hour(stats.apnea_count, duration_seconds)

        return {
            "session": session,
            "stats": stats.to_dict(),
            "summary_severity_score": round(
                summary_severity_score(stats.apnea_percentage, stats.average_confidence), 2
            ),
            "events_per_hour": round(rate, 2),
            "severity_category": severity_category(rate),
        }

    async def delete_sessions(self, owner_id: Optional[str] = None) -> int:
        """Delete sessions with their events and recordings (one owner's, or all).

        Returns:
            Number of sessions deleted
        """
        if owner_id:
            await self._delete_recordings("owner_id = ?", (owner_id,))
        else:
            await self._delete_recordings("1 = 1", ())

        async with self.connection.cursor() as cursor:
            if owner_id:
                await cursor.execute("""
                    DELETE FROM detection_events WHERE session_id IN
                    (SELECT id FROM detection_sessions WHERE owner_id = ?)
                """, (owner_id,))
                await cursor.execute(
                    "DELETE FROM detection_sessions WHERE owner_id = ?", (owner_id,)
                )
            else:
                await cursor.execute("DELETE FROM detection_events")
                await cursor.execute("DELETE FROM detection_sessions")
            deleted = cursor.rowcount
            await self.connection.commit()

        logger.info(f"Deleted {deleted} sessions")
        return deleted

    # ==================== Recordings ====================

    def _recording_path(self, owner_id: str, filename: str) -> Path:
        """Absolute path for a recording, which must stay inside recordings_dir.

        Raises:
            ValueError: If owner_id would place the file outside recordings_dir
        """
        base = self.recordings_dir.resolve()
        path = (base / owner_id / filename).resolve()
        if path.parent == base or base not in path.parents:
            raise ValueError(f"Invalid owner_id for recording path: {owner_id!r}")
        return path

    async def upload_audio(
        self,
        owner_id: str,
        blob: RecordingBlob,
        duration_seconds: Optional[float] = None,
        session_id: Optional[str] = None,
    ) -> str:
        """Move a recording to {owner}/live-recording-{timestamp}-{id}.{ext}.

        Returns:
            ID of the recording

        Raises:
            ValueError: If owner_id is not usable as a directory name
        """
        recording_id = str(uuid.uuid4())
        recorded_at = datetime.now()
        timestamp_ms = int(recorded_at.timestamp() * 1000)
        path = self._recording_path(
            owner_id, f"live-recording-{timestamp_ms}-{recording_id[:8]}.{blob.extension}"
        )
        relative = path.relative_to(self.recordings_dir.resolve())

        file_size = blob.size
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.move, str(blob.path), str(path))

        async with self.connection.cursor() as cursor:
            await cursor.execute("""
                INSERT INTO recordings
                (id, owner_id, session_id, file_path, content_type, file_size,
                 duration_seconds, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                recording_id,
                owner_id,
                session_id,
                relative.as_posix(),
                blob.content_type,
                file_size,
                duration_seconds if duration_seconds is not None else blob.duration_seconds,
                recorded_at.isoformat(),
            ))
            await self.connection.commit()

        logger.info(f"Stored recording {recording_id} ({file_size} bytes) at {path}")
        return recording_id

    async def get_recordings(self, owner_id: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        """Get recordings, newest first."""
        query = "SELECT * FROM recordings"
        params: List[Any] = []
        if owner_id:
            query += " WHERE owner_id = ?"
            params.append(owner_id)
        query += " ORDER BY recorded_at DESC LIMIT ?"
        params.append(limit)

        async with self.connection.cursor() as cursor:
            await cursor.execute(query, params)
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def get_recording(self, recording_id: str) -> Optional[Dict[str, Any]]:
        """Get one recording by ID."""
        async with self.connection.cursor() as cursor:
            await cursor.execute("SELECT * FROM recordings WHERE id = ?", (recording_id,))
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def delete_recording(self, recording_id: str) -> bool:
        """Delete a recording's file and row.

        Returns:
            True if the recording existed
        """
        return await self._delete_recordings("id = ?", (recording_id,)) > 0

    async def _delete_recordings(self, condition: str, params: tuple) -> int:
        """Delete matching recording files, then their rows."""
        async with self.connection.cursor() as cursor:
            await cursor.execute(f"SELECT file_path FROM recordings WHERE {condition}", params)
            rows = await cursor.fetchall()

            for row in rows:
                path = self.recordings_dir / row["file_path"]
                try:
                    await asyncio.to_thread(path.unlink, missing_ok=True)
                except OSError as e:
                    logger.error(f"Failed to delete recording file {path}: {e}")

            await cursor.execute(f"DELETE FROM recordings WHERE {condition}", params)
            deleted = cursor.rowcount
            await self.connection.commit()

        if deleted:
            logger.info(f"Deleted {deleted} recordings")
        return deleted

    # ==================== System Events ====================

    async def log_event(
        self,
        event_type: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> int:
        """Log a system event.

        Args:
            event_type: Type of event (e.g., "tracking", "error")
            message: Event description
            metadata: Optional additional data as dict

        Returns:
            ID of the inserted event
        """
        async with self.connection.cursor() as cursor:
            await cursor.execute("""
                INSERT INTO system_events
                (timestamp, event_type, message, metadata)
                VALUES (?, ?, ?, ?)
            """, (
                datetime.now().isoformat(),
                event_type,
                message,
                json.dumps(metadata) if metadata else None,
            ))
            await self.connection.commit()
            return cursor.lastrowid

    async def get_system_events(self, event_type: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        """Get system events, newest first."""
        query = "SELECT * FROM system_events"
        params: List[Any] = []
        if event_type:
            query += " WHERE event_type = ?"
            params.append(event_type)
        query += " ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        async with self.connection.cursor() as cursor:
            await cursor.execute(query, params)
            rows = await cursor.fetchall()
            result = []
            for row in rows:
                event = dict(row)
                if event.get("metadata"):
                    event["metadata"] = json.loads(event["metadata"])
                result.append(event)
            return result

    # ==================== Retention ====================

    async def cleanup_old_data(
        self,
        sessions_days: int = 30,
        events_days: int = 90
    ) -> Dict[str, int]:
        """Clean up old data based on retention policy.

        Args:
            sessions_days: Delete sessions (with their detection events and
                recordings) older than this
            events_days: Delete system events older than this

        Returns:
            Dict with counts of deleted records by table
        """
        now = datetime.now()
        deleted = {}

        cutoff = (now - timedelta(days=sessions_days)).isoformat()
        deleted["recordings"] = await self._delete_recordings("recorded_at < ?", (cutoff,))

        async with self.connection.cursor() as cursor:
            await cursor.execute("""
                DELETE FROM detection_events WHERE session_id IN
                (SELECT id FROM detection_sessions WHERE start_time < ?)
            """, (cutoff,))
            deleted["detection_events"] = cursor.rowcount

            await cursor.execute("""
                DELETE FROM detection_sessions WHERE start_time < ?
            """, (cutoff,))
            deleted["detection_sessions"] = cursor.rowcount

            cutoff = (now - timedelta(days=events_days)).isoformat()
            await cursor.execute("""
                DELETE FROM system_events WHERE timestamp < ?
            """, (cutoff,))
            deleted["system_events"] = cursor.rowcount

            await self.connection.commit()

        if any(deleted.values()):
            logger.info(f"Cleaned up old data: {deleted}")
        return deleted
