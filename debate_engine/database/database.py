"""SQLite database manager for debate sessions."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, TypedDict

from judges.base import Criterion, RankingEntry, Verdict

from ..models import (
    Argument,
    DebateReport,
    Exchange,
    Posture,
    Round,
    Session,
    TopicArgument,
    Transcript,
    TranscriptMetadata,
)
from ..types import ExchangeType, RoundType, SessionStatus
from .schema.schema_manager import SchemaManager

logger = logging.getLogger(__name__)


class SessionSummary(TypedDict):
    """Listing row for a stored session."""

    id: str
    document_id: str
    question: str | None
    question_index: int | None
    status: str
    current_round: int
    num_debaters: int
    winner: str | None
    created_at: str
    updated_at: str


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _argument_from_dict(data: dict[str, Any]) -> Argument:
    return Argument(
        debater_id=data["debater_id"],
        per_topic=[
            TopicArgument(
                topic=item["topic"],
                claim=item["claim"],
                reasoning=item.get("reasoning", ""),
                citations=list(item.get("citations", [])),
            )
            for item in data.get("per_topic", [])
        ],
        overall_position=data.get("overall_position", ""),
    )


class DatabaseManager:
    """Persists session snapshots; every save is one transaction."""

    def __init__(self, db_path: str | Path = "debates.db"):
        self.db_path = Path(db_path)
        self.schema_manager = SchemaManager()
        self._init_database()

    def _init_database(self):
        """Initialize the database with required tables using schema manager."""
        if not self.schema_manager.validate_schema_files():
            raise RuntimeError("Database schema validation failed - missing schema files")

        with self._get_connection() as conn:
            cursor = conn.cursor()
            self.schema_manager.initialize_database_schema(cursor)
            conn.commit()
            logger.info(f"Database initialized at {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row  # Enable column access by name
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            if conn:
                conn.close()

    def save_session(self, session: Session) -> None:
        """Write a full session snapshot, replacing any previous one."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT OR REPLACE INTO sessions (
                    id, document_id, question, question_index, status, current_round,
                    num_debaters, cross_examination_rounds, error_detail, report,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    session.id,
                    session.document_id,
                    session.question,
                    session.question_index,
                    session.status.value,
                    session.current_round,
                    session.num_debaters,
                    session.cross_examination_rounds,
                    session.error_detail,
                    json.dumps(session.report.to_dict()) if session.report else None,
                    session.created_at.isoformat(),
                    session.updated_at.isoformat(),
                ),
            )

            for table in ("exchanges", "rounds", "transcripts", "postures", "verdicts"):
                cursor.execute(f"DELETE FROM {table} WHERE session_id = ?", (session.id,))

            for posture in session.postures:
                argument = session.arguments.get(posture.debater_id)
                cursor.execute(
                    """
                    INSERT INTO postures (
                        session_id, debater_id, posture_index, perspective_template,
                        topics, guiding_questions, initial_position, argument
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        session.id,
                        posture.debater_id,
                        posture.index,
                        posture.perspective_template,
                        json.dumps(posture.topics),
                        json.dumps(posture.guiding_questions),
                        posture.initial_position,
                        json.dumps(argument.to_dict()) if argument else None,
                    ),
                )

            if session.transcript:
                self._save_transcript(cursor, session.id, session.transcript)

            if session.verdict:
                verdict = session.verdict
                cursor.execute(
                    """
                    INSERT INTO verdicts (
                        session_id, judge_id, confidence, criteria, scores, ranking,
                        verdict, reasoning, insights, controversial_points
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        session.id,
                        verdict.judge_id,
                        verdict.confidence,
                        json.dumps(verdict.to_dict()["criteria"]),
                        json.dumps(verdict.scores),
                        json.dumps(verdict.to_dict()["ranking"]),
                        verdict.verdict,
                        verdict.reasoning,
                        json.dumps(verdict.insights),
                        json.dumps(verdict.controversial_points),
                    ),
                )

            conn.commit()
            logger.debug(f"Saved session {session.id} ({session.status.value})")

    def _save_transcript(
        self, cursor: sqlite3.Cursor, session_id: str, transcript: Transcript
    ) -> None:
        meta = transcript.metadata
        cursor.execute(
            """
            INSERT INTO transcripts (
                session_id, start_time, end_time, total_exchanges,
                partial_debate, failure_round, error_message
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
            (
                session_id,
                meta.start_time.isoformat(),
                _iso(meta.end_time),
                meta.total_exchanges,
                int(meta.partial_debate),
                meta.failure_round,
                meta.error_message,
            ),
        )
        for debate_round in transcript.rounds:
            cursor.execute(
                "INSERT INTO rounds (session_id, round_number, round_type) VALUES (?, ?, ?)",
                (session_id, debate_round.round_number, debate_round.round_type.value),
            )
            for sequence, exchange in enumerate(debate_round.exchanges):
                cursor.execute(
                    """
                    INSERT INTO exchanges (
                        id, session_id, round_number, sequence, type, from_debater,
                        to_debater, content, topics, error, question_index, timestamp
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        exchange.id,
                        session_id,
                        debate_round.round_number,
                        sequence,
                        exchange.type.value,
                        exchange.from_debater,
                        exchange.to_debater,
                        exchange.content,
                        json.dumps(exchange.topics),
                        exchange.error,
                        exchange.question_index,
                        exchange.timestamp.isoformat(),
                    ),
                )

    def load_session(self, session_id: str) -> Session | None:
        """Rebuild a session from its latest snapshot."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM sessions WHERE id = ?", (session_id,))
            row = cursor.fetchone()
            if not row:
                return None

            session = Session(
                document_id=row["document_id"],
                question=row["question"],
                num_debaters=row["num_debaters"],
                cross_examination_rounds=row["cross_examination_rounds"],
                id=row["id"],
                status=SessionStatus(row["status"]),
                current_round=row["current_round"],
                question_index=row["question_index"],
                error_detail=row["error_detail"],
                created_at=datetime.fromisoformat(row["created_at"]),
                updated_at=datetime.fromisoformat(row["updated_at"]),
            )
            if row["report"]:
                session.report = DebateReport(**json.loads(row["report"]))

            cursor.execute(
                "SELECT * FROM postures WHERE session_id = ? ORDER BY posture_index",
                (session_id,),
            )
            for posture_row in cursor.fetchall():
                session.postures.append(
                    Posture(
                        debater_id=posture_row["debater_id"],
                        index=posture_row["posture_index"],
                        perspective_template=posture_row["perspective_template"],
                        topics=json.loads(posture_row["topics"]),
                        guiding_questions=json.loads(posture_row["guiding_questions"]),
                        initial_position=posture_row["initial_position"],
                    )
                )
                if posture_row["argument"]:
                    argument = _argument_from_dict(json.loads(posture_row["argument"]))
                    session.arguments[argument.debater_id] = argument
            if session.postures:
                session.topics = list(session.postures[0].topics)

            session.transcript = self._load_transcript(cursor, session_id)
            session.verdict = self._load_verdict(cursor, session_id)
            return session

    def _load_transcript(self, cursor: sqlite3.Cursor, session_id: str) -> Transcript | None:
        cursor.execute("SELECT * FROM transcripts WHERE session_id = ?", (session_id,))
        meta_row = cursor.fetchone()
        if not meta_row:
            return None

        transcript = Transcript(
            metadata=TranscriptMetadata(
                start_time=datetime.fromisoformat(meta_row["start_time"]),
                end_time=_dt(meta_row["end_time"]),
                total_exchanges=meta_row["total_exchanges"],
                partial_debate=bool(meta_row["partial_debate"]),
                failure_round=meta_row["failure_round"],
                error_message=meta_row["error_message"],
            )
        )
        cursor.execute(
            "SELECT * FROM rounds WHERE session_id = ? ORDER BY round_number", (session_id,)
        )
        rounds = {
            r["round_number"]: Round(r["round_number"], RoundType(r["round_type"]))
            for r in cursor.fetchall()
        }
        cursor.execute(
            "SELECT * FROM exchanges WHERE session_id = ? ORDER BY round_number, sequence",
            (session_id,),
        )
        for ex in cursor.fetchall():
            rounds[ex["round_number"]].exchanges.append(
                Exchange(
                    type=ExchangeType(ex["type"]),
                    from_debater=ex["from_debater"],
                    content=ex["content"],
                    to_debater=ex["to_debater"],
                    topics=json.loads(ex["topics"]),
                    error=ex["error"],
                    question_index=ex["question_index"],
                    id=ex["id"],
                    timestamp=datetime.fromisoformat(ex["timestamp"]),
                )
            )
        transcript.rounds = list(rounds.values())
        return transcript

    def _load_verdict(self, cursor: sqlite3.Cursor, session_id: str) -> Verdict | None:
        cursor.execute("SELECT * FROM verdicts WHERE session_id = ?", (session_id,))
        row = cursor.fetchone()
        if not row:
            return None
        return Verdict(
            judge_id=row["judge_id"],
            confidence=row["confidence"],
            scores=json.loads(row["scores"]),
            criteria=[Criterion(**c) for c in json.loads(row["criteria"])],
            verdict=row["verdict"],
            reasoning=row["reasoning"],
            ranking=[RankingEntry(**r) for r in json.loads(row["ranking"])],
            insights=json.loads(row["insights"]),
            controversial_points=json.loads(row["controversial_points"]),
        )

    def list_sessions(
        self, status: SessionStatus | None = None, limit: int = 20, offset: int = 0
    ) -> list[SessionSummary]:
        """List sessions, newest first, optionally filtered by status."""
        query = """
            SELECT s.*, (
                SELECT json_extract(v.ranking, '$[0].debater_id')
                FROM verdicts v WHERE v.session_id = s.id
            ) AS winner
            FROM sessions s
        """
        params: list[Any] = []
        if status is not None:
            query += " WHERE s.status = ?"
            params.append(status.value)
        query += " ORDER BY s.created_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [
                SessionSummary(
                    id=row["id"],
                    document_id=row["document_id"],
                    question=row["question"],
                    question_index=row["question_index"],
                    status=row["status"],
                    current_round=row["current_round"],
                    num_debaters=row["num_debaters"],
                    winner=row["winner"],
                    created_at=row["created_at"],
                    updated_at=row["updated_at"],
                )
                for row in cursor.fetchall()
            ]

    def delete_session(self, session_id: str) -> bool:
        """Delete a session and all of its child rows."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            for table in ("exchanges", "rounds", "transcripts", "postures", "verdicts"):
                cursor.execute(f"DELETE FROM {table} WHERE session_id = ?", (session_id,))
            cursor.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
            deleted = cursor.rowcount > 0
            conn.commit()
            return deleted

    def get_session_count(self) -> int:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM sessions")
            return cursor.fetchone()[0]


def get_database_path() -> Path:
    """Default database location in the working directory."""
    return Path.cwd() / "debates.db"
