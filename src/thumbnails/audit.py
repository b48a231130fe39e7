import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from .models import ApprovalDecision, AuditRecord, ModerationResult


def adapt_datetime(dt: datetime) -> str:
    return dt.isoformat()


def convert_datetime(val: bytes) -> datetime:
    return datetime.fromisoformat(val.decode())


sqlite3.register_adapter(datetime, adapt_datetime)
sqlite3.register_converter("TIMESTAMP", convert_datetime)


class AuditStore:
    def __init__(self, db_path: Path):
        """Initialize SQLite, create table if not exists."""
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, detect_types=sqlite3.PARSE_DECLTYPES)

    def _init_db(self):
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS moderation_audit (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    image_url TEXT NOT NULL,
                    classification TEXT NOT NULL,
                    text_detection TEXT NOT NULL,
                    face_detection TEXT NOT NULL,
                    approved INTEGER NOT NULL,
                    reasons TEXT NOT NULL,
                    evaluated_at TIMESTAMP NOT NULL
                );
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_moderation_audit_url ON moderation_audit (image_url)"
            )

    def record(self, decision: ApprovalDecision) -> int:
        """Save one run's moderation result and decision, returns row id."""
        result = decision.result
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO moderation_audit
                (image_url, classification, text_detection, face_detection, approved, reasons, evaluated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    result.image_url,
                    result.classification.model_dump_json(by_alias=True),
                    result.text_detection.model_dump_json(by_alias=True),
                    result.face_detection.model_dump_json(by_alias=True),
                    int(decision.approved),
                    json.dumps(decision.reasons),
                    datetime.now(timezone.utc),
                )
            )
            return cursor.lastrowid

    def get_by_url(self, image_url: str) -> list[AuditRecord]:
        """All records for an image, oldest first."""
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                "SELECT * FROM moderation_audit WHERE image_url = ? ORDER BY id",
                (image_url.strip(),)
            )
            return [self._to_record(row) for row in cursor.fetchall()]

    def latest(self, image_url: str) -> AuditRecord | None:
        records = self.get_by_url(image_url)
        return records[-1] if records else None

    def count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM moderation_audit").fetchone()[0]

    def export_json(self, image_url: str) -> str:
        """Records of one image as an indented JSON array."""
        records = [r.result.model_dump(by_alias=True) for r in self.get_by_url(image_url)]
        return json.dumps(records, indent=2)

    @staticmethod
    def _to_record(row: sqlite3.Row) -> AuditRecord:
        result = ModerationResult.model_validate({
            "imageUrl": row["image_url"],
            "classification": json.loads(row["classification"]),
            "textDetection": json.loads(row["text_detection"]),
            "faceDetection": json.loads(row["face_detection"]),
        })
        return AuditRecord(
            id=row["id"],
            image_url=row["image_url"],
            result=result,
            approved=bool(row["approved"]),
            reasons=json.loads(row["reasons"]),
            evaluated_at=row["evaluated_at"],
        )
