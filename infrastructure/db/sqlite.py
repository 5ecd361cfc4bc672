import sqlite3
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List, Dict, Any
from pathlib import Path
import json

from core.entities.user import User, ROLE_USER
from core.entities.subscription import Subscription, STATUS_ACTIVE, STATUS_EXPIRED
from core.repositories.user_repository import UserRepository
from core.repositories.subscription_repository import SubscriptionRepository, StoreError


def to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def connect(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str) -> None:
    if db_path != ":memory:" and not db_path.startswith("file:"):
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, check_same_thread=False)
    try:
        cur = conn.cursor()

        cur.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'user',
            metadata TEXT,
            created_at TEXT NOT NULL
        );
        """)

        cur.execute("""
        CREATE TABLE IF NOT EXISTS revoked_tokens (
            jti TEXT PRIMARY KEY,
            expires_at TEXT NOT NULL
        );
        """)

        # user_id is not a foreign key: users may live in an external identity provider
        cur.execute("""
        CREATE TABLE IF NOT EXISTS subscriptions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            plan_type TEXT NOT NULL CHECK (plan_type IN ('monthly', 'yearly')),
            status TEXT NOT NULL CHECK (status IN ('active', 'inactive', 'expired', 'pending')),
            payment_date TEXT,
            expiry_date TEXT NOT NULL,
            amount TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        """)
        cur.execute("CREATE INDEX IF NOT EXISTS idx_subscriptions_user_id ON subscriptions(user_id);")
        conn.commit()
    finally:
        conn.close()


class SQLiteUserRepository(UserRepository):
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    def _row_to_user(self, row: sqlite3.Row) -> User:
        meta = {}
        if row["metadata"]:
            try:
                meta = json.loads(row["metadata"])
            except ValueError:
                meta = {"raw": row["metadata"]}
        return User(
            id=row["id"],
            email=row["email"],
            role=row["role"],
            metadata=meta,
            created_at=row["created_at"],
        )

    def create_user(self, email: str, password_hash: str, role: str = ROLE_USER,
                    metadata: Optional[Dict[str, Any]] = None) -> User:
        user_id = str(uuid.uuid4())
        created_at = to_iso(datetime.now(timezone.utc))
        meta = dict(metadata or {})
        cur = self.conn.cursor()
        try:
            cur.execute(
                "INSERT INTO users (id, email, password_hash, role, metadata, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                (user_id, email, password_hash, role, json.dumps(meta, ensure_ascii=False), created_at),
            )
        except sqlite3.IntegrityError:
            raise ValueError("User with this email already exists")
        self.conn.commit()
        return User(id=user_id, email=email, role=role, metadata=meta, created_at=created_at)

    def get_by_email(self, email: str) -> Optional[User]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM users WHERE email = ?", (email,))
        row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def get_by_id(self, user_id: str) -> Optional[User]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM users WHERE id = ?", (user_id,))
        row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def get_password_hash(self, user_id: str) -> Optional[str]:
        cur = self.conn.cursor()
        cur.execute("SELECT password_hash FROM users WHERE id = ?", (user_id,))
        row = cur.fetchone()
        return row["password_hash"] if row else None

    def update_metadata(self, user_id: str, metadata: Dict[str, Any]) -> User:
        user = self.get_by_id(user_id)
        if user is None:
            raise ValueError("User not found")
        merged = {**user.metadata, **metadata}
        cur = self.conn.cursor()
        cur.execute(
            "UPDATE users SET metadata = ? WHERE id = ?",
            (json.dumps(merged, ensure_ascii=False), user_id),
        )
        self.conn.commit()
        user.metadata = merged
        return user

    def revoke_token(self, jti: str, expires_at: datetime) -> None:
        cur = self.conn.cursor()
        cur.execute(
            "INSERT OR IGNORE INTO revoked_tokens (jti, expires_at) VALUES (?, ?)",
            (jti, to_iso(expires_at)),
        )
        # revoked tokens past their own expiry can never be presented again
        cur.execute("DELETE FROM revoked_tokens WHERE expires_at < ?", (to_iso(datetime.now(timezone.utc)),))
        self.conn.commit()

    def is_token_revoked(self, jti: str) -> bool:
        cur = self.conn.cursor()
        cur.execute("SELECT 1 FROM revoked_tokens WHERE jti = ?", (jti,))
        return cur.fetchone() is not None


class SQLiteSubscriptionRepository(SubscriptionRepository):
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    def _row_to_subscription(self, row: sqlite3.Row) -> Subscription:
        return Subscription(
            id=row["id"],
            user_id=row["user_id"],
            plan_type=row["plan_type"],
            status=row["status"],
            payment_date=from_iso(row["payment_date"]),
            expiry_date=from_iso(row["expiry_date"]),
            amount=Decimal(row["amount"]),
            created_at=from_iso(row["created_at"]),
            updated_at=from_iso(row["updated_at"]),
        )

    def get_by_user_id(self, user_id: str) -> Optional[Subscription]:
        try:
            cur = self.conn.cursor()
            cur.execute(
                "SELECT * FROM subscriptions WHERE user_id = ? ORDER BY created_at DESC, id DESC LIMIT 1",
                (user_id,),
            )
            row = cur.fetchone()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        return self._row_to_subscription(row) if row else None

    def create(self, user_id: str, plan_type: str, status: str, payment_date: Optional[datetime],
               expiry_date: datetime, amount: Decimal, now: datetime) -> Subscription:
        stamp = to_iso(now)
        try:
            cur = self.conn.cursor()
            cur.execute(
                "INSERT INTO subscriptions (user_id, plan_type, status, payment_date, expiry_date, amount, "
                "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    user_id, plan_type, status,
                    to_iso(payment_date) if payment_date else None,
                    to_iso(expiry_date), str(amount), stamp, stamp,
                ),
            )
            self.conn.commit()
            cur.execute("SELECT * FROM subscriptions WHERE id = ?", (cur.lastrowid,))
            row = cur.fetchone()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        return self._row_to_subscription(row)

    def update_status(self, user_id: str, status: str, now: datetime) -> int:
        try:
            cur = self.conn.cursor()
            cur.execute(
                "UPDATE subscriptions SET status = ?, updated_at = ? WHERE user_id = ?",
                (status, to_iso(now), user_id),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        return cur.rowcount

    def renew(self, user_id: str, plan_type: str, payment_date: datetime,
              expiry_date: datetime, amount: Decimal, now: datetime) -> int:
        try:
            cur = self.conn.cursor()
            cur.execute(
                "UPDATE subscriptions SET status = ?, plan_type = ?, payment_date = ?, expiry_date = ?, "
                "amount = ?, updated_at = ? WHERE user_id = ?",
                (
                    STATUS_ACTIVE, plan_type, to_iso(payment_date), to_iso(expiry_date),
                    str(amount), to_iso(now), user_id,
                ),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        return cur.rowcount

    def list_all(self) -> List[Subscription]:
        try:
            cur = self.conn.cursor()
            cur.execute("SELECT * FROM subscriptions ORDER BY created_at DESC, id DESC")
            rows = cur.fetchall()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        return [self._row_to_subscription(r) for r in rows]

    def expire_overdue(self, now: datetime) -> int:
        stamp = to_iso(now)
        try:
            cur = self.conn.cursor()
            cur.execute(
                "UPDATE subscriptions SET status = ?, updated_at = ? WHERE status = ? AND expiry_date < ?",
                (STATUS_EXPIRED, stamp, STATUS_ACTIVE, stamp),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        return cur.rowcount
