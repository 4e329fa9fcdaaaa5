"""
OTP Repository - customer_email_otps table

Author: Vadiler
Date: 2025-11-02
"""
from datetime import datetime
from typing import Optional

from vadiler.domain.customer import EmailOtp
from vadiler.core.database import get_db_connection_dict


def _to_otp(row: Optional[dict]) -> Optional[EmailOtp]:
    if not row:
        return None
    data = dict(row)
    data["id"] = str(data["id"])
    data["attempts"] = data.get("attempts") or 0
    return EmailOtp(**data)


class OtpRepository:
    """Stores hashed one-time codes; plaintext codes never reach the database"""

    def find_by_id(self, otp_id: str) -> Optional[EmailOtp]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT * FROM customer_email_otps WHERE id = %s", (otp_id,))
            return _to_otp(cursor.fetchone())
        finally:
            cursor.close()
            conn.close()

    def find_latest_active(self, email: str, purpose: str) -> Optional[EmailOtp]:
        """Most recent unconsumed code for this email and purpose"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT * FROM customer_email_otps
                WHERE email = %s AND purpose = %s AND consumed_at IS NULL
                ORDER BY created_at DESC
                LIMIT 1
            """, (email, purpose))
            return _to_otp(cursor.fetchone())
        finally:
            cursor.close()
            conn.close()

    def create(self, email: str, purpose: str, code_hash: str,
               expires_at: datetime, sent_at: datetime) -> EmailOtp:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO customer_email_otps
                    (email, purpose, code_hash, attempts, last_sent_at, expires_at)
                VALUES (%s, %s, %s, 0, %s, %s)
                RETURNING *
            """, (email, purpose, code_hash, sent_at, expires_at))
            row = cursor.fetchone()
            conn.commit()
            return _to_otp(row)
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def refresh(self, otp_id: str, code_hash: str, expires_at: datetime,
                sent_at: datetime) -> None:
        """Reuse an unconsumed row for a resent code and reset its attempts"""
        self._execute("""
            UPDATE customer_email_otps
            SET code_hash = %s, attempts = 0, last_sent_at = %s, expires_at = %s
            WHERE id = %s
        """, (code_hash, sent_at, expires_at, otp_id))

    def increment_attempts(self, otp_id: str) -> None:
        self._execute(
            "UPDATE customer_email_otps SET attempts = COALESCE(attempts, 0) + 1 WHERE id = %s",
            (otp_id,)
        )

    def mark_consumed(self, otp_id: str, consumed_at: datetime) -> None:
        self._execute(
            "UPDATE customer_email_otps SET consumed_at = %s WHERE id = %s",
            (consumed_at, otp_id)
        )

    def _execute(self, query: str, params: tuple) -> None:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(query, params)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()
