"""SQLAlchemy models for the request and document tables.

Both tables are owned by the intake and doctor-review workflows; this
package reads ``requests`` and only ever inserts into ``documents``.
"""

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, String, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medidoc.core.database import Base


class MedicalRequest(Base):
    """Patient request for a medical document."""

    __tablename__ = "requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    patient_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    type: Mapped[str | None] = mapped_column(String, nullable=True)
    subtype: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="pending"
    )  # pending | needs_follow_up | approved | declined | cancelled
    payment_status: Mapped[str] = mapped_column(
        String, nullable=False, default="pending"
    )  # pending | paid | failed | refunded
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )

    documents: Mapped[list["GeneratedDocument"]] = relationship(
        "GeneratedDocument", back_populates="request"
    )


class GeneratedDocument(Base):
    """Generated PDF issued for a request. Rows are never updated."""

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("requests.id"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String, nullable=False)  # med_cert | referral
    subtype: Mapped[str] = mapped_column(String, nullable=False)
    pdf_url: Mapped[str] = mapped_column(String, nullable=False)
    verification_code: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", nullable=True
    )

    request: Mapped["MedicalRequest"] = relationship(
        "MedicalRequest", back_populates="documents"
    )
