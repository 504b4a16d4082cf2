import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class CsvUpload(Base):
    __tablename__ = "csv_uploads"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    upload_type = Column(Text, nullable=False)  # 'inventory' | 'sales'
    filename = Column(String, nullable=False)
    file_size_bytes = Column(BigInteger, nullable=False, default=0)

    # 'uploaded' | 'validated' | 'failed' | 'transformed'
    status = Column(Text, nullable=False, default="uploaded", index=True)
    rows_total = Column(Integer, nullable=False, default=0)
    rows_valid = Column(Integer, nullable=False, default=0)
    rows_invalid = Column(Integer, nullable=False, default=0)
    validation_errors = Column(JSONB, nullable=False, default=dict)
    upload_metadata = Column("metadata", JSONB, nullable=False, default=dict)

    uploaded_by = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    batches = relationship("CsvUploadBatch", back_populates="upload", cascade="all, delete-orphan")


class CsvUploadBatch(Base):
    __tablename__ = "csv_upload_batches"
    __table_args__ = (
        UniqueConstraint("upload_id", "batch_index", name="ux_csv_upload_batches_upload_index"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    upload_id = Column(UUID(as_uuid=True), ForeignKey("csv_uploads.id", ondelete="CASCADE"), nullable=False, index=True)
    batch_index = Column(Integer, nullable=False)

    # [{"row": 2, "data": {...}}] validated rows; errors: [{"row", "field", "error"}]
    rows = Column(JSONB, nullable=False, default=list)
    errors = Column(JSONB, nullable=False, default=list)
    rows_valid = Column(Integer, nullable=False, default=0)
    rows_invalid = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    upload = relationship("CsvUpload", back_populates="batches")


class CsvTransform(Base):
    """One record per transform execution; re-running creates a new row."""

    __tablename__ = "csv_transforms"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    upload_id = Column(UUID(as_uuid=True), ForeignKey("csv_uploads.id", ondelete="CASCADE"), nullable=False, index=True)
    restaurant_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    transform_type = Column(Text, nullable=False)  # 'inventory' | 'sales'

    # 'processing' | 'completed' | 'failed' | 'cancelled'
    status = Column(Text, nullable=False, default="processing")
    dry_run = Column(Boolean, nullable=False, default=False)

    processed_count = Column(Integer, nullable=False, default=0)
    created_count = Column(Integer, nullable=False, default=0)
    updated_count = Column(Integer, nullable=False, default=0)
    skipped_count = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)
    error_rate = Column(Numeric(7, 4), nullable=False, default=0)

    summary = Column(JSONB, nullable=False, default=dict)
    errors = Column(JSONB, nullable=False, default=list)

    created_by = Column(UUID(as_uuid=True), nullable=True)
    started_at = Column(DateTime, nullable=False, server_default=func.now())
    completed_at = Column(DateTime, nullable=True)
