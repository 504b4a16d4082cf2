from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.csv_upload import CsvTransform, CsvUpload, CsvUploadBatch


class CsvRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_upload(self, upload_id: UUID) -> Optional[CsvUpload]:
        return await self.session.get(CsvUpload, upload_id)

    async def add_upload(self, upload: CsvUpload) -> CsvUpload:
        self.session.add(upload)
        await self.session.flush()
        return upload

    async def add_batch(self, batch: CsvUploadBatch) -> CsvUploadBatch:
        self.session.add(batch)
        await self.session.flush()
        return batch

    async def list_batches(self, upload_id: UUID) -> List[CsvUploadBatch]:
        stmt = (
            select(CsvUploadBatch)
            .where(CsvUploadBatch.upload_id == upload_id)
            .order_by(CsvUploadBatch.batch_index)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def get_transform(self, transform_id: UUID) -> Optional[CsvTransform]:
        return await self.session.get(CsvTransform, transform_id)

    async def list_transforms(self, upload_id: UUID) -> List[CsvTransform]:
        stmt = (
            select(CsvTransform)
            .where(CsvTransform.upload_id == upload_id)
            .order_by(CsvTransform.started_at.desc())
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def add_transform(self, transform: CsvTransform) -> CsvTransform:
        self.session.add(transform)
        await self.session.flush()
        return transform

    async def save(self, obj):
        await self.session.flush()
        return obj
