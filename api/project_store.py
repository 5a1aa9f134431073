"""The remote document store of the projects (PostgreSQL) and the
photo attachment store (S3 compatible object storage)"""

import asyncio
import json
import logging
import os
import uuid
from typing import Optional

import asyncpg
import boto3
import botocore.exceptions

from MarineSpatialPlanning import IAttachmentStore, IPersistenceBackend, PersistenceError

from . import sockets

KEY_ID = os.getenv("S3_KEYID")
APP_KEY = os.getenv("S3_APPKEY")
ENDPOINT = os.getenv("S3_ENDPOINT")
BUCKET = os.getenv("S3_BUCKET")

_logger = logging.getLogger('project_store')


class S3AttachmentStore(IAttachmentStore):
    """An attachment store implementation with boto3. The photos of a shape
    are kept under `attachments/<project id>/<shape id>/`."""

    URL_EXPIRY = 3600

    def __init__(self):
        self.s3 = boto3.client(
            "s3",
            endpoint_url=ENDPOINT,
            aws_access_key_id=KEY_ID,
            aws_secret_access_key=APP_KEY,
        )

    @staticmethod
    def _prefix(project_id: str, shape_id: str) -> str:
        return f"attachments/{project_id}/{shape_id}/"

    def list_attachments(self, project_id: str, shape_id: str) -> list[dict]:
        """list the photos of a shape with temporary download urls"""
        attachments = []
        paginator = self.s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=BUCKET, Prefix=self._prefix(project_id, shape_id)):
            for obj in page.get("Contents", []):
                attachments.append({
                    "name": obj["Key"].rsplit("/", 1)[-1],
                    "key": obj["Key"],
                    "size": obj["Size"],
                    "url": self.s3.generate_presigned_url(
                        "get_object",
                        Params={"Bucket": BUCKET, "Key": obj["Key"]},
                        ExpiresIn=self.URL_EXPIRY),
                })
        return attachments

    def upload_attachment(self, project_id: str, shape_id: str,
                          filename: str, content: bytes) -> dict:
        """photo upload"""
        key = self._prefix(project_id, shape_id) + os.path.basename(filename)
        self.s3.put_object(Bucket=BUCKET, Key=key, Body=content)
        return {
            "name": os.path.basename(filename),
            "key": key,
            "size": len(content),
            "url": self.s3.generate_presigned_url(
                "get_object", Params={"Bucket": BUCKET, "Key": key}, ExpiresIn=self.URL_EXPIRY),
        }


class PostgresProjectStore(IPersistenceBackend):
    """
    The remote backend: project documents of a user in a JSONB column.
    A user only sees and overwrites their own projects.
    """

    def __init__(self, pool: asyncpg.Pool, owner: str,
                 attachments: Optional[IAttachmentStore] = None):
        self.pool = pool
        self.owner = owner
        self.attachments = attachments

    @property
    def is_remote(self) -> bool:
        return True

    async def save_project(self, document: dict) -> str:
        document = dict(document)
        document['id'] = document.get('id') or str(uuid.uuid4())
        document['isCloudSynced'] = True
        try:
            async with self.pool.acquire() as conn:
                saved_id = await conn.fetchval(
                    f"""
                    INSERT INTO {sockets.TABLE_NAME} (id, owner, name, content)
                    VALUES ($1, $2, $3, $4::jsonb)
                    ON CONFLICT (id) DO UPDATE
                        SET name = EXCLUDED.name,
                            content = EXCLUDED.content,
                            updated_at = NOW()
                        WHERE {sockets.TABLE_NAME}.owner = EXCLUDED.owner
                    RETURNING id
                    """,
                    document['id'], self.owner, document.get('name'), json.dumps(document))
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceError(f"Saving to the cloud failed: {e}") from e
        if saved_id is None:
            raise PersistenceError(f"Project {document['id']} belongs to another user")
        return saved_id

    async def load_project(self, project_id: str) -> dict:
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(f"""SELECT content
                                              FROM {sockets.TABLE_NAME}
                                              WHERE id=$1 AND owner=$2""",
                                          project_id, self.owner)
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceError(f"Loading from the cloud failed: {e}") from e
        if row is None:
            raise PersistenceError(f"No cloud project with id {project_id}")
        return json.loads(row['content'])

    async def list_projects(self) -> list[dict]:
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(f"""SELECT content
                                            FROM {sockets.TABLE_NAME}
                                            WHERE owner=$1
                                            ORDER BY updated_at DESC""", self.owner)
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceError(f"Listing the cloud projects failed: {e}") from e
        return [json.loads(row['content']) for row in rows]

    async def get_attachments(self, project_id: str, shape_id: str) -> list[dict]:
        if self.attachments is None:
            return []
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self.attachments.list_attachments,
                                              project_id, shape_id)
        except (botocore.exceptions.BotoCoreError, botocore.exceptions.ClientError) as e:
            raise PersistenceError(f"Listing the attachments of {shape_id} failed: {e}") from e

    async def upload_attachment(self, project_id: str, shape_id: str,
                                filename: str, content: bytes) -> dict:
        """Store a photo of a shape of a saved project"""
        if self.attachments is None:
            raise PersistenceError("No attachment store is configured")
        loop = asyncio.get_running_loop()
        try:
            attachment = await loop.run_in_executor(None, self.attachments.upload_attachment,
                                                    project_id, shape_id, filename, content)
        except (botocore.exceptions.BotoCoreError, botocore.exceptions.ClientError) as e:
            raise PersistenceError(f"Uploading {filename} failed: {e}") from e
        _logger.info("attachment %s uploaded to %s/%s", filename, project_id, shape_id)
        return attachment
