"""Storage backends for published calendar artifacts."""
import logging
import os
import shutil
from typing import Optional

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class FileArtifactStore:
    """Artifacts kept on the local filesystem."""

    def __init__(self, root: str = ''):
        """
        Initialize the store.

        Args:
            root: Directory relative keys are resolved against
        """
        self.root = root

    def _path(self, key: str) -> str:
        return os.path.join(self.root, key) if self.root else key

    def write_text(self, key: str, text: str) -> None:
        path = self._path(key)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(text)
        logger.debug(f"Wrote {len(text)} characters to {path}")

    def read_text(self, key: str) -> str:
        with open(self._path(key), 'r', encoding='utf-8') as f:
            return f.read()

    def exists(self, key: str) -> bool:
        return os.path.isfile(self._path(key))

    def copy(self, source_key: str, dest_key: str) -> None:
        dest = self._path(dest_key)
        directory = os.path.dirname(dest)
        if directory:
            os.makedirs(directory, exist_ok=True)
        shutil.copyfile(self._path(source_key), dest)
        logger.info(f"Copied {source_key} to {dest_key}")


class S3ArtifactStore:
    """Artifacts kept as objects in an S3 bucket."""

    CONTENT_TYPES = {
        '.ics': 'text/calendar; charset=utf-8',
        '.json': 'application/json',
    }

    def __init__(self, bucket: str, prefix: str = '', region_name: Optional[str] = None):
        """
        Initialize S3 client and bucket reference.

        Args:
            bucket: Name of the S3 bucket
            prefix: Key prefix prepended to every artifact key
            region_name: AWS region (default: from the environment)
        """
        self.bucket = bucket
        self.prefix = prefix
        self.s3 = boto3.client('s3', region_name=region_name)
        logger.info(f"Initialized S3ArtifactStore for bucket: {bucket}")

    def _key(self, key: str) -> str:
        return f"{self.prefix.rstrip('/')}/{key}" if self.prefix else key

    def write_text(self, key: str, text: str) -> None:
        extension = os.path.splitext(key)[1].lower()
        self.s3.put_object(
            Bucket=self.bucket,
            Key=self._key(key),
            Body=text.encode('utf-8'),
            ContentType=self.CONTENT_TYPES.get(extension, 'text/plain; charset=utf-8')
        )
        logger.debug(f"Uploaded s3://{self.bucket}/{self._key(key)}")

    def read_text(self, key: str) -> str:
        response = self.s3.get_object(Bucket=self.bucket, Key=self._key(key))
        return response['Body'].read().decode('utf-8')

    def exists(self, key: str) -> bool:
        """
        Check whether an artifact exists.

        Raises:
            ClientError: For any error other than a missing object
        """
        try:
            self.s3.head_object(Bucket=self.bucket, Key=self._key(key))
            return True
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('404', 'NoSuchKey', 'NotFound'):
                return False
            logger.error(f"Error checking s3://{self.bucket}/{self._key(key)}: {e}")
            raise

    def copy(self, source_key: str, dest_key: str) -> None:
        self.s3.copy_object(
            Bucket=self.bucket,
            Key=self._key(dest_key),
            CopySource={'Bucket': self.bucket, 'Key': self._key(source_key)}
        )
        logger.info(f"Copied {source_key} to {dest_key} in bucket {self.bucket}")


def create_artifact_store(bucket: Optional[str] = None, prefix: str = ''):
    """Return an S3 store when a bucket is configured, else a filesystem store."""
    if bucket:
        return S3ArtifactStore(bucket, prefix=prefix)
    return FileArtifactStore()
