from __future__ import annotations

import io
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, List, Optional

import pandas as pd


class StorageAdapter(ABC):
    """
    Abstraction over the underlying storage layer (local FS, S3).

    Implementations map logical keys such as
    "raw/jhu_covid/snapshot_date=20230310/time_series_covid19_confirmed_global.csv"
    to physical locations.
    """

    @abstractmethod
    def write_raw(self, key: str, content: bytes) -> str:
        """
        Persist arbitrary bytes at the given key.

        Returns the fully-qualified location string (for tracing/logging),
        for example:
        - Local: "data/raw/nypd_shootings/.../nypd_shooting_incidents.csv"
        - S3:    "s3://my-bucket/raw/nypd_shootings/.../nypd_shooting_incidents.csv"
        """

    @abstractmethod
    def read_raw(self, key: str) -> bytes:
        """Read raw bytes previously stored at the given key."""

    @abstractmethod
    def write_parquet(self, df: pd.DataFrame, key: str) -> str:
        """Persist a DataFrame as a Parquet file and return its location."""

    @abstractmethod
    def read_parquet(self, key: str) -> pd.DataFrame:
        """Load a Parquet file stored at the given key into a DataFrame."""

    @abstractmethod
    def list_keys(self, prefix: str) -> List[str]:
        """List logical keys under the given prefix."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Whether an object is stored at the given key."""

    def read_csv(self, key: str, **kwargs: Any) -> pd.DataFrame:
        """Convenience wrapper: parse the bytes stored at `key` as CSV."""
        return pd.read_csv(io.BytesIO(self.read_raw(key)), **kwargs)


class LocalStorageAdapter(StorageAdapter):
    """
    Local filesystem-backed storage adapter.

    Keys are treated as relative paths under a root directory.
    Example:
        root_dir = Path("data")
        key      = "raw/nypd_shootings/file.csv"
        -> actual path: ./data/raw/nypd_shootings/file.csv
    """

    def __init__(self, root_dir: Path | str = ".") -> None:
        self.root_dir = Path(root_dir)

    def _resolve(self, key: str) -> Path:
        path = self.root_dir / key
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def write_raw(self, key: str, content: bytes) -> str:
        path = self._resolve(key)
        with path.open("wb") as f:
            f.write(content)
        return str(path)

    def read_raw(self, key: str) -> bytes:
        path = self.root_dir / key
        with path.open("rb") as f:
            return f.read()

    def write_parquet(self, df: pd.DataFrame, key: str) -> str:
        path = self._resolve(key)
        df.to_parquet(path, index=False)
        return str(path)

    def read_parquet(self, key: str) -> pd.DataFrame:
        return pd.read_parquet(self.root_dir / key)

    def list_keys(self, prefix: str) -> List[str]:
        base = self.root_dir / prefix
        if not base.exists():
            return []

        keys: List[str] = []
        for path in base.rglob("*"):
            if path.is_file():
                rel = path.relative_to(self.root_dir)
                keys.append(str(rel).replace(os.sep, "/"))
        return sorted(keys)

    def exists(self, key: str) -> bool:
        return (self.root_dir / key).is_file()


class S3StorageAdapter(StorageAdapter):
    """
    S3-backed storage adapter using boto3.

    Keys map directly to S3 object keys under the configured bucket/prefix.
    """

    def __init__(
        self,
        bucket: str,
        *,
        base_prefix: Optional[str] = None,
        boto3_client: Optional[Any] = None,
    ) -> None:
        if boto3_client is None:
            import boto3  # lazy import to keep local-only runs lighter

            boto3_client = boto3.client("s3")

        self.bucket = bucket
        self.base_prefix = (base_prefix or "").strip("/")
        self._s3 = boto3_client

    def _full_key(self, key: str) -> str:
        key = key.lstrip("/")
        if self.base_prefix:
            return f"{self.base_prefix}/{key}"
        return key

    def _location(self, full_key: str) -> str:
        return f"s3://{self.bucket}/{full_key}"

    def write_raw(self, key: str, content: bytes) -> str:
        full_key = self._full_key(key)
        self._s3.put_object(Bucket=self.bucket, Key=full_key, Body=content)
        return self._location(full_key)

    def read_raw(self, key: str) -> bytes:
        resp = self._s3.get_object(Bucket=self.bucket, Key=self._full_key(key))
        return resp["Body"].read()

    def write_parquet(self, df: pd.DataFrame, key: str) -> str:
        buffer = io.BytesIO()
        df.to_parquet(buffer, index=False)
        return self.write_raw(key, buffer.getvalue())

    def read_parquet(self, key: str) -> pd.DataFrame:
        return pd.read_parquet(io.BytesIO(self.read_raw(key)))

    def list_keys(self, prefix: str) -> List[str]:
        full_prefix = self._full_key(prefix).rstrip("/") + "/"
        paginator = self._s3.get_paginator("list_objects_v2")
        keys: List[str] = []
        for page in paginator.paginate(Bucket=self.bucket, Prefix=full_prefix):
            contents: Iterable[dict] = page.get("Contents") or []
            for obj in contents:
                key = obj["Key"]
                # remove base_prefix so we always return logical keys
                if self.base_prefix and key.startswith(self.base_prefix + "/"):
                    key = key[len(self.base_prefix) + 1 :]
                keys.append(key)
        return sorted(keys)

    def exists(self, key: str) -> bool:
        from botocore.exceptions import ClientError

        try:
            self._s3.head_object(Bucket=self.bucket, Key=self._full_key(key))
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in {"404", "NoSuchKey", "NotFound"}:
                return False
            raise
        return True
