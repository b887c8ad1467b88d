"""Shared fixtures for the File Clerk tests"""

from pathlib import Path

import pytest_asyncio

from fileclerk.models.dao.record_store import RecordStore


@pytest_asyncio.fixture
async def store(tmp_path: Path):
    """A fresh, empty store in a temporary directory"""
    async with RecordStore(tmp_path / "records.sqlite3") as record_store:
        yield record_store


@pytest_asyncio.fixture
async def other_store(tmp_path: Path):
    """A second empty store, standing in for another machine"""
    async with RecordStore(tmp_path / "other" / "records.sqlite3") as record_store:
        yield record_store
