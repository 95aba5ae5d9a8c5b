# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Tests for Gerrit service layer.

This module tests change listing, project filtering, and the concurrent
file fetching and merging done by GerritChangeService.
"""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from gerritlabel.gerrit.client import GerritDecodeError, GerritRestError
from gerritlabel.gerrit.models import GerritChange, GerritChangeWithFiles
from gerritlabel.gerrit.service import GerritChangeService, filter_by_project

ENDPOINT = "https://gerrit.example.org/changes/"


def files_url(change_id: str) -> str:
    return f"{ENDPOINT}{change_id}/revisions/current/files/"


@pytest.fixture
def sample_changes_data():
    """Sample list-changes response."""
    return [
        {"id": "proj-a~main~I1", "project": "proj-a", "subject": "First"},
        {"id": "proj-b~main~I2", "project": "proj-b", "subject": "Second"},
        {"id": "proj-a~main~I3", "project": "proj-a", "subject": "Third"},
    ]


@pytest.fixture
def mock_client():
    """Create a mock Gerrit REST client."""
    client = MagicMock()
    client.get_json = AsyncMock()
    return client


def route(responses):
    """Build a get_json side effect that answers by URL."""

    async def get_json(url, params=None):
        value = responses[url]
        if isinstance(value, BaseException):
            raise value
        if callable(value):
            return await value()
        return value

    return get_json


class TestFilterByProject:
    """Tests for the project filter."""

    def _changes(self, data):
        return [GerritChange.model_validate(item) for item in data]

    def test_keeps_allowed_projects_in_order(self, sample_changes_data):
        """Test that only allowed projects remain, in original order."""
        changes = self._changes(sample_changes_data)

        result = filter_by_project(changes, ["proj-a"])

        assert [c.id for c in result] == ["proj-a~main~I1", "proj-a~main~I3"]

    def test_is_idempotent(self, sample_changes_data):
        """Test that reapplying the filter changes nothing."""
        changes = self._changes(sample_changes_data)
        projects = {"proj-a", "proj-b"}

        once = filter_by_project(changes, projects)

        assert filter_by_project(once, projects) == once
        assert once == changes

    def test_no_allowed_projects(self, sample_changes_data):
        """Test that an empty project set removes everything."""
        assert filter_by_project(self._changes(sample_changes_data), []) == []

    def test_accepts_dict_keys(self, sample_changes_data):
        """Test filtering with the keys of a label map."""
        label_map = {"proj-b": {}}
        result = filter_by_project(self._changes(sample_changes_data), label_map.keys())
        assert [c.project for c in result] == ["proj-b"]


class TestListChanges:
    """Tests for listing changes."""

    @pytest.mark.asyncio
    async def test_list_changes_without_query(self, mock_client, sample_changes_data):
        """Test listing with the bare endpoint."""
        mock_client.get_json.return_value = sample_changes_data
        service = GerritChangeService(mock_client, ENDPOINT)

        changes = await service.list_changes()

        mock_client.get_json.assert_awaited_once_with(ENDPOINT)
        assert [c.id for c in changes] == [d["id"] for d in sample_changes_data]

    @pytest.mark.asyncio
    async def test_list_changes_with_query(self, mock_client):
        """Test that the query is added to the URL."""
        mock_client.get_json.return_value = []
        service = GerritChangeService(mock_client, ENDPOINT)

        await service.list_changes("status:open")

        mock_client.get_json.assert_awaited_once_with(f"{ENDPOINT}?q=status%3Aopen")

    @pytest.mark.asyncio
    async def test_non_list_payload_raises(self, mock_client):
        """Test that a non-list response is a decode error."""
        mock_client.get_json.return_value = {"id": "x"}
        service = GerritChangeService(mock_client, ENDPOINT)

        with pytest.raises(GerritDecodeError, match="Expected a list"):
            await service.list_changes()

    @pytest.mark.asyncio
    async def test_malformed_record_raises(self, mock_client):
        """Test that a record without project is a decode error."""
        mock_client.get_json.return_value = [{"id": "x"}]
        service = GerritChangeService(mock_client, ENDPOINT)

        with pytest.raises(GerritDecodeError, match="Malformed change record"):
            await service.list_changes()

    @pytest.mark.asyncio
    async def test_truncated_result_logs_warning(self, mock_client, caplog):
        """Test that the more-changes marker is reported."""
        mock_client.get_json.return_value = [
            {"id": "a", "project": "p"},
            {"id": "b", "project": "p", "_more_changes": True},
        ]
        service = GerritChangeService(mock_client, ENDPOINT)

        with caplog.at_level(logging.WARNING, logger="gerritlabel.gerrit.service"):
            changes = await service.list_changes()

        assert len(changes) == 2
        assert "more are available" in caplog.text


class TestListFiles:
    """Tests for listing files of a change."""

    @pytest.mark.asyncio
    async def test_list_files_current_revision(self, mock_client):
        """Test the default revision URL."""
        mock_client.get_json.return_value = {"a.py": {}}
        service = GerritChangeService(mock_client, ENDPOINT)

        files = await service.list_files("proj~main~I1")

        mock_client.get_json.assert_awaited_once_with(files_url("proj~main~I1"))
        assert files == {"a.py": {}}

    @pytest.mark.asyncio
    async def test_list_files_explicit_revision(self, mock_client):
        """Test requesting a specific revision."""
        mock_client.get_json.return_value = {}
        service = GerritChangeService(mock_client, ENDPOINT)

        await service.list_files("42", "abc123")

        mock_client.get_json.assert_awaited_once_with(
            f"{ENDPOINT}42/revisions/abc123/files/"
        )

    @pytest.mark.asyncio
    async def test_non_object_payload_raises(self, mock_client):
        """Test that a non-object file list is a decode error."""
        mock_client.get_json.return_value = ["a.py"]
        service = GerritChangeService(mock_client, ENDPOINT)

        with pytest.raises(GerritDecodeError):
            await service.list_files("42")


class TestFetchChangesWithFiles:
    """Tests for the concurrent aggregation."""

    @pytest.mark.asyncio
    async def test_merges_files_in_change_order(self, mock_client, sample_changes_data):
        """Test that results follow change order regardless of completion."""

        async def slow_first():
            await asyncio.sleep(0.05)
            return {"first.py": {}}

        mock_client.get_json.side_effect = route(
            {
                ENDPOINT: sample_changes_data,
                files_url("proj-a~main~I1"): slow_first,
                files_url("proj-a~main~I3"): {"third.txt": {}},
            }
        )
        service = GerritChangeService(mock_client, ENDPOINT)

        result = await service.fetch_changes_with_files(["proj-a"])

        assert list(result) == ["proj-a~main~I1", "proj-a~main~I3"]
        assert all(isinstance(c, GerritChangeWithFiles) for c in result.values())
        assert result["proj-a~main~I1"].files == {"first.py": {}}
        assert result["proj-a~main~I3"].files == {"third.txt": {}}
        assert result["proj-a~main~I1"].subject == "First"

    @pytest.mark.asyncio
    async def test_filtered_changes_are_not_fetched(
        self, mock_client, sample_changes_data
    ):
        """Test that no file request is made for other projects."""
        mock_client.get_json.side_effect = route(
            {
                ENDPOINT: sample_changes_data,
                files_url("proj-b~main~I2"): {"b.py": {}},
            }
        )
        service = GerritChangeService(mock_client, ENDPOINT)

        result = await service.fetch_changes_with_files(["proj-b"])

        assert list(result) == ["proj-b~main~I2"]
        assert mock_client.get_json.await_count == 2

    @pytest.mark.asyncio
    async def test_no_surviving_changes(self, mock_client, sample_changes_data):
        """Test that an empty filter result makes no file requests."""
        mock_client.get_json.return_value = sample_changes_data
        service = GerritChangeService(mock_client, ENDPOINT)

        assert await service.fetch_changes_with_files(["proj-z"]) == {}
        assert mock_client.get_json.await_count == 1

    @pytest.mark.asyncio
    async def test_file_requests_run_concurrently(self, mock_client):
        """Test that file requests overlap instead of running in sequence."""
        changes = [{"id": f"c{i}", "project": "p"} for i in range(5)]
        in_flight = 0
        peak = 0

        async def tracked():
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.02)
            in_flight -= 1
            return {}

        responses = {ENDPOINT: changes}
        responses.update({files_url(c["id"]): tracked for c in changes})
        mock_client.get_json.side_effect = route(responses)
        service = GerritChangeService(mock_client, ENDPOINT)

        result = await service.fetch_changes_with_files(["p"])

        assert len(result) == 5
        assert peak == 5

    @pytest.mark.asyncio
    async def test_max_concurrency_limits_requests(self, mock_client):
        """Test that the semaphore caps simultaneous file requests."""
        changes = [{"id": f"c{i}", "project": "p"} for i in range(6)]
        in_flight = 0
        peak = 0

        async def tracked():
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.02)
            in_flight -= 1
            return {}

        responses = {ENDPOINT: changes}
        responses.update({files_url(c["id"]): tracked for c in changes})
        mock_client.get_json.side_effect = route(responses)
        service = GerritChangeService(mock_client, ENDPOINT, max_concurrency=2)

        result = await service.fetch_changes_with_files(["p"])

        assert len(result) == 6
        assert peak == 2

    @pytest.mark.asyncio
    async def test_one_failure_fails_aggregation(self, mock_client, sample_changes_data):
        """Test that a single failing file request fails everything."""
        error = GerritRestError("boom", status_code=500)
        mock_client.get_json.side_effect = route(
            {
                ENDPOINT: sample_changes_data,
                files_url("proj-a~main~I1"): {"a.py": {}},
                files_url("proj-b~main~I2"): error,
                files_url("proj-a~main~I3"): {"c.py": {}},
            }
        )
        service = GerritChangeService(mock_client, ENDPOINT)

        with pytest.raises(GerritRestError) as exc_info:
            await service.fetch_changes_with_files(["proj-a", "proj-b"])

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_failure_cancels_in_flight_siblings(self, mock_client):
        """Test that slow siblings are cancelled after the first failure."""
        changes = [{"id": "fast", "project": "p"}, {"id": "slow", "project": "p"}]
        cancelled = asyncio.Event()

        async def slow():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return {}

        mock_client.get_json.side_effect = route(
            {
                ENDPOINT: changes,
                files_url("fast"): GerritRestError("boom"),
                files_url("slow"): slow,
            }
        )
        service = GerritChangeService(mock_client, ENDPOINT)

        with pytest.raises(GerritRestError, match="boom"):
            await service.fetch_changes_with_files(["p"])

        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_list_failure_launches_no_file_requests(self, mock_client):
        """Test that a listing failure happens before any fan-out."""
        mock_client.get_json.side_effect = GerritDecodeError("no guard")
        service = GerritChangeService(mock_client, ENDPOINT)

        with pytest.raises(GerritDecodeError):
            await service.fetch_changes_with_files(["proj-a"])

        assert mock_client.get_json.await_count == 1
