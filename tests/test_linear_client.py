"""Tests for the Linear GraphQL client against a mock transport."""

import json

import httpx
import pytest

from discord_linear_bot.errors import AttachmentUploadError, LinearApiError
from discord_linear_bot.linear.client import LINEAR_API_URL, LinearClient


def _client(handler) -> LinearClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return LinearClient("lin_api_test", http_client=http)


def _graphql(data=None, errors=None, status=200):
    body = {}
    if data is not None:
        body["data"] = data
    if errors is not None:
        body["errors"] = errors
    return httpx.Response(status, json=body)


class TestExecute:
    @pytest.mark.asyncio
    async def test_sends_auth_and_variables(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return _graphql({"ok": True})

        data = await _client(handler).execute("query { ok }", {"a": 1})
        assert data == {"ok": True}
        assert seen["auth"] == "lin_api_test"
        assert seen["body"] == {"query": "query { ok }", "variables": {"a": 1}}

    @pytest.mark.asyncio
    async def test_graphql_errors_are_joined(self):
        client = _client(lambda r: _graphql(errors=[{"message": "bad"}, {"message": "worse"}]))
        with pytest.raises(LinearApiError, match="bad; worse"):
            await client.execute("query { x }")

    @pytest.mark.asyncio
    async def test_http_error(self):
        client = _client(lambda r: httpx.Response(500, text="oops"))
        with pytest.raises(LinearApiError, match="HTTP error"):
            await client.execute("query { x }")

    @pytest.mark.asyncio
    async def test_missing_data(self):
        client = _client(lambda r: _graphql())
        with pytest.raises(LinearApiError, match="No data"):
            await client.execute("query { x }")


class TestIssues:
    @pytest.mark.asyncio
    async def test_create_issue(self):
        seen = {}

        def handler(request):
            seen["input"] = json.loads(request.content)["variables"]["input"]
            return _graphql({"issueCreate": {"success": True, "issue": {
                "id": "abc", "identifier": "ENG-7", "title": "T", "url": "https://linear.app/x",
            }}})

        issue = await _client(handler).create_issue("team-1", "T", "desc", ["l1", "l2"])
        assert issue.identifier == "ENG-7"
        assert seen["input"] == {
            "teamId": "team-1", "title": "T", "description": "desc", "labelIds": ["l1", "l2"],
        }

    @pytest.mark.asyncio
    async def test_create_issue_missing_fields(self):
        client = _client(lambda r: _graphql({"issueCreate": {"success": False, "issue": None}}))
        with pytest.raises(LinearApiError, match="Missing issue id"):
            await client.create_issue("team-1", "T", "d", [])

    @pytest.mark.asyncio
    async def test_get_updated_issues(self):
        def handler(request):
            variables = json.loads(request.content)["variables"]
            assert variables == {"teamId": "team-1", "since": "2024-01-01T00:00:00Z"}
            return _graphql({"issues": {"nodes": [
                {"id": "a", "identifier": "ENG-1", "state": {"name": "Done"},
                 "updatedAt": "2024-01-02T00:00:00.000Z"},
            ]}})

        issues = await _client(handler).get_updated_issues("team-1", "2024-01-01T00:00:00Z")
        assert len(issues) == 1
        assert issues[0].status_name == "Done"

    @pytest.mark.asyncio
    async def test_get_issue_comments_sorted(self):
        client = _client(lambda r: _graphql({"issue": {"comments": {"nodes": [
            {"id": "c2", "body": "later", "createdAt": "2024-01-03T00:00:00.000Z",
             "user": {"name": "ana", "displayName": "Ana"}},
            {"id": "c1", "body": "earlier", "createdAt": "2024-01-02T00:00:00.000Z",
             "user": None},
        ]}}}))
        comments = await client.get_issue_comments("a")
        assert [c.id for c in comments] == ["c1", "c2"]
        assert comments[0].author_name == "Linear"
        assert comments[1].author_name == "Ana"

    @pytest.mark.asyncio
    async def test_get_issue_comments_missing_issue(self):
        client = _client(lambda r: _graphql({"issue": None}))
        with pytest.raises(LinearApiError, match="Issue not found"):
            await client.get_issue_comments("gone")


class TestAttachments:
    @staticmethod
    def _handler(put_status=200, seen=None):
        seen = seen if seen is not None else {}

        def handler(request: httpx.Request):
            url = str(request.url)
            if request.method == "GET":
                return httpx.Response(200, content=b"PNGDATA",
                                      headers={"content-type": "image/png"})
            if url == LINEAR_API_URL:
                seen["upload_vars"] = json.loads(request.content)["variables"]
                return _graphql({"fileUpload": {"uploadFile": {
                    "uploadUrl": "https://storage.example/put",
                    "assetUrl": "https://uploads.linear.app/shot.png",
                    "headers": [{"key": "x-goog-meta", "value": "1"}],
                }}})
            seen["put_headers"] = dict(request.headers)
            seen["put_body"] = request.content
            return httpx.Response(put_status, text="denied" if put_status >= 400 else "")

        return handler

    @pytest.mark.asyncio
    async def test_upload_attachment(self):
        seen = {}
        client = _client(self._handler(seen=seen))
        asset = await client.upload_attachment("https://cdn.discordapp.com/shot.png", "shot.png")

        assert asset == "https://uploads.linear.app/shot.png"
        assert seen["upload_vars"] == {"contentType": "image/png", "filename": "shot.png", "size": 7}
        assert seen["put_headers"]["x-goog-meta"] == "1"
        assert seen["put_headers"]["content-type"] == "image/png"
        assert seen["put_body"] == b"PNGDATA"

    @pytest.mark.asyncio
    async def test_upload_rejected(self):
        client = _client(self._handler(put_status=403))
        with pytest.raises(AttachmentUploadError, match="Upload returned 403: denied"):
            await client.upload_attachment("https://cdn.discordapp.com/shot.png", "shot.png")

    @pytest.mark.asyncio
    async def test_upload_headers_malformed(self):
        client = _client(lambda r: _graphql({"fileUpload": {"uploadFile": {
            "uploadUrl": "u", "assetUrl": "a", "headers": None,
        }}}))
        with pytest.raises(LinearApiError, match="upload headers"):
            await client.request_file_upload("f.png", "image/png", 3)

    @pytest.mark.asyncio
    async def test_download_follows_redirects(self):
        def handler(request: httpx.Request):
            if str(request.url) == "https://cdn.example/a.png":
                return httpx.Response(302, headers={"location": "https://media.example/a.png"})
            return httpx.Response(200, content=b"IMG", headers={"content-type": "image/png"})

        data, content_type = await _client(handler).download_attachment("https://cdn.example/a.png")
        assert data == b"IMG"
        assert content_type == "image/png"

    @pytest.mark.asyncio
    async def test_download_failure(self):
        client = _client(lambda r: httpx.Response(404))
        with pytest.raises(AttachmentUploadError, match="Download failed"):
            await client.download_attachment("https://cdn.example/gone.png")
