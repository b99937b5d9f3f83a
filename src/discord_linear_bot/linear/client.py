"""Linear GraphQL API client."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from discord_linear_bot.errors import AttachmentUploadError, LinearApiError
from discord_linear_bot.models import (
    LinearComment, LinearIssue, LinearIssueStatus, UploadFile, UploadHeader,
)

logger = logging.getLogger(__name__)

LINEAR_API_URL = "https://api.linear.app/graphql"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

CREATE_ISSUE = """
mutation CreateIssue($input: IssueCreateInput!) {
    issueCreate(input: $input) {
        success
        issue {
            id
            identifier
            title
            url
        }
    }
}
"""

UPDATED_ISSUES = """
query UpdatedIssues($teamId: String!, $since: DateTime!) {
    issues(
        filter: {
            team: { id: { eq: $teamId } }
            updatedAt: { gt: $since }
        }
        first: 100
    ) {
        nodes {
            id
            identifier
            state {
                name
            }
            updatedAt
        }
    }
}
"""

ISSUE_COMMENTS = """
query IssueComments($id: String!) {
    issue(id: $id) {
        comments(first: 100) {
            nodes {
                id
                body
                createdAt
                user {
                    name
                    displayName
                }
            }
        }
    }
}
"""

FILE_UPLOAD = """
mutation FileUpload($contentType: String!, $filename: String!, $size: Int!) {
    fileUpload(contentType: $contentType, filename: $filename, size: $size) {
        uploadFile {
            uploadUrl
            assetUrl
            headers {
                key
                value
            }
        }
    }
}
"""


class LinearClient:
    """Async GraphQL client for the Linear API.

    Pass ``http_client`` to reuse a session (or to inject a mock transport);
    otherwise the client owns one and :meth:`aclose` closes it.
    """

    def __init__(self, api_key: str, api_url: str = LINEAR_API_URL, timeout: float = 30,
                 http_client: httpx.AsyncClient | None = None):
        self.api_url = api_url
        self.api_key = api_key
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _get_headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": self.api_key,
        }

    async def execute(self, query: str, variables: dict | None = None) -> dict:
        """Run a GraphQL request and return its ``data`` object."""
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        try:
            response = await self._client.post(
                self.api_url, json=payload, headers=self._get_headers(),
            )
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as exc:
            raise LinearApiError(f"HTTP error: {exc}") from exc
        except ValueError as exc:
            raise LinearApiError(f"Invalid JSON in response: {exc}") from exc

        errors = result.get("errors")
        if errors:
            combined = "; ".join(str(e.get("message", e)) for e in errors)
            logger.warning("Linear API returned errors: %s", combined)
            raise LinearApiError(combined)

        data = result.get("data")
        if data is None:
            raise LinearApiError("No data in response")
        return data

    # =========================================================================
    # ISSUES
    # =========================================================================

    async def create_issue(self, team_id: str, title: str, description: str,
                           label_ids: list[str]) -> LinearIssue:
        """Create an issue in a team and return its identity."""
        variables = {
            "input": {
                "teamId": team_id,
                "title": title,
                "description": description,
                "labelIds": label_ids,
            }
        }
        data = await self.execute(CREATE_ISSUE, variables)
        issue_data = (data.get("issueCreate") or {}).get("issue") or {}

        def required(key: str) -> str:
            value = issue_data.get(key)
            if not isinstance(value, str):
                raise LinearApiError(f"Missing issue {key}")
            return value

        return LinearIssue(
            id=required("id"),
            identifier=required("identifier"),
            title=required("title"),
            url=required("url"),
        )

    async def get_updated_issues(self, team_id: str, since: str) -> list[LinearIssueStatus]:
        """Fetch issues in a team updated since ``since`` (ISO 8601)."""
        data = await self.execute(UPDATED_ISSUES, {"teamId": team_id, "since": since})
        nodes = (data.get("issues") or {}).get("nodes")
        if not isinstance(nodes, list):
            raise LinearApiError("Missing issues.nodes")
        return [LinearIssueStatus.from_api(n) for n in nodes]

    async def get_issue_comments(self, issue_id: str) -> list[LinearComment]:
        """Fetch comments on an issue, oldest first."""
        data = await self.execute(ISSUE_COMMENTS, {"id": issue_id})
        issue = data.get("issue")
        if issue is None:
            raise LinearApiError(f"Issue not found: {issue_id}")
        nodes = (issue.get("comments") or {}).get("nodes") or []
        comments = [LinearComment.from_api(n) for n in nodes]
        comments.sort(key=lambda c: c.created_at or _EPOCH)
        return comments

    # =========================================================================
    # FILE UPLOADS
    # =========================================================================

    async def request_file_upload(self, filename: str, content_type: str,
                                  size: int) -> UploadFile:
        """Ask Linear for a pre-signed upload URL."""
        variables = {"contentType": content_type, "filename": filename, "size": size}
        data = await self.execute(FILE_UPLOAD, variables)
        upload_data = (data.get("fileUpload") or {}).get("uploadFile") or {}

        headers_raw = upload_data.get("headers")
        if not isinstance(headers_raw, list):
            raise LinearApiError("Failed to parse upload headers")
        try:
            headers = [UploadHeader(key=h["key"], value=h["value"]) for h in headers_raw]
        except (KeyError, TypeError) as exc:
            raise LinearApiError(f"Failed to parse upload headers: {exc}") from exc

        upload_url = upload_data.get("uploadUrl")
        if not upload_url:
            raise LinearApiError("Missing uploadUrl")
        asset_url = upload_data.get("assetUrl")
        if not asset_url:
            raise LinearApiError("Missing assetUrl")

        return UploadFile(upload_url=upload_url, asset_url=asset_url, headers=headers)

    async def upload_file_to_url(self, upload: UploadFile, data: bytes,
                                 content_type: str) -> str:
        """PUT file contents to a pre-signed URL and return the asset URL."""
        headers = {"Content-Type": content_type}
        for header in upload.headers:
            headers[header.key] = header.value

        try:
            response = await self._client.put(upload.upload_url, content=data, headers=headers)
        except httpx.HTTPError as exc:
            raise AttachmentUploadError(str(exc)) from exc

        if not response.is_success:
            raise AttachmentUploadError(
                f"Upload returned {response.status_code}: {response.text}"
            )

        logger.debug("File uploaded to Linear: %s", upload.asset_url)
        return upload.asset_url

    async def download_attachment(self, url: str) -> tuple[bytes, str]:
        """Download a file, returning its bytes and content type."""
        try:
            response = await self._client.get(url, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise AttachmentUploadError(f"Download failed: {exc}") from exc

        content_type = response.headers.get("content-type", "application/octet-stream")
        return response.content, content_type

    async def upload_attachment(self, url: str, filename: str) -> str:
        """Re-host a remote file on Linear and return the asset URL."""
        data, content_type = await self.download_attachment(url)
        upload = await self.request_file_upload(filename, content_type, len(data))
        return await self.upload_file_to_url(upload, data, content_type)
