"""
Tests for the webhook server functionality.
"""

import hashlib
import hmac
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from config import ChannelConfig, RelayConfig, SuppressionConfig
from relay.sender import DeliveryError
from relay.webhook_server import create_app

from conftest import encode

GITHUB_SECRET = "test-github-secret"
GITEA_SECRET = "test-gitea-secret"
CHANNELS = ChannelConfig(logs="logs-id", issue="issue-id", pr="pr-id")


def _github_headers(body: bytes, event: str, secret: str = GITHUB_SECRET):
    signature = "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return {
        "X-GitHub-Event": event,
        "X-GitHub-Delivery": "test-delivery-id",
        "X-Hub-Signature-256": signature,
        "Content-Type": "application/json",
    }


def _gitea_headers(body: bytes, event: str, secret: str = GITEA_SECRET):
    return {
        "X-Gitea-Event": event,
        "X-Gitea-Delivery": "gitea-delivery-id",
        "X-Gitea-Signature": hmac.new(secret.encode(), body, hashlib.sha256).hexdigest(),
        "Content-Type": "application/json",
    }


class TestWebhookServer:
    """Test cases for webhook server."""

    @pytest.fixture
    def config(self):
        """Test configuration."""
        return RelayConfig(
            github_secret=GITHUB_SECRET,
            gitea_secret=GITEA_SECRET,
            channels=CHANNELS,
            suppression=SuppressionConfig(
                comment_ignored=frozenset({"codecov[bot]"}),
                body_omitted=frozenset({"dependabot[bot]"}),
                edit_ignored=frozenset({"dependabot[bot]"}),
            ),
            log_file=None,
        )

    @pytest.fixture
    def sender(self):
        sender = MagicMock()
        sender.send = AsyncMock()
        return sender

    @pytest.fixture
    def client(self, config, sender):
        """Test client."""
        app = create_app(config, sender)
        return TestClient(app)

    def test_health_check(self, client):
        """Test health check endpoint."""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data

    def test_issue_opened_relayed(self, client, sender, issue_opened_payload):
        body = encode(issue_opened_payload)
        response = client.post("/webhooks", content=body, headers=_github_headers(body, "issues"))

        assert response.status_code == 200
        assert response.text == "OK"
        sender.send.assert_awaited_once()
        channel_id, text = sender.send.await_args.args
        assert channel_id == "issue-id"
        assert text.startswith("## 新しいissue[Bug](//x/1)が作成されました\n")

    def test_root_path_accepts_webhooks(self, client, sender, issue_opened_payload):
        body = encode(issue_opened_payload)
        response = client.post("/", content=body, headers=_github_headers(body, "issues"))

        assert response.status_code == 200
        sender.send.assert_awaited_once()

    def test_merged_pull_request_goes_to_logs(self, client, sender, merged_pr_payload):
        body = encode(merged_pr_payload)
        for event in ("pull_request", "issues"):
            sender.send.reset_mock()
            response = client.post("/webhooks", content=body, headers=_github_headers(body, event))

            assert response.status_code == 200
            assert sender.send.await_args.args[0] == "logs-id"

    def test_suppressed_comment_is_acknowledged(self, client, sender):
        payload = {
            "action": "created",
            "issue": {"title": "Bug", "html_url": "http://x/1"},
            "comment": {"body": "Coverage", "user": {"login": "codecov[bot]"}},
            "repository": {"name": "r", "html_url": "http://x/r"},
        }
        body = encode(payload)
        response = client.post("/webhooks", content=body, headers=_github_headers(body, "issue_comment"))

        assert response.status_code == 200
        assert response.text == "OK"
        sender.send.assert_not_called()

    def test_unrecognized_event(self, client, sender):
        body = encode({"ref": "refs/heads/main", "repository": {"name": "r"}})
        response = client.post("/webhooks", content=body, headers=_github_headers(body, "push"))

        assert response.status_code == 200
        assert response.text == "Other Action"
        sender.send.assert_not_called()

    def test_github_invalid_signature(self, client, sender, issue_opened_payload):
        body = encode(issue_opened_payload)
        headers = _github_headers(body, "issues", secret="wrong")
        response = client.post("/webhooks", content=body, headers=headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "X-Hub-Signature mis-match"
        sender.send.assert_not_called()

    def test_github_missing_signature(self, client, sender, issue_opened_payload):
        response = client.post(
            "/webhooks",
            content=encode(issue_opened_payload),
            headers={"X-GitHub-Event": "issues"},
        )

        assert response.status_code == 403
        sender.send.assert_not_called()

    def test_tampered_body_rejected(self, client, sender, issue_opened_payload):
        body = encode(issue_opened_payload)
        headers = _github_headers(body, "issues")
        tampered = body.replace(b"Bug", b"Bag")
        response = client.post("/webhooks", content=tampered, headers=headers)

        assert response.status_code == 403
        sender.send.assert_not_called()

    def test_gitea_signature(self, client, sender, issue_opened_payload):
        payload = dict(issue_opened_payload)
        payload["issue"] = {**payload["issue"], "user": {"login": "bob"}}
        body = encode(payload)
        response = client.post("/webhooks", content=body, headers=_gitea_headers(body, "issues"))

        assert response.status_code == 200
        _, text = sender.send.await_args.args
        assert "issue作成者: bob" in text

    def test_gitea_invalid_signature(self, client, sender, issue_opened_payload):
        body = encode(issue_opened_payload)
        headers = _gitea_headers(body, "issues", secret="wrong")
        response = client.post("/webhooks", content=body, headers=headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "X-Gitea-Signature mis-match"

    def test_gitea_body_secret_disabled_by_default(self, client, sender, issue_opened_payload):
        body = encode({**issue_opened_payload, "secret": GITEA_SECRET})
        headers = {"X-GitHub-Event": "issues", "X-Gitea-Delivery": "legacy"}
        response = client.post("/webhooks", content=body, headers=headers)

        assert response.status_code == 403
        sender.send.assert_not_called()

    def test_gitea_body_secret(self, config, sender, issue_opened_payload):
        legacy = config.model_copy(update={"gitea_allow_body_secret": True})
        client = TestClient(create_app(legacy, sender))
        headers = {"X-GitHub-Event": "issues", "X-Gitea-Delivery": "legacy"}

        body = encode({**issue_opened_payload, "secret": GITEA_SECRET})
        response = client.post("/webhooks", content=body, headers=headers)
        assert response.status_code == 200
        assert response.text == "OK"

        body = encode({**issue_opened_payload, "secret": "nope"})
        response = client.post("/webhooks", content=body, headers=headers)
        assert response.status_code == 403
        assert response.json()["detail"] == "Secret mis-match"

    def test_unconfigured_secret_rejects(self, sender, issue_opened_payload):
        client = TestClient(create_app(RelayConfig(log_file=None), sender))
        body = encode(issue_opened_payload)
        signature = "sha256=" + hmac.new(b"", body, hashlib.sha256).hexdigest()
        headers = {"X-GitHub-Event": "issues", "X-Hub-Signature-256": signature}
        response = client.post("/webhooks", content=body, headers=headers)

        assert response.status_code == 403
        sender.send.assert_not_called()

    def test_invalid_payload(self, client, sender):
        body = b"not json"
        response = client.post("/webhooks", content=body, headers=_github_headers(body, "issues"))

        assert response.status_code == 400
        sender.send.assert_not_called()

    def test_delivery_failure(self, client, sender, issue_opened_payload):
        sender.send.side_effect = DeliveryError("traQ webhook returned 500")
        body = encode(issue_opened_payload)
        response = client.post("/webhooks", content=body, headers=_github_headers(body, "issues"))

        assert response.status_code == 502

    def test_body_omitted_pull_request(self, client, sender):
        payload = {
            "action": "opened",
            "pull_request": {
                "title": "Bump lib",
                "html_url": "https://github.com/o/r/pull/3",
                "body": "Bumps lib from 1 to 2",
                "user": {"login": "dependabot[bot]", "html_url": "https://github.com/apps/dependabot"},
            },
            "repository": {"name": "r", "html_url": "https://github.com/o/r"},
            "sender": {"login": "dependabot[bot]"},
        }
        body = encode(payload)
        response = client.post("/webhooks", content=body, headers=_github_headers(body, "pull_request"))

        assert response.status_code == 200
        channel_id, text = sender.send.await_args.args
        assert channel_id == "pr-id"
        assert "Bumps lib" not in text
        assert "リポジトリ: [r](//github.com/o/r)" in text
        assert "PR作成者: [dependabot[bot]](//github.com/apps/dependabot)" in text
    def test_gitea_review_without_user_is_other_action(self, client, sender):
        payload = {
            "action": "reviewed",
            "pull_request": {"title": "PR", "html_url": "https://gitea/o/r/pulls/2"},
            "review": {"type": "pull_request_review_approved", "content": "LGTM"},
            "repository": {"name": "r", "html_url": "https://gitea/o/r"},
            "sender": {"login": "bob"},
        }
        body = encode(payload)
        headers = _gitea_headers(body, "pull_request_review_approved")
        response = client.post("/webhooks", content=body, headers=headers)

        assert response.status_code == 200
        assert response.text == "Other Action"
        sender.send.assert_not_called()

    @pytest.mark.parametrize("action", ["deleted", "created"])
    def test_comment_with_null_user_is_other_action(self, client, sender, action):
        payload = {
            "action": action,
            "issue": {"title": "Bug", "html_url": "http://x/1"},
            "comment": {"body": "gone", "user": None},
            "repository": {"name": "r", "html_url": "http://x/r"},
        }
        body = encode(payload)
        response = client.post("/webhooks", content=body, headers=_github_headers(body, "issue_comment"))

        assert response.status_code == 200
        assert response.text == "Other Action"
        sender.send.assert_not_called()

    def test_log_file_sink_added_once(self, config, sender, tmp_path):
        logged = config.model_copy(update={"log_file": str(tmp_path / "relay.log")})
        with patch("relay.webhook_server.logger") as mock_logger:
            mock_logger.add.return_value = 42
            create_app(logged, sender)
            create_app(logged, sender)

        mock_logger.add.assert_called_once()


if __name__ == "__main__":
    pytest.main([__file__])
