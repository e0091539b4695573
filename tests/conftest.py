"""
Shared fixtures for relay tests.
"""

import json
import sys
from pathlib import Path

import pytest

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def issue_opened_payload():
    """Payload of a GitHub issues/opened delivery."""
    return {
        "action": "opened",
        "issue": {
            "title": "Bug",
            "html_url": "http://x/1",
            "body": "Steps<details><summary>log</summary>\ntrace\n</details>",
            "user": {"login": "bob", "html_url": "http://x/bob"},
        },
        "repository": {"name": "r", "html_url": "http://x/r"},
        "sender": {"login": "bob", "html_url": "http://x/bob"},
    }


@pytest.fixture
def merged_pr_payload():
    """Payload of a merged pull request."""
    return {
        "action": "closed",
        "pull_request": {
            "title": "Add feature",
            "html_url": "https://github.com/o/r/pull/2",
            "body": "Implements the feature",
            "merged": True,
            "user": {"login": "alice", "html_url": "https://github.com/alice"},
        },
        "repository": {"name": "r", "html_url": "https://github.com/o/r"},
        "sender": {"login": "carol", "html_url": "https://github.com/carol"},
    }


def encode(payload) -> bytes:
    return json.dumps(payload).encode()
