"""
Pytest configuration for scanner tests

Provides realistic links, message builders and environment isolation
"""

import os
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import pytest

from testflight_invites.models import RawMessage

ACTIVATION_KEY = "709d1ee8949daa6fe8d7439cc3e5fff1"
ACTIVATION_URL = f"https://appstoreconnect.apple.com/activation_ds?key={ACTIVATION_KEY}"
INVITE_TOKEN = "a1b2c3d4e5f60718293a4b5c6d7e8f90a1b2c3d4"
INVITE_URL = f"https://testflight.apple.com/v1/invite/{INVITE_TOKEN}"
JOIN_URL = "https://testflight.apple.com/join/AbCdEfGh12345678XyZ"

APPLE_INVITE_HTML = f"""<html>
<head><title>TestFlight</title></head>
<body>
<img alt="Cosmo Runner, app icon" src="https://example.com/icon.png">
<div>By Nebula Games for iOS</div>
<p>You&#39;re invited to test Cosmo Runner. To get started, install TestFlight.</p>
<a href="{INVITE_URL}">View in TestFlight</a>
</body>
</html>"""

ENV_PREFIXES = ("EMAIL_", "APP_ALIASES", "DB_PATH", "OUTPUT_DIR", "MAX_MESSAGES_PER_ACCOUNT")


@pytest.fixture
def make_message():
    """Build a RawMessage with sensible defaults."""

    def _make(subject="", html_body=None, text_body=None, raw_source="", date=None):
        return RawMessage(
            subject=subject,
            raw_source=raw_source,
            received_date=date or datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc),
            html_body=html_body,
            text_body=text_body,
        )

    return _make


@pytest.fixture
def make_eml():
    """Build RFC822 bytes for a multipart/alternative message."""

    def _make(subject, html=None, text=None, date="Sat, 01 Mar 2025 12:00:00 +0000"):
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = "TestFlight <no_reply@email.apple.com>"
        msg["To"] = "tester@icloud.com"
        msg["Message-ID"] = "<abc123@email.apple.com>"
        if date:
            msg["Date"] = date
        if text is not None:
            msg.attach(MIMEText(text, "plain", "utf-8"))
        if html is not None:
            msg.attach(MIMEText(html, "html", "utf-8"))
        return msg.as_bytes()

    return _make


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable load_config reads."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch
