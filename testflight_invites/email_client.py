"""IMAP email client for fetching invitation messages."""

import email
import email.message
import email.utils
import imaplib
import logging
import time
from datetime import datetime, timezone
from email.header import decode_header
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .config import EmailConfig
from .models import RawMessage

logger = logging.getLogger(__name__)

# Retry configuration
MAX_RETRIES = 3
RETRY_DELAY = 2  # seconds


def _decode_header_value(header_value: str) -> str:
    """Decode email header value (handles encoded words)."""
    if not header_value:
        return ""

    decoded_string = ""
    for part, encoding in decode_header(header_value):
        if isinstance(part, bytes):
            try:
                decoded_string += part.decode(encoding or "utf-8", errors="ignore")
            except LookupError:
                # Unknown charset name in the header
                decoded_string += part.decode("utf-8", errors="ignore")
        else:
            decoded_string += part

    return decoded_string.strip()


def _decode_payload(part: email.message.Message) -> str:
    payload = part.get_payload(decode=True)
    if not payload:
        return ""
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="ignore")
    except LookupError:
        return payload.decode("utf-8", errors="ignore")


def _get_text_from_message(msg: email.message.Message) -> Tuple[str, str]:
    """
    Extract plain text and HTML from email message.

    Returns:
        Tuple of (text_content, html_content)
    """
    text_content = ""
    html_content = ""

    for part in msg.walk():
        if part.is_multipart():
            continue
        content_type = part.get_content_type()
        if content_type == "text/plain" and not text_content:
            text_content = _decode_payload(part)
        elif content_type == "text/html" and not html_content:
            html_content = _decode_payload(part)

    return text_content, html_content


def _parse_date(date_str: str) -> Optional[datetime]:
    """Parse email date header to an aware UTC datetime."""
    if not date_str:
        return None

    try:
        parsed = email.utils.parsedate_to_datetime(date_str)
    except (TypeError, ValueError) as e:
        logger.debug(f"Error parsing date '{date_str}': {e}")
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_message(raw: Union[bytes, str], account: str = "", fallback_id: str = "") -> RawMessage:
    """Turn one RFC822 message into a RawMessage."""
    if isinstance(raw, bytes):
        msg = email.message_from_bytes(raw)
        raw_source = raw.decode("utf-8", errors="ignore")
    else:
        msg = email.message_from_string(raw)
        raw_source = raw

    text_content, html_content = _get_text_from_message(msg)
    message_id = msg.get("Message-ID", "").strip().strip("<>") or fallback_id

    return RawMessage(
        subject=_decode_header_value(msg.get("Subject", "")),
        raw_source=raw_source,
        received_date=_parse_date(msg.get("Date", "")) or datetime.now(timezone.utc),
        html_body=html_content or None,
        text_body=text_content or None,
        message_id=message_id,
        account=account,
    )


def _connect(config: EmailConfig) -> imaplib.IMAP4:
    """Connect and log in, retrying transient network failures."""
    for attempt in range(MAX_RETRIES):
        try:
            if config.use_ssl:
                mail = imaplib.IMAP4_SSL(config.host, config.port)
            else:
                mail = imaplib.IMAP4(config.host, config.port)
        except (OSError, imaplib.IMAP4.error) as e:
            if attempt < MAX_RETRIES - 1:
                logger.warning(f"Connection attempt {attempt + 1} failed: {e}. Retrying in {RETRY_DELAY}s...")
                time.sleep(RETRY_DELAY)
                continue
            logger.error(f"Failed to connect to {config.host} after {MAX_RETRIES} attempts: {e}")
            raise

        try:
            mail.login(config.username, config.password)
        except imaplib.IMAP4.error as e:
            error_msg = str(e)
            if "AUTHENTICATIONFAILED" in error_msg or "Invalid credentials" in error_msg:
                logger.error(
                    f"IMAP authentication failed for {config.username}. Common causes:\n"
                    "1. iCloud, Gmail and Yahoo require an app-specific password\n"
                    "2. EMAIL_USERNAME must be the full email address\n"
                    "3. IMAP access may be disabled in the account settings"
                )
            _logout(mail)
            raise  # Don't retry authentication failures
        return mail

    raise ConnectionError("Failed to establish IMAP connection")


def _logout(mail: imaplib.IMAP4) -> None:
    try:
        mail.logout()
    except (imaplib.IMAP4.error, OSError) as e:
        logger.debug(f"Error logging out (connection may be closed): {e}")


def fetch_messages(config: EmailConfig, limit: Optional[int] = None) -> List[RawMessage]:
    """
    Fetch the newest messages from a mailbox folder without modifying it.

    The folder is opened read-only, so no flags change.

    Args:
        config: Email configuration.
        limit: Number of newest messages to fetch (defaults to config.max_messages).

    Returns:
        List of RawMessage objects, newest first.

    Raises:
        imaplib.IMAP4.error, OSError: On connection, login or folder errors.
    """
    limit = limit or config.max_messages
    logger.info(f"Connecting to {config.host} as {config.username}...")
    mail = _connect(config)

    try:
        status, data = mail.select(config.folder, readonly=True)
        if status != "OK":
            raise imaplib.IMAP4.error(f"Failed to open folder {config.folder}: {data}")

        total = int(data[0]) if data and data[0] else 0
        logger.info(f"{config.folder} has {total} messages for {config.username}")
        if total == 0:
            return []

        start = max(1, total - limit + 1)
        logger.info(f"Processing last {total - start + 1} messages ({start}:{total})...")

        messages = []
        for seq in range(total, start - 1, -1):
            status, msg_data = mail.fetch(str(seq), "(BODY.PEEK[])")
            if status != "OK" or not msg_data or not isinstance(msg_data[0], tuple):
                logger.warning(f"Failed to fetch message {seq}")
                continue
            try:
                messages.append(parse_message(msg_data[0][1], config.username, str(seq)))
            except (ValueError, UnicodeError) as e:
                logger.debug(f"Error parsing message {seq}: {e}")

        logger.info(f"Fetched {len(messages)} messages from {config.username}")
        return messages
    finally:
        _logout(mail)


def load_messages_from_dir(path: Union[str, Path]) -> List[RawMessage]:
    """Read every .eml file in a directory, for offline scans."""
    directory = Path(path)
    if not directory.is_dir():
        raise FileNotFoundError(f"Not a directory: {directory}")

    messages = []
    for eml_path in sorted(directory.glob("*.eml")):
        messages.append(parse_message(eml_path.read_bytes(), fallback_id=eml_path.name))
    logger.info(f"Loaded {len(messages)} messages from {directory}")
    return messages
