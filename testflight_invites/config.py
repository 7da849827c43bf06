"""Configuration management."""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .resolver import DEFAULT_ALIASES, ResolverOptions

load_dotenv()

# Known IMAP servers by address domain
IMAP_HOSTS: Dict[str, str] = {
    "gmail.com": "imap.gmail.com",
    "googlemail.com": "imap.gmail.com",
    "outlook.com": "outlook.office365.com",
    "hotmail.com": "outlook.office365.com",
    "live.com": "outlook.office365.com",
    "yahoo.com": "imap.mail.yahoo.com",
    "yahoo.co.uk": "imap.mail.yahoo.com",
    "ymail.com": "imap.mail.yahoo.com",
    "icloud.com": "imap.mail.me.com",
    "me.com": "imap.mail.me.com",
    "mac.com": "imap.mail.me.com",
    "aol.com": "imap.aol.com",
    "protonmail.com": "imap.protonmail.com",
    "zoho.com": "imap.zoho.com",
}


@dataclass
class EmailConfig:
    """Email/IMAP configuration for one mailbox."""
    host: str
    port: int
    username: str
    password: str   # app-specific password for iCloud/Gmail/Yahoo
    use_ssl: bool
    folder: str     # e.g. "INBOX"
    max_messages: int = 200  # newest N messages are scanned


@dataclass
class ResolverConfig:
    """App name resolution settings."""
    aliases: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ALIASES))

    def to_options(self) -> ResolverOptions:
        return ResolverOptions(aliases=dict(self.aliases))


@dataclass
class AppConfig:
    """Complete application configuration."""
    db_path: str
    output_dir: str
    email_accounts: List[EmailConfig]
    resolver: ResolverConfig


def _parse_list_env(key: str, default: List[str]) -> List[str]:
    """Parse comma-separated list from environment variable."""
    value = os.getenv(key, "")
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_int_env(key: str, default: int) -> int:
    value = os.getenv(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {value!r}")


def detect_imap_host(address: str) -> str:
    """Guess the IMAP host from the address domain."""
    domain = address.split("@", 1)[1].lower() if "@" in address else ""
    if not domain:
        raise ValueError(f"Invalid email address: {address!r}")
    return IMAP_HOSTS.get(domain, f"imap.{domain}")


def parse_aliases(value: str) -> Dict[str, str]:
    """Parse "nickname=Canonical,other=Other" into an alias table."""
    aliases = {}
    for item in value.split(","):
        if "=" not in item:
            continue
        key, canonical = item.split("=", 1)
        if key.strip() and canonical.strip():
            aliases[key.strip().lower()] = canonical.strip()
    return aliases


def _account_lookup(prefix: str, address: str) -> Optional[str]:
    """Per-account variable, keyed by the address or its underscored form."""
    account_key = address.replace("@", "_").replace(".", "_")
    return (
        os.getenv(f"{prefix}_{address}") or
        os.getenv(f"{prefix}_{account_key}") or
        os.getenv(f"{prefix}_{address.split('@')[0]}")
    )


def _load_email_accounts() -> List[EmailConfig]:
    port = _parse_int_env("EMAIL_PORT", 993)
    use_ssl = _parse_bool(os.getenv("EMAIL_USE_SSL", "true"))
    folder = os.getenv("EMAIL_FOLDER", "INBOX")
    max_messages = _parse_int_env("MAX_MESSAGES_PER_ACCOUNT", 200)

    accounts = []

    # EMAIL_ACCOUNTS=a@icloud.com,b@gmail.com with EMAIL_PASSWORD_<address>
    for address in _parse_list_env("EMAIL_ACCOUNTS", []):
        password = _account_lookup("EMAIL_PASSWORD", address)
        if not password:
            raise ValueError(f"No EMAIL_PASSWORD_* set for account {address}")
        accounts.append(EmailConfig(
            host=_account_lookup("EMAIL_HOST", address) or detect_imap_host(address),
            port=int(_account_lookup("EMAIL_PORT", address) or port),
            username=address,
            # App passwords are often pasted with spaces
            password=password.replace(" ", ""),
            use_ssl=_parse_bool(_account_lookup("EMAIL_USE_SSL", address) or str(use_ssl)),
            folder=_account_lookup("EMAIL_FOLDER", address) or folder,
            max_messages=max_messages,
        ))

    # Single account: EMAIL_USERNAME / EMAIL_PASSWORD (EMAIL_HOST optional)
    username = os.getenv("EMAIL_USERNAME")
    password = os.getenv("EMAIL_PASSWORD")
    if not accounts and username and password:
        accounts.append(EmailConfig(
            host=os.getenv("EMAIL_HOST") or detect_imap_host(username),
            port=port,
            username=username,
            password=password.replace(" ", ""),
            use_ssl=use_ssl,
            folder=folder,
            max_messages=max_messages,
        ))

    # Numbered accounts: EMAIL_USERNAME_1, EMAIL_PASSWORD_1, EMAIL_HOST_1, ...
    account_num = 1
    while True:
        account_username = os.getenv(f"EMAIL_USERNAME_{account_num}")
        account_password = os.getenv(f"EMAIL_PASSWORD_{account_num}")
        if not (account_username and account_password):
            break
        accounts.append(EmailConfig(
            host=os.getenv(f"EMAIL_HOST_{account_num}") or detect_imap_host(account_username),
            port=_parse_int_env(f"EMAIL_PORT_{account_num}", port),
            username=account_username,
            password=account_password.replace(" ", ""),
            use_ssl=_parse_bool(os.getenv(f"EMAIL_USE_SSL_{account_num}", str(use_ssl))),
            folder=os.getenv(f"EMAIL_FOLDER_{account_num}", folder),
            max_messages=max_messages,
        ))
        account_num += 1

    return accounts


def load_config(require_email: bool = True) -> AppConfig:
    """
    Load configuration from environment variables (and a .env file).

    Args:
        require_email: Fail when no mailbox is configured. Offline scans of
            .eml files pass False.

    Raises:
        ValueError: If required configuration values are missing or invalid.
    """
    email_accounts = _load_email_accounts()
    if require_email and not email_accounts:
        raise ValueError(
            "Missing required email configuration. Set EMAIL_ACCOUNTS with "
            "EMAIL_PASSWORD_<address>, or EMAIL_USERNAME and EMAIL_PASSWORD"
        )

    aliases = dict(DEFAULT_ALIASES)
    aliases.update(parse_aliases(os.getenv("APP_ALIASES", "")))

    return AppConfig(
        db_path=os.getenv("DB_PATH", "testflight_invites.db"),
        output_dir=os.getenv("OUTPUT_DIR", "."),
        email_accounts=email_accounts,
        resolver=ResolverConfig(aliases=aliases),
    )
