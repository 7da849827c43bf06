from datetime import datetime, timezone

from conftest import ACTIVATION_KEY, ACTIVATION_URL, APPLE_INVITE_HTML, INVITE_URL, JOIN_URL

from testflight_invites.email_client import parse_message
from testflight_invites.models import LinkKind
from testflight_invites.resolver import AppNameResolver, ResolverOptions
from testflight_invites.scanner import (
    is_testflight_message,
    message_content,
    process_message,
    scan_messages,
)

INVITATION_LINK = "https://testflight.apple.com/v1/invite/abcdef1234567890"


# ============================================================================
# Content assembly and keyword filter
# ============================================================================


def test_message_content_skips_missing_parts(make_message):
    message = make_message(html_body="<p>html</p>", text_body=None, raw_source="raw")
    assert message_content(message) == "<p>html</p>\nraw"


def test_keyword_filter():
    assert is_testflight_message("Acme has invited you to test", "")
    assert is_testflight_message("", f"see {JOIN_URL}")
    assert not is_testflight_message("Lunch on Friday?", "See you there")


# ============================================================================
# Single message
# ============================================================================


def test_invitation_example_yields_one_record(make_message):
    message = make_message(
        subject="Acme Notes has invited you to test",
        html_body=f"...<a href='{INVITATION_LINK}'>Join</a>...",
    )

    records = process_message(message)

    assert len(records) == 1
    assert records[0].url == INVITATION_LINK
    assert records[0].app_name == "Acme Notes"
    assert records[0].subject == "Acme Notes has invited you to test"
    assert records[0].date == message.received_date


def test_apple_invite_email(make_message):
    message = make_message(subject="Cosmo Runner has invited you to test", html_body=APPLE_INVITE_HTML)
    records = process_message(message)
    assert [r.url for r in records] == [INVITE_URL]
    assert records[0].app_name == "Nebula Games + Cosmo Runner"


def test_text_body_link_does_not_run_into_raw_source(make_eml):
    raw = make_eml("Acme Notes has invited you to test", text=f"Join: {JOIN_URL}")
    records = process_message(parse_message(raw))
    assert [r.url for r in records] == [JOIN_URL]
    assert records[0].app_name == "Acme Notes"


def test_quoted_printable_raw_source_is_unfolded(make_message):
    raw = (
        "Subject: App Store Connect: activate\r\n"
        "Content-Type: text/html; charset=utf-8\r\n"
        "Content-Transfer-Encoding: quoted-printable\r\n\r\n"
        f"<a href=3D\"https://appstoreconnect.apple.com/activation_ds?key=3D{ACTIVATION_KEY[:20]}=\r\n"
        f"{ACTIVATION_KEY[20:]}\">Activate</a>\r\n"
    )
    message = make_message(subject="App Store Connect: activate", raw_source=raw)
    assert [r.url for r in process_message(message)] == [ACTIVATION_URL]


def test_decoded_body_lines_ending_in_equals_stay_separate(make_message):
    message = make_message(
        subject="Acme Notes has invited you to test",
        text_body=f"Join: {JOIN_URL}?ct=\n{JOIN_URL}\n",
        raw_source="Content-Transfer-Encoding: base64\r\n\r\nSm9pbg==\r\n",
    )
    assert [r.url for r in process_message(message)] == [JOIN_URL]


def test_non_testflight_message_skipped(make_message):
    message = make_message(subject="Weekly newsletter", text_body="Nothing to see")
    assert process_message(message) == []


def test_testflight_message_without_links(make_message):
    message = make_message(subject="TestFlight: Acme Notes build expired", text_body="Expired")
    assert process_message(message) == []


def test_all_records_share_app_name(make_message):
    message = make_message(
        subject="Acme Notes has invited you to test",
        text_body=f"{INVITE_URL}\n{JOIN_URL}\n",
    )
    records = process_message(message)
    assert {r.app_name for r in records} == {"Acme Notes"}
    assert [r.url for r in records] == [INVITE_URL, JOIN_URL]


def test_kind_filter(make_message):
    message = make_message(
        subject="App Store Connect: activate",
        text_body=f"{ACTIVATION_URL}\n{JOIN_URL}\n",
    )
    records = process_message(message, kinds={LinkKind.ACTIVATION})
    assert [r.url for r in records] == [ACTIVATION_URL]


def test_custom_resolver(make_message):
    resolver = AppNameResolver(ResolverOptions(aliases={"acme": "ACME"}))
    message = make_message(subject="Acme Notes has invited you to test", text_body=INVITE_URL)
    assert process_message(message, resolver)[0].app_name == "ACME"


# ============================================================================
# Many messages
# ============================================================================


def test_scan_messages_groups_and_dedups(make_message):
    later = datetime(2025, 3, 5, 8, 0, tzinfo=timezone.utc)
    messages = [
        make_message(subject="Acme Notes has invited you to test", text_body=INVITE_URL),
        make_message(subject="Re: Acme Notes has invited you to test", text_body=INVITE_URL, date=later),
        make_message(subject="Photo Lab has invited you to test", text_body=JOIN_URL),
        make_message(subject="Dinner plans", text_body="7pm?"),
    ]

    result = scan_messages(messages)

    assert result.total_apps == 2
    assert result.total_urls == 2
    assert result.groups["Acme Notes"].urls == [INVITE_URL]
    # The duplicate from the later reply is dropped before it can touch the group.
    assert result.groups["Acme Notes"].latest_date == datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_scan_messages_with_seen_urls(make_message):
    messages = [make_message(subject="Acme Notes has invited you to test", text_body=INVITE_URL)]
    result = scan_messages(messages, seen_urls={INVITE_URL})
    assert result.total_urls == 0


def test_scan_messages_empty():
    result = scan_messages([])
    assert result.total_apps == 0
    assert result.all_urls() == []
