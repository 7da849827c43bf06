from conftest import APPLE_INVITE_HTML

from testflight_invites.resolver import (
    CONTENT_RULES,
    SUBJECT_RULES,
    UNKNOWN_APP,
    AliasRule,
    AppNameResolver,
    NameLengthCap,
    NameSource,
    PatternRule,
    ResolverOptions,
    normalize_app_name,
    resolve_app_name,
    strip_stop_words,
)


# ============================================================================
# Alias table
# ============================================================================


def test_alias_from_subject():
    assert resolve_app_name("VietnamGG has invited you to test Beta", "") == "VietnamGG"


def test_alias_from_content_is_case_insensitive():
    assert resolve_app_name("New build", "<p>Welcome to VIET NAM GG</p>") == "VietnamGG"


def test_custom_alias():
    resolver = AppNameResolver(ResolverOptions(aliases={"ptt": "PTT Mobile"}))
    assert resolver.resolve("ptt has invited you to test", "") == "PTT Mobile"


def test_alias_rule_returns_none_without_hit():
    rule = AliasRule({"vietnamgg": "VietnamGG"})
    assert rule.extract("Acme has invited you to test", "") is None


# ============================================================================
# Degenerate input
# ============================================================================


def test_empty_input_is_unknown():
    assert resolve_app_name("", "") == UNKNOWN_APP
    assert resolve_app_name(None, None) == UNKNOWN_APP


def test_only_stop_words_is_unknown():
    assert resolve_app_name("TestFlight", "") == UNKNOWN_APP


def test_numeric_subject_is_unknown():
    assert resolve_app_name("12345", "") == UNKNOWN_APP


# ============================================================================
# Subject rules
# ============================================================================


def test_has_invited_you_to_test():
    assert resolve_app_name("Acme Notes has invited you to test", "") == "Acme Notes"


def test_subject_is_title_cased():
    assert resolve_app_name("acme NOTES has invited you to test", "") == "Acme Notes"


def test_invited_to_test_on_testflight():
    subject = "You've been invited to test Photo Lab on TestFlight"
    assert resolve_app_name(subject, "") == "Photo Lab"


def test_testflight_colon_prefix():
    assert resolve_app_name("TestFlight: Weather Pro for iOS", "") == "Weather Pro"


def test_join_the_beta():
    assert resolve_app_name("Join the Rocket Chat beta", "") == "Rocket Chat"


def test_start_testing():
    assert resolve_app_name("Start testing Snap Notes", "") == "Snap Notes"


def test_ready_for_beta_testing():
    assert resolve_app_name("Orbit is ready for beta testing", "") == "Orbit"


def test_dash_testflight():
    assert resolve_app_name("Lumen - TestFlight", "") == "Lumen"


def test_colon_prefix():
    assert resolve_app_name("Beacon: new build available", "") == "Beacon"


def test_reply_prefixes_are_ignored():
    assert resolve_app_name("Fwd: Acme Notes has invited you to test", "") == "Acme Notes"


# ============================================================================
# Content rules
# ============================================================================


def test_app_icon_alt_text():
    content = '<img alt="Cosmo Runner, app icon" src="icon.png">'
    assert resolve_app_name("", content) == "Cosmo Runner"


def test_aria_label():
    assert resolve_app_name("", '<h2 aria-label="Pixel Forge for iOS">') == "Pixel Forge"


def test_html_title():
    assert resolve_app_name("", "<title>Star Map</title>") == "Star Map"


def test_html_title_over_cap_is_skipped():
    title = "A" * 30 + " " + "B" * 30
    content = f"<title>{title}</title>"
    assert resolve_app_name("Beacon has invited you to test", content) == "Beacon"


def test_invited_phrase_with_entity():
    content = "<p>You&#39;re invited to test Harbor. Get started today.</p>"
    assert resolve_app_name("", content) == "Harbor"


def test_join_on_testflight_phrase():
    assert resolve_app_name("", "Join Orbit Pro on TestFlight") == "Orbit Pro"


def test_content_wins_over_subject():
    content = '<img alt="Cosmo Runner, app icon">'
    assert resolve_app_name("Other App has invited you to test", content) == "Cosmo Runner"


# ============================================================================
# Developer pass
# ============================================================================


def test_developer_prefix_added():
    subject = "Cosmo Runner has invited you to test"
    assert resolve_app_name(subject, APPLE_INVITE_HTML) == "Nebula Games + Cosmo Runner"


def test_developer_already_in_app_name():
    content = '<img alt="Nebula Quest, app icon"><div>By Nebula for iOS</div>'
    assert resolve_app_name("", content) == "Nebula Quest"


def test_developer_company_suffix():
    content = '<img alt="Tide, app icon"><div>By Acme Studios LLC</div>'
    assert resolve_app_name("", content) == "Acme Studios + Tide"


def test_developer_can_be_disabled():
    resolver = AppNameResolver(ResolverOptions(combine_developer=False))
    subject = "Cosmo Runner has invited you to test"
    assert resolver.resolve(subject, APPLE_INVITE_HTML) == "Cosmo Runner"


def test_developer_alone_falls_back_to_subject():
    content = "<div>By Nebula Games for iOS</div>"
    assert resolve_app_name("Shiny Widgets", content) == "Shiny Widgets"


# ============================================================================
# Fallback
# ============================================================================


def test_fallback_strips_punctuation():
    assert resolve_app_name("Shiny \U0001F680 Widgets!!", "") == "Shiny Widgets"


def test_fallback_over_cap_is_unknown():
    subject = "Supercalifragilistic Expialidocious Extravaganza"
    assert len(subject) >= NameLengthCap.FALLBACK
    assert resolve_app_name(subject, "") == UNKNOWN_APP


# ============================================================================
# Helpers and rule objects
# ============================================================================


def test_strip_stop_words():
    assert strip_stop_words("You're invited to test Harbor") == "Harbor"
    assert strip_stop_words("The Beta for iOS") == ""


def test_normalize_app_name():
    assert normalize_app_name("  hello   WORLD ") == "Hello World"
    assert normalize_app_name("nebula games + cosmo runner") == "Nebula Games + Cosmo Runner"


def test_pattern_rule_rejects_long_candidates():
    rule = PatternRule("title", r"<title>([^<]+)</title>", NameSource.CONTENT, 10)
    assert rule.extract("", "<title>Short</title>") == "Short"
    assert rule.extract("", "<title>Much Too Long Name</title>") is None


def test_pattern_rule_requires_a_letter():
    rule = PatternRule("title", r"<title>([^<]+)</title>", NameSource.CONTENT, 50)
    assert rule.extract("", "<title>2025 - 11</title>") is None


def test_subject_rule_ignores_content():
    rule = PatternRule("has_invited", r"^(.+?)\s+has invited you to test", NameSource.SUBJECT, 100)
    assert rule.extract("", "Acme has invited you to test") is None


def test_rule_names_are_unique():
    names = [rule.name for rule in CONTENT_RULES + SUBJECT_RULES]
    assert len(names) == len(set(names))
