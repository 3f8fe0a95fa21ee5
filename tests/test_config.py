import pytest

from wikinotif.config import (
    ConfigurationError,
    WikiNotifSettings,
    get_settings,
    load_settings,
    parse_addresses,
    parse_targets,
)


def test_parse_targets_mixes_ids_and_names():
    assert parse_targets("Admin, 42 ,, Some_User") == ["Admin", 42, "Some_User"]
    assert parse_targets(None) == []


def test_parse_addresses_rejects_garbage():
    assert parse_addresses("a@example.org,b@example.org") == ["a@example.org", "b@example.org"]
    with pytest.raises(ConfigurationError):
        parse_addresses("not-an-address")


def test_load_settings_defaults(monkeypatch, tmp_path):
    for name in ("WIKINOTIF_SENDER", "PASSWORD_SENDER", "SMTP_HOST", "DATABASE_URL", "WIKINOTIF_TARGETS",
                 "WIKINOTIF_NEW_USER_GROUPS", "WIKINOTIF_NEW_REV_GROUPS", "SMTP_PORT", "USERS_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("WIKI_SERVER", "https://wiki.example.org")
    monkeypatch.setenv("DATA_DIR", str(tmp_path))

    settings = load_settings()

    assert settings.password_sender == "apache@wiki.example.org"
    assert settings.sender is None
    assert settings.notify_groups == {"new-user": ["sysop"], "new-rev": ["sysop", "editor"]}
    assert settings.smtp.port == 587
    assert settings.users_file == str(tmp_path / "users.json")


def test_load_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("WIKINOTIF_TARGETS", "Admin,7")
    monkeypatch.setenv("WIKINOTIF_EXTERNAL_ADDRESSES", "list@example.org")
    monkeypatch.setenv("WIKINOTIF_NEW_REV_GROUPS", "sysop, editor, patroller")
    monkeypatch.setenv("WIKI_EMAIL_AUTHENTICATION", "off")
    monkeypatch.setenv("SMTP_PORT", "2525")
    monkeypatch.setenv("WIKI_CONTENT_LANGUAGE", "FR")

    settings = load_settings()

    assert settings.targets == ["Admin", 7]
    assert settings.external_addresses == ["list@example.org"]
    assert settings.notify_groups["new-rev"] == ["sysop", "editor", "patroller"]
    assert settings.email_authentication is False
    assert settings.smtp.port == 2525
    assert settings.content_language == "fr"


@pytest.mark.parametrize("name, value", [("SMTP_PORT", "abc"), ("SMTP_USE_TLS", "maybe")])
def test_bad_values_raise_configuration_error(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError):
        load_settings()


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setenv("WIKI_SITENAME", "First")
    first = get_settings()
    monkeypatch.setenv("WIKI_SITENAME", "Second")
    assert get_settings() is first


def test_configured_groups_puts_sysop_and_editor_first():
    settings = WikiNotifSettings(notify_groups={"new-user": ["patroller", "sysop"], "new-rev": ["editor"]})
    assert settings.configured_groups() == ["sysop", "editor", "patroller"]


def test_page_url_uses_article_path():
    settings = WikiNotifSettings(server="https://wiki.example.org/", article_path="/index.php?title=$1")
    assert settings.page_url("Main Page") == "https://wiki.example.org/index.php?title=Main_Page"


def test_groups_for_unknown_event():
    with pytest.raises(ValueError):
        WikiNotifSettings().groups_for("deleted-page")
