import pytest

from unifi_monitor.config import DEFAULT_CATEGORIES, load_settings, read_config_file
from unifi_monitor.errors import ConfigError


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(
        "discord_webhook_url: https://discord.example/from-file\n"
        "products_file: /data/products.json\n"
        "poll_interval_seconds: 45\n"
        "categories:\n"
        "  - all-wifi\n"
        "  - all-switching\n",
        encoding="utf-8",
    )
    return path


def test_environment_wins_over_config_file(config_file):
    env = {"DISCORD_WEBHOOK_URL": "https://discord.example/from-env"}

    settings = load_settings(env=env, config_file=str(config_file))

    assert settings.discord_webhook_url == "https://discord.example/from-env"
    assert settings.products_file == "/data/products.json"


def test_config_file_is_the_fallback(config_file):
    settings = load_settings(env={}, config_file=str(config_file))

    assert settings.discord_webhook_url == "https://discord.example/from-file"
    assert settings.categories == ("all-wifi", "all-switching")
    assert settings.poll_interval_seconds == 45.0


def test_config_file_path_from_environment(config_file):
    settings = load_settings(env={"CONFIG_FILE": str(config_file)})

    assert settings.discord_webhook_url == "https://discord.example/from-file"


def test_missing_webhook_is_fatal(tmp_path):
    with pytest.raises(ConfigError):
        load_settings(env={}, config_file=str(tmp_path / "absent.yml"))


def test_blank_webhook_counts_as_missing(tmp_path):
    with pytest.raises(ConfigError):
        load_settings(env={"DISCORD_WEBHOOK_URL": "   "}, config_file=str(tmp_path / "absent.yml"))


def test_defaults(tmp_path):
    settings = load_settings(
        env={"DISCORD_WEBHOOK_URL": "https://discord.example/hook"},
        config_file=str(tmp_path / "absent.yml"),
    )

    assert settings.home_url == "https://store.ui.com/us/en"
    assert settings.products_file == "products.json"
    assert list(settings.categories) == DEFAULT_CATEGORIES
    assert settings.poll_interval_seconds == 30.0
    assert settings.error_penalty_seconds == 30.0
    assert settings.http_timeout_seconds == 10.0
    assert settings.resolve_max_attempts == 3
    assert settings.notify_rate_limit_delay_seconds == 5.0


def test_env_overrides_and_bad_numbers(tmp_path):
    env = {
        "DISCORD_WEBHOOK_URL": "https://discord.example/hook",
        "CATEGORY_IDS": "all-wifi, all-cameras-nvrs ,",
        "POLL_INTERVAL_SECONDS": "ten",
        "RESOLVE_MAX_ATTEMPTS": "5",
        "NOTIFY_MAX_ATTEMPTS": "0",
    }

    settings = load_settings(env=env, config_file=str(tmp_path / "absent.yml"))

    assert settings.categories == ("all-wifi", "all-cameras-nvrs")
    assert settings.poll_interval_seconds == 30.0
    assert settings.resolve_max_attempts == 5
    assert settings.notify_max_attempts == 1


def test_unreadable_config_file_is_ignored(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("discord_webhook_url: [unclosed\n", encoding="utf-8")

    assert read_config_file(path) == {}


def test_non_mapping_config_file_is_ignored(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    assert read_config_file(path) == {}
