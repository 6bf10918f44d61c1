import pytest

from botdesk.__main__ import main
from botdesk.config import load_config

CONFIG_YAML = """
log_level: DEBUG
data_dir: ./var
storage:
  backend: sqlite
  db_path: ${data_dir}/botdesk.db
channels:
  whatsapp:
    verify_token: ${TEST_WA_VERIFY}
    access_token: ${TEST_WA_UNSET_TOKEN}
bot:
  confidence_threshold: 80
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return path


def test_load_config_interpolates_env_and_data_dir(config_file, tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_WA_VERIFY", "from-env")
    monkeypatch.delenv("TEST_WA_UNSET_TOKEN", raising=False)

    config = load_config(config_file, tmp_path / "missing.env")

    assert config.log_level == "DEBUG"
    assert config.storage.backend == "sqlite"
    assert config.storage.db_path == "./var/botdesk.db"
    assert config.channels.whatsapp.verify_token == "from-env"
    assert config.channels.whatsapp.access_token is None
    assert config.bot.confidence_threshold == 80
    assert config.fanout.stats_interval_seconds == 30


def test_load_config_reads_dotenv(config_file, tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_WA_VERIFY", "placeholder")
    monkeypatch.delenv("TEST_WA_VERIFY")
    env = tmp_path / ".env"
    env.write_text("TEST_WA_VERIFY=dotenv-secret\n", encoding="utf-8")

    config = load_config(config_file, env)
    assert config.channels.whatsapp.verify_token == "dotenv-secret"


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml", tmp_path / ".env")


def test_invalid_threshold_is_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("bot:\n  confidence_threshold: 120\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path, tmp_path / ".env")


def test_config_check_command(config_file, tmp_path, capsys):
    main(["config-check", "-c", str(config_file), "-e", str(tmp_path / ".env")])
    out = capsys.readouterr().out
    assert "Configuration valid" in out
    assert "sqlite" in out


def test_config_check_exits_on_error(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main(["config-check", "-c", str(tmp_path / "nope.yaml")])
    assert excinfo.value.code == 1
