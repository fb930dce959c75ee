import pytest
from pydantic import ValidationError

from config.schema import ModelConfig, SandboxConfig, SeeqSettings


def test_defaults():
    settings = SeeqSettings()
    assert settings.sandbox.root == "~/seeq/sandbox"
    assert settings.sandbox.strict_paths is False
    assert settings.storage.db_path == "~/.seeq/seeq.db"
    assert settings.history.list_limit == 20
    assert settings.model.temperatures.retrieval == 0.5
    assert settings.model.temperatures.summary == 0.3


def test_explicit_audit_log(tmp_path):
    cfg = SandboxConfig(root=str(tmp_path), audit_log=str(tmp_path / "ops.log"))
    assert cfg.audit_log_path == tmp_path / "ops.log"


def test_empty_root_rejected():
    with pytest.raises(ValidationError):
        SandboxConfig(root="  ")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("http://h:1", "http://h:1/v1"),
        ("http://h:1/", "http://h:1/v1"),
        ("http://h:1/v1", "http://h:1/v1"),
        (None, None),
    ],
)
def test_base_url_normalized(raw, expected):
    assert ModelConfig(base_url=raw).base_url == expected


def test_temperature_bounds():
    with pytest.raises(ValidationError):
        ModelConfig(temperatures={"indexing": 3.0})
