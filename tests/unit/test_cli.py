"""Tests for the keyguard command line."""

import pytest
from typer.testing import CliRunner

from keyguard_engine.cli import app
from keyguard_engine.crypto import codec


runner = CliRunner()


@pytest.fixture(autouse=True)
def fresh_singletons(monkeypatch):
    monkeypatch.setenv("KEYGUARD_API_KEY", "test-admin-api-key")
    from keyguard_engine.common.config import get_settings
    from keyguard_engine.deps import reset_singletons
    get_settings.cache_clear()
    reset_singletons()
    yield
    get_settings.cache_clear()
    reset_singletons()


class TestGeneratorsCommand:
    def test_lists_builtins(self):
        result = runner.invoke(app, ["generators"])
        assert result.exit_code == 0
        assert "opaque-hash.v1" in result.output
        assert "signed-payload.v2" in result.output


class TestInspectCommand:
    def test_v1_key(self):
        result = runner.invoke(
            app, ["inspect", "PFX-112233-445566-778899-AABBCC", "--generator", "opaque-hash.v1"],
        )
        assert result.exit_code == 0
        assert "AABBCC" in result.output

    def test_unrecognised_key(self):
        result = runner.invoke(app, ["inspect", "garbage"])
        assert result.exit_code == 1

    def test_unknown_generator(self):
        result = runner.invoke(app, ["inspect", "x", "--generator", "nope"])
        assert result.exit_code == 1


class TestEncryptDeviceInfoCommand:
    def test_prints_decryptable_transport(self):
        result = runner.invoke(app, ["encrypt-device-info", "--secret", "s3cret"])
        assert result.exit_code == 0
        transport = result.output.strip().splitlines()[-1]
        info = codec.decrypt(transport, "s3cret")
        assert len(info["deviceId"]) == 64

    def test_unknown_method(self):
        result = runner.invoke(app, ["encrypt-device-info", "--secret", "s", "--method", "des"])
        assert result.exit_code == 1
