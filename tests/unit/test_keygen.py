"""Tests for the opaque-hash (v1) and signed-payload (v2) key generators."""

import base64
import hmac
import json
import re
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from keyguard_engine.keygen.base import hmac_sha256_hex, normalize_prefix
from keyguard_engine.keygen.opaque import OpaqueHashGenerator
from keyguard_engine.keygen.signed import SignedPayloadGenerator


SECRET = "project-secret-for-tests"


def make_project(project_id="proj-1", slug="acme", secret_key=SECRET):
    return SimpleNamespace(id=project_id, slug=slug, secret_key=secret_key)


def make_user(user_id="user-1", email="alice@example.com"):
    return SimpleNamespace(id=user_id, email=email)


def _sign_payload(payload: dict, secret: str = SECRET, prefix: str = "PFX2") -> str:
    encoded = base64.b64encode(json.dumps(payload, separators=(",", ":")).encode()).decode()
    return f"{prefix}-{encoded}.{hmac_sha256_hex(encoded, secret)[:16]}"


class TestNormalizePrefix:
    def test_default_when_missing(self):
        assert normalize_prefix(None) == "PFX"
        assert normalize_prefix("") == "PFX"

    def test_uppercased_and_cleaned(self):
        assert normalize_prefix("ac-me") == "ACME"

    def test_default_when_nothing_left(self):
        assert normalize_prefix("--") == "PFX"


# ── v1 ──


class TestOpaqueHashGenerator:
    def test_generate_shape(self):
        gen = OpaqueHashGenerator(make_project())
        result = gen.generate(make_user())
        assert re.fullmatch(r"PFX-[A-F0-9]{6}(-[A-F0-9]{6}){3}", result.key)
        assert result.version == "v1"
        assert result.format == "PFX-XXXXXX-XXXXXX-XXXXXX-XXXXXX"
        assert result.metadata["segments"] == 4
        assert result.metadata["segment_length"] == 6
        assert result.key[4:10] == result.metadata["hash"][:6].upper()

    def test_keys_are_random(self):
        gen = OpaqueHashGenerator(make_project())
        assert gen.generate(make_user()).key != gen.generate(make_user()).key

    def test_generated_key_validates(self):
        gen = OpaqueHashGenerator(make_project())
        assert gen.validate(gen.generate(make_user()).key, {})

    def test_well_formed_key_accepted_for_any_project(self):
        key = "PFX-112233-445566-778899-AABBCC"
        assert OpaqueHashGenerator(make_project()).validate(key, {})
        other = make_project(project_id="proj-2", secret_key="unrelated")
        assert OpaqueHashGenerator(other).validate(key, {})

    def test_rejects_lowercase_and_bad_shapes(self):
        gen = OpaqueHashGenerator(make_project())
        assert not gen.validate("PFX-112233-445566-778899-aabbcc", {})
        assert not gen.validate("PFX-112233-445566-778899", {})
        assert not gen.validate("PFX-112233-445566-778899-AABBCC-DDEEFF", {})
        assert not gen.validate("XYZ-112233-445566-778899-AABBCC", {})
        assert not gen.validate("PFX-112233-445566-778899-AABBCC\n", {})
        assert not gen.validate(None, {})

    def test_custom_prefix(self):
        gen = OpaqueHashGenerator(make_project(), {"prefix": "acm"})
        key = gen.generate(make_user()).key
        assert key.startswith("ACM-")
        assert gen.validate(key, {})
        assert not OpaqueHashGenerator(make_project()).validate(key, {})

    def test_decode(self):
        gen = OpaqueHashGenerator(make_project())
        decoded = gen.decode("PFX-112233-445566-778899-AABBCC")
        assert decoded == {
            "version": "v1",
            "prefix": "PFX",
            "segments": ["112233", "445566", "778899", "AABBCC"],
            "format": "PFX-XXXXXX-XXXXXX-XXXXXX-XXXXXX",
        }

    def test_decode_garbage(self):
        assert OpaqueHashGenerator(make_project()).decode("nope") is None


# ── v2 ──


class TestSignedPayloadGenerator:
    def test_generate_shape(self):
        gen = SignedPayloadGenerator(make_project())
        result = gen.generate(make_user())
        assert re.fullmatch(r"PFX2-[A-Za-z0-9+/=]+\.[a-f0-9]{16}", result.key)
        assert result.version == "v2"
        assert result.format == "PFX2-{BASE64_PAYLOAD}.{SIGNATURE}"
        payload = result.metadata["payload"]
        assert payload["project_id"] == "proj-1"
        assert payload["project_slug"] == "acme"
        assert payload["user_id"] == "user-1"
        assert payload["user_email"] == "alice@example.com"
        assert payload["version"] == "v2"
        assert len(payload["random"]) == 32
        assert result.key.endswith(result.metadata["full_signature"][:16])

    def test_generated_key_validates(self):
        gen = SignedPayloadGenerator(make_project())
        assert gen.validate(gen.generate(make_user()).key, {})

    def test_two_keys_for_same_user_differ(self):
        gen = SignedPayloadGenerator(make_project())
        assert gen.generate(make_user()).key != gen.generate(make_user()).key

    def test_rejected_by_project_with_other_secret(self):
        key = SignedPayloadGenerator(make_project()).generate(make_user()).key
        other = make_project(project_id="proj-2", secret_key="other-secret")
        assert not SignedPayloadGenerator(other).validate(key, {})

    def test_rejected_by_other_project_sharing_secret(self):
        key = SignedPayloadGenerator(make_project()).generate(make_user()).key
        other = make_project(project_id="proj-2", slug="other")
        assert not SignedPayloadGenerator(other).validate(key, {})

    def test_flipped_signature_char_rejected(self):
        gen = SignedPayloadGenerator(make_project())
        key = gen.generate(make_user()).key
        last = key[-1]
        tampered = key[:-1] + ("0" if last != "0" else "1")
        assert not gen.validate(tampered, {})

    def test_tampered_payload_rejected(self):
        gen = SignedPayloadGenerator(make_project())
        key = gen.generate(make_user()).key
        encoded, signature = key[len("PFX2-"):].split(".")
        payload = json.loads(base64.b64decode(encoded))
        payload["user_email"] = "mallory@example.com"
        forged = base64.b64encode(json.dumps(payload, separators=(",", ":")).encode()).decode()
        assert not gen.validate(f"PFX2-{forged}.{signature}", {})

    def test_missing_project_id_rejected(self):
        key = _sign_payload({"user_id": "user-1", "version": "v2", "random": "ab"})
        assert not SignedPayloadGenerator(make_project()).validate(key, {})

    def test_wrong_payload_version_rejected(self):
        key = _sign_payload({"project_id": "proj-1", "version": "v1"})
        assert not SignedPayloadGenerator(make_project()).validate(key, {})

    def test_signed_non_json_payload_rejected(self):
        encoded = base64.b64encode(b"not json").decode()
        key = f"PFX2-{encoded}.{hmac_sha256_hex(encoded, SECRET)[:16]}"
        assert not SignedPayloadGenerator(make_project()).validate(key, {})

    def test_malformed_keys_rejected(self):
        gen = SignedPayloadGenerator(make_project())
        for key in ("", "PFX2-", "PFX2-abc", "PFX-abc.0123456789abcdef", "PFX2-abc.XYZ", None):
            assert not gen.validate(key, {})

    def test_signature_compared_in_constant_time(self):
        gen = SignedPayloadGenerator(make_project())
        key = gen.generate(make_user()).key
        with patch(
            "keyguard_engine.keygen.signed.hmac.compare_digest",
            wraps=hmac.compare_digest,
        ) as compare:
            assert gen.validate(key, {})
        compare.assert_called_once()
        expected, provided = compare.call_args.args
        assert provided == key.rsplit(".", 1)[1]

    def test_custom_prefix(self):
        gen = SignedPayloadGenerator(make_project(), {"prefix": "acme"})
        key = gen.generate(make_user()).key
        assert key.startswith("ACME2-")
        assert gen.validate(key, {})

    def test_decode_returns_claims_without_checking_signature(self):
        gen = SignedPayloadGenerator(make_project())
        key = gen.generate(make_user()).key
        tampered = key[:-1] + ("0" if key[-1] != "0" else "1")
        decoded = gen.decode(tampered)
        assert decoded["project_id"] == "proj-1"
        assert decoded["user_email"] == "alice@example.com"
        assert decoded["signature"] == tampered.rsplit(".", 1)[1]

    def test_decode_garbage(self):
        assert SignedPayloadGenerator(make_project()).decode("PFX2-%%%.abc") is None

    def test_deeply_nested_payload_rejected_without_raising(self):
        gen = SignedPayloadGenerator(make_project())
        encoded = base64.b64encode(b"[" * 100000 + b"]" * 100000).decode()
        assert gen.decode(f"PFX2-{encoded}.0123456789abcdef") is None
        signed = f"PFX2-{encoded}.{hmac_sha256_hex(encoded, SECRET)[:16]}"
        assert not gen.validate(signed, {})
