"""
Issuance tests
Tests for core/issuance/issuer.py

- Issued records hold no plaintext and decrypt for the holder only
- Missing fields are all reported at once
- The issuer signature binds the credential content
"""
import logging

import pytest

from core.crypto.envelope import decrypt_attributes, decrypt_key_from_holder
from core.crypto.hashing import compute_commitment, hash_attributes
from core.crypto.signatures import sign_message_hash
from core.issuance.issuer import issue_credential, prepare_credential
from core.schemas.credential import CredentialData
from core.schemas.errors import (
    AuthenticationError,
    InvalidSignatureError,
    MissingFieldError,
    ValidationException,
)
from fixtures.common import make_attributes, make_credential_data


class TestIssueCredential:

    def test_happy_path(self, issuer, holder):
        attributes = make_attributes()
        data = make_credential_data(issuer, holder, attributes=attributes)

        issued = issue_credential(data, issuer.public_key)

        assert issued.credential_id == "cred-001"
        assert issued.holder_public_key == holder.public_key
        assert issued.attributes_hash == hash_attributes(attributes)
        assert issued.commitment == compute_commitment(
            "cred-001", holder.public_key, issued.attributes_hash, issued.salt
        )
        assert set(issued.attribute_salts) == set(attributes)
        assert len(set(issued.attribute_salts.values())) == len(attributes)

    def test_holder_can_decrypt(self, issuer, holder):
        attributes = make_attributes(name="Zoë")
        issued = issue_credential(make_credential_data(issuer, holder, attributes=attributes), issuer.public_key)

        key = decrypt_key_from_holder(issued.encrypted_key, holder.private_key)
        enc = issued.encrypted_attributes
        assert decrypt_attributes(enc.ciphertext, key, enc.iv, enc.auth_tag) == attributes

    def test_other_key_cannot_decrypt(self, issuer, holder):
        issued = issue_credential(make_credential_data(issuer, holder), issuer.public_key)
        with pytest.raises(AuthenticationError):
            decrypt_key_from_holder(issued.encrypted_key, issuer.private_key)

    def test_no_plaintext_in_record(self, issuer, holder):
        issued = issue_credential(
            make_credential_data(issuer, holder, attributes=make_attributes(name="Secret Name")),
            issuer.public_key,
        )
        assert "Secret Name" not in issued.model_dump_json()

    def test_accepts_wire_mapping(self, issuer, holder):
        wire = make_credential_data(issuer, holder).to_wire()
        issued = issue_credential(wire, issuer.public_key)
        assert issued.credential_id == "cred-001"

    def test_commitments_are_salted(self, issuer, holder):
        data = make_credential_data(issuer, holder)
        assert issue_credential(data, issuer.public_key).commitment != \
            issue_credential(data, issuer.public_key).commitment

    def test_attribute_values_not_logged(self, issuer, holder, caplog):
        caplog.set_level(logging.DEBUG)
        issue_credential(
            make_credential_data(issuer, holder, attributes=make_attributes(name="Hidden Holder")),
            issuer.public_key,
        )
        assert "Hidden Holder" not in caplog.text


class TestMissingFields:

    def test_all_missing_fields_reported(self):
        with pytest.raises(MissingFieldError) as exc:
            issue_credential(CredentialData(credential_id="c1"), None)
        assert exc.value.missing == [
            "holder_public_key", "attributes", "issuer_signed_message", "issuer_address",
        ]
        assert exc.value.details["credential_id"] == "c1"

    def test_empty_string_counts_as_missing(self, issuer, holder):
        data = make_credential_data(issuer, holder).model_copy(update={"credential_id": ""})
        with pytest.raises(MissingFieldError) as exc:
            issue_credential(data, issuer.public_key)
        assert exc.value.missing == ["credential_id"]

    def test_malformed_mapping(self, issuer):
        with pytest.raises(ValidationException):
            issue_credential({"credentialId": "c1", "bogus": True}, issuer.public_key)


class TestIssuerSignature:

    def test_wrong_issuer_rejected(self, issuer, holder):
        data = make_credential_data(issuer, holder)
        with pytest.raises(InvalidSignatureError):
            issue_credential(data, holder.public_key)

    def test_signature_binds_attributes(self, issuer, holder):
        data = make_credential_data(issuer, holder)
        tampered = data.model_copy(update={"attributes": make_attributes(name="Mallory")})
        with pytest.raises(InvalidSignatureError):
            issue_credential(tampered, issuer.public_key)

    def test_signature_binds_holder(self, issuer, holder):
        other = prepare_credential("cred-001", issuer.public_key, make_attributes(), issuer.private_key)
        data = make_credential_data(issuer, holder)
        swapped = data.model_copy(update={"issuer_signed_message": other.issuer_signed_message})
        with pytest.raises(InvalidSignatureError):
            issue_credential(swapped, issuer.public_key)

    def test_signature_over_arbitrary_digest_rejected(self, issuer, holder):
        data = make_credential_data(issuer, holder)
        forged = sign_message_hash("0x" + "11" * 32, issuer.private_key)
        with pytest.raises(InvalidSignatureError):
            issue_credential(data.model_copy(update={"issuer_signed_message": forged}), issuer.public_key)

    def test_invalid_holder_key_rejected(self, issuer):
        data = prepare_credential("cred-001", "0x04" + "00" * 64, make_attributes(), issuer.private_key)
        with pytest.raises(ValidationException, match="secp256k1"):
            issue_credential(data, issuer.public_key)
