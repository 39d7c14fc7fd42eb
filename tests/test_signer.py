import hashlib
import hmac

from qrlock.services.signer import TokenSigner, link_message, stateful_message


def test_stateful_signature_is_hex_hmac_of_id_and_exp():
    signer = TokenSigner('k' * 32)
    expected = hmac.new(b'k' * 32, b'qr-1:1700000000', hashlib.sha256).hexdigest()
    assert stateful_message('qr-1', 1700000000) == 'qr-1:1700000000'
    assert signer.sign_stateful('qr-1', 1700000000) == expected


def test_stateful_verify_rejects_changed_fields_and_other_keys():
    signer = TokenSigner('k' * 32)
    sig = signer.sign_stateful('qr-1', 100)
    assert signer.verify_stateful('qr-1', 100, sig)
    assert not signer.verify_stateful('qr-1', 101, sig)
    assert not signer.verify_stateful('qr-2', 100, sig)
    assert not TokenSigner('x' * 32).verify_stateful('qr-1', 100, sig)


def test_verify_rejects_missing_or_non_string_signature():
    signer = TokenSigner('k' * 32)
    assert not signer.verify('m', None)
    assert not signer.verify('m', '')
    assert not signer.verify('m', 1234)


def test_link_message_is_ordered_compact_json_without_absent_fields():
    payload = {'exp': 5, 'qrId': 'q', 'phone': None, 'issuerId': 'u', 'type': 'PARENT_LINK', 'extra': 'x'}
    assert link_message(payload) == '{"type":"PARENT_LINK","issuerId":"u","qrId":"q","exp":5}'


def test_link_message_keeps_non_ascii_names():
    msg = link_message({'type': 'CHILD_REGISTRATION', 'issuerId': 'u', 'issuerName': '민지', 'qrId': 'q', 'exp': 1})
    assert '"issuerName":"민지"' in msg


def test_link_signature_detects_field_change():
    signer = TokenSigner('k' * 32)
    payload = {'type': 'CHILD_REGISTRATION', 'issuerId': 'u', 'issuerName': 'Minji', 'birthYear': 2015,
               'qrId': 'q', 'exp': 10}
    sig = signer.sign_link(payload)
    assert signer.verify_link(dict(payload), sig)
    assert not signer.verify_link({**payload, 'birthYear': 2014}, sig)
    assert not signer.verify_link({**payload, 'phone': '010'}, sig)
