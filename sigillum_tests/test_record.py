from datetime import datetime, timedelta, timezone

import pytest
from asn1crypto import algos
from pyhanko.pdf_utils import generic
from pyhanko.pdf_utils.generic import pdf_name, pdf_string

from sigillum.errors import CorruptSignatureLocationError, SignatureRecordError
from sigillum.sign.algorithms import RSAPKCS1v15Mechanism
from sigillum.sign.record import (
    RECORD_TYPE,
    SignatureRecord,
    SignedPayload,
    read_byte_range,
)

TIMESTAMP = datetime(2026, 10, 16, 9, 30, tzinfo=timezone.utc)


def _record(**kwargs):
    params = dict(
        signer_name='Alice',
        timestamp=TIMESTAMP,
        signature=b'\x01\x02\x03',
        digest_algorithm='sha256',
        signature_mechanism=RSAPKCS1v15Mechanism.for_digest(
            'sha256'
        ).algorithm_id,
        content_digest=b'\xab' * 32,
        byte_range=(0, 1234),
    )
    params.update(kwargs)
    return SignatureRecord(**params)


def test_record_pdf_object():
    record = _record(extra='Approved')
    obj = record.as_pdf_object()
    assert obj['/Type'] == RECORD_TYPE
    assert obj['/Name'] == 'Alice'
    assert obj['/M'] == 'D:20261016093000Z'
    assert obj['/Extra'] == 'Approved'
    assert obj['/DigestMethod'] == '/SHA256'
    assert list(obj['/ByteRange']) == [0, 1234]

    reloaded = SignatureRecord.from_pdf_object(obj)
    assert reloaded == record
    assert reloaded.signed_payload() == record.signed_payload()


def test_record_without_extra():
    record = _record()
    obj = record.as_pdf_object()
    assert '/Extra' not in obj
    assert SignatureRecord.from_pdf_object(obj).extra == ''


def test_record_unicode_name():
    record = _record(signer_name='Zoë Ünal', extra='日本語')
    reloaded = SignatureRecord.from_pdf_object(record.as_pdf_object())
    assert reloaded.signer_name == 'Zoë Ünal'
    assert reloaded.extra == '日本語'


def test_timestamp_normalised_to_utc():
    cet = timezone(timedelta(hours=2))
    record = _record(timestamp=TIMESTAMP.astimezone(cet))
    assert record.timestamp_iso == '2026-10-16T09:30:00+00:00'
    reloaded = SignatureRecord.from_pdf_object(record.as_pdf_object())
    assert reloaded.timestamp.utcoffset() == timedelta(0)
    assert reloaded.timestamp == TIMESTAMP


def test_signed_payload_binds_fields():
    record = _record()
    payload = SignedPayload.load(record.signed_payload())
    assert payload['signer_name'].native == 'Alice'
    assert payload['signed_length'].native == 1234
    assert payload['digest_algorithm']['algorithm'].native == 'sha256'
    assert payload['content_digest'].native == b'\xab' * 32
    assert payload['signing_time'].native == TIMESTAMP

    assert _record(extra='x').signed_payload() != record.signed_payload()
    assert (
        _record(byte_range=(0, 1235)).signed_payload()
        != record.signed_payload()
    )


@pytest.mark.parametrize(
    'key', ['/Name', '/M', '/DigestMethod', '/SigMechanism', '/Contents',
            '/ContentDigest']
)
def test_missing_entry(key):
    obj = _record().as_pdf_object()
    del obj[key]
    with pytest.raises(SignatureRecordError):
        SignatureRecord.from_pdf_object(obj)


def test_wrong_type():
    obj = _record().as_pdf_object()
    obj['/Type'] = pdf_name('/Sig')
    with pytest.raises(SignatureRecordError):
        SignatureRecord.from_pdf_object(obj)


def test_not_a_dictionary():
    with pytest.raises(SignatureRecordError):
        SignatureRecord.from_pdf_object(generic.ArrayObject())


def test_bad_date():
    obj = _record().as_pdf_object()
    obj['/M'] = pdf_string('yesterday')
    with pytest.raises(SignatureRecordError, match='signing time'):
        SignatureRecord.from_pdf_object(obj)


def test_date_without_offset():
    obj = _record().as_pdf_object()
    obj['/M'] = pdf_string('D:20261016093000')
    with pytest.raises(SignatureRecordError, match='UTC offset'):
        SignatureRecord.from_pdf_object(obj)


def test_unsupported_digest():
    obj = _record().as_pdf_object()
    obj['/DigestMethod'] = pdf_name('/MD5')
    with pytest.raises(SignatureRecordError, match='md5'):
        SignatureRecord.from_pdf_object(obj)


def test_digest_mechanism_disagreement():
    obj = _record().as_pdf_object()
    obj['/DigestMethod'] = pdf_name('/SHA512')
    with pytest.raises(SignatureRecordError, match='declares'):
        SignatureRecord.from_pdf_object(obj)


def test_garbage_mechanism():
    obj = _record().as_pdf_object()
    obj['/SigMechanism'] = generic.ByteStringObject(b'\x30\x03\x02\x01')
    with pytest.raises(SignatureRecordError):
        SignatureRecord.from_pdf_object(obj)


def test_unsupported_mechanism():
    obj = _record().as_pdf_object()
    sha1 = algos.SignedDigestAlgorithm({'algorithm': 'sha1_rsa'})
    obj['/SigMechanism'] = generic.ByteStringObject(sha1.dump())
    with pytest.raises(SignatureRecordError):
        SignatureRecord.from_pdf_object(obj)


def test_contents_not_a_string():
    obj = _record().as_pdf_object()
    obj['/Contents'] = generic.NumberObject(1)
    with pytest.raises(SignatureRecordError):
        SignatureRecord.from_pdf_object(obj)


@pytest.mark.parametrize(
    'byte_range',
    [
        [0],
        [0, 100, 200, 300],
        [5, 100],
        [0, generic.FloatObject(1.5)],
        [0, pdf_name('/X')],
    ],
)
def test_bad_byte_range(byte_range):
    obj = _record().as_pdf_object()
    obj['/ByteRange'] = generic.ArrayObject(byte_range)
    with pytest.raises(CorruptSignatureLocationError):
        read_byte_range(obj)
    with pytest.raises(CorruptSignatureLocationError):
        SignatureRecord.from_pdf_object(obj)


def test_missing_byte_range():
    obj = _record().as_pdf_object()
    del obj['/ByteRange']
    with pytest.raises(CorruptSignatureLocationError):
        read_byte_range(obj)


def test_byte_range_not_an_array():
    obj = _record().as_pdf_object()
    obj['/ByteRange'] = generic.NumberObject(1234)
    with pytest.raises(CorruptSignatureLocationError):
        read_byte_range(obj)
