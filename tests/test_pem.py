import base64

import pytest

from ecsigtool import asn1
from ecsigtool.pem import (InvalidKeyFormat, KeyMaterial, UnsupportedAlgorithm,
                           UnsupportedCurve, extract_key, read_public, unwrap)
from vectors import (P256_D, P256_EC_PARAMETERS_PEM, P256_PKCS8_PEM,
                     P256_PUBLIC_PEM, P256_SEC1_PEM,
                     P256_SPKI_DER, P256_X, P256_Y, P384_D, P384_PKCS8_PEM,
                     P384_PUBLIC_PEM, P384_X, P384_Y, RSA_PUBLIC_PEM)


def to_pem(der, label):
    body = base64.b64encode(der).decode('ascii')
    lines = [body[i:i + 64] for i in range(0, len(body), 64)]
    return '\n'.join(['-----BEGIN {}-----'.format(label)] + lines +
                     ['-----END {}-----'.format(label)])


def test_private_key_known_vector():
    material = extract_key(P256_PKCS8_PEM)
    assert material.private
    assert material.curve == 'secp256r1'
    assert len(material) == 96
    assert material.data[0:32] == P256_D
    assert material.data[32:64] == P256_X
    assert material.data[64:96] == P256_Y


def test_public_key_known_vector():
    material = extract_key(P256_PUBLIC_PEM)
    assert not material.private
    assert material.data == P256_X + P256_Y
    assert material.d is None


def test_sec1_private_key():
    assert extract_key(P256_SEC1_PEM).data == P256_D + P256_X + P256_Y


def test_rsa_label_uses_private_path():
    pem = P256_PKCS8_PEM.replace('PRIVATE KEY', 'RSA PRIVATE KEY')
    assert extract_key(pem).data == P256_D + P256_X + P256_Y


def test_p384_width_from_curve():
    material = extract_key(P384_PKCS8_PEM)
    assert material.width == 48
    assert material.data == P384_D + P384_X + P384_Y
    assert extract_key(P384_PUBLIC_PEM).data == P384_X + P384_Y


def test_extraction_is_idempotent():
    assert extract_key(P256_PKCS8_PEM).data == \
        extract_key(P256_PKCS8_PEM).data


def test_surrounding_whitespace_and_crlf():
    pem = '\n  ' + P256_PUBLIC_PEM.replace('\n', '\r\n') + '  \n'
    assert extract_key(pem).data == P256_X + P256_Y


def test_unwrap_ignores_label_wording():
    label, der = unwrap(to_pem(P256_SPKI_DER, 'SOMETHING ELSE'))
    assert label == 'SOMETHING ELSE'
    assert der == P256_SPKI_DER


@pytest.mark.parametrize('text', ['', '   \n', None])
def test_empty_text(text):
    with pytest.raises(InvalidKeyFormat):
        extract_key(text)


def test_missing_frame():
    with pytest.raises(InvalidKeyFormat):
        extract_key(base64.b64encode(P256_SPKI_DER).decode('ascii'))


def test_bad_base64():
    with pytest.raises(InvalidKeyFormat):
        extract_key('-----BEGIN PUBLIC KEY-----\n!!!!\n-----END PUBLIC KEY-----')


def test_rsa_public_key_rejected():
    with pytest.raises(UnsupportedAlgorithm):
        extract_key(RSA_PUBLIC_PEM)


def test_substituted_rsa_oid_rejected():
    spki = asn1.parse(P256_SPKI_DER)
    alg_id = asn1.Sequence([asn1.ObjectIdentifier('1.2.840.113549.1.1.1'),
                            spki[0][1]])
    der = asn1.encode(asn1.Sequence([alg_id, spki[1]]))
    with pytest.raises(UnsupportedAlgorithm):
        extract_key(to_pem(der, 'PUBLIC KEY'))


def test_unknown_curve_rejected():
    spki = asn1.parse(P256_SPKI_DER)
    alg_id = asn1.Sequence([spki[0][0],
                            asn1.ObjectIdentifier('1.3.36.3.3.2.8.1.1.7')])
    der = asn1.encode(asn1.Sequence([alg_id, spki[1]]))
    with pytest.raises(UnsupportedCurve) as e:
        read_public(der)
    assert '1.3.36.3.3.2.8.1.1.7' in str(e.value)


def test_unknown_sec1_curve_named_in_error():
    sec1 = asn1.parse(unwrap(P256_SEC1_PEM)[1])
    params = asn1.ContextTagged(
        0, [asn1.ObjectIdentifier('1.3.36.3.3.2.8.1.1.7')])
    der = asn1.encode(asn1.Sequence([sec1[0], sec1[1], params, sec1[3]]))
    with pytest.raises(UnsupportedCurve) as e:
        extract_key(to_pem(der, 'EC PRIVATE KEY'))
    assert '1.3.36.3.3.2.8.1.1.7' in str(e.value)


def test_truncated_key_propagates_reader_error():
    with pytest.raises(asn1.TruncatedLength):
        extract_key(to_pem(P256_SPKI_DER[:-10], 'PUBLIC KEY'))


def test_short_sequence_rejected():
    spki = asn1.parse(P256_SPKI_DER)
    der = asn1.encode(asn1.Sequence([spki[0]]))
    with pytest.raises(InvalidKeyFormat):
        read_public(der)


def test_compressed_point_rejected():
    spki = asn1.parse(P256_SPKI_DER)
    bits = asn1.BitString(b'\x00\x02' + P256_X)
    der = asn1.encode(asn1.Sequence([spki[0], bits]))
    with pytest.raises(InvalidKeyFormat):
        read_public(der)


def test_wrong_point_length_rejected():
    spki = asn1.parse(P256_SPKI_DER)
    bits = asn1.BitString(spki[1].data + b'\x00')
    der = asn1.encode(asn1.Sequence([spki[0], bits]))
    with pytest.raises(InvalidKeyFormat):
        read_public(der)


def sec1(d, point_field=True):
    children = [asn1.Integer(b'\x01'), asn1.OctetString(d),
                asn1.ContextTagged(0, [asn1.ObjectIdentifier(
                    '1.2.840.10045.3.1.7')])]
    if point_field:
        children.append(asn1.ContextTagged(1, [
            asn1.BitString(b'\x00\x04' + P256_X + P256_Y)]))
    return to_pem(asn1.encode(asn1.Sequence(children)), 'EC PRIVATE KEY')


def test_short_scalar_is_left_padded():
    d = b'\x01\x02\x03'
    material = extract_key(sec1(d))
    assert material.d == bytes(29) + d


def test_zero_prefixed_scalar_is_trimmed():
    assert extract_key(sec1(b'\x00' + P256_D)).d == P256_D


def test_oversized_scalar_rejected():
    with pytest.raises(InvalidKeyFormat):
        extract_key(sec1(b'\x01' + P256_D))


def test_private_key_without_point_rejected():
    with pytest.raises(InvalidKeyFormat):
        extract_key(sec1(P256_D, point_field=False))


def test_key_material_wipe():
    material = KeyMaterial(P256_D + P256_X + P256_Y, 'secp256r1', True)
    material.wipe()
    assert material.data == bytes(96)


def test_key_material_size_checked():
    with pytest.raises(InvalidKeyFormat):
        KeyMaterial(P256_X, 'secp256r1', False)


def test_ec_parameters_block_skipped():
    material = extract_key(P256_EC_PARAMETERS_PEM + P256_SEC1_PEM)
    assert material.private
    assert material.curve == 'secp256r1'
    assert material.data == P256_D + P256_X + P256_Y
    label, _ = unwrap(P256_EC_PARAMETERS_PEM + P256_SEC1_PEM)
    assert label == 'EC PRIVATE KEY'


def test_parameters_only_rejected():
    with pytest.raises(InvalidKeyFormat) as e:
        extract_key(P256_EC_PARAMETERS_PEM)
    assert 'EC PARAMETERS' in str(e.value)


def test_unterminated_block_rejected():
    with pytest.raises(InvalidKeyFormat):
        unwrap(P256_SEC1_PEM.replace('-----END EC PRIVATE KEY-----', ''))
