"""
PEM EC key extraction

Turns PEM text holding a PKCS#8 ``PrivateKeyInfo``, a SEC1
``ECPrivateKey`` or a ``SubjectPublicKeyInfo`` into fixed-width raw key
material: ``D || X || Y`` for private keys and ``X || Y`` for public keys.
"""
# SPDX-License-Identifier: Apache-2.0
import base64
import binascii
import logging

from . import asn1

log = logging.getLogger(__name__)

EC_ALGORITHM = 'ECC'
POINT_UNCOMPRESSED = 0x04

# Bytes per coordinate, keyed by the curve OID friendly name.
CURVE_WIDTHS = {
    'secp256r1': 32,
    'secp256k1': 32,
    'secp384r1': 48,
    'secp521r1': 66,
}


class KeyFormatError(ValueError):
    pass


class InvalidKeyFormat(KeyFormatError):
    pass


class UnsupportedAlgorithm(KeyFormatError):
    pass


class UnsupportedCurve(KeyFormatError):
    pass


class KeyMaterial:
    """
    Raw key bytes ready for import.

    ``data`` is ``X || Y`` for a public key, ``D || X || Y`` for a private
    key, every field ``width`` bytes long.
    """
    def __init__(self, data, curve, private):
        self.curve = curve
        self.private = private
        self.width = curve_width(curve)
        expected = self.width * (3 if private else 2)
        if len(data) != expected:
            raise InvalidKeyFormat(
                "{} key material for {} must be {} bytes, got {}".format(
                    "Private" if private else "Public", curve, expected,
                    len(data)))
        self._data = bytearray(data)

    @property
    def data(self):
        return bytes(self._data)

    @property
    def d(self):
        if not self.private:
            return None
        return bytes(self._data[:self.width])

    @property
    def point(self):
        """Public point as ``X || Y``."""
        return bytes(self._data[-2 * self.width:])

    def wipe(self):
        for i in range(len(self._data)):
            self._data[i] = 0

    def __len__(self):
        return len(self._data)

    def __repr__(self):
        return "KeyMaterial(curve={!r}, private={!r}, size={})".format(
            self.curve, self.private, len(self._data))


def curve_width(curve):
    try:
        return CURVE_WIDTHS[curve]
    except KeyError:
        raise UnsupportedCurve("Unsupported curve {}".format(curve)) from None


def _blocks(text):
    """Yield ``(label, body_lines)`` for each BEGIN/END block."""
    label = None
    body = []
    for line in text.strip().splitlines():
        line = line.strip()
        if line.startswith('-----BEGIN'):
            if label is not None:
                raise InvalidKeyFormat("Nested BEGIN marker")
            label = line[len('-----BEGIN'):].strip('- ')
            body = []
        elif line.startswith('-----END'):
            if label is None:
                raise InvalidKeyFormat("END marker without BEGIN")
            yield label, body
            label = None
        elif label is not None:
            body.append(line)
    if label is not None:
        raise InvalidKeyFormat("Missing END marker for {}".format(label))


def unwrap(text):
    """
    Split PEM text into ``(label, der)``.

    Only the ``-----BEGIN``/``-----END`` markers matter; the label wording
    is returned for classification but not used to strip the frame. The
    first block whose label ends in ``KEY`` is used, so the ``EC
    PARAMETERS`` block ``openssl ecparam -genkey`` writes first is skipped.
    """
    if text is None or not text.strip():
        raise InvalidKeyFormat("Empty key text")
    labels = []
    for label, body in _blocks(text):
        if label.upper().endswith('KEY'):
            break
        labels.append(label)
    else:
        if labels:
            raise InvalidKeyFormat(
                "No key block in PEM text, found {}".format(', '.join(labels)))
        raise InvalidKeyFormat("Missing PEM BEGIN/END markers")
    try:
        der = base64.b64decode(''.join(body), validate=True)
    except binascii.Error as e:
        raise InvalidKeyFormat("Bad Base64 in PEM body: {}".format(e)) from e
    if not der:
        raise InvalidKeyFormat("Empty PEM body")
    return label, der


def is_pem(text):
    text = text.strip()
    return text.startswith('-----BEGIN') and text.endswith('-----')


def _expect(node, cls, what):
    if type(node) is not cls:
        raise InvalidKeyFormat(
            "Expected {} as {}, found {} at offset {}".format(
                cls.__name__, what, type(node).__name__, node.offset))
    return node


def _child(seq, index, cls, what):
    if len(seq) <= index:
        raise InvalidKeyFormat(
            "Structure at offset {} has {} elements, {} is missing".format(
                seq.offset, len(seq), what))
    return _expect(seq[index], cls, what)


def _curve_name(oid):
    """Resolve a curve OID, naming the dotted form when it is unknown."""
    if oid.name not in CURVE_WIDTHS:
        raise UnsupportedCurve("Unsupported curve {}".format(oid))
    return oid.name


def _check_algorithm(alg_id):
    """Validate an AlgorithmIdentifier and return the curve name."""
    alg = _child(alg_id, 0, asn1.ObjectIdentifier, "algorithm")
    if alg.name != EC_ALGORITHM:
        raise UnsupportedAlgorithm("Invalid key {}".format(alg))
    curve = _child(alg_id, 1, asn1.ObjectIdentifier, "curve parameters")
    return _curve_name(curve)


def _point(bits, width):
    """Strip the unused-bits byte and point marker from an EC point."""
    data = bits.data
    if len(data) < 2 or data[0] != 0:
        raise InvalidKeyFormat(
            "EC point bit string at offset {} has unused bits".format(
                bits.offset))
    if data[1] != POINT_UNCOMPRESSED:
        raise InvalidKeyFormat(
            "Only uncompressed EC points are supported, found 0x{:02x}"
            .format(data[1]))
    point = data[2:]
    if len(point) != 2 * width:
        raise InvalidKeyFormat(
            "EC point must be {} bytes, got {}".format(2 * width, len(point)))
    return point


def _scalar(octets, width):
    d = octets.data
    if len(d) > width:
        if any(d[:len(d) - width]):
            raise InvalidKeyFormat(
                "Private scalar of {} bytes does not fit {} bytes".format(
                    len(d), width))
        d = d[len(d) - width:]
    return d.rjust(width, b'\x00')


def _tagged(seq, number):
    for child in seq.children[2:]:
        if isinstance(child, asn1.ContextTagged) and child.number == number:
            return child
    return None


def _ec_private_key(seq, curve):
    """
    Unpack an ``ECPrivateKey``.

    ``curve`` comes from the PKCS#8 wrapper; for a bare SEC1 key it is None
    and is taken from the ``[0]`` parameters field.
    """
    version = _child(seq, 0, asn1.Integer, "ECPrivateKey version")
    if version.value != 1:
        raise InvalidKeyFormat(
            "Unsupported ECPrivateKey version {}".format(version.value))
    octets = _child(seq, 1, asn1.OctetString, "private key")

    params = _tagged(seq, 0)
    if params is not None:
        oid = _child(params, 0, asn1.ObjectIdentifier, "named curve")
        name = _curve_name(oid)
        if curve is None:
            curve = name
        elif name != curve:
            raise InvalidKeyFormat(
                "Curve {} does not match algorithm parameters {}".format(
                    oid.name, curve))
    if curve is None:
        raise InvalidKeyFormat("EC private key does not name its curve")

    public = _tagged(seq, 1)
    if public is None:
        raise InvalidKeyFormat("EC private key has no public point")
    width = curve_width(curve)
    bits = _child(public, 0, asn1.BitString, "public key")
    return KeyMaterial(_scalar(octets, width) + _point(bits, width),
                       curve, True)


def read_private(der):
    top = _expect(asn1.parse(der), asn1.Sequence, "private key")
    if len(top) > 1 and type(top[1]) is asn1.OctetString:
        log.debug("Reading SEC1 ECPrivateKey")
        return _ec_private_key(top, None)

    log.debug("Reading PKCS#8 PrivateKeyInfo")
    _child(top, 0, asn1.Integer, "version")
    curve = _check_algorithm(
        _child(top, 1, asn1.Sequence, "algorithm identifier"))
    octets = _child(top, 2, asn1.OctetString, "private key")
    inner = _expect(asn1.parse(octets.data), asn1.Sequence, "ECPrivateKey")
    return _ec_private_key(inner, curve)


def read_public(der):
    log.debug("Reading SubjectPublicKeyInfo")
    top = _expect(asn1.parse(der), asn1.Sequence, "public key")
    curve = _check_algorithm(
        _child(top, 0, asn1.Sequence, "algorithm identifier"))
    bits = _child(top, 1, asn1.BitString, "public key")
    return KeyMaterial(_point(bits, curve_width(curve)), curve, False)


def extract_key(text):
    """
    Extract raw EC key material from PEM text.

    Labels containing ``PRIVATE KEY`` are read as private keys, anything
    else as ``SubjectPublicKeyInfo``.
    """
    label, der = unwrap(text)
    if 'PRIVATE KEY' in label.upper():
        material = read_private(der)
    else:
        material = read_public(der)
    log.debug("Extracted %r", material)
    return material
