"""
Minimal DER reader for EC key containers
"""
# SPDX-License-Identifier: Apache-2.0

TAG_INTEGER = 0x02
TAG_BIT_STRING = 0x03
TAG_OCTET_STRING = 0x04
TAG_NULL = 0x05
TAG_OID = 0x06
TAG_SEQUENCE = 0x30
# Constructed, context-specific: [0] .. [30]. 0xbf starts a multi-byte tag.
TAG_CONTEXT_FIRST = 0xa0
TAG_CONTEXT_LAST = 0xbe

OID_NAMES = {
    '1.2.840.10045.2.1': 'ECC',
    '1.2.840.10045.3.1.7': 'secp256r1',
    '1.3.132.0.34': 'secp384r1',
    '1.3.132.0.35': 'secp521r1',
    '1.3.132.0.10': 'secp256k1',
    '1.2.840.113549.1.1.1': 'RSA',
}


class Asn1Error(ValueError):
    def __init__(self, message, offset):
        super().__init__("{} (at offset {})".format(message, offset))
        self.offset = offset


class UnsupportedTag(Asn1Error):
    pass


class TruncatedLength(Asn1Error):
    pass


class MalformedSequence(Asn1Error):
    pass


class BufferOverrun(Asn1Error):
    pass


class Node:
    """
    Base of all decoded ASN.1 values.

    ``offset`` is where the tag byte was found and ``size`` the number of
    bytes the whole TLV occupied.
    """
    tag = None

    def __init__(self, offset=0, size=0):
        self.offset = offset
        self.size = size

    def _value(self):
        raise NotImplementedError

    def __eq__(self, other):
        return (type(self) is type(other) and self.tag == other.tag
                and self._value() == other._value())

    def __hash__(self):
        return hash((type(self), self.tag, self._value()))

    def __repr__(self):
        return "{}({!r})".format(type(self).__name__, self._value())


class Primitive(Node):
    def __init__(self, data, offset=0, size=0):
        super().__init__(offset, size)
        self.data = bytes(data)

    def _value(self):
        return self.data


class Integer(Primitive):
    tag = TAG_INTEGER

    @property
    def value(self):
        return int.from_bytes(self.data, byteorder='big', signed=True)


class BitString(Primitive):
    """
    The payload keeps its leading "unused bits" byte; callers that know the
    bit count is zero (EC points) strip it themselves.
    """
    tag = TAG_BIT_STRING


class OctetString(Primitive):
    tag = TAG_OCTET_STRING


class Null(Node):
    tag = TAG_NULL

    def _value(self):
        return None


class ObjectIdentifier(Node):
    tag = TAG_OID

    def __init__(self, dotted, offset=0, size=0):
        super().__init__(offset, size)
        self.dotted = dotted
        self.name = OID_NAMES.get(dotted)

    def _value(self):
        return self.dotted

    def __str__(self):
        if self.name:
            return "{} ({})".format(self.name, self.dotted)
        return self.dotted


class Sequence(Node):
    tag = TAG_SEQUENCE

    def __init__(self, children, offset=0, size=0):
        super().__init__(offset, size)
        self.children = tuple(children)

    def _value(self):
        return self.children

    def __len__(self):
        return len(self.children)

    def __iter__(self):
        return iter(self.children)

    def __getitem__(self, index):
        return self.children[index]


class ContextTagged(Sequence):
    """Explicitly tagged field such as ``[0]`` or ``[1]`` in ECPrivateKey."""

    def __init__(self, number, children, offset=0, size=0):
        super().__init__(children, offset, size)
        self.number = number
        self.tag = TAG_CONTEXT_FIRST | number

    def __repr__(self):
        return "ContextTagged([{}], {!r})".format(self.number, self.children)


_PRIMITIVES = {
    TAG_INTEGER: Integer,
    TAG_BIT_STRING: BitString,
    TAG_OCTET_STRING: OctetString,
}


def _take(buf, start, count):
    if start + count > len(buf):
        raise BufferOverrun(
            "Need {} bytes, only {} left".format(count, len(buf) - start),
            start)
    return buf[start:start + count]


def _read_length(buf, pos):
    """Return (length, position of the first content byte)."""
    if pos >= len(buf):
        raise TruncatedLength("Missing length byte", pos)
    first = buf[pos]
    if first < 0x80:
        return first, pos + 1
    count = first & 0x7f
    if count == 0:
        raise TruncatedLength("Indefinite length is not allowed in DER", pos)
    if pos + 1 + count > len(buf):
        raise TruncatedLength(
            "Length declares {} length bytes, only {} left".format(
                count, len(buf) - pos - 1),
            pos)
    length = int.from_bytes(buf[pos + 1:pos + 1 + count], byteorder='big')
    return length, pos + 1 + count


def decode_oid(data, offset=0):
    if not data:
        raise MalformedSequence("Empty object identifier", offset)
    arcs = []
    value = 0
    for b in data:
        value = (value << 7) | (b & 0x7f)
        if not b & 0x80:
            arcs.append(value)
            value = 0
    if data[-1] & 0x80:
        raise MalformedSequence("Object identifier ends mid-arc", offset)
    first = arcs[0]
    if first < 40:
        head = [0, first]
    elif first < 80:
        head = [1, first - 40]
    else:
        head = [2, first - 80]
    return '.'.join(str(a) for a in head + arcs[1:])


def _read_children(buf, start, end):
    children = []
    pos = start
    while pos < end:
        child, used = read(buf, pos)
        if pos + used > end:
            raise MalformedSequence(
                "Child of {} bytes overruns parent ending at {}".format(
                    used, end),
                pos)
        children.append(child)
        pos += used
    return children


def read(buf, offset=0):
    """
    Read one TLV starting at ``offset``.

    Returns ``(node, consumed)`` where ``consumed`` counts the tag, length
    and content bytes.
    """
    if not isinstance(buf, bytes):
        buf = bytes(buf)
    tag = _take(buf, offset, 1)[0]
    if not (tag in _PRIMITIVES or tag in (TAG_NULL, TAG_OID, TAG_SEQUENCE)
            or TAG_CONTEXT_FIRST <= tag <= TAG_CONTEXT_LAST):
        raise UnsupportedTag("Unsupported tag 0x{:02x}".format(tag), offset)

    length, start = _read_length(buf, offset + 1)
    if start + length > len(buf):
        raise TruncatedLength(
            "Tag 0x{:02x} declares {} bytes, only {} left".format(
                tag, length, len(buf) - start),
            offset)
    end = start + length
    size = end - offset

    if tag == TAG_SEQUENCE:
        node = Sequence(_read_children(buf, start, end), offset, size)
    elif TAG_CONTEXT_FIRST <= tag <= TAG_CONTEXT_LAST:
        node = ContextTagged(tag & 0x1f, _read_children(buf, start, end),
                             offset, size)
    elif tag == TAG_NULL:
        if length:
            raise MalformedSequence(
                "NULL with {} content bytes".format(length), offset)
        node = Null(offset, size)
    elif tag == TAG_OID:
        node = ObjectIdentifier(decode_oid(_take(buf, start, length), offset),
                                offset, size)
    else:
        node = _PRIMITIVES[tag](_take(buf, start, length), offset, size)
    return node, size


def parse(buf):
    """Read a single value that must span the whole buffer."""
    node, used = read(buf, 0)
    if used != len(buf):
        raise MalformedSequence(
            "{} trailing bytes after top-level value".format(len(buf) - used),
            used)
    return node


def _encode_length(length):
    if length < 0x80:
        return bytes([length])
    body = length.to_bytes((length.bit_length() + 7) // 8, byteorder='big')
    return bytes([0x80 | len(body)]) + body


def encode_oid(dotted):
    arcs = [int(a) for a in dotted.split('.')]
    values = [arcs[0] * 40 + arcs[1]] + arcs[2:]
    out = bytearray()
    for v in values:
        chunk = [v & 0x7f]
        v >>= 7
        while v:
            chunk.append(0x80 | (v & 0x7f))
            v >>= 7
        out += bytes(reversed(chunk))
    return bytes(out)


def encode(node):
    """DER-encode a node tree built by :func:`read` or by hand."""
    if isinstance(node, Sequence):
        content = b''.join(encode(c) for c in node.children)
    elif isinstance(node, ObjectIdentifier):
        content = encode_oid(node.dotted)
    elif isinstance(node, Null):
        content = b''
    elif isinstance(node, Primitive):
        content = node.data
    else:
        raise TypeError("Cannot encode {!r}".format(node))
    return bytes([node.tag]) + _encode_length(len(content)) + content
