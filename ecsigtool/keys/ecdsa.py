"""
ECDSA key management
"""
# SPDX-License-Identifier: Apache-2.0
import base64
import binascii
import sys

from ..pem import (InvalidKeyFormat, KeyMaterial, curve_width, extract_key,
                   is_pem, unwrap)
from .provider import default_provider, get_curve

DEFAULT_CURVE = 'secp256r1'
DEFAULT_HASH = 'sha256'


class ECDSAUsageError(Exception):
    pass


class ECDSAPublicKey:
    """
    Wrapper around an ECDSA public key held by a provider.
    """
    def __init__(self, key, provider=None):
        self.key = key
        self.provider = provider or default_provider

    @property
    def curve(self):
        return self.provider.curve_of(self.key)

    def key_size(self):
        return get_curve(self.curve).key_size

    def _unsupported(self, name):
        raise ECDSAUsageError("Operation {} requires private key".format(name))

    def get_public_bytes_raw(self):
        return self.provider.export_public_key(self.key)

    def get_public_pem(self):
        return self.provider.public_pem(self.key)

    def get_private_bytes_raw(self):
        self._unsupported('get_private_bytes_raw')

    def get_private_pem(self, format='pkcs8'):
        self._unsupported('get_private_pem')

    def export_private(self, path, format='pkcs8'):
        self._unsupported('export_private')

    def export_public(self, path):
        """Write the public key to the given file."""
        with open(path, 'wb') as f:
            f.write(self.get_public_pem())

    def emit_raw_public(self, file=sys.stdout):
        print(base64.b64encode(self.get_public_bytes_raw()).decode('ascii'),
              file=file)

    def emit_private(self, format='pkcs8', raw=False, file=sys.stdout):
        self._unsupported('emit_private')

    def sign(self, payload, hash=DEFAULT_HASH):
        self._unsupported('sign')

    def verify(self, signature, payload, hash=DEFAULT_HASH):
        return self.provider.verify(self.key, hash, payload, signature)


class ECDSAPrivateKey(ECDSAPublicKey):
    """
    Wrapper around an ECDSA private key held by a provider.
    """

    @staticmethod
    def generate(curve=DEFAULT_CURVE, provider=None):
        provider = provider or default_provider
        return ECDSAPrivateKey(provider.generate(curve), provider)

    def get_private_bytes_raw(self):
        return self.provider.export_private_key(self.key)

    def get_private_pem(self, format='pkcs8'):
        return self.provider.private_pem(self.key, format)

    def export_private(self, path, format='pkcs8'):
        """Write the unencrypted private key to the given file."""
        with open(path, 'wb') as f:
            f.write(self.get_private_pem(format))

    def emit_private(self, format='pkcs8', raw=False, file=sys.stdout):
        if raw:
            print(base64.b64encode(self.get_private_bytes_raw())
                  .decode('ascii'), file=file)
        else:
            print(self.get_private_pem(format).decode('ascii'), end='',
                  file=file)

    def sign(self, payload, hash=DEFAULT_HASH):
        """Return a raw ``r || s`` signature over ``payload``."""
        return self.provider.sign(self.key, hash, payload)


def from_material(material, provider=None):
    """Import extracted key material through the provider."""
    provider = provider or default_provider
    if material.private:
        return ECDSAPrivateKey(
            provider.import_private_key(material.data, material.curve),
            provider)
    return ECDSAPublicKey(
        provider.import_public_key(material.data, material.curve), provider)


def _decode_blob(text, curve):
    try:
        buf = base64.b64decode(''.join(text.split()), validate=True)
    except binascii.Error as e:
        raise InvalidKeyFormat("Key is neither PEM nor Base64: {}".format(e)) \
            from e
    width = curve_width(curve)
    if len(buf) not in (2 * width, 3 * width):
        raise InvalidKeyFormat(
            "Raw {} key must be {} or {} bytes, got {}".format(
                curve, 2 * width, 3 * width, len(buf)))
    return KeyMaterial(buf, curve, len(buf) == 3 * width)


def create(text, curve=DEFAULT_CURVE, provider=None):
    """
    Build a key from PEM text or a Base64 raw key blob.

    Raw blobs carry no curve information, so ``curve`` says how to read
    them: ``X || Y`` is a public key and ``D || X || Y`` a private one.
    Returns None for empty text.
    """
    text = text.strip() if text else ''
    if not text:
        return None
    if is_pem(text):
        label, _ = unwrap(text)
        if 'ENCRYPTED' in label.upper():
            raise InvalidKeyFormat("Encrypted private keys are not supported")
        material = extract_key(text)
    else:
        material = _decode_blob(text, curve)
    try:
        return from_material(material, provider)
    finally:
        material.wipe()


def generate_key(curve=DEFAULT_CURVE, provider=None):
    """Return ``(private, public)`` raw key blobs, Base64 encoded."""
    key = ECDSAPrivateKey.generate(curve, provider)
    return (base64.b64encode(key.get_private_bytes_raw()).decode('ascii'),
            base64.b64encode(key.get_public_bytes_raw()).decode('ascii'))


def _public(text, curve):
    key = create(text, curve)
    if key is None:
        raise InvalidKeyFormat("Empty key text")
    return key


def _private(text, curve):
    key = _public(text, curve)
    if not isinstance(key, ECDSAPrivateKey):
        raise ECDSAUsageError("Signing requires a private key")
    return key


def sign(data, pri_key, curve=DEFAULT_CURVE):
    """Sign with MD5."""
    return _private(pri_key, curve).sign(data, 'md5')


def verify(data, puk_key, signature, curve=DEFAULT_CURVE):
    """Verify with MD5."""
    return _public(puk_key, curve).verify(signature, data, 'md5')


def sign_sha256(data, pri_key, curve=DEFAULT_CURVE):
    return _private(pri_key, curve).sign(data, 'sha256')


def verify_sha256(data, puk_key, signature, curve=DEFAULT_CURVE):
    return _public(puk_key, curve).verify(signature, data, 'sha256')


def sign_sha384(data, pri_key, curve=DEFAULT_CURVE):
    return _private(pri_key, curve).sign(data, 'sha384')


def verify_sha384(data, puk_key, signature, curve=DEFAULT_CURVE):
    return _public(puk_key, curve).verify(signature, data, 'sha384')


def sign_sha512(data, pri_key, curve=DEFAULT_CURVE):
    return _private(pri_key, curve).sign(data, 'sha512')


def verify_sha512(data, puk_key, signature, curve=DEFAULT_CURVE):
    return _public(puk_key, curve).verify(signature, data, 'sha512')
