"""
Key providers

The PEM/DER code only produces raw key bytes; importing them, signing and
verifying is the job of a provider. ``CryptographyKeyProvider`` is the
default and uses pyca/cryptography.
"""
# SPDX-License-Identifier: Apache-2.0
import abc

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import utils

from ..pem import InvalidKeyFormat, UnsupportedCurve, curve_width


class UnsupportedHash(ValueError):
    pass


HASH_ALGORITHMS = {
    'md5': hashes.MD5,
    'sha256': hashes.SHA256,
    'sha384': hashes.SHA384,
    'sha512': hashes.SHA512,
}

CURVES = {
    'secp256r1': ec.SECP256R1,
    'secp256k1': ec.SECP256K1,
    'secp384r1': ec.SECP384R1,
    'secp521r1': ec.SECP521R1,
}

PRIVATE_FORMATS = {
    'pkcs8': serialization.PrivateFormat.PKCS8,
    'openssl': serialization.PrivateFormat.TraditionalOpenSSL,
}


def hash_algorithm(name):
    """Map ``'SHA-256'``, ``'sha256'``, ``'md5'``... to a hash instance."""
    key = name.lower().replace('-', '').replace('_', '')
    try:
        return HASH_ALGORITHMS[key]()
    except KeyError:
        raise UnsupportedHash("Unsupported hash algorithm {}".format(name)) \
            from None


def get_curve(name):
    try:
        return CURVES[name]()
    except KeyError:
        raise UnsupportedCurve("Unsupported curve {}".format(name)) from None


class KeyProvider(abc.ABC):
    """Key import, export and ECDSA primitives over opaque key handles."""

    @abc.abstractmethod
    def import_private_key(self, data, curve):
        """Import ``D || X || Y``."""

    @abc.abstractmethod
    def import_public_key(self, data, curve):
        """Import ``X || Y``."""

    @abc.abstractmethod
    def export_private_key(self, handle):
        pass

    @abc.abstractmethod
    def export_public_key(self, handle):
        pass

    @abc.abstractmethod
    def generate(self, curve):
        pass

    @abc.abstractmethod
    def curve_of(self, handle):
        pass

    @abc.abstractmethod
    def public_pem(self, handle):
        """``SubjectPublicKeyInfo`` PEM as bytes."""

    @abc.abstractmethod
    def private_pem(self, handle, format='pkcs8'):
        """Unencrypted ``PRIVATE KEY`` (pkcs8) or ``EC PRIVATE KEY``
        (openssl) PEM as bytes."""

    @abc.abstractmethod
    def sign(self, handle, hash_name, data):
        """Return a raw ``r || s`` signature."""

    @abc.abstractmethod
    def verify(self, handle, hash_name, data, signature):
        pass


class CryptographyKeyProvider(KeyProvider):

    def import_private_key(self, data, curve):
        width = curve_width(curve)
        if len(data) != 3 * width:
            raise InvalidKeyFormat(
                "Private key for {} must be {} bytes, got {}".format(
                    curve, 3 * width, len(data)))
        d = int.from_bytes(data[:width], byteorder='big')
        try:
            key = ec.derive_private_key(d, get_curve(curve))
        except ValueError as e:
            raise InvalidKeyFormat("Invalid private scalar: {}".format(e)) \
                from e
        if self.export_public_key(key) != bytes(data[width:]):
            raise InvalidKeyFormat("Public point does not match private key")
        return key

    def import_public_key(self, data, curve):
        width = curve_width(curve)
        if len(data) != 2 * width:
            raise InvalidKeyFormat(
                "Public key for {} must be {} bytes, got {}".format(
                    curve, 2 * width, len(data)))
        try:
            return ec.EllipticCurvePublicKey.from_encoded_point(
                get_curve(curve), b'\x04' + bytes(data))
        except ValueError as e:
            raise InvalidKeyFormat("Invalid public point: {}".format(e)) \
                from e

    def export_private_key(self, handle):
        width = curve_width(handle.curve.name)
        d = handle.private_numbers().private_value
        return d.to_bytes(width, byteorder='big') + \
            self.export_public_key(handle)

    def export_public_key(self, handle):
        if isinstance(handle, ec.EllipticCurvePrivateKey):
            handle = handle.public_key()
        width = curve_width(handle.curve.name)
        pn = handle.public_numbers()
        return pn.x.to_bytes(width, byteorder='big') + \
            pn.y.to_bytes(width, byteorder='big')

    def generate(self, curve):
        return ec.generate_private_key(get_curve(curve))

    def curve_of(self, handle):
        return handle.curve.name

    def public_pem(self, handle):
        if isinstance(handle, ec.EllipticCurvePrivateKey):
            handle = handle.public_key()
        return handle.public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo)

    def private_pem(self, handle, format='pkcs8'):
        try:
            fmt = PRIVATE_FORMATS[format]
        except KeyError:
            raise ValueError("Unknown private key format {}".format(format)) \
                from None
        return handle.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=fmt,
                encryption_algorithm=serialization.NoEncryption())

    def sign(self, handle, hash_name, data):
        width = curve_width(handle.curve.name)
        der = handle.sign(bytes(data), ec.ECDSA(hash_algorithm(hash_name)))
        r, s = utils.decode_dss_signature(der)
        return r.to_bytes(width, byteorder='big') + \
            s.to_bytes(width, byteorder='big')

    def verify(self, handle, hash_name, data, signature):
        if isinstance(handle, ec.EllipticCurvePrivateKey):
            handle = handle.public_key()
        width = curve_width(handle.curve.name)
        algorithm = ec.ECDSA(hash_algorithm(hash_name))
        if len(signature) != 2 * width:
            return False
        r = int.from_bytes(signature[:width], byteorder='big')
        s = int.from_bytes(signature[width:], byteorder='big')
        try:
            handle.verify(utils.encode_dss_signature(r, s), bytes(data),
                          algorithm)
        except InvalidSignature:
            return False
        return True


default_provider = CryptographyKeyProvider()
