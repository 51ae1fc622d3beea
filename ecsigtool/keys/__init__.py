# SPDX-License-Identifier: Apache-2.0

"""
Key handling for ecsigtool.
"""

from ..pem import (InvalidKeyFormat, KeyFormatError, UnsupportedAlgorithm,
                   UnsupportedCurve)
from .ecdsa import (DEFAULT_CURVE, ECDSAPrivateKey, ECDSAPublicKey,
                    ECDSAUsageError, create, generate_key)
from .provider import (CryptographyKeyProvider, KeyProvider, UnsupportedHash,
                       default_provider)


def load(path, curve=DEFAULT_CURVE, provider=None):
    """Load a PEM key file or a file holding a Base64 raw key blob."""
    with open(path, 'rb') as f:
        data = f.read()
    try:
        text = data.decode('ascii')
    except UnicodeDecodeError:
        raise InvalidKeyFormat(
            "Key file {} is not PEM or Base64 text".format(path)) from None
    key = create(text, curve, provider)
    if key is None:
        raise InvalidKeyFormat("Key file {} is empty".format(path))
    return key
