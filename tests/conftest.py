import pytest

from vectors import P256_PKCS8_PEM, P256_PUBLIC_PEM


@pytest.fixture
def p256_private_file(tmp_path):
    path = tmp_path / 'p256.pem'
    path.write_text(P256_PKCS8_PEM)
    return str(path)


@pytest.fixture
def p256_public_file(tmp_path):
    path = tmp_path / 'p256_pub.pem'
    path.write_text(P256_PUBLIC_PEM)
    return str(path)
