#! /usr/bin/env python3
#
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import base64
import binascii
import sys

import click

from ecsigtool import ecsigtool_version
from ecsigtool.asn1 import Asn1Error
from ecsigtool.keys import (ECDSAPrivateKey, ECDSAUsageError, KeyFormatError,
                            UnsupportedHash, load)

MIN_PYTHON_VERSION = (3, 6)
if sys.version_info < MIN_PYTHON_VERSION:
    sys.exit("Python %s.%s or newer is required by ecsigtool."
             % MIN_PYTHON_VERSION)


keygens = {
    'ecdsa-p256': 'secp256r1',
    'ecdsa-p256k1': 'secp256k1',
    'ecdsa-p384': 'secp384r1',
    'ecdsa-p521': 'secp521r1',
}
valid_curves = list(keygens.values())
valid_encodings = ['pem', 'raw']
valid_formats = ['pkcs8', 'openssl']
valid_sha = ['md5', '256', '384', '512']


def sha_to_hash(sha):
    return sha if sha == 'md5' else 'sha' + sha


def load_signature(sigfile):
    with open(sigfile, 'rb') as f:
        try:
            return base64.b64decode(f.read(), validate=True)
        except binascii.Error as e:
            raise click.UsageError(
                "Signature file {} is not Base64: {}".format(sigfile, e))


def save_signature(sigfile, sig):
    with open(sigfile, 'wb') as f:
        signature = base64.b64encode(sig)
        f.write(signature)


def load_key(keyfile, curve):
    try:
        return load(keyfile, curve)
    except (KeyFormatError, Asn1Error) as e:
        raise click.UsageError("Cannot load key {}: {}".format(keyfile, e))


curve_option = click.option(
    '-c', '--curve', metavar='curve', type=click.Choice(valid_curves),
    default=valid_curves[0], show_default=True,
    help='Curve used to read Base64 raw keys (PEM keys name their own)')


@click.option('-f', '--format', type=click.Choice(valid_formats),
              default=valid_formats[0], show_default=True,
              help='Private key PEM format')
@click.option('-t', '--type', metavar='type', required=True,
              type=click.Choice(keygens.keys()), prompt=True,
              help='{}'.format('One of: {}'.format(', '.join(keygens.keys()))))
@click.option('-k', '--key', metavar='filename', required=True)
@click.option('-e', '--export', metavar='filename', required=False,
              help='Also write the public key PEM to this file')
@click.command(help='Generate pub/private keypair')
def keygen(type, key, export, format):
    new_key = ECDSAPrivateKey.generate(keygens[type])
    new_key.export_private(path=key, format=format)
    if export:
        new_key.export_public(path=export)


@click.option('-e', '--encoding', metavar='encoding',
              type=click.Choice(valid_encodings), default='pem',
              help='Valid encodings: {}'.format(', '.join(valid_encodings)))
@click.option('-k', '--key', metavar='filename', required=True)
@click.option('-o', '--output', metavar='output', required=False,
              type=click.File('w'),
              help='Specify the output file\'s name. \
                    The stdout is used if it is not provided.')
@curve_option
@click.command(help='Dump public key from keypair')
def getpub(key, encoding, output, curve):
    key = load_key(key, curve)
    if not output:
        output = sys.stdout
    if encoding == 'pem':
        output.write(key.get_public_pem().decode('ascii'))
    else:
        key.emit_raw_public(file=output)


@click.option('-f', '--format', type=click.Choice(valid_formats),
              default=valid_formats[0],
              help='Valid formats: {}'.format(', '.join(valid_formats)))
@click.option('--raw', default=False, is_flag=True,
              help='Dump the private key as a Base64 D||X||Y blob')
@click.option('-k', '--key', metavar='filename', required=True)
@curve_option
@click.command(help='Dump private key from keypair')
def getpriv(key, format, raw, curve):
    key = load_key(key, curve)
    try:
        key.emit_private(format=format, raw=raw, file=sys.stdout)
    except ECDSAUsageError as e:
        raise click.UsageError(e)


@click.argument('outfile')
@click.argument('infile')
@click.option('--sha', type=click.Choice(valid_sha), default='256',
              show_default=True, help='Hash algorithm')
@click.option('-k', '--key', metavar='filename', required=True)
@curve_option
@click.command(help='Sign INFILE and write the Base64 signature to OUTFILE')
def sign(key, sha, infile, outfile, curve):
    key = load_key(key, curve)
    with open(infile, 'rb') as f:
        payload = f.read()
    try:
        signature = key.sign(payload, sha_to_hash(sha))
    except (ECDSAUsageError, UnsupportedHash) as e:
        raise click.UsageError(e)
    save_signature(outfile, signature)


@click.argument('sigfile')
@click.argument('infile')
@click.option('--sha', type=click.Choice(valid_sha), default='256',
              show_default=True, help='Hash algorithm')
@click.option('-k', '--key', metavar='filename', required=True)
@curve_option
@click.command(help='Check that SIGFILE is a valid signature of INFILE')
def verify(key, sha, infile, sigfile, curve):
    key = load_key(key, curve)
    with open(infile, 'rb') as f:
        payload = f.read()
    signature = load_signature(sigfile)
    if key.verify(signature, payload, sha_to_hash(sha)):
        print("Signature verified")
    else:
        print("Signature verification failed")
        sys.exit(1)


@click.command(help='Print ecsigtool version information')
def version():
    print(ecsigtool_version)


@click.group(context_settings=dict(help_option_names=['-h', '--help']))
def ecsigtool():
    pass


ecsigtool.add_command(keygen)
ecsigtool.add_command(getpub)
ecsigtool.add_command(getpriv)
ecsigtool.add_command(sign)
ecsigtool.add_command(verify)
ecsigtool.add_command(version)


if __name__ == '__main__':
    ecsigtool()
