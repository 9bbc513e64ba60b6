'''
Author: Daniel Chisner
Date: 2026 10 17

Summary:
Public key encoding for EC2 key pairs. EC2 hands out the private key of a new
key pair exactly once, as PEM for RSA keys and as an OpenSSH private key for
ED25519 keys; an imported key pair is only ever known by its OpenSSH public
key. This module reads any of those and writes the public key in the format
the template asked for: OpenSSH, SSH (RFC 4716), PEM, PKCS#1, PKCS#8, the raw
RFC 4253 wire format or PuTTY. Everything here is pure computation, no AWS
calls are made. The RFC 4253 format is binary, so it has to go through
to_attribute() before it is handed back to CloudFormation.
'''

import base64
from enum import Enum

# Import the key handling libraries
import rsa
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519
from cryptography.hazmat.primitives.asymmetric import rsa as crypto_rsa

from key_pair_manager.errors import InvalidPropertyError, UnsupportedFormatError


class KeyType(str, Enum):
    RSA = 'rsa'
    ED25519 = 'ed25519'


class PublicKeyFormat(str, Enum):
    OPENSSH = 'openssh'
    SSH = 'ssh'
    PEM = 'pem'
    PKCS1 = 'pkcs1'
    PKCS8 = 'pkcs8'
    RFC4253 = 'rfc4253'
    PUTTY = 'putty'


# Formats that only exist for a subset of key types
FORMAT_KEY_TYPES = {
    PublicKeyFormat.PKCS1: (KeyType.RSA,),
}


def parse_key_type(value):
    if isinstance(value, KeyType):
        return value
    try:
        return KeyType(str(value).strip().lower())
    except ValueError:
        allowed = ', '.join(k.value for k in KeyType)
        raise UnsupportedFormatError(f"Unsupported key type '{value}'. Allowed values: {allowed}")


def parse_format(value):
    if isinstance(value, PublicKeyFormat):
        return value
    try:
        return PublicKeyFormat(str(value).strip().lower())
    except ValueError:
        allowed = ', '.join(f.value for f in PublicKeyFormat)
        raise UnsupportedFormatError(f"Unsupported public key format '{value}'. Allowed values: {allowed}")


"""
Rejects format/key type combinations that cannot be encoded
Args:
    key_type: KeyType of the key pair
    fmt: requested PublicKeyFormat
"""
def check_format(key_type, fmt):
    key_type = parse_key_type(key_type)
    fmt = parse_format(fmt)
    allowed = FORMAT_KEY_TYPES.get(fmt)
    if allowed is not None and key_type not in allowed:
        raise UnsupportedFormatError(
            f"Public key format '{fmt.value}' is not supported for key type '{key_type.value}'"
        )


"""
Loads the public half of a private key or an OpenSSH public key
Args:
    material: PEM / OpenSSH private key or single line OpenSSH public key (str or bytes)
Returns:
    cryptography public key object
"""
def load_key(material):
    if isinstance(material, str):
        material = material.encode('utf-8')
    data = material.strip()

    try:
        # Single line public key, e.g. an imported key pair
        if data.startswith(b'ssh-'):
            return serialization.load_ssh_public_key(data)

        # EC2 returns ED25519 private keys in the OpenSSH container format
        if b'OPENSSH PRIVATE KEY' in data:
            return serialization.load_ssh_private_key(data, password=None).public_key()

        return serialization.load_pem_private_key(data, password=None).public_key()
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InvalidPropertyError(f"Unable to read key material: {str(e)}")


def key_type_of(public_key):
    if isinstance(public_key, crypto_rsa.RSAPublicKey):
        return KeyType.RSA
    if isinstance(public_key, ed25519.Ed25519PublicKey):
        return KeyType.ED25519
    raise UnsupportedFormatError(f"Unsupported key algorithm: {type(public_key).__name__}")


def _openssh_line(public_key):
    return public_key.public_bytes(
        serialization.Encoding.OpenSSH,
        serialization.PublicFormat.OpenSSH,
    ).decode('ascii')


def _wrap(text, width):
    return [text[i:i + width] for i in range(0, len(text), width)]


def _header(tag, value):
    # Header lines are limited to 72 bytes, longer ones continue with a backslash
    text = f'{tag}: {value}'
    chunks = _wrap(text, 71)
    return [chunk + '\\' for chunk in chunks[:-1]] + chunks[-1:]


def _ssh2(public_key, comment):
    # RFC 4716 SSH2 public key file
    lines = ['---- BEGIN SSH2 PUBLIC KEY ----']
    if comment:
        lines.extend(_header('Comment', f'"{comment}"'))
    lines.extend(_wrap(_openssh_line(public_key).split()[1], 70))
    lines.append('---- END SSH2 PUBLIC KEY ----')
    return '\n'.join(lines) + '\n'


def _putty(public_key, comment):
    # Public part of a PuTTY v2 key file
    algorithm, blob = _openssh_line(public_key).split()[:2]
    body = _wrap(blob, 64)
    lines = [
        f'PuTTY-User-Key-File-2: {algorithm}',
        'Encryption: none',
        f'Comment: {comment}',
        f'Public-Lines: {len(body)}',
    ]
    lines.extend(body)
    return '\n'.join(lines) + '\n'


def _pkcs1(public_key):
    numbers = public_key.public_numbers()
    return rsa.PublicKey(numbers.n, numbers.e).save_pkcs1(format='PEM').decode('ascii')


"""
Encodes the public key of the given key material in the requested format
Args:
    material: key material accepted by load_key()
    fmt: PublicKeyFormat or its string value
    comment: comment embedded by the formats that carry one (ssh, putty)
Returns:
    str for text formats, bytes for the rfc4253 wire format
"""
def derive_public_key(material, fmt, comment=''):
    fmt = parse_format(fmt)
    public_key = load_key(material)
    check_format(key_type_of(public_key), fmt)

    if fmt == PublicKeyFormat.OPENSSH:
        return _openssh_line(public_key)
    if fmt == PublicKeyFormat.SSH:
        return _ssh2(public_key, comment)
    if fmt in (PublicKeyFormat.PEM, PublicKeyFormat.PKCS8):
        return public_key.public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode('ascii')
    if fmt == PublicKeyFormat.PKCS1:
        return _pkcs1(public_key)
    if fmt == PublicKeyFormat.RFC4253:
        return base64.b64decode(_openssh_line(public_key).split()[1])
    return _putty(public_key, comment)


# CloudFormation attributes can only carry strings
def to_attribute(value):
    if isinstance(value, bytes):
        return base64.b64encode(value).decode('ascii')
    return value
