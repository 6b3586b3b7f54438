"""Dogecoin keys and legacy P2PKH addresses."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

import base58
from coincurve import PrivateKey, PublicKey
from Crypto.Hash import RIPEMD160

from dogebridge.errors import InvalidAddress
from dogebridge.models.config import DogeNetwork


@dataclass(frozen=True)
class NetworkParams:
    pubkey_hash: int
    script_hash: int
    wif: int


NETWORKS: dict[DogeNetwork, NetworkParams] = {
    DogeNetwork.MAINNET: NetworkParams(pubkey_hash=0x1E, script_hash=0x16, wif=0x9E),  # D... / 9... / Q...
    DogeNetwork.TESTNET: NetworkParams(pubkey_hash=0x71, script_hash=0xC4, wif=0xF1),  # n...
    DogeNetwork.REGTEST: NetworkParams(pubkey_hash=0x6F, script_hash=0xC4, wif=0xEF),
}

OP_DUP = 0x76
OP_HASH160 = 0xA9
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_CHECKSIG = 0xAC


def sha256d(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash160(data: bytes) -> bytes:
    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    return bytes([OP_DUP, OP_HASH160, 20]) + pubkey_hash + bytes([OP_EQUALVERIFY, OP_CHECKSIG])


def p2sh_script(script_hash: bytes) -> bytes:
    return bytes([OP_HASH160, 20]) + script_hash + bytes([OP_EQUAL])


def encode_address(pubkey_hash: bytes, network: DogeNetwork = DogeNetwork.MAINNET) -> str:
    version = NETWORKS[network].pubkey_hash
    return base58.b58encode_check(bytes([version]) + pubkey_hash).decode("ascii")


def _decode(address: str) -> bytes:
    if not isinstance(address, str) or not address:
        raise InvalidAddress("empty address")
    try:
        raw = base58.b58decode_check(address)
    except ValueError as exc:
        raise InvalidAddress(f"bad base58check address {address!r}: {exc}") from exc
    if len(raw) != 21:
        raise InvalidAddress(f"address {address!r} has wrong payload length {len(raw)}")
    return raw


def validate_address(address: str, network: DogeNetwork = DogeNetwork.MAINNET) -> bytes:
    """Check a P2PKH address for ``network`` and return its pubkey hash."""
    raw = _decode(address)
    if raw[0] != NETWORKS[network].pubkey_hash:
        raise InvalidAddress(
            f"address {address!r} is not a {network.value} pay-to-pubkey-hash address"
        )
    return raw[1:]


def script_for_address(address: str, network: DogeNetwork = DogeNetwork.MAINNET) -> bytes:
    """Output script paying ``address`` (P2PKH or P2SH)."""
    raw = _decode(address)
    params = NETWORKS[network]
    if raw[0] == params.pubkey_hash:
        return p2pkh_script(raw[1:])
    if raw[0] == params.script_hash:
        return p2sh_script(raw[1:])
    raise InvalidAddress(f"address {address!r} does not belong to {network.value}")


def is_valid_address(address: str, network: DogeNetwork = DogeNetwork.MAINNET) -> bool:
    try:
        script_for_address(address, network)
    except InvalidAddress:
        return False
    return True


class DogeKey:
    """A secp256k1 key with a compressed public key and its P2PKH address."""

    def __init__(self, secret: bytes, network: DogeNetwork = DogeNetwork.MAINNET) -> None:
        if len(secret) != 32:
            raise ValueError("private key must be 32 bytes")
        self._key = PrivateKey(secret)
        self.network = network
        self._public_key = self._key.public_key.format(compressed=True)
        self._pubkey_hash = hash160(self._public_key)

    @classmethod
    def generate(cls, network: DogeNetwork = DogeNetwork.MAINNET) -> DogeKey:
        return cls(PrivateKey().secret, network)

    @classmethod
    def from_hex(cls, secret_hex: str, network: DogeNetwork = DogeNetwork.MAINNET) -> DogeKey:
        return cls(bytes.fromhex(secret_hex.removeprefix("0x")), network)

    @classmethod
    def from_wif(cls, wif: str, network: DogeNetwork = DogeNetwork.MAINNET) -> DogeKey:
        raw = base58.b58decode_check(wif)
        if raw[0] != NETWORKS[network].wif:
            raise ValueError(f"WIF is not for {network.value}")
        if len(raw) != 34 or raw[-1] != 0x01:
            raise ValueError("only compressed WIF keys are supported")
        return cls(raw[1:33], network)

    @property
    def secret(self) -> bytes:
        return self._key.secret

    @property
    def public_key(self) -> bytes:
        return self._public_key

    @property
    def pubkey_hash(self) -> bytes:
        return self._pubkey_hash

    @property
    def address(self) -> str:
        return encode_address(self._pubkey_hash, self.network)

    @property
    def script_pubkey(self) -> bytes:
        return p2pkh_script(self._pubkey_hash)

    def to_wif(self) -> str:
        payload = bytes([NETWORKS[self.network].wif]) + self.secret + b"\x01"
        return base58.b58encode_check(payload).decode("ascii")

    def sign_digest(self, digest: bytes) -> bytes:
        """DER-encoded, low-S ECDSA signature over a 32-byte digest."""
        return self._key.sign(digest, hasher=None)

    def __repr__(self) -> str:
        return f"DogeKey(address={self.address!r})"


def verify_signature(public_key: bytes, signature: bytes, digest: bytes) -> bool:
    return PublicKey(public_key).verify(signature, digest, hasher=None)
