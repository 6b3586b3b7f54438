"""Legacy Dogecoin transaction serialization and SIGHASH_ALL signing."""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass, field, replace

from dogebridge.dogecoin.keys import DogeKey, sha256d
from dogebridge.errors import InvalidTxid

SIGHASH_ALL = 0x01
SEQUENCE_FINAL = 0xFFFFFFFF
OP_PUSHDATA1 = 0x4C

_TXID_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def validate_txid(txid: str) -> str:
    if not isinstance(txid, str) or not _TXID_RE.match(txid):
        raise InvalidTxid(f"malformed transaction id {txid!r}")
    return txid.lower()


def varint(n: int) -> bytes:
    if n < 0xFD:
        return bytes([n])
    if n <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", n)
    if n <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", n)
    return b"\xff" + struct.pack("<Q", n)


def push_data(data: bytes) -> bytes:
    if len(data) < OP_PUSHDATA1:
        return bytes([len(data)]) + data
    if len(data) <= 0xFF:
        return bytes([OP_PUSHDATA1, len(data)]) + data
    raise ValueError("push too large for a P2PKH scriptSig")


@dataclass
class TxIn:
    txid: str  # big-endian hex, as shown by RPC
    vout: int
    script_sig: bytes = b""
    sequence: int = SEQUENCE_FINAL

    def serialize(self) -> bytes:
        return (
            bytes.fromhex(self.txid)[::-1]
            + struct.pack("<I", self.vout)
            + varint(len(self.script_sig))
            + self.script_sig
            + struct.pack("<I", self.sequence)
        )


@dataclass
class TxOut:
    value: int  # koinu
    script_pubkey: bytes

    def serialize(self) -> bytes:
        return struct.pack("<q", self.value) + varint(len(self.script_pubkey)) + self.script_pubkey


@dataclass
class Transaction:
    inputs: list[TxIn] = field(default_factory=list)
    outputs: list[TxOut] = field(default_factory=list)
    version: int = 1
    locktime: int = 0

    def serialize(self) -> bytes:
        parts = [struct.pack("<i", self.version), varint(len(self.inputs))]
        parts += [i.serialize() for i in self.inputs]
        parts.append(varint(len(self.outputs)))
        parts += [o.serialize() for o in self.outputs]
        parts.append(struct.pack("<I", self.locktime))
        return b"".join(parts)

    def to_hex(self) -> str:
        return self.serialize().hex()

    @property
    def txid(self) -> str:
        return sha256d(self.serialize())[::-1].hex()

    def signature_hash(self, index: int, script_code: bytes, hashtype: int = SIGHASH_ALL) -> bytes:
        """Legacy signature hash: every scriptSig blanked except ``index``."""
        stripped = [
            replace(txin, script_sig=script_code if n == index else b"")
            for n, txin in enumerate(self.inputs)
        ]
        preimage = replace(self, inputs=stripped).serialize() + struct.pack("<I", hashtype)
        return sha256d(preimage)

    def sign_input(self, index: int, key: DogeKey, script_code: bytes) -> None:
        digest = self.signature_hash(index, script_code)
        signature = key.sign_digest(digest) + bytes([SIGHASH_ALL])
        self.inputs[index].script_sig = push_data(signature) + push_data(key.public_key)
