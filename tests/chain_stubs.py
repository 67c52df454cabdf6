"""Builders for synthetic tapscripts and an in-memory node used across tests."""

from __future__ import annotations

import hashlib
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ordscope.rpc_client import RPCError
from ordscope.script import OP_CHECKSIG, OP_ENDIF, OP_FALSE, OP_IF, MAX_SCRIPT_ELEMENT_SIZE, assemble_script

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x00" * 16
SIGNATURE = b"\x01" * 64
CONTROL_BLOCK = b"\xc0" + b"\x02" * 32
INTERNAL_KEY = b"\x03" * 32


def fake_hash(label: str) -> str:
    return hashlib.sha256(label.encode()).hexdigest()


def envelope_items(
    content: bytes,
    content_type: Optional[bytes] = b"text/plain;charset=utf-8",
    fields: Sequence[Tuple[bytes, bytes]] = (),
    protocol: bytes = b"ord",
) -> List[int | bytes]:
    items: List[int | bytes] = [OP_FALSE, OP_IF, protocol]
    if content_type is not None:
        items.extend([b"\x01", content_type])
    for tag, value in fields:
        items.extend([tag, value])
    items.append(b"")
    for start in range(0, len(content), MAX_SCRIPT_ELEMENT_SIZE):
        items.append(content[start : start + MAX_SCRIPT_ELEMENT_SIZE])
    items.append(OP_ENDIF)
    return items


def inscription_script(*envelopes: Sequence[int | bytes]) -> bytes:
    """A pay-to-key leaf script followed by the given envelopes."""

    items: List[int | bytes] = [INTERNAL_KEY, OP_CHECKSIG]
    for envelope in envelopes:
        items.extend(envelope)
    return assemble_script(*items)


def text_script(text: str) -> bytes:
    return inscription_script(envelope_items(text.encode()))


def witness_for(script: bytes) -> List[str]:
    return [SIGNATURE.hex(), script.hex(), CONTROL_BLOCK.hex()]


def make_tx(txid: str, *scripts: Optional[bytes]) -> dict:
    """Verbose transaction with one input per script (``None`` for a key-path spend)."""

    vin = []
    for script in scripts:
        if script is None:
            vin.append({"txid": fake_hash(txid + "prev"), "vout": 0, "txinwitness": [SIGNATURE.hex()]})
        else:
            vin.append({"txid": fake_hash(txid + "prev"), "vout": 0, "txinwitness": witness_for(script)})
    return {"txid": txid, "vin": vin, "vout": []}


def coinbase_tx(height: int) -> dict:
    return {"txid": fake_hash(f"coinbase-{height}"), "vin": [{"coinbase": "03"}], "vout": []}


def make_block(height: int, transactions: Iterable[dict]) -> dict:
    txs = [coinbase_tx(height), *transactions]
    return {
        "hash": fake_hash(f"block-{height}"),
        "height": height,
        "time": 1_700_000_000 + height * 600,
        "nTx": len(txs),
        "tx": txs,
    }


class StubRPC:
    """In-memory stand-in for :class:`ordscope.rpc_client.BitcoinRPCClient`."""

    def __init__(self, blocks: Sequence[dict], *, txindex: bool = True, mempool: Sequence[dict] = ()) -> None:
        self.blocks_by_hash: Dict[str, dict] = {block["hash"]: block for block in blocks}
        self.hash_by_height: Dict[int, str] = {block["height"]: block["hash"] for block in blocks}
        self.txindex = txindex
        self.transactions: Dict[str, Tuple[dict, Optional[str]]] = {}
        for block in blocks:
            for tx in block["tx"]:
                self.transactions[tx["txid"]] = (tx, block["hash"])
        for tx in mempool:
            self.transactions[tx["txid"]] = (tx, None)
        self.calls: List[Tuple[str, tuple]] = []

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def getblockcount(self) -> int:
        self.calls.append(("getblockcount", ()))
        return max(self.hash_by_height)

    def getblockhash(self, height: int) -> str:
        self.calls.append(("getblockhash", (height,)))
        if height not in self.hash_by_height:
            raise RPCError(-8, "Block height out of range")
        return self.hash_by_height[height]

    def getblockheader(self, block_hash: str) -> dict:
        self.calls.append(("getblockheader", (block_hash,)))
        block = self._block(block_hash)
        return {key: block[key] for key in ("hash", "height", "time", "nTx")}

    def getblock(self, block_hash: str, verbosity: int = 1) -> dict:
        self.calls.append(("getblock", (block_hash, verbosity)))
        block = dict(self._block(block_hash))
        if verbosity < 2:
            block["tx"] = [tx["txid"] for tx in block["tx"]]
        return block

    def getrawtransaction(self, txid: str, verbose: bool = False, block_hash: str | None = None):
        self.calls.append(("getrawtransaction", (txid, verbose, block_hash)))
        entry = self.transactions.get(txid)
        if block_hash is not None:
            self._block(block_hash)
            if entry is None or entry[1] != block_hash:
                raise RPCError(-5, "No such transaction found in the provided block.")
            return entry[0]
        if entry is not None and (entry[1] is None or self.txindex):
            return entry[0]
        if not self.txindex:
            raise RPCError(
                -5,
                "No such mempool transaction. Use -txindex or provide a block hash to enable "
                "blockchain transaction queries.",
            )
        raise RPCError(-5, "No such mempool or blockchain transaction.")

    def getindexinfo(self) -> dict:
        self.calls.append(("getindexinfo", ()))
        if self.txindex:
            return {"txindex": {"synced": True, "best_block_height": max(self.hash_by_height)}}
        return {}

    def _block(self, block_hash: str) -> dict:
        try:
            return self.blocks_by_hash[block_hash]
        except KeyError:
            raise RPCError(-5, "Block not found") from None


BRC20_DEPLOY = b'{"p":"brc-20","op":"deploy","tick":"ordi","max":"21000000","lim":"1000"}'


def sample_chain() -> Tuple[List[dict], Dict[str, str]]:
    """Three blocks: an empty one, one text inscription, then a mixed block.

    Block 2 holds, in order: a tx with a PNG and a text envelope in the same
    input, a tx whose BRC-20 inscription sits in its second input, and a tx
    with no inscriptions.
    """

    txids = {name: fake_hash(name) for name in ("hello", "mixed", "brc20", "plain")}
    hello = make_tx(txids["hello"], text_script("hello"))
    mixed = make_tx(
        txids["mixed"],
        inscription_script(envelope_items(PNG_BYTES, b"image/png"), envelope_items(b"second")),
    )
    brc20 = make_tx(
        txids["brc20"], None, inscription_script(envelope_items(BRC20_DEPLOY, b"text/plain;charset=utf-8"))
    )
    plain = make_tx(txids["plain"], None)
    blocks = [make_block(0, []), make_block(1, [hello]), make_block(2, [mixed, brc20, plain])]
    return blocks, txids
