"""Block and transaction retrieval on top of the RPC client.

``ChainSource`` turns raw RPC responses into immutable block records and maps
node error codes onto the two conditions callers care about: something does
not exist, or the node lacks the transaction index needed to look it up.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .rpc_client import RPC_INVALID_ADDRESS_OR_KEY, RPC_INVALID_PARAMETER, RPC_METHOD_NOT_FOUND, RPCError

logger = logging.getLogger(__name__)

BlockRef = Union[int, str]
_HASH_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")


class ChainSourceError(RuntimeError):
    """Base class for lookups the node could not satisfy."""


class NotFoundError(ChainSourceError):
    """Raised when a requested block or transaction does not exist."""


class IndexUnavailableError(ChainSourceError):
    """Raised when a lookup needs the node's transaction index and it is off."""


@dataclass(frozen=True)
class BlockSummary:
    """Header-level view of a block, used for paging the block list."""

    height: int
    hash: str
    n_tx: int
    time: Optional[int] = None


@dataclass(frozen=True)
class Block:
    """A fetched block: height, hash and its transaction ids in block order."""

    height: int
    hash: str
    txids: Tuple[str, ...]
    time: Optional[int] = None
    transactions: Mapping[str, Dict[str, Any]] = field(default_factory=dict, repr=False, compare=False)

    def position_of(self, txid: str) -> int:
        try:
            return self.txids.index(txid)
        except ValueError as exc:
            raise NotFoundError(f"Transaction {txid} is not in block {self.hash}") from exc


def parse_block_ref(raw: str | int) -> BlockRef:
    """Interpret ``raw`` as a block height or a 64-hex block hash."""

    if isinstance(raw, int):
        if raw < 0:
            raise ValueError(f"Block height must not be negative: {raw}")
        return raw
    value = raw.strip()
    if value.isdigit():
        return int(value)
    if _HASH_PATTERN.match(value):
        return value.lower()
    raise ValueError(f"Invalid block reference '{raw}'; expected a height or a 64-hex block hash")


class ChainSource:
    """Fetch blocks and transactions from a Bitcoin Core style RPC client."""

    def __init__(self, rpc_client) -> None:
        self.rpc_client = rpc_client
        self._txindex: Optional[bool] = None

    def tip_height(self) -> int:
        return int(self.rpc_client.getblockcount())

    def block_hash(self, height: int) -> str:
        try:
            return self.rpc_client.getblockhash(height)
        except RPCError as exc:
            if exc.code == RPC_INVALID_PARAMETER:
                raise NotFoundError(f"No block at height {height}") from exc
            raise

    def block_summary(self, height: int) -> BlockSummary:
        header = self._lookup(self.rpc_client.getblockheader, self.block_hash(height), what=f"block {height}")
        return BlockSummary(
            height=int(header.get("height", height)),
            hash=header["hash"],
            n_tx=int(header.get("nTx", 0)),
            time=header.get("time"),
        )

    def get_block(self, ref: BlockRef) -> Block:
        """Fetch a block with its full transactions (``verbosity=2``)."""

        block_hash = self.block_hash(ref) if isinstance(ref, int) else ref
        block_json = self._lookup(self.rpc_client.getblock, block_hash, 2, what=f"block {ref}")
        transactions: Dict[str, Dict[str, Any]] = {}
        txids = []
        for tx in block_json.get("tx", []):
            if isinstance(tx, str):
                txids.append(tx)
                continue
            txid = tx.get("txid")
            if not txid:
                continue
            txids.append(txid)
            transactions[txid] = tx
        logger.debug("Fetched block %s with %d transactions", block_json.get("hash"), len(txids))
        return Block(
            height=int(block_json.get("height", -1)),
            hash=block_json.get("hash", block_hash),
            txids=tuple(txids),
            time=block_json.get("time"),
            transactions=transactions,
        )

    def has_txindex(self) -> bool:
        """Report whether the node runs with ``-txindex``.

        Nodes without ``getindexinfo`` are given the benefit of the doubt; a
        later lookup failure is still mapped to :class:`IndexUnavailableError`.
        """

        if self._txindex is None:
            try:
                info = self.rpc_client.getindexinfo()
            except RPCError as exc:
                if exc.code != RPC_METHOD_NOT_FOUND:
                    raise
                logger.debug("getindexinfo unavailable; assuming a transaction index is present")
                self._txindex = True
            else:
                self._txindex = "txindex" in (info or {})
        return self._txindex

    def get_transaction(self, txid: str, block_hash: str | None = None) -> Dict[str, Any]:
        """Fetch a verbose transaction.

        Without ``block_hash`` the node must have a transaction index.
        """

        if block_hash is None and not self.has_txindex():
            raise IndexUnavailableError(
                f"Looking up transaction {txid} without a block requires the node's transaction index "
                "(-txindex=1). Restart the node with -txindex or supply the containing block."
            )
        try:
            return self.rpc_client.getrawtransaction(txid, True, block_hash)
        except RPCError as exc:
            if exc.code == RPC_INVALID_ADDRESS_OR_KEY and "-txindex" in exc.message:
                raise IndexUnavailableError(
                    f"Transaction {txid} cannot be looked up: the node has no transaction index (-txindex=1)"
                ) from exc
            if exc.code in (RPC_INVALID_ADDRESS_OR_KEY, RPC_INVALID_PARAMETER):
                raise NotFoundError(f"Transaction {txid} not found: {exc.message}") from exc
            raise

    def _lookup(self, method, *params: Any, what: str) -> Dict[str, Any]:
        try:
            return method(*params)
        except RPCError as exc:
            if exc.code in (RPC_INVALID_ADDRESS_OR_KEY, RPC_INVALID_PARAMETER):
                raise NotFoundError(f"{what.capitalize()} not found: {exc.message}") from exc
            raise
