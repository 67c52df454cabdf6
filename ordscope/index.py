"""Process-lifetime cache of decoded inscriptions.

Transactions are decoded the first time they are visited and the results are
kept until the process exits. Nothing is persisted, evicted or refreshed.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .chain import Block, ChainSource, NotFoundError
from .inscription import Inscription, InscriptionId, InscriptionRef, decode_transaction

logger = logging.getLogger(__name__)


class InscriptionIndex:
    """Map inscription identity to the decoded inscription.

    Keyed by :class:`~ordscope.inscription.InscriptionId`. A transaction is
    decoded at most once; all envelopes across all of its inputs are decoded
    together.
    """

    def __init__(self, source: ChainSource) -> None:
        self.source = source
        self._by_id: Dict[InscriptionId, Inscription] = {}
        self._by_txid: Dict[str, Tuple[InscriptionId, ...]] = {}

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, inscription_id: object) -> bool:
        return inscription_id in self._by_id

    def __iter__(self) -> Iterator[Inscription]:
        return iter(self._by_id.values())

    def get(self, inscription_id: InscriptionId) -> Optional[Inscription]:
        return self._by_id.get(inscription_id)

    def is_decoded(self, txid: str) -> bool:
        return txid in self._by_txid

    def transaction(
        self,
        txid: str,
        *,
        block_hash: str | None = None,
        tx_json: Mapping[str, Any] | None = None,
    ) -> Tuple[Inscription, ...]:
        """Return the inscriptions of ``txid``, decoding it on first access.

        ``tx_json`` short-circuits the RPC fetch when the caller already holds
        the transaction (for instance from a verbose block).
        """

        cached = self._by_txid.get(txid)
        if cached is not None:
            return tuple(self._by_id[key] for key in cached)

        if tx_json is None:
            tx_json = self.source.get_transaction(txid, block_hash=block_hash)
        return self._store(txid, decode_transaction(dict(tx_json)))

    def block(self, block: Block) -> List[Tuple[int, Inscription]]:
        """Return ``(tx position, inscription)`` pairs for every tx in ``block``."""

        entries: List[Tuple[int, Inscription]] = []
        for position, txid in enumerate(block.txids):
            tx_json = block.transactions.get(txid)
            for inscription in self.transaction(txid, block_hash=block.hash, tx_json=tx_json):
                entries.append((position, inscription))
        return entries

    def resolve(self, ref: InscriptionRef, *, block_hash: str | None = None) -> Inscription:
        inscriptions = self.transaction(ref.txid, block_hash=block_hash)
        if ref.offset >= len(inscriptions):
            raise NotFoundError(
                f"Inscription {ref} not found; transaction carries {len(inscriptions)} inscription(s)"
            )
        return inscriptions[ref.offset]

    def _store(self, txid: str, inscriptions: List[Inscription]) -> Tuple[Inscription, ...]:
        keys = []
        for inscription in inscriptions:
            if inscription.id in self._by_id:
                # Identity already cached; the cached value is authoritative.
                logger.debug("Inscription %s already indexed", inscription.inscription_id)
            else:
                self._by_id[inscription.id] = inscription
            keys.append(inscription.id)
        self._by_txid[txid] = tuple(keys)
        return tuple(self._by_id[key] for key in keys)
