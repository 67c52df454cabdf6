"""Traversal state machine shared by the explorer and batch scans.

The explorer steps through explicit state values
(``BlockList -> InscriptionList -> InscriptionDetail``, with a filter menu and
an error state reachable on top). Batch scans walk a fixed scope in a single
forward pass. Both go through :meth:`Navigator.ordered_entries`, so ordering
and filtering are identical in the two modes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .chain import Block, BlockRef, BlockSummary, ChainSource, ChainSourceError
from .classifier import Category
from .filters import FilterSet
from .index import InscriptionIndex
from .inscription import Inscription
from .rpc_client import RPCError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20


class NavigationError(RuntimeError):
    """Raised for actions that make no sense in the current state."""


class ScopeError(ValueError):
    """Raised when a batch scan scope is incomplete or contradictory."""


@dataclass(frozen=True)
class ScanScope:
    """What a batch scan covers: a block, a transaction, or one input of it."""

    block: Optional[BlockRef] = None
    txid: Optional[str] = None
    input_index: Optional[int] = None

    def validate(self) -> None:
        if self.block is None and self.txid is None:
            raise ScopeError("A scan needs a block (--block) and/or a transaction (--tx)")
        if self.input_index is not None:
            if self.txid is None:
                raise ScopeError("--input requires --tx")
            if self.input_index < 0:
                raise ScopeError("--input must not be negative")


@dataclass(frozen=True)
class ListedInscription:
    tx_position: int
    inscription: Inscription

    @property
    def sort_key(self) -> Tuple[int, int, int]:
        identity = self.inscription.id
        return (self.tx_position, identity.input_index, identity.envelope_index)


@dataclass(frozen=True)
class BlockListState:
    tip_height: int
    top_height: int
    blocks: Tuple[BlockSummary, ...]


@dataclass(frozen=True)
class InscriptionListState:
    block: Block
    entries: Tuple[ListedInscription, ...]


@dataclass(frozen=True)
class InscriptionDetailState:
    block: Block
    entries: Tuple[ListedInscription, ...]
    position: int

    @property
    def listed(self) -> ListedInscription:
        return self.entries[self.position]

    @property
    def inscription(self) -> Inscription:
        return self.listed.inscription


@dataclass(frozen=True)
class FilterMenuState:
    filters: FilterSet


@dataclass(frozen=True)
class ErrorState:
    message: str


State = Union[BlockListState, InscriptionListState, InscriptionDetailState, FilterMenuState, ErrorState]


@dataclass(frozen=True)
class ExplorationCursor:
    """Current traversal position, or the exhausted sentinel."""

    filters: FilterSet
    block_height: Optional[int] = None
    block_hash: Optional[str] = None
    tx_index: Optional[int] = None
    inscription_index: Optional[int] = None
    exhausted: bool = False


class Navigator:
    """Drive traversal over blocks, transactions and inscriptions."""

    def __init__(
        self,
        source: ChainSource,
        index: InscriptionIndex | None = None,
        filters: FilterSet | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.source = source
        self.index = index if index is not None else InscriptionIndex(source)
        self.page_size = page_size
        self._filters = filters if filters is not None else FilterSet.all()
        self._stack: List[State] = []
        self._cursor = ExplorationCursor(self._filters, exhausted=True)

    # Shared traversal core ---------------------------------------------

    @property
    def filters(self) -> FilterSet:
        return self._filters

    @property
    def cursor(self) -> ExplorationCursor:
        return self._cursor

    def ordered_entries(self, pairs: Iterable[Tuple[int, Inscription]]) -> Tuple[ListedInscription, ...]:
        """Filter by the active set and order by (tx, input, envelope)."""

        listed = [
            ListedInscription(position, inscription)
            for position, inscription in pairs
            if self._filters.accepts(inscription)
        ]
        return tuple(sorted(listed, key=lambda entry: entry.sort_key))

    def block_entries(self, block: Block) -> Tuple[ListedInscription, ...]:
        return self.ordered_entries(self.index.block(block))

    # Batch driver -------------------------------------------------------

    def iter_scan(self, scope: ScanScope) -> Iterator[Inscription]:
        """Single forward pass over ``scope``.

        Every fetch happens before the first inscription is produced, and
        fetch errors propagate to the caller unchanged.
        """

        scope.validate()
        block, entries = self._scope_entries(scope)
        for number, entry in enumerate(entries):
            self._cursor = ExplorationCursor(
                self._filters,
                block_height=block.height if block else None,
                block_hash=block.hash if block else None,
                tx_index=entry.tx_position,
                inscription_index=number,
            )
            yield entry.inscription
        self._cursor = ExplorationCursor(self._filters, exhausted=True)

    def scan(self, scope: ScanScope) -> List[Inscription]:
        return list(self.iter_scan(scope))

    def _scope_entries(self, scope: ScanScope) -> Tuple[Optional[Block], Tuple[ListedInscription, ...]]:
        block: Optional[Block] = None
        if scope.block is not None:
            block = self.source.get_block(scope.block)
            if scope.txid is None:
                return block, self.block_entries(block)
            position = block.position_of(scope.txid)
            inscriptions = self.index.transaction(
                scope.txid, block_hash=block.hash, tx_json=block.transactions.get(scope.txid)
            )
        else:
            position = 0
            inscriptions = self.index.transaction(scope.txid)

        if scope.input_index is not None:
            inscriptions = tuple(i for i in inscriptions if i.id.input_index == scope.input_index)
        return block, self.ordered_entries((position, inscription) for inscription in inscriptions)

    # Interactive driver -------------------------------------------------

    @property
    def state(self) -> Optional[State]:
        return self._stack[-1] if self._stack else None

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def finished(self) -> bool:
        return not self._stack

    def start(self) -> State:
        """Enter the block list at the chain tip."""

        self._stack = []
        self._attempt(lambda: self._stack.append(self._block_page(None)))
        return self._settle()

    def older_blocks(self) -> State:
        state = self._require(BlockListState)
        if state.top_height - self.page_size >= 0:
            top = state.top_height - self.page_size
            self._attempt(lambda: self._replace(self._block_page(top, tip=state.tip_height)))
        return self._settle()

    def newer_blocks(self) -> State:
        state = self._require(BlockListState)
        if state.top_height < state.tip_height:
            top = min(state.top_height + self.page_size, state.tip_height)
            self._attempt(lambda: self._replace(self._block_page(top, tip=state.tip_height)))
        return self._settle()

    def open_block(self, ref: BlockRef) -> State:
        """Load ``ref`` and show its inscriptions (also used for "jump to block")."""

        def load() -> None:
            block = self.source.get_block(ref)
            self._stack.append(InscriptionListState(block=block, entries=self.block_entries(block)))

        self._attempt(load)
        return self._settle()

    def select(self, position: int) -> State:
        """Move one level forward from the current list."""

        state = self.state
        if isinstance(state, BlockListState):
            if not 0 <= position < len(state.blocks):
                raise NavigationError(f"No block at list position {position}")
            return self.open_block(state.blocks[position].hash)
        if isinstance(state, InscriptionListState):
            if not 0 <= position < len(state.entries):
                raise NavigationError(f"No inscription at list position {position}")
            self._stack.append(InscriptionDetailState(state.block, state.entries, position))
            return self._settle()
        raise NavigationError(f"Nothing to select in {type(state).__name__}")

    def step(self, delta: int) -> bool:
        """Move to a neighbouring inscription in the detail view.

        Returns ``False`` and stays put at either end of the list.
        """

        state = self._require(InscriptionDetailState)
        target = state.position + delta
        if not 0 <= target < len(state.entries):
            return False
        self._replace(replace(state, position=target))
        self._settle()
        return True

    def back(self) -> Optional[State]:
        """Return to the previous state; the cache is left untouched."""

        if self._stack:
            self._stack.pop()
        return self._settle()

    def open_filter_menu(self) -> State:
        self._stack.append(FilterMenuState(self._filters))
        return self._settle()

    def toggle_filter(self, category: Category) -> FilterSet:
        self._require(FilterMenuState)
        return self.set_filters(self._filters.toggle(category))

    def set_filters(self, filters: FilterSet) -> FilterSet:
        """Replace the active filters and re-filter every open list."""

        self._filters = filters
        refreshed: List[State] = []
        for state in self._stack:
            if isinstance(state, InscriptionListState):
                refreshed.append(replace(state, entries=self.block_entries(state.block)))
            elif isinstance(state, InscriptionDetailState):
                entries = self.block_entries(state.block)
                current = state.inscription.id
                matches = [n for n, entry in enumerate(entries) if entry.inscription.id == current]
                if matches:
                    refreshed.append(replace(state, entries=entries, position=matches[0]))
                # An inscription the new filters reject is no longer viewable.
            elif isinstance(state, FilterMenuState):
                refreshed.append(FilterMenuState(filters))
            else:
                refreshed.append(state)
        self._stack = refreshed
        self._settle()
        return filters

    def close_filter_menu(self) -> Optional[State]:
        self._require(FilterMenuState)
        return self.back()

    # Internals ----------------------------------------------------------

    def _block_page(self, top: Optional[int], tip: Optional[int] = None) -> BlockListState:
        tip_height = self.source.tip_height() if tip is None else tip
        top_height = tip_height if top is None else min(top, tip_height)
        bottom = max(top_height - self.page_size + 1, 0)
        blocks = tuple(self.source.block_summary(height) for height in range(top_height, bottom - 1, -1))
        return BlockListState(tip_height=tip_height, top_height=top_height, blocks=blocks)

    def _attempt(self, action) -> None:
        try:
            action()
        except (ChainSourceError, RPCError) as exc:
            logger.warning("Fetch failed: %s", exc)
            self._stack.append(ErrorState(str(exc)))

    def _replace(self, state: State) -> None:
        self._stack[-1] = state

    def _require(self, kind):
        state = self.state
        if not isinstance(state, kind):
            raise NavigationError(f"Expected {kind.__name__}, currently in {type(state).__name__}")
        return state

    def _settle(self) -> Optional[State]:
        self._cursor = self._cursor_for(self._stack)
        return self.state

    def _cursor_for(self, stack: Sequence[State]) -> ExplorationCursor:
        for state in reversed(stack):
            if isinstance(state, (FilterMenuState, ErrorState)):
                continue
            if isinstance(state, BlockListState):
                return ExplorationCursor(self._filters)
            if isinstance(state, InscriptionListState):
                if not state.entries:
                    return ExplorationCursor(
                        self._filters, block_height=state.block.height, block_hash=state.block.hash, exhausted=True
                    )
                return ExplorationCursor(
                    self._filters,
                    block_height=state.block.height,
                    block_hash=state.block.hash,
                    tx_index=state.entries[0].tx_position,
                    inscription_index=0,
                )
            if isinstance(state, InscriptionDetailState):
                return ExplorationCursor(
                    self._filters,
                    block_height=state.block.height,
                    block_hash=state.block.hash,
                    tx_index=state.listed.tx_position,
                    inscription_index=state.position,
                )
        return ExplorationCursor(self._filters, exhausted=True)
