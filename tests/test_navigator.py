import pytest

from chain_stubs import StubRPC, fake_hash, sample_chain
from ordscope.chain import ChainSource, IndexUnavailableError, NotFoundError
from ordscope.classifier import Category
from ordscope.filters import FilterSet
from ordscope.navigator import (
    BlockListState,
    ErrorState,
    FilterMenuState,
    InscriptionDetailState,
    InscriptionListState,
    NavigationError,
    Navigator,
    ScanScope,
    ScopeError,
)
from ordscope.rpc_client import RPCTransportError


def _navigator(txindex: bool = True, **kwargs) -> tuple[Navigator, StubRPC, dict]:
    blocks, txids = sample_chain()
    rpc = StubRPC(blocks, txindex=txindex)
    return Navigator(ChainSource(rpc), page_size=2, **kwargs), rpc, txids


def test_block_list_pages_from_the_tip() -> None:
    navigator, _, _ = _navigator()

    state = navigator.start()
    assert isinstance(state, BlockListState)
    assert [b.height for b in state.blocks] == [2, 1]

    state = navigator.older_blocks()
    assert [b.height for b in state.blocks] == [0]
    assert navigator.older_blocks() == state

    state = navigator.newer_blocks()
    assert [b.height for b in state.blocks] == [2, 1]
    assert navigator.depth == 1


def test_select_and_step_through_inscriptions() -> None:
    navigator, _, txids = _navigator()
    navigator.start()

    listing = navigator.select(0)
    assert isinstance(listing, InscriptionListState)
    assert [(e.tx_position, e.inscription.category) for e in listing.entries] == [
        (1, Category.IMAGE),
        (1, Category.TEXT),
        (2, Category.BRC20),
    ]

    detail = navigator.select(1)
    assert isinstance(detail, InscriptionDetailState)
    assert detail.inscription.content == b"second"
    assert navigator.cursor.block_height == 2
    assert navigator.cursor.tx_index == 1
    assert navigator.cursor.inscription_index == 1

    assert navigator.step(1) is True
    assert navigator.state.inscription.txid == txids["brc20"]
    assert navigator.step(1) is False
    assert navigator.state.inscription.txid == txids["brc20"]

    assert isinstance(navigator.back(), InscriptionListState)
    assert isinstance(navigator.back(), BlockListState)
    assert navigator.back() is None
    assert navigator.finished
    assert navigator.cursor.exhausted


def test_select_out_of_range_raises() -> None:
    navigator, _, _ = _navigator()
    navigator.start()

    with pytest.raises(NavigationError):
        navigator.select(5)


def test_filter_menu_refilters_open_list() -> None:
    navigator, _, _ = _navigator()
    navigator.start()
    navigator.select(0)

    menu = navigator.open_filter_menu()
    assert isinstance(menu, FilterMenuState)
    navigator.toggle_filter(Category.IMAGE)
    assert not navigator.state.filters.accepts_category(Category.IMAGE)

    listing = navigator.close_filter_menu()
    assert isinstance(listing, InscriptionListState)
    assert [e.inscription.category for e in listing.entries] == [Category.TEXT, Category.BRC20]


def test_detail_rejected_by_new_filters_is_dropped() -> None:
    navigator, _, _ = _navigator()
    navigator.start()
    navigator.select(0)
    navigator.select(0)
    assert navigator.state.inscription.category is Category.IMAGE

    navigator.open_filter_menu()
    navigator.set_filters(FilterSet.from_names(["text"]))
    state = navigator.close_filter_menu()

    assert isinstance(state, InscriptionListState)
    assert [e.inscription.content for e in state.entries] == [b"second"]


def test_lookup_failure_becomes_error_state() -> None:
    navigator, _, _ = _navigator()
    navigator.start()

    state = navigator.open_block(99)

    assert isinstance(state, ErrorState)
    assert "99" in state.message
    assert isinstance(navigator.back(), BlockListState)


def test_transport_failure_propagates() -> None:
    navigator, rpc, _ = _navigator()
    navigator.start()

    def broken(*_args, **_kwargs):
        raise RPCTransportError("connection refused")

    rpc.getblock = broken
    with pytest.raises(RPCTransportError):
        navigator.open_block(1)


def test_batch_scan_matches_explorer_listing() -> None:
    navigator, _, _ = _navigator(filters=FilterSet.from_names(["text", "brc20"]))

    scanned = navigator.scan(ScanScope(block=2))
    navigator.start()
    listing = navigator.select(0)

    assert [i.id for i in scanned] == [e.inscription.id for e in listing.entries]
    assert [i.category for i in scanned] == [Category.TEXT, Category.BRC20]
    assert navigator.cursor.tx_index == 1


def test_scan_cursor_is_exhausted_afterwards() -> None:
    navigator, _, txids = _navigator()

    seen = []
    for inscription in navigator.iter_scan(ScanScope(block=1)):
        seen.append((inscription.txid, navigator.cursor.tx_index, navigator.cursor.exhausted))

    assert seen == [(txids["hello"], 1, False)]
    assert navigator.cursor.exhausted


def test_scan_single_transaction_and_input() -> None:
    navigator, rpc, txids = _navigator()

    both = navigator.scan(ScanScope(txid=txids["mixed"]))
    assert len(both) == 2

    only_second_input = navigator.scan(ScanScope(txid=txids["brc20"], input_index=1))
    assert [i.category for i in only_second_input] == [Category.BRC20]
    assert navigator.scan(ScanScope(txid=txids["brc20"], input_index=0)) == []


def test_scan_transaction_within_block() -> None:
    navigator, rpc, txids = _navigator(txindex=False)

    found = navigator.scan(ScanScope(block=2, txid=txids["brc20"]))

    assert [i.txid for i in found] == [txids["brc20"]]
    assert rpc.count("getrawtransaction") == 0


def test_scan_transaction_missing_from_block() -> None:
    navigator, _, txids = _navigator()

    with pytest.raises(NotFoundError):
        navigator.scan(ScanScope(block=1, txid=txids["brc20"]))


def test_scan_without_txindex_needs_a_block() -> None:
    navigator, rpc, txids = _navigator(txindex=False)

    with pytest.raises(IndexUnavailableError):
        navigator.scan(ScanScope(txid=txids["hello"]))
    assert rpc.count("getrawtransaction") == 0


def test_scan_unknown_transaction() -> None:
    navigator, _, _ = _navigator()

    with pytest.raises(NotFoundError):
        navigator.scan(ScanScope(txid=fake_hash("missing")))


@pytest.mark.parametrize(
    "scope",
    [ScanScope(), ScanScope(block=1, input_index=0), ScanScope(txid=fake_hash("x"), input_index=-1)],
)
def test_invalid_scopes(scope: ScanScope) -> None:
    navigator, rpc, _ = _navigator()

    with pytest.raises(ScopeError):
        navigator.scan(scope)
    assert rpc.calls == []


@pytest.mark.parametrize(
    "scope_name",
    ["block", "tx", "tx_in_block"],
)
def test_empty_filter_set_yields_nothing_for_any_scope(scope_name: str) -> None:
    navigator, _, txids = _navigator(filters=FilterSet.none())
    scopes = {
        "block": ScanScope(block=2),
        "tx": ScanScope(txid=txids["mixed"]),
        "tx_in_block": ScanScope(block=2, txid=txids["brc20"]),
    }

    assert navigator.scan(scopes[scope_name]) == []
    assert navigator.cursor.exhausted
