"""Interactive ASCII explorer built on :class:`~ordscope.navigator.Navigator`."""

from __future__ import annotations

import textwrap
from pathlib import Path

from .chain import parse_block_ref
from .classifier import Category
from .extract import ExtractionIOError, extract_inscription
from .filters import FilterError, FilterSet, parse_category
from .inscription import DEFAULT_WEB_BASE
from .navigator import (
    BlockListState,
    ErrorState,
    FilterMenuState,
    InscriptionDetailState,
    InscriptionListState,
    NavigationError,
    Navigator,
)
from .render import describe, open_web, render_detail

QUIT_WORDS = {"q", "quit", "exit"}


def _pause(message: str = "Press Enter to continue...") -> None:
    input(message)


def _parse_position(raw: str) -> int | None:
    if raw.isdigit():
        return int(raw)
    return None


def _select(navigator: Navigator, raw: str) -> None:
    position = _parse_position(raw)
    if position is None:
        print("Invalid selection, please try again.\n")
        return
    try:
        navigator.select(position)
    except NavigationError as exc:
        print(f"{exc}\n")


def _jump(navigator: Navigator) -> None:
    raw = input("Block height or hash: ").strip()
    if not raw:
        return
    try:
        ref = parse_block_ref(raw)
    except ValueError as exc:
        print(f"{exc}\n")
        return
    navigator.open_block(ref)


def _render_block_list(state: BlockListState, filters: FilterSet) -> None:
    bottom = state.blocks[-1].height if state.blocks else state.top_height
    print("=" * 37 + "\nordscope explorer\n" + "=" * 37)
    print(f"Chain tip: {state.tip_height}   showing {state.top_height}..{bottom}   filters: {filters.describe()}\n")
    for number, summary in enumerate(state.blocks):
        print(f"[{number:>2}] {summary.height:>8}  {summary.hash}  {summary.n_tx:>5} tx")
    print(
        textwrap.dedent(
            """
            [#] Open block   [O] Older   [N] Newer   [J] Jump to block
            [F] Filters      [Q] Quit
            """
        )
    )


def handle_block_list(navigator: Navigator, state: BlockListState) -> bool:
    _render_block_list(state, navigator.filters)
    choice = input("Select an option: ").strip().lower()
    if choice in QUIT_WORDS:
        return False
    if choice == "o":
        navigator.older_blocks()
    elif choice == "n":
        navigator.newer_blocks()
    elif choice == "j":
        _jump(navigator)
    elif choice == "f":
        navigator.open_filter_menu()
    elif choice == "b":
        navigator.back()
    else:
        _select(navigator, choice)
    return True


def handle_inscription_list(navigator: Navigator, state: InscriptionListState) -> bool:
    block = state.block
    print(f"\nBlock {block.height} ({block.hash})")
    print(f"{len(block.txids)} transactions, {len(state.entries)} matching inscription(s), "
          f"filters: {navigator.filters.describe()}\n")
    if not state.entries:
        print("  No matching inscriptions in this block.")
    for number, entry in enumerate(state.entries):
        print(f"[{number:>3}] tx {entry.tx_position:>5}  {describe(entry.inscription)}")
    print(
        textwrap.dedent(
            """
            [#] View inscription   [J] Jump to block   [F] Filters
            [B] Back               [Q] Quit
            """
        )
    )
    choice = input("Select an option: ").strip().lower()
    if choice in QUIT_WORDS:
        return False
    if choice == "b":
        navigator.back()
    elif choice == "f":
        navigator.open_filter_menu()
    elif choice == "j":
        _jump(navigator)
    else:
        _select(navigator, choice)
    return True


class DetailView:
    """Options for the detail screen that persist across inscriptions."""

    def __init__(self, web_base: str = DEFAULT_WEB_BASE, extract_dir: str | Path = ".") -> None:
        self.web_base = web_base
        self.extract_dir = extract_dir
        self.raw_json = False

    def handle(self, navigator: Navigator, state: InscriptionDetailState) -> bool:
        print()
        print(f"[{state.position + 1}/{len(state.entries)}] block {state.block.height}, "
              f"tx {state.listed.tx_position}")
        print(render_detail(state.inscription, raw_json=self.raw_json))
        print(
            textwrap.dedent(
                """
                [N] Next   [P] Previous   [E] Extract   [W] Open on web
                [R] Toggle raw JSON   [F] Filters   [B] Back   [Q] Quit
                """
            )
        )
        choice = input("Select an option: ").strip().lower()
        if choice in QUIT_WORDS:
            return False
        if choice == "n":
            if not navigator.step(1):
                print("Already at the last inscription.\n")
        elif choice == "p":
            if not navigator.step(-1):
                print("Already at the first inscription.\n")
        elif choice == "e":
            try:
                path = extract_inscription(state.inscription, self.extract_dir)
            except ExtractionIOError as exc:
                print(f"Extraction failed: {exc}\n")
            else:
                print(f"Wrote {path}\n")
        elif choice == "w":
            print(f"Opened {open_web(state.inscription, self.web_base)}\n")
        elif choice == "r":
            self.raw_json = not self.raw_json
        elif choice == "f":
            navigator.open_filter_menu()
        elif choice == "b":
            navigator.back()
        else:
            print("Invalid selection, please try again.\n")
        return True


def handle_filter_menu(navigator: Navigator, state: FilterMenuState) -> bool:
    print("\nCategory filters\n" + "-" * 24)
    for number, category in enumerate(Category, start=1):
        mark = "x" if state.filters.accepts_category(category) else " "
        print(f"[{number}] [{mark}] {category.value}")
    print(
        textwrap.dedent(
            """
            Type a number or category name to toggle it.
            [A] All   [C] Clear   [B] Done   [Q] Quit
            """
        )
    )
    choice = input("Select an option: ").strip().lower()
    if choice in QUIT_WORDS:
        return False
    if choice in {"b", ""}:
        navigator.close_filter_menu()
    elif choice == "a":
        navigator.set_filters(FilterSet.all())
    elif choice == "c":
        navigator.set_filters(FilterSet.none())
    else:
        categories = list(Category)
        position = _parse_position(choice)
        try:
            if position is not None:
                if not 1 <= position <= len(categories):
                    raise FilterError(f"No category numbered {position}")
                category = categories[position - 1]
            else:
                category = parse_category(choice)
        except FilterError as exc:
            print(f"{exc}\n")
        else:
            navigator.toggle_filter(category)
    return True


def handle_error(navigator: Navigator, state: ErrorState) -> bool:
    print(f"\nError: {state.message}")
    _pause("Press Enter to go back...")
    navigator.back()
    return True


def explore_main(
    navigator: Navigator,
    *,
    web_base: str = DEFAULT_WEB_BASE,
    extract_dir: str | Path = ".",
) -> None:
    """Run the explorer until the user quits or backs out of the block list.

    Lookup failures are shown and dismissed in-session. Connection and
    authentication failures propagate to the caller.
    """

    detail = DetailView(web_base=web_base, extract_dir=extract_dir)
    navigator.start()
    keep_going = True
    while keep_going and not navigator.finished:
        state = navigator.state
        if isinstance(state, BlockListState):
            keep_going = handle_block_list(navigator, state)
        elif isinstance(state, InscriptionListState):
            keep_going = handle_inscription_list(navigator, state)
        elif isinstance(state, InscriptionDetailState):
            keep_going = detail.handle(navigator, state)
        elif isinstance(state, FilterMenuState):
            keep_going = handle_filter_menu(navigator, state)
        elif isinstance(state, ErrorState):
            keep_going = handle_error(navigator, state)
        else:  # pragma: no cover - every state is handled above
            raise NavigationError(f"Unhandled state {state!r}")
    print("Goodbye!")
