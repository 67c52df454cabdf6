"""Find, classify and extract Ordinals inscriptions through a Bitcoin Core node."""

from .chain import Block, BlockSummary, ChainSource, IndexUnavailableError, NotFoundError
from .classifier import Category, classify
from .extract import ExtractionIOError, ExtractionReport, extract_all, extract_inscription
from .filters import FilterError, FilterSet
from .index import InscriptionIndex
from .inscription import (
    Inscription,
    InscriptionId,
    InscriptionIdError,
    InscriptionRef,
    decode_transaction,
    parse_inscription_ref,
)
from .navigator import Navigator, ScanScope, ScopeError
from .rpc_client import BitcoinRPCClient, RPCError, RPCTransportError

__all__ = [
    "BitcoinRPCClient",
    "Block",
    "BlockSummary",
    "Category",
    "ChainSource",
    "ExtractionIOError",
    "ExtractionReport",
    "FilterError",
    "FilterSet",
    "IndexUnavailableError",
    "Inscription",
    "InscriptionId",
    "InscriptionIdError",
    "InscriptionIndex",
    "InscriptionRef",
    "Navigator",
    "NotFoundError",
    "RPCError",
    "RPCTransportError",
    "ScanScope",
    "ScopeError",
    "classify",
    "decode_transaction",
    "extract_all",
    "extract_inscription",
    "parse_inscription_ref",
]
