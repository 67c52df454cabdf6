import pytest

from chain_stubs import PNG_BYTES, envelope_items, fake_hash, inscription_script, make_tx, text_script
from ordscope.classifier import Category
from ordscope.inscription import (
    InscriptionId,
    InscriptionIdError,
    InscriptionRef,
    decode_transaction,
    parse_inscription_ref,
)
from ordscope.script import OP_CHECKSIG, OP_FALSE, OP_IF, assemble_script

TXID = fake_hash("multi-input")


def test_offsets_count_across_inputs() -> None:
    tx = make_tx(
        TXID,
        inscription_script(envelope_items(b"one"), envelope_items(PNG_BYTES, b"image/png")),
        None,
        text_script("three"),
    )

    inscriptions = decode_transaction(tx)

    assert [i.id for i in inscriptions] == [
        InscriptionId(TXID, 0, 0),
        InscriptionId(TXID, 0, 1),
        InscriptionId(TXID, 2, 0),
    ]
    assert [i.inscription_id for i in inscriptions] == [f"{TXID}i0", f"{TXID}i1", f"{TXID}i2"]
    assert [i.category for i in inscriptions] == [Category.TEXT, Category.IMAGE, Category.TEXT]
    assert inscriptions[2].text() == "three"


def test_foreign_envelope_keeps_its_envelope_slot() -> None:
    tx = make_tx(
        TXID,
        inscription_script(envelope_items(b"other", protocol=b"xyz"), envelope_items(b"mine")),
    )

    [inscription] = decode_transaction(tx)

    assert inscription.id == InscriptionId(TXID, 0, 1)
    assert inscription.offset == 0
    assert inscription.content == b"mine"


def test_malformed_witness_only_loses_that_input() -> None:
    tx = make_tx(TXID, text_script("lost"), text_script("kept"))
    tx["vin"][0]["txinwitness"] = ["zz-not-hex"]

    [inscription] = decode_transaction(tx)

    assert inscription.id.input_index == 1
    assert inscription.inscription_id == f"{TXID}i0"


def test_transaction_without_witness_has_no_inscriptions() -> None:
    assert decode_transaction({"txid": TXID, "vin": [{"coinbase": "03"}]}) == []


def test_missing_txid_is_an_error() -> None:
    with pytest.raises(ValueError):
        decode_transaction({"vin": []})


def test_inscription_helpers() -> None:
    [inscription] = decode_transaction(make_tx(TXID, text_script("hello")))

    assert inscription.file_name() == f"{TXID}i0.txt"
    assert inscription.web_url() == f"https://ordinals.com/inscription/{TXID}i0"
    assert inscription.web_url("https://example.org/") == f"https://example.org/inscription/{TXID}i0"
    summary = inscription.summary()
    assert summary["category"] == "text"
    assert summary["length"] == 5
    assert summary["content_type"] == "text/plain;charset=utf-8"


def test_parse_inscription_ref() -> None:
    ref = parse_inscription_ref(f"{TXID.upper()}i3")

    assert ref == InscriptionRef(TXID, 3)
    assert str(ref) == f"{TXID}i3"


@pytest.mark.parametrize("raw", ["", "abc", f"{TXID}", f"{TXID}i", f"{TXID}x1", f"{TXID[:-1]}i0"])
def test_parse_inscription_ref_rejects_malformed_ids(raw: str) -> None:
    with pytest.raises(InscriptionIdError):
        parse_inscription_ref(raw)


def test_unterminated_envelope_does_not_affect_other_inputs() -> None:
    unterminated = assemble_script(b"\x03" * 32, OP_CHECKSIG, OP_FALSE, OP_IF, b"ord", b"", b"open")
    tx = make_tx(TXID, unterminated, text_script("kept"))

    [inscription] = decode_transaction(tx)

    assert inscription.id == InscriptionId(TXID, 1, 0)
    assert inscription.inscription_id == f"{TXID}i0"
    assert inscription.content == b"kept"
