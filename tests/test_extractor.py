# File: tests/test_extractor.py
import pytest

from conftest import page_html, tx_hash
from tx_scout.crawler.models import Classification, ContentResult
from tx_scout.exceptions import BlockedContent, InsufficientContent
from tx_scout.parser.extractor import (
    check_content,
    classify_content,
    detect_total_pages,
    extract_hashes,
)
from tx_scout.parser.signatures import (
    DEFAULT_SIGNATURES,
    BlockSignature,
    BlockSignatureTable,
    SignatureKind,
    load_signatures,
)

HASH_A = tx_hash("A")
HASH_B = tx_hash("B")


# --------------------------------------------------------------------------- #
#                                Extraction                                   #
# --------------------------------------------------------------------------- #


def test_duplicate_links_collapse():
    html = page_html([HASH_A, HASH_B, HASH_A])
    assert extract_hashes(html) == {HASH_A, HASH_B}


def test_only_linked_full_length_hashes_match():
    html = (
        f"<p>{HASH_A}</p>"  # not inside a link
        f'<a href="/tx/0x{"c" * 63}">short</a>'
        f'<a href="/tx/0x{"d" * 65}">long</a>'
        f'<a href="https://etherscan.io/tx/{HASH_B}">ok</a>'
    )
    assert extract_hashes(html) == {HASH_B}


def test_match_cap_stops_scan_early():
    hashes = [tx_hash(c) for c in "12345"]
    html = page_html(hashes)
    found = extract_hashes(html, max_matches=3)
    assert found == set(hashes[:3])


def test_mixed_case_hashes_are_kept_verbatim():
    mixed = "0x" + "aB" * 32
    assert extract_hashes(f'<a href="/tx/{mixed}">x</a>') == {mixed}


# --------------------------------------------------------------------------- #
#                              Classification                                 #
# --------------------------------------------------------------------------- #


@pytest.mark.parametrize("content", [None, "", "<html></html>", "x" * 499])
def test_short_content_is_insufficient(content):
    result = classify_content(7, content)
    assert result.classification is Classification.INSUFFICIENT
    assert result.page_number == 7
    with pytest.raises(InsufficientContent):
        check_content(result)


def test_exactly_threshold_is_enough():
    assert classify_content(1, "x" * 500).classification is Classification.OK


@pytest.mark.parametrize(
    "marker,kind",
    [
        ("Access Denied", SignatureKind.ACCESS_DENIED),
        ("Please complete the CAPTCHA", SignatureKind.CAPTCHA),
        ("You hit the Rate Limit", SignatureKind.RATE_LIMIT),
        ("Service Unavailable", SignatureKind.MAINTENANCE),
        ("Checking your browser - Cloudflare", SignatureKind.CHALLENGE),
    ],
)
def test_block_signatures_are_case_insensitive(marker, kind):
    html = page_html([HASH_A]).replace("<body>", f"<body><h1>{marker}</h1>")
    result = classify_content(1, html)
    assert result.classification is Classification.BLOCKED
    assert result.signature.kind is kind
    with pytest.raises(BlockedContent) as exc_info:
        check_content(result)
    assert exc_info.value.signature.kind is kind


def test_ok_content_passes_check():
    html = page_html([HASH_A])
    result = classify_content(1, html)
    assert result.classification is Classification.OK
    assert check_content(result) == html


def test_blocked_result_without_signature_is_rejected():
    result = ContentResult(3, page_html([HASH_A]), Classification.BLOCKED)
    with pytest.raises(ValueError):
        check_content(result)


def test_custom_min_length():
    assert classify_content(1, "x" * 50, min_length=10).classification is Classification.OK


# --------------------------------------------------------------------------- #
#                               Detection                                     #
# --------------------------------------------------------------------------- #


def test_detect_page_x_of_y():
    assert detect_total_pages(page_html([HASH_A], total_pages=37)) == 37


def test_detect_marker_outside_widget():
    html = "<html><body><div class='pager'><span>Page 2 of 9</span></div></body></html>"
    assert detect_total_pages(html) == 9


def test_detect_falls_back_to_last_link():
    html = (
        "<ul class='pagination'>"
        "<li><a class='page-link' href='/advanced-filter?tkn=x&p=2'>Next</a></li>"
        "<li><a class='page-link' href='/advanced-filter?tkn=x&p=12'>Last</a></li>"
        "</ul>"
    )
    assert detect_total_pages(html) == 12


def test_detect_defaults_to_one():
    assert detect_total_pages(page_html([HASH_A])) == 1


# --------------------------------------------------------------------------- #
#                               Signatures                                    #
# --------------------------------------------------------------------------- #


def test_default_table_has_challenge_marker():
    challenge = [s for s in DEFAULT_SIGNATURES.signatures if s.is_challenge]
    assert challenge and challenge[0].pattern == "cloudflare"


def test_signatures_are_lowercased():
    table = BlockSignatureTable(signatures=[BlockSignature(pattern="Just A Moment", kind="challenge")])
    assert table.match("<title>just a moment...</title>").is_challenge


def test_load_signatures_yaml(tmp_path):
    path = tmp_path / "sig.yaml"
    path.write_text(
        "version: 3\nsignatures:\n  - {pattern: 'Too Many Requests', kind: rate_limit}\n",
        encoding="utf-8",
    )
    table = load_signatures(path)
    assert table.version == 3
    assert table.match("429 too many requests").kind is SignatureKind.RATE_LIMIT
    assert table.match("Access Denied") is None


def test_load_signatures_rejects_non_mapping(tmp_path):
    path = tmp_path / "sig.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(TypeError):
        load_signatures(path)
