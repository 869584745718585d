import pytest

from isin_matcher.isin_extractor import (
    EXTRACTION_STRATEGIES,
    extract_isin,
    extract_isin_with_tier,
    is_valid_isin,
)

WELL_FORMED = ["US0378331005", "GB0002634946", "JP3633400001", "DE000BASF111", "US0000011111"]


@pytest.mark.parametrize("code", WELL_FORMED)
@pytest.mark.parametrize("template", ["ISIN: {}", "isin:{}", "Isin :  {}", "ISIN\n:\t{}"])
def test_label_tier_extracts_well_formed_codes(code, template):
    isin, tier = extract_isin_with_tier(template.format(code))
    assert isin == code
    assert tier == "label"


def test_label_tier_wins_over_earlier_bare_token():
    text = "Ticker ABCDEFGHIJ12 Exchange NAS\nISIN: US0378331005\nCUSIP 037833100"
    isin, tier = extract_isin_with_tier(text)
    assert isin == "US0378331005"
    assert tier == "label"


def test_label_tier_rejects_code_running_into_more_characters():
    assert extract_isin_with_tier("ISIN: US0378331005XYZ") == (None, None)


def test_overlong_labelled_code_falls_through_to_standalone_code():
    isin, tier = extract_isin_with_tier("ISIN: US0378331005XYZ\nAlt listing GB0002634946")
    assert isin == "GB0002634946"
    assert tier == "bare"


def test_label_requires_uppercase_code():
    # ラベルは大小無視、コード自体は大文字のみ
    assert extract_isin("ISIN: us0378331005") is None


def test_bare_tier_used_when_no_label():
    isin, tier = extract_isin_with_tier("Apple Inc (AAPL) US0378331005 NASDAQ")
    assert isin == "US0378331005"
    assert tier == "bare"


def test_bare_tier_requires_standalone_token():
    assert extract_isin("XUS0378331005") is None
    assert extract_isin("US0378331005abc") is None


def test_element_tier_scans_cells_before_paragraphs():
    html = """
    <html><body>
      <p>GB0002634946</p>
      <table><tr><th>ISIN</th><td>US0378331005</td></tr></table>
    </body></html>
    """
    isin, tier = extract_isin_with_tier("no identifier in visible text", html)
    assert isin == "US0378331005"
    assert tier == "element"


def test_element_tier_ignores_script_content():
    html = '<html><head><script>var id = "US0378331005";</script></head><body><p>Profile</p></body></html>'
    assert extract_isin("Profile", html) is None


def test_earlier_tier_not_overridden_by_element_scan():
    html = "<table><tr><td>GB0002634946</td></tr></table>"
    assert extract_isin("Listed as US0378331005", html) == "US0378331005"


def test_nothing_found_returns_none():
    assert extract_isin_with_tier("", None) == (None, None)
    assert extract_isin("Apple Inc. designs smartphones.", "<div>Apple</div>") is None


def test_strategy_order_is_fixed():
    assert [name for name, _ in EXTRACTION_STRATEGIES] == ["label", "bare", "element"]


def test_is_valid_isin():
    assert is_valid_isin("US0378331005")
    assert not is_valid_isin("us0378331005")
    assert not is_valid_isin("1S0378331005")
    assert not is_valid_isin("US037833100")
    assert not is_valid_isin("")
    assert not is_valid_isin(None)
