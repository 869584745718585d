from isin_matcher.candidate_locator import build_search_url, locate_candidates
from isin_matcher.models import Candidate

BASE = "https://www.gurufocus.com/search?s=Apple"

# Stocks 見出しの表と、その前にある別の表（ETF など）
STOCKS_SECTION_HTML = """
<html><body>
  <div class="section">
    <h3>Funds</h3>
    <table>
      <tr><td><a href="/stock/FUND1/summary">FUND1</a></td></tr>
    </table>
  </div>
  <div class="section">
    <h3>Stocks</h3>
    <table>
      <tr>
        <td><a href="/stock/AAPL/summary">AAPL</a></td>
        <td><a href="/stock/AAPL/summary">Apple Inc</a></td>
      </tr>
      <tr><td><a href="https://www.gurufocus.com/stock/XSWX:AAPL/summary"> Apple Inc
            (Switzerland) </a></td></tr>
      <tr><td><a href="/news/123">Apple news</a></td></tr>
    </table>
  </div>
</body></html>
"""

STOCK_TABLE_HTML = """
<html><body>
  <table><tr><td><a href="/term/pe">PE Ratio</a></td></tr></table>
  <div role="table">
    <div role="row"><a href="/stock/MSFT/summary">MSFT</a></div>
    <div role="row"><a href="/stock/MSFT.MX/summary">MSFT.MX</a></div>
  </div>
</body></html>
"""

ROW_LINKS_HTML = """
<html><body>
  <nav><a href="/stock/NAV/summary">Nav stock</a></nav>
  <ul><li><a href="/stock/LIST/summary">List stock</a></li></ul>
  <footer><a href="/stock/FOOT/summary">Footer stock</a></footer>
</body></html>
"""


def test_build_search_url_encodes_name():
    url = build_search_url("AT&T Inc / Class A", base_url="https://www.gurufocus.com")
    assert url == "https://www.gurufocus.com/search?s=AT%26T%20Inc%20%2F%20Class%20A"


def test_stocks_section_scoped_to_its_table():
    candidates = locate_candidates(STOCKS_SECTION_HTML, BASE)
    assert candidates == [
        Candidate(url="https://www.gurufocus.com/stock/AAPL/summary", display_text="AAPL"),
        Candidate(url="https://www.gurufocus.com/stock/XSWX:AAPL/summary", display_text="Apple Inc (Switzerland)"),
    ]


def test_stocks_section_by_id():
    html = """
    <div>
      <div id="stocks">Results</div>
      <table><tr><td><a href="/stock/IBM/summary">IBM</a></td></tr></table>
    </div>
    <table><tr><td><a href="/stock/OTHER/summary">OTHER</a></td></tr></table>
    """
    urls = [c.url for c in locate_candidates(html, BASE)]
    assert urls == ["https://www.gurufocus.com/stock/IBM/summary"]


def test_stocks_section_without_stock_links_is_empty():
    html = """
    <div><h2>STOCKS</h2><table><tr><td>No results</td></tr></table></div>
    <table><tr><td><a href="/stock/ELSE/summary">ELSE</a></td></tr></table>
    """
    assert locate_candidates(html, BASE) == []


def test_falls_back_to_first_table_with_stock_links():
    urls = [c.url for c in locate_candidates(STOCK_TABLE_HTML, BASE)]
    assert urls == [
        "https://www.gurufocus.com/stock/MSFT/summary",
        "https://www.gurufocus.com/stock/MSFT.MX/summary",
    ]


def test_last_resort_only_row_or_cell_links():
    # 表の外（nav/footer/list）のリンクは拾わない
    assert locate_candidates(ROW_LINKS_HTML, BASE) == []


def test_last_resort_row_links_in_document_order():
    html = """
    <div>
      <span><a href="/stock/TOP/summary">top</a></span>
      <tr><a href="/stock/ROW/summary">row</a></tr>
    </div>
    """
    # html.parser は表外の tr もタグとして残す
    urls = [c.url for c in locate_candidates(html, BASE)]
    assert urls == ["https://www.gurufocus.com/stock/ROW/summary"]


def test_empty_html():
    assert locate_candidates("", BASE) == []


def test_build_search_url_follows_environment_base(monkeypatch):
    monkeypatch.setenv("GURUFOCUS_BASE_URL", "https://mirror.example/")
    assert build_search_url("Apple Inc") == "https://mirror.example/search?s=Apple%20Inc"
    assert locate_candidates('<table><tr><td><a href="/stock/AAPL/summary">AAPL</a></td></tr></table>') == [
        Candidate(url="https://mirror.example/stock/AAPL/summary", display_text="AAPL"),
    ]


def test_build_search_url_default_base(monkeypatch):
    monkeypatch.delenv("GURUFOCUS_BASE_URL", raising=False)
    assert build_search_url("Apple Inc") == "https://www.gurufocus.com/search?s=Apple%20Inc"
