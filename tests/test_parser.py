"""Literal-HTML fixtures pinning the positional table parser."""

from __future__ import annotations

import pytest

from zengin.config.policies import MarkupMarkers
from zengin.harvest.parser import HtmlTableParser, ParseError

SENTINEL = "該当するデータはありません"


def _institution_page(rows: str) -> str:
    return f"""
    <html><body>
      <table class="layout"><tbody><tr><td>header</td></tr></tbody></table>
      <div class="j0">
        <table>
          <thead><tr><th>金融機関名</th><th>フリガナ</th><th>コード</th><th></th></tr></thead>
          <tbody>{rows}</tbody>
        </table>
      </div>
    </body></html>
    """


def _branch_page(rows: str) -> str:
    return f"<html><body><table><tbody>{rows}</tbody></table></body></html>"


@pytest.fixture
def parser() -> HtmlTableParser:
    return HtmlTableParser()


def test_institution_row_and_sentinel_yield_single_record(parser: HtmlTableParser) -> None:
    html = _institution_page(
        """
        <tr>
          <td>ねこ銀行</td><td>ﾈｺ</td><td>0222</td>
          <td><form><button type="submit" name="pz" value="t1">支店一覧</button></form></td>
        </tr>
        <tr><td colspan="4">該当するデータはありません</td></tr>
        """
    )

    table = parser.parse_institutions(html)

    assert len(table) == 1
    institution = table.records[0]
    assert institution.name == "ねこ銀行"
    assert institution.phonetic == "ﾈｺ"
    assert institution.code == "0222"
    assert institution.query_token == "t1"
    assert institution.branches == []
    assert table.rejected == []


def test_layout_tables_outside_marker_are_ignored(parser: HtmlTableParser) -> None:
    table = parser.parse_institutions(_institution_page(f"<tr><td>{SENTINEL}</td></tr>"))

    assert table.records == []
    assert table.rejected == []


def test_sentinel_only_branch_page_parses_to_empty_list(parser: HtmlTableParser) -> None:
    table = parser.parse_branches(_branch_page(f"<tr><td colspan='3'>{SENTINEL}</td></tr>"))

    assert table.records == []
    assert table.rejected == []


def test_branch_rows_keep_document_order(parser: HtmlTableParser) -> None:
    html = _branch_page(
        """
        <tr><td>みけ支店</td><td>ﾐｹ</td><td>0123</td></tr>
        <tr><td> とら支店 </td><td>ﾄﾗ</td><td>0789</td></tr>
        """
    )

    table = parser.parse_branches(html)

    assert [branch.code for branch in table.records] == ["0123", "0789"]
    assert table.records[1].name == "とら支店"


def test_row_count_equals_data_rows_minus_sentinels(parser: HtmlTableParser) -> None:
    data_rows = "".join(f"<tr><td>支店{i}</td><td>ｼﾃﾝ</td><td>{i:03d}</td></tr>" for i in range(5))
    sentinels = f"<tr><td>{SENTINEL}</td></tr>" * 2

    table = parser.parse_branches(_branch_page(data_rows + sentinels))

    assert len(table) == 5


def test_malformed_row_is_rejected_without_dropping_batch(parser: HtmlTableParser) -> None:
    html = _institution_page(
        """
        <tr><td>いぬ銀行</td><td>ｲﾇ</td><td>0111</td><td><button value="t2">x</button></td></tr>
        <tr><td>とり銀行</td><td>ﾄﾘ</td></tr>
        <tr><td>うし銀行</td><td>ｳｼ</td><td>0333</td><td>no button</td></tr>
        """
    )

    table = parser.parse_institutions(html)

    assert [institution.code for institution in table.records] == ["0111"]
    assert len(table.rejected) == 2
    assert table.rejected[0].row_index == 2
    assert "code" in str(table.rejected[0])
    assert "value attribute" in str(table.rejected[1])


def test_sentinel_must_match_exactly(parser: HtmlTableParser) -> None:
    html = _branch_page(f"<tr><td>{SENTINEL}。</td><td>x</td><td>001</td></tr>")

    table = parser.parse_branches(html)

    assert len(table) == 1


def test_blank_rows_are_skipped(parser: HtmlTableParser) -> None:
    table = parser.parse_branches(_branch_page("<tr>  </tr><tr><td>a</td><td>b</td><td>c</td></tr>"))

    assert len(table) == 1
    assert table.rejected == []


def test_missing_result_table_raises_parse_error(parser: HtmlTableParser) -> None:
    with pytest.raises(ParseError):
        parser.parse_institutions("<html><body><p>maintenance</p></body></html>")


def test_custom_markers_are_honoured() -> None:
    parser = HtmlTableParser(MarkupMarkers(institution_table_class="results", empty_result_sentinel="none"))
    html = """
    <section class="results"><table><tbody>
      <tr><td>none</td></tr>
      <tr><td>A</td><td>ｴｰ</td><td>9999</td><td><input type="hidden" value="tok"></td></tr>
    </tbody></table></section>
    """

    table = parser.parse_institutions(html)

    assert [(i.code, i.query_token) for i in table.records] == [("9999", "tok")]


def test_institution_table_without_tbody_is_parsed(parser: HtmlTableParser) -> None:
    html = f"""
    <div class="j0"><table>
      <thead><tr><th>金融機関名</th><th>フリガナ</th><th>コード</th><th></th></tr></thead>
      <tr><td>{SENTINEL}</td></tr>
      <tr><td>ねこ銀行</td><td>ﾈｺ</td><td>0222</td><td><button value="0x222">支店</button></td></tr>
    </table></div>
    """

    table = parser.parse_institutions(html)

    assert [(i.code, i.query_token) for i in table.records] == [("0222", "0x222")]
    assert table.rejected == []


def test_branch_table_without_tbody_is_parsed(parser: HtmlTableParser) -> None:
    table = parser.parse_branches("<table><tr><td>みけ支店</td><td>ﾐｹ</td><td>0123</td></tr></table>")

    assert [(b.name, b.phonetic, b.code) for b in table.records] == [("みけ支店", "ﾐｹ", "0123")]


def test_sentinel_only_table_without_tbody_is_empty(parser: HtmlTableParser) -> None:
    table = parser.parse_branches(f"<table><tr><td>{SENTINEL}</td></tr></table>")

    assert len(table) == 0
    assert table.rejected == []
