"""Tests for grouping OCR tokens into table rows."""

from kutusay.domain.invoice import Token
from kutusay.invoice.layout import group_tokens_into_rows, row_tolerance, rows_to_text


def _token(text: str, x: float, center_y: float, height: float = 20.0, width: float = 40.0) -> Token:
    return Token(
        text=text,
        min_x=x,
        min_y=center_y - height / 2,
        max_x=x + width,
        max_y=center_y + height / 2,
    )


def test_empty_input_yields_no_rows() -> None:
    assert group_tokens_into_rows([]) == []


def test_single_token_yields_single_row() -> None:
    rows = group_tokens_into_rows([_token("4AD", 10, 100)])

    assert len(rows) == 1
    assert rows[0].index == 0
    assert rows[0].text == "4AD"


def test_tokens_within_a_row_are_ordered_left_to_right() -> None:
    rows = group_tokens_into_rows(
        [
            _token("FTB", 300, 102),
            _token("4AD", 10, 100),
            _token("APRANAX", 100, 97),
        ]
    )

    assert len(rows) == 1
    assert [token.text for token in rows[0].tokens] == ["4AD", "APRANAX", "FTB"]


def test_tokens_beyond_tolerance_open_separate_rows() -> None:
    # height 20 -> tolerance 10
    rows = group_tokens_into_rows([_token("A", 10, 100), _token("B", 10, 112)])

    assert [row.text for row in rows] == ["A", "B"]


def test_anchor_is_first_token_not_a_running_average() -> None:
    # 108 joins the row anchored at 100; 116 is within 10 of 108 but 16 from the anchor
    rows = group_tokens_into_rows(
        [
            _token("a", 10, 100),
            _token("b", 60, 108),
            _token("c", 110, 116),
        ]
    )

    assert len(rows) == 2
    assert [token.text for token in rows[0].tokens] == ["a", "b"]
    assert [token.text for token in rows[1].tokens] == ["c"]
    assert rows[0].center_y == 100
    assert rows[1].center_y == 116


def test_rows_are_sorted_top_to_bottom_and_reindexed() -> None:
    rows = group_tokens_into_rows(
        [
            _token("third", 10, 300),
            _token("first", 10, 100),
            _token("second", 10, 200),
        ]
    )

    assert [row.text for row in rows] == ["first", "second", "third"]
    assert [row.index for row in rows] == [0, 1, 2]
    assert [row.center_y for row in rows] == sorted(row.center_y for row in rows)


def test_no_token_belongs_to_two_rows() -> None:
    tokens = [_token(f"t{i}", 10 * i, 100 + 7 * i) for i in range(12)]

    rows = group_tokens_into_rows(tokens)

    grouped = [token for row in rows for token in row.tokens]
    assert sorted(token.text for token in grouped) == sorted(token.text for token in tokens)


def test_row_tolerance_adapts_and_is_clamped() -> None:
    assert row_tolerance([_token("x", 0, 100, height=20)]) == 10
    assert row_tolerance([_token("x", 0, 100, height=100)]) == 15
    assert row_tolerance([_token("x", 0, 100, height=4)]) == 5


def test_row_tolerance_defaults_when_no_height_is_usable() -> None:
    assert row_tolerance([_token("x", 0, 100, height=0)]) == 8
    assert row_tolerance([]) == 8


def test_rows_to_text_renders_one_line_per_row() -> None:
    rows = group_tokens_into_rows(
        [
            _token("APRANAX", 100, 100),
            _token("4AD", 10, 100),
            _token("TOPLAM", 10, 200),
        ]
    )

    assert rows_to_text(rows) == "4AD APRANAX\nTOPLAM"
