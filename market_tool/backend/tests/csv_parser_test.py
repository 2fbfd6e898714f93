import logging

from csv_parser import coerce_number, infer_value, parse_table, split_rows


def test_parse_table_drops_schema_skewed_row():
    records = parse_table("MSA,Risk\nA-B,5\nC,bad")
    assert records == [{"MSA": "A-B", "Risk": 5}]


def test_parse_table_drops_short_row():
    records = parse_table("MSA,Risk\nA-B,5\nC")
    assert records == [{"MSA": "A-B", "Risk": 5}]


def test_parse_table_empty_input():
    assert parse_table("") == []
    assert parse_table("   \n  ") == []
    assert parse_table("MSA,Risk") == []


def test_parse_table_trims_headers_and_values():
    records = parse_table(" MSA , Risk \n TX-Austin , 1.5 ")
    assert records == [{"MSA": "TX-Austin", "Risk": 1.5}]


def test_parse_table_quoted_delimiter():
    records = parse_table('Name,Value\n"Dallas, TX",3\n"Say ""hi""",4')
    assert records == [
        {"Name": "Dallas, TX", "Value": 3},
        {"Name": 'Say "hi"', "Value": 4},
    ]


def test_parse_table_null_fits_any_column():
    records = parse_table("A,B\n1,x\n,y\nnull,undefined")
    assert records == [
        {"A": 1, "B": "x"},
        {"A": None, "B": "y"},
        {"A": None, "B": None},
    ]


def test_parse_table_skips_blank_lines():
    records = parse_table("A\n1\n\n2\n")
    assert records == [{"A": 1}, {"A": 2}]


def test_parse_table_custom_delimiter():
    records = parse_table("A;B\n1;TRUE", delimiter=";")
    assert records == [{"A": 1, "B": True}]


def test_infer_value():
    assert infer_value("TRUE") is True
    assert infer_value("FALSE") is False
    assert infer_value("") is None
    assert infer_value("null") is None
    assert infer_value("undefined") is None
    assert infer_value("42") == 42
    assert isinstance(infer_value("42"), int)
    assert infer_value("-0.5") == -0.5
    assert infer_value("1e3") == 1000.0
    assert infer_value("nan") == "nan"
    assert infer_value("12abc") == "12abc"
    assert infer_value("true") == "true"


def test_split_rows_tokens_are_trimmed():
    assert split_rows("a , b\n c,d ") == [["a", "b"], ["c", "d"]]


def test_parse_table_drops_long_row():
    records = parse_table("MSA,Risk\nA-B,5\nC,6,7\nD,8")
    assert records == [{"MSA": "A-B", "Risk": 5}, {"MSA": "D", "Risk": 8}]


def test_parse_table_keeps_currency_text_in_numeric_column():
    records = parse_table('MSA,Market Size\nA,1000\nB,"$2,500"\nC,3000')
    assert [r["MSA"] for r in records] == ["A", "B", "C"]
    assert records[1]["Market Size"] == "$2,500"
    assert coerce_number(records[1]["Market Size"]) == 2500.0


def test_parse_table_currency_text_first_then_plain_number():
    records = parse_table('MSA,Market Size\nA,"$1,000"\nB,2500\nC,n/a')
    assert [r["MSA"] for r in records] == ["A", "B"]


def test_parse_table_logs_dropped_rows(caplog):
    with caplog.at_level(logging.INFO, logger="csv_parser"):
        parse_table("MSA,Risk\nA-B,5\nC,bad\nD")
    assert "Dropped 2 malformed rows of 3" in caplog.text


def test_coerce_number():
    assert coerce_number(7) == 7.0
    assert coerce_number("1,234.5") == 1234.5
    assert coerce_number(" $12 ") == 12.0
    assert coerce_number(True) is None
    assert coerce_number(None) is None
    assert coerce_number("nan") is None
    assert coerce_number("High") is None


def test_split_rows_keeps_short_rows():
    assert split_rows("a,b,c\n1,2\n3,4,5") == [["a", "b", "c"], ["1", "2"], ["3", "4", "5"]]
