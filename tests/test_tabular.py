"""
Unit tests for core.tabular
"""
import pytest

from core.tabular import (
    TabularError,
    csv_to_records,
    escape_csv_value,
    read_csv_file,
    records_to_csv,
)


class TestCsvToRecords:

    def test_headers_become_keys(self):
        records = csv_to_records("name,age\nAda,36\nGrace,45\n")
        assert records == [{"name": "Ada", "age": "36"}, {"name": "Grace", "age": "45"}]

    def test_trims_whitespace(self):
        records = csv_to_records("name , city\n  Ada ,  London ")
        assert records == [{"name": "Ada", "city": "London"}]

    def test_no_trim_keeps_whitespace(self):
        records = csv_to_records("a,b\n x ,y", trim=False)
        assert records == [{"a": " x ", "b": "y"}]

    def test_quoted_fields(self):
        records = csv_to_records('id,note\n1,"hello, world"\n2,"say ""hi"""')
        assert records[0]["note"] == "hello, world"
        assert records[1]["note"] == 'say "hi"'

    def test_space_before_quoted_field(self):
        records = csv_to_records('name, city\nAda, "London, UK"\n')
        assert records == [{"name": "Ada", "city": "London, UK"}]

    def test_custom_delimiter(self):
        records = csv_to_records("a;b\n1;2", delimiter=";")
        assert records == [{"a": "1", "b": "2"}]

    def test_columns_false_returns_rows(self):
        rows = csv_to_records("a,b\n1,2", columns=False)
        assert rows == [["a", "b"], ["1", "2"]]

    def test_blank_lines_skipped_by_default(self):
        records = csv_to_records("a,b\n\n1,2\n\n3,4\n")
        assert len(records) == 2

    def test_blank_lines_kept_as_empty_records(self):
        records = csv_to_records("a,b\n1,2\n\n3,4", skip_empty_lines=False)
        assert records == [{"a": "1", "b": "2"}, {"a": "", "b": ""}, {"a": "3", "b": "4"}]

    def test_header_only_gives_no_records(self):
        assert csv_to_records("a,b\n") == []


class TestCsvErrors:

    @pytest.mark.parametrize("text", [None, ""])
    def test_empty_input(self, text):
        with pytest.raises(TabularError, match="csvData or filePath"):
            csv_to_records(text)

    def test_ragged_row(self):
        with pytest.raises(TabularError, match="Invalid record length"):
            csv_to_records("a,b\n1,2,3")

    def test_multi_character_delimiter(self):
        with pytest.raises(TabularError, match="single character"):
            csv_to_records("a||b", delimiter="||")

    def test_max_rows(self):
        text = "n\n" + "\n".join(str(i) for i in range(6))
        with pytest.raises(TabularError, match=r"Record count \(6\) exceeds maximum allowed \(5\)"):
            csv_to_records(text, max_rows=5)

    def test_max_rows_at_limit_is_fine(self):
        text = "n\n" + "\n".join(str(i) for i in range(5))
        assert len(csv_to_records(text, max_rows=5)) == 5


class TestReadCsvFile:

    def test_reads_file(self, tmp_path):
        path = tmp_path / "people.csv"
        path.write_text("name\nAda\n", encoding="utf-8")
        assert read_csv_file(str(path)) == [{"name": "Ada"}]

    def test_passes_options_through(self, tmp_path):
        path = tmp_path / "people.tsv"
        path.write_text("name\tage\nAda\t36\n", encoding="utf-8")
        assert read_csv_file(str(path), delimiter="\t") == [{"name": "Ada", "age": "36"}]

    def test_missing_file(self, tmp_path):
        missing = tmp_path / "missing.csv"
        with pytest.raises(TabularError, match="Failed to read file at"):
            read_csv_file(str(missing))


class TestEscapeCsvValue:

    @pytest.mark.parametrize("value,expected", [
        (None, ""),
        ("plain", "plain"),
        (42, "42"),
        (1.5, "1.5"),
        (True, "true"),
        (False, "false"),
        ("a,b", '"a,b"'),
        ('say "hi"', '"say ""hi"""'),
        ("two\nlines", '"two\nlines"'),
        ({"k": 1}, '"{""k"":1}"'),
        ([1, 2], '"[1,2]"'),
    ])
    def test_escaping(self, value, expected):
        assert escape_csv_value(value) == expected

    def test_respects_delimiter(self):
        assert escape_csv_value("a,b", delimiter=";") == "a,b"
        assert escape_csv_value("a;b", delimiter=";") == '"a;b"'


class TestRecordsToCsv:

    def test_basic(self):
        csv_text = records_to_csv([{"name": "Ada", "age": 36}, {"name": "Grace", "age": 45}])
        assert csv_text == "name,age\nAda,36\nGrace,45"

    def test_union_of_keys_in_first_seen_order(self):
        csv_text = records_to_csv([{"a": 1}, {"b": 2, "a": 3}])
        assert csv_text == "a,b\n1,\n3,2"

    def test_without_headers(self):
        assert records_to_csv([{"a": 1, "b": 2}], include_headers=False) == "1,2"

    def test_custom_delimiter(self):
        assert records_to_csv([{"a": "x", "b": "y,z"}], delimiter="\t") == "a\tb\nx\ty,z"

    def test_empty(self):
        assert records_to_csv([]) == ""

    def test_max_rows(self):
        with pytest.raises(TabularError, match=r"Data length \(3\) exceeds maximum allowed \(2\)"):
            records_to_csv([{"a": 1}] * 3, max_rows=2)

    def test_output_parses_back(self):
        records = [{"id": "1", "note": 'quoted "text", with comma'}]
        assert csv_to_records(records_to_csv(records)) == records
