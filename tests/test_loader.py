"""
Tests for the dataset loader.
"""

import json

import numpy as np
import pytest

from studentmath.data.loader import (
    FIELDS, Dataset, DatasetValidationError, StudentRecord,
    load_students, load_students_csv, load_students_json, parse_students_csv,
    record_from_dict, records_from_dicts, save_students_csv, students_to_csv
)


HEADER = ','.join(FIELDS)


class TestRecordValidation:
    """Tests for building records from mappings."""

    def test_valid_record(self, make_student):
        """Test a complete, numeric record."""
        record = record_from_dict(make_student(7, attention=81, class_name='B'))

        assert isinstance(record, StudentRecord)
        assert record.student_id == 7
        assert record.class_name == 'B'
        assert record.attention == 81.0
        assert isinstance(record.attention, float)
        assert record.get('class') == 'B'
        assert record.to_dict()['class'] == 'B'

    def test_missing_field(self, make_student):
        """Test that a missing field is rejected."""
        row = make_student(1)
        del row['focus']

        with pytest.raises(DatasetValidationError, match="missing fields"):
            record_from_dict(row)

    def test_extra_field(self, make_student):
        """Test that an unexpected field is rejected."""
        row = make_student(1)
        row['mood'] = 3

        with pytest.raises(DatasetValidationError, match="unexpected fields"):
            record_from_dict(row)

    def test_non_numeric_metric(self, make_student):
        """Test that strings and booleans are not coerced into metrics."""
        with pytest.raises(DatasetValidationError, match="attention"):
            record_from_dict(make_student(1, attention="high"))

        with pytest.raises(DatasetValidationError, match="focus"):
            record_from_dict(make_student(1, focus=True))

        with pytest.raises(DatasetValidationError, match="retention"):
            record_from_dict(make_student(1, retention=float('nan')))

    def test_student_id_must_be_integer(self, make_student):
        """Test that fractional ids are rejected."""
        with pytest.raises(DatasetValidationError, match="student_id"):
            record_from_dict(make_student(1.5))

        assert record_from_dict(make_student(2.0)).student_id == 2

    def test_empty_dataset(self):
        """Test that an empty record list is rejected."""
        with pytest.raises(DatasetValidationError, match="empty"):
            records_from_dicts([])

    def test_duplicate_ids(self, make_student):
        """Test that duplicate student ids are rejected."""
        with pytest.raises(DatasetValidationError, match="Duplicate"):
            records_from_dicts([make_student(1), make_student(2), make_student(1)])


class TestDataset:
    """Tests for the Dataset container."""

    def test_accessors(self, four_students):
        """Test names, columns and matrices."""
        assert len(four_students) == 4
        assert four_students.rownames() == [1, 2, 3, 4]
        assert four_students.colnames() == FIELDS
        assert np.array_equal(four_students.column('attention'), [10, 90, 12, 88])

        matrix = four_students.matrix(['attention', 'assessment_score'])
        assert matrix.shape == (4, 2)
        assert np.array_equal(matrix[:, 1], [20, 95, 22, 93])

    def test_unknown_metric(self, four_students):
        """Test that non-metric columns cannot be read as numbers."""
        with pytest.raises(ValueError, match="Unknown metric"):
            four_students.column('name')

        with pytest.raises(ValueError, match="Unknown metric"):
            four_students.matrix(['attention', 'mood'])

    def test_returned_arrays_are_copies(self, four_students):
        """Test that mutating a returned column leaves the dataset unchanged."""
        column = four_students.column('attention')
        column[0] = 999.0

        assert four_students.column('attention')[0] == 10.0

    def test_subset_and_classes(self, four_students):
        """Test selecting records."""
        assert four_students.classes() == ['A', 'B']

        by_ids = four_students.subset([4, 1])
        assert by_ids.rownames() == [1, 4]

        class_b = four_students.by_class('B')
        assert class_b.rownames() == [3, 4]

        high = four_students.subset(lambda r: r.attention > 50)
        assert high.rownames() == [2, 4]

    def test_get_record(self, four_students):
        """Test looking up records by id."""
        assert four_students.get_record(3).attention == 12.0

        with pytest.raises(KeyError):
            four_students.get_record(42)

    def test_frame(self, four_students):
        """Test the DataFrame view."""
        frame = four_students.frame
        assert list(frame.columns) == FIELDS
        assert list(frame.index) == [1, 2, 3, 4]


class TestCsv:
    """Tests for CSV parsing and export."""

    def test_parse_valid(self):
        """Test parsing a CSV with quoted cells and blank lines."""
        text = (
            f"{HEADER}\n"
            "1,Ada,A,80,70,60,50,40,90\n"
            "\n"
            '2,"Lovelace, Jr",B,10.5,20,30,40,50,60\n'
            ",,,,,,,,\n"
        )
        dataset = parse_students_csv(text)

        assert dataset.rownames() == [1, 2]
        assert dataset.get_record(2).name == 'Lovelace, Jr'
        assert dataset.get_record(2).attention == 10.5
        assert dataset.classes() == ['A', 'B']

    def test_header_whitespace_is_trimmed(self):
        """Test that header cells are compared after trimming."""
        header = ', '.join(FIELDS)
        dataset = parse_students_csv(f"{header}\n1,Ada,A,1,2,3,4,5,6\n")
        assert len(dataset) == 1

    def test_invalid_header(self):
        """Test that header order and names must match exactly."""
        swapped = FIELDS[:]
        swapped[3], swapped[4] = swapped[4], swapped[3]

        with pytest.raises(DatasetValidationError, match="Invalid CSV header"):
            parse_students_csv(','.join(swapped) + "\n1,Ada,A,1,2,3,4,5,6\n")

        with pytest.raises(DatasetValidationError, match="Invalid CSV header"):
            parse_students_csv(','.join(FIELDS[:-1]) + "\n1,Ada,A,1,2,3,4,5\n")

    def test_non_numeric_cell(self):
        """Test that a non-numeric metric names the field."""
        with pytest.raises(DatasetValidationError, match="focus"):
            parse_students_csv(f"{HEADER}\n1,Ada,A,1,lots,3,4,5,6\n")

        with pytest.raises(DatasetValidationError, match="retention"):
            parse_students_csv(f"{HEADER}\n1,Ada,A,1,2,3,,5,6\n")

    def test_short_and_long_rows(self):
        """Test rows with the wrong number of cells."""
        with pytest.raises(DatasetValidationError):
            parse_students_csv(f"{HEADER}\n1,Ada,A,1,2,3\n")

        with pytest.raises(DatasetValidationError):
            parse_students_csv(f"{HEADER}\n1,Ada,A,1,2,3,4,5,6,7\n")

    def test_empty_inputs(self):
        """Test empty documents and header-only documents."""
        with pytest.raises(DatasetValidationError, match="Empty CSV"):
            parse_students_csv("   \n")

        with pytest.raises(DatasetValidationError, match="empty"):
            parse_students_csv(f"{HEADER}\n")

    def test_size_limit(self):
        """Test the upload size limit."""
        text = f"{HEADER}\n1,Ada,A,1,2,3,4,5,6\n"

        with pytest.raises(DatasetValidationError, match="too large"):
            parse_students_csv(text, max_bytes=10)

        assert len(parse_students_csv(text, max_bytes=None)) == 1

    def test_export(self, make_student):
        """Test CSV export quoting and number formatting."""
        dataset = records_from_dicts([
            make_student(1, name='Ada', attention=80),
            make_student(2, name='Grace "Amazing" Hopper, PhD', attention=72.5),
        ])
        lines = students_to_csv(dataset).splitlines()

        assert lines[0] == HEADER
        assert lines[1] == '1,Ada,A,80,50,50,50,30,60'
        assert lines[2].startswith('2,"Grace ""Amazing"" Hopper, PhD",A,72.5,')

    def test_export_quotes_newlines(self, make_student):
        """Test that a name with a newline is quoted and reads back intact."""
        dataset = records_from_dicts([make_student(1, name='Ada\nLovelace')])
        text = students_to_csv(dataset)

        assert '"Ada\nLovelace"' in text
        assert parse_students_csv(text).get_record(1).name == 'Ada\nLovelace'

    def test_export_empty_dataset(self, four_students):
        """Test that an empty dataset exports only the header."""
        assert students_to_csv(four_students.subset([])) == HEADER + '\n'

    def test_export_then_parse(self, random_students, tmp_path):
        """Test that an exported file loads back to the same records."""
        path = tmp_path / "students.csv"
        save_students_csv(random_students, path)

        loaded = load_students_csv(path)
        assert loaded.rownames() == random_students.rownames()
        assert np.allclose(loaded.column('retention'), random_students.column('retention'))


class TestFiles:
    """Tests for loading files from disk."""

    def test_load_json(self, make_student, tmp_path):
        """Test loading a JSON array."""
        path = tmp_path / "students.json"
        path.write_text(json.dumps([make_student(1), make_student(2)]))

        dataset = load_students_json(path)
        assert dataset.rownames() == [1, 2]
        assert load_students(path).rownames() == [1, 2]

    def test_load_json_errors(self, tmp_path):
        """Test malformed JSON documents."""
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")
        with pytest.raises(DatasetValidationError, match="Malformed JSON"):
            load_students_json(bad)

        obj = tmp_path / "obj.json"
        obj.write_text(json.dumps({'students': []}))
        with pytest.raises(DatasetValidationError, match="array"):
            load_students_json(obj)

    def test_unsupported_extension(self, tmp_path):
        """Test dispatch on an unknown extension."""
        path = tmp_path / "students.xlsx"
        path.write_text("")

        with pytest.raises(ValueError, match="Unsupported"):
            load_students(path)
