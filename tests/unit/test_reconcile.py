"""
Unit tests for boundary ID reconciliation

Tests verify:
- ID set comparison and gap percentage rounding
- Backup snapshot readers (plain, gzip, id lists)
- Live Overpass answer extraction
- Record ids read from notes documents
"""

import gzip
import json

import pytest

from ingestion.errors import InputError
from reconciliation import (
    extract_live_ids,
    gap_percentage,
    read_backup_ids,
    read_document_ids,
    read_id_list,
    reconcile,
)
from reconciliation.backup import normalize_id, resolve_backup_file


def feature_collection(*ids, id_property: str = "country_id") -> dict:
    return {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {id_property: i, "name": f"Boundary {i}"}, "geometry": None}
            for i in ids
        ],
    }


class TestReconcile:
    """Test reconcile()"""

    def test_identical_sets_match(self):
        """Test equal non-empty sets match with no gap"""
        result = reconcile({1, 2, 3}, {3, 2, 1})

        assert result.matched is True
        assert result.status == "MATCH"
        assert result.gap_percentage == 0
        assert result.missing_ids == []
        assert result.extra_ids == []

    def test_one_of_three_missing(self):
        """Test a third of the backup missing rounds up to 34%"""
        result = reconcile({1, 2}, {1, 2, 3})

        assert result.matched is False
        assert result.missing_ids == [3]
        assert result.extra_ids == []
        assert result.expected_count == 3
        assert result.actual_count == 2
        assert result.gap_percentage == 34

    def test_live_empty(self):
        """Test an empty live answer is a full gap"""
        result = reconcile(set(), {1, 2})

        assert result.matched is False
        assert result.gap_percentage == 100

    def test_backup_empty(self):
        """Test live IDs without a backup are all extra"""
        result = reconcile({5, 6}, set())

        assert result.matched is False
        assert result.extra_ids == [5, 6]
        assert result.gap_percentage == 0

    def test_both_empty(self):
        """Test nothing to reconcile raises InputError"""
        with pytest.raises(InputError):
            reconcile([], [])

    def test_extra_only_is_a_mismatch(self):
        """Test new live IDs make the sets differ without a gap"""
        result = reconcile({1, 2, 3, 4}, {1, 2, 3})

        assert result.matched is False
        assert result.extra_ids == [4]
        assert result.gap_percentage == 0

    def test_mixed_id_types_sorted(self):
        """Test ids without a common order are still sorted"""
        result = reconcile({"a"}, {1, "b"})

        assert result.missing_ids == [1, "b"]

    def test_to_dict(self):
        """Test the serialized form carries counts and ids"""
        data = reconcile({1}, {1, 2}).to_dict()

        assert data["status"] == "MISMATCH"
        assert data["missing_count"] == 1
        assert data["missing_ids"] == [2]
        assert data["gap_percentage"] == 50

    def test_sample_missing(self):
        """Test the missing sample is limited"""
        result = reconcile({0}, set(range(100)))

        assert result.sample_missing(5) == [1, 2, 3, 4, 5]


class TestGapPercentage:
    """Test gap_percentage()"""

    @pytest.mark.parametrize(
        "missing, expected, percentage",
        [(0, 10, 0), (1, 3, 34), (1, 200, 1), (2, 3, 67), (3, 3, 100), (0, 0, 0)],
    )
    def test_rounding_up(self, missing, expected, percentage):
        """Test whole percentages rounded up"""
        assert gap_percentage(missing, expected) == percentage


class TestBackupReaders:
    """Test backup and live ID readers"""

    def test_read_geojson(self, tmp_path):
        """Test ids are read from feature properties"""
        path = tmp_path / "countries.geojson"
        path.write_text(json.dumps(feature_collection(16239, "51477", 1428125)))

        assert read_backup_ids(path) == {16239, 51477, 1428125}

    def test_read_gzip_sibling(self, tmp_path):
        """Test a .gz sibling is used when the plain file is absent"""
        path = tmp_path / "maritimes.geojson"
        with gzip.open(tmp_path / "maritimes.geojson.gz", "wt", encoding="utf-8") as f:
            json.dump(feature_collection(1, 2, id_property="relation_id"), f)

        assert read_backup_ids(path, id_property="relation_id") == {1, 2}

    def test_features_without_id_ignored(self, tmp_path):
        """Test features lacking the property are skipped"""
        data = feature_collection(7)
        data["features"].append({"type": "Feature", "properties": {"name": "no id"}})
        data["features"].append({"type": "Feature", "properties": {"country_id": ""}})
        path = tmp_path / "countries.geojson"
        path.write_text(json.dumps(data))

        assert read_backup_ids(path) == {7}

    def test_missing_backup(self, tmp_path):
        """Test a missing backup raises FileNotFoundError"""
        with pytest.raises(FileNotFoundError):
            resolve_backup_file(tmp_path / "nothing.geojson")

    def test_not_json(self, tmp_path):
        """Test a corrupt backup raises ValueError"""
        path = tmp_path / "countries.geojson"
        path.write_text("{not json")

        with pytest.raises(ValueError, match="not valid JSON"):
            read_backup_ids(path)

    def test_not_a_feature_collection(self, tmp_path):
        """Test JSON without features raises ValueError"""
        path = tmp_path / "countries.geojson"
        path.write_text(json.dumps([1, 2, 3]))

        with pytest.raises(ValueError, match="FeatureCollection"):
            read_backup_ids(path)

    def test_read_id_list(self, tmp_path):
        """Test one id per line with comments and blanks"""
        path = tmp_path / "ids.txt"
        path.write_text("# live ids\n16239\n\n51477  # Austria\nabc\n")

        assert read_id_list(path) == {16239, 51477, "abc"}

    def test_extract_live_ids(self):
        """Test only elements of the requested type are kept"""
        response = {
            "elements": [
                {"type": "relation", "id": 1},
                {"type": "relation", "id": 2},
                {"type": "way", "id": 3},
                {"type": "relation"},
            ]
        }

        assert extract_live_ids(response) == {1, 2}
        assert extract_live_ids(response, element_type=None) == {1, 2, 3}

    def test_read_planet_document_ids(self, write_notes):
        """Test planet records carry their id as an attribute"""
        assert read_document_ids(write_notes(4)) == {1, 2, 3, 4}

    def test_read_api_document_ids(self, tmp_path):
        """Test API records carry their id in a child element"""
        path = tmp_path / "api.xml"
        path.write_text(
            '<osm version="0.6">'
            '<note lon="-74.1" lat="4.6"><id>7</id><status>open</status></note>'
            '<note lon="-74.2" lat="4.7"><id>8</id><status>closed</status></note>'
            '<note lon="-74.3" lat="4.8"><status>open</status></note>'
            "</osm>"
        )

        assert read_document_ids(path) == {7, 8}

    @pytest.mark.parametrize(
        "value, normalized",
        [(5, 5), (5.0, 5), ("  42 ", 42), ("-7", -7), ("R12", "R12"), (True, "True")],
    )
    def test_normalize_id(self, value, normalized):
        """Test numeric ids compare equal however they were written"""
        assert normalize_id(value) == normalized
