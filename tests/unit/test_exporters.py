"""
Unit Tests - Report Exporters
"""
import csv
import io
import json
from datetime import datetime

from marketplace.analytics.segmentation import SegmentationEngine
from marketplace.reporting import exporters

NOW = datetime(2024, 6, 15, 12, 0)


class TestCsvRendering:
    """Tests for CSV output"""

    def test_quoting_only_when_necessary(self):
        """Test commas, quotes and newlines are quoted and inner quotes doubled"""
        rows = [{"name": 'Mouse, "Pro"', "note": "a\nb", "units": 1, "active": True, "brand": None}]

        text = exporters.to_csv(rows)

        assert text == 'name,note,units,active,brand\n"Mouse, ""Pro""","a\nb",1,true,\n'

    def test_header_from_first_row(self):
        """Test column order follows the first row"""
        text = exporters.to_csv([{"b": 1, "a": 2}, {"b": 3, "a": 4}])

        assert text.splitlines() == ["b,a", "1,2", "3,4"]

    def test_empty_rows(self):
        """Test no rows renders an empty document"""
        assert exporters.to_csv([]) == ""

    def test_single_column_empty_cells_survive_parsing(self):
        """Test an empty value in a one-column export is not read back as a blank line"""
        text = exporters.to_csv([{"only": None}, {"only": "v"}])

        assert list(csv.DictReader(io.StringIO(text))) == [{"only": ""}, {"only": "v"}]

    def test_cell_values(self):
        """Test scalar conversions"""
        assert exporters.csv_value(None) is None
        assert exporters.csv_value("") is None
        assert exporters.csv_value(False) == "false"
        assert exporters.csv_value(datetime(2024, 1, 2, 3, 4)) == "2024-01-02T03:04:00"
        assert exporters.csv_value({"a": 1}) == '{"a": 1}'
        assert exporters.csv_value(12.5) == "12.5"


class TestExportRows:
    """Tests for export row builders"""

    def test_order_rows(self, sample_orders, sample_users):
        """Test customer names resolve through users"""
        rows = exporters.order_rows(sample_orders, sample_users)

        assert len(rows) == len(sample_orders)
        assert rows[0]["customer"] == "John Doe"
        assert rows[2]["items"] == 2

    def test_customer_rows_carry_segments(self, sample_users, sample_orders):
        """Test spend tier and recency columns"""
        segmentation = SegmentationEngine().segment(sample_users, sample_orders, NOW)

        rows = {row["id"]: row for row in exporters.customer_rows(sample_users, sample_orders, segmentation)}

        assert rows["u1"]["total_orders"] == 3
        assert rows["u1"]["spend_tier"] == "high_value"
        assert rows["u4"]["recency"] == "new"
        assert rows["u5"]["spend_tier"] is None
        assert rows["u5"]["avg_order_value"] == 0.0

    def test_csv_and_json_hold_the_same_rows(self, sample_products, sample_users, sample_orders):
        """Test parsing the CSV gives back the JSON data rows"""
        for rows in (
            exporters.product_rows(sample_products),
            exporters.order_rows(sample_orders, sample_users),
            exporters.customer_rows(sample_users, sample_orders),
        ):
            parsed = list(csv.DictReader(io.StringIO(exporters.to_csv(rows))))
            document = json.loads(exporters.to_json(rows, {"type": "test"}))

            assert len(parsed) == len(document["data"]) == len(rows)
            for csv_row, json_row in zip(parsed, rows):
                expected = {key: exporters.csv_value(value) or "" for key, value in json_row.items()}
                assert csv_row == expected

    def test_json_document(self, sample_products):
        """Test the JSON envelope"""
        document = json.loads(exporters.to_json(exporters.product_rows(sample_products), {"rows": 3}))

        assert document["meta"] == {"rows": 3}
        assert document["data"][2]["status"] == "Active"
        assert document["data"][0]["price"] == 25.0
