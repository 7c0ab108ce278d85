import csv
import json

from listing_crawler.adapters.base import RawProductRecord
from listing_crawler.export.csv_exporter import CSVExporter
from listing_crawler.export.json_exporter import JSONExporter
from listing_crawler.utils.parsing import normalize_record

ORIGIN = "https://www.farfetch.com"


def records():
    return [
        normalize_record(RawProductRecord(id="1", title="Ring", list_price=100, current_price=80), ORIGIN),
        normalize_record(RawProductRecord(id="2", title="Chain", list_price=50), ORIGIN),
    ]


def test_json_exporter_writes_array_on_close(tmp_path):
    path = tmp_path / "nested" / "out.json"
    sink = JSONExporter(str(path))
    for r in records():
        sink.push(r)
    assert not path.exists()
    sink.close()
    data = json.loads(path.read_text(encoding="utf-8"))
    assert [d["product_id"] for d in data] == ["1", "2"]
    assert data[0]["discount"] == "20%"


def test_csv_exporter_streams_rows(tmp_path):
    path = tmp_path / "out.csv"
    sink = CSVExporter(str(path))
    for r in records():
        sink.push(r)
    sink.close()
    with open(path, encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert [r["product_id"] for r in rows] == ["1", "2"]
    assert rows[1]["discount"] == ""
    assert rows[1]["image_url"] == ""
