"""
Batch Upsert & Storage Ingestion Tests

Supabase storage and table calls are mocked; nothing leaves the process.
"""

import pytest
from unittest.mock import MagicMock

from app.companies_csv import (
    CsvParseError,
    HeaderDetectionError,
    IngestSettings,
    StorageDownloadError,
    ingest_storage_file,
)
from app.companies_csv.emitters import chunk_list, to_db_record, upsert_in_batches


def company_rows(count):
    return [{"company_number": f"{i:08d}", "company_name": f"Company {i}"} for i in range(count)]


def companies_csv(count, preamble=""):
    lines = [preamble] if preamble else []
    lines.append("CompanyName,CompanyNumber,RegAddress.PostCode,CompanyStatus,DissolutionDate")
    lines.extend(f"Company {i},{i:08d},EC1A 1BB,Active," for i in range(count))
    return ("\n".join(lines) + "\n").encode("utf-8")


@pytest.fixture
def supabase():
    return MagicMock()


class TestUpsertInBatches:
    """Fixed-size batches with partial failure tolerance."""

    def test_batches_are_sized_and_ordered(self, supabase):
        outcomes = upsert_in_batches(supabase, "companies_house_data", company_rows(250), batch_size=100)

        assert [o.size for o in outcomes] == [100, 100, 50]
        assert all(o.success for o in outcomes)
        assert supabase.table.return_value.upsert.call_count == 3

    def test_second_batch_failure_does_not_stop_the_run(self, supabase):
        supabase.table.return_value.upsert.return_value.execute.side_effect = [
            MagicMock(),
            Exception("statement timeout"),
            MagicMock(),
        ]

        outcomes = upsert_in_batches(supabase, "companies_house_data", company_rows(250), batch_size=100)

        assert [o.success for o in outcomes] == [True, False, True]
        assert outcomes[1].error == "statement timeout"
        assert sum(o.size for o in outcomes if o.success) == 150

    def test_upsert_is_keyed_on_company_number(self, supabase):
        upsert_in_batches(supabase, "companies_house_data", company_rows(1))

        supabase.table.assert_called_with("companies_house_data")
        _, kwargs = supabase.table.return_value.upsert.call_args
        assert kwargs["on_conflict"] == "company_number"

    def test_no_rows_no_calls(self, supabase):
        assert upsert_in_batches(supabase, "companies_house_data", []) == []
        supabase.table.assert_not_called()

    def test_batch_size_must_be_positive(self, supabase):
        with pytest.raises(ValueError):
            upsert_in_batches(supabase, "companies_house_data", company_rows(3), batch_size=0)

    def test_chunk_list(self):
        assert chunk_list([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_empty_cells_become_null(self):
        assert to_db_record({"company_number": "001", "dissolution_date": ""}) == {
            "company_number": "001",
            "dissolution_date": None,
        }


class TestIngestStorageFile:
    """Download -> detect header -> clean -> upsert."""

    settings = IngestSettings(bucket="companies-house-uploads", table="companies_house_data", batch_size=100)

    def test_ingest_reports_partial_failure(self, supabase):
        supabase.storage.from_.return_value.download.return_value = companies_csv(250, preamble="Basic Company Data")
        supabase.table.return_value.upsert.return_value.execute.side_effect = [
            MagicMock(),
            Exception("network error"),
            MagicMock(),
        ]

        report = ingest_storage_file(supabase, "chunk_01.csv", self.settings)

        supabase.storage.from_.assert_called_with("companies-house-uploads")
        supabase.storage.from_.return_value.download.assert_called_with("chunk_01.csv")
        assert report.rows_parsed == 250
        assert report.rows_cleaned == 250
        assert report.rows_upserted == 150
        assert report.rows_failed == 100
        assert [b.index for b in report.failed_batches] == [1]

    def test_upserted_records_use_null_for_empty(self, supabase):
        supabase.storage.from_.return_value.download.return_value = companies_csv(1)

        ingest_storage_file(supabase, "chunk.csv", self.settings)

        batch = supabase.table.return_value.upsert.call_args[0][0]
        assert batch == [{
            "company_name": "Company 0",
            "company_number": "00000000",
            "reg_address_post_code": "EC1A 1BB",
            "company_status": "Active",
            "dissolution_date": None,
        }]

    def test_download_failure(self, supabase):
        supabase.storage.from_.return_value.download.side_effect = Exception("Object not found")

        with pytest.raises(StorageDownloadError):
            ingest_storage_file(supabase, "missing.csv", self.settings)

    def test_empty_download(self, supabase):
        supabase.storage.from_.return_value.download.return_value = b""

        with pytest.raises(StorageDownloadError):
            ingest_storage_file(supabase, "empty.csv", self.settings)

    def test_file_without_header_row(self, supabase):
        supabase.storage.from_.return_value.download.return_value = b"a,b,c\n1,2,3\n"

        with pytest.raises(HeaderDetectionError):
            ingest_storage_file(supabase, "other.csv", self.settings)
        supabase.table.assert_not_called()

    def test_rows_wider_than_header_abort_before_upsert(self, supabase):
        supabase.storage.from_.return_value.download.return_value = (
            b"CompanyName,CompanyNumber,RegAddress.PostCode\n"
            b"Foo Ltd,001,AB1 2CD,\n"
        )

        with pytest.raises(CsvParseError):
            ingest_storage_file(supabase, "chunk.csv", self.settings)
        supabase.table.assert_not_called()

    def test_nothing_left_after_cleaning(self, supabase):
        supabase.storage.from_.return_value.download.return_value = (
            b"CompanyName,CompanyNumber,RegAddress.PostCode,CompanyStatus\n"
            b"Gone Ltd,001,AB1 2CD,Liquidation\n"
        )

        report = ingest_storage_file(supabase, "gone.csv", self.settings)

        assert report.rows_upserted == 0
        assert report.dropped.liquidation == 1
        supabase.table.assert_not_called()

    def test_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("COMPANIES_CSV_BUCKET", "other-bucket")
        monkeypatch.setenv("COMPANIES_CSV_BATCH_SIZE", "500")
        monkeypatch.delenv("COMPANIES_CSV_TABLE", raising=False)

        settings = IngestSettings.from_env()

        assert settings.bucket == "other-bucket"
        assert settings.table == "companies_house_data"
        assert settings.batch_size == 500

    @pytest.mark.parametrize("raw", ["abc", "0", "-5", "2.5"])
    def test_invalid_batch_size_uses_default(self, monkeypatch, raw):
        monkeypatch.setenv("COMPANIES_CSV_BATCH_SIZE", raw)

        assert IngestSettings.from_env().batch_size == 100
