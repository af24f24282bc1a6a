import pytest
from unittest.mock import Mock

import httplib2
from google.auth.exceptions import TransportError
from googleapiclient.errors import HttpError

from eduscribe.services.sheets import SheetsService, SheetsError, column_letter, quote_sheet_title


def http_error(status=403, message="denied"):
    resp = Mock(status=status, reason="Forbidden")
    return HttpError(resp, f'{{"error": {{"message": "{message}"}}}}'.encode("utf-8"))


class TestHelpers:
    def test_column_letter(self):
        assert column_letter(1) == "A"
        assert column_letter(4) == "D"
        assert column_letter(26) == "Z"
        assert column_letter(27) == "AA"
        assert column_letter(28) == "AB"

    def test_column_letter_invalid(self):
        with pytest.raises(ValueError):
            column_letter(0)

    def test_quote_sheet_title(self):
        assert quote_sheet_title("Jobs") == "'Jobs'"
        assert quote_sheet_title("Bob's") == "'Bob''s'"


class TestSheetsService:
    """Test suite for SheetsService"""

    @pytest.fixture
    def api(self):
        return Mock()

    @pytest.fixture
    def values(self, api):
        return api.spreadsheets.return_value.values.return_value

    @pytest.fixture
    def service(self, api):
        return SheetsService("sheet-123", service=api)

    def test_append_row_returns_row_number(self, service, values):
        values.append.return_value.execute.return_value = {
            "updates": {"updatedRange": "'Jobs'!A7:D7"}
        }

        row = service.append_row("Jobs", ["a.mp4", "", "processing", "2024-03-01T10:00:00"])

        assert row == 7
        kwargs = values.append.call_args.kwargs
        assert kwargs["spreadsheetId"] == "sheet-123"
        assert kwargs["range"] == "'Jobs'!A1"
        assert kwargs["valueInputOption"] == "USER_ENTERED"
        assert kwargs["body"] == {"values": [["a.mp4", "", "processing", "2024-03-01T10:00:00"]]}

    def test_append_row_without_range(self, service, values):
        values.append.return_value.execute.return_value = {}
        with pytest.raises(SheetsError, match="no row reference"):
            service.append_row("Jobs", ["a"])

    def test_append_row_http_error(self, service, values):
        values.append.return_value.execute.side_effect = http_error()
        with pytest.raises(SheetsError, match="Failed to append row"):
            service.append_row("Jobs", ["a"])

    def test_update_row_range(self, service, values):
        service.update_row("Jobs", 5, 2, ["job-1", "submitted", "2024-03-01"])

        assert values.update.call_args.kwargs["range"] == "'Jobs'!B5:D5"
        assert values.update.call_args.kwargs["body"] == {"values": [["job-1", "submitted", "2024-03-01"]]}

    def test_update_cell(self, service, values):
        service.update_cell("Jobs", 3, 3, "done")
        assert values.update.call_args.kwargs["range"] == "'Jobs'!C3:C3"

    def test_get_values(self, service, values):
        values.get.return_value.execute.return_value = {"values": [["FileName"], ["a.mp4"]]}

        assert service.get_values("Jobs") == [["FileName"], ["a.mp4"]]
        assert values.get.call_args.kwargs["range"] == "'Jobs'"

    def test_get_values_empty(self, service, values):
        values.get.return_value.execute.return_value = {}
        assert service.get_values("Jobs", "A:D") == []

    def test_get_header(self, service, values):
        values.get.return_value.execute.return_value = {"values": [["FileName", "JobID"]]}

        assert service.get_header("Jobs") == ["FileName", "JobID"]
        assert values.get.call_args.kwargs["range"] == "'Jobs'!1:1"

    def test_get_values_http_error(self, service, values):
        values.get.return_value.execute.side_effect = http_error(404, "not found")
        with pytest.raises(SheetsError, match="Failed to read"):
            service.get_values("Jobs")

    def test_ensure_sheet_existing(self, service, api):
        api.spreadsheets.return_value.get.return_value.execute.return_value = {
            "sheets": [{"properties": {"title": "Jobs"}}]
        }

        assert service.ensure_sheet("Jobs") is False
        api.spreadsheets.return_value.batchUpdate.assert_not_called()

    def test_ensure_sheet_creates_missing(self, service, api):
        api.spreadsheets.return_value.get.return_value.execute.return_value = {"sheets": []}

        assert service.ensure_sheet("Jobs") is True
        body = api.spreadsheets.return_value.batchUpdate.call_args.kwargs["body"]
        assert body == {"requests": [{"addSheet": {"properties": {"title": "Jobs"}}}]}

    @pytest.mark.parametrize("error", [
        ConnectionResetError("connection reset by peer"),
        TimeoutError("timed out"),
        TransportError("token refresh failed"),
        httplib2.HttpLib2Error("malformed response"),
    ])
    def test_update_row_transport_errors(self, service, values, error):
        values.update.return_value.execute.side_effect = error
        with pytest.raises(SheetsError, match="Failed to update") as excinfo:
            service.update_cell("Jobs", 3, 3, "done")
        assert excinfo.value.__cause__ is error

    def test_append_row_timeout(self, service, values):
        values.append.return_value.execute.side_effect = TimeoutError("timed out")
        with pytest.raises(SheetsError, match="Failed to append row"):
            service.append_row("Jobs", ["a"])
