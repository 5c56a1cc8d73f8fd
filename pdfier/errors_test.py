from __future__ import annotations

import pytest

from pdfier.errors import BackendError, QuotaExceededError, format_detail


class TestFormatDetail:
    def test_list_detail(self):
        payload = {"detail": [{"msg": "first"}, {"msg": "second"}, "ignored"]}
        assert format_detail(payload, "fallback") == "first. second"

    def test_dict_detail(self):
        assert format_detail({"detail": {"message": "Limit reached"}}, "fallback") == "Limit reached"

    def test_string_detail(self):
        assert format_detail({"detail": "Bad file"}, "fallback") == "Bad file"

    @pytest.mark.parametrize("payload", [None, [], {}, {"detail": ""}, {"detail": []}])
    def test_fallback(self, payload):
        assert format_detail(payload, "fallback") == "fallback"


class TestErrors:
    def test_quota_message(self):
        err = QuotaExceededError(10, "merge")
        assert str(err) == "You have exceeded the daily limit of 10 PDF files to merge."

    def test_backend_error_keeps_status(self):
        err = BackendError(404, "Not found")
        assert err.status_code == 404
        assert "404" in str(err)
