from __future__ import annotations

import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import requests

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from sheet_tracker import sources
from sheet_tracker.errors import TransportFailure

SHEET_EDIT_URL = "https://docs.google.com/spreadsheets/d/abc123/edit#gid=493994318"
SHEET_EXPORT_URL = "https://docs.google.com/spreadsheets/d/abc123/export?format=csv&gid=493994318"


def fake_response(status_code: int = 200, chunks: list[bytes] | None = None) -> mock.Mock:
    response = mock.Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.iter_content.return_value = iter(chunks or [])
    return response


class SheetUrlTests(unittest.TestCase):
    def test_edit_link_becomes_csv_export(self):
        self.assertEqual(sources.normalize_sheet_url(SHEET_EDIT_URL), SHEET_EXPORT_URL)

    def test_gid_in_query_is_kept(self):
        url = "https://docs.google.com/spreadsheets/d/abc123/edit?gid=7"

        self.assertEqual(
            sources.normalize_sheet_url(url),
            "https://docs.google.com/spreadsheets/d/abc123/export?format=csv&gid=7",
        )

    def test_missing_gid_defaults_to_first_sheet(self):
        url = "https://docs.google.com/spreadsheets/d/abc123/edit"

        self.assertTrue(sources.normalize_sheet_url(url).endswith("gid=0"))

    def test_export_urls_and_other_hosts_are_untouched(self):
        self.assertEqual(sources.normalize_sheet_url(SHEET_EXPORT_URL), SHEET_EXPORT_URL)
        self.assertEqual(
            sources.normalize_sheet_url(" https://example.com/data.csv "),
            "https://example.com/data.csv",
        )

    def test_proxy_prefix_encodes_target(self):
        proxied = sources.proxied_url(SHEET_EXPORT_URL, "https://api.allorigins.win/raw?url=")

        self.assertTrue(proxied.startswith("https://api.allorigins.win/raw?url=https%3A%2F%2Fdocs.google.com"))
        self.assertNotIn("&gid", proxied)
        self.assertEqual(sources.proxied_url(SHEET_EXPORT_URL, ""), SHEET_EXPORT_URL)

    def test_is_remote(self):
        self.assertTrue(sources.is_remote("https://example.com/x.csv"))
        self.assertFalse(sources.is_remote("sample-data/rollout_long.csv"))


class FetchTests(unittest.TestCase):
    def test_successful_fetch_returns_decoded_text(self):
        response = fake_response(chunks=["Category,Country\nTV,영국\n".encode("utf-8")])
        with mock.patch.object(sources.requests, "get", return_value=response) as get:
            text = sources.fetch_csv(SHEET_EDIT_URL)

        self.assertEqual(text, "Category,Country\nTV,영국\n")
        self.assertEqual(get.call_args.args[0], SHEET_EXPORT_URL)
        response.close.assert_called_once()

    def test_proxy_is_applied_to_the_export_url(self):
        response = fake_response(chunks=[b"a,b\n1,2\n"])
        with mock.patch.object(sources.requests, "get", return_value=response) as get:
            sources.fetch_csv(SHEET_EDIT_URL, proxy_url="https://proxy.example/raw?url=")

        self.assertEqual(get.call_args.args[0], sources.proxied_url(SHEET_EXPORT_URL, "https://proxy.example/raw?url="))

    def test_non_success_status_is_transport_failure(self):
        response = fake_response(status_code=404)
        with mock.patch.object(sources.requests, "get", return_value=response):
            with self.assertRaises(TransportFailure) as ctx:
                sources.fetch_csv("https://example.com/missing.csv")

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertIn("HTTP error 404", str(ctx.exception))
        response.close.assert_called_once()

    def test_network_error_is_transport_failure(self):
        with mock.patch.object(sources.requests, "get", side_effect=requests.ConnectionError("boom")):
            with self.assertRaises(TransportFailure) as ctx:
                sources.fetch_csv("https://example.com/data.csv")

        self.assertEqual(ctx.exception.url, "https://example.com/data.csv")
        self.assertIsNone(ctx.exception.status_code)

    def test_oversized_body_is_rejected(self):
        response = fake_response(chunks=[b"x" * 10, b"y" * 10])
        with mock.patch.object(sources.requests, "get", return_value=response):
            with self.assertRaisesRegex(TransportFailure, "larger than 15 bytes"):
                sources.fetch_csv("https://example.com/data.csv", max_bytes=15)


class DecodeTests(unittest.TestCase):
    def test_utf8_with_bom(self):
        self.assertEqual(sources.decode_bytes("\ufeffa,b".encode("utf-8")), "a,b")

    def test_non_utf8_falls_back_without_raising(self):
        raw = "Category,Country\nCafé,Côte d'Ivoire\n".encode("cp1252")

        text = sources.decode_bytes(raw)

        self.assertTrue(text.startswith("Category,Country"))
        self.assertIsInstance(text, str)

    def test_read_local_decodes_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "sheet.csv"
            path.write_bytes("상태\n완료\n".encode("utf-8"))

            self.assertEqual(sources.read_local(path), "상태\n완료\n")

    def test_load_text_reads_local_paths(self):
        text = sources.load_text(str(ROOT / "sample-data" / "rollout_long.csv"))

        self.assertTrue(text.startswith("Category,TotalModels"))


if __name__ == "__main__":
    unittest.main()
