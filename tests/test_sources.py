"""
Tests for business search providers.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from leadfinder.config import MissionConfig
from leadfinder.errors import (
    AuthorizationError,
    ConfigurationError,
    EnrichmentError,
    InvalidRequestError,
    QuotaOrDeniedError,
    SourceError,
)
from leadfinder.sources import GooglePlacesSource, JsonFileSource, city_from_address, get_source


PLACE = {
    "place_id": "ChIJ-acme",
    "name": "Acme Dental",
    "formatted_address": "123 Main St, San Diego, CA 92101, USA",
    "types": ["dentist", "health", "point_of_interest"],
    "rating": 4.7,
    "user_ratings_total": 212,
    "geometry": {"location": {"lat": 32.71, "lng": -117.16}},
}


def places_response(payload, status_code=200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = status_code < 400
    resp.reason = "OK" if resp.ok else "Error"
    resp.json.return_value = payload
    return resp


class TestCityFromAddress:

    @pytest.mark.parametrize("address,city", [
        ("123 Main St, San Diego, CA 92101, USA", "San Diego"),
        ("123 Main St, San Diego, CA 92101", "San Diego"),
        ("San Diego, CA", None),
        ("", None),
        (None, None),
    ])
    def test_extracts_city(self, address, city):
        assert city_from_address(address) == city


class TestGooglePlacesSearch:

    @patch("leadfinder.sources.google_places.requests.get")
    def test_maps_results(self, mock_get):
        mock_get.return_value = places_response({"status": "OK", "results": [PLACE]})

        results = GooglePlacesSource("key-1234567890").search("dentists", "San Diego", 3000)

        params = mock_get.call_args[1]["params"]
        assert params["query"] == "dentists in San Diego"
        assert params["radius"] == "3000"

        assert len(results) == 1
        c = results[0]
        assert c.source == "google_places"
        assert c.source_id == "ChIJ-acme"
        assert c.category == "dentist"
        assert c.city == "San Diego"
        assert c.rating == 4.7
        assert c.review_count == 212
        assert (c.latitude, c.longitude) == (32.71, -117.16)
        assert c.phone is None

    @patch("leadfinder.sources.google_places.requests.get")
    def test_zero_results_is_empty(self, mock_get):
        mock_get.return_value = places_response({"status": "ZERO_RESULTS", "results": []})
        assert GooglePlacesSource("key-1234567890").search("yetis", "Nowhere") == []

    @patch("leadfinder.sources.google_places.requests.get")
    def test_missing_types_default_category(self, mock_get):
        mock_get.return_value = places_response({"status": "OK", "results": [{"name": "X", "place_id": "p"}]})
        assert GooglePlacesSource("key-1234567890").search("x", "y")[0].category == "business"

    @patch("leadfinder.sources.google_places.requests.get")
    def test_request_denied_carries_remediation(self, mock_get):
        mock_get.return_value = places_response(
            {"status": "REQUEST_DENIED", "error_message": "API key not authorized"}
        )

        with pytest.raises(QuotaOrDeniedError) as exc:
            GooglePlacesSource("key-1234567890").search("dentists", "San Diego")

        assert "API key not authorized" in str(exc.value)
        assert exc.value.status == "REQUEST_DENIED"
        assert any("Billing" in line for line in exc.value.remediation)

    @patch("leadfinder.sources.google_places.requests.get")
    def test_over_query_limit(self, mock_get):
        mock_get.return_value = places_response({"status": "OVER_QUERY_LIMIT"})
        with pytest.raises(QuotaOrDeniedError) as exc:
            GooglePlacesSource("key-1234567890").search("a", "b")
        assert exc.value.remediation

    @patch("leadfinder.sources.google_places.requests.get")
    def test_invalid_request(self, mock_get):
        mock_get.return_value = places_response({"status": "INVALID_REQUEST"})
        with pytest.raises(InvalidRequestError):
            GooglePlacesSource("key-1234567890").search("a", "b")

    @patch("leadfinder.sources.google_places.requests.get")
    def test_unknown_status(self, mock_get):
        mock_get.return_value = places_response({"status": "UNKNOWN_ERROR"})
        with pytest.raises(SourceError, match="UNKNOWN_ERROR"):
            GooglePlacesSource("key-1234567890").search("a", "b")

    @patch("leadfinder.sources.google_places.requests.get")
    def test_http_forbidden_is_authorization_error(self, mock_get):
        mock_get.return_value = places_response({}, status_code=403)
        with pytest.raises(AuthorizationError) as exc:
            GooglePlacesSource("key-1234567890").search("a", "b")
        assert exc.value.status == "403"
        assert "API key restrictions" in " ".join(exc.value.remediation)

    @patch("leadfinder.sources.google_places.requests.get")
    def test_invalid_json(self, mock_get):
        resp = places_response({})
        resp.json.side_effect = ValueError("no json")
        mock_get.return_value = resp
        with pytest.raises(SourceError, match="invalid JSON"):
            GooglePlacesSource("key-1234567890").search("a", "b")

    @patch("leadfinder.retry.time.sleep")
    @patch("leadfinder.sources.google_places.requests.get")
    def test_network_failure_after_retries(self, mock_get, _sleep):
        mock_get.side_effect = requests.exceptions.ConnectionError("no route")
        with pytest.raises(SourceError, match="unreachable"):
            GooglePlacesSource("key-1234567890").search("a", "b")


class TestGooglePlacesDetails:

    @patch("leadfinder.sources.google_places.requests.get")
    def test_returns_phone_and_website(self, mock_get):
        mock_get.return_value = places_response(
            {"result": {"formatted_phone_number": "(619) 555-0100", "website": "https://acme.com"}}
        )

        details = GooglePlacesSource("key-1234567890").enrich_details("ChIJ-acme")

        assert details == {"phone": "(619) 555-0100", "website": "https://acme.com"}
        assert mock_get.call_args[1]["params"]["place_id"] == "ChIJ-acme"

    @patch("leadfinder.sources.google_places.requests.get")
    def test_failure_raises_enrichment_error(self, mock_get):
        mock_get.side_effect = requests.exceptions.Timeout("slow")
        with pytest.raises(EnrichmentError, match="ChIJ-gone"):
            GooglePlacesSource("key-1234567890").fetch_details("ChIJ-gone")

    @patch("leadfinder.sources.base.logger")
    @patch("leadfinder.sources.google_places.requests.get")
    def test_enrich_details_absorbs_failure(self, mock_get, mock_logger):
        mock_get.side_effect = requests.exceptions.Timeout("slow")

        assert GooglePlacesSource("key-1234567890").enrich_details("ChIJ-gone") == {}
        mock_logger.warning.assert_called_once()


@pytest.fixture
def business_file(tmp_path):
    path = tmp_path / "businesses.json"
    path.write_text(json.dumps([
        {
            "name": "Acme Dental",
            "category": "dentist",
            "address": "123 Main St, San Diego, CA 92101, USA",
            "source_id": "acme",
            "phone": "619-555-0100",
            "website": "https://acme.com",
        },
        {
            "name": "Joe's Diner",
            "category": "restaurant",
            "address": "9 Elm St, Austin, TX 78701",
            "source_id": "joes",
        },
        {"category": "nameless"},
    ]))
    return path


class TestJsonFileSource:

    def test_filters_by_query_and_location(self, business_file):
        results = JsonFileSource(business_file).search("dentist", "San Diego")
        assert [c.name for c in results] == ["Acme Dental"]
        assert results[0].source == "json_file"
        assert results[0].city == "San Diego"

    def test_plural_query_matches_singular_category(self, business_file):
        assert [c.name for c in JsonFileSource(business_file).search("dentists", "San Diego")] == ["Acme Dental"]
        assert JsonFileSource(business_file).search("restaurants", "San Diego") == []

    def test_matches_name_case_insensitive(self, business_file):
        assert [c.name for c in JsonFileSource(business_file).search("JOE", "austin")] == ["Joe's Diner"]

    def test_skips_records_without_name(self, business_file):
        assert len(JsonFileSource(business_file).search("", "")) == 2

    def test_accepts_results_wrapper(self, tmp_path):
        path = tmp_path / "saved.json"
        path.write_text(json.dumps({"results": [{"name": "Wrapped", "city": "Denver"}]}))
        assert [c.name for c in JsonFileSource(path).search("", "denver")] == ["Wrapped"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceError, match="not found"):
            JsonFileSource(tmp_path / "nope.json").search("a", "b")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(InvalidRequestError):
            JsonFileSource(path).search("a", "b")

    def test_non_list(self, tmp_path):
        path = tmp_path / "scalar.json"
        path.write_text("42")
        with pytest.raises(InvalidRequestError):
            JsonFileSource(path).search("a", "b")

    def test_enrich_details(self, business_file):
        source = JsonFileSource(business_file)
        assert source.enrich_details("acme") == {"phone": "619-555-0100", "website": "https://acme.com"}
        assert source.enrich_details("missing") == {}

    def test_unreadable_file_fails_lookup(self, tmp_path):
        source = JsonFileSource(tmp_path / "nope.json")
        with pytest.raises(EnrichmentError, match="nope.json"):
            source.fetch_details("acme")
        assert source.enrich_details("acme") == {}


class TestGetSource:

    def test_google_places(self):
        source = get_source(MissionConfig(places_api_key="key-1234567890"))
        assert isinstance(source, GooglePlacesSource)
        assert source.requires_credential

    def test_json_file(self, tmp_path):
        source = get_source(MissionConfig(provider="json_file", source_file=tmp_path / "x.json"))
        assert isinstance(source, JsonFileSource)
        assert not source.requires_credential

    def test_unknown(self):
        with pytest.raises(ConfigurationError):
            get_source(MissionConfig(provider="yelp"))
