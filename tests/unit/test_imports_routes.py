"""
API tests for the catalog import routes.

Run: pytest tests/unit/test_imports_routes.py -v
"""

import json


CSV_CONTENT = (
    b"SKU,Title,Barcode,Retail Price\n"
    b"45120RWST-White,Roller Blind 45120RWST White 60cm x 160cm,5012345678900,49.99\n"
    b"45120RWST-Cream,Roller Blind 45120RWST Cream 60cm x 160cm,5012345678917,49.99\n"
)


def _upload(content: bytes = CSV_CONTENT, filename: str = "catalog.csv") -> dict:
    return {"file": (filename, content, "text/csv")}


class TestRootEndpoint:
    """Tests for GET /"""

    def test_root(self, test_client):
        """Should describe the API."""
        # Act
        response = test_client.get("/")

        # Assert
        assert response.status_code == 200
        assert response.json()["endpoints"]["import"] == "/api/imports"


class TestAnalyzeEndpoint:
    """Tests for POST /api/imports/analyze"""

    def test_suggests_mapping(self, test_client_with_mock_db):
        """Should return headers, samples and an auto-mapping."""
        # Act
        response = test_client_with_mock_db.post("/api/imports/analyze", files=_upload())

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["headers"] == ["SKU", "Title", "Barcode", "Retail Price"]
        assert data["total_rows"] == 2
        assert data["column_mapping"] == {
            "0": "sku",
            "1": "product_name",
            "2": "barcode",
            "3": "price",
        }
        assert data["from_cache"] is False
        assert data["validation"]["errors"] == []

    def test_unsupported_file(self, test_client_with_mock_db):
        """Should reject files it cannot read."""
        # Act
        response = test_client_with_mock_db.post(
            "/api/imports/analyze", files=_upload(b"%PDF", "catalog.pdf")
        )

        # Assert
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "CATALOG_FILE_PARSE_ERROR"


class TestImportEndpoint:
    """Tests for POST /api/imports"""

    def test_runs_import(self, test_client_with_mock_db, mock_supabase):
        """Should import the file and return counts."""
        # Act
        response = test_client_with_mock_db.post("/api/imports", files=_upload())

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["created_products"] == 1
        assert data["created_variants"] == 2
        assert data["likely_mapping_problem"] is False
        assert len(mock_supabase.rows("product_variants")) == 2

    def test_mapping_is_remembered(self, test_client_with_mock_db):
        """The next analyze of the same headers returns the used mapping."""
        # Arrange
        mapping = {"0": "sku", "1": "product_name"}
        test_client_with_mock_db.post(
            "/api/imports",
            files=_upload(),
            data={"column_mapping": json.dumps(mapping)}
        )

        # Act
        response = test_client_with_mock_db.post("/api/imports/analyze", files=_upload())

        # Assert
        data = response.json()
        assert data["from_cache"] is True
        assert data["column_mapping"] == {"0": "sku", "1": "product_name"}

    def test_mapping_without_identity_is_rejected(self, test_client_with_mock_db, mock_supabase):
        """Should refuse a mapping with neither sku nor product_name."""
        # Act
        response = test_client_with_mock_db.post(
            "/api/imports",
            files=_upload(),
            data={"column_mapping": json.dumps({"2": "barcode"})}
        )

        # Assert
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_COLUMN_MAPPING"
        assert mock_supabase.rows("products") == []

    def test_bad_json(self, test_client_with_mock_db):
        """Should reject a mapping that is not JSON."""
        # Act
        response = test_client_with_mock_db.post(
            "/api/imports",
            files=_upload(),
            data={"column_mapping": "{not json"}
        )

        # Assert
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_parent_override_form_fields(self, test_client_with_mock_db, mock_supabase):
        """parent_sku and parent_name apply to every row."""
        # Act
        response = test_client_with_mock_db.post(
            "/api/imports",
            files=_upload(),
            data={"parent_sku": "FAMILY1", "parent_name": "Window Blinds"}
        )

        # Assert
        assert response.status_code == 200
        products = mock_supabase.rows("products")
        assert [p["parent_sku"] for p in products] == ["FAMILY1"]

    def test_create_only_form_field(self, test_client_with_mock_db, mock_supabase):
        """A create_only re-upload skips rows whose SKUs exist."""
        # Arrange
        test_client_with_mock_db.post("/api/imports", files=_upload())

        # Act
        response = test_client_with_mock_db.post(
            "/api/imports",
            files=_upload(),
            data={"import_mode": "create_only"}
        )

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["import_mode"] == "create_only"
        assert data["skipped_rows"] == 2
        assert data["processed_rows"] == 0
        assert data["likely_mapping_problem"] is False
        assert mock_supabase.calls_for("product_variants", "update") == []

    def test_unknown_import_mode(self, test_client_with_mock_db, mock_supabase):
        """Should reject an import mode it does not know."""
        # Act
        response = test_client_with_mock_db.post(
            "/api/imports",
            files=_upload(),
            data={"import_mode": "replace_all"}
        )

        # Assert
        assert response.status_code == 422
        assert mock_supabase.rows("products") == []


class TestDryRunEndpoint:
    """Tests for POST /api/imports with dry_run"""

    def test_predicts_without_writing(self, test_client_with_mock_db, mock_supabase):
        """Should return predicted counts and leave storage untouched."""
        # Act
        response = test_client_with_mock_db.post(
            "/api/imports",
            files=_upload(),
            data={"dry_run": "true"}
        )

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["dry_run"] is True
        assert data["created_products"] == 1
        assert data["created_variants"] == 2
        assert mock_supabase.rows("products") == []
        assert mock_supabase.rows("product_variants") == []

    def test_mapping_is_not_remembered(self, test_client_with_mock_db):
        """A dry run does not save its mapping for the next upload."""
        # Arrange
        test_client_with_mock_db.post(
            "/api/imports",
            files=_upload(),
            data={"dry_run": "true", "column_mapping": json.dumps({"0": "sku", "1": "product_name"})}
        )

        # Act
        response = test_client_with_mock_db.post("/api/imports/analyze", files=_upload())

        # Assert
        assert response.json()["from_cache"] is False
