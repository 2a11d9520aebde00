"""
CSV product import tests, through the service and the flask CLI.
"""

import io

import pytest
from gestao.extensions import db
from gestao.models import Category, Product
from gestao.services.import_service import ImportError as CatalogImportError
from gestao.services.import_service import import_products

CSV_OK = (
    "name,category,cost_price,sale_price,stock_quantity,min_stock_quantity\n"
    "Arroz 5kg,Mercearia,18.00,24.90,30,5\n"
    "Feijão 1kg,mercearia,6.50,8.99,40,\n"
    "Detergente,Limpeza,1.80,2.79,12,\n"
)


class TestImportService:

    def test_import_creates_products_and_categories(self, owner):
        report = import_products(io.StringIO(CSV_OK), user_id=owner.id)

        assert report.created == 3
        assert report.errors == []
        assert report.categories_created == ["Mercearia", "Limpeza"]
        assert db.session.query(Product).filter_by(user_id=owner.id).count() == 3
        assert db.session.query(Category).filter_by(user_id=owner.id).count() == 2

    def test_existing_category_is_reused(self, owner, make_category):
        make_category("Limpeza")

        report = import_products(io.StringIO(CSV_OK), user_id=owner.id)

        assert report.categories_created == ["Mercearia"]

    def test_bad_rows_are_reported_and_skipped(self, owner):
        data = (
            "name,cost_price,sale_price,stock_quantity\n"
            "Bom,1.00,2.00,3\n"
            ",1.00,2.00,3\n"
            "Caro,5.00,2.00,1\n"
            "Texto,abc,2.00,1\n"
        )

        report = import_products(io.StringIO(data), user_id=owner.id)

        assert report.created == 1
        assert [e["row"] for e in report.errors] == [3, 4, 5]
        assert "name is required" in report.errors[0]["error"]
        assert "sale_price" in report.errors[1]["error"]
        assert "cost_price must be a number" in report.errors[2]["error"]

    def test_dry_run_saves_nothing(self, owner):
        report = import_products(io.StringIO(CSV_OK), user_id=owner.id, dry_run=True)

        assert report.created == 3
        assert report.to_dict()["dry_run"] is True
        assert db.session.query(Product).count() == 0
        assert db.session.query(Category).count() == 0

    @pytest.mark.parametrize("data,message", [
        ("", "empty"),
        ("description,sale_price\nx,1\n", "Missing required columns: name"),
        ("name,barcode\nx,123\n", "Unknown columns: barcode"),
    ])
    def test_file_level_errors(self, owner, data, message):
        with pytest.raises(CatalogImportError) as exc:
            import_products(io.StringIO(data), user_id=owner.id)
        assert message in str(exc.value)


class TestImportCommand:

    def test_cli_import(self, app, owner, tmp_path):
        csv_file = tmp_path / "produtos.csv"
        csv_file.write_text(CSV_OK, encoding="utf-8")

        result = app.test_cli_runner().invoke(
            args=["catalog", "import-products", str(csv_file), "--email", owner.email],
        )

        assert result.exit_code == 0, result.output
        assert "PASS 3 products imported" in result.output
        assert "+ category Mercearia" in result.output
        assert db.session.query(Product).count() == 3

    def test_cli_dry_run(self, app, owner, tmp_path):
        csv_file = tmp_path / "produtos.csv"
        csv_file.write_text(CSV_OK, encoding="utf-8")

        result = app.test_cli_runner().invoke(
            args=["catalog", "import-products", str(csv_file), "--email", owner.email, "--dry-run"],
        )

        assert result.exit_code == 0, result.output
        assert result.output.startswith("DRY RUN PASS 3")
        assert db.session.query(Product).count() == 0

    def test_cli_unknown_owner(self, app, db_session, tmp_path):
        csv_file = tmp_path / "produtos.csv"
        csv_file.write_text(CSV_OK, encoding="utf-8")

        result = app.test_cli_runner().invoke(
            args=["catalog", "import-products", str(csv_file), "--email", "ninguem@loja.com"],
        )

        assert result.exit_code != 0
        assert "No user with email" in result.output
