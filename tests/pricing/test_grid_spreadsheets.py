from io import BytesIO

import openpyxl
import pytest

from pricing.models import SupplierPriceGrid
from pricing.spreadsheets import (
    GRID_COLUMNS,
    XLSX_CONTENT_TYPE,
    build_supplier_grid_workbook,
    export_supplier_grids_to_excel,
    import_supplier_grids_from_excel,
)


def _workbook(rows):
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.append(GRID_COLUMNS)
    for row in rows:
        ws.append(row)
    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer


@pytest.mark.django_db
class TestGridImport:
    def test_creates_and_updates_grids(self, supplier_user, product, product_without_reference, grid):
        grid.sold_quantity = 4
        grid.save()
        upload = _workbook([
            ["flag 65cl", 560, 11200, 3000, 30],
            ["Coca-Cola 33cl", "400", "9 000", None, None],
        ])

        result = import_supplier_grids_from_excel(upload, supplier=supplier_user)

        assert result == {"created": 1, "updated": 1, "errors": 0, "error_details": []}
        grid.refresh_from_db()
        assert grid.crate_price == 11200
        assert grid.initial_stock == 30
        assert grid.sold_quantity == 4
        coca = SupplierPriceGrid.objects.get(product=product_without_reference, is_active=True)
        assert coca.crate_price == 9000
        assert coca.sold_quantity == 0

    def test_collects_row_errors(self, supplier_user, product):
        upload = _workbook([
            ["Produit inconnu", 500, 10000],
            ["Flag 65cl", "abc", 10000],
            ["Flag 65cl", 500, -1],
            [None, None, None, None, None],
            ["Flag 65cl", 500, 10000.5],
        ])

        result = import_supplier_grids_from_excel(upload, supplier=supplier_user)

        assert result["created"] == 0
        assert result["errors"] == 4
        assert result["error_details"][0].startswith("Ligne 2:")
        assert not SupplierPriceGrid.objects.exists()


@pytest.mark.django_db
class TestGridExport:
    def test_workbook_layout(self, grid):
        grid.sold_quantity = 12
        grid.save()

        wb = openpyxl.load_workbook(BytesIO(build_supplier_grid_workbook([grid])))
        rows = list(wb.active.iter_rows(values_only=True))

        assert list(rows[0]) == GRID_COLUMNS
        assert list(rows[1]) == ["Flag 65cl", 550, 11000, 3000, 10, 12, -2]

    def test_http_response(self, grid):
        response = export_supplier_grids_to_excel(SupplierPriceGrid.objects.all())
        assert response["Content-Type"] == XLSX_CONTENT_TYPE
        assert "attachment;" in response["Content-Disposition"]
