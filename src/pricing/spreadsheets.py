"""
Excel import / export of supplier price grids (openpyxl).

Sheet layout (first row is the header)::

    produit | prix_unitaire | prix_casier | prix_consigne | stock_initial | quantite_vendue | stock_final

On import ``quantite_vendue`` and ``stock_final`` are informative and
ignored: the sold quantity is only changed by sales and explicit resets.
"""
import logging
from decimal import Decimal, InvalidOperation
from io import BytesIO

from django.http import HttpResponse
from django.utils import timezone

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from catalog.models import Product

from . import services
from .models import SupplierPriceGrid

logger = logging.getLogger("ravito")

GRID_COLUMNS = [
    "produit",          # A - product name
    "prix_unitaire",    # B - unit_price
    "prix_casier",      # C - crate_price
    "prix_consigne",    # D - consign_price
    "stock_initial",    # E - initial_stock
    "quantite_vendue",  # F - sold_quantity (read only)
    "stock_final",      # G - stock_final (read only)
]

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _parse_amount(value, label, required=True, default=0) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValueError(f"La colonne {label} est obligatoire.")
        return default
    try:
        amount = Decimal(str(value).replace(" ", "").replace("\u00a0", ""))
    except InvalidOperation:
        raise ValueError(f"Valeur invalide pour {label}: {value!r}.")
    if amount != amount.to_integral_value():
        raise ValueError(f"{label} doit etre un nombre entier.")
    if amount < 0:
        raise ValueError(f"{label} ne peut pas etre negatif.")
    return int(amount)


# =========================================================================
# IMPORT
# =========================================================================

def import_supplier_grids_from_excel(file, supplier, zone=None, actor=None) -> dict:
    """
    Create or update the supplier's active grids from an uploaded .xlsx file.

    Products are matched by name, case-insensitively. An existing active
    grid keeps its sold quantity; a new grid starts at zero.

    Returns a dict with counts::

        {"created": int, "updated": int, "errors": int, "error_details": list[str]}
    """
    wb = openpyxl.load_workbook(file, read_only=True, data_only=True)
    ws = wb.active

    created = 0
    updated = 0
    errors = 0
    error_details: list[str] = []

    rows = ws.iter_rows(min_row=2, values_only=True)  # skip header
    for row_idx, row in enumerate(rows, start=2):
        padded = list(row) + [None] * (len(GRID_COLUMNS) - len(row))
        product_name, unit_raw, crate_raw, consign_raw, stock_raw = padded[:5]
        if product_name is None and not any(padded[1:5]):
            continue  # blank line

        try:
            if not product_name or not str(product_name).strip():
                raise ValueError("Le nom du produit est obligatoire.")
            product = Product.objects.filter(
                name__iexact=str(product_name).strip(),
                is_active=True,
            ).first()
            if product is None:
                raise ValueError(f"Produit introuvable: {product_name}.")

            unit_price = _parse_amount(unit_raw, "prix_unitaire")
            crate_price = _parse_amount(crate_raw, "prix_casier")
            consign_price = _parse_amount(consign_raw, "prix_consigne", required=False)
            initial_stock = _parse_amount(stock_raw, "stock_initial", required=False)

            grid = SupplierPriceGrid.objects.filter(
                supplier=supplier,
                product=product,
                zone=zone,
                is_active=True,
            ).first()
            if grid is None:
                services.create_supplier_grid(
                    supplier,
                    product,
                    unit_price=unit_price,
                    crate_price=crate_price,
                    consign_price=consign_price,
                    zone=zone,
                    initial_stock=initial_stock,
                    actor=actor,
                )
                created += 1
            else:
                services.update_supplier_grid(
                    grid,
                    actor=actor,
                    reason="Import Excel",
                    unit_price=unit_price,
                    crate_price=crate_price,
                    consign_price=consign_price,
                    initial_stock=initial_stock,
                )
                updated += 1

        except ValueError as exc:
            errors += 1
            detail = f"Ligne {row_idx}: {exc}"
            error_details.append(detail)
            logger.warning("Import grille tarifaire - %s", detail)

    wb.close()

    logger.info(
        "Import grilles tarifaires termine pour %s: %d cree(s), %d mis a jour, %d erreur(s).",
        supplier, created, updated, errors,
    )

    return {
        "created": created,
        "updated": updated,
        "errors": errors,
        "error_details": error_details,
    }


# =========================================================================
# EXPORT
# =========================================================================

def build_supplier_grid_workbook(grids) -> bytes:
    """Serialise *grids* to an .xlsx document using ``GRID_COLUMNS``."""
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Grille tarifaire"

    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="F97316", end_color="F97316", fill_type="solid")

    for col_num, header in enumerate(GRID_COLUMNS, 1):
        cell = ws.cell(row=1, column=col_num, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center", vertical="center")

    for row_num, grid in enumerate(grids, start=2):
        ws.cell(row=row_num, column=1, value=grid.product.name)
        ws.cell(row=row_num, column=2, value=grid.unit_price)
        ws.cell(row=row_num, column=3, value=grid.crate_price)
        ws.cell(row=row_num, column=4, value=grid.consign_price)
        ws.cell(row=row_num, column=5, value=grid.initial_stock)
        ws.cell(row=row_num, column=6, value=grid.sold_quantity)
        ws.cell(row=row_num, column=7, value=grid.stock_final)

    for col_num, header in enumerate(GRID_COLUMNS, 1):
        col_letter = get_column_letter(col_num)
        max_length = len(header)
        for row in ws.iter_rows(min_row=2, min_col=col_num, max_col=col_num):
            for cell in row:
                if cell.value is not None:
                    max_length = max(max_length, len(str(cell.value)))
        ws.column_dimensions[col_letter].width = min(max_length + 4, 50)

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def export_supplier_grids_to_excel(queryset) -> HttpResponse:
    """Return the grids as a downloadable .xlsx ``HttpResponse``."""
    grids = queryset.select_related("product").order_by("product__name")
    response = HttpResponse(build_supplier_grid_workbook(grids), content_type=XLSX_CONTENT_TYPE)
    filename = f"grille_tarifaire_{timezone.localdate():%Y-%m-%d}.xlsx"
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response
