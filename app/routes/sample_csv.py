"""
Downloadable CSV templates for offer uploads.
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from ..dependencies import require_auth

router = APIRouter(dependencies=[Depends(require_auth)])

SAMPLE_CSVS = {
    "actual": (
        "sku,Actual Price\n"
        "SK12345,200.00\n"
        "sku-snowboard-2,150.00\n"
        "example-sku-1,10.00\n"
    ),
    "base": (
        "sku,Base Price\n"
        "SK12345,100.00\n"
        "sku-snowboard-2,80.00\n"
        "example-sku-1,5.00\n"
    ),
}


@router.get("/sample-csv")
async def sample_csv(type: str = Query("actual")):
    """Download a sample CSV; `type=base` for base pricing, anything else for actual."""
    kind = "base" if type == "base" else "actual"

    return Response(
        content=SAMPLE_CSVS[kind],
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="sample_{kind}_offers.csv"'}
    )
