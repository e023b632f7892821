from fastapi import Header, HTTPException


def get_foundation_id(x_foundation_id: str = Header(...)) -> str:
    """Every ledger request names its foundation explicitly."""
    if not x_foundation_id or not x_foundation_id.strip():
        raise HTTPException(status_code=400, detail="X-Foundation-ID header is missing")
    return x_foundation_id.strip()
