from typing import Annotated, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..auth.dependencies import ServicesDep, get_optional_session
from ..auth.session import Session
from .schemas import CheckoutRequest, CheckoutResponse
from .service import PAYMENT_ERROR

router = APIRouter(
    prefix="/checkout",
    tags=["Checkout"],
)


@router.post("/create", response_model=CheckoutResponse)
async def create_checkout(
    checkout: CheckoutRequest,
    services: ServicesDep,
    session: Annotated[Optional[Session], Depends(get_optional_session)],
):
    user_id = session.user.id if session is not None else None
    result = await services.checkout.process(checkout, user_id=user_id)
    if result.success:
        return result
    code = status.HTTP_500_INTERNAL_SERVER_ERROR if result.error == PAYMENT_ERROR else status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=code, content=result.model_dump())
