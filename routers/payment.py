import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from pymongo.database import Database

import config
from checkout import confirm_payment as confirm_order_payment, new_client_secret
from database import get_db
from routers import success
from routers.orders import CheckoutBody, checkout
from security import get_current_user

log = logging.getLogger("luxora.payment")

router = APIRouter(prefix="/api/payment", tags=["payment"])


class PaymentIntentBody(BaseModel):
    amount: float = Field(..., gt=0)
    currency: str = "inr"


class ConfirmPaymentBody(BaseModel):
    order_id: str
    payment_intent_id: str = Field(..., min_length=1)


@router.get("/config")
def payment_config():
    return success({"publishable_key": config.STRIPE_PUBLISHABLE_KEY})


@router.post("/create-payment-intent")
def create_payment_intent(body: PaymentIntentBody, user=Depends(get_current_user)):
    # No gateway call: the client secret is a local placeholder.
    client_secret = new_client_secret()
    log.info("Created payment intent for user %s: %.2f %s", user["id"], body.amount, body.currency)
    return success({
        "client_secret": client_secret,
        "payment_intent_id": client_secret.split("_secret_")[0],
        "amount": body.amount,
        "currency": body.currency.lower(),
    })


@router.post("/create-order", status_code=201)
def create_order(body: CheckoutBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    return success({"order": checkout(db, user, body)}, message="Order placed successfully")


@router.post("/confirm-payment")
def confirm_payment(body: ConfirmPaymentBody, user=Depends(get_current_user), db: Database = Depends(get_db)):
    order = confirm_order_payment(db, user, body.order_id, body.payment_intent_id)
    return success({"order": order}, message="Payment confirmed")
