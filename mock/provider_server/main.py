from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pathlib import Path
import json

app = FastAPI(title="Mock BNPL Provider", version="1.0.0")
DATA_DIR = Path("/data/expectations")


def _fixture(name: str):
    file = DATA_DIR / name
    if not file.exists():
        raise HTTPException(status_code=500, detail=f"missing fixture {name}")
    return json.loads(file.read_text())


@app.get("/v1/ping")
def ping(): return {"status": "ok"}

@app.get("/v1/configuration")
def configuration():
    return JSONResponse(content=_fixture("configuration_details.json"))

@app.post("/v1/orders")
async def create_order(request: Request):
    payload = await request.json()
    if "totalAmount" not in payload:
        raise HTTPException(status_code=422, detail="totalAmount is required")
    return JSONResponse(status_code=201, content=_fixture("order_create_response.json"))

@app.post("/v1/payments/capture")
async def capture(request: Request, mode: str = "ok"):
    payload = await request.json()
    if mode == "decline" or not payload.get("token"):
        return JSONResponse(status_code=402, content={"errorCode": "declined", "message": "Payment declined"})
    payment = _fixture("payments_get_response.json")
    payment["token"] = payload["token"]
    if payload.get("merchantReference"):
        payment["merchantReference"] = payload["merchantReference"]
    return JSONResponse(status_code=201, content=payment)
