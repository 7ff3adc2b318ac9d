from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from typing import Optional
import logging

from protocol.config.params import CURRENT_NETWORK, NetworkConfig
from protocol.types.common import OpType, EngineError
from protocol.types.operation import Operation, OperationResult
from ..core.state import EngineState
from ..core.transfer import InMemoryTransferService
from ..observability.metrics import metrics_registry, update_metrics

logger = logging.getLogger(__name__)

app = FastAPI(title="SST Staking Engine RPC")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Injected by the node CLI (or tests)
state: Optional[EngineState] = None
network: NetworkConfig = CURRENT_NETWORK
persist_on_write: bool = True


def _require_state() -> EngineState:
    if not state:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return state


def _authorize(op: Operation):
    """
    Capability check for privileged operations.

    The caller identity in the envelope is authenticated upstream; here we
    only check that it holds the governance role.
    """
    if op.op_type == OpType.SLASH_STAKE and op.owner != network.governance_authority:
        logger.warning(f"Unauthorized slash attempt by {op.owner}")
        raise HTTPException(status_code=403, detail="Slashing requires the governance authority")


@app.exception_handler(EngineError)
async def engine_error_handler(request, exc: EngineError):
    return JSONResponse(status_code=400, content=exc.to_dict())


@app.get("/status")
async def get_status():
    st = _require_state()
    return {
        "network": network.network_id,
        "time": st.clock.now(),
        "stake_records": len(st.get_all_records()),
        "proposals": st.proposal_count,
        "insurance_balance": str(st.get_insurance_fund().balance),
    }


@app.post("/operation", response_model=OperationResult)
async def submit_operation(op: Operation):
    st = _require_state()
    _authorize(op)
    result = st.apply_operation(op)
    if persist_on_write:
        st.persist()
    return result


@app.post("/operation/simulate", response_model=OperationResult)
async def simulate_operation(op: Operation):
    """Dry-run: reports what the operation would do without committing it."""
    st = _require_state()
    _authorize(op)
    return st.simulate(op)


@app.get("/stake/{owner}")
async def get_stake(owner: str):
    st = _require_state()
    if not st.has_record(owner):
        raise HTTPException(status_code=404, detail="Stake record not found")
    return st.get_record(owner)


@app.get("/stake/{owner}/unlocked")
async def get_unlocked(owner: str):
    st = _require_state()
    record = st.get_record(owner)
    return {
        "owner": owner,
        "amount": record.amount,
        "unlocked": st.unlocked_amount(owner),
        "lock_period": record.lock_period,
        "locked_until": record.locked_until,
    }


@app.get("/stake/{owner}/voting_power")
async def get_voting_power(owner: str):
    st = _require_state()
    return {"owner": owner, "voting_power": st.voting_power(owner)}


@app.get("/stake/{owner}/borrow_limit")
async def get_borrow_limit(owner: str):
    st = _require_state()
    record = st.get_record(owner)
    return {
        "owner": owner,
        "max_borrow": st.lending.max_borrow(record),
        "borrowed": record.borrowed_amount,
        "available": st.lending.available_to_borrow(record),
    }


@app.get("/proposals")
async def get_proposals():
    st = _require_state()
    return {"proposals": st.get_all_proposals()}


@app.get("/proposal/{proposal_id}")
async def get_proposal(proposal_id: int):
    st = _require_state()
    proposal = st.get_proposal(proposal_id)
    if not proposal:
        raise HTTPException(status_code=404, detail="Proposal not found")
    return proposal


@app.get("/insurance")
async def get_insurance():
    st = _require_state()
    return st.get_insurance_fund()


@app.get("/balance/{asset}/{account}")
async def get_balance(asset: str, account: str):
    st = _require_state()
    if not isinstance(st.transfers, InMemoryTransferService):
        raise HTTPException(status_code=501, detail="Custody balances are held externally")
    return {"asset": asset, "account": account, "balance": str(st.transfers.balance_of(asset, account))}


@app.get("/metrics")
async def get_metrics():
    st = _require_state()
    update_metrics(st)
    return Response(generate_latest(metrics_registry), media_type=CONTENT_TYPE_LATEST)
