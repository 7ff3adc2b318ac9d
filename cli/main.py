# MIT License
# Copyright (c) 2025 Hashborn

import argparse
import sys
import json
import requests
import os
from decimal import Decimal, InvalidOperation
from protocol.types.common import OpType
from protocol.types.operation import Operation
from protocol.config.params import DECIMALS, DENOM
from protocol.config.economic_model import DAY

DEFAULT_NODE = "http://localhost:8000"

def get_node_url(args):
    return args.node or os.environ.get("SST_NODE", DEFAULT_NODE)

def to_units(amount: str) -> int:
    """Converts a display amount ("12.5") to base units."""
    try:
        value = Decimal(amount)
    except InvalidOperation:
        print(f"Error: invalid amount '{amount}'")
        sys.exit(1)

    if not value.is_finite():
        print(f"Error: invalid amount '{amount}'")
        sys.exit(1)

    units = value * 10**DECIMALS
    if units != units.to_integral_value():
        print(f"Error: amount '{amount}' has more than {DECIMALS} decimal places")
        sys.exit(1)
    return int(units)

def from_units(units) -> str:
    return f"{Decimal(int(units)) / 10**DECIMALS} {DENOM}"

def get_json(url: str):
    resp = requests.get(url)
    if resp.status_code != 200:
        print(f"Error: {resp.text}")
        sys.exit(1)
    return resp.json()

# --- Query Commands ---
def cmd_query_stake(args):
    data = get_json(f"{get_node_url(args)}/stake/{args.owner}")
    print(f"Owner:        {data['owner']}")
    print(f"Staked:       {from_units(data['amount'])}")
    print(f"Secondary:    {data['secondary_amount']}")
    print(f"LP deposit:   {data['lp_deposit']}")
    print(f"Lock period:  {data['lock_period'] // DAY} days")
    print(f"Locked until: {data['locked_until']}")
    print(f"Borrowed:     {from_units(data['borrowed_amount'])}")
    print(f"Auto-restake: {data['auto_restake']}")

def cmd_query_unlocked(args):
    data = get_json(f"{get_node_url(args)}/stake/{args.owner}/unlocked")
    print(f"Unlocked: {from_units(data['unlocked'])} of {from_units(data['amount'])}")

def cmd_query_voting_power(args):
    data = get_json(f"{get_node_url(args)}/stake/{args.owner}/voting_power")
    print(f"Voting power: {data['voting_power']}")

def cmd_query_borrow_limit(args):
    data = get_json(f"{get_node_url(args)}/stake/{args.owner}/borrow_limit")
    print(f"Max borrow: {from_units(data['max_borrow'])}")
    print(f"Borrowed:   {from_units(data['borrowed'])}")
    print(f"Available:  {from_units(data['available'])}")

def cmd_query_proposals(args):
    data = get_json(f"{get_node_url(args)}/proposals")
    proposals = data.get("proposals", [])
    if not proposals:
        print("No proposals found.")
        return

    print(f"{'ID':<5} {'Proposer':<20} {'For':>20} {'Against':>20}  Description")
    print("-" * 100)
    for p in proposals:
        print(f"{p['proposal_id']:<5} {p['proposer']:<20} {p['votes_for']:>20} {p['votes_against']:>20}  {p['description']}")

def cmd_query_insurance(args):
    data = get_json(f"{get_node_url(args)}/insurance")
    print(f"Insurance fund: {from_units(data['balance'])}")

def cmd_query_balance(args):
    data = get_json(f"{get_node_url(args)}/balance/{args.asset}/{args.account}")
    print(f"Balance: {data['balance']} {args.asset} (base units)")

# --- Operation Commands ---
def broadcast_op(args, op: Operation):
    url = get_node_url(args)
    endpoint = "/operation/simulate" if args.simulate else "/operation"
    try:
        resp = requests.post(f"{url}{endpoint}", json=op.model_dump(mode="json"))
    except requests.RequestException as e:
        print(f"Error: node unreachable: {e}")
        sys.exit(1)

    if resp.status_code != 200:
        try:
            err = resp.json()
            detail = err.get("message") or err.get("detail")
            print(f"Error [{err.get('code', resp.status_code)}]: {detail}")
        except ValueError:
            print(f"Error: {resp.text}")
        sys.exit(1)

    result = resp.json()
    if args.simulate:
        print("Simulation only, nothing committed.")
    print(json.dumps(result, indent=2))

def cmd_op_stake(args):
    op = Operation(op_type=OpType.STAKE, owner=args.from_owner, amount=to_units(args.amount))
    print(f"Staking {args.amount} {DENOM} for {args.from_owner}...")
    broadcast_op(args, op)

def cmd_op_stake_lock(args):
    op = Operation(
        op_type=OpType.STAKE_WITH_LOCK,
        owner=args.from_owner,
        amount=to_units(args.amount),
        payload={"lock_period": args.days * DAY},
    )
    print(f"Staking {args.amount} {DENOM} for {args.from_owner} locked {args.days} days...")
    broadcast_op(args, op)

def cmd_op_stake_dual(args):
    op = Operation(
        op_type=OpType.STAKE_DUAL,
        owner=args.from_owner,
        amount=to_units(args.amount),
        payload={"secondary_amount": to_units(args.secondary_amount)},
    )
    broadcast_op(args, op)

def cmd_op_deposit_lp(args):
    op = Operation(op_type=OpType.DEPOSIT_LP, owner=args.from_owner, amount=to_units(args.amount))
    broadcast_op(args, op)

def cmd_op_unstake(args):
    op = Operation(op_type=OpType.UNSTAKE, owner=args.from_owner, amount=to_units(args.amount))
    print(f"Unstaking {args.amount} {DENOM} for {args.from_owner}...")
    broadcast_op(args, op)

def cmd_op_trade(args):
    op = Operation(
        op_type=OpType.EXECUTE_TRADE,
        owner=args.from_owner,
        payload={"execution_latency_ms": args.latency_ms},
    )
    broadcast_op(args, op)

def cmd_op_claim(args):
    op = Operation(
        op_type=OpType.CLAIM_REWARDS,
        owner=args.from_owner,
        payload={"liquidity_provided": args.liquidity},
    )
    broadcast_op(args, op)

def cmd_op_auto_restake(args):
    op = Operation(
        op_type=OpType.TOGGLE_AUTO_RESTAKE,
        owner=args.from_owner,
        payload={"enabled": args.state == "on"},
    )
    broadcast_op(args, op)

def cmd_op_borrow(args):
    op = Operation(op_type=OpType.BORROW, owner=args.from_owner, amount=to_units(args.amount))
    broadcast_op(args, op)

def cmd_op_flash_loan(args):
    op = Operation(op_type=OpType.FLASH_LOAN, owner=args.from_owner, amount=to_units(args.amount))
    broadcast_op(args, op)

def cmd_op_propose(args):
    op = Operation(
        op_type=OpType.CREATE_PROPOSAL,
        owner=args.from_owner,
        payload={"description": args.description},
    )
    broadcast_op(args, op)

def cmd_op_vote(args):
    op = Operation(
        op_type=OpType.VOTE_PROPOSAL,
        owner=args.from_owner,
        payload={"proposal_id": args.proposal_id, "support": args.choice == "yes"},
    )
    broadcast_op(args, op)

def cmd_op_slash(args):
    op = Operation(
        op_type=OpType.SLASH_STAKE,
        owner=args.from_owner,
        payload={"target": args.target, "percentage": args.percentage},
    )
    broadcast_op(args, op)

def cmd_op_donate(args):
    op = Operation(op_type=OpType.DONATE_INSURANCE, owner=args.from_owner, amount=to_units(args.amount))
    broadcast_op(args, op)

def main():
    parser = argparse.ArgumentParser(description="SST Staking Engine CLI")
    parser.add_argument("--node", help="Node URL (default: http://localhost:8000)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Query
    p_query = subparsers.add_parser("query", help="Query engine state")
    sp_query = p_query.add_subparsers(dest="subcommand", required=True)

    pq_stake = sp_query.add_parser("stake", help="Show stake record")
    pq_stake.add_argument("owner")
    pq_stake.set_defaults(func=cmd_query_stake)

    pq_unlocked = sp_query.add_parser("unlocked", help="Show withdrawable stake")
    pq_unlocked.add_argument("owner")
    pq_unlocked.set_defaults(func=cmd_query_unlocked)

    pq_power = sp_query.add_parser("voting-power", help="Show governance voting power")
    pq_power.add_argument("owner")
    pq_power.set_defaults(func=cmd_query_voting_power)

    pq_borrow = sp_query.add_parser("borrow-limit", help="Show borrowing capacity")
    pq_borrow.add_argument("owner")
    pq_borrow.set_defaults(func=cmd_query_borrow_limit)

    pq_props = sp_query.add_parser("proposals", help="List governance proposals")
    pq_props.set_defaults(func=cmd_query_proposals)

    pq_ins = sp_query.add_parser("insurance", help="Show insurance fund")
    pq_ins.set_defaults(func=cmd_query_insurance)

    pq_bal = sp_query.add_parser("balance", help="Show custody balance")
    pq_bal.add_argument("asset")
    pq_bal.add_argument("account")
    pq_bal.set_defaults(func=cmd_query_balance)

    # Operations
    p_op = subparsers.add_parser("op", help="Submit engine operations")
    p_op.add_argument("--from", dest="from_owner", required=True, help="Caller identity")
    p_op.add_argument("--simulate", action="store_true", help="Dry-run without committing")
    sp_op = p_op.add_subparsers(dest="subcommand", required=True)

    po_stake = sp_op.add_parser("stake", help="Flexible stake")
    po_stake.add_argument("amount", help=f"Amount in {DENOM}")
    po_stake.set_defaults(func=cmd_op_stake)

    po_lock = sp_op.add_parser("stake-lock", help="Stake with a lock period")
    po_lock.add_argument("amount", help=f"Amount in {DENOM}")
    po_lock.add_argument("--days", type=int, choices=[30, 90, 180], required=True)
    po_lock.set_defaults(func=cmd_op_stake_lock)

    po_dual = sp_op.add_parser("stake-dual", help="Stake primary and secondary assets")
    po_dual.add_argument("amount", help=f"Primary amount in {DENOM}")
    po_dual.add_argument("secondary_amount", help="Secondary amount")
    po_dual.set_defaults(func=cmd_op_stake_dual)

    po_lp = sp_op.add_parser("deposit-lp", help="Deposit LP tokens")
    po_lp.add_argument("amount")
    po_lp.set_defaults(func=cmd_op_deposit_lp)

    po_unstake = sp_op.add_parser("unstake", help="Withdraw stake")
    po_unstake.add_argument("amount", help=f"Amount in {DENOM}")
    po_unstake.set_defaults(func=cmd_op_unstake)

    po_trade = sp_op.add_parser("trade", help="Report a trade execution")
    po_trade.add_argument("latency_ms", type=int, help="Execution latency in ms")
    po_trade.set_defaults(func=cmd_op_trade)

    po_claim = sp_op.add_parser("claim", help="Claim staking rewards")
    po_claim.add_argument("--liquidity", type=int, default=0, help="Liquidity provided (base units)")
    po_claim.set_defaults(func=cmd_op_claim)

    po_auto = sp_op.add_parser("auto-restake", help="Toggle reward compounding")
    po_auto.add_argument("state", choices=["on", "off"])
    po_auto.set_defaults(func=cmd_op_auto_restake)

    po_borrow = sp_op.add_parser("borrow", help="Borrow against stake")
    po_borrow.add_argument("amount", help=f"Amount in {DENOM}")
    po_borrow.set_defaults(func=cmd_op_borrow)

    po_flash = sp_op.add_parser("flash-loan", help="Flash loan against stake")
    po_flash.add_argument("amount", help=f"Amount in {DENOM}")
    po_flash.set_defaults(func=cmd_op_flash_loan)

    po_prop = sp_op.add_parser("propose", help="Create governance proposal")
    po_prop.add_argument("description", help="Proposal text (max 200 chars)")
    po_prop.set_defaults(func=cmd_op_propose)

    po_vote = sp_op.add_parser("vote", help="Vote on a proposal")
    po_vote.add_argument("proposal_id", type=int)
    po_vote.add_argument("choice", choices=["yes", "no"])
    po_vote.set_defaults(func=cmd_op_vote)

    po_slash = sp_op.add_parser("slash", help="Slash a stake (governance only)")
    po_slash.add_argument("target", help="Owner to slash")
    po_slash.add_argument("percentage", type=int)
    po_slash.set_defaults(func=cmd_op_slash)

    po_donate = sp_op.add_parser("donate", help="Donate to the insurance fund")
    po_donate.add_argument("amount", help=f"Amount in {DENOM}")
    po_donate.set_defaults(func=cmd_op_donate)

    args = parser.parse_args()
    if not hasattr(args, "simulate"):
        args.simulate = False
    args.func(args)

if __name__ == "__main__":
    main()
