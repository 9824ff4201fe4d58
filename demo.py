#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Vending Machine Step by Step

A walk through the vending state machine. Each step builds on the previous
one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3: Foundation - Instantiation, the catalog, the self-issued token
  4-6: Trading    - Purchases, rejections, withdrawals
  7-8: Reading    - Paginated catalog queries, the transition log
  9:   Aggregated - Paying with an external token and dispatching transfers

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import sys

from vending import (
    VendingMachine, MemoryStore, Context, Funds, SerialExecutor,
    AddItem, Reprice, Restock, Purchase, Withdraw, Issue,
    MODE_AGGREGATED, MODE_LEDGER, MACHINE_ACCOUNT,
    query_token_info,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 7, 0, 0)
    admin: str = "barista"
    buyer: str = "alice"
    other_buyer: str = "bob"
    supply_cap: int = 10000
    buyer_allowance: int = 5


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


class _Clock:
    """Hands out contexts a minute apart."""

    def __init__(self, start: datetime):
        self.now = start

    def ctx(self, sender: str, funds: Funds = None) -> Context:
        self.now += timedelta(minutes=1)
        return Context(sender, funds, self.now)


CLOCK = _Clock(CONFIG.start_time)


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


# ============================================================================
# PHASE 1: FOUNDATION
# ============================================================================

def step_01_instantiate() -> VendingMachine:
    step_header(1, "Instantiation",
        "A machine is a store plus a config record naming the admin.")

    print(">>> machine = VendingMachine(MemoryStore())")
    machine = VendingMachine(MemoryStore(), name="cafe")
    print(f">>> machine.instantiate(Context({CONFIG.admin!r}), MODE_LEDGER, 'COFFEE')")
    machine.instantiate(
        CLOCK.ctx(CONFIG.admin), MODE_LEDGER, "COFFEE",
        token_name="Coffee Token", supply_cap=CONFIG.supply_cap,
    )

    section_header("Config")
    print(machine.config)
    return machine


def step_02_catalog(machine: VendingMachine) -> VendingMachine:
    step_header(2, "The Catalog",
        "Only the admin adds, reprices and restocks; stock never exceeds 50.")

    machine.execute(CLOCK.ctx(CONFIG.admin), AddItem("Americano", stock=3, price=2))
    machine.execute(CLOCK.ctx(CONFIG.admin), Reprice("Americano", 3))
    machine.execute(CLOCK.ctx(CONFIG.admin), Restock("Americano", 7))

    section_header("Restocking past the limit is an error, never a clamp")
    machine.execute(CLOCK.ctx(CONFIG.admin), Restock("Americano", 41))

    section_header("A customer cannot manage the catalog")
    machine.execute(CLOCK.ctx(CONFIG.buyer), AddItem("Free Coffee", stock=50, price=1))
    return machine


def step_03_issue(machine: VendingMachine) -> VendingMachine:
    step_header(3, "The Self-Issued Token",
        "In ledger mode the admin issues tokens up to the supply cap.")

    machine.execute(CLOCK.ctx(CONFIG.admin), Issue(CONFIG.buyer, CONFIG.buyer_allowance))

    section_header("Issuance over the cap is rejected")
    machine.execute(CLOCK.ctx(CONFIG.admin), Issue(CONFIG.other_buyer, CONFIG.supply_cap))

    print(query_token_info(machine.store))
    return machine


# ============================================================================
# PHASE 2: TRADING
# ============================================================================

def step_04_purchase(machine: VendingMachine) -> VendingMachine:
    step_header(4, "A Purchase",
        "One purchase sells one unit and moves the price to the collected balance.")

    machine.execute(CLOCK.ctx(CONFIG.buyer), Purchase("Americano"))
    print(f"Stock:     {machine.get_item('Americano').stock}")
    print(f"{CONFIG.buyer}:     {machine.balance_of(CONFIG.buyer)}")
    print(f"Collected: {machine.balance_of(MACHINE_ACCOUNT)}")
    return machine


def step_05_rejections(machine: VendingMachine) -> VendingMachine:
    step_header(5, "Rejections Write Nothing",
        "A failed check leaves every stored byte unchanged.")

    before = machine.store.items()
    machine.execute(CLOCK.ctx(CONFIG.buyer), Purchase("Americano"))
    machine.execute(CLOCK.ctx(CONFIG.buyer), Purchase("Mocha"))
    print(f"\nStore unchanged: {machine.store.items() == before}")
    return machine


def step_06_withdraw(machine: VendingMachine) -> VendingMachine:
    step_header(6, "Withdrawal",
        "The admin withdraws revenue; in ledger mode it is burned from supply.")

    machine.execute(CLOCK.ctx(CONFIG.admin), Withdraw(2))
    print(f"Collected:    {machine.config.collected}")
    print(f"Total supply: {machine.total_supply()}")
    return machine


# ============================================================================
# PHASE 3: READING
# ============================================================================

def step_07_pagination(machine: VendingMachine) -> VendingMachine:
    step_header(7, "Paginated Queries",
        "Pages follow byte order of names; the last name is the next cursor.")

    for name in ["Cappuccino", "Espresso", "Flat White", "Latte", "Mocha"]:
        machine.execute(CLOCK.ctx(CONFIG.admin), AddItem(name, stock=5, price=2))

    cursor = None
    page_number = 1
    while True:
        page = list(machine.list_items(cursor, page_size=2))
        if not page:
            break
        print(f"Page {page_number}: {[item.name for item in page]}")
        cursor = page[-1].name
        page_number += 1
    return machine


def step_08_log(machine: VendingMachine) -> VendingMachine:
    step_header(8, "The Transition Log",
        "Every applied operation is recorded; rejections are not.")

    for tx in machine.transition_log:
        print(f"{tx.exec_id}  {tx.timestamp:%H:%M}  {tx.operation:<12} {tx.sender}")
    return machine


# ============================================================================
# PHASE 4: AGGREGATED MODE
# ============================================================================

def step_09_aggregated():
    step_header(9, "Aggregated Mode",
        "Buyers tender an external token; payouts are transfer instructions.")

    machine = VendingMachine(MemoryStore(), name="kiosk")
    machine.instantiate(CLOCK.ctx(CONFIG.admin), MODE_AGGREGATED, "coffee_token")
    machine.execute(CLOCK.ctx(CONFIG.admin), AddItem("Americano", stock=1, price=3))

    executor = SerialExecutor(machine)
    executor.submit(CLOCK.ctx(CONFIG.buyer, Funds("coffee_token", 5)), Purchase("Americano"))
    executor.submit(CLOCK.ctx(CONFIG.other_buyer, Funds("coffee_token", 3)), Purchase("Americano"))
    first, second = executor.run()

    section_header("Outcomes")
    print(f"First buyer:  {first.result.value}, messages {list(first.messages)}")
    print(f"Second buyer: {second.result.value}, {second.error}")

    withdrawal = machine.execute(CLOCK.ctx(CONFIG.admin), Withdraw(3))
    print(f"Withdrawal:   {list(withdrawal.messages)}")


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       VENDING MACHINE - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")
    wait_for_enter()

    machine = step_01_instantiate()
    wait_for_enter()
    for step in (step_02_catalog, step_03_issue, step_04_purchase, step_05_rejections,
                 step_06_withdraw, step_07_pagination, step_08_log):
        machine = step(machine)
        wait_for_enter()
    step_09_aggregated()

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See vending/machine.py for the transition engine
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
