"""
Hypothesis strategies shared by the conformance suites.
"""

from hypothesis import strategies as st

from vending import AddItem, Reprice, Restock, Purchase, Withdraw, Issue

from tests.machines import ADMIN, BUYER, OTHER


NAMES = ["Americano", "Latte", "Mocha"]

names = st.sampled_from(NAMES)
senders = st.sampled_from([ADMIN, BUYER, OTHER])
quantities = st.integers(min_value=0, max_value=60)

operations = st.one_of(
    st.builds(AddItem, names, quantities, quantities),
    st.builds(Reprice, names, quantities),
    st.builds(Restock, names, quantities),
    st.builds(Purchase, names),
    st.builds(Withdraw, quantities),
    st.builds(Issue, st.sampled_from([BUYER, OTHER, "X"]), quantities),
)

management_operations = st.one_of(
    st.builds(AddItem, names, quantities, quantities),
    st.builds(Reprice, names, quantities),
    st.builds(Restock, names, quantities),
    st.builds(Withdraw, quantities),
    st.builds(Issue, st.sampled_from([BUYER, OTHER]), quantities),
)

requests = st.lists(st.tuples(senders, operations), max_size=25)
