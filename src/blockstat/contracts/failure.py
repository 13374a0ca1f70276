"""Centralized failure type for contract violations.

Contracts fail fast, loud, and once. All violations raise the same
exception type, allowing caller to handle engine bugs uniformly.
"""


class ContractViolation(RuntimeError):
    """Raised when a run contract is violated.

    This indicates a bug in the planner or in an array store adapter, not
    bad user input. It means a stage did not produce the invariants it
    promised.

    Key distinction:
    - ValueError: User/config error (InvalidDescriptor, InvalidBudget, Pydantic)
    - StoreError: I/O failure on a block
    - ContractViolation: Engine or store bug (programmer error)
    """
    pass
