from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from enum import Enum
from typing import Annotated, Literal, Union
from decimal import Decimal, ROUND_HALF_EVEN, getcontext, localcontext


MAX_CLIENT_ID = 65535
MAX_TX_ID = 4294967295
# magnitude bound of a single amount, the range of a 96-bit decimal mantissa
MAX_AMOUNT = Decimal("1e28")
# significant digits kept by ledger arithmetic
ARITHMETIC_PRECISION = 64


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"


class _TransactionBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    client: int = Field(..., ge=0, le=MAX_CLIENT_ID, description="Client identifier")
    tx: int = Field(..., ge=0, le=MAX_TX_ID, description="Transaction identifier")


class _AmountTransaction(_TransactionBase):
    amount: Decimal = Field(..., allow_inf_nan=False, description="Transaction amount")

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_float_amounts(cls, v):
        # str() keeps the shortest repr, not the binary expansion
        if isinstance(v, float):
            return str(v)
        return v

    @field_validator('amount')
    @classmethod
    def check_amount_range(cls, v):
        if abs(v) >= MAX_AMOUNT:
            raise ValueError(f'Amount magnitude must be below {MAX_AMOUNT:f}')
        return v


class DepositTransaction(_AmountTransaction):
    type: Literal["deposit"] = "deposit"


class WithdrawalTransaction(_AmountTransaction):
    type: Literal["withdrawal"] = "withdrawal"


class DisputeTransaction(_TransactionBase):
    type: Literal["dispute"] = "dispute"


class ResolveTransaction(_TransactionBase):
    type: Literal["resolve"] = "resolve"


class ChargebackTransaction(_TransactionBase):
    type: Literal["chargeback"] = "chargeback"


Transaction = Annotated[
    Union[
        DepositTransaction,
        WithdrawalTransaction,
        DisputeTransaction,
        ResolveTransaction,
        ChargebackTransaction,
    ],
    Field(discriminator="type"),
]

transaction_adapter = TypeAdapter(Transaction)


class Account(BaseModel):
    """Runtime state of one client account."""

    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        with wide_context(self.available, self.held):
            return self.available + self.held


class StoredDeposit(BaseModel):
    """An accepted deposit, kept so later disputes can reference it."""

    client: int
    amount: Decimal
    under_dispute: bool = False


def wide_context(*values: Decimal, places: int = 4):
    """Local decimal context wide enough to hold every value to `places` decimals."""
    ctx = getcontext().copy()
    ctx.prec = max([ctx.prec, ARITHMETIC_PRECISION] + [value.adjusted() + places + 3 for value in values])
    return localcontext(ctx)


def round_amount(value: Decimal, precision: int = 4) -> Decimal:
    with wide_context(value, places=precision):
        rounded = value.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_EVEN)
    if not rounded:
        # no "-0.0000" in reports
        rounded = rounded.copy_abs()
    return rounded


class AccountSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    client: int = Field(..., description="Client identifier")
    available: Decimal = Field(..., description="Funds available for withdrawal")
    held: Decimal = Field(..., description="Funds held by open disputes")
    total: Decimal = Field(..., description="available + held")
    locked: bool = Field(..., description="Frozen by a chargeback")

    @classmethod
    def from_account(cls, client: int, account: Account, precision: int = 4) -> "AccountSnapshot":
        available = round_amount(account.available, precision)
        held = round_amount(account.held, precision)
        with wide_context(available, held, places=precision):
            total = available + held
        return cls(
            client=client,
            available=available,
            held=held,
            total=total,
            locked=account.locked,
        )


class RunSummary(BaseModel):
    rows_read: int = Field(0, description="Data rows read from the input")
    rows_skipped: int = Field(0, description="Rows that failed to decode")
    transactions_applied: int = Field(0, description="Decoded transactions handed to the processor")
    accounts_count: int = Field(0, description="Accounts in the final snapshot")
